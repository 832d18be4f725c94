import sys
import logging

import uvicorn

from app.core.config import settings

logging.basicConfig(
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    handlers=[logging.StreamHandler(sys.stdout)]
)

def main():
    uvicorn.run("app.main:app", host="0.0.0.0", port=8000, log_config=None)

if __name__ == '__main__':
    main()
