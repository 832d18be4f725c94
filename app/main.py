import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from app.core.config import settings
from app.core.errors import (
    SkillSwapError,
    ValidationError,
    PermissionDeniedError,
    NotAuthenticatedError,
    NotFoundError,
    ConflictError,
    OracleRateLimited,
    OracleQuotaExceeded,
    OracleUnavailable,
    LiveFeedUnavailable,
    StoreError,
)
from app.api.me import router as me_router
from app.api.matches import router as matches_router
from app.api.connections import router as connections_router
from app.services.message_feed import close_message_feed

logger = logging.getLogger(__name__)

# Most specific first
ERROR_STATUS_CODES = [
    (PermissionDeniedError, 403),
    (ValidationError, 400),
    (NotAuthenticatedError, 401),
    (NotFoundError, 404),
    (ConflictError, 409),
    (OracleRateLimited, 429),
    (OracleQuotaExceeded, 402),
    (OracleUnavailable, 503),
    (LiveFeedUnavailable, 503),
    (StoreError, 503),
]


def status_code_for(error: SkillSwapError) -> int:
    for error_type, code in ERROR_STATUS_CODES:
        if isinstance(error, error_type):
            return code
    return 500


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting up FastAPI...")
    yield
    logger.info("Shutting down FastAPI...")
    await close_message_feed()


app = FastAPI(
    title="Skill Swap API",
    docs_url="/docs" if not settings.APP_DOMAIN else None,
    redoc_url=None,
    lifespan=lifespan,
)


@app.exception_handler(SkillSwapError)
async def skill_swap_error_handler(request: Request, exc: SkillSwapError):
    code = status_code_for(exc)
    if code >= 500 or code in (402, 429):
        logger.error(f"{request.method} {request.url.path} failed: {exc.code}: {exc.message}")
    headers = {"Retry-After": "30"} if exc.retryable else None
    return JSONResponse(
        status_code=code,
        content={"detail": exc.message, "code": exc.code, "retryable": exc.retryable},
        headers=headers,
    )


# Include routers
app.include_router(me_router)
app.include_router(matches_router)
app.include_router(connections_router)


@app.get("/health")
async def health_check():
    return {"status": "ok"}


@app.get("/")
async def root():
    return {"message": "Skill Swap API", "version": "1.0"}
