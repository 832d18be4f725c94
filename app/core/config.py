from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import PostgresDsn, RedisDsn, computed_field
from typing import Optional

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_ignore_empty=True, extra="ignore")

    # Security: no default credentials - require them to be set in .env
    POSTGRES_USER: str
    POSTGRES_PASSWORD: str
    POSTGRES_DB: str = "skill_swap"
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432

    @computed_field
    def DATABASE_URL(self) -> PostgresDsn:
        return PostgresDsn.build(
            scheme="postgresql+asyncpg",
            username=self.POSTGRES_USER,
            password=self.POSTGRES_PASSWORD,
            host=self.POSTGRES_HOST,
            port=self.POSTGRES_PORT,
            path=self.POSTGRES_DB,
        )

    REDIS_URL: RedisDsn = "redis://localhost:6379/0"

    # Signs the bearer tokens handed out on login
    SESSION_SECRET: str
    APP_DOMAIN: Optional[str] = None
    LOG_LEVEL: str = "INFO"

    # Scoring oracle
    ORACLE_PROVIDER: str = "gemini"  # "gemini" or "openai"
    GEMINI_API_KEY: Optional[str] = None
    GEMINI_MODEL: str = "gemini-1.5-flash"
    OPENAI_API_KEY: Optional[str] = None
    OPENAI_BASE_URL: Optional[str] = None  # OpenAI-compatible gateway
    OPENAI_MODEL: str = "gpt-4o-mini"
    ORACLE_TIMEOUT_SECONDS: float = 20.0
    ORACLE_MAX_CONCURRENCY: int = 5

    # Live chat feed: "redis" for multi-process deployments, "local" for a single process
    LIVE_FEED_BACKEND: str = "redis"

settings = Settings()
