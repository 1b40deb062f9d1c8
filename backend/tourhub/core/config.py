from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    APP_NAME: str = "tourhub"
    version: str = "0.1.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    APP_DOMAIN: str = "example.com"
    APP_DATABASE_DSN: str = "sqlite:////tmp/tourhub.db"
    REDIS_URL: str = "redis://localhost:6379"

    # Bearer tokens are issued by the external auth service; we only verify them.
    JWT_SECRET: str = "dev-secret-change-me-in-production-0123456789"
    JWT_ALGORITHM: str = "HS256"

    # Upper bound on how long a transition waits for a row lock before
    # surfacing a retryable CONFLICT.
    DB_LOCK_TIMEOUT_MS: int = 3000

    NOTIFICATIONS_ENABLED: bool = True
    MODERATION_QUEUE_PAGE_SIZE: int = 10

    # CORS
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:5173"

    @property
    def is_sqlite(self) -> bool:
        return self.APP_DATABASE_DSN.startswith("sqlite")


settings = Settings()
