from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    APP_NAME: str = "billing-engine"
    version: str = "0.1.0"
    DEBUG: bool = False
    APP_DATABASE_DSN: str = "sqlite:////tmp/billing_engine.db"
    REDIS_URL: str = "redis://localhost:6379"

    # Invoice lifecycle
    DEFAULT_GRACE_PERIOD_HOURS: int = 24
    INVOICE_RECOMPUTE_INTERVAL_MINUTES: int = 60
    INVOICE_ISSUE_MAX_ATTEMPTS: int = 5
    INVOICE_ISSUE_BACKOFF_MINUTES: int = 1  # doubled after every failed attempt
    SCHEDULER_BATCH_SIZE: int = 100

    # External invoicing provider
    invoicing_provider_url: str = ""
    invoicing_provider_api_key: str = ""
    invoicing_provider_timeout_seconds: float = 30.0

    # CORS
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:5173"

    @property
    def cors_origins(self) -> list[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]


settings = Settings()
