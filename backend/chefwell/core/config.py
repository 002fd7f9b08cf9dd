from pydantic_settings import BaseSettings
from typing import List
import os

from chefwell.core.errors import FatalStartupError


PLACEHOLDER_SECRET = "change_me_super_secret"
MIN_SECRET_LENGTH = 32


class Settings(BaseSettings):
    env: str = "dev"
    secret_key: str = PLACEHOLDER_SECRET
    database_url: str = "postgresql+psycopg2://chefwell:chefwell@db:5432/chefwell"
    redis_url: str = "redis://localhost:6379/0"
    tenant_header: str = "X-Tenant-ID"
    backend_cors_origins: str = "http://localhost:5173"
    log_level: str = "INFO"

    cache_default_ttl_seconds: int = 300
    cache_max_retries: int = 3
    cache_max_backoff_ms: int = 2000

    scheduler_enabled: bool = True
    scheduler_timezone: str = "America/Sao_Paulo"
    recurring_expenses_cron: str = "0 6 * * *"

    shutdown_timeout_seconds: float = 10.0

    port: int = int(os.getenv("PORT", "8000"))

    @property
    def cors_origins(self) -> List[str]:
        """Parse CORS origins from comma-separated string"""
        origins = self.backend_cors_origins
        return [origin.strip() for origin in origins.split(",") if origin.strip()]

    @property
    def is_production(self) -> bool:
        return self.env not in {"dev", "test"}

    def check_startup(self) -> None:
        """
        Refuse to start with missing or insecure configuration.

        Raises:
            FatalStartupError: signing secret absent/weak, or production without
                CORS origins or on SQLite
        """
        if not self.secret_key:
            raise FatalStartupError("SECRET_KEY is not configured")
        if self.is_production:
            if self.secret_key == PLACEHOLDER_SECRET:
                raise FatalStartupError("SECRET_KEY still has the placeholder value")
            if len(self.secret_key) < MIN_SECRET_LENGTH:
                raise FatalStartupError(
                    f"SECRET_KEY must be at least {MIN_SECRET_LENGTH} characters"
                )
            if not self.cors_origins:
                raise FatalStartupError("BACKEND_CORS_ORIGINS is empty in production")
            # SQLite shares one connection between all request threads
            if self.database_url.startswith("sqlite"):
                raise FatalStartupError("DATABASE_URL points at SQLite, which is for dev and tests only")

    class Config:
        env_file = ".env"
        case_sensitive = False


settings = Settings()
