"""
esport/config/settings.py
Application settings loaded once from the environment

Every component receives a Settings instance at construction; nothing
reads os.environ at call time.
"""
import os
import logging
from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

# Project root (the directory holding esport/)
PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
ENV_FILE = PROJECT_ROOT / ".env"

DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///./esport.db"
DEFAULT_JWT_SECRET = "dev-secret-key-change-in-production"


def get_bool_env(key: str, default: bool = False) -> bool:
    """Get a boolean value from environment variable."""
    value = os.getenv(key, str(default)).lower()
    return value in ('true', '1', 'yes', 'on', 'enabled')


class Settings(BaseModel):
    """Runtime configuration for the API, the CLI and the sync job."""

    # Core options
    db_connection: str = DEFAULT_DATABASE_URL
    jwt_secret: str = DEFAULT_JWT_SECRET
    payment_gateway_key: str = ""
    mail_transport: str = "console"

    # Application
    app_name: str = "E-Sport Competition API"
    environment: str = "development"
    log_level: str = "INFO"
    allowed_origins: List[str] = Field(default_factory=list)
    rate_limit_enabled: bool = True

    # Auth
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 24 * 7

    # Mail
    mail_from_address: str = "noreply@example.com"
    mail_from_name: str = "E-Sport Competition"

    # Payments
    payment_gateway: str = "stripe"
    payment_currency: str = "EUR"

    # CMS sync
    public_api_url: str = "http://localhost:8000/api"
    cms_api_url: Optional[str] = None
    cms_api_key: Optional[str] = None
    cms_timeout_seconds: float = 15.0

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    @property
    def is_sqlite(self) -> bool:
        return "sqlite" in self.db_connection.lower()

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from environment variables (after loading .env)."""
        load_dotenv(dotenv_path=ENV_FILE)

        origins = [o.strip() for o in os.getenv("ALLOWED_ORIGINS", "").split(",") if o.strip()]

        return cls(
            db_connection=os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL),
            jwt_secret=os.getenv("JWT_SECRET_KEY", DEFAULT_JWT_SECRET),
            payment_gateway_key=os.getenv("PAYMENT_GATEWAY_KEY", ""),
            mail_transport=os.getenv("MAIL_TRANSPORT", "console"),
            environment=os.getenv("ENVIRONMENT", "development"),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            allowed_origins=origins,
            rate_limit_enabled=get_bool_env("RATE_LIMIT_ENABLED", True),
            access_token_expire_minutes=int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", 60 * 24 * 7)),
            mail_from_address=os.getenv("MAIL_FROM_ADDRESS", "noreply@example.com"),
            mail_from_name=os.getenv("MAIL_FROM_NAME", "E-Sport Competition"),
            payment_gateway=os.getenv("PAYMENT_GATEWAY", "stripe"),
            payment_currency=os.getenv("PAYMENT_CURRENCY", "EUR"),
            public_api_url=os.getenv("PUBLIC_API_URL", "http://localhost:8000/api"),
            cms_api_url=os.getenv("CMS_API_URL") or None,
            cms_api_key=os.getenv("CMS_API_KEY") or None,
        )

    def check(self) -> List[str]:
        """Return human-readable configuration problems (empty when fine)."""
        problems = []
        if not self.is_development and self.jwt_secret == DEFAULT_JWT_SECRET:
            problems.append("JWT_SECRET_KEY uses the development default")
        if not self.payment_gateway_key:
            problems.append("PAYMENT_GATEWAY_KEY is not set - payment webhooks will be rejected")
        if not (self.mail_transport == "console" or self.mail_transport.startswith("smtp://")):
            problems.append(f"MAIL_TRANSPORT '{self.mail_transport}' is neither 'console' nor an smtp:// URL")
        if self.cms_api_url and not self.cms_api_key:
            problems.append("CMS_API_URL is set without CMS_API_KEY")
        return problems


@lru_cache()
def get_settings() -> Settings:
    """Process-wide settings, built on first use."""
    settings = Settings.from_env()
    logger.debug(f"Settings loaded from {ENV_FILE} (exists: {ENV_FILE.exists()})")
    return settings
