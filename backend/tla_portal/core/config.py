from functools import lru_cache
from typing import Any, List

import json

from pydantic_settings import BaseSettings, SettingsConfigDict


PLACEHOLDER_SECRETS = {"", "CHANGE_ME", "changeme", "secret", "your-secret-key"}


def parse_cors_origins(v: Any) -> List[str]:
    """Parse CORS origins from string or list"""
    if isinstance(v, list):
        return v
    if isinstance(v, str):
        # Try JSON parsing first
        if v.startswith('['):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                pass
        # Fall back to comma-separated
        return [origin.strip() for origin in v.split(',') if origin.strip()]
    return []


class Settings(BaseSettings):
    """Application settings - all configurable via environment variables.

    Built once per process and never mutated; components receive it explicitly.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
        frozen=True,
    )

    # ==========================================
    # Application
    # ==========================================
    APP_NAME: str = "TLA Membership Portal"
    ENVIRONMENT: str = "development"
    DEBUG: bool = False

    # ==========================================
    # Database
    # ==========================================
    DATABASE_URL: str
    DB_ECHO: bool = False
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    DB_POOL_TIMEOUT: int = 30
    DB_POOL_RECYCLE: int = 1800  # 30 minutes
    DB_TRANSACTION_TIMEOUT_SECONDS: float = 10.0
    SQLITE_BUSY_TIMEOUT_SECONDS: float = 30.0

    # ==========================================
    # Authentication
    # ==========================================
    JWT_SECRET_KEY: str
    JWT_REFRESH_SECRET_KEY: str
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7
    BCRYPT_ROUNDS: int = 12  # 4 for tests (fast), 12 for prod (secure)

    # Cookies
    SESSION_COOKIE_NAME: str = "token"
    REFRESH_COOKIE_NAME: str = "refreshToken"
    COOKIE_SECURE: bool = False

    # ==========================================
    # Membership
    # ==========================================
    MEMBERSHIP_NUMBER_PREFIX: str = "MEM"
    SEQUENCE_MAX_RETRIES: int = 3
    SEQUENCE_RETRY_DELAY_SECONDS: float = 0.05

    # ==========================================
    # CORS (stored as comma-separated string, parsed to list)
    # ==========================================
    CORS_ORIGINS_STR: str = "http://localhost:3000,http://127.0.0.1:3000"

    @property
    def CORS_ORIGINS(self) -> List[str]:
        """Parse CORS origins from comma-separated string"""
        return parse_cors_origins(self.CORS_ORIGINS_STR)

    # ==========================================
    # Rate Limiting
    # ==========================================
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_STORAGE_URI: str = "memory://"
    LOGIN_RATE_LIMIT: str = "5/minute"
    REGISTER_RATE_LIMIT: str = "3/minute"

    # ==========================================
    # Logging
    # ==========================================
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = ""

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    @property
    def session_cookie_secure(self) -> bool:
        """Secure cookies are always on in production"""
        return self.COOKIE_SECURE or self.is_production

    def critical_errors(self) -> List[str]:
        """Return configuration problems that must stop startup"""
        errors = []
        if not self.DATABASE_URL:
            errors.append("DATABASE_URL is not set")
        if self.JWT_SECRET_KEY in PLACEHOLDER_SECRETS:
            errors.append("JWT_SECRET_KEY is not set or using default value")
        if self.JWT_REFRESH_SECRET_KEY in PLACEHOLDER_SECRETS:
            errors.append("JWT_REFRESH_SECRET_KEY is not set or using default value")
        if self.JWT_SECRET_KEY == self.JWT_REFRESH_SECRET_KEY:
            errors.append("JWT_SECRET_KEY and JWT_REFRESH_SECRET_KEY must differ")
        return errors


@lru_cache
def get_settings() -> Settings:
    """Process-wide settings, loaded on first use"""
    return Settings()
