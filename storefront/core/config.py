"""
Application configuration with environment variables.
"""
from pydantic_settings import BaseSettings
from pydantic import ConfigDict, Field, field_validator
from typing import Optional, List


class Settings(BaseSettings):
    model_config = ConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    # Application
    APP_NAME: str = "Storefront RFQ"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    SECRET_KEY: str = "your-secret-key-change-in-production"

    # Database
    POSTGRES_USER: str = "storefront"
    POSTGRES_PASSWORD: str = "storefront"
    POSTGRES_HOST: str = "postgres"
    POSTGRES_PORT: str = "5432"
    POSTGRES_DB: str = "storefront"
    DATABASE_URL: Optional[str] = Field(None, validate_default=True)

    # Redis (rate limit counters, CSRF tokens, job queue)
    REDIS_URL: str = "redis://redis:6379/0"
    CACHE_BACKEND: str = "redis"  # redis, memory

    # JWT Settings
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 7  # customers stay signed in for a week
    ADMIN_TOKEN_EXPIRE_MINUTES: int = 60 * 8
    BCRYPT_ROUNDS: int = 12

    # CORS
    CORS_ORIGINS: List[str] = ["http://localhost:3000"]

    # =========================================
    # Order submission
    # =========================================

    IDEMPOTENCY_TTL_SECONDS: int = 3600
    ORDERS_PAGE_SIZE: int = 20
    ORDERS_MAX_PAGE_SIZE: int = 100

    # =========================================
    # Perimeter guards
    # =========================================

    RATE_LIMIT_WINDOW_SECONDS: int = 60
    RATE_LIMIT_AUTH: int = 5
    RATE_LIMIT_API: int = 100
    RATE_LIMIT_ADMIN: int = 200
    RATE_LIMIT_ORDER_SUBMIT: int = 10
    RATE_LIMIT_ORDER_UPDATE: int = 20

    CSRF_ENABLED: bool = True
    CSRF_TOKEN_TTL_SECONDS: int = 24 * 60 * 60

    # =========================================
    # Auth Hardening Settings
    # =========================================

    # Demo seeding - MUST be false in production
    SEED_DEMO: bool = False

    # Admin bootstrap - used to create initial admin on first startup
    # Only used if no admin users exist in database
    ADMIN_BOOTSTRAP_USERNAME: Optional[str] = None
    ADMIN_BOOTSTRAP_PASSWORD: Optional[str] = None

    ALLOW_PUBLIC_REGISTRATION: bool = True

    @field_validator('DATABASE_URL', mode='before')
    @classmethod
    def assemble_db_url(cls, v: Optional[str], info) -> str:
        if isinstance(v, str) and v:
            return v

        data = info.data
        user = data.get("POSTGRES_USER", "storefront")
        password = data.get("POSTGRES_PASSWORD", "storefront")
        host = data.get("POSTGRES_HOST", "postgres")
        port = data.get("POSTGRES_PORT", "5432")
        db = data.get("POSTGRES_DB", "storefront")

        return f"postgresql://{user}:{password}@{host}:{port}/{db}"

    @field_validator('CACHE_BACKEND')
    @classmethod
    def validate_cache_backend(cls, v: str) -> str:
        if v.lower() not in ("redis", "memory"):
            raise ValueError("CACHE_BACKEND must be one of: redis, memory")
        return v.lower()

    @field_validator('SECRET_KEY')
    @classmethod
    def validate_secret_key(cls, v: str, info) -> str:
        """Reject weak SECRET_KEY in production, warn in development."""
        weak_keys = {
            "your-secret-key-change-in-production",
            "change-me-in-production",
            "secret",
            "changeme",
        }
        is_weak = v in weak_keys or len(v) < 32
        if is_weak:
            debug = info.data.get("DEBUG", False)
            if not debug:
                raise ValueError(
                    "SECRET_KEY is weak or default. "
                    "Generate a strong key with: openssl rand -hex 32"
                )
            import warnings
            warnings.warn(
                "SECRET_KEY is weak or default! Set a strong key before deploying.",
                UserWarning,
                stacklevel=2,
            )
        return v

    @field_validator('SEED_DEMO')
    @classmethod
    def validate_seed_demo(cls, v: bool, info) -> bool:
        """Prevent demo seeding in production."""
        if v and not info.data.get("DEBUG", False):
            raise ValueError(
                "SEED_DEMO=true is not allowed when DEBUG=false. "
                "Demo seeding creates predictable credentials."
            )
        return v

    @field_validator('POSTGRES_PASSWORD')
    @classmethod
    def validate_postgres_password(cls, v: str, info) -> str:
        """Reject default database password in production."""
        weak = {"storefront", "postgres", "password", "changeme", ""}
        if v in weak and not info.data.get("DEBUG", False):
            raise ValueError(
                "POSTGRES_PASSWORD is set to a default value. "
                "Set a strong database password for production."
            )
        return v


settings = Settings()
