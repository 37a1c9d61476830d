"""
Natours Backend — Application Configuration
=============================================

What:  Centralized configuration management using Pydantic Settings.
How:   Pydantic Settings reads from environment variables (or a .env file)
       and validates types/ranges.
Who:   The process supervisor builds the app from it; tests build their own
       Settings(...) and hand it to create_app().
When:  Built once by the supervisor inside its startup guard, so a bad
       environment is reported as a startup crash rather than an import error.

The database URL is a template: the literal `<PASSWORD>` placeholder is
substituted with DATABASE_PASSWORD when the engine is created, so the
password never has to live inside the connection string itself.
"""

from typing import List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

PASSWORD_PLACEHOLDER = "<PASSWORD>"

# Duplicate query keys on these fields survive the parameter-pollution guard
DEFAULT_FILTER_WHITELIST = (
    "duration",
    "ratingsAverage",
    "ratingsQuantity",
    "maxGroupSize",
    "difficulty",
    "price",
)

# Tightened helmet-style default; the old wide-open policy must be opted into
DEFAULT_CSP = (
    "default-src 'self'; base-uri 'self'; font-src 'self' https: data:; "
    "form-action 'self'; frame-ancestors 'self'; img-src 'self' data:; "
    "object-src 'none'; script-src 'self'; script-src-attr 'none'; "
    "style-src 'self' https: 'unsafe-inline'; upgrade-insecure-requests"
)


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings have development defaults. Production deployments MUST
    override DATABASE, DATABASE_PASSWORD, JWT_SECRET and
    PAYMENT_WEBHOOK_SECRET.
    """

    # ── Runtime Mode ──────────────────────────────────────────────────────
    app_env: str = Field(default="development")

    @field_validator("app_env")
    @classmethod
    def validate_app_env(cls, v: str) -> str:
        lowered = v.strip().lower()
        if lowered not in {"development", "production"}:
            raise ValueError(
                f"Invalid app_env '{v}'. Must be 'development' or 'production'"
            )
        return lowered

    # ── Database ──────────────────────────────────────────────────────────
    # Format: dialect+driver://user:<PASSWORD>@host:port/dbname
    database: str = Field(
        default="postgresql+asyncpg://natours:<PASSWORD>@localhost:5432/natours",
        description="Async database URL template with a <PASSWORD> placeholder",
    )
    database_password: str = Field(default="")

    db_pool_size: int = Field(default=10, ge=1, le=100)
    db_max_overflow: int = Field(default=10, ge=0, le=50)
    db_pool_pre_ping: bool = Field(default=True)

    # Startup connection retries (tenacity, exponential backoff)
    db_connect_attempts: int = Field(default=3, ge=1, le=10)
    db_connect_min_wait: int = Field(default=1, ge=0, le=30)
    db_connect_max_wait: int = Field(default=10, ge=1, le=120)

    # Create missing tables on startup (development convenience; use Alembic
    # migrations in production)
    db_create_tables: bool = Field(default=False)

    # ── Server ────────────────────────────────────────────────────────────
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=3000, ge=0, le=65535)

    # Honour X-Forwarded-For for the client address (app sits behind a proxy)
    trust_proxy: bool = Field(default=True)

    log_level: str = Field(default="INFO")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensures log level is a valid Python logging level name."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper = v.upper()
        if upper not in valid_levels:
            raise ValueError(f"Invalid log_level '{v}'. Must be one of: {valid_levels}")
        return upper

    # ── CORS ──────────────────────────────────────────────────────────────
    cors_origins: str = Field(default="*")

    @property
    def cors_origins_list(self) -> List[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    # ── Security Headers ──────────────────────────────────────────────────
    content_security_policy: str = Field(default=DEFAULT_CSP)
    cross_origin_resource_policy: str = Field(default="same-origin")

    @field_validator("cross_origin_resource_policy")
    @classmethod
    def validate_corp(cls, v: str) -> str:
        valid = {"same-origin", "same-site", "cross-origin"}
        if v not in valid:
            raise ValueError(f"Invalid cross_origin_resource_policy '{v}'. Must be one of: {valid}")
        return v

    # ── Rate Limiting ─────────────────────────────────────────────────────
    rate_limit_requests: int = Field(default=100, ge=1, le=100_000)
    rate_limit_window: int = Field(default=3600, ge=1, le=86400)  # seconds
    rate_limit_prefix: str = Field(default="/api")
    rate_limit_message: str = Field(
        default="Too many requests from this IP, please try again in an hour!"
    )

    # ── Request Bodies ────────────────────────────────────────────────────
    body_limit: int = Field(default=10 * 1024, ge=1)
    webhook_body_limit: int = Field(default=100 * 1024, ge=1)
    filter_whitelist: List[str] = Field(default_factory=lambda: list(DEFAULT_FILTER_WHITELIST))

    # ── Compression ───────────────────────────────────────────────────────
    compression_min_size: int = Field(default=1024, ge=0)

    # ── Authentication ────────────────────────────────────────────────────
    jwt_secret: str = Field(default="dev-only-jwt-secret-change-me")
    jwt_algorithm: str = Field(default="HS256")
    jwt_expires_in_days: int = Field(default=90, ge=1, le=365)
    jwt_cookie_expires_in_days: int = Field(default=90, ge=1, le=365)

    # ── Payments ──────────────────────────────────────────────────────────
    payment_webhook_secret: str = Field(default="dev-only-webhook-secret")
    payment_currency: str = Field(default="usd")
    payment_checkout_url: str = Field(default="https://checkout.example.com/pay")
    public_base_url: str = Field(default="http://localhost:3000")

    # ── Pydantic Settings Config ──────────────────────────────────────────
    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore",
    }

    @property
    def is_development(self) -> bool:
        return self.app_env == "development"

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"

    @property
    def database_url(self) -> str:
        """The connection URL with the password placeholder substituted."""
        return self.database.replace(PASSWORD_PLACEHOLDER, self.database_password)

    def validate_required_for_production(self) -> None:
        """
        What:  Validates that secrets were overridden before running in production.
        When:  Called by the process supervisor before binding the socket.
        """
        if not self.is_production:
            return
        errors = []
        if self.jwt_secret.startswith("dev-only"):
            errors.append("JWT_SECRET is not set.")
        if self.payment_webhook_secret.startswith("dev-only"):
            errors.append("PAYMENT_WEBHOOK_SECRET is not set.")
        if PASSWORD_PLACEHOLDER in self.database and not self.database_password:
            errors.append("DATABASE_PASSWORD is not set but DATABASE contains <PASSWORD>.")
        if errors:
            raise ValueError(
                "Configuration validation failed:\n" + "\n".join(f"  - {e}" for e in errors)
            )

