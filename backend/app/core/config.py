"""Application configuration loaded from environment variables.

Settings for database, API, session cookies, magic links, email delivery
and rate limiting. Uses pydantic-settings for validation and .env file support.
"""

from pydantic import SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Known insecure default password that must not be used in production
# Security: Runtime check in check_production_security() prevents use in production
_INSECURE_DEFAULT_PASSWORD = "caberu_dev_password"  # nosec B105

# Minimum length for AUTH_SECRET in production (256 bits = 32 bytes)
_MIN_AUTH_SECRET_LENGTH = 32

# Browser-enforced prefix: requires Secure, Path=/ and no Domain attribute
HOST_COOKIE_PREFIX = "__Host-"

# Magic links are short-lived: minutes, not hours
_MAX_MAGIC_LINK_TTL_MINUTES = 60


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Database
    database_host: str = "localhost"
    database_port: int = 5432
    database_name: str = "caberu_auth"
    database_user: str = "caberu_user"
    database_password: str = _INSECURE_DEFAULT_PASSWORD

    # API
    # 0.0.0.0 binds to all network interfaces (required for Docker containers)
    api_host: str = "0.0.0.0"  # nosec B104
    api_port: int = 8000

    # CORS (Security)
    # CRITICAL: Never set to ["*"] when allow_credentials=True
    allowed_origins: list[str] = ["http://localhost:3000"]

    # Application
    environment: str = "development"
    log_level: str = "INFO"

    # Session credential
    auth_secret: SecretStr = SecretStr("")
    auth_issuer: str = "caberu"
    auth_audience: str = "caberu-app"
    session_cookie_name: str = "__Host-session"
    session_ttl_days: int = 30

    # Magic links
    magic_link_ttl_minutes: int = 15
    # Base URL used to compose the emailed link (must reach this service)
    public_base_url: str = "https://localhost:8000"
    # Authenticated landing page the consume endpoint redirects to
    app_landing_url: str = "https://localhost:3000/dashboard"
    # Logs composed magic links at DEBUG. Local testing only.
    debug_magic_link: bool = False

    # Email
    email_from: str = "no-reply@caberu.app"
    resend_api_key: SecretStr = SecretStr("")

    # Rate Limiting (Security)
    # Format understood by slowapi/limits (e.g., "5 per 10 minutes")
    rate_limit_magic_request: str = "5 per 10 minutes"
    rate_limit_magic_consume: str = "30 per 10 minutes"
    rate_limit_enabled: bool = True  # Disable for testing

    @property
    def database_url(self) -> str:
        """Async database URL for SQLAlchemy."""
        return (
            f"postgresql+asyncpg://{self.database_user}:{self.database_password}"
            f"@{self.database_host}:{self.database_port}/{self.database_name}"
        )

    @property
    def database_url_sync(self) -> str:
        """Sync database URL for Alembic."""
        return (
            f"postgresql://{self.database_user}:{self.database_password}"
            f"@{self.database_host}:{self.database_port}/{self.database_name}"
        )

    @property
    def session_ttl_seconds(self) -> int:
        """Session lifetime in seconds (cookie Max-Age and JWT exp)."""
        return self.session_ttl_days * 24 * 60 * 60

    @model_validator(mode="after")
    def check_production_security(self) -> "Settings":
        """Validate security requirements.

        Checks:
        - Session cookie name carries the __Host- prefix (all environments)
        - Lifetimes are positive and magic links stay short-lived
        - CORS must not use wildcard origin (incompatible with credentials)
        - Database password must not be the default in production
        - AUTH_SECRET must be set and >= 32 chars in production
        - DEBUG_MAGIC_LINK must be off in production
        """
        if not self.session_cookie_name.startswith(HOST_COOKIE_PREFIX):
            msg = (
                f"SESSION_COOKIE_NAME must start with '{HOST_COOKIE_PREFIX}' so "
                "browsers bind the cookie to the issuing origin."
            )
            raise ValueError(msg)

        if self.session_ttl_days <= 0:
            msg = f"SESSION_TTL_DAYS must be positive. Got: {self.session_ttl_days}"
            raise ValueError(msg)

        if not 0 < self.magic_link_ttl_minutes <= _MAX_MAGIC_LINK_TTL_MINUTES:
            msg = (
                "MAGIC_LINK_TTL_MINUTES must be between 1 and "
                f"{_MAX_MAGIC_LINK_TTL_MINUTES}. Got: {self.magic_link_ttl_minutes}"
            )
            raise ValueError(msg)

        if "*" in self.allowed_origins:
            msg = (
                "ALLOWED_ORIGINS must not contain '*' (wildcard). "
                "This application uses credentials (cookies) which are "
                "incompatible with wildcard CORS origins."
            )
            raise ValueError(msg)

        if self.environment == "production":
            if self.database_password == _INSECURE_DEFAULT_PASSWORD:
                msg = (
                    "Cannot use default database password in production. "
                    "Set DATABASE_PASSWORD environment variable to a secure value."
                )
                raise ValueError(msg)

            secret_value = self.auth_secret.get_secret_value()
            if not secret_value:
                msg = (
                    "AUTH_SECRET must be set in production. "
                    'Generate with: python -c "import secrets; '
                    'print(secrets.token_hex(32))"'
                )
                raise ValueError(msg)
            if len(secret_value) < _MIN_AUTH_SECRET_LENGTH:
                msg = (
                    f"AUTH_SECRET must be at least {_MIN_AUTH_SECRET_LENGTH} "
                    "characters for adequate security."
                )
                raise ValueError(msg)

            if self.debug_magic_link:
                msg = (
                    "DEBUG_MAGIC_LINK must not be enabled in production. "
                    "It writes sign-in links to the application log."
                )
                raise ValueError(msg)

        return self


settings = Settings()
