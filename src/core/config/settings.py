# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Configuration of the family approval service.

Each concern reads its own environment prefix (DB_, IDENTITY_, EMAIL_,
PROVISIONING_, REDIS_, CORS_, API_). Settings bundles them and also reads
a .env file. get_settings() returns one cached instance per process.

Example:
    >>> settings = get_settings()
    >>> settings.provisioning.max_username_attempts
    1000
"""

from functools import lru_cache
from typing import Literal, Self

from pydantic import Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """Relational datastore configuration.

    The datastore holds family approvals, profiles, student records and
    organizations.

    Attributes:
        user: PostgreSQL username.
        password: PostgreSQL password.
        host: Database host address.
        port: Database port number.
        database: Database name.
        pool_size: Connection pool size.
        max_overflow: Maximum overflow connections.
        command_timeout: Seconds before a statement is abandoned.
    """

    model_config = SettingsConfigDict(
        env_prefix="DB_",
        extra="ignore",
    )

    user: str = "eleve"
    password: SecretStr = SecretStr("eleve_password")
    host: str = "localhost"
    port: int = 5432
    database: str = "eleve"
    pool_size: int = 5
    max_overflow: int = 10
    command_timeout: float = 10.0

    @property
    def url(self) -> str:
        """asyncpg URL used by the engine and by alembic."""
        pwd = self.password.get_secret_value()
        return f"postgresql+asyncpg://{self.user}:{pwd}@{self.host}:{self.port}/{self.database}"


class IdentityProviderSettings(BaseSettings):
    """Identity provider (auth admin API) configuration.

    Attributes:
        base_url: Base URL of the identity service.
        service_key: Service-role key used for admin calls.
        timeout: Request timeout in seconds.
        page_size: Page size used when listing identities.
        child_email_domain: Domain of the synthetic login emails
            assigned to child accounts.
    """

    model_config = SettingsConfigDict(
        env_prefix="IDENTITY_",
        extra="ignore",
    )

    base_url: str = "http://localhost:54321"
    service_key: SecretStr = SecretStr("")
    timeout: float = 15.0
    page_size: int = 1000
    child_email_domain: str = "child.eleve.app"

    @property
    def admin_url(self) -> str:
        """Build the admin users endpoint URL."""
        return f"{self.base_url.rstrip('/')}/auth/v1/admin/users"


class EmailSettings(BaseSettings):
    """Outbound email configuration.

    Attributes:
        provider: Which delivery channel to use.
        resend_api_key: API key for the Resend HTTP API.
        resend_api_url: Resend endpoint for sending emails.
        smtp_host: SMTP server hostname.
        smtp_port: SMTP server port.
        smtp_username: SMTP authentication username.
        smtp_password: SMTP authentication password.
        smtp_use_tls: Use STARTTLS.
        from_email: Sender email address.
        from_name: Sender display name.
        login_url: Link placed in the approval email.
        timeout: Delivery timeout in seconds.
    """

    model_config = SettingsConfigDict(
        env_prefix="EMAIL_",
        extra="ignore",
    )

    provider: Literal["resend", "smtp", "disabled"] = "resend"
    resend_api_key: SecretStr | None = None
    resend_api_url: str = "https://api.resend.com/emails"
    smtp_host: str | None = None
    smtp_port: int = 587
    smtp_username: str | None = None
    smtp_password: SecretStr | None = None
    smtp_use_tls: bool = True
    from_email: str = "noreply@tryeleve.com"
    from_name: str = "Eleve Academy"
    login_url: str = "https://tryeleve.com/login"
    timeout: float = 10.0


class ProvisioningSettings(BaseSettings):
    """Child account provisioning configuration.

    Attributes:
        max_username_attempts: Candidates tried before giving up on a name.
        fallback_username: Base handle for names with no ASCII characters.
        initial_secret_bytes: Entropy of generated initial passwords.
        default_organization_name: Name used in emails when the
            organization cannot be loaded.
    """

    model_config = SettingsConfigDict(
        env_prefix="PROVISIONING_",
        extra="ignore",
    )

    max_username_attempts: int = Field(default=1000, ge=1)
    fallback_username: str = "student"
    initial_secret_bytes: int = Field(default=9, ge=6)
    default_organization_name: str = "Academy"


class RedisSettings(BaseSettings):
    """Redis backing the dramatiq broker of the expiry job."""

    model_config = SettingsConfigDict(env_prefix="REDIS_", extra="ignore")

    host: str = "localhost"
    port: int = 6379
    password: SecretStr = SecretStr("")
    database: int = 0

    @property
    def url(self) -> str:
        """redis:// URL, with the password only when one is set."""
        secret = self.password.get_secret_value()
        credentials = f":{secret}@" if secret else ""
        return f"redis://{credentials}{self.host}:{self.port}/{self.database}"


class CORSSettings(BaseSettings):
    """Origins allowed to call the admin endpoints from a browser.

    Attributes:
        origins: Comma-separated origins.
    """

    model_config = SettingsConfigDict(env_prefix="CORS_", extra="ignore")

    origins: str = "http://localhost:3000,http://localhost:8081"
    allow_credentials: bool = True
    allow_methods: list[str] = ["GET", "POST", "OPTIONS"]
    allow_headers: list[str] = ["*"]

    @property
    def origins_list(self) -> list[str]:
        return [o.strip() for o in self.origins.split(",") if o.strip()]


class APISettings(BaseSettings):
    """Uvicorn bind address and worker count for `python -m src.api`."""

    model_config = SettingsConfigDict(env_prefix="API_", extra="ignore")

    host: str = "0.0.0.0"
    port: int = 8000
    workers: int = Field(default=2, ge=1)
    reload: bool = False


class Settings(BaseSettings):
    """All settings of the service.

    Attributes:
        environment: development, staging or production.
        debug: Exposes the OpenAPI docs and uses console logging.
        log_level: Minimum level for both structlog and stdlib logging.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    environment: Literal["development", "staging", "production"] = "development"
    debug: bool = True
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "DEBUG"

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    identity: IdentityProviderSettings = Field(default_factory=IdentityProviderSettings)
    email: EmailSettings = Field(default_factory=EmailSettings)
    provisioning: ProvisioningSettings = Field(default_factory=ProvisioningSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)
    cors: CORSSettings = Field(default_factory=CORSSettings)
    api: APISettings = Field(default_factory=APISettings)

    @model_validator(mode="after")
    def require_identity_key_in_production(self) -> Self:
        """Refuse to start in production without an identity service key.

        Raises:
            ValueError: If IDENTITY_SERVICE_KEY is empty in production.
        """
        if self.is_production and not self.identity.service_key.get_secret_value():
            raise ValueError("IDENTITY_SERVICE_KEY must be set in production")
        return self

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load settings once per process."""
    return Settings()


def clear_settings_cache() -> None:
    """Forget the cached settings so the next get_settings() reloads them."""
    get_settings.cache_clear()
