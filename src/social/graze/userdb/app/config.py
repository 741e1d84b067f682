"""
Configuration Module for the userdb Service

This module defines the configuration system for the userdb service, using Pydantic for settings validation and
dependency injection through AppKeys.

The configuration follows these principles:
1. Environment-based configuration with sensible defaults
2. Strong validation and typing through Pydantic
3. Dependency injection pattern using aiohttp's app context
4. Secrets are typed as SecretStr and never rendered in logs

Key configuration areas include:
- Service networking
- Vault (secrets backend) access
- Static database credentials used as a fallback
- Database connection target and pool sizing
- Monitoring and error reporting
"""

from typing import Final, Optional
import logging
from pydantic import (
    AliasChoices,
    Field,
    SecretStr,
    field_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict
from aiohttp import web
from aiohttp import ClientSession
from sqlalchemy.engine import URL

from social.graze.userdb.app.metrics import MetricsClient
from social.graze.userdb.database.lifecycle import DatabaseLifecycleManager
from social.graze.userdb.vault.client import DEFAULT_SECRET_PATH


logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """
    Application settings for the userdb service.

    This class uses Pydantic's BaseSettings to automatically load values from environment variables, with defaults
    suitable for local development. Aliases map the conventional environment variable names (``VAULT_ADDR``,
    ``DB_USER`` and so on) onto the settings fields.
    """

    model_config = SettingsConfigDict(populate_by_name=True, extra="ignore")

    # Environment and debugging settings
    debug: bool = False
    """
    Enable debug mode for verbose logging and detailed error bodies.
    Set with DEBUG=true environment variable.
    """

    # Network settings
    http_port: int = Field(alias="port", default=3000)
    """
    HTTP port for the service to listen on.
    Set with PORT environment variable.
    """

    shutdown_timeout: float = 10.0
    """
    Seconds to wait for in-flight requests when a termination signal is received.
    Set with SHUTDOWN_TIMEOUT environment variable.
    """

    # Vault settings
    vault_addr: Optional[str] = None
    """
    Base URL of the Vault server, e.g. https://vault:8200.
    Set with VAULT_ADDR environment variable.
    """

    vault_role_id: Optional[str] = None
    """
    AppRole role identifier.
    Set with VAULT_ROLE_ID environment variable.
    """

    vault_secret_id: Optional[SecretStr] = None
    """
    AppRole secret identifier.
    Set with VAULT_SECRET_ID environment variable.
    """

    vault_secret_path: str = DEFAULT_SECRET_PATH
    """
    KV v2 path holding the database username and password.
    Set with VAULT_SECRET_PATH environment variable.
    """

    vault_timeout: float = 5.0
    """
    Total timeout in seconds for each Vault HTTP request.
    Set with VAULT_TIMEOUT environment variable.
    """

    # Static database credentials
    db_user: Optional[str] = None
    """
    Database username used when Vault is not configured or unavailable.
    Set with DB_USER environment variable.
    """

    db_password: Optional[SecretStr] = None
    """
    Database password used when Vault is not configured or unavailable.
    Set with DB_PASSWORD environment variable.
    """

    # Database connection target
    db_host: str = "postgres"
    """Set with DB_HOST environment variable."""

    db_port: int = 5432
    """Set with DB_PORT environment variable."""

    db_name: str = "userdb"
    """Set with DB_NAME environment variable."""

    db_driver: str = "postgresql+asyncpg"
    """SQLAlchemy driver name used to build the connection URL."""

    # Pool sizing
    db_pool_max: int = Field(
        20, validation_alias=AliasChoices("db_pool_max", "db_pool_max_connections")
    )
    """
    Maximum number of pooled connections. The pool never grows beyond this.
    Set with DB_POOL_MAX environment variable.
    """

    db_pool_idle_timeout: float = 30.0
    """
    Seconds after which a pooled connection is recycled.
    Set with DB_POOL_IDLE_TIMEOUT environment variable.
    """

    db_pool_acquire_timeout: float = 2.0
    """
    Seconds to wait for a connection, both when checking one out of the pool and when opening a new one.
    Set with DB_POOL_ACQUIRE_TIMEOUT environment variable.
    """

    # Monitoring and error reporting
    sentry_dsn: Optional[str] = None
    """
    Sentry DSN for error reporting. Optional, no error reporting if not set.
    Set with SENTRY_DSN environment variable.
    """

    metrics_backend: str = "none"
    """
    Metrics backend, either 'telegraf' or 'none'.
    Set with METRICS_BACKEND environment variable.
    """

    statsd_host: str = Field(alias="TELEGRAF_HOST", default="telegraf")
    """
    StatsD/Telegraf host for metrics collection.
    Set with TELEGRAF_HOST environment variable.
    """

    statsd_port: int = Field(alias="TELEGRAF_PORT", default=8125)
    """
    StatsD/Telegraf port for metrics collection.
    Set with TELEGRAF_PORT environment variable.
    """

    statsd_prefix: str = "userdb"
    """
    Prefix for all StatsD metrics from this service.
    Set with STATSD_PREFIX environment variable.
    """

    @field_validator("vault_addr", "vault_role_id", "db_user", mode="before")
    @classmethod
    def empty_as_none(cls, v):
        """Treat empty environment variables as unset."""
        if isinstance(v, str) and len(v.strip()) == 0:
            return None
        return v

    @field_validator("vault_secret_id", "db_password", mode="before")
    @classmethod
    def empty_secret_as_none(cls, v):
        if isinstance(v, str) and len(v) == 0:
            return None
        return v

    @field_validator("metrics_backend")
    @classmethod
    def check_metrics_backend(cls, v: str) -> str:
        v = v.lower()
        if v not in ("telegraf", "none"):
            raise ValueError("metrics_backend must be 'telegraf' or 'none'")
        return v

    @field_validator("db_pool_max")
    @classmethod
    def check_pool_max(cls, v: int) -> int:
        if v < 1:
            raise ValueError("db_pool_max must be at least 1")
        return v

    @property
    def vault_configured(self) -> bool:
        """True only when the Vault address, role id and secret id are all set."""
        return (
            self.vault_addr is not None
            and self.vault_role_id is not None
            and self.vault_secret_id is not None
        )

    def database_url(self, username: str, password: str) -> URL:
        """Build the connection URL for the given credentials. The password is escaped by ``URL.create``."""
        return URL.create(
            self.db_driver,
            username=username,
            password=password,
            host=self.db_host,
            port=self.db_port,
            database=self.db_name,
        )


# Application context keys for dependency injection
SettingsAppKey: Final = web.AppKey("settings", Settings)
"""AppKey for accessing the application settings"""

SessionAppKey: Final = web.AppKey("http_session", ClientSession)
"""AppKey for accessing the shared aiohttp client session"""

MetricsClientAppKey: Final = web.AppKey("metrics_client", MetricsClient)
"""AppKey for accessing the metrics client"""

DatabaseLifecycleAppKey: Final = web.AppKey("database_lifecycle", DatabaseLifecycleManager)
"""AppKey for accessing the database lifecycle manager, which owns the connection pool"""
