"""Database credential resolution.

Credentials come from one of two sources, selected once from settings:

1. ``VaultCredentialSource`` when the Vault address, role id and secret id are
   all configured. The static credentials ride along as its fallback.
2. ``StaticCredentialSource`` otherwise.

``resolve_credentials`` is the only place the fallback policy lives. Vault
failures are logged as a single warning and never propagate; missing static
credentials raise ``CredentialsUnavailable``.
"""

import logging
from typing import Any, Dict, Literal, Optional, Union

from aiohttp import ClientSession
from pydantic import BaseModel, ConfigDict, SecretStr

from social.graze.userdb.app.config import Settings
from social.graze.userdb.app.metrics import MetricsClient
from social.graze.userdb.vault.client import (
    DEFAULT_SECRET_PATH,
    SecretBackendClient,
    SecretReadError,
    VaultClient,
    VaultError,
)

logger = logging.getLogger(__name__)


class CredentialsUnavailable(Exception):
    """Neither Vault nor static configuration produced usable credentials."""


class DatabaseCredentials(BaseModel):
    model_config = ConfigDict(frozen=True)

    username: str
    password: SecretStr


class StaticCredentialSource(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["static"] = "static"
    username: Optional[str] = None
    password: Optional[SecretStr] = None


class VaultCredentialSource(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["vault"] = "vault"
    url: str
    role_id: str
    secret_id: SecretStr
    secret_path: str = DEFAULT_SECRET_PATH
    fallback: StaticCredentialSource = StaticCredentialSource()


CredentialSource = Union[VaultCredentialSource, StaticCredentialSource]


def select_credential_source(settings: Settings) -> CredentialSource:
    """Pick the credential source described by the settings.

    Vault configuration is all-or-nothing: a partial configuration is ignored.
    """
    static_source = StaticCredentialSource(
        username=settings.db_user or None,
        password=settings.db_password,
    )

    if settings.vault_configured:
        assert settings.vault_addr is not None
        assert settings.vault_role_id is not None
        assert settings.vault_secret_id is not None
        return VaultCredentialSource(
            url=settings.vault_addr,
            role_id=settings.vault_role_id,
            secret_id=settings.vault_secret_id,
            secret_path=settings.vault_secret_path,
            fallback=static_source,
        )

    if any([settings.vault_addr, settings.vault_role_id, settings.vault_secret_id]):
        logger.warning(
            "Incomplete Vault configuration, VAULT_ADDR, VAULT_ROLE_ID and VAULT_SECRET_ID are all required"
        )

    return static_source


def credentials_from_payload(payload: Dict[str, Any]) -> DatabaseCredentials:
    username = payload.get("username")
    password = payload.get("password")
    if not isinstance(username, str) or not username:
        raise SecretReadError("Secret payload is missing a username")
    if not isinstance(password, str) or not password:
        raise SecretReadError("Secret payload is missing a password")
    return DatabaseCredentials(username=username, password=SecretStr(password))


def static_credentials(source: StaticCredentialSource) -> DatabaseCredentials:
    if not source.username or source.password is None or not source.password.get_secret_value():
        raise CredentialsUnavailable(
            "Database credentials not found in Vault or environment variables"
        )
    return DatabaseCredentials(username=source.username, password=source.password)


async def resolve_credentials(
    source: CredentialSource,
    vault_client: Optional[SecretBackendClient] = None,
    metrics_client: Optional[MetricsClient] = None,
) -> DatabaseCredentials:
    """Resolve the database credentials for this process.

    Args:
        source: Credential source selected from settings
        vault_client: Client used for the Vault source, substitutable in tests
        metrics_client: Optional metrics client; records which source won

    Returns:
        DatabaseCredentials from Vault when possible, otherwise from static configuration

    Raises:
        CredentialsUnavailable: If no source produced both a username and a password
    """
    if isinstance(source, VaultCredentialSource):
        try:
            if vault_client is None:
                raise VaultError("No Vault client available")
            session = await vault_client.authenticate(
                source.role_id, source.secret_id.get_secret_value()
            )
            payload = await vault_client.get_secret(session, source.secret_path)
            credentials = credentials_from_payload(payload)
        except Exception as e:
            logger.warning(
                "Failed to retrieve credentials from Vault, falling back to environment variables: %s",
                e,
            )
            if metrics_client is not None:
                metrics_client.increment(
                    "userdb.credentials.vault_fallback",
                    1,
                    tag_dict={"error": type(e).__name__},
                )
        else:
            logger.info("Database credentials resolved from Vault")
            if metrics_client is not None:
                metrics_client.increment(
                    "userdb.credentials.resolved", 1, tag_dict={"source": "vault"}
                )
            return credentials
        source = source.fallback

    credentials = static_credentials(source)
    logger.info("Database credentials resolved from environment variables")
    if metrics_client is not None:
        metrics_client.increment(
            "userdb.credentials.resolved", 1, tag_dict={"source": "static"}
        )
    return credentials


async def load_credentials(
    settings: Settings,
    http_session: ClientSession,
    metrics_client: Optional[MetricsClient] = None,
) -> DatabaseCredentials:
    """Select the credential source from settings and resolve it with a real Vault client."""
    source = select_credential_source(settings)
    vault_client: Optional[VaultClient] = None
    if isinstance(source, VaultCredentialSource):
        vault_client = VaultClient(
            http_session, source.url, timeout=settings.vault_timeout
        )
    return await resolve_credentials(source, vault_client, metrics_client)
