"""HashiCorp Vault client for AppRole login and KV v2 secret reads.

Implements exactly one authentication grant (AppRole) and one read shape
(KV v2, ``data.data``). Sessions are explicit values returned by
``authenticate`` and passed into ``get_secret``; the client itself holds no
token state.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Protocol

import aiohttp
from aiohttp import ClientSession, ClientTimeout
from pydantic import BaseModel, ConfigDict, SecretStr

logger = logging.getLogger(__name__)

DEFAULT_SECRET_PATH = "secret/data/database/postgres"


class VaultError(Exception):
    """Base class for secrets backend failures."""


class AuthError(VaultError):
    """Login to the secrets backend failed."""


class SecretReadError(VaultError):
    """Reading a secret failed or no session was available."""


class VaultSession(BaseModel):
    """Authenticated Vault session.

    The token is held as a ``SecretStr`` so it never shows up in ``repr``,
    logs or exception messages.
    """

    model_config = ConfigDict(frozen=True)

    session_token: SecretStr
    authenticated_at: datetime


class SecretBackendClient(Protocol):
    async def authenticate(self, role_id: str, secret_id: str) -> VaultSession: ...

    async def get_secret(
        self, session: Optional[VaultSession], path: str
    ) -> Dict[str, Any]: ...


class VaultClient:
    """Vault HTTP API client bound to a base URL and a shared HTTP session."""

    def __init__(
        self,
        http_session: ClientSession,
        base_url: str,
        timeout: float = 5.0,
    ) -> None:
        self.http_session = http_session
        self.base_url = base_url.rstrip("/")
        self.timeout = ClientTimeout(total=timeout)

    async def authenticate(self, role_id: str, secret_id: str) -> VaultSession:
        """Exchange an AppRole role id and secret id for a session token.

        Args:
            role_id: AppRole role identifier
            secret_id: AppRole secret identifier

        Returns:
            VaultSession holding the issued client token

        Raises:
            AuthError: On transport errors, timeouts, non-2xx responses or a response without ``auth.client_token``
        """
        login_url = f"{self.base_url}/v1/auth/approle/login"
        payload = {"role_id": role_id, "secret_id": secret_id}
        try:
            async with self.http_session.post(
                login_url, json=payload, timeout=self.timeout
            ) as response:
                if response.status < 200 or response.status >= 300:
                    raise AuthError(f"Vault login failed with status {response.status}")
                body: Dict[str, Any] = await response.json()
        except AuthError:
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            raise AuthError(f"Vault login failed: {type(e).__name__}") from e

        auth = body.get("auth") if isinstance(body, dict) else None
        client_token = auth.get("client_token") if isinstance(auth, dict) else None
        if not isinstance(client_token, str) or len(client_token) == 0:
            raise AuthError("Vault login response did not include a client token")

        logger.info("Authenticated with Vault")
        return VaultSession(
            session_token=SecretStr(client_token),
            authenticated_at=datetime.now(timezone.utc),
        )

    async def get_secret(
        self, session: Optional[VaultSession], path: str
    ) -> Dict[str, Any]:
        """Read a KV v2 secret and return its key/value payload.

        Args:
            session: Session returned by ``authenticate``
            path: Logical secret path, e.g. ``secret/data/database/postgres``

        Returns:
            The decoded ``data.data`` mapping

        Raises:
            SecretReadError: Without a session, on transport errors, timeouts, non-2xx responses or malformed bodies
        """
        if session is None:
            raise SecretReadError("Not authenticated with Vault")

        secret_url = f"{self.base_url}/v1/{path.lstrip('/')}"
        headers = {"X-Vault-Token": session.session_token.get_secret_value()}
        try:
            async with self.http_session.get(
                secret_url, headers=headers, timeout=self.timeout
            ) as response:
                if response.status < 200 or response.status >= 300:
                    raise SecretReadError(
                        f"Vault secret read of {path} failed with status {response.status}"
                    )
                body: Dict[str, Any] = await response.json()
        except SecretReadError:
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            raise SecretReadError(
                f"Vault secret read of {path} failed: {type(e).__name__}"
            ) from e

        outer = body.get("data") if isinstance(body, dict) else None
        payload = outer.get("data") if isinstance(outer, dict) else None
        if not isinstance(payload, dict):
            raise SecretReadError(f"Vault secret {path} has no data payload")

        return payload
