from __future__ import annotations

import asyncio
import logging
import time
from typing import Dict, Optional

from azure.core.credentials import TokenCredential
from azure.core.exceptions import ClientAuthenticationError
from azure.identity import ClientSecretCredential
from pydantic import BaseModel, Field

from ..config import AzureConfig
from ..errors import AuthenticationError

logger = logging.getLogger(__name__)

ARM_SCOPE = "https://management.azure.com/.default"
VAULT_SCOPE = "https://vault.azure.net/.default"

# refresh a cached token this many seconds before it expires
TOKEN_REFRESH_LEEWAY = 300


class Credential(BaseModel):
    """Bearer token issued by the identity provider.

    The token value is excluded from serialization and repr so it is never
    written to run history or logs.
    """

    token_type: str = "Bearer"
    access_token: str = Field(exclude=True, repr=False)
    expires_on: int

    def is_valid(self, now: Optional[float] = None, leeway: int = 0) -> bool:
        now = time.time() if now is None else now
        return now + leeway < self.expires_on


class ServicePrincipalAuthenticator:
    """Exchanges service principal client credentials for bearer tokens.

    The underlying ``TokenCredential`` is also what the Azure SDK clients
    attach to every call they make.
    """

    def __init__(
        self,
        client_id: str = "",
        client_secret: str = "",
        tenant_id: str = "",
        token_credential: Optional[TokenCredential] = None,
    ) -> None:
        self.client_id = client_id
        self.tenant_id = tenant_id
        self._tokens: Dict[str, Credential] = {}
        self._credential = token_credential or ClientSecretCredential(
            tenant_id=tenant_id, client_id=client_id, client_secret=client_secret
        )

    @classmethod
    def from_config(cls, config: AzureConfig) -> "ServicePrincipalAuthenticator":
        return cls(
            client_id=config.client_id or "",
            client_secret=config.client_secret or "",
            tenant_id=config.tenant_id or "",
        )

    @property
    def token_credential(self) -> TokenCredential:
        return self._credential

    async def authenticate(self, scope: str = ARM_SCOPE) -> Credential:
        """Acquire a token for ``scope``, reusing a cached one that is still valid.

        Raises:
            AuthenticationError: If the identity provider rejects the
                credentials. Nothing else in the workflow runs after this.
        """
        cached = self._tokens.get(scope)
        if cached is not None and cached.is_valid(leeway=TOKEN_REFRESH_LEEWAY):
            logger.debug(f"Reusing token for {self.client_id} and {scope}")
            return cached

        logger.info(f"Authenticating service principal {self.client_id} for {scope}")
        try:
            token = await asyncio.to_thread(self._credential.get_token, scope)
        except ClientAuthenticationError as e:
            logger.error(f"Authentication failed for {self.client_id}: {e.message}")
            raise AuthenticationError(
                f"Could not authenticate service principal {self.client_id}: {e.message}"
            ) from e
        credential = Credential(access_token=token.token, expires_on=token.expires_on)
        self._tokens[scope] = credential
        return credential

    def close(self) -> None:
        close = getattr(self._credential, "close", None)
        if close is not None:
            close()
