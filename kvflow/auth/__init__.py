"""Identity provider authentication."""

from .service_principal import (
    ARM_SCOPE,
    VAULT_SCOPE,
    Credential,
    ServicePrincipalAuthenticator,
)

__all__ = ["ARM_SCOPE", "VAULT_SCOPE", "Credential", "ServicePrincipalAuthenticator"]
