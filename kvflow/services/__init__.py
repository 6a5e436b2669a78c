"""Service factory and initialization."""

from __future__ import annotations

import os
from typing import Optional

from ..config import KvflowConfig, load_config
from .base import (
    ResourceGroupService,
    ServiceBundle,
    VaultDataService,
    VaultManagementService,
)
from .inmemory import InMemoryCloud, create_inmemory_services

CREDENTIAL_SETTINGS = ("azure.client_id", "azure.tenant_id", "azure.client_secret")


def get_services(
    backend: Optional[str] = None,
    config: Optional[KvflowConfig] = None,
    cloud: Optional[InMemoryCloud] = None,
) -> ServiceBundle:
    """Factory function to get the configured service backend.

    The ``azure`` backend needs service principal credentials and raises
    ``ConfigurationError`` before any remote call when they are missing.
    ``cloud`` lets callers share state with the ``inmemory`` backend.
    """

    config = config or load_config()
    backend = (
        backend
        or os.getenv("KVFLOW_SERVICES")
        or config.services.backend
    ).lower()

    if backend == "inmemory":
        return create_inmemory_services(cloud)
    elif backend == "azure":
        from ..auth import ServicePrincipalAuthenticator
        from .azure_sdk import (
            AzureResourceGroupService,
            AzureVaultDataService,
            AzureVaultManagementService,
        )

        config.require(*CREDENTIAL_SETTINGS)
        authenticator = ServicePrincipalAuthenticator.from_config(config.azure)
        credential = authenticator.token_credential
        subscription_id = config.azure.subscription_id
        return ServiceBundle(
            authenticator=authenticator,
            resource_groups=AzureResourceGroupService(credential, subscription_id),
            vaults=AzureVaultManagementService(credential, subscription_id),
            data=AzureVaultDataService(credential),
        )
    else:
        raise ValueError(f"Unsupported services backend: {backend}")


__all__ = [
    "InMemoryCloud",
    "ResourceGroupService",
    "ServiceBundle",
    "VaultDataService",
    "VaultManagementService",
    "get_services",
]
