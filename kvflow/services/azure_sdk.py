"""Azure SDK implementation of the workflow services.

The SDK clients are synchronous; every call is moved to a worker thread with
``asyncio.to_thread`` and awaited, so the workflow keeps a single logical
thread of control. Long-running operations are polled to completion inside
that thread. Transport timeouts and retries are the SDK pipeline's own.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from azure.core.credentials import TokenCredential
from azure.keyvault.keys import KeyClient
from azure.keyvault.secrets import SecretClient
from azure.mgmt.keyvault import KeyVaultManagementClient
from azure.mgmt.keyvault.models import (
    AccessPolicyEntry,
    NetworkRuleSet,
    Permissions,
    Sku,
    VaultCreateOrUpdateParameters,
)
from azure.mgmt.keyvault.models import VaultProperties as SdkVaultProperties
from azure.mgmt.resource import ResourceManagementClient

from .base import ResourceGroupService, VaultDataService, VaultManagementService
from .models import (
    AccessPolicy,
    KeyBundle,
    ResourceGroup,
    SecretBundle,
    Vault,
    VaultProperties,
)

logger = logging.getLogger(__name__)

# Vault settings copied unchanged between a ``get`` and the next ``create_or_update``
_OPTIONAL_VAULT_SETTINGS = (
    "enabled_for_disk_encryption",
    "enabled_for_template_deployment",
    "enable_soft_delete",
    "soft_delete_retention_in_days",
    "enable_purge_protection",
    "enable_rbac_authorization",
    "public_network_access",
)


def _value(item: Any) -> str:
    """Plain string for SDK enum members."""
    return str(getattr(item, "value", item))


class AzureResourceGroupService(ResourceGroupService):
    def __init__(self, credential: TokenCredential, subscription_id: Optional[str]) -> None:
        self._credential = credential
        self._subscription_id = subscription_id
        self._client: Optional[ResourceManagementClient] = None

    @property
    def client(self) -> ResourceManagementClient:
        if self._client is None:
            self._client = ResourceManagementClient(self._credential, self._subscription_id)
        return self._client

    async def create_or_update(
        self, name: str, location: str, tags: Optional[Dict[str, str]] = None
    ) -> ResourceGroup:
        logger.info(f"Creating resource group: {name}")
        group = await asyncio.to_thread(
            self.client.resource_groups.create_or_update,
            name,
            {"location": location, "tags": tags or {}},
        )
        return ResourceGroup(
            name=group.name,
            location=group.location,
            tags=group.tags or {},
            id=group.id,
        )

    async def delete(self, name: str) -> None:
        logger.info(f"Deleting resource group: {name}")
        poller = await asyncio.to_thread(self.client.resource_groups.begin_delete, name)
        await asyncio.to_thread(poller.result)


class AzureVaultManagementService(VaultManagementService):
    def __init__(self, credential: TokenCredential, subscription_id: Optional[str]) -> None:
        self._credential = credential
        self._subscription_id = subscription_id
        self._client: Optional[KeyVaultManagementClient] = None

    @property
    def client(self) -> KeyVaultManagementClient:
        if self._client is None:
            self._client = KeyVaultManagementClient(self._credential, self._subscription_id)
        return self._client

    @staticmethod
    def _to_parameters(vault: Vault) -> VaultCreateOrUpdateParameters:
        policies = [
            AccessPolicyEntry(
                tenant_id=p.tenant_id,
                object_id=p.object_id,
                application_id=p.application_id,
                permissions=Permissions(
                    keys=p.keys,
                    secrets=p.secrets,
                    certificates=p.certificates or None,
                    storage=p.storage or None,
                ),
            )
            for p in vault.properties.access_policies
        ]
        props = vault.properties
        optional: Dict[str, Any] = {
            name: getattr(props, name)
            for name in _OPTIONAL_VAULT_SETTINGS
            if getattr(props, name) is not None
        }
        if props.network_acls is not None:
            optional["network_acls"] = NetworkRuleSet.from_dict(props.network_acls)
        properties = SdkVaultProperties(
            tenant_id=props.tenant_id,
            sku=Sku(family="A", name=props.sku),
            access_policies=policies,
            enabled_for_deployment=props.enabled_for_deployment,
            **optional,
        )
        return VaultCreateOrUpdateParameters(
            location=vault.location, properties=properties, tags=vault.tags
        )

    @staticmethod
    def _from_sdk(resource_group: str, vault: Any) -> Vault:
        props = vault.properties
        policies = [
            AccessPolicy(
                tenant_id=str(p.tenant_id),
                object_id=p.object_id,
                application_id=str(p.application_id) if p.application_id else None,
                keys=[_value(k) for k in (p.permissions.keys or [])],
                secrets=[_value(s) for s in (p.permissions.secrets or [])],
                certificates=[_value(c) for c in (p.permissions.certificates or [])],
                storage=[_value(s) for s in (p.permissions.storage or [])],
            )
            for p in (props.access_policies or [])
        ]
        optional = {
            name: getattr(props, name, None) for name in _OPTIONAL_VAULT_SETTINGS
        }
        if optional["public_network_access"] is not None:
            optional["public_network_access"] = _value(optional["public_network_access"])
        return Vault(
            name=vault.name,
            location=vault.location,
            resource_group=resource_group,
            id=vault.id,
            tags=vault.tags or {},
            properties=VaultProperties(
                tenant_id=str(props.tenant_id),
                sku=_value(props.sku.name),
                access_policies=policies,
                enabled_for_deployment=bool(props.enabled_for_deployment),
                network_acls=props.network_acls.as_dict() if props.network_acls else None,
                vault_uri=props.vault_uri,
                **optional,
            ),
        )

    async def create_or_update(self, resource_group: str, vault: Vault) -> Vault:
        logger.info(f"Creating key vault: {vault.name}")
        poller = await asyncio.to_thread(
            self.client.vaults.begin_create_or_update,
            resource_group,
            vault.name,
            self._to_parameters(vault),
        )
        created = await asyncio.to_thread(poller.result)
        return self._from_sdk(resource_group, created)

    async def get(self, resource_group: str, vault_name: str) -> Vault:
        vault = await asyncio.to_thread(self.client.vaults.get, resource_group, vault_name)
        return self._from_sdk(resource_group, vault)

    async def delete(self, resource_group: str, vault_name: str) -> None:
        logger.info(f"Deleting key vault: {vault_name}")
        await asyncio.to_thread(self.client.vaults.delete, resource_group, vault_name)


class AzureVaultDataService(VaultDataService):
    """Keys and secrets via ``KeyClient`` / ``SecretClient``, one pair per vault URI."""

    def __init__(self, credential: TokenCredential) -> None:
        self._credential = credential
        self._key_clients: Dict[str, KeyClient] = {}
        self._secret_clients: Dict[str, SecretClient] = {}

    def _keys(self, vault_uri: str) -> KeyClient:
        if vault_uri not in self._key_clients:
            self._key_clients[vault_uri] = KeyClient(vault_url=vault_uri, credential=self._credential)
        return self._key_clients[vault_uri]

    def _secrets(self, vault_uri: str) -> SecretClient:
        if vault_uri not in self._secret_clients:
            self._secret_clients[vault_uri] = SecretClient(
                vault_url=vault_uri, credential=self._credential
            )
        return self._secret_clients[vault_uri]

    async def create_key(
        self,
        vault_uri: str,
        key_name: str,
        key_type: str,
        key_ops: Optional[List[str]] = None,
        not_before: Optional[datetime] = None,
        expires_on: Optional[datetime] = None,
    ) -> KeyBundle:
        logger.info(f"Creating key {key_name} in {vault_uri}")
        key = await asyncio.to_thread(
            self._keys(vault_uri).create_key,
            key_name,
            key_type,
            key_operations=key_ops,
            not_before=not_before,
            expires_on=expires_on,
        )
        return KeyBundle(
            name=key.name,
            id=key.id,
            key_type=_value(key.key_type),
            key_ops=[_value(op) for op in (key.key_operations or [])],
            not_before=key.properties.not_before,
            expires_on=key.properties.expires_on,
        )

    async def get_keys(self, vault_uri: str) -> List[KeyBundle]:
        logger.info(f"Getting all keys in {vault_uri}")
        client = self._keys(vault_uri)
        items = await asyncio.to_thread(lambda: list(client.list_properties_of_keys()))
        return [
            KeyBundle(
                name=k.name, id=k.id, not_before=k.not_before, expires_on=k.expires_on
            )
            for k in items
        ]

    async def set_secret(
        self,
        vault_uri: str,
        name: str,
        value: str,
        content_type: Optional[str] = None,
        not_before: Optional[datetime] = None,
        expires_on: Optional[datetime] = None,
    ) -> SecretBundle:
        logger.info(f"Setting secret {name} in {vault_uri}")
        secret = await asyncio.to_thread(
            self._secrets(vault_uri).set_secret,
            name,
            value,
            content_type=content_type,
            not_before=not_before,
            expires_on=expires_on,
        )
        return self._secret_bundle(secret)

    async def get_secret(
        self, vault_uri: str, name: str, version: Optional[str] = None
    ) -> SecretBundle:
        secret = await asyncio.to_thread(self._secrets(vault_uri).get_secret, name, version)
        return self._secret_bundle(secret)

    async def get_secrets(self, vault_uri: str) -> List[SecretBundle]:
        logger.info(f"Getting all secrets in {vault_uri}")
        client = self._secrets(vault_uri)
        items = await asyncio.to_thread(lambda: list(client.list_properties_of_secrets()))
        return [
            SecretBundle(
                name=s.name,
                id=s.id,
                version=s.version,
                content_type=s.content_type,
                not_before=s.not_before,
                expires_on=s.expires_on,
            )
            for s in items
        ]

    @staticmethod
    def _secret_bundle(secret: Any) -> SecretBundle:
        props = secret.properties
        return SecretBundle(
            name=secret.name,
            value=secret.value,
            id=secret.id,
            version=props.version,
            content_type=props.content_type,
            not_before=props.not_before,
            expires_on=props.expires_on,
        )

    async def close(self) -> None:
        for client in [*self._key_clients.values(), *self._secret_clients.values()]:
            client.close()
        self._key_clients.clear()
        self._secret_clients.clear()
