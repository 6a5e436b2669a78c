"""In-memory cloud for tests and dry runs."""

from __future__ import annotations

import time
import uuid
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from azure.core.exceptions import HttpResponseError, ResourceNotFoundError

from ..auth import ARM_SCOPE, Credential
from .base import (
    ResourceGroupService,
    ServiceBundle,
    VaultDataService,
    VaultManagementService,
)
from .models import KeyBundle, ResourceGroup, SecretBundle, Vault


class InMemoryCloud:
    """Shared state behind the in-memory services.

    ``calls`` records every operation in order, e.g.
    ``("vaults.delete", "testrg1/testkv2")``. ``inject_failure`` makes the
    next call(s) to an operation raise the given error.
    """

    def __init__(self) -> None:
        self.groups: Dict[str, ResourceGroup] = {}
        self.vaults: Dict[Tuple[str, str], Vault] = {}
        self.keys: Dict[str, Dict[str, KeyBundle]] = {}
        self.secrets: Dict[str, Dict[str, List[SecretBundle]]] = {}
        self.calls: List[Tuple[str, str]] = []
        self._failures: Dict[str, Tuple[Exception, int]] = {}

    def inject_failure(
        self, operation: str, error: Optional[Exception] = None, times: int = 1
    ) -> None:
        self._failures[operation] = (
            error or HttpResponseError(message=f"Injected failure in {operation}"),
            times,
        )

    def record(self, operation: str, target: str) -> None:
        self.calls.append((operation, target))
        if operation in self._failures:
            error, remaining = self._failures[operation]
            if remaining <= 1:
                del self._failures[operation]
            else:
                self._failures[operation] = (error, remaining - 1)
            raise error

    def calls_to(self, operation: str) -> List[str]:
        return [target for op, target in self.calls if op == operation]

    def vault_by_uri(self, vault_uri: str) -> Vault:
        for vault in self.vaults.values():
            if vault.properties.vault_uri == vault_uri:
                return vault
        raise ResourceNotFoundError(message=f"Vault {vault_uri} not found")


class InMemoryAuthenticator:
    def __init__(self, cloud: InMemoryCloud) -> None:
        self._cloud = cloud

    async def authenticate(self, scope: str = ARM_SCOPE) -> Credential:
        self._cloud.record("identity.get_token", scope)
        return Credential(access_token=uuid.uuid4().hex, expires_on=int(time.time()) + 3600)

    def close(self) -> None:
        pass


class InMemoryResourceGroupService(ResourceGroupService):
    def __init__(self, cloud: InMemoryCloud) -> None:
        self._cloud = cloud

    async def create_or_update(
        self, name: str, location: str, tags: Optional[Dict[str, str]] = None
    ) -> ResourceGroup:
        self._cloud.record("resource_groups.create_or_update", name)
        group = ResourceGroup(
            name=name, location=location, tags=dict(tags or {}), id=f"/resourceGroups/{name}"
        )
        self._cloud.groups[name] = group
        return group

    async def delete(self, name: str) -> None:
        self._cloud.record("resource_groups.delete", name)
        if name not in self._cloud.groups:
            raise ResourceNotFoundError(message=f"Resource group {name} not found")
        del self._cloud.groups[name]
        for key in [k for k in self._cloud.vaults if k[0] == name]:
            vault = self._cloud.vaults.pop(key)
            self._cloud.keys.pop(vault.properties.vault_uri, None)
            self._cloud.secrets.pop(vault.properties.vault_uri, None)


class InMemoryVaultManagementService(VaultManagementService):
    def __init__(self, cloud: InMemoryCloud) -> None:
        self._cloud = cloud

    async def create_or_update(self, resource_group: str, vault: Vault) -> Vault:
        self._cloud.record("vaults.create_or_update", f"{resource_group}/{vault.name}")
        if resource_group not in self._cloud.groups:
            raise ResourceNotFoundError(message=f"Resource group {resource_group} not found")
        stored = vault.model_copy(deep=True)
        stored.resource_group = resource_group
        stored.id = f"/resourceGroups/{resource_group}/vaults/{vault.name}"
        stored.properties.vault_uri = f"https://{vault.name}.vault.azure.net/"
        self._cloud.vaults[(resource_group, vault.name)] = stored
        return stored.model_copy(deep=True)

    async def get(self, resource_group: str, vault_name: str) -> Vault:
        self._cloud.record("vaults.get", f"{resource_group}/{vault_name}")
        try:
            return self._cloud.vaults[(resource_group, vault_name)].model_copy(deep=True)
        except KeyError:
            raise ResourceNotFoundError(message=f"Vault {vault_name} not found") from None

    async def delete(self, resource_group: str, vault_name: str) -> None:
        self._cloud.record("vaults.delete", f"{resource_group}/{vault_name}")
        vault = self._cloud.vaults.pop((resource_group, vault_name), None)
        if vault is None:
            raise ResourceNotFoundError(message=f"Vault {vault_name} not found")
        self._cloud.keys.pop(vault.properties.vault_uri, None)
        self._cloud.secrets.pop(vault.properties.vault_uri, None)


class InMemoryVaultDataService(VaultDataService):
    def __init__(self, cloud: InMemoryCloud) -> None:
        self._cloud = cloud

    async def create_key(
        self,
        vault_uri: str,
        key_name: str,
        key_type: str,
        key_ops: Optional[List[str]] = None,
        not_before: Optional[datetime] = None,
        expires_on: Optional[datetime] = None,
    ) -> KeyBundle:
        vault_uri = _normalize(vault_uri)
        self._cloud.record("data.create_key", f"{vault_uri}{key_name}")
        self._cloud.vault_by_uri(vault_uri)
        key = KeyBundle(
            name=key_name,
            id=f"{vault_uri}keys/{key_name}/{uuid.uuid4().hex}",
            key_type=key_type,
            key_ops=list(key_ops or []),
            not_before=not_before,
            expires_on=expires_on,
        )
        self._cloud.keys.setdefault(vault_uri, {})[key_name] = key
        return key

    async def get_keys(self, vault_uri: str) -> List[KeyBundle]:
        vault_uri = _normalize(vault_uri)
        self._cloud.record("data.get_keys", vault_uri)
        self._cloud.vault_by_uri(vault_uri)
        return list(self._cloud.keys.get(vault_uri, {}).values())

    async def set_secret(
        self,
        vault_uri: str,
        name: str,
        value: str,
        content_type: Optional[str] = None,
        not_before: Optional[datetime] = None,
        expires_on: Optional[datetime] = None,
    ) -> SecretBundle:
        vault_uri = _normalize(vault_uri)
        self._cloud.record("data.set_secret", f"{vault_uri}{name}")
        self._cloud.vault_by_uri(vault_uri)
        version = uuid.uuid4().hex
        secret = SecretBundle(
            name=name,
            value=value,
            id=f"{vault_uri}secrets/{name}/{version}",
            version=version,
            content_type=content_type,
            not_before=not_before,
            expires_on=expires_on,
        )
        self._cloud.secrets.setdefault(vault_uri, {}).setdefault(name, []).append(secret)
        return secret

    async def get_secret(
        self, vault_uri: str, name: str, version: Optional[str] = None
    ) -> SecretBundle:
        vault_uri = _normalize(vault_uri)
        self._cloud.record("data.get_secret", f"{vault_uri}{name}")
        versions = self._cloud.secrets.get(vault_uri, {}).get(name, [])
        for secret in reversed(versions):
            if version is None or secret.version == version:
                return secret
        raise ResourceNotFoundError(message=f"Secret {name} not found in {vault_uri}")

    async def get_secrets(self, vault_uri: str) -> List[SecretBundle]:
        vault_uri = _normalize(vault_uri)
        self._cloud.record("data.get_secrets", vault_uri)
        self._cloud.vault_by_uri(vault_uri)
        return [
            versions[-1].model_copy(update={"value": None})
            for versions in self._cloud.secrets.get(vault_uri, {}).values()
        ]


def _normalize(vault_uri: str) -> str:
    return vault_uri.rstrip("/") + "/"


def create_inmemory_services(cloud: Optional[InMemoryCloud] = None) -> ServiceBundle:
    cloud = cloud or InMemoryCloud()
    return ServiceBundle(
        authenticator=InMemoryAuthenticator(cloud),
        resource_groups=InMemoryResourceGroupService(cloud),
        vaults=InMemoryVaultManagementService(cloud),
        data=InMemoryVaultDataService(cloud),
    )
