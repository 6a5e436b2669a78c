"""Interfaces for the remote services a workflow talks to."""

from __future__ import annotations

import abc
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional, Protocol

from ..auth import ARM_SCOPE, Credential
from .models import KeyBundle, ResourceGroup, SecretBundle, Vault


class Authenticator(Protocol):
    async def authenticate(self, scope: str = ARM_SCOPE) -> Credential:
        """Acquire a credential before any resource operation."""

    def close(self) -> None:
        """Release credential resources."""


class ResourceGroupService(metaclass=abc.ABCMeta):
    """Resource Manager resource groups."""

    @abc.abstractmethod
    async def create_or_update(
        self, name: str, location: str, tags: Optional[Dict[str, str]] = None
    ) -> ResourceGroup:
        raise NotImplementedError

    @abc.abstractmethod
    async def delete(self, name: str) -> None:
        """Delete the group and everything in it; returns once deletion completes."""
        raise NotImplementedError


class VaultManagementService(metaclass=abc.ABCMeta):
    """Key Vault management plane."""

    @abc.abstractmethod
    async def create_or_update(self, resource_group: str, vault: Vault) -> Vault:
        """Create or replace ``vault``; the returned descriptor carries the vault URI."""
        raise NotImplementedError

    @abc.abstractmethod
    async def get(self, resource_group: str, vault_name: str) -> Vault:
        raise NotImplementedError

    @abc.abstractmethod
    async def delete(self, resource_group: str, vault_name: str) -> None:
        raise NotImplementedError


class VaultDataService(metaclass=abc.ABCMeta):
    """Key Vault data plane: keys and secrets addressed by vault URI."""

    @abc.abstractmethod
    async def create_key(
        self,
        vault_uri: str,
        key_name: str,
        key_type: str,
        key_ops: Optional[List[str]] = None,
        not_before: Optional[datetime] = None,
        expires_on: Optional[datetime] = None,
    ) -> KeyBundle:
        raise NotImplementedError

    @abc.abstractmethod
    async def get_keys(self, vault_uri: str) -> List[KeyBundle]:
        raise NotImplementedError

    @abc.abstractmethod
    async def set_secret(
        self,
        vault_uri: str,
        name: str,
        value: str,
        content_type: Optional[str] = None,
        not_before: Optional[datetime] = None,
        expires_on: Optional[datetime] = None,
    ) -> SecretBundle:
        raise NotImplementedError

    @abc.abstractmethod
    async def get_secret(
        self, vault_uri: str, name: str, version: Optional[str] = None
    ) -> SecretBundle:
        raise NotImplementedError

    @abc.abstractmethod
    async def get_secrets(self, vault_uri: str) -> List[SecretBundle]:
        """List secret properties; values are not returned."""
        raise NotImplementedError

    async def close(self) -> None:
        """Release client resources (no-op by default)."""
        pass


@dataclass
class ServiceBundle:
    """The collaborators one workflow run needs, sharing one identity."""

    authenticator: Authenticator
    resource_groups: ResourceGroupService
    vaults: VaultManagementService
    data: VaultDataService

    async def close(self) -> None:
        await self.data.close()
        self.authenticator.close()
