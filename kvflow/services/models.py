"""Descriptors returned by the Azure collaborators."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class ResourceGroup(BaseModel):
    name: str
    location: str
    tags: Dict[str, str] = Field(default_factory=dict)
    id: Optional[str] = None


class AccessPolicy(BaseModel):
    """Grants a principal permissions on a vault's keys, secrets, certificates and storage."""

    tenant_id: str
    object_id: str
    application_id: Optional[str] = None
    keys: List[str] = Field(default_factory=list)
    secrets: List[str] = Field(default_factory=list)
    certificates: List[str] = Field(default_factory=list)
    storage: List[str] = Field(default_factory=list)


class VaultProperties(BaseModel):
    """Writable vault settings.

    Everything a ``get`` returns is kept so that a read-modify-write sends the
    vault back unchanged apart from the intended edit. ``network_acls`` is the
    SDK ``NetworkRuleSet`` in its ``as_dict`` form.
    """

    tenant_id: str
    sku: str = "standard"
    access_policies: List[AccessPolicy] = Field(default_factory=list)
    enabled_for_deployment: bool = False
    enabled_for_disk_encryption: Optional[bool] = None
    enabled_for_template_deployment: Optional[bool] = None
    enable_soft_delete: Optional[bool] = None
    soft_delete_retention_in_days: Optional[int] = None
    enable_purge_protection: Optional[bool] = None
    enable_rbac_authorization: Optional[bool] = None
    public_network_access: Optional[str] = None
    network_acls: Optional[Dict[str, Any]] = None
    vault_uri: Optional[str] = None


class Vault(BaseModel):
    name: str
    location: str
    resource_group: Optional[str] = None
    properties: VaultProperties
    tags: Dict[str, str] = Field(default_factory=dict)
    id: Optional[str] = None


class KeyBundle(BaseModel):
    name: str
    id: Optional[str] = None
    key_type: Optional[str] = None
    key_ops: List[str] = Field(default_factory=list)
    not_before: Optional[datetime] = None
    expires_on: Optional[datetime] = None


class SecretBundle(BaseModel):
    """A secret as returned by the vault; ``value`` is never repr'd."""

    name: str
    value: Optional[str] = Field(default=None, repr=False)
    id: Optional[str] = None
    version: Optional[str] = None
    content_type: Optional[str] = None
    not_before: Optional[datetime] = None
    expires_on: Optional[datetime] = None
