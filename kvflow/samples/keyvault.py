"""Key vault provisioning workflow.

Work flow:
    Setup: create a resource group
    1. create a key vault
    2. add a key to the vault
    3. list the keys in the vault
    4. add a secret to the vault
    5. list the secrets in the vault
    6. authorize another principal through the vault access policy
    Cleanup: on failure, delete everything created so far. On success the
    resources are left in place and the explicit cleanup command is reported.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional, Set

from ..cleanup import CompensatingCleanup
from ..config import KvflowConfig
from ..contracts import (
    CleanupReport,
    ProvisionedResource,
    ResourceKind,
    StepOutcome,
    WorkflowResult,
)
from ..dispatch import WorkflowDispatcher
from ..execute import WorkflowRunner
from ..persistence import WorkflowInstance, WorkflowRepository
from ..services import ServiceBundle
from ..services.models import AccessPolicy, Vault, VaultProperties
from ..utils.naming import generate_random_id

logger = logging.getLogger(__name__)

REQUIRED_SETTINGS = (
    "azure.tenant_id",
    "azure.subscription_id",
    "azure.object_id",
    "azure.object_id_keyvault_operations",
)

GROUP_TAGS = {"sampletag": "sampleValue"}
KEY_PERMISSIONS = ["get", "create", "delete", "list", "update", "import", "backup", "restore"]
OPERATIONS_KEY_PERMISSIONS = ["get", "list", "import"]
SECRET_PERMISSIONS = ["all"]

KEY_NAME = "testkeyrandom99"
KEY_TYPE = "RSA"
KEY_OPERATIONS = ["encrypt", "decrypt", "sign", "verify", "wrapKey", "unwrapKey"]

SECRET_NAME = "mysecret"
SECRET_VALUE = "my shared secret"
SECRET_CONTENT_TYPE = "test secret"

NOT_BEFORE = datetime(2016, 1, 1, 8, 0, tzinfo=timezone.utc)
EXPIRES_ON = datetime(2050, 2, 2, 8, 0, tzinfo=timezone.utc)


class KeyVaultSample:
    """Steps of the provisioning workflow, bound to one config and service bundle."""

    def __init__(self, config: KvflowConfig, services: ServiceBundle) -> None:
        self.config = config
        self.services = services
        random_ids: Set[str] = set()
        provisioning = config.provisioning
        self.location = provisioning.location
        self.resource_group_name = provisioning.resource_group_name or generate_random_id(
            "testrg", random_ids
        )
        self.key_vault_name = provisioning.key_vault_name or generate_random_id(
            "testkv", random_ids
        )

    def build(self, dispatcher: Optional[WorkflowDispatcher] = None) -> WorkflowDispatcher:
        dispatcher = dispatcher or WorkflowDispatcher()
        dispatcher.add_step("create_resource_group", self.create_resource_group)
        dispatcher.add_step(
            "create_key_vault",
            self.create_key_vault,
            settle_seconds=self.config.provisioning.settle_seconds,
        )
        dispatcher.add_step("create_key", self.create_key)
        dispatcher.add_step("get_keys", self.get_keys)
        dispatcher.add_step("set_secret", self.set_secret)
        dispatcher.add_step("get_secrets", self.get_secrets)
        dispatcher.add_step("update_access_policy", self.update_access_policy)
        return dispatcher

    def describe(self) -> dict:
        return {
            "location": self.location,
            "resource_group_name": self.resource_group_name,
            "key_vault_name": self.key_vault_name,
        }

    def cleanup_command(self) -> str:
        return f"kvflow cleanup {self.resource_group_name} {self.key_vault_name}"

    # ------------------------------------------------------------------
    # Steps
    async def create_resource_group(self, _: object) -> StepOutcome:
        """Create the resource group holding the vault."""
        group = await self.services.resource_groups.create_or_update(
            self.resource_group_name, self.location, GROUP_TAGS
        )
        logger.debug(f"Create resource group result: {group!r}")
        return StepOutcome(
            output=group,
            created=ProvisionedResource(
                name=group.name, kind=ResourceKind.RESOURCE_GROUP
            ),
        )

    async def create_key_vault(self, _: object) -> StepOutcome:
        """Create the vault, granting the sample principal key and secret permissions."""
        azure = self.config.azure
        vault = Vault(
            name=self.key_vault_name,
            location=self.location,
            properties=VaultProperties(
                tenant_id=azure.tenant_id,
                sku="standard",
                enabled_for_deployment=False,
                access_policies=[
                    AccessPolicy(
                        tenant_id=azure.tenant_id,
                        object_id=azure.object_id,
                        keys=KEY_PERMISSIONS,
                        secrets=SECRET_PERMISSIONS,
                    )
                ],
            ),
        )
        created = await self.services.vaults.create_or_update(self.resource_group_name, vault)
        logger.debug(f"Create key vault result: {created!r}")
        return StepOutcome(
            output=created.properties.vault_uri,
            created=ProvisionedResource(
                name=created.name,
                kind=ResourceKind.VAULT,
                resource_group=self.resource_group_name,
            ),
        )

    async def create_key(self, vault_uri: str) -> str:
        """Add an RSA key to the vault."""
        key = await self.services.data.create_key(
            vault_uri,
            KEY_NAME,
            KEY_TYPE,
            key_ops=KEY_OPERATIONS,
            not_before=NOT_BEFORE,
            expires_on=EXPIRES_ON,
        )
        logger.debug(f"Create key result: {key!r}")
        return vault_uri

    async def get_keys(self, vault_uri: str) -> str:
        """List the keys in the vault."""
        keys = await self.services.data.get_keys(vault_uri)
        logger.info(f"Retrieved {len(keys)} key(s) from {vault_uri}")
        logger.debug(f"Keys: {keys!r}")
        return vault_uri

    async def set_secret(self, vault_uri: str) -> str:
        """Store a secret in the vault."""
        secret = await self.services.data.set_secret(
            vault_uri,
            SECRET_NAME,
            SECRET_VALUE,
            content_type=SECRET_CONTENT_TYPE,
            not_before=NOT_BEFORE,
            expires_on=EXPIRES_ON,
        )
        logger.debug(f"Set secret result: {secret!r}")
        return vault_uri

    async def get_secrets(self, vault_uri: str) -> str:
        """List the secrets in the vault."""
        secrets = await self.services.data.get_secrets(vault_uri)
        logger.info(f"Retrieved {len(secrets)} secret(s) from {vault_uri}")
        logger.debug(f"Secrets: {secrets!r}")
        return vault_uri

    async def update_access_policy(self, vault_uri: str) -> Vault:
        """Authorize the key vault operations principal on the vault.

        Read-modify-write without an ETag check: a concurrent update to the
        vault between the get and the create_or_update is silently lost.
        """
        azure = self.config.azure
        vault = await self.services.vaults.get(self.resource_group_name, self.key_vault_name)
        vault.properties.access_policies.append(
            AccessPolicy(
                tenant_id=azure.tenant_id,
                object_id=azure.object_id_keyvault_operations,
                keys=OPERATIONS_KEY_PERMISSIONS,
                secrets=SECRET_PERMISSIONS,
            )
        )
        logger.info(f"Updating key vault {self.key_vault_name} with new access policy entry")
        updated = await self.services.vaults.create_or_update(self.resource_group_name, vault)
        logger.debug(f"Update key vault result: {updated!r}")
        return updated


async def provision(
    config: KvflowConfig,
    services: ServiceBundle,
    repository: WorkflowRepository | None = None,
) -> tuple[KeyVaultSample, WorkflowResult]:
    """Authenticate, then run the provisioning workflow with compensating cleanup.

    Raises:
        ConfigurationError: Before any remote call, if settings are missing.
        AuthenticationError: Before any step, if the credentials are rejected.
    """
    config.require(*REQUIRED_SETTINGS)
    await services.authenticator.authenticate()

    sample = KeyVaultSample(config, services)
    runner = WorkflowRunner(
        cleanup=CompensatingCleanup.for_services(services), repository=repository
    )
    result = await sample.build().dispatch_workflow(runner, variables=sample.describe())
    if result.succeeded:
        logger.info(f"Please execute the following for cleanup: {sample.cleanup_command()}")
    else:
        attempted = len(result.cleanup.attempts) if result.cleanup else 0
        logger.error(
            f"Error occurred in step {result.failed_step}: {result.error}. "
            f"Performed auto cleanup of {attempted} resource(s)"
        )
    return sample, result


async def cleanup(
    services: ServiceBundle, resource_group_name: str, key_vault_name: str
) -> CleanupReport:
    """Explicitly delete a vault and then its resource group.

    Deleting the resource group can take a few minutes.
    """
    await services.authenticator.authenticate()
    resources = [
        ProvisionedResource(name=resource_group_name, kind=ResourceKind.RESOURCE_GROUP),
        ProvisionedResource(
            name=key_vault_name, kind=ResourceKind.VAULT, resource_group=resource_group_name
        ),
    ]
    return await CompensatingCleanup.for_services(services).delete_all(resources)


async def cleanup_run(services: ServiceBundle, instance: WorkflowInstance) -> CleanupReport:
    """Delete the resources recorded for a previous run."""
    await services.authenticator.authenticate()
    resources = [ProvisionedResource.model_validate(r) for r in instance.resources]
    return await CompensatingCleanup.for_services(services).delete_all(resources)
