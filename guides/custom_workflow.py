"""Build a workflow from your own steps and let the runner compensate on failure."""

import asyncio

from kvflow import (
    CompensatingCleanup,
    ProvisionedResource,
    ResourceKind,
    StepOutcome,
    WorkflowDispatcher,
    WorkflowRunner,
)
from kvflow.services import InMemoryCloud, get_services
from kvflow.services.models import Vault, VaultProperties


async def main():
    cloud = InMemoryCloud()
    services = get_services("inmemory", cloud=cloud)

    async def create_group(_):
        group = await services.resource_groups.create_or_update("demo-rg", "westus")
        return StepOutcome(
            output=group.name,
            created=ProvisionedResource(name=group.name, kind=ResourceKind.RESOURCE_GROUP),
        )

    async def create_vault(group_name):
        vault = await services.vaults.create_or_update(
            group_name,
            Vault(name="demo-kv", location="westus", properties=VaultProperties(tenant_id="t")),
        )
        return StepOutcome(
            output=vault.properties.vault_uri,
            created=ProvisionedResource(
                name=vault.name, kind=ResourceKind.VAULT, resource_group=group_name
            ),
        )

    async def reject(vault_uri):
        raise RuntimeError(f"refusing to continue with {vault_uri}")

    dispatcher = WorkflowDispatcher()
    dispatcher.add_step("create_group", create_group)
    dispatcher.add_step("create_vault", create_vault, settle_seconds=0.2)
    dispatcher.add_step("reject", reject)

    runner = WorkflowRunner(cleanup=CompensatingCleanup.for_services(services))
    result = await dispatcher.dispatch_workflow(runner)

    print(f"Status: {result.status}, failed at {result.failed_step}: {result.error}")
    print(f"Deletes issued: {[call for call in cloud.calls if call[0].endswith('.delete')]}")


if __name__ == "__main__":
    asyncio.run(main())
