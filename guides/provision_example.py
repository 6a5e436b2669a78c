"""Provision and clean up a key vault against the in-memory cloud."""

import asyncio

from kvflow.config import AzureConfig, KvflowConfig, ProvisioningConfig
from kvflow.persistence import InMemoryWorkflowRepository
from kvflow.samples import keyvault
from kvflow.services import InMemoryCloud, get_services


async def main():
    """Run the full workflow without touching Azure."""
    config = KvflowConfig(
        azure=AzureConfig(
            tenant_id="00000000-0000-0000-0000-000000000000",
            subscription_id="sub-demo",
            object_id="sample-principal",
            object_id_keyvault_operations="operations-principal",
        ),
        provisioning=ProvisioningConfig(settle_seconds=0.5),
    )
    cloud = InMemoryCloud()
    services = get_services("inmemory", config, cloud=cloud)
    repository = InMemoryWorkflowRepository()

    # Fail the key step once to see the compensating cleanup
    cloud.inject_failure("data.create_key")
    _, failed = await keyvault.provision(config, services, repository)
    print(f"❌ {failed.failed_step}: {failed.error}")
    for attempt in failed.cleanup.attempts:
        print(f"🧹 {attempt.status} {attempt.resource}")

    sample, result = await keyvault.provision(config, services, repository)
    print(f"✅ Workflow {result.correlation_id}: {result.status}")
    print(f"🔗 Resources: {[str(r) for r in result.resources]}")
    print(f"📋 Cleanup with: {sample.cleanup_command()}")

    report = await keyvault.cleanup(
        services, sample.resource_group_name, sample.key_vault_name
    )
    print(f"🧹 Explicit cleanup succeeded: {report.succeeded}")

    for run in await repository.list_workflows():
        print(f"{run.correlation_id}\t{run.status}")

    await services.close()


if __name__ == "__main__":
    asyncio.run(main())
