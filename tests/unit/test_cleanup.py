"""Compensating cleanup tests."""

import pytest

from kvflow.cleanup import CompensatingCleanup
from kvflow.contracts import ProvisionedResource, ResourceKind, ResourceRegistry
from kvflow.services.models import Vault, VaultProperties


def resources():
    return [
        ProvisionedResource(name="rg", kind=ResourceKind.RESOURCE_GROUP),
        ProvisionedResource(name="kv", kind=ResourceKind.VAULT, resource_group="rg"),
    ]


@pytest.mark.asyncio
async def test_drains_registry_in_reverse_order():
    order = []

    async def delete(resource):
        order.append(resource.name)

    cleanup = CompensatingCleanup(
        {ResourceKind.RESOURCE_GROUP: delete, ResourceKind.VAULT: delete}
    )
    registry = ResourceRegistry(resources=resources())

    report = await cleanup(registry)

    assert order == ["kv", "rg"]
    assert report.succeeded
    assert registry.snapshot() == []


@pytest.mark.asyncio
async def test_failed_delete_does_not_stop_remaining_deletes():
    order = []

    async def delete_vault(resource):
        order.append(resource.name)
        raise RuntimeError("vault is locked")

    async def delete_group(resource):
        order.append(resource.name)

    cleanup = CompensatingCleanup(
        {ResourceKind.RESOURCE_GROUP: delete_group, ResourceKind.VAULT: delete_vault}
    )

    report = await cleanup.delete_all(resources())

    assert order == ["kv", "rg"]
    assert [(a.resource.name, a.status) for a in report.attempts] == [
        ("kv", "failed"),
        ("rg", "deleted"),
    ]
    assert report.failures[0].error == "vault is locked"


@pytest.mark.asyncio
async def test_kind_without_delete_operation_is_reported():
    async def delete(resource):
        pass

    cleanup = CompensatingCleanup({ResourceKind.RESOURCE_GROUP: delete})

    report = await cleanup.delete_all(resources())

    assert [a.status for a in report.attempts] == ["failed", "deleted"]
    assert "No delete operation" in report.attempts[0].error


@pytest.mark.asyncio
async def test_for_services_deletes_through_bundle(cloud, services):
    await services.resource_groups.create_or_update("rg", "westus")
    await services.vaults.create_or_update(
        "rg", Vault(name="kv", location="westus", properties=VaultProperties(tenant_id="t"))
    )

    report = await CompensatingCleanup.for_services(services).delete_all(resources())

    assert report.succeeded
    assert cloud.calls_to("vaults.delete") == ["rg/kv"]
    assert cloud.calls_to("resource_groups.delete") == ["rg"]
    assert cloud.groups == {}
