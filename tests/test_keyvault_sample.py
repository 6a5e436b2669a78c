"""End-to-end runs of the key vault workflow against the in-memory cloud."""

import pytest

from kvflow.auth import ARM_SCOPE
from kvflow.config import KvflowConfig
from kvflow.errors import AuthenticationError, ConfigurationError
from kvflow.persistence import InMemoryWorkflowRepository
from kvflow.samples import keyvault


def deletes(cloud):
    return [(op, target) for op, target in cloud.calls if op.endswith(".delete")]


@pytest.mark.asyncio
async def test_provision_runs_every_step(config, cloud, services, settle_calls):
    sample, result = await keyvault.provision(config, services)

    assert result.succeeded
    assert [r.name for r in result.resources] == ["testrg1", "testkv2"]
    assert cloud.calls[0] == ("identity.get_token", ARM_SCOPE)
    assert [op for op, _ in cloud.calls[1:]] == [
        "resource_groups.create_or_update",
        "vaults.create_or_update",
        "data.create_key",
        "data.get_keys",
        "data.set_secret",
        "data.get_secrets",
        "vaults.get",
        "vaults.create_or_update",
    ]
    assert deletes(cloud) == []
    assert settle_calls == [5.0]
    assert sample.cleanup_command() == "kvflow cleanup testrg1 testkv2"

    uri = "https://testkv2.vault.azure.net/"
    assert list(cloud.keys[uri]) == [keyvault.KEY_NAME]
    assert cloud.secrets[uri][keyvault.SECRET_NAME][-1].value == keyvault.SECRET_VALUE
    assert cloud.groups["testrg1"].tags == keyvault.GROUP_TAGS


@pytest.mark.asyncio
async def test_access_policy_appended_for_operations_principal(
    config, cloud, services, settle_calls
):
    await keyvault.provision(config, services)

    policies = cloud.vaults[("testrg1", "testkv2")].properties.access_policies
    assert [p.object_id for p in policies] == ["object-1", "object-2"]
    assert policies[0].keys == keyvault.KEY_PERMISSIONS
    assert policies[1].keys == ["get", "list", "import"]
    assert policies[1].secrets == ["all"]
    assert policies[1].tenant_id == "tenant-1"


@pytest.mark.asyncio
async def test_vault_creation_failure_deletes_group_only(
    config, cloud, services, settle_calls
):
    cloud.inject_failure("vaults.create_or_update")

    _, result = await keyvault.provision(config, services)

    assert result.failed_step == "create_key_vault"
    assert "Injected failure" in result.error
    assert deletes(cloud) == [("resource_groups.delete", "testrg1")]
    assert cloud.groups == {}
    assert settle_calls == []


@pytest.mark.asyncio
async def test_key_creation_failure_deletes_vault_then_group(
    config, cloud, services, settle_calls
):
    cloud.inject_failure("data.create_key")

    _, result = await keyvault.provision(config, services)

    assert result.failed_step == "create_key"
    assert deletes(cloud) == [
        ("vaults.delete", "testrg1/testkv2"),
        ("resource_groups.delete", "testrg1"),
    ]
    assert result.cleanup.succeeded
    assert cloud.vaults == {}
    assert cloud.groups == {}


@pytest.mark.asyncio
async def test_missing_settings_fail_before_any_call(cloud, services):
    config = KvflowConfig()

    with pytest.raises(ConfigurationError) as exc_info:
        await keyvault.provision(config, services)

    assert exc_info.value.missing == [
        "DOMAIN",
        "AZURE_SUBSCRIPTION_ID",
        "OBJECT_ID",
        "OBJECT_ID_KEYVAULT_OPERATIONS",
    ]
    assert cloud.calls == []


@pytest.mark.asyncio
async def test_authentication_failure_creates_nothing(config, cloud, services):
    cloud.inject_failure("identity.get_token", AuthenticationError("rejected"))

    with pytest.raises(AuthenticationError):
        await keyvault.provision(config, services)

    assert cloud.calls == [("identity.get_token", ARM_SCOPE)]


def test_names_generated_when_not_configured(services):
    sample = keyvault.KeyVaultSample(KvflowConfig(), services)

    assert sample.resource_group_name.startswith("testrg")
    assert sample.key_vault_name.startswith("testkv")
    assert sample.location == "westus"


@pytest.mark.asyncio
async def test_explicit_cleanup_after_success(config, cloud, services, settle_calls):
    await keyvault.provision(config, services)

    report = await keyvault.cleanup(services, "testrg1", "testkv2")

    assert report.succeeded
    assert deletes(cloud) == [
        ("vaults.delete", "testrg1/testkv2"),
        ("resource_groups.delete", "testrg1"),
    ]
    assert cloud.groups == {}


@pytest.mark.asyncio
async def test_explicit_cleanup_attempts_every_delete(cloud, services):
    report = await keyvault.cleanup(services, "missingrg", "missingkv")

    assert len(report.failures) == 2
    assert [a.resource.name for a in report.attempts] == ["missingkv", "missingrg"]


@pytest.mark.asyncio
async def test_cleanup_by_recorded_run(config, cloud, services, settle_calls):
    repo = InMemoryWorkflowRepository()
    _, result = await keyvault.provision(config, services, repository=repo)

    instance = await repo.get_workflow(result.correlation_id)
    assert instance.payload == {
        "location": "westus",
        "resource_group_name": "testrg1",
        "key_vault_name": "testkv2",
    }
    report = await keyvault.cleanup_run(services, instance)

    assert report.succeeded
    assert cloud.vaults == {}
    assert cloud.groups == {}
