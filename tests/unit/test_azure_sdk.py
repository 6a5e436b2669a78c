"""Mapping between kvflow descriptors and the Azure SDK models, with fake clients."""

from types import SimpleNamespace

import pytest
from azure.mgmt.keyvault.models import (
    AccessPolicyEntry,
    IPRule,
    NetworkRuleSet,
    Permissions,
    Sku,
    VaultCreateOrUpdateParameters,
)
from azure.mgmt.keyvault.models import VaultProperties as SdkVaultProperties

from kvflow.services.azure_sdk import (
    AzureResourceGroupService,
    AzureVaultDataService,
    AzureVaultManagementService,
)
from kvflow.services.models import AccessPolicy, Vault, VaultProperties

TENANT = "00000000-0000-0000-0000-000000000001"
APP = "00000000-0000-0000-0000-0000000000aa"
URI = "https://testkv2.vault.azure.net/"


def sdk_vault(**overrides):
    properties = dict(
        tenant_id=TENANT,
        sku=Sku(family="A", name="premium"),
        access_policies=[
            AccessPolicyEntry(
                tenant_id=TENANT,
                object_id="object-1",
                application_id=APP,
                permissions=Permissions(
                    keys=["get", "create"],
                    secrets=["all"],
                    certificates=["get", "list"],
                    storage=["get"],
                ),
            )
        ],
        enabled_for_deployment=False,
        enable_soft_delete=True,
        soft_delete_retention_in_days=30,
        enable_purge_protection=True,
        enable_rbac_authorization=False,
        network_acls=NetworkRuleSet(
            bypass="AzureServices",
            default_action="Deny",
            ip_rules=[IPRule(value="203.0.113.0/24")],
        ),
        vault_uri=URI,
    )
    properties.update(overrides)
    return SimpleNamespace(
        name="testkv2",
        location="westus",
        id="/subscriptions/sub-1/resourceGroups/testrg1/providers/Microsoft.KeyVault/vaults/testkv2",
        tags={"owner": "ops"},
        properties=SdkVaultProperties(**properties),
    )


def test_parameters_carry_policy_permissions():
    vault = Vault(
        name="testkv2",
        location="westus",
        properties=VaultProperties(
            tenant_id=TENANT,
            access_policies=[
                AccessPolicy(
                    tenant_id=TENANT, object_id="object-1", keys=["get"], secrets=["all"]
                )
            ],
        ),
    )

    parameters = AzureVaultManagementService._to_parameters(vault)

    assert isinstance(parameters, VaultCreateOrUpdateParameters)
    assert parameters.location == "westus"
    assert parameters.properties.sku.name == "standard"
    [entry] = parameters.properties.access_policies
    assert entry.object_id == "object-1"
    assert entry.permissions.keys == ["get"]
    assert entry.permissions.secrets == ["all"]
    assert entry.permissions.certificates is None
    assert parameters.properties.network_acls is None
    assert parameters.properties.enable_purge_protection is None


def test_descriptor_reads_every_vault_setting():
    vault = AzureVaultManagementService._from_sdk("testrg1", sdk_vault())

    assert vault.resource_group == "testrg1"
    assert vault.tags == {"owner": "ops"}
    props = vault.properties
    assert props.sku == "premium"
    assert props.vault_uri == URI
    assert props.enable_soft_delete is True
    assert props.soft_delete_retention_in_days == 30
    assert props.enable_purge_protection is True
    assert props.network_acls["default_action"] == "Deny"
    [policy] = props.access_policies
    assert policy.application_id == APP
    assert policy.keys == ["get", "create"]
    assert policy.certificates == ["get", "list"]
    assert policy.storage == ["get"]


def test_appending_policy_keeps_existing_vault_settings():
    vault = AzureVaultManagementService._from_sdk("testrg1", sdk_vault())
    vault.properties.access_policies.append(
        AccessPolicy(
            tenant_id=TENANT,
            object_id="object-2",
            keys=["get", "list", "import"],
            secrets=["all"],
        )
    )

    props = AzureVaultManagementService._to_parameters(vault).properties

    existing, added = props.access_policies
    assert existing.application_id == APP
    assert existing.permissions.certificates == ["get", "list"]
    assert existing.permissions.storage == ["get"]
    assert added.object_id == "object-2"
    assert added.permissions.keys == ["get", "list", "import"]
    assert props.sku.name == "premium"
    assert props.enable_soft_delete is True
    assert props.soft_delete_retention_in_days == 30
    assert props.enable_purge_protection is True
    assert props.enable_rbac_authorization is False
    assert props.network_acls.default_action == "Deny"
    assert props.network_acls.bypass == "AzureServices"
    assert [rule.value for rule in props.network_acls.ip_rules] == ["203.0.113.0/24"]


class FakePoller:
    def __init__(self, result=None):
        self._result = result
        self.done = False

    def result(self):
        self.done = True
        return self._result


@pytest.mark.asyncio
async def test_group_delete_waits_for_operation_to_finish():
    poller = FakePoller()
    requested = []

    def begin_delete(name):
        requested.append(name)
        return poller

    service = AzureResourceGroupService(credential=None, subscription_id="sub-1")
    service._client = SimpleNamespace(
        resource_groups=SimpleNamespace(begin_delete=begin_delete)
    )

    await service.delete("testrg1")

    assert requested == ["testrg1"]
    assert poller.done


@pytest.mark.asyncio
async def test_vault_create_sends_parameters_and_maps_result():
    sent = []

    def begin_create_or_update(resource_group, name, parameters):
        sent.append((resource_group, name, parameters))
        return FakePoller(sdk_vault())

    service = AzureVaultManagementService(credential=None, subscription_id="sub-1")
    service._client = SimpleNamespace(
        vaults=SimpleNamespace(begin_create_or_update=begin_create_or_update)
    )
    vault = Vault(
        name="testkv2", location="westus", properties=VaultProperties(tenant_id=TENANT)
    )

    created = await service.create_or_update("testrg1", vault)

    [(resource_group, name, parameters)] = sent
    assert (resource_group, name) == ("testrg1", "testkv2")
    assert parameters.properties.tenant_id == TENANT
    assert created.properties.vault_uri == URI
    assert created.resource_group == "testrg1"


class FakeSecretClient:
    def __init__(self):
        self.requests = []

    def get_secret(self, name, version=None):
        self.requests.append((name, version))
        return SimpleNamespace(
            name=name,
            value="abc123",
            id=f"{URI}secrets/{name}/v1",
            properties=SimpleNamespace(
                version="v1",
                content_type="text/plain",
                not_before=None,
                expires_on=None,
            ),
        )

    def close(self):
        pass


@pytest.mark.asyncio
async def test_secret_read_through_cached_client():
    client = FakeSecretClient()
    service = AzureVaultDataService(credential=None)
    service._secret_clients[URI] = client

    secret = await service.get_secret(URI, "weather-api-key")

    assert client.requests == [("weather-api-key", None)]
    assert secret.value == "abc123"
    assert secret.version == "v1"
    assert secret.content_type == "text/plain"
    assert "abc123" not in repr(secret)

    await service.close()
    assert service._secret_clients == {}
