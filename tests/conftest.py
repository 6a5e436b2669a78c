import pytest

import kvflow.persistence as persistence
from kvflow.config import (
    ENVIRONMENT_VARIABLES,
    AzureConfig,
    KvflowConfig,
    ProvisioningConfig,
)
from kvflow.services import InMemoryCloud
from kvflow.services.inmemory import create_inmemory_services
from kvflow.utils import timing


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch, tmp_path):
    """Keep tests independent of the caller's shell and of each other."""
    for env_var in ENVIRONMENT_VARIABLES.values():
        monkeypatch.delenv(env_var, raising=False)
    monkeypatch.setenv("KVFLOW_CONFIG", str(tmp_path / "absent.yaml"))
    monkeypatch.setattr(persistence, "_repository_instance", None)


@pytest.fixture
def settle_calls(monkeypatch):
    """Replace the settling delay with a recorder."""
    calls = []

    async def fake_settle(seconds):
        calls.append(seconds)

    monkeypatch.setattr(timing, "settle", fake_settle)
    return calls


@pytest.fixture
def config():
    return KvflowConfig(
        azure=AzureConfig(
            client_id="client-1",
            tenant_id="tenant-1",
            client_secret="s3cret",
            subscription_id="sub-1",
            object_id="object-1",
            object_id_keyvault_operations="object-2",
        ),
        provisioning=ProvisioningConfig(
            resource_group_name="testrg1", key_vault_name="testkv2"
        ),
    )


@pytest.fixture
def cloud():
    return InMemoryCloud()


@pytest.fixture
def services(cloud):
    return create_inmemory_services(cloud)
