from __future__ import annotations

import os
from typing import Dict, Literal, Optional

import yaml
from pydantic import BaseModel, Field

from .errors import ConfigurationError

# Dotted config path -> environment variable that overrides it.
ENVIRONMENT_VARIABLES: Dict[str, str] = {
    "azure.client_id": "CLIENT_ID",
    "azure.tenant_id": "DOMAIN",
    "azure.client_secret": "APPLICATION_SECRET",
    "azure.subscription_id": "AZURE_SUBSCRIPTION_ID",
    "azure.object_id": "OBJECT_ID",
    "azure.object_id_keyvault_operations": "OBJECT_ID_KEYVAULT_OPERATIONS",
    "weather.client_id": "SP_KEYVAULT_OPERATIONS",
    "weather.client_secret": "WEATHER_APP_KEY",
    "weather.secret_name": "KEYVAULT_SECRET_NAME",
    "weather.secret_version": "KEYVAULT_SECRET_VERSION",
    "services.backend": "KVFLOW_SERVICES",
    "database_url": "KVFLOW_DATABASE_URL",
}


class AzureConfig(BaseModel):
    """Service principal used to run the provisioning workflow."""

    client_id: Optional[str] = None
    tenant_id: Optional[str] = None
    client_secret: Optional[str] = None
    subscription_id: Optional[str] = None
    object_id: Optional[str] = None
    object_id_keyvault_operations: Optional[str] = None


class ProvisioningConfig(BaseModel):
    """Settings for the key vault provisioning sample."""

    location: str = "westus"
    resource_group_name: Optional[str] = None
    key_vault_name: Optional[str] = None
    settle_seconds: float = 5.0


class WeatherConfig(BaseModel):
    """Service principal and secret used by the weather lookup."""

    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    secret_name: Optional[str] = None
    secret_version: Optional[str] = None
    api_url: str = "http://api.openweathermap.org/data/2.5/weather"


class ServicesConfig(BaseModel):
    """Selects the backend implementing the Azure collaborators."""

    backend: Literal["azure", "inmemory"] = "azure"


class KvflowConfig(BaseModel):
    """Top-level configuration model."""

    azure: AzureConfig = Field(default_factory=AzureConfig)
    provisioning: ProvisioningConfig = Field(default_factory=ProvisioningConfig)
    weather: WeatherConfig = Field(default_factory=WeatherConfig)
    services: ServicesConfig = Field(default_factory=ServicesConfig)
    database_url: Optional[str] = None

    def lookup(self, path: str) -> object:
        """Return the value stored at dotted ``path``."""
        value: object = self
        for part in path.split("."):
            value = getattr(value, part)
        return value

    def require(self, *paths: str) -> None:
        """Raise ``ConfigurationError`` naming every unset value in ``paths``."""
        missing = [
            ENVIRONMENT_VARIABLES.get(path, path)
            for path in paths
            if not self.lookup(path)
        ]
        if missing:
            raise ConfigurationError(missing)

    def weather_identity(self) -> "KvflowConfig":
        """Copy of this config authenticating as the weather service principal."""
        config = self.model_copy(deep=True)
        config.azure.client_id = self.weather.client_id
        config.azure.client_secret = self.weather.client_secret
        return config


def _apply_environment(config: KvflowConfig) -> None:
    for path, env_var in ENVIRONMENT_VARIABLES.items():
        value = os.getenv(env_var)
        if not value:
            continue
        *parents, field = path.split(".")
        target: object = config
        for part in parents:
            target = getattr(target, part)
        setattr(target, field, value)


def load_config(path: Optional[str] = None) -> KvflowConfig:
    """Load configuration from YAML file and the environment.

    Args:
        path: Optional path to config file. Falls back to KVFLOW_CONFIG env
            variable or 'config.yaml' in the current directory.

    Environment variables (see ``ENVIRONMENT_VARIABLES``) take precedence
    over values read from the file.
    """

    config_path = path or os.getenv("KVFLOW_CONFIG", "config.yaml")
    if os.path.exists(config_path):
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
        config = KvflowConfig(**data)
    else:
        config = KvflowConfig()

    _apply_environment(config)
    return config
