"""Weather lookup using an API key stored in a key vault.

Authenticates as the service principal that the provisioning workflow
authorized on the vault, reads the OpenWeatherMap API key secret, and queries
the current conditions for a city.
"""

from __future__ import annotations

import asyncio
import logging

import requests
from pydantic import BaseModel

from ..auth import VAULT_SCOPE
from ..config import KvflowConfig
from ..services import ServiceBundle

logger = logging.getLogger(__name__)

REQUIRED_SETTINGS = (
    "weather.client_id",
    "weather.client_secret",
    "weather.secret_name",
    "azure.tenant_id",
)


class WeatherReport(BaseModel):
    city: str
    country: str
    temperature: float
    description: str

    def summary(self) -> str:
        return (
            f"current conditions for {self.city},{self.country}: "
            f"{self.temperature} Celsius and {self.description}"
        )


def vault_url(vault_name: str) -> str:
    return f"https://{vault_name}.vault.azure.net/"


def query_weather(api_url: str, city: str, api_key: str, timeout: float = 10) -> WeatherReport:
    """Fetch current conditions for ``city`` in metric units."""
    resp = requests.get(
        api_url,
        params={"q": city, "units": "metric", "APPID": api_key},
        timeout=timeout,
    )
    resp.raise_for_status()
    data = resp.json()
    return WeatherReport(
        city=data["name"],
        country=data["sys"]["country"],
        temperature=data["main"]["temp"],
        description=data["weather"][0]["description"],
    )


async def lookup_weather(
    config: KvflowConfig, services: ServiceBundle, vault_name: str, city: str
) -> WeatherReport:
    """Read the API key from ``vault_name`` and query the weather for ``city``.

    ``services`` must authenticate as the key vault operations principal, see
    ``KvflowConfig.weather_identity``.
    """
    config.require(*REQUIRED_SETTINGS)
    await services.authenticator.authenticate(VAULT_SCOPE)

    weather = config.weather
    secret = await services.data.get_secret(
        vault_url(vault_name), weather.secret_name, weather.secret_version
    )
    logger.info(f"Retrieved secret {secret.name} from {vault_name}")
    return await asyncio.to_thread(query_weather, weather.api_url, city, secret.value)
