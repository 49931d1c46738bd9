"""Dependency container wiring for the gateway."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from fdc_gateway.adapters.fdc_client import FdcClient, HttpxFdcClient
from fdc_gateway.config import Settings
from fdc_gateway.services.aliases import AliasResolver, FoodLookupService
from fdc_gateway.services.nutrients import NutrientResolutionEngine


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    fdc_client: FdcClient
    food_lookup: FoodLookupService
    nutrient_engine: NutrientResolutionEngine
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    fdc_client = HttpxFdcClient.create(resolved_settings)
    food_lookup = FoodLookupService(client=fdc_client, alias_resolver=AliasResolver())
    nutrient_engine = NutrientResolutionEngine(lookup=food_lookup)

    async def close_resources() -> None:
        await fdc_client.close()

    return AppContainer(
        settings=resolved_settings,
        fdc_client=fdc_client,
        food_lookup=food_lookup,
        nutrient_engine=nutrient_engine,
        close_resources=close_resources,
    )
