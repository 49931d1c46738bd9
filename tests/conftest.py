"""Shared test fixtures."""

from dataclasses import dataclass, field

import pytest

from fdc_gateway.adapters.fdc_client import FdcClient
from fdc_gateway.config import Settings
from fdc_gateway.containers import AppContainer
from fdc_gateway.domain.errors import UpstreamError
from fdc_gateway.domain.foods import (
    BulkFoodsRequest,
    FoodItem,
    FoodQueryOptions,
    ListFoodsRequest,
    SearchFoodsRequest,
)
from fdc_gateway.domain.resolution import AliasEntry
from fdc_gateway.services.aliases import AliasResolver, FoodLookupService
from fdc_gateway.services.nutrients import NutrientResolutionEngine


@dataclass
class FakeFdcClient(FdcClient):
    """Fake FDC client serving in-memory records.

    ``responses`` is consumed first by ``get_food``: each entry is either a
    record to return or an exception to raise. Once it is empty, records are
    served from ``foods`` and unknown ids raise a 404 ``UpstreamError``.
    """

    foods: dict[int, FoodItem] = field(default_factory=dict)
    responses: list[object] = field(default_factory=list)
    search_payload: dict[str, object] = field(
        default_factory=lambda: {
            "foods": [
                {
                    "fdcId": 123456,
                    "description": "Kirkland Signature Chicken Breast",
                    "brandOwner": "Costco",
                    "dataType": "Branded",
                    "foodNutrients": [
                        {"nutrientId": 1008, "value": 165},
                        {"nutrientId": 1003, "value": 31},
                    ],
                }
            ],
            "totalHits": 1,
            "currentPage": 1,
            "totalPages": 1,
            "pageList": [1],
        }
    )
    list_payload: list[FoodItem] = field(default_factory=list)
    get_food_calls: list[tuple[int, FoodQueryOptions | None]] = field(
        default_factory=list
    )
    get_foods_calls: list[BulkFoodsRequest] = field(default_factory=list)
    search_calls: list[SearchFoodsRequest] = field(default_factory=list)
    list_calls: list[ListFoodsRequest] = field(default_factory=list)

    async def search_foods(self, request: SearchFoodsRequest) -> dict[str, object]:
        self.search_calls.append(request)
        return self.search_payload

    async def get_food(
        self, fdc_id: int, options: FoodQueryOptions | None = None
    ) -> FoodItem:
        self.get_food_calls.append((fdc_id, options))
        if self.responses:
            response = self.responses.pop(0)
            if isinstance(response, Exception):
                raise response
            return response  # type: ignore[return-value]
        food = self.foods.get(fdc_id)
        if food is None:
            raise UpstreamError(
                f"FDC ID {fdc_id} not found", status=404, retryable=False
            )
        return food

    async def get_foods(self, request: BulkFoodsRequest) -> list[FoodItem]:
        self.get_foods_calls.append(request)
        return [
            self.foods[fdc_id] for fdc_id in request.fdc_ids if fdc_id in self.foods
        ]

    async def list_foods(self, request: ListFoodsRequest) -> list[FoodItem]:
        self.list_calls.append(request)
        return self.list_payload


def build_engine(
    client: FakeFdcClient, aliases: list[AliasEntry] | None = None
) -> NutrientResolutionEngine:
    lookup = FoodLookupService(
        client=client, alias_resolver=AliasResolver.from_entries(aliases or [])
    )
    return NutrientResolutionEngine(lookup=lookup)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        usda_api_key="fdc-key",
        usda_api_base_url="https://api.test/fdc/v1",
        min_request_interval_ms=0,
        retry_delay_ms=1,
    )


@pytest.fixture
def fdc_client() -> FakeFdcClient:
    return FakeFdcClient()


@pytest.fixture
def container(settings: Settings, fdc_client: FakeFdcClient) -> AppContainer:
    food_lookup = FoodLookupService(
        client=fdc_client,
        alias_resolver=AliasResolver.from_entries(
            [
                AliasEntry(
                    requested_id=111,
                    replacement_id=222,
                    dataset="Foundation",
                    rationale="Retired SR Legacy record.",
                )
            ]
        ),
    )

    async def close_resources() -> None:
        return None

    return AppContainer(
        settings=settings,
        fdc_client=fdc_client,
        food_lookup=food_lookup,
        nutrient_engine=NutrientResolutionEngine(lookup=food_lookup),
        close_resources=close_resources,
    )
