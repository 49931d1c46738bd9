"""Request types for FoodData Central endpoints."""

from dataclasses import dataclass
from typing import Literal

FoodItem = dict[str, object]
FoodFormat = Literal["abridged", "full"]
SortField = Literal["dataType.keyword", "lowercaseDescription.keyword", "publishedDate"]
SortOrder = Literal["asc", "desc"]


def _prune(payload: dict[str, object]) -> dict[str, object]:
    """Drop unset fields so the upstream applies its own defaults."""
    return {key: value for key, value in payload.items() if value is not None}


def _as_list(values: tuple | None) -> list | None:
    return list(values) if values is not None else None


@dataclass(frozen=True)
class FoodQueryOptions:
    """Detail level and nutrient filter for record lookups."""

    format: FoodFormat | None = None
    nutrients: tuple[int, ...] | None = None


@dataclass(frozen=True)
class BulkFoodsRequest:
    """Lookup of several records by FDC id."""

    fdc_ids: tuple[int, ...]
    format: FoodFormat | None = None
    nutrients: tuple[int, ...] | None = None

    @classmethod
    def for_ids(
        cls, fdc_ids: list[int] | tuple[int, ...], options: FoodQueryOptions | None
    ) -> "BulkFoodsRequest":
        resolved = options or FoodQueryOptions()
        return cls(
            fdc_ids=tuple(fdc_ids),
            format=resolved.format,
            nutrients=resolved.nutrients,
        )

    @property
    def options(self) -> FoodQueryOptions:
        return FoodQueryOptions(format=self.format, nutrients=self.nutrients)

    def to_payload(self) -> dict[str, object]:
        return _prune(
            {
                "fdcIds": list(self.fdc_ids),
                "format": self.format or "abridged",
                "nutrients": _as_list(self.nutrients),
            }
        )


@dataclass(frozen=True)
class ListFoodsRequest:
    """Paged listing filtered by data type or brand."""

    data_type: tuple[str, ...] | None = None
    page_number: int | None = None
    page_size: int | None = None
    sort_by: SortField | None = None
    sort_order: SortOrder | None = None
    brand_owner: str | None = None

    def to_payload(self) -> dict[str, object]:
        return _prune(
            {
                "dataType": _as_list(self.data_type),
                "pageNumber": self.page_number,
                "pageSize": self.page_size,
                "sortBy": self.sort_by,
                "sortOrder": self.sort_order,
                "brandOwner": self.brand_owner,
            }
        )


@dataclass(frozen=True, kw_only=True)
class SearchFoodsRequest(ListFoodsRequest):
    """Full-text search with the listing filters plus search-only options."""

    query: str
    require_all_words: bool | None = None
    ingredients: str | None = None
    nutrients: tuple[int, ...] | None = None

    def to_payload(self) -> dict[str, object]:
        payload = super().to_payload()
        payload.update(
            _prune(
                {
                    "query": self.query,
                    "requireAllWords": self.require_all_words,
                    "ingredients": self.ingredients,
                    "nutrients": _as_list(self.nutrients),
                }
            )
        )
        return payload
