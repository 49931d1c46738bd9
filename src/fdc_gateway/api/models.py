"""Pydantic models for gateway request bodies."""

from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from fdc_gateway.domain.foods import (
    BulkFoodsRequest,
    ListFoodsRequest,
    SearchFoodsRequest,
    SortField,
    SortOrder,
)
from fdc_gateway.domain.nutrients import NutrientKey
from fdc_gateway.services.cursors import MAX_PAGE

FoodDataType = Literal[
    "Branded", "Survey (FNDDS)", "SR Legacy", "Foundation", "Experimental"
]
PositiveId = Annotated[int, Field(gt=0)]
NutrientIds = Annotated[list[PositiveId], Field(min_length=1, max_length=25)]
PageNumber = Annotated[int, Field(ge=1, le=MAX_PAGE)]


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ListFoodsInput(_CamelModel):
    """Listing filters; ``cursor`` overrides page number and size."""

    data_type: Annotated[list[FoodDataType], Field(max_length=5)] | None = None
    page_number: PageNumber | None = None
    page_size: PageNumber | None = None
    sort_by: SortField | None = None
    sort_order: SortOrder | None = None
    brand_owner: Annotated[str, Field(min_length=1)] | None = None
    cursor: str | None = None

    def to_request(
        self, page: int | None = None, size: int | None = None
    ) -> ListFoodsRequest:
        return ListFoodsRequest(
            data_type=tuple(self.data_type) if self.data_type else None,
            page_number=page or self.page_number,
            page_size=size or self.page_size,
            sort_by=self.sort_by,
            sort_order=self.sort_order,
            brand_owner=self.brand_owner,
        )


class SearchFoodsInput(ListFoodsInput):
    """Full-text search input."""

    query: Annotated[str, Field(min_length=1)]
    require_all_words: bool | None = None
    ingredients: Annotated[str, Field(min_length=1)] | None = None
    nutrients: NutrientIds | None = None

    def to_request(
        self, page: int | None = None, size: int | None = None
    ) -> SearchFoodsRequest:
        return SearchFoodsRequest(
            query=self.query,
            data_type=tuple(self.data_type) if self.data_type else None,
            page_number=page or self.page_number,
            page_size=size or self.page_size,
            sort_by=self.sort_by,
            sort_order=self.sort_order,
            brand_owner=self.brand_owner,
            require_all_words=self.require_all_words,
            ingredients=self.ingredients,
            nutrients=tuple(self.nutrients) if self.nutrients else None,
        )


class BulkFoodsInput(_CamelModel):
    """Batch lookup input."""

    fdc_ids: Annotated[list[PositiveId], Field(min_length=1, max_length=50)]
    format: Literal["abridged", "full"] | None = None
    nutrients: NutrientIds | None = None

    def to_request(self) -> BulkFoodsRequest:
        return BulkFoodsRequest(
            fdc_ids=tuple(self.fdc_ids),
            format=self.format,
            nutrients=tuple(self.nutrients) if self.nutrients else None,
        )


class NutrientResolutionInput(_CamelModel):
    """Nutrients to resolve for one record."""

    nutrients: Annotated[list[NutrientKey], Field(min_length=1)]
