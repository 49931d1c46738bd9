"""Result models for alias substitution and nutrient resolution."""

from dataclasses import dataclass, field
from typing import Literal

from fdc_gateway.domain.foods import FoodFormat, FoodItem, FoodQueryOptions
from fdc_gateway.domain.nutrients import NutrientKey


@dataclass(frozen=True)
class AliasEntry:
    """Replacement for an FDC id the upstream no longer serves."""

    requested_id: int
    replacement_id: int
    dataset: str | None = None
    rationale: str | None = None


@dataclass(frozen=True)
class ResolvedFood:
    """A fetched record plus the alias used to reach it, if any."""

    food: FoodItem
    fdc_id: int | None
    alias: AliasEntry | None = None


@dataclass(frozen=True)
class BatchLookup:
    """Merged result of a batch lookup after alias follow-ups."""

    foods: list[ResolvedFood]
    missing_ids: list[int] = field(default_factory=list)
    # Every substitution applied, one per requested id, in request order.
    aliases: list[AliasEntry] = field(default_factory=list)


@dataclass(frozen=True)
class NutrientMatch:
    """One nutrient value found on a record."""

    value: float
    source_id: int | None = None
    source: Literal["nutrients", "label"] = "nutrients"
    field: str | None = None


@dataclass(frozen=True)
class ResolutionAttempt:
    """One query shape tried by the resolution engine."""

    format: FoodFormat
    nutrient_ids: tuple[int, ...] | None = None

    @property
    def options(self) -> FoodQueryOptions:
        return FoodQueryOptions(format=self.format, nutrients=self.nutrient_ids)


@dataclass(frozen=True)
class NutrientResolution:
    """Best-available nutrient values for a record."""

    record: ResolvedFood
    matches: dict[NutrientKey, NutrientMatch]
    missing: tuple[NutrientKey, ...]
    attempts: list[ResolutionAttempt]
