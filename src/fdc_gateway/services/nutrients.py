"""Nutrient resolution across query shapes and record representations."""

import logging
import math
import re
from collections.abc import Collection, Iterable, Mapping
from dataclasses import dataclass, field
from typing import Protocol

from fdc_gateway.domain.errors import ResolutionIncompleteError, UpstreamError
from fdc_gateway.domain.foods import FoodItem
from fdc_gateway.domain.nutrients import (
    LABEL_CANDIDATES,
    MACRO_KEYS,
    NUTRIENT_DEFINITIONS,
    NutrientDefinition,
    NutrientKey,
    NutrientUnit,
)
from fdc_gateway.domain.resolution import (
    AliasEntry,
    NutrientMatch,
    NutrientResolution,
    ResolutionAttempt,
    ResolvedFood,
)
from fdc_gateway.services.aliases import FoodLookupService

_logger = logging.getLogger(__name__)

LABEL_BLOCK_FIELDS = ("labelNutrients", "label_nutrients")
OVERSIZED_FILTER_STATUSES = frozenset({400, 413, 414})

_NON_ALNUM = re.compile(r"[^a-z0-9]")
_UNIT_SPELLINGS = {
    NutrientUnit.GRAM: {"g"},
    NutrientUnit.KILOCALORIE: {"kcal"},
    NutrientUnit.MILLIGRAM: {"mg"},
    NutrientUnit.MICROGRAM: {"mcg", "ug", "µg", "μg"},
}


class FailurePolicy(Protocol):
    """Decides which unmatched nutrients make a resolution fail."""

    def __call__(
        self, food: FoodItem, missing: Collection[NutrientKey]
    ) -> tuple[NutrientKey, ...]:
        """Return the fatal subset of ``missing``."""


@dataclass(frozen=True)
class DatasetMacroPolicy:
    """Require the core macros on records from the listed datasets."""

    data_types: frozenset[str] = frozenset({"Foundation"})
    required: frozenset[NutrientKey] = MACRO_KEYS

    def __call__(
        self, food: FoodItem, missing: Collection[NutrientKey]
    ) -> tuple[NutrientKey, ...]:
        if food.get("dataType") not in self.data_types:
            return ()
        return tuple(key for key in missing if key in self.required)


def plan_attempts(
    keys: Iterable[NutrientKey],
    definitions: Mapping[NutrientKey, NutrientDefinition] = NUTRIENT_DEFINITIONS,
) -> list[ResolutionAttempt]:
    """Build the ordered, de-duplicated list of query shapes to try."""
    ids: set[int] = set()
    for key in keys:
        ids.update(definitions[key].numeric_ids)
    candidates: list[ResolutionAttempt] = []
    if ids:
        candidates.append(
            ResolutionAttempt(format="abridged", nutrient_ids=tuple(sorted(ids)))
        )
    candidates.append(ResolutionAttempt(format="full"))
    candidates.append(ResolutionAttempt(format="abridged"))
    return list(dict.fromkeys(candidates))


def match_nutrients(
    food: FoodItem,
    keys: Iterable[NutrientKey],
    definitions: Mapping[NutrientKey, NutrientDefinition] = NUTRIENT_DEFINITIONS,
) -> dict[NutrientKey, NutrientMatch]:
    """Scan the structured nutrient list; the first match per key wins."""
    wanted = list(dict.fromkeys(keys))
    matches: dict[NutrientKey, NutrientMatch] = {}
    entries = food.get("foodNutrients")
    if not isinstance(entries, list):
        return matches

    for entry in entries:
        if len(matches) == len(wanted):
            break
        if not isinstance(entry, dict):
            continue
        amount = _resolve_amount(entry)
        if amount is None:
            continue
        nutrient_id = _resolve_nutrient_id(entry)
        name = _resolve_name(entry)
        unit = _resolve_unit(entry)
        for key in wanted:
            if key in matches:
                continue
            definition = definitions[key]
            by_id = nutrient_id is not None and nutrient_id in definition.numeric_ids
            by_name = (
                name is not None
                and name in definition.name_aliases
                and _unit_compatible(definition.unit, unit)
            )
            if by_id or by_name:
                matches[key] = NutrientMatch(value=amount, source_id=nutrient_id)
    return matches


def match_label_nutrients(
    food: FoodItem,
    keys: Iterable[NutrientKey],
    candidates: Mapping[NutrientKey, tuple[str, ...]] = LABEL_CANDIDATES,
) -> dict[NutrientKey, NutrientMatch]:
    """Look nutrients up in the record's free-form label block."""
    block = _label_block(food)
    if not block:
        return {}

    lookup: dict[str, str] = {}
    for name in block:
        for variant in _name_variants(name):
            lookup.setdefault(variant, name)

    matches: dict[NutrientKey, NutrientMatch] = {}
    for key in keys:
        for candidate in candidates.get(key, ()):
            field_name = next(
                (lookup[v] for v in _name_variants(candidate) if v in lookup), None
            )
            if field_name is None:
                continue
            value = _label_value(block[field_name])
            if value is not None:
                matches[key] = NutrientMatch(
                    value=value, source="label", field=field_name
                )
                break
    return matches


@dataclass
class NutrientResolutionEngine:
    """Escalates through query shapes until every requested nutrient is found."""

    lookup: FoodLookupService
    definitions: Mapping[NutrientKey, NutrientDefinition] = field(
        default_factory=lambda: NUTRIENT_DEFINITIONS
    )
    label_candidates: Mapping[NutrientKey, tuple[str, ...]] = field(
        default_factory=lambda: LABEL_CANDIDATES
    )
    failure_policy: FailurePolicy = field(default_factory=DatasetMacroPolicy)
    oversized_filter_statuses: frozenset[int] = OVERSIZED_FILTER_STATUSES

    def plan_attempts(self, keys: Iterable[NutrientKey]) -> list[ResolutionAttempt]:
        return plan_attempts(keys, self.definitions)

    async def resolve(
        self, fdc_id: int, keys: Iterable[NutrientKey]
    ) -> NutrientResolution:
        """Resolve ``keys`` for a record.

        Attempts run in plan order and stop once every key is matched.
        Matches accumulate across attempts and the record returned is the
        last one fetched. A filtered attempt rejected with an oversized
        filter status is skipped. Raises ``ResolutionIncompleteError`` when
        the failure policy marks an unmatched key as fatal.
        """
        wanted = list(dict.fromkeys(NutrientKey(key) for key in keys))
        if not wanted:
            raise ValueError("At least one nutrient key is required")

        matches: dict[NutrientKey, NutrientMatch] = {}
        record: ResolvedFood | None = None
        alias: AliasEntry | None = None
        issued: list[ResolutionAttempt] = []
        last_error: UpstreamError | None = None

        for attempt in self.plan_attempts(wanted):
            issued.append(attempt)
            try:
                record = await self._fetch(fdc_id, attempt, alias)
            except UpstreamError as exc:
                if not self._is_oversized_filter(attempt, exc):
                    raise
                _logger.info(
                    "Skipping filtered lookup for FDC ID %s (%s ids): %s",
                    fdc_id,
                    len(attempt.nutrient_ids or ()),
                    exc,
                )
                last_error = exc
                continue
            alias = record.alias

            pending = [key for key in wanted if key not in matches]
            matches.update(match_nutrients(record.food, pending, self.definitions))
            pending = [key for key in wanted if key not in matches]
            if pending:
                matches.update(
                    match_label_nutrients(record.food, pending, self.label_candidates)
                )
            if all(key in matches for key in wanted):
                break

        if record is None:
            raise last_error or UpstreamError(f"FDC ID {fdc_id} could not be fetched")

        missing = tuple(key for key in wanted if key not in matches)
        fatal = self.failure_policy(record.food, missing) if missing else ()
        if fatal:
            data_type = record.food.get("dataType")
            raise ResolutionIncompleteError(
                fdc_id=record.fdc_id if record.fdc_id is not None else fdc_id,
                data_type=data_type if isinstance(data_type, str) else None,
                missing=fatal,
            )
        return NutrientResolution(
            record=record,
            matches={key: matches[key] for key in wanted if key in matches},
            missing=missing,
            attempts=issued,
        )

    async def _fetch(
        self, fdc_id: int, attempt: ResolutionAttempt, alias: AliasEntry | None
    ) -> ResolvedFood:
        if alias is None:
            return await self.lookup.get_food(fdc_id, attempt.options)
        return await self.lookup.get_replacement(alias, attempt.options)

    def _is_oversized_filter(
        self, attempt: ResolutionAttempt, error: UpstreamError
    ) -> bool:
        return (
            bool(attempt.nutrient_ids)
            and error.status in self.oversized_filter_statuses
        )


def _resolve_nutrient_id(entry: dict[str, object]) -> int | None:
    nutrient = entry.get("nutrient") if isinstance(entry.get("nutrient"), dict) else {}
    for candidate in (
        _first_present(entry, "nutrientId", "nutrientID", "nutrient_id"),
        _first_present(nutrient, "id", "nutrientId"),
        nutrient.get("number"),
        _first_present(entry, "nutrientNumber", "number"),
    ):
        number = _to_number(candidate)
        if number is not None and number.is_integer():
            return int(number)
    return None


def _resolve_name(entry: dict[str, object]) -> str | None:
    nutrient = entry.get("nutrient") if isinstance(entry.get("nutrient"), dict) else {}
    names = (entry.get("name"), entry.get("nutrientName"), nutrient.get("name"))
    for candidate in names:
        if isinstance(candidate, str) and candidate.strip():
            return candidate.strip().lower()
    return None


def _resolve_unit(entry: dict[str, object]) -> str | None:
    nutrient = entry.get("nutrient") if isinstance(entry.get("nutrient"), dict) else {}
    for candidate in (entry.get("unitName"), nutrient.get("unitName")):
        if isinstance(candidate, str) and candidate.strip():
            return candidate.strip().lower()
    return None


def _resolve_amount(entry: dict[str, object]) -> float | None:
    nutrient = entry.get("nutrient") if isinstance(entry.get("nutrient"), dict) else {}
    amount = _to_number(_first_present(entry, "amount", "value"))
    if amount is None:
        amount = _to_number(_first_present(nutrient, "amount", "value"))
    return amount


def _unit_compatible(expected: NutrientUnit, unit: str | None) -> bool:
    return unit is None or unit in _UNIT_SPELLINGS[expected]


def _label_block(food: FoodItem) -> dict[str, object] | None:
    for name in LABEL_BLOCK_FIELDS:
        block = food.get(name)
        if isinstance(block, dict) and block:
            return block
    return None


def _label_value(value: object) -> float | None:
    if isinstance(value, dict):
        return _to_number(_first_present(value, "value", "amount"))
    return _to_number(value)


def _name_variants(name: str) -> list[str]:
    lowered = name.strip().lower()
    return list(dict.fromkeys([name, lowered, _NON_ALNUM.sub("", lowered)]))


def _first_present(source: dict[str, object], *names: str) -> object | None:
    for name in names:
        value = source.get(name)
        if value is not None:
            return value
    return None


def _to_number(value: object) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int | float):
        number = float(value)
    elif isinstance(value, str) and value.strip():
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None
