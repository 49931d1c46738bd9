"""Substitution of retired FDC ids and alias-aware food lookups."""

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from types import MappingProxyType

from fdc_gateway.adapters.fdc_client import FdcClient
from fdc_gateway.domain.errors import UpstreamError
from fdc_gateway.domain.foods import BulkFoodsRequest, FoodItem, FoodQueryOptions
from fdc_gateway.domain.resolution import AliasEntry, BatchLookup, ResolvedFood

_logger = logging.getLogger(__name__)


def _alias_table(entries: Iterable[AliasEntry]) -> Mapping[int, AliasEntry]:
    return MappingProxyType({entry.requested_id: entry for entry in entries})


# SR Legacy records withdrawn from the API in favour of Foundation releases.
DEFAULT_ALIASES = _alias_table(
    [
        AliasEntry(
            requested_id=171705,
            replacement_id=2346384,
            dataset="Foundation",
            rationale="Avocado, raw (SR Legacy) superseded by the Foundation record.",
        ),
        AliasEntry(
            requested_id=173944,
            replacement_id=1750340,
            dataset="Foundation",
            rationale="Banana, raw (SR Legacy) superseded by the Foundation record.",
        ),
        AliasEntry(
            requested_id=171287,
            replacement_id=748967,
            dataset="Foundation",
            rationale=(
                "Egg, whole, raw (SR Legacy) superseded by the Foundation record."
            ),
        ),
        AliasEntry(
            requested_id=169905,
            replacement_id=2344719,
            dataset="Foundation",
            rationale="Onion, raw (SR Legacy) superseded by the Foundation record.",
        ),
    ]
)


@dataclass(frozen=True)
class AliasResolver:
    """Looks up replacements for retired FDC ids."""

    table: Mapping[int, AliasEntry] = field(default_factory=lambda: DEFAULT_ALIASES)

    @classmethod
    def from_entries(cls, entries: Iterable[AliasEntry]) -> "AliasResolver":
        return cls(table=_alias_table(entries))

    def resolve(self, requested_id: int) -> AliasEntry | None:
        return self.table.get(requested_id)


@dataclass
class FoodLookupService:
    """Fetches records, retrying retired ids against their replacements."""

    client: FdcClient
    alias_resolver: AliasResolver = field(default_factory=AliasResolver)

    async def get_food(
        self, fdc_id: int, options: FoodQueryOptions | None = None
    ) -> ResolvedFood:
        """Fetch one record, following an alias on a not-found failure."""
        try:
            food = await self.client.get_food(fdc_id, options)
        except UpstreamError as exc:
            if not exc.is_not_found:
                raise
            alias = self.alias_resolver.resolve(fdc_id)
            if alias is None:
                raise
            _logger.info(
                "FDC ID %s not found, retrying with alias %s",
                fdc_id,
                alias.replacement_id,
            )
            return await self.get_replacement(alias, options)
        return ResolvedFood(food=food, fdc_id=fdc_id)

    async def get_replacement(
        self, alias: AliasEntry, options: FoodQueryOptions | None = None
    ) -> ResolvedFood:
        """Fetch the replacement record for an alias, keeping provenance."""
        food = await self.client.get_food(alias.replacement_id, options)
        return ResolvedFood(food=food, fdc_id=alias.replacement_id, alias=alias)

    async def get_foods(self, request: BulkFoodsRequest) -> BatchLookup:
        """Fetch a batch, then one follow-up batch for aliased misses.

        Every requested id ends up either served, explained by an entry in
        ``BatchLookup.aliases``, or listed in ``missing_ids``. Several retired
        ids may share one replacement; the record is returned once and each
        substitution is still reported.
        """
        foods = await self.client.get_foods(request)
        merged: dict[int, ResolvedFood] = {}
        unidentified: list[ResolvedFood] = []
        for food in foods:
            _merge(merged, unidentified, food, alias=None)

        missing = [
            fdc_id for fdc_id in dict.fromkeys(request.fdc_ids) if fdc_id not in merged
        ]
        substitutions: dict[int, AliasEntry] = {}
        unresolved: list[int] = []
        for fdc_id in missing:
            alias = self.alias_resolver.resolve(fdc_id)
            if alias is None:
                unresolved.append(fdc_id)
            else:
                substitutions[fdc_id] = alias

        follow_up_ids = list(
            dict.fromkeys(
                alias.replacement_id
                for alias in substitutions.values()
                if alias.replacement_id not in merged
            )
        )
        if follow_up_ids:
            _logger.info(
                "Retrying %s missing FDC IDs with aliases %s",
                len(follow_up_ids),
                follow_up_ids,
            )
            follow_up = await self.client.get_foods(
                replace(request, fdc_ids=tuple(follow_up_ids))
            )
            first_alias: dict[int, AliasEntry] = {}
            for alias in substitutions.values():
                first_alias.setdefault(alias.replacement_id, alias)
            for food in follow_up:
                fdc_id = extract_fdc_id(food)
                _merge(merged, unidentified, food, alias=first_alias.get(fdc_id))

        applied: list[AliasEntry] = []
        for requested_id, alias in substitutions.items():
            if alias.replacement_id in merged:
                applied.append(alias)
            else:
                unresolved.append(requested_id)

        return BatchLookup(
            foods=[*merged.values(), *unidentified],
            missing_ids=[
                fdc_id
                for fdc_id in dict.fromkeys(request.fdc_ids)
                if fdc_id in unresolved
            ],
            aliases=applied,
        )


def extract_fdc_id(food: FoodItem) -> int | None:
    """Return the record's FDC id as an int, if it carries one."""
    value = food.get("fdcId", food.get("fdc_id"))
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value)
    return None


def _merge(
    merged: dict[int, ResolvedFood],
    unidentified: list[ResolvedFood],
    food: FoodItem,
    alias: AliasEntry | None,
) -> None:
    fdc_id = extract_fdc_id(food)
    if fdc_id is None:
        unidentified.append(ResolvedFood(food=food, fdc_id=None, alias=alias))
        return
    if fdc_id not in merged:
        merged[fdc_id] = ResolvedFood(food=food, fdc_id=fdc_id, alias=alias)
