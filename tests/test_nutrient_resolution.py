"""Tests for nutrient matching and the resolution engine."""

import asyncio

import pytest

from fdc_gateway.domain.errors import ResolutionIncompleteError, UpstreamError
from fdc_gateway.domain.nutrients import NutrientDefinition, NutrientKey, NutrientUnit
from fdc_gateway.domain.resolution import AliasEntry, ResolutionAttempt
from fdc_gateway.services.nutrients import (
    DatasetMacroPolicy,
    match_label_nutrients,
    match_nutrients,
    plan_attempts,
)
from tests.conftest import FakeFdcClient, build_engine

FOUNDATION_WITHOUT_PROTEIN = {
    "fdcId": 5,
    "dataType": "Foundation",
    "description": "Mystery legume",
    "foodNutrients": [
        {
            "nutrient": {"id": 2047, "name": "Energy", "unitName": "kcal"},
            "amount": 340,
        },
        {"nutrient": {"id": 1004, "name": "Total lipid (fat)"}, "amount": 1.2},
        {"nutrient": {"id": 1005, "name": "Carbohydrate"}, "amount": 60},
    ],
}
PROTEIN_WITHOUT_IDS = NutrientDefinition(
    label="Protein",
    unit=NutrientUnit.GRAM,
    numeric_ids=frozenset(),
    name_aliases=frozenset({"protein"}),
)


def test_plan_attempts_escalates_from_filtered_to_full() -> None:
    attempts = plan_attempts([NutrientKey.PROTEIN, NutrientKey.PROTEIN])

    assert attempts == [
        ResolutionAttempt(format="abridged", nutrient_ids=(203, 1003)),
        ResolutionAttempt(format="full"),
        ResolutionAttempt(format="abridged"),
    ]


def test_plan_attempts_without_ids_skips_filtered_shape() -> None:
    attempts = plan_attempts(
        [NutrientKey.PROTEIN], definitions={NutrientKey.PROTEIN: PROTEIN_WITHOUT_IDS}
    )

    assert attempts == [
        ResolutionAttempt(format="full"),
        ResolutionAttempt(format="abridged"),
    ]


def test_match_nutrients_reads_every_id_shape() -> None:
    food = {
        "foodNutrients": [
            {"number": "208", "name": "Energy", "amount": 52, "unitName": "KCAL"},
            {"nutrientId": 1003, "value": 0},
            {"nutrient": {"number": "204", "amount": 3.5}},
            {"nutrientNumber": "205", "amount": "12.5"},
        ]
    }

    matches = match_nutrients(
        food,
        [NutrientKey.CALORIES, NutrientKey.PROTEIN, NutrientKey.FAT, NutrientKey.CARBS],
    )

    assert matches[NutrientKey.CALORIES].value == 52
    assert matches[NutrientKey.CALORIES].source_id == 208
    assert matches[NutrientKey.PROTEIN].value == 0
    assert matches[NutrientKey.FAT].value == 3.5
    assert matches[NutrientKey.CARBS].value == 12.5


def test_match_nutrients_ignores_kilojoule_energy_rows() -> None:
    food = {
        "foodNutrients": [
            {
                "nutrient": {"id": 1062, "name": "Energy", "unitName": "kJ"},
                "amount": 690,
            },
            {"nutrient": {"name": "Energy", "unitName": "kcal"}, "amount": 165},
        ]
    }

    matches = match_nutrients(food, [NutrientKey.CALORIES])

    assert matches[NutrientKey.CALORIES].value == 165
    assert matches[NutrientKey.CALORIES].source_id is None


def test_match_nutrients_first_entry_wins() -> None:
    food = {
        "foodNutrients": [
            {"nutrientId": 1003, "amount": 20},
            {"nutrientId": 203, "amount": 99},
            {"nutrientId": 1004},
        ]
    }

    matches = match_nutrients(food, [NutrientKey.PROTEIN, NutrientKey.FAT])

    assert matches[NutrientKey.PROTEIN].value == 20
    assert NutrientKey.FAT not in matches


def test_match_nutrients_tolerates_missing_list() -> None:
    assert match_nutrients({"description": "Water"}, [NutrientKey.PROTEIN]) == {}


def test_match_label_nutrients_normalises_field_names() -> None:
    food = {
        "labelNutrients": {
            "Total fat (NLEA)": 14,
            "Protein": {"value": "7.5"},
            "Total Carbohydrate": {"amount": 30},
            "calories": "n/a",
        }
    }

    matches = match_label_nutrients(
        food,
        [NutrientKey.FAT, NutrientKey.PROTEIN, NutrientKey.CARBS, NutrientKey.CALORIES],
    )

    assert matches[NutrientKey.FAT].value == 14
    assert matches[NutrientKey.FAT].source == "label"
    assert matches[NutrientKey.FAT].field == "Total fat (NLEA)"
    assert matches[NutrientKey.PROTEIN].value == 7.5
    assert matches[NutrientKey.CARBS].value == 30
    assert NutrientKey.CALORIES not in matches


def test_dataset_macro_policy_only_guards_listed_datasets() -> None:
    policy = DatasetMacroPolicy()
    missing = [NutrientKey.PROTEIN, NutrientKey.VITAMIN_D]

    assert policy({"dataType": "Foundation"}, missing) == (NutrientKey.PROTEIN,)
    assert policy({"dataType": "Branded"}, missing) == ()


def test_resolve_stops_after_first_attempt_when_complete() -> None:
    client = FakeFdcClient(
        foods={
            5: {
                "fdcId": 5,
                "dataType": "SR Legacy",
                "foodNutrients": [
                    {
                        "number": "208",
                        "name": "Energy",
                        "amount": 52,
                        "unitName": "KCAL",
                    }
                ],
            }
        }
    )

    resolution = asyncio.run(build_engine(client).resolve(5, [NutrientKey.CALORIES]))

    assert resolution.matches[NutrientKey.CALORIES].value == 52
    assert resolution.missing == ()
    assert len(resolution.attempts) == 1
    assert len(client.get_food_calls) == 1
    _, options = client.get_food_calls[0]
    assert options is not None
    assert options.format == "abridged"
    assert options.nutrients == (208, 957, 958, 1008, 2047, 2048)


def test_resolve_uses_label_block() -> None:
    client = FakeFdcClient(
        foods={
            9: {
                "fdcId": 9,
                "dataType": "Branded",
                "foodNutrients": [],
                "labelNutrients": {"Total fat (NLEA)": {"value": 14}},
            }
        }
    )

    resolution = asyncio.run(build_engine(client).resolve(9, ["fat"]))

    match = resolution.matches[NutrientKey.FAT]
    assert match.value == 14
    assert match.source == "label"
    assert match.field == "Total fat (NLEA)"


def test_resolve_fails_when_foundation_record_lacks_macros() -> None:
    client = FakeFdcClient(foods={5: FOUNDATION_WITHOUT_PROTEIN})
    engine = build_engine(client)

    with pytest.raises(ResolutionIncompleteError) as exc_info:
        asyncio.run(
            engine.resolve(
                5,
                [
                    NutrientKey.CALORIES,
                    NutrientKey.PROTEIN,
                    NutrientKey.FAT,
                    NutrientKey.CARBS,
                ],
            )
        )

    error = exc_info.value
    assert error.missing == (NutrientKey.PROTEIN,)
    assert error.fdc_id == 5
    assert error.data_type == "Foundation"
    assert "protein" in str(error)
    assert "Foundation record 5" in str(error)
    assert len(client.get_food_calls) == 3


def test_resolve_reports_missing_micronutrients_without_failing() -> None:
    client = FakeFdcClient(foods={5: FOUNDATION_WITHOUT_PROTEIN})

    resolution = asyncio.run(
        build_engine(client).resolve(
            5, [NutrientKey.CALORIES, NutrientKey.VITAMIN_D]
        )
    )

    assert resolution.matches[NutrientKey.CALORIES].value == 340
    assert resolution.missing == (NutrientKey.VITAMIN_D,)
    assert len(resolution.attempts) == 3


def test_resolve_accumulates_matches_across_attempts() -> None:
    first = {"fdcId": 5, "foodNutrients": [{"nutrientId": 1003, "amount": 20}]}
    second = {"fdcId": 5, "foodNutrients": [{"nutrientId": 1004, "amount": 4}]}
    client = FakeFdcClient(responses=[first, second])

    resolution = asyncio.run(
        build_engine(client).resolve(5, [NutrientKey.PROTEIN, NutrientKey.FAT])
    )

    assert resolution.matches[NutrientKey.PROTEIN].value == 20
    assert resolution.matches[NutrientKey.FAT].value == 4
    assert resolution.record.food is second
    assert [attempt.format for attempt in resolution.attempts] == [
        "abridged",
        "full",
    ]


def test_resolve_skips_oversized_nutrient_filter() -> None:
    rejected = UpstreamError("URI too long", status=414, retryable=False)
    client = FakeFdcClient(
        foods={
            5: {"fdcId": 5, "foodNutrients": [{"nutrientId": 1003, "amount": 8}]}
        },
        responses=[rejected],
    )

    resolution = asyncio.run(build_engine(client).resolve(5, [NutrientKey.PROTEIN]))

    assert resolution.matches[NutrientKey.PROTEIN].value == 8
    assert [attempt.nutrient_ids for attempt in resolution.attempts] == [
        (203, 1003),
        None,
    ]


def test_resolve_propagates_other_upstream_failures() -> None:
    unavailable = UpstreamError("unavailable", status=503, retryable=True)
    client = FakeFdcClient(foods={5: {"fdcId": 5}}, responses=[unavailable])

    with pytest.raises(UpstreamError) as exc_info:
        asyncio.run(build_engine(client).resolve(5, [NutrientKey.PROTEIN]))

    assert exc_info.value is unavailable


def test_resolve_keeps_alias_for_later_attempts() -> None:
    alias = AliasEntry(requested_id=1001, replacement_id=2001, dataset="Foundation")
    client = FakeFdcClient(foods={2001: {"fdcId": 2001, "dataType": "SR Legacy"}})

    resolution = asyncio.run(
        build_engine(client, [alias]).resolve(1001, [NutrientKey.VITAMIN_D])
    )

    assert resolution.record.alias == alias
    assert resolution.record.fdc_id == 2001
    assert resolution.missing == (NutrientKey.VITAMIN_D,)
    assert [fdc_id for fdc_id, _ in client.get_food_calls] == [1001, 2001, 2001, 2001]


def test_resolve_requires_keys() -> None:
    with pytest.raises(ValueError):
        asyncio.run(build_engine(FakeFdcClient()).resolve(5, []))
