"""Static nutrient definitions shared by the resolution engine."""

from collections.abc import Iterable
from dataclasses import dataclass
from enum import StrEnum
from types import MappingProxyType


class NutrientKey(StrEnum):
    """Nutrients callers can ask the resolution engine for."""

    CALORIES = "calories"
    PROTEIN = "protein"
    FAT = "fat"
    CARBS = "carbs"
    SATURATED_FAT = "saturated_fat"
    FIBER = "fiber"
    SUGARS = "sugars"
    SODIUM = "sodium"
    CHOLESTEROL = "cholesterol"
    CALCIUM = "calcium"
    IRON = "iron"
    POTASSIUM = "potassium"
    MAGNESIUM = "magnesium"
    ZINC = "zinc"
    VITAMIN_A = "vitamin_a"
    VITAMIN_C = "vitamin_c"
    VITAMIN_D = "vitamin_d"
    VITAMIN_B12 = "vitamin_b12"


class NutrientUnit(StrEnum):
    GRAM = "g"
    KILOCALORIE = "kcal"
    MILLIGRAM = "mg"
    MICROGRAM = "mcg"


@dataclass(frozen=True)
class NutrientDefinition:
    """How a nutrient is identified in FDC payloads.

    ``numeric_ids`` spans the current nutrient ids (``1008``) and the legacy
    nutrient numbers (``208``) because abridged responses only carry the
    latter.
    """

    label: str
    unit: NutrientUnit
    numeric_ids: frozenset[int]
    name_aliases: frozenset[str]


def _definition(
    label: str,
    unit: NutrientUnit,
    numeric_ids: Iterable[int],
    name_aliases: Iterable[str],
) -> NutrientDefinition:
    return NutrientDefinition(
        label=label,
        unit=unit,
        numeric_ids=frozenset(numeric_ids),
        name_aliases=frozenset(alias.strip().lower() for alias in name_aliases),
    )


NUTRIENT_DEFINITIONS = MappingProxyType(
    {
        NutrientKey.CALORIES: _definition(
            "Calories",
            NutrientUnit.KILOCALORIE,
            # 2047/2048 are the Atwater energy rows Foundation foods publish.
            [1008, 208, 2047, 2048, 957, 958],
            [
                "energy",
                "energy (atwater general factors)",
                "energy (atwater specific factors)",
                "calories",
            ],
        ),
        NutrientKey.PROTEIN: _definition(
            "Protein", NutrientUnit.GRAM, [1003, 203], ["protein"]
        ),
        NutrientKey.FAT: _definition(
            "Total fat",
            NutrientUnit.GRAM,
            [1004, 204, 1085, 298],
            ["total lipid (fat)", "total fat (nlea)", "total fat", "fat"],
        ),
        NutrientKey.CARBS: _definition(
            "Carbohydrates",
            NutrientUnit.GRAM,
            [1005, 205, 1050],
            [
                "carbohydrate, by difference",
                "carbohydrate, by summation",
                "carbohydrates",
                "total carbohydrate",
            ],
        ),
        NutrientKey.SATURATED_FAT: _definition(
            "Saturated fat",
            NutrientUnit.GRAM,
            [1258, 606],
            ["fatty acids, total saturated", "saturated fat"],
        ),
        NutrientKey.FIBER: _definition(
            "Dietary fiber",
            NutrientUnit.GRAM,
            [1079, 291],
            ["fiber, total dietary", "dietary fiber", "fiber"],
        ),
        NutrientKey.SUGARS: _definition(
            "Total sugars",
            NutrientUnit.GRAM,
            [2000, 269, 1063],
            ["sugars, total including nlea", "total sugars", "sugars, total"],
        ),
        NutrientKey.SODIUM: _definition(
            "Sodium", NutrientUnit.MILLIGRAM, [1093, 307], ["sodium, na", "sodium"]
        ),
        NutrientKey.CHOLESTEROL: _definition(
            "Cholesterol", NutrientUnit.MILLIGRAM, [1253, 601], ["cholesterol"]
        ),
        NutrientKey.CALCIUM: _definition(
            "Calcium", NutrientUnit.MILLIGRAM, [1087, 301], ["calcium, ca", "calcium"]
        ),
        NutrientKey.IRON: _definition(
            "Iron", NutrientUnit.MILLIGRAM, [1089, 303], ["iron, fe", "iron"]
        ),
        NutrientKey.POTASSIUM: _definition(
            "Potassium",
            NutrientUnit.MILLIGRAM,
            [1092, 306],
            ["potassium, k", "potassium"],
        ),
        NutrientKey.MAGNESIUM: _definition(
            "Magnesium",
            NutrientUnit.MILLIGRAM,
            [1090, 304],
            ["magnesium, mg", "magnesium"],
        ),
        NutrientKey.ZINC: _definition(
            "Zinc", NutrientUnit.MILLIGRAM, [1095, 309], ["zinc, zn", "zinc"]
        ),
        NutrientKey.VITAMIN_A: _definition(
            "Vitamin A",
            NutrientUnit.MICROGRAM,
            [1106, 320],
            ["vitamin a, rae", "vitamin a"],
        ),
        NutrientKey.VITAMIN_C: _definition(
            "Vitamin C",
            NutrientUnit.MILLIGRAM,
            [1162, 401],
            ["vitamin c, total ascorbic acid", "vitamin c"],
        ),
        NutrientKey.VITAMIN_D: _definition(
            "Vitamin D",
            NutrientUnit.MICROGRAM,
            [1114, 328],
            ["vitamin d (d2 + d3)", "vitamin d"],
        ),
        NutrientKey.VITAMIN_B12: _definition(
            "Vitamin B-12",
            NutrientUnit.MICROGRAM,
            [1178, 418],
            ["vitamin b-12", "vitamin b12"],
        ),
    }
)

# Field names seen in label blocks, broader than the canonical names above.
LABEL_CANDIDATES = MappingProxyType(
    {
        NutrientKey.CALORIES: ("calories", "energy", "Energy (kcal)", "kcal"),
        NutrientKey.PROTEIN: ("protein", "Protein (g)", "totalProtein"),
        NutrientKey.FAT: (
            "fat",
            "totalFat",
            "Total fat (NLEA)",
            "Total lipid (fat)",
            "fatTotal",
        ),
        NutrientKey.CARBS: (
            "carbohydrates",
            "carbs",
            "totalCarbohydrate",
            "Carbohydrate, by difference",
        ),
        NutrientKey.SATURATED_FAT: ("saturatedFat", "saturated_fat", "satFat"),
        NutrientKey.FIBER: ("fiber", "dietaryFiber", "Fiber, total dietary"),
        NutrientKey.SUGARS: ("sugars", "totalSugars", "sugar"),
        NutrientKey.SODIUM: ("sodium", "Sodium, Na"),
        NutrientKey.CHOLESTEROL: ("cholesterol",),
        NutrientKey.CALCIUM: ("calcium", "Calcium, Ca"),
        NutrientKey.IRON: ("iron", "Iron, Fe"),
        NutrientKey.POTASSIUM: ("potassium", "Potassium, K"),
        NutrientKey.MAGNESIUM: ("magnesium",),
        NutrientKey.ZINC: ("zinc",),
        NutrientKey.VITAMIN_A: ("vitaminA", "vitamin_a"),
        NutrientKey.VITAMIN_C: ("vitaminC", "vitamin_c"),
        NutrientKey.VITAMIN_D: ("vitaminD", "vitamin_d"),
        NutrientKey.VITAMIN_B12: ("vitaminB12", "vitamin_b12"),
    }
)

MACRO_KEYS = frozenset(
    {NutrientKey.CALORIES, NutrientKey.PROTEIN, NutrientKey.FAT, NutrientKey.CARBS}
)
