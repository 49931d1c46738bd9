"""Compact summaries of raw FDC records."""

from fdc_gateway.domain.foods import FoodItem
from fdc_gateway.domain.nutrients import NutrientKey
from fdc_gateway.services.aliases import extract_fdc_id
from fdc_gateway.services.nutrients import match_nutrients

_MACRO_ORDER = (
    NutrientKey.CALORIES,
    NutrientKey.PROTEIN,
    NutrientKey.FAT,
    NutrientKey.CARBS,
)


def describe_food(food: FoodItem) -> str:
    """Return ``description (brand) [FDC id]`` for a record."""
    description = food.get("description")
    if not isinstance(description, str):
        lowercase = food.get("lowercaseDescription")
        description = lowercase if isinstance(lowercase, str) else "Food item"
    brand = food.get("brandOwner")
    brand_text = f" ({brand})" if isinstance(brand, str) else ""
    fdc_id = extract_fdc_id(food)
    id_text = f" [FDC {fdc_id}]" if fdc_id else ""
    return f"{description}{brand_text}{id_text}"


def extract_macro_summary(food: FoodItem) -> dict[str, float] | None:
    """Return calories/protein/fat/carbs found in the nutrient list."""
    matches = match_nutrients(food, _MACRO_ORDER)
    if not matches:
        return None
    return {key.value: matches[key].value for key in _MACRO_ORDER if key in matches}


def to_food_summary(food: FoodItem) -> dict[str, object]:
    """Build the summary row returned alongside raw search and list payloads."""
    summary: dict[str, object] = {"description": describe_food(food)}
    fdc_id = extract_fdc_id(food)
    if fdc_id is not None:
        summary["fdcId"] = fdc_id
    macros = extract_macro_summary(food)
    if macros:
        summary["macros"] = macros
    return summary
