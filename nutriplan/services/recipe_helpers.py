"""
Recipe Helpers

Pure functions used by the recipe endpoints: shopping-list aggregation and
the servings / preparation time / difficulty estimates added to AI
extractions.
"""

from typing import Dict, Iterable, List, Tuple
import math
import re

from nutriplan.schemas.recipe import AggregatedIngredient, IngredientInput

# Average calories of one main-meal portion
CALORIES_PER_SERVING = 600
DEFAULT_PREP_TIME = "30 min"
MINUTES_PER_STEP = 10

_ARTICLE_RE = re.compile(r"^(o|a|os|as|um|uma)\s+", re.IGNORECASE)
_SERVINGS_RE = re.compile(r"(?:rende|serve|rendimento|porções|pessoas)\s*:?\s*(\d+)", re.IGNORECASE)
_MINUTES_RE = re.compile(r"(\d+)\s*(?:minutos?|min|m\b)", re.IGNORECASE)
_HOURS_RE = re.compile(r"(\d+)\s*(?:horas?|h\b)", re.IGNORECASE)

_BASE_UNITS = {
    "kg": ("g", 1000),
    "l": ("ml", 1000),
    "litro": ("ml", 1000),
    "litros": ("ml", 1000),
    "g": ("g", 1),
    "grama": ("g", 1),
    "gramas": ("g", 1),
    "ml": ("ml", 1),
    "mililitro": ("ml", 1),
    "mililitros": ("ml", 1),
}


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def normalize_ingredient_name(name: str) -> str:
    """Lowercase, collapse whitespace and drop a leading article."""
    normalized = re.sub(r"\s+", " ", name.lower().strip())
    return _ARTICLE_RE.sub("", normalized)


def convert_to_base_unit(quantity: float, unit: str) -> Tuple[float, str]:
    """Convert kg/L to g/ml; units without a base (xícara, colher...) pass through."""
    conversion = _BASE_UNITS.get(unit.lower())
    if conversion is None:
        return quantity, unit
    base_unit, factor = conversion
    return quantity * factor, base_unit


def normalize_display_unit(quantity: float, unit: str) -> Tuple[float, str]:
    lower_unit = unit.lower()
    if lower_unit == "g" and quantity >= 1000:
        return quantity / 1000, "kg"
    if lower_unit == "ml" and quantity >= 1000:
        return quantity / 1000, "L"
    return quantity, unit


def aggregate_ingredients(ingredients: Iterable[IngredientInput]) -> List[AggregatedIngredient]:
    """
    Merge ingredients from several recipes into one shopping list.

    Entries with the same normalized name and compatible units are summed.
    A repeated name with an incompatible unit is kept as a separate item
    keyed ``<name>_<unit>``.
    """
    aggregation: Dict[str, Dict] = {}

    for ingredient in ingredients:
        key = normalize_ingredient_name(ingredient.name)
        quantity, unit = convert_to_base_unit(ingredient.quantity, ingredient.unit)

        existing = aggregation.get(key)
        if existing is not None and existing["unit"] != unit:
            key = f"{key}_{unit}"
            existing = aggregation.get(key)

        if existing is not None:
            existing["quantity"] += quantity
        else:
            aggregation[key] = {"name": ingredient.name, "quantity": quantity, "unit": unit}

    aggregated = []
    for key, value in aggregation.items():
        quantity, unit = normalize_display_unit(value["quantity"], value["unit"])
        aggregated.append(AggregatedIngredient(
            id=key,
            name=value["name"],
            quantity=round(quantity, 2),
            unit=unit,
            checked=True
        ))

    return sorted(aggregated, key=lambda item: item.name.lower())


def calculate_servings(instructions: str, total_calories: float) -> int:
    match = _SERVINGS_RE.search(instructions or "")
    if match:
        return int(match.group(1))

    if total_calories > 0:
        return max(1, _round_half_up(total_calories / CALORIES_PER_SERVING))

    return 1


def get_calories_per_serving(total_calories: float, servings: int) -> float:
    if not servings or servings <= 0:
        return total_calories
    return _round_half_up(total_calories / servings)


def calculate_prep_time(instructions: str) -> str:
    """Add up the durations mentioned in the instructions."""
    if not instructions:
        return DEFAULT_PREP_TIME

    total_minutes = sum(int(m) for m in _MINUTES_RE.findall(instructions))
    total_minutes += sum(int(h) * 60 for h in _HOURS_RE.findall(instructions))

    if total_minutes == 0:
        step_count = len([line for line in instructions.split("\n") if line.strip()])
        return f"{step_count * MINUTES_PER_STEP} min" if step_count > 0 else DEFAULT_PREP_TIME

    if total_minutes < 60:
        return f"{total_minutes} min"

    hours, minutes = divmod(total_minutes, 60)
    if minutes == 0:
        return f"{hours}h"
    return f"{hours}h {minutes}min"


def calculate_difficulty(prep_time: str) -> str:
    total_minutes = 0

    hour_match = re.search(r"(\d+)\s*h", prep_time)
    if hour_match:
        total_minutes += int(hour_match.group(1)) * 60

    minute_match = re.search(r"(\d+)\s*min", prep_time)
    if minute_match:
        total_minutes += int(minute_match.group(1))

    if total_minutes == 0:
        return "Médio"
    if total_minutes <= 20:
        return "Fácil"
    if total_minutes <= 60:
        return "Médio"
    return "Difícil"
