"""Conversions between stored documents and domain records."""

import logging
import math
from datetime import date, datetime

from nutrition_diary.domain.meals import (
    CUSTOM_VARIANT,
    SYSTEM_MEAL_NAMES,
    FoodEntry,
    Meal,
)
from nutrition_diary.domain.summary import DailySummary
from nutrition_diary.domain.targets import NutritionTarget
from nutrition_diary.services.store import Document

_logger = logging.getLogger(__name__)


def coerce_number(value: object) -> float | None:
    """Return `value` as a finite float, or None when it is not numeric."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int | float):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value)
        except ValueError:
            return None
    else:
        return None
    if not math.isfinite(number):
        return None
    return number


def to_datetime(value: object) -> datetime | None:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str) and value:
        try:
            return datetime.fromisoformat(value)
        except ValueError:
            return None
    return None


def meal_from_document(document: Document) -> Meal | None:
    """Build a meal; unnamed custom meals are skipped."""
    data = document.data
    name = str(data.get("name") or "").strip()
    if not name:
        name = SYSTEM_MEAL_NAMES.get(document.id, "")
    if not name:
        _logger.warning("Meal %s has no name, skipping", document.path)
        return None
    return Meal(
        id=document.id,
        name=name,
        variant=str(data.get("variant") or CUSTOM_VARIANT),
        created_at=to_datetime(data.get("createdAt")),
        updated_at=to_datetime(data.get("updatedAt")),
    )


def food_from_document(document: Document, meal_id: str) -> FoodEntry:
    data = document.data
    return FoodEntry(
        id=document.id,
        meal_id=meal_id,
        name=str(data.get("name") or ""),
        calories=coerce_number(data.get("calories")) or 0.0,
        amount=coerce_number(data.get("amount")) or 0.0,
        unit=str(data.get("unit") or "g"),
        protein_g=coerce_number(data.get("protein")) or 0.0,
        carbs_g=coerce_number(data.get("carbs")) or 0.0,
        fat_g=coerce_number(data.get("fat")) or 0.0,
        created_at=to_datetime(data.get("createdAt")),
    )


def summary_from_document(day: date, document: Document) -> DailySummary:
    data = document.data
    raw_meals = data.get("mealCalories")
    meal_calories: dict[str, float] = {}
    if isinstance(raw_meals, dict):
        for meal_id, value in raw_meals.items():
            meal_calories[str(meal_id)] = coerce_number(value) or 0.0
    return DailySummary(
        day=day,
        total_calories=coerce_number(data.get("totalCalories")) or 0.0,
        total_protein_g=coerce_number(data.get("totalProtein")) or 0.0,
        total_carbs_g=coerce_number(data.get("totalCarbs")) or 0.0,
        total_fat_g=coerce_number(data.get("totalFat")) or 0.0,
        meal_calories=meal_calories,
        updated_at=to_datetime(data.get("updatedAt")),
    )


def summary_to_fields(summary: DailySummary) -> dict[str, object]:
    return {
        "totalCalories": summary.total_calories,
        "totalProtein": summary.total_protein_g,
        "totalCarbs": summary.total_carbs_g,
        "totalFat": summary.total_fat_g,
        "mealCalories": dict(summary.meal_calories),
    }


def target_from_document(data: dict[str, object]) -> NutritionTarget:
    """Read targets; a stored `tdee` stands in for a missing calorie target."""
    calories = _positive(data.get("dailyCalorieTarget"))
    if calories is None:
        calories = _positive(data.get("tdee"))
    return NutritionTarget(
        daily_calorie_target=calories,
        protein_target_g=_positive(data.get("proteinTargetGrams")),
        carbs_target_g=_positive(data.get("carbsTargetGrams")),
        fat_target_g=_positive(data.get("fatTargetGrams")),
    )


def target_to_fields(target: NutritionTarget) -> dict[str, object]:
    return {
        "dailyCalorieTarget": target.daily_calorie_target,
        "proteinTargetGrams": target.protein_target_g,
        "carbsTargetGrams": target.carbs_target_g,
        "fatTargetGrams": target.fat_target_g,
    }


def _positive(value: object) -> float | None:
    number = coerce_number(value)
    if number is None or number <= 0:
        return None
    return number
