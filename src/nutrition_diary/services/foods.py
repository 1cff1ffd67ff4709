"""Food entry write API."""

import logging
import math
from dataclasses import dataclass
from datetime import UTC, date, datetime
from uuid import uuid4

from nutrition_diary.domain.days import day_key
from nutrition_diary.domain.meals import FoodEntry
from nutrition_diary.errors import NotFoundError, ValidationError
from nutrition_diary.services.aggregation import AggregationService
from nutrition_diary.services.documents import food_from_document
from nutrition_diary.services.meals import MealService
from nutrition_diary.services.store import (
    SERVER_TIMESTAMP,
    EntryStore,
    food_path,
    foods_path,
)

DEFAULT_UNIT = "g"

_logger = logging.getLogger(__name__)


@dataclass
class FoodEntryService:
    """Adds, edits and removes food entries, keeping the summary in step."""

    store: EntryStore
    meals: MealService
    aggregation: AggregationService

    async def add_food(  # noqa: PLR0913
        self,
        user_id: str,
        day: date,
        meal_id: str,
        name: str,
        calories: float,
        amount: float,
        unit: str,
        protein_g: float | None = None,
        carbs_g: float | None = None,
        fat_g: float | None = None,
    ) -> str:
        """Log a food under a meal and return the new entry id."""
        cleaned = (name or "").strip()
        if not cleaned:
            raise ValidationError("Food name cannot be empty")
        values = _validated(
            calories=calories,
            amount=amount,
            protein=protein_g or 0.0,
            carbs=carbs_g or 0.0,
            fat=fat_g or 0.0,
        )
        await self.meals.ensure_default_meals(user_id, day)
        await self.meals.get_meal(user_id, day, meal_id)

        food_id = uuid4().hex
        await self.store.set(
            food_path(user_id, day, meal_id, food_id),
            {
                "name": cleaned,
                "unit": (unit or "").strip() or DEFAULT_UNIT,
                **values,
                "createdAt": SERVER_TIMESTAMP,
            },
        )
        _logger.info(
            "Added food %s to meal %s on %s (%.1f kcal)",
            food_id,
            meal_id,
            day_key(day),
            values["calories"],
        )
        await self.aggregation.recompute_after_write(user_id, day)
        return food_id

    async def update_food(  # noqa: PLR0913
        self,
        user_id: str,
        day: date,
        meal_id: str,
        food_id: str,
        amount: float,
        unit: str,
        calories: float | None = None,
        protein_g: float | None = None,
        carbs_g: float | None = None,
        fat_g: float | None = None,
    ) -> None:
        """Change an entry's amount and unit in place.

        Nutrient values are recalculated by the caller and only written when
        given.
        """
        path = food_path(user_id, day, meal_id, food_id)
        if await self.store.get(path) is None:
            raise NotFoundError(f"Food {food_id} not found in meal {meal_id}")
        optional = {
            "calories": calories,
            "protein": protein_g,
            "carbs": carbs_g,
            "fat": fat_g,
        }
        fields: dict[str, object] = _validated(
            amount=amount,
            **{key: value for key, value in optional.items() if value is not None},
        )
        fields["unit"] = (unit or "").strip() or DEFAULT_UNIT
        await self.store.set(path, fields, merge=True)
        await self.aggregation.recompute_after_write(user_id, day)

    async def delete_food(
        self, user_id: str, day: date, meal_id: str, food_id: str
    ) -> None:
        """Remove a single food entry."""
        path = food_path(user_id, day, meal_id, food_id)
        if await self.store.get(path) is None:
            raise NotFoundError(f"Food {food_id} not found in meal {meal_id}")
        await self.store.delete(path)
        _logger.info("Deleted food %s from meal %s", food_id, meal_id)
        await self.aggregation.recompute_after_write(user_id, day)

    async def get_food(
        self, user_id: str, day: date, meal_id: str, food_id: str
    ) -> FoodEntry:
        document = await self.store.get(food_path(user_id, day, meal_id, food_id))
        if document is None:
            raise NotFoundError(f"Food {food_id} not found in meal {meal_id}")
        return food_from_document(document, meal_id)

    async def list_foods(
        self, user_id: str, day: date, meal_id: str
    ) -> list[FoodEntry]:
        """Return a meal's entries, oldest first."""
        documents = await self.store.list_children(foods_path(user_id, day, meal_id))
        foods = [food_from_document(document, meal_id) for document in documents]
        return sorted(
            foods,
            key=lambda food: (
                food.created_at is None,
                food.created_at or datetime.min.replace(tzinfo=UTC),
                food.id,
            ),
        )


def _validated(**values: float) -> dict[str, float]:
    checked: dict[str, float] = {}
    for key, value in values.items():
        if isinstance(value, bool) or not isinstance(value, int | float):
            raise ValidationError(f"{key} must be a number")
        number = float(value)
        if not math.isfinite(number) or number < 0:
            raise ValidationError(f"{key} must be a non-negative number")
        checked[key] = number
    return checked
