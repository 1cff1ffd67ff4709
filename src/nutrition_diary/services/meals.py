"""Meal lifecycle service."""

import logging
from dataclasses import dataclass
from datetime import UTC, date, datetime
from uuid import uuid4

from nutrition_diary.domain.days import day_key
from nutrition_diary.domain.meals import (
    CUSTOM_VARIANT,
    SYSTEM_MEAL_IDS,
    SYSTEM_MEALS,
    SYSTEM_VARIANT,
    Meal,
)
from nutrition_diary.errors import DuplicateNameError, NotFoundError, ValidationError
from nutrition_diary.services.aggregation import AggregationService
from nutrition_diary.services.documents import meal_from_document
from nutrition_diary.services.store import (
    SERVER_TIMESTAMP,
    EntryStore,
    WriteOp,
    day_path,
    foods_path,
    meal_path,
    meals_path,
)

_RESERVED_NAMES = {name.lower() for name in SYSTEM_MEALS}

_logger = logging.getLogger(__name__)


@dataclass
class MealService:
    """Creates, renames and deletes meals, and bootstraps the system meals."""

    store: EntryStore
    aggregation: AggregationService

    async def ensure_default_meals(self, user_id: str, day: date) -> list[str]:
        """Make sure Breakfast, Lunch and Dinner exist for the day.

        Missing meals are created with an atomic create-if-absent on their
        fixed ids, so concurrent callers cannot produce duplicates. Existing
        ones whose name or variant drifted are repaired with a merge-write.
        Creating any of them also marks the day as having logged data.
        Returns the ids of the meals this call created.
        """
        existing = {
            document.id: document
            for document in await self.store.list_children(meals_path(user_id, day))
        }
        created: list[str] = []
        for name, meal_id in SYSTEM_MEALS.items():
            path = meal_path(user_id, day, meal_id)
            document = existing.get(meal_id)
            if document is None:
                was_created = await self.store.create(
                    path,
                    {
                        "name": name,
                        "variant": SYSTEM_VARIANT,
                        "createdAt": SERVER_TIMESTAMP,
                    },
                )
                if was_created:
                    created.append(meal_id)
                continue
            data = document.data
            if data.get("name") == name and data.get("variant") == SYSTEM_VARIANT:
                continue
            repair: dict[str, object] = {"name": name, "variant": SYSTEM_VARIANT}
            if data.get("createdAt") is None:
                repair["createdAt"] = SERVER_TIMESTAMP
            await self.store.set(path, repair, merge=True)
            _logger.info("Repaired system meal %s for %s", meal_id, day_key(day))
        if created:
            await self.store.set(
                day_path(user_id, day), {"date": day_key(day)}, merge=True
            )
            _logger.info(
                "Created system meals %s for %s/%s",
                ",".join(created),
                user_id,
                day_key(day),
            )
        return created

    async def create_custom_meal(self, user_id: str, day: date, name: str) -> str:
        """Create a user-named meal and return its id."""
        cleaned = _clean_name(name)
        if cleaned.lower() in _RESERVED_NAMES:
            raise DuplicateNameError(cleaned)
        await self._ensure_unique_name(user_id, day, cleaned)
        meal_id = uuid4().hex
        await self.store.batch_write(
            [
                WriteOp.put(
                    meal_path(user_id, day, meal_id),
                    {
                        "name": cleaned,
                        "variant": CUSTOM_VARIANT,
                        "createdAt": SERVER_TIMESTAMP,
                    },
                ),
                WriteOp.put(day_path(user_id, day), {"date": day_key(day)}, merge=True),
            ]
        )
        _logger.info("Created meal %s (%s) for %s", meal_id, cleaned, day_key(day))
        return meal_id

    async def rename_meal(
        self, user_id: str, day: date, meal_id: str, new_name: str
    ) -> None:
        """Rename a custom meal; its food entries are left untouched."""
        cleaned = _clean_name(new_name)
        path = meal_path(user_id, day, meal_id)
        if await self.store.get(path) is None:
            raise NotFoundError(f"Meal {meal_id} not found for {day_key(day)}")
        if meal_id in SYSTEM_MEAL_IDS:
            raise ValidationError("System meals cannot be renamed")
        if cleaned.lower() in _RESERVED_NAMES:
            raise DuplicateNameError(cleaned)
        await self._ensure_unique_name(user_id, day, cleaned, exclude_meal_id=meal_id)
        await self.store.set(
            path, {"name": cleaned, "updatedAt": SERVER_TIMESTAMP}, merge=True
        )

    async def delete_meal(self, user_id: str, day: date, meal_id: str) -> int:
        """Delete a meal and its food entries atomically; return the food count."""
        path = meal_path(user_id, day, meal_id)
        if await self.store.get(path) is None:
            raise NotFoundError(f"Meal {meal_id} not found for {day_key(day)}")
        foods = await self.store.list_children(foods_path(user_id, day, meal_id))
        ops = [WriteOp.remove(food.path) for food in foods]
        ops.append(WriteOp.remove(path))
        await self.store.batch_write(ops)
        _logger.info(
            "Deleted meal %s for %s with %s foods", meal_id, day_key(day), len(foods)
        )
        await self.aggregation.recompute_after_write(user_id, day)
        return len(foods)

    async def get_meal(self, user_id: str, day: date, meal_id: str) -> Meal:
        """Return a meal or raise NotFoundError."""
        document = await self.store.get(meal_path(user_id, day, meal_id))
        meal = meal_from_document(document) if document is not None else None
        if meal is None:
            raise NotFoundError(f"Meal {meal_id} not found for {day_key(day)}")
        return meal

    async def list_meals(self, user_id: str, day: date) -> list[Meal]:
        """Return the day's meals in display order."""
        documents = await self.store.list_children(meals_path(user_id, day))
        meals = [meal_from_document(document) for document in documents]
        return sort_meals([meal for meal in meals if meal is not None])

    async def count_foods(self, user_id: str, day: date, meal_id: str) -> int:
        """Return how many food entries a meal holds."""
        foods = await self.store.list_children(foods_path(user_id, day, meal_id))
        return len(foods)

    @staticmethod
    def system_meal_id(name: str) -> str | None:
        """Return the fixed id for a system meal name, if it is one."""
        wanted = name.strip().lower()
        for system_name, meal_id in SYSTEM_MEALS.items():
            if system_name.lower() == wanted:
                return meal_id
        return None

    async def _ensure_unique_name(
        self,
        user_id: str,
        day: date,
        name: str,
        exclude_meal_id: str | None = None,
    ) -> None:
        wanted = name.lower()
        for document in await self.store.list_children(meals_path(user_id, day)):
            if document.id == exclude_meal_id:
                continue
            existing = str(document.data.get("name") or "").strip().lower()
            if existing == wanted:
                raise DuplicateNameError(name)


def sort_meals(meals: list[Meal]) -> list[Meal]:
    """System meals in fixed order, then custom meals oldest first."""
    system = sorted(
        (meal for meal in meals if meal.id in SYSTEM_MEAL_IDS),
        key=lambda meal: SYSTEM_MEAL_IDS.index(meal.id),
    )
    custom = sorted(
        (meal for meal in meals if meal.id not in SYSTEM_MEAL_IDS),
        key=lambda meal: (
            meal.created_at is None,
            meal.created_at or datetime.min.replace(tzinfo=UTC),
            meal.id,
        ),
    )
    return system + custom


def _clean_name(name: str) -> str:
    cleaned = (name or "").strip()
    if not cleaned:
        raise ValidationError("Meal name cannot be empty")
    return cleaned
