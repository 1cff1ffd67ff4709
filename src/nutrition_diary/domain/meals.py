"""Domain models for meals and food entries."""

from dataclasses import dataclass, field
from datetime import datetime

SYSTEM_VARIANT = "system"
CUSTOM_VARIANT = "custom"

# Fixed categories in display order, mapped to their reserved document ids.
SYSTEM_MEALS: dict[str, str] = {
    "Breakfast": "breakfast",
    "Lunch": "lunch",
    "Dinner": "dinner",
}
SYSTEM_MEAL_IDS: tuple[str, ...] = tuple(SYSTEM_MEALS.values())
SYSTEM_MEAL_NAMES: dict[str, str] = {
    meal_id: name for name, meal_id in SYSTEM_MEALS.items()
}


@dataclass(frozen=True)
class Meal:
    """A named meal within a day."""

    id: str
    name: str
    variant: str
    created_at: datetime | None
    updated_at: datetime | None = None

    @property
    def is_system(self) -> bool:
        """Return True for the fixed Breakfast/Lunch/Dinner meals."""
        return self.variant == SYSTEM_VARIANT


@dataclass(frozen=True)
class FoodEntry:
    """A single food logged under a meal."""

    id: str
    meal_id: str
    name: str
    calories: float
    amount: float
    unit: str
    protein_g: float
    carbs_g: float
    fat_g: float
    created_at: datetime | None


@dataclass(frozen=True)
class MealWithFoods:
    """Meal together with its ordered food entries."""

    meal: Meal
    foods: list[FoodEntry] = field(default_factory=list)

    @property
    def total_calories(self) -> float:
        return sum(food.calories for food in self.foods)
