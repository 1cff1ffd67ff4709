"""Pydantic request bodies for the diary API."""

from pydantic import BaseModel


class MealCreate(BaseModel):
    """Custom meal creation payload."""

    name: str


class MealRename(BaseModel):
    """Meal rename payload."""

    name: str


class FoodCreate(BaseModel):
    """Food entry payload."""

    name: str
    calories: float
    amount: float
    unit: str = "g"
    protein_g: float | None = None
    carbs_g: float | None = None
    fat_g: float | None = None


class FoodUpdate(BaseModel):
    """Amount change for an existing entry, with recalculated nutrients."""

    amount: float
    unit: str = "g"
    calories: float | None = None
    protein_g: float | None = None
    carbs_g: float | None = None
    fat_g: float | None = None


class TargetUpdate(BaseModel):
    daily_calorie_target: float
