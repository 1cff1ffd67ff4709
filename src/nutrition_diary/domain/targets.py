"""Nutrition target models."""

from dataclasses import dataclass

PROTEIN_KCAL_PER_G = 4.0
CARBS_KCAL_PER_G = 4.0
FAT_KCAL_PER_G = 9.0

PROTEIN_SHARE = 0.30
CARBS_SHARE = 0.40
FAT_SHARE = 0.30


@dataclass(frozen=True)
class NutritionTarget:
    """Daily calorie and macro targets; any field may be unset."""

    daily_calorie_target: float | None = None
    protein_target_g: float | None = None
    carbs_target_g: float | None = None
    fat_target_g: float | None = None

    @classmethod
    def from_daily_calories(cls, calories: float) -> "NutritionTarget":
        """Derive macro targets with a 30/40/30 protein/carbs/fat split."""
        return cls(
            daily_calorie_target=calories,
            protein_target_g=calories * PROTEIN_SHARE / PROTEIN_KCAL_PER_G,
            carbs_target_g=calories * CARBS_SHARE / CARBS_KCAL_PER_G,
            fat_target_g=calories * FAT_SHARE / FAT_KCAL_PER_G,
        )
