"""Nutrition target lookups."""

import logging
import math
from dataclasses import dataclass

from nutrition_diary.domain.targets import NutritionTarget
from nutrition_diary.errors import ValidationError
from nutrition_diary.services.documents import target_from_document, target_to_fields
from nutrition_diary.services.store import SERVER_TIMESTAMP, EntryStore, targets_path

_logger = logging.getLogger(__name__)


@dataclass
class TargetService:
    """Reads the targets the profile owner maintains for a user."""

    store: EntryStore

    async def get_targets(self, user_id: str) -> NutritionTarget:
        """Return the user's targets; fields are None when not set."""
        document = await self.store.get(targets_path(user_id))
        if document is None:
            return NutritionTarget()
        return target_from_document(document.data)

    async def set_daily_calorie_target(
        self, user_id: str, calories: float
    ) -> NutritionTarget:
        """Store a calorie target along with its derived macro targets."""
        if isinstance(calories, bool) or not isinstance(calories, int | float):
            raise ValidationError("Calorie target must be a number")
        if not math.isfinite(calories) or calories <= 0:
            raise ValidationError("Calorie target must be positive")
        target = NutritionTarget.from_daily_calories(float(calories))
        fields = target_to_fields(target)
        fields["updatedAt"] = SERVER_TIMESTAMP
        await self.store.set(targets_path(user_id), fields, merge=True)
        _logger.info("Updated targets for %s: %.0f kcal", user_id, calories)
        return target
