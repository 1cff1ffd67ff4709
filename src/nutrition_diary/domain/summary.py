"""Domain models for daily summaries."""

from dataclasses import dataclass, field
from datetime import date, datetime


@dataclass(frozen=True)
class DailySummary:
    """Derived per-day totals across all meals."""

    day: date
    total_calories: float
    total_protein_g: float
    total_carbs_g: float
    total_fat_g: float
    meal_calories: dict[str, float] = field(default_factory=dict)
    updated_at: datetime | None = None

    @property
    def has_consumption(self) -> bool:
        """Return True when anything at all was logged that day."""
        return any(
            value != 0
            for value in (
                self.total_calories,
                self.total_protein_g,
                self.total_carbs_g,
                self.total_fat_g,
            )
        )
