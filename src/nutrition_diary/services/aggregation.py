"""Daily summary aggregation."""

import asyncio
import logging
import math
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date

from nutrition_diary.domain.days import day_key, parse_day_key
from nutrition_diary.domain.summary import DailySummary
from nutrition_diary.errors import (
    PartialAggregationError,
    StoreUnavailable,
    ValidationError,
)
from nutrition_diary.services.documents import (
    coerce_number,
    summary_from_document,
    summary_to_fields,
)
from nutrition_diary.services.store import (
    SERVER_TIMESTAMP,
    EntryStore,
    WriteOp,
    day_path,
    days_path,
    foods_path,
    meals_path,
    summary_path,
)

_NUTRIENT_FIELDS = ("calories", "protein", "carbs", "fat")

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AggregationResult:
    """Outcome of a recompute; `partial_error` lists defaulted entries."""

    summary: DailySummary
    partial_error: PartialAggregationError | None = None


@dataclass
class AggregationService:
    """Keeps each day's summary derived from its food entries."""

    store: EntryStore

    async def recompute_summary(self, user_id: str, day: date) -> AggregationResult:
        """Re-sum every entry under the day and merge-write the summary.

        Entries with missing or non-numeric values count as zero; the
        recompute itself never fails because of them.
        """
        totals: dict[str, list[float]] = {name: [] for name in _NUTRIENT_FIELDS}
        meal_calories: dict[str, float] = {}
        malformed: list[str] = []

        for meal in await self.store.list_children(meals_path(user_id, day)):
            foods = await self.store.list_children(foods_path(user_id, day, meal.id))
            meal_values: list[float] = []
            for food in foods:
                valid = True
                for name in _NUTRIENT_FIELDS:
                    value = coerce_number(food.data.get(name))
                    if value is None:
                        valid = False
                        value = 0.0
                    totals[name].append(value)
                    if name == "calories":
                        meal_values.append(value)
                if not valid:
                    malformed.append(food.path)
            meal_calories[meal.id] = math.fsum(meal_values)

        summary = DailySummary(
            day=day,
            total_calories=math.fsum(totals["calories"]),
            total_protein_g=math.fsum(totals["protein"]),
            total_carbs_g=math.fsum(totals["carbs"]),
            total_fat_g=math.fsum(totals["fat"]),
            meal_calories=meal_calories,
        )
        fields = summary_to_fields(summary)
        fields["updatedAt"] = SERVER_TIMESTAMP
        await self.store.batch_write(
            [
                WriteOp.put(summary_path(user_id, day), fields, merge=True),
                WriteOp.put(day_path(user_id, day), {"date": day_key(day)}, merge=True),
            ]
        )

        partial_error = None
        if malformed:
            partial_error = PartialAggregationError(malformed)
            _logger.warning(
                "Summary for %s/%s defaulted %s malformed entries: %s",
                user_id,
                day_key(day),
                len(malformed),
                ", ".join(malformed),
            )
        return AggregationResult(summary=summary, partial_error=partial_error)

    async def recompute_after_write(
        self, user_id: str, day: date
    ) -> AggregationResult | None:
        """Recompute after a committed mutation; store outages are only logged."""
        try:
            return await self.recompute_summary(user_id, day)
        except StoreUnavailable as exc:
            _logger.warning(
                "Summary recompute skipped for %s/%s: %s", user_id, day_key(day), exc
            )
            return None

    async def get_summary(self, user_id: str, day: date) -> DailySummary | None:
        """Return the stored summary, or None when nothing was logged yet."""
        document = await self.store.get(summary_path(user_id, day))
        if document is None:
            return None
        return summary_from_document(day, document)

    async def get_summaries(
        self, user_id: str, days: Iterable[date]
    ) -> dict[date, DailySummary | None]:
        """Return summaries keyed by day, in the order given."""
        ordered = list(days)
        summaries = await asyncio.gather(
            *(self.get_summary(user_id, day) for day in ordered)
        )
        return dict(zip(ordered, summaries, strict=True))

    async def list_history_dates(self, user_id: str, limit: int = 30) -> list[date]:
        """Return days with logged data, most recent first."""
        dates: list[date] = []
        for document in await self.store.list_children(days_path(user_id)):
            try:
                dates.append(parse_day_key(document.id))
            except ValidationError:
                _logger.warning("Ignoring day document %s", document.path)
        dates.sort(reverse=True)
        return dates[:limit]
