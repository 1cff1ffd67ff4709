"""Live, change-driven views over the diary.

A `LiveQuery` describes what to watch and how to build a snapshot; it does
nothing until subscribed. Each subscription holds its own store watch::

    async with live.watch_day_meals(user_id, day).subscribe() as subscription:
        async for meals in subscription:
            render(meals)
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import date
from typing import Generic, TypeVar

from nutrition_diary.domain.meals import MealWithFoods
from nutrition_diary.domain.summary import DailySummary
from nutrition_diary.services.aggregation import AggregationService
from nutrition_diary.services.foods import FoodEntryService
from nutrition_diary.services.meals import MealService
from nutrition_diary.services.store import (
    EntryStore,
    StoreWatch,
    meals_path,
    summary_path,
)

T = TypeVar("T")

_logger = logging.getLogger(__name__)


class Subscription(Generic[T]):
    """Cancellable stream of snapshots.

    The first snapshot is emitted immediately; afterwards one snapshot is
    emitted per batch of store changes.
    """

    def __init__(
        self,
        store: EntryStore,
        path: str,
        load: Callable[[], Awaitable[T]],
        prepare: Callable[[], Awaitable[object]] | None = None,
    ) -> None:
        self._store = store
        self._path = path
        self._load = load
        self._prepare = prepare
        self._watch: StoreWatch | None = None
        self._started = False
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def __aiter__(self) -> "Subscription[T]":
        return self

    async def __anext__(self) -> T:
        if self._cancelled:
            raise StopAsyncIteration
        if not self._started:
            self._started = True
            if self._prepare is not None:
                await self._guard(self._prepare)
            if self._cancelled:
                raise StopAsyncIteration
            self._watch = self._store.watch(self._path)
        else:
            changed = await self._watch.next_change()
            if changed is None or self._cancelled:
                raise StopAsyncIteration
        return await self._guard(self._load)

    def cancel(self) -> None:
        """Release the store watch; later calls are no-ops."""
        if self._cancelled:
            return
        self._cancelled = True
        if self._watch is not None:
            self._watch.close()
        _logger.debug("Subscription cancelled: path=%s", self._path)

    async def __aenter__(self) -> "Subscription[T]":
        return self

    async def __aexit__(self, *_exc_info: object) -> None:
        self.cancel()

    async def _guard(self, func: Callable[[], Awaitable[T]]) -> T:
        try:
            return await func()
        except Exception:
            self.cancel()
            raise


@dataclass(frozen=True)
class LiveQuery(Generic[T]):
    """Lazy, restartable source of subscriptions."""

    store: EntryStore
    path: str
    load: Callable[[], Awaitable[T]]
    prepare: Callable[[], Awaitable[object]] | None = None

    def subscribe(self) -> Subscription[T]:
        return Subscription(self.store, self.path, self.load, self.prepare)

    def __aiter__(self) -> Subscription[T]:
        return self.subscribe()


@dataclass
class LiveQueryService:
    """Builds live views of a day's meals and summary."""

    store: EntryStore
    meals: MealService
    foods: FoodEntryService
    aggregation: AggregationService

    def watch_day_meals(
        self, user_id: str, day: date
    ) -> LiveQuery[list[MealWithFoods]]:
        """Watch every meal of the day together with its foods."""
        return LiveQuery(
            store=self.store,
            path=meals_path(user_id, day),
            load=lambda: self.load_day_meals(user_id, day),
            prepare=lambda: self.meals.ensure_default_meals(user_id, day),
        )

    def watch_summary(self, user_id: str, day: date) -> LiveQuery[DailySummary | None]:
        """Watch the day's summary; None until something is logged."""
        return LiveQuery(
            store=self.store,
            path=summary_path(user_id, day),
            load=lambda: self.aggregation.get_summary(user_id, day),
        )

    async def load_day_meals(self, user_id: str, day: date) -> list[MealWithFoods]:
        """Build one snapshot of the day's meals in display order."""
        await self.meals.ensure_default_meals(user_id, day)
        meals = await self.meals.list_meals(user_id, day)
        foods = await asyncio.gather(
            *(self.foods.list_foods(user_id, day, meal.id) for meal in meals)
        )
        return [
            MealWithFoods(meal=meal, foods=entries)
            for meal, entries in zip(meals, foods, strict=True)
        ]
