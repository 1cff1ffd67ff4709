"""Tests for daily summary aggregation."""

import asyncio
from datetime import date

import pytest

from nutrition_diary.adapters.memory_entry_store import InMemoryEntryStore
from nutrition_diary.domain.summary import DailySummary
from nutrition_diary.errors import PartialAggregationError, StoreUnavailable
from nutrition_diary.services.aggregation import AggregationService
from nutrition_diary.services.store import food_path, meal_path, summary_path
from tests.conftest import DAY, USER_ID, FlakyStore


def _seed(store: InMemoryEntryStore, meal_id: str, foods: dict[str, dict]) -> None:
    async def scenario() -> None:
        await store.set(meal_path(USER_ID, DAY, meal_id), {"name": meal_id.title()})
        for food_id, fields in foods.items():
            await store.set(food_path(USER_ID, DAY, meal_id, food_id), fields)

    asyncio.run(scenario())


def test_recompute_sums_every_entry(
    store: InMemoryEntryStore, aggregation_service: AggregationService
) -> None:
    _seed(
        store,
        "breakfast",
        {
            "f1": {"calories": 0.1, "protein": 1, "carbs": 2, "fat": 3},
            "f2": {"calories": 0.2, "protein": 1, "carbs": 2, "fat": 3},
        },
    )
    _seed(
        store, "snack", {"f3": {"calories": 100, "protein": 0, "carbs": 25, "fat": 0}}
    )

    result = asyncio.run(aggregation_service.recompute_summary(USER_ID, DAY))

    assert result.partial_error is None
    assert result.summary.total_calories == pytest.approx(100.3)
    assert result.summary.total_protein_g == 2
    assert result.summary.total_carbs_g == 29
    assert result.summary.total_fat_g == 6
    assert result.summary.meal_calories["breakfast"] == pytest.approx(0.3)
    stored = store.documents[summary_path(USER_ID, DAY)]
    assert stored["totalCalories"] == pytest.approx(100.3)
    assert stored["updatedAt"] is not None


def test_recompute_defaults_malformed_entries(
    store: InMemoryEntryStore, aggregation_service: AggregationService
) -> None:
    _seed(
        store,
        "lunch",
        {
            "ok": {"calories": "120", "protein": 4, "carbs": 10, "fat": 2},
            "bad": {"calories": "lots", "protein": None},
        },
    )

    result = asyncio.run(aggregation_service.recompute_summary(USER_ID, DAY))

    assert result.summary.total_calories == 120
    assert isinstance(result.partial_error, PartialAggregationError)
    assert result.partial_error.paths == [food_path(USER_ID, DAY, "lunch", "bad")]


def test_empty_day_has_no_summary_until_recomputed(
    aggregation_service: AggregationService,
) -> None:
    assert asyncio.run(aggregation_service.get_summary(USER_ID, DAY)) is None

    result = asyncio.run(aggregation_service.recompute_summary(USER_ID, DAY))
    summary = asyncio.run(aggregation_service.get_summary(USER_ID, DAY))

    assert result.summary.total_calories == 0
    assert summary is not None
    assert summary.has_consumption is False


def test_recompute_after_write_absorbs_store_outage(
    store: InMemoryEntryStore,
) -> None:
    flaky = FlakyStore(inner=store, failing={"batch"})
    service = AggregationService(flaky)

    assert asyncio.run(service.recompute_after_write(USER_ID, DAY)) is None
    with pytest.raises(StoreUnavailable):
        asyncio.run(service.recompute_summary(USER_ID, DAY))


def test_food_write_survives_failed_recompute(container, store) -> None:
    flaky = FlakyStore(inner=store)
    aggregation = AggregationService(flaky)
    container.meal_service.store = flaky
    container.meal_service.aggregation = aggregation
    container.food_service.store = flaky
    container.food_service.aggregation = aggregation
    flaky.failing.add("batch")

    food_id = asyncio.run(
        container.food_service.add_food(USER_ID, DAY, "lunch", "Soup", 90, 1, "bowl")
    )

    assert food_path(USER_ID, DAY, "lunch", food_id) in store.documents
    assert summary_path(USER_ID, DAY) not in store.documents


def test_history_dates_most_recent_first(
    food_service, aggregation_service: AggregationService
) -> None:
    async def scenario() -> list[date]:
        for day in (date(2024, 3, 1), date(2024, 3, 12), date(2024, 2, 28)):
            await food_service.add_food(USER_ID, day, "lunch", "Soup", 90, 1, "bowl")
        return await aggregation_service.list_history_dates(USER_ID, limit=2)

    assert asyncio.run(scenario()) == [date(2024, 3, 12), date(2024, 3, 1)]


def test_get_summaries_keys_every_day(
    food_service, aggregation_service: AggregationService
) -> None:
    days = [date(2024, 3, 11), date(2024, 3, 12)]

    async def scenario() -> dict[date, DailySummary | None]:
        await food_service.add_food(
            USER_ID, days[1], "dinner", "Pasta", 600, 1, "plate"
        )
        return await aggregation_service.get_summaries(USER_ID, days)

    summaries = asyncio.run(scenario())

    assert list(summaries) == days
    assert summaries[days[0]] is None
    assert summaries[days[1]].total_calories == 600
