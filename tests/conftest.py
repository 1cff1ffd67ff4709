"""Shared test fixtures."""

from dataclasses import dataclass, field
from datetime import UTC, date, datetime, timedelta

import pytest

from nutrition_diary.adapters.memory_entry_store import InMemoryEntryStore
from nutrition_diary.config import Settings
from nutrition_diary.containers import AppContainer, build_services
from nutrition_diary.errors import StoreUnavailable
from nutrition_diary.services.aggregation import AggregationService
from nutrition_diary.services.foods import FoodEntryService
from nutrition_diary.services.live import LiveQueryService
from nutrition_diary.services.meals import MealService
from nutrition_diary.services.scoring import ScoringService
from nutrition_diary.services.store import Document, StoreWatch, WriteOp
from nutrition_diary.services.targets import TargetService

DAY = date(2024, 3, 13)
USER_ID = "user-1"


@dataclass
class TickingClock:
    """Clock that advances one second per reading."""

    current: datetime = datetime(2024, 3, 13, 8, 0, tzinfo=UTC)
    step: timedelta = timedelta(seconds=1)

    def __call__(self) -> datetime:
        value = self.current
        self.current += self.step
        return value


@dataclass
class FlakyStore:
    """Store wrapper that fails selected operations with StoreUnavailable."""

    inner: InMemoryEntryStore
    failing: set[str] = field(default_factory=set)
    calls: list[str] = field(default_factory=list)

    def _check(self, action: str) -> None:
        self.calls.append(action)
        if action in self.failing:
            raise StoreUnavailable(f"{action} is offline")

    async def get(self, path: str) -> Document | None:
        self._check("get")
        return await self.inner.get(path)

    async def list_children(self, collection_path: str) -> list[Document]:
        self._check("list")
        return await self.inner.list_children(collection_path)

    async def set(
        self, path: str, fields: dict[str, object], merge: bool = False
    ) -> None:
        self._check("set")
        await self.inner.set(path, fields, merge=merge)

    async def create(self, path: str, fields: dict[str, object]) -> bool:
        self._check("create")
        return await self.inner.create(path, fields)

    async def delete(self, path: str) -> None:
        self._check("delete")
        await self.inner.delete(path)

    async def batch_write(self, ops: list[WriteOp]) -> None:
        self._check("batch")
        await self.inner.batch_write(ops)

    def watch(self, path: str) -> StoreWatch:
        return self.inner.watch(path)

    def close(self) -> None:
        self.inner.close()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        store_backend="memory",
        supabase_url=None,
        supabase_service_key=None,
        log_level="INFO",
        environment="test",
    )


@pytest.fixture
def clock() -> TickingClock:
    return TickingClock()


@pytest.fixture
def store(clock: TickingClock) -> InMemoryEntryStore:
    return InMemoryEntryStore(clock=clock)


@pytest.fixture
def container(settings: Settings, store: InMemoryEntryStore) -> AppContainer:
    return build_services(settings, store)


@pytest.fixture
def meal_service(container: AppContainer) -> MealService:
    return container.meal_service


@pytest.fixture
def food_service(container: AppContainer) -> FoodEntryService:
    return container.food_service


@pytest.fixture
def aggregation_service(container: AppContainer) -> AggregationService:
    return container.aggregation_service


@pytest.fixture
def live_query_service(container: AppContainer) -> LiveQueryService:
    return container.live_query_service


@pytest.fixture
def target_service(container: AppContainer) -> TargetService:
    return container.target_service


@pytest.fixture
def scoring_service(container: AppContainer) -> ScoringService:
    return container.scoring_service
