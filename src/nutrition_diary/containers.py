"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from supabase import create_client

from nutrition_diary.adapters.memory_entry_store import InMemoryEntryStore
from nutrition_diary.adapters.supabase_entry_store import SupabaseEntryStore
from nutrition_diary.config import SUPABASE_BACKEND, Settings, resolve_backend
from nutrition_diary.services.aggregation import AggregationService
from nutrition_diary.services.foods import FoodEntryService
from nutrition_diary.services.live import LiveQueryService
from nutrition_diary.services.meals import MealService
from nutrition_diary.services.scoring import ScoringService
from nutrition_diary.services.store import EntryStore
from nutrition_diary.services.targets import TargetService


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    store: EntryStore
    aggregation_service: AggregationService
    meal_service: MealService
    food_service: FoodEntryService
    live_query_service: LiveQueryService
    target_service: TargetService
    scoring_service: ScoringService
    close_resources: Callable[[], Awaitable[None]]


def build_store(settings: Settings) -> EntryStore:
    """Create the entry store selected by the settings."""
    if resolve_backend(settings.store_backend) == SUPABASE_BACKEND:
        if not settings.supabase_url or not settings.supabase_service_key:
            raise ValueError("Supabase backend requires SUPABASE_URL and key")
        client = create_client(settings.supabase_url, settings.supabase_service_key)
        return SupabaseEntryStore(client=client, table=settings.documents_table)
    return InMemoryEntryStore()


def build_services(settings: Settings, store: EntryStore) -> AppContainer:
    """Wire every service around an existing store."""
    aggregation_service = AggregationService(store)
    meal_service = MealService(store=store, aggregation=aggregation_service)
    food_service = FoodEntryService(
        store=store, meals=meal_service, aggregation=aggregation_service
    )
    live_query_service = LiveQueryService(
        store=store,
        meals=meal_service,
        foods=food_service,
        aggregation=aggregation_service,
    )
    target_service = TargetService(store)
    scoring_service = ScoringService(
        aggregation=aggregation_service, targets=target_service
    )

    async def close_resources() -> None:
        store.close()

    return AppContainer(
        settings=settings,
        store=store,
        aggregation_service=aggregation_service,
        meal_service=meal_service,
        food_service=food_service,
        live_query_service=live_query_service,
        target_service=target_service,
        scoring_service=scoring_service,
        close_resources=close_resources,
    )


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    return build_services(resolved_settings, build_store(resolved_settings))
