"""FastAPI application factory."""

import json
import logging
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse, StreamingResponse

from nutrition_diary.api.models import (
    FoodCreate,
    FoodUpdate,
    MealCreate,
    MealRename,
    TargetUpdate,
)
from nutrition_diary.app_logging import configure_logging
from nutrition_diary.containers import AppContainer
from nutrition_diary.domain.days import day_key, parse_day_key
from nutrition_diary.domain.meals import FoodEntry, Meal, MealWithFoods
from nutrition_diary.domain.summary import DailySummary
from nutrition_diary.domain.targets import NutritionTarget
from nutrition_diary.errors import (
    DiaryError,
    DuplicateNameError,
    NotFoundError,
    StoreUnavailable,
    ValidationError,
)
from nutrition_diary.services.live import Subscription
from nutrition_diary.services.scoring import WeeklyScoreReport

_STATUS_BY_ERROR: dict[type[DiaryError], int] = {
    ValidationError: status.HTTP_400_BAD_REQUEST,
    DuplicateNameError: status.HTTP_409_CONFLICT,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    StoreUnavailable: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def create_app(container: AppContainer) -> FastAPI:  # noqa: PLR0915
    """Create a FastAPI app configured with dependencies."""
    configure_logging(container.settings.log_level)
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await app.state.container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    @app.exception_handler(DiaryError)
    async def diary_error_handler(_request: Request, exc: DiaryError) -> JSONResponse:
        status_code = _status_for(exc)
        if status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
            logger.warning("Request failed: %s", exc)
        return JSONResponse(status_code=status_code, content={"detail": str(exc)})

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    @app.get("/users/{user_id}/days/{day}/meals")
    async def list_day_meals(
        user_id: str, day: str, request: Request
    ) -> dict[str, object]:
        """Return the day's meals with their foods, creating defaults first."""
        state_container: AppContainer = request.app.state.container
        meals = await state_container.live_query_service.load_day_meals(
            user_id, parse_day_key(day)
        )
        return {"meals": [_meal_with_foods_payload(meal) for meal in meals]}

    @app.get("/users/{user_id}/days/{day}/meals/stream")
    async def stream_day_meals(
        user_id: str, day: str, request: Request
    ) -> StreamingResponse:
        """Stream a fresh meal list whenever the day changes."""
        state_container: AppContainer = request.app.state.container
        query = state_container.live_query_service.watch_day_meals(
            user_id, parse_day_key(day)
        )
        return StreamingResponse(
            event_stream(
                query.subscribe(),
                lambda meals: {
                    "meals": [_meal_with_foods_payload(meal) for meal in meals]
                },
            ),
            media_type="text/event-stream",
        )

    @app.post(
        "/users/{user_id}/days/{day}/meals", status_code=status.HTTP_201_CREATED
    )
    async def create_meal(
        user_id: str, day: str, payload: MealCreate, request: Request
    ) -> dict[str, object]:
        """Create a custom meal."""
        state_container: AppContainer = request.app.state.container
        parsed = parse_day_key(day)
        meal_id = await state_container.meal_service.create_custom_meal(
            user_id, parsed, payload.name
        )
        meal = await state_container.meal_service.get_meal(user_id, parsed, meal_id)
        return _meal_payload(meal)

    @app.patch("/users/{user_id}/days/{day}/meals/{meal_id}")
    async def rename_meal(
        user_id: str, day: str, meal_id: str, payload: MealRename, request: Request
    ) -> dict[str, object]:
        """Rename a custom meal."""
        state_container: AppContainer = request.app.state.container
        parsed = parse_day_key(day)
        await state_container.meal_service.rename_meal(
            user_id, parsed, meal_id, payload.name
        )
        meal = await state_container.meal_service.get_meal(user_id, parsed, meal_id)
        return _meal_payload(meal)

    @app.delete("/users/{user_id}/days/{day}/meals/{meal_id}")
    async def delete_meal(
        user_id: str, day: str, meal_id: str, request: Request
    ) -> dict[str, object]:
        """Delete a meal together with its foods."""
        state_container: AppContainer = request.app.state.container
        removed = await state_container.meal_service.delete_meal(
            user_id, parse_day_key(day), meal_id
        )
        return {"status": "deleted", "foods_removed": removed}

    @app.get("/users/{user_id}/days/{day}/meals/{meal_id}/foods")
    async def list_foods(
        user_id: str, day: str, meal_id: str, request: Request
    ) -> dict[str, object]:
        state_container: AppContainer = request.app.state.container
        parsed = parse_day_key(day)
        await state_container.meal_service.get_meal(user_id, parsed, meal_id)
        foods = await state_container.food_service.list_foods(user_id, parsed, meal_id)
        return {"foods": [_food_payload(food) for food in foods]}

    @app.post(
        "/users/{user_id}/days/{day}/meals/{meal_id}/foods",
        status_code=status.HTTP_201_CREATED,
    )
    async def add_food(
        user_id: str, day: str, meal_id: str, payload: FoodCreate, request: Request
    ) -> dict[str, object]:
        """Log a food under a meal."""
        state_container: AppContainer = request.app.state.container
        parsed = parse_day_key(day)
        food_id = await state_container.food_service.add_food(
            user_id,
            parsed,
            meal_id,
            name=payload.name,
            calories=payload.calories,
            amount=payload.amount,
            unit=payload.unit,
            protein_g=payload.protein_g,
            carbs_g=payload.carbs_g,
            fat_g=payload.fat_g,
        )
        food = await state_container.food_service.get_food(
            user_id, parsed, meal_id, food_id
        )
        return _food_payload(food)

    @app.patch("/users/{user_id}/days/{day}/meals/{meal_id}/foods/{food_id}")
    async def update_food(  # noqa: PLR0913
        user_id: str,
        day: str,
        meal_id: str,
        food_id: str,
        payload: FoodUpdate,
        request: Request,
    ) -> dict[str, object]:
        """Change the amount of a logged food."""
        state_container: AppContainer = request.app.state.container
        parsed = parse_day_key(day)
        await state_container.food_service.update_food(
            user_id,
            parsed,
            meal_id,
            food_id,
            amount=payload.amount,
            unit=payload.unit,
            calories=payload.calories,
            protein_g=payload.protein_g,
            carbs_g=payload.carbs_g,
            fat_g=payload.fat_g,
        )
        food = await state_container.food_service.get_food(
            user_id, parsed, meal_id, food_id
        )
        return _food_payload(food)

    @app.delete("/users/{user_id}/days/{day}/meals/{meal_id}/foods/{food_id}")
    async def delete_food(
        user_id: str, day: str, meal_id: str, food_id: str, request: Request
    ) -> dict[str, str]:
        state_container: AppContainer = request.app.state.container
        await state_container.food_service.delete_food(
            user_id, parse_day_key(day), meal_id, food_id
        )
        return {"status": "deleted"}

    @app.get("/users/{user_id}/days/{day}/summary")
    async def get_summary(
        user_id: str, day: str, request: Request
    ) -> dict[str, object]:
        """Return the stored summary; null until something is logged."""
        state_container: AppContainer = request.app.state.container
        summary = await state_container.aggregation_service.get_summary(
            user_id, parse_day_key(day)
        )
        return {"summary": _summary_payload(summary)}

    @app.get("/users/{user_id}/days/{day}/summary/stream")
    async def stream_summary(
        user_id: str, day: str, request: Request
    ) -> StreamingResponse:
        state_container: AppContainer = request.app.state.container
        query = state_container.live_query_service.watch_summary(
            user_id, parse_day_key(day)
        )
        return StreamingResponse(
            event_stream(
                query.subscribe(),
                lambda summary: {"summary": _summary_payload(summary)},
            ),
            media_type="text/event-stream",
        )

    @app.get("/users/{user_id}/history")
    async def history(
        user_id: str, request: Request, limit: int = 30
    ) -> dict[str, object]:
        """Return the most recent days with logged data."""
        state_container: AppContainer = request.app.state.container
        days = await state_container.aggregation_service.list_history_dates(
            user_id, limit=limit
        )
        return {"days": [day_key(day) for day in days]}

    @app.get("/users/{user_id}/targets")
    async def get_targets(user_id: str, request: Request) -> dict[str, object]:
        state_container: AppContainer = request.app.state.container
        targets = await state_container.target_service.get_targets(user_id)
        return _target_payload(targets)

    @app.put("/users/{user_id}/targets")
    async def set_targets(
        user_id: str, payload: TargetUpdate, request: Request
    ) -> dict[str, object]:
        """Set the daily calorie target and derive macro targets from it."""
        state_container: AppContainer = request.app.state.container
        targets = await state_container.target_service.set_daily_calorie_target(
            user_id, payload.daily_calorie_target
        )
        return _target_payload(targets)

    @app.get("/users/{user_id}/scores/week")
    async def weekly_score(
        user_id: str,
        request: Request,
        reference: str,
        offset: int = 0,
    ) -> dict[str, object]:
        """Score the Monday..Sunday week holding `reference`, moved by `offset`.

        The caller supplies its own local day so future days are judged
        against the user's calendar rather than the server clock.
        """
        state_container: AppContainer = request.app.state.container
        reference_date = parse_day_key(reference)
        report = await state_container.scoring_service.score_week(
            user_id, reference_date, week_offset=offset
        )
        return _score_payload(report)

    return app


async def event_stream(
    subscription: Subscription, encode: Callable[[object], dict[str, object]]
) -> AsyncIterator[str]:
    """Format subscription snapshots as server-sent events.

    The subscription is cancelled when the client goes away.
    """
    try:
        async for snapshot in subscription:
            yield f"data: {json.dumps(encode(snapshot))}\n\n"
    finally:
        subscription.cancel()


def _status_for(exc: DiaryError) -> int:
    for error_type, status_code in _STATUS_BY_ERROR.items():
        if isinstance(exc, error_type):
            return status_code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def _meal_payload(meal: Meal) -> dict[str, object]:
    return {
        "id": meal.id,
        "name": meal.name,
        "variant": meal.variant,
        "created_at": meal.created_at.isoformat() if meal.created_at else None,
        "updated_at": meal.updated_at.isoformat() if meal.updated_at else None,
    }


def _food_payload(food: FoodEntry) -> dict[str, object]:
    return {
        "id": food.id,
        "meal_id": food.meal_id,
        "name": food.name,
        "calories": food.calories,
        "amount": food.amount,
        "unit": food.unit,
        "protein_g": food.protein_g,
        "carbs_g": food.carbs_g,
        "fat_g": food.fat_g,
        "created_at": food.created_at.isoformat() if food.created_at else None,
    }


def _meal_with_foods_payload(item: MealWithFoods) -> dict[str, object]:
    return {
        **_meal_payload(item.meal),
        "total_calories": item.total_calories,
        "foods": [_food_payload(food) for food in item.foods],
    }


def _summary_payload(summary: DailySummary | None) -> dict[str, object] | None:
    if summary is None:
        return None
    return {
        "day": day_key(summary.day),
        "total_calories": summary.total_calories,
        "total_protein_g": summary.total_protein_g,
        "total_carbs_g": summary.total_carbs_g,
        "total_fat_g": summary.total_fat_g,
        "meal_calories": summary.meal_calories,
        "updated_at": summary.updated_at.isoformat() if summary.updated_at else None,
    }


def _target_payload(targets: NutritionTarget) -> dict[str, object]:
    return {
        "daily_calorie_target": targets.daily_calorie_target,
        "protein_target_g": targets.protein_target_g,
        "carbs_target_g": targets.carbs_target_g,
        "fat_target_g": targets.fat_target_g,
    }


def _score_payload(report: WeeklyScoreReport) -> dict[str, object]:
    return {
        "week": [day_key(day) for day in report.week],
        "score": round(report.score, 1),
        "message": report.message,
        "daily": {day_key(day): round(score, 1) for day, score in report.daily.items()},
        "targets": _target_payload(report.targets),
    }
