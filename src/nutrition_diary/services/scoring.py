"""Adherence scoring against calorie and macro targets."""

import math
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date
from statistics import fmean

from nutrition_diary.domain.days import week_dates
from nutrition_diary.domain.summary import DailySummary
from nutrition_diary.domain.targets import NutritionTarget
from nutrition_diary.services.aggregation import AggregationService
from nutrition_diary.services.targets import TargetService

MIN_SCORE = 0.0
MAX_SCORE = 100.0

CALORIE_BAND = (0.95, 1.05)
MACRO_BAND = (0.90, 1.10)
# Score points lost per unit of ratio above the band.
OVERSHOOT_PENALTY = 200.0

CALORIE_WEIGHT = 0.70
MACRO_WEIGHT = 0.30

_MESSAGES = (
    (90.0, "You're doing great this week!"),
    (75.0, "You're on track! Keep it up!"),
    (60.0, "Good progress! You're getting there."),
)
_FALLBACK_MESSAGE = "Keep going! Every day is a new opportunity."


def band_score(consumed: float, target: float, low: float, high: float) -> float:
    """Score a consumed/target ratio against a tolerance band."""
    ratio = consumed / target
    if ratio < low:
        score = MAX_SCORE * ratio / low
    elif ratio > high:
        score = MAX_SCORE - (ratio - high) * OVERSHOOT_PENALTY
    else:
        score = MAX_SCORE
    return _clamp(score)


def daily_score(
    consumed_calories: float,
    consumed_protein: float,
    consumed_carbs: float,
    consumed_fat: float,
    targets: NutritionTarget,
) -> float:
    """Return a 0-100 adherence score for one day.

    Calories weigh 70 % and the mean macro score 30 %. When only one of the
    two has a target, that one is the score; with no targets the score is 0.
    """
    calorie_score = None
    if _is_defined(targets.daily_calorie_target):
        calorie_score = band_score(
            consumed_calories, targets.daily_calorie_target, *CALORIE_BAND
        )

    macro_scores = [
        band_score(consumed, target, *MACRO_BAND)
        for consumed, target in (
            (consumed_protein, targets.protein_target_g),
            (consumed_carbs, targets.carbs_target_g),
            (consumed_fat, targets.fat_target_g),
        )
        if _is_defined(target)
    ]
    macro_score = fmean(macro_scores) if macro_scores else None

    if calorie_score is not None and macro_score is not None:
        score = CALORIE_WEIGHT * calorie_score + MACRO_WEIGHT * macro_score
    elif calorie_score is not None:
        score = calorie_score
    elif macro_score is not None:
        score = macro_score
    else:
        return MIN_SCORE
    return _clamp(score)


def summary_score(summary: DailySummary, targets: NutritionTarget) -> float:
    return daily_score(
        summary.total_calories,
        summary.total_protein_g,
        summary.total_carbs_g,
        summary.total_fat_g,
        targets,
    )


def daily_scores(
    daily_summaries: Mapping[date, DailySummary | None],
    targets: NutritionTarget,
    today: date,
    is_current_week: bool,
) -> dict[date, float]:
    """Score each counted day of a window.

    Future days of the current week and days with nothing logged are left
    out rather than scored as zero.
    """
    scores: dict[date, float] = {}
    for day in sorted(daily_summaries):
        if is_current_week and day > today:
            continue
        summary = daily_summaries[day]
        if summary is None or not summary.has_consumption:
            continue
        scores[day] = summary_score(summary, targets)
    return scores


def weekly_score(
    daily_summaries: Mapping[date, DailySummary | None],
    targets: NutritionTarget,
    today: date,
    is_current_week: bool,
) -> float:
    """Average the daily scores of a week; 0 when no day counts."""
    scores = daily_scores(daily_summaries, targets, today, is_current_week)
    if not scores:
        return MIN_SCORE
    return fmean(scores.values())


def score_message(score: float) -> str:
    for threshold, message in _MESSAGES:
        if score >= threshold:
            return message
    return _FALLBACK_MESSAGE


@dataclass(frozen=True)
class WeeklyScoreReport:
    """Scores for one Monday..Sunday week."""

    week: list[date]
    score: float
    message: str
    daily: dict[date, float]
    targets: NutritionTarget


@dataclass
class ScoringService:
    """Loads summaries and targets and scores a week."""

    aggregation: AggregationService
    targets: TargetService

    async def score_week(
        self, user_id: str, reference_date: date, week_offset: int = 0
    ) -> WeeklyScoreReport:
        """Score the week `week_offset` weeks away from `reference_date`.

        `reference_date` is "today" for the caller; days after it are not
        counted when it falls inside the scored week.
        """
        week = week_dates(reference_date, week_offset)
        summaries = await self.aggregation.get_summaries(user_id, week)
        targets = await self.targets.get_targets(user_id)
        is_current_week = reference_date in week
        daily = daily_scores(summaries, targets, reference_date, is_current_week)
        score = fmean(daily.values()) if daily else MIN_SCORE
        return WeeklyScoreReport(
            week=week,
            score=score,
            message=score_message(score),
            daily=daily,
            targets=targets,
        )


def _is_defined(target: float | None) -> bool:
    return target is not None and math.isfinite(target) and target > 0


def _clamp(score: float) -> float:
    return max(MIN_SCORE, min(MAX_SCORE, score))
