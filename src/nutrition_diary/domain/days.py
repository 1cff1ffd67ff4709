"""Calendar day keys."""

from datetime import date, timedelta

from nutrition_diary.errors import ValidationError

DAYS_PER_WEEK = 7


def day_key(day: date) -> str:
    """Return the `yyyy-MM-dd` key used to address a day."""
    return day.isoformat()


def parse_day_key(raw: str) -> date:
    """Parse a `yyyy-MM-dd` key."""
    try:
        return date.fromisoformat(raw)
    except ValueError as exc:
        raise ValidationError(f"Invalid day key: {raw!r}") from exc


def week_start(day: date) -> date:
    """Return the Monday of the week containing `day`."""
    return day - timedelta(days=day.weekday())


def week_dates(reference: date, week_offset: int = 0) -> list[date]:
    """Return Monday..Sunday of the week `week_offset` weeks from `reference`."""
    monday = week_start(reference) + timedelta(weeks=week_offset)
    return [monday + timedelta(days=offset) for offset in range(DAYS_PER_WEEK)]
