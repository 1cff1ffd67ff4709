"""Typed errors raised by the diary core."""

from collections.abc import Sequence


class DiaryError(Exception):
    """Base class for diary errors."""


class ValidationError(DiaryError):
    """Input was rejected, e.g. an empty meal name."""


class DuplicateNameError(DiaryError):
    """A meal with the same name (case-insensitive) already exists that day."""

    def __init__(self, name: str) -> None:
        super().__init__(f"A meal named '{name}' already exists")
        self.name = name


class NotFoundError(DiaryError):
    """The addressed meal, food entry or day does not exist."""


class StoreUnavailable(DiaryError):  # noqa: N818
    """The persistence layer could not be reached or rejected the call."""


class PartialAggregationError(DiaryError):
    """Some entries were malformed and counted as zero during a recompute.

    Reported alongside the recomputed summary, never raised by it.
    """

    def __init__(self, paths: Sequence[str]) -> None:
        super().__init__(f"{len(paths)} malformed entries defaulted to zero")
        self.paths = list(paths)
