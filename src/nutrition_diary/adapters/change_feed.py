"""In-process change notifications for store adapters."""

import asyncio
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from nutrition_diary.services.store import StoreWatch, is_within

_logger = logging.getLogger(__name__)


@dataclass(eq=False)
class QueueWatch(StoreWatch):
    """Watch backed by an unbounded asyncio queue of changed paths."""

    path: str
    feed: "ChangeFeed"
    _queue: asyncio.Queue = field(default_factory=asyncio.Queue)
    _closed: bool = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def next_change(self) -> frozenset[str] | None:
        """Return the next batch of changed paths, or None once closed."""
        if self._closed:
            return None
        first = await self._queue.get()
        if first is None:
            return None
        changed = {first}
        while True:
            try:
                item = self._queue.get_nowait()
            except asyncio.QueueEmpty:
                break
            if item is not None:
                changed.add(item)
        return frozenset(changed)

    def push(self, path: str) -> None:
        if not self._closed:
            self._queue.put_nowait(path)

    def close(self) -> None:
        """Unregister the watch and wake any pending reader."""
        if self._closed:
            return
        self._closed = True
        self.feed.unregister(self)
        self._queue.put_nowait(None)


@dataclass
class ChangeFeed:
    """Fans out committed writes to every watch covering the written paths."""

    _watches: list[QueueWatch] = field(default_factory=list)

    def watch(self, path: str) -> QueueWatch:
        """Register a watch on `path` and everything below it."""
        watch = QueueWatch(path=path, feed=self)
        self._watches.append(watch)
        _logger.debug("Watch opened: path=%s active=%s", path, len(self._watches))
        return watch

    def unregister(self, watch: QueueWatch) -> None:
        if watch in self._watches:
            self._watches.remove(watch)
            _logger.debug(
                "Watch closed: path=%s active=%s", watch.path, len(self._watches)
            )

    def publish(self, paths: Iterable[str]) -> None:
        """Notify watches about committed writes."""
        changed = list(paths)
        for watch in list(self._watches):
            for path in changed:
                if is_within(path, watch.path):
                    watch.push(path)

    def close_all(self) -> None:
        for watch in list(self._watches):
            watch.close()

    @property
    def active_watches(self) -> int:
        return len(self._watches)
