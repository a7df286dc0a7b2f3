import asyncio
from typing import Dict, Optional

from geotrail.models.geocode import GeocodeResult


class InMemoryCache:
    """
    Session-lifetime cache of resolved cities, keyed by normalized city name.

    Besides finished results it tracks the task resolving each key, so that
    concurrent lookups for the same city await one resolution instead of
    starting their own. Nothing is ever evicted.
    """

    def __init__(self):
        self._results: Dict[str, GeocodeResult] = {}
        self._pending: Dict[str, asyncio.Task] = {}

    def get(self, key: str) -> Optional[GeocodeResult]:
        return self._results.get(key)

    def put(self, key: str, result: GeocodeResult) -> None:
        self._results[key] = result

    def has(self, key: str) -> bool:
        return key in self._results

    def remove(self, key: str) -> None:
        self._results.pop(key, None)

    def get_pending(self, key: str) -> Optional[asyncio.Task]:
        task = self._pending.get(key)
        if task is not None and task.done():
            return None
        return task

    def set_pending(self, key: str, task: asyncio.Task) -> None:
        self._pending[key] = task

    def clear_pending(self, key: str, task: Optional[asyncio.Task] = None) -> None:
        # Only drop the entry if it still belongs to ``task``; a forced refresh
        # may have replaced it in the meantime.
        if task is None or self._pending.get(key) is task:
            self._pending.pop(key, None)

    def clear(self) -> None:
        self._results.clear()
        self._pending.clear()

    def __len__(self):
        return len(self._results)
