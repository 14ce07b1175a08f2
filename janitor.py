"""Background eviction of idle size-cache files."""
import logging
import threading
from typing import Optional

from size_cache import SizeCache

logger = logging.getLogger(__name__)


class CacheJanitor:
    def __init__(self, cache: SizeCache, max_idle_seconds: float, interval_seconds: float):
        self.cache = cache
        self.max_idle_seconds = max_idle_seconds
        self.interval_seconds = interval_seconds
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def run_once(self) -> int:
        removed = self.cache.sweep(self.max_idle_seconds)
        if removed:
            logger.info("janitor: removed %d idle cache files", removed)
        return removed

    def _loop(self) -> None:
        while not self._stop.is_set():
            try:
                self.run_once()
            except OSError as e:
                logger.warning("janitor: sweep failed: %s", e)
            self._stop.wait(self.interval_seconds)

    def start(self) -> None:
        if self.interval_seconds <= 0 or self._thread is not None:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="cache-janitor", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=5)
            self._thread = None
