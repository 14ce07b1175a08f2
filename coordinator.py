"""Single-flight resize coordination on top of the origin store and size cache."""
from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Hashable, Optional

import transcoder
from size_cache import SizeCache
from storage import NotFoundError, OriginStore

logger = logging.getLogger(__name__)


class _Call:
    __slots__ = ("done", "result", "error", "dups")

    def __init__(self):
        self.done = threading.Event()
        self.dups = 0
        self.result: Any = None
        self.error: Optional[BaseException] = None


class SingleFlight:
    """Run at most one fn per key at a time; concurrent callers share its outcome."""

    def __init__(self):
        self._lock = threading.Lock()
        self._calls: dict[Hashable, _Call] = {}

    def do(self, key: Hashable, fn: Callable[[], Any]) -> tuple[Any, bool]:
        """Return (result, shared). shared is True when more than one caller got this result."""
        with self._lock:
            call = self._calls.get(key)
            leader = call is None
            if leader:
                call = self._calls[key] = _Call()
            else:
                call.dups += 1

        if not leader:
            call.done.wait()
            if call.error is not None:
                raise call.error
            return call.result, True

        try:
            call.result = fn()
        except BaseException as e:
            call.error = e
            raise
        finally:
            with self._lock:
                del self._calls[key]
            call.done.set()
        return call.result, call.dups > 0

    def waiters(self, key: Hashable) -> int:
        """Number of callers blocked on the in-flight call for key."""
        with self._lock:
            call = self._calls.get(key)
            return call.dups if call else 0

    def in_flight(self) -> int:
        with self._lock:
            return len(self._calls)


class Outcome(str, Enum):
    CACHE_HIT = "cache-hit"
    FRESH = "fresh"
    PASSTHROUGH = "passthrough"


@dataclass(frozen=True)
class ResizeResult:
    outcome: Outcome
    path: Optional[Path] = None
    data: Optional[bytes] = None
    width: int = 0
    height: int = 0


class ResizeCoordinator:
    """Serve (slug, width) resizes from cache, computing each missing key once."""

    def __init__(
        self,
        store: OriginStore,
        cache: SizeCache,
        transcode: Callable[[bytes, int], transcoder.TranscodeResult] = transcoder.transcode,
        probe: Callable[[bytes], tuple[int, int]] = transcoder.probe_size,
    ):
        self.store = store
        self.cache = cache
        self._transcode = transcode
        self._probe = probe
        self._flight = SingleFlight()

    def in_flight(self) -> int:
        return self._flight.in_flight()

    def resize(self, slug: str, width: int) -> ResizeResult:
        """Raises storage.NotFoundError or transcoder.TranscodeError."""
        origin_mtime = self.store.origin_mod_time(slug)
        cache_file = self.cache.cache_path(slug, width)
        if self.cache.is_valid(cache_file, origin_mtime):
            logger.info("cache hit slug=%s size=%d path=%s", slug, width, cache_file)
            self.cache.touch(cache_file)
            return ResizeResult(Outcome.CACHE_HIT, path=cache_file)

        result, shared = self._flight.do(
            (slug, width), lambda: self._compute(slug, width, cache_file)
        )
        if shared and result.outcome is Outcome.CACHE_HIT:
            self.cache.touch(cache_file)
        return result

    def _origin_changed(self, slug: str, origin_mtime: int) -> bool:
        try:
            return self.store.origin_mod_time(slug) != origin_mtime
        except NotFoundError:
            return True

    def _compute(self, slug: str, width: int, cache_file: Path) -> ResizeResult:
        start = time.monotonic()

        # another request may have finished the write before we got the key
        origin_mtime = self.store.origin_mod_time(slug)
        if self.cache.is_valid(cache_file, origin_mtime):
            logger.info("cache hit slug=%s size=%d path=%s", slug, width, cache_file)
            self.cache.touch(cache_file)
            return ResizeResult(Outcome.CACHE_HIT, path=cache_file)

        data = self.store.read_origin(slug)
        try:
            orig_w, orig_h = self._probe(data)
            if width >= orig_w:
                return ResizeResult(
                    Outcome.PASSTHROUGH,
                    path=self.store.origin_path(slug),
                    data=data,
                    width=orig_w,
                    height=orig_h,
                )
            resized = self._transcode(data, width)
        except transcoder.TranscodeError as e:
            logger.error(
                "resize error slug=%s size=%d dur_ms=%d: %s",
                slug,
                width,
                (time.monotonic() - start) * 1000,
                e,
            )
            raise

        # an origin replaced mid-resize would leave a cache file newer than it
        wrote = False
        if self._origin_changed(slug, origin_mtime):
            logger.info("origin changed during resize slug=%s size=%d, not caching", slug, width)
        else:
            wrote = self.cache.write(cache_file, resized.data)
            if wrote and self._origin_changed(slug, origin_mtime):
                self.cache.discard(cache_file)
                wrote = False
        logger.info(
            "resize generated slug=%s size=%d target=%d dur_ms=%d cache=miss write=%s",
            slug,
            width,
            resized.width,
            (time.monotonic() - start) * 1000,
            str(wrote).lower(),
        )
        return ResizeResult(
            Outcome.FRESH,
            path=cache_file if wrote else None,
            data=resized.data,
            width=resized.width,
            height=resized.height,
        )
