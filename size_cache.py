"""Disk cache for dynamically requested widths.

A cache file is valid while its mtime is not older than the origin's. Hits
refresh the mtime so the janitor only evicts files nobody has asked for
recently. Nothing here raises on I/O failure: callers get a boolean outcome
and serve the bytes they already hold.
"""
from __future__ import annotations

import logging
import os
import time
from pathlib import Path
from typing import Optional

from utils import atomic_write

logger = logging.getLogger(__name__)


class SizeCache:
    def __init__(self, cache_dir: Path):
        self.cache_dir = Path(cache_dir)

    def cache_path(self, slug: str, width: int) -> Path:
        return self.cache_dir / slug[:2] / f"{slug}_{width}.webp"

    def is_valid(self, path: Path, origin_mtime_ns: int) -> bool:
        try:
            st = path.stat()
        except OSError:
            return False
        return st.st_mtime_ns >= origin_mtime_ns

    def touch(self, path: Path) -> bool:
        """Set mtime to now; failure only shifts janitor timing."""
        try:
            os.utime(path)
        except OSError as e:
            logger.warning("cache touch failed path=%s: %s", path, e)
            return False
        return True

    def write(self, path: Path, data: bytes) -> bool:
        """Atomically store data at path. Returns False if the cache was not updated."""
        try:
            atomic_write(path, data)
        except OSError as e:
            logger.warning("cache write failed path=%s: %s", path, e)
            return False
        return True

    def sweep(self, max_idle_seconds: float, now: Optional[float] = None) -> int:
        """Delete cache files not touched within max_idle_seconds. Returns count removed."""
        if not self.cache_dir.is_dir():
            return 0
        cutoff = (time.time() if now is None else now) - max_idle_seconds
        removed = 0
        for p in self.cache_dir.glob("*/*"):
            try:
                if p.stat().st_mtime < cutoff:
                    p.unlink()
                    removed += 1
            except FileNotFoundError:
                continue
            except OSError as e:
                logger.warning("cache sweep failed path=%s: %s", p, e)
        return removed

    def discard(self, path: Path) -> bool:
        """Remove a cache file that must not be served."""
        try:
            path.unlink()
        except FileNotFoundError:
            return True
        except OSError as e:
            logger.warning("cache discard failed path=%s: %s", path, e)
            return False
        return True
