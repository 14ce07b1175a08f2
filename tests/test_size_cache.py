"""Tests for the mtime-validated size cache."""

from __future__ import annotations

import os
import time
from pathlib import Path

from size_cache import SizeCache


def _set_mtime(path: Path, seconds: float) -> None:
    os.utime(path, (seconds, seconds))


class TestSizeCache:
    def test_cache_path_is_sharded(self, tmp_path: Path):
        cache = SizeCache(tmp_path)
        assert cache.cache_path("ab12c", 800) == tmp_path / "ab" / "ab12c_800.webp"

    def test_cache_path_does_no_io(self, tmp_path: Path):
        SizeCache(tmp_path / "nowhere").cache_path("ab12c", 800)
        assert not (tmp_path / "nowhere").exists()

    def test_missing_is_invalid(self, cache):
        assert not cache.is_valid(cache.cache_path("ab12c", 800), 0)

    def test_valid_when_newer_or_equal(self, cache):
        path = cache.cache_path("ab12c", 800)
        assert cache.write(path, b"webp")
        mtime = path.stat().st_mtime_ns
        assert cache.is_valid(path, mtime)
        assert cache.is_valid(path, mtime - 1)

    def test_invalid_when_older_than_origin(self, cache):
        path = cache.cache_path("ab12c", 800)
        cache.write(path, b"webp")
        assert not cache.is_valid(path, path.stat().st_mtime_ns + 1)

    def test_write_creates_parents_atomically(self, cache):
        path = cache.cache_path("xy987", 1200)
        assert cache.write(path, b"payload")
        assert path.read_bytes() == b"payload"
        assert [p.name for p in path.parent.iterdir()] == ["xy987_1200.webp"]

    def test_write_failure_is_reported_not_raised(self, tmp_path: Path):
        blocker = tmp_path / "cache"
        blocker.write_bytes(b"a file where the cache dir should be")
        cache = SizeCache(blocker)
        assert cache.write(cache.cache_path("ab12c", 800), b"data") is False

    def test_touch_refreshes_mtime(self, cache):
        path = cache.cache_path("ab12c", 800)
        cache.write(path, b"data")
        _set_mtime(path, time.time() - 86400)
        before = time.time()
        assert cache.touch(path)
        assert path.stat().st_mtime >= before - 1

    def test_touch_missing_is_reported_not_raised(self, cache):
        assert cache.touch(cache.cache_path("ab12c", 800)) is False

    def test_discard(self, cache):
        path = cache.cache_path("ab12c", 800)
        cache.write(path, b"stale")
        assert cache.discard(path) is True
        assert not path.exists()
        assert cache.discard(path) is True

    def test_sweep_removes_only_idle_files(self, cache):
        old = cache.cache_path("ab12c", 800)
        fresh = cache.cache_path("ab12c", 1200)
        cache.write(old, b"old")
        cache.write(fresh, b"fresh")
        _set_mtime(old, time.time() - 3 * 3600)

        assert cache.sweep(max_idle_seconds=3600) == 1
        assert not old.exists()
        assert fresh.exists()

    def test_sweep_without_cache_dir(self, tmp_path: Path):
        assert SizeCache(tmp_path / "missing").sweep(60) == 0
