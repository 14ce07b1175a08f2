"""Map a size token from the URL to a precomputed file, the origin, or a coordinated resize."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from coordinator import ResizeCoordinator, ResizeResult
from storage import ORIGINAL, NotFoundError, OriginStore

CONTENT_TYPE = "image/webp"
CACHE_CONTROL = "public, max-age=31536000, immutable"

# Widths resized on demand and cached
DYNAMIC_SIZES = {"800": 800, "1200": 1200, "1600": 1600, "2400": 2400}
# Names served straight from the upload-time variant files
PRECOMPUTED = {"thumb", "200", "1920"}
ORIGIN_ALIASES = {ORIGINAL, "max"}

KIND_ORIGIN = "origin"
KIND_PRECOMPUTED = "precomputed"
KIND_DYNAMIC = "dynamic"


class UnsupportedSizeError(LookupError):
    """Size token is not one the server will produce."""


@dataclass(frozen=True)
class SizeRequest:
    kind: str
    name: str
    width: int = 0


@dataclass(frozen=True)
class ResolvedImage:
    path: Optional[Path] = None
    data: Optional[bytes] = None
    resize: Optional[ResizeResult] = None
    content_type: str = CONTENT_TYPE
    cache_control: str = CACHE_CONTROL


def parse_size_token(token: str) -> SizeRequest:
    name = token[: -len(".webp")] if token.endswith(".webp") else token
    if name in ORIGIN_ALIASES:
        return SizeRequest(KIND_ORIGIN, ORIGINAL)
    if name in DYNAMIC_SIZES:
        return SizeRequest(KIND_DYNAMIC, name, DYNAMIC_SIZES[name])
    if name in PRECOMPUTED:
        return SizeRequest(KIND_PRECOMPUTED, name)
    raise UnsupportedSizeError(token)


class SizeResolver:
    """Bytes are read here so a file removed after the lookup is a miss, not a broken response."""

    def __init__(self, store: OriginStore, coordinator: ResizeCoordinator):
        self.store = store
        self.coordinator = coordinator

    def resolve(self, slug: str, token: str = ORIGINAL) -> ResolvedImage:
        """Raises UnsupportedSizeError, NotFoundError or TranscodeError."""
        req = parse_size_token(token)
        if req.kind == KIND_DYNAMIC:
            return self._resize(slug, req.width)

        if req.kind == KIND_PRECOMPUTED:
            # variants are only served while their origin exists
            self.store.origin_mod_time(slug)
        data = self.store.read(slug, req.name)
        return ResolvedImage(path=self.store.path(slug, req.name), data=data)

    def _resize(self, slug: str, width: int) -> ResolvedImage:
        for _ in range(2):
            result = self.coordinator.resize(slug, width)
            if result.data is not None:
                return ResolvedImage(path=result.path, data=result.data, resize=result)
            try:
                data = result.path.read_bytes()
            except FileNotFoundError:
                # evicted after the validity check, resize again
                continue
            return ResolvedImage(path=result.path, data=data, resize=result)
        raise NotFoundError(f"{slug}/{width}")
