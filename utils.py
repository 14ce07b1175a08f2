"""Utility functions."""
import os
import secrets
import tempfile
from pathlib import Path

SLUG_ALPHABET = "abcdefghijklmnopqrstuvwxyz0123456789"


def is_valid_slug(slug: str) -> bool:
    """Check slug is 2-10 chars of lowercase letters and digits."""
    if not 2 <= len(slug) <= 10:
        return False
    return all(c in SLUG_ALPHABET for c in slug)


def generate_slug(length: int = 5) -> str:
    """Generate a random slug from SLUG_ALPHABET."""
    return "".join(secrets.choice(SLUG_ALPHABET) for _ in range(length))


def atomic_write(path: Path, data: bytes) -> None:
    """Write data to path through a temp file + rename so readers never see a partial file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        # mkstemp creates 0600
        os.chmod(tmp, 0o644)
        os.replace(tmp, path)
    except BaseException:
        try:
            os.unlink(tmp)
        except FileNotFoundError:
            pass
        raise
