"""Origin store: on-disk layout of uploaded images and their precomputed variants."""
import logging
import shutil
from pathlib import Path

from utils import atomic_write

ORIGINAL = "original"
BACKUP = "backup"

logger = logging.getLogger(__name__)


class NotFoundError(LookupError):
    """Origin file for a slug does not exist."""


class OriginStore:
    """Maps slugs to {root}/{slug[:2]}/{slug}/{name}.webp."""

    def __init__(self, data_dir: Path):
        self.base_dir = Path(data_dir) / "images"
        self.base_dir.mkdir(parents=True, exist_ok=True)

    def dir_path(self, slug: str) -> Path:
        return self.base_dir / slug[:2] / slug

    def path(self, slug: str, name: str) -> Path:
        return self.dir_path(slug) / f"{name}.webp"

    def origin_path(self, slug: str) -> Path:
        return self.path(slug, ORIGINAL)

    def origin_mod_time(self, slug: str) -> int:
        """Origin modification time in nanoseconds."""
        try:
            return self.origin_path(slug).stat().st_mtime_ns
        except FileNotFoundError as e:
            raise NotFoundError(slug) from e

    def read(self, slug: str, name: str) -> bytes:
        try:
            return self.path(slug, name).read_bytes()
        except FileNotFoundError as e:
            raise NotFoundError(f"{slug}/{name}") from e

    def read_origin(self, slug: str) -> bytes:
        return self.read(slug, ORIGINAL)

    def save(self, slug: str, name: str, data: bytes) -> None:
        atomic_write(self.path(slug, name), data)

    def delete(self, slug: str) -> None:
        shutil.rmtree(self.dir_path(slug), ignore_errors=True)
        logger.info("deleted files for %s", slug)

    def exists(self, slug: str) -> bool:
        return self.dir_path(slug).is_dir()

    def save_backup(self, slug: str) -> None:
        """Copy the current original aside before the first edit."""
        self.save(slug, BACKUP, self.read_origin(slug))

    def has_backup(self, slug: str) -> bool:
        return self.path(slug, BACKUP).is_file()

    def read_backup(self, slug: str) -> bytes:
        return self.read(slug, BACKUP)

    def restore_from_backup(self, slug: str) -> bytes:
        """Put the backup back in place of the original and return its bytes."""
        data = self.read_backup(slug)
        self.save(slug, ORIGINAL, data)
        return data

    def disk_usage(self) -> int:
        """Total bytes of all files under the image root."""
        total = 0
        for p in self.base_dir.rglob("*"):
            try:
                if p.is_file():
                    total += p.stat().st_size
            except OSError:
                # removed by the cleanup daemon mid-walk
                continue
        return total
