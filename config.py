"""Application settings."""
from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Load env from .env file
    model_config = {"env_file": ".env", "extra": "ignore"}

    HOST: str = "127.0.0.1"
    PORT: int = 8080
    DATA_DIR: Path = Path("./data")
    LOG_DIR: Path = Path("./data/logs")
    CACHE_DIR: Path = Path("/tmp/webp-vault-cache")
    MAX_FILE_SIZE_MB: int = 20
    BASE_URL: str = ""  # empty: derive from request host

    # Cache janitor
    CACHE_MAX_IDLE_HOURS: float = 24.0
    JANITOR_INTERVAL_SECONDS: float = 600.0  # 0 disables the background thread

    @property
    def max_file_size(self) -> int:
        return self.MAX_FILE_SIZE_MB * 1024 * 1024

    @property
    def db_path(self) -> Path:
        return self.DATA_DIR / "images.db"


@lru_cache
def get_settings() -> Settings:
    return Settings()
