"""
WebP Vault – image hosting with on-demand resizing (FastAPI + SQLite)

Quick start
-----------
1) python -m venv .venv && source .venv/bin/activate
2) pip install -e .
3) python app.py  # serves on PORT from the environment or .env (default 8080)
4) curl -F file=@photo.jpg http://localhost:8080/upload

Notes
-----
• Originals and upload-time variants live under DATA_DIR/images/<ab>/<slug>/.
• Dynamic widths (800/1200/1600/2400) are resized on first request and cached
  under CACHE_DIR/<ab>/<slug>_<width>.webp; idle cache files are swept by the janitor.
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from config import Settings, get_settings
from coordinator import ResizeCoordinator
from database import init_db, make_engine
from janitor import CacheJanitor
from log_setup import init_logging
from resolver import SizeResolver
from routes import (
    delete_image,
    edit_image,
    health,
    restore_image,
    serve_original,
    serve_sized,
    upload,
)
from size_cache import SizeCache
from storage import OriginStore

logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the app and its services; everything shared lives on app.state."""
    settings = settings or get_settings()
    init_logging(settings.LOG_DIR)

    engine = make_engine(settings.db_path)
    init_db(engine)
    store = OriginStore(settings.DATA_DIR)
    cache = SizeCache(settings.CACHE_DIR)
    coordinator = ResizeCoordinator(store, cache)
    janitor = CacheJanitor(
        cache,
        max_idle_seconds=settings.CACHE_MAX_IDLE_HOURS * 3600,
        interval_seconds=settings.JANITOR_INTERVAL_SECONDS,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        janitor.start()
        yield
        janitor.stop()

    app = FastAPI(title="WebP Vault", lifespan=lifespan)
    app.state.settings = settings
    app.state.engine = engine
    app.state.store = store
    app.state.cache = cache
    app.state.coordinator = coordinator
    app.state.resolver = SizeResolver(store, coordinator)
    app.state.janitor = janitor

    # Routes
    app.get("/health")(health)
    app.post("/upload")(upload)

    # Edit actions - MUST come before the sized image route
    app.post("/i/{slug}/edit")(edit_image)
    app.post("/i/{slug}/restore")(restore_image)
    app.delete("/i/{slug}")(delete_image)

    # Image files
    app.get("/i/{slug}")(serve_original)
    app.get("/i/{slug}/{size}")(serve_sized)

    logger.info("data_dir=%s cache_dir=%s", settings.DATA_DIR, settings.CACHE_DIR)
    return app


if __name__ == "__main__":
    # Allow `python app.py 8000`
    settings = get_settings()
    port = int(sys.argv[1]) if len(sys.argv) > 1 else settings.PORT
    print(f"→ Open http://localhost:{port}")
    import uvicorn

    uvicorn.run("app:create_app", factory=True, host=settings.HOST, port=port)
