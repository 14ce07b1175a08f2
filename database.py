"""Database configuration and utilities."""
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from sqlalchemy import func
from sqlalchemy.engine import Engine
from sqlmodel import Session, SQLModel, create_engine, select

from models import Image


def make_engine(db_path: Path) -> Engine:
    """Create the SQLite engine; request threads share it."""
    db_path.parent.mkdir(parents=True, exist_ok=True)
    return create_engine(
        f"sqlite:///{db_path}", connect_args={"check_same_thread": False}
    )


@contextmanager
def get_session(engine: Engine):
    """Get a database session context manager."""
    with Session(engine) as session:
        yield session


def init_db(engine: Engine) -> None:
    """Initialize database tables."""
    SQLModel.metadata.create_all(engine)


def get_image(engine: Engine, slug: str) -> Optional[Image]:
    with get_session(engine) as s:
        return s.exec(select(Image).where(Image.slug == slug)).first()


def slug_exists(engine: Engine, slug: str) -> bool:
    return get_image(engine, slug) is not None


def record_access(engine: Engine, slug: str) -> None:
    """Bump accessed_at and the download counter for a served image."""
    with get_session(engine) as s:
        img = s.exec(select(Image).where(Image.slug == slug)).first()
        if img:
            img.accessed_at = datetime.now(timezone.utc)
            img.downloads += 1
            s.add(img)
            s.commit()


def update_image(engine: Engine, slug: str, **fields) -> None:
    with get_session(engine) as s:
        img = s.exec(select(Image).where(Image.slug == slug)).first()
        if not img:
            return
        for key, value in fields.items():
            setattr(img, key, value)
        s.add(img)
        s.commit()


def delete_image_row(engine: Engine, slug: str) -> None:
    with get_session(engine) as s:
        img = s.exec(select(Image).where(Image.slug == slug)).first()
        if img:
            s.delete(img)
            s.commit()


def total_size(engine: Engine) -> int:
    """Sum of stored bytes across all image rows."""
    with get_session(engine) as s:
        return s.exec(select(func.coalesce(func.sum(Image.file_size), 0))).one()
