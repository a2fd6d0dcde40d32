import logging
from pathlib import Path

from sqlmodel import SQLModel, create_engine, Session
from ..core.config import settings

logger = logging.getLogger(__name__)

engine = create_engine(settings.DATABASE_URL, echo=False)

def _ensure_sqlite_dir(url: str) -> None:
    if url.startswith("sqlite:///") and ":memory:" not in url:
        Path(url[len("sqlite:///"):]).parent.mkdir(parents=True, exist_ok=True)

def init_db() -> None:
    from . import models  # noqa: F401
    from .migrations import backfill_task_context

    _ensure_sqlite_dir(settings.DATABASE_URL)
    SQLModel.metadata.create_all(engine)
    with Session(engine) as session:
        backfill_task_context(session, settings.DEFAULT_CONTEXT)
    logger.info("Database ready at %s", engine.url)

def get_session():
    with Session(engine) as session:
        yield session
