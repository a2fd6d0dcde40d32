import logging

from sqlmodel import Session, col, select

from .models import Context, Task

logger = logging.getLogger(__name__)


def backfill_task_context(session: Session, default: str = Context.HOUSE.value) -> int:
    """Give legacy task rows without a context the default one.

    Returns the number of rows touched. Safe to run repeatedly.
    """
    Context(default)
    legacy = session.exec(select(Task).where(col(Task.context).is_(None))).all()
    for task in legacy:
        task.context = default
        session.add(task)
    session.commit()
    if legacy:
        logger.info("Backfilled context=%s on %d legacy task rows", default, len(legacy))
    return len(legacy)
