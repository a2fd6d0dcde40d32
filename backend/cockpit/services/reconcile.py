"""
Task <-> focus block reconciliation.

A block points at its task through ``FocusBlock.task_id`` and the task points
back through ``Task.scheduled_block_id``. Nothing in the database ties the two
together, so every block write is followed by a reconciliation step here.

The block write is always committed first and is the ground truth. The task
side is best-effort: failures are logged and handed back to the caller as a
warning, never raised, and never undo the block write. Every step can be
re-run safely, and ``heal_task_link`` repairs a task left stale by a failure.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from ..core.config import settings
from ..db.models import FocusBlock, Task

logger = logging.getLogger(__name__)


@dataclass
class ReconcileResult:
    task_sync_error: Optional[str] = None


@dataclass(frozen=True)
class BlockRef:
    """The link-relevant fields of a block, captured before it is deleted."""

    id: int
    tenant_id: str
    user_id: str
    task_id: Optional[int]

    @classmethod
    def of(cls, block: FocusBlock) -> "BlockRef":
        return cls(block.id, block.tenant_id, block.user_id, block.task_id)


def block_duration_minutes(block: FocusBlock, minimum: Optional[int] = None) -> int:
    floor = settings.MIN_BLOCK_MINUTES if minimum is None else minimum
    minutes = round((block.end_time - block.start_time).total_seconds() / 60)
    return max(floor, minutes)


def _linked_task(session: Session, tenant_id: str, user_id: str, task_id: int) -> Optional[Task]:
    return session.exec(
        select(Task)
        .where(Task.tenant_id == tenant_id)
        .where(Task.owner_id == user_id)
        .where(Task.id == task_id)
    ).first()


def _apply_block(task: Task, block: FocusBlock) -> None:
    task.scheduled_block_id = block.id
    task.do_date = block.start_time.date()
    task.duration_minutes = block_duration_minutes(block)


def reconcile_block_update(session: Session, block: FocusBlock) -> ReconcileResult:
    """Move the linked task onto the (already saved) block's day and length."""
    if block.task_id is None or block.start_time is None or block.end_time is None:
        return ReconcileResult()

    block_id, task_id = block.id, block.task_id
    try:
        task = _linked_task(session, block.tenant_id, block.user_id, task_id)
        if task is None:
            logger.warning("Focus block %s links missing task %s", block_id, task_id)
            return ReconcileResult(task_sync_error=f"Linked task {task_id} not found")
        _apply_block(task, block)
        session.add(task)
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        logger.error("Error syncing task %s with focus block %s: %s", task_id, block_id, e)
        return ReconcileResult(task_sync_error=str(e))
    return ReconcileResult()


def release_task(session: Session, tenant_id: str, user_id: str, block_id: int, task_id: Optional[int]) -> None:
    """Clear ``task_id``'s link to ``block_id`` if it still holds it. Best-effort."""
    if task_id is None:
        return
    try:
        task = _linked_task(session, tenant_id, user_id, task_id)
        if task is None or task.scheduled_block_id != block_id:
            return
        task.scheduled_block_id = None
        session.add(task)
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        logger.error("Error clearing task %s scheduled_block_id: %s", task_id, e)


def reconcile_block_delete(session: Session, block: BlockRef) -> None:
    """Unschedule the task of a block that has just been deleted."""
    release_task(session, block.tenant_id, block.user_id, block.id, block.task_id)


def heal_task_link(session: Session, task: Task) -> Task:
    """Bring one task back in line with the block it references, if any."""
    if task.scheduled_block_id is None:
        return task
    block = session.exec(
        select(FocusBlock)
        .where(FocusBlock.tenant_id == task.tenant_id)
        .where(FocusBlock.user_id == task.owner_id)
        .where(FocusBlock.id == task.scheduled_block_id)
    ).first()
    if block is None or block.task_id != task.id:
        logger.info("Task %s pointed at missing block %s; unscheduling", task.id, task.scheduled_block_id)
        task.scheduled_block_id = None
    else:
        _apply_block(task, block)
    session.add(task)
    session.commit()
    session.refresh(task)
    return task
