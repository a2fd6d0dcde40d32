"""
Moving committed tasks around the calendar: reschedule, defer and uncommit.

Each operation deals with the task's focus block before the task itself, the
same order the focus block routes follow. If the task write then fails, the
task still references a block that is gone, which ``heal_task_link`` clears.
"""
from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta
from typing import Optional

from sqlmodel import Session

from ..core.errors import ValidationError
from ..db import crud
from ..db.models import FocusBlock, Task
from .recurrence import parse_date_only
from .reconcile import BlockRef, reconcile_block_delete, reconcile_block_update

logger = logging.getLogger(__name__)

DEFER_TOMORROW = "tomorrow"
DEFER_NEXT_WEEK = "next_week"
DEFER_SOMEDAY = "someday"

# length of a moved block when the task has no duration of its own
DEFAULT_BLOCK_MINUTES = 30


def resolve_defer_date(defer_to: Optional[str], today: date) -> Optional[date]:
    """Target day for a defer; None means back to the backlog."""
    if not defer_to or defer_to == DEFER_TOMORROW:
        return today + timedelta(days=1)
    if defer_to == DEFER_NEXT_WEEK:
        return today + timedelta(days=7)
    if defer_to == DEFER_SOMEDAY:
        return None
    day = parse_date_only(defer_to)
    if day is None:
        raise ValidationError(
            f"defer_to must be '{DEFER_TOMORROW}', '{DEFER_NEXT_WEEK}', '{DEFER_SOMEDAY}' "
            f"or a YYYY-MM-DD date, got {defer_to!r}"
        )
    return day


def _check_movable(task: Task) -> None:
    if task.is_template:
        raise ValidationError(
            f"Task {task.id} is a recurring template; move one of its occurrences instead"
        )


def _linked_block(session: Session, task: Task) -> Optional[FocusBlock]:
    if task.scheduled_block_id is None:
        return None
    block = crud.find_focus_block(session, task.tenant_id, task.owner_id, task.scheduled_block_id)
    if block is None or block.task_id != task.id:
        return None
    return block


def _drop_block(session: Session, block: FocusBlock) -> None:
    ref = BlockRef.of(block)
    crud.delete_focus_block(session, block)
    reconcile_block_delete(session, ref)


def reschedule_task(
    session: Session,
    task: Task,
    new_date: date,
    new_time: Optional[time],
    now: datetime,
    reason: Optional[str] = None,
) -> Task:
    """Move a task to ``new_date``.

    With ``new_time`` a linked block is moved to that UTC time of day, keeping
    the task's duration. Without it the block is removed and the task is left
    unscheduled on the new day.
    """
    _check_movable(task)
    previous = task.do_date or task.committed_date
    changes = {"do_date": new_date, "committed_date": new_date}

    block = _linked_block(session, task)
    if block is not None and new_time is not None:
        start = datetime.combine(new_date, new_time)
        minutes = task.duration_minutes or DEFAULT_BLOCK_MINUTES
        block = crud.update_focus_block(
            session, block, {"start_time": start, "end_time": start + timedelta(minutes=minutes)}, now
        )
        result = reconcile_block_update(session, block)
        if result.task_sync_error:
            logger.warning("Rescheduled block %s but task sync failed: %s", block.id, result.task_sync_error)
    elif block is not None:
        _drop_block(session, block)
        changes["scheduled_block_id"] = None
    else:
        changes["scheduled_block_id"] = None

    task = crud.update_task(session, task, changes, now)
    logger.info(
        "Rescheduled task %s from %s to %s%s (reason: %s)",
        task.id, previous, new_date, f" at {new_time}" if new_time else "", reason,
    )
    return task


def defer_task(
    session: Session,
    task: Task,
    defer_to: Optional[str],
    today: date,
    now: datetime,
    reason: Optional[str] = None,
) -> Task:
    """Push a task to tomorrow, next week, a given day or the backlog.

    The task loses its focus block and its ``defer_count`` goes up by one.
    """
    _check_movable(task)
    day = resolve_defer_date(defer_to, today)

    block = _linked_block(session, task)
    if block is not None:
        _drop_block(session, block)

    task = crud.update_task(
        session,
        task,
        {
            "committed_date": day,
            "do_date": day,
            "scheduled_block_id": None,
            "defer_count": (task.defer_count or 0) + 1,
        },
        now,
    )
    logger.info(
        "Deferred task %s to %s (deferred %s times, reason: %s)",
        task.id, day or DEFER_SOMEDAY, task.defer_count, reason,
    )
    return task


def uncommit_task(session: Session, task: Task, now: datetime) -> Task:
    """Return a task to the backlog and drop its focus block."""
    block = _linked_block(session, task)
    if block is not None:
        _drop_block(session, block)
    task = crud.update_task(
        session, task, {"committed_date": None, "do_date": None, "scheduled_block_id": None}, now
    )
    logger.info("Moved task %s back to backlog", task.id)
    return task
