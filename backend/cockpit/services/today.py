"""Today cockpit: what needs attention now, composed fresh on every call."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import List, Optional

from sqlmodel import Session, and_, col, or_, select

from ..core.clock import to_naive_utc
from ..core.config import settings
from ..db.models import FocusBlock, Task, TaskStatus

logger = logging.getLogger(__name__)

MAX_TASK_LIMIT = 100


@dataclass
class TodayCockpit:
    today: date
    tasks: List[Task] = field(default_factory=list)
    focus_blocks: List[FocusBlock] = field(default_factory=list)


def today_tasks_query(tenant_id: str, owner_id: str, today: date, context: Optional[str] = None):
    """Open tasks that are committed, planned or due by ``today``, plus the backlog."""
    query = (
        select(Task)
        .where(Task.tenant_id == tenant_id)
        .where(Task.owner_id == owner_id)
        .where(Task.status != TaskStatus.DONE.value)
        .where(
            or_(
                col(Task.committed_date) <= today,
                col(Task.do_date) <= today,
                col(Task.due_date) <= today,
                and_(col(Task.committed_date).is_(None), col(Task.do_date).is_(None)),
            )
        )
    )
    if context:
        query = query.where(Task.context == context)
    return query


def upcoming_blocks_query(tenant_id: str, user_id: str, now: datetime, hours: int, context: Optional[str] = None):
    """Blocks still running at ``now`` or starting within the next ``hours``."""
    now = to_naive_utc(now)
    query = (
        select(FocusBlock)
        .where(FocusBlock.tenant_id == tenant_id)
        .where(FocusBlock.user_id == user_id)
        .where(FocusBlock.end_time >= now)
        .where(FocusBlock.start_time <= now + timedelta(hours=hours))
    )
    if context:
        query = query.where(FocusBlock.context == context)
    return query


def get_today_cockpit(
    session: Session,
    tenant_id: str,
    user_id: str,
    now: datetime,
    context: Optional[str] = None,
    limit: Optional[int] = None,
) -> TodayCockpit:
    today = to_naive_utc(now).date()
    limit = min(limit or settings.TODAY_TASK_LIMIT, MAX_TASK_LIMIT)

    tasks = session.exec(
        today_tasks_query(tenant_id, user_id, today, context)
        .order_by(col(Task.updated_at).desc(), col(Task.id).desc())
        .limit(limit)
    ).all()
    blocks = session.exec(
        upcoming_blocks_query(tenant_id, user_id, now, settings.TODAY_WINDOW_HOURS, context)
        .order_by(FocusBlock.start_time)
        .limit(settings.TODAY_BLOCK_LIMIT)
    ).all()

    logger.debug("Today cockpit for %s/%s: %d tasks, %d blocks", tenant_id, user_id, len(tasks), len(blocks))
    return TodayCockpit(today=today, tasks=list(tasks), focus_blocks=list(blocks))
