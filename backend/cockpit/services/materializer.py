"""
Materialization of recurring task templates into concrete occurrences.

A template is a task with no parent and a recurrence rule. Each date the rule
produces inside the requested window gets one occurrence task, keyed by
``(parent_task_id, do_date)``; dates that already have one are skipped, so
running the same window twice is a no-op the second time.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Dict, List, Optional, Set

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, col, select

from ..core.clock import to_naive_utc
from ..core.errors import ValidationError
from ..db.models import Priority, Task, TaskStatus
from .recurrence import expand_task

logger = logging.getLogger(__name__)

DEFAULT_OCCURRENCE_MINUTES = 30


@dataclass
class OccurrenceError:
    template_id: int
    do_date: date
    error: str


@dataclass
class MaterializeResult:
    created: List[Task] = field(default_factory=list)
    skipped: int = 0
    errors: List[OccurrenceError] = field(default_factory=list)
    paused: bool = False


@dataclass
class BatchResult:
    created: int = 0
    skipped: int = 0
    paused_series: int = 0
    errors: List[OccurrenceError] = field(default_factory=list)

    def add(self, result: MaterializeResult) -> None:
        self.created += len(result.created)
        self.skipped += result.skipped
        self.paused_series += int(result.paused)
        self.errors.extend(result.errors)


def _existing_dates(session: Session, template_ids: List[int], start: date, end: date) -> Dict[int, Set[date]]:
    rows = session.exec(
        select(Task.parent_task_id, Task.do_date)
        .where(col(Task.parent_task_id).in_(template_ids))
        .where(Task.do_date >= start)
        .where(Task.do_date <= end)
    ).all()
    existing: Dict[int, Set[date]] = {}
    for parent_id, do_date in rows:
        existing.setdefault(parent_id, set()).add(do_date)
    return existing


def build_occurrence(template: Task, do_date: date, now: datetime) -> Task:
    """New occurrence of ``template`` on ``do_date``; fields are copied, not linked."""
    stamp = to_naive_utc(now)
    return Task(
        tenant_id=template.tenant_id,
        owner_id=template.owner_id,
        project_id=template.project_id,
        name=template.name,
        description=template.description,
        status=TaskStatus.OPEN.value,
        priority=template.priority or Priority.MEDIUM.value,
        context=template.context,
        do_date=do_date,
        due_date=do_date,
        committed_date=None,
        duration_minutes=template.duration_minutes or DEFAULT_OCCURRENCE_MINUTES,
        recurrence_rule=None,
        parent_task_id=template.id,
        created_at=stamp,
        updated_at=stamp,
    )


def _insert_occurrence(session: Session, occurrence: Task) -> Task:
    session.add(occurrence)
    session.commit()
    session.refresh(occurrence)
    return occurrence


def materialize_occurrences(
    session: Session,
    template: Task,
    window_start: date,
    window_end: date,
    now: datetime,
    existing: Optional[Set[date]] = None,
) -> MaterializeResult:
    if template.parent_task_id is not None:
        raise ValidationError(f"Task {template.id} is an occurrence, not a recurring template")
    if not template.recurrence_rule:
        raise ValidationError(f"Task {template.id} has no recurrence rule")

    result = MaterializeResult()
    if template.recurrence_paused:
        result.paused = True
        return result

    if existing is None:
        existing = _existing_dates(session, [template.id], window_start, window_end).get(template.id, set())

    template_id = template.id
    for do_date in expand_task(template, window_start, window_end):
        if do_date in existing:
            result.skipped += 1
            continue
        occurrence = build_occurrence(template, do_date, now)
        try:
            result.created.append(_insert_occurrence(session, occurrence))
        except SQLAlchemyError as e:
            session.rollback()
            logger.error("Failed to materialize task %s on %s: %s", template_id, do_date, e)
            result.errors.append(OccurrenceError(template_id, do_date, str(e)))
            continue
        existing.add(do_date)

    if result.created:
        logger.info(
            "Materialized %d occurrences of task %s (%s..%s), skipped %d",
            len(result.created), template_id, window_start, window_end, result.skipped,
        )
    return result


def _materialize_many(
    session: Session, templates: List[Task], window_start: date, window_end: date, now: datetime
) -> BatchResult:
    batch = BatchResult()
    if not templates:
        return batch
    existing = _existing_dates(session, [t.id for t in templates], window_start, window_end)
    for template in templates:
        batch.add(
            materialize_occurrences(
                session, template, window_start, window_end, now,
                existing=existing.setdefault(template.id, set()),
            )
        )
    return batch


def _templates_query():
    return (
        select(Task)
        .where(col(Task.parent_task_id).is_(None))
        .where(col(Task.recurrence_rule).is_not(None))
    )


def list_templates(session: Session, tenant_id: str, owner_id: str) -> List[Task]:
    return session.exec(
        _templates_query()
        .where(Task.tenant_id == tenant_id)
        .where(Task.owner_id == owner_id)
        .order_by(col(Task.created_at).desc())
    ).all()


def materialize_for_owner(
    session: Session,
    tenant_id: str,
    owner_id: str,
    window_start: date,
    window_end: date,
    now: datetime,
    task_id: Optional[int] = None,
) -> BatchResult:
    query = (
        _templates_query()
        .where(Task.tenant_id == tenant_id)
        .where(Task.owner_id == owner_id)
    )
    if task_id is not None:
        query = query.where(Task.id == task_id)
    templates = session.exec(query).all()
    return _materialize_many(session, templates, window_start, window_end, now)


def materialize_all(session: Session, window_start: date, window_end: date, now: datetime) -> BatchResult:
    templates = session.exec(_templates_query()).all()
    logger.info("Recurring sweep over %d templates", len(templates))
    return _materialize_many(session, templates, window_start, window_end, now)
