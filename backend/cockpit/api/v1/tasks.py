import logging
from datetime import date, timedelta
from typing import List, Optional
from fastapi import APIRouter, Depends, Query
from sqlmodel import Session
from ...core.clock import Clock, get_clock, to_naive_utc
from ...core.config import settings
from ...core.errors import ValidationError
from ...db.session import get_session
from ...db.models import Task
from ...db import crud
from ...schemas.tasks import (
    CommitIn, DeferIn, ExpandIn, ExpandOut, RescheduleIn, TaskIn, TaskOut, TaskUpdate,
)
from ...services.materializer import list_templates, materialize_for_owner
from ...services.reconcile import heal_task_link
from ...services.scheduling import defer_task, reschedule_task, uncommit_task
from ..deps import AuthContext, get_auth_context

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tasks", tags=["tasks"])

def _window(start: Optional[date], end: Optional[date], today: date):
    start = start or today
    end = end or start + timedelta(days=settings.RECURRENCE_WINDOW_DAYS)
    if end < start:
        raise ValidationError("'to' must not be before 'from'")
    if (end - start).days > settings.MAX_EXPAND_DAYS:
        raise ValidationError(f"window may span at most {settings.MAX_EXPAND_DAYS} days")
    return start, end

@router.post("", response_model=TaskOut, status_code=201)
def create(
    body: TaskIn,
    ctx: AuthContext = Depends(get_auth_context),
    session: Session = Depends(get_session),
    clock: Clock = Depends(get_clock),
):
    now = to_naive_utc(clock.now())
    t = Task(**body.model_dump(), tenant_id=ctx.tenant_id, owner_id=ctx.user_id, created_at=now, updated_at=now)
    return crud.create_task(session, t)

@router.get("", response_model=List[TaskOut])
def list_all(
    limit: int = Query(default=100, ge=1, le=500),
    ctx: AuthContext = Depends(get_auth_context),
    session: Session = Depends(get_session),
):
    return crud.list_tasks(session, ctx.tenant_id, ctx.user_id, limit)

@router.get("/recurring", response_model=List[TaskOut])
def list_recurring(
    ctx: AuthContext = Depends(get_auth_context),
    session: Session = Depends(get_session),
):
    return list_templates(session, ctx.tenant_id, ctx.user_id)

@router.post("/recurring/expand", response_model=ExpandOut)
def expand_recurring(
    body: Optional[ExpandIn] = None,
    ctx: AuthContext = Depends(get_auth_context),
    session: Session = Depends(get_session),
    clock: Clock = Depends(get_clock),
):
    body = body or ExpandIn()
    now = clock.now()
    start, end = _window(body.start, body.end, to_naive_utc(now).date())
    result = materialize_for_owner(session, ctx.tenant_id, ctx.user_id, start, end, now, task_id=body.task_id)
    return ExpandOut.model_validate(result)

@router.post("/commit", response_model=TaskOut)
def commit(
    body: CommitIn,
    ctx: AuthContext = Depends(get_auth_context),
    session: Session = Depends(get_session),
    clock: Clock = Depends(get_clock),
):
    now = clock.now()
    task = crud.get_task(session, ctx.tenant_id, ctx.user_id, body.task_id)
    if task.is_template:
        raise ValidationError("Commit an occurrence of a recurring task, not the template")
    day = body.commit_date or to_naive_utc(now).date()
    task = crud.update_task(session, task, {"committed_date": day, "do_date": day}, now)
    logger.info("Committed task %s to %s", task.id, day)
    return task

@router.delete("/commit", response_model=TaskOut)
def uncommit(
    task_id: int,
    ctx: AuthContext = Depends(get_auth_context),
    session: Session = Depends(get_session),
    clock: Clock = Depends(get_clock),
):
    task = crud.get_task(session, ctx.tenant_id, ctx.user_id, task_id)
    return uncommit_task(session, task, clock.now())

@router.post("/reschedule", response_model=TaskOut)
def reschedule(
    body: RescheduleIn,
    ctx: AuthContext = Depends(get_auth_context),
    session: Session = Depends(get_session),
    clock: Clock = Depends(get_clock),
):
    task = crud.get_task(session, ctx.tenant_id, ctx.user_id, body.task_id)
    return reschedule_task(session, task, body.new_date, body.new_time, clock.now(), reason=body.reason)

@router.put("/reschedule", response_model=TaskOut)
def defer(
    body: DeferIn,
    ctx: AuthContext = Depends(get_auth_context),
    session: Session = Depends(get_session),
    clock: Clock = Depends(get_clock),
):
    now = clock.now()
    task = crud.get_task(session, ctx.tenant_id, ctx.user_id, body.task_id)
    return defer_task(session, task, body.defer_to, to_naive_utc(now).date(), now, reason=body.reason)

@router.get("/{task_id}", response_model=TaskOut)
def get_one(
    task_id: int,
    ctx: AuthContext = Depends(get_auth_context),
    session: Session = Depends(get_session),
):
    return crud.get_task(session, ctx.tenant_id, ctx.user_id, task_id)

@router.patch("/{task_id}", response_model=TaskOut)
def update(
    task_id: int,
    body: TaskUpdate,
    ctx: AuthContext = Depends(get_auth_context),
    session: Session = Depends(get_session),
    clock: Clock = Depends(get_clock),
):
    task = crud.get_task(session, ctx.tenant_id, ctx.user_id, task_id)
    return crud.update_task(session, task, body.model_dump(exclude_unset=True), clock.now())

@router.get("/{task_id}/instances", response_model=List[TaskOut])
def list_task_instances(
    task_id: int,
    start: Optional[date] = Query(default=None, alias="from"),
    end: Optional[date] = Query(default=None, alias="to"),
    ctx: AuthContext = Depends(get_auth_context),
    session: Session = Depends(get_session),
    clock: Clock = Depends(get_clock),
):
    start, end = _window(start, end, to_naive_utc(clock.now()).date())
    return crud.list_instances(session, ctx.tenant_id, ctx.user_id, task_id, start, end)

@router.post("/{task_id}/reconcile", response_model=TaskOut)
def reconcile(
    task_id: int,
    ctx: AuthContext = Depends(get_auth_context),
    session: Session = Depends(get_session),
):
    task = crud.get_task(session, ctx.tenant_id, ctx.user_id, task_id)
    return heal_task_link(session, task)
