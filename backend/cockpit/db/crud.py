from datetime import date, datetime
from typing import Any, Dict, List, Optional
from sqlmodel import Session, col, select
from ..core.clock import to_naive_utc
from ..core.errors import NotFoundError, ValidationError
from .models import FocusBlock, Task

# Never writable through an update payload
PROTECTED_FIELDS = {"id", "tenant_id", "owner_id", "user_id"}

def _strip_protected(changes: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in changes.items() if k not in PROTECTED_FIELDS}

# ---------------------------------------------------------------- tasks

def create_task(session: Session, task: Task) -> Task:
    session.add(task)
    session.commit()
    session.refresh(task)
    return task

def list_tasks(session: Session, tenant_id: str, owner_id: str, limit: int = 100) -> List[Task]:
    return session.exec(
        select(Task)
        .where(Task.tenant_id == tenant_id)
        .where(Task.owner_id == owner_id)
        .order_by(col(Task.do_date).is_(None), Task.do_date, Task.id)
        .limit(limit)
    ).all()

def find_task(session: Session, tenant_id: str, owner_id: str, task_id: int) -> Optional[Task]:
    return session.exec(
        select(Task)
        .where(Task.tenant_id == tenant_id)
        .where(Task.owner_id == owner_id)
        .where(Task.id == task_id)
    ).first()

def get_task(session: Session, tenant_id: str, owner_id: str, task_id: int) -> Task:
    task = find_task(session, tenant_id, owner_id, task_id)
    if task is None:
        raise NotFoundError(f"Task {task_id} not found")
    return task

def check_task_invariants(task: Task) -> None:
    if task.parent_task_id is not None and task.recurrence_rule:
        raise ValidationError("A recurring occurrence cannot carry its own recurrence rule")
    if task.is_template and task.scheduled_block_id is not None:
        raise ValidationError("A recurring template cannot be scheduled into a focus block")

def update_task(session: Session, task: Task, changes: Dict[str, Any], now: datetime) -> Task:
    for key, value in _strip_protected(changes).items():
        setattr(task, key, value)
    check_task_invariants(task)
    task.updated_at = to_naive_utc(now)
    session.add(task)
    session.commit()
    session.refresh(task)
    return task

def list_instances(session: Session, tenant_id: str, owner_id: str, template_id: int, start: date, end: date) -> List[Task]:
    return session.exec(
        select(Task)
        .where(Task.tenant_id == tenant_id)
        .where(Task.owner_id == owner_id)
        .where(Task.parent_task_id == template_id)
        .where(Task.do_date >= start)
        .where(Task.do_date <= end)
        .order_by(Task.do_date)
    ).all()

# --------------------------------------------------------- focus blocks

def check_block_window(start_time: Optional[datetime], end_time: Optional[datetime]) -> None:
    if start_time is None or end_time is None:
        raise ValidationError("start_time and end_time are required")
    if to_naive_utc(end_time) <= to_naive_utc(start_time):
        raise ValidationError("end_time must be after start_time")

def check_task_link(session: Session, tenant_id: str, user_id: str, task_id: Optional[int]) -> None:
    """A block may only point at an existing, schedulable task of the same user."""
    if task_id is None:
        return
    task = find_task(session, tenant_id, user_id, task_id)
    if task is None:
        raise NotFoundError(f"Task {task_id} not found")
    if task.is_template:
        raise ValidationError(
            f"Task {task_id} is a recurring template; schedule one of its occurrences instead"
        )

def list_focus_blocks(session: Session, tenant_id: str, user_id: str, start: datetime, end: datetime) -> List[FocusBlock]:
    return session.exec(
        select(FocusBlock)
        .where(FocusBlock.tenant_id == tenant_id)
        .where(FocusBlock.user_id == user_id)
        .where(FocusBlock.start_time >= to_naive_utc(start))
        .where(FocusBlock.start_time <= to_naive_utc(end))
        .order_by(FocusBlock.start_time)
    ).all()

def find_focus_block(session: Session, tenant_id: str, user_id: str, block_id: int) -> Optional[FocusBlock]:
    return session.exec(
        select(FocusBlock)
        .where(FocusBlock.tenant_id == tenant_id)
        .where(FocusBlock.user_id == user_id)
        .where(FocusBlock.id == block_id)
    ).first()

def get_focus_block(session: Session, tenant_id: str, user_id: str, block_id: int) -> FocusBlock:
    block = find_focus_block(session, tenant_id, user_id, block_id)
    if block is None:
        raise NotFoundError(f"Focus block {block_id} not found")
    return block

def create_focus_block(session: Session, block: FocusBlock) -> FocusBlock:
    check_block_window(block.start_time, block.end_time)
    check_task_link(session, block.tenant_id, block.user_id, block.task_id)
    block.start_time = to_naive_utc(block.start_time)
    block.end_time = to_naive_utc(block.end_time)
    session.add(block)
    session.commit()
    session.refresh(block)
    return block

def update_focus_block(session: Session, block: FocusBlock, changes: Dict[str, Any], now: datetime) -> FocusBlock:
    changes = _strip_protected(changes)
    start_time = changes.get("start_time", block.start_time)
    end_time = changes.get("end_time", block.end_time)
    check_block_window(start_time, end_time)
    if "task_id" in changes and changes["task_id"] != block.task_id:
        check_task_link(session, block.tenant_id, block.user_id, changes["task_id"])
    for key, value in changes.items():
        if isinstance(value, datetime):
            value = to_naive_utc(value)
        setattr(block, key, value)
    block.updated_at = to_naive_utc(now)
    session.add(block)
    session.commit()
    session.refresh(block)
    return block

def delete_focus_block(session: Session, block: FocusBlock) -> None:
    session.delete(block)
    session.commit()
