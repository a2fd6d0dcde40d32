from datetime import date, datetime, time
from typing import List, Optional
from pydantic import BaseModel, Field, field_validator
from ..db.models import Context, Priority, TaskStatus
from ..services.recurrence import is_valid_rule

def _check_rule(value: Optional[str]) -> Optional[str]:
    if value is not None and not is_valid_rule(value):
        raise ValueError(f"invalid recurrence rule: {value!r}")
    return value

class TaskIn(BaseModel):
    name: str = Field(min_length=1)
    description: Optional[str] = None
    project_id: Optional[str] = None
    context: Context
    priority: Priority = Priority.MEDIUM
    status: TaskStatus = TaskStatus.OPEN
    do_date: Optional[date] = None
    due_date: Optional[date] = None
    committed_date: Optional[date] = None
    duration_minutes: Optional[int] = Field(default=None, ge=0)
    recurrence_rule: Optional[str] = None
    recurrence_paused: bool = False

    @field_validator("recurrence_rule")
    @classmethod
    def check_rule(cls, value):
        return _check_rule(value)

    class Config:
        use_enum_values = True

class TaskUpdate(BaseModel):
    """Partial update; identity and ownership fields are not accepted."""
    name: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    project_id: Optional[str] = None
    context: Optional[Context] = None
    priority: Optional[Priority] = None
    status: Optional[TaskStatus] = None
    do_date: Optional[date] = None
    due_date: Optional[date] = None
    committed_date: Optional[date] = None
    duration_minutes: Optional[int] = Field(default=None, ge=0)
    recurrence_rule: Optional[str] = None
    recurrence_paused: Optional[bool] = None

    @field_validator("recurrence_rule")
    @classmethod
    def check_rule(cls, value):
        return _check_rule(value)

    @field_validator("name", "context", "priority", "status", "recurrence_paused")
    @classmethod
    def not_null(cls, value):
        if value is None:
            raise ValueError("may be omitted but not null")
        return value

    class Config:
        use_enum_values = True

class TaskOut(BaseModel):
    id: int
    tenant_id: str
    owner_id: str
    project_id: Optional[str] = None
    name: str
    description: Optional[str] = None
    context: Context
    priority: str
    status: str
    do_date: Optional[date] = None
    due_date: Optional[date] = None
    committed_date: Optional[date] = None
    duration_minutes: Optional[int] = None
    scheduled_block_id: Optional[int] = None
    recurrence_rule: Optional[str] = None
    parent_task_id: Optional[int] = None
    recurrence_paused: bool = False
    defer_count: int = 0
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True

class CommitIn(BaseModel):
    task_id: int
    commit_date: Optional[date] = Field(default=None, alias="date")

    class Config:
        populate_by_name = True

class RescheduleIn(BaseModel):
    task_id: int
    new_date: date
    new_time: Optional[time] = None
    reason: Optional[str] = None

class DeferIn(BaseModel):
    """``defer_to`` is ``tomorrow`` (default), ``next_week``, ``someday`` or a date."""
    task_id: int
    defer_to: Optional[str] = None
    reason: Optional[str] = None

class ExpandIn(BaseModel):
    start: Optional[date] = Field(default=None, alias="from")
    end: Optional[date] = Field(default=None, alias="to")
    task_id: Optional[int] = None

    class Config:
        populate_by_name = True

class OccurrenceErrorOut(BaseModel):
    template_id: int
    do_date: date
    error: str

    class Config:
        from_attributes = True

class ExpandOut(BaseModel):
    created: int
    skipped: int
    paused_series: int
    errors: List[OccurrenceErrorOut] = []

    class Config:
        from_attributes = True
