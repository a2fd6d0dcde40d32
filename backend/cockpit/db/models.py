from datetime import date
from enum import Enum
from typing import Optional
from pydantic import NaiveDatetime
from sqlmodel import SQLModel, Field

from ..core.clock import utc_now

class Context(str, Enum):
    HOUSE = "house"
    WORK = "work"
    PERSONAL = "personal"
    DEEP_FOCUS = "deep_focus"
    FAMILY = "family"
    HEALTH = "health"

class TaskStatus(str, Enum):
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    DONE = "done"

class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

class Task(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    tenant_id: str = Field(index=True)
    owner_id: str = Field(index=True)
    project_id: Optional[str] = None
    name: str
    description: Optional[str] = None
    status: str = Field(default=TaskStatus.OPEN.value, index=True)
    priority: str = Field(default=Priority.MEDIUM.value)
    # nullable only for legacy rows; see db.migrations
    context: Optional[str] = Field(default=None, index=True)

    do_date: Optional[date] = Field(default=None, index=True)
    due_date: Optional[date] = None
    committed_date: Optional[date] = None
    duration_minutes: Optional[int] = None
    scheduled_block_id: Optional[int] = None

    recurrence_rule: Optional[str] = None
    parent_task_id: Optional[int] = Field(default=None, index=True)
    recurrence_paused: bool = False
    # bumped by every defer
    defer_count: int = 0

    created_at: NaiveDatetime = Field(default_factory=utc_now, nullable=False)
    updated_at: NaiveDatetime = Field(default_factory=utc_now, nullable=False)

    @property
    def is_template(self) -> bool:
        return self.parent_task_id is None and bool(self.recurrence_rule)

class FocusBlock(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    tenant_id: str = Field(index=True)
    user_id: str = Field(index=True)
    title: str
    description: Optional[str] = None
    notes: Optional[str] = None
    context: str = Field(index=True)
    start_time: NaiveDatetime = Field(index=True)
    end_time: NaiveDatetime
    recurrence_rule: Optional[str] = None
    task_id: Optional[int] = Field(default=None, index=True)
    color: Optional[str] = None
    sync_status: str = "local_only"
    completed: bool = False
    created_at: NaiveDatetime = Field(default_factory=utc_now, nullable=False)
    updated_at: NaiveDatetime = Field(default_factory=utc_now, nullable=False)
