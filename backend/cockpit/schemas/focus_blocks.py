from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field, field_validator, model_validator
from ..core.clock import to_naive_utc
from ..db.models import Context
from ..services.recurrence import is_valid_rule

class FocusBlockIn(BaseModel):
    title: str = Field(min_length=1)
    description: Optional[str] = None
    notes: Optional[str] = None
    context: Context
    start_time: datetime
    end_time: datetime
    recurrence_rule: Optional[str] = None
    task_id: Optional[int] = None
    color: Optional[str] = None

    @field_validator("start_time", "end_time")
    @classmethod
    def as_utc(cls, value: datetime) -> datetime:
        return to_naive_utc(value)

    @field_validator("recurrence_rule")
    @classmethod
    def check_rule(cls, value):
        if value is not None and not is_valid_rule(value):
            raise ValueError(f"invalid recurrence rule: {value!r}")
        return value

    @model_validator(mode="after")
    def check_window(self):
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self

    class Config:
        use_enum_values = True

class FocusBlockUpdate(BaseModel):
    """Mutable block fields. Anything else in the payload (id, tenant_id,
    user_id included) is dropped on parsing."""
    title: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    notes: Optional[str] = None
    context: Optional[Context] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    recurrence_rule: Optional[str] = None
    task_id: Optional[int] = None
    color: Optional[str] = None
    completed: Optional[bool] = None

    @field_validator("start_time", "end_time")
    @classmethod
    def as_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return to_naive_utc(value) if value is not None else None

    @field_validator("recurrence_rule")
    @classmethod
    def check_rule(cls, value):
        if value is not None and not is_valid_rule(value):
            raise ValueError(f"invalid recurrence rule: {value!r}")
        return value

    @field_validator("title", "context", "start_time", "end_time", "completed")
    @classmethod
    def not_null(cls, value):
        if value is None:
            raise ValueError("may be omitted but not null")
        return value

    class Config:
        use_enum_values = True
        extra = "ignore"

class FocusBlockOut(BaseModel):
    id: int
    tenant_id: str
    user_id: str
    title: str
    description: Optional[str] = None
    notes: Optional[str] = None
    context: str
    start_time: datetime
    end_time: datetime
    recurrence_rule: Optional[str] = None
    task_id: Optional[int] = None
    color: Optional[str] = None
    sync_status: str
    completed: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True

class FocusBlockUpdateOut(BaseModel):
    block: FocusBlockOut
    task_sync_error: Optional[str] = None
