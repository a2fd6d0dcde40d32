from datetime import date
from typing import List
from pydantic import BaseModel
from .focus_blocks import FocusBlockOut
from .tasks import TaskOut

class TodayOut(BaseModel):
    today: date
    tasks: List[TaskOut]
    focus_blocks: List[FocusBlockOut]

    class Config:
        from_attributes = True
