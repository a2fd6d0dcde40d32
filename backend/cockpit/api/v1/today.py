from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlmodel import Session
from ...core.clock import Clock, get_clock
from ...db.session import get_session
from ...db.models import Context
from ...schemas.today import TodayOut
from ...services.today import MAX_TASK_LIMIT, get_today_cockpit
from ..deps import AuthContext, get_auth_context

router = APIRouter(tags=["today"])

@router.get("/today", response_model=TodayOut)
def today(
    context: Optional[Context] = None,
    limit: Optional[int] = Query(default=None, ge=1, le=MAX_TASK_LIMIT),
    ctx: AuthContext = Depends(get_auth_context),
    session: Session = Depends(get_session),
    clock: Clock = Depends(get_clock),
):
    cockpit = get_today_cockpit(
        session,
        ctx.tenant_id,
        ctx.user_id,
        clock.now(),
        context=context.value if context else None,
        limit=limit,
    )
    return TodayOut.model_validate(cockpit)
