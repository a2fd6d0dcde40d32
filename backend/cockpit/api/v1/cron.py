import hmac
import logging
from datetime import timedelta
from typing import Optional
from fastapi import APIRouter, Depends, Header, HTTPException
from sqlmodel import Session
from ...core.clock import Clock, get_clock, to_naive_utc
from ...core.config import settings
from ...db.session import get_session
from ...schemas.tasks import ExpandOut
from ...services.materializer import materialize_all

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/cron", tags=["cron"])

def require_cron_secret(authorization: Optional[str] = Header(default=None)) -> None:
    secret = settings.CRON_SECRET
    expected = f"Bearer {secret}"
    if not secret or not hmac.compare_digest((authorization or "").encode(), expected.encode()):
        raise HTTPException(status_code=401, detail="Unauthorized")

@router.post("/recurring", response_model=ExpandOut, dependencies=[Depends(require_cron_secret)])
def run_recurring(
    session: Session = Depends(get_session),
    clock: Clock = Depends(get_clock),
):
    now = clock.now()
    start = to_naive_utc(now).date()
    end = start + timedelta(days=settings.RECURRENCE_WINDOW_DAYS)
    result = materialize_all(session, start, end, now)
    logger.info(
        "Recurring sweep %s..%s: created=%d skipped=%d paused=%d errors=%d",
        start, end, result.created, result.skipped, result.paused_series, len(result.errors),
    )
    return ExpandOut.model_validate(result)
