from datetime import datetime, timedelta
from typing import List, Optional
from fastapi import APIRouter, Depends, Query
from sqlmodel import Session
from ...core.clock import Clock, get_clock, to_naive_utc
from ...core.config import settings
from ...db.session import get_session
from ...db.models import FocusBlock
from ...db import crud
from ...schemas.focus_blocks import FocusBlockIn, FocusBlockOut, FocusBlockUpdate, FocusBlockUpdateOut
from ...services.reconcile import BlockRef, reconcile_block_delete, reconcile_block_update, release_task
from ..deps import AuthContext, get_auth_context

router = APIRouter(prefix="/focus-blocks", tags=["focus-blocks"])

@router.get("", response_model=List[FocusBlockOut])
def list_blocks(
    start: Optional[datetime] = Query(default=None, alias="from"),
    end: Optional[datetime] = Query(default=None, alias="to"),
    ctx: AuthContext = Depends(get_auth_context),
    session: Session = Depends(get_session),
    clock: Clock = Depends(get_clock),
):
    now = to_naive_utc(clock.now())
    start = to_naive_utc(start) if start else now - timedelta(days=settings.BLOCK_LOOKBACK_DAYS)
    end = to_naive_utc(end) if end else now + timedelta(days=settings.BLOCK_LOOKAHEAD_DAYS)
    return crud.list_focus_blocks(session, ctx.tenant_id, ctx.user_id, start, end)

@router.post("", response_model=FocusBlockUpdateOut, status_code=201)
def create_block(
    body: FocusBlockIn,
    ctx: AuthContext = Depends(get_auth_context),
    session: Session = Depends(get_session),
    clock: Clock = Depends(get_clock),
):
    now = to_naive_utc(clock.now())
    block = FocusBlock(
        **body.model_dump(),
        tenant_id=ctx.tenant_id,
        user_id=ctx.user_id,
        created_at=now,
        updated_at=now,
    )
    block = crud.create_focus_block(session, block)
    result = reconcile_block_update(session, block)
    session.refresh(block)
    return FocusBlockUpdateOut(block=FocusBlockOut.model_validate(block), task_sync_error=result.task_sync_error)

@router.get("/{block_id}", response_model=FocusBlockOut)
def get_block(
    block_id: int,
    ctx: AuthContext = Depends(get_auth_context),
    session: Session = Depends(get_session),
):
    return crud.get_focus_block(session, ctx.tenant_id, ctx.user_id, block_id)

@router.patch("/{block_id}", response_model=FocusBlockUpdateOut)
def update_block(
    block_id: int,
    body: FocusBlockUpdate,
    ctx: AuthContext = Depends(get_auth_context),
    session: Session = Depends(get_session),
    clock: Clock = Depends(get_clock),
):
    block = crud.get_focus_block(session, ctx.tenant_id, ctx.user_id, block_id)
    previous_task_id = block.task_id
    block = crud.update_focus_block(session, block, body.model_dump(exclude_unset=True), clock.now())
    if previous_task_id != block.task_id:
        release_task(session, ctx.tenant_id, ctx.user_id, block_id, previous_task_id)
    result = reconcile_block_update(session, block)
    session.refresh(block)
    return FocusBlockUpdateOut(block=FocusBlockOut.model_validate(block), task_sync_error=result.task_sync_error)

@router.delete("/{block_id}", status_code=204)
def delete_block(
    block_id: int,
    ctx: AuthContext = Depends(get_auth_context),
    session: Session = Depends(get_session),
):
    block = crud.get_focus_block(session, ctx.tenant_id, ctx.user_id, block_id)
    ref = BlockRef.of(block)
    crud.delete_focus_block(session, block)
    reconcile_block_delete(session, ref)
