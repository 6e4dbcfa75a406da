"""
Skill invocation audit log API endpoints.

Read-only views for SyncBoard plus a manual retention trigger.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_admin
from app.db.database import get_db
from app.db.models import SkillInvocationDB
from app.services import invocation_log
from app.services.invocation_log import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/invocations",
    tags=["invocations"],
    dependencies=[Depends(get_current_admin)],
)


class InvocationResponse(BaseModel):
    id: str
    skill_name: str
    skill_type: str
    thread_id: Optional[str] = None
    user_id: Optional[str] = None
    channel: Optional[str] = None
    input: str
    output: Optional[str] = None
    success: bool
    error_message: Optional[str] = None
    security_check_result: str
    duration_ms: int
    timestamp: str


def _invocation_to_response(entry: SkillInvocationDB) -> dict:
    return {
        "id": entry.id,
        "skill_name": entry.skill_name,
        "skill_type": entry.skill_type,
        "thread_id": entry.thread_id,
        "user_id": entry.user_id,
        "channel": entry.channel,
        "input": entry.input,
        "output": entry.output,
        "success": entry.success,
        "error_message": entry.error_message,
        "security_check_result": entry.security_check_result,
        "duration_ms": entry.duration_ms,
        "timestamp": entry.timestamp.isoformat(),
    }


_LIMIT = Query(default=DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE)


@router.get("", response_model=list[InvocationResponse])
async def list_recent_invocations(
    limit: int = _LIMIT,
    db: AsyncSession = Depends(get_db),
):
    """Most recent invocations across all skills."""
    entries = await invocation_log.list_recent(db, limit)
    return [_invocation_to_response(e) for e in entries]


@router.get("/security-failures", response_model=list[InvocationResponse])
async def list_security_failures(
    limit: int = _LIMIT,
    db: AsyncSession = Depends(get_db),
):
    """Most recent invocations denied by the security checker."""
    entries = await invocation_log.list_security_failures(db, limit)
    return [_invocation_to_response(e) for e in entries]


@router.get("/summary")
async def invocation_summary(db: AsyncSession = Depends(get_db)):
    """Per-skill totals over the retention window."""
    return await invocation_log.summarize_invocations(db)


@router.get("/skill/{skill_name}", response_model=list[InvocationResponse])
async def list_skill_invocations(
    skill_name: str,
    limit: int = _LIMIT,
    db: AsyncSession = Depends(get_db),
):
    """Most recent invocations of one skill."""
    entries = await invocation_log.list_by_skill(db, skill_name, limit)
    return [_invocation_to_response(e) for e in entries]


@router.post("/cleanup")
async def cleanup_invocations(db: AsyncSession = Depends(get_db)):
    """Delete one batch of entries older than the retention window."""
    deleted = await invocation_log.cleanup_old_invocations(db)
    return {"deleted": deleted}
