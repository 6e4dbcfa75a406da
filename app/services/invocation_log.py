"""
Skill invocation audit log.

Entries are appended once per invocation attempt (allowed or denied) and are
never updated. Every read is newest-first and capped, and the retention
sweep deletes a bounded batch per call.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import case, delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.agent.security import PASSED
from app.db.models import SkillInvocationDB, generate_uuid

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 200
RETENTION_DAYS = 30
CLEANUP_BATCH_SIZE = 1000


def _clamp_limit(limit: Optional[int]) -> int:
    if limit is None:
        return DEFAULT_PAGE_SIZE
    return max(1, min(int(limit), MAX_PAGE_SIZE))


async def log_invocation(
    session: AsyncSession,
    *,
    skill_name: str,
    skill_type: str,
    input: str,
    success: bool,
    security_check_result: str,
    duration_ms: int,
    output: Optional[str] = None,
    error_message: Optional[str] = None,
    thread_id: Optional[str] = None,
    user_id: Optional[str] = None,
    channel: Optional[str] = None,
    timestamp: Optional[datetime] = None,
) -> SkillInvocationDB:
    """Append one audit entry and commit it."""
    entry = SkillInvocationDB(
        id=generate_uuid(),
        skill_name=skill_name,
        skill_type=skill_type,
        thread_id=thread_id,
        user_id=user_id,
        channel=channel,
        input=input,
        output=output,
        success=success,
        error_message=error_message,
        security_check_result=security_check_result,
        duration_ms=duration_ms,
        timestamp=timestamp or datetime.utcnow(),
    )
    session.add(entry)
    await session.commit()
    return entry


async def list_by_skill(
    session: AsyncSession, skill_name: str, limit: Optional[int] = None
) -> list[SkillInvocationDB]:
    """Recent invocations of one skill."""
    result = await session.execute(
        select(SkillInvocationDB)
        .where(SkillInvocationDB.skill_name == skill_name)
        .order_by(SkillInvocationDB.timestamp.desc())
        .limit(_clamp_limit(limit))
    )
    return list(result.scalars().all())


async def list_recent(
    session: AsyncSession, limit: Optional[int] = None
) -> list[SkillInvocationDB]:
    """Recent invocations across all skills."""
    result = await session.execute(
        select(SkillInvocationDB)
        .order_by(SkillInvocationDB.timestamp.desc())
        .limit(_clamp_limit(limit))
    )
    return list(result.scalars().all())


async def list_security_failures(
    session: AsyncSession, limit: Optional[int] = None
) -> list[SkillInvocationDB]:
    """Recent invocations denied by the security checker."""
    result = await session.execute(
        select(SkillInvocationDB)
        .where(SkillInvocationDB.security_check_result != PASSED)
        .order_by(SkillInvocationDB.timestamp.desc())
        .limit(_clamp_limit(limit))
    )
    return list(result.scalars().all())


async def cleanup_old_invocations(
    session: AsyncSession, now: Optional[datetime] = None
) -> int:
    """Delete up to CLEANUP_BATCH_SIZE entries older than RETENTION_DAYS.

    Returns the number deleted. A full batch means more may remain.
    """
    cutoff = (now or datetime.utcnow()) - timedelta(days=RETENTION_DAYS)

    result = await session.execute(
        select(SkillInvocationDB.id)
        .where(SkillInvocationDB.timestamp < cutoff)
        .order_by(SkillInvocationDB.timestamp)
        .limit(CLEANUP_BATCH_SIZE)
    )
    ids = [row[0] for row in result.fetchall()]
    if not ids:
        return 0

    await session.execute(
        delete(SkillInvocationDB).where(SkillInvocationDB.id.in_(ids))
    )
    await session.commit()
    logger.info(f"Deleted {len(ids)} invocation log entries older than {cutoff.isoformat()}")
    return len(ids)


async def summarize_invocations(
    session: AsyncSession, since: Optional[datetime] = None
) -> list[dict]:
    """Per-skill counts and average duration, busiest skill first."""
    since = since or datetime.utcnow() - timedelta(days=RETENTION_DAYS)

    query = (
        select(
            SkillInvocationDB.skill_name,
            func.count().label("total"),
            func.sum(case((SkillInvocationDB.success.is_(True), 1), else_=0)).label("successes"),
            func.sum(
                case((SkillInvocationDB.security_check_result != PASSED, 1), else_=0)
            ).label("security_denials"),
            func.avg(SkillInvocationDB.duration_ms).label("avg_duration_ms"),
            func.max(SkillInvocationDB.timestamp).label("last_invoked_at"),
        )
        .where(SkillInvocationDB.timestamp >= since)
        .group_by(SkillInvocationDB.skill_name)
        .order_by(func.count().desc(), SkillInvocationDB.skill_name)
    )
    result = await session.execute(query)

    summary = []
    for row in result.fetchall():
        total = int(row.total or 0)
        successes = int(row.successes or 0)
        last = row.last_invoked_at
        summary.append({
            "skill_name": row.skill_name,
            "total": total,
            "successes": successes,
            "failures": total - successes,
            "security_denials": int(row.security_denials or 0),
            "avg_duration_ms": round(float(row.avg_duration_ms or 0), 1),
            "last_invoked_at": last.isoformat() if isinstance(last, datetime) else last,
        })
    return summary
