"""Tests for the retention scheduler helpers."""
from datetime import datetime, timedelta

import pytest
from sqlalchemy import func, select

from app.db.models import SkillInvocationDB
from app.services.maintenance import MaintenanceScheduler, next_run_after, run_retention, validate_cron
from tests.factories import make_invocation


def test_next_run_after_daily():
    base = datetime(2026, 3, 10, 4, 0, 0)
    assert next_run_after("15 3 * * *", base) == datetime(2026, 3, 11, 3, 15)


def test_next_run_after_same_day():
    base = datetime(2026, 3, 10, 1, 0, 0)
    assert next_run_after("15 3 * * *", base) == datetime(2026, 3, 10, 3, 15)


def test_validate_cron():
    assert validate_cron("0 * * * *") is None
    assert validate_cron("not a cron") is not None


def test_scheduler_is_singleton():
    assert MaintenanceScheduler() is MaintenanceScheduler()


@pytest.mark.asyncio
async def test_run_retention_drains_backlog(db_session, session_factory):
    old = datetime.utcnow() - timedelta(days=40)
    db_session.add_all([
        make_invocation(timestamp=old + timedelta(seconds=i)) for i in range(1200)
    ])
    db_session.add(make_invocation())
    await db_session.commit()

    assert await run_retention(session_factory) == 1200

    result = await db_session.execute(select(func.count()).select_from(SkillInvocationDB))
    assert result.scalar() == 1


@pytest.mark.asyncio
async def test_run_retention_stops_at_max_batches(db_session, session_factory):
    old = datetime.utcnow() - timedelta(days=40)
    db_session.add_all([
        make_invocation(timestamp=old + timedelta(seconds=i)) for i in range(2100)
    ])
    await db_session.commit()

    assert await run_retention(session_factory, max_batches=2) == 2000
    assert await run_retention(session_factory, max_batches=2) == 100
    assert await run_retention(session_factory, max_batches=2) == 0
