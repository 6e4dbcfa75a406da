"""Tests for the invocation audit log service."""
from datetime import datetime, timedelta

import pytest
from sqlalchemy import func, select

from app.db.models import SkillInvocationDB
from app.services.invocation_log import (
    cleanup_old_invocations,
    list_by_skill,
    list_recent,
    list_security_failures,
    log_invocation,
    summarize_invocations,
)
from tests.factories import make_invocation


NOW = datetime(2026, 6, 1, 12, 0, 0)


def _series(count, skill_name="test-skill", start=NOW, **kwargs):
    """`count` entries one minute apart, oldest first."""
    return [
        make_invocation(skill_name=skill_name, timestamp=start + timedelta(minutes=i), **kwargs)
        for i in range(count)
    ]


async def _count(db_session) -> int:
    result = await db_session.execute(select(func.count()).select_from(SkillInvocationDB))
    return result.scalar()


@pytest.mark.asyncio
class TestLogInvocation:

    async def test_appends_entry(self, db_session):
        entry = await log_invocation(
            db_session,
            skill_name="ping",
            skill_type="webhook",
            input="hello",
            output="pong",
            success=True,
            security_check_result="passed",
            duration_ms=42,
            thread_id="thread-1",
        )
        assert entry.id
        assert entry.timestamp is not None
        assert await _count(db_session) == 1

    async def test_never_merges_identical_entries(self, db_session):
        fields = dict(
            skill_name="ping", skill_type="webhook", input="hello",
            success=False, security_check_result="not_active", duration_ms=0,
        )
        await log_invocation(db_session, **fields)
        await log_invocation(db_session, **fields)
        assert await _count(db_session) == 2


@pytest.mark.asyncio
class TestReads:

    async def test_recent_is_newest_first(self, db_session):
        db_session.add_all(_series(5))
        await db_session.commit()

        entries = await list_recent(db_session)
        timestamps = [e.timestamp for e in entries]
        assert timestamps == sorted(timestamps, reverse=True)
        assert len(entries) == 5

    async def test_default_limit_is_50(self, db_session):
        db_session.add_all(_series(60))
        await db_session.commit()

        entries = await list_recent(db_session)
        assert len(entries) == 50
        assert entries[0].timestamp == NOW + timedelta(minutes=59)

    async def test_explicit_limit(self, db_session):
        db_session.add_all(_series(10))
        await db_session.commit()
        assert len(await list_recent(db_session, 3)) == 3

    async def test_limit_is_clamped(self, db_session):
        db_session.add_all(_series(3))
        await db_session.commit()
        assert len(await list_recent(db_session, 0)) == 1
        assert len(await list_recent(db_session, 10_000)) == 3

    async def test_by_skill_filters(self, db_session):
        db_session.add_all(_series(3, skill_name="ping") + _series(4, skill_name="other"))
        await db_session.commit()

        entries = await list_by_skill(db_session, "ping")
        assert len(entries) == 3
        assert all(e.skill_name == "ping" for e in entries)
        assert entries[0].timestamp > entries[-1].timestamp

    async def test_by_skill_respects_limit(self, db_session):
        db_session.add_all(_series(8, skill_name="ping"))
        await db_session.commit()
        assert len(await list_by_skill(db_session, "ping", 2)) == 2

    async def test_security_failures_only(self, db_session):
        db_session.add_all(
            _series(3, security_check_result="passed")
            + _series(2, start=NOW + timedelta(hours=1), success=False,
                      security_check_result="domain_not_allowlisted")
            + _series(1, start=NOW + timedelta(hours=2), success=False,
                      security_check_result="not_approved")
        )
        await db_session.commit()

        entries = await list_security_failures(db_session)
        assert [e.security_check_result for e in entries] == [
            "not_approved", "domain_not_allowlisted", "domain_not_allowlisted",
        ]

    async def test_execution_failures_are_not_security_failures(self, db_session):
        db_session.add(make_invocation(success=False, error_message="timeout"))
        await db_session.commit()
        assert await list_security_failures(db_session) == []


@pytest.mark.asyncio
class TestCleanup:

    async def test_deletes_only_entries_older_than_30_days(self, db_session):
        db_session.add_all([
            make_invocation(timestamp=NOW - timedelta(days=31)),
            make_invocation(timestamp=NOW - timedelta(days=45)),
            make_invocation(timestamp=NOW - timedelta(days=29)),
            make_invocation(timestamp=NOW),
        ])
        await db_session.commit()

        assert await cleanup_old_invocations(db_session, now=NOW) == 2
        assert await _count(db_session) == 2

    async def test_second_run_deletes_nothing(self, db_session):
        db_session.add_all(_series(4, start=NOW - timedelta(days=40)))
        await db_session.commit()

        assert await cleanup_old_invocations(db_session, now=NOW) == 4
        assert await cleanup_old_invocations(db_session, now=NOW) == 0

    async def test_batch_is_capped_at_1000(self, db_session):
        db_session.add_all(_series(1005, start=NOW - timedelta(days=60)))
        await db_session.commit()

        assert await cleanup_old_invocations(db_session, now=NOW) == 1000
        assert await cleanup_old_invocations(db_session, now=NOW) == 5
        assert await _count(db_session) == 0


@pytest.mark.asyncio
class TestSummary:

    async def test_per_skill_counts(self, db_session):
        db_session.add_all(
            _series(3, skill_name="ping", duration_ms=10)
            + [make_invocation(skill_name="ping", success=False,
                               security_check_result="domain_not_allowlisted",
                               timestamp=NOW, duration_ms=0)]
            + _series(1, skill_name="echo", success=False, error_message="boom", duration_ms=30)
        )
        await db_session.commit()

        summary = await summarize_invocations(db_session, since=NOW - timedelta(days=1))
        assert [s["skill_name"] for s in summary] == ["ping", "echo"]

        ping = summary[0]
        assert ping["total"] == 4
        assert ping["successes"] == 3
        assert ping["failures"] == 1
        assert ping["security_denials"] == 1
        assert ping["avg_duration_ms"] == 7.5

        echo = summary[1]
        assert echo["failures"] == 1
        assert echo["security_denials"] == 0

    async def test_excludes_entries_before_since(self, db_session):
        db_session.add(make_invocation(timestamp=NOW - timedelta(days=10)))
        await db_session.commit()
        assert await summarize_invocations(db_session, since=NOW) == []
