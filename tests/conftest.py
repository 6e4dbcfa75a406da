"""
Shared fixtures: an in-memory SQLite database per test, the FastAPI app wired
to it, and a tool context whose webhook calls go through httpx.MockTransport.
"""
import os

# Must be set before app modules are imported
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["AUTH_ENABLED"] = "false"
os.environ["RETENTION_ENABLED"] = "false"

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.agent.context import ToolContext
from app.agent.executors import WebhookCaller
from app.agent.security import DefaultSecurityChecker
from app.db import models  # noqa: F401
from app.db.database import Base, get_db


class WebhookRecorder:
    """httpx handler that records requests and returns a canned response."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.status_code = 200
        self.text: str | None = "pong"
        self.json = None

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.json is not None:
            return httpx.Response(self.status_code, json=self.json)
        return httpx.Response(self.status_code, text=self.text)


@pytest_asyncio.fixture()
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture()
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture()
def webhook():
    return WebhookRecorder()


@pytest.fixture()
def tool_context(session_factory, webhook):
    return ToolContext(
        session_factory=session_factory,
        security_checker=DefaultSecurityChecker(
            allowed_domains=["example.com"],
            blocked_patterns=[r"rm\s+-rf"],
            max_input_chars=500,
        ),
        webhook_caller=WebhookCaller(transport=httpx.MockTransport(webhook)),
    )


@pytest_asyncio.fixture()
async def client(session_factory, tool_context):
    from app.main import app

    async def _get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = _get_db
    app.state.tool_context = tool_context
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
    app.state.tool_context = None
