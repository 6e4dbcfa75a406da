"""Runtime context threaded through tool loading and invocation."""
from dataclasses import dataclass, field, replace
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.agent.executors import CODE_HANDLERS, CodeHandler, TemplateExecutor, WebhookCaller
from app.agent.security import DefaultSecurityChecker, SecurityChecker


@dataclass
class ToolContext:
    """Everything a tool needs to check, run and audit one invocation.

    session_factory opens a fresh session per audit write, so tools stay
    usable after the request that loaded them has finished.
    """
    session_factory: async_sessionmaker[AsyncSession]
    security_checker: SecurityChecker
    template_executor: TemplateExecutor = field(default_factory=TemplateExecutor)
    webhook_caller: WebhookCaller = field(default_factory=WebhookCaller)
    code_handlers: dict[str, CodeHandler] = field(default_factory=lambda: dict(CODE_HANDLERS))
    log_max_chars: int = 1000

    # Conversation metadata copied into every audit entry
    thread_id: Optional[str] = None
    user_id: Optional[str] = None
    channel: Optional[str] = None

    def for_turn(
        self,
        thread_id: Optional[str] = None,
        user_id: Optional[str] = None,
        channel: Optional[str] = None,
    ) -> "ToolContext":
        return replace(self, thread_id=thread_id, user_id=user_id, channel=channel)


def build_tool_context(settings, session_factory: async_sessionmaker[AsyncSession]) -> ToolContext:
    """Create the default context from application settings."""
    return ToolContext(
        session_factory=session_factory,
        security_checker=DefaultSecurityChecker.from_settings(settings),
        webhook_caller=WebhookCaller(timeout=settings.webhook_timeout),
        log_max_chars=settings.invocation_log_max_chars,
    )
