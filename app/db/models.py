"""
SQLAlchemy ORM models.

Tables:
- skill_registry: Administrator-configured skills exposed to the agent as tools
- skill_invocation_log: Append-only audit trail of every skill invocation
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    String,
    Text,
    Boolean,
    DateTime,
    Index,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from app.db.database import Base


SKILL_TYPES = ("template", "webhook", "code")


def generate_uuid() -> str:
    """Generate a UUID string."""
    return str(uuid.uuid4())


class SkillDB(Base):
    """
    Skill registry table.

    Each skill has a unique name. Only skills that are both approved and
    active are loaded as tools.
    """
    __tablename__ = "skill_registry"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    name: Mapped[str] = mapped_column(
        String(128), unique=True, nullable=False, index=True
    )
    skill_type: Mapped[str] = mapped_column(
        String(32), nullable=False
    )  # template/webhook/code
    description: Mapped[str] = mapped_column(
        Text, nullable=False, default=""
    )  # Shown to the model as the tool purpose
    config: Mapped[Optional[str]] = mapped_column(
        Text, nullable=True
    )  # JSON text, interpreted per skill_type
    approved: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default=text("false"), nullable=False
    )
    active: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default=text("false"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )

    __table_args__ = (
        Index("ix_skill_registry_approved_active", "approved", "active"),
    )

    def __repr__(self) -> str:
        return f"<Skill(name={self.name}, type={self.skill_type}, approved={self.approved}, active={self.active})>"


class SkillInvocationDB(Base):
    """
    Audit log entry for one skill invocation attempt.

    Rows are only ever inserted, and deleted by the retention sweep.
    """
    __tablename__ = "skill_invocation_log"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    skill_name: Mapped[str] = mapped_column(
        String(128), nullable=False
    )
    skill_type: Mapped[str] = mapped_column(
        String(32), nullable=False
    )
    thread_id: Mapped[Optional[str]] = mapped_column(
        String(64), nullable=True
    )
    user_id: Mapped[Optional[str]] = mapped_column(
        String(64), nullable=True
    )
    channel: Mapped[Optional[str]] = mapped_column(
        String(32), nullable=True
    )  # e.g. web / api / telegram
    input: Mapped[str] = mapped_column(
        Text, nullable=False, default=""
    )  # Truncated
    output: Mapped[Optional[str]] = mapped_column(
        Text, nullable=True
    )  # Truncated
    success: Mapped[bool] = mapped_column(
        Boolean, nullable=False
    )
    error_message: Mapped[Optional[str]] = mapped_column(
        Text, nullable=True
    )
    security_check_result: Mapped[str] = mapped_column(
        String(64), nullable=False
    )  # Verdict code, "passed" when allowed
    duration_ms: Mapped[int] = mapped_column(
        nullable=False, default=0
    )
    timestamp: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )

    __table_args__ = (
        Index("ix_skill_invocation_log_skill", "skill_name", "timestamp"),
        Index("ix_skill_invocation_log_timestamp", "timestamp"),
        Index("ix_skill_invocation_log_security", "security_check_result", "timestamp"),
    )

    def __repr__(self) -> str:
        return f"<SkillInvocation(skill={self.skill_name}, success={self.success}, security={self.security_check_result})>"
