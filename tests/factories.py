"""
Test data factories for creating database objects.
"""
import json
import uuid
from datetime import datetime
from typing import Optional

from app.db.models import SkillDB, SkillInvocationDB


def make_skill(
    name: str = "test-skill",
    skill_type: str = "code",
    description: str = "A test skill",
    config: Optional[dict | str] = None,
    approved: bool = True,
    active: bool = True,
    **kwargs,
) -> SkillDB:
    if config is None:
        config = {"handler": "echo"} if skill_type == "code" else {}
    return SkillDB(
        id=kwargs.get("id", str(uuid.uuid4())),
        name=name,
        skill_type=skill_type,
        description=description,
        config=json.dumps(config) if isinstance(config, dict) else config,
        approved=approved,
        active=active,
        created_at=kwargs.get("created_at", datetime.utcnow()),
        updated_at=kwargs.get("updated_at", datetime.utcnow()),
    )


def make_webhook_skill(
    name: str = "ping",
    url: str = "https://example.com/hook",
    **kwargs,
) -> SkillDB:
    return make_skill(name=name, skill_type="webhook", config={"url": url}, **kwargs)


def make_template_skill(
    name: str = "summarizer",
    template_id: str = "summarize",
    **kwargs,
) -> SkillDB:
    return make_skill(name=name, skill_type="template", config={"template_id": template_id}, **kwargs)


def make_invocation(
    skill_name: str = "test-skill",
    success: bool = True,
    security_check_result: str = "passed",
    timestamp: Optional[datetime] = None,
    **kwargs,
) -> SkillInvocationDB:
    return SkillInvocationDB(
        id=kwargs.get("id", str(uuid.uuid4())),
        skill_name=skill_name,
        skill_type=kwargs.get("skill_type", "code"),
        thread_id=kwargs.get("thread_id"),
        user_id=kwargs.get("user_id"),
        channel=kwargs.get("channel"),
        input=kwargs.get("input", "hello"),
        output=kwargs.get("output", "hello" if success else None),
        success=success,
        error_message=kwargs.get("error_message"),
        security_check_result=security_check_result,
        duration_ms=kwargs.get("duration_ms", 12),
        timestamp=timestamp or datetime.utcnow(),
    )
