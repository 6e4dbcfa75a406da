"""
Tool loader.

Assembles the agent's tools for one conversational turn from the approved and
active skills in the registry. Every tool call goes through the same pipeline:

    security check -> execute (template / webhook / code) -> audit log

A tool call always resolves to a value: either the skill's result or
{"error": "..."}. Exceptions never escape. A result shaped like
{"error": ...} is audited as a failure.

Malformed config is an execution failure, reported when the tool is called.
The one exception is a webhook whose URL cannot be parsed: it has no domain,
so the security check denies it (missing_domain) and the parse error is kept
in the entry's error_message.
"""

import logging
import time
from typing import Any, Optional

from app.agent.context import ToolContext
from app.agent.executors import run_code_handler
from app.agent.security import CHECK_ERROR, SecurityVerdict, truncate_for_log
from app.agent.skill_config import (
    CodeConfig,
    SkillConfig,
    SkillConfigError,
    TemplateConfig,
    WebhookConfig,
    parse_skill_config,
)
from app.db.models import SkillDB
from app.services.invocation_log import log_invocation
from app.services.skill_registry import get_eligible_skills

logger = logging.getLogger(__name__)

# Name of the single string argument each skill type accepts
INPUT_FIELDS = {
    "template": "input",
    "webhook": "input",
    "code": "query",
}

_INPUT_DESCRIPTIONS = {
    "template": "Input for the skill",
    "webhook": "Input for the webhook",
    "code": "Query input",
}


def _is_error_payload(result: Any) -> bool:
    return isinstance(result, dict) and bool(result.get("error"))


class Tool:
    """Invocable wrapper around one skill snapshot."""

    def __init__(self, skill: SkillDB, ctx: ToolContext):
        self.skill = skill
        self.ctx = ctx
        self.name = skill.name
        self.description = skill.description or ""
        self.input_field = INPUT_FIELDS[skill.skill_type]

        # Config problems surface when the tool is called, not at load time
        self._config: Optional[SkillConfig] = None
        self._config_error: Optional[SkillConfigError] = None
        try:
            self._config = parse_skill_config(skill.skill_type, skill.config)
        except SkillConfigError as e:
            self._config_error = e
            logger.warning(f"Skill '{skill.name}' has invalid config: {e}")

    @property
    def input_schema(self) -> dict:
        return {
            "type": "object",
            "properties": {
                self.input_field: {
                    "type": "string",
                    "description": _INPUT_DESCRIPTIONS[self.skill.skill_type],
                },
            },
            "required": [self.input_field],
        }

    def to_schema(self) -> dict:
        """Tool definition in the format sent to the model."""
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": self.input_schema,
        }

    def _security_context(self) -> Optional[dict]:
        if self.skill.skill_type != "webhook":
            return None
        domain = self._config.domain if isinstance(self._config, WebhookConfig) else None
        return {"domain": domain}

    def _coerce_input(self, arguments: Any) -> str:
        """Pull the single string input out of whatever the model sent."""
        if isinstance(arguments, str):
            return arguments
        if not isinstance(arguments, dict):
            return ""
        raw = arguments.get(self.input_field)
        if raw is None:
            return ""
        return raw if isinstance(raw, str) else str(raw)

    async def __call__(self, arguments: Any = None) -> Any:
        raw = self._coerce_input(arguments)
        start = time.monotonic()

        try:
            verdict = self.ctx.security_checker.check(self.skill, raw, self._security_context())
        except Exception as e:
            logger.error(f"Security check for skill '{self.name}' raised: {e}", exc_info=True)
            verdict = SecurityVerdict.deny(CHECK_ERROR, "Security check failed")

        if not verdict.allowed:
            reason = verdict.reason or f"Blocked by security check ({verdict.code})"
            logger.info(f"Skill '{self.name}' denied: {verdict.code}")
            # A webhook with unusable config has no domain; keep the parse error with the denial
            config_error = str(self._config_error) if self._config_error is not None else None
            await self._record(raw, None, False, verdict.code, start, config_error)
            return {"error": reason}

        try:
            result = await self._execute(raw)
        except Exception as e:
            error_message = str(e) or type(e).__name__
            logger.warning(f"Skill '{self.name}' failed: {error_message}")
            await self._record(raw, None, False, verdict.code, start, error_message)
            return {"error": error_message}

        if _is_error_payload(result):
            # e.g. a webhook answering 200 with {"error": "..."}
            error_message = str(result["error"])
            logger.warning(f"Skill '{self.name}' returned an error: {error_message}")
            await self._record(raw, result, False, verdict.code, start, error_message)
            return result

        await self._record(raw, result, True, verdict.code, start)
        return result

    async def _execute(self, raw: str) -> Any:
        if self._config_error is not None:
            raise self._config_error

        config = self._config
        if isinstance(config, TemplateConfig):
            return await self.ctx.template_executor.execute(config, raw, self.skill)
        if isinstance(config, WebhookConfig):
            return await self.ctx.webhook_caller.call(config, raw, self.skill)
        if isinstance(config, CodeConfig):
            return await run_code_handler(self.ctx.code_handlers, config, raw, self.skill)
        raise SkillConfigError(f"Unsupported config for skill '{self.name}'")

    async def _record(
        self,
        raw: str,
        output: Any,
        success: bool,
        security_code: str,
        start: float,
        error_message: Optional[str] = None,
    ) -> None:
        """Write the audit entry. A failed write is logged, never raised."""
        max_chars = self.ctx.log_max_chars
        try:
            async with self.ctx.session_factory() as session:
                await log_invocation(
                    session,
                    skill_name=self.name,
                    skill_type=self.skill.skill_type,
                    thread_id=self.ctx.thread_id,
                    user_id=self.ctx.user_id,
                    channel=self.ctx.channel,
                    input=truncate_for_log(raw, max_chars),
                    output=truncate_for_log(output, max_chars) if output is not None else None,
                    success=success,
                    error_message=error_message,
                    security_check_result=security_code,
                    duration_ms=int((time.monotonic() - start) * 1000),
                )
        except Exception as e:
            logger.error(f"Failed to write invocation log for skill '{self.name}': {e}", exc_info=True)

    def __repr__(self) -> str:
        return f"<Tool(name={self.name}, type={self.skill.skill_type})>"


async def load_tools(ctx: ToolContext) -> dict[str, Tool]:
    """Load one tool per approved and active skill, keyed by skill name."""
    async with ctx.session_factory() as session:
        skills = await get_eligible_skills(session)

    tools: dict[str, Tool] = {}
    for skill in skills:
        if skill.skill_type not in INPUT_FIELDS:
            logger.warning(f"Skipping skill '{skill.name}': unknown skill type '{skill.skill_type}'")
            continue
        if skill.name in tools:
            # Oldest registration wins
            logger.warning(f"Skipping duplicate skill name '{skill.name}' (id={skill.id})")
            continue
        tools[skill.name] = Tool(skill, ctx)

    logger.debug(f"Loaded {len(tools)} tools")
    return tools
