"""
Execution backends for the three skill types.

- TemplateExecutor: renders a prompt template with the tool input
- WebhookCaller: calls an external HTTP endpoint
- code handlers: Python callables registered by name

Executors raise on failure; the tool wrapper turns exceptions into error payloads.
"""

import asyncio
import inspect
import logging
from datetime import datetime, timezone
from string import Template
from typing import Any, Awaitable, Callable, Optional, Union

import httpx

from app.agent.skill_config import CodeConfig, TemplateConfig, WebhookConfig
from app.db.models import SkillDB

logger = logging.getLogger(__name__)


# ---------- Templates ----------

BUILTIN_TEMPLATES: dict[str, str] = {
    "summarize": "Summarize the following text in a few sentences:\n\n$input",
    "translate": "Translate the following text into $language:\n\n$input",
    "draft_reply": "Draft a $tone reply to this message:\n\n$input",
    "extract_tasks": "List every action item in the following text as bullet points:\n\n$input",
}


class TemplateExecutor:
    """Render a template skill into a prompt for the model."""

    def __init__(self, templates: Optional[dict[str, str]] = None):
        self.templates = dict(BUILTIN_TEMPLATES if templates is None else templates)

    async def execute(self, config: TemplateConfig, input: str, skill: SkillDB) -> dict:
        text = config.template or self.templates.get(config.template_id)
        if text is None:
            raise ValueError(f"Unknown template: {config.template_id}")
        # safe_substitute leaves unknown $placeholders untouched
        prompt = Template(text).safe_substitute(config.variables, input=input)
        return {"template_id": config.template_id, "prompt": prompt}


# ---------- Webhooks ----------

class WebhookCaller:
    """Call a webhook skill's endpoint with the tool input."""

    def __init__(
        self,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.timeout = timeout
        self._transport = transport

    async def call(self, config: WebhookConfig, input: str, skill: SkillDB) -> Any:
        timeout = config.timeout or self.timeout
        async with httpx.AsyncClient(timeout=timeout, transport=self._transport) as http:
            if config.method == "GET":
                resp = await http.get(
                    config.url,
                    params={"input": input, "skill": skill.name},
                    headers=config.headers,
                )
            else:
                resp = await http.post(
                    config.url,
                    json={"input": input, "skill": skill.name},
                    headers=config.headers,
                )
        resp.raise_for_status()

        content_type = resp.headers.get("content-type", "")
        if "application/json" in content_type:
            return resp.json()
        return resp.text


# ---------- Code handlers ----------

CodeHandler = Callable[[str, dict], Union[Any, Awaitable[Any]]]

CODE_HANDLERS: dict[str, CodeHandler] = {}


def code_handler(name: str):
    """Register a function as the handler for code skills named `name`."""
    def decorator(fn: CodeHandler) -> CodeHandler:
        CODE_HANDLERS[name] = fn
        return fn
    return decorator


async def run_code_handler(
    handlers: dict[str, CodeHandler],
    config: CodeConfig,
    query: str,
    skill: SkillDB,
) -> dict:
    handler_name = config.handler or skill.name
    handler = handlers.get(handler_name)
    if handler is None:
        raise LookupError(f"No code handler registered for '{handler_name}'")

    if inspect.iscoroutinefunction(handler):
        result = await handler(query, config.options)
    else:
        # Sync handlers run in a worker thread to keep the event loop free
        result = await asyncio.to_thread(handler, query, config.options)
    return {"result": result}


@code_handler("echo")
def _echo(query: str, options: dict) -> str:
    return query


@code_handler("word_count")
def _word_count(query: str, options: dict) -> int:
    return len(query.split())


@code_handler("utc_now")
def _utc_now(query: str, options: dict) -> str:
    return datetime.now(timezone.utc).isoformat()
