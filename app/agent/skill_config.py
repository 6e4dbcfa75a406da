"""Typed skill configuration.

A skill stores its config as opaque JSON text. At dispatch time the text is
parsed into exactly one variant per skill type.
"""
import json
from typing import Optional, Union
from urllib.parse import urlparse

from pydantic import BaseModel, Field, ValidationError, field_validator


class SkillConfigError(ValueError):
    """A skill's stored config could not be parsed for its type."""


class TemplateConfig(BaseModel):
    template_id: str = Field(..., min_length=1)
    template: Optional[str] = None  # Inline text overriding the built-in template
    variables: dict[str, str] = Field(default_factory=dict)


class WebhookConfig(BaseModel):
    url: str
    method: str = "POST"
    headers: dict[str, str] = Field(default_factory=dict)
    timeout: Optional[float] = Field(default=None, gt=0)

    @field_validator("url")
    @classmethod
    def _check_url(cls, v: str) -> str:
        parsed = urlparse(v)
        if parsed.scheme not in ("http", "https") or not parsed.hostname:
            raise ValueError(f"Invalid webhook URL: {v!r}")
        return v

    @field_validator("method")
    @classmethod
    def _check_method(cls, v: str) -> str:
        v = v.upper()
        if v not in ("GET", "POST"):
            raise ValueError("Webhook method must be GET or POST")
        return v

    @property
    def domain(self) -> str:
        return urlparse(self.url).hostname or ""


class CodeConfig(BaseModel):
    handler: Optional[str] = None  # Defaults to the skill name
    options: dict = Field(default_factory=dict)


SkillConfig = Union[TemplateConfig, WebhookConfig, CodeConfig]

CONFIG_TYPES: dict[str, type[BaseModel]] = {
    "template": TemplateConfig,
    "webhook": WebhookConfig,
    "code": CodeConfig,
}


def parse_skill_config(skill_type: str, raw: Optional[str | dict]) -> SkillConfig:
    """Parse stored config text (or an already-decoded dict) for a skill type.

    Raises SkillConfigError on unknown type, invalid JSON or a wrong shape.
    """
    model = CONFIG_TYPES.get(skill_type)
    if model is None:
        raise SkillConfigError(f"Unknown skill type: {skill_type}")

    if raw is None or raw == "":
        data = {}
    elif isinstance(raw, dict):
        data = raw
    else:
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise SkillConfigError(f"Invalid config JSON: {e}") from e

    if not isinstance(data, dict):
        raise SkillConfigError("Skill config must be a JSON object")

    try:
        return model.model_validate(data)
    except ValidationError as e:
        errors = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'config'}: {err['msg']}"
            for err in e.errors()
        )
        raise SkillConfigError(f"Invalid {skill_type} config: {errors}") from e
