"""
Security checks gating every skill invocation.

The tool loader only depends on the SecurityChecker protocol. The default
implementation is driven by settings:

* the skill must be approved and active
* webhook skills must target an allow-listed domain (exact host or subdomain)
* input must fit within security_max_input_chars
* input must not match any configured blocked pattern

Every denial carries a stable code that ends up in the audit log.
"""

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Optional, Protocol

from app.db.models import SkillDB

logger = logging.getLogger(__name__)

PASSED = "passed"
NOT_APPROVED = "not_approved"
NOT_ACTIVE = "not_active"
MISSING_DOMAIN = "missing_domain"
DOMAIN_NOT_ALLOWLISTED = "domain_not_allowlisted"
INPUT_TOO_LONG = "input_too_long"
BLOCKED_CONTENT = "blocked_content"
CHECK_ERROR = "security_check_error"  # the checker itself raised

_TRUNCATION_MARKER = "...[truncated]"


@dataclass(frozen=True)
class SecurityVerdict:
    allowed: bool
    code: str
    reason: Optional[str] = None

    @classmethod
    def allow(cls) -> "SecurityVerdict":
        return cls(allowed=True, code=PASSED)

    @classmethod
    def deny(cls, code: str, reason: str) -> "SecurityVerdict":
        return cls(allowed=False, code=code, reason=reason)


class SecurityChecker(Protocol):
    def check(
        self, skill: SkillDB, input: str, context: Optional[dict] = None
    ) -> SecurityVerdict:
        ...


def domain_allowed(domain: str, allowed_domains: list[str]) -> bool:
    """Return True if domain equals or is a subdomain of an allow-list entry."""
    domain = domain.lower().rstrip(".")
    for entry in allowed_domains:
        entry = entry.strip().lower().rstrip(".")
        if not entry:
            continue
        if entry == "*":
            return True
        if entry.startswith("*."):
            entry = entry[2:]
        if domain == entry or domain.endswith("." + entry):
            return True
    return False


class DefaultSecurityChecker:
    """Settings-driven checker used by the API."""

    def __init__(
        self,
        allowed_domains: Optional[list[str]] = None,
        blocked_patterns: Optional[list[str]] = None,
        max_input_chars: int = 10000,
    ):
        self.allowed_domains = list(allowed_domains or [])
        self.max_input_chars = max_input_chars
        self._blocked = []
        for pattern in blocked_patterns or []:
            try:
                self._blocked.append(re.compile(pattern, re.IGNORECASE))
            except re.error as e:
                logger.warning(f"Ignoring invalid blocked pattern {pattern!r}: {e}")

    @classmethod
    def from_settings(cls, settings) -> "DefaultSecurityChecker":
        return cls(
            allowed_domains=settings.webhook_allowed_domains,
            blocked_patterns=settings.security_blocked_patterns,
            max_input_chars=settings.security_max_input_chars,
        )

    def check(
        self, skill: SkillDB, input: str, context: Optional[dict] = None
    ) -> SecurityVerdict:
        context = context or {}

        if not skill.approved:
            return SecurityVerdict.deny(NOT_APPROVED, f"Skill '{skill.name}' is not approved")
        if not skill.active:
            return SecurityVerdict.deny(NOT_ACTIVE, f"Skill '{skill.name}' is not active")

        if skill.skill_type == "webhook":
            domain = context.get("domain")
            if not domain:
                return SecurityVerdict.deny(
                    MISSING_DOMAIN, f"Skill '{skill.name}' has no valid webhook URL"
                )
            if not domain_allowed(domain, self.allowed_domains):
                return SecurityVerdict.deny(
                    DOMAIN_NOT_ALLOWLISTED, f"Domain '{domain}' is not in the allow-list"
                )

        if len(input) > self.max_input_chars:
            return SecurityVerdict.deny(
                INPUT_TOO_LONG,
                f"Input exceeds {self.max_input_chars} characters",
            )

        for pattern in self._blocked:
            if pattern.search(input):
                return SecurityVerdict.deny(BLOCKED_CONTENT, "Input contains blocked content")

        return SecurityVerdict.allow()


def truncate_for_log(value: Any, max_chars: int = 1000) -> str:
    """Render a value as a string for the audit log, cut to max_chars."""
    if isinstance(value, str):
        text = value
    else:
        try:
            text = json.dumps(value, ensure_ascii=False, default=str)
        except (TypeError, ValueError):
            text = str(value)
    if len(text) <= max_chars:
        return text
    return text[:max_chars] + _TRUNCATION_MARKER
