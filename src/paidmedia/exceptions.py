"""
exceptions.py — Paid Media Unified Error Hierarchy

All paidmedia-specific exceptions live here. Every layer raises typed
subclasses of PaidMediaError — never bare Exception.

Import from here, not from individual modules:
    from paidmedia.exceptions import NoActiveSessionError, SkillParseError

Hierarchy:
    PaidMediaError
    ├── SessionError
    │   └── NoActiveSessionError
    ├── ChannelError
    ├── ProxyError
    │   └── ProxyUpstreamError
    ├── AgentError
    │   └── AgentNotConfiguredError
    ├── SkillError
    │   ├── SkillNotFoundError
    │   ├── SkillParseError
    │   └── SkillSchemaError
    └── DocumentError
        └── SectionNotFoundError

Skill parse/schema errors never reach the UI. The parser raises them
internally, logs them, and reports "no skill output" to its caller.
"""

from __future__ import annotations

from typing import Optional


# ─────────────────────────────────────────────────────────────────────────────
# Root
# ─────────────────────────────────────────────────────────────────────────────

class PaidMediaError(Exception):
    """Base class for all paidmedia exceptions."""


# ─────────────────────────────────────────────────────────────────────────────
# Session layer
# ─────────────────────────────────────────────────────────────────────────────

class SessionError(PaidMediaError):
    """Session lifecycle violation (duplicate create, no active session)."""


class NoActiveSessionError(SessionError):
    """An operation needed an active session but none exists."""

    def __init__(self, message: str = "No active session") -> None:
        super().__init__(message)


class ChannelError(PaidMediaError):
    """A message was pushed into a channel that is already closed."""


# ─────────────────────────────────────────────────────────────────────────────
# Proxy layer
# ─────────────────────────────────────────────────────────────────────────────

class ProxyError(PaidMediaError):
    """Base for auth proxy errors."""


class ProxyUpstreamError(ProxyError):
    """The upstream LLM proxy could not be reached (refused, timeout, TLS)."""

    def __init__(self, target: str, reason: str) -> None:
        self.target = target
        self.reason = reason
        super().__init__(f"Upstream {target} unreachable: {reason}")


# ─────────────────────────────────────────────────────────────────────────────
# Agent layer
# ─────────────────────────────────────────────────────────────────────────────

class AgentError(PaidMediaError):
    """Base for agent client errors."""


class AgentNotConfiguredError(AgentError):
    """The agent client has no API key or upstream URL configured."""


# ─────────────────────────────────────────────────────────────────────────────
# Skill layer
# ─────────────────────────────────────────────────────────────────────────────

class SkillError(PaidMediaError):
    """Base for skill detection errors. Swallowed by the parser."""

    def __init__(self, skill_name: str, message: str) -> None:
        self.skill_name = skill_name
        super().__init__(f"[{skill_name}] {message}")


class SkillParseError(SkillError):
    """Fence body is not valid JSON."""


class SkillNotFoundError(SkillError):
    """No skill is registered under the requested name."""

    def __init__(self, skill_name: str, available: list[str]) -> None:
        super().__init__(skill_name, f"not registered. Available skills: {available}")


class SkillSchemaError(SkillError):
    """Fence body is JSON but lacks required top-level keys."""

    def __init__(self, skill_name: str, missing: list[str], message: Optional[str] = None) -> None:
        self.missing = missing
        super().__init__(skill_name, message or f"missing required keys: {missing}")


# ─────────────────────────────────────────────────────────────────────────────
# Document layer
# ─────────────────────────────────────────────────────────────────────────────

class DocumentError(PaidMediaError):
    """Base for document store errors."""


class SectionNotFoundError(DocumentError):
    """Requested section key does not exist in the document."""

    def __init__(self, section_key: str, available: list[str]) -> None:
        self.section_key = section_key
        super().__init__(
            f"Section '{section_key}' does not exist. Available sections: {available}"
        )


# ─────────────────────────────────────────────────────────────────────────────
# Convenience: all public names
# ─────────────────────────────────────────────────────────────────────────────

__all__ = [
    "PaidMediaError",
    # Session
    "SessionError",
    "NoActiveSessionError",
    "ChannelError",
    # Proxy
    "ProxyError",
    "ProxyUpstreamError",
    # Agent
    "AgentError",
    "AgentNotConfiguredError",
    # Skill
    "SkillError",
    "SkillNotFoundError",
    "SkillParseError",
    "SkillSchemaError",
    # Document
    "DocumentError",
    "SectionNotFoundError",
]
