"""Skill fences in agent output: registry, parser and lock-aware merge."""

from paidmedia.skills.catalog import BUILTIN_SKILLS, default_registry
from paidmedia.skills.merge import (
    MergeEngine,
    MergeResult,
    MergeSkip,
    SkillEngine,
    SkillOutcome,
)
from paidmedia.skills.parser import SkillParser, SkillPayload
from paidmedia.skills.registry import SkillKind, SkillRegistry, SkillSpec

__all__ = [
    "BUILTIN_SKILLS",
    "default_registry",
    "MergeEngine",
    "MergeResult",
    "MergeSkip",
    "SkillEngine",
    "SkillOutcome",
    "SkillParser",
    "SkillPayload",
    "SkillKind",
    "SkillRegistry",
    "SkillSpec",
]
