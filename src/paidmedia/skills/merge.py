"""
skills/merge.py — Lock-Aware Merge Engine

Writes a normalized SkillPayload into a DocumentStore without clobbering
the user:

  - a field whose section is locked is skipped (reason "locked")
  - a field in its section's user_edited_fields is skipped ("user_edited")
  - a field no target section owns is skipped ("unmapped")
  - every other field present in the payload is overwritten
  - fields absent from the payload are never touched

The whole merge is synchronous.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

from paidmedia.documents.store import DocumentStore
from paidmedia.observability.logger import get_logger
from paidmedia.skills.parser import SkillParser, SkillPayload
from paidmedia.skills.registry import SkillRegistry, SkillSpec

log = get_logger(__name__)

SKIP_LOCKED      = "locked"
SKIP_USER_EDITED = "user_edited"
SKIP_UNMAPPED    = "unmapped"


@dataclass(frozen=True)
class MergeSkip:
    section: Optional[str]
    field: str
    reason: str


@dataclass
class MergeResult:
    applied: dict[str, list[str]] = field(default_factory=dict)
    skipped: list[MergeSkip] = field(default_factory=list)

    @property
    def applied_fields(self) -> list[str]:
        return [f for fields in self.applied.values() for f in fields]

    @property
    def changed(self) -> bool:
        return bool(self.applied)

    def to_dict(self) -> dict[str, Any]:
        return {
            "applied": {k: list(v) for k, v in self.applied.items()},
            "skipped": [
                {"section": s.section, "field": s.field, "reason": s.reason}
                for s in self.skipped
            ],
        }


class MergeEngine:
    def __init__(self, registry: SkillRegistry) -> None:
        self._registry = registry

    def merge(self, payload: SkillPayload, store: DocumentStore) -> MergeResult:
        spec = self._registry.get(payload.skill_name)
        result = MergeResult()

        by_section: dict[str, dict[str, Any]] = {}
        for field_name, value in payload.fields.items():
            section_key = store.owner_of(field_name)
            if section_key is None or section_key not in spec.target_sections:
                result.skipped.append(MergeSkip(section_key, field_name, SKIP_UNMAPPED))
                continue
            by_section.setdefault(section_key, {})[field_name] = value

        for section_key, updates in by_section.items():
            section = store.get(section_key)
            if section.locked:
                result.skipped.extend(
                    MergeSkip(section_key, f, SKIP_LOCKED) for f in updates
                )
                continue

            writable = {}
            for f, v in updates.items():
                if f in section.user_edited_fields:
                    result.skipped.append(MergeSkip(section_key, f, SKIP_USER_EDITED))
                else:
                    writable[f] = v

            if writable:
                applied = store.set_fields(section_key, writable, skip_locked=True)
                if applied:
                    result.applied[section_key] = applied

        log.info(
            "skill.merged",
            skill=payload.skill_name,
            document=store.name,
            applied=len(result.applied_fields),
            skipped=len(result.skipped),
        )
        return result


@dataclass(frozen=True)
class SkillOutcome:
    """Which skill matched, its normalized payload and what the merge did."""
    spec: SkillSpec
    payload: SkillPayload
    merge: Optional[MergeResult] = None

    @property
    def skill_name(self) -> str:
        return self.spec.name

    def to_dict(self) -> dict[str, Any]:
        d = self.payload.to_dict()
        if self.merge is not None:
            d["merge"] = self.merge.to_dict()
        return d


class SkillEngine:
    """detect + merge for one finalized message."""

    def __init__(self, registry: SkillRegistry) -> None:
        self.registry = registry
        self.parser = SkillParser(registry)
        self.merger = MergeEngine(registry)

    def process(self, text: str, store: Optional[DocumentStore]) -> Optional[SkillOutcome]:
        payload = self.parser.detect(text)
        if payload is None:
            return None

        spec = self.registry.get(payload.skill_name)
        merge = None
        if spec.mergeable and store is not None:
            merge = self.merger.merge(payload, store)
        return SkillOutcome(spec=spec, payload=payload, merge=merge)
