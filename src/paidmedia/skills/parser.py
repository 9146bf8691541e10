"""
skills/parser.py — Skill Output Parser

Scans finalized assistant text for the first fenced code block whose tag
names a registered skill, e.g.

    ```campaign-brief-json
    {"campaignDetails": "...", "businessObjective": "..."}
    ```

Only that first skill fence is considered. A malformed body (bad JSON,
missing required keys) means "no skill output": the failure is logged at
warning level and detect() returns None. Callers never see the exception.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import Any, Iterator, Optional

from paidmedia.exceptions import SkillError, SkillParseError, SkillSchemaError
from paidmedia.observability.logger import get_logger
from paidmedia.skills.registry import SkillKind, SkillRegistry, SkillSpec

log = get_logger(__name__)

# ```<tag>  (optional trailing spaces)  \n  <body>  \n  ```
_FENCE_RE = re.compile(r"```([A-Za-z0-9_-]+)[^\S\n]*\n(.*?)\n\s*```", re.DOTALL)


@dataclass(frozen=True)
class SkillPayload:
    skill_name: str
    kind: SkillKind
    raw: Any
    fields: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"skillName": self.skill_name, "kind": self.kind.value, "data": self.fields}


class SkillParser:
    def __init__(self, registry: SkillRegistry) -> None:
        self._registry = registry

    def iter_fences(self, text: str) -> Iterator[tuple[SkillSpec, str]]:
        """Yield (spec, body) for every fence with a registered tag, in order."""
        for match in _FENCE_RE.finditer(text):
            spec = self._registry.resolve_fence(match.group(1))
            if spec is not None:
                yield spec, match.group(2)

    def detect(self, text: str) -> Optional[SkillPayload]:
        """Return the payload of the first skill fence, or None."""
        if not text or "```" not in text:
            return None

        first = next(self.iter_fences(text), None)
        if first is None:
            return None

        spec, body = first
        try:
            payload = self.parse(spec, body)
        except SkillError as e:
            log.warning(
                "skill.rejected",
                skill=spec.name,
                error_type=type(e).__name__,
                error=str(e),
            )
            return None

        log.info("skill.detected", skill=spec.name, fields=sorted(payload.fields))
        return payload

    def parse(self, spec: SkillSpec, body: str) -> SkillPayload:
        """Parse and validate one fence body. Raises SkillParseError / SkillSchemaError."""
        try:
            raw = json.loads(body)
        except json.JSONDecodeError as e:
            raise SkillParseError(spec.name, f"invalid JSON: {e}") from e

        data = raw
        if isinstance(data, list) and spec.list_key:
            data = {spec.list_key: data}
        if not isinstance(data, dict):
            raise SkillSchemaError(
                spec.name, [], f"expected a JSON object, got {type(raw).__name__}"
            )

        missing = spec.missing_keys(data)
        if missing:
            raise SkillSchemaError(spec.name, missing)

        return SkillPayload(
            skill_name=spec.name,
            kind=spec.kind,
            raw=raw,
            fields=spec.normalize(data),
        )
