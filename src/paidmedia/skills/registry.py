"""
skills/registry.py — Skill Registry

Maps skill names (and their code-fence tags) to SkillSpecs.
Populated once at startup by catalog.default_registry(). Read-only at runtime.

Usage:
    registry = SkillRegistry()
    registry.register(SkillSpec(name="forecast", kind=SkillKind.FORECAST,
                                required_keys=("predictions", "trend")))

    spec = registry.resolve_fence("forecast-json")
    all_specs = registry.list_specs()
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Mapping, Optional

from paidmedia.exceptions import SkillNotFoundError

Normalizer = Callable[[Any], Any]

FENCE_SUFFIX = "-json"


class SkillKind(str, Enum):
    CAMPAIGN_BRIEF          = "campaign-brief"
    BRIEF_UPDATE            = "brief-update"
    BLUEPRINTS              = "blueprints"
    BLUEPRINT_UPDATE        = "blueprint-update"
    AUDIENCE_RECOMMENDATION = "audience-recommendation"
    SEGMENT_OVERLAP         = "segment-overlap"
    FORECAST                = "forecast"
    ANOMALIES               = "anomalies"
    CREATIVE_FATIGUE        = "creative-fatigue"
    ATTRIBUTION             = "attribution"
    BENCHMARK               = "benchmark"
    BUDGET_ALLOCATION       = "budget-allocation"
    MEDIA_MIX               = "media-mix"
    AB_TESTS                = "ab-tests"
    OPTIMIZATION_ACTIONS    = "optimization-actions"
    CLONE_CAMPAIGN          = "clone-campaign"
    REPORT                  = "report"
    UNKNOWN                 = "unknown"

    @classmethod
    def for_name(cls, name: str) -> "SkillKind":
        try:
            return cls(name)
        except ValueError:
            return cls.UNKNOWN


@dataclass(frozen=True)
class SkillSpec:
    """
    Static declaration of one skill's output contract.

    Rules:
      - name is the fence tag; "<name>-json" is accepted as well.
      - required_keys are top-level keys that must be present after parsing.
      - normalizers map a top-level field to a function reshaping its value.
      - target_sections names the document sections a merge may write to.
        Empty means the skill is detected and normalized but never merged.
      - list_key lets a bare JSON array stand in for {list_key: [...]}.
    """
    name: str
    kind: SkillKind = SkillKind.UNKNOWN
    required_keys: tuple[str, ...] = ()
    normalizers: Mapping[str, Normalizer] = field(default_factory=dict)
    target_sections: tuple[str, ...] = ()
    list_key: Optional[str] = None
    description: str = ""

    @property
    def fence_tags(self) -> tuple[str, str]:
        return (self.name, f"{self.name}{FENCE_SUFFIX}")

    @property
    def mergeable(self) -> bool:
        return bool(self.target_sections)

    def missing_keys(self, data: Mapping[str, Any]) -> list[str]:
        return [k for k in self.required_keys if k not in data]

    def normalize(self, data: Mapping[str, Any]) -> dict[str, Any]:
        """Return a copy of data with every registered normalizer applied."""
        out = dict(data)
        for key, fn in self.normalizers.items():
            if key in out:
                out[key] = fn(out[key])
        return out

    def to_dict(self) -> dict[str, Any]:
        return {
            "skillName": self.name,
            "requiredTopLevelKeys": list(self.required_keys),
            "fieldNormalizers": sorted(self.normalizers),
            "targetSectionKeys": list(self.target_sections),
        }


class SkillRegistry:
    """
    Central store for skill specs, keyed by name and by fence tag.

    Not designed for concurrent writes. All writes happen at startup.
    """

    def __init__(self) -> None:
        self._specs: dict[str, SkillSpec] = {}
        self._fences: dict[str, str] = {}

    # ── Write (startup only) ──────────────────────────────────────────────────

    def register(self, spec: SkillSpec) -> None:
        """Register a skill spec. Raises ValueError on duplicate name or fence tag."""
        if spec.name in self._specs:
            raise ValueError(
                f"Skill '{spec.name}' is already registered. "
                f"Skill names must be unique."
            )
        clashes = [tag for tag in spec.fence_tags if tag in self._fences]
        if clashes:
            raise ValueError(
                f"Skill '{spec.name}' fence tag(s) {clashes} already belong to "
                f"'{self._fences[clashes[0]]}'."
            )
        self._specs[spec.name] = spec
        for tag in spec.fence_tags:
            self._fences[tag] = spec.name

    # ── Read (runtime) ────────────────────────────────────────────────────────

    def get(self, name: str) -> SkillSpec:
        """Return the spec. Raises SkillNotFoundError if not found."""
        if name not in self._specs:
            raise SkillNotFoundError(name, sorted(self._specs))
        return self._specs[name]

    def get_or_none(self, name: str) -> Optional[SkillSpec]:
        return self._specs.get(name)

    def resolve_fence(self, tag: str) -> Optional[SkillSpec]:
        """Return the spec whose fence tags include `tag`, or None."""
        name = self._fences.get(tag.strip().lower())
        return self._specs[name] if name else None

    def list_specs(self, mergeable_only: bool = False) -> list[SkillSpec]:
        """All specs in registration order."""
        specs = list(self._specs.values())
        if mergeable_only:
            specs = [s for s in specs if s.mergeable]
        return specs

    def __len__(self) -> int:
        return len(self._specs)

    def __contains__(self, name: object) -> bool:
        return name in self._specs

    def __repr__(self) -> str:
        return f"<SkillRegistry skills={sorted(self._specs)}>"
