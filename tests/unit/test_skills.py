"""
tests/unit/test_skills.py — Skill Registry, Parser, Normalizer and Merge Tests

Covers:
  - Registry: duplicate names and fences rejected, fence resolution
  - Parser: first fence wins, -json suffix, malformed output is "no skill"
  - Normalizers reshape nested agent JSON into flat document fields
  - Merge: writes mapped fields, respects locks and user edits, reports
    unmapped fields, never touches fields absent from the payload
"""

from __future__ import annotations

import json

import pytest

from paidmedia.documents.brief import new_brief_store
from paidmedia.exceptions import SkillNotFoundError, SkillParseError, SkillSchemaError
from paidmedia.skills import normalizers as n
from paidmedia.skills.catalog import BUILTIN_SKILLS, default_registry
from paidmedia.skills.merge import (
    SKIP_LOCKED,
    SKIP_UNMAPPED,
    SKIP_USER_EDITED,
    SkillEngine,
)
from paidmedia.skills.parser import SkillParser
from paidmedia.skills.registry import SkillKind, SkillRegistry, SkillSpec


# ── Helpers ───────────────────────────────────────────────────────────────────

def _fence(tag: str, body) -> str:
    text = body if isinstance(body, str) else json.dumps(body, indent=2)
    return f"Here is your brief.\n\n```{tag}\n{text}\n```\n\nLet me know what to change."


_BRIEF = {
    "campaignDetails": {
        "campaignName": "Summer Glow",
        "campaignType": "Awareness",
        "description": "Launch of the SPF line",
    },
    "brandProduct": "Glow SPF 50",
    "businessObjective": "Grow share in the 25-34 segment",
    "primaryGoals": ["Reach 2M", "Lift awareness 10%"],
    "primaryAudience": [{"name": "Outdoor millennials", "size": "2.1M"}],
    "mandatoryChannels": [{"name": "Meta"}, "TikTok"],
    "phases": [{"name": "Tease"}, {"name": "Launch"}],
    "budgetAmount": "$250,000",
}


@pytest.fixture
def registry():
    return default_registry()


@pytest.fixture
def engine(registry):
    return SkillEngine(registry)


# ─────────────────────────────────────────────────────────────────────────────
# Registry
# ─────────────────────────────────────────────────────────────────────────────

class TestSkillRegistry:
    def test_builtin_catalogue_loads(self, registry):
        assert len(registry) == len(BUILTIN_SKILLS)
        assert "campaign-brief" in registry
        assert registry.get("forecast").kind is SkillKind.FORECAST

    def test_duplicate_name_rejected(self):
        reg = SkillRegistry()
        reg.register(SkillSpec(name="forecast"))
        with pytest.raises(ValueError, match="already registered"):
            reg.register(SkillSpec(name="forecast"))

    def test_fence_clash_rejected(self):
        reg = SkillRegistry()
        reg.register(SkillSpec(name="a-json"))
        with pytest.raises(ValueError, match="fence tag"):
            reg.register(SkillSpec(name="a"))

    def test_resolve_fence_accepts_suffix_and_case(self, registry):
        assert registry.resolve_fence("campaign-brief").name == "campaign-brief"
        assert registry.resolve_fence("Campaign-Brief-JSON").name == "campaign-brief"
        assert registry.resolve_fence("python") is None

    def test_get_unknown_raises(self, registry):
        with pytest.raises(SkillNotFoundError):
            registry.get("nope")
        assert registry.get_or_none("nope") is None

    def test_membership(self, registry):
        assert "campaign-brief" in registry
        assert "campaign-brief-json" not in registry
        assert len(registry) == 17
        reg.unregister("x")
        assert reg.resolve_fence("x-json") is None
        reg.register(SkillSpec(name="x"))

    def test_mergeable_filter(self, registry):
        names = {s.name for s in registry.list_specs(mergeable_only=True)}
        assert names == {"campaign-brief", "brief-update"}

    def test_unknown_kind(self):
        assert SkillKind.for_name("made-up") is SkillKind.UNKNOWN


# ─────────────────────────────────────────────────────────────────────────────
# Parser
# ─────────────────────────────────────────────────────────────────────────────

class TestSkillParser:
    def test_detects_json_suffixed_fence(self, registry):
        payload = SkillParser(registry).detect(_fence("campaign-brief-json", _BRIEF))
        assert payload is not None
        assert payload.skill_name == "campaign-brief"
        assert payload.kind is SkillKind.CAMPAIGN_BRIEF

    def test_plain_text_has_no_skill(self, registry):
        assert SkillParser(registry).detect("No fences here.") is None
        assert SkillParser(registry).detect("") is None

    def test_unregistered_fence_ignored(self, registry):
        text = "```python\nprint('hi')\n```"
        assert SkillParser(registry).detect(text) is None

    def test_first_skill_fence_wins(self, registry):
        text = (
            _fence("forecast", {"predictions": [], "trend": "up",
                                "trendPercentage": 4, "aiInsight": "ok"})
            + _fence("campaign-brief", _BRIEF)
        )
        payload = SkillParser(registry).detect(text)
        assert payload.skill_name == "forecast"

    def test_invalid_json_returns_none(self, registry):
        text = _fence("campaign-brief", "{not json")
        assert SkillParser(registry).detect(text) is None

    def test_missing_required_keys_returns_none(self, registry):
        text = _fence("campaign-brief", {"brandProduct": "x"})
        assert SkillParser(registry).detect(text) is None

    def test_parse_raises_typed_errors(self, registry):
        parser = SkillParser(registry)
        spec = registry.get("campaign-brief")
        with pytest.raises(SkillParseError):
            parser.parse(spec, "{")
        with pytest.raises(SkillSchemaError) as exc_info:
            parser.parse(spec, json.dumps({"campaignDetails": "x"}))
        assert exc_info.value.missing == ["businessObjective"]

    def test_non_object_rejected(self, registry):
        with pytest.raises(SkillSchemaError):
            SkillParser(registry).parse(registry.get("forecast"), "[1, 2]")

    def test_bare_list_wrapped_under_list_key(self, registry):
        payload = SkillParser(registry).detect(
            _fence("blueprints", [{"name": "Balanced", "confidence": 72}])
        )
        assert payload is not None
        assert payload.fields["blueprints"][0]["confidence"] == "Medium"

    def test_brief_fields_normalized(self, registry):
        payload = SkillParser(registry).detect(_fence("campaign-brief", _BRIEF))
        fields = payload.fields
        assert fields["campaignDetails"] == "Summer Glow — Awareness — Launch of the SPF line"
        assert fields["primaryAudience"] == ["Outdoor millennials"]
        assert fields["mandatoryChannels"] == ["Meta", "TikTok"]
        assert fields["phases"] == "2 phases: Tease, Launch"


# ─────────────────────────────────────────────────────────────────────────────
# Normalizers
# ─────────────────────────────────────────────────────────────────────────────

class TestNormalizers:
    @pytest.mark.parametrize("value,label", [(95, "High"), (80, "High"), (50, "Medium"), (12.5, "Low")])
    def test_confidence_label(self, value, label):
        assert n.confidence_label(value) == label

    def test_confidence_passes_through_non_numbers(self):
        assert n.confidence_label("High") == "High"
        assert n.confidence_label(True) is True

    def test_phases(self):
        assert n.phases([]) == ""
        assert n.phases([{"name": "Launch"}]) == "1 phase: Launch"
        assert n.phases([{}, {}]) == "2 phases"
        assert n.phases("already text") == "already text"

    def test_campaign_details_skips_blanks(self):
        assert n.campaign_details({"campaignName": "A", "description": "B"}) == "A — B"

    def test_metrics_prefers_estimated(self):
        out = n.metrics({"estimatedReach": "1M", "ctr": "1.2%"})
        assert out == {"reach": "1M", "ctr": "1.2%", "roas": "", "conversions": ""}

    def test_messaging_and_cta(self):
        assert n.messaging({"primaryMessage": "Shine safely"}) == "Shine safely"
        assert n.messaging({"toneAndVoice": "Warm", "supportingMessages": ["A"]}) == "Warm. A"
        assert n.cta({"label": "Shop now"}) == "Shop now"

    def test_budget(self):
        assert n.budget({"total": "$10k", "pacing": "even"}) == {"amount": "$10k", "pacing": "even"}
        assert n.budget({"amount": "$10k"}) == {"amount": "$10k"}


# ─────────────────────────────────────────────────────────────────────────────
# Merge
# ─────────────────────────────────────────────────────────────────────────────

class TestMerge:
    def test_campaign_brief_writes_every_mapped_field(self, engine):
        store = new_brief_store()
        outcome = engine.process(_fence("campaign-brief", _BRIEF), store)

        assert outcome is not None
        assert outcome.merge is not None
        assert set(outcome.merge.applied_fields) == set(_BRIEF)
        assert store.value("brandProduct") == "Glow SPF 50"
        assert store.value("primaryGoals") == ["Reach 2M", "Lift awareness 10%"]
        assert outcome.merge.skipped == []

    def test_user_edited_field_preserved(self, engine):
        store = new_brief_store()
        store.edit_field("brandProduct", "brandProduct", "My wording")

        outcome = engine.process(_fence("campaign-brief", _BRIEF), store)

        assert store.value("brandProduct") == "My wording"
        skipped = {(s.field, s.reason) for s in outcome.merge.skipped}
        assert ("brandProduct", SKIP_USER_EDITED) in skipped
        assert store.value("businessObjective") == _BRIEF["businessObjective"]

    def test_user_edit_only_protects_its_own_field(self, engine):
        store = new_brief_store()
        store.edit_field("goals", "secondaryGoals", ["Mine"])
        engine.process(_fence("campaign-brief", _BRIEF), store)
        assert store.value("primaryGoals") == _BRIEF["primaryGoals"]
        assert store.value("secondaryGoals") == ["Mine"]

    def test_locked_section_untouched(self, engine):
        store = new_brief_store()
        store.set_locked("budget", True)

        outcome = engine.process(_fence("campaign-brief", _BRIEF), store)

        assert store.value("budgetAmount") == ""
        assert store.value("phases") == ""
        locked = {s.field for s in outcome.merge.skipped if s.reason == SKIP_LOCKED}
        assert locked == {"budgetAmount", "phases"}

    def test_unmapped_field_reported(self, engine):
        store = new_brief_store()
        brief = dict(_BRIEF, notAField="x")
        outcome = engine.process(_fence("campaign-brief", brief), store)
        assert any(
            s.field == "notAField" and s.reason == SKIP_UNMAPPED for s in outcome.merge.skipped
        )

    def test_absent_fields_never_touched(self, engine):
        store = new_brief_store()
        store.set_fields("timeline", {"timelineStart": "2025-06-01"})

        engine.process(_fence("brief-update", {"brandProduct": "New"}), store)

        assert store.value("timelineStart") == "2025-06-01"
        assert store.value("brandProduct") == "New"

    def test_non_mergeable_skill_detected_without_merge(self, engine):
        store = new_brief_store()
        before = store.snapshot()
        outcome = engine.process(_fence("anomalies", {"alerts": []}), store)
        assert outcome.skill_name == "anomalies"
        assert outcome.merge is None
        assert store.snapshot() == before

    def test_no_store_means_no_merge(self, engine):
        outcome = engine.process(_fence("campaign-brief", _BRIEF), None)
        assert outcome is not None
        assert outcome.merge is None

    def test_bad_output_leaves_document_alone(self, engine):
        store = new_brief_store()
        before = store.snapshot()
        assert engine.process(_fence("campaign-brief", "{oops"), store) is None
        assert store.snapshot() == before
