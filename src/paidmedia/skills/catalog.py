"""
skills/catalog.py — Built-in Paid Media Skills

Every skill the agent is instructed to emit. Only the two brief skills
merge into a document; the rest are detected and normalized so the caller
can route them to their own panels.
"""

from __future__ import annotations

from paidmedia.documents.brief import BRIEF_SECTION_KEYS
from paidmedia.skills import normalizers as n
from paidmedia.skills.registry import SkillKind, SkillRegistry, SkillSpec

_BRIEF_NORMALIZERS = {
    "campaignDetails":   n.campaign_details,
    "primaryAudience":   n.names,
    "secondaryAudience": n.names,
    "mandatoryChannels": n.names,
    "optionalChannels":  n.names,
    "phases":            n.phases,
}


BUILTIN_SKILLS: tuple[SkillSpec, ...] = (
    SkillSpec(
        name="campaign-brief",
        kind=SkillKind.CAMPAIGN_BRIEF,
        required_keys=("campaignDetails", "businessObjective"),
        normalizers=_BRIEF_NORMALIZERS,
        target_sections=BRIEF_SECTION_KEYS,
        description="Structured campaign brief extracted from a natural-language description.",
    ),
    SkillSpec(
        name="brief-update",
        kind=SkillKind.BRIEF_UPDATE,
        normalizers=_BRIEF_NORMALIZERS,
        target_sections=BRIEF_SECTION_KEYS,
        description="Partial brief refinement; only the fields present are updated.",
    ),
    SkillSpec(
        name="blueprints",
        kind=SkillKind.BLUEPRINTS,
        required_keys=("blueprints",),
        normalizers={"blueprints": n.blueprints},
        list_key="blueprints",
        description="Conservative, balanced and aggressive campaign blueprint variants.",
    ),
    SkillSpec(
        name="blueprint-update",
        kind=SkillKind.BLUEPRINT_UPDATE,
        normalizers={
            "channels":   n.names,
            "audiences":  n.names,
            "messaging":  n.messaging,
            "budget":     n.budget,
            "metrics":    n.metrics,
            "confidence": n.confidence_label,
            "cta":        n.cta,
        },
        description="Partial update to one blueprint.",
    ),
    SkillSpec(
        name="audience-recommendation",
        kind=SkillKind.AUDIENCE_RECOMMENDATION,
        required_keys=("recommendations",),
    ),
    SkillSpec(
        name="segment-overlap",
        kind=SkillKind.SEGMENT_OVERLAP,
        required_keys=("overlaps", "totalUniqueReach"),
    ),
    SkillSpec(
        name="forecast",
        kind=SkillKind.FORECAST,
        required_keys=("predictions", "trend", "trendPercentage", "aiInsight"),
    ),
    SkillSpec(
        name="anomalies",
        kind=SkillKind.ANOMALIES,
        required_keys=("alerts",),
    ),
    SkillSpec(
        name="creative-fatigue",
        kind=SkillKind.CREATIVE_FATIGUE,
        required_keys=("results",),
    ),
    SkillSpec(
        name="attribution",
        kind=SkillKind.ATTRIBUTION,
        required_keys=("channels", "insights"),
    ),
    SkillSpec(
        name="benchmark",
        kind=SkillKind.BENCHMARK,
        required_keys=("benchmarks", "strengths", "weaknesses", "recommendations"),
    ),
    SkillSpec(
        name="budget-allocation",
        kind=SkillKind.BUDGET_ALLOCATION,
        required_keys=("allocations", "expectedImpact"),
    ),
    SkillSpec(
        name="media-mix",
        kind=SkillKind.MEDIA_MIX,
        required_keys=("channels",),
    ),
    SkillSpec(
        name="ab-tests",
        kind=SkillKind.AB_TESTS,
        required_keys=("recommendations",),
    ),
    SkillSpec(
        name="optimization-actions",
        kind=SkillKind.OPTIMIZATION_ACTIONS,
        required_keys=("actions",),
    ),
    SkillSpec(
        name="clone-campaign",
        kind=SkillKind.CLONE_CAMPAIGN,
        required_keys=("clonedCampaign", "changes", "suggestions"),
    ),
    SkillSpec(
        name="report",
        kind=SkillKind.REPORT,
        required_keys=("title", "sections", "aiSummary"),
    ),
)


def default_registry() -> SkillRegistry:
    registry = SkillRegistry()
    for spec in BUILTIN_SKILLS:
        registry.register(spec)
    return registry
