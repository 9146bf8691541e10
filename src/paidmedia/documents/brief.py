"""
documents/brief.py — Campaign Brief Layout

The campaign brief editor shows eleven sections. Each owns the flat fields
below; text fields default to "" and list fields to [].
"""

from __future__ import annotations

from typing import Any

from paidmedia.documents.store import DocumentStore

BRIEF_LAYOUT: dict[str, tuple[str, ...]] = {
    "campaignDetails":   ("campaignDetails",),
    "brandProduct":      ("brandProduct",),
    "businessObjective": ("businessObjective", "businessObjectiveTags"),
    "goals":             ("primaryGoals", "secondaryGoals"),
    "successMetrics":    ("primaryKpis", "secondaryKpis"),
    "campaignScope":     ("inScope", "outOfScope"),
    "targetAudience":    ("primaryAudience", "secondaryAudience"),
    "audienceSegments":  ("prospectingSegments", "retargetingSegments", "suppressionSegments"),
    "channels":          ("mandatoryChannels", "optionalChannels"),
    "budget":            ("budgetAmount", "pacing", "phases"),
    "timeline":          ("timelineStart", "timelineEnd"),
}

BRIEF_SECTION_KEYS: tuple[str, ...] = tuple(BRIEF_LAYOUT)

_TEXT_FIELDS = {
    "campaignDetails", "brandProduct", "businessObjective",
    "budgetAmount", "pacing", "phases", "timelineStart", "timelineEnd",
}


def brief_defaults() -> dict[str, Any]:
    return {
        f: ("" if f in _TEXT_FIELDS else [])
        for fields in BRIEF_LAYOUT.values()
        for f in fields
    }


def new_brief_store() -> DocumentStore:
    return DocumentStore(BRIEF_LAYOUT, defaults=brief_defaults(), name="campaign-brief")
