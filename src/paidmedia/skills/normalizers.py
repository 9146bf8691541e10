"""
skills/normalizers.py — Field Normalizers

Agents emit skill JSON in whatever shape they find natural: audiences as
objects, campaign details as a nested object, confidence as a number.
Document fields are flat (strings and lists of strings), so each skill
registers per-field normalizers from this module.

Every normalizer returns its input unchanged when the shape is not one it
knows how to flatten. None of them raise.
"""

from __future__ import annotations

from typing import Any

CAMPAIGN_DETAILS_SEPARATOR = " — "


def _name_of(item: Any) -> str:
    if isinstance(item, dict) and "name" in item:
        return str(item["name"])
    return str(item)


def names(value: Any) -> Any:
    """[{"name": "A", ...}, "B"] -> ["A", "B"]."""
    if not isinstance(value, list):
        return value
    return [_name_of(item) for item in value]


def campaign_details(value: Any) -> Any:
    """{campaignName, campaignType, description} -> "name — type — description"."""
    if not isinstance(value, dict):
        return value
    parts = [value.get(k) for k in ("campaignName", "campaignType", "description")]
    return CAMPAIGN_DETAILS_SEPARATOR.join(str(p) for p in parts if p)


def phases(value: Any) -> Any:
    """[{name: "Launch"}, {name: "Scale"}] -> "2 phases: Launch, Scale"."""
    if not isinstance(value, list):
        return value
    if not value:
        return ""
    count = len(value)
    label = f"{count} phase{'s' if count > 1 else ''}"
    phase_names = [
        str(p["name"]) for p in value if isinstance(p, dict) and p.get("name")
    ]
    return f"{label}: {', '.join(phase_names)}" if phase_names else label


def confidence_label(value: Any) -> Any:
    """Numeric confidence -> High (>= 80) | Medium (>= 50) | Low."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return value
    if value >= 80:
        return "High"
    if value >= 50:
        return "Medium"
    return "Low"


# ─────────────────────────────────────────────────────────────────────────────
# Blueprint flattening
# ─────────────────────────────────────────────────────────────────────────────

def messaging(value: Any) -> Any:
    """{primaryMessage, toneAndVoice, supportingMessages} -> one string."""
    if not isinstance(value, dict):
        return value
    if value.get("primaryMessage"):
        return str(value["primaryMessage"])
    supporting = value.get("supportingMessages")
    parts = [value.get("toneAndVoice")]
    if isinstance(supporting, list):
        parts.extend(supporting)
    return ". ".join(str(p) for p in parts if p)


def budget(value: Any) -> Any:
    """{total, pacing, phases} -> {amount, pacing}."""
    if not isinstance(value, dict) or "total" not in value:
        return value
    return {"amount": value.get("total") or "", "pacing": value.get("pacing") or ""}


def metrics(value: Any) -> Any:
    """{estimatedReach, estimatedCtr, ...} -> {reach, ctr, roas, conversions}."""
    if not isinstance(value, dict):
        return value
    out = {}
    for key in ("reach", "ctr", "roas", "conversions"):
        estimated = f"estimated{key[0].upper()}{key[1:]}"
        out[key] = value.get(estimated) or value.get(key) or ""
    return out


def cta(value: Any) -> Any:
    """{text} or {label} -> string."""
    if not isinstance(value, dict):
        return value
    return value.get("text") or value.get("label") or ""


_BLUEPRINT_FIELDS = {
    "channels": names,
    "audiences": names,
    "messaging": messaging,
    "budget": budget,
    "metrics": metrics,
    "confidence": confidence_label,
    "cta": cta,
}


def blueprint(value: Any) -> Any:
    if not isinstance(value, dict):
        return value
    out = dict(value)
    for key, fn in _BLUEPRINT_FIELDS.items():
        if key in out and out[key] is not None:
            out[key] = fn(out[key])
    return out


def blueprints(value: Any) -> Any:
    if not isinstance(value, list):
        return value
    return [blueprint(bp) for bp in value]
