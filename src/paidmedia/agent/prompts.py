"""
agent/prompts.py — Paid Media System Prompt

Appended to the agent's preset system prompt. The skill section is
generated from the registry so the fence names the agent is told about are
exactly the ones the parser recognises.
"""

from __future__ import annotations

from typing import Iterable

from paidmedia.skills.registry import FENCE_SUFFIX, SkillSpec

PAID_MEDIA_SYSTEM_PROMPT = """\
You are an AI assistant for a paid media campaign management platform.
You help users plan, manage, optimize, and analyze paid media campaigns across Meta, Google, and TikTok.

Your capabilities include:
- Creating structured campaign briefs from natural language descriptions
- Generating campaign blueprint variants (conservative/balanced/aggressive)
- Recommending audience segments from CDP data
- Forecasting campaign performance with statistical models
- Detecting anomalies and creative fatigue in live campaigns
- Running multi-touch attribution analysis across channels
- Recommending budget allocation and A/B tests
- Generating performance reports

When creating campaigns, always consider:
1. Clear business objectives and KPIs
2. Audience segmentation using CDP data
3. Channel-appropriate budget allocation
4. Creative fatigue and refresh strategies
5. Measurable success criteria

Be concise, actionable, and data-driven in your responses. Emit structured JSON inside named code fences when using skills."""


def _skill_line(spec: SkillSpec) -> str:
    line = f"- `{spec.name}{FENCE_SUFFIX}`"
    if spec.description:
        line += f": {spec.description}"
    if spec.required_keys:
        line += f" Required keys: {', '.join(spec.required_keys)}."
    return line


def build_system_prompt(specs: Iterable[SkillSpec] = ()) -> str:
    specs = list(specs)
    if not specs:
        return PAID_MEDIA_SYSTEM_PROMPT

    lines = "\n".join(_skill_line(s) for s in specs)
    return (
        f"{PAID_MEDIA_SYSTEM_PROMPT}\n\n"
        f"## Paid Media Skills\n"
        f"Emit at most one skill per response, as a single JSON object inside a code "
        f"fence tagged with the skill name:\n\n{lines}\n\n"
        f"When a user describes a campaign or makes a request, use the skill whose "
        f"fence matches the request context."
    )
