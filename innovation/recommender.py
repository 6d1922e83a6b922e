"""Recommendation engine: aggregate an idea's evidence into next-step advice.

The context sent to the model is the idea itself plus every interview,
metric and risk on file for it. Recommendations and newly identified risks
are persisted; the project report is returned without being stored.
"""
from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from innovation.llm import LLMClient
from innovation.models import Idea, Interview, ProjectMetric, ProjectRisk, Recommendation
from innovation.phases import normalize_progress
from innovation.utils import as_dict, as_str, as_str_list, json_parse

log = logging.getLogger(__name__)

PRIORITIES = ("high", "medium", "low")
CATEGORIES = ("market_research", "customer_development", "product_development", "risk_mitigation")
DIFFICULTIES = ("easy", "medium", "hard")
IMPACTS = ("high", "medium", "low")

RECOMMENDATION_PROMPT = """\
You are an advisor for early-stage ventures. Analyze the project data in the \
dossier and propose the next actions.

Respond with ONLY valid JSON:
{
  "recommendations": [
    {
      "title": "<short action title>",
      "description": "<detailed explanation>",
      "priority": "<high|medium|low>",
      "category": "<market_research|customer_development|product_development|risk_mitigation>",
      "implementation_difficulty": "<easy|medium|hard>",
      "expected_impact": "<high|medium|low>"
    }
  ],
  "summary": "<summary of the overall analysis>",
  "next_actions": ["<concrete action>", ...],
  "risks": ["<newly identified risk>", ...]
}
"""

REPORT_PROMPT = """\
You are an advisor for early-stage ventures. Write a detailed project report \
from the project data in the dossier.

Respond with ONLY valid JSON:
{
  "executive_summary": "<executive summary>",
  "project_status": {
    "current_phase": "<current phase>",
    "progress": "<detailed analysis of progress>",
    "achievements": ["<achievement>", ...],
    "challenges": ["<challenge>", ...]
  },
  "market_analysis": {
    "target_market": "<target market analysis>",
    "competition": "<competitive analysis>",
    "opportunities": ["<opportunity>", ...],
    "threats": ["<threat>", ...]
  },
  "customer_insights": {
    "feedback_summary": "<summary of customer feedback>",
    "key_findings": ["<finding>", ...],
    "improvement_areas": ["<area>", ...]
  },
  "risk_assessment": {
    "current_risks": ["<risk>", ...],
    "mitigation_strategies": ["<strategy>", ...]
  },
  "recommendations": {
    "short_term": ["<recommendation>", ...],
    "long_term": ["<recommendation>", ...]
  },
  "next_steps": ["<step>", ...]
}
"""

# Report sections: {section: (string keys, list keys)}
_REPORT_SECTIONS: dict[str, tuple[tuple[str, ...], tuple[str, ...]]] = {
    "project_status": (("current_phase", "progress"), ("achievements", "challenges")),
    "market_analysis": (("target_market", "competition"), ("opportunities", "threats")),
    "customer_insights": (("feedback_summary",), ("key_findings", "improvement_areas")),
    "risk_assessment": ((), ("current_risks", "mitigation_strategies")),
    "recommendations": ((), ("short_term", "long_term")),
}


# ---------------------------------------------------------------------------
# Context gathering
# ---------------------------------------------------------------------------


def _rows(session: Session, model, idea_id: int) -> list:
    return list(session.execute(
        select(model).where(model.idea_id == idea_id).order_by(model.id)
    ).scalars().all())


def build_project_dossier(
    idea: Idea,
    interviews: list[Interview],
    metrics: list[ProjectMetric],
    risks: list[ProjectRisk],
    recommendations: list[Recommendation] | None = None,
) -> str:
    progress = normalize_progress(json_parse(idea.phase_progress_json, {}))
    sections = [
        "PROJECT:",
        f"- Name: {idea.name}",
        f"- Phase: {idea.current_phase}",
        f"- Progress: {json.dumps(progress)}",
        f"- Target customer: {idea.target_customer}",
        "",
        "INTERVIEW RESULTS:",
        *[f"- {i.content}" for i in interviews],
        "",
        "METRICS:",
        *[f"- {m.metric_name}: {m.metric_value_json}" for m in metrics],
        "",
        "RISKS:",
        *[f"- {r.risk_type}: {r.description} (severity: {r.severity})" for r in risks],
    ]
    if recommendations is not None:
        sections += [
            "",
            "RECOMMENDED ACTIONS:",
            *[f"- {r.title}: {r.description} (priority: {r.priority})" for r in recommendations],
        ]
    return "\n".join(sections)


# ---------------------------------------------------------------------------
# Normalization
# ---------------------------------------------------------------------------


def _choice(value: Any, allowed: tuple[str, ...], default: str) -> str:
    v = as_str(value).lower()
    return v if v in allowed else default


def normalize_recommendation(raw: Any) -> dict[str, str] | None:
    """Validate one recommendation item; returns None when it has no title."""
    item = as_dict(raw)
    title = as_str(item.get("title"))
    if not title:
        return None
    return {
        "title": title,
        "description": as_str(item.get("description")),
        "priority": _choice(item.get("priority"), PRIORITIES, "medium"),
        "category": _choice(item.get("category"), CATEGORIES, "market_research"),
        "implementation_difficulty": _choice(item.get("implementation_difficulty"), DIFFICULTIES, "medium"),
        "expected_impact": _choice(item.get("expected_impact"), IMPACTS, "medium"),
    }


def normalize_recommendation_response(raw: dict[str, Any]) -> dict[str, Any]:
    items = raw.get("recommendations")
    recs = [r for r in (normalize_recommendation(i) for i in (items if isinstance(items, list) else [])) if r]
    return {
        "recommendations": recs,
        "summary": as_str(raw.get("summary")),
        "next_actions": as_str_list(raw.get("next_actions")),
        "risks": as_str_list(raw.get("risks")),
    }


def normalize_report(raw: dict[str, Any]) -> dict[str, Any]:
    report: dict[str, Any] = {"executive_summary": as_str(raw.get("executive_summary"))}
    for section, (str_keys, list_keys) in _REPORT_SECTIONS.items():
        src = as_dict(raw.get(section))
        out: dict[str, Any] = {k: as_str(src.get(k)) for k in str_keys}
        out.update({k: as_str_list(src.get(k)) for k in list_keys})
        report[section] = out
    report["next_steps"] = as_str_list(raw.get("next_steps"))
    return report


# ---------------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------------


async def generate_recommendations(
    session: Session, idea: Idea, client: LLMClient,
) -> dict[str, Any]:
    """Ask for prioritized actions and persist them plus any new risks (caller must commit)."""
    dossier = build_project_dossier(
        idea,
        _rows(session, Interview, idea.id),
        _rows(session, ProjectMetric, idea.id),
        _rows(session, ProjectRisk, idea.id),
    )
    result = normalize_recommendation_response(await client.call(RECOMMENDATION_PROMPT, dossier))

    now = datetime.now(UTC)
    for rec in result["recommendations"]:
        session.add(Recommendation(
            idea_id=idea.id, status="pending", source=client.source_tag, created_at=now, **rec,
        ))
    for risk in result["risks"]:
        session.add(ProjectRisk(
            idea_id=idea.id, risk_type="ai_identified", severity="medium",
            description=risk, mitigation_status="pending", created_at=now,
        ))
    log.info(
        "Generated %d recommendations and %d risks for idea %s",
        len(result["recommendations"]), len(result["risks"]), idea.id,
    )
    return result


async def generate_project_report(
    session: Session, idea: Idea, client: LLMClient,
) -> dict[str, Any]:
    dossier = build_project_dossier(
        idea,
        _rows(session, Interview, idea.id),
        _rows(session, ProjectMetric, idea.id),
        _rows(session, ProjectRisk, idea.id),
        _rows(session, Recommendation, idea.id),
    )
    return normalize_report(await client.call(REPORT_PROMPT, dossier))
