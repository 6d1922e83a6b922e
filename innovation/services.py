"""Shared business logic behind the Innovation Platform API."""
from __future__ import annotations

import json
import logging
from collections import Counter
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from innovation import phases
from innovation.analyzer import analyze_idea, build_interview
from innovation.llm import LLMClient
from innovation.models import (
    Analysis, BehaviorLog, Idea, Interview, ProjectMetric, ProjectRisk, Recommendation,
)
from innovation.utils import json_parse

log = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Shared field tuples
# ---------------------------------------------------------------------------

IDEA_FIELDS = ("name", "target_customer", "price_range", "value", "competitors")

UPDATABLE_FIELDS = IDEA_FIELDS

RISK_SEVERITIES = ("low", "medium", "high")
MITIGATION_STATUSES = ("pending", "in_progress", "mitigated")
RECOMMENDATION_STATUSES = ("pending", "in_progress", "completed", "dismissed")

# ---------------------------------------------------------------------------
# Serialization helpers
# ---------------------------------------------------------------------------


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def idea_progress(idea: Idea) -> dict[str, float]:
    return phases.normalize_progress(json_parse(idea.phase_progress_json, {}))


def idea_summary(idea: Idea) -> dict:
    progress = idea_progress(idea)
    phase = phases.coerce_phase(idea.current_phase)
    return {
        "id": idea.id, "name": idea.name,
        "target_customer": idea.target_customer, "price_range": idea.price_range,
        "value": idea.value, "competitors": idea.competitors,
        "current_phase": phase,
        "phase_label": phases.PHASE_LABELS[phase],
        "phase_progress": progress,
        "overall_progress": phases.overall_progress(progress),
        "success_probability": phases.success_probability(phase, progress),
        "user_id": idea.user_id,
        "created_at": _iso(idea.created_at),
        "updated_at": _iso(idea.updated_at),
    }


def analysis_summary(analysis: Analysis) -> dict:
    return {
        "id": analysis.id, "idea_id": analysis.idea_id,
        "idea_score": analysis.idea_score,
        "score_details": json_parse(analysis.score_details_json, {}),
        "market_insights": json_parse(analysis.market_insights_json, {}),
        "recommendations": json_parse(analysis.recommendations_json, []),
        "llm_model": analysis.llm_model,
        "created_at": _iso(analysis.created_at),
    }


def interview_summary(interview: Interview) -> dict:
    return {
        "id": interview.id, "idea_id": interview.idea_id,
        "content": interview.content,
        "satisfaction_score": interview.satisfaction_score,
        "key_phrases": json_parse(interview.key_phrases_json, []),
        "sentiment": json_parse(interview.sentiment_json, {}),
        "market_insights": json_parse(interview.market_insights_json, {}),
        "action_plans": json_parse(interview.action_plans_json, {}),
        "next_actions": json_parse(interview.next_actions_json, []),
        "created_at": _iso(interview.created_at),
    }


def behavior_log_summary(entry: BehaviorLog) -> dict:
    return {
        "id": entry.id, "idea_id": entry.idea_id, "event_type": entry.event_type,
        "event_data": json_parse(entry.event_data_json, {}),
        "created_at": _iso(entry.created_at),
    }


def risk_summary(risk: ProjectRisk) -> dict:
    return {
        "id": risk.id, "idea_id": risk.idea_id, "risk_type": risk.risk_type,
        "severity": risk.severity, "description": risk.description,
        "mitigation_status": risk.mitigation_status,
        "created_at": _iso(risk.created_at),
    }


def metric_summary(metric: ProjectMetric) -> dict:
    return {
        "id": metric.id, "idea_id": metric.idea_id, "metric_name": metric.metric_name,
        "metric_value": json_parse(metric.metric_value_json, None),
        "created_at": _iso(metric.created_at),
    }


def recommendation_summary(rec: Recommendation) -> dict:
    return {
        "id": rec.id, "idea_id": rec.idea_id, "title": rec.title,
        "description": rec.description, "priority": rec.priority,
        "category": rec.category, "status": rec.status,
        "implementation_difficulty": rec.implementation_difficulty,
        "expected_impact": rec.expected_impact, "source": rec.source,
        "created_at": _iso(rec.created_at),
    }


# ---------------------------------------------------------------------------
# Mutation helpers
# ---------------------------------------------------------------------------


def apply_updates(obj, updates: dict[str, Any], fields: tuple[str, ...]) -> None:
    """Apply non-None values from updates dict to an ORM object."""
    for field in fields:
        val = updates.get(field)
        if val is not None:
            setattr(obj, field, val)


def _ensure_client(client: LLMClient | None) -> LLMClient:
    return client if client is not None else LLMClient()


def _check_choice(value: str, allowed: tuple[str, ...], label: str) -> str:
    v = (value or "").strip().lower()
    if v not in allowed:
        raise ValueError(f"Invalid {label} {value!r} (expected one of: {', '.join(allowed)})")
    return v


def _touch(idea: Idea) -> None:
    idea.updated_at = datetime.now(UTC)


# ---------------------------------------------------------------------------
# Ideas
# ---------------------------------------------------------------------------


def create_idea(
    session: Session, *, name: str, target_customer: str = "", price_range: str = "",
    value: str = "", competitors: str = "", current_phase: str | None = None,
    user_id: int | None = None,
) -> Idea:
    """Create an idea at zero progress (caller must commit)."""
    phase = phases.validate_phase(current_phase) if current_phase else phases.DEFAULT_PHASE
    now = datetime.now(UTC)
    idea = Idea(
        name=name.strip(), target_customer=target_customer, price_range=price_range,
        value=value, competitors=competitors, current_phase=phase,
        phase_progress_json=json.dumps(phases.default_progress()),
        user_id=user_id, created_at=now, updated_at=now,
    )
    session.add(idea)
    session.flush()
    return idea


def query_ideas(
    session: Session, *, search: str | None = None, phase: str | None = None,
) -> list[dict]:
    """List ideas newest first, filtered by free text and/or phase."""
    query = select(Idea).order_by(Idea.id.desc())
    if phase:
        query = query.where(Idea.current_phase == phases.validate_phase(phase))
    items = [idea_summary(i) for i in session.execute(query).scalars().all()]
    if search:
        q = search.strip().lower()
        items = [i for i in items if q in i["name"].lower() or q in i["target_customer"].lower()]
    return items


def update_idea(session: Session, idea: Idea, updates: dict[str, Any]) -> Idea:
    apply_updates(idea, updates, UPDATABLE_FIELDS)
    if updates.get("current_phase") is not None:
        idea.current_phase = phases.validate_phase(updates["current_phase"])
    if updates.get("phase_progress") is not None:
        merged = {**idea_progress(idea), **updates["phase_progress"]}
        idea.phase_progress_json = json.dumps(phases.normalize_progress(merged))
    _touch(idea)
    return idea


def set_phase(idea: Idea, phase: str) -> Idea:
    idea.current_phase = phases.validate_phase(phase)
    _touch(idea)
    return idea


def set_progress(idea: Idea, phase: str, value: float) -> Idea:
    progress = idea_progress(idea)
    progress[phases.validate_phase(phase)] = phases.clamp_progress(value)
    idea.phase_progress_json = json.dumps(progress)
    _touch(idea)
    return idea


# ---------------------------------------------------------------------------
# AI operations
# ---------------------------------------------------------------------------


def latest_analysis(session: Session, idea_id: int) -> Analysis | None:
    return session.execute(
        select(Analysis).where(Analysis.idea_id == idea_id).order_by(Analysis.id.desc()).limit(1)
    ).scalars().first()


async def run_market_analysis(
    session: Session, idea: Idea, client: LLMClient | None = None,
    overrides: dict[str, Any] | None = None,
) -> Analysis:
    """Analyze an idea and store a new Analysis row (caller must commit)."""
    analysis = await analyze_idea(idea, _ensure_client(client), overrides)
    session.add(analysis)
    session.flush()
    return analysis


async def run_interview_analysis(
    session: Session, idea: Idea, content: str, client: LLMClient | None = None,
) -> Interview:
    """Analyze interview content and store it (caller must commit)."""
    content = (content or "").strip()
    if not content:
        raise ValueError("Interview content is required")
    interview = await build_interview(idea.id, content, _ensure_client(client))
    session.add(interview)
    session.flush()
    return interview


# ---------------------------------------------------------------------------
# Child rows: behavior logs, risks, metrics, recommendations
# ---------------------------------------------------------------------------


def list_for_idea(session: Session, model, idea_id: int, newest_first: bool = False) -> list:
    order = model.id.desc() if newest_first else model.id
    return list(session.execute(
        select(model).where(model.idea_id == idea_id).order_by(order)
    ).scalars().all())


def add_behavior_log(
    session: Session, idea_id: int, event_type: str, event_data: dict[str, Any] | None = None,
) -> BehaviorLog:
    event_type = (event_type or "").strip()
    if not event_type:
        raise ValueError("event_type is required")
    entry = BehaviorLog(
        idea_id=idea_id, event_type=event_type,
        event_data_json=json.dumps(event_data or {}), created_at=datetime.now(UTC),
    )
    session.add(entry)
    session.flush()
    return entry


def summarize_behavior(logs: list[BehaviorLog]) -> dict:
    """Per-day (MM/DD, oldest first) and per-event-type counts for charts."""
    by_day: Counter[str] = Counter()
    first_seen: dict[str, datetime] = {}
    by_type: Counter[str] = Counter()
    for entry in logs:
        by_type[entry.event_type] += 1
        if entry.created_at is None:
            continue
        day = entry.created_at.strftime("%m/%d")
        by_day[day] += 1
        stamp = entry.created_at.replace(tzinfo=None)
        if day not in first_seen or stamp < first_seen[day]:
            first_seen[day] = stamp
    days = sorted(by_day, key=lambda d: first_seen[d])
    return {
        "total": len(logs),
        "by_day": [{"date": d, "events": by_day[d]} for d in days],
        "by_event_type": dict(by_type),
    }


def add_risk(
    session: Session, idea_id: int, *, risk_type: str, description: str = "",
    severity: str = "medium", mitigation_status: str = "pending",
) -> ProjectRisk:
    risk = ProjectRisk(
        idea_id=idea_id, risk_type=risk_type.strip(), description=description,
        severity=_check_choice(severity, RISK_SEVERITIES, "severity"),
        mitigation_status=_check_choice(mitigation_status, MITIGATION_STATUSES, "mitigation status"),
        created_at=datetime.now(UTC),
    )
    session.add(risk)
    session.flush()
    return risk


def update_risk(risk: ProjectRisk, updates: dict[str, Any]) -> ProjectRisk:
    if updates.get("severity") is not None:
        risk.severity = _check_choice(updates["severity"], RISK_SEVERITIES, "severity")
    if updates.get("mitigation_status") is not None:
        risk.mitigation_status = _check_choice(
            updates["mitigation_status"], MITIGATION_STATUSES, "mitigation status",
        )
    apply_updates(risk, updates, ("risk_type", "description"))
    return risk


def add_metric(session: Session, idea_id: int, metric_name: str, metric_value: Any) -> ProjectMetric:
    metric_name = (metric_name or "").strip()
    if not metric_name:
        raise ValueError("metric_name is required")
    metric = ProjectMetric(
        idea_id=idea_id, metric_name=metric_name,
        metric_value_json=json.dumps(metric_value), created_at=datetime.now(UTC),
    )
    session.add(metric)
    session.flush()
    return metric


def set_recommendation_status(rec: Recommendation, status: str) -> Recommendation:
    rec.status = _check_choice(status, RECOMMENDATION_STATUSES, "status")
    return rec


# ---------------------------------------------------------------------------
# Dashboards
# ---------------------------------------------------------------------------


def compute_stats(session: Session) -> dict:
    ideas = session.execute(select(Idea)).scalars().all()
    by_phase: Counter[str] = Counter({p: 0 for p in phases.PHASES})
    progress_total = 0.0
    for idea in ideas:
        by_phase[phases.coerce_phase(idea.current_phase)] += 1
        progress_total += phases.overall_progress(idea_progress(idea))

    analyzed = session.execute(select(func.count(func.distinct(Analysis.idea_id)))).scalar() or 0
    interviews = session.execute(select(func.count(Interview.id))).scalar() or 0

    open_risks: Counter[str] = Counter({s: 0 for s in RISK_SEVERITIES})
    for severity, count in session.execute(
        select(ProjectRisk.severity, func.count(ProjectRisk.id))
        .where(ProjectRisk.mitigation_status != "mitigated")
        .group_by(ProjectRisk.severity)
    ).all():
        open_risks[severity] += count

    return {
        "total": len(ideas),
        "by_phase": dict(by_phase),
        "analyzed": analyzed,
        "interviews": interviews,
        "average_progress": round(progress_total / len(ideas), 1) if ideas else 0.0,
        "open_risks": dict(open_risks),
    }


def heatmap(session: Session) -> list[dict]:
    """One point per idea: phase index on x, success probability on y."""
    points = []
    for idea in session.execute(select(Idea).order_by(Idea.id)).scalars().all():
        progress = idea_progress(idea)
        phase = phases.coerce_phase(idea.current_phase)
        probability = phases.success_probability(phase, progress)
        points.append({
            "idea_id": idea.id, "name": idea.name,
            "phase": phase, "phase_label": phases.PHASE_LABELS[phase],
            "phase_index": phases.phase_index(phase),
            "progress": progress[phase],
            "success_probability": probability,
            "band": phases.probability_band(probability),
        })
    return points
