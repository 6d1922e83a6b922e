"""Pydantic request/response schemas for the Innovation Platform API."""
from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, field_validator


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


class Credentials(BaseModel):
    username: str = Field(min_length=1, max_length=150)
    password: str = Field(min_length=1)

    @field_validator("username")
    @classmethod
    def username_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("username must not be blank")
        return v.strip()


class UserOut(BaseModel):
    id: int
    username: str
    created_at: str | None = None


class SessionOut(BaseModel):
    is_authenticated: bool
    user: UserOut | None = None


# ---------------------------------------------------------------------------
# Ideas
# ---------------------------------------------------------------------------


class IdeaCreate(BaseModel):
    name: str = Field(min_length=1, max_length=300)
    target_customer: str = ""
    price_range: str = ""
    value: str = ""
    competitors: str = ""
    current_phase: str | None = None


class IdeaUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=300)
    target_customer: str | None = None
    price_range: str | None = None
    value: str | None = None
    competitors: str | None = None
    current_phase: str | None = None
    phase_progress: dict[str, float] | None = None

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: str | None) -> str | None:
        if v is not None and not v.strip():
            raise ValueError("name must not be blank")
        return v.strip() if v is not None else v


class IdeaOut(BaseModel):
    id: int
    name: str
    target_customer: str
    price_range: str
    value: str
    competitors: str
    current_phase: str
    phase_label: str
    phase_progress: dict[str, float]
    overall_progress: float
    success_probability: float
    user_id: int | None = None
    created_at: str | None = None
    updated_at: str | None = None


class PhaseUpdate(BaseModel):
    phase: str | None = None


class ProgressUpdate(BaseModel):
    phase: str
    progress: float = Field(ge=0, le=100)


class TextImport(BaseModel):
    text: str | None = None


# ---------------------------------------------------------------------------
# Analyses & interviews
# ---------------------------------------------------------------------------


class MarketAnalysisRequest(BaseModel):
    idea_id: int
    name: str | None = Field(default=None, min_length=1, max_length=300)
    target_customer: str | None = None
    price_range: str | None = None
    value: str | None = None
    competitors: str | None = None


class AnalysisOut(BaseModel):
    id: int
    idea_id: int
    idea_score: float
    score_details: dict[str, float]
    market_insights: dict[str, Any]
    recommendations: list[str]
    llm_model: str
    created_at: str | None = None


class InterviewCreate(BaseModel):
    idea_id: int
    content: str


class InterviewOut(BaseModel):
    id: int
    idea_id: int
    content: str
    satisfaction_score: float
    key_phrases: list[str]
    sentiment: dict[str, list[str]]
    market_insights: dict[str, list[str]]
    action_plans: dict[str, list[str]]
    next_actions: list[str]
    created_at: str | None = None


# ---------------------------------------------------------------------------
# Behavior logs, risks, metrics, recommendations
# ---------------------------------------------------------------------------


class BehaviorLogCreate(BaseModel):
    idea_id: int
    event_type: str
    event_data: dict[str, Any] = {}


class BehaviorLogOut(BaseModel):
    id: int
    idea_id: int
    event_type: str
    event_data: dict[str, Any]
    created_at: str | None = None


class DailyCount(BaseModel):
    date: str
    events: int


class BehaviorSummaryOut(BaseModel):
    total: int
    by_day: list[DailyCount]
    by_event_type: dict[str, int]


class RiskCreate(BaseModel):
    idea_id: int
    risk_type: str = Field(min_length=1)
    description: str = ""
    severity: str = "medium"
    mitigation_status: str = "pending"


class RiskUpdate(BaseModel):
    risk_type: str | None = None
    description: str | None = None
    severity: str | None = None
    mitigation_status: str | None = None


class RiskOut(BaseModel):
    id: int
    idea_id: int
    risk_type: str
    severity: str
    description: str
    mitigation_status: str
    created_at: str | None = None


class MetricCreate(BaseModel):
    idea_id: int
    metric_name: str
    metric_value: Any = None


class MetricOut(BaseModel):
    id: int
    idea_id: int
    metric_name: str
    metric_value: Any = None
    created_at: str | None = None


class RecommendationOut(BaseModel):
    id: int
    idea_id: int
    title: str
    description: str
    priority: str
    category: str
    status: str
    implementation_difficulty: str
    expected_impact: str
    source: str
    created_at: str | None = None


class RecommendationStatusUpdate(BaseModel):
    status: str


class GeneratedRecommendation(BaseModel):
    title: str
    description: str
    priority: str
    category: str
    implementation_difficulty: str
    expected_impact: str


class RecommendationRunOut(BaseModel):
    recommendations: list[GeneratedRecommendation]
    summary: str
    next_actions: list[str]
    risks: list[str]


# ---------------------------------------------------------------------------
# Dashboards
# ---------------------------------------------------------------------------


class StatsOut(BaseModel):
    total: int
    by_phase: dict[str, int]
    analyzed: int
    interviews: int
    average_progress: float
    open_risks: dict[str, int]


class HeatmapPoint(BaseModel):
    idea_id: int
    name: str
    phase: str
    phase_label: str
    phase_index: int
    progress: float
    success_probability: float
    band: str


class PhaseOut(BaseModel):
    id: str
    label: str
    index: int
