"""AI market analysis and interview analysis.

Both follow the same shape: build a dossier from stored fields, send it with a
fixed system prompt, then normalize whatever JSON comes back into a
predictable structure. Missing or malformed fields fall back to defaults
rather than failing the request; only an unparseable response is an error.
"""
from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from typing import Any

from innovation.llm import LLMClient
from innovation.models import Analysis, Idea, Interview
from innovation.utils import as_dict, as_number, as_str, as_str_list

log = logging.getLogger(__name__)

IDEA_FIELDS = ("name", "target_customer", "price_range", "value", "competitors")

SCORE_DETAIL_KEYS = (
    "marketPotential", "competitiveAdvantage", "feasibility", "profitability", "innovation",
)

# ---------------------------------------------------------------------------
# Prompts
# ---------------------------------------------------------------------------

MARKET_ANALYSIS_PROMPT = """\
You are a market analysis expert. Analyze the business idea in the dossier \
and produce a market report.

Base scores on a realistic assessment. Ground the analysis in concrete \
numbers and facts where possible, and make the competitor analysis name \
specific points of differentiation.

Respond with ONLY valid JSON:
{
  "ideaScore": <number 1-100, overall evaluation>,
  "scoreDetails": {
    "marketPotential": <number 1-100, market size and growth>,
    "competitiveAdvantage": <number 1-100>,
    "feasibility": <number 1-100>,
    "profitability": <number 1-100>,
    "innovation": <number 1-100>
  },
  "marketInsights": {
    "marketSize": "<estimated market size>",
    "growthRate": "<expected market growth rate>",
    "competitorAnalysis": ["<point>", ...],
    "risks": ["<risk factor>", ...],
    "opportunities": ["<market opportunity>", ...]
  },
  "recommendations": ["<recommended action>", ...]
}
"""

INTERVIEW_ANALYSIS_PROMPT = """\
You are a product manager. Analyze the customer interview in the dossier \
and produce a structured report.

Judge the satisfaction score from context. Do not leave arrays empty; fill \
them with concrete content. Action plans must be specific and actionable. \
Do not include any text outside the JSON.

Respond with ONLY valid JSON:
{
  "satisfactionScore": <number 0-5>,
  "keyPhrases": ["<key phrase>", ...],
  "sentiment": {
    "positive": ["<what went well>", ...],
    "negative": ["<what to improve>", ...]
  },
  "marketInsights": {
    "userNeeds": ["<user need>", ...],
    "differentiators": ["<differentiator>", ...],
    "opportunities": ["<market opportunity>", ...]
  },
  "actionPlans": {
    "shortTerm": ["<doable in 1-2 weeks>", ...],
    "midTerm": ["<doable in 1-3 months>", ...],
    "longTerm": ["<3 months or longer>", ...]
  },
  "nextActions": ["<top-priority concrete action>", "<...>", "<...>"]
}
"""

# ---------------------------------------------------------------------------
# Market analysis
# ---------------------------------------------------------------------------

_DOSSIER_LABELS = {
    "name": "NAME",
    "target_customer": "TARGET CUSTOMER",
    "price_range": "PRICE RANGE",
    "value": "VALUE PROPOSITION",
    "competitors": "COMPETITORS",
}


def build_market_dossier(fields: dict[str, Any]) -> str:
    return "\n".join(f"{_DOSSIER_LABELS[f]}: {as_str(fields.get(f))}" for f in IDEA_FIELDS)


def normalize_market_response(raw: dict[str, Any]) -> dict[str, Any]:
    details = as_dict(raw.get("scoreDetails"))
    insights = as_dict(raw.get("marketInsights"))
    return {
        "idea_score": as_number(raw.get("ideaScore"), 0.0, 0.0, 100.0),
        "score_details": {
            k: as_number(details.get(k), 0.0, 0.0, 100.0) for k in SCORE_DETAIL_KEYS
        },
        "market_insights": {
            "marketSize": as_str(insights.get("marketSize")),
            "growthRate": as_str(insights.get("growthRate")),
            "competitorAnalysis": as_str_list(insights.get("competitorAnalysis")),
            "risks": as_str_list(insights.get("risks")),
            "opportunities": as_str_list(insights.get("opportunities")),
        },
        "recommendations": as_str_list(raw.get("recommendations")),
    }


async def analyze_market_data(fields: dict[str, Any], client: LLMClient) -> dict[str, Any]:
    """Run a market analysis over idea fields; returns the normalized result."""
    raw = await client.call(MARKET_ANALYSIS_PROMPT, build_market_dossier(fields))
    return normalize_market_response(raw)


async def analyze_idea(
    idea: Idea, client: LLMClient, overrides: dict[str, Any] | None = None,
) -> Analysis:
    """Analyze an idea (optionally with submitted field overrides) into an Analysis row.

    The caller adds the row to the session and commits.
    """
    fields = {f: getattr(idea, f) for f in IDEA_FIELDS}
    for key, val in (overrides or {}).items():
        if key in fields and val is not None:
            fields[key] = val
    result = await analyze_market_data(fields, client)
    log.info("Market analysis for idea %s scored %.0f", idea.id, result["idea_score"])
    return Analysis(
        idea_id=idea.id,
        idea_score=result["idea_score"],
        score_details_json=json.dumps(result["score_details"]),
        market_insights_json=json.dumps(result["market_insights"]),
        recommendations_json=json.dumps(result["recommendations"]),
        llm_model=client.model,
        created_at=datetime.now(UTC),
    )


# ---------------------------------------------------------------------------
# Interview analysis
# ---------------------------------------------------------------------------


def normalize_interview_response(raw: dict[str, Any]) -> dict[str, Any]:
    sentiment = as_dict(raw.get("sentiment"))
    insights = as_dict(raw.get("marketInsights"))
    plans = as_dict(raw.get("actionPlans"))
    return {
        "satisfaction_score": as_number(raw.get("satisfactionScore"), 3.0, 0.0, 5.0),
        "key_phrases": as_str_list(raw.get("keyPhrases")),
        "sentiment": {
            "positive": as_str_list(sentiment.get("positive")),
            "negative": as_str_list(sentiment.get("negative")),
        },
        "market_insights": {
            "userNeeds": as_str_list(insights.get("userNeeds")),
            "differentiators": as_str_list(insights.get("differentiators")),
            "opportunities": as_str_list(insights.get("opportunities")),
        },
        "action_plans": {
            "shortTerm": as_str_list(plans.get("shortTerm")),
            "midTerm": as_str_list(plans.get("midTerm")),
            "longTerm": as_str_list(plans.get("longTerm")),
        },
        "next_actions": as_str_list(raw.get("nextActions")),
    }


async def analyze_interview(content: str, client: LLMClient) -> dict[str, Any]:
    """Analyze free-text interview content; returns the normalized result."""
    raw = await client.call(INTERVIEW_ANALYSIS_PROMPT, f"INTERVIEW CONTENT:\n{content}")
    return normalize_interview_response(raw)


async def build_interview(idea_id: int, content: str, client: LLMClient) -> Interview:
    result = await analyze_interview(content, client)
    return Interview(
        idea_id=idea_id,
        content=content,
        satisfaction_score=result["satisfaction_score"],
        key_phrases_json=json.dumps(result["key_phrases"]),
        sentiment_json=json.dumps(result["sentiment"]),
        market_insights_json=json.dumps(result["market_insights"]),
        action_plans_json=json.dumps(result["action_plans"]),
        next_actions_json=json.dumps(result["next_actions"]),
        llm_model=client.model,
        created_at=datetime.now(UTC),
    )
