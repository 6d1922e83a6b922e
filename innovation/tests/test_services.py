"""Tests for lifecycle phases, coercion helpers and the service layer."""
from __future__ import annotations

import json
from datetime import datetime

import pytest
from sqlalchemy.orm import Session

from innovation import phases, services
from innovation.models import Analysis, BehaviorLog, Idea, Interview, ProjectRisk
from innovation.utils import as_number, as_str, as_str_list, json_parse


@pytest.fixture()
def sample_idea(session: Session) -> Idea:
    idea = services.create_idea(
        session, name="  SolarShade  ", target_customer="Apartment renters",
        price_range="$200", value="Balcony solar", competitors="Anker",
    )
    session.commit()
    return idea


# ---------------------------------------------------------------------------
# Phases
# ---------------------------------------------------------------------------


class TestPhases:
    def test_seven_ordered_phases(self):
        assert len(phases.PHASES) == 7
        assert phases.PHASES[0] == phases.DEFAULT_PHASE == "idea_exploration"
        assert phases.phase_index("scale_up") == 6
        assert set(phases.PHASE_LABELS) == set(phases.PHASES)

    def test_validate_phase(self):
        assert phases.validate_phase(" Customer_Discovery ") == "customer_discovery"
        with pytest.raises(ValueError):
            phases.validate_phase("launch")
        with pytest.raises(ValueError):
            phases.validate_phase(None)

    def test_coerce_phase_falls_back(self):
        assert phases.coerce_phase("launch") == "idea_exploration"
        assert phases.coerce_phase("scale_up") == "scale_up"

    def test_clamp_progress(self):
        assert phases.clamp_progress(-5) == 0.0
        assert phases.clamp_progress(250) == 100.0
        assert phases.clamp_progress("42.5") == 42.5
        assert phases.clamp_progress("abc") == 0.0
        assert phases.clamp_progress(float("nan")) == 0.0

    def test_normalize_progress_fills_missing_and_drops_unknown(self):
        progress = phases.normalize_progress({"scale_up": 30, "bogus": 99})
        assert set(progress) == set(phases.PHASES)
        assert progress["scale_up"] == 30
        assert progress["idea_exploration"] == 0
        assert phases.normalize_progress("not a dict") == phases.default_progress()

    def test_overall_progress(self):
        progress = phases.default_progress()
        assert phases.overall_progress(progress) == 0
        progress["idea_exploration"] = 100
        progress["customer_discovery"] = 50
        assert phases.overall_progress(progress) == 21.4

    def test_success_probability(self):
        progress = phases.default_progress()
        progress["product_market_fit"] = 30
        assert phases.success_probability("product_market_fit", progress) == 80
        progress["scale_up"] = 90
        assert phases.success_probability("scale_up", progress) == 100
        assert phases.success_probability("idea_exploration", progress) == 0

    @pytest.mark.parametrize("value,band", [
        (100, "high"), (80, "high"), (79.9, "fair"), (60, "fair"),
        (40, "medium"), (20, "low"), (19, "critical"), (0, "critical"),
    ])
    def test_probability_band(self, value, band):
        assert phases.probability_band(value) == band


# ---------------------------------------------------------------------------
# Coercion helpers
# ---------------------------------------------------------------------------


class TestCoercion:
    def test_json_parse(self):
        assert json_parse('{"a": 1}') == {"a": 1}
        assert json_parse("not json") == {}
        assert json_parse(None, []) == []

    def test_as_str(self):
        assert as_str(None) == ""
        assert as_str("  hi ") == "hi"
        assert as_str(12) == "12"

    def test_as_str_list(self):
        assert as_str_list("single") == []
        assert as_str_list(["a", "", None, " b ", 3]) == ["a", "b", "3"]

    def test_as_number(self):
        assert as_number("7", 0, 0, 5) == 5
        assert as_number(-1, 0, 0, 5) == 0
        assert as_number(None, 3, 0, 5) == 3
        assert as_number(True, 3, 0, 5) == 3
        assert as_number(float("nan"), 3, 0, 5) == 3


# ---------------------------------------------------------------------------
# Ideas
# ---------------------------------------------------------------------------


class TestIdeas:
    def test_create_idea_defaults(self, sample_idea):
        assert sample_idea.name == "SolarShade"
        assert sample_idea.current_phase == "idea_exploration"
        assert json.loads(sample_idea.phase_progress_json) == phases.default_progress()

    def test_create_idea_unknown_phase(self, session):
        with pytest.raises(ValueError):
            services.create_idea(session, name="X", current_phase="launch")

    def test_idea_summary(self, sample_idea):
        summary = services.idea_summary(sample_idea)
        assert summary["phase_label"] == "Idea Exploration"
        assert summary["overall_progress"] == 0
        assert summary["success_probability"] == 0
        assert summary["user_id"] is None

    def test_idea_summary_tolerates_bad_stored_data(self, session):
        idea = Idea(name="Legacy", current_phase="unknown", phase_progress_json="garbage")
        session.add(idea)
        session.flush()
        summary = services.idea_summary(idea)
        assert summary["current_phase"] == "idea_exploration"
        assert summary["phase_progress"] == phases.default_progress()

    def test_query_ideas(self, session, sample_idea):
        services.create_idea(session, name="Other", current_phase="scale_up")
        session.commit()
        assert [i["name"] for i in services.query_ideas(session)] == ["Other", "SolarShade"]
        assert [i["name"] for i in services.query_ideas(session, search="RENTERS")] == ["SolarShade"]
        assert [i["name"] for i in services.query_ideas(session, phase="scale_up")] == ["Other"]
        with pytest.raises(ValueError):
            services.query_ideas(session, phase="launch")

    def test_update_idea_ignores_none(self, session, sample_idea):
        services.update_idea(session, sample_idea, {"name": None, "value": "Cheaper power"})
        assert sample_idea.name == "SolarShade"
        assert sample_idea.value == "Cheaper power"

    def test_update_idea_merges_progress(self, session, sample_idea):
        services.set_progress(sample_idea, "idea_exploration", 40)
        services.update_idea(session, sample_idea, {"phase_progress": {"customer_discovery": 20}})
        progress = services.idea_progress(sample_idea)
        assert progress["idea_exploration"] == 40
        assert progress["customer_discovery"] == 20

    def test_set_phase_keeps_progress(self, sample_idea):
        services.set_progress(sample_idea, "idea_exploration", 100)
        services.set_phase(sample_idea, "customer_discovery")
        assert sample_idea.current_phase == "customer_discovery"
        assert services.idea_progress(sample_idea)["idea_exploration"] == 100

    def test_set_progress_clamps(self, sample_idea):
        services.set_progress(sample_idea, "scale_up", 180)
        assert services.idea_progress(sample_idea)["scale_up"] == 100
        with pytest.raises(ValueError):
            services.set_progress(sample_idea, "launch", 10)


# ---------------------------------------------------------------------------
# AI operations through the service layer
# ---------------------------------------------------------------------------


class TestAIOperations:
    @pytest.mark.asyncio
    async def test_run_market_analysis_stores_row(self, session, sample_idea, fake_llm):
        fake_llm.call.return_value = {"ideaScore": 150, "scoreDetails": {"feasibility": "85"}}
        analysis = await services.run_market_analysis(session, sample_idea, fake_llm)
        session.commit()
        assert analysis.id is not None
        assert analysis.idea_score == 100
        summary = services.analysis_summary(analysis)
        assert summary["score_details"]["feasibility"] == 85
        assert summary["score_details"]["innovation"] == 0
        assert summary["market_insights"]["risks"] == []
        assert services.latest_analysis(session, sample_idea.id).id == analysis.id

    @pytest.mark.asyncio
    async def test_run_interview_analysis_defaults(self, session, sample_idea, fake_llm):
        fake_llm.call.return_value = {}
        interview = await services.run_interview_analysis(session, sample_idea, " Good call ", fake_llm)
        session.commit()
        assert interview.content == "Good call"
        assert interview.satisfaction_score == 3
        summary = services.interview_summary(interview)
        assert summary["sentiment"] == {"positive": [], "negative": []}
        assert set(summary["action_plans"]) == {"shortTerm", "midTerm", "longTerm"}

    @pytest.mark.asyncio
    async def test_run_interview_analysis_blank(self, session, sample_idea, fake_llm):
        with pytest.raises(ValueError):
            await services.run_interview_analysis(session, sample_idea, "  ", fake_llm)
        fake_llm.call.assert_not_called()


# ---------------------------------------------------------------------------
# Tracking
# ---------------------------------------------------------------------------


class TestTracking:
    def test_add_behavior_log_requires_event_type(self, session, sample_idea):
        with pytest.raises(ValueError):
            services.add_behavior_log(session, sample_idea.id, " ")

    def test_summarize_behavior(self):
        logs = [
            BehaviorLog(idea_id=1, event_type="view", created_at=datetime(2026, 3, 2, 9)),
            BehaviorLog(idea_id=1, event_type="click", created_at=datetime(2026, 3, 1, 18)),
            BehaviorLog(idea_id=1, event_type="view", created_at=datetime(2026, 3, 2, 11)),
        ]
        summary = services.summarize_behavior(logs)
        assert summary["total"] == 3
        assert summary["by_day"] == [{"date": "03/01", "events": 1}, {"date": "03/02", "events": 2}]
        assert summary["by_event_type"] == {"view": 2, "click": 1}

    def test_summarize_behavior_empty(self):
        assert services.summarize_behavior([]) == {"total": 0, "by_day": [], "by_event_type": {}}

    def test_add_and_update_risk(self, session, sample_idea):
        risk = services.add_risk(session, sample_idea.id, risk_type=" supply ", severity="HIGH")
        assert risk.risk_type == "supply"
        assert risk.severity == "high"
        assert risk.mitigation_status == "pending"
        services.update_risk(risk, {"mitigation_status": "in_progress", "description": "Chip shortage"})
        assert risk.mitigation_status == "in_progress"
        assert risk.description == "Chip shortage"
        with pytest.raises(ValueError):
            services.update_risk(risk, {"severity": "catastrophic"})

    def test_add_metric(self, session, sample_idea):
        metric = services.add_metric(session, sample_idea.id, "conversion", 0.12)
        assert services.metric_summary(metric)["metric_value"] == 0.12
        with pytest.raises(ValueError):
            services.add_metric(session, sample_idea.id, "", 1)

    def test_list_for_idea_order(self, session, sample_idea):
        for name in ("a", "b"):
            services.add_risk(session, sample_idea.id, risk_type=name)
        assert [r.risk_type for r in services.list_for_idea(session, ProjectRisk, sample_idea.id)] == ["a", "b"]
        newest = services.list_for_idea(session, ProjectRisk, sample_idea.id, newest_first=True)
        assert [r.risk_type for r in newest] == ["b", "a"]


# ---------------------------------------------------------------------------
# Dashboards
# ---------------------------------------------------------------------------


class TestDashboards:
    def test_stats_empty(self, session):
        stats = services.compute_stats(session)
        assert stats["total"] == 0
        assert stats["average_progress"] == 0
        assert stats["by_phase"] == {p: 0 for p in phases.PHASES}
        assert stats["open_risks"] == {"low": 0, "medium": 0, "high": 0}

    def test_stats_counts(self, session, sample_idea):
        services.set_progress(sample_idea, "idea_exploration", 70)
        other = services.create_idea(session, name="Other", current_phase="scale_up")
        session.add_all([
            Analysis(idea_id=sample_idea.id, idea_score=50),
            Analysis(idea_id=sample_idea.id, idea_score=60),
            Interview(idea_id=other.id, content="hello"),
        ])
        services.add_risk(session, other.id, risk_type="x", severity="low")
        services.add_risk(session, other.id, risk_type="y", severity="low", mitigation_status="mitigated")
        session.commit()

        stats = services.compute_stats(session)
        assert stats["total"] == 2
        assert stats["by_phase"]["scale_up"] == 1
        assert stats["analyzed"] == 1
        assert stats["interviews"] == 1
        assert stats["average_progress"] == 5.0
        assert stats["open_risks"]["low"] == 1

    def test_heatmap_caps_probability(self, session, sample_idea):
        services.set_phase(sample_idea, "scale_up")
        services.set_progress(sample_idea, "scale_up", 75)
        session.commit()
        (point,) = services.heatmap(session)
        assert point["phase_index"] == 6
        assert point["success_probability"] == 100
        assert point["band"] == "high"


# ---------------------------------------------------------------------------
# Database setup
# ---------------------------------------------------------------------------


class TestDatabase:
    def test_init_db_and_session_scope(self, tmp_path):
        from innovation.db import get_session, init_db, session_scope

        db_file = tmp_path / "nested" / "ideas.db"
        init_db(db_file)
        assert db_file.exists()

        with session_scope() as sess:
            services.create_idea(sess, name="Persisted")
        check = get_session()
        try:
            assert [i.name for i in check.query(Idea).all()] == ["Persisted"]
        finally:
            check.close()

    def test_session_scope_rolls_back(self, tmp_path):
        from innovation.db import get_session, init_db, session_scope

        init_db(tmp_path / "rollback.db")
        with pytest.raises(ValueError):
            with session_scope() as sess:
                services.create_idea(sess, name="Doomed")
                raise ValueError("boom")
        check = get_session()
        try:
            assert check.query(Idea).count() == 0
        finally:
            check.close()
