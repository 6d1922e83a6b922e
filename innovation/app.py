from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Callable, Generator

from fastapi import Depends, FastAPI, File, HTTPException, Query, Request, UploadFile
from fastapi.responses import HTMLResponse
from fastapi.staticfiles import StaticFiles
from sqlalchemy.orm import Session
from starlette.middleware.sessions import SessionMiddleware

from innovation import auth, importer, recommender, services
from innovation.config import get_settings
from innovation.db import get_session, init_db
from innovation.llm import LLMCallError, LLMClient
from innovation.models import BehaviorLog, Idea, Interview, ProjectMetric, ProjectRisk, Recommendation
from innovation.phases import phase_list
from innovation.schemas import (
    AnalysisOut,
    BehaviorLogCreate,
    BehaviorLogOut,
    BehaviorSummaryOut,
    Credentials,
    HeatmapPoint,
    IdeaCreate,
    IdeaOut,
    IdeaUpdate,
    InterviewCreate,
    InterviewOut,
    MarketAnalysisRequest,
    MetricCreate,
    MetricOut,
    PhaseOut,
    PhaseUpdate,
    ProgressUpdate,
    RecommendationOut,
    RecommendationRunOut,
    RecommendationStatusUpdate,
    RiskCreate,
    RiskOut,
    RiskUpdate,
    SessionOut,
    StatsOut,
    TextImport,
)

log = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    yield


settings = get_settings()

app = FastAPI(
    title="Innovation Platform",
    version="0.1.0",
    description=(
        "Track business ideas through a seven-phase validation lifecycle. "
        "Register ideas, request AI market and interview analyses, record risks "
        "and metrics, and generate prioritized recommendations. All endpoints return JSON."
    ),
    lifespan=lifespan,
    openapi_tags=[
        {"name": "Auth", "description": "Account signup, login and cookie sessions."},
        {"name": "Ideas", "description": "Create, browse and update ideas and their lifecycle phase."},
        {"name": "Import", "description": "Extract ideas from free text or PDF documents via LLM."},
        {"name": "Analysis", "description": "LLM-powered market analysis. Requires an LLM API key."},
        {"name": "Interviews", "description": "Customer interviews with LLM-derived sentiment and insights."},
        {"name": "Tracking", "description": "Behavior logs, project risks and project metrics."},
        {"name": "Recommendations", "description": "LLM-generated action items and project reports."},
        {"name": "Dashboard", "description": "Aggregate statistics and chart data."},
    ],
)
app.add_middleware(
    SessionMiddleware,
    secret_key=settings.session_secret,
    max_age=settings.session_max_age_seconds,
    https_only=settings.is_production,
    same_site="lax",
)

STATIC_DIR = Path(__file__).parent / "static"
app.mount("/static", StaticFiles(directory=STATIC_DIR), name="static")


# ---------------------------------------------------------------------------
# Dependencies & Helpers
# ---------------------------------------------------------------------------


def db_session() -> Generator[Session, None, None]:
    session = get_session()
    try:
        yield session
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def _build_llm_client() -> LLMClient:
    try:
        return LLMClient()
    except (ValueError, ImportError) as exc:
        raise HTTPException(500, f"LLM client unavailable: {exc}") from exc


def llm_factory() -> Callable[[], LLMClient]:
    """Client builder; handlers call it only after their 400/404 checks pass."""
    return _build_llm_client


def _get_or_404(session: Session, model, entity_id: int, label: str = "Entity"):
    obj = session.get(model, entity_id)
    if not obj:
        raise HTTPException(404, f"{label} not found")
    return obj


def _user_id(request: Request, session: Session) -> int | None:
    user = auth.current_user(request, session)
    return user.id if user else None


# ---------------------------------------------------------------------------
# Routes: Static
# ---------------------------------------------------------------------------


@app.get("/", response_class=HTMLResponse)
async def root():
    html_path = STATIC_DIR / "index.html"
    if not html_path.exists():
        return HTMLResponse("<h1>Innovation Platform</h1><p>index.html not found</p>", status_code=500)
    return HTMLResponse(html_path.read_text(encoding="utf-8"))


# ---------------------------------------------------------------------------
# Routes: Auth
# ---------------------------------------------------------------------------


@app.post("/api/auth/signup", tags=["Auth"], summary="Create an account")
def signup(body: Credentials, session: Session = Depends(db_session)):
    try:
        auth.create_user(session, body.username, body.password)
    except auth.AuthError as exc:
        raise HTTPException(400, str(exc)) from exc
    session.commit()
    return {"message": "Account created"}


@app.post("/api/auth/login", tags=["Auth"], summary="Log in and start a session")
def login(body: Credentials, request: Request, session: Session = Depends(db_session)):
    try:
        user = auth.authenticate(session, body.username, body.password)
    except auth.AuthError as exc:
        raise HTTPException(401, str(exc)) from exc
    auth.login(request, user)
    return {"message": "Logged in"}


@app.post("/api/auth/logout", tags=["Auth"], summary="End the current session")
async def logout(request: Request):
    auth.logout(request)
    return {"message": "Logged out"}


@app.get("/api/auth/session", response_model=SessionOut, tags=["Auth"], summary="Current session state")
async def session_state(request: Request, session: Session = Depends(db_session)):
    user = auth.current_user(request, session)
    if user is None:
        return {"is_authenticated": False, "user": None}
    return {"is_authenticated": True, "user": auth.user_summary(user)}


# ---------------------------------------------------------------------------
# Routes: Import (before parameterized idea routes)
# ---------------------------------------------------------------------------


@app.post("/api/ideas/extract-from-text", response_model=IdeaOut,
          tags=["Import"], summary="Extract an idea from free text and save it")
async def extract_from_text(
    body: TextImport, request: Request,
    session: Session = Depends(db_session),
    make_client: Callable[[], LLMClient] = Depends(llm_factory),
):
    if not body.text or not body.text.strip():
        raise HTTPException(400, "Text is required")
    try:
        text = importer.prepare_text(body.text, settings.max_import_chars)
    except importer.IdeaImportError as exc:
        raise HTTPException(400, str(exc)) from exc
    try:
        info = await importer.extract_idea(text, make_client())
    except LLMCallError as exc:
        raise HTTPException(500, f"Idea extraction failed: {exc}") from exc
    idea = importer.save_extracted_idea(session, info, _user_id(request, session))
    session.commit()
    return services.idea_summary(idea)


@app.post("/api/ideas/extract-from-pdf", response_model=IdeaOut,
          tags=["Import"], summary="Extract an idea from an uploaded PDF and save it")
async def extract_from_pdf(
    request: Request, file: UploadFile | None = File(None),
    session: Session = Depends(db_session),
    make_client: Callable[[], LLMClient] = Depends(llm_factory),
):
    if file is None:
        raise HTTPException(400, "A PDF file is required")
    if file.content_type != "application/pdf":
        raise HTTPException(400, "Only PDF files can be uploaded")
    content = await file.read()
    if len(content) > settings.max_upload_bytes:
        raise HTTPException(413, f"File exceeds {settings.max_upload_bytes // (1024 * 1024)} MB limit")
    log.info("PDF upload received: %s (%d bytes)", file.filename, len(content))
    try:
        text = importer.prepare_pdf_text(content, settings.max_import_chars)
    except importer.IdeaImportError as exc:
        raise HTTPException(400, str(exc)) from exc
    try:
        info = await importer.extract_idea(text, make_client())
    except LLMCallError as exc:
        raise HTTPException(500, f"Idea extraction failed: {exc}") from exc
    idea = importer.save_extracted_idea(session, info, _user_id(request, session))
    session.commit()
    return services.idea_summary(idea)


# ---------------------------------------------------------------------------
# Routes: Ideas
# ---------------------------------------------------------------------------


@app.get("/api/phases", response_model=list[PhaseOut], tags=["Ideas"], summary="List lifecycle phases in order")
async def list_phases():
    return phase_list()


@app.get("/api/ideas", response_model=list[IdeaOut],
         tags=["Ideas"], summary="List ideas, newest first, with optional search and phase filter")
async def list_ideas(
    search: str | None = Query(None, description="Free-text search across name and target customer"),
    phase: str | None = Query(None, description="Only ideas currently in this phase"),
    session: Session = Depends(db_session),
):
    try:
        return services.query_ideas(session, search=search, phase=phase)
    except ValueError as exc:
        raise HTTPException(400, str(exc)) from exc


@app.post("/api/ideas", response_model=IdeaOut, status_code=201,
          tags=["Ideas"], summary="Register a new idea")
async def create_idea(body: IdeaCreate, request: Request, session: Session = Depends(db_session)):
    try:
        idea = services.create_idea(session, **body.model_dump(), user_id=_user_id(request, session))
    except ValueError as exc:
        raise HTTPException(400, str(exc)) from exc
    session.commit()
    return services.idea_summary(idea)


@app.get("/api/ideas/{idea_id}", response_model=IdeaOut, tags=["Ideas"], summary="Get one idea")
async def get_idea(idea_id: int, session: Session = Depends(db_session)):
    return services.idea_summary(_get_or_404(session, Idea, idea_id, "Idea"))


@app.put("/api/ideas/{idea_id}", response_model=IdeaOut,
         tags=["Ideas"], summary="Update idea fields (partial update, null fields ignored)")
async def update_idea(idea_id: int, body: IdeaUpdate, session: Session = Depends(db_session)):
    idea = _get_or_404(session, Idea, idea_id, "Idea")
    try:
        services.update_idea(session, idea, body.model_dump())
    except ValueError as exc:
        raise HTTPException(400, str(exc)) from exc
    session.commit()
    return services.idea_summary(idea)


@app.delete("/api/ideas/{idea_id}", tags=["Ideas"], summary="Delete an idea and everything attached to it")
async def delete_idea(idea_id: int, session: Session = Depends(db_session)):
    session.delete(_get_or_404(session, Idea, idea_id, "Idea"))
    session.commit()
    return {"ok": True}


@app.post("/api/ideas/{idea_id}/phase", tags=["Ideas"], summary="Move an idea to another lifecycle phase")
async def update_phase(idea_id: int, body: PhaseUpdate, session: Session = Depends(db_session)):
    if not body.phase:
        raise HTTPException(400, "Phase is required")
    idea = _get_or_404(session, Idea, idea_id, "Idea")
    try:
        services.set_phase(idea, body.phase)
    except ValueError as exc:
        raise HTTPException(400, str(exc)) from exc
    session.commit()
    return {"message": "Phase updated", "current_phase": idea.current_phase}


@app.post("/api/ideas/{idea_id}/progress", response_model=IdeaOut,
          tags=["Ideas"], summary="Set the progress (0-100) of one phase")
async def update_progress(idea_id: int, body: ProgressUpdate, session: Session = Depends(db_session)):
    idea = _get_or_404(session, Idea, idea_id, "Idea")
    try:
        services.set_progress(idea, body.phase, body.progress)
    except ValueError as exc:
        raise HTTPException(400, str(exc)) from exc
    session.commit()
    return services.idea_summary(idea)


# ---------------------------------------------------------------------------
# Routes: Analysis
# ---------------------------------------------------------------------------


@app.post("/api/ideas/{idea_id}/analyze", response_model=AnalysisOut,
          tags=["Analysis"], summary="Run an LLM market analysis for a stored idea")
async def analyze_idea(
    idea_id: int, session: Session = Depends(db_session),
    make_client: Callable[[], LLMClient] = Depends(llm_factory),
):
    idea = _get_or_404(session, Idea, idea_id, "Idea")
    try:
        analysis = await services.run_market_analysis(session, idea, make_client())
    except LLMCallError as exc:
        raise HTTPException(500, f"Market analysis failed: {exc}") from exc
    session.commit()
    return services.analysis_summary(analysis)


@app.post("/api/market-analysis", response_model=AnalysisOut,
          tags=["Analysis"], summary="Run an LLM market analysis with submitted idea fields")
async def market_analysis(
    body: MarketAnalysisRequest,
    session: Session = Depends(db_session),
    make_client: Callable[[], LLMClient] = Depends(llm_factory),
):
    idea = _get_or_404(session, Idea, body.idea_id, "Idea")
    overrides = body.model_dump(exclude={"idea_id"})
    try:
        analysis = await services.run_market_analysis(session, idea, make_client(), overrides)
    except LLMCallError as exc:
        raise HTTPException(500, f"Market analysis failed: {exc}") from exc
    session.commit()
    return services.analysis_summary(analysis)


@app.get("/api/analysis/{idea_id}", response_model=AnalysisOut | None,
         tags=["Analysis"], summary="Latest market analysis for an idea (null if none)")
async def get_analysis(idea_id: int, session: Session = Depends(db_session)):
    analysis = services.latest_analysis(session, idea_id)
    return services.analysis_summary(analysis) if analysis else None


@app.get("/api/ideas/{idea_id}/analyses", response_model=list[AnalysisOut],
         tags=["Analysis"], summary="All market analyses for an idea, newest first")
async def list_analyses(idea_id: int, session: Session = Depends(db_session)):
    idea = _get_or_404(session, Idea, idea_id, "Idea")
    return [services.analysis_summary(a) for a in sorted(idea.analyses, key=lambda a: a.id, reverse=True)]


# ---------------------------------------------------------------------------
# Routes: Interviews
# ---------------------------------------------------------------------------


@app.post("/api/interviews", response_model=InterviewOut,
          tags=["Interviews"], summary="Analyze and store a customer interview")
async def create_interview(
    body: InterviewCreate,
    session: Session = Depends(db_session),
    make_client: Callable[[], LLMClient] = Depends(llm_factory),
):
    idea = _get_or_404(session, Idea, body.idea_id, "Idea")
    if not body.content.strip():
        raise HTTPException(400, "Interview content is required")
    try:
        interview = await services.run_interview_analysis(session, idea, body.content, make_client())
    except ValueError as exc:
        raise HTTPException(400, str(exc)) from exc
    except LLMCallError as exc:
        raise HTTPException(500, f"Interview analysis failed: {exc}") from exc
    session.commit()
    return services.interview_summary(interview)


@app.get("/api/interviews/{idea_id}", response_model=list[InterviewOut],
         tags=["Interviews"], summary="List interviews for an idea")
async def list_interviews(idea_id: int, session: Session = Depends(db_session)):
    return [services.interview_summary(i) for i in services.list_for_idea(session, Interview, idea_id)]


# ---------------------------------------------------------------------------
# Routes: Tracking
# ---------------------------------------------------------------------------


@app.post("/api/behavior-logs", response_model=BehaviorLogOut,
          tags=["Tracking"], summary="Record a user behavior event")
async def create_behavior_log(body: BehaviorLogCreate, session: Session = Depends(db_session)):
    _get_or_404(session, Idea, body.idea_id, "Idea")
    try:
        entry = services.add_behavior_log(session, body.idea_id, body.event_type, body.event_data)
    except ValueError as exc:
        raise HTTPException(400, str(exc)) from exc
    session.commit()
    return services.behavior_log_summary(entry)


@app.get("/api/behavior-logs/{idea_id}", response_model=list[BehaviorLogOut],
         tags=["Tracking"], summary="Behavior events for an idea, newest first")
async def list_behavior_logs(idea_id: int, session: Session = Depends(db_session)):
    logs = services.list_for_idea(session, BehaviorLog, idea_id, newest_first=True)
    return [services.behavior_log_summary(e) for e in logs]


@app.get("/api/behavior-logs/{idea_id}/summary", response_model=BehaviorSummaryOut,
         tags=["Tracking"], summary="Event counts per day and per event type")
async def behavior_summary(idea_id: int, session: Session = Depends(db_session)):
    return services.summarize_behavior(services.list_for_idea(session, BehaviorLog, idea_id))


@app.get("/api/project-risks/{idea_id}", response_model=list[RiskOut],
         tags=["Tracking"], summary="Risks recorded for an idea")
async def list_risks(idea_id: int, session: Session = Depends(db_session)):
    return [services.risk_summary(r) for r in services.list_for_idea(session, ProjectRisk, idea_id)]


@app.post("/api/project-risks", response_model=RiskOut, status_code=201,
          tags=["Tracking"], summary="Record a project risk")
async def create_risk(body: RiskCreate, session: Session = Depends(db_session)):
    _get_or_404(session, Idea, body.idea_id, "Idea")
    try:
        risk = services.add_risk(session, **body.model_dump())
    except ValueError as exc:
        raise HTTPException(400, str(exc)) from exc
    session.commit()
    return services.risk_summary(risk)


@app.put("/api/project-risks/{risk_id}", response_model=RiskOut,
         tags=["Tracking"], summary="Update a risk's severity, description or mitigation status")
async def update_risk(risk_id: int, body: RiskUpdate, session: Session = Depends(db_session)):
    risk = _get_or_404(session, ProjectRisk, risk_id, "Risk")
    try:
        services.update_risk(risk, body.model_dump())
    except ValueError as exc:
        raise HTTPException(400, str(exc)) from exc
    session.commit()
    return services.risk_summary(risk)


@app.get("/api/project-metrics/{idea_id}", response_model=list[MetricOut],
         tags=["Tracking"], summary="Metrics recorded for an idea")
async def list_metrics(idea_id: int, session: Session = Depends(db_session)):
    return [services.metric_summary(m) for m in services.list_for_idea(session, ProjectMetric, idea_id)]


@app.post("/api/project-metrics", response_model=MetricOut, status_code=201,
          tags=["Tracking"], summary="Record a project metric")
async def create_metric(body: MetricCreate, session: Session = Depends(db_session)):
    _get_or_404(session, Idea, body.idea_id, "Idea")
    try:
        metric = services.add_metric(session, body.idea_id, body.metric_name, body.metric_value)
    except ValueError as exc:
        raise HTTPException(400, str(exc)) from exc
    session.commit()
    return services.metric_summary(metric)


# ---------------------------------------------------------------------------
# Routes: Recommendations
# ---------------------------------------------------------------------------


@app.post("/api/ideas/{idea_id}/recommendations", response_model=RecommendationRunOut,
          tags=["Recommendations"], summary="Generate and store LLM recommendations for an idea")
async def generate_recommendations(
    idea_id: int, session: Session = Depends(db_session),
    make_client: Callable[[], LLMClient] = Depends(llm_factory),
):
    idea = _get_or_404(session, Idea, idea_id, "Idea")
    try:
        result = await recommender.generate_recommendations(session, idea, make_client())
    except LLMCallError as exc:
        raise HTTPException(500, f"Recommendation generation failed: {exc}") from exc
    session.commit()
    return result


@app.get("/api/ideas/{idea_id}/recommendations", response_model=list[RecommendationOut],
         tags=["Recommendations"], summary="Stored recommendations for an idea, oldest first")
async def list_recommendations(idea_id: int, session: Session = Depends(db_session)):
    recs = services.list_for_idea(session, Recommendation, idea_id)
    return [services.recommendation_summary(r) for r in recs]


@app.put("/api/recommendations/{rec_id}", response_model=RecommendationOut,
         tags=["Recommendations"], summary="Update a recommendation's status")
async def update_recommendation(
    rec_id: int, body: RecommendationStatusUpdate, session: Session = Depends(db_session),
):
    rec = _get_or_404(session, Recommendation, rec_id, "Recommendation")
    try:
        services.set_recommendation_status(rec, body.status)
    except ValueError as exc:
        raise HTTPException(400, str(exc)) from exc
    session.commit()
    return services.recommendation_summary(rec)


@app.post("/api/ideas/{idea_id}/report", tags=["Recommendations"],
          summary="Generate a project report via LLM (not stored)")
async def generate_report(
    idea_id: int, session: Session = Depends(db_session),
    make_client: Callable[[], LLMClient] = Depends(llm_factory),
):
    idea = _get_or_404(session, Idea, idea_id, "Idea")
    try:
        return await recommender.generate_project_report(session, idea, make_client())
    except LLMCallError as exc:
        raise HTTPException(500, f"Report generation failed: {exc}") from exc


# ---------------------------------------------------------------------------
# Routes: Dashboard
# ---------------------------------------------------------------------------


@app.get("/api/stats", response_model=StatsOut,
         tags=["Dashboard"], summary="Aggregate statistics and breakdowns")
async def get_stats(session: Session = Depends(db_session)):
    return services.compute_stats(session)


@app.get("/api/heatmap", response_model=list[HeatmapPoint],
         tags=["Dashboard"], summary="Phase vs. success probability for every idea")
async def get_heatmap(session: Session = Depends(db_session)):
    return services.heatmap(session)


# ---------------------------------------------------------------------------
# Startup
# ---------------------------------------------------------------------------


def main():
    import uvicorn
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        force=True,
    )
    uvicorn.run("innovation.app:app", host=settings.host, port=settings.port, reload=not settings.is_production)


if __name__ == "__main__":
    main()
