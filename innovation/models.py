from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Float, ForeignKey, Integer, String, Text, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    pass


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(150), unique=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(200), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    ideas: Mapped[list[Idea]] = relationship("Idea", back_populates="user")


class Idea(Base):
    __tablename__ = "ideas"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(300), nullable=False)
    target_customer: Mapped[str] = mapped_column(Text, default="")
    price_range: Mapped[str] = mapped_column(String(200), default="")
    value: Mapped[str] = mapped_column(Text, default="")
    competitors: Mapped[str] = mapped_column(Text, default="")
    current_phase: Mapped[str] = mapped_column(String(50), default="idea_exploration")
    phase_progress_json: Mapped[str] = mapped_column(Text, default="{}")
    user_id: Mapped[int | None] = mapped_column(Integer, ForeignKey("users.id"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    user: Mapped[User | None] = relationship("User", back_populates="ideas")
    analyses: Mapped[list[Analysis]] = relationship("Analysis", back_populates="idea", cascade="all, delete-orphan")
    interviews: Mapped[list[Interview]] = relationship("Interview", back_populates="idea", cascade="all, delete-orphan")
    behavior_logs: Mapped[list[BehaviorLog]] = relationship("BehaviorLog", back_populates="idea", cascade="all, delete-orphan")
    risks: Mapped[list[ProjectRisk]] = relationship("ProjectRisk", back_populates="idea", cascade="all, delete-orphan")
    metrics: Mapped[list[ProjectMetric]] = relationship("ProjectMetric", back_populates="idea", cascade="all, delete-orphan")
    recommendations: Mapped[list[Recommendation]] = relationship("Recommendation", back_populates="idea", cascade="all, delete-orphan")


class Analysis(Base):
    __tablename__ = "analyses"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    idea_id: Mapped[int] = mapped_column(Integer, ForeignKey("ideas.id"), nullable=False)
    idea_score: Mapped[float] = mapped_column(Float, default=0.0)
    score_details_json: Mapped[str] = mapped_column(Text, default="{}")
    market_insights_json: Mapped[str] = mapped_column(Text, default="{}")
    recommendations_json: Mapped[str] = mapped_column(Text, default="[]")
    llm_model: Mapped[str] = mapped_column(String(100), default="")
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    idea: Mapped[Idea] = relationship("Idea", back_populates="analyses")


class Interview(Base):
    __tablename__ = "interviews"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    idea_id: Mapped[int] = mapped_column(Integer, ForeignKey("ideas.id"), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    satisfaction_score: Mapped[float] = mapped_column(Float, default=3.0)
    key_phrases_json: Mapped[str] = mapped_column(Text, default="[]")
    sentiment_json: Mapped[str] = mapped_column(Text, default="{}")
    market_insights_json: Mapped[str] = mapped_column(Text, default="{}")
    action_plans_json: Mapped[str] = mapped_column(Text, default="{}")
    next_actions_json: Mapped[str] = mapped_column(Text, default="[]")
    llm_model: Mapped[str] = mapped_column(String(100), default="")
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    idea: Mapped[Idea] = relationship("Idea", back_populates="interviews")


class BehaviorLog(Base):
    __tablename__ = "behavior_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    idea_id: Mapped[int] = mapped_column(Integer, ForeignKey("ideas.id"), nullable=False)
    event_type: Mapped[str] = mapped_column(String(100), nullable=False)  # page_view | button_click | form_submit | ...
    event_data_json: Mapped[str] = mapped_column(Text, default="{}")
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    idea: Mapped[Idea] = relationship("Idea", back_populates="behavior_logs")


class ProjectRisk(Base):
    __tablename__ = "project_risks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    idea_id: Mapped[int] = mapped_column(Integer, ForeignKey("ideas.id"), nullable=False)
    risk_type: Mapped[str] = mapped_column(String(100), nullable=False)
    severity: Mapped[str] = mapped_column(String(20), default="medium")  # low | medium | high
    description: Mapped[str] = mapped_column(Text, default="")
    mitigation_status: Mapped[str] = mapped_column(String(30), default="pending")  # pending | in_progress | mitigated
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    idea: Mapped[Idea] = relationship("Idea", back_populates="risks")


class ProjectMetric(Base):
    __tablename__ = "project_metrics"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    idea_id: Mapped[int] = mapped_column(Integer, ForeignKey("ideas.id"), nullable=False)
    metric_name: Mapped[str] = mapped_column(String(200), nullable=False)
    metric_value_json: Mapped[str] = mapped_column(Text, default="null")
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    idea: Mapped[Idea] = relationship("Idea", back_populates="metrics")


class Recommendation(Base):
    __tablename__ = "recommendations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    idea_id: Mapped[int] = mapped_column(Integer, ForeignKey("ideas.id"), nullable=False)
    title: Mapped[str] = mapped_column(String(300), nullable=False)
    description: Mapped[str] = mapped_column(Text, default="")
    priority: Mapped[str] = mapped_column(String(20), default="medium")
    category: Mapped[str] = mapped_column(String(50), default="market_research")
    status: Mapped[str] = mapped_column(String(30), default="pending")
    implementation_difficulty: Mapped[str] = mapped_column(String(20), default="medium")
    expected_impact: Mapped[str] = mapped_column(String(20), default="medium")
    source: Mapped[str] = mapped_column(String(50), default="")
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    idea: Mapped[Idea] = relationship("Idea", back_populates="recommendations")
