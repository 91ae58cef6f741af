"""
Database schema and connection management.

Uses SQLAlchemy; SQLite by default. Timestamps are stored as naive UTC.
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path

import pendulum
from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    Integer,
    String,
    Text,
    create_engine,
)
from sqlalchemy.engine import Engine
from sqlalchemy.engine.url import make_url
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

Base = declarative_base()


def utcnow() -> datetime:
    return pendulum.now("UTC").naive()


class JobRecord(Base):
    """Job posting row."""

    __tablename__ = "jobs"

    id = Column(String(36), primary_key=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=False, default="")
    location = Column(String, nullable=True)
    company_name = Column(String, nullable=True)
    required_skills = Column(JSON, nullable=False, default=list)
    nice_to_have_skills = Column(JSON, nullable=False, default=list)
    experience_years = Column(Float, nullable=True)
    eligibility = Column(JSON, nullable=False, default=dict)
    scoring_company_ref = Column(String, nullable=True)
    scoring_job_ref = Column(String, nullable=True)
    status = Column(String(16), nullable=False, default="active")
    is_deleted = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)


class ApplicationRecord(Base):
    """Candidate application row."""

    __tablename__ = "applications"

    id = Column(String(36), primary_key=True)  # durable id sent to the scoring service
    candidate_id = Column(String, nullable=False, index=True)
    job_id = Column(String(36), nullable=False, index=True)
    candidate_name = Column(String, nullable=True)
    candidate_email = Column(String, nullable=True)
    filename = Column(String, nullable=True)
    mime_type = Column(String, nullable=True)
    extracted_text = Column(Text, nullable=True)
    score = Column(Float, nullable=True)
    semantic_score = Column(Float, nullable=True)
    skill_score = Column(Float, nullable=True)
    experience_score = Column(Float, nullable=True)
    metrics_score = Column(Float, nullable=True)
    complexity_score = Column(Float, nullable=True)
    matched_skills = Column(JSON, nullable=False, default=list)
    missing_skills = Column(JSON, nullable=False, default=list)
    processed = Column(Boolean, nullable=False, default=False)
    processed_at = Column(DateTime, nullable=True)
    error = Column(Text, nullable=True)
    pipeline_stage = Column(String(16), nullable=False, default="screening", index=True)
    is_deleted = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)


class RunRecord(Base):
    """Screening run row."""

    __tablename__ = "screening_runs"

    id = Column(String(36), primary_key=True)
    job_id = Column(String(36), nullable=False, index=True)
    total = Column(Integer, nullable=False, default=0)
    processed = Column(Integer, nullable=False, default=0)
    status = Column(String(16), nullable=False, default="running", index=True)
    phase = Column(String(16), nullable=False, default="idle")
    error = Column(Text, nullable=True)
    indexed = Column(Integer, nullable=False, default=0)
    index_failures = Column(Integer, nullable=False, default=0)
    skipped = Column(Integer, nullable=False, default=0)
    unattributed = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow)
    finished_at = Column(DateTime, nullable=True)


class Database:
    """Engine plus session factory for one database URL."""

    def __init__(self, url: str, *, echo: bool = False) -> None:
        self.url = url
        self.engine: Engine = _create_engine(url, echo=echo)
        self.session_factory = sessionmaker(bind=self.engine, expire_on_commit=False)

    def create_all(self) -> None:
        Base.metadata.create_all(self.engine)

    def dispose(self) -> None:
        self.engine.dispose()


def _create_engine(url: str, *, echo: bool) -> Engine:
    parsed = make_url(url)
    if parsed.get_backend_name() != "sqlite":
        return create_engine(url, echo=echo, pool_pre_ping=True)
    if not parsed.database or parsed.database == ":memory:":
        return create_engine(
            url,
            echo=echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    Path(parsed.database).parent.mkdir(parents=True, exist_ok=True)
    # Background runs write from worker threads.
    return create_engine(url, echo=echo, connect_args={"check_same_thread": False})


def init_database(url: str, *, echo: bool = False) -> Database:
    """
    Initialize database and create tables.

    Args:
        url: SQLAlchemy database URL

    Returns:
        Database handle with tables created
    """
    database = Database(url, echo=echo)
    database.create_all()
    return database
