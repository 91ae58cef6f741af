from __future__ import annotations

from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Callable, Sequence

import pytest
import structlog

from autohire.schemas import CandidateApplication, JobPosting, MatchResult, ScoringContext
from autohire.storage import (
    ApplicationRepository,
    Database,
    JobRepository,
    RunTracker,
    init_database,
)

RESUME_TEXT = (
    "Backend engineer with six years of experience building Python services, "
    "designing PostgreSQL schemas, running workloads on AWS and mentoring a team "
    "of four developers through code review and pairing sessions."
)

BASE_TIME = datetime(2024, 1, 1, 9, 0, 0)


class FakeScoringBackend:
    """Deterministic stand-in for the scoring service."""

    def __init__(
        self,
        *,
        matches: Sequence[dict[str, Any]] | Callable[[list[str]], Sequence[dict[str, Any]]] = (),
        fetch_error: Exception | None = None,
        failing_ids: Sequence[str] = (),
        context: ScoringContext | None = None,
    ) -> None:
        self.matches = matches
        self.fetch_error = fetch_error
        self.failing_ids = set(failing_ids)
        self.context = context or ScoringContext(company_ref="company-1", job_ref="job-ref-1")
        self.contexts_created = 0
        self.cleared = 0
        self.indexed: list[str] = []
        self.fetches = 0

    def create_context(self, job: JobPosting) -> ScoringContext:
        self.contexts_created += 1
        return self.context

    def index_document(self, context: ScoringContext, text: str, durable_id: str) -> bool:
        self.indexed.append(durable_id)
        return durable_id not in self.failing_ids

    def clear_index(self, context: ScoringContext) -> None:
        self.cleared += 1

    def fetch_ranked_matches(self, context: ScoringContext) -> list[MatchResult]:
        self.fetches += 1
        if self.fetch_error is not None:
            raise self.fetch_error
        raw = self.matches(list(self.indexed)) if callable(self.matches) else self.matches
        return [MatchResult.model_validate(item) for item in raw]


@pytest.fixture(autouse=True)
def quiet_structlog():
    structlog.configure(
        logger_factory=structlog.ReturnLoggerFactory(),
        cache_logger_on_first_use=False,
    )
    yield
    structlog.reset_defaults()


@pytest.fixture
def database(tmp_path: Path) -> Database:
    db = init_database(f"sqlite:///{tmp_path / 'autohire.db'}")
    yield db
    db.dispose()


@pytest.fixture
def jobs(database: Database) -> JobRepository:
    return JobRepository(database)


@pytest.fixture
def applications(database: Database) -> ApplicationRepository:
    return ApplicationRepository(database)


@pytest.fixture
def runs(database: Database) -> RunTracker:
    return RunTracker(database)


def build_job(**kwargs: Any) -> JobPosting:
    payload: dict[str, Any] = {
        "title": "Backend Engineer",
        "description": "Build and run Python services.",
        "required_skills": "Python, SQL",
        "experience_years": 3,
    }
    payload.update(kwargs)
    return JobPosting.model_validate(payload)


def build_application(job_id: str, position: int, **kwargs: Any) -> CandidateApplication:
    payload: dict[str, Any] = {
        "id": f"app-{position}",
        "candidate_id": f"cand-{position}",
        "job_id": job_id,
        "candidate_name": f"Candidate {position}",
        "extracted_text": RESUME_TEXT,
        "created_at": BASE_TIME + timedelta(minutes=position),
    }
    payload.update(kwargs)
    return CandidateApplication.model_validate(payload)


def seed_applications(
    repository: ApplicationRepository,
    job_id: str,
    count: int,
    **kwargs: Any,
) -> list[CandidateApplication]:
    return [repository.add(build_application(job_id, position, **kwargs)) for position in range(1, count + 1)]
