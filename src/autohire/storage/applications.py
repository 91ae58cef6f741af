"""Candidate application repository."""

from __future__ import annotations

from typing import Iterable, Sequence

from sqlalchemy import select, update

from ..errors import NotFoundError
from ..schemas import CandidateApplication, PipelineStage, ScoreBreakdown
from .database import ApplicationRecord, Database, utcnow


class ApplicationRepository:
    """Persist applications. Score fields are written only through ``apply_score``."""

    def __init__(self, database: Database) -> None:
        self._sessions = database.session_factory

    def add(self, application: CandidateApplication) -> CandidateApplication:
        record = ApplicationRecord(
            id=application.id,
            candidate_id=application.candidate_id,
            job_id=application.job_id,
            candidate_name=application.candidate_name,
            candidate_email=application.candidate_email,
            filename=application.filename,
            mime_type=application.mime_type,
            extracted_text=application.extracted_text,
            error=application.error,
            pipeline_stage=application.pipeline_stage.value,
            is_deleted=application.is_deleted,
        )
        if application.created_at is not None:
            record.created_at = application.created_at
        with self._sessions.begin() as session:
            session.add(record)
            session.flush()
            return _to_model(record)

    def get(self, application_id: str) -> CandidateApplication:
        with self._sessions() as session:
            record = session.get(ApplicationRecord, application_id)
            if record is None or record.is_deleted:
                raise NotFoundError("application", application_id)
            return _to_model(record)

    def list_for_screening(
        self,
        job_id: str,
        application_ids: Sequence[str] | None = None,
    ) -> list[CandidateApplication]:
        """Non-deleted applications of a job in ascending creation order."""
        query = select(ApplicationRecord).where(
            ApplicationRecord.job_id == job_id,
            ApplicationRecord.is_deleted.is_(False),
        )
        if application_ids:
            query = query.where(ApplicationRecord.id.in_(list(application_ids)))
        query = query.order_by(ApplicationRecord.created_at.asc(), ApplicationRecord.id.asc())
        with self._sessions() as session:
            return [_to_model(record) for record in session.scalars(query)]

    def find_active(self, application_ids: Iterable[str]) -> list[CandidateApplication]:
        ids = list(dict.fromkeys(application_ids))
        if not ids:
            return []
        query = (
            select(ApplicationRecord)
            .where(ApplicationRecord.id.in_(ids), ApplicationRecord.is_deleted.is_(False))
            .order_by(ApplicationRecord.created_at.asc(), ApplicationRecord.id.asc())
        )
        with self._sessions() as session:
            return [_to_model(record) for record in session.scalars(query)]

    def list_by_stage(self, job_id: str, stage: PipelineStage) -> list[CandidateApplication]:
        query = (
            select(ApplicationRecord)
            .where(
                ApplicationRecord.job_id == job_id,
                ApplicationRecord.is_deleted.is_(False),
                ApplicationRecord.pipeline_stage == stage.value,
            )
            .order_by(
                ApplicationRecord.score.is_(None),
                ApplicationRecord.score.desc(),
                ApplicationRecord.created_at.desc(),
            )
        )
        with self._sessions() as session:
            return [_to_model(record) for record in session.scalars(query)]

    def cache_text(self, application_id: str, text: str) -> None:
        self._update_one(application_id, extracted_text=text, error=None)

    def record_error(self, application_id: str, message: str) -> None:
        self._update_one(application_id, error=message)

    def apply_score(
        self,
        application_id: str,
        score: float,
        breakdown: ScoreBreakdown,
    ) -> bool:
        """Write a reconciled score. Returns False when the row has vanished."""
        now = utcnow()
        with self._sessions.begin() as session:
            result = session.execute(
                update(ApplicationRecord)
                .where(ApplicationRecord.id == application_id)
                .values(
                    score=score,
                    semantic_score=breakdown.semantic_score,
                    skill_score=breakdown.skill_score,
                    experience_score=breakdown.experience_score,
                    metrics_score=breakdown.metrics_score,
                    complexity_score=breakdown.complexity_score,
                    matched_skills=list(breakdown.matched_skills),
                    missing_skills=list(breakdown.missing_skills),
                    processed=True,
                    processed_at=now,
                    error=None,
                    updated_at=now,
                )
                .execution_options(synchronize_session=False)
            )
            return result.rowcount > 0

    def set_stage(self, application_ids: Iterable[str], stage: PipelineStage) -> int:
        ids = list(dict.fromkeys(application_ids))
        if not ids:
            return 0
        with self._sessions.begin() as session:
            result = session.execute(
                update(ApplicationRecord)
                .where(ApplicationRecord.id.in_(ids), ApplicationRecord.is_deleted.is_(False))
                .values(pipeline_stage=stage.value, updated_at=utcnow())
                .execution_options(synchronize_session=False)
            )
            return result.rowcount

    def soft_delete(self, application_id: str) -> CandidateApplication:
        self._update_one(application_id, is_deleted=True)
        with self._sessions() as session:
            return _to_model(session.get(ApplicationRecord, application_id))

    def _update_one(self, application_id: str, **values) -> None:
        with self._sessions.begin() as session:
            result = session.execute(
                update(ApplicationRecord)
                .where(
                    ApplicationRecord.id == application_id,
                    ApplicationRecord.is_deleted.is_(False),
                )
                .values(updated_at=utcnow(), **values)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise NotFoundError("application", application_id)


def _to_model(record: ApplicationRecord) -> CandidateApplication:
    return CandidateApplication(
        id=record.id,
        candidate_id=record.candidate_id,
        job_id=record.job_id,
        candidate_name=record.candidate_name,
        candidate_email=record.candidate_email,
        filename=record.filename,
        mime_type=record.mime_type,
        extracted_text=record.extracted_text,
        score=record.score,
        breakdown=ScoreBreakdown(
            semantic_score=record.semantic_score,
            skill_score=record.skill_score,
            experience_score=record.experience_score,
            metrics_score=record.metrics_score,
            complexity_score=record.complexity_score,
            matched_skills=record.matched_skills or [],
            missing_skills=record.missing_skills or [],
        ),
        processed=record.processed,
        processed_at=record.processed_at,
        error=record.error,
        pipeline_stage=PipelineStage(record.pipeline_stage),
        is_deleted=record.is_deleted,
        created_at=record.created_at,
        updated_at=record.updated_at,
    )
