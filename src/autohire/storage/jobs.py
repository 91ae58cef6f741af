"""Job posting repository."""

from __future__ import annotations

from sqlalchemy import update

from ..errors import NotFoundError, ValidationError
from ..schemas import EligibilityRuleSet, JobPosting, JobStatus, ScoringContext
from .database import Database, JobRecord, utcnow


class JobRepository:
    """Persist and load job postings."""

    def __init__(self, database: Database) -> None:
        self._sessions = database.session_factory

    def add(self, job: JobPosting) -> JobPosting:
        record = JobRecord(
            id=job.id,
            title=job.title,
            description=job.description,
            location=job.location,
            company_name=job.company_name,
            required_skills=list(job.required_skills),
            nice_to_have_skills=list(job.nice_to_have_skills),
            experience_years=job.experience_years,
            eligibility=job.eligibility.model_dump(mode="json"),
            scoring_company_ref=job.scoring_context.company_ref if job.scoring_context else None,
            scoring_job_ref=job.scoring_context.job_ref if job.scoring_context else None,
            status=job.status.value,
            is_deleted=job.is_deleted,
        )
        if job.created_at is not None:
            record.created_at = job.created_at
        with self._sessions.begin() as session:
            session.add(record)
            session.flush()
            return _to_model(record)

    def get(self, job_id: str, *, include_deleted: bool = False) -> JobPosting:
        with self._sessions() as session:
            record = session.get(JobRecord, job_id)
            if record is None or (record.is_deleted and not include_deleted):
                raise NotFoundError("job", job_id)
            return _to_model(record)

    def save_scoring_context(self, job_id: str, context: ScoringContext) -> JobPosting:
        return self._update(
            job_id,
            scoring_company_ref=context.company_ref,
            scoring_job_ref=context.job_ref,
        )

    def update_eligibility(self, job_id: str, rules: EligibilityRuleSet) -> JobPosting:
        job = self.get(job_id)
        if job.status is JobStatus.CLOSED:
            raise ValidationError(f"Eligibility rules of closed job {job_id} cannot change")
        return self._update(job_id, eligibility=rules.model_dump(mode="json"))

    def close(self, job_id: str) -> JobPosting:
        return self._update(job_id, status=JobStatus.CLOSED.value)

    def _update(self, job_id: str, **values) -> JobPosting:
        with self._sessions.begin() as session:
            session.execute(
                update(JobRecord)
                .where(JobRecord.id == job_id, JobRecord.is_deleted.is_(False))
                .values(updated_at=utcnow(), **values)
                .execution_options(synchronize_session=False)
            )
            record = session.get(JobRecord, job_id)
            if record is None or record.is_deleted:
                raise NotFoundError("job", job_id)
            return _to_model(record)


def _to_model(record: JobRecord) -> JobPosting:
    context = None
    if record.scoring_company_ref and record.scoring_job_ref:
        context = ScoringContext(
            company_ref=record.scoring_company_ref,
            job_ref=record.scoring_job_ref,
        )
    return JobPosting(
        id=record.id,
        title=record.title,
        description=record.description or "",
        location=record.location,
        company_name=record.company_name,
        required_skills=record.required_skills or [],
        nice_to_have_skills=record.nice_to_have_skills or [],
        experience_years=record.experience_years,
        eligibility=EligibilityRuleSet.model_validate(record.eligibility or {}),
        scoring_context=context,
        status=JobStatus(record.status),
        is_deleted=record.is_deleted,
        created_at=record.created_at,
        updated_at=record.updated_at,
    )
