"""Screening service: the operations exposed to the job/application layer."""

from __future__ import annotations

import functools
import threading
from concurrent.futures import Executor, Future
from datetime import timedelta
from typing import Any, Callable, Iterable, Sequence
from uuid import uuid4

import structlog

from .core import (
    AdvanceResult,
    EligibilityEvaluator,
    EligibilityResult,
    PipelineStateMachine,
    ReconciliationEngine,
)
from .documents import DocumentTextProvider, validate_resume_text
from .errors import NotFoundError, RunInProgressError, ValidationError
from .notifications import NotificationWorker
from .schemas import (
    CandidateApplication,
    CandidateProfile,
    JobStatus,
    PipelineStage,
    RunProgress,
    RunTicket,
    ScreeningRun,
)
from .storage import ApplicationRepository, JobRepository, RunTracker, utcnow


class ScreeningService:
    """Facade over run tracking, reconciliation, eligibility and stages.

    ``engine_provider`` is called only when a run starts so that a missing
    scoring configuration fails the run request without affecting the
    operations that never talk to the scoring service.
    """

    def __init__(
        self,
        *,
        jobs: JobRepository,
        applications: ApplicationRepository,
        runs: RunTracker,
        engine_provider: Callable[[], ReconciliationEngine],
        eligibility: EligibilityEvaluator,
        pipeline: PipelineStateMachine,
        text_provider: DocumentTextProvider,
        executor: Executor,
        stale_after_minutes: float = 30.0,
        notification_worker: NotificationWorker | None = None,
    ) -> None:
        self._jobs = jobs
        self._applications = applications
        self._runs = runs
        self._engine_provider = engine_provider
        self._eligibility = eligibility
        self._pipeline = pipeline
        self._text_provider = text_provider
        self._executor = executor
        self._stale_after = timedelta(minutes=stale_after_minutes)
        self._job_locks: dict[str, threading.Lock] = {}
        self._job_locks_guard = threading.Lock()
        self._tasks: dict[str, Future] = {}
        self._tasks_guard = threading.Lock()
        self._notification_worker = notification_worker
        self._logger = structlog.get_logger(__name__)
        if notification_worker is not None:
            notification_worker.start()

    # -- screening runs -------------------------------------------------

    def start_screening_run(
        self,
        job_id: str,
        application_ids: Sequence[str] | None = None,
    ) -> RunTicket:
        """Create a run and schedule its cycle; returns without waiting."""
        job = self._jobs.get(job_id)
        engine = self._engine_provider()

        with self._job_lock(job_id):
            active = self._runs.find_active(job_id)
            if active is not None:
                if not self._is_stale(active):
                    raise RunInProgressError(job_id, active.id)
                self._runs.mark_failed(
                    active.id,
                    "Run abandoned: superseded by a new run after no progress",
                )

            job = engine.prepare(job)
            applications = self._applications.list_for_screening(job_id, application_ids)
            if not applications:
                raise NotFoundError("applications for job", job_id)

            run = self._runs.create(job_id, total=len(applications))
            task = self._executor.submit(engine.execute, run, job, applications)
            with self._tasks_guard:
                self._tasks[run.id] = task
            task.add_done_callback(functools.partial(self._forget_task, run.id))

        self._logger.info("run.started", run_id=run.id, job_id=job_id, total=run.total)
        return RunTicket(run_id=run.id, total=run.total)

    def get_run_progress(self, run_id: str) -> RunProgress:
        return RunProgress.from_run(self._runs.get(run_id))

    def wait_for_run(self, run_id: str, timeout: float | None = None) -> ScreeningRun:
        """Block until the background cycle of ``run_id`` finishes."""
        with self._tasks_guard:
            task = self._tasks.get(run_id)
        if task is not None:
            task.result(timeout=timeout)
        return self._runs.get(run_id)

    def find_stale_runs(self) -> list[ScreeningRun]:
        return self._runs.find_stale(self._stale_after)

    def expire_stale_runs(self) -> list[ScreeningRun]:
        expired = self._runs.expire_stale(self._stale_after)
        for run in expired:
            self._logger.warning("run.expired", run_id=run.id, job_id=run.job_id)
        return expired

    # -- eligibility ----------------------------------------------------

    def evaluate_eligibility(
        self,
        job_id: str,
        profile: CandidateProfile | dict[str, Any],
    ) -> EligibilityResult:
        job = self._jobs.get(job_id)
        if not isinstance(profile, CandidateProfile):
            profile = CandidateProfile.model_validate(profile)
        result = self._eligibility.evaluate(job.eligibility, profile)
        self._logger.info(
            "eligibility.evaluated",
            job_id=job_id,
            candidate_id=profile.candidate_id,
            eligible=result.eligible,
            failed_rules=result.failed_rules,
        )
        return result

    # -- pipeline -------------------------------------------------------

    def advance_stage(
        self,
        application_ids: Iterable[str],
        target_stage: str | PipelineStage,
    ) -> AdvanceResult:
        return self._pipeline.advance_bulk(application_ids, target_stage)

    def reject_applications(self, application_ids: Iterable[str]) -> int:
        return self._pipeline.reject(application_ids)

    def list_by_stage(
        self,
        job_id: str,
        stage: str | PipelineStage,
    ) -> list[CandidateApplication]:
        return self._pipeline.list_by_stage(job_id, stage)

    # -- applications ---------------------------------------------------

    def submit_application(
        self,
        *,
        job_id: str,
        candidate_id: str,
        document: bytes,
        mime_type: str | None,
        filename: str | None,
        candidate_name: str | None = None,
        candidate_email: str | None = None,
    ) -> CandidateApplication:
        """Create an application and cache its extracted text once."""
        job = self._jobs.get(job_id)
        if job.status is JobStatus.CLOSED:
            raise ValidationError(f"Job {job_id} is closed")

        application = self._applications.add(
            CandidateApplication(
                id=str(uuid4()),
                candidate_id=candidate_id,
                job_id=job_id,
                candidate_name=candidate_name,
                candidate_email=candidate_email,
                filename=filename,
                mime_type=mime_type,
                created_at=utcnow(),
            )
        )

        text = self._text_provider.extract_text(document, mime_type, filename)
        validation = validate_resume_text(text)
        if validation.valid:
            self._applications.cache_text(application.id, validation.text)
        else:
            self._logger.warning(
                "application.text_invalid",
                application_id=application.id,
                error=validation.error,
            )
            self._applications.record_error(application.id, validation.error or "Text extraction failed")
        return self._applications.get(application.id)

    def withdraw_application(self, application_id: str) -> CandidateApplication:
        application = self._applications.soft_delete(application_id)
        self._logger.info("application.withdrawn", application_id=application_id)
        return application

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)
        if self._notification_worker is not None:
            self._notification_worker.stop(timeout=5.0)
            # Intents queued after the last poll.
            self._notification_worker.drain()

    # -- helpers --------------------------------------------------------

    def _job_lock(self, job_id: str) -> threading.Lock:
        with self._job_locks_guard:
            return self._job_locks.setdefault(job_id, threading.Lock())

    def _forget_task(self, run_id: str, _task: Future) -> None:
        with self._tasks_guard:
            self._tasks.pop(run_id, None)

    def _is_stale(self, run: ScreeningRun) -> bool:
        if run.updated_at is None:
            return False
        return run.updated_at < utcnow() - self._stale_after
