"""Screening cycle orchestration.

One cycle clears the scoring index, re-indexes the run's applications in
a fixed order, fetches ranked matches and writes each attributable score
back onto its application. The application order is captured once when
the run starts; positional fallback depends on it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Sequence

import structlog
from sqlalchemy.exc import SQLAlchemyError

from ..errors import ExternalServiceError, PartialIndexingFailure, ScreeningError
from ..schemas import (
    CandidateApplication,
    JobPosting,
    MatchResult,
    RunPhase,
    ScoringContext,
    ScreeningRun,
)
from ..scoring import ScoringBackend
from ..storage import ApplicationRepository, JobRepository, RunTracker

EMPTY_RESULTS_MESSAGE = (
    "Scoring service returned no results. Documents may not have been indexed yet."
)


@dataclass(slots=True)
class Attribution:
    """A match resolved to one application of the run."""

    application: CandidateApplication
    match: MatchResult
    via: str


@dataclass(slots=True)
class AttributionReport:
    attributions: list[Attribution] = field(default_factory=list)
    unattributed: int = 0
    duplicates: int = 0


@dataclass(slots=True)
class IndexingReport:
    indexed: int = 0
    skipped: int = 0
    failures: list[PartialIndexingFailure] = field(default_factory=list)


def resolve_match(
    match: MatchResult,
    applications: Sequence[CandidateApplication],
    by_id: dict[str, CandidateApplication],
) -> tuple[CandidateApplication | None, str | None]:
    """Durable id first; positional index only within this run's bounds."""
    if match.durable_id is not None:
        application = by_id.get(match.durable_id)
        if application is not None:
            return application, "durable_id"
    index = match.resume_index
    if index is not None and 0 <= index < len(applications):
        return applications[index], "position"
    return None, None


def attribute(
    matches: Sequence[MatchResult],
    applications: Sequence[CandidateApplication],
) -> AttributionReport:
    """Attribute matches to applications; each application at most once."""
    logger = structlog.get_logger(__name__)
    by_id = {application.id: application for application in applications}
    report = AttributionReport()
    attributed: set[str] = set()

    for position, match in enumerate(matches):
        application, via = resolve_match(match, applications, by_id)
        if application is None:
            report.unattributed += 1
            logger.warning(
                "match.unattributed",
                position=position,
                durable_id=match.durable_id,
                resume_index=match.resume_index,
                run_size=len(applications),
            )
            continue
        if application.id in attributed:
            report.duplicates += 1
            logger.warning(
                "match.duplicate",
                position=position,
                application_id=application.id,
                via=via,
            )
            continue
        attributed.add(application.id)
        report.attributions.append(Attribution(application=application, match=match, via=via))
    return report


class ReconciliationEngine:
    """Drive one screening cycle and keep the run record current."""

    def __init__(
        self,
        *,
        scoring: ScoringBackend,
        runs: RunTracker,
        applications: ApplicationRepository,
        jobs: JobRepository,
        progress_every: int = 5,
    ) -> None:
        if progress_every < 1:
            raise ValueError("progress_every must be at least 1")
        self._scoring = scoring
        self._runs = runs
        self._applications = applications
        self._jobs = jobs
        self._progress_every = progress_every
        self._logger = structlog.get_logger(__name__)

    def prepare(self, job: JobPosting) -> JobPosting:
        """Ensure the job has a scoring context, creating it when absent."""
        if job.scoring_context is not None:
            return job
        self._logger.info("scoring.context_initializing", job_id=job.id, title=job.title)
        context = self._scoring.create_context(job)
        return self._jobs.save_scoring_context(job.id, context)

    def execute(
        self,
        run: ScreeningRun,
        job: JobPosting,
        applications: Sequence[CandidateApplication],
    ) -> ScreeningRun:
        """Run the cycle to a terminal state. Never raises."""
        log = self._logger.bind(run_id=run.id, job_id=job.id)
        try:
            return self._cycle(run, job, tuple(applications), log)
        except Exception as exc:  # noqa: BLE001 - the worker thread must survive
            log.exception("run.crashed")
            return self._runs.mark_failed(run.id, str(exc) or type(exc).__name__)

    def _cycle(
        self,
        run: ScreeningRun,
        job: JobPosting,
        applications: tuple[CandidateApplication, ...],
        log: structlog.BoundLogger,
    ) -> ScreeningRun:
        self._enter(run.id, RunPhase.INITIALIZING, log)
        job = self.prepare(job)
        context = job.scoring_context
        if context is None:
            raise ScreeningError(f"Job {job.id} has no scoring context")

        self._enter(run.id, RunPhase.CLEARING, log)
        self._scoring.clear_index(context)

        self._enter(run.id, RunPhase.INDEXING, log)
        indexing = self._index(run.id, context, applications, log)
        log.info(
            "run.indexed",
            indexed=indexing.indexed,
            failed=len(indexing.failures),
            skipped=indexing.skipped,
        )

        self._enter(run.id, RunPhase.FETCHING, log)
        try:
            matches = self._scoring.fetch_ranked_matches(context)
        except ExternalServiceError as exc:
            log.error("run.fetch_failed", error=str(exc))
            return self._runs.mark_failed(run.id, f"Scoring results fetch failed: {exc}")
        if not matches:
            return self._runs.mark_failed(run.id, EMPTY_RESULTS_MESSAGE)
        log.info("run.fetched", matches=len(matches))

        self._enter(run.id, RunPhase.RECONCILING, log)
        report = attribute(matches, applications)
        processed = self._reconcile(run.id, report, log)

        self._runs.update(
            run.id,
            processed=processed,
            unattributed=report.unattributed + report.duplicates,
        )
        log.info(
            "run.reconciled",
            processed=processed,
            total=len(applications),
            unattributed=report.unattributed,
            duplicates=report.duplicates,
        )
        return self._runs.mark_completed(run.id)

    def _index(
        self,
        run_id: str,
        context: ScoringContext,
        applications: Sequence[CandidateApplication],
        log: structlog.BoundLogger,
    ) -> IndexingReport:
        # Sequential; positional fallback relies on this order.
        # Counters are written per document; each write refreshes updated_at.
        report = IndexingReport()
        sent: set[str] = set()
        for application in applications:
            if application.id in sent:
                continue
            sent.add(application.id)
            if not application.has_text:
                report.skipped += 1
                self._runs.increment(run_id, skipped=1)
                log.warning("index.no_text", application_id=application.id)
                continue
            if self._scoring.index_document(context, application.extracted_text or "", application.id):
                report.indexed += 1
                self._runs.increment(run_id, indexed=1)
            else:
                report.failures.append(
                    PartialIndexingFailure(application.id, "scoring service rejected document")
                )
                self._runs.increment(run_id, index_failures=1)
        return report

    def _reconcile(
        self,
        run_id: str,
        report: AttributionReport,
        log: structlog.BoundLogger,
    ) -> int:
        processed = 0
        for attribution in report.attributions:
            application = attribution.application
            score = attribution.match.clamped_score()
            try:
                stored = self._applications.apply_score(
                    application.id,
                    score,
                    attribution.match.breakdown(),
                )
            except SQLAlchemyError as exc:
                log.error("score.write_failed", application_id=application.id, error=str(exc))
                continue
            if not stored:
                log.warning("score.application_missing", application_id=application.id)
                continue

            processed += 1
            log.info(
                "score.applied",
                application_id=application.id,
                score=score,
                via=attribution.via,
            )
            if processed % self._progress_every == 0:
                self._runs.update(run_id, processed=processed)
        return processed

    def _enter(self, run_id: str, phase: RunPhase, log: structlog.BoundLogger) -> None:
        self._runs.update(run_id, phase=phase)
        log.info("run.phase", phase=phase.value)
