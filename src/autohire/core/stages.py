"""Hiring pipeline state machine."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

import structlog

from ..errors import NotFoundError, ValidationError
from ..notifications import NotificationIntent, NotificationQueue
from ..schemas import STAGE_ORDER, CandidateApplication, PipelineStage
from ..storage import ApplicationRepository, JobRepository

DEFAULT_JOB_TITLE = "the position"


@dataclass(slots=True)
class AdvanceResult:
    advanced_count: int
    notifications_sent: int


def parse_stage(value: str | PipelineStage, *, allow_rejected: bool = False) -> PipelineStage:
    """Resolve a stage name, rejecting anything outside the allowed set."""
    allowed = STAGE_ORDER + ((PipelineStage.REJECTED,) if allow_rejected else ())
    try:
        stage = PipelineStage(value)
    except ValueError:
        stage = None
    if stage not in allowed:
        names = ", ".join(item.value for item in allowed)
        raise ValidationError(f"Invalid stage {value!r}. Must be one of: {names}")
    return stage


class PipelineStateMachine:
    """Move applications between hiring stages.

    Advancement does not enforce forward-only order; any of the ordered
    stages can be targeted. ``rejected`` is absorbing: rejected
    applications are never advanced out of it.
    """

    def __init__(
        self,
        *,
        applications: ApplicationRepository,
        jobs: JobRepository,
        notifications: NotificationQueue,
    ) -> None:
        self._applications = applications
        self._jobs = jobs
        self._notifications = notifications
        self._logger = structlog.get_logger(__name__)

    def advance_bulk(
        self,
        application_ids: Iterable[str],
        target_stage: str | PipelineStage,
    ) -> AdvanceResult:
        stage = parse_stage(target_stage)
        ids = _require_ids(application_ids)

        found = self._applications.find_active(ids)
        if not found:
            raise NotFoundError("application", ", ".join(ids))

        movable: list[CandidateApplication] = []
        for application in found:
            if application.pipeline_stage is PipelineStage.REJECTED:
                self._logger.info("pipeline.rejected_skipped", application_id=application.id)
                continue
            if STAGE_ORDER.index(application.pipeline_stage) > STAGE_ORDER.index(stage):
                self._logger.info(
                    "pipeline.backward_move",
                    application_id=application.id,
                    from_stage=application.pipeline_stage.value,
                    to_stage=stage.value,
                )
            movable.append(application)

        advanced = self._applications.set_stage([item.id for item in movable], stage)
        sent = self._enqueue_notifications(movable, stage)
        self._logger.info(
            "pipeline.advanced",
            stage=stage.value,
            requested=len(ids),
            advanced=advanced,
            notifications=sent,
        )
        return AdvanceResult(advanced_count=advanced, notifications_sent=sent)

    def reject(self, application_ids: Iterable[str]) -> int:
        ids = _require_ids(application_ids)
        rejected = self._applications.set_stage(ids, PipelineStage.REJECTED)
        self._logger.info("pipeline.rejected", requested=len(ids), rejected=rejected)
        return rejected

    def list_by_stage(
        self,
        job_id: str,
        stage: str | PipelineStage,
    ) -> list[CandidateApplication]:
        return self._applications.list_by_stage(job_id, parse_stage(stage, allow_rejected=True))

    def _enqueue_notifications(
        self,
        applications: list[CandidateApplication],
        stage: PipelineStage,
    ) -> int:
        titles: dict[str, str] = {}
        sent = 0
        for application in applications:
            if not application.candidate_email:
                continue
            if application.job_id not in titles:
                titles[application.job_id] = self._job_title(application.job_id)
            intent = NotificationIntent(
                application_id=application.id,
                candidate_id=application.candidate_id,
                email=application.candidate_email,
                candidate_name=application.candidate_name or "Candidate",
                job_title=titles[application.job_id],
                stage=stage,
            )
            try:
                self._notifications.put(intent)
            except Exception as exc:  # noqa: BLE001 - notification failures never block a stage move
                self._logger.warning(
                    "notification.enqueue_failed",
                    application_id=application.id,
                    error=str(exc),
                )
                continue
            sent += 1
        return sent

    def _job_title(self, job_id: str) -> str:
        try:
            return self._jobs.get(job_id, include_deleted=True).title
        except NotFoundError:
            return DEFAULT_JOB_TITLE


def _require_ids(application_ids: Iterable[str]) -> list[str]:
    if isinstance(application_ids, str):
        raise ValidationError("application_ids must be a list of ids")
    ids = [str(item) for item in dict.fromkeys(application_ids or []) if item]
    if not ids:
        raise ValidationError("application_ids must contain at least one id")
    return ids
