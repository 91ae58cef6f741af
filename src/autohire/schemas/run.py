"""Screening run schemas."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict


class RunStatus(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self is not RunStatus.RUNNING


class RunPhase(str, Enum):
    """Lifecycle states of one reconciliation cycle."""

    IDLE = "idle"
    INITIALIZING = "initializing"
    CLEARING = "clearing"
    INDEXING = "indexing"
    FETCHING = "fetching"
    RECONCILING = "reconciling"
    COMPLETED = "completed"
    FAILED = "failed"


class ScreeningRun(BaseModel):
    """Durable record of one screening cycle."""

    id: str
    job_id: str
    total: int = 0
    processed: int = 0
    status: RunStatus = RunStatus.RUNNING
    phase: RunPhase = RunPhase.IDLE
    error: str | None = None
    indexed: int = 0
    index_failures: int = 0
    skipped: int = 0
    unattributed: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None
    finished_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)

    @property
    def done(self) -> bool:
        return self.status.terminal


class RunTicket(BaseModel):
    """Returned to the requester when a run starts."""

    run_id: str
    total: int


class RunProgress(BaseModel):
    """Poller view of a run."""

    run_id: str
    job_id: str
    processed: int
    total: int
    percent: int
    status: RunStatus
    phase: RunPhase
    done: bool
    error: str | None = None

    @classmethod
    def from_run(cls, run: ScreeningRun) -> "RunProgress":
        percent = round(run.processed / run.total * 100) if run.total > 0 else 0
        return cls(
            run_id=run.id,
            job_id=run.job_id,
            processed=run.processed,
            total=run.total,
            percent=percent,
            status=run.status,
            phase=run.phase,
            done=run.done,
            error=run.error,
        )
