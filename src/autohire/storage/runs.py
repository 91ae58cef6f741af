"""Durable run tracker.

Run records are the only synchronization point between the request that
starts a screening cycle and the background worker executing it. Writers
go through guarded ``UPDATE`` statements so counter increments from
concurrent callers compose and terminal records stay immutable.
"""

from __future__ import annotations

from datetime import timedelta
from enum import Enum
from typing import Any
from uuid import uuid4

import structlog
from sqlalchemy import select, update

from ..errors import NotFoundError, ValidationError
from ..schemas import RunPhase, RunStatus, ScreeningRun
from .database import Database, RunRecord, utcnow

_MUTABLE_FIELDS = frozenset(
    {"total", "processed", "phase", "indexed", "index_failures", "skipped", "unattributed"}
)
_COUNTER_FIELDS = frozenset(
    {"processed", "indexed", "index_failures", "skipped", "unattributed"}
)


class RunTracker:
    """Create, update and query screening runs."""

    def __init__(self, database: Database) -> None:
        self._sessions = database.session_factory
        self._logger = structlog.get_logger(__name__)

    def create(self, job_id: str, total: int) -> ScreeningRun:
        now = utcnow()
        record = RunRecord(
            id=str(uuid4()),
            job_id=job_id,
            total=max(int(total), 0),
            processed=0,
            status=RunStatus.RUNNING.value,
            phase=RunPhase.IDLE.value,
            created_at=now,
            updated_at=now,
        )
        with self._sessions.begin() as session:
            session.add(record)
            session.flush()
            run = ScreeningRun.model_validate(record)
        self._logger.info("run.created", run_id=run.id, job_id=job_id, total=run.total)
        return run

    def get(self, run_id: str) -> ScreeningRun:
        with self._sessions() as session:
            record = session.get(RunRecord, run_id)
            if record is None:
                raise NotFoundError("run", run_id)
            return ScreeningRun.model_validate(record)

    def update(self, run_id: str, **fields: Any) -> ScreeningRun:
        """Apply a partial update to a running run."""
        unknown = set(fields) - _MUTABLE_FIELDS
        if unknown:
            raise ValidationError(f"Unknown run fields: {sorted(unknown)}")
        values = {key: _plain(value) for key, value in fields.items()}
        return self._guarded_update(run_id, values)

    def increment(self, run_id: str, **deltas: int) -> ScreeningRun:
        """Add to counters in SQL so concurrent increments are not lost."""
        unknown = set(deltas) - _COUNTER_FIELDS
        if unknown:
            raise ValidationError(f"Unknown run counters: {sorted(unknown)}")
        values = {
            key: getattr(RunRecord, key) + int(delta) for key, delta in deltas.items()
        }
        return self._guarded_update(run_id, values)

    def mark_completed(self, run_id: str) -> ScreeningRun:
        now = utcnow()
        run = self._guarded_update(
            run_id,
            {
                "status": RunStatus.COMPLETED.value,
                "phase": RunPhase.COMPLETED.value,
                "finished_at": now,
            },
        )
        self._logger.info("run.completed", run_id=run_id, processed=run.processed, total=run.total)
        return run

    def mark_failed(self, run_id: str, message: str) -> ScreeningRun:
        now = utcnow()
        run = self._guarded_update(
            run_id,
            {
                "status": RunStatus.FAILED.value,
                "phase": RunPhase.FAILED.value,
                "error": message or "Screening run failed",
                "finished_at": now,
            },
        )
        self._logger.warning("run.failed", run_id=run_id, error=run.error)
        return run

    def find_active(self, job_id: str) -> ScreeningRun | None:
        query = (
            select(RunRecord)
            .where(RunRecord.job_id == job_id, RunRecord.status == RunStatus.RUNNING.value)
            .order_by(RunRecord.created_at.desc())
            .limit(1)
        )
        with self._sessions() as session:
            record = session.scalars(query).first()
            return ScreeningRun.model_validate(record) if record else None

    def find_stale(self, max_age: timedelta) -> list[ScreeningRun]:
        """Running runs with no progress written within ``max_age``."""
        cutoff = utcnow() - max_age
        query = (
            select(RunRecord)
            .where(RunRecord.status == RunStatus.RUNNING.value, RunRecord.updated_at < cutoff)
            .order_by(RunRecord.updated_at.asc())
        )
        with self._sessions() as session:
            return [ScreeningRun.model_validate(record) for record in session.scalars(query)]

    def expire_stale(self, max_age: timedelta) -> list[ScreeningRun]:
        expired: list[ScreeningRun] = []
        for run in self.find_stale(max_age):
            message = (
                f"Run abandoned: no progress since {run.updated_at.isoformat()} "
                f"(phase {run.phase.value}, {run.processed}/{run.total} processed)"
            )
            expired.append(self.mark_failed(run.id, message))
        return expired

    def _guarded_update(self, run_id: str, values: dict[str, Any]) -> ScreeningRun:
        with self._sessions.begin() as session:
            result = session.execute(
                update(RunRecord)
                .where(RunRecord.id == run_id, RunRecord.status == RunStatus.RUNNING.value)
                .values(updated_at=utcnow(), **values)
                .execution_options(synchronize_session=False)
            )
            record = session.get(RunRecord, run_id)
            if record is None:
                raise NotFoundError("run", run_id)
            if result.rowcount == 0:
                self._logger.warning(
                    "run.update_ignored",
                    run_id=run_id,
                    status=record.status,
                    fields=sorted(values),
                )
            return ScreeningRun.model_validate(record)


def _plain(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value
