"""Stage-change notification intents and their delivery worker.

Stage transitions only enqueue intents; a separate worker drains the
queue and hands each intent to a ``Notifier``. Delivery failures are
logged and never reach the caller that moved the candidates.
"""

from __future__ import annotations

import queue
import threading
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

import structlog

from .schemas import PipelineStage

STAGE_LABELS: dict[PipelineStage, str] = {
    PipelineStage.SCREENING: "Screening",
    PipelineStage.ASSESSMENT: "Assessment Shortlisting",
    PipelineStage.INTERVIEW: "Interview Shortlisting",
    PipelineStage.OFFER: "Offer Release",
    PipelineStage.HIRED: "Hired",
}


@dataclass(frozen=True, slots=True)
class NotificationIntent:
    """A request to tell one candidate about a stage change."""

    application_id: str
    candidate_id: str
    email: str
    candidate_name: str
    job_title: str
    stage: PipelineStage

    @property
    def subject(self) -> str:
        label = STAGE_LABELS.get(self.stage, self.stage.value)
        return f"You've been shortlisted for {label}"

    @property
    def body(self) -> str:
        label = STAGE_LABELS.get(self.stage, self.stage.value)
        return (
            f"Dear {self.candidate_name},\n\n"
            f"You have been advanced to the {label} stage for the position: "
            f"{self.job_title}.\n"
            "Our team will reach out to you shortly with further details."
        )


@runtime_checkable
class Notifier(Protocol):
    def send(self, intent: NotificationIntent) -> None:
        """Deliver one notification. May raise."""


class LoggingNotifier:
    """Notifier used when no delivery provider is configured."""

    def __init__(self) -> None:
        self._logger = structlog.get_logger(__name__)

    def send(self, intent: NotificationIntent) -> None:
        self._logger.info(
            "notification.logged",
            to=intent.email,
            subject=intent.subject,
            application_id=intent.application_id,
            stage=intent.stage.value,
        )


class NotificationQueue:
    """Thread-safe FIFO of notification intents."""

    def __init__(self, maxsize: int = 0) -> None:
        self._queue: queue.Queue[NotificationIntent] = queue.Queue(maxsize=maxsize)

    def put(self, intent: NotificationIntent) -> None:
        self._queue.put_nowait(intent)

    def get(self, timeout: float | None = None) -> NotificationIntent | None:
        try:
            if timeout is None:
                return self._queue.get_nowait()
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def task_done(self) -> None:
        self._queue.task_done()

    def join(self) -> None:
        """Block until every queued intent has been handled."""
        self._queue.join()

    def __len__(self) -> int:
        return self._queue.qsize()


class NotificationWorker:
    """Drain intents into a notifier, in the background or on demand."""

    def __init__(
        self,
        notifications: NotificationQueue,
        notifier: Notifier,
        *,
        poll_interval: float = 0.5,
    ) -> None:
        self._queue = notifications
        self._notifier = notifier
        self._poll_interval = poll_interval
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        self._logger = structlog.get_logger(__name__)
        self.delivered = 0
        self.failed = 0

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._run, name="notification-worker", daemon=True
        )
        self._thread.start()

    def stop(self, timeout: float | None = None) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    def drain(self) -> int:
        """Deliver everything currently queued on the calling thread."""
        handled = 0
        while True:
            intent = self._queue.get()
            if intent is None:
                return handled
            self._deliver(intent)
            handled += 1

    def _run(self) -> None:
        while not self._stop.is_set():
            intent = self._queue.get(timeout=self._poll_interval)
            if intent is not None:
                self._deliver(intent)

    def _deliver(self, intent: NotificationIntent) -> bool:
        try:
            self._notifier.send(intent)
        except Exception as exc:  # noqa: BLE001 - delivery is fire-and-forget
            self.failed += 1
            self._logger.warning(
                "notification.failed",
                application_id=intent.application_id,
                to=intent.email,
                error=str(exc),
            )
            self._queue.task_done()
            return False
        self.delivered += 1
        self._queue.task_done()
        return True


__all__ = [
    "LoggingNotifier",
    "NotificationIntent",
    "NotificationQueue",
    "NotificationWorker",
    "Notifier",
    "STAGE_LABELS",
]
