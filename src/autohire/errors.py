"""Error taxonomy shared across the screening system."""

from __future__ import annotations

from dataclasses import dataclass


class ScreeningError(Exception):
    """Base class for all screening errors."""


class ConfigurationError(ScreeningError):
    """Raised when credentials or endpoints are missing."""


class ExternalServiceError(ScreeningError):
    """Raised when the scoring service call fails."""


class ExternalServiceUnreachable(ExternalServiceError):
    """Connection failure, timeout or transient server error."""


class ExternalServiceRejected(ExternalServiceError):
    """Authentication, validation or malformed-response failure."""

    def __init__(self, message: str, *, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class NotFoundError(ScreeningError):
    """Raised for unknown run, job or application ids."""

    def __init__(self, kind: str, identifier: str) -> None:
        super().__init__(f"{kind} not found: {identifier!r}")
        self.kind = kind
        self.identifier = identifier


class ValidationError(ScreeningError):
    """Raised for malformed input such as an unknown stage name."""


class RunInProgressError(ScreeningError):
    """Raised when a job already has an active screening run."""

    def __init__(self, job_id: str, run_id: str) -> None:
        super().__init__(f"Screening run {run_id} is already running for job {job_id}")
        self.job_id = job_id
        self.run_id = run_id


@dataclass(slots=True)
class PartialIndexingFailure:
    """A document that could not be indexed. Recorded, never raised."""

    application_id: str
    reason: str


__all__ = [
    "ScreeningError",
    "ConfigurationError",
    "ExternalServiceError",
    "ExternalServiceUnreachable",
    "ExternalServiceRejected",
    "NotFoundError",
    "ValidationError",
    "RunInProgressError",
    "PartialIndexingFailure",
]
