"""Scoring service client.

The scoring engine is an opaque external service. This module exposes it
through the narrow ``ScoringBackend`` capability so the reconciliation
engine can be driven by the HTTP client in production and a
deterministic fake in tests.
"""

from __future__ import annotations

import http.client
import json
from typing import Any, Protocol, runtime_checkable
from urllib import error, parse, request

import structlog
from pydantic import ValidationError as PydanticValidationError

from ..errors import (
    ConfigurationError,
    ExternalServiceError,
    ExternalServiceRejected,
    ExternalServiceUnreachable,
)
from ..schemas import JobPosting, MatchResult, ScoringContext, normalize_skills

_TRANSIENT_STATUS = frozenset({408, 429, 500, 502, 503, 504})


@runtime_checkable
class ScoringBackend(Protocol):
    """Capability interface over the external scoring service."""

    def create_context(self, job: JobPosting) -> ScoringContext:
        """Register the job and return its context references. Raises on failure."""

    def index_document(self, context: ScoringContext, text: str, durable_id: str) -> bool:
        """Index one document. Failures are reported as False, never raised."""

    def clear_index(self, context: ScoringContext) -> None:
        """Best-effort removal of previously indexed documents."""

    def fetch_ranked_matches(self, context: ScoringContext) -> list[MatchResult]:
        """Return ranked matches. Raises on failure."""


def build_context_payload(job: JobPosting) -> dict[str, Any]:
    """Structured job metadata sent when creating a scoring context."""
    return {
        "external_job_id": job.id,
        "title": job.title,
        "description": job.description,
        "location": job.location,
        "company_name": job.company_name,
        "experience_years": job.experience_years,
        "required_skills": normalize_skills(job.required_skills),
        "nice_to_have_skills": normalize_skills(job.nice_to_have_skills),
    }


def parse_matches(payload: Any) -> list[MatchResult]:
    """Parse a fetch-matches response; malformed entries are skipped."""
    logger = structlog.get_logger(__name__)
    if not isinstance(payload, dict) or not isinstance(payload.get("results", []), list):
        raise ExternalServiceRejected("Scoring service returned an unexpected match payload")

    matches: list[MatchResult] = []
    for position, raw in enumerate(payload.get("results") or []):
        if not isinstance(raw, dict):
            logger.warning("match.malformed", position=position, reason="not an object")
            continue
        try:
            matches.append(MatchResult.model_validate(raw))
        except PydanticValidationError as exc:
            logger.warning("match.malformed", position=position, reason=str(exc))
    return matches


class HTTPScoringClient:
    """JSON-over-HTTP client for the scoring service."""

    def __init__(
        self,
        base_url: str | None,
        api_key: str | None,
        *,
        timeout: float = 30.0,
    ) -> None:
        if not base_url:
            raise ConfigurationError("Scoring service base URL is not configured")
        if not api_key:
            raise ConfigurationError("Scoring service API key is not configured")
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._timeout = timeout
        self._logger = structlog.get_logger(__name__)

    def create_context(self, job: JobPosting) -> ScoringContext:
        body = self._request("POST", "/jobs", build_context_payload(job))
        if not isinstance(body, dict):
            raise ExternalServiceRejected("Scoring service returned an unexpected context payload")
        company_ref = body.get("companyId") or body.get("company_id")
        job_ref = body.get("jobId") or body.get("job_id")
        if not company_ref or not job_ref:
            raise ExternalServiceRejected("Scoring service response is missing context references")
        context = ScoringContext(company_ref=str(company_ref), job_ref=str(job_ref))
        self._logger.info(
            "scoring.context_created",
            job_id=job.id,
            company_ref=context.company_ref,
            job_ref=context.job_ref,
        )
        return context

    def index_document(self, context: ScoringContext, text: str, durable_id: str) -> bool:
        if not text or not text.strip():
            self._logger.warning("index.skipped_empty", durable_id=durable_id)
            return False
        try:
            self._request(
                "POST",
                f"{_job_path(context)}/resumes",
                {"resume_text": text, "resume_id": durable_id},
            )
        except ExternalServiceError as exc:
            self._logger.warning("index.failed", durable_id=durable_id, error=str(exc))
            return False
        return True

    def clear_index(self, context: ScoringContext) -> None:
        try:
            self._request("DELETE", f"{_job_path(context)}/resumes")
        except ExternalServiceError as exc:
            self._logger.warning(
                "index.clear_failed",
                company_ref=context.company_ref,
                job_ref=context.job_ref,
                error=str(exc),
            )

    def fetch_ranked_matches(self, context: ScoringContext) -> list[MatchResult]:
        body = self._request("POST", f"{_job_path(context)}/match", {})
        matches = parse_matches(body)
        self._logger.info("scoring.matches_fetched", job_ref=context.job_ref, count=len(matches))
        return matches

    def _request(self, method: str, path: str, payload: dict[str, Any] | None = None) -> Any:
        url = f"{self._base_url}{path}"
        headers = {"Accept": "application/json", "x-api-key": self._api_key}
        data = None
        if payload is not None:
            data = json.dumps(payload, ensure_ascii=False).encode("utf-8")
            headers["Content-Type"] = "application/json"

        req = request.Request(url, data=data, headers=headers, method=method)
        try:
            with request.urlopen(req, timeout=self._timeout) as resp:
                raw = resp.read()
        except error.HTTPError as exc:
            raise _http_failure(method, path, exc) from exc
        except error.URLError as exc:
            raise ExternalServiceUnreachable(f"{method} {path} failed: {exc.reason}") from exc
        except (OSError, http.client.HTTPException) as exc:
            # Timeouts, resets, TLS errors and truncated bodies.
            raise ExternalServiceUnreachable(f"{method} {path} failed: {exc}") from exc

        if not raw:
            return {}
        try:
            return json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise ExternalServiceRejected(f"{method} {path} returned invalid JSON") from exc


def _job_path(context: ScoringContext) -> str:
    company = parse.quote(context.company_ref, safe="")
    job = parse.quote(context.job_ref, safe="")
    return f"/jobs/{company}/{job}"


def _http_failure(method: str, path: str, exc: error.HTTPError) -> ExternalServiceError:
    message = f"{method} {path} returned HTTP {exc.code}: {exc.reason}"
    if exc.code in _TRANSIENT_STATUS:
        return ExternalServiceUnreachable(message)
    return ExternalServiceRejected(message, status=exc.code)
