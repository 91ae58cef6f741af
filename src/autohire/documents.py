"""Plain-text extraction for uploaded resume documents."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, Protocol, Sequence, runtime_checkable

import pymupdf
import pymupdf4llm
import structlog

MAX_EXTRACTED_CHARS = 18_000
TRUNCATION_MARKER = "\n\n[TRUNCATED]"

_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")
_HTML_TAGS = re.compile(r"<[^>]+>")


@runtime_checkable
class DocumentTextProvider(Protocol):
    """Turns document bytes into plain text; returns ``""`` on failure."""

    def extract_text(self, data: bytes, mime_type: str | None, filename: str | None) -> str:
        ...


@dataclass(slots=True)
class TextValidation:
    """Outcome of resume text validation."""

    valid: bool
    text: str = ""
    error: str | None = None


class ResumeTextExtractor:
    """Extract text from PDF and plain-text resumes."""

    def __init__(
        self,
        *,
        exclude_patterns: Sequence[str] | None = None,
        max_chars: int = MAX_EXTRACTED_CHARS,
    ) -> None:
        self._patterns = _build_patterns(exclude_patterns or ())
        self._max_chars = max_chars
        self._logger = structlog.get_logger(__name__)

    def extract_text(self, data: bytes, mime_type: str | None, filename: str | None) -> str:
        name = (filename or "").lower()
        mime = (mime_type or "").lower()
        log = self._logger.bind(filename=filename, mime_type=mime_type, size=len(data or b""))

        if not data:
            log.warning("document.empty")
            return ""

        if "pdf" in mime or name.endswith(".pdf"):
            try:
                text = self._extract_pdf(data)
            except Exception as exc:  # noqa: BLE001 - any parser failure means no text
                log.warning("document.pdf_failed", error=str(exc))
                return ""
        elif mime.startswith("text/") or name.endswith((".txt", ".md")):
            text = data.decode("utf-8", errors="replace")
        else:
            log.warning("document.unsupported")
            return ""

        text = self._clip(self._strip_excluded(text))
        if not text:
            # Scanned PDFs come back empty.
            log.warning("document.no_text")
        else:
            log.info("document.extracted", chars=len(text))
        return text

    def _extract_pdf(self, data: bytes) -> str:
        with pymupdf.open(stream=data, filetype="pdf") as document:
            return pymupdf4llm.to_markdown(document)

    def _strip_excluded(self, text: str) -> str:
        if not self._patterns:
            return text
        kept = [
            line
            for line in text.splitlines()
            if not line.strip() or not any(pattern.search(line) for pattern in self._patterns)
        ]
        return "\n".join(kept)

    def _clip(self, text: str) -> str:
        cleaned = text.replace("\x00", "").strip()
        if len(cleaned) > self._max_chars:
            return cleaned[: self._max_chars] + TRUNCATION_MARKER
        return cleaned


def sanitize_text(text: str | None) -> str:
    """Drop markup and control characters and collapse whitespace."""
    if not text or not isinstance(text, str):
        return ""
    cleaned = _HTML_TAGS.sub(" ", text)
    cleaned = _CONTROL_CHARS.sub(" ", cleaned)
    return " ".join(cleaned.split())


def validate_resume_text(
    text: str | None,
    *,
    min_chars: int = 100,
    max_chars: int = 50_000,
    min_words: int = 20,
) -> TextValidation:
    if not text or not isinstance(text, str):
        return TextValidation(False, error="Resume text is required")

    cleaned = sanitize_text(text)
    if len(cleaned) < min_chars:
        return TextValidation(
            False, error=f"Resume text is too short (minimum {min_chars} characters required)"
        )
    if len(cleaned) > max_chars:
        return TextValidation(
            False, error=f"Resume text is too long (maximum {max_chars} characters allowed)"
        )
    if len(cleaned.split()) < min_words:
        return TextValidation(False, error="Resume text appears to be insufficient content")
    return TextValidation(True, text=cleaned)


def _build_patterns(excludes: Iterable[str]) -> list[re.Pattern[str]]:
    patterns: list[re.Pattern[str]] = []
    for text in excludes:
        escaped = re.escape(text)
        # Allow an optional page counter suffix like " 1 / 63".
        patterns.append(re.compile(rf"{escaped}(?:\s+\d+\s*/\s*\d+)?"))
    return patterns


__all__ = [
    "DocumentTextProvider",
    "ResumeTextExtractor",
    "TextValidation",
    "sanitize_text",
    "validate_resume_text",
]
