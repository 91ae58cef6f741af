"""Scoring service adapters."""

from __future__ import annotations

from ..schemas import normalize_skills
from .client import (
    HTTPScoringClient,
    ScoringBackend,
    build_context_payload,
    parse_matches,
)

__all__ = [
    "HTTPScoringClient",
    "ScoringBackend",
    "build_context_payload",
    "normalize_skills",
    "parse_matches",
]
