"""Pydantic schema definitions for the screening domain."""

from __future__ import annotations

from .application import STAGE_ORDER, CandidateApplication, PipelineStage, ScoreBreakdown
from .candidate import CandidateProfile
from .job import (
    EducationLevel,
    EligibilityRuleSet,
    JobPosting,
    JobStatus,
    ScoringContext,
    normalize_skills,
    parse_education_level,
)
from .matches import MatchResult
from .run import RunPhase, RunProgress, RunStatus, RunTicket, ScreeningRun

__all__ = [
    "CandidateApplication",
    "CandidateProfile",
    "EducationLevel",
    "EligibilityRuleSet",
    "JobPosting",
    "JobStatus",
    "MatchResult",
    "PipelineStage",
    "RunPhase",
    "RunProgress",
    "RunStatus",
    "RunTicket",
    "STAGE_ORDER",
    "ScoreBreakdown",
    "ScoringContext",
    "ScreeningRun",
    "normalize_skills",
    "parse_education_level",
]
