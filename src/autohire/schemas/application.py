"""Candidate application schemas and pipeline stages."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class PipelineStage(str, Enum):
    """Hiring workflow stages. ``REJECTED`` is an absorbing sink."""

    SCREENING = "screening"
    ASSESSMENT = "assessment"
    INTERVIEW = "interview"
    OFFER = "offer"
    HIRED = "hired"
    REJECTED = "rejected"


STAGE_ORDER: tuple[PipelineStage, ...] = (
    PipelineStage.SCREENING,
    PipelineStage.ASSESSMENT,
    PipelineStage.INTERVIEW,
    PipelineStage.OFFER,
    PipelineStage.HIRED,
)


class ScoreBreakdown(BaseModel):
    """Per-dimension scores returned by the scoring service."""

    semantic_score: float | None = None
    skill_score: float | None = None
    experience_score: float | None = None
    metrics_score: float | None = None
    complexity_score: float | None = None
    matched_skills: list[str] = Field(default_factory=list)
    missing_skills: list[str] = Field(default_factory=list)

    model_config = ConfigDict(extra="forbid")


class CandidateApplication(BaseModel):
    """A candidate's application to a job posting."""

    id: str
    candidate_id: str
    job_id: str
    candidate_name: str | None = None
    candidate_email: str | None = None
    filename: str | None = None
    mime_type: str | None = None
    extracted_text: str | None = None
    score: float | None = Field(default=None, ge=0, le=100)
    breakdown: ScoreBreakdown = Field(default_factory=ScoreBreakdown)
    processed: bool = False
    processed_at: datetime | None = None
    error: str | None = None
    pipeline_stage: PipelineStage = PipelineStage.SCREENING
    is_deleted: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = ConfigDict(extra="forbid")

    @property
    def has_text(self) -> bool:
        return bool(self.extracted_text and self.extracted_text.strip())
