"""Ranked match results returned by the scoring service."""

from __future__ import annotations

import math
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from .application import ScoreBreakdown


class MatchResult(BaseModel):
    """One ranked result. Either identifier may be absent."""

    durable_id: str | None = Field(
        default=None,
        validation_alias=AliasChoices("durable_id", "durableId", "resume_id", "resumeId"),
    )
    resume_index: int | None = Field(
        default=None,
        validation_alias=AliasChoices("resume_index", "resumeIndex"),
    )
    total_score: float | None = Field(
        default=None,
        validation_alias=AliasChoices("total_score", "totalScore"),
    )
    semantic_score: float | None = Field(
        default=None, validation_alias=AliasChoices("semantic_score", "semanticScore")
    )
    skill_score: float | None = Field(
        default=None, validation_alias=AliasChoices("skill_score", "skillScore")
    )
    experience_score: float | None = Field(
        default=None, validation_alias=AliasChoices("experience_score", "experienceScore")
    )
    metrics_score: float | None = Field(
        default=None, validation_alias=AliasChoices("metrics_score", "metricsScore")
    )
    complexity_score: float | None = Field(
        default=None, validation_alias=AliasChoices("complexity_score", "complexityScore")
    )
    matched_skills: list[str] = Field(
        default_factory=list, validation_alias=AliasChoices("matched_skills", "matchedSkills")
    )
    missing_skills: list[str] = Field(
        default_factory=list, validation_alias=AliasChoices("missing_skills", "missingSkills")
    )

    model_config = ConfigDict(extra="ignore")

    @field_validator("durable_id", mode="before")
    @classmethod
    def _stringify_id(cls, value: Any) -> Any:
        if value is None:
            return None
        text = str(value).strip()
        return text or None

    @field_validator("matched_skills", "missing_skills", mode="before")
    @classmethod
    def _list_or_empty(cls, value: Any) -> Any:
        return value if isinstance(value, list) else []

    def clamped_score(self) -> float:
        """Total score bounded to [0, 100]; missing or NaN counts as 0."""
        score = self.total_score
        if score is None or math.isnan(score):
            return 0.0
        return min(100.0, max(0.0, score))

    def breakdown(self) -> ScoreBreakdown:
        return ScoreBreakdown(
            semantic_score=self.semantic_score,
            skill_score=self.skill_score,
            experience_score=self.experience_score,
            metrics_score=self.metrics_score,
            complexity_score=self.complexity_score,
            matched_skills=[str(skill) for skill in self.matched_skills],
            missing_skills=[str(skill) for skill in self.missing_skills],
        )
