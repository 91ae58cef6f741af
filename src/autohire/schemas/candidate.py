"""Candidate profile used by the eligibility gate."""

from __future__ import annotations

from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class CandidateProfile(BaseModel):
    """Candidate attributes checked against a job's eligibility rules.

    Values are kept as provided; interpretation (level names, numeric
    experience) belongs to the evaluator so that malformed values fail a
    rule instead of the whole request.
    """

    candidate_id: str | None = Field(
        default=None,
        validation_alias=AliasChoices("candidate_id", "candidateId"),
    )
    education_level: str | None = Field(
        default=None,
        validation_alias=AliasChoices("education_level", "educationLevel"),
    )
    experience_years: float | str | None = Field(
        default=None,
        validation_alias=AliasChoices("experience_years", "experienceYears"),
    )
    specialization: str | None = None
    qualification: str | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "qualification",
            "academicQualification",
            "highestQualificationDegree",
        ),
    )
    acknowledged_criteria: set[int] = Field(
        default_factory=set,
        validation_alias=AliasChoices("acknowledged_criteria", "acknowledgedCriteria"),
    )

    model_config = ConfigDict(extra="allow")

    @field_validator("acknowledged_criteria", mode="before")
    @classmethod
    def _coerce_indices(cls, value: Any) -> Any:
        if value is None:
            return set()
        return value
