"""Job posting and eligibility rule schemas."""

from __future__ import annotations

import re
from datetime import datetime
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

_SKILL_DELIMITERS = re.compile(r"[,;|\n]")
_LEVEL_SEPARATORS = re.compile(r"[\s_\-]")


def normalize_skills(value: Any) -> list[str]:
    """Return a canonical lowercase skill sequence.

    Accepts either a list of skills or a single delimited string
    (``"Python, SQL; aws"``). Order of first appearance is kept and
    duplicates are dropped.
    """

    if value is None:
        return []
    if isinstance(value, str):
        items: list[Any] = _SKILL_DELIMITERS.split(value)
    elif isinstance(value, (list, tuple, set, frozenset)):
        items = list(value)
    else:
        raise ValueError(f"Unsupported skill list type: {type(value).__name__}")

    normalized: list[str] = []
    seen: set[str] = set()
    for item in items:
        if item is None:
            continue
        skill = " ".join(str(item).split()).lower()
        if not skill or skill in seen:
            continue
        seen.add(skill)
        normalized.append(skill)
    return normalized


class EducationLevel(str, Enum):
    """Education levels in ascending rank order."""

    HIGH_SCHOOL = "highSchool"
    DIPLOMA = "diploma"
    BACHELORS = "bachelors"
    MASTERS = "masters"
    PHD = "phd"

    @property
    def rank(self) -> int:
        return _EDUCATION_RANK[self]


_EDUCATION_RANK: dict[EducationLevel, int] = {
    level: rank for rank, level in enumerate(EducationLevel)
}
_EDUCATION_LOOKUP: dict[str, EducationLevel] = {
    _LEVEL_SEPARATORS.sub("", level.value).casefold(): level for level in EducationLevel
}


def parse_education_level(value: Any) -> EducationLevel | None:
    """Resolve a level name ignoring case, spaces, ``_`` and ``-``."""
    if isinstance(value, EducationLevel):
        return value
    if value is None:
        return None
    key = _LEVEL_SEPARATORS.sub("", str(value)).casefold()
    if not key:
        return None
    return _EDUCATION_LOOKUP.get(key)


class EligibilityRuleSet(BaseModel):
    """Job-defined gate candidates are checked against."""

    education_levels: list[EducationLevel] = Field(
        default_factory=list,
        validation_alias=AliasChoices("education_levels", "educationMinLevel"),
    )
    min_experience_years: float | None = Field(
        default=None,
        ge=0,
        validation_alias=AliasChoices("min_experience_years", "minExperienceYears"),
    )
    specialization: str | None = None
    qualification: str | None = Field(
        default=None,
        validation_alias=AliasChoices("qualification", "academicQualification"),
    )
    custom_criteria: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("custom_criteria", "customCriteria"),
    )

    model_config = ConfigDict(extra="forbid")

    @field_validator("education_levels", mode="before")
    @classmethod
    def _parse_levels(cls, value: Any) -> list[EducationLevel]:
        if value is None:
            return []
        if isinstance(value, (str, EducationLevel)):
            value = [value]
        levels: list[EducationLevel] = []
        for raw in value:
            level = parse_education_level(raw)
            if level is None:
                raise ValueError(f"Unknown education level: {raw!r}")
            if level not in levels:
                levels.append(level)
        return levels

    @field_validator("specialization", "qualification", mode="before")
    @classmethod
    def _blank_to_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("custom_criteria", mode="before")
    @classmethod
    def _strip_criteria(cls, value: Any) -> list[str]:
        if value is None:
            return []
        return [str(item).strip() for item in value if item is not None and str(item).strip()]

    def is_empty(self) -> bool:
        return not (
            self.education_levels
            or self.min_experience_years is not None
            or self.specialization
            or self.qualification
            or self.custom_criteria
        )


class ScoringContext(BaseModel):
    """Opaque reference to the job's context inside the scoring service."""

    company_ref: str
    job_ref: str

    model_config = ConfigDict(extra="forbid", frozen=True)


class JobStatus(str, Enum):
    ACTIVE = "active"
    CLOSED = "closed"


class JobPosting(BaseModel):
    """Job posting as seen by the screening subsystem."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    title: str
    description: str = ""
    location: str | None = None
    company_name: str | None = None
    required_skills: list[str] = Field(default_factory=list)
    nice_to_have_skills: list[str] = Field(default_factory=list)
    experience_years: float | None = Field(default=None, ge=0)
    eligibility: EligibilityRuleSet = Field(default_factory=EligibilityRuleSet)
    scoring_context: ScoringContext | None = None
    status: JobStatus = JobStatus.ACTIVE
    is_deleted: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = ConfigDict(extra="forbid")

    @field_validator("required_skills", "nice_to_have_skills", mode="before")
    @classmethod
    def _normalize_skills(cls, value: Any) -> list[str]:
        return normalize_skills(value)
