"""Eligibility gate evaluation."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any

from ..schemas import CandidateProfile, EligibilityRuleSet, parse_education_level

NO_CRITERIA_MESSAGE = (
    "No eligibility criteria are configured for this job; "
    "all candidates are treated as eligible."
)


@dataclass(slots=True)
class RuleCheck:
    """Result of a single eligibility rule."""

    rule: str
    passed: bool
    detail: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class EligibilityResult:
    """Aggregated eligibility outcome for one candidate."""

    eligible: bool
    failed_rules: list[str]
    checks: list[RuleCheck] = field(default_factory=list)
    warning: str | None = None


class EligibilityEvaluator:
    """Check a candidate profile against a job's eligibility rules.

    Every rule is evaluated independently so the caller sees all failures
    at once. The evaluator holds no state and performs no I/O.
    """

    def evaluate(
        self,
        rules: EligibilityRuleSet,
        profile: CandidateProfile,
    ) -> EligibilityResult:
        if rules.is_empty():
            return EligibilityResult(eligible=True, failed_rules=[], warning=NO_CRITERIA_MESSAGE)

        checks = [
            self._education(rules, profile),
            self._experience(rules, profile),
            self._exact_match("specialization", rules.specialization, profile.specialization),
            self._exact_match("qualification", rules.qualification, profile.qualification),
            self._custom_criteria(rules, profile),
        ]
        failed = [check.rule for check in checks if not check.passed]
        return EligibilityResult(eligible=not failed, failed_rules=failed, checks=checks)

    @staticmethod
    def _education(rules: EligibilityRuleSet, profile: CandidateProfile) -> RuleCheck:
        accepted = [level.value for level in rules.education_levels]
        if not rules.education_levels:
            return RuleCheck("educationLevel", True, {"status": "not_required"})

        level = parse_education_level(profile.education_level)
        detail: dict[str, Any] = {
            "accepted_levels": accepted,
            "candidate_level": profile.education_level,
        }
        if level is None:
            detail["status"] = "missing_or_unknown"
            return RuleCheck("educationLevel", False, detail)

        # Higher levels satisfy lower requirements; any one accepted level suffices.
        passed = any(level.rank >= required.rank for required in rules.education_levels)
        detail["status"] = "ok" if passed else "below_required"
        return RuleCheck("educationLevel", passed, detail)

    @staticmethod
    def _experience(rules: EligibilityRuleSet, profile: CandidateProfile) -> RuleCheck:
        minimum = rules.min_experience_years
        if minimum is None:
            return RuleCheck("experienceYears", True, {"status": "not_required"})

        years = _as_years(profile.experience_years)
        detail: dict[str, Any] = {"required_min": minimum, "candidate_years": years}
        if years is None:
            detail["status"] = "missing_or_invalid"
            return RuleCheck("experienceYears", False, detail)
        passed = years >= minimum
        detail["status"] = "ok" if passed else "below_required"
        return RuleCheck("experienceYears", passed, detail)

    @staticmethod
    def _exact_match(rule: str, required: str | None, candidate: str | None) -> RuleCheck:
        if not required or not required.strip():
            return RuleCheck(rule, True, {"status": "not_required"})
        expected = required.strip().casefold()
        actual = (candidate or "").strip().casefold()
        passed = bool(actual) and actual == expected
        return RuleCheck(
            rule,
            passed,
            {
                "required": required,
                "candidate": candidate,
                "status": "ok" if passed else "mismatch",
            },
        )

    @staticmethod
    def _custom_criteria(rules: EligibilityRuleSet, profile: CandidateProfile) -> RuleCheck:
        total = len(rules.custom_criteria)
        if total == 0:
            return RuleCheck("customCriteria", True, {"status": "not_required"})
        missing = [index for index in range(total) if index not in profile.acknowledged_criteria]
        return RuleCheck(
            "customCriteria",
            not missing,
            {
                "criteria": list(rules.custom_criteria),
                "unacknowledged": missing,
                "status": "ok" if not missing else "unacknowledged",
            },
        )


def evaluate_eligibility(rules: EligibilityRuleSet, profile: CandidateProfile) -> EligibilityResult:
    return EligibilityEvaluator().evaluate(rules, profile)


def _as_years(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        years = float(str(value).strip()) if isinstance(value, str) else float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(years) or math.isinf(years):
        return None
    return years
