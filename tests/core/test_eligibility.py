from __future__ import annotations

import pytest

from autohire.core import NO_CRITERIA_MESSAGE, EligibilityEvaluator
from autohire.schemas import CandidateProfile, EducationLevel, EligibilityRuleSet


def build_rules(**kwargs) -> EligibilityRuleSet:
    return EligibilityRuleSet.model_validate(kwargs)


def build_profile(**kwargs) -> CandidateProfile:
    return CandidateProfile.model_validate(kwargs)


def evaluate(rules: EligibilityRuleSet, profile: CandidateProfile):
    return EligibilityEvaluator().evaluate(rules, profile)


def test_experienced_masters_candidate_is_eligible():
    rules = build_rules(minExperienceYears=2, educationMinLevel=["bachelors"])
    result = evaluate(rules, build_profile(experienceYears=3, educationLevel="masters"))

    assert result.eligible is True
    assert result.failed_rules == []
    assert result.warning is None
    assert [check.rule for check in result.checks] == [
        "educationLevel",
        "experienceYears",
        "specialization",
        "qualification",
        "customCriteria",
    ]


def test_junior_candidate_fails_only_experience():
    rules = build_rules(minExperienceYears=2, educationMinLevel=["bachelors"])
    result = evaluate(rules, build_profile(experienceYears=1, educationLevel="bachelors"))

    assert result.eligible is False
    assert result.failed_rules == ["experienceYears"]


def test_all_failures_are_reported_together():
    rules = build_rules(
        minExperienceYears=5,
        educationMinLevel=["masters"],
        specialization="Computer Science",
        customCriteria=["Willing to relocate"],
    )
    result = evaluate(rules, build_profile(experienceYears=1, educationLevel="diploma", specialization="Physics"))

    assert result.failed_rules == [
        "educationLevel",
        "experienceYears",
        "specialization",
        "customCriteria",
    ]


@pytest.mark.parametrize("candidate", list(EducationLevel))
def test_education_is_monotonic(candidate: EducationLevel):
    for required in EducationLevel:
        result = evaluate(build_rules(educationMinLevel=[required.value]), build_profile(educationLevel=candidate.value))
        assert result.eligible is (candidate.rank >= required.rank)


def test_any_accepted_level_is_enough():
    rules = build_rules(educationMinLevel=["phd", "diploma"])

    assert evaluate(rules, build_profile(educationLevel="Diploma")).eligible is True
    assert evaluate(rules, build_profile(educationLevel="high school")).eligible is False


def test_unknown_education_level_fails_rule():
    result = evaluate(build_rules(educationMinLevel="bachelors"), build_profile(educationLevel="wizardry"))

    assert result.failed_rules == ["educationLevel"]
    assert result.checks[0].detail["status"] == "missing_or_unknown"


@pytest.mark.parametrize("years", [None, "", "three", "nan", "inf"])
def test_non_numeric_experience_fails_without_error(years):
    result = evaluate(build_rules(minExperienceYears=1), build_profile(experienceYears=years))

    assert result.eligible is False
    assert result.failed_rules == ["experienceYears"]


def test_numeric_string_experience_is_accepted():
    result = evaluate(build_rules(minExperienceYears=2), build_profile(experienceYears=" 2.5 "))

    assert result.eligible is True


def test_zero_minimum_experience_still_requires_a_value():
    rules = build_rules(minExperienceYears=0)

    assert evaluate(rules, build_profile(experienceYears=0)).eligible is True
    assert evaluate(rules, build_profile()).eligible is False


def test_exact_match_rules_ignore_case_and_whitespace():
    rules = build_rules(specialization="Data Science", academicQualification="B.Tech")
    profile = build_profile(specialization="  data science ", highestQualificationDegree="b.tech")

    assert evaluate(rules, profile).eligible is True


def test_custom_criteria_are_all_or_nothing():
    rules = build_rules(customCriteria=["Night shifts", "Relocation", "Background check"])

    assert evaluate(rules, build_profile(acknowledgedCriteria=[0, 1, 2])).eligible is True
    partial = evaluate(rules, build_profile(acknowledgedCriteria=[0, 2]))
    assert partial.eligible is False
    assert partial.checks[-1].detail["unacknowledged"] == [1]


def test_extra_acknowledgements_are_ignored():
    rules = build_rules(customCriteria=["Night shifts"])

    assert evaluate(rules, build_profile(acknowledgedCriteria=[0, 5])).eligible is True


def test_no_criteria_yields_warning():
    result = evaluate(build_rules(), build_profile())

    assert result.eligible is True
    assert result.failed_rules == []
    assert result.warning == NO_CRITERIA_MESSAGE


def test_blank_rules_count_as_unconfigured():
    rules = build_rules(specialization="  ", academicQualification="", customCriteria=[" "])

    assert rules.is_empty()
    assert evaluate(rules, build_profile()).warning == NO_CRITERIA_MESSAGE
