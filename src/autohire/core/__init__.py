"""Core screening components."""

from __future__ import annotations

# NOTE: keep imports explicit for export clarity.
from .eligibility import (
    NO_CRITERIA_MESSAGE,
    EligibilityEvaluator,
    EligibilityResult,
    RuleCheck,
    evaluate_eligibility,
)
from .reconciliation import (
    Attribution,
    AttributionReport,
    ReconciliationEngine,
    attribute,
    resolve_match,
)
from .stages import AdvanceResult, PipelineStateMachine, parse_stage

__all__ = [
    "AdvanceResult",
    "Attribution",
    "AttributionReport",
    "EligibilityEvaluator",
    "EligibilityResult",
    "NO_CRITERIA_MESSAGE",
    "PipelineStateMachine",
    "ReconciliationEngine",
    "RuleCheck",
    "attribute",
    "evaluate_eligibility",
    "parse_stage",
    "resolve_match",
]
