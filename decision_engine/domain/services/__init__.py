"""Domain services: margin, risk, guardrails and auto-approval. Synchronous and free of I/O."""

from decision_engine.domain.services.auto_approval import (
    AutoApprovalEvaluation,
    AutoApprovalEvaluator,
    AutoApprovalStatistics,
    AutoApprovalThresholds,
    SafetyCheckResult,
)
from decision_engine.domain.services.guardrail_validator import GuardrailValidator
from decision_engine.domain.services.margin_calculator import MarginCalculator
from decision_engine.domain.services.risk_score_calculator import (
    RiskAssessment,
    RiskLevel,
    RiskScoreBreakdown,
    RiskScoreCalculator,
)
from decision_engine.domain.services.validation_result import ValidationResult, ValidationResultBuilder

__all__ = [
    "AutoApprovalEvaluation",
    "AutoApprovalEvaluator",
    "AutoApprovalStatistics",
    "AutoApprovalThresholds",
    "GuardrailValidator",
    "MarginCalculator",
    "RiskAssessment",
    "RiskLevel",
    "RiskScoreBreakdown",
    "RiskScoreCalculator",
    "SafetyCheckResult",
    "ValidationResult",
    "ValidationResultBuilder",
]
