"""
Rule-based answers used when the advisory service cannot be reached.

Fallbacks are deterministic and make no external calls. Safe defaults are the
last resort when a fallback itself fails: they never recommend a discount and
always force human review.
"""

from decimal import Decimal

from decision_engine.application.schemas import (
    AdvisoryExplanation,
    AdvisoryRiskScore,
    DiscountRecommendation,
    DiscountRecommendationRequest,
    ExplainabilityRequest,
    RiskScoreRequest,
)

FALLBACK_DISCOUNT_PERCENTAGE = Decimal("5")
FALLBACK_MARGIN_PERCENTAGE = Decimal("20")
FALLBACK_CONFIDENCE = Decimal("0.5")
FALLBACK_RISK_MULTIPLIER = Decimal("3")
MAX_RISK = Decimal("100")


def fallback_risk_level(score: Decimal) -> str:
    if score < 30:
        return "Low"
    if score < 60:
        return "Medium"
    if score < 80:
        return "High"
    return "VeryHigh"


def fallback_recommendation(request: DiscountRecommendationRequest, reason: str) -> DiscountRecommendation:
    return DiscountRecommendation(
        recommended_discount_percentage=FALLBACK_DISCOUNT_PERCENTAGE,
        expected_margin_percentage=FALLBACK_MARGIN_PERCENTAGE,
        confidence=FALLBACK_CONFIDENCE,
        explanation=f"Rule-based fallback used. Reason: {reason}. Recommending conservative discount.",
        is_fallback=True,
    )


def fallback_risk_score(request: RiskScoreRequest, reason: str) -> AdvisoryRiskScore:
    score = min(request.requested_discount_percentage * FALLBACK_RISK_MULTIPLIER, MAX_RISK)
    return AdvisoryRiskScore(
        score=score,
        risk_level=fallback_risk_level(score),
        risk_factors=(
            f"Requested discount: {request.requested_discount_percentage}%",
            f"Fallback reason: {reason}",
        ),
        confidence=FALLBACK_CONFIDENCE,
        is_fallback=True,
    )


def fallback_explanation(request: ExplainabilityRequest, reason: str) -> AdvisoryExplanation:
    return AdvisoryExplanation(
        summary="Decision based on business rules (advisory service unavailable)",
        details=(
            f"Fallback reason: {reason}",
            "Used rule-based logic",
            "All business rules checked",
            "Margin requirements validated",
        ),
    )


def safe_default_recommendation(request: DiscountRecommendationRequest) -> DiscountRecommendation:
    return DiscountRecommendation(
        recommended_discount_percentage=Decimal("0"),
        expected_margin_percentage=Decimal("25"),
        confidence=Decimal("0"),
        explanation="System error - no recommendation available. Please review manually.",
        is_fallback=True,
    )


def safe_default_risk_score(request: RiskScoreRequest) -> AdvisoryRiskScore:
    return AdvisoryRiskScore(
        score=MAX_RISK,
        risk_level="VeryHigh",
        risk_factors=("System error", "Manual review required"),
        confidence=Decimal("0"),
        is_fallback=True,
    )


def safe_default_explanation(request: ExplainabilityRequest) -> AdvisoryExplanation:
    return AdvisoryExplanation(
        summary="System error - explanation unavailable",
        details=("System encountered an error", "Manual review required"),
    )
