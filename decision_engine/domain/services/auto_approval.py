"""
Auto-approval evaluation.

A request is auto-approved only when, in order:
1. it passes every guardrail (never human-overridable when it does not)
2. its risk score is within the resolved ceiling
3. advisory confidence, when advisory scoring is enabled, is present and high enough
4. fixed safety checks pass (active parties, order value, margin sign, item count)
The first failing step decides the outcome. Outcomes are returned as data.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Iterable, Mapping, Optional

from decision_engine.domain.models.business_rule import BusinessRule, RuleType, active_rules_of_type
from decision_engine.domain.models.discount_request import DiscountRequest
from decision_engine.domain.models.money import Money, Number, to_decimal
from decision_engine.domain.models.parties import Customer, Salesperson
from decision_engine.domain.services.guardrail_validator import GuardrailValidator
from decision_engine.domain.services.thresholds import tightest_lower_bound, tightest_upper_bound, value_or_default
from decision_engine.domain.services.validation_result import ValidationResult
from decision_engine.security.rbac import OVERRIDE_AUTO_REJECTION, RBACService

logger = logging.getLogger(__name__)

DEFAULT_MAX_RISK_SCORE = Decimal("60")
DEFAULT_MIN_ADVISORY_CONFIDENCE = Decimal("0.75")
DEFAULT_MAX_DISCOUNT_PERCENTAGE = Decimal("15")
DEFAULT_MAX_ORDER_VALUE = Decimal("100000")
DEFAULT_MAX_ITEMS = 50

GUARDRAIL_REJECTION_REASON = "request violates guardrails (business rules)"
APPROVAL_REASON = "all auto-approval criteria met"


@dataclass(frozen=True)
class AutoApprovalThresholds:
    max_risk_score: Decimal = DEFAULT_MAX_RISK_SCORE
    min_advisory_confidence: Decimal = DEFAULT_MIN_ADVISORY_CONFIDENCE
    max_discount_percentage: Decimal = DEFAULT_MAX_DISCOUNT_PERCENTAGE

    def resolve(self, rules: Optional[Iterable[BusinessRule]]) -> "AutoApprovalThresholds":
        """Most restrictive value across active AutoApproval rules; self supplies the defaults."""
        auto_rules = active_rules_of_type(rules, RuleType.AUTO_APPROVAL)
        max_risk = tightest_upper_bound((r, r.parameters.max_risk_score) for r in auto_rules)
        min_confidence = tightest_lower_bound((r, r.parameters.min_ai_confidence) for r in auto_rules)
        max_discount = tightest_upper_bound((r, r.parameters.max_discount_percentage) for r in auto_rules)
        return AutoApprovalThresholds(
            max_risk_score=value_or_default(max_risk, self.max_risk_score),
            min_advisory_confidence=value_or_default(min_confidence, self.min_advisory_confidence),
            max_discount_percentage=value_or_default(max_discount, self.max_discount_percentage),
        )


@dataclass(frozen=True)
class SafetyCheckResult:
    passed: bool
    failure_reason: Optional[str] = None
    warnings: tuple[str, ...] = ()


@dataclass(frozen=True)
class AutoApprovalEvaluation:
    request_id: str
    can_auto_approve: bool
    risk_score: Decimal
    thresholds: AutoApprovalThresholds
    advisory_confidence: Optional[Decimal] = None
    guardrails_validation: Optional[ValidationResult] = None
    safety_checks: Optional[SafetyCheckResult] = None
    approval_reason: Optional[str] = None
    rejection_reason: Optional[str] = None
    rejection_details: tuple[str, ...] = ()
    requires_human_review: bool = False
    evaluated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def violates_guardrails(self) -> bool:
        return self.guardrails_validation is not None and not self.guardrails_validation.is_valid

    def summary(self) -> str:
        if self.can_auto_approve:
            return f"Auto-approval granted: {self.approval_reason}"
        text = f"Auto-approval denied: {self.rejection_reason}"
        if self.rejection_details:
            text += "\nDetails: " + "; ".join(self.rejection_details)
        return text


@dataclass
class _EvaluationBuilder:
    request_id: str
    risk_score: Decimal
    thresholds: AutoApprovalThresholds
    advisory_confidence: Optional[Decimal] = None
    guardrails_validation: Optional[ValidationResult] = None
    safety_checks: Optional[SafetyCheckResult] = None

    def _build(self, **outcome) -> AutoApprovalEvaluation:
        return AutoApprovalEvaluation(
            request_id=self.request_id,
            risk_score=self.risk_score,
            thresholds=self.thresholds,
            advisory_confidence=self.advisory_confidence,
            guardrails_validation=self.guardrails_validation,
            safety_checks=self.safety_checks,
            **outcome,
        )

    def deny(self, reason: str, details: Iterable[str] = (), human_review: bool = True) -> AutoApprovalEvaluation:
        return self._build(
            can_auto_approve=False,
            rejection_reason=reason,
            rejection_details=tuple(details),
            requires_human_review=human_review,
        )

    def approve(self, reason: str) -> AutoApprovalEvaluation:
        return self._build(can_auto_approve=True, approval_reason=reason)


@dataclass(frozen=True)
class AutoApprovalStatistics:
    total_auto_approved: int
    total_requests: int
    auto_approval_rate: Decimal

    def formatted_rate(self) -> str:
        return f"{self.auto_approval_rate:.1%}"


class AutoApprovalEvaluator:
    """State-free: the same inputs always produce the same evaluation."""

    def __init__(
        self,
        validator: GuardrailValidator | None = None,
        rbac: RBACService | None = None,
        defaults: AutoApprovalThresholds | None = None,
        max_order_value: Number | float = DEFAULT_MAX_ORDER_VALUE,
        max_items: int = DEFAULT_MAX_ITEMS,
    ) -> None:
        self._validator = validator or GuardrailValidator()
        self._rbac = rbac or RBACService()
        self._defaults = defaults or AutoApprovalThresholds()
        self._max_order_value = to_decimal(max_order_value)
        self._max_items = max_items

    @classmethod
    def from_settings(cls, settings, validator: GuardrailValidator | None = None) -> "AutoApprovalEvaluator":
        return cls(
            validator=validator,
            defaults=AutoApprovalThresholds(
                max_risk_score=to_decimal(settings.default_max_risk_score),
                min_advisory_confidence=to_decimal(settings.default_min_advisory_confidence),
                max_discount_percentage=to_decimal(settings.default_max_discount_percentage),
            ),
            max_order_value=settings.max_auto_approval_order_value,
            max_items=settings.max_auto_approval_items,
        )

    def evaluate(
        self,
        request: DiscountRequest,
        customer: Customer,
        salesperson: Salesperson,
        rules: Optional[Iterable[BusinessRule]],
        risk_score: Number | float,
        advisory_confidence: Number | float | None = None,
        product_costs: Optional[Mapping[str, Money]] = None,
        advisory_enabled: bool = True,
        estimated_margin_percentage: Number | float | None = None,
    ) -> AutoApprovalEvaluation:
        """`estimated_margin_percentage`, when given, stands in for the request's own estimate."""
        rules = list(rules or [])
        score = to_decimal(risk_score)
        confidence = None if advisory_confidence is None else to_decimal(advisory_confidence)
        builder = _EvaluationBuilder(
            request_id=request.request_id,
            risk_score=score,
            thresholds=self._defaults.resolve(rules),
            advisory_confidence=confidence,
        )
        margin = request.estimated_margin_percentage
        if estimated_margin_percentage is not None:
            margin = to_decimal(estimated_margin_percentage)
        evaluation = self._evaluate(
            builder, request, customer, salesperson, rules, product_costs, advisory_enabled, margin
        )
        logger.info(
            "auto_approval_evaluated",
            extra={
                "request_id": str(request.request_id),
                "can_auto_approve": evaluation.can_auto_approve,
                "risk_score": str(score),
                "reason": evaluation.approval_reason or evaluation.rejection_reason,
            },
        )
        return evaluation

    def _evaluate(
        self,
        builder: _EvaluationBuilder,
        request: DiscountRequest,
        customer: Customer,
        salesperson: Salesperson,
        rules: list[BusinessRule],
        product_costs: Optional[Mapping[str, Money]],
        advisory_enabled: bool,
        estimated_margin: Optional[Decimal],
    ) -> AutoApprovalEvaluation:
        thresholds = builder.thresholds

        guardrails = self._validator.validate_discount_request(request, customer, salesperson, rules, product_costs)
        builder.guardrails_validation = guardrails
        if not guardrails.is_valid:
            return builder.deny(GUARDRAIL_REJECTION_REASON, guardrails.errors, human_review=False)

        if builder.risk_score > thresholds.max_risk_score:
            return builder.deny(
                f"risk score ({builder.risk_score:.2f}) exceeds auto-approval threshold "
                f"({thresholds.max_risk_score:.2f})"
            )

        if advisory_enabled:
            confidence = builder.advisory_confidence
            if confidence is None:
                return builder.deny("advisory confidence not available")
            if confidence < thresholds.min_advisory_confidence:
                return builder.deny(
                    f"advisory confidence ({confidence:.0%}) is below minimum threshold "
                    f"({thresholds.min_advisory_confidence:.0%})"
                )

        safety = self.apply_safety_checks(request, customer, salesperson, estimated_margin)
        builder.safety_checks = safety
        if not safety.passed:
            return builder.deny(safety.failure_reason or "safety check failed")

        return builder.approve(APPROVAL_REASON)

    def apply_safety_checks(
        self,
        request: DiscountRequest,
        customer: Customer,
        salesperson: Salesperson,
        estimated_margin: Optional[Decimal] = None,
    ) -> SafetyCheckResult:
        """Fixed checks that no tenant rule can relax."""
        if not customer.is_active():
            return SafetyCheckResult(False, "customer is not active")
        if not salesperson.is_active():
            return SafetyCheckResult(False, "salesperson is not active")

        total = request.total_base_price()
        if total.amount > self._max_order_value:
            return SafetyCheckResult(False, f"order value ({total}) exceeds auto-approval limit")

        margin = estimated_margin if estimated_margin is not None else request.estimated_margin_percentage
        if margin is not None and margin < 0:
            return SafetyCheckResult(False, "negative margin detected")

        if len(request.items) > self._max_items:
            return SafetyCheckResult(False, "too many items in request for auto-approval")

        return SafetyCheckResult(True)

    def can_override_auto_rejection(self, user: Salesperson, evaluation: AutoApprovalEvaluation) -> bool:
        """Managers and admins may override a denial, never a guardrail violation."""
        if not self._rbac.has_permission(user.role, OVERRIDE_AUTO_REJECTION):
            return False
        return not evaluation.violates_guardrails

    @staticmethod
    def is_auto_approval_enabled(company_active: bool) -> bool:
        return bool(company_active)

    @staticmethod
    def auto_approval_statistics(total_auto_approved: int, total_requests: int) -> AutoApprovalStatistics:
        rate = Decimal(total_auto_approved) / Decimal(total_requests) if total_requests > 0 else Decimal("0")
        return AutoApprovalStatistics(total_auto_approved, total_requests, rate)
