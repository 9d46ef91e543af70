"""Application facade over the decision engine. Callers supply every record; nothing is fetched here."""

import logging
import operator
from dataclasses import dataclass
from decimal import Decimal
from functools import reduce
from typing import Iterable, Mapping, Optional

from decision_engine.application.advisory_gateway import AdvisoryResilienceGateway
from decision_engine.application.schemas import (
    CustomerHistoryData,
    DiscountRecommendation,
    DiscountRecommendationRequest,
    GovernanceSettings,
    RecommendationItem,
    RiskScoreRequest,
    SalespersonHistoryData,
)
from decision_engine.core.context import tenant_id_ctx
from decision_engine.domain.exceptions import InvalidStateError
from decision_engine.domain.models import (
    BusinessRule,
    Customer,
    CustomerDiscountHistory,
    DiscountRequest,
    DiscountRequestStatus,
    Money,
    Salesperson,
    SalespersonDiscountHistory,
    UserRole,
)
from decision_engine.domain.services import (
    AutoApprovalEvaluation,
    AutoApprovalEvaluator,
    GuardrailValidator,
    MarginCalculator,
    RiskAssessment,
    RiskLevel,
    RiskScoreCalculator,
    ValidationResult,
)
from decision_engine.security.tenant_context import TenantContext

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AutoApprovalOutcome:
    evaluation: AutoApprovalEvaluation
    risk_score: Decimal
    governance: GovernanceSettings
    recommendation: Optional[DiscountRecommendation] = None
    risk_level: Optional[RiskLevel] = None
    risk_from_advisory: bool = False

    @property
    def auto_approved(self) -> bool:
        return self.evaluation.can_auto_approve


class DiscountDecisionService:
    """
    Exposes risk scoring, guardrail validation, auto-approval evaluation and the
    resilient advisory operations. try_auto_approve runs the whole decision for
    one request and transitions it to AutoApproved when every check passes.
    """

    def __init__(
        self,
        advisory: AdvisoryResilienceGateway,
        evaluator: AutoApprovalEvaluator | None = None,
        risk_calculator: RiskScoreCalculator | None = None,
        validator: GuardrailValidator | None = None,
        margin_calculator: MarginCalculator | None = None,
    ) -> None:
        self.advisory = advisory
        self._margins = margin_calculator or MarginCalculator()
        self._validator = validator or GuardrailValidator(self._margins)
        self._risk = risk_calculator or RiskScoreCalculator(self._margins)
        self._evaluator = evaluator or AutoApprovalEvaluator(self._validator)

    # --- Risk ---

    def calculate_risk_score(
        self,
        request: DiscountRequest,
        customer: Customer,
        salesperson: Salesperson,
        customer_history: Optional[CustomerDiscountHistory] = None,
        salesperson_history: Optional[SalespersonDiscountHistory] = None,
        product_costs: Optional[Mapping[str, Money]] = None,
    ) -> Decimal:
        return self._risk.calculate_risk_score(
            request, customer, salesperson, customer_history, salesperson_history, product_costs
        )

    def get_risk_assessment(
        self,
        request: DiscountRequest,
        risk_score: Decimal,
        customer_history: Optional[CustomerDiscountHistory] = None,
        salesperson_history: Optional[SalespersonDiscountHistory] = None,
    ) -> RiskAssessment:
        return self._risk.get_risk_assessment(request, risk_score, customer_history, salesperson_history)

    # --- Guardrails ---

    def validate_discount_request(
        self,
        request: DiscountRequest,
        customer: Customer,
        salesperson: Salesperson,
        rules: Iterable[BusinessRule],
        product_costs: Optional[Mapping[str, Money]] = None,
    ) -> ValidationResult:
        return self._validator.validate_discount_request(request, customer, salesperson, rules, product_costs)

    def validate_customer_status(self, customer: Customer) -> ValidationResult:
        return self._validator.validate_customer_status(customer)

    def validate_discount_limits(
        self, requested_discount_percentage: Decimal, role: UserRole, rules: Iterable[BusinessRule]
    ) -> ValidationResult:
        return self._validator.validate_discount_limits(requested_discount_percentage, role, rules)

    def validate_minimum_margin(
        self,
        request: DiscountRequest,
        rules: Iterable[BusinessRule],
        product_costs: Optional[Mapping[str, Money]],
    ) -> ValidationResult:
        return self._validator.validate_minimum_margin(request, rules, product_costs)

    # --- Auto-approval ---

    def evaluate_auto_approval(
        self,
        request: DiscountRequest,
        customer: Customer,
        salesperson: Salesperson,
        rules: Iterable[BusinessRule],
        risk_score: Decimal,
        advisory_confidence: Optional[Decimal] = None,
        product_costs: Optional[Mapping[str, Money]] = None,
        advisory_enabled: bool = True,
    ) -> AutoApprovalEvaluation:
        return self._evaluator.evaluate(
            request,
            customer,
            salesperson,
            rules,
            risk_score,
            advisory_confidence=advisory_confidence,
            product_costs=product_costs,
            advisory_enabled=advisory_enabled,
        )

    def can_override_auto_rejection(self, user: Salesperson, evaluation: AutoApprovalEvaluation) -> bool:
        return self._evaluator.can_override_auto_rejection(user, evaluation)

    async def try_auto_approve(
        self,
        tenant_id: str,
        request: DiscountRequest,
        customer: Customer,
        salesperson: Salesperson,
        rules: Iterable[BusinessRule],
        customer_history: Optional[CustomerDiscountHistory] = None,
        salesperson_history: Optional[SalespersonDiscountHistory] = None,
        product_costs: Optional[Mapping[str, Money]] = None,
    ) -> AutoApprovalOutcome:
        """
        Decide one request end to end.

        When the advisory service answers with a real (non-fallback) recommendation,
        its risk score is used as well; otherwise the local calculator scores the request.

        Raises TenantIsolationError when any record belongs to another tenant and
        InvalidStateError when the request is not under analysis. Advisory
        failures never raise: without a usable confidence the request is left
        for human review. The request is only changed when it is auto-approved;
        a denial leaves its risk score and estimated margin untouched.
        """
        TenantContext.validate_all(tenant_id, request.tenant_id, customer.tenant_id, salesperson.tenant_id)
        if request.status != DiscountRequestStatus.UNDER_ANALYSIS:
            raise InvalidStateError(
                f"Cannot attempt auto-approval on request with status {request.status.value}; "
                f"only requests under analysis can be auto-approved"
            )

        token = tenant_id_ctx.set(tenant_id)
        try:
            rules = list(rules)
            estimated_margin = request.estimated_margin_percentage
            if estimated_margin is None:
                estimated_margin = self._estimate_margin(request, product_costs)

            governance = await self.advisory.get_governance_settings(tenant_id)
            recommendation = None
            if governance.ai_enabled and await self.advisory.is_available(tenant_id):
                recommendation = await self.advisory.recommend_discount(
                    self._recommendation_request(request, customer, customer_history)
                )
            advisory_usable = recommendation is not None and not recommendation.is_fallback
            confidence = recommendation.confidence if advisory_usable else None

            risk_score = request.risk_score
            risk_from_advisory = False
            if risk_score is None and advisory_usable:
                advisory_risk = await self.advisory.calculate_risk_score(
                    self._risk_score_request(
                        request, estimated_margin, customer_history, salesperson_history
                    )
                )
                if not advisory_risk.is_fallback:
                    risk_score = advisory_risk.score
                    risk_from_advisory = True
            if risk_score is None:
                risk_score = self._risk.calculate_risk_score(
                    request, customer, salesperson, customer_history, salesperson_history, product_costs
                )
            risk_level = self._risk.determine_risk_level(risk_score)

            evaluation = self._evaluator.evaluate(
                request,
                customer,
                salesperson,
                rules,
                risk_score,
                advisory_confidence=confidence,
                product_costs=product_costs,
                advisory_enabled=governance.ai_enabled,
                estimated_margin_percentage=estimated_margin,
            )
            if evaluation.can_auto_approve:
                request.auto_approve()
                if request.risk_score is None:
                    request.set_risk_score(risk_score)
                if request.estimated_margin_percentage is None and estimated_margin is not None:
                    request.set_estimated_margin_percentage(estimated_margin)

            logger.info(
                "auto_approval_attempted",
                extra={
                    "request_id": str(request.request_id),
                    "auto_approved": evaluation.can_auto_approve,
                    "risk_score": str(risk_score),
                    "risk_level": risk_level.value,
                    "risk_from_advisory": risk_from_advisory,
                    "advisory_enabled": governance.ai_enabled,
                },
            )
            return AutoApprovalOutcome(
                evaluation, risk_score, governance, recommendation, risk_level, risk_from_advisory
            )
        finally:
            tenant_id_ctx.reset(token)

    def _estimate_margin(
        self, request: DiscountRequest, product_costs: Optional[Mapping[str, Money]]
    ) -> Optional[Decimal]:
        """Aggregate margin of the request when every item has a known cost."""
        if not product_costs:
            return None
        if any(item.product_id not in product_costs for item in request.items):
            return None
        total_final = request.total_final_price()
        if total_final.amount <= 0:
            return None
        total_cost = reduce(operator.add, (product_costs[item.product_id] * item.quantity for item in request.items))
        margin = self._margins.aggregate_margin(total_final, total_cost)
        # stored margins are bounded below at -100%
        return max(margin, Decimal("-100"))

    @staticmethod
    def _risk_score_request(
        request: DiscountRequest,
        estimated_margin: Optional[Decimal],
        customer_history: Optional[CustomerDiscountHistory],
        salesperson_history: Optional[SalespersonDiscountHistory],
    ) -> RiskScoreRequest:
        customer_data = None
        if customer_history is not None:
            customer_data = CustomerHistoryData(
                total_orders=customer_history.total_requests,
                average_discount=customer_history.average_approved_discount,
                max_discount_received=customer_history.max_approved_discount,
                rejected_requests=customer_history.rejected_requests,
                has_payment_issues=customer_history.has_payment_delays or customer_history.has_defaults,
            )
        salesperson_data = None
        if salesperson_history is not None:
            salesperson_data = SalespersonHistoryData(
                total_requests=salesperson_history.total_requests,
                approved_requests=salesperson_history.approved_requests,
                average_discount=salesperson_history.average_requested_discount,
                approval_rate=salesperson_history.approval_rate,
                win_rate=salesperson_history.win_rate,
            )
        return RiskScoreRequest(
            tenant_id=request.tenant_id,
            discount_request_id=request.request_id,
            customer_id=request.customer_id,
            salesperson_id=request.salesperson_id,
            requested_discount_percentage=request.requested_discount_percentage,
            estimated_margin_percentage=estimated_margin if estimated_margin is not None else Decimal("0"),
            customer_history=customer_data,
            salesperson_history=salesperson_data,
        )

    @staticmethod
    def _recommendation_request(
        request: DiscountRequest,
        customer: Customer,
        history: Optional[CustomerDiscountHistory],
    ) -> DiscountRecommendationRequest:
        history_data = None
        if history is not None:
            history_data = CustomerHistoryData(
                total_orders=history.total_requests,
                average_discount=history.average_approved_discount,
                max_discount_received=history.max_approved_discount,
                rejected_requests=history.rejected_requests,
                classification=customer.classification.value,
                has_payment_issues=history.has_payment_delays or history.has_defaults,
            )
        return DiscountRecommendationRequest(
            tenant_id=request.tenant_id,
            customer_id=customer.customer_id,
            salesperson_id=request.salesperson_id,
            items=tuple(
                RecommendationItem(
                    product_id=item.product_id,
                    product_name=item.product_name,
                    quantity=Decimal(item.quantity),
                    base_price=item.unit_base_price.amount,
                    currency=item.currency,
                )
                for item in request.items
            ),
            customer_history=history_data,
        )
