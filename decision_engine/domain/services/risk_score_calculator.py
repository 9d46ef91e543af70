"""
Risk scoring for discount requests.

The score is a fixed weighted sum of four sub-scores, each clamped to [0, 100]:
customer history (0.25), discount deviation (0.35), salesperson behaviour (0.15)
and resulting margin (0.25). A score of 60 or more requires human approval.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Mapping, Optional

from decision_engine.domain.exceptions import InvalidArgumentError
from decision_engine.domain.models.discount_request import DiscountRequest
from decision_engine.domain.models.history import CustomerDiscountHistory, SalespersonDiscountHistory
from decision_engine.domain.models.money import Money, Number, to_decimal
from decision_engine.domain.models.parties import Customer, Salesperson
from decision_engine.domain.services.margin_calculator import MarginCalculator

logger = logging.getLogger(__name__)

_ZERO = Decimal("0")
_HUNDRED = Decimal("100")

# Risk level boundaries
LOW_RISK_THRESHOLD = Decimal("30")
MEDIUM_RISK_THRESHOLD = Decimal("60")
HIGH_RISK_THRESHOLD = Decimal("85")

CUSTOMER_HISTORY_WEIGHT = Decimal("0.25")
DISCOUNT_DEVIATION_WEIGHT = Decimal("0.35")
SALESPERSON_BEHAVIOR_WEIGHT = Decimal("0.15")
MARGIN_IMPACT_WEIGHT = Decimal("0.25")

NEW_CUSTOMER_RISK = Decimal("70")
NEW_SALESPERSON_RISK = Decimal("50")
UNMATCHED_COST_MARGIN_RISK = Decimal("50")

# (exclusive upper margin bound, risk); margins at or above the last bound score 5
_MARGIN_RISK_BRACKETS: tuple[tuple[Decimal, Decimal], ...] = (
    (Decimal("0"), Decimal("100")),
    (Decimal("5"), Decimal("95")),
    (Decimal("10"), Decimal("80")),
    (Decimal("15"), Decimal("60")),
    (Decimal("20"), Decimal("40")),
    (Decimal("25"), Decimal("25")),
    (Decimal("30"), Decimal("15")),
)
_HEALTHY_MARGIN_RISK = Decimal("5")


def clamp_score(value: Decimal) -> Decimal:
    return max(_ZERO, min(_HUNDRED, value))


class RiskLevel(str, Enum):
    VERY_LOW = "VeryLow"
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


@dataclass(frozen=True)
class RiskScoreBreakdown:
    customer_risk: Decimal
    discount_deviation_risk: Decimal
    salesperson_risk: Decimal
    margin_risk: Decimal
    total: Decimal


@dataclass(frozen=True)
class RiskAssessment:
    score: Decimal
    level: RiskLevel
    requires_human_approval: bool
    reasons: tuple[str, ...] = ()


class RiskScoreCalculator:
    """Stateless; safe to share across threads."""

    def __init__(self, margin_calculator: MarginCalculator | None = None) -> None:
        self._margins = margin_calculator or MarginCalculator()

    def calculate_breakdown(
        self,
        request: DiscountRequest,
        customer: Customer,
        salesperson: Salesperson,
        customer_history: Optional[CustomerDiscountHistory] = None,
        salesperson_history: Optional[SalespersonDiscountHistory] = None,
        product_costs: Optional[Mapping[str, Money]] = None,
    ) -> RiskScoreBreakdown:
        if request is None or customer is None or salesperson is None:
            raise InvalidArgumentError("request, customer and salesperson are required")
        customer_risk = self.customer_history_risk(customer, customer_history)
        deviation_risk = self.discount_deviation_risk(request, customer_history)
        salesperson_risk = self.salesperson_behavior_risk(salesperson, salesperson_history)
        margin_risk = self.margin_impact_risk(request, product_costs)
        total = (
            customer_risk * CUSTOMER_HISTORY_WEIGHT
            + deviation_risk * DISCOUNT_DEVIATION_WEIGHT
            + salesperson_risk * SALESPERSON_BEHAVIOR_WEIGHT
            + margin_risk * MARGIN_IMPACT_WEIGHT
        )
        breakdown = RiskScoreBreakdown(
            customer_risk=customer_risk,
            discount_deviation_risk=deviation_risk,
            salesperson_risk=salesperson_risk,
            margin_risk=margin_risk,
            total=clamp_score(total),
        )
        logger.debug(
            "risk_score_calculated",
            extra={
                "request_id": request.request_id,
                "risk_score": str(breakdown.total),
                "customer_risk": str(customer_risk),
                "discount_deviation_risk": str(deviation_risk),
                "salesperson_risk": str(salesperson_risk),
                "margin_risk": str(margin_risk),
            },
        )
        return breakdown

    def calculate_risk_score(
        self,
        request: DiscountRequest,
        customer: Customer,
        salesperson: Salesperson,
        customer_history: Optional[CustomerDiscountHistory] = None,
        salesperson_history: Optional[SalespersonDiscountHistory] = None,
        product_costs: Optional[Mapping[str, Money]] = None,
    ) -> Decimal:
        """Weighted 0-100 risk score."""
        return self.calculate_breakdown(
            request, customer, salesperson, customer_history, salesperson_history, product_costs
        ).total

    def customer_history_risk(
        self, customer: Customer, history: Optional[CustomerDiscountHistory]
    ) -> Decimal:
        if customer.is_prospect() or history is None or history.is_empty:
            return NEW_CUSTOMER_RISK

        risk = _ZERO
        rejection_rate = history.rejection_rate
        if rejection_rate > Decimal("0.5"):
            risk += 40
        elif rejection_rate > Decimal("0.3"):
            risk += 25
        elif rejection_rate > Decimal("0.15"):
            risk += 10

        if history.has_payment_delays:
            risk += 20
        if history.has_defaults:
            risk += 30

        if customer.is_top_tier():
            risk -= 10
        elif customer.is_bottom_tier():
            risk += 10

        if not customer.is_active():
            risk += 20

        return clamp_score(risk)

    def discount_deviation_risk(
        self, request: DiscountRequest, history: Optional[CustomerDiscountHistory]
    ) -> Decimal:
        requested = request.requested_discount_percentage

        if history is None or history.is_empty:
            if requested > 30:
                return Decimal("90")
            if requested > 20:
                return Decimal("70")
            if requested > 10:
                return Decimal("50")
            return Decimal("30")

        average = history.average_approved_discount
        maximum = history.max_approved_discount
        if average > 0:
            deviation = abs(requested - average) / average * _HUNDRED
        else:
            deviation = requested * 10

        if deviation > 100:
            risk = Decimal("90")
        elif deviation > 75:
            risk = Decimal("75")
        elif deviation > 50:
            risk = Decimal("60")
        elif deviation > 25:
            risk = Decimal("40")
        else:
            risk = Decimal("20")

        if requested > maximum:
            # With no approved maximum on record any excess counts as the largest bracket.
            excess = (requested - maximum) / maximum * _HUNDRED if maximum > 0 else _HUNDRED
            if excess > 50:
                risk += 30
            elif excess > 25:
                risk += 20
            else:
                risk += 10

        return clamp_score(risk)

    def salesperson_behavior_risk(
        self, salesperson: Salesperson, history: Optional[SalespersonDiscountHistory]
    ) -> Decimal:
        if history is None or history.is_empty:
            return NEW_SALESPERSON_RISK

        risk = _ZERO
        approval_rate = history.approval_rate

        # over-approval signal
        if approval_rate > Decimal("0.95"):
            risk += 30
        elif approval_rate > Decimal("0.85"):
            risk += 15

        # poor-judgement signal
        if approval_rate < Decimal("0.50"):
            risk += 35
        elif approval_rate < Decimal("0.65"):
            risk += 20

        if history.average_requested_discount > 25:
            risk += 25
        elif history.average_requested_discount > 15:
            risk += 15

        if history.win_rate < Decimal("0.60"):
            risk += 20
        elif history.win_rate > Decimal("0.85"):
            risk -= 15

        if history.recent_rejection_trend > Decimal("0.40"):
            risk += 20

        return clamp_score(risk)

    def margin_impact_risk(
        self, request: DiscountRequest, product_costs: Optional[Mapping[str, Money]]
    ) -> Decimal:
        if not product_costs:
            estimated = request.estimated_margin_percentage
            return self.margin_risk(estimated if estimated is not None else _ZERO)

        total = _ZERO
        counted = 0
        for item in request.items:
            cost = product_costs.get(item.product_id)
            if cost is None:
                continue
            if item.unit_final_price.amount <= 0:
                # Fully discounted item sells at or below cost.
                total += _HUNDRED
            else:
                total += self.margin_risk(self._margins.margin_percentage(item.unit_final_price, cost))
            counted += 1

        if counted == 0:
            return UNMATCHED_COST_MARGIN_RISK
        return clamp_score(total / counted)

    @staticmethod
    def margin_risk(margin_percentage: Number | float) -> Decimal:
        """Map a margin percentage onto a 0-100 risk via fixed brackets."""
        margin = to_decimal(margin_percentage)
        for upper, risk in _MARGIN_RISK_BRACKETS:
            if margin < upper:
                return risk
        return _HEALTHY_MARGIN_RISK

    @staticmethod
    def determine_risk_level(risk_score: Number | float) -> RiskLevel:
        score = to_decimal(risk_score)
        if score >= HIGH_RISK_THRESHOLD:
            return RiskLevel.HIGH
        if score >= MEDIUM_RISK_THRESHOLD:
            return RiskLevel.MEDIUM
        if score >= LOW_RISK_THRESHOLD:
            return RiskLevel.LOW
        return RiskLevel.VERY_LOW

    @staticmethod
    def requires_human_approval(risk_score: Number | float) -> bool:
        return to_decimal(risk_score) >= MEDIUM_RISK_THRESHOLD

    def get_risk_assessment(
        self,
        request: DiscountRequest,
        risk_score: Number | float,
        customer_history: Optional[CustomerDiscountHistory] = None,
        salesperson_history: Optional[SalespersonDiscountHistory] = None,
    ) -> RiskAssessment:
        """Classify the score and explain it. The reasons are explanatory only; they do not feed the score."""
        score = clamp_score(to_decimal(risk_score))
        reasons: list[str] = []

        if customer_history is None or customer_history.is_empty:
            reasons.append("New customer with no discount history")
        else:
            if customer_history.rejection_rate > Decimal("0.3"):
                reasons.append("Customer has high rejection rate in history")
            average = customer_history.average_approved_discount
            if request.requested_discount_percentage > average * Decimal("1.5"):
                reasons.append(
                    f"Requested discount significantly exceeds customer average ({average:.1f}%)"
                )

        margin = request.estimated_margin_percentage
        if margin is not None:
            if margin < 10:
                reasons.append(f"Very low resulting margin ({margin:.1f}%)")
            elif margin < 15:
                reasons.append(f"Low resulting margin ({margin:.1f}%)")

        if salesperson_history is not None and not salesperson_history.is_empty:
            if salesperson_history.approval_rate < Decimal("0.60"):
                reasons.append("Salesperson has low approval rate history")

        return RiskAssessment(
            score=score,
            level=self.determine_risk_level(score),
            requires_human_approval=self.requires_human_approval(score),
            reasons=tuple(reasons),
        )
