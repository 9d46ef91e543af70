"""
Guardrail (business-rule) validation for discount requests.

Rules enforced:
- a blocked (or otherwise non-receivable) customer is rejected and nothing else is checked
- the requested discount cannot exceed the tightest applicable DiscountLimit rule
- no item's margin may fall below the highest applicable MinimumMargin rule
Violations are returned as data in a ValidationResult, never raised.
"""

import logging
from typing import Iterable, Mapping, Optional

from decision_engine.domain.models.business_rule import BusinessRule, RuleScope, RuleType, active_rules_of_type
from decision_engine.domain.models.discount_request import DiscountRequest, DiscountRequestItem
from decision_engine.domain.models.money import Money, Number, to_decimal
from decision_engine.domain.models.parties import Customer, Salesperson, UserRole
from decision_engine.domain.models.product import Product
from decision_engine.domain.services.margin_calculator import MarginCalculator
from decision_engine.domain.services.thresholds import tightest_lower_bound, tightest_upper_bound
from decision_engine.domain.services.validation_result import ValidationResult, ValidationResultBuilder

logger = logging.getLogger(__name__)


class GuardrailValidator:
    """Stateless; every check accumulates into a ValidationResult."""

    def __init__(self, margin_calculator: MarginCalculator | None = None) -> None:
        self._margins = margin_calculator or MarginCalculator()

    def validate_discount_request(
        self,
        request: DiscountRequest,
        customer: Customer,
        salesperson: Salesperson,
        rules: Optional[Iterable[BusinessRule]],
        product_costs: Optional[Mapping[str, Money]] = None,
    ) -> ValidationResult:
        result = ValidationResultBuilder()

        customer_result = self.validate_customer_status(customer)
        result.merge(customer_result)
        if not customer_result.is_valid:
            logger.info(
                "guardrails_customer_rejected",
                extra={"request_id": request.request_id, "customer_id": customer.customer_id},
            )
            return result.build()

        if rules is not None:
            rules = list(rules)
            result.merge(
                self.validate_discount_limits(request.requested_discount_percentage, salesperson.role, rules)
            )
            result.merge(self.validate_minimum_margin(request, rules, product_costs))

        built = result.build()
        logger.info(
            "guardrails_validated",
            extra={
                "request_id": request.request_id,
                "is_valid": built.is_valid,
                "error_count": len(built.errors),
                "warning_count": len(built.warnings),
            },
        )
        return built

    def validate_customer_status(self, customer: Customer) -> ValidationResult:
        if customer.is_blocked():
            return ValidationResult.failure(
                f"Customer '{customer.name}' is blocked and cannot receive discount requests"
            )
        if not customer.can_receive_discount_requests():
            return ValidationResult.failure(
                f"Customer '{customer.name}' (status: {customer.status.value}) cannot receive discount requests"
            )
        return ValidationResult.success()

    def validate_discount_limits(
        self,
        requested_discount_percentage: Number | float,
        role: UserRole,
        rules: Optional[Iterable[BusinessRule]],
    ) -> ValidationResult:
        requested = to_decimal(requested_discount_percentage)
        candidates = (
            (rule, rule.parameters.max_discount_percentage)
            for rule in active_rules_of_type(rules, RuleType.DISCOUNT_LIMIT)
            if rule.scope != RuleScope.USER_ROLE or rule.applies_to(identifier=role.value)
        )
        tightest = tightest_upper_bound(candidates)
        if tightest is None:
            return ValidationResult.success()

        rule, limit = tightest
        if requested > limit:
            return ValidationResult.failure(
                f"Requested discount of {requested:.2f}% exceeds the maximum allowed discount of "
                f"{limit:.2f}% for {role.value} role (Rule: {rule.name})"
            )
        return ValidationResult.success()

    def validate_minimum_margin(
        self,
        request: DiscountRequest,
        rules: Optional[Iterable[BusinessRule]],
        product_costs: Optional[Mapping[str, Money]],
    ) -> ValidationResult:
        margin_rules = active_rules_of_type(rules, RuleType.MINIMUM_MARGIN)
        if not margin_rules:
            return ValidationResult.success()

        result = ValidationResultBuilder()
        if not product_costs:
            result.add_warning("Product costs not provided - margin validation skipped")
            return result.build()

        for item in request.items:
            cost = product_costs.get(item.product_id)
            if cost is None:
                result.add_warning(f"Cost not found for product '{item.product_name}' - margin validation skipped")
                continue
            error = self._item_margin_error(item, cost, margin_rules)
            if error:
                result.add_error(error)

        return result.build()

    def _item_margin_error(
        self, item: DiscountRequestItem, cost: Money, margin_rules: list[BusinessRule]
    ) -> Optional[str]:
        candidates = (
            (rule, rule.parameters.minimum_margin_percentage)
            for rule in margin_rules
            if rule.scope != RuleScope.PRODUCT or rule.target_entity_id == item.product_id
        )
        tightest = tightest_lower_bound(candidates)
        if tightest is None:
            return None

        rule, floor = tightest
        if item.unit_final_price.amount <= 0:
            return (
                f"Product '{item.product_name}': fully discounted item has no margin; "
                f"minimum required margin is {floor:.2f}% (Rule: {rule.name})"
            )
        actual = self._margins.margin_percentage(item.unit_final_price, cost)
        if actual < floor:
            return (
                f"Product '{item.product_name}': Margin of {actual:.2f}% is below the minimum required "
                f"margin of {floor:.2f}% (Rule: {rule.name})"
            )
        return None

    def validate_product_availability(self, products: Optional[Iterable[Product]]) -> ValidationResult:
        products = list(products or [])
        if not products:
            return ValidationResult.failure("No products provided")
        result = ValidationResultBuilder()
        for product in products:
            if not product.can_be_discounted():
                result.add_error(
                    f"Product '{product.name}' (status: {product.status.value}) cannot be included in discount requests"
                )
        return result.build()

    def validate_user_permissions(self, user: Optional[Salesperson]) -> ValidationResult:
        if user is None:
            return ValidationResult.failure("User not found")
        result = ValidationResultBuilder()
        if user.is_blocked():
            result.add_error(f"User '{user.name}' is blocked")
        elif not user.is_active():
            result.add_error(f"User '{user.name}' is not active")
        return result.build()

    def is_auto_approval_allowed(
        self,
        request: DiscountRequest,
        rules: Optional[Iterable[BusinessRule]],
        risk_score: Number | float,
    ) -> bool:
        """True iff some active AutoApproval rule's ceilings (when present) are all respected."""
        score = to_decimal(risk_score)
        requested = request.requested_discount_percentage
        for rule in active_rules_of_type(rules, RuleType.AUTO_APPROVAL):
            params = rule.parameters
            if params.max_discount_percentage is not None and requested > params.max_discount_percentage:
                continue
            if params.max_risk_score is not None and score > params.max_risk_score:
                continue
            return True
        return False
