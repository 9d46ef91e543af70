"""Domain models: money, discount requests, guardrail rules, parties and histories."""

from decision_engine.domain.models.business_rule import (
    AutoApprovalParameters,
    BusinessRule,
    DiscountLimitParameters,
    MinimumMarginParameters,
    RuleScope,
    RuleType,
    active_rules_of_type,
    parse_rule_parameters,
)
from decision_engine.domain.models.discount_request import (
    DiscountRequest,
    DiscountRequestItem,
    DiscountRequestStatus,
)
from decision_engine.domain.models.history import CustomerDiscountHistory, SalespersonDiscountHistory
from decision_engine.domain.models.money import Money
from decision_engine.domain.models.parties import (
    Customer,
    CustomerClassification,
    CustomerStatus,
    Salesperson,
    UserRole,
    UserStatus,
)
from decision_engine.domain.models.product import Product, ProductStatus

__all__ = [
    "AutoApprovalParameters",
    "BusinessRule",
    "Customer",
    "CustomerClassification",
    "CustomerDiscountHistory",
    "CustomerStatus",
    "DiscountLimitParameters",
    "DiscountRequest",
    "DiscountRequestItem",
    "DiscountRequestStatus",
    "MinimumMarginParameters",
    "Money",
    "Product",
    "ProductStatus",
    "RuleScope",
    "RuleType",
    "Salesperson",
    "SalespersonDiscountHistory",
    "UserRole",
    "UserStatus",
    "active_rules_of_type",
    "parse_rule_parameters",
]
