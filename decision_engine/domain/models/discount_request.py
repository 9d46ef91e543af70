"""Discount request aggregate. Pure business semantics, no ORM or infrastructure."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Dict, FrozenSet, Iterable, Optional

from decision_engine.domain.exceptions import (
    CurrencyMismatchError,
    InvalidArgumentError,
    InvalidStateError,
    InvalidStatusTransitionError,
)
from decision_engine.domain.models.money import Money, Number, to_decimal

_HUNDRED = Decimal("100")


class DiscountRequestStatus(str, Enum):
    """Lifecycle status for discount requests. Transitions are validated."""

    UNDER_ANALYSIS = "UnderAnalysis"
    APPROVED = "Approved"
    REJECTED = "Rejected"
    AUTO_APPROVED = "AutoApproved"
    ADJUSTMENT_REQUESTED = "AdjustmentRequested"


# Allowed status transitions: from_status -> set of valid next statuses
_STATUS_TRANSITIONS: Dict[DiscountRequestStatus, FrozenSet[DiscountRequestStatus]] = {
    DiscountRequestStatus.UNDER_ANALYSIS: frozenset(
        {
            DiscountRequestStatus.APPROVED,
            DiscountRequestStatus.REJECTED,
            DiscountRequestStatus.AUTO_APPROVED,
            DiscountRequestStatus.ADJUSTMENT_REQUESTED,
        }
    ),
    DiscountRequestStatus.ADJUSTMENT_REQUESTED: frozenset({DiscountRequestStatus.UNDER_ANALYSIS}),
    DiscountRequestStatus.APPROVED: frozenset(),
    DiscountRequestStatus.REJECTED: frozenset(),
    DiscountRequestStatus.AUTO_APPROVED: frozenset(),
}

_EDITABLE_STATUSES = frozenset(
    {DiscountRequestStatus.UNDER_ANALYSIS, DiscountRequestStatus.ADJUSTMENT_REQUESTED}
)

TERMINAL_STATUSES = frozenset(
    {
        DiscountRequestStatus.APPROVED,
        DiscountRequestStatus.REJECTED,
        DiscountRequestStatus.AUTO_APPROVED,
    }
)


def _validate_transition(current: DiscountRequestStatus, new: DiscountRequestStatus) -> None:
    """Validate that transition from current to new is allowed. Raises if invalid."""
    allowed = _STATUS_TRANSITIONS.get(current, frozenset())
    if new not in allowed:
        raise InvalidStatusTransitionError(
            f"Invalid status transition from {current.value} to {new.value}"
        )


def validate_percentage(value: Number | float, name: str = "discount_percentage") -> Decimal:
    pct = to_decimal(value)
    if pct < 0 or pct > _HUNDRED:
        raise InvalidArgumentError(f"{name} must be between 0 and 100, got {pct}")
    return pct


def _ensure_same_currency(first: "DiscountRequestItem", item: "DiscountRequestItem") -> None:
    if item.currency != first.currency:
        raise CurrencyMismatchError(
            f"All items must share one currency: {first.product_name} is {first.currency}, "
            f"{item.product_name} is {item.currency}"
        )


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class DiscountRequestItem:
    """One line of a discount request. Unit final price is derived from base price and item discount."""

    product_id: str
    product_name: str
    quantity: int
    unit_base_price: Money
    discount_percentage: Decimal = Decimal("0")
    unit_final_price: Money = field(init=False)

    def __post_init__(self) -> None:
        if not self.product_id:
            raise InvalidArgumentError("product_id must not be empty")
        if not self.product_name or not self.product_name.strip():
            raise InvalidArgumentError("Product name cannot be empty")
        if isinstance(self.quantity, bool) or not isinstance(self.quantity, int) or self.quantity <= 0:
            raise InvalidArgumentError("Quantity must be a positive integer")
        if not isinstance(self.unit_base_price, Money):
            raise InvalidArgumentError("unit_base_price must be Money")
        pct = validate_percentage(self.discount_percentage)
        object.__setattr__(self, "discount_percentage", pct)
        final = self.unit_base_price * (1 - pct / _HUNDRED)
        object.__setattr__(self, "unit_final_price", final)

    @property
    def currency(self) -> str:
        return self.unit_base_price.currency

    def total_base_price(self) -> Money:
        return self.unit_base_price * self.quantity

    def total_final_price(self) -> Money:
        return self.unit_final_price * self.quantity

    def total_discount_amount(self) -> Money:
        return self.total_base_price() - self.total_final_price()

    def with_discount_percentage(self, discount_percentage: Number) -> "DiscountRequestItem":
        return DiscountRequestItem(
            self.product_id, self.product_name, self.quantity, self.unit_base_price, to_decimal(discount_percentage)
        )

    def with_quantity(self, quantity: int) -> "DiscountRequestItem":
        return DiscountRequestItem(
            self.product_id, self.product_name, quantity, self.unit_base_price, self.discount_percentage
        )

    def __str__(self) -> str:
        return f"{self.product_name} - Qty: {self.quantity}, Discount: {self.discount_percentage:.2f}%"


@dataclass
class DiscountRequest:
    """
    Aggregate root. Always holds at least one item; product ids are unique within a request.
    Status must be changed only via the lifecycle methods, which enforce the transition table.
    """

    customer_id: str
    salesperson_id: str
    tenant_id: str
    items: list[DiscountRequestItem]
    requested_discount_percentage: Decimal
    request_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    status: DiscountRequestStatus = DiscountRequestStatus.UNDER_ANALYSIS
    risk_score: Optional[Decimal] = None
    estimated_margin_percentage: Optional[Decimal] = None
    comments: Optional[str] = None
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: Optional[datetime] = None
    decision_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        for name in ("customer_id", "salesperson_id", "tenant_id"):
            if not getattr(self, name):
                raise InvalidArgumentError(f"{name} must not be empty")
        self.requested_discount_percentage = validate_percentage(
            self.requested_discount_percentage, "requested_discount_percentage"
        )
        items = list(self.items or [])
        if not items:
            raise InvalidArgumentError("Discount request must have at least one item")
        seen: set[str] = set()
        for item in items:
            _ensure_same_currency(items[0], item)
            if item.product_id in seen:
                raise InvalidArgumentError(f"Product {item.product_name} appears more than once in the request")
            seen.add(item.product_id)
        self.items = items
        if self.risk_score is not None:
            self.risk_score = self._validated_risk_score(self.risk_score)
        if self.estimated_margin_percentage is not None:
            self.estimated_margin_percentage = self._validated_margin(self.estimated_margin_percentage)

    # -- lifecycle -------------------------------------------------------

    def _transition_to(self, new_status: DiscountRequestStatus) -> None:
        _validate_transition(self.status, new_status)
        now = _utcnow()
        self.status = new_status
        self.updated_at = now
        if new_status in TERMINAL_STATUSES:
            self.decision_at = now

    def approve(self) -> None:
        self._transition_to(DiscountRequestStatus.APPROVED)

    def reject(self) -> None:
        self._transition_to(DiscountRequestStatus.REJECTED)

    def auto_approve(self) -> None:
        self._transition_to(DiscountRequestStatus.AUTO_APPROVED)

    def request_adjustment(self) -> None:
        self._transition_to(DiscountRequestStatus.ADJUSTMENT_REQUESTED)

    def return_to_analysis(self) -> None:
        self._transition_to(DiscountRequestStatus.UNDER_ANALYSIS)

    # -- mutation --------------------------------------------------------

    def _ensure_editable(self) -> None:
        if self.status not in _EDITABLE_STATUSES:
            raise InvalidStateError(
                f"Items can only change while under analysis or adjustment requested (status={self.status.value})"
            )

    def add_item(self, item: DiscountRequestItem) -> None:
        self._ensure_editable()
        if any(i.product_id == item.product_id for i in self.items):
            raise InvalidStateError(f"Product {item.product_name} is already in the request")
        _ensure_same_currency(self.items[0], item)
        self.items.append(item)
        self.updated_at = _utcnow()

    def remove_item(self, product_id: str) -> None:
        self._ensure_editable()
        remaining = [i for i in self.items if i.product_id != product_id]
        if len(remaining) == len(self.items):
            raise InvalidStateError(f"Product {product_id} not found in the request")
        if not remaining:
            raise InvalidStateError("Cannot remove the last item; a discount request must have at least one item")
        self.items = remaining
        self.updated_at = _utcnow()

    @staticmethod
    def _validated_risk_score(value: Number | float) -> Decimal:
        score = to_decimal(value)
        if score < 0 or score > _HUNDRED:
            raise InvalidArgumentError(f"Risk score must be between 0 and 100, got {score}")
        return score

    @staticmethod
    def _validated_margin(value: Number | float) -> Decimal:
        margin = to_decimal(value)
        if margin < -_HUNDRED or margin > _HUNDRED:
            raise InvalidArgumentError(f"Estimated margin must be between -100 and 100, got {margin}")
        return margin

    def set_risk_score(self, risk_score: Number | float) -> None:
        self.risk_score = self._validated_risk_score(risk_score)
        self.updated_at = _utcnow()

    def set_estimated_margin_percentage(self, margin: Number | float) -> None:
        self.estimated_margin_percentage = self._validated_margin(margin)
        self.updated_at = _utcnow()

    def update_requested_discount_percentage(self, pct: Number | float) -> None:
        self._ensure_editable()
        self.requested_discount_percentage = validate_percentage(pct, "requested_discount_percentage")
        self.updated_at = _utcnow()

    def update_comments(self, comments: Optional[str]) -> None:
        self.comments = comments
        self.updated_at = _utcnow()

    # -- queries ---------------------------------------------------------

    def _sum(self, prices: Iterable[Money]) -> Money:
        total = Money.zero(self.items[0].currency)
        for price in prices:
            total = total + price
        return total

    def total_base_price(self) -> Money:
        return self._sum(i.total_base_price() for i in self.items)

    def total_final_price(self) -> Money:
        return self._sum(i.total_final_price() for i in self.items)

    def total_discount_amount(self) -> Money:
        return self.total_base_price() - self.total_final_price()

    def is_pending_approval(self) -> bool:
        return self.status == DiscountRequestStatus.UNDER_ANALYSIS

    def is_approved(self) -> bool:
        return self.status in (DiscountRequestStatus.APPROVED, DiscountRequestStatus.AUTO_APPROVED)

    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def has_high_risk(self, threshold: Number = 70) -> bool:
        return self.risk_score is not None and self.risk_score > to_decimal(threshold)
