"""Aggregated discount history used by risk scoring. Built by the caller from its own store."""

from dataclasses import dataclass
from decimal import Decimal

from decision_engine.domain.exceptions import InvalidArgumentError
from decision_engine.domain.models.money import to_decimal


@dataclass(frozen=True)
class CustomerDiscountHistory:
    total_requests: int = 0
    approved_requests: int = 0
    rejected_requests: int = 0
    average_approved_discount: Decimal = Decimal("0")
    max_approved_discount: Decimal = Decimal("0")
    has_payment_delays: bool = False
    has_defaults: bool = False

    def __post_init__(self) -> None:
        if min(self.total_requests, self.approved_requests, self.rejected_requests) < 0:
            raise InvalidArgumentError("request counts cannot be negative")
        object.__setattr__(self, "average_approved_discount", to_decimal(self.average_approved_discount))
        object.__setattr__(self, "max_approved_discount", to_decimal(self.max_approved_discount))

    @property
    def is_empty(self) -> bool:
        return self.total_requests == 0

    @property
    def rejection_rate(self) -> Decimal:
        if self.total_requests == 0:
            return Decimal("0")
        return Decimal(self.rejected_requests) / Decimal(self.total_requests)


@dataclass(frozen=True)
class SalespersonDiscountHistory:
    total_requests: int = 0
    approved_requests: int = 0
    average_requested_discount: Decimal = Decimal("0")
    win_rate: Decimal = Decimal("0")  # conversion after discount approval, 0..1
    recent_rejection_trend: Decimal = Decimal("0")  # rejection rate over the last 30 days, 0..1

    def __post_init__(self) -> None:
        if min(self.total_requests, self.approved_requests) < 0:
            raise InvalidArgumentError("request counts cannot be negative")
        object.__setattr__(self, "average_requested_discount", to_decimal(self.average_requested_discount))
        object.__setattr__(self, "win_rate", to_decimal(self.win_rate))
        object.__setattr__(self, "recent_rejection_trend", to_decimal(self.recent_rejection_trend))

    @property
    def is_empty(self) -> bool:
        return self.total_requests == 0

    @property
    def approval_rate(self) -> Decimal:
        if self.total_requests == 0:
            return Decimal("0")
        return Decimal(self.approved_requests) / Decimal(self.total_requests)
