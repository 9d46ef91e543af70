"""Customer and salesperson read models supplied by the caller at evaluation time."""

from dataclasses import dataclass
from enum import Enum

from decision_engine.domain.exceptions import InvalidArgumentError


class CustomerStatus(str, Enum):
    ACTIVE = "Active"
    INACTIVE = "Inactive"
    BLOCKED = "Blocked"
    PROSPECT = "Prospect"


class CustomerClassification(str, Enum):
    """A is the top tier, C the bottom tier."""

    A = "A"
    B = "B"
    C = "C"
    UNCLASSIFIED = "Unclassified"


class UserRole(str, Enum):
    SALESPERSON = "Salesperson"
    MANAGER = "Manager"
    ADMIN = "Admin"


class UserStatus(str, Enum):
    ACTIVE = "Active"
    INACTIVE = "Inactive"
    BLOCKED = "Blocked"
    PENDING_ACTIVATION = "PendingActivation"


@dataclass(frozen=True)
class Customer:
    customer_id: str
    tenant_id: str
    name: str
    status: CustomerStatus = CustomerStatus.PROSPECT
    classification: CustomerClassification = CustomerClassification.UNCLASSIFIED
    segment: str | None = None

    def __post_init__(self) -> None:
        if not self.customer_id:
            raise InvalidArgumentError("customer_id must not be empty")
        if not self.name or len(self.name.strip()) < 2:
            raise InvalidArgumentError("Customer name must have at least 2 characters")

    def is_active(self) -> bool:
        return self.status == CustomerStatus.ACTIVE

    def is_blocked(self) -> bool:
        return self.status == CustomerStatus.BLOCKED

    def is_prospect(self) -> bool:
        return self.status == CustomerStatus.PROSPECT

    def can_receive_discount_requests(self) -> bool:
        """Only active customers and prospects may receive new discount requests."""
        return self.status in (CustomerStatus.ACTIVE, CustomerStatus.PROSPECT)

    def is_top_tier(self) -> bool:
        return self.classification == CustomerClassification.A

    def is_bottom_tier(self) -> bool:
        return self.classification == CustomerClassification.C


@dataclass(frozen=True)
class Salesperson:
    """A tenant user who creates (or reviews) discount requests."""

    user_id: str
    tenant_id: str
    name: str
    role: UserRole = UserRole.SALESPERSON
    status: UserStatus = UserStatus.ACTIVE

    def __post_init__(self) -> None:
        if not self.user_id:
            raise InvalidArgumentError("user_id must not be empty")

    def is_active(self) -> bool:
        return self.status == UserStatus.ACTIVE

    def is_blocked(self) -> bool:
        return self.status == UserStatus.BLOCKED

    def is_manager(self) -> bool:
        return self.role == UserRole.MANAGER

    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    def is_salesperson(self) -> bool:
        return self.role == UserRole.SALESPERSON
