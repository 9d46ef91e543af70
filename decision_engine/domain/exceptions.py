"""Domain-specific exceptions. Pure domain layer, no infrastructure."""


class DomainError(Exception):
    """Base for all domain-layer errors."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class InvalidArgumentError(DomainError):
    """Raised when a value passed to a domain operation is out of range or malformed."""


class CurrencyMismatchError(InvalidArgumentError):
    """Raised when an operation mixes amounts in different currencies."""


class InvalidStateError(DomainError):
    """Raised when an entity is asked to do something its current state forbids."""


class InvalidStatusTransitionError(InvalidStateError):
    """Raised when a discount request status transition is not allowed."""
