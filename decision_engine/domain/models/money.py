"""Money value object. Fixed-point Decimal amounts; mixed-currency arithmetic is rejected."""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from functools import total_ordering
from typing import Union

from decision_engine.domain.exceptions import CurrencyMismatchError, InvalidArgumentError

DEFAULT_CURRENCY = "USD"
_CENTS = Decimal("0.01")

Number = Union[Decimal, int, str]


def to_decimal(value: Number | float) -> Decimal:
    """Convert to Decimal. Floats go through str() so 0.1 stays 0.1."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise InvalidArgumentError("boolean is not a numeric amount")
    try:
        if isinstance(value, float):
            return Decimal(str(value))
        return Decimal(value)
    except (InvalidOperation, TypeError, ValueError) as e:
        raise InvalidArgumentError(f"not a numeric value: {value!r}") from e


def round2(value: Decimal) -> Decimal:
    return value.quantize(_CENTS, rounding=ROUND_HALF_UP)


@total_ordering
@dataclass(frozen=True)
class Money:
    """Immutable (amount, currency) pair. Amount is non-negative and kept to 2 decimal places."""

    amount: Decimal
    currency: str = DEFAULT_CURRENCY

    def __post_init__(self) -> None:
        amount = to_decimal(self.amount)
        if not amount.is_finite():
            raise InvalidArgumentError("Money amount must be finite")
        if amount < 0:
            raise InvalidArgumentError("Money amount cannot be negative")
        if not self.currency or not self.currency.strip():
            raise InvalidArgumentError("Currency cannot be empty")
        currency = self.currency.strip().upper()
        if len(currency) != 3:
            raise InvalidArgumentError("Currency must be a 3-letter code (e.g. USD, BRL, EUR)")
        object.__setattr__(self, "amount", round2(amount))
        object.__setattr__(self, "currency", currency)

    @classmethod
    def zero(cls, currency: str = DEFAULT_CURRENCY) -> "Money":
        return cls(Decimal("0"), currency)

    def _check_currency(self, other: "Money") -> None:
        if not isinstance(other, Money):
            raise InvalidArgumentError(f"expected Money, got {type(other).__name__}")
        if self.currency != other.currency:
            raise CurrencyMismatchError(
                f"Cannot operate on different currencies: {self.currency} and {other.currency}"
            )

    def __add__(self, other: "Money") -> "Money":
        self._check_currency(other)
        return Money(self.amount + other.amount, self.currency)

    def __sub__(self, other: "Money") -> "Money":
        self._check_currency(other)
        return Money(self.amount - other.amount, self.currency)

    def __mul__(self, multiplier: Number) -> "Money":
        return Money(self.amount * to_decimal(multiplier), self.currency)

    __rmul__ = __mul__

    def __truediv__(self, divisor: Number) -> "Money":
        d = to_decimal(divisor)
        if d == 0:
            raise InvalidArgumentError("Cannot divide money by zero")
        return Money(self.amount / d, self.currency)

    def __lt__(self, other: "Money") -> bool:
        self._check_currency(other)
        return self.amount < other.amount

    def __str__(self) -> str:
        return f"{self.currency} {self.amount:,.2f}"
