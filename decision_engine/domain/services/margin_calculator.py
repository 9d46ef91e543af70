"""Margin arithmetic. Pure functions over Money; no side effects, no I/O."""

from decimal import Decimal

from decision_engine.domain.exceptions import CurrencyMismatchError, InvalidArgumentError
from decision_engine.domain.models.money import Money, Number, round2, to_decimal

_HUNDRED = Decimal("100")


def _percentage(value: Number | float, name: str) -> Decimal:
    pct = to_decimal(value)
    if pct < 0 or pct > _HUNDRED:
        raise InvalidArgumentError(f"{name} must be between 0 and 100, got {pct}")
    return pct


class MarginCalculator:
    """
    margin = (final_price - cost) / final_price * 100, rounded to 2 places.
    All prices must share one currency.
    """

    def margin_percentage(self, final_price: Money, cost: Money) -> Decimal:
        if final_price.amount <= 0:
            raise InvalidArgumentError("Final price must be greater than zero")
        if final_price.currency != cost.currency:
            raise CurrencyMismatchError(
                f"Cannot calculate margin with different currencies: {final_price.currency} and {cost.currency}"
            )
        margin = (final_price.amount - cost.amount) / final_price.amount * _HUNDRED
        return round2(margin)

    def margin_after_discount(self, base_price: Money, cost: Money, discount_percentage: Number | float) -> Decimal:
        pct = _percentage(discount_percentage, "discount_percentage")
        final_price = base_price * (1 - pct / _HUNDRED)
        return self.margin_percentage(final_price, cost)

    def profit_amount(self, final_price: Money, cost: Money) -> Decimal:
        """Signed profit; Money cannot hold a loss so the raw amount is returned."""
        if final_price.currency != cost.currency:
            raise CurrencyMismatchError(
                f"Cannot operate on different currencies: {final_price.currency} and {cost.currency}"
            )
        return final_price.amount - cost.amount

    @staticmethod
    def is_margin_above_minimum(actual_margin: Number | float, minimum_margin: Number | float) -> bool:
        return to_decimal(actual_margin) >= to_decimal(minimum_margin)

    def estimated_cost(self, final_price: Money, desired_margin_percentage: Number | float) -> Money:
        """Inverse of margin_percentage: cost = final_price * (1 - margin / 100)."""
        pct = _percentage(desired_margin_percentage, "desired_margin_percentage")
        return final_price * (1 - pct / _HUNDRED)

    def max_discount_for_minimum_margin(
        self, base_price: Money, cost: Money, minimum_margin_percentage: Number | float
    ) -> Decimal:
        """Largest discount (percent) that still keeps the margin at the floor. Never negative."""
        pct = _percentage(minimum_margin_percentage, "minimum_margin_percentage")
        if base_price.amount <= 0:
            raise InvalidArgumentError("Base price must be greater than zero")
        if base_price.currency != cost.currency:
            raise CurrencyMismatchError(
                f"Cannot calculate margin with different currencies: {base_price.currency} and {cost.currency}"
            )
        if pct == _HUNDRED:
            # A 100% margin needs zero cost; any cost makes every discount infeasible.
            return Decimal("0.00") if cost.amount > 0 else Decimal("100.00")
        minimum_final_price = cost.amount / (1 - pct / _HUNDRED)
        max_discount = (base_price.amount - minimum_final_price) / base_price.amount * _HUNDRED
        return max(Decimal("0.00"), round2(max_discount))

    def margin_impact(self, base_price: Money, cost: Money, discount_percentage: Number | float) -> Decimal:
        """Margin points lost by applying the discount (positive = erosion)."""
        before = self.margin_percentage(base_price, cost)
        after = self.margin_after_discount(base_price, cost, discount_percentage)
        return before - after

    def validate_minimum_margin(
        self,
        base_price: Money,
        cost: Money,
        discount_percentage: Number | float,
        minimum_margin_percentage: Number | float,
    ) -> bool:
        after = self.margin_after_discount(base_price, cost, discount_percentage)
        return self.is_margin_above_minimum(after, minimum_margin_percentage)

    def aggregate_margin(self, total_final_price: Money, total_cost: Money) -> Decimal:
        return self.margin_percentage(total_final_price, total_cost)
