"""Most-restrictive-wins reductions."""

from decimal import Decimal

from decision_engine.domain.services.thresholds import (
    tightest_lower_bound,
    tightest_upper_bound,
    value_or_default,
)


def test_upper_bound_takes_minimum_and_skips_absent():
    candidates = [("a", Decimal("20")), ("b", None), ("c", Decimal("10")), ("d", Decimal("15"))]
    assert tightest_upper_bound(candidates) == ("c", Decimal("10"))


def test_lower_bound_takes_maximum():
    candidates = [("a", Decimal("20")), ("b", Decimal("30")), ("c", None)]
    assert tightest_lower_bound(candidates) == ("b", Decimal("30"))


def test_ties_keep_first_candidate():
    assert tightest_upper_bound([("a", Decimal("5")), ("b", Decimal("5"))])[0] == "a"
    assert tightest_lower_bound([("a", Decimal("5")), ("b", Decimal("5"))])[0] == "a"


def test_no_values_means_no_bound():
    assert tightest_upper_bound([]) is None
    assert tightest_lower_bound([("a", None)]) is None


def test_value_or_default():
    assert value_or_default(None, Decimal("60")) == Decimal("60")
    assert value_or_default(("r", Decimal("40")), Decimal("60")) == Decimal("40")
