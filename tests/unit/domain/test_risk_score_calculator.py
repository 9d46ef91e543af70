"""RiskScoreCalculator: sub-scores, weighting, levels, assessment reasons."""

from decimal import Decimal

import pytest

from decision_engine.domain.models import (
    CustomerClassification,
    CustomerDiscountHistory,
    CustomerStatus,
    Money,
    SalespersonDiscountHistory,
)
from decision_engine.domain.services import RiskLevel, RiskScoreCalculator


@pytest.fixture
def calc():
    return RiskScoreCalculator()


def customer_history(total=10, rejected=1, average="10", maximum="15", delays=False, defaults=False):
    return CustomerDiscountHistory(
        total_requests=total,
        approved_requests=total - rejected,
        rejected_requests=rejected,
        average_approved_discount=Decimal(average),
        max_approved_discount=Decimal(maximum),
        has_payment_delays=delays,
        has_defaults=defaults,
    )


def salesperson_history(total=10, approved=9, average="10", win="0.80", trend="0"):
    return SalespersonDiscountHistory(
        total_requests=total,
        approved_requests=approved,
        average_requested_discount=Decimal(average),
        win_rate=Decimal(win),
        recent_rejection_trend=Decimal(trend),
    )


# --- customer history ---

def test_prospect_or_no_history_is_fixed_risk(calc, make_customer):
    assert calc.customer_history_risk(make_customer(status=CustomerStatus.PROSPECT), customer_history()) == 70
    assert calc.customer_history_risk(make_customer(), None) == 70
    assert calc.customer_history_risk(make_customer(), CustomerDiscountHistory()) == 70


@pytest.mark.parametrize("rejected,expected", [(6, 40), (4, 25), (2, 10), (1, 0)])
def test_rejection_rate_brackets(calc, make_customer, rejected, expected):
    assert calc.customer_history_risk(make_customer(), customer_history(rejected=rejected)) == expected


def test_customer_risk_accumulates_and_clamps(calc, make_customer):
    worst = make_customer(status=CustomerStatus.INACTIVE, classification=CustomerClassification.C)
    history = customer_history(rejected=6, delays=True, defaults=True)
    # 40 + 20 + 30 + 10 + 20 = 120, clamped
    assert calc.customer_history_risk(worst, history) == 100


def test_top_tier_never_goes_negative(calc, make_customer):
    best = make_customer(classification=CustomerClassification.A)
    assert calc.customer_history_risk(best, customer_history(rejected=0)) == 0


# --- discount deviation ---

@pytest.mark.parametrize("discount,expected", [("35", 90), ("25", 70), ("15", 50), ("10", 30)])
def test_deviation_without_history(calc, make_request, discount, expected):
    assert calc.discount_deviation_risk(make_request(discount=discount), None) == expected


@pytest.mark.parametrize(
    "discount,expected",
    [
        ("10", 20),
        ("13", 40),
        ("15", 40),
        ("16", 70),
        ("19", 95),
    ],
)
def test_deviation_brackets_with_history(calc, make_request, discount, expected):
    # history: average 10, max 15
    assert calc.discount_deviation_risk(make_request(discount=discount), customer_history()) == expected


def test_deviation_adds_excess_over_historical_max(calc, make_request):
    # average 10, max 15, requested 25: deviation 150% -> 90, excess 66% -> +30, clamped
    assert calc.discount_deviation_risk(make_request(discount="25"), customer_history()) == 100
    # requested 17: deviation 70% -> 60, excess 13% -> +10
    assert calc.discount_deviation_risk(make_request(discount="17"), customer_history()) == 70


def test_zero_average_uses_requested_times_ten(calc, make_request):
    history = customer_history(average="0", maximum="0")
    # deviation 50 -> 40, any excess over a zero max -> +30
    assert calc.discount_deviation_risk(make_request(discount="5"), history) == 70


# --- salesperson ---

def test_salesperson_without_history(calc, make_salesperson):
    assert calc.salesperson_behavior_risk(make_salesperson(), None) == 50


@pytest.mark.parametrize(
    "history,expected",
    [
        (salesperson_history(approved=10), 30),
        (salesperson_history(approved=9), 15),
        (salesperson_history(approved=4), 35),
        (salesperson_history(approved=6), 20),
        (salesperson_history(approved=8, average="30"), 25),
        (salesperson_history(approved=8, average="20"), 15),
        (salesperson_history(approved=8, win="0.5"), 20),
        (salesperson_history(approved=8, win="0.9"), 0),
        (salesperson_history(approved=8, trend="0.5"), 20),
    ],
)
def test_salesperson_signals(calc, make_salesperson, history, expected):
    assert calc.salesperson_behavior_risk(make_salesperson(), history) == expected


# --- margin ---

@pytest.mark.parametrize(
    "margin,expected",
    [(-1, 100), (0, 95), (4.99, 95), (5, 80), (12, 60), (18, 40), (22, 25), (28, 15), (30, 5), (60, 5)],
)
def test_margin_brackets(calc, margin, expected):
    assert calc.margin_risk(margin) == expected


def test_margin_risk_averages_items_with_known_cost(calc, make_request, make_item):
    request = make_request(items=[make_item("p1", "100", 1, "0"), make_item("p2", "100", 1, "0"), make_item("p3")])
    costs = {"p1": Money(Decimal("98")), "p2": Money(Decimal("50"))}
    # p1 margin 2% -> 95, p2 margin 50% -> 5, p3 unknown and skipped
    assert calc.margin_impact_risk(request, costs) == 50


def test_margin_risk_without_costs_uses_estimated_margin(calc, make_request):
    assert calc.margin_impact_risk(make_request(estimated_margin_percentage=Decimal("22")), None) == 25
    assert calc.margin_impact_risk(make_request(), None) == 95


def test_margin_risk_with_no_matching_costs(calc, make_request):
    assert calc.margin_impact_risk(make_request(), {"other": Money(Decimal("1"))}) == 50


def test_fully_discounted_item_is_maximum_risk(calc, make_request, make_item):
    request = make_request(discount="100", items=[make_item(discount="100")])
    assert calc.margin_impact_risk(request, {"prod-1": Money(Decimal("10"))}) == 100


# --- total ---

def test_weighted_total(calc, make_request, make_customer, make_salesperson):
    breakdown = calc.calculate_breakdown(
        make_request(discount="10", estimated_margin_percentage=Decimal("22")),
        make_customer(),
        make_salesperson(),
        customer_history(rejected=2),
        salesperson_history(approved=9),
    )
    # 10*.25 + 20*.35 + 15*.15 + 25*.25
    assert breakdown.total == Decimal("18")


@pytest.mark.parametrize("discount", ["0", "10", "35", "60", "100"])
def test_score_is_bounded(calc, make_request, make_customer, make_salesperson, discount):
    worst = make_customer(status=CustomerStatus.INACTIVE, classification=CustomerClassification.C)
    score = calc.calculate_risk_score(
        make_request(discount=discount),
        worst,
        make_salesperson(),
        customer_history(rejected=6, average="1", maximum="1", delays=True, defaults=True),
        salesperson_history(approved=1, average="40", win="0.1", trend="0.9"),
    )
    assert Decimal("0") <= score <= Decimal("100")


@pytest.mark.parametrize(
    "score,level",
    [(0, RiskLevel.VERY_LOW), (29.99, RiskLevel.VERY_LOW), (30, RiskLevel.LOW), (59.99, RiskLevel.LOW),
     (60, RiskLevel.MEDIUM), (84.99, RiskLevel.MEDIUM), (85, RiskLevel.HIGH), (100, RiskLevel.HIGH)],
)
def test_risk_level_boundaries(calc, score, level):
    assert calc.determine_risk_level(score) == level


def test_requires_human_approval_at_sixty(calc):
    assert not calc.requires_human_approval(Decimal("59.99"))
    assert calc.requires_human_approval(60)


def test_new_customer_large_discount_needs_human(calc, make_request, make_customer, make_salesperson):
    request = make_request(discount="35")
    breakdown = calc.calculate_breakdown(request, make_customer(status=CustomerStatus.PROSPECT), make_salesperson())
    assert breakdown.customer_risk == 70
    assert breakdown.discount_deviation_risk == 90
    assert breakdown.total >= 70
    assert calc.requires_human_approval(breakdown.total)


def test_assessment_reasons(calc, make_request):
    request = make_request(discount="20", estimated_margin_percentage=Decimal("8"))
    assessment = calc.get_risk_assessment(
        request, 72, customer_history(rejected=4), salesperson_history(approved=5)
    )
    assert assessment.level == RiskLevel.MEDIUM
    assert assessment.requires_human_approval
    assert "Customer has high rejection rate in history" in assessment.reasons
    assert any("exceeds customer average" in r for r in assessment.reasons)
    assert "Very low resulting margin (8.0%)" in assessment.reasons
    assert "Salesperson has low approval rate history" in assessment.reasons


def test_assessment_for_new_customer(calc, make_request):
    assessment = calc.get_risk_assessment(make_request(), 10)
    assert assessment.reasons == ("New customer with no discount history",)
    assert assessment.level == RiskLevel.VERY_LOW
