"""DiscountDecisionService.try_auto_approve end to end against the advisory stub."""

from decimal import Decimal

import pytest

from decision_engine.application.advisory_gateway import AdvisoryResilienceGateway
from decision_engine.application.decision_service import DiscountDecisionService
from decision_engine.application.schemas import GovernanceSettings
from decision_engine.core.context import tenant_id_ctx
from decision_engine.domain.exceptions import InvalidStateError
from decision_engine.domain.models import (
    CustomerClassification,
    CustomerDiscountHistory,
    CustomerStatus,
    DiscountRequestStatus,
    Money,
    RuleType,
    SalespersonDiscountHistory,
    UserRole,
)
from decision_engine.domain.services import RiskLevel
from decision_engine.infrastructure.cache.memory_cache import InMemoryResponseCache
from decision_engine.observability.metrics import MetricsCollector
from decision_engine.security.exceptions import TenantIsolationError

TENANT = "tenant-1"
COSTS = {"prod-1": Money(Decimal("67.50"))}


@pytest.fixture
def gateway(advisory_port, clock, settings):
    return AdvisoryResilienceGateway(
        advisory_port, InMemoryResponseCache(clock=clock), MetricsCollector(clock=clock), settings=settings
    )


@pytest.fixture
def service(gateway):
    return DiscountDecisionService(gateway)


@pytest.fixture
def histories():
    return {
        "customer_history": CustomerDiscountHistory(10, 9, 1, Decimal("10"), Decimal("15")),
        "salesperson_history": SalespersonDiscountHistory(10, 9, Decimal("10"), Decimal("0.80")),
    }


@pytest.fixture
def parties(make_customer, make_salesperson):
    return make_customer(classification=CustomerClassification.A), make_salesperson()


@pytest.fixture
def request_50_units(make_request, make_item):
    return make_request(items=[make_item(unit_price="100", quantity=50, discount="10")])


async def attempt(service, request, parties, rules=(), tenant_id=TENANT, **kwargs):
    customer, salesperson = parties
    return await service.try_auto_approve(tenant_id, request, customer, salesperson, list(rules), **kwargs)


@pytest.mark.asyncio
async def test_low_risk_request_is_auto_approved(service, request_50_units, parties, histories, make_rule):
    rule = make_rule(RuleType.AUTO_APPROVAL, {"maxDiscountPercentage": 15, "maxRiskScore": 60})
    outcome = await attempt(service, request_50_units, parties, [rule], product_costs=COSTS, **histories)

    assert outcome.auto_approved, outcome.evaluation.summary()
    assert request_50_units.status == DiscountRequestStatus.AUTO_APPROVED
    assert request_50_units.estimated_margin_percentage == Decimal("25.00")
    assert request_50_units.risk_score == outcome.risk_score
    assert outcome.evaluation.advisory_confidence == Decimal("0.9")
    assert outcome.recommendation is not None and not outcome.recommendation.is_fallback


@pytest.mark.asyncio
async def test_fallback_confidence_is_not_trusted(
    service, advisory_port, request_50_units, parties, histories
):
    advisory_port.error = ConnectionError("refused")
    outcome = await attempt(service, request_50_units, parties, product_costs=COSTS, **histories)

    assert outcome.recommendation.is_fallback
    assert not outcome.auto_approved
    assert outcome.evaluation.rejection_reason == "advisory confidence not available"
    assert request_50_units.status == DiscountRequestStatus.UNDER_ANALYSIS


@pytest.mark.asyncio
async def test_unavailable_advisory_skips_recommendation(
    service, advisory_port, request_50_units, parties, histories
):
    advisory_port.available = False
    outcome = await attempt(service, request_50_units, parties, product_costs=COSTS, **histories)
    assert "recommend_discount" not in advisory_port.calls
    assert outcome.recommendation is None
    assert outcome.evaluation.requires_human_review


@pytest.mark.asyncio
async def test_disabled_advisory_scoring_skips_confidence(
    service, advisory_port, request_50_units, parties, histories
):
    advisory_port.governance = GovernanceSettings(ai_enabled=False)
    outcome = await attempt(service, request_50_units, parties, product_costs=COSTS, **histories)
    assert "recommend_discount" not in advisory_port.calls
    assert outcome.auto_approved


@pytest.mark.asyncio
async def test_existing_risk_score_is_used(service, make_request, parties):
    request = make_request(risk_score=Decimal("75"))
    outcome = await attempt(service, request, parties)
    assert outcome.risk_score == Decimal("75")
    assert outcome.evaluation.rejection_reason.startswith("risk score (75.00)")


@pytest.mark.asyncio
async def test_margin_not_estimated_without_every_cost(service, make_request, make_item, parties):
    request = make_request(items=[make_item("prod-1"), make_item("prod-2")])
    await attempt(service, request, parties, product_costs=COSTS)
    assert request.estimated_margin_percentage is None


@pytest.mark.asyncio
async def test_guardrail_violation_is_final(service, request_50_units, parties, histories, make_rule):
    limit = make_rule(RuleType.DISCOUNT_LIMIT, {"maxDiscountPercentage": 5})
    outcome = await attempt(service, request_50_units, parties, [limit], product_costs=COSTS, **histories)
    assert outcome.evaluation.violates_guardrails
    assert not outcome.evaluation.requires_human_review


@pytest.mark.asyncio
async def test_foreign_tenant_records_rejected(service, make_request, make_customer, make_salesperson):
    with pytest.raises(TenantIsolationError):
        await attempt(service, make_request(), (make_customer(tenant_id="tenant-2"), make_salesperson()))


@pytest.mark.asyncio
async def test_only_requests_under_analysis(service, make_request, parties):
    request = make_request()
    request.approve()
    with pytest.raises(InvalidStateError):
        await attempt(service, request, parties)


@pytest.mark.asyncio
async def test_tenant_context_is_restored(service, make_request, parties):
    await attempt(service, make_request(), parties)
    assert tenant_id_ctx.get() is None


def test_validation_delegates(service, make_customer, make_request, make_rule):
    assert not service.validate_customer_status(make_customer(status=CustomerStatus.BLOCKED)).is_valid
    limit = make_rule(RuleType.DISCOUNT_LIMIT, {"maxDiscountPercentage": 5})
    assert not service.validate_discount_limits(Decimal("10"), UserRole.SALESPERSON, [limit]).is_valid
    assert service.validate_minimum_margin(make_request(), [], None).is_valid


def test_evaluate_auto_approval_delegates(service, make_request, parties):
    customer, salesperson = parties
    evaluation = service.evaluate_auto_approval(
        make_request(), customer, salesperson, [], Decimal("20"), advisory_confidence=Decimal("0.8")
    )
    assert evaluation.can_auto_approve
    assert not service.can_override_auto_rejection(salesperson, evaluation)


@pytest.mark.asyncio
async def test_advisory_risk_score_used_when_recommendation_is_real(
    service, advisory_port, request_50_units, parties, histories
):
    outcome = await attempt(service, request_50_units, parties, product_costs=COSTS, **histories)

    assert advisory_port.calls["calculate_risk_score"] == 1
    assert outcome.risk_from_advisory
    assert outcome.risk_score == Decimal("42")
    assert outcome.risk_level == RiskLevel.LOW
    assert outcome.auto_approved
    assert request_50_units.risk_score == Decimal("42")


@pytest.mark.asyncio
async def test_local_risk_score_when_recommendation_is_fallback(
    service, advisory_port, request_50_units, parties, histories
):
    advisory_port.error = ConnectionError("refused")
    outcome = await attempt(service, request_50_units, parties, product_costs=COSTS, **histories)
    assert "calculate_risk_score" not in advisory_port.calls
    assert not outcome.risk_from_advisory


@pytest.mark.asyncio
async def test_local_risk_score_when_advisory_scoring_fails(
    service, advisory_port, monkeypatch, request_50_units, parties, histories
):
    async def risk_model_offline(request):
        advisory_port.calls["calculate_risk_score"] = advisory_port.calls.get("calculate_risk_score", 0) + 1
        raise ConnectionError("risk model offline")

    monkeypatch.setattr(advisory_port, "calculate_risk_score", risk_model_offline)
    outcome = await attempt(service, request_50_units, parties, product_costs=COSTS, **histories)

    assert advisory_port.calls["calculate_risk_score"] == 1
    assert not outcome.risk_from_advisory
    assert outcome.risk_score == service.calculate_risk_score(
        request_50_units, *parties, product_costs=COSTS, **histories
    )


@pytest.mark.asyncio
async def test_denial_leaves_request_untouched(service, request_50_units, parties, histories, make_rule):
    strict = make_rule(RuleType.AUTO_APPROVAL, {"maxRiskScore": 30})
    outcome = await attempt(service, request_50_units, parties, [strict], product_costs=COSTS, **histories)

    assert not outcome.auto_approved
    assert request_50_units.status == DiscountRequestStatus.UNDER_ANALYSIS
    assert request_50_units.risk_score is None
    assert request_50_units.estimated_margin_percentage is None


@pytest.mark.asyncio
async def test_estimated_margin_feeds_safety_checks_without_storing(
    service, advisory_port, make_request, make_item, parties
):
    advisory_port.governance = GovernanceSettings(ai_enabled=False)
    request = make_request(risk_score=Decimal("10"))
    outcome = await attempt(service, request, parties, product_costs={"prod-1": Money(Decimal("95"))})

    assert outcome.evaluation.rejection_reason == "negative margin detected"
    assert request.estimated_margin_percentage is None
