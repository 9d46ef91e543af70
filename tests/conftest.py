"""Shared fixtures: controllable clock, domain factories, call-counting advisory stub."""

import asyncio
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from decision_engine.application.schemas import (
    AdvisoryExplanation,
    AdvisoryRiskScore,
    DiscountRecommendation,
    GovernanceSettings,
    TrainingResult,
)
from decision_engine.config.settings import DecisionEngineSettings
from decision_engine.domain.models import (
    BusinessRule,
    Customer,
    CustomerClassification,
    CustomerStatus,
    DiscountRequest,
    DiscountRequestItem,
    Money,
    RuleScope,
    Salesperson,
    UserRole,
    UserStatus,
)

TENANT = "tenant-1"


class FakeClock:
    def __init__(self, start: datetime | None = None) -> None:
        self._now = start or datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    def now(self) -> datetime:
        return self._now

    def advance(self, seconds: float) -> None:
        self._now += timedelta(seconds=seconds)


class StubAdvisoryPort:
    """Counts calls per operation. Set `delay` to simulate a slow service or `error` to make it fail."""

    def __init__(self) -> None:
        self.calls: dict[str, int] = {}
        self.delay: float = 0.0
        self.error: Exception | None = None
        self.available = True
        self.governance = GovernanceSettings()
        self.recommendation = DiscountRecommendation(
            recommended_discount_percentage=Decimal("8"),
            expected_margin_percentage=Decimal("27"),
            confidence=Decimal("0.9"),
            explanation="model recommendation",
        )

    async def _answer(self, operation: str, result):
        self.calls[operation] = self.calls.get(operation, 0) + 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return result

    async def recommend_discount(self, request):
        return await self._answer("recommend_discount", self.recommendation)

    async def calculate_risk_score(self, request):
        return await self._answer(
            "calculate_risk_score",
            AdvisoryRiskScore(score=Decimal("42"), risk_level="Medium", confidence=Decimal("0.8")),
        )

    async def explain_decision(self, request):
        return await self._answer("explain_decision", AdvisoryExplanation(summary="explained"))

    async def train_model(self, request):
        return await self._answer(
            "train_model", TrainingResult(success=True, data_points_processed=len(request.training_data))
        )

    async def is_available(self, tenant_id):
        return await self._answer("is_available", self.available)

    async def get_governance_settings(self, tenant_id):
        return await self._answer("get_governance_settings", self.governance)

    async def update_governance_settings(self, tenant_id, settings):
        await self._answer("update_governance_settings", None)
        self.governance = settings


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def advisory_port():
    return StubAdvisoryPort()


@pytest.fixture
def settings():
    return DecisionEngineSettings(
        _env_file=None,
        advisory_timeout_seconds=0.05,
        training_timeout_seconds=0.05,
        availability_timeout_seconds=0.05,
        governance_timeout_seconds=0.05,
    )


@pytest.fixture
def make_customer():
    def _make(
        status=CustomerStatus.ACTIVE,
        classification=CustomerClassification.B,
        tenant_id=TENANT,
        name="Acme Corp",
    ):
        return Customer("cust-1", tenant_id, name, status=status, classification=classification)

    return _make


@pytest.fixture
def make_salesperson():
    def _make(role=UserRole.SALESPERSON, status=UserStatus.ACTIVE, tenant_id=TENANT, user_id="user-1"):
        return Salesperson(user_id, tenant_id, "Dana Seller", role=role, status=status)

    return _make


@pytest.fixture
def make_item():
    def _make(product_id="prod-1", unit_price="100", quantity=1, discount="10", currency="USD"):
        return DiscountRequestItem(
            product_id, f"Product {product_id}", quantity, Money(Decimal(unit_price), currency), Decimal(discount)
        )

    return _make


@pytest.fixture
def make_request(make_item):
    def _make(discount="10", items=None, tenant_id=TENANT, **kwargs):
        return DiscountRequest(
            customer_id="cust-1",
            salesperson_id="user-1",
            tenant_id=tenant_id,
            items=items if items is not None else [make_item(discount=discount)],
            requested_discount_percentage=Decimal(discount),
            **kwargs,
        )

    return _make


@pytest.fixture
def make_rule():
    def _make(rule_type, parameters, scope=RuleScope.GLOBAL, priority=100, name=None, **kwargs):
        return BusinessRule(
            tenant_id=TENANT,
            name=name or f"{rule_type.value} rule",
            rule_type=rule_type,
            scope=scope,
            parameters=parameters,
            priority=priority,
            **kwargs,
        )

    return _make
