"""Ports consumed by the application layer. Adapters live in infrastructure/ and observability/."""

from datetime import datetime
from typing import Optional, Protocol, TypeVar

from pydantic import BaseModel

from decision_engine.application.schemas import (
    AdvisoryExplanation,
    AdvisoryRiskScore,
    DiscountRecommendation,
    DiscountRecommendationRequest,
    ExplainabilityRequest,
    GovernanceSettings,
    ModelTrainingRequest,
    RiskScoreRequest,
    TrainingResult,
)

M = TypeVar("M", bound=BaseModel)


class AdvisoryPort(Protocol):
    """External advisory scoring service. Every call may be slow, fail or be cancelled."""

    async def recommend_discount(self, request: DiscountRecommendationRequest) -> DiscountRecommendation:
        ...

    async def calculate_risk_score(self, request: RiskScoreRequest) -> AdvisoryRiskScore:
        ...

    async def explain_decision(self, request: ExplainabilityRequest) -> AdvisoryExplanation:
        ...

    async def train_model(self, request: ModelTrainingRequest) -> TrainingResult:
        ...

    async def is_available(self, tenant_id: str) -> bool:
        ...

    async def get_governance_settings(self, tenant_id: str) -> GovernanceSettings:
        ...

    async def update_governance_settings(self, tenant_id: str, settings: GovernanceSettings) -> None:
        ...


class ResponseCache(Protocol):
    """Typed response cache with per-entry expiry and aggregate hit/miss statistics."""

    async def get(self, key: str, model: type[M]) -> Optional[M]:
        ...

    async def set(self, key: str, value: BaseModel, ttl_seconds: float) -> None:
        ...

    async def remove(self, key: str) -> None:
        ...

    async def clear(self) -> None:
        ...

    async def statistics(self):
        ...


class PerformanceMetrics(Protocol):
    def record_success(self, operation: str) -> None:
        ...

    def record_error(self, operation: str, error_type: str) -> None:
        ...

    def record_timeout(self, operation: str) -> None:
        ...

    def record_response_time(self, operation: str, duration_ms: float, from_cache: bool) -> None:
        ...

    def record_cache_hit(self, operation: str) -> None:
        ...

    def record_cache_miss(self, operation: str) -> None:
        ...

    def record_circuit_breaker_open(self, operation: str) -> None:
        ...

    def record_fallback_used(self, operation: str, reason: str) -> None:
        ...

    def get_statistics(self, operation: Optional[str] = None, since: Optional[datetime] = None):
        ...
