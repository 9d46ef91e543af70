"""
Resilience wrapper around the advisory scoring port.

Every scoring call goes cache -> circuit breaker -> bounded external call ->
rule-based fallback -> safe default, so no advisory failure reaches the caller.
Caller cancellation (asyncio.CancelledError) is not a failure and propagates.
"""

import asyncio
import hashlib
import json
import logging
import time
from typing import Awaitable, Callable, TypeVar

from pydantic import BaseModel

from decision_engine.application import fallbacks
from decision_engine.application.ports import AdvisoryPort, PerformanceMetrics, ResponseCache
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
from decision_engine.config.settings import DecisionEngineSettings, get_settings
from decision_engine.scalability.circuit_breaker import CircuitBreaker

logger = logging.getLogger(__name__)

Req = TypeVar("Req", bound=BaseModel)
Res = TypeVar("Res", bound=BaseModel)

RECOMMEND_DISCOUNT = "recommend_discount"
CALCULATE_RISK_SCORE = "calculate_risk_score"
EXPLAIN_DECISION = "explain_decision"
TRAIN_MODEL = "train_model"


def _elapsed_ms(started: float) -> float:
    return (time.monotonic() - started) * 1000


class AdvisoryResilienceGateway:
    """Transparent decorator over AdvisoryPort: same operations, never raises for advisory failures."""

    def __init__(
        self,
        advisory: AdvisoryPort,
        cache: ResponseCache,
        metrics: PerformanceMetrics,
        breaker: CircuitBreaker | None = None,
        settings: DecisionEngineSettings | None = None,
    ) -> None:
        self._advisory = advisory
        self._cache = cache
        self._metrics = metrics
        self._settings = settings or get_settings()
        self._breaker = breaker or CircuitBreaker(
            failure_threshold=self._settings.circuit_breaker_failure_threshold,
            open_duration_seconds=self._settings.circuit_breaker_open_seconds,
        )

    @property
    def breaker(self) -> CircuitBreaker:
        return self._breaker

    def cache_key(self, operation: str, request: BaseModel) -> str:
        """Deterministic: operation plus a sha256 of the request's canonical JSON."""
        payload = json.dumps(request.model_dump(mode="json"), sort_keys=True, separators=(",", ":"))
        digest = hashlib.sha256(payload.encode("utf-8")).hexdigest()
        return f"{self._settings.cache_key_prefix}:{operation}:{digest}"

    # --- Scoring operations ---

    async def recommend_discount(self, request: DiscountRecommendationRequest) -> DiscountRecommendation:
        return await self._resilient(
            RECOMMEND_DISCOUNT,
            request,
            self._advisory.recommend_discount,
            DiscountRecommendation,
            self._settings.recommendation_cache_ttl_seconds,
            fallbacks.fallback_recommendation,
            fallbacks.safe_default_recommendation,
        )

    async def calculate_risk_score(self, request: RiskScoreRequest) -> AdvisoryRiskScore:
        return await self._resilient(
            CALCULATE_RISK_SCORE,
            request,
            self._advisory.calculate_risk_score,
            AdvisoryRiskScore,
            self._settings.risk_score_cache_ttl_seconds,
            fallbacks.fallback_risk_score,
            fallbacks.safe_default_risk_score,
        )

    async def explain_decision(self, request: ExplainabilityRequest) -> AdvisoryExplanation:
        return await self._resilient(
            EXPLAIN_DECISION,
            request,
            self._advisory.explain_decision,
            AdvisoryExplanation,
            self._settings.explanation_cache_ttl_seconds,
            fallbacks.fallback_explanation,
            fallbacks.safe_default_explanation,
        )

    async def _resilient(
        self,
        operation: str,
        request: Req,
        invoke: Callable[[Req], Awaitable[Res]],
        model: type[Res],
        ttl_seconds: float,
        fallback: Callable[[Req, str], Res],
        safe_default: Callable[[Req], Res],
    ) -> Res:
        started = time.monotonic()
        try:
            key = self.cache_key(operation, request)
            cached = await self._cached(key, model)
            if cached is not None:
                self._metrics.record_cache_hit(operation)
                self._metrics.record_response_time(operation, _elapsed_ms(started), from_cache=True)
                return cached
            self._metrics.record_cache_miss(operation)

            if self._breaker.is_open():
                self._metrics.record_circuit_breaker_open(operation)
                return self._fallback(operation, fallback, request, "circuit breaker open")

            timeout = self._settings.advisory_timeout_seconds
            try:
                result = await asyncio.wait_for(invoke(request), timeout=timeout)
            except asyncio.TimeoutError:
                self._breaker.record_failure()
                self._metrics.record_timeout(operation)
                return self._fallback(operation, fallback, request, f"advisory timeout (>{timeout}s)")
            except Exception as exc:
                self._breaker.record_failure()
                self._metrics.record_error(operation, type(exc).__name__)
                return self._fallback(operation, fallback, request, f"advisory error: {exc}")

            self._breaker.record_success()
            self._metrics.record_response_time(operation, _elapsed_ms(started), from_cache=False)
            self._metrics.record_success(operation)
            await self._store(key, result, ttl_seconds)
            return result
        except Exception as exc:
            logger.exception("advisory_safe_default_used", extra={"operation": operation})
            self._record_fallback_failure(operation, exc)
            return safe_default(request)

    def _fallback(self, operation: str, fallback: Callable[[Req, str], Res], request: Req, reason: str) -> Res:
        logger.warning("advisory_fallback_used", extra={"operation": operation, "reason": reason})
        self._metrics.record_fallback_used(operation, reason)
        return fallback(request, reason)

    def _record_fallback_failure(self, operation: str, exc: Exception) -> None:
        try:
            self._metrics.record_error(operation, f"fallback failed: {type(exc).__name__}")
        except Exception:
            logger.exception("advisory_metrics_failed", extra={"operation": operation})

    async def _cached(self, key: str, model: type[Res]) -> Res | None:
        """A failing cache behaves as a miss."""
        try:
            return await self._cache.get(key, model)
        except Exception:
            logger.warning("advisory_cache_read_failed", extra={"cache_key": key}, exc_info=True)
            return None

    async def _store(self, key: str, value: BaseModel, ttl_seconds: float) -> None:
        try:
            await self._cache.set(key, value, ttl_seconds)
        except Exception:
            logger.warning("advisory_cache_write_failed", extra={"cache_key": key}, exc_info=True)

    # --- Training and administrative operations (no cache, no breaker) ---

    async def train_model(self, request: ModelTrainingRequest) -> TrainingResult:
        started = time.monotonic()
        try:
            result = await asyncio.wait_for(
                self._advisory.train_model(request), timeout=self._settings.training_timeout_seconds
            )
        except asyncio.TimeoutError:
            self._metrics.record_timeout(TRAIN_MODEL)
            logger.warning("advisory_training_timeout", extra={"tenant_id": request.tenant_id})
            return TrainingResult(success=False, message="Training timeout")
        except Exception as exc:
            self._metrics.record_error(TRAIN_MODEL, type(exc).__name__)
            logger.warning("advisory_training_failed", extra={"tenant_id": request.tenant_id, "error": str(exc)})
            return TrainingResult(success=False, message=f"Training error: {exc}")
        self._metrics.record_response_time(TRAIN_MODEL, _elapsed_ms(started), from_cache=False)
        self._metrics.record_success(TRAIN_MODEL)
        return result

    async def is_available(self, tenant_id: str) -> bool:
        try:
            return bool(
                await asyncio.wait_for(
                    self._advisory.is_available(tenant_id), timeout=self._settings.availability_timeout_seconds
                )
            )
        except Exception:
            logger.info("advisory_unavailable", extra={"tenant_id": tenant_id})
            return False

    async def get_governance_settings(self, tenant_id: str) -> GovernanceSettings:
        """Falls back to advisory scoring disabled when settings cannot be read."""
        try:
            return await asyncio.wait_for(
                self._advisory.get_governance_settings(tenant_id), timeout=self._settings.governance_timeout_seconds
            )
        except Exception:
            logger.warning("governance_settings_unavailable", extra={"tenant_id": tenant_id}, exc_info=True)
            return GovernanceSettings(ai_enabled=False)

    async def update_governance_settings(self, tenant_id: str, settings: GovernanceSettings) -> bool:
        """True when the advisory service accepted the update."""
        try:
            await asyncio.wait_for(
                self._advisory.update_governance_settings(tenant_id, settings),
                timeout=self._settings.governance_timeout_seconds,
            )
        except Exception:
            logger.warning("governance_settings_update_failed", extra={"tenant_id": tenant_id}, exc_info=True)
            return False
        return True
