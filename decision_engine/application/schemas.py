"""Pydantic schemas exchanged with the advisory scoring service. Immutable, no transport concerns."""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


# ---------------------------------------------------------------------------
# Request schemas (no timestamps: they are hashed into cache keys)
# ---------------------------------------------------------------------------

class RecommendationItem(_Frozen):
    product_id: str = Field(..., min_length=1)
    product_name: str = ""
    product_category: str = ""
    quantity: Decimal = Field(..., gt=0)
    base_price: Decimal = Field(..., ge=0)
    currency: str = "USD"


class CustomerHistoryData(_Frozen):
    total_orders: int = Field(0, ge=0)
    average_order_value: Decimal = Decimal("0")
    average_discount: Decimal = Decimal("0")
    max_discount_received: Decimal = Decimal("0")
    rejected_requests: int = Field(0, ge=0)
    classification: str = "Unclassified"
    has_payment_issues: bool = False


class SalespersonHistoryData(_Frozen):
    total_requests: int = Field(0, ge=0)
    approved_requests: int = Field(0, ge=0)
    average_discount: Decimal = Decimal("0")
    approval_rate: Decimal = Field(Decimal("0"), ge=0, le=1)
    win_rate: Decimal = Field(Decimal("0"), ge=0, le=1)


class BusinessRuleData(_Frozen):
    rule_type: str
    scope: str
    parameters: str = "{}"


class DiscountRecommendationRequest(_Frozen):
    tenant_id: str = Field(..., min_length=1)
    customer_id: str = Field(..., min_length=1)
    salesperson_id: str = Field(..., min_length=1)
    items: tuple[RecommendationItem, ...] = ()
    customer_history: Optional[CustomerHistoryData] = None
    business_rules: tuple[BusinessRuleData, ...] = ()


class RiskScoreRequest(_Frozen):
    tenant_id: str = Field(..., min_length=1)
    discount_request_id: str = Field(..., min_length=1)
    customer_id: str = Field(..., min_length=1)
    salesperson_id: str = Field(..., min_length=1)
    requested_discount_percentage: Decimal = Field(..., ge=0, le=100)
    estimated_margin_percentage: Decimal = Decimal("0")
    customer_history: Optional[CustomerHistoryData] = None
    salesperson_history: Optional[SalespersonHistoryData] = None


class ExplainabilityRequest(_Frozen):
    tenant_id: str = Field(..., min_length=1)
    discount_request_id: str = Field(..., min_length=1)
    recommended_discount: Decimal = Decimal("0")
    risk_score: Decimal = Field(Decimal("0"), ge=0, le=100)
    was_auto_approved: bool = False


class TrainingType(str, Enum):
    INCREMENTAL = "Incremental"
    FULL = "Full"


class TrainingDataPoint(_Frozen):
    discount_request_id: str
    requested_discount: Decimal
    final_margin: Decimal
    decision: str
    decision_source: str
    sale_outcome: Optional[bool] = None
    decision_date: datetime


class ModelTrainingRequest(_Frozen):
    tenant_id: str = Field(..., min_length=1)
    training_data: tuple[TrainingDataPoint, ...] = ()
    training_type: TrainingType = TrainingType.INCREMENTAL


# ---------------------------------------------------------------------------
# Result schemas
# ---------------------------------------------------------------------------

class DiscountRecommendation(_Frozen):
    recommended_discount_percentage: Decimal
    expected_margin_percentage: Decimal
    confidence: Decimal = Field(..., ge=0, le=1)
    explanation: str = ""
    is_fallback: bool = False
    recommended_at: datetime = Field(default_factory=_utcnow)


class AdvisoryRiskScore(_Frozen):
    score: Decimal = Field(..., ge=0, le=100)
    risk_level: str
    risk_factors: tuple[str, ...] = ()
    confidence: Decimal = Field(..., ge=0, le=1)
    is_fallback: bool = False
    calculated_at: datetime = Field(default_factory=_utcnow)


class AdvisoryExplanation(_Frozen):
    summary: str
    details: tuple[str, ...] = ()
    recommendations: tuple[str, ...] = ()
    generated_at: datetime = Field(default_factory=_utcnow)


class TrainingResult(_Frozen):
    success: bool
    message: str = ""
    data_points_processed: int = 0
    model_version: Optional[str] = None
    trained_at: datetime = Field(default_factory=_utcnow)


class GovernanceSettings(_Frozen):
    """Tenant-level switches for advisory scoring. `ai_enabled=False` disables the confidence check."""

    ai_enabled: bool = True
    autonomy_level: int = Field(50, ge=0, le=100)
    max_risk_score_for_auto_approval: Decimal = Decimal("60")
    min_confidence_for_auto_approval: Decimal = Decimal("0.75")
    require_human_review: bool = False
    enable_audit: bool = True
    enable_explainability: bool = True
    max_auto_approval_discount: Decimal = Decimal("15")
    enable_incremental_learning: bool = True
    retraining_frequency_days: int = Field(30, ge=1)
    updated_at: datetime = Field(default_factory=_utcnow)
