"""Tenant-defined guardrail rules with typed parameters per rule kind."""

import json
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Annotated, Any, Iterable, Literal, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator

from decision_engine.domain.exceptions import InvalidArgumentError, InvalidStateError

logger = logging.getLogger(__name__)


class RuleType(str, Enum):
    MINIMUM_MARGIN = "MinimumMargin"
    DISCOUNT_LIMIT = "DiscountLimit"
    AUTO_APPROVAL = "AutoApproval"


class RuleScope(str, Enum):
    GLOBAL = "Global"
    PRODUCT = "Product"
    CATEGORY = "Category"
    CUSTOMER = "Customer"
    USER_ROLE = "UserRole"


_ENTITY_SCOPES = frozenset({RuleScope.PRODUCT, RuleScope.CUSTOMER})
_IDENTIFIER_SCOPES = frozenset({RuleScope.CATEGORY, RuleScope.USER_ROLE})


def _lenient_threshold(value: Any, upper: Decimal) -> Optional[Decimal]:
    """Parse a threshold. Anything unparsable or out of [0, upper] is treated as absent, never as zero."""
    if value is None or isinstance(value, bool):
        return None
    try:
        parsed = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        logger.warning("rule_parameter_unparsable", extra={"raw_value": repr(value)})
        return None
    if not parsed.is_finite() or parsed < 0 or parsed > upper:
        logger.warning("rule_parameter_out_of_range", extra={"raw_value": repr(value)})
        return None
    return parsed


_PERCENT = Decimal("100")
_UNIT = Decimal("1")


class _RuleParameters(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")


class MinimumMarginParameters(_RuleParameters):
    kind: Literal["MinimumMargin"] = "MinimumMargin"
    minimum_margin_percentage: Optional[Decimal] = Field(None, alias="minimumMarginPercentage")

    @field_validator("minimum_margin_percentage", mode="before")
    @classmethod
    def _threshold(cls, v: Any) -> Optional[Decimal]:
        return _lenient_threshold(v, _PERCENT)


class DiscountLimitParameters(_RuleParameters):
    kind: Literal["DiscountLimit"] = "DiscountLimit"
    max_discount_percentage: Optional[Decimal] = Field(None, alias="maxDiscountPercentage")

    @field_validator("max_discount_percentage", mode="before")
    @classmethod
    def _threshold(cls, v: Any) -> Optional[Decimal]:
        return _lenient_threshold(v, _PERCENT)


class AutoApprovalParameters(_RuleParameters):
    kind: Literal["AutoApproval"] = "AutoApproval"
    max_discount_percentage: Optional[Decimal] = Field(None, alias="maxDiscountPercentage")
    max_risk_score: Optional[Decimal] = Field(None, alias="maxRiskScore")
    min_ai_confidence: Optional[Decimal] = Field(None, alias="minAIConfidence")
    min_margin_percentage: Optional[Decimal] = Field(None, alias="minMarginPercentage")

    @field_validator("max_discount_percentage", "max_risk_score", "min_margin_percentage", mode="before")
    @classmethod
    def _percent_threshold(cls, v: Any) -> Optional[Decimal]:
        return _lenient_threshold(v, _PERCENT)

    @field_validator("min_ai_confidence", mode="before")
    @classmethod
    def _confidence_threshold(cls, v: Any) -> Optional[Decimal]:
        return _lenient_threshold(v, _UNIT)


RuleParameters = Annotated[
    Union[MinimumMarginParameters, DiscountLimitParameters, AutoApprovalParameters],
    Field(discriminator="kind"),
]

_PARAMETERS_ADAPTER: TypeAdapter[Any] = TypeAdapter(RuleParameters)


def parse_rule_parameters(
    rule_type: RuleType,
    payload: Union[str, Mapping[str, Any], _RuleParameters, None],
) -> Union[MinimumMarginParameters, DiscountLimitParameters, AutoApprovalParameters]:
    """
    Build the typed parameters for rule_type from a model, a mapping or a JSON object string.
    Malformed JSON yields parameters with every threshold absent.
    """
    if isinstance(payload, _RuleParameters):
        if payload.kind != rule_type.value:
            raise InvalidArgumentError(
                f"Parameters of kind {payload.kind} do not match rule type {rule_type.value}"
            )
        return payload
    data: Any = payload
    if isinstance(payload, str):
        try:
            data = json.loads(payload, parse_float=Decimal)
        except json.JSONDecodeError:
            logger.warning("rule_parameters_malformed", extra={"rule_type": rule_type.value})
            data = {}
    if data is None:
        data = {}
    if not isinstance(data, Mapping):
        logger.warning("rule_parameters_not_an_object", extra={"rule_type": rule_type.value})
        data = {}
    try:
        return _PARAMETERS_ADAPTER.validate_python({**data, "kind": rule_type.value})
    except ValidationError as e:
        raise InvalidArgumentError(f"Invalid parameters for {rule_type.value} rule: {e}") from e


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class BusinessRule:
    """
    Guardrail rule owned by a tenant. Lower priority numbers are evaluated first.
    Product/Customer scope needs target_entity_id; Category/UserRole scope needs target_identifier.
    """

    tenant_id: str
    name: str
    rule_type: RuleType
    scope: RuleScope
    parameters: Any
    priority: int = 100
    target_entity_id: Optional[str] = None
    target_identifier: Optional[str] = None
    is_active: bool = True
    rule_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        if not self.tenant_id:
            raise InvalidArgumentError("tenant_id must not be empty")
        self._validate_name(self.name)
        self._validate_priority(self.priority)
        self.rule_type = RuleType(self.rule_type)
        self.scope = RuleScope(self.scope)
        if self.scope in _ENTITY_SCOPES and not self.target_entity_id:
            raise InvalidArgumentError(f"target_entity_id is required for {self.scope.value} scope")
        if self.scope in _IDENTIFIER_SCOPES and not (self.target_identifier and self.target_identifier.strip()):
            raise InvalidArgumentError(f"target_identifier is required for {self.scope.value} scope")
        self.parameters = parse_rule_parameters(self.rule_type, self.parameters)

    @staticmethod
    def _validate_name(name: str) -> None:
        if not name or not name.strip():
            raise InvalidArgumentError("Business rule name cannot be empty")
        if len(name) < 3:
            raise InvalidArgumentError("Business rule name must have at least 3 characters")
        if len(name) > 200:
            raise InvalidArgumentError("Business rule name cannot exceed 200 characters")

    @staticmethod
    def _validate_priority(priority: int) -> None:
        if priority < 0:
            raise InvalidArgumentError("Priority cannot be negative")

    def activate(self) -> None:
        if self.is_active:
            raise InvalidStateError("Business rule is already active")
        self.is_active = True
        self.updated_at = _utcnow()

    def deactivate(self) -> None:
        if not self.is_active:
            raise InvalidStateError("Business rule is already inactive")
        self.is_active = False
        self.updated_at = _utcnow()

    def update_parameters(self, parameters: Any) -> None:
        self.parameters = parse_rule_parameters(self.rule_type, parameters)
        self.updated_at = _utcnow()

    def update_priority(self, priority: int) -> None:
        self._validate_priority(priority)
        self.priority = priority
        self.updated_at = _utcnow()

    def applies_to(self, entity_id: Optional[str] = None, identifier: Optional[str] = None) -> bool:
        if self.scope == RuleScope.GLOBAL:
            return True
        if self.target_entity_id and entity_id and self.target_entity_id == entity_id:
            return True
        if self.target_identifier and identifier:
            return self.target_identifier.strip().lower() == identifier.strip().lower()
        return False

    def scope_description(self) -> str:
        if self.scope == RuleScope.GLOBAL:
            return "Global (All)"
        if self.scope in _ENTITY_SCOPES:
            return f"{self.scope.value}: {self.target_entity_id}"
        return f"{self.scope.value}: {self.target_identifier or 'N/A'}"


def active_rules_of_type(rules: Iterable[BusinessRule] | None, rule_type: RuleType) -> list[BusinessRule]:
    """Active rules of one kind in evaluation order (ascending priority, stable)."""
    return sorted(
        (r for r in (rules or ()) if r.is_active and r.rule_type == rule_type),
        key=lambda r: r.priority,
    )
