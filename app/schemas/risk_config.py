"""
Per-organization risk configuration.

Weights are relative: a factor with weight 0 is neutralized and the rest are
re-normalized by the engine, so no sum constraint is enforced.

Thresholds are the maximum score still classified at the lower level:
  score <= low     → low
  score <= medium  → medium
  score <= high    → high
  otherwise        → critical
"""
from __future__ import annotations

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field

from app.core.exceptions import InvalidConfigurationError
from app.schemas.risk_response import RiskFactorType


class RiskThresholds(BaseModel):
    low: float = 25
    medium: float = 50
    high: float = 75


class RiskConfig(BaseModel):
    factor_weights: dict[RiskFactorType, float]
    thresholds: RiskThresholds
    auto_assess_interval: int = Field(description="Days an assessment stays valid")
    enable_auto_assess: bool
    updated_at: Optional[datetime] = None


DEFAULT_FACTOR_WEIGHTS: dict[RiskFactorType, float] = {
    RiskFactorType.TAX_STATUS: 25,
    RiskFactorType.PAYMENT_HISTORY: 20,
    RiskFactorType.LEGAL_STATUS: 15,
    RiskFactorType.DATA_COMPLETENESS: 15,
    RiskFactorType.ACTIVITY_LEVEL: 10,
    RiskFactorType.DOCUMENT_COMPLIANCE: 10,
    RiskFactorType.COMMUNICATION_PATTERN: 5,
}

DEFAULT_RISK_CONFIG = RiskConfig(
    factor_weights=DEFAULT_FACTOR_WEIGHTS,
    thresholds=RiskThresholds(low=25, medium=50, high=75),
    auto_assess_interval=30,
    enable_auto_assess=True,
)

MAX_FACTOR_WEIGHT = 100
MAX_AUTO_ASSESS_INTERVAL_DAYS = 365


class ThresholdsUpdate(BaseModel):
    low: Optional[float] = Field(None, ge=0, le=100)
    medium: Optional[float] = Field(None, ge=0, le=100)
    high: Optional[float] = Field(None, ge=0, le=100)


class RiskConfigUpdate(BaseModel):
    """Partial update; omitted fields keep their current value."""
    factor_weights: Optional[dict[RiskFactorType, float]] = None
    thresholds: Optional[ThresholdsUpdate] = None
    auto_assess_interval: Optional[int] = Field(None, ge=1, le=MAX_AUTO_ASSESS_INTERVAL_DAYS)
    enable_auto_assess: Optional[bool] = None


class RiskConfigResult(BaseModel):
    success: bool = True
    config: RiskConfig
    message: str


def validate_risk_config(config: RiskConfig) -> RiskConfig:
    t = config.thresholds
    if not (0 < t.low < t.medium < t.high <= 100):
        raise InvalidConfigurationError(
            f"Thresholds must satisfy 0 < low < medium < high <= 100 "
            f"(got low={t.low}, medium={t.medium}, high={t.high})"
        )

    for factor_type, weight in config.factor_weights.items():
        if weight < 0 or weight > MAX_FACTOR_WEIGHT:
            raise InvalidConfigurationError(
                f"Weight for {factor_type.value} must be between 0 and {MAX_FACTOR_WEIGHT} (got {weight})"
            )

    if not 1 <= config.auto_assess_interval <= MAX_AUTO_ASSESS_INTERVAL_DAYS:
        raise InvalidConfigurationError(
            f"auto_assess_interval must be between 1 and {MAX_AUTO_ASSESS_INTERVAL_DAYS} days"
        )
    return config


def merge_config_update(current: RiskConfig, update: RiskConfigUpdate) -> RiskConfig:
    """
    Apply a partial update on top of the effective config.
    Weights merge per factor, thresholds merge per boundary.
    Raises InvalidConfigurationError before anything is persisted.
    """
    weights = dict(current.factor_weights)
    if update.factor_weights:
        weights.update(update.factor_weights)

    thresholds = current.thresholds.model_dump()
    if update.thresholds is not None:
        thresholds.update(update.thresholds.model_dump(exclude_none=True))

    merged = RiskConfig(
        factor_weights=weights,
        thresholds=RiskThresholds(**thresholds),
        auto_assess_interval=(
            update.auto_assess_interval
            if update.auto_assess_interval is not None
            else current.auto_assess_interval
        ),
        enable_auto_assess=(
            update.enable_auto_assess
            if update.enable_auto_assess is not None
            else current.enable_auto_assess
        ),
    )
    return validate_risk_config(merged)
