"""
Tests for risk configuration defaults, partial updates and validation.
"""
import pytest
from pydantic import ValidationError

from app.core.exceptions import InvalidConfigurationError
from app.schemas.risk_config import (
    DEFAULT_RISK_CONFIG, RiskConfigUpdate, ThresholdsUpdate, merge_config_update,
)
from app.schemas.risk_response import RiskFactorType


class TestDefaults:
    def test_default_weights(self):
        weights = DEFAULT_RISK_CONFIG.factor_weights
        assert weights[RiskFactorType.TAX_STATUS] == 25
        assert weights[RiskFactorType.PAYMENT_HISTORY] == 20
        assert weights[RiskFactorType.COMMUNICATION_PATTERN] == 5
        assert sum(weights.values()) == 100

    def test_default_thresholds_and_interval(self):
        t = DEFAULT_RISK_CONFIG.thresholds
        assert (t.low, t.medium, t.high) == (25, 50, 75)
        assert DEFAULT_RISK_CONFIG.auto_assess_interval == 30
        assert DEFAULT_RISK_CONFIG.enable_auto_assess is True
        assert DEFAULT_RISK_CONFIG.updated_at is None


class TestMergeConfigUpdate:
    def test_weights_merge_per_factor(self):
        merged = merge_config_update(
            DEFAULT_RISK_CONFIG,
            RiskConfigUpdate(factor_weights={RiskFactorType.TAX_STATUS: 40}),
        )
        assert merged.factor_weights[RiskFactorType.TAX_STATUS] == 40
        assert merged.factor_weights[RiskFactorType.PAYMENT_HISTORY] == 20

    def test_thresholds_merge_per_boundary(self):
        merged = merge_config_update(
            DEFAULT_RISK_CONFIG,
            RiskConfigUpdate(thresholds=ThresholdsUpdate(high=80)),
        )
        assert (merged.thresholds.low, merged.thresholds.medium, merged.thresholds.high) == (25, 50, 80)

    def test_empty_update_keeps_everything(self):
        merged = merge_config_update(DEFAULT_RISK_CONFIG, RiskConfigUpdate())
        assert merged.factor_weights == DEFAULT_RISK_CONFIG.factor_weights
        assert merged.auto_assess_interval == 30

    def test_scalar_fields(self):
        merged = merge_config_update(
            DEFAULT_RISK_CONFIG,
            RiskConfigUpdate(auto_assess_interval=7, enable_auto_assess=False),
        )
        assert merged.auto_assess_interval == 7
        assert merged.enable_auto_assess is False

    def test_zero_weight_allowed(self):
        merged = merge_config_update(
            DEFAULT_RISK_CONFIG,
            RiskConfigUpdate(factor_weights={RiskFactorType.ACTIVITY_LEVEL: 0}),
        )
        assert merged.factor_weights[RiskFactorType.ACTIVITY_LEVEL] == 0


class TestValidation:
    def test_non_increasing_thresholds_rejected(self):
        with pytest.raises(InvalidConfigurationError):
            merge_config_update(DEFAULT_RISK_CONFIG, RiskConfigUpdate(thresholds=ThresholdsUpdate(medium=20)))

    def test_zero_low_threshold_rejected(self):
        with pytest.raises(InvalidConfigurationError):
            merge_config_update(DEFAULT_RISK_CONFIG, RiskConfigUpdate(thresholds=ThresholdsUpdate(low=0)))

    def test_negative_weight_rejected(self):
        with pytest.raises(InvalidConfigurationError, match="tax_status"):
            merge_config_update(
                DEFAULT_RISK_CONFIG,
                RiskConfigUpdate(factor_weights={RiskFactorType.TAX_STATUS: -1}),
            )

    def test_weight_above_maximum_rejected(self):
        with pytest.raises(InvalidConfigurationError):
            merge_config_update(
                DEFAULT_RISK_CONFIG,
                RiskConfigUpdate(factor_weights={RiskFactorType.TAX_STATUS: 150}),
            )

    def test_interval_bounds_enforced_by_schema(self):
        with pytest.raises(ValidationError):
            RiskConfigUpdate(auto_assess_interval=0)

    def test_unknown_factor_type_rejected_by_schema(self):
        with pytest.raises(ValidationError):
            RiskConfigUpdate(factor_weights={"credit_score": 10})
