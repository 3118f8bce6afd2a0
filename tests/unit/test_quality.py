"""
Unit Tests - Dimension Validation
"""
import pytest

from freight_engine.config.settings import ReconciliationSettings
from freight_engine.domain.records import DimensionObservation, ObservationSource, PackagingRecord
from freight_engine.quality.validators import (
    DimensionValidationError,
    validate_dimensions,
    validate_observation,
    validate_packaging,
)


class TestValidateDimensions:
    """Tests for the plausibility rules"""

    def test_valid_measurement(self, reconcile_config):
        result = validate_dimensions(20, 30, 40, weight_lb=50, config=reconcile_config)

        assert result.is_valid
        assert result.errors == []

    def test_missing_dimension_allowed_when_partial(self, reconcile_config):
        """Partial observations are stored; only the reconciled record must be complete"""
        assert validate_dimensions(20, None, 40, config=reconcile_config).is_valid

    def test_missing_dimension_rejected_when_complete_required(self, reconcile_config):
        result = validate_dimensions(20, None, 40, require_complete=True, config=reconcile_config)

        assert not result.is_valid
        assert result.fields == ["width_in"]

    @pytest.mark.parametrize("value", [0, -5])
    def test_non_positive(self, value, reconcile_config):
        result = validate_dimensions(value, 30, 40, config=reconcile_config)
        assert result.errors == ["length_in must be greater than 0"]

    def test_implausible_sizes(self, reconcile_config):
        result = validate_dimensions(20, 201, 40, weight_lb=600, config=reconcile_config)

        assert result.fields == ["width_in", "weight_lb"]
        assert "width_in must be at most 200 in" in result.errors

    def test_limits_follow_settings(self):
        config = ReconciliationSettings(max_dimension_in=100)
        assert not validate_dimensions(120, 30, 40, config=config).is_valid

    def test_boxes_and_confidence(self, reconcile_config):
        result = validate_dimensions(20, 30, 40, boxes_per_unit=0, confidence_level=1.5, config=reconcile_config)
        assert result.fields == ["boxes_per_unit", "confidence_level"]

    def test_raise_for_errors(self, reconcile_config):
        result = validate_dimensions(-1, 30, 250, config=reconcile_config)

        with pytest.raises(DimensionValidationError) as exc:
            result.raise_for_errors()

        assert exc.value.fields == ["length_in", "height_in"]
        assert len(exc.value.errors) == 2


class TestValidateRecords:

    def test_observation_passes_through(self, reconcile_config):
        obs = DimensionObservation("v1", ObservationSource.MANUAL, 20, 30, 40)
        assert validate_observation(obs, reconcile_config) is obs

    def test_observation_rejected(self, reconcile_config):
        obs = DimensionObservation("v1", ObservationSource.ZYTE, 20, 30, 40, confidence_level=2.0)

        with pytest.raises(DimensionValidationError):
            validate_observation(obs, reconcile_config)

    def test_packaging_requires_all_dimensions(self, reconcile_config):
        record = PackagingRecord(
            variant_id="v1",
            box_length_in=20,
            box_width_in=None,
            box_height_in=40,
            box_weight_lb=50,
            boxes_per_unit=1,
            reconciled_source=ObservationSource.MANUAL,
            reconciled_conf_level=0.9,
        )

        assert validate_packaging(record, reconcile_config).fields == ["width_in"]
