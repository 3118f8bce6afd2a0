"""
Unit Tests - Cubic-Foot Resolver
"""
import pytest

from freight_engine.estimation.cuft_resolver import CuftSource, resolve_carton_cuft
from freight_engine.geometry.units import BoxDims


class TestResolveCartonCuft:
    """Tests for the box manifest / scraped / fallback cascade"""

    def test_two_box_manifest(self, carton_config):
        estimate = resolve_carton_cuft("sofa", boxes_text="20x43x45\n20x45x65", config=carton_config)

        assert estimate.source is CuftSource.ACTUAL_BOXES
        assert estimate.pre_min_cuft == 56.25
        assert estimate.pre_safety_cuft == 56.25
        assert estimate.cuft == 64.69
        assert len(estimate.boxes) == 2

    def test_scraped_desk(self, carton_config):
        estimate = resolve_carton_cuft(
            "desk", scraped_dims=BoxDims(6.3, 14.39, 49.4), config=carton_config,
        )

        assert estimate.source is CuftSource.SCRAPED_DIMS
        assert estimate.pre_safety_cuft == 2.59
        assert estimate.cuft == 2.98

    def test_scraped_mapping(self, carton_config):
        estimate = resolve_carton_cuft("chair", scraped_dims={"h": 20, "w": 20, "d": 20}, config=carton_config)
        assert estimate.pre_safety_cuft == 4.63
        assert estimate.cuft == 5.32

    @pytest.mark.parametrize("category,pre_safety,cuft", [
        ("sofa", 56.0, 64.4),
        ("chair", 3.0, 3.45),
        ("table", 8.0, 9.2),
        ("decor", 2.2, 2.53),
        (None, 11.33, 13.03),
        ("spaceship", 11.33, 13.03),
    ])
    def test_category_fallback(self, carton_config, category, pre_safety, cuft):
        estimate = resolve_carton_cuft(category, config=carton_config)

        assert estimate.source is CuftSource.FALLBACK
        assert estimate.pre_safety_cuft == pre_safety
        assert estimate.cuft == cuft

    def test_decor_floor_keeps_pre_min_value(self, carton_config):
        estimate = resolve_carton_cuft("decor", config=carton_config)
        assert estimate.pre_min_cuft == 2.0
        assert estimate.fallback_cuft == 2.0
        assert estimate.to_dict()["fallbackCuft"] == 2.0

    def test_manifest_skips_min_charge_floor(self, carton_config):
        estimate = resolve_carton_cuft(boxes_text="6x6x6", config=carton_config)
        # single tiny box is floored at 1 ft3, not at the 2.2 ft3 minimum charge
        assert estimate.pre_safety_cuft == 1.0
        assert estimate.cuft == 1.15

    def test_manifest_beats_scraped_dims(self, carton_config):
        estimate = resolve_carton_cuft(
            "chair", scraped_dims=BoxDims(20, 20, 20), boxes_text="20x43x45", config=carton_config,
        )
        assert estimate.source is CuftSource.ACTUAL_BOXES

    def test_incomplete_scraped_dims_fall_back(self, carton_config):
        estimate = resolve_carton_cuft("chair", scraped_dims={"h": 20, "w": 0, "d": 20}, config=carton_config)
        assert estimate.source is CuftSource.FALLBACK
        assert estimate.cuft == 3.45

    def test_clamped_to_maximum(self, carton_config):
        estimate = resolve_carton_cuft(boxes_text="100x100x100", config=carton_config)
        assert estimate.cuft == carton_config.max_cuft

    def test_to_dict(self, carton_config):
        payload = resolve_carton_cuft(boxes_text="20x43x45", config=carton_config).to_dict()
        assert payload["source"] == "actual_boxes"
        assert payload["boxes"] == [{"h": 20.0, "w": 43.0, "d": 45.0}]
        assert payload["safetyFactor"] == 1.15
