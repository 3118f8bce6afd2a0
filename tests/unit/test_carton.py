"""
Unit Tests - Carton Estimator
"""
import pytest

from freight_engine.config.settings import CartonSettings
from freight_engine.estimation.carton import (
    PROFILE_RULES,
    CartonRequest,
    TierBranch,
    VendorTier,
    detect_flatpack_category,
    detect_profile,
    determine_vendor_tier,
    estimate_carton,
)


class TestProfiles:

    @pytest.mark.parametrize("title,profile", [
        ("3-Piece Sectional Sofa", "sectional"),
        ("Lawson Loveseat", "sofa"),
        ("Accent Armchair", "chair"),
        ("Round Dining Table", "table"),
        ("Queen Bed Frame", "bed"),
        ("Ceramic Vase", "default"),
    ])
    def test_detect_profile(self, make_facts, title, profile):
        assert detect_profile(make_facts(title=title)) == profile

    def test_profile_from_breadcrumbs(self, make_facts):
        facts = make_facts(title="The Harlow", breadcrumbs=["Home", "Living Room", "Sofa"])
        assert detect_profile(facts) == "sofa"


class TestVendorTier:
    """Tests for vendor tier decisions"""

    def test_flatpack_vendor(self, make_facts, carton_config):
        decision = determine_vendor_tier(CartonRequest(make_facts(title="Chair", vendor="IKEA")), carton_config)
        assert decision.tier is VendorTier.FLATPACK
        assert decision.branch is TierBranch.VENDOR_TIER

    def test_assembled_vendor(self, make_facts, carton_config):
        request = CartonRequest(make_facts(title="Sofa"), vendor="Pottery Barn")
        decision = determine_vendor_tier(request, carton_config)
        assert decision.tier is VendorTier.ASSEMBLED
        assert decision.branch is TierBranch.VENDOR_TIER

    def test_vendor_match_needs_word_boundary(self, make_facts, carton_config):
        # "rh" inside a longer word is not Restoration Hardware
        request = CartonRequest(make_facts(title="Side Table", vendor="Perhaps Furniture"))
        decision = determine_vendor_tier(request, carton_config)
        assert decision.branch is TierBranch.AI_INFERRED

    @pytest.mark.parametrize("title,tier,confidence", [
        ("Stainless Refrigerator", VendorTier.ASSEMBLED, 0.9),
        ("Bookcase - some assembly required", VendorTier.FLATPACK, 0.7),
        ("Bookcase", VendorTier.FLATPACK, 0.6),
    ])
    def test_text_classifier(self, make_facts, title, tier, confidence):
        detected, conf, _ = detect_flatpack_category(make_facts(title=title))
        assert detected is tier
        assert conf == confidence


class TestEstimateCarton:
    """Tests for carton volume estimation"""

    def test_admin_override(self, make_facts, carton_config):
        request = CartonRequest(make_facts(title="Sofa"), override_boxes_text="20x43x45\n20x45x65")
        estimate = estimate_carton(request, config=carton_config)

        assert estimate.tier_branch is TierBranch.ADMIN_OVERRIDE
        assert estimate.cuft == 64.69
        assert estimate.vendor_tier is None
        assert estimate.boxes == 2

    def test_no_assembled_dims_uses_category_fallback(self, make_facts, carton_config):
        request = CartonRequest(make_facts(title="Accent Chair", vendor="IKEA"))
        estimate = estimate_carton(request, config=carton_config)

        assert estimate.tier_branch is TierBranch.NO_ASSEMBLED_DIMS
        assert estimate.cuft == 3.45

    def test_sectional_falls_back_to_sofa_constant(self, make_facts, carton_config):
        estimate = estimate_carton(CartonRequest(make_facts(title="Sectional")), config=carton_config)
        assert estimate.cuft == 64.4

    def test_free_text_category_uses_profile_constant(self, make_facts, carton_config):
        facts = make_facts(title="Modular Sectional Sofa", category="Living Room")
        estimate = estimate_carton(CartonRequest(facts), config=carton_config)

        assert estimate.profile == "sectional"
        assert estimate.cuft == 64.4

    def test_known_category_still_wins(self, make_facts, carton_config):
        request = CartonRequest(make_facts(title="Harbor Sofa"), category="Bed")
        assert estimate_carton(request, config=carton_config).cuft == 46.0

    @pytest.mark.parametrize("title,profile", [
        ("Modular Sectional Sofa", "sectional"),
        ("Harbor Sofa", "sofa"),
        ("Lounge Chair", "chair"),
        ("Dining Table", "table"),
        ("Platform Bed", "bed"),
        ("Ceramic Vase", "default"),
    ])
    def test_fallback_never_below_profile_floor(self, make_facts, carton_config, title, profile):
        """No assembled dims and a category the fallback table does not know"""
        facts = make_facts(title=title, category="Living Room")
        estimate = estimate_carton(CartonRequest(facts), config=carton_config)

        assert estimate.profile == profile
        assert estimate.tier_branch is TierBranch.NO_ASSEMBLED_DIMS
        assert estimate.cuft >= PROFILE_RULES[profile].min_floor_ft3

    def test_small_fallback_constant_raised_to_floor(self, make_facts):
        config = CartonSettings(category_fallback_cuft={"sofa": 5.0, "other": 11.33})
        estimate = estimate_carton(CartonRequest(make_facts(title="Harbor Sofa")), config=config)

        assert estimate.resolver.cuft == 5.75
        assert estimate.cuft == 25.0

    def test_assembled_vendor_sofa(self, make_facts, carton_config):
        facts = make_facts(title="Lawson Sofa", dimensionsInches={"height": 36, "width": 84, "depth": 38})
        estimate = estimate_carton(CartonRequest(facts, vendor="Pottery Barn"), config=carton_config)

        assert estimate.tier_branch is TierBranch.VENDOR_TIER
        assert estimate.assembled_cuft == 66.5
        # 66.5 * 0.50 * 1.45, no padding for a listed vendor
        assert estimate.base_cuft == pytest.approx(48.21, abs=0.01)
        assert estimate.cuft == pytest.approx(48.21 * 1.15, rel=0.01)
        assert estimate.boxes == 2

    def test_flatpack_padding(self, make_facts, carton_config):
        facts = make_facts(title="Accent Chair", dimensionsInches={"height": 30, "width": 25, "depth": 30})
        estimate = estimate_carton(CartonRequest(facts, vendor="IKEA"), config=carton_config)

        # 13.02 * 0.60 * 1.0 * 1.08
        assert estimate.base_cuft == pytest.approx(8.44, abs=0.01)
        assert any("padding" in note for note in estimate.notes)

    def test_clamped_to_profile_band(self, make_facts, carton_config):
        facts = make_facts(title="Platform Bed", dimensionsInches={"height": 14, "width": 64, "depth": 84})
        estimate = estimate_carton(
            CartonRequest(facts, vendor="IKEA"), calibration_multiplier=0.75, config=carton_config,
        )

        # 0.35 * 0.75 * 1.10 falls under the 30% lower band
        assert estimate.base_cuft == pytest.approx(43.56 * 0.30, abs=0.01)
        assert estimate.calibration_multiplier == 0.75

    def test_profile_floor(self, make_facts, carton_config):
        facts = make_facts(title="Kids Chair", dimensionsInches={"height": 10, "width": 10, "depth": 10})
        estimate = estimate_carton(CartonRequest(facts, vendor="IKEA"), config=carton_config)

        assert estimate.base_cuft == 3.0
        assert estimate.cuft == pytest.approx(3.45, abs=0.02)

    def test_result_within_global_clamp(self, make_facts, carton_config):
        facts = make_facts(title="Grand Sectional", dimensionsInches={"height": 40, "width": 200, "depth": 200})
        estimate = estimate_carton(CartonRequest(facts, vendor="Arhaus"), config=carton_config)
        assert carton_config.min_cuft <= estimate.cuft <= carton_config.max_cuft

    def test_to_dict(self, make_facts, carton_config):
        payload = estimate_carton(CartonRequest(make_facts(title="Chair")), config=carton_config).to_dict()
        assert payload["tierBranch"] == "no_assembled_dims"
        assert payload["detail"]["source"] == "fallback"
