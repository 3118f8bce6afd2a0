"""
Unit Tests - Freight Pricing
"""
import pytest

from freight_engine.pricing.freight import calc_freight_smart, fragile_surcharge, is_oversize
from freight_engine.pricing.retailers import classify_retailer, domain_from_url


class TestRetailers:

    @pytest.mark.parametrize("url,host", [
        ("https://www.RH.com/catalog/sofa", "rh.com"),
        ("ikea.com/us/en/p/chair", "ikea.com"),
        ("", None),
    ])
    def test_domain_from_url(self, url, host):
        assert domain_from_url(url) == host

    def test_high_end_by_host(self, make_facts, freight_config):
        assert classify_retailer(make_facts(url="https://rh.com/x"), freight_config).tier == "high"

    def test_value_by_brand(self, make_facts, freight_config):
        assert classify_retailer(make_facts(brand="IKEA"), freight_config).tier == "value"

    def test_neutral(self, make_facts, freight_config):
        assert classify_retailer(make_facts(url="https://example.com"), freight_config).tier == "neutral"


class TestSurcharges:

    def test_fragile_by_text(self, freight_config):
        assert fragile_surcharge(None, "tempered glass top", freight_config) == 0.20

    def test_fragile_lighting_needs_glass(self, freight_config):
        assert fragile_surcharge("lighting", "brass sconce", freight_config) == 0.0
        assert fragile_surcharge("lighting", "crystal chandelier", freight_config) == 0.20

    def test_oversize_by_dims_and_text(self, make_facts, freight_config):
        assert is_oversize(make_facts(dimensionsInches={"height": 30, "width": 90, "depth": 40}), freight_config)
        assert is_oversize(make_facts(title="Extra-Large Ottoman"), freight_config)
        assert not is_oversize(make_facts(title="Ottoman"), freight_config)


class TestCalcFreightSmart:
    """Tests for the strategy cascade"""

    def test_carton_explicit(self, make_facts, freight_config):
        quote = calc_freight_smart(make_facts(title="Ottoman", cartonCubicFeet=10), config=freight_config)

        assert quote.mode == "carton_explicit"
        assert quote.cuft == 10
        assert quote.amount == pytest.approx(103.5)

    def test_multi_carton_surcharge(self, make_facts, freight_config):
        quote = calc_freight_smart(make_facts(title="Ottoman", cartonCubicFeet=30), config=freight_config)

        # 30 * 9 * 1.08 * 1.15
        assert quote.amount == pytest.approx(335.34, abs=0.01)
        assert quote.strategy_log["multi_carton"] is True

    def test_category_heuristic(self, make_facts, freight_config):
        log = {}
        quote = calc_freight_smart(make_facts(title="Modern Sofa"), log=log, config=freight_config)

        assert quote.mode == "cat_sofa"
        assert quote.cuft == 45.0
        assert quote.amount == pytest.approx(503.01, abs=0.01)
        assert log["freight_strategy"] == "cat:sofa"

    def test_fragile_mirror(self, make_facts, freight_config):
        quote = calc_freight_smart(make_facts(title="Wall Mirror"), config=freight_config)

        # 3.5 * 9 * 1.15 * 1.20
        assert quote.mode == "cat_mirror"
        assert quote.amount == pytest.approx(43.47, abs=0.01)

    def test_oversize(self, make_facts, freight_config):
        facts = make_facts(title="Ottoman", cartonCubicFeet=10, dimensionsInches={"height": 20, "width": 90, "depth": 40})
        quote = calc_freight_smart(facts, config=freight_config)
        assert quote.amount == pytest.approx(113.85, abs=0.01)

    def test_surcharges_combine_additively(self, make_facts, freight_config):
        facts = make_facts(title="Glass Ottoman", cartonCubicFeet=10, url="https://rh.com/x")
        quote = calc_freight_smart(facts, config=freight_config)

        # 90 * 1.15 * (1 + 0.20 + 0.25)
        assert quote.amount == pytest.approx(150.075, abs=0.01)
        assert quote.strategy_log["surcharge_pct"] == 0.45

    def test_weight_based(self, make_facts, freight_config):
        quote = calc_freight_smart(make_facts(title="Widget", weight=20), config=freight_config)

        assert quote.mode == "weight_based"
        assert quote.cuft == 0.0
        assert quote.amount == pytest.approx(27.6)

    def test_weight_based_high_end(self, make_facts, freight_config):
        quote = calc_freight_smart(make_facts(title="Widget", weight=24, url="https://rh.com/w"), config=freight_config)
        assert quote.amount == pytest.approx(41.4)

    def test_weight_from_additional_properties(self, make_facts, freight_config):
        facts = make_facts(title="Widget", additionalProperties=[{"name": "Weight", "value": "20 lbs"}])
        assert calc_freight_smart(facts, config=freight_config).mode == "weight_based"

    def test_percent_of_price(self, make_facts, freight_config):
        quote = calc_freight_smart(make_facts(title="Widget", price=100), config=freight_config)

        assert quote.mode == "percent_of_price"
        assert quote.amount == 60.0

    def test_nothing_known(self, make_facts, freight_config):
        assert calc_freight_smart(make_facts(), config=freight_config).amount == 0.0

    def test_to_dict(self, make_facts, freight_config):
        payload = calc_freight_smart(make_facts(title="Widget", price=10), config=freight_config).to_dict()
        assert payload == {
            "amount": 6.0,
            "mode": "percent_of_price",
            "cuft": 0.0,
            "log": {"freight_strategy": "percent_of_price", "percent": 0.6},
        }
