"""
Tests for services/cost_calculator.py
"""

import pytest

from config import AnalysisDepth, PricingSettings
from orchestrator.pipeline_config import MODELS
from services.cost_calculator import (
    calculate_cost,
    calculate_credit_cost,
    calculate_scraper_cost,
    monitor_costs,
)


@pytest.fixture
def pricing():
    return PricingSettings()


class TestCalculateCost:
    """USD cost of one call"""

    def test_linear_in_tokens(self):
        descriptor = MODELS["gpt-4o"]  # 2.5 in / 10.0 out
        assert calculate_cost(1_000_000, 0, descriptor) == pytest.approx(2.5)
        assert calculate_cost(0, 1_000_000, descriptor) == pytest.approx(10.0)
        assert calculate_cost(1000, 500, descriptor) == pytest.approx(0.0025 + 0.005)

    def test_zero_tokens(self):
        assert calculate_cost(0, 0, MODELS["gpt-5"]) == 0


class TestCalculateCreditCost:
    """Credit pricing"""

    def test_light_example(self, pricing):
        # 0.5 + 0.02 * 1.3 = 0.526
        assert calculate_credit_cost(AnalysisDepth.LIGHT, 0.02, 500, pricing) == 0.53

    def test_cap_is_inclusive(self, pricing):
        assert calculate_credit_cost(AnalysisDepth.DEEP, 0.0, 2200, pricing) == 1.0

    def test_penalty_over_cap(self, pricing):
        assert calculate_credit_cost(AnalysisDepth.LIGHT, 0.02, 2201, pricing) == 0.75

    def test_minimum_charge(self):
        pricing = PricingSettings(base_fees={"light": 0.0, "deep": 0.0, "extended": 0.0})
        assert calculate_credit_cost(AnalysisDepth.LIGHT, 0.0, 10, pricing) == 0.1

    def test_extended_uses_its_base_fee(self, pricing):
        assert calculate_credit_cost("extended", 0.1, 1000, pricing) == 2.13


class TestMonitorCosts:
    """Cost alerts"""

    def test_no_alerts_for_cheap_run(self, pricing):
        assert monitor_costs(AnalysisDepth.LIGHT, 0.01, 800, 0.51, pricing) == []

    def test_high_cost_alert(self, pricing):
        alerts = monitor_costs(AnalysisDepth.DEEP, 0.08, 1500, 1.1, pricing)
        assert [a.alert_type for a in alerts] == ["high_cost"]

    def test_low_margin_alert(self, pricing):
        alerts = monitor_costs(AnalysisDepth.LIGHT, 0.04, 1000, 0.045, pricing)
        assert "low_margin" in [a.alert_type for a in alerts]
        assert alerts[0].margin_percent == pytest.approx(12.5)

    def test_token_cap_alert(self, pricing):
        alerts = monitor_costs(AnalysisDepth.LIGHT, 0.01, 5000, 0.75, pricing)
        assert "token_cap" in [a.alert_type for a in alerts]

    def test_zero_cost_has_no_margin_alert(self, pricing):
        assert monitor_costs(AnalysisDepth.LIGHT, 0.0, 0, 0.5, pricing) == []


class TestScraperCost:
    """Compute-unit estimates"""

    def test_primary_scraper(self):
        assert calculate_scraper_cost(AnalysisDepth.DEEP, "deep_primary") == pytest.approx(0.3)

    @pytest.mark.parametrize("name", ["deep_secondary", "light_fallback", "backup_actor"])
    def test_backup_scrapers_cost_more(self, name):
        assert calculate_scraper_cost(AnalysisDepth.DEEP, name) == pytest.approx(0.45)
