"""
Lifecycle cost tests. Reference values come from closed-form geometric series.
"""

import pytest

from costing import annualized_cost, calculate_lifecycle_cost_analysis, real_discount_rate

SCENARIO = dict(
    lifespan=30, discount_rate=0.05, inflation_rate=0.02, initial_cost=1_000_000,
    operational_cost_annual=50_000, maintenance_cost_annual=25_000, end_of_life_cost=100_000,
)


def growing_annuity_pv(amount, growth, rate, years):
    q = (1 + growth) / (1 + rate)
    return amount / (1 + rate) * (1 - q ** years) / (1 - q)


class TestReferenceScenario:

    def setup_method(self):
        self.r = 1.05 / 1.02 - 1
        self.operational = growing_annuity_pv(50_000, 0.03, self.r, 30)
        self.maintenance = growing_annuity_pv(25_000, 0.02, self.r, 30)
        self.end_of_life = 100_000 / (1 + self.r) ** 30
        self.total = 1_000_000 + self.operational + self.maintenance + self.end_of_life

    def test_present_values(self):
        result = calculate_lifecycle_cost_analysis(**SCENARIO)
        assert result.real_discount_rate == pytest.approx(self.r)
        assert result.operational_cost == pytest.approx(self.operational, rel=1e-9)
        assert result.maintenance_cost == pytest.approx(self.maintenance, rel=1e-9)
        assert result.end_of_life_cost == pytest.approx(self.end_of_life, rel=1e-9)
        assert result.total_lifecycle_cost == pytest.approx(self.total, rel=1e-9)
        assert result.net_present_value == -result.total_lifecycle_cost

    def test_annualized_cost(self):
        result = calculate_lifecycle_cost_analysis(**SCENARIO)
        growth = (1 + self.r) ** 30
        expected = self.total * self.r * growth / (growth - 1)
        assert result.annualized_cost == pytest.approx(expected, rel=1e-9)

    def test_components_sum_to_total(self):
        result = calculate_lifecycle_cost_analysis(**SCENARIO)
        parts = result.initial_cost + result.operational_cost + result.maintenance_cost + result.end_of_life_cost
        assert parts == pytest.approx(result.total_lifecycle_cost)

    def test_breakdown_percentages_sum_to_100(self):
        result = calculate_lifecycle_cost_analysis(**SCENARIO)
        assert [c.category for c in result.cost_breakdown] == [
            "Initial Cost", "Operational Cost", "Maintenance Cost", "End of Life Cost"]
        assert sum(c.percentage for c in result.cost_breakdown) == pytest.approx(100.0)
        assert sum(c.npv for c in result.cost_breakdown) == pytest.approx(result.total_lifecycle_cost)


class TestSensitivity:

    def test_finite_differences(self):
        base = calculate_lifecycle_cost_analysis(**SCENARIO)
        entries = {s.parameter: s for s in base.sensitivity_analysis}
        assert list(entries) == ["Discount Rate", "Lifespan", "Energy Cost Escalation", "Operational Cost"]

        bumped = calculate_lifecycle_cost_analysis(**dict(SCENARIO, discount_rate=0.06))
        assert entries["Discount Rate"].perturbed_total == pytest.approx(bumped.total_lifecycle_cost)
        assert entries["Discount Rate"].impact == pytest.approx(
            (bumped.total_lifecycle_cost - base.total_lifecycle_cost) / base.total_lifecycle_cost)

        assert entries["Discount Rate"].impact < 0
        assert entries["Lifespan"].impact > 0
        assert entries["Energy Cost Escalation"].impact > 0
        assert entries["Operational Cost"].delta == pytest.approx(5_000)
        assert entries["Operational Cost"].impact == pytest.approx(
            0.1 * base.operational_cost / base.total_lifecycle_cost)


class TestEdgeCases:

    def test_defaults_match_reference_scenario(self):
        assert calculate_lifecycle_cost_analysis().total_lifecycle_cost == pytest.approx(
            calculate_lifecycle_cost_analysis(**SCENARIO).total_lifecycle_cost)

    def test_zero_real_rate(self):
        result = calculate_lifecycle_cost_analysis(discount_rate=0.02, inflation_rate=0.02,
                                                   energy_cost_escalation=0.0, lifespan=10,
                                                   initial_cost=100, operational_cost_annual=10,
                                                   maintenance_cost_annual=0, end_of_life_cost=0)
        assert result.real_discount_rate == 0.0
        assert result.total_lifecycle_cost == pytest.approx(200.0)
        assert result.annualized_cost == pytest.approx(20.0)

    def test_zero_lifespan(self):
        result = calculate_lifecycle_cost_analysis(lifespan=0)
        assert result.operational_cost == 0.0
        assert result.maintenance_cost == 0.0
        assert result.annualized_cost == result.total_lifecycle_cost

    def test_all_zero_costs_do_not_divide_by_zero(self):
        result = calculate_lifecycle_cost_analysis(initial_cost=0, operational_cost_annual=0,
                                                   maintenance_cost_annual=0, end_of_life_cost=0)
        assert all(c.percentage == 0.0 for c in result.cost_breakdown)
        assert all(s.impact == 0.0 for s in result.sensitivity_analysis)

    def test_helpers(self):
        assert real_discount_rate(0.05, 0.0) == pytest.approx(0.05)
        assert annualized_cost(100.0, 0.0, 4) == 25.0
        assert annualized_cost(100.0, 0.05, 0) == 100.0

    def test_near_zero_real_rate_does_not_divide_by_zero(self):
        assert annualized_cost(100.0, -1e-17, 4) == 25.0
        result = calculate_lifecycle_cost_analysis(discount_rate=0.05, inflation_rate=0.05000000000000001)
        assert result.annualized_cost == pytest.approx(result.total_lifecycle_cost / 30)

    def test_to_dict_keys(self):
        out = calculate_lifecycle_cost_analysis().to_dict()
        assert out["lifespan"] == 30
        assert set(out["sensitivityAnalysis"][0]) == {"parameter", "delta", "impact", "perturbedTotal"}
        assert set(out["costBreakdown"][0]) == {"category", "percentage", "npv"}
