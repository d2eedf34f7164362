# costing.py
# Discounted lifecycle cost: present values, annualized cost, breakdown, sensitivity.
# Standard library only.

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

# ===================== Tunables =====================
COST_DEFAULTS = {
    "initial_cost": 1_000_000.0,
    "operational_cost_annual": 50_000.0,
    "maintenance_cost_annual": 25_000.0,
    "end_of_life_cost": 100_000.0,
    "lifespan": 30,
    "discount_rate": 0.05,
    "inflation_rate": 0.02,
    "energy_cost_escalation": 0.03,
}

# (parameter label, input name, additive step or None, relative step or None)
SENSITIVITY_PERTURBATIONS: Tuple[Tuple[str, str, Optional[float], Optional[float]], ...] = (
    ("Discount Rate", "discount_rate", 0.01, None),
    ("Lifespan", "lifespan", 5, None),
    ("Energy Cost Escalation", "energy_cost_escalation", 0.01, None),
    ("Operational Cost", "operational_cost_annual", None, 0.10),
)


@dataclass(frozen=True)
class CostBreakdownItem:
    category: str
    percentage: float
    npv: float

    def to_dict(self) -> Dict[str, Any]:
        return {"category": self.category, "percentage": self.percentage, "npv": self.npv}


@dataclass(frozen=True)
class SensitivityEntry:
    parameter: str
    delta: float
    impact: float
    perturbed_total: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "parameter": self.parameter,
            "delta": self.delta,
            "impact": self.impact,
            "perturbedTotal": self.perturbed_total,
        }


@dataclass(frozen=True)
class LifecycleCostAnalysis:
    initial_cost: float
    operational_cost: float
    maintenance_cost: float
    end_of_life_cost: float
    total_lifecycle_cost: float
    net_present_value: float
    annualized_cost: float
    real_discount_rate: float
    lifespan: int
    cost_breakdown: Tuple[CostBreakdownItem, ...]
    sensitivity_analysis: Tuple[SensitivityEntry, ...]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "initialCost": self.initial_cost,
            "operationalCost": self.operational_cost,
            "maintenanceCost": self.maintenance_cost,
            "endOfLifeCost": self.end_of_life_cost,
            "totalLifecycleCost": self.total_lifecycle_cost,
            "netPresentValue": self.net_present_value,
            "annualizedCost": self.annualized_cost,
            "realDiscountRate": self.real_discount_rate,
            "lifespan": self.lifespan,
            "costBreakdown": [c.to_dict() for c in self.cost_breakdown],
            "sensitivityAnalysis": [s.to_dict() for s in self.sensitivity_analysis],
        }


# ===================== Present values =====================
def real_discount_rate(discount_rate: float, inflation_rate: float) -> float:
    return (1 + discount_rate) / (1 + inflation_rate) - 1


def _present_values(p: Dict[str, float]) -> Tuple[float, float, float, float, float]:
    """
    Returns (real rate, operational PV, maintenance PV, end-of-life PV, total).
    Plain loop over years; callers may invoke it repeatedly with perturbed inputs.
    """
    r = real_discount_rate(p["discount_rate"], p["inflation_rate"])
    n = int(p["lifespan"])
    operational = maintenance = 0.0
    for year in range(1, n + 1):
        factor = (1 + r) ** year
        operational += p["operational_cost_annual"] * (1 + p["energy_cost_escalation"]) ** (year - 1) / factor
        maintenance += p["maintenance_cost_annual"] * (1 + p["inflation_rate"]) ** (year - 1) / factor
    end_of_life = p["end_of_life_cost"] / (1 + r) ** max(n, 0)
    total = p["initial_cost"] + operational + maintenance + end_of_life
    return r, operational, maintenance, end_of_life, total


def annualized_cost(total: float, r: float, n: int) -> float:
    if n <= 0:
        return total
    growth = (1 + r) ** n
    if r == 0 or growth == 1:
        return total / n
    return total * r * growth / (growth - 1)


def _breakdown(parts: List[Tuple[str, float]], total: float) -> Tuple[CostBreakdownItem, ...]:
    return tuple(
        CostBreakdownItem(category=name, percentage=(npv / total * 100.0) if total > 0 else 0.0, npv=npv)
        for name, npv in parts
    )


def _sensitivity(params: Dict[str, float], base_total: float) -> Tuple[SensitivityEntry, ...]:
    out: List[SensitivityEntry] = []
    for label, key, step, rel in SENSITIVITY_PERTURBATIONS:
        perturbed = dict(params)
        delta = step if step is not None else params[key] * rel
        perturbed[key] = params[key] + delta
        total = _present_values(perturbed)[-1]
        impact = (total - base_total) / base_total if base_total else 0.0
        out.append(SensitivityEntry(parameter=label, delta=delta, impact=impact, perturbed_total=total))
    return tuple(out)


def calculate_lifecycle_cost_analysis(**inputs: Optional[float]) -> LifecycleCostAnalysis:
    """
    NPV lifecycle cost under a real discount rate.

    Operational costs escalate with ``energy_cost_escalation``; maintenance costs with
    ``inflation_rate``. ``net_present_value`` is the negated total since no benefit
    stream is modelled. ``None`` inputs take their defaults.
    """
    unknown = set(inputs) - set(COST_DEFAULTS)
    if unknown:
        raise TypeError(f"unknown lifecycle cost inputs: {sorted(unknown)}")

    params: Dict[str, float] = {}
    for key, default in COST_DEFAULTS.items():
        value = inputs.get(key)
        params[key] = float(default if value is None else value)
    params["lifespan"] = int(params["lifespan"])

    r, operational, maintenance, end_of_life, total = _present_values(params)
    n = params["lifespan"]

    breakdown = _breakdown([
        ("Initial Cost", params["initial_cost"]),
        ("Operational Cost", operational),
        ("Maintenance Cost", maintenance),
        ("End of Life Cost", end_of_life),
    ], total)

    return LifecycleCostAnalysis(
        initial_cost=params["initial_cost"],
        operational_cost=operational,
        maintenance_cost=maintenance,
        end_of_life_cost=end_of_life,
        total_lifecycle_cost=total,
        net_present_value=-total,
        annualized_cost=annualized_cost(total, r, n),
        real_discount_rate=r,
        lifespan=n,
        cost_breakdown=breakdown,
        sensitivity_analysis=_sensitivity(params, total),
    )
