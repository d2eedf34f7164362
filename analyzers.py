# Category analyzers for materials, transport legs and energy sources.
# Standard library only.

from __future__ import annotations
import math
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from errors import ValidationError

# ===================== Tunables =====================
HIGH_EMBODIED_CARBON = 0.8            # kg CO2e/kg, material hotspot
EMBODIED_CARBON_HIGH_BAND = 0.7
EMBODIED_CARBON_MEDIUM_BAND = 0.4
SUSTAINABLE_RECYCLED_CONTENT = 50.0   # percent
HIGH_EMISSIONS_FACTOR = 0.8           # transport hotspot
ELECTRIFICATION_EMISSIONS_FACTOR = 0.5
LONG_DISTANCE_KM = 200.0
LOW_EFFICIENCY = 0.7
HIGH_ENERGY_CONSUMPTION = 3000.0      # energy hotspot
HIGH_PEAK_DEMAND = 0.7
LOW_RENEWABLE_PERCENTAGE = 30.0
HIGH_CARBON_INTENSITY = 0.6
RENEWABLE_KEYWORDS = ("solar", "wind", "geothermal", "biomass")
DEFAULT_ENERGY_UNIT = "kWh"
ALTERNATIVE_SAVINGS = {"carbon": 0.3, "cost": 0.1}

IDENTIFIERS = {"material": "name", "transport": "type", "energy": "source"}

# (field, weight, kind) -- kind is number | text | list | present
MATERIAL_COMPLETENESS_FIELDS = (
    ("name", 0.2, "text"), ("embodiedCarbon", 0.2, "number"),
    ("recycledContent", 0.15, "number"), ("locallySourced", 0.15, "present"),
    ("quantity", 0.1, "number"), ("unit", 0.05, "text"), ("cost", 0.05, "number"),
    ("alternatives", 0.05, "list"), ("certifications", 0.05, "list"),
)
TRANSPORT_COMPLETENESS_FIELDS = (
    ("type", 0.2, "text"), ("distance", 0.2, "number"), ("emissionsFactor", 0.2, "number"),
    ("efficiency", 0.1, "number"), ("fuel", 0.1, "text"), ("isElectric", 0.05, "present"),
    ("routeOptimization", 0.05, "present"), ("load", 0.05, "number"),
    ("maintenanceStatus", 0.05, "text"),
)
ENERGY_COMPLETENESS_FIELDS = (
    ("source", 0.2, "text"), ("consumption", 0.2, "number"), ("carbonIntensity", 0.2, "number"),
    ("renewable", 0.1, "present"), ("efficiency", 0.1, "number"), ("unit", 0.05, "text"),
    ("costPerUnit", 0.05, "number"), ("peakDemand", 0.05, "number"),
    ("smartMonitoring", 0.025, "present"), ("demandResponse", 0.025, "present"),
)

EFFICIENCY_OPPORTUNITIES = (
    {"area": "Lighting", "potentialSavings": 0.3, "investmentRequired": 5000, "paybackPeriod": 2.5},
    {"area": "HVAC", "potentialSavings": 0.25, "investmentRequired": 12000, "paybackPeriod": 4},
    {"area": "Equipment", "potentialSavings": 0.2, "investmentRequired": 8000, "paybackPeriod": 3},
)
RENEWABLE_OPPORTUNITY = {"area": "Renewable Energy Installation", "potentialSavings": 0.4,
                         "investmentRequired": 25000, "paybackPeriod": 6}
LOW_CARBON_OPPORTUNITY = {"area": "Low-Carbon Energy Sources", "potentialSavings": 0.35,
                          "investmentRequired": 15000, "paybackPeriod": 5}


# ===================== Input records =====================
@dataclass(frozen=True)
class CategoryItem:
    """One material, transport leg or energy source.

    ``kind`` is the discriminant, ``key`` the required identifier
    (``name`` / ``type`` / ``source``) and ``attrs`` the read-only record.
    """
    kind: str
    key: str
    attrs: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_record(cls, kind: str, record: Any, index: Optional[int] = None,
                    label: Optional[str] = None) -> "CategoryItem":
        ident = IDENTIFIERS.get(kind)
        if ident is None:
            raise ValueError(f"unknown category kind: {kind}")
        label = label or kind
        where = f"{label}[{index}]" if index is not None else label
        if not isinstance(record, dict):
            raise ValidationError(f"{where} must be an object")
        key = record.get(ident)
        if not isinstance(key, str) or not key.strip():
            raise ValidationError(f"{where} is missing a string '{ident}'", {"index": index, "field": ident})
        return cls(kind=kind, key=key, attrs=MappingProxyType(dict(record)))

    def has(self, name: str) -> bool:
        return name in self.attrs

    def number(self, name: str) -> Optional[float]:
        v = self.attrs.get(name)
        if isinstance(v, bool) or not isinstance(v, (int, float)):
            return None
        try:
            f = float(v)
        except OverflowError:  # int beyond float range
            return None
        return f if math.isfinite(f) else None

    def text(self, name: str) -> Optional[str]:
        v = self.attrs.get(name)
        return v if isinstance(v, str) else None

    def flag(self, name: str) -> bool:
        return self.attrs.get(name) is True


def to_items(kind: str, records: Optional[Iterable[Any]], offset: int = 0,
             label: Optional[str] = None) -> List[CategoryItem]:
    return [CategoryItem.from_record(kind, r, offset + i, label) for i, r in enumerate(records or [])]


# ===================== Shared helpers =====================
def _clamp(x: float, lo: float = 0.0, hi: float = 1.0) -> float:
    return max(lo, min(hi, x))


def _average(items: Sequence[CategoryItem], name: str) -> float:
    vals = [v for v in (i.number(name) for i in items) if v is not None]
    return (sum(vals) / len(vals)) if vals else 0.0


def _total(items: Sequence[CategoryItem], name: str) -> float:
    return sum(v for v in (i.number(name) for i in items) if v is not None)


def _percentage(items: Sequence[CategoryItem], predicate) -> float:
    if not items:
        return 0.0
    return sum(1 for i in items if predicate(i)) / len(items) * 100.0


def _field_present(item: CategoryItem, name: str, kind: str) -> bool:
    if kind == "number":
        return item.number(name) is not None
    if kind == "text":
        return item.text(name) is not None
    if kind == "list":
        return isinstance(item.attrs.get(name), list)
    return item.has(name)


def data_completeness(items: Sequence[CategoryItem], fields: Sequence[Tuple[str, float, str]]) -> float:
    """Weighted presence of the expected fields, averaged over items, in [0, 1]."""
    if not items:
        return 0.0
    total = 0.0
    for item in items:
        total += sum(w for name, w, kind in fields if _field_present(item, name, kind))
    return _clamp(total / len(items))


def _count_by(items: Sequence[CategoryItem], key_fn) -> Dict[str, int]:
    out: Dict[str, int] = {}
    for i in items:
        k = key_fn(i)
        if k is None:
            continue
        out[k] = out.get(k, 0) + 1
    return out


# ===================== Materials =====================
def is_sustainable_material(m: CategoryItem) -> bool:
    rc = m.number("recycledContent")
    return m.has("sustainabilityScore") or (rc is not None and rc > SUSTAINABLE_RECYCLED_CONTENT) or m.flag("locallySourced")


def sustainable_material_percentage(materials: Sequence[CategoryItem]) -> float:
    return _percentage(materials, is_sustainable_material)


def average_embodied_carbon(materials: Sequence[CategoryItem]) -> float:
    return _average(materials, "embodiedCarbon")


def total_material_weight(materials: Sequence[CategoryItem]) -> float:
    return _total(materials, "quantity")


def recycled_content_percentage(materials: Sequence[CategoryItem]) -> float:
    return _clamp(_average(materials, "recycledContent"), 0.0, 100.0)


def local_content_percentage(materials: Sequence[CategoryItem]) -> float:
    return _percentage(materials, lambda m: m.flag("locallySourced"))


def high_impact_materials(materials: Sequence[CategoryItem]) -> List[str]:
    return [m.key for m in materials
            if (m.number("embodiedCarbon") or 0.0) > HIGH_EMBODIED_CARBON]


def material_alternatives(materials: Sequence[CategoryItem]) -> List[Dict[str, Any]]:
    out = []
    for m in materials:
        if (m.number("embodiedCarbon") or 0.0) <= HIGH_EMBODIED_CARBON:
            continue
        alts = m.attrs.get("alternatives")
        out.append({
            "material": m.key,
            "alternatives": [a for a in alts if isinstance(a, str)] if isinstance(alts, list) else [],
            "potentialSavings": dict(ALTERNATIVE_SAVINGS),
        })
    return out


def group_materials_by_category(materials: Sequence[CategoryItem]) -> Dict[str, int]:
    return _count_by(materials, lambda m: m.text("type").lower() if m.text("type") else None)


def group_materials_by_embodied_carbon(materials: Sequence[CategoryItem]) -> Dict[str, int]:
    levels = {"high": 0, "medium": 0, "low": 0}
    for m in materials:
        ec = m.number("embodiedCarbon")
        if ec is None:
            continue
        if ec > EMBODIED_CARBON_HIGH_BAND: levels["high"] += 1
        elif ec > EMBODIED_CARBON_MEDIUM_BAND: levels["medium"] += 1
        else: levels["low"] += 1
    return levels


def material_data_completeness(materials: Sequence[CategoryItem]) -> float:
    return data_completeness(materials, MATERIAL_COMPLETENESS_FIELDS)


def analyze_materials(materials: Sequence[CategoryItem]) -> Dict[str, Any]:
    return {
        "totalMaterials": len(materials),
        "totalWeight": total_material_weight(materials),
        "sustainablePercentage": sustainable_material_percentage(materials),
        "averageEmbodiedCarbon": average_embodied_carbon(materials),
        "recycledContentPercentage": recycled_content_percentage(materials),
        "localContentPercentage": local_content_percentage(materials),
        "highImpactMaterials": high_impact_materials(materials),
        "alternatives": material_alternatives(materials),
        "byCategory": group_materials_by_category(materials),
        "byEmbodiedCarbon": group_materials_by_embodied_carbon(materials),
        "dataCompleteness": material_data_completeness(materials),
    }


# ===================== Transport =====================
def is_sustainable_transport(t: CategoryItem) -> bool:
    return t.has("carbonFootprint") or t.flag("isElectric") or t.flag("routeOptimization")


def sustainable_transport_percentage(transport: Sequence[CategoryItem]) -> float:
    return _percentage(transport, is_sustainable_transport)


def total_distance(transport: Sequence[CategoryItem]) -> float:
    return _total(transport, "distance")


def average_emissions_factor(transport: Sequence[CategoryItem]) -> float:
    return _average(transport, "emissionsFactor")


def average_transport_efficiency(transport: Sequence[CategoryItem]) -> float:
    return _average(transport, "efficiency")


def average_load(transport: Sequence[CategoryItem]) -> float:
    return _average(transport, "load")


def emissions_per_ton_km(transport: Sequence[CategoryItem]) -> float:
    vals = []
    for t in transport:
        ef, d, load = t.number("emissionsFactor"), t.number("distance"), t.number("load")
        if ef is None or d is None or load is None or d <= 0 or load <= 0:
            continue
        vals.append(ef / (d * load))
    return (sum(vals) / len(vals)) if vals else 0.0


def high_emission_routes(transport: Sequence[CategoryItem]) -> List[Dict[str, Any]]:
    out = []
    for t in transport:
        ef, d = t.number("emissionsFactor"), t.number("distance")
        if ef is None or d is None or ef <= HIGH_EMISSIONS_FACTOR:
            continue
        out.append({"type": t.key, "origin": t.text("origin"), "destination": t.text("destination"),
                    "distance": d, "emissionsFactor": ef})
    return out


def route_optimization_potential(transport: Sequence[CategoryItem]) -> float:
    if not transport:
        return 0.0
    non_optimized = sum(1 for t in transport if not t.flag("routeOptimization"))
    return min(0.5, non_optimized / len(transport) * 0.3)


def electrification_savings_potential(transport: Sequence[CategoryItem]) -> float:
    if not transport:
        return 0.0
    candidates = sum(1 for t in transport
                     if not t.flag("isElectric") and (t.number("emissionsFactor") or 0.0) > ELECTRIFICATION_EMISSIONS_FACTOR)
    return min(0.8, candidates / len(transport) * 0.5)


def group_transport_by_type(transport: Sequence[CategoryItem]) -> Dict[str, int]:
    return _count_by(transport, lambda t: t.key.lower())


def _fuel_of(t: CategoryItem) -> str:
    if t.text("fuel"):
        return t.text("fuel").lower()
    return "electric" if t.flag("isElectric") else "unknown"


def group_transport_by_fuel(transport: Sequence[CategoryItem]) -> Dict[str, int]:
    return _count_by(transport, _fuel_of)


def transport_data_completeness(transport: Sequence[CategoryItem]) -> float:
    return data_completeness(transport, TRANSPORT_COMPLETENESS_FIELDS)


def analyze_transport(transport: Sequence[CategoryItem]) -> Dict[str, Any]:
    return {
        "totalItems": len(transport),
        "totalDistance": total_distance(transport),
        "averageEmissionsFactor": average_emissions_factor(transport),
        "sustainablePercentage": sustainable_transport_percentage(transport),
        "averageEfficiency": average_transport_efficiency(transport),
        "averageLoad": average_load(transport),
        "emissionsPerTonKm": emissions_per_ton_km(transport),
        "highEmissionRoutes": high_emission_routes(transport),
        "routeOptimizationPotential": route_optimization_potential(transport),
        "electrificationSavingsPotential": electrification_savings_potential(transport),
        "byType": group_transport_by_type(transport),
        "byFuel": group_transport_by_fuel(transport),
        "dataCompleteness": transport_data_completeness(transport),
    }


# ===================== Energy =====================
def is_renewable(e: CategoryItem) -> bool:
    src = e.key.lower()
    return e.flag("renewable") or any(k in src for k in RENEWABLE_KEYWORDS)


def renewable_percentage(energy: Sequence[CategoryItem]) -> float:
    return _percentage(energy, is_renewable)


def total_energy_consumption(energy: Sequence[CategoryItem]) -> float:
    return _total(energy, "consumption")


def average_carbon_intensity(energy: Sequence[CategoryItem]) -> float:
    return _average(energy, "carbonIntensity")


def average_energy_efficiency(energy: Sequence[CategoryItem]) -> float:
    return _average(energy, "efficiency")


def peak_demand_reduction_potential(energy: Sequence[CategoryItem]) -> float:
    if not energy:
        return 0.0
    high_peak = sum(1 for e in energy if (e.number("peakDemand") or 0.0) > HIGH_PEAK_DEMAND)
    smart = sum(1 for e in energy if e.flag("smartMonitoring") or e.flag("demandResponse"))
    return _clamp((high_peak - smart) / len(energy) * 0.4, 0.0, 0.5)


def smart_monitoring_percentage(energy: Sequence[CategoryItem]) -> float:
    return _percentage(energy, lambda e: e.flag("smartMonitoring"))


def demand_response_percentage(energy: Sequence[CategoryItem]) -> float:
    return _percentage(energy, lambda e: e.flag("demandResponse"))


def high_consumption_sources(energy: Sequence[CategoryItem]) -> List[Dict[str, Any]]:
    return [{"source": e.key, "consumption": e.number("consumption"), "unit": e.text("unit") or DEFAULT_ENERGY_UNIT}
            for e in energy if (e.number("consumption") or 0.0) > HIGH_ENERGY_CONSUMPTION]


def efficiency_opportunities(energy: Sequence[CategoryItem]) -> List[Dict[str, Any]]:
    out = [dict(o) for o in EFFICIENCY_OPPORTUNITIES]
    if energy:
        if renewable_percentage(energy) < LOW_RENEWABLE_PERCENTAGE:
            out.append(dict(RENEWABLE_OPPORTUNITY))
        if average_carbon_intensity(energy) > HIGH_CARBON_INTENSITY:
            out.append(dict(LOW_CARBON_OPPORTUNITY))
    return out


def _sum_by(items: Sequence[CategoryItem], key_fn, value_field: str) -> Dict[str, float]:
    out: Dict[str, float] = {}
    for i in items:
        v = i.number(value_field)
        if v is None:
            continue
        k = key_fn(i)
        out[k] = out.get(k, 0.0) + v
    return out


def group_energy_by_source(energy: Sequence[CategoryItem]) -> Dict[str, float]:
    return _sum_by(energy, lambda e: e.key.lower(), "consumption")


def group_energy_by_unit(energy: Sequence[CategoryItem]) -> Dict[str, float]:
    return _sum_by(energy, lambda e: e.text("unit") or DEFAULT_ENERGY_UNIT, "consumption")


def energy_data_completeness(energy: Sequence[CategoryItem]) -> float:
    return data_completeness(energy, ENERGY_COMPLETENESS_FIELDS)


def analyze_energy(energy: Sequence[CategoryItem]) -> Dict[str, Any]:
    return {
        "totalItems": len(energy),
        "totalConsumption": total_energy_consumption(energy),
        "renewablePercentage": renewable_percentage(energy),
        "averageCarbonIntensity": average_carbon_intensity(energy),
        "averageEfficiency": average_energy_efficiency(energy),
        "peakDemandReductionPotential": peak_demand_reduction_potential(energy),
        "smartMonitoringPercentage": smart_monitoring_percentage(energy),
        "demandResponsePercentage": demand_response_percentage(energy),
        "highConsumptionSources": high_consumption_sources(energy),
        "efficiencyOpportunities": efficiency_opportunities(energy),
        "bySource": group_energy_by_source(energy),
        "byUnit": group_energy_by_unit(energy),
        "dataCompleteness": energy_data_completeness(energy),
    }
