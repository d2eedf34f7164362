# Sustainability metrics, calculator input derivation, material batching and report assembly.
# Standard library only.

from __future__ import annotations
import logging
import math
import uuid
from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from typing import Dict, Any, List, Tuple, Optional, Iterator, Sequence

import analyzers as an
from analyzers import CategoryItem, to_items
from costing import COST_DEFAULTS, calculate_lifecycle_cost_analysis
from errors import ValidationError
from lifecycle import (
    CIRCULAR_DEFAULTS, LIFECYCLE_INPUT_NAMES,
    calculate_lifecycle_assessment, calculate_circular_economy_metrics, generate_circular_recommendations,
)
from suggestions import Suggestion, generate_suggestions, suggestion_texts, high_impact, build_implementation_roadmap

log = logging.getLogger(__name__)

# ===================== Tunables =====================
BASELINE_SCORE = 50.0
CATEGORY_WEIGHTS = {"material": 10.0, "transport": 10.0, "energy": 15.0}
LOW_SUSTAINABLE_FRACTION = 0.3
EMBODIED_CARBON_BASELINE = 1.0
EMISSIONS_FACTOR_BASELINE = 1.0
CARBON_INTENSITY_BASELINE = 0.5
WATER_FOOTPRINT_BASELINE = 100.0
TRANSPORT_EFFICIENCY_BASELINE = 0.7
ENERGY_COST_BASELINE = 0.15          # per unit
ENERGY_EFFICIENCY_BASELINE = 0.8
INDUSTRY_AVERAGE = 60.0
BEST_IN_CLASS = 85.0
COMPLIANT_SCORE = 70.0
PARTIALLY_COMPLIANT_SCORE = 50.0
COMPLIANCE_STANDARDS = ("ISO 14001", "GHG Protocol")
EXECUTIVE_SUGGESTION_LIMIT = 5
DEFAULT_BATCH_SIZE = 50
MAX_LIFESPAN = 200                   # years
RATE_RANGE = (-0.5, 1.0)             # discount, inflation and escalation rates
MAX_COST_AMOUNT = 1e15
RATE_INPUTS = ("discount_rate", "inflation_rate", "energy_cost_escalation")
AMOUNT_INPUTS = ("initial_cost", "operational_cost_annual", "maintenance_cost_annual", "end_of_life_cost")

REPORT_FORMATS = ("basic", "detailed", "executive", "technical")

DATA_COLLECTION_AREAS = {
    "material": "Material data collection",
    "transport": "Transport data collection",
    "energy": "Energy data collection",
}
LOW_FRACTION_AREAS = {
    "material": "Material selection",
    "transport": "Transport efficiency",
    "energy": "Renewable energy adoption",
}

# ===================== Batching =====================
def iter_batches(records: Sequence[Any], size: int) -> Iterator[Tuple[int, Sequence[Any]]]:
    if size <= 0:
        raise ValueError("batch size must be positive")
    for start in range(0, len(records), size):
        yield start, records[start:start + size]

@dataclass(frozen=True)
class NormalizedPayload:
    materials: List[CategoryItem]
    transport: List[CategoryItem]
    energy: List[CategoryItem]
    batches: int

def normalize_payload(materials: Optional[Sequence[Any]], transport: Optional[Sequence[Any]],
                      energy: Optional[Sequence[Any]], batch_size: int = DEFAULT_BATCH_SIZE) -> NormalizedPayload:
    """
    Validate raw records into CategoryItems. Materials are handled in sequential
    chunks of ``batch_size``; the chunk count is returned alongside the items.
    """
    mats: List[CategoryItem] = []
    batches = 0
    for offset, chunk in iter_batches(list(materials or []), batch_size):
        mats.extend(to_items("material", chunk, offset, label="materials"))
        batches += 1
    if batches > 1:
        log.info("processed %d materials in %d batches", len(mats), batches)
    return NormalizedPayload(
        materials=mats,
        transport=to_items("transport", transport, label="transport"),
        energy=to_items("energy", energy, label="energy"),
        batches=batches,
    )

# ===================== Options =====================
@dataclass(frozen=True)
class ReportOptions:
    format: str = "basic"
    include_lifecycle_assessment: bool = False
    include_circular_economy_metrics: bool = False
    include_lifecycle_cost: bool = False
    include_benchmarking: bool = False
    include_regulatory_compliance: bool = False
    include_recommendations: bool = True
    include_implementation_details: bool = False

    @classmethod
    def resolve(cls, format: Optional[str] = None, detailed: bool = False, **flags: bool) -> "ReportOptions":
        fmt = (format or ("detailed" if detailed else "basic")).strip().lower()
        if fmt not in REPORT_FORMATS:
            raise ValidationError(f"Unknown report format '{format}'", {"allowed": list(REPORT_FORMATS)})
        opts = dict(flags)
        if fmt == "technical":
            opts.update(include_lifecycle_assessment=True, include_circular_economy_metrics=True,
                        include_lifecycle_cost=True, include_implementation_details=True)
        return cls(format=fmt, **opts)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

# ===================== Calculator inputs =====================
def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(p.capitalize() for p in rest)

LIFECYCLE_INPUT_KEYS = {_camel(n): n for n in LIFECYCLE_INPUT_NAMES + ("data_quality",)}
CIRCULAR_INPUT_KEYS = {_camel(n): n for n in CIRCULAR_DEFAULTS}
COST_INPUT_KEYS = {_camel(n): n for n in COST_DEFAULTS}
CALCULATOR_INPUT_FIELDS = {
    "lifecycleInputs": LIFECYCLE_INPUT_KEYS,
    "circularEconomyInputs": CIRCULAR_INPUT_KEYS,
    "lifecycleCostInputs": COST_INPUT_KEYS,
}

def parse_calculator_inputs(field_name: str, raw: Any) -> Dict[str, Optional[float]]:
    """camelCase override object -> snake_case kwargs for the matching calculator."""
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ValidationError(f"{field_name} must be an object")
    allowed = CALCULATOR_INPUT_FIELDS[field_name]
    out: Dict[str, Optional[float]] = {}
    for key, value in raw.items():
        if key not in allowed:
            raise ValidationError(f"{field_name}.{key} is not a recognised input",
                                  {"field": field_name, "allowed": sorted(allowed)})
        if value is not None and (isinstance(value, bool) or not isinstance(value, (int, float))):
            raise ValidationError(f"{field_name}.{key} must be a number", {"field": f"{field_name}.{key}"})
        if value is not None:
            _check_domain(field_name, key, allowed[key], value)
        out[allowed[key]] = value
    return out

def _check_domain(field_name: str, key: str, name: str, value: float) -> None:
    where = f"{field_name}.{key}"
    try:
        finite = math.isfinite(value)
    except OverflowError:
        finite = False
    if not finite:
        raise ValidationError(f"{where} must be a finite number", {"field": where})
    if name == "lifespan" and not 0 <= value <= MAX_LIFESPAN:
        raise ValidationError(f"{where} must be between 0 and {MAX_LIFESPAN}",
                              {"field": where, "min": 0, "max": MAX_LIFESPAN})
    low, high = RATE_RANGE
    if name in RATE_INPUTS and not low <= value <= high:
        raise ValidationError(f"{where} must be between {low:g} and {high:g}",
                              {"field": where, "min": low, "max": high})
    if name in AMOUNT_INPUTS and abs(value) > MAX_COST_AMOUNT:
        raise ValidationError(f"{where} must not exceed {MAX_COST_AMOUNT:g} in magnitude",
                              {"field": where, "max": MAX_COST_AMOUNT})

def _mean_of(items: Sequence[CategoryItem], name: str) -> Optional[float]:
    vals = [v for v in (i.number(name) for i in items) if v is not None]
    return (sum(vals) / len(vals)) if vals else None

def _sum_products(items: Sequence[CategoryItem], a: str, b: str) -> Optional[float]:
    pairs = [(i.number(a), i.number(b)) for i in items]
    pairs = [(x, y) for x, y in pairs if x is not None and y is not None]
    total = sum(x * y for x, y in pairs) if pairs else None
    return total if total is not None and math.isfinite(total) else None

def derive_lifecycle_inputs(materials: Sequence[CategoryItem], transport: Sequence[CategoryItem],
                            energy: Sequence[CategoryItem]) -> Dict[str, Optional[float]]:
    return {
        "material_carbon_footprint": _mean_of(materials, "embodiedCarbon"),
        "energy_carbon_footprint": _mean_of(energy, "carbonIntensity"),
        "transport_carbon_footprint": _mean_of(transport, "emissionsFactor"),
    }

def derive_circular_inputs(materials: Sequence[CategoryItem]) -> Dict[str, Optional[float]]:
    recycled = _mean_of(materials, "recycledContent")
    recyclability = _mean_of(materials, "recyclability")
    return {
        "material_recycled_content": None if recycled is None else recycled / 100.0,
        "material_recyclability": None if recyclability is None else recyclability / 100.0,
    }

def derive_cost_inputs(materials: Sequence[CategoryItem], energy: Sequence[CategoryItem]) -> Dict[str, Optional[float]]:
    return {
        "initial_cost": _sum_products(materials, "cost", "quantity"),
        "operational_cost_annual": _sum_products(energy, "consumption", "costPerUnit"),
    }

def _merge(derived: Dict[str, Optional[float]], overrides: Optional[Dict[str, Optional[float]]]) -> Dict[str, Optional[float]]:
    out = {k: v for k, v in derived.items() if v is not None}
    out.update({k: v for k, v in (overrides or {}).items() if v is not None})
    return out

# ===================== Metrics =====================
def _clamp(x: float, lo: float = 0.0, hi: float = 1.0) -> float:
    return max(lo, min(hi, x))

def _fractions(materials: Sequence[CategoryItem], transport: Sequence[CategoryItem],
               energy: Sequence[CategoryItem]) -> Dict[str, Optional[float]]:
    return {
        "material": an.sustainable_material_percentage(materials) / 100.0 if materials else None,
        "transport": an.sustainable_transport_percentage(transport) / 100.0 if transport else None,
        "energy": an.renewable_percentage(energy) / 100.0 if energy else None,
    }

def _shortfall(items: Sequence[CategoryItem], name: str, baseline: float) -> float:
    return sum(max(0.0, baseline - v) for v in (i.number(name) for i in items) if v is not None)

def _excess(items: Sequence[CategoryItem], name: str, baseline: float) -> float:
    return sum(max(0.0, v - baseline) for v in (i.number(name) for i in items) if v is not None)

def estimate_carbon_savings(materials, transport, energy) -> float:
    return _clamp(_shortfall(materials, "embodiedCarbon", EMBODIED_CARBON_BASELINE)
                  + _shortfall(transport, "emissionsFactor", EMISSIONS_FACTOR_BASELINE)
                  + _shortfall(energy, "carbonIntensity", CARBON_INTENSITY_BASELINE))

def estimate_water_savings(materials) -> float:
    return _clamp(_shortfall(materials, "waterFootprint", WATER_FOOTPRINT_BASELINE) / WATER_FOOTPRINT_BASELINE)

def estimate_waste_reduction(materials) -> float:
    return _clamp(sum(max(0.0, v) for v in (m.number("recyclability") for m in materials) if v is not None) / 100.0)

def estimate_cost_savings(transport, energy) -> float:
    transport_part = _excess(transport, "efficiency", TRANSPORT_EFFICIENCY_BASELINE) / (1 - TRANSPORT_EFFICIENCY_BASELINE) * 0.1
    energy_part = 0.0
    for e in energy:
        cpu, consumption = e.number("costPerUnit"), e.number("consumption")
        if cpu is None or consumption is None:
            continue
        energy_part += max(0.0, ENERGY_COST_BASELINE - cpu) / ENERGY_COST_BASELINE * 0.2
    return _clamp(transport_part + energy_part)

def estimate_energy_reduction(energy) -> float:
    return _clamp(_excess(energy, "efficiency", ENERGY_EFFICIENCY_BASELINE) / (1 - ENERGY_EFFICIENCY_BASELINE))

def benchmark(score: float) -> Dict[str, float]:
    percentile = (score - INDUSTRY_AVERAGE) / (BEST_IN_CLASS - INDUSTRY_AVERAGE) * 100.0
    return {"industryAverage": INDUSTRY_AVERAGE, "bestInClass": BEST_IN_CLASS,
            "percentileRanking": _clamp(percentile, 0.0, 100.0)}

def regulatory_compliance(score: float, improvement_areas: Sequence[str]) -> Dict[str, Any]:
    if score >= COMPLIANT_SCORE:
        status = "compliant"
    elif score >= PARTIALLY_COMPLIANT_SCORE:
        status = "partially_compliant"
    else:
        status = "non_compliant"
    return {"status": status, "standards": list(COMPLIANCE_STANDARDS), "gaps": list(improvement_areas)}

def calculate_sustainability_metrics(materials: Sequence[CategoryItem], transport: Sequence[CategoryItem],
                                     energy: Sequence[CategoryItem],
                                     options: Optional[ReportOptions] = None) -> Dict[str, Any]:
    options = options or ReportOptions()
    fractions = _fractions(materials, transport, energy)

    score = BASELINE_SCORE
    areas: List[str] = []
    category_scores: Dict[str, float] = {}
    for cat in ("material", "transport", "energy"):
        frac = fractions[cat]
        if frac is None:
            areas.append(DATA_COLLECTION_AREAS[cat])
            continue
        score += frac * CATEGORY_WEIGHTS[cat]
        category_scores[f"{cat}Score"] = _clamp(50.0 + frac * 50.0, 0.0, 100.0)
        if frac < LOW_SUSTAINABLE_FRACTION:
            areas.append(LOW_FRACTION_AREAS[cat])
    score = _clamp(score, 0.0, 100.0)

    metrics: Dict[str, Any] = {
        "sustainabilityScore": score,
        "estimatedCarbonSavings": estimate_carbon_savings(materials, transport, energy),
        "estimatedCostSavings": estimate_cost_savings(transport, energy),
        "estimatedWaterSavings": estimate_water_savings(materials),
        "estimatedEnergyReduction": estimate_energy_reduction(energy),
        "estimatedWasteReduction": estimate_waste_reduction(materials),
        **category_scores,
        "improvementAreas": areas,
    }
    if options.include_benchmarking:
        metrics.update(benchmark(score))
    if options.include_regulatory_compliance:
        metrics["regulatoryCompliance"] = regulatory_compliance(score, areas)
    return metrics

def calculate_data_completeness(materials: Sequence[CategoryItem], transport: Sequence[CategoryItem],
                                energy: Sequence[CategoryItem]) -> float:
    parts = [(materials, an.material_data_completeness), (transport, an.transport_data_completeness),
             (energy, an.energy_data_completeness)]
    present = [fn(items) for items, fn in parts if items]
    presence = 0.3 * len(present) + (0.1 if len(present) == 3 else 0.0)
    detail = (sum(present) / len(present)) if present else 0.0
    return _clamp(0.3 * min(1.0, presence) + 0.6 * detail)

def generate_summary(metrics: Dict[str, Any], suggestions: Sequence[Suggestion]) -> str:
    areas = ", ".join(metrics["improvementAreas"]) or "none identified"
    n_high = len(high_impact(suggestions))
    return (f"Sustainability Report: Overall score {metrics['sustainabilityScore']:.1f}/100. "
            f"Estimated carbon savings potential: {metrics['estimatedCarbonSavings'] * 100:.1f}%. "
            f"Key improvement areas: {areas}. "
            f"{n_high} high-impact suggestion(s) identified.")

def _key_findings(metrics: Dict[str, Any], materials, transport, energy,
                  lca: Optional[Dict[str, Any]]) -> List[str]:
    findings = [
        f"Overall sustainability score is {metrics['sustainabilityScore']:.1f}/100",
        f"Carbon savings potential is estimated at {metrics['estimatedCarbonSavings'] * 100:.1f}%",
    ]
    hot = an.high_impact_materials(materials)
    if hot:
        findings.append(f"High embodied carbon materials: {', '.join(hot)}")
    routes = an.high_emission_routes(transport)
    if routes:
        findings.append(f"{len(routes)} high-emission transport route(s) identified")
    if energy:
        findings.append(f"Renewable share of energy sources is {an.renewable_percentage(energy):.1f}%")
    if lca:
        findings.append(f"Primary lifecycle hotspot: {lca['hotspots'][0]}")
    return findings

# ===================== Report assembly =====================
def utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")

def new_report_id() -> str:
    return f"SR-{uuid.uuid4().hex}"

def generate_report(materials: Sequence[CategoryItem], transport: Sequence[CategoryItem],
                    energy: Sequence[CategoryItem], options: Optional[ReportOptions] = None,
                    inputs: Optional[Dict[str, Dict[str, Optional[float]]]] = None) -> Dict[str, Any]:
    """
    Assemble a sustainability report in the requested format.

    ``inputs`` holds parsed calculator overrides keyed by ``lifecycleInputs``,
    ``circularEconomyInputs`` and ``lifecycleCostInputs``; they win over values
    derived from the category data. Everything except ``timestamp`` and
    ``reportId`` is a pure function of the arguments.
    """
    options = options or ReportOptions()
    inputs = inputs or {}
    fmt = options.format

    all_suggestions = generate_suggestions(materials, transport, energy)
    suggestions = all_suggestions if options.include_recommendations else []
    metrics = calculate_sustainability_metrics(materials, transport, energy, options)
    summary = generate_summary(metrics, all_suggestions)

    report: Dict[str, Any] = {"format": fmt, "reportId": new_report_id(), "timestamp": utcnow_iso()}

    if fmt == "basic":
        report.update(
            suggestions=suggestion_texts(suggestions),
            metrics={k: metrics[k] for k in ("sustainabilityScore", "estimatedCarbonSavings", "improvementAreas")},
            summary=summary,
        )
        return report

    lca = None
    if options.include_lifecycle_assessment:
        lca = calculate_lifecycle_assessment(**_merge(derive_lifecycle_inputs(materials, transport, energy),
                                                      inputs.get("lifecycleInputs"))).to_dict()

    if fmt == "executive":
        report.update(
            suggestions=[s.to_dict() for s in high_impact(suggestions)[:EXECUTIVE_SUGGESTION_LIMIT]],
            metrics=metrics,
            summary=summary,
            keyFindings=_key_findings(metrics, materials, transport, energy, lca),
        )
        if lca is not None:
            report["lifecycleAssessment"] = lca
        return report

    report.update(
        suggestions=[s.to_dict() for s in suggestions],
        metrics=metrics,
        summary=summary,
        materialAnalysis=an.analyze_materials(materials),
        transportAnalysis=an.analyze_transport(transport),
        energyAnalysis=an.analyze_energy(energy),
    )
    if lca is not None:
        report["lifecycleAssessment"] = lca
    if options.include_circular_economy_metrics:
        circular = calculate_circular_economy_metrics(**_merge(derive_circular_inputs(materials),
                                                               inputs.get("circularEconomyInputs")))
        report["circularEconomyMetrics"] = circular.to_dict()
        report["circularEconomyRecommendations"] = [r.to_dict() for r in generate_circular_recommendations(circular)]
    if options.include_lifecycle_cost:
        cost = calculate_lifecycle_cost_analysis(**_merge(derive_cost_inputs(materials, energy),
                                                          inputs.get("lifecycleCostInputs")))
        report["lifecycleCostAnalysis"] = cost.to_dict()
    if options.include_implementation_details:
        report["implementationRoadmap"] = build_implementation_roadmap(suggestions)
    return report
