# lifecycle.py
# Six-stage lifecycle assessment and circular economy metrics.
# Standard library only.

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

# ===================== Tunables =====================
# stage name -> (input prefix, description, default (carbon, water, energy), stage hotspots, improvement potential)
LIFECYCLE_STAGES: Tuple[Tuple[str, str, str, Tuple[float, float, float], Tuple[str, ...], float], ...] = (
    ("Raw Material Extraction", "material", "Extraction and processing of raw materials",
     (0.3, 0.4, 0.25), ("Energy-intensive extraction processes", "Water usage in processing"), 0.4),
    ("Manufacturing", "energy", "Manufacturing and fabrication processes",
     (0.25, 0.15, 0.35), ("Energy consumption", "Process emissions"), 0.35),
    ("Transportation", "transport", "Transportation of materials and products",
     (0.2, 0.1, 0.3), ("Fuel consumption", "Logistics efficiency"), 0.3),
    ("Construction", "construction", "On-site construction activities",
     (0.15, 0.2, 0.25), ("Equipment emissions", "Material waste"), 0.25),
    ("Use Phase", "use_phase", "Operation and maintenance during use",
     (0.1, 0.2, 0.2), ("Operational energy use", "Maintenance activities"), 0.2),
    ("End of Life", "end_of_life", "Demolition, disposal, recycling, or reuse",
     (0.1, 0.1, 0.1), ("Waste management", "Recycling efficiency"), 0.45),
)

CARBON_HOTSPOT_THRESHOLDS = (0.2, 0.15)   # rank 1, rank 2
WATER_HOTSPOT_THRESHOLD = 0.3
ENERGY_HOTSPOT_THRESHOLD = 0.3
DEFAULT_HOTSPOT = "Overall lifecycle efficiency"
DEFAULT_LCA_DATA_QUALITY = 0.7

CIRCULAR_DEFAULTS = {
    "material_recycled_content": 0.3,
    "material_reuse_rate": 0.4,
    "material_recyclability": 0.6,
    "product_lifespan": 15.0,
    "waste_recycling_rate": 0.6,
    "design_for_disassembly": 0.5,
    "repairability_score": 0.6,
    "biodegradable_content": 0.2,
    "byproduct_synergy_potential": 0.4,
}


def _clamp(x: float, lo: float = 0.0, hi: float = 1.0) -> float:
    return max(lo, min(hi, x))


def _or_default(value: Optional[float], default: float) -> float:
    return default if value is None else float(value)


# ===================== Lifecycle assessment =====================
@dataclass(frozen=True)
class LifecycleStage:
    name: str
    description: str
    carbon_footprint: float
    water_footprint: float
    energy_consumption: float
    hotspots: Tuple[str, ...] = ()
    improvement_potential: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "carbonFootprint": self.carbon_footprint,
            "waterFootprint": self.water_footprint,
            "energyConsumption": self.energy_consumption,
            "hotspots": list(self.hotspots),
            "improvementPotential": self.improvement_potential,
        }


@dataclass(frozen=True)
class LifecycleAssessment:
    stages: Tuple[LifecycleStage, ...]
    total_carbon_footprint: float
    total_water_footprint: float
    total_energy_consumption: float
    hotspots: Tuple[str, ...]
    improvement_potential: float
    data_quality: float = DEFAULT_LCA_DATA_QUALITY
    uncertainty_level: str = "Medium"
    functional_unit: str = "Per project"
    system_boundaries: Tuple[str, ...] = ("Cradle-to-grave", "Excludes some indirect processes")
    allocation_method: str = "Mass-based allocation"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stages": [s.to_dict() for s in self.stages],
            "totalCarbonFootprint": self.total_carbon_footprint,
            "totalWaterFootprint": self.total_water_footprint,
            "totalEnergyConsumption": self.total_energy_consumption,
            "hotspots": list(self.hotspots),
            "improvementPotential": self.improvement_potential,
            "uncertaintyLevel": self.uncertainty_level,
            "dataQuality": self.data_quality,
            "functionalUnit": self.functional_unit,
            "systemBoundaries": list(self.system_boundaries),
            "allocationMethod": self.allocation_method,
        }


LIFECYCLE_INPUT_NAMES = tuple(
    f"{prefix}_{metric}"
    for _, prefix, _, _, _, _ in LIFECYCLE_STAGES
    for metric in ("carbon_footprint", "water_footprint", "energy_consumption")
)


def _lifecycle_hotspots(stages: List[LifecycleStage]) -> List[str]:
    # sorted() is stable: ties keep stage declaration order
    by_carbon = sorted(stages, key=lambda s: s.carbon_footprint, reverse=True)
    by_water = sorted(stages, key=lambda s: s.water_footprint, reverse=True)
    by_energy = sorted(stages, key=lambda s: s.energy_consumption, reverse=True)

    hotspots: List[str] = []
    for rank, threshold in enumerate(CARBON_HOTSPOT_THRESHOLDS):
        if by_carbon[rank].carbon_footprint > threshold:
            hotspots.append(f"{by_carbon[rank].name} carbon emissions")
    if by_water[0].water_footprint > WATER_HOTSPOT_THRESHOLD:
        hotspots.append(f"{by_water[0].name} water usage")
    if by_energy[0].energy_consumption > ENERGY_HOTSPOT_THRESHOLD:
        hotspots.append(f"{by_energy[0].name} energy consumption")
    return hotspots or [DEFAULT_HOTSPOT]


def calculate_lifecycle_assessment(data_quality: Optional[float] = None,
                                   **footprints: Optional[float]) -> LifecycleAssessment:
    """
    Build the six lifecycle stages and aggregate them.

    Keyword inputs are ``<stage>_carbon_footprint``, ``<stage>_water_footprint`` and
    ``<stage>_energy_consumption`` for stage prefixes material, energy, transport,
    construction, use_phase and end_of_life. ``None`` or a missing key falls back
    to the stage default.
    """
    unknown = set(footprints) - set(LIFECYCLE_INPUT_NAMES)
    if unknown:
        raise TypeError(f"unknown lifecycle inputs: {sorted(unknown)}")

    stages: List[LifecycleStage] = []
    for name, prefix, description, defaults, stage_hotspots, potential in LIFECYCLE_STAGES:
        carbon, water, energy = defaults
        stages.append(LifecycleStage(
            name=name,
            description=description,
            carbon_footprint=_or_default(footprints.get(f"{prefix}_carbon_footprint"), carbon),
            water_footprint=_or_default(footprints.get(f"{prefix}_water_footprint"), water),
            energy_consumption=_or_default(footprints.get(f"{prefix}_energy_consumption"), energy),
            hotspots=stage_hotspots,
            improvement_potential=potential,
        ))

    total_carbon = sum(s.carbon_footprint for s in stages)
    total_water = sum(s.water_footprint for s in stages)
    total_energy = sum(s.energy_consumption for s in stages)

    if total_carbon > 0:
        improvement = sum(s.improvement_potential * (s.carbon_footprint / total_carbon) for s in stages)
    else:
        improvement = 0.0

    return LifecycleAssessment(
        stages=tuple(stages),
        total_carbon_footprint=total_carbon,
        total_water_footprint=total_water,
        total_energy_consumption=total_energy,
        hotspots=tuple(_lifecycle_hotspots(stages)),
        improvement_potential=improvement,
        data_quality=_clamp(_or_default(data_quality, DEFAULT_LCA_DATA_QUALITY)),
    )


# ===================== Circular economy =====================
@dataclass(frozen=True)
class CircularEconomyMetrics:
    resource_reuse_rate: float
    waste_recycling_rate: float
    product_lifespan: float
    closed_loop_potential: float
    material_circularity_index: float
    repairability_score: float
    remanufacturing_potential: float
    biodegradable_content: float
    recycled_content_rate: float
    waste_diversion_rate: float
    byproduct_synergy_potential: float
    circular_procurement_rate: float
    design_for_disassembly: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "resourceReuseRate": self.resource_reuse_rate,
            "wasteRecyclingRate": self.waste_recycling_rate,
            "productLifespan": self.product_lifespan,
            "closedLoopPotential": self.closed_loop_potential,
            "materialCircularityIndex": self.material_circularity_index,
            "repairabilityScore": self.repairability_score,
            "remanufacturingPotential": self.remanufacturing_potential,
            "biodegradableContent": self.biodegradable_content,
            "recycledContentRate": self.recycled_content_rate,
            "wasteDiversionRate": self.waste_diversion_rate,
            "byproductSynergyPotential": self.byproduct_synergy_potential,
            "circularProcurementRate": self.circular_procurement_rate,
            "designForDisassembly": self.design_for_disassembly,
        }


def calculate_circular_economy_metrics(**inputs: Optional[float]) -> CircularEconomyMetrics:
    unknown = set(inputs) - set(CIRCULAR_DEFAULTS)
    if unknown:
        raise TypeError(f"unknown circular economy inputs: {sorted(unknown)}")
    v = {k: _or_default(inputs.get(k), d) for k, d in CIRCULAR_DEFAULTS.items()}

    recycled = _clamp(v["material_recycled_content"])
    reuse = _clamp(v["material_reuse_rate"])
    recyclability = _clamp(v["material_recyclability"])
    waste_recycling = _clamp(v["waste_recycling_rate"])
    disassembly = _clamp(v["design_for_disassembly"])
    repairability = _clamp(v["repairability_score"])
    biodegradable = _clamp(v["biodegradable_content"])
    synergy = _clamp(v["byproduct_synergy_potential"])

    return CircularEconomyMetrics(
        resource_reuse_rate=reuse,
        waste_recycling_rate=waste_recycling,
        product_lifespan=max(0.0, v["product_lifespan"]),
        closed_loop_potential=_clamp(0.6 * recyclability + 0.4 * disassembly),
        material_circularity_index=_clamp(0.3 * recycled + 0.3 * recyclability + 0.2 * reuse
                                          + 0.1 * biodegradable + 0.1 * synergy),
        repairability_score=repairability,
        remanufacturing_potential=_clamp(0.5 * disassembly + 0.5 * repairability),
        biodegradable_content=biodegradable,
        recycled_content_rate=recycled,
        waste_diversion_rate=_clamp(0.8 * waste_recycling + 0.2 * biodegradable),
        byproduct_synergy_potential=synergy,
        circular_procurement_rate=_clamp(0.7 * recycled + 0.3 * reuse),
        design_for_disassembly=disassembly,
    )


@dataclass(frozen=True)
class CircularRecommendation:
    recommendation: str
    impact: str
    implementation_difficulty: str
    timeframe: str
    potential_benefits: Tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "recommendation": self.recommendation,
            "impact": self.impact,
            "implementationDifficulty": self.implementation_difficulty,
            "timeframe": self.timeframe,
            "potentialBenefits": list(self.potential_benefits),
        }


# (metric attribute, threshold, recommendation) -- fires when metric < threshold
CIRCULAR_RULES: Tuple[Tuple[str, float, CircularRecommendation], ...] = (
    ("resource_reuse_rate", 0.5, CircularRecommendation(
        "Implement material reuse strategies to capture value from existing materials",
        "High", "Medium", "Medium-term",
        ("Reduced raw material costs", "Lower embodied carbon",
         "Decreased waste disposal costs", "Potential for unique design elements"))),
    ("waste_recycling_rate", 0.7, CircularRecommendation(
        "Enhance on-site waste segregation and recycling processes",
        "Medium", "Low", "Short-term",
        ("Reduced waste disposal costs", "Potential revenue from recyclable materials",
         "Improved regulatory compliance", "Enhanced sustainability reporting metrics"))),
    ("product_lifespan", 20.0, CircularRecommendation(
        "Design for longevity and adaptability to extend useful life",
        "High", "Medium", "Long-term",
        ("Reduced lifecycle costs", "Increased asset value",
         "Improved resilience to changing requirements", "Reduced embodied carbon over time"))),
    ("closed_loop_potential", 0.6, CircularRecommendation(
        "Develop closed-loop material flows through take-back programs and partnerships",
        "High", "High", "Long-term",
        ("Secure material supply", "Reduced exposure to price volatility",
         "Enhanced brand reputation", "Potential for innovative business models"))),
    ("material_circularity_index", 0.5, CircularRecommendation(
        "Increase use of recycled and renewable materials in procurement specifications",
        "Medium", "Medium", "Medium-term",
        ("Reduced environmental impact", "Potential cost savings",
         "Improved sustainability metrics", "Market differentiation"))),
    ("repairability_score", 0.6, CircularRecommendation(
        "Improve product repairability through modular design and accessible components",
        "Medium", "Medium", "Medium-term",
        ("Extended product life", "Reduced maintenance costs",
         "Improved user satisfaction", "Reduced waste generation"))),
    ("design_for_disassembly", 0.5, CircularRecommendation(
        "Implement design for disassembly principles in new projects",
        "High", "Medium", "Medium-term",
        ("Easier material recovery at end of life", "Simplified maintenance and upgrades",
         "Potential for component reuse", "Reduced end-of-life costs"))),
)

FALLBACK_CIRCULAR_RECOMMENDATIONS: Tuple[CircularRecommendation, ...] = (
    CircularRecommendation(
        "Conduct a material flow analysis to identify circular economy opportunities",
        "Medium", "Low", "Short-term",
        ("Identification of waste streams with value potential", "Data-driven decision making",
         "Baseline for measuring improvements", "Prioritization of circular initiatives")),
    CircularRecommendation(
        "Introduce material passports to document components for future recovery",
        "Medium", "Medium", "Medium-term",
        ("Enables future material recovery", "Documented material quality adds asset value",
         "Supports future circular economy efforts")),
    CircularRecommendation(
        "Partner with local industries to exchange by-products and surplus materials",
        "Medium", "Medium", "Medium-term",
        ("New revenue from by-products", "Lower virgin material demand", "Reduced disposal costs")),
)
MIN_CIRCULAR_RECOMMENDATIONS = 3


def generate_circular_recommendations(metrics: CircularEconomyMetrics) -> List[CircularRecommendation]:
    recs = [rec for attr, threshold, rec in CIRCULAR_RULES if getattr(metrics, attr) < threshold]
    for fallback in FALLBACK_CIRCULAR_RECOMMENDATIONS:
        if len(recs) >= MIN_CIRCULAR_RECOMMENDATIONS:
            break
        recs.append(fallback)
    return recs
