# suggestions.py
# Declarative suggestion catalog: every suggestion is a rule (category, predicate, suggestion).
# Impact, savings, timeframe and complexity are static per rule; they are not scaled by
# how strongly the triggering data matches.

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from analyzers import CategoryItem, HIGH_ENERGY_CONSUMPTION, LONG_DISTANCE_KM, LOW_EFFICIENCY

IMPACT_LEVELS = ("low", "medium", "high")
TIMEFRAMES = ("immediate", "short", "medium", "long")
COMPLEXITY_LEVELS = ("simple", "moderate", "complex")
CATEGORIES = ("material", "transport", "energy", "general", "waste")
SAVINGS_KEYS = ("carbon", "cost", "energy", "water", "waste")

LOW_RECYCLED_CONTENT = 30.0


@dataclass(frozen=True)
class Suggestion:
    category: str
    text: str
    impact: str
    implementation_timeframe: str
    implementation_complexity: str
    estimated_savings: Tuple[Tuple[str, float], ...] = ()
    tags: Tuple[str, ...] = ()
    references: Tuple[str, ...] = ()

    def __post_init__(self):
        if self.category not in CATEGORIES:
            raise ValueError(f"unknown suggestion category: {self.category}")
        if self.impact not in IMPACT_LEVELS:
            raise ValueError(f"unknown impact level: {self.impact}")
        if self.implementation_timeframe not in TIMEFRAMES:
            raise ValueError(f"unknown timeframe: {self.implementation_timeframe}")
        if self.implementation_complexity not in COMPLEXITY_LEVELS:
            raise ValueError(f"unknown complexity: {self.implementation_complexity}")
        for k, _ in self.estimated_savings:
            if k not in SAVINGS_KEYS:
                raise ValueError(f"unknown savings key: {k}")

    @property
    def savings(self) -> Dict[str, float]:
        return dict(self.estimated_savings)

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "category": self.category,
            "text": self.text,
            "impact": self.impact,
            "estimatedSavings": self.savings,
            "implementationTimeframe": self.implementation_timeframe,
            "implementationComplexity": self.implementation_complexity,
            "tags": list(self.tags),
        }
        if self.references:
            out["references"] = list(self.references)
        return out


def _s(category: str, text: str, impact: str, timeframe: str, complexity: str,
       savings: Optional[Mapping[str, float]] = None, tags: Sequence[str] = (),
       references: Sequence[str] = ()) -> Suggestion:
    return Suggestion(category, text, impact, timeframe, complexity,
                      tuple((savings or {}).items()), tuple(tags), tuple(references))


Predicate = Callable[[Sequence[CategoryItem]], bool]


@dataclass(frozen=True)
class SuggestionRule:
    category: str
    predicate: Predicate
    suggestion: Suggestion
    name: str = field(default="")


# ===================== Predicates =====================
def has_data(items: Sequence[CategoryItem]) -> bool:
    return len(items) > 0


def _key_contains(word: str, field_name: Optional[str] = None) -> Predicate:
    def pred(items: Sequence[CategoryItem]) -> bool:
        for i in items:
            value = i.text(field_name) if field_name else i.key
            if value and word in value.lower():
                return True
        return False
    return pred


def _any_number(field_name: str, test: Callable[[float], bool]) -> Predicate:
    def pred(items: Sequence[CategoryItem]) -> bool:
        return any(v is not None and test(v) for v in (i.number(field_name) for i in items))
    return pred


# ===================== Catalog =====================
SUGGESTION_RULES: Tuple[SuggestionRule, ...] = (
    # materials
    SuggestionRule("material", has_data, _s(
        "material", "Consider replacing concrete with engineered wood products for appropriate applications.",
        "high", "medium", "moderate", {"carbon": 0.35, "cost": 0.05},
        ["concrete", "wood", "embodied carbon"]), "engineered_wood"),
    SuggestionRule("material", has_data, _s(
        "material", "Look into low-carbon cement alternatives that can reduce emissions by up to 30%.",
        "medium", "short", "simple", {"carbon": 0.3},
        ["cement", "low-carbon", "alternatives"]), "low_carbon_cement"),
    SuggestionRule("material", has_data, _s(
        "material", "Source locally produced materials to reduce transportation carbon footprint.",
        "medium", "immediate", "simple", {"carbon": 0.15, "cost": 0.1},
        ["local", "transportation", "supply chain"]), "local_sourcing"),
    SuggestionRule("material", _key_contains("concrete"), _s(
        "material", "Consider using geopolymer concrete which can reduce carbon emissions by up to 80% compared to traditional concrete.",
        "high", "medium", "moderate", {"carbon": 0.8},
        ["concrete", "geopolymer", "innovative materials"],
        ["https://doi.org/10.1016/j.jclepro.2018.10.084"]), "geopolymer_concrete"),
    SuggestionRule("material", _key_contains("steel"), _s(
        "material", "Specify steel with high recycled content to reduce embodied carbon.",
        "medium", "short", "simple", {"carbon": 0.25},
        ["steel", "recycled content", "embodied carbon"]), "recycled_steel"),
    SuggestionRule("material", _any_number("recycledContent", lambda v: v < LOW_RECYCLED_CONTENT), _s(
        "material", "Increase the recycled content in your materials to reduce virgin resource consumption.",
        "medium", "short", "simple", {"carbon": 0.2, "waste": 0.3},
        ["recycled content", "circular economy", "resource efficiency"]), "recycled_content"),

    # transport
    SuggestionRule("transport", has_data, _s(
        "transport", "Optimize delivery routes to minimize fuel consumption.",
        "medium", "short", "moderate", {"carbon": 0.15, "cost": 0.2},
        ["route optimization", "fuel efficiency", "logistics"]), "route_optimization"),
    SuggestionRule("transport", has_data, _s(
        "transport", "Consider using electric vehicles for short-distance material transport.",
        "high", "medium", "moderate", {"carbon": 0.4},
        ["electric vehicles", "zero emissions", "air quality"]), "electric_vehicles"),
    SuggestionRule("transport", has_data, _s(
        "transport", "Implement a just-in-time delivery system to reduce unnecessary trips.",
        "medium", "medium", "moderate", {"carbon": 0.2, "cost": 0.15},
        ["just-in-time", "logistics", "efficiency"]), "just_in_time"),
    SuggestionRule("transport", _key_contains("diesel", "fuel"), _s(
        "transport", "Consider transitioning to biodiesel or renewable diesel to reduce emissions from your diesel fleet.",
        "medium", "short", "simple", {"carbon": 0.3},
        ["biodiesel", "renewable fuels", "diesel alternatives"]), "biodiesel"),
    SuggestionRule("transport", _any_number("distance", lambda v: v > LONG_DISTANCE_KM), _s(
        "transport", "For long-distance transport, consider rail or water transport which have lower emissions per ton-mile than trucks.",
        "high", "long", "complex", {"carbon": 0.6, "cost": 0.1},
        ["modal shift", "rail transport", "water transport", "long distance"]), "modal_shift"),
    SuggestionRule("transport", _any_number("efficiency", lambda v: v < LOW_EFFICIENCY), _s(
        "transport", "Implement a vehicle maintenance program to improve fuel efficiency and reduce emissions.",
        "medium", "immediate", "simple", {"carbon": 0.15, "cost": 0.25},
        ["maintenance", "fuel efficiency", "vehicle performance"]), "vehicle_maintenance"),

    # energy
    SuggestionRule("energy", has_data, _s(
        "energy", "Install solar panels or wind turbines on-site to generate clean energy during construction.",
        "high", "medium", "moderate", {"carbon": 0.5, "cost": 0.2},
        ["renewable energy", "solar", "wind", "on-site generation"]), "onsite_renewables"),
    SuggestionRule("energy", has_data, _s(
        "energy", "Use energy-efficient machinery and equipment during construction.",
        "medium", "short", "simple", {"carbon": 0.25, "cost": 0.15, "energy": 0.3},
        ["energy efficiency", "equipment", "machinery"]), "efficient_equipment"),
    SuggestionRule("energy", has_data, _s(
        "energy", "Implement an energy management system to monitor and optimize energy usage.",
        "medium", "short", "moderate", {"carbon": 0.2, "cost": 0.25, "energy": 0.3},
        ["energy management", "monitoring", "optimization"]), "energy_management"),
    SuggestionRule("energy", _key_contains("grid"), _s(
        "energy", "Switch to a green energy provider or purchase renewable energy certificates to offset grid electricity usage.",
        "high", "immediate", "simple", {"carbon": 0.8},
        ["green energy", "renewable energy certificates", "grid electricity"]), "green_provider"),
    SuggestionRule("energy", _key_contains("diesel"), _s(
        "energy", "Replace diesel generators with battery storage systems charged by renewable energy where feasible.",
        "high", "medium", "complex", {"carbon": 0.7},
        ["battery storage", "diesel generators", "renewable energy"]), "battery_storage"),
    SuggestionRule("energy", _any_number("consumption", lambda v: v > HIGH_ENERGY_CONSUMPTION), _s(
        "energy", "Conduct an energy audit to identify high consumption areas and implement targeted efficiency measures.",
        "medium", "short", "moderate", {"carbon": 0.3, "cost": 0.35, "energy": 0.4},
        ["energy audit", "efficiency measures", "high consumption"]), "energy_audit"),
)

GENERAL_SUGGESTIONS: Tuple[Suggestion, ...] = (
    _s("general", "Conduct a detailed life cycle assessment to identify further carbon reduction opportunities.",
       "high", "medium", "complex", None, ["life cycle assessment", "carbon reduction", "analysis"]),
    _s("general", "Establish a carbon monitoring system for ongoing tracking and reporting.",
       "medium", "short", "moderate", None, ["carbon monitoring", "reporting", "tracking"]),
    _s("general", "Train your workforce on sustainable construction practices to improve overall efficiency.",
       "medium", "short", "simple", {"carbon": 0.15, "waste": 0.2, "energy": 0.15},
       ["training", "workforce", "sustainable practices"]),
    _s("waste", "Implement a waste management plan to minimize landfill waste and maximize recycling.",
       "medium", "short", "moderate", {"waste": 0.6}, ["waste management", "recycling", "landfill diversion"]),
    _s("general", "Consider circular economy principles in your design and procurement processes.",
       "high", "long", "complex", None, ["circular economy", "design", "procurement"]),
    _s("general", "Set science-based targets for emissions reduction aligned with global climate goals.",
       "high", "medium", "moderate", None, ["science-based targets", "emissions reduction", "climate goals"]),
    _s("general", "Engage with suppliers to reduce upstream emissions in your supply chain.",
       "medium", "medium", "moderate", None, ["supply chain", "upstream emissions", "supplier engagement"]),
)

CATEGORY_ORDER = ("material", "transport", "energy")


# ===================== Evaluation =====================
def category_suggestions(category: str, items: Sequence[CategoryItem],
                         rules: Sequence[SuggestionRule] = SUGGESTION_RULES) -> List[Suggestion]:
    if not items:
        return []
    return [r.suggestion for r in rules if r.category == category and r.predicate(items)]


def generate_suggestions(materials: Sequence[CategoryItem], transport: Sequence[CategoryItem],
                         energy: Sequence[CategoryItem],
                         rules: Sequence[SuggestionRule] = SUGGESTION_RULES,
                         general: Sequence[Suggestion] = GENERAL_SUGGESTIONS) -> List[Suggestion]:
    """Category suggestions in declaration order (material, transport, energy), then general ones."""
    by_cat = {"material": materials, "transport": transport, "energy": energy}
    out: List[Suggestion] = []
    for cat in CATEGORY_ORDER:
        out.extend(category_suggestions(cat, by_cat[cat], rules))
    out.extend(general)
    return out


def suggestion_texts(suggestions: Sequence[Suggestion]) -> List[str]:
    return [s.text for s in suggestions]


def high_impact(suggestions: Sequence[Suggestion]) -> List[Suggestion]:
    return [s for s in suggestions if s.impact == "high"]


def build_implementation_roadmap(suggestions: Sequence[Suggestion]) -> Dict[str, List[Dict[str, Any]]]:
    roadmap: Dict[str, List[Dict[str, Any]]] = {tf: [] for tf in TIMEFRAMES}
    for s in suggestions:
        roadmap[s.implementation_timeframe].append(s.to_dict())
    return roadmap
