"""
Suggestion catalog tests: rule evaluation, ordering, and roadmap grouping.
"""

import pytest

from analyzers import to_items
from suggestions import (
    GENERAL_SUGGESTIONS, SUGGESTION_RULES, Suggestion, SuggestionRule,
    build_implementation_roadmap, category_suggestions, generate_suggestions, high_impact,
    suggestion_texts, has_data,
)

GEOPOLYMER = ("Consider using geopolymer concrete which can reduce carbon emissions "
              "by up to 80% compared to traditional concrete.")


def texts(items):
    return suggestion_texts(items)


class TestSuggestionModel:

    def test_rejects_unknown_levels(self):
        with pytest.raises(ValueError):
            Suggestion("material", "x", "huge", "short", "simple")
        with pytest.raises(ValueError):
            Suggestion("material", "x", "low", "someday", "simple")
        with pytest.raises(ValueError):
            Suggestion("unknown", "x", "low", "short", "simple")

    def test_to_dict_uses_wire_names(self):
        s = Suggestion("energy", "Do it", "high", "immediate", "simple", (("carbon", 0.5),), ("tag",))
        assert s.to_dict() == {
            "category": "energy",
            "text": "Do it",
            "impact": "high",
            "estimatedSavings": {"carbon": 0.5},
            "implementationTimeframe": "immediate",
            "implementationComplexity": "simple",
            "tags": ["tag"],
        }

    def test_catalog_savings_are_fractions(self):
        for rule in SUGGESTION_RULES:
            for value in rule.suggestion.savings.values():
                assert 0.0 <= value <= 1.0


class TestRules:

    def test_empty_category_yields_nothing(self):
        assert category_suggestions("material", []) == []

    def test_baseline_rules_fire_on_any_data(self):
        out = category_suggestions("transport", to_items("transport", [{"type": "Van"}]))
        assert len(out) == 3
        assert all(s.category == "transport" for s in out)

    def test_concrete_triggers_geopolymer(self):
        out = category_suggestions("material", to_items("material", [{"name": "Concrete Mix A"}]))
        assert GEOPOLYMER in texts(out)

    def test_conditional_rules(self):
        mats = to_items("material", [{"name": "Rebar steel", "recycledContent": 10}])
        out = texts(category_suggestions("material", mats))
        assert "Specify steel with high recycled content to reduce embodied carbon." in out
        assert any("Increase the recycled content" in t for t in out)
        assert GEOPOLYMER not in out

        legs = to_items("transport", [{"type": "Truck", "fuel": "diesel", "distance": 250, "efficiency": 0.5}])
        out = category_suggestions("transport", legs)
        assert len(out) == 6

        sources = to_items("energy", [{"source": "Grid mix", "consumption": 3500},
                                      {"source": "Diesel generator"}])
        out = texts(category_suggestions("energy", sources))
        assert any("green energy provider" in t for t in out)
        assert any("battery storage" in t for t in out)
        assert any("energy audit" in t for t in out)

    def test_custom_rule_table(self):
        only = Suggestion("energy", "Only rule", "low", "short", "simple")
        rules = (SuggestionRule("energy", has_data, only, "only"),)
        out = generate_suggestions([], [], to_items("energy", [{"source": "Grid"}]), rules=rules, general=())
        assert out == [only]


class TestOrdering:

    def test_category_order_then_general(self):
        out = generate_suggestions(
            to_items("material", [{"name": "Brick"}]),
            to_items("transport", [{"type": "Van"}]),
            to_items("energy", [{"source": "Solar"}]),
        )
        categories = [s.category for s in out]
        assert categories[:3] == ["material"] * 3
        assert categories[3:6] == ["transport"] * 3
        assert categories[6:9] == ["energy"] * 3
        assert out[9:] == list(GENERAL_SUGGESTIONS)

    def test_general_suggestions_always_emitted(self):
        out = generate_suggestions([], [], [])
        assert out == list(GENERAL_SUGGESTIONS)
        assert "waste" in {s.category for s in out}


class TestHelpers:

    def test_high_impact_filter(self):
        assert all(s.impact == "high" for s in high_impact(GENERAL_SUGGESTIONS))
        assert len(high_impact(GENERAL_SUGGESTIONS)) == 3

    def test_roadmap_groups_by_timeframe(self):
        roadmap = build_implementation_roadmap(GENERAL_SUGGESTIONS)
        assert list(roadmap) == ["immediate", "short", "medium", "long"]
        assert sum(len(v) for v in roadmap.values()) == len(GENERAL_SUGGESTIONS)
        assert roadmap["immediate"] == []
        assert all(entry["implementationTimeframe"] == "long" for entry in roadmap["long"])
