"""
Pytest configuration for the sustainability report service tests.
"""

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from app import create_app
from cache import MaterialsCache, NullCache, ReportCache, TTLCache


class FakeClock:
    """Manually advanced clock for TTL tests."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def app():
    """App with fresh in-memory caches."""
    app = create_app({"TESTING": True, "ENGINE_ENV": "test", "API_VERSION": "test"},
                     report_cache=ReportCache(TTLCache(900)),
                     materials_cache=MaterialsCache(TTLCache(300)))
    return app


@pytest.fixture
def uncached_app():
    """App whose report and materials caches never store anything."""
    return create_app({"TESTING": True, "ENGINE_ENV": "test"},
                      report_cache=ReportCache(NullCache()),
                      materials_cache=MaterialsCache(NullCache()))


@pytest.fixture
def client(app):
    with app.test_client() as client:
        yield client


@pytest.fixture
def sample_payload():
    return {
        "materials": [
            {"name": "Concrete Mix A", "type": "Concrete", "embodiedCarbon": 0.9, "recycledContent": 20,
             "quantity": 100, "cost": 120, "unit": "t", "waterFootprint": 40, "recyclability": 60},
            {"name": "Recycled Steel", "type": "Metal", "embodiedCarbon": 0.5, "recycledContent": 85,
             "locallySourced": True, "quantity": 20, "cost": 900, "alternatives": ["Timber"]},
        ],
        "transport": [
            {"type": "Truck", "fuel": "Diesel", "distance": 350, "emissionsFactor": 0.9, "efficiency": 0.6,
             "load": 20},
            {"type": "Van", "isElectric": True, "distance": 40, "emissionsFactor": 0.2, "efficiency": 0.9},
        ],
        "energy": [
            {"source": "Grid Electricity", "consumption": 5000, "carbonIntensity": 0.7, "costPerUnit": 0.12,
             "efficiency": 0.85},
            {"source": "Solar PV", "consumption": 1500, "carbonIntensity": 0.05, "renewable": True},
        ],
    }
