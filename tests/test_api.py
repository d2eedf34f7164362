"""
HTTP API tests: validation, options, pagination, caching and error envelopes.
"""

import pytest

from app import create_app
from cache import MaterialsCache, ReportCache, TTLCache

GEOPOLYMER = ("Consider using geopolymer concrete which can reduce carbon emissions "
              "by up to 80% compared to traditional concrete.")


class TestHealth:

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.get_json() == {"status": "ok"}


class TestPreflight:

    @pytest.mark.parametrize("path", ["/", "/materials"])
    def test_options_returns_204(self, client, path):
        response = client.open(path, method="OPTIONS", headers={
            "Origin": "http://localhost:5173", "Access-Control-Request-Method": "POST"})
        assert response.status_code == 204
        assert response.headers.get("Access-Control-Allow-Origin") == "http://localhost:5173"


class TestReportValidation:

    def test_empty_object_is_rejected(self, client):
        response = client.post("/", json={})
        assert response.status_code == 400
        data = response.get_json()
        assert data["success"] is False
        assert data["errorType"] == "ValidationError"
        assert "At least one of materials, transport or energy is required" in data["error"]
        assert data["metadata"]["requestType"] == "report"
        assert "stack" not in data

    def test_malformed_json(self, client):
        response = client.post("/", data="{not json", content_type="application/json")
        assert response.status_code == 400
        assert response.get_json()["errorType"] == "MalformedRequest"

    def test_body_must_be_object(self, client):
        response = client.post("/", json=[{"name": "A"}])
        assert response.status_code == 400
        assert response.get_json()["errorType"] == "ValidationError"

    def test_field_must_be_array(self, client):
        response = client.post("/", json={"materials": {"name": "A"}})
        assert response.status_code == 400
        assert response.get_json()["error"] == "materials must be an array"

    def test_item_error_names_index(self, client):
        body = {"materials": [{"name": "A"}, {"name": "B"}, {"name": "C"}, {"embodiedCarbon": 0.3}]}
        response = client.post("/", json=body)
        assert response.status_code == 400
        data = response.get_json()
        assert "materials[3]" in data["error"]
        assert data["details"] == {"index": 3, "field": "name"}

    def test_transport_identifier_required(self, client):
        response = client.post("/", json={"transport": [{"distance": 10}]})
        assert response.status_code == 400
        assert "transport[0]" in response.get_json()["error"]

    def test_unknown_format(self, client):
        response = client.post("/?format=glossy", json={"materials": [{"name": "A"}]})
        assert response.status_code == 400
        assert response.get_json()["details"] == {"allowed": ["basic", "detailed", "executive", "technical"]}

    def test_calculator_inputs_must_be_objects(self, client):
        response = client.post("/", json={"materials": [{"name": "A"}], "lifecycleCostInputs": [1]})
        assert response.status_code == 400
        assert response.get_json()["error"] == "lifecycleCostInputs must be an object"

    @pytest.mark.parametrize("overrides", [
        '{"lifespan": NaN}',
        '{"lifespan": Infinity}',
        '{"lifespan": 400000}',
        '{"lifespan": -3}',
        '{"inflationRate": -1}',
        '{"discountRate": -1}',
        '{"inflationRate": -0.99}',
        '{"initialCost": 1e400}',
    ])
    def test_out_of_domain_cost_inputs_are_rejected(self, client, overrides):
        body = '{"materials": [{"name": "A"}], "lifecycleCostInputs": ' + overrides + "}"
        response = client.post("/?format=detailed&includeLifecycleCost=true",
                               data=body, content_type="application/json")
        assert response.status_code == 400
        data = response.get_json()
        assert data["errorType"] == "ValidationError"
        assert data["error"].startswith("lifecycleCostInputs.")

    def test_in_domain_cost_inputs_at_the_limits(self, client):
        body = {"materials": [{"name": "A"}],
                "lifecycleCostInputs": {"lifespan": 200, "discountRate": 1.0, "inflationRate": -0.5}}
        response = client.post("/?format=detailed&includeLifecycleCost=true", json=body)
        assert response.status_code == 200
        assert response.get_json()["lifecycleCostAnalysis"]["lifespan"] == 200


class TestReports:

    def test_concrete_scenario(self, client):
        response = client.post("/", json={"materials": [{"name": "Concrete Mix A"}]})
        assert response.status_code == 200
        data = response.get_json()
        assert GEOPOLYMER in data["suggestions"]
        assert "Transport data collection" in data["metrics"]["improvementAreas"]
        assert "Energy data collection" in data["metrics"]["improvementAreas"]
        meta = data["metadata"]
        assert meta["version"] == "test"
        assert meta["requestType"] == "report"
        assert meta["processingTime"] >= 0
        assert 0.0 <= meta["dataQuality"] <= 1.0
        assert "cached" not in meta

    def test_detailed_flag_and_options(self, client, sample_payload):
        response = client.post(
            "/?detailed=true&includeLifecycleAssessment=yes&includeLifecycleCost=1&includeBenchmarking=on",
            json=sample_payload)
        data = response.get_json()
        assert data["format"] == "detailed"
        assert len(data["lifecycleAssessment"]["stages"]) == 6
        assert "lifecycleCostAnalysis" in data
        assert data["metrics"]["industryAverage"] == 60.0
        assert "circularEconomyMetrics" not in data

    def test_technical_format_with_overrides(self, client, sample_payload):
        body = dict(sample_payload, lifecycleCostInputs={"lifespan": 20, "discountRate": 0.04})
        data = client.post("/?format=technical", json=body).get_json()
        assert data["lifecycleCostAnalysis"]["lifespan"] == 20
        assert "circularEconomyRecommendations" in data
        assert "implementationRoadmap" in data

    def test_recommendations_excluded(self, client, sample_payload):
        data = client.post("/?includeRecommendations=false", json=sample_payload).get_json()
        assert data["suggestions"] == []

    def test_cache_hit_is_flagged_and_copied(self, client, sample_payload):
        first = client.post("/?format=detailed", json=sample_payload).get_json()
        second = client.post("/?format=detailed", json=sample_payload).get_json()
        assert "cached" not in first["metadata"]
        assert second["metadata"]["cached"] is True
        assert second["reportId"] == first["reportId"]
        assert second["metadata"]["requestId"] != first["metadata"]["requestId"]

    def test_cold_cache_reports_match(self, uncached_app, sample_payload):
        client = uncached_app.test_client()
        first = client.post("/?format=technical", json=sample_payload).get_json()
        second = client.post("/?format=technical", json=sample_payload).get_json()
        for report in (first, second):
            report.pop("metadata")
            report.pop("reportId")
            report.pop("timestamp")
        assert first == second

    def test_infinite_item_values_are_ignored(self, client):
        body = '{"materials": [{"name": "A", "embodiedCarbon": Infinity}, ' \
               '{"name": "B", "embodiedCarbon": -Infinity}, {"name": "C", "embodiedCarbon": 0.4}]}'
        response = client.post("/?format=detailed", data=body, content_type="application/json")
        assert response.status_code == 200
        assert response.get_json()["materialAnalysis"]["averageEmbodiedCarbon"] == pytest.approx(0.4)

    def test_120_materials_processed_in_3_batches(self, client):
        body = {"materials": [{"name": f"Material {i}", "embodiedCarbon": 0.5} for i in range(120)]}
        data = client.post("/?format=detailed", json=body).get_json()
        assert data["metadata"]["batches"] == 3
        assert data["materialAnalysis"]["totalMaterials"] == 120


class TestMaterialsListing:

    def test_404_before_any_report(self, client):
        response = client.get("/materials")
        assert response.status_code == 404
        data = response.get_json()
        assert data["errorType"] == "NotFound"
        assert data["metadata"]["requestType"] == "materials"

    def test_pagination_after_report(self, client):
        body = {"materials": [{"name": f"M{i}"} for i in range(45)]}
        assert client.post("/", json=body).status_code == 200

        data = client.get("/materials?page=3&pageSize=20").get_json()
        assert data["success"] is True
        assert data["total"] == 45
        assert data["totalPages"] == 3
        assert [m["name"] for m in data["data"]] == ["M40", "M41", "M42", "M43", "M44"]

    @pytest.mark.parametrize("query", ["page=0", "page=abc", "pageSize=-1", "pageSize=101"])
    def test_invalid_paging(self, client, query):
        client.post("/", json={"materials": [{"name": "A"}]})
        response = client.get(f"/materials?{query}")
        assert response.status_code == 400
        assert response.get_json()["errorType"] == "ValidationError"

    def test_catalog_warms_cache(self):
        app = create_app({"TESTING": True},
                         report_cache=ReportCache(TTLCache(60)),
                         materials_cache=MaterialsCache(TTLCache(60)),
                         materials_catalog=[{"name": "Timber"}, {"name": "Brick"}])
        data = app.test_client().get("/materials").get_json()
        assert data["total"] == 2
        assert data["pageSize"] == 20


class TestErrorMapping:

    def test_foreign_errors_are_classified(self, app, client, monkeypatch):
        import app as app_module

        def exploding(*args, **kwargs):
            raise RuntimeError("monthly quota exhausted")

        monkeypatch.setattr(app_module, "generate_report", exploding)
        response = client.post("/", json={"materials": [{"name": "A"}]})
        assert response.status_code == 429
        assert response.get_json()["errorType"] == "RateLimited"

    def test_stack_only_in_development(self, sample_payload, monkeypatch):
        import app as app_module

        def exploding(*args, **kwargs):
            raise RuntimeError("something broke")

        monkeypatch.setattr(app_module, "generate_report", exploding)
        dev = create_app({"TESTING": False, "ENGINE_ENV": "development"},
                         report_cache=ReportCache(TTLCache(60)),
                         materials_cache=MaterialsCache(TTLCache(60)))
        response = dev.test_client().post("/", json=sample_payload)
        assert response.status_code == 500
        data = response.get_json()
        assert data["errorType"] == "InternalError"
        assert "RuntimeError: something broke" in data["stack"]

    def test_unknown_route_stays_404(self, client):
        assert client.get("/nope").status_code == 404
