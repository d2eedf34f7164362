# app.py
import copy
import math
import os
import time
import traceback
import uuid
from typing import Any, Dict, Iterable, List, Mapping, Optional

from dotenv import load_dotenv
from flask import Flask, request, jsonify, g, current_app
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

from cache import MaterialsCache, ReportCache, TTLCache
from engine import (
    ReportOptions, normalize_payload, parse_calculator_inputs, calculate_data_completeness,
    generate_report, utcnow_iso, CALCULATOR_INPUT_FIELDS,
)
from errors import EngineError, MalformedRequest, NotFound, ValidationError, classify_exception

load_dotenv()

CATEGORY_FIELDS = ("materials", "transport", "energy")
TRUTHY = ("true", "1", "yes", "on")
OPTION_FLAGS = {
    "includeLifecycleAssessment": ("include_lifecycle_assessment", False),
    "includeCircularEconomyMetrics": ("include_circular_economy_metrics", False),
    "includeLifecycleCost": ("include_lifecycle_cost", False),
    "includeBenchmarking": ("include_benchmarking", False),
    "includeRegulatoryCompliance": ("include_regulatory_compliance", False),
    "includeRecommendations": ("include_recommendations", True),
    "includeImplementationDetails": ("include_implementation_details", False),
}
DEFAULT_PAGE_SIZE = 20


# =========================
# Config
# =========================
def _env_config() -> Dict[str, Any]:
    return {
        "API_VERSION": os.environ.get("API_VERSION", "1.0.0"),
        "ENGINE_ENV": os.environ.get("ENGINE_ENV", "production"),
        "FRONTEND_ORIGIN": os.environ.get(
            "FRONTEND_ORIGIN",
            "http://localhost:5173,http://127.0.0.1:5173,http://localhost:8080"
        ),
        "REPORT_CACHE_TTL": float(os.environ.get("REPORT_CACHE_TTL", "900")),
        "MATERIALS_CACHE_TTL": float(os.environ.get("MATERIALS_CACHE_TTL", "300")),
        "REPORT_CACHE_MAX_ENTRIES": int(os.environ.get("REPORT_CACHE_MAX_ENTRIES", "1000")),
        "MATERIAL_BATCH_SIZE": int(os.environ.get("MATERIAL_BATCH_SIZE", "50")),
        "MAX_PAGE_SIZE": int(os.environ.get("MAX_PAGE_SIZE", "100")),
    }


# =========================
# Request helpers
# =========================
def _flag(name: str, default: bool = False) -> bool:
    raw = request.args.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in TRUTHY


def _report_options() -> ReportOptions:
    flags = {attr: _flag(param, default) for param, (attr, default) in OPTION_FLAGS.items()}
    return ReportOptions.resolve(request.args.get("format"), _flag("detailed"), **flags)


def _positive_int(name: str, default: int) -> int:
    raw = request.args.get(name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValidationError(f"{name} must be a positive integer", {"field": name, "value": raw})
    if value < 1:
        raise ValidationError(f"{name} must be a positive integer", {"field": name, "value": raw})
    return value


def _read_json_body() -> Any:
    body = request.get_json(force=True, silent=True)
    if body is None and request.get_data(as_text=True).strip() != "null":
        raise MalformedRequest("Request body must be valid JSON")
    return body


def _validate_body(body: Any) -> Dict[str, Any]:
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")
    present = [f for f in CATEGORY_FIELDS if body.get(f) is not None]
    if not present:
        raise ValidationError("At least one of materials, transport or energy is required",
                              {"fields": list(CATEGORY_FIELDS)})
    for f in present:
        if not isinstance(body[f], list):
            raise ValidationError(f"{f} must be an array", {"field": f})
    return body


def _metadata(request_type: str, **extra: Any) -> Dict[str, Any]:
    started = g.get("started")
    meta = {
        "version": current_app.config["API_VERSION"],
        "requestId": g.get("request_id") or str(uuid.uuid4()),
        "timestamp": utcnow_iso(),
        "processingTime": round((time.perf_counter() - started) * 1000.0, 3) if started else 0.0,
        "requestType": request_type,
    }
    meta.update({k: v for k, v in extra.items() if v is not None})
    return meta


# =========================
# App factory
# =========================
def create_app(config: Optional[Mapping[str, Any]] = None, *,
               report_cache: Optional[ReportCache] = None,
               materials_cache: Optional[MaterialsCache] = None,
               materials_catalog: Optional[Iterable[Dict[str, Any]]] = None) -> Flask:
    app = Flask(__name__)
    app.config.update(_env_config())
    if config:
        app.config.update(config)

    origins = [o.strip() for o in str(app.config["FRONTEND_ORIGIN"]).split(",") if o.strip()]
    CORS(
        app,
        resources={r"/*": {"origins": origins}},
        methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type"],
    )

    if report_cache is None:
        report_cache = ReportCache(TTLCache(app.config["REPORT_CACHE_TTL"],
                                             max_size=app.config["REPORT_CACHE_MAX_ENTRIES"]))
    if materials_cache is None:
        materials_cache = MaterialsCache(TTLCache(app.config["MATERIALS_CACHE_TTL"]))
    app.extensions["report_cache"] = report_cache
    app.extensions["materials_cache"] = materials_cache

    if materials_catalog is not None:
        catalog = list(materials_catalog)
        materials_cache.store(catalog)
        app.logger.info("materials cache warmed with %d catalog entries", len(catalog))

    # =========================
    # Request logger
    # =========================
    @app.before_request
    def _start_request():
        g.request_id = str(uuid.uuid4())
        g.started = time.perf_counter()
        app.logger.info(">>> %s %s", request.method, request.path)

    # =========================
    # Error handlers
    # =========================
    def _error_response(err: EngineError, cause: BaseException):
        body = err.to_dict()
        body["metadata"] = _metadata(g.get("request_type") or "error")
        if app.config["ENGINE_ENV"] == "development":
            body["stack"] = "".join(traceback.format_exception(type(cause), cause, cause.__traceback__))
        return jsonify(body), err.status_code

    @app.errorhandler(EngineError)
    def _engine_error(e: EngineError):
        app.logger.warning("%s: %s", e.error_type, e.message)
        return _error_response(e, e)

    @app.errorhandler(Exception)
    def _unhandled(e: Exception):
        if isinstance(e, HTTPException):
            return e
        err = classify_exception(e)
        if err.status_code >= 500:
            app.logger.exception("report request failed")
        return _error_response(err, e)

    # =========================
    # Routes
    # =========================
    @app.get("/health")
    def health():
        return {"status": "ok"}

    @app.route("/materials", methods=["GET", "OPTIONS"])
    def list_materials():
        if request.method == "OPTIONS":
            return ("", 204)
        g.request_type = "materials"

        page = _positive_int("page", 1)
        page_size = _positive_int("pageSize", DEFAULT_PAGE_SIZE)
        max_size = app.config["MAX_PAGE_SIZE"]
        if page_size > max_size:
            raise ValidationError(f"pageSize must not exceed {max_size}", {"field": "pageSize", "max": max_size})

        materials = app.extensions["materials_cache"].latest()
        if materials is None:
            raise NotFound("No cached materials available")

        total = len(materials)
        start = (page - 1) * page_size
        return jsonify({
            "success": True,
            "data": materials[start:start + page_size],
            "total": total,
            "page": page,
            "pageSize": page_size,
            "totalPages": math.ceil(total / page_size) if total else 0,
            "metadata": _metadata("materials"),
        }), 200

    @app.route("/", methods=["POST", "OPTIONS"])
    def create_report():
        # Flask-CORS adds the preflight headers
        if request.method == "OPTIONS":
            return ("", 204)
        g.request_type = "report"

        body = _validate_body(_read_json_body())
        options = _report_options()
        inputs = {name: parse_calculator_inputs(name, body.get(name)) for name in CALCULATOR_INPUT_FIELDS}

        payload = normalize_payload(body.get("materials"), body.get("transport"), body.get("energy"),
                                    batch_size=app.config["MATERIAL_BATCH_SIZE"])
        if payload.materials:
            app.extensions["materials_cache"].store([dict(m.attrs) for m in payload.materials])

        key = ReportCache.key_for(body.get("materials"), body.get("transport"), body.get("energy"),
                                  options.to_dict(), inputs)
        report, hit = app.extensions["report_cache"].get_or_compute(
            key,
            lambda: generate_report(payload.materials, payload.transport, payload.energy, options, inputs),
        )

        out = copy.deepcopy(report)
        out["metadata"] = _metadata(
            "report",
            dataQuality=calculate_data_completeness(payload.materials, payload.transport, payload.energy),
            cached=True if hit else None,
            batches=payload.batches or None,
        )
        return jsonify(out), 200

    return app


app = create_app()


# =========================
# Run server
# =========================
if __name__ == "__main__":
    port = int(os.environ.get("PORT", "5050"))
    debug = os.environ.get("DEBUG", "true").lower() == "true"
    app.run(host="0.0.0.0", port=port, debug=debug)
