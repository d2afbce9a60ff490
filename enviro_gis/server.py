#!/usr/bin/env python3
"""
Environmental GIS Dashboard - Flask Server

ARCHITECTURAL OVERVIEW:
=======================
Responsibility: REST surface over dashboard sessions. Each session token
(taken from the Authorization header) gets its own Dashboard, which owns
its stores, filters, viewport state and a live map surface.

Key Interactions:
- Persistence backend from create_backend() (HTTP API or in-memory)
- Filter presets stored per session under CONFIG.presets.directory
- Map-surface events posted to /api/events/<kind>

Error Mapping:
- validation 400, missing token 401, not found 404,
  no shape / geometry 422, network 502, storage 503

Navigation Guide:
- HELPERS: token / session lookup, error responses
- ROUTES: locations, shapes, filters, map, analysis, events
- STARTUP: Server initialization

For Navigation: Use VS Code outline (Ctrl+Shift+O)
"""

from collections import OrderedDict
from pathlib import Path
from typing import Any, Dict, Optional, Tuple
import hashlib
import json
import logging

from flask import Flask, Response, jsonify, request
from flask_cors import CORS

from enviro_gis.config_types import CONFIG, get_frontend_config
from enviro_gis.dashboard import Dashboard, create_backend
from enviro_gis.errors import EnviroGISError, OperationResult
from enviro_gis.exporters import geojson_filename
from enviro_gis.filtering.filter_engine import FilterEngine
from enviro_gis.filtering.preset_storage import PresetStorage
from enviro_gis.viewport.surface import SURFACE_EVENTS

# ═══════════════════════════════════════════════════════════════════════════
# 🌐 FLASK APPLICATION
# ═══════════════════════════════════════════════════════════════════════════

app = Flask(__name__)
CORS(app)

# Global services - initialized on startup
backend: Any = None
preset_dir: Optional[Path] = None
# Least recently used first; capped at max_sessions
dashboards: "OrderedDict[str, Dashboard]" = OrderedDict()
max_sessions: int = CONFIG.server.max_sessions

logger = logging.getLogger(__name__)

STATUS_BY_KIND = {
    "validation": 400,
    "not_found": 404,
    "no_shape": 422,
    "geometry": 422,
    "network": 502,
    "storage": 503,
}


# ═══════════════════════════════════════════════════════════════════════════
# 🔧 HELPERS
# ═══════════════════════════════════════════════════════════════════════════


def _bearer_token() -> Optional[str]:
    header = request.headers.get("Authorization", "")
    if header.startswith("Bearer "):
        return header[len("Bearer "):].strip() or None
    return None


def _preset_storage_for(token: str) -> Optional[PresetStorage]:
    if preset_dir is None:
        return None
    # Token-derived directory name, never the raw token
    session_key = hashlib.sha256(token.encode("utf-8")).hexdigest()[:16]
    return PresetStorage(
        str(preset_dir / session_key), CONFIG.presets.storage_key, CONFIG.presets.lock_timeout_s
    )


def _session() -> Tuple[Optional[str], Optional[Dashboard]]:
    """Token and Dashboard for this request, creating the session on first use."""
    token = _bearer_token()
    if token is None or backend is None:
        return token, None
    dashboard = dashboards.get(token)
    if dashboard is not None:
        dashboards.move_to_end(token)
        return token, dashboard

    while len(dashboards) >= max_sessions:
        dashboards.popitem(last=False)
        logger.info(f"♻️ Evicted least recently used dashboard session ({max_sessions} max)")
    dashboard = Dashboard(backend, _preset_storage_for(token))
    dashboard.attach_surface()
    dashboard.refresh(token)
    dashboards[token] = dashboard
    logger.info(f"🆕 Dashboard session started ({len(dashboards)} active)")
    return token, dashboard


def _no_session() -> Tuple[Response, int]:
    if backend is None:
        return jsonify({"error": "Server not initialized"}), 500
    return jsonify({"error": "Unauthorized"}), 401


def _error(message: str, kind: Optional[str], errors: Optional[list] = None) -> Tuple[Response, int]:
    body: Dict[str, Any] = {"error": message, "kind": kind}
    if errors:
        body["errors"] = errors
    return jsonify(body), STATUS_BY_KIND.get(kind, 500)


def _failure(result: OperationResult) -> Tuple[Response, int]:
    return _error(result.error or "Operation failed", result.kind, result.errors)


def _exception(exc: EnviroGISError) -> Tuple[Response, int]:
    return _error(exc.message, exc.kind, getattr(exc, "errors", None))


def _filters_payload(engine: FilterEngine) -> Dict[str, Any]:
    return {
        "filters": engine.criteria.to_dict(),
        "activeCount": engine.get_active_filter_count(),
        "summary": engine.get_filter_summary(),
    }


def _section(body: Dict[str, Any], key: str) -> Dict[str, Any]:
    value = body.get(key) or {}
    if not isinstance(value, dict):
        raise ValueError(f"{key} must be an object")
    return value


def _apply_filter_update(engine: FilterEngine, body: Dict[str, Any]) -> None:
    """
    Apply a partial criteria update. Only keys present in body change.

    Raises:
        ValueError: Unknown layer type / predicate, malformed date or bound,
            or a section that is not a JSON object
        GeometryError: Spatial reference is not a Feature
    """
    if not isinstance(body, dict):
        raise ValueError("Filter update must be a JSON object")
    if "searchText" in body:
        engine.update_search_text(body["searchText"])
    if "layerTypes" in body:
        engine.update_layer_types(body["layerTypes"] or [])
    if "dateRange" in body:
        date_range = _section(body, "dateRange")
        if date_range.get("start") or date_range.get("end"):
            engine.update_date_range(date_range.get("start"), date_range.get("end"))
        else:
            engine.clear_date_range()
    if "spatialQuery" in body:
        query = _section(body, "spatialQuery")
        if query.get("type") and query.get("shape"):
            engine.set_spatial_query(query["type"], query["shape"])
        else:
            engine.clear_spatial_query()
    for name, bounds in _section(body, "attributes").items():
        if bounds is None:
            engine.clear_attribute_filter(name)
        elif not isinstance(bounds, dict):
            raise ValueError(f"Attribute range for {name} must be an object")
        else:
            engine.set_attribute_filter(name, bounds.get("min"), bounds.get("max"))


# ═══════════════════════════════════════════════════════════════════════════
# 🛣️ API ROUTES
# ═══════════════════════════════════════════════════════════════════════════


@app.route("/api/config")
def get_config() -> Response:
    """Frontend configuration: map defaults, layers, styles, analysis units."""
    return jsonify(get_frontend_config())


@app.route("/api/session", methods=["DELETE"])
def end_session() -> Any:
    """Drop the caller's dashboard. Saved presets stay on disk."""
    token = _bearer_token()
    if token is None or backend is None:
        return _no_session()
    ended = dashboards.pop(token, None) is not None
    if ended:
        logger.info(f"👋 Dashboard session ended ({len(dashboards)} active)")
    return jsonify({"ended": ended})


# ───────────────────────────────────────────────────────────────────────────
# 📍 Locations
# ───────────────────────────────────────────────────────────────────────────


@app.route("/api/locations", methods=["GET", "POST"])
def locations() -> Any:
    """
    GET: Reload and list the caller's locations.
    POST: Create a location from the form payload.
    """
    token, dashboard = _session()
    if dashboard is None:
        return _no_session()

    if request.method == "GET":
        result = dashboard.refresh(token)
        if not result.ok:
            return _failure(result)
        return jsonify({"locations": [loc.to_dict() for loc in result.value]})

    result = dashboard.create_location(token, request.get_json(silent=True) or {})
    if not result.ok:
        return _failure(result)
    return jsonify({"location": result.value.to_dict()}), 201


@app.route("/api/locations/<location_id>", methods=["PUT", "DELETE"])
def location_detail(location_id: str) -> Any:
    token, dashboard = _session()
    if dashboard is None:
        return _no_session()

    if request.method == "DELETE":
        result = dashboard.delete_location(token, location_id)
        if not result.ok:
            return _failure(result)
        return jsonify({"success": True, "deleted_id": location_id})

    result = dashboard.update_location(token, location_id, request.get_json(silent=True) or {})
    if not result.ok:
        return _failure(result)
    return jsonify({"location": result.value.to_dict()})


@app.route("/api/locations/filtered")
def filtered_locations() -> Any:
    """Locations after filtering and layer visibility."""
    _, dashboard = _session()
    if dashboard is None:
        return _no_session()
    visible = dashboard.visible_locations()
    payload = _filters_payload(dashboard.filters)
    payload.update(
        {
            "locations": [loc.to_dict() for loc in visible],
            "count": len(visible),
            "total": dashboard.locations.count(),
        }
    )
    return jsonify(payload)


@app.route("/api/locations/export.csv")
def export_locations_csv() -> Any:
    _, dashboard = _session()
    if dashboard is None:
        return _no_session()
    return Response(
        dashboard.export_locations_csv(),
        mimetype="text/csv",
        headers={"Content-Disposition": "attachment; filename=locations.csv"},
    )


# ───────────────────────────────────────────────────────────────────────────
# 🔷 Shapes
# ───────────────────────────────────────────────────────────────────────────


@app.route("/api/shapes", methods=["GET", "POST"])
def shapes() -> Any:
    """
    GET: List saved shapes.
    POST: Save a shape directly (name, category, shapeType, geometry, properties).
    """
    token, dashboard = _session()
    if dashboard is None:
        return _no_session()

    if request.method == "GET":
        return jsonify({"shapes": [shape.to_dict() for shape in dashboard.shapes.shapes]})

    result = dashboard.shapes.create(token, request.get_json(silent=True) or {})
    if not result.ok:
        return _failure(result)
    return jsonify({"shape": result.value.to_dict()}), 201


@app.route("/api/shapes/<shape_id>", methods=["PUT", "DELETE"])
def shape_detail(shape_id: str) -> Any:
    token, dashboard = _session()
    if dashboard is None:
        return _no_session()

    if request.method == "DELETE":
        result = dashboard.shapes.delete(token, shape_id)
        if not result.ok:
            return _failure(result)
        return jsonify({"success": True, "deleted_id": shape_id})

    result = dashboard.shapes.update(token, shape_id, request.get_json(silent=True) or {})
    if not result.ok:
        return _failure(result)
    return jsonify({"shape": result.value.to_dict()})


@app.route("/api/shapes/pending", methods=["POST", "DELETE"])
def pending_shape() -> Any:
    """
    POST: Confirm the drawn shape awaiting properties.
    DELETE: Cancel it, removing its provisional layer.
    """
    token, dashboard = _session()
    if dashboard is None:
        return _no_session()

    if request.method == "DELETE":
        cancelled = dashboard.cancel_pending_shape()
        return jsonify({"success": cancelled, "state": dashboard.shapes.pending_state.value})

    result = dashboard.confirm_pending_shape(token, request.get_json(silent=True) or {})
    if not result.ok:
        return _failure(result)
    return jsonify({"shape": result.value.to_dict()}), 201


@app.route("/api/shapes/export")
def export_shapes() -> Any:
    """Drawn shapes as a downloadable GeoJSON FeatureCollection."""
    _, dashboard = _session()
    if dashboard is None:
        return _no_session()
    return Response(
        json.dumps(dashboard.export_geojson(), indent=2),
        mimetype="application/geo+json",
        headers={"Content-Disposition": f"attachment; filename={geojson_filename()}"},
    )


@app.route("/api/shapes/import", methods=["POST"])
def import_shapes() -> Any:
    """Load a FeatureCollection onto the drawing layer."""
    _, dashboard = _session()
    if dashboard is None:
        return _no_session()
    try:
        layers = dashboard.import_geojson(request.get_json(silent=True))
    except EnviroGISError as e:
        return _exception(e)
    return jsonify({"imported": len(layers), "layerIds": [layer.id for layer in layers]})


# ───────────────────────────────────────────────────────────────────────────
# 🔍 Filters
# ───────────────────────────────────────────────────────────────────────────


@app.route("/api/filters", methods=["GET", "PUT", "DELETE"])
def filters() -> Any:
    """
    GET: Current criteria, active count and summary.
    PUT: Partial update (searchText, layerTypes, dateRange, spatialQuery, attributes).
    DELETE: Clear every filter.
    """
    _, dashboard = _session()
    if dashboard is None:
        return _no_session()
    engine = dashboard.filters

    if request.method == "PUT":
        try:
            _apply_filter_update(engine, request.get_json(silent=True) or {})
        except ValueError as e:
            return _error(str(e), "validation")
        except EnviroGISError as e:
            return _exception(e)
    elif request.method == "DELETE":
        engine.clear_all_filters()

    return jsonify(_filters_payload(engine))


@app.route("/api/filters/presets", methods=["GET", "POST"])
def filter_presets() -> Any:
    _, dashboard = _session()
    if dashboard is None:
        return _no_session()
    engine = dashboard.filters

    if request.method == "POST":
        body = request.get_json(silent=True) or {}
        result = engine.save_preset(body.get("name", ""))
        if not result.ok:
            return _failure(result)
        return jsonify({"preset": result.value.to_dict()}), 201

    return jsonify({"presets": [preset.to_dict() for preset in engine.presets]})


@app.route("/api/filters/presets/<preset_id>", methods=["POST", "DELETE"])
def filter_preset_detail(preset_id: str) -> Any:
    """POST applies the preset; DELETE removes it."""
    _, dashboard = _session()
    if dashboard is None:
        return _no_session()
    engine = dashboard.filters

    if request.method == "DELETE":
        result = engine.delete_preset(preset_id)
        if not result.ok:
            return _failure(result)
        return jsonify({"success": True, "deleted_id": preset_id})

    result = engine.apply_preset(preset_id)
    if not result.ok:
        return _failure(result)
    return jsonify(_filters_payload(engine))


# ───────────────────────────────────────────────────────────────────────────
# 🗺️ Map
# ───────────────────────────────────────────────────────────────────────────


@app.route("/api/map")
def map_state() -> Any:
    _, dashboard = _session()
    if dashboard is None:
        return _no_session()
    state = dashboard.snapshot()
    bounds = dashboard.viewport.get_map_bounds()
    state["bounds"] = bounds.to_dict() if bounds else None
    return jsonify(state)


@app.route("/api/map/layers/<layer_id>", methods=["PATCH"])
def map_layer(layer_id: str) -> Any:
    """Update a layer's visibility ("visible", or toggle when absent) and opacity."""
    _, dashboard = _session()
    if dashboard is None:
        return _no_session()
    body = request.get_json(silent=True) or {}
    viewport = dashboard.viewport
    try:
        if "visible" in body or "opacity" not in body:
            viewport.toggle_layer_visibility(layer_id, body.get("visible"))
        if "opacity" in body:
            viewport.set_layer_opacity(layer_id, float(body["opacity"]))
    except KeyError:
        return _error(f"Layer not found: {layer_id}", "not_found")
    except (TypeError, ValueError) as e:
        return _error(f"Invalid opacity: {e}", "validation")
    return jsonify(viewport.get_layer_by_id(layer_id).to_dict())


@app.route("/api/map/mode", methods=["POST"])
def map_mode() -> Any:
    """
    Change interaction mode.

    Request Body:
        {
            "analysisMode": bool (optional; switching discards drawn shapes),
            "drawingMode": bool (optional),
            "selectedTool": str | null (optional)
        }
    """
    _, dashboard = _session()
    if dashboard is None:
        return _no_session()
    body = request.get_json(silent=True) or {}
    viewport = dashboard.viewport

    if "analysisMode" in body and bool(body["analysisMode"]) != viewport.analysis_mode:
        dashboard.switch_mode()
    if "drawingMode" in body:
        viewport.set_drawing_mode(body["drawingMode"])
    if "selectedTool" in body:
        viewport.set_selected_tool(body["selectedTool"])
    return jsonify(viewport.snapshot())


# ───────────────────────────────────────────────────────────────────────────
# 🧪 Analysis
# ───────────────────────────────────────────────────────────────────────────


@app.route("/api/analysis/buffer", methods=["POST"])
def analysis_buffer() -> Any:
    """Buffer the last drawn shape by "distance" meters."""
    _, dashboard = _session()
    if dashboard is None:
        return _no_session()
    body = request.get_json(silent=True) or {}
    try:
        distance = float(body.get("distance", CONFIG.analysis.default_buffer_m))
        result = dashboard.analysis.buffer(distance)
    except (TypeError, ValueError) as e:
        return _error(f"Invalid distance: {e}", "validation")
    except EnviroGISError as e:
        return _exception(e)
    return jsonify({"result": result.to_dict(), "message": dashboard.analysis.last_message})


@app.route("/api/analysis/measure", methods=["POST"])
def analysis_measure() -> Any:
    """Area or length of the last drawn shape ("kind": "area" | "length")."""
    _, dashboard = _session()
    if dashboard is None:
        return _no_session()
    body = request.get_json(silent=True) or {}
    try:
        measurement = dashboard.analysis.measure(body.get("kind", "area"))
    except ValueError as e:
        return _error(str(e), "validation")
    except EnviroGISError as e:
        return _exception(e)
    return jsonify({"measurement": measurement.to_dict(), "message": dashboard.analysis.last_message})


@app.route("/api/analysis/intersect", methods=["POST"])
def analysis_intersect() -> Any:
    """Intersect the last two drawn shapes."""
    _, dashboard = _session()
    if dashboard is None:
        return _no_session()
    try:
        result = dashboard.analysis.intersect()
    except EnviroGISError as e:
        return _exception(e)
    return jsonify({"result": result.to_dict(), "message": dashboard.analysis.last_message})


@app.route("/api/analysis/measurement", methods=["POST"])
def analysis_measurement() -> Any:
    """Toggle the click-to-measure session."""
    _, dashboard = _session()
    if dashboard is None:
        return _no_session()
    dashboard.analysis.measurement.toggle()
    return jsonify(dashboard.analysis.measurement.to_dict())


@app.route("/api/analysis", methods=["DELETE"])
def analysis_clear() -> Any:
    _, dashboard = _session()
    if dashboard is None:
        return _no_session()
    dashboard.analysis.clear_analysis()
    return jsonify({"success": True})


# ───────────────────────────────────────────────────────────────────────────
# 🖱️ Map surface events
# ───────────────────────────────────────────────────────────────────────────


@app.route("/api/events/<kind>", methods=["POST"])
def map_event(kind: str) -> Any:
    """
    Forward a map interaction (draw_created, draw_edited, draw_deleted, click).

    Returns:
        Dashboard snapshot after the event was handled
    """
    _, dashboard = _session()
    if dashboard is None:
        return _no_session()
    if kind not in SURFACE_EVENTS:
        return _error(f"Unknown map event: {kind}", "not_found")
    payload = request.get_json(silent=True) or {}
    if not isinstance(payload, dict):
        return _error("Event payload must be a JSON object", "validation")
    try:
        dashboard.surface.emit(kind, payload)
    except (KeyError, TypeError, ValueError) as e:
        return _error(f"Invalid event payload: {e}", "validation")
    except EnviroGISError as e:
        return _exception(e)
    return jsonify(dashboard.snapshot())


# ═══════════════════════════════════════════════════════════════════════════
# 🚀 SERVER INITIALIZATION
# ═══════════════════════════════════════════════════════════════════════════


def initialize_services(api: Any = None, presets_directory: Optional[str] = None) -> bool:
    """
    Initialize the persistence backend and preset storage location.

    Args:
        api: Backend to use (defaults to create_backend())
        presets_directory: Preset root (defaults to CONFIG.presets.directory)

    Returns:
        True if initialization successful, False otherwise.
    """
    global backend, preset_dir

    try:
        logger.info("🚀 Initializing services")
        backend = api if api is not None else create_backend(CONFIG.api)
        preset_dir = Path(presets_directory or CONFIG.presets.directory)
        preset_dir.mkdir(parents=True, exist_ok=True)
        dashboards.clear()
        logger.info(f"✅ Backend: {type(backend).__name__}, presets in {preset_dir}")
        return True

    except (OSError, ValueError) as e:
        logger.error(f"❌ Failed to initialize services: {e}")
        return False


def main() -> None:
    """Main entry point - initialize and start server."""
    import sys

    logging.basicConfig(level=logging.INFO, format="%(levelname)s:%(name)s:%(message)s")

    if not initialize_services():
        logger.error("Failed to initialize. Check API and preset directory settings.")
        sys.exit(1)

    host, port = CONFIG.server.host, CONFIG.server.port
    logger.info(f"🌐 Starting server at http://{host}:{port}")
    app.run(host=host, port=port, debug=False)


if __name__ == "__main__":
    main()
