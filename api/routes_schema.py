"""
api.routes_schema - /api/v1 schema, template and map layer endpoints.

Lets a client build its type picker, attribute forms and point layer
without knowing how feature types are stored.
"""

from flask import Response, jsonify, request

import config
from api import api_bp, get_store
from schema.resolver import SchemaResolver
from schema.templates import build_template, template_filename


@api_bp.route("/projects/<project_id>/feature-types")
def project_feature_types(project_id: str):
    """Feature types the project may place, sorted by name."""
    return jsonify(get_store().fetch_assigned_feature_types(project_id))


@api_bp.route("/projects/<project_id>/features")
def project_features(project_id: str):
    """
    GET /api/v1/projects/{id}/features?feature_type=<id>&feature_type=<id>

    GeoJSON FeatureCollection; no feature_type filter returns every layer.
    """
    type_ids = [t for t in request.args.getlist("feature_type") if t.strip()]
    return jsonify(get_store().list_features(project_id, type_ids or None))


@api_bp.route("/schema/<feature_type_id>")
def schema_for_type(feature_type_id: str):
    """Ordered attribute definitions of one feature type; [] when unknown."""
    store = get_store()
    ft = store.fetch_feature_type(feature_type_id)
    schema = SchemaResolver(store).resolve(feature_type_id)
    return jsonify({"feature_type": ft, "attributes": schema.to_list()})


@api_bp.route("/schema/<feature_type_id>/template")
def schema_template(feature_type_id: str):
    """Download the CSV import template (UTF-8 with BOM)."""
    store = get_store()
    ft = store.fetch_feature_type(feature_type_id)
    if ft is None:
        return jsonify({"error": "unknown feature type"}), 404
    schema = SchemaResolver(store).resolve(feature_type_id)
    body = build_template(schema).encode("utf-8")
    return Response(
        body,
        mimetype="text/csv",
        headers={
            "Content-Disposition":
                f'attachment; filename="{template_filename(ft["name"] or ft["code"])}"',
        },
    )


@api_bp.route("/map/defaults")
def map_defaults():
    """Initial view for a map client before any feature is loaded."""
    lng, lat = config.DEFAULT_MAP_CENTER
    return jsonify({"center": {"lng": lng, "lat": lat}, "zoom": config.DEFAULT_MAP_ZOOM})
