"""
api.routes_features - /api/v1/features single-feature endpoints.

Create and update run the submitted attributes through the same
AttributeForm the map uses, so a client cannot save what the form
would have blocked.
"""

from __future__ import annotations

from flask import request, jsonify

from api import api_bp, get_store
from forms import AttributeForm, FormMode
from schema.resolver import SchemaResolver
from services.backend import BackendError, Coordinates, UnknownFeatureError


def _coordinates(data: dict, fallback: Coordinates | None = None) -> Coordinates | None:
    raw = data.get("coordinates")
    if raw is None:
        return fallback
    try:
        return Coordinates(lng=float(raw["lng"]), lat=float(raw["lat"]))
    except (KeyError, TypeError, ValueError):
        return None


def _save(project_id: str, feature_type_id: str, coords: Coordinates,
          attributes: dict, existing_id: str | None = None):
    store = get_store()
    form = AttributeForm(SchemaResolver(store).resolve(feature_type_id))
    state = form.render(attributes, FormMode.WRITABLE)
    errors = form.validate(state)
    if errors:
        return jsonify({"errors": errors}), 400

    result = store.save_feature(project_id, feature_type_id, coords,
                                form.payload(state), existing_id)
    if not result.success:
        return jsonify(result.to_dict()), 409
    return jsonify(result.to_dict()), (200 if existing_id else 201)


@api_bp.route("/features/<feature_id>")
def get_feature(feature_id: str):
    """GET /api/v1/features/{id}"""
    try:
        detail = get_store().fetch_feature_detail(feature_id)
    except UnknownFeatureError:
        return jsonify({"error": "not found"}), 404
    return jsonify(detail.to_dict())


@api_bp.route("/features", methods=["POST"])
def create_feature():
    """
    POST /api/v1/features

    JSON body: {project_id, feature_type_id, coordinates: {lng, lat}, attributes}.
    The technical id and estado are assigned by the store.
    """
    data = request.get_json(force=True, silent=True) or {}
    project_id = str(data.get("project_id") or "").strip()
    feature_type_id = str(data.get("feature_type_id") or "").strip()
    if not project_id or not feature_type_id:
        return jsonify({"error": "project_id and feature_type_id are required"}), 400

    coords = _coordinates(data)
    if coords is None:
        return jsonify({"error": "coordinates {lng, lat} are required"}), 400

    return _save(project_id, feature_type_id, coords, data.get("attributes") or {})


@api_bp.route("/features/<feature_id>", methods=["PUT"])
def update_feature(feature_id: str):
    """PUT /api/v1/features/{id}  (JSON body: attributes, optional coordinates)"""
    data = request.get_json(force=True, silent=True) or {}
    try:
        detail = get_store().fetch_feature_detail(feature_id)
    except UnknownFeatureError:
        return jsonify({"error": "not found"}), 404

    coords = _coordinates(data, fallback=detail.coordinates)
    if coords is None:
        return jsonify({"error": "coordinates must be {lng, lat} numbers"}), 400

    return _save(detail.project_id, detail.feature_type_id, coords,
                 data.get("attributes") or {}, existing_id=feature_id)


@api_bp.route("/features/<feature_id>", methods=["DELETE"])
def delete_feature(feature_id: str):
    """DELETE /api/v1/features/{id}"""
    try:
        get_store().delete_feature(feature_id)
    except UnknownFeatureError:
        return jsonify({"error": "not found"}), 404
    except BackendError as exc:
        return jsonify({"error": str(exc)}), 409
    return jsonify({"deleted": feature_id})


@api_bp.route("/features/<feature_id>/photos", methods=["POST"])
def upload_feature_photo(feature_id: str):
    """
    POST /api/v1/features/{id}/photos

    Multipart: field name 'photo'.  Or: raw image bytes as request body.
    """
    if request.content_type and "multipart" in request.content_type:
        f = request.files.get("photo")
        content = f.read() if f else None
    else:
        content = request.get_data()
    if not content:
        return jsonify({"error": "no photo in upload"}), 400

    try:
        ref = get_store().upload_photo(feature_id, content)
    except UnknownFeatureError:
        return jsonify({"error": "not found"}), 404
    except BackendError as exc:
        return jsonify({"error": str(exc)}), 400
    return jsonify({"storage_path": ref}), 201
