"""
api.routes_import - /api/v1/import endpoints.

Accepts CSV via multipart file upload or raw request body.
Validation never writes; the submit endpoint re-runs the whole
pipeline and hands the batch to the submission gate.
"""

from flask import request, jsonify

from api import api_bp, get_store, get_submission_locks
from import_engine import (
    BatchSubmissionGate, SubmissionInProgress, SubmissionRefused, can_submit, prepare_import,
)
from schema.resolver import SchemaResolver


def _read_upload():
    """CSV bytes from 'csv_file' (multipart) or the raw body; None when absent."""
    if request.content_type and "multipart" in request.content_type:
        f = request.files.get("csv_file")
        return f.read() if f else None
    return request.get_data() or None


def _resolve_type(feature_type_id: str):
    store = get_store()
    if not feature_type_id or store.fetch_feature_type(feature_type_id) is None:
        return None
    return SchemaResolver(store).resolve(feature_type_id)


@api_bp.route("/import/validate", methods=["POST"])
def api_import_validate():
    """
    POST /api/v1/import/validate?feature_type=<id>

    Returns {errors: [{line, message}], rows: [...], total_rows, can_submit}.
    """
    schema = _resolve_type(request.args.get("feature_type", "").strip())
    if schema is None:
        return jsonify({"error": "unknown feature type"}), 404

    content = _read_upload()
    if not content:
        return jsonify({"error": "no csv_file in upload"}), 400

    preview = prepare_import(content, schema)
    return jsonify({**preview.to_dict(), "can_submit": can_submit(preview)})


@api_bp.route("/import", methods=["POST"])
def api_import_csv():
    """
    POST /api/v1/import?project=<id>&feature_type=<id>

    Header X-User-Id names the creator.  422 when the file has errors,
    409 when another import for the same project and type is running
    or the data store refuses the batch.
    """
    project_id = request.args.get("project", "").strip()
    if not project_id:
        return jsonify({"error": "project is required"}), 400

    feature_type_id = request.args.get("feature_type", "").strip()
    schema = _resolve_type(feature_type_id)
    if schema is None:
        return jsonify({"error": "unknown feature type"}), 404

    content = _read_upload()
    if not content:
        return jsonify({"error": "no csv_file in upload"}), 400

    preview = prepare_import(content, schema)
    if preview.errors:
        return jsonify(preview.to_dict()), 422

    gate = BatchSubmissionGate(get_store(), get_submission_locks())
    try:
        result = gate.submit(preview, feature_type_id, project_id,
                             creator_id=request.headers.get("X-User-Id", ""))
    except SubmissionInProgress as exc:
        return jsonify({"error": str(exc)}), 409
    except SubmissionRefused as exc:
        return jsonify({"error": str(exc)}), 400

    if not result.success:
        return jsonify(result.to_dict()), 409
    return jsonify(result.to_dict()), 201
