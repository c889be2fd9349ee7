"""
import_engine.importer - Top-level orchestrator.

Coordinates validator → row_processor and produces an ImportPreview.
Nothing here writes; submission goes through import_engine.gate.
"""

from __future__ import annotations

from import_engine.report import ImportPreview
from import_engine.row_processor import normalize
from import_engine.validator import validate
from schema.model import FeatureTypeSchema


def prepare_import(file_content: str | bytes, schema: FeatureTypeSchema) -> ImportPreview:
    """
    Validate a CSV blob against `schema` and normalise every accepted row.

    Returns
    -------
    ImportPreview whose rows are empty whenever any error was found
    """
    result = validate(file_content, schema)
    preview = ImportPreview(errors=list(result.errors))
    if result.errors:
        return preview
    preview.rows = [normalize(row, schema) for row in result.rows]
    return preview
