"""
import_engine.row_processor - Turn one validated CSV row into an ImportRow.

Single-responsibility and side-effect free: the same row and schema
always give the same ImportRow.
"""

from __future__ import annotations

from typing import Optional

import config
from import_engine.field_map import (
    ESTADO_COLUMN, LATITUDE_COLUMN, LONGITUDE_COLUMN, NULL_LITERAL, RESERVED_COLUMNS,
)
from import_engine.report import ImportRow
from import_engine.validator import cell
from schema.model import FeatureTypeSchema
from schema.text import fold_upper


class RowError(Exception):
    """Raised when a row reaches the normaliser without usable coordinates."""
    pass


def is_null_cell(raw: Optional[str]) -> bool:
    """Empty, whitespace-only or the literal 'null' in any case."""
    if raw is None:
        return True
    stripped = raw.strip()
    return stripped == "" or stripped.lower() == NULL_LITERAL


def normalize_value(raw: Optional[str]) -> Optional[str]:
    """None for null cells, else trimmed, accent-free, upper-case text."""
    if is_null_cell(raw):
        return None
    return fold_upper(raw)


def normalize_key(column: str) -> str:
    return column.strip().upper()


def normalize(row: dict[str, str], schema: FeatureTypeSchema) -> ImportRow:
    """
    Build the ImportRow for a row the validator accepted.  Every
    non-reserved column lands in `attributes` under its upper-cased name;
    schema fields the file does not carry are recorded as None.
    """
    try:
        lat = float(cell(row, LATITUDE_COLUMN).strip())
        lng = float(cell(row, LONGITUDE_COLUMN).strip())
    except ValueError as exc:
        raise RowError(f"Invalid coordinates: {exc}") from exc

    attributes: dict[str, Optional[str]] = {}
    for column, raw in row.items():
        key = normalize_key(column)
        if not key or key in RESERVED_COLUMNS:
            continue
        attributes[key] = normalize_value(raw)

    for defn in schema:
        key = normalize_key(defn.field)
        if key not in RESERVED_COLUMNS:
            attributes.setdefault(key, None)

    estado = normalize_value(cell(row, ESTADO_COLUMN)) or config.DEFAULT_ESTADO

    return ImportRow(latitude=lat, longitude=lng, estado=estado, attributes=attributes)
