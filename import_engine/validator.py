"""
import_engine.validator - Check an uploaded CSV against a feature type schema.

Pure function of (file contents, schema): it never touches the data
store, so re-validating the same input always yields the same result.

Structural problems (unparseable file, missing columns) stop validation
at once with a single line-0 error.  Row problems are collected for
every row, and any of them empties the row output: a batch is imported
whole or not at all.
"""

from __future__ import annotations

import math
from typing import Optional

from import_engine.csv_parser import CsvParseError, read_rows
from import_engine.field_map import (
    BASE_REQUIRED_COLUMNS, EXAMPLE_ROW_LATITUDE, LATITUDE_COLUMN, LONGITUDE_COLUMN,
)
from import_engine.report import ValidationResult
from schema.model import FeatureTypeSchema

# header row + instruction row + 1-based position
ROW_LINE_OFFSET = 3


def required_columns(schema: FeatureTypeSchema) -> list[str]:
    """
    latitude, longitude and every schema field except the technical id,
    case-folded, in that order.
    """
    cols = list(BASE_REQUIRED_COLUMNS)
    for defn in schema:
        if defn.is_technical_id:
            continue
        if defn.key not in cols:
            cols.append(defn.key)
    return cols


def parse_coordinate(raw: Optional[str], limit: float) -> Optional[float]:
    """Float within ±limit, or None when the cell is not a usable coordinate."""
    try:
        value = float((raw or "").strip())
    except ValueError:
        return None
    if not math.isfinite(value) or not -limit <= value <= limit:
        return None
    return value


def cell(row: dict[str, str], column: str) -> str:
    """Case-insensitive cell lookup; "" when the column is absent."""
    if column in row:
        return row[column] or ""
    wanted = column.casefold()
    for k, v in row.items():
        if k.casefold() == wanted:
            return v or ""
    return ""


def is_template_artifact(row: dict[str, str]) -> bool:
    """The instruction row of a generated template, or a row of empty cells."""
    if cell(row, LATITUDE_COLUMN).strip() == EXAMPLE_ROW_LATITUDE:
        return True
    return not any((v or "").strip() for v in row.values())


def validate(file_contents: str | bytes, schema: FeatureTypeSchema) -> ValidationResult:
    result = ValidationResult()

    try:
        headers, raw_rows = read_rows(file_contents)
    except CsvParseError as exc:
        result.add_error(0, str(exc))
        return result
    result.headers = headers

    present = {h.casefold() for h in headers}
    missing = [c for c in required_columns(schema) if c not in present]
    if missing:
        result.add_error(0, f"Missing required columns: {', '.join(missing)}")
        return result

    data_rows = [r for r in raw_rows if not is_template_artifact(r)]

    valid: list[dict[str, str]] = []
    for index, row in enumerate(data_rows):
        lat = parse_coordinate(cell(row, LATITUDE_COLUMN), 90.0)
        lng = parse_coordinate(cell(row, LONGITUDE_COLUMN), 180.0)
        if lat is None or lng is None:
            result.add_error(index + ROW_LINE_OFFSET, "Invalid latitude/longitude coordinates")
            continue
        valid.append(row)

    result.rows = [] if result.errors else valid
    return result
