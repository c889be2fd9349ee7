"""
import_engine.csv_parser - Low-level CSV reading and cleaning.

Responsibilities:
  • BOM removal (UTF-8 / UTF-8-SIG)
  • Header whitespace stripping
  • Blank-line skipping
  • Materialising rows as plain str → str dicts
"""

from __future__ import annotations

import csv
import io
from typing import Optional


class CsvParseError(Exception):
    """Raised when the file cannot be read as delimited text."""
    pass


def prepare_reader(raw: str | bytes) -> Optional[csv.DictReader]:
    """
    Accept raw file content (bytes or str), clean it,
    and return a DictReader.  Returns None if content is empty.
    """
    text = _decode(raw)
    if not text or not text.strip():
        return None

    reader = csv.DictReader(io.StringIO(text, newline=""))
    try:
        fieldnames = reader.fieldnames
    except csv.Error as exc:
        raise CsvParseError(f"Unreadable CSV header: {exc}") from exc
    if not fieldnames:
        return None

    # Strip whitespace from every header
    reader.fieldnames = [(h or "").strip() for h in fieldnames]
    return reader


def read_rows(raw: str | bytes) -> tuple[list[str], list[dict[str, str]]]:
    """
    Parse the whole file.  Returns (headers, rows); each row maps header
    → cell string, with missing trailing cells as "" and surplus cells
    dropped.  Raises CsvParseError on malformed input or an empty file.
    """
    reader = prepare_reader(raw)
    if reader is None:
        raise CsvParseError("CSV has no header row or is empty")

    rows: list[dict[str, str]] = []
    try:
        for rec in reader:
            rows.append({
                k: (v if isinstance(v, str) else "")
                for k, v in rec.items()
                if k is not None
            })
    except csv.Error as exc:
        raise CsvParseError(f"Malformed CSV near line {reader.line_num}: {exc}") from exc
    return list(reader.fieldnames), rows


def _decode(raw: str | bytes) -> str:
    if isinstance(raw, bytes):
        # Strip UTF-8 BOM
        if raw.startswith(b"\xef\xbb\xbf"):
            raw = raw[3:]
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise CsvParseError(f"File is not valid UTF-8: {exc}") from exc
    if raw.startswith("\ufeff"):
        return raw[1:]
    return raw
