"""
schema.templates - Downloadable CSV template for a feature type.

The header row is `latitude, longitude, estado` followed by the schema
fields in schema order; the second row holds instructions and starts
with the sentinel latitude so the validator can recognise and skip it.
"""

from __future__ import annotations

import csv
import io
import re

import config
from schema.model import AttributeDefinition, FeatureTypeSchema, FieldKind
from schema.text import strip_diacritics

BASE_HEADERS = ("latitude", "longitude", "estado")

_KIND_HINTS = {
    FieldKind.BOOLEAN: "SI o NO",
    FieldKind.DATE:    "AAAA-MM-DD",
    FieldKind.NUMBER:  "NUMEROS",
    FieldKind.DECIMAL: "NUMEROS",
}


def _hint(defn: AttributeDefinition) -> str:
    note = " (RECOMENDADO)" if defn.required else " (OPCIONAL)"
    opts = " o ".join(defn.options)
    if defn.kind is FieldKind.MULTISELECT:
        return f"ELEGIR: [{opts}] SEPARADOS POR {config.MULTISELECT_SEPARATOR}{note}"
    if defn.kind is FieldKind.SELECT:
        return f"ELEGIR UNO: [{opts}]{note}"
    return _KIND_HINTS.get(defn.kind, "TEXTO") + note


def template_headers(schema: FeatureTypeSchema) -> list[str]:
    return list(BASE_HEADERS) + schema.fields


def build_template(schema: FeatureTypeSchema) -> str:
    """Return the template text, BOM included, ready to serve as UTF-8."""
    instructions = [
        config.TEMPLATE_SENTINEL_LAT,
        config.TEMPLATE_SENTINEL_LNG,
        config.DEFAULT_ESTADO,
    ] + [_hint(d) for d in schema]

    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(template_headers(schema))
    writer.writerow(instructions)
    return "\ufeff" + buf.getvalue()


def template_filename(feature_type_name: str) -> str:
    """'Postes Eléctricos' → 'plantilla_postes_electricos.csv'"""
    safe = re.sub(r"\s+", "_", strip_diacritics(feature_type_name.strip())).lower()
    return f"plantilla_{safe or 'capa'}.csv"
