"""
schema.resolver - Feature type id → ordered FeatureTypeSchema.

The definitions come from the data store (see services.backend); this
module only orders and de-duplicates them.  An id the store does not
know yields an empty schema, which callers read as "no attributes".
"""

from __future__ import annotations

import logging
from typing import Iterable

from schema.model import AttributeDefinition, FeatureTypeSchema

logger = logging.getLogger(__name__)


def build_schema(
    feature_type_id: str,
    definitions: Iterable[AttributeDefinition | dict],
) -> FeatureTypeSchema:
    """
    Order definitions by their persisted `order` (ties keep store order)
    and drop case-insensitive duplicate field names, first one wins.
    """
    defs = [
        d if isinstance(d, AttributeDefinition) else AttributeDefinition.from_dict(d)
        for d in definitions or ()
    ]
    ordered = sorted(enumerate(defs), key=lambda pair: (pair[1].order, pair[0]))

    seen: set[str] = set()
    result: list[AttributeDefinition] = []
    for _, d in ordered:
        if d.key in seen:
            logger.warning(f"Duplicate attribute {d.field!r} in feature type {feature_type_id}")
            continue
        seen.add(d.key)
        result.append(d)
    return FeatureTypeSchema(feature_type_id=feature_type_id, definitions=tuple(result))


class SchemaResolver:
    """Resolves schemas through any object exposing fetch_schema(id)."""

    def __init__(self, backend):
        self._backend = backend

    def resolve(self, feature_type_id: str) -> FeatureTypeSchema:
        if not feature_type_id:
            return FeatureTypeSchema(feature_type_id="")
        defs = self._backend.fetch_schema(feature_type_id) or []
        return build_schema(feature_type_id, defs)
