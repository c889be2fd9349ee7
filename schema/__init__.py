"""
schema - Feature type attribute schemas.

Public API:
    model.AttributeDefinition / FeatureTypeSchema / FieldKind
    resolver.SchemaResolver / build_schema
    templates.build_template / template_filename
    loader.load_catalog
"""

from schema.model import (                          # noqa: F401
    AttributeDefinition,
    FeatureTypeSchema,
    FieldKind,
    TECHNICAL_ID_FIELD,
)
from schema.resolver import SchemaResolver, build_schema      # noqa: F401
from schema.templates import build_template, template_filename   # noqa: F401
