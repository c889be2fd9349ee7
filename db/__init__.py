"""
db - Database layer.

Public API:
    init_db()       → create engine + tables
    dispose_db()    → close pooled connections
    get_session()   → new Session
    Project, FeatureType, AttributeDefinitionRow, Feature, FeaturePhoto → ORM models
"""

from db.engine import init_db, dispose_db, get_session   # noqa: F401
from db.models import (                             # noqa: F401
    Base,
    Project,
    FeatureType,
    ProjectFeatureType,
    AttributeDefinitionRow,
    Feature,
    FeaturePhoto,
)
