"""
services - Business-logic layer sitting between API and DB.

    backend.FeatureBackend      → data-store contract + result types
    store_service.StoreService  → SQLAlchemy implementation of that contract
    async_backend.AsyncBackend  → coroutine façade used by the map controller
    photo_service               → image shrinking / on-disk storage
    sequence_service            → technical identifier allocation
"""

from services.backend import (                          # noqa: F401
    BackendError,
    BatchOutcome,
    FeatureBackend,
    SaveResult,
    UnknownFeatureError,
)
