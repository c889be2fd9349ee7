"""
services.async_backend - Coroutine façade over a blocking FeatureBackend.

The map controller awaits every store call; each one runs in the
default executor so the event loop stays free while the store works.
"""

from __future__ import annotations

import asyncio
from typing import Optional, Sequence

from services.backend import (
    BatchOutcome, Coordinates, FeatureBackend, FeatureDetail, SaveResult,
)


class AsyncBackend:

    def __init__(self, backend: FeatureBackend):
        self._backend = backend

    async def fetch_schema(self, feature_type_id: str) -> list[dict]:
        return await asyncio.to_thread(self._backend.fetch_schema, feature_type_id)

    async def fetch_assigned_feature_types(self, project_id: str) -> list[dict]:
        return await asyncio.to_thread(self._backend.fetch_assigned_feature_types, project_id)

    async def fetch_feature_detail(self, feature_id: str) -> FeatureDetail:
        return await asyncio.to_thread(self._backend.fetch_feature_detail, feature_id)

    async def submit_batch(self, project_id: str, feature_type_id: str, creator_id: str,
                           rows: Sequence) -> BatchOutcome:
        return await asyncio.to_thread(
            self._backend.submit_batch, project_id, feature_type_id, creator_id, rows,
        )

    async def save_feature(self, project_id: str, feature_type_id: str,
                           coordinates: Coordinates, attributes: dict,
                           existing_id: Optional[str] = None) -> SaveResult:
        return await asyncio.to_thread(
            self._backend.save_feature,
            project_id, feature_type_id, coordinates, attributes, existing_id,
        )

    async def delete_feature(self, feature_id: str) -> None:
        await asyncio.to_thread(self._backend.delete_feature, feature_id)

    async def upload_photo(self, feature_id: str, image_bytes: bytes) -> str:
        return await asyncio.to_thread(self._backend.upload_photo, feature_id, image_bytes)
