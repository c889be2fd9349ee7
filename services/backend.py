"""
services.backend - Contract of the data store the core talks to.

The import gate, the attribute form and the map controller only ever
see these operations.  services.store_service implements them on
SQLAlchemy; tests substitute in-memory fakes.
"""

from __future__ import annotations

import abc
from dataclasses import dataclass, field
from typing import Optional, Sequence


class BackendError(Exception):
    """The store rejected an operation; the message is shown to the user as-is."""
    pass


class UnknownFeatureError(BackendError):
    """No feature with the requested id."""
    pass


@dataclass(frozen=True)
class BatchOutcome:
    inserted: int
    ids: tuple[str, ...] = ()


@dataclass(frozen=True)
class SaveResult:
    success: bool
    id: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> dict:
        if self.success:
            return {"success": True, "id": self.id}
        return {"success": False, "error": self.error}


@dataclass(frozen=True)
class Coordinates:
    lng: float
    lat: float

    def to_dict(self) -> dict:
        return {"lng": self.lng, "lat": self.lat}


@dataclass
class FeatureDetail:
    id: str
    feature_type_id: str
    coordinates: Coordinates
    attributes: dict
    technical_id: str
    estado: str = ""
    project_id: str = ""
    photos: list[dict] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "feature_type_id": self.feature_type_id,
            "coordinates": self.coordinates.to_dict(),
            "attributes": self.attributes,
            "technical_id": self.technical_id,
            "estado": self.estado,
            "project_id": self.project_id,
            "photos": self.photos,
        }


class FeatureBackend(abc.ABC):

    @abc.abstractmethod
    def fetch_schema(self, feature_type_id: str) -> list[dict]:
        """Attribute definitions of a feature type; [] when unknown."""

    @abc.abstractmethod
    def fetch_assigned_feature_types(self, project_id: str) -> list[dict]:
        """[{id, name, …}] for the types a project may place."""

    @abc.abstractmethod
    def fetch_feature_detail(self, feature_id: str) -> FeatureDetail:
        """Raises UnknownFeatureError when the id does not exist."""

    @abc.abstractmethod
    def submit_batch(
        self, project_id: str, feature_type_id: str, creator_id: str, rows: Sequence,
    ) -> BatchOutcome:
        """All rows commit or none do; raises BackendError on rejection."""

    @abc.abstractmethod
    def save_feature(
        self,
        project_id: str,
        feature_type_id: str,
        coordinates: Coordinates,
        attributes: dict,
        existing_id: Optional[str] = None,
    ) -> SaveResult:
        """Insert (existing_id None) or update; failures come back in SaveResult."""

    @abc.abstractmethod
    def delete_feature(self, feature_id: str) -> None:
        """Raises BackendError on failure."""

    @abc.abstractmethod
    def upload_photo(self, feature_id: str, image_bytes: bytes) -> str:
        """Store the image and return its storage reference."""
