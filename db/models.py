"""
db.models - SQLAlchemy ORM declarations.

Tables
------
projects               - field projects that features belong to.
feature_types          - named schema templates ("capas"); `code` prefixes
                         the technical identifiers of their features.
project_feature_types  - which feature types a project may place.
attribute_definitions  - ordered per-type attribute schema.
features               - one geolocated asset.  Organisation-defined
                         attributes live in a JSON text column so the
                         schema can change without ALTER TABLE.
feature_photos         - evidence photos stored on disk.
"""

from __future__ import annotations

import json
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean, Column, DateTime, Float, ForeignKey, Index, Integer, String, Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, relationship


def _now():
    return datetime.now(timezone.utc)


def _uuid() -> str:
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    pass


class Project(Base):
    __tablename__ = "projects"

    id   = Column(String(36), primary_key=True, default=_uuid)
    name = Column(String(200), nullable=False, default="")

    feature_types = relationship(
        "FeatureType", secondary="project_feature_types", lazy="selectin",
    )

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name}


class FeatureType(Base):
    __tablename__ = "feature_types"

    id   = Column(String(36), primary_key=True, default=_uuid)
    code = Column(String(20), nullable=False, unique=True)
    name = Column(String(200), nullable=False, default="")
    icon = Column(String(100), default="MapPin")

    attributes = relationship(
        "AttributeDefinitionRow", back_populates="feature_type",
        cascade="all, delete-orphan", lazy="selectin",
        order_by="AttributeDefinitionRow.order",
    )

    def to_dict(self) -> dict:
        return {"id": self.id, "code": self.code, "name": self.name, "icon": self.icon or ""}


class ProjectFeatureType(Base):
    __tablename__ = "project_feature_types"

    project_id      = Column(String(36), ForeignKey("projects.id", ondelete="CASCADE"),
                             primary_key=True)
    feature_type_id = Column(String(36), ForeignKey("feature_types.id", ondelete="CASCADE"),
                             primary_key=True)


class AttributeDefinitionRow(Base):
    __tablename__ = "attribute_definitions"

    id              = Column(Integer, primary_key=True, autoincrement=True)
    feature_type_id = Column(String(36),
                             ForeignKey("feature_types.id", ondelete="CASCADE"),
                             nullable=False, index=True)
    field        = Column(String(200), nullable=False)
    kind         = Column(String(20), nullable=False, default="text")
    required     = Column(Boolean, nullable=False, default=False)
    options_json = Column(Text, default="[]")
    order        = Column(Integer, nullable=False, default=0)

    feature_type = relationship("FeatureType", back_populates="attributes")

    def to_dict(self) -> dict:
        try:
            options = json.loads(self.options_json or "[]")
        except json.JSONDecodeError:
            options = []
        return {
            "field": self.field,
            "kind": self.kind,
            "required": bool(self.required),
            "options": options,
            "order": self.order,
        }


class Feature(Base):
    __tablename__ = "features"

    id              = Column(String(36), primary_key=True, default=_uuid)
    project_id      = Column(String(36), ForeignKey("projects.id", ondelete="CASCADE"),
                             nullable=False, index=True)
    feature_type_id = Column(String(36), ForeignKey("feature_types.id"),
                             nullable=False, index=True)
    technical_id    = Column(String(40), nullable=False, unique=True)
    latitude        = Column(Float, nullable=False)
    longitude       = Column(Float, nullable=False)
    estado          = Column(String(20), nullable=False, default="PENDIENTE")
    attributes_json = Column(Text, default="{}")
    created_by      = Column(String(100), default="")

    created_at = Column(DateTime, default=_now)
    updated_at = Column(DateTime, default=_now, onupdate=_now)

    feature_type = relationship("FeatureType", lazy="joined")
    photos = relationship(
        "FeaturePhoto", back_populates="feature",
        cascade="all, delete-orphan", lazy="selectin",
    )

    __table_args__ = (
        Index("ix_features_project_type", "project_id", "feature_type_id"),
    )

    @property
    def attributes(self) -> dict:
        try:
            return json.loads(self.attributes_json or "{}")
        except json.JSONDecodeError:
            return {}

    @attributes.setter
    def attributes(self, value: dict) -> None:
        self.attributes_json = json.dumps(value or {}, ensure_ascii=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "feature_type_id": self.feature_type_id,
            "technical_id": self.technical_id,
            "coordinates": {"lng": self.longitude, "lat": self.latitude},
            "estado": self.estado,
            "attributes": self.attributes,
            "photos": [p.to_dict() for p in self.photos],
            "created_at": self.created_at.isoformat() if self.created_at else "",
        }

    def to_geojson(self) -> dict:
        return {
            "type": "Feature",
            "geometry": {"type": "Point", "coordinates": [self.longitude, self.latitude]},
            "properties": {
                "id": self.id,
                "capaId": self.feature_type_id,
                "technical_id": self.technical_id,
                "estado": self.estado,
                "icono": self.feature_type.icon if self.feature_type else "",
            },
        }


class FeaturePhoto(Base):
    __tablename__ = "feature_photos"

    id           = Column(Integer, primary_key=True, autoincrement=True)
    feature_id   = Column(String(36), ForeignKey("features.id", ondelete="CASCADE"),
                          nullable=False, index=True)
    storage_path = Column(String(500), nullable=False)
    description  = Column(String(200), default="")
    created_at   = Column(DateTime, default=_now)

    feature = relationship("Feature", back_populates="photos")

    __table_args__ = (
        UniqueConstraint("storage_path", name="uq_feature_photo_path"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "storage_path": self.storage_path,
            "description": self.description or "",
        }
