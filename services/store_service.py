"""
services.store_service - The data store behind the feature backend contract.

Every public method opens its own session and either commits all of
its work or rolls all of it back.  submit_batch re-checks each row on
this side of the boundary and refuses the whole batch on the first
doubt; a client that skipped validation gets no partial import.
"""

from __future__ import annotations

import logging
import math
from datetime import date
from pathlib import Path
from typing import Callable, Optional, Sequence

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

import config
from db.engine import get_session
from db.models import Feature, FeaturePhoto, FeatureType, Project
from import_engine.field_map import RESERVED_COLUMNS
from schema.model import AttributeDefinition, FieldKind
from schema.resolver import build_schema
from schema.text import fold_upper
from services import photo_service
from services.backend import (
    BackendError, BatchOutcome, Coordinates, FeatureBackend, FeatureDetail, SaveResult,
    UnknownFeatureError,
)
from services.sequence_service import TechnicalIdAllocator

logger = logging.getLogger(__name__)

BOOLEAN_CELLS = frozenset({"SI", "NO", "TRUE", "FALSE", "1", "0"})
CONFLICT_MESSAGE = "Another change to this feature type was saved at the same time; try again"


def check_coordinates(lat, lng) -> Optional[str]:
    try:
        lat, lng = float(lat), float(lng)
    except (TypeError, ValueError):
        return "coordinates are not numbers"
    if not (math.isfinite(lat) and math.isfinite(lng)):
        return "coordinates are not finite"
    if not -90 <= lat <= 90:
        return f"latitude {lat} out of range"
    if not -180 <= lng <= 180:
        return f"longitude {lng} out of range"
    return None


def check_import_cell(defn: AttributeDefinition, value: Optional[str]) -> Optional[str]:
    """Error text for one normalised cell, or None when it is acceptable."""
    if value is None:
        if defn.required and not defn.is_technical_id:
            return f"{defn.field} is required"
        return None

    kind = defn.kind
    if kind is FieldKind.NUMBER:
        try:
            int(value)
        except ValueError:
            return f"{defn.field} must be a whole number"
    elif kind is FieldKind.DECIMAL:
        try:
            float(value)
        except ValueError:
            return f"{defn.field} must be a number"
    elif kind is FieldKind.DATE:
        try:
            date.fromisoformat(value)
        except ValueError:
            return f"{defn.field} must be a YYYY-MM-DD date"
    elif kind is FieldKind.BOOLEAN:
        if value not in BOOLEAN_CELLS:
            return f"{defn.field} must be SI or NO"
    elif kind.has_options:
        allowed = {fold_upper(o) for o in defn.options}
        if kind is FieldKind.SELECT:
            picked = [value]
        else:
            picked = [p.strip() for p in value.split(config.MULTISELECT_SEPARATOR) if p.strip()]
        bad = [p for p in picked if p not in allowed]
        if bad:
            return f"{defn.field} has values outside its options: {', '.join(bad)}"
    return None


def check_import_row(row, by_key: dict[str, AttributeDefinition]) -> Optional[str]:
    err = check_coordinates(row.latitude, row.longitude)
    if err:
        return err
    if row.estado not in config.VALID_ESTADOS:
        return f"estado {row.estado!r} is not one of {', '.join(config.VALID_ESTADOS)}"
    unknown = [k for k in row.attributes if k not in by_key]
    if unknown:
        return f"unknown columns: {', '.join(sorted(unknown))}"
    for key, defn in by_key.items():
        err = check_import_cell(defn, row.attributes.get(key))
        if err:
            return err
    return None


class StoreService(FeatureBackend):

    def __init__(self, session_factory: Callable[[], Session] = get_session,
                 photos_dir: Path | None = None):
        self._session_factory = session_factory
        self._photos_dir = photos_dir

    # ── Reads ──────────────────────────────────────────────────────────

    def fetch_schema(self, feature_type_id: str) -> list[dict]:
        session = self._session_factory()
        try:
            ft = session.get(FeatureType, feature_type_id)
            if ft is None:
                return []
            return [a.to_dict() for a in ft.attributes]
        finally:
            session.close()

    def fetch_feature_type(self, feature_type_id: str) -> Optional[dict]:
        session = self._session_factory()
        try:
            ft = session.get(FeatureType, feature_type_id)
            return ft.to_dict() if ft else None
        finally:
            session.close()

    def fetch_assigned_feature_types(self, project_id: str) -> list[dict]:
        session = self._session_factory()
        try:
            project = session.get(Project, project_id)
            if project is None:
                return []
            return sorted((ft.to_dict() for ft in project.feature_types),
                          key=lambda d: d["name"])
        finally:
            session.close()

    def fetch_feature_detail(self, feature_id: str) -> FeatureDetail:
        session = self._session_factory()
        try:
            feat = session.get(Feature, feature_id)
            if feat is None:
                raise UnknownFeatureError(f"Feature {feature_id} not found")
            return FeatureDetail(
                id=feat.id,
                feature_type_id=feat.feature_type_id,
                coordinates=Coordinates(lng=feat.longitude, lat=feat.latitude),
                attributes=feat.attributes,
                technical_id=feat.technical_id,
                estado=feat.estado,
                project_id=feat.project_id,
                photos=[p.to_dict() for p in feat.photos],
            )
        finally:
            session.close()

    def list_features(self, project_id: str,
                      feature_type_ids: Optional[Sequence[str]] = None) -> dict:
        """GeoJSON FeatureCollection feeding the map point layer."""
        session = self._session_factory()
        try:
            q = session.query(Feature).filter(Feature.project_id == project_id)
            if feature_type_ids:
                q = q.filter(Feature.feature_type_id.in_(list(feature_type_ids)))
            return {
                "type": "FeatureCollection",
                "features": [f.to_geojson() for f in q.order_by(Feature.technical_id)],
            }
        finally:
            session.close()

    # ── Batch import ───────────────────────────────────────────────────

    def submit_batch(self, project_id: str, feature_type_id: str, creator_id: str,
                     rows: Sequence) -> BatchOutcome:
        if not rows:
            raise BackendError("Empty batch")

        session = self._session_factory()
        try:
            ft = self._assigned_type(session, project_id, feature_type_id)
            schema = build_schema(ft.id, [a.to_dict() for a in ft.attributes])
            by_key = {
                d.field.strip().upper(): d for d in schema
                if not d.is_technical_id and d.field.strip().upper() not in RESERVED_COLUMNS
            }

            allocator = TechnicalIdAllocator(session)
            ids: list[str] = []
            for n, row in enumerate(rows, start=1):
                err = check_import_row(row, by_key)
                if err:
                    raise BackendError(f"Row {n}: {err}")
                feat = Feature(
                    project_id=project_id,
                    feature_type_id=ft.id,
                    technical_id=allocator.next_for(ft),
                    latitude=float(row.latitude),
                    longitude=float(row.longitude),
                    estado=row.estado,
                    created_by=creator_id or "",
                )
                feat.attributes = dict(row.attributes)
                session.add(feat)
                session.flush()
                ids.append(feat.id)

            session.commit()
        except BackendError:
            session.rollback()
            raise
        except IntegrityError as exc:
            session.rollback()
            logger.error(f"Batch for type {feature_type_id} hit a constraint: {exc}")
            raise BackendError(CONFLICT_MESSAGE) from exc
        except SQLAlchemyError as exc:
            session.rollback()
            logger.error(f"Batch for type {feature_type_id} failed: {exc}")
            raise BackendError("Batch rejected: the database refused the write") from exc
        except ValueError as exc:
            session.rollback()
            raise BackendError(f"Batch rejected: {exc}") from exc
        finally:
            session.close()

        logger.info(f"Batch of {len(ids)} features committed for type {feature_type_id}")
        return BatchOutcome(inserted=len(ids), ids=tuple(ids))

    # ── Single feature ─────────────────────────────────────────────────

    def save_feature(self, project_id: str, feature_type_id: str,
                     coordinates: Coordinates, attributes: dict,
                     existing_id: Optional[str] = None) -> SaveResult:
        err = check_coordinates(coordinates.lat, coordinates.lng)
        if err:
            return SaveResult(success=False, error=f"Invalid position: {err}")

        session = self._session_factory()
        try:
            if existing_id:
                feat = session.get(Feature, existing_id)
                if feat is None:
                    raise UnknownFeatureError(f"Feature {existing_id} not found")
                if feat.project_id != project_id:
                    raise BackendError("Feature belongs to another project")
            else:
                ft = self._assigned_type(session, project_id, feature_type_id)
                feat = Feature(
                    project_id=project_id,
                    feature_type_id=ft.id,
                    technical_id=TechnicalIdAllocator(session).next_for(ft),
                    estado=config.DEFAULT_ESTADO,
                )
                session.add(feat)

            feat.latitude = float(coordinates.lat)
            feat.longitude = float(coordinates.lng)
            feat.attributes = attributes
            session.commit()
            logger.info(f"Saved feature {feat.technical_id} ({feat.id})")
            return SaveResult(success=True, id=feat.id)
        except BackendError as exc:
            session.rollback()
            logger.error(f"Save rejected: {exc}")
            return SaveResult(success=False, error=str(exc))
        except IntegrityError as exc:
            session.rollback()
            logger.error(f"Save hit a constraint: {exc}")
            return SaveResult(success=False, error=CONFLICT_MESSAGE)
        except SQLAlchemyError as exc:
            session.rollback()
            logger.error(f"Save failed: {exc}")
            return SaveResult(success=False, error="The database refused the write")
        except ValueError as exc:
            session.rollback()
            logger.error(f"Save failed: {exc}")
            return SaveResult(success=False, error=str(exc))
        finally:
            session.close()

    def delete_feature(self, feature_id: str) -> None:
        session = self._session_factory()
        try:
            feat = session.get(Feature, feature_id)
            if feat is None:
                raise UnknownFeatureError(f"Feature {feature_id} not found")
            paths = [p.storage_path for p in feat.photos]
            session.delete(feat)
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            logger.error(f"Delete of {feature_id} failed: {exc}")
            raise BackendError("Delete failed: the database refused the change") from exc
        finally:
            session.close()

        for rel in paths:
            photo_service.remove_photo(rel, photos_dir=self._photos_dir)
        logger.info(f"Deleted feature {feature_id}")

    def upload_photo(self, feature_id: str, image_bytes: bytes) -> str:
        """
        Store the photo file, then its row.  A file whose row cannot be
        committed is removed again; every failure is a BackendError.
        """
        ref = None
        session = self._session_factory()
        try:
            feat = session.get(Feature, feature_id)
            if feat is None:
                raise UnknownFeatureError(f"Feature {feature_id} not found")
            ref = photo_service.store_photo(feat.project_id, feat.id, image_bytes,
                                            photos_dir=self._photos_dir)
            session.add(FeaturePhoto(feature_id=feat.id, storage_path=ref,
                                     description="Captura de campo"))
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            logger.error(f"Photo row for feature {feature_id} not saved: {exc}")
            if ref is not None:
                photo_service.remove_photo(ref, photos_dir=self._photos_dir)
            raise BackendError("Photo upload failed: the database refused the write") from exc
        finally:
            session.close()

        logger.info(f"Stored photo {ref} for feature {feature_id}")
        return ref

    # ── Private helpers ────────────────────────────────────────────────

    @staticmethod
    def _assigned_type(session: Session, project_id: str, feature_type_id: str) -> FeatureType:
        project = session.get(Project, project_id)
        if project is None:
            raise BackendError(f"Project {project_id} not found")
        for ft in project.feature_types:
            if ft.id == feature_type_id:
                return ft
        raise BackendError(f"Feature type {feature_type_id} is not assigned to this project")
