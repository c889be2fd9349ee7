import asyncio
import json

import pytest

from db import dispose_db
from main import create_app
from mapview.surface import MapSurface, Marker
from schema.resolver import build_schema
from services.backend import (
    BackendError, Coordinates, FeatureDetail, SaveResult, UnknownFeatureError,
)

PROJECT_ID = "p-norte"
OTHER_PROJECT_ID = "p-sur"

POSTES_ATTRIBUTES = [
    {"field": "id_tecnico", "kind": "text", "required": True},
    {"field": "MATERIAL", "kind": "select", "required": True,
     "options": ["CONCRETO", "MADERA", "METÁLICO"]},
    {"field": "ALTURA", "kind": "decimal", "required": True},
    {"field": "CON_LUMINARIA", "kind": "boolean", "required": False},
    {"field": "FECHA", "kind": "date", "required": False},
    {"field": "REDES", "kind": "multiselect", "required": False,
     "options": ["ENERGÍA", "TELECOMUNICACIONES"]},
    {"field": "NUMERO_DUCTOS", "kind": "number", "required": False},
]

CAMARAS_ATTRIBUTES = [
    {"field": "TIPO", "kind": "select", "required": True, "options": ["SENCILLA", "DOBLE"]},
    {"field": "OBSERVACIONES", "kind": "text", "required": False},
]

CATALOG = {
    "feature_types": [
        {"id": "ft-pos", "code": "POS", "name": "Postes", "icon": "Zap",
         "attributes": POSTES_ATTRIBUTES},
        {"id": "ft-cam", "code": "CAM", "name": "Cámaras", "icon": "Box",
         "attributes": CAMARAS_ATTRIBUTES},
        {"id": "ft-otr", "code": "OTR", "name": "Otros", "attributes": []},
    ],
    "projects": [
        {"id": PROJECT_ID, "name": "Red Norte", "feature_types": ["POS", "CAM"]},
        {"id": OTHER_PROJECT_ID, "name": "Red Sur", "feature_types": ["CAM"]},
    ],
}


# ── Schemas ────────────────────────────────────────────────────────────

@pytest.fixture
def postes_schema():
    """Schema of the 'Postes' feature type, built without a database."""
    return build_schema("ft-pos", POSTES_ATTRIBUTES)


@pytest.fixture
def camaras_schema():
    return build_schema("ft-cam", CAMARAS_ATTRIBUTES)


# ── App / database ─────────────────────────────────────────────────────

@pytest.fixture
def catalog_file(tmp_path):
    path = tmp_path / "catalog.json"
    path.write_text(json.dumps(CATALOG, ensure_ascii=False), encoding="utf-8")
    return path


@pytest.fixture
def app(tmp_path, catalog_file):
    """Flask app on a fresh SQLite file, seeded from the test catalog."""
    app = create_app(
        db_url=f"sqlite:///{tmp_path / 'test.sqlite'}",
        catalog_path=catalog_file,
        photos_dir=tmp_path / "photos",
    )
    app.config["TESTING"] = True
    yield app
    dispose_db()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def store(app):
    return app.extensions["fieldinv.store"]


@pytest.fixture
def photos_dir(tmp_path):
    return tmp_path / "photos"


# ── Map fakes ──────────────────────────────────────────────────────────

class FakeMarker(Marker):

    def __init__(self, surface, position):
        self._surface = surface
        self._position = position
        self.removed = False

    @property
    def position(self):
        return self._position

    def move_to(self, position):
        self._position = position

    def remove(self):
        if not self.removed:
            self.removed = True
            self._surface.markers.remove(self)


class FakeSurface(MapSurface):

    def __init__(self, center=Coordinates(lng=-74.08, lat=4.61)):
        self._center = center
        self.markers = []
        self.refreshes = 0

    def center(self):
        return self._center

    def add_marker(self, position):
        marker = FakeMarker(self, position)
        self.markers.append(marker)
        return marker

    def refresh_points(self):
        self.refreshes += 1


class FakeAsyncBackend:
    """
    In-memory async backend.  While `hold` is an unset asyncio.Event every
    call waits on it, which lets a test interleave user actions with an
    in-flight completion.
    """

    def __init__(self):
        self.types = [
            {"id": "ft-cam", "code": "CAM", "name": "Cámaras", "icon": "Box"},
            {"id": "ft-pos", "code": "POS", "name": "Postes", "icon": "Zap"},
        ]
        self.schemas = {"ft-pos": POSTES_ATTRIBUTES, "ft-cam": CAMARAS_ATTRIBUTES}
        self.details = {
            "f-1": FeatureDetail(
                id="f-1",
                feature_type_id="ft-cam",
                coordinates=Coordinates(lng=-74.1, lat=4.6),
                attributes={"tipo": "DOBLE", "OBSERVACIONES": "tapa rota"},
                technical_id="CAM-00001",
                estado="PENDIENTE",
                project_id=PROJECT_ID,
            ),
        }
        self.saved = []
        self.deleted = []
        self.photos = []
        self.save_result = SaveResult(success=True, id="new-1")
        self.hold = None

    async def _wait(self):
        if self.hold is not None:
            await self.hold.wait()

    async def fetch_schema(self, feature_type_id):
        await self._wait()
        return list(self.schemas.get(feature_type_id, []))

    async def fetch_assigned_feature_types(self, project_id):
        await self._wait()
        return list(self.types)

    async def fetch_feature_detail(self, feature_id):
        await self._wait()
        if feature_id not in self.details:
            raise UnknownFeatureError(f"Feature {feature_id} not found")
        return self.details[feature_id]

    async def save_feature(self, project_id, feature_type_id, coordinates, attributes,
                           existing_id=None):
        await self._wait()
        self.saved.append({
            "project_id": project_id,
            "feature_type_id": feature_type_id,
            "coordinates": coordinates,
            "attributes": attributes,
            "existing_id": existing_id,
        })
        return self.save_result

    async def delete_feature(self, feature_id):
        await self._wait()
        if feature_id not in self.details:
            raise BackendError("Delete failed")
        self.deleted.append(feature_id)

    async def upload_photo(self, feature_id, image_bytes):
        await self._wait()
        ref = f"{PROJECT_ID}/{feature_id}/{len(self.photos)}.jpg"
        self.photos.append(ref)
        return ref


@pytest.fixture
def surface():
    return FakeSurface()


@pytest.fixture
def fake_backend():
    return FakeAsyncBackend()


@pytest.fixture
def run():
    """Drive one coroutine to completion from a plain test function."""
    return asyncio.run
