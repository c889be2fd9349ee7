import io

import pytest
from PIL import Image
from sqlalchemy.exc import OperationalError

from db import get_session
from import_engine import ImportRow, prepare_import
from services import photo_service
from services.backend import BackendError, Coordinates, UnknownFeatureError
from services.sequence_service import (
    TechnicalIdAllocator, build_technical_id, parse_technical_id,
)
from services.store_service import CONFLICT_MESSAGE, StoreService

PROJECT_ID = "p-norte"

POSTES_CSV = (
    "latitude,longitude,estado,MATERIAL,ALTURA,CON_LUMINARIA,FECHA,REDES,NUMERO_DUCTOS\n"
    "4.70,-74.05,,concreto,8.5,sí,2024-01-31,energía;telecomunicaciones,3\n"
    "4.71,-74.06,validado,Metálico,9,no,,,\n"
)


def _rows(postes_schema, content=POSTES_CSV):
    preview = prepare_import(content, postes_schema)
    assert preview.errors == []
    return preview.rows


def _png(width=3000, height=1000):
    buf = io.BytesIO()
    Image.new("RGBA", (width, height), (200, 30, 30, 255)).save(buf, format="PNG")
    return buf.getvalue()


# ── Reads ──────────────────────────────────────────────────────────────

def test_assigned_types_sorted_by_name(store):
    types = store.fetch_assigned_feature_types(PROJECT_ID)
    assert [t["name"] for t in types] == ["Cámaras", "Postes"]
    assert store.fetch_assigned_feature_types("nope") == []


def test_schema_comes_back_in_catalog_order(store):
    fields = [d["field"] for d in store.fetch_schema("ft-pos")]
    assert fields[:3] == ["id_tecnico", "MATERIAL", "ALTURA"]
    assert store.fetch_schema("unknown") == []


# ── Batch import ───────────────────────────────────────────────────────

def test_batch_assigns_sequential_technical_ids(store, postes_schema):
    outcome = store.submit_batch(PROJECT_ID, "ft-pos", "u-1", _rows(postes_schema))
    assert outcome.inserted == 2

    first = store.fetch_feature_detail(outcome.ids[0])
    second = store.fetch_feature_detail(outcome.ids[1])
    assert (first.technical_id, second.technical_id) == ("POS-00001", "POS-00002")
    assert first.estado == "PENDIENTE"
    assert second.estado == "VALIDADO"
    assert first.attributes["REDES"] == "ENERGIA;TELECOMUNICACIONES"
    assert first.coordinates == Coordinates(lng=-74.05, lat=4.70)

    again = store.submit_batch(PROJECT_ID, "ft-pos", "u-1", _rows(postes_schema))
    assert store.fetch_feature_detail(again.ids[0]).technical_id == "POS-00003"


def test_one_bad_row_rejects_the_whole_batch(store, postes_schema):
    rows = _rows(postes_schema)
    rows.append(ImportRow(latitude=4.8, longitude=-74.1, estado="PERDIDO",
                          attributes=dict(rows[0].attributes)))

    with pytest.raises(BackendError, match="Row 3: estado 'PERDIDO'"):
        store.submit_batch(PROJECT_ID, "ft-pos", "u-1", rows)
    assert store.list_features(PROJECT_ID)["features"] == []


@pytest.mark.parametrize("attribute, value, message", [
    ("MATERIAL", "ACERO", "outside its options"),
    ("ALTURA", None, "ALTURA is required"),
    ("ALTURA", "ALTO", "must be a number"),
    ("NUMERO_DUCTOS", "3.5", "whole number"),
    ("FECHA", "31/01/2024", "YYYY-MM-DD"),
    ("CON_LUMINARIA", "QUIZAS", "SI or NO"),
    ("REDES", "ENERGIA;GAS", "GAS"),
])
def test_store_rechecks_every_cell(store, postes_schema, attribute, value, message):
    row = _rows(postes_schema)[0]
    bad = ImportRow(row.latitude, row.longitude, row.estado,
                    {**row.attributes, attribute: value})
    with pytest.raises(BackendError, match=message):
        store.submit_batch(PROJECT_ID, "ft-pos", "u-1", [bad])


def test_unknown_columns_are_refused(store, postes_schema):
    content = POSTES_CSV.replace("NUMERO_DUCTOS\n", "NUMERO_DUCTOS,COLOR\n")
    content = content.replace(",3\n", ",3,rojo\n").replace(",,,\n", ",,,,\n")
    with pytest.raises(BackendError, match="unknown columns: COLOR"):
        store.submit_batch(PROJECT_ID, "ft-pos", "u-1", _rows(postes_schema, content))


def test_technical_id_may_be_empty_in_import(store, postes_schema):
    content = POSTES_CSV.replace("latitude,", "id_tecnico,latitude,")
    content = "\n".join(
        line if i == 0 else "," + line for i, line in enumerate(content.splitlines())
    ) + "\n"
    outcome = store.submit_batch(PROJECT_ID, "ft-pos", "u-1", _rows(postes_schema, content))
    assert outcome.inserted == 2


def test_batch_for_unassigned_type_rejected(store, postes_schema):
    with pytest.raises(BackendError, match="not assigned"):
        store.submit_batch("p-sur", "ft-pos", "u-1", _rows(postes_schema))


def test_empty_batch_rejected(store):
    with pytest.raises(BackendError):
        store.submit_batch(PROJECT_ID, "ft-pos", "u-1", [])


# ── Single features ────────────────────────────────────────────────────

def test_save_creates_then_updates(store):
    created = store.save_feature(PROJECT_ID, "ft-cam", Coordinates(lng=-74.0, lat=4.5),
                                 {"TIPO": "DOBLE"})
    assert created.success

    detail = store.fetch_feature_detail(created.id)
    assert detail.technical_id == "CAM-00001"
    assert detail.estado == "PENDIENTE"
    assert detail.project_id == PROJECT_ID

    updated = store.save_feature(PROJECT_ID, "ft-cam", Coordinates(lng=-74.2, lat=4.6),
                                 {"TIPO": "SENCILLA"}, existing_id=created.id)
    assert updated.success
    assert updated.id == created.id

    detail = store.fetch_feature_detail(created.id)
    assert detail.attributes == {"TIPO": "SENCILLA"}
    assert detail.coordinates == Coordinates(lng=-74.2, lat=4.6)
    assert detail.technical_id == "CAM-00001"


def test_save_failures_are_results_not_exceptions(store):
    coords = Coordinates(lng=-74.0, lat=4.5)
    assert not store.save_feature(PROJECT_ID, "ft-otr", coords, {}).success
    assert not store.save_feature(PROJECT_ID, "ft-cam", coords, {}, existing_id="nope").success

    bad_position = store.save_feature(PROJECT_ID, "ft-cam", Coordinates(lng=-74, lat=95), {})
    assert not bad_position.success
    assert "latitude" in bad_position.error

    created = store.save_feature(PROJECT_ID, "ft-cam", coords, {"TIPO": "DOBLE"})
    other = store.save_feature("p-sur", "ft-cam", coords, {}, existing_id=created.id)
    assert other.error == "Feature belongs to another project"


def test_unknown_feature_detail_raises(store):
    with pytest.raises(UnknownFeatureError):
        store.fetch_feature_detail("missing")


def test_geojson_layer_filters_by_type(store, postes_schema):
    store.submit_batch(PROJECT_ID, "ft-pos", "u-1", _rows(postes_schema))
    store.save_feature(PROJECT_ID, "ft-cam", Coordinates(lng=-74.0, lat=4.5), {"TIPO": "DOBLE"})

    everything = store.list_features(PROJECT_ID)
    assert everything["type"] == "FeatureCollection"
    assert len(everything["features"]) == 3

    cams = store.list_features(PROJECT_ID, ["ft-cam"])["features"]
    assert len(cams) == 1
    point = cams[0]
    assert point["geometry"] == {"type": "Point", "coordinates": [-74.0, 4.5]}
    assert point["properties"]["capaId"] == "ft-cam"
    assert point["properties"]["icono"] == "Box"


# ── Photos ─────────────────────────────────────────────────────────────

def test_photo_is_shrunk_and_stored_as_jpeg(store, photos_dir):
    created = store.save_feature(PROJECT_ID, "ft-cam", Coordinates(lng=-74.0, lat=4.5),
                                 {"TIPO": "DOBLE"})
    ref = store.upload_photo(created.id, _png())

    assert ref.startswith(f"{PROJECT_ID}/{created.id}/")
    assert ref.endswith(".jpg")
    with Image.open(photos_dir / ref) as img:
        assert img.format == "JPEG"
        assert max(img.size) == 1600

    detail = store.fetch_feature_detail(created.id)
    assert [p["storage_path"] for p in detail.photos] == [ref]


def test_unreadable_photo_rejected(store):
    created = store.save_feature(PROJECT_ID, "ft-cam", Coordinates(lng=-74.0, lat=4.5),
                                 {"TIPO": "DOBLE"})
    with pytest.raises(BackendError, match="Not a readable image"):
        store.upload_photo(created.id, b"definitely not an image")


def test_delete_removes_feature_and_photo_files(store, photos_dir):
    created = store.save_feature(PROJECT_ID, "ft-cam", Coordinates(lng=-74.0, lat=4.5),
                                 {"TIPO": "DOBLE"})
    ref = store.upload_photo(created.id, _png(200, 100))
    assert (photos_dir / ref).exists()

    store.delete_feature(created.id)
    assert not (photos_dir / ref).exists()
    with pytest.raises(UnknownFeatureError):
        store.delete_feature(created.id)


def test_photo_write_failure_is_a_backend_error(store, photos_dir):
    created = store.save_feature(PROJECT_ID, "ft-cam", Coordinates(lng=-74.0, lat=4.5),
                                 {"TIPO": "DOBLE"})
    photos_dir.mkdir(parents=True, exist_ok=True)
    (photos_dir / PROJECT_ID).write_text("not a directory")

    with pytest.raises(BackendError, match="could not be saved"):
        store.upload_photo(created.id, _png(200, 100))
    assert store.fetch_feature_detail(created.id).photos == []


def test_photo_file_removed_when_its_row_is_not_committed(store, photos_dir):
    created = store.save_feature(PROJECT_ID, "ft-cam", Coordinates(lng=-74.0, lat=4.5),
                                 {"TIPO": "DOBLE"})

    def refusing_session():
        session = get_session()

        def commit():
            raise OperationalError("INSERT INTO feature_photos", {}, Exception("disk I/O error"))

        session.commit = commit
        return session

    broken = StoreService(refusing_session, photos_dir=photos_dir)
    with pytest.raises(BackendError) as excinfo:
        broken.upload_photo(created.id, _png(200, 100))

    assert "INSERT" not in str(excinfo.value)
    assert list(photos_dir.rglob("*.jpg")) == []
    assert store.fetch_feature_detail(created.id).photos == []


def test_oversized_image_is_refused(monkeypatch):
    monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 1000)
    with pytest.raises(BackendError, match="too large"):
        photo_service.compress_image(_png(3000, 1000))


# ── Technical ids ──────────────────────────────────────────────────────

def test_technical_id_format():
    assert build_technical_id("pos", 42) == "POS-00042"
    assert parse_technical_id("POS-00042") == ("POS", 42)
    assert parse_technical_id("POS-42") is None
    assert parse_technical_id("") is None


def test_technical_id_collision_reads_as_conflict(store, camaras_schema, monkeypatch):
    content = "latitude,longitude,TIPO,OBSERVACIONES\n4.7,-74.05,DOBLE,\n"
    rows = prepare_import(content, camaras_schema).rows
    store.submit_batch(PROJECT_ID, "ft-cam", "u-1", rows)

    monkeypatch.setattr(TechnicalIdAllocator, "next_for", lambda self, ft: "CAM-00001")
    with pytest.raises(BackendError) as excinfo:
        store.submit_batch(PROJECT_ID, "ft-cam", "u-1", rows)

    assert str(excinfo.value) == CONFLICT_MESSAGE
    assert len(store.list_features(PROJECT_ID)["features"]) == 1

    result = store.save_feature(PROJECT_ID, "ft-cam", Coordinates(lng=-74.0, lat=4.5),
                                {"TIPO": "DOBLE"})
    assert not result.success
    assert result.error == CONFLICT_MESSAGE
