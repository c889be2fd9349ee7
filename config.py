"""
fieldinv - Centralised configuration.

All tunables live here.  Every other module imports from config
instead of reading os.environ directly.
"""

from __future__ import annotations
import os
from pathlib import Path


# ── Paths ──────────────────────────────────────────────────────────────
BASE_DIR      = Path(__file__).resolve().parent
CATALOG_PATH  = Path(os.environ.get("FIELDINV_CATALOG",    BASE_DIR / "catalog.json"))
PHOTOS_DIR    = Path(os.environ.get("FIELDINV_PHOTOS_DIR", BASE_DIR / "photos")).resolve()

# ── Database ───────────────────────────────────────────────────────────
DB_URL = os.environ.get("FIELDINV_DB", f"sqlite:///{BASE_DIR / 'fieldinv.sqlite'}")

# ── Server ─────────────────────────────────────────────────────────────
HOST      = os.environ.get("FIELDINV_HOST", "0.0.0.0")
PORT      = int(os.environ.get("FIELDINV_PORT", "5000"))
DEBUG     = os.environ.get("FIELDINV_DEBUG", "0") == "1"
SECRET    = os.environ.get("FIELDINV_SECRET", "fieldinv-dev-key-change-in-prod")
LOG_LEVEL = os.environ.get("FIELDINV_LOG_LEVEL", "INFO").upper()
MAX_UPLOAD_MB = int(os.environ.get("FIELDINV_MAX_UPLOAD_MB", "20"))

# ── Feature lifecycle ──────────────────────────────────────────────────
DEFAULT_ESTADO = "PENDIENTE"
VALID_ESTADOS  = ("PENDIENTE", "VALIDADO", "PROYECTADO", "EJECUTADO")

# ── CSV template ───────────────────────────────────────────────────────
# The instruction row of a generated template carries these coordinates;
# the validator uses the latitude to recognise and drop it.
TEMPLATE_SENTINEL_LAT = "4.612345"
TEMPLATE_SENTINEL_LNG = "-74.081234"
MULTISELECT_SEPARATOR = ";"

# ── Photos ─────────────────────────────────────────────────────────────
PHOTO_MAX_SIDE     = 1600
PHOTO_JPEG_QUALITY = 80

# ── Map ────────────────────────────────────────────────────────────────
DEFAULT_MAP_CENTER = (-74.2973, 4.5709)      # (lng, lat)
DEFAULT_MAP_ZOOM   = 5
