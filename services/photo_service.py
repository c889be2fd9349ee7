"""
services.photo_service - Evidence photo processing and storage.

Photos are shrunk to fit PHOTO_MAX_SIDE, re-encoded as JPEG and written
under PHOTOS_DIR/<project>/<feature>/.  The path relative to PHOTOS_DIR
is the storage reference kept in the database.  Every failure leaves
this module as a BackendError carrying a readable message.
"""

from __future__ import annotations

import io
import logging
import time
import uuid
from pathlib import Path

from PIL import Image, ImageOps, UnidentifiedImageError

import config
from services.backend import BackendError

logger = logging.getLogger(__name__)


def compress_image(image_bytes: bytes,
                   max_side: int = config.PHOTO_MAX_SIDE,
                   quality: int = config.PHOTO_JPEG_QUALITY) -> bytes:
    """Return JPEG bytes no larger than max_side on either axis."""
    try:
        img = Image.open(io.BytesIO(image_bytes))
        img.load()
    except Image.DecompressionBombError as exc:
        raise BackendError("Image is too large to process") from exc
    except (UnidentifiedImageError, OSError) as exc:
        raise BackendError(f"Not a readable image: {exc}") from exc

    try:
        img = ImageOps.exif_transpose(img)
        if img.mode not in ("RGB", "L"):
            img = img.convert("RGB")
        img.thumbnail((max_side, max_side))

        out = io.BytesIO()
        img.save(out, format="JPEG", quality=quality, optimize=True)
    except (OSError, ValueError) as exc:
        raise BackendError(f"Image could not be converted: {exc}") from exc
    return out.getvalue()


def store_photo(project_id: str, feature_id: str, image_bytes: bytes,
                photos_dir: Path | None = None) -> str:
    """Compress and write the photo; returns the relative storage path."""
    root = Path(photos_dir or config.PHOTOS_DIR)
    data = compress_image(image_bytes)

    rel = Path(project_id) / feature_id / f"{int(time.time() * 1000)}_{uuid.uuid4().hex[:8]}.jpg"
    dest = root / rel
    try:
        dest.parent.mkdir(parents=True, exist_ok=True)
        dest.write_bytes(data)
    except OSError as exc:
        logger.error(f"Writing photo {dest} failed: {exc}")
        if dest.is_file():
            remove_photo(rel.as_posix(), photos_dir=root)
        raise BackendError("Photo could not be saved to storage") from exc
    return rel.as_posix()


def remove_photo(storage_path: str, photos_dir: Path | None = None) -> None:
    """Delete a stored photo file; a file that is already gone is fine."""
    root = Path(photos_dir or config.PHOTOS_DIR)
    try:
        (root / storage_path).unlink(missing_ok=True)
    except OSError as exc:
        logger.warning(f"Could not remove photo {storage_path}: {exc}")
