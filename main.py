#!/usr/bin/env python3
"""
fieldinv - Field Infrastructure Inventory service
=================================================

Single-command run:  python main.py

See config.py for all environment-variable tunables.
"""

from __future__ import annotations

import logging
from pathlib import Path

from flask import Flask, jsonify

import config
from db import init_db, get_session, FeatureType
from api import api_bp
from schema.loader import load_catalog
from import_engine import SubmissionLocks
from services.store_service import StoreService

logger = logging.getLogger(__name__)


def create_app(db_url: str | None = None,
               catalog_path: str | Path | None = None,
               photos_dir: str | Path | None = None) -> Flask:
    """Flask application factory."""

    logging.basicConfig(
        level=getattr(logging, config.LOG_LEVEL, logging.INFO),
        format="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
    )

    app = Flask(__name__)
    app.secret_key = config.SECRET
    app.config["MAX_CONTENT_LENGTH"] = config.MAX_UPLOAD_MB * 1024 * 1024
    app.json.ensure_ascii = False

    # ── Initialise database ─────────────────────────────────────────
    db_url = db_url or config.DB_URL
    init_db(db_url)
    print(f"  Database: {db_url}")

    _seed_if_empty(Path(catalog_path or config.CATALOG_PATH))

    # ── Data store + blueprints ─────────────────────────────────────
    photos_root = Path(photos_dir or config.PHOTOS_DIR)
    app.extensions["fieldinv.store"] = StoreService(get_session, photos_dir=photos_root)
    app.extensions["fieldinv.submission_locks"] = SubmissionLocks()
    app.register_blueprint(api_bp)

    @app.route("/health")
    def health():
        return jsonify({"status": "ok"})

    return app


def _seed_if_empty(catalog_path: Path):
    """Load the feature type catalog when the database has none."""
    session = get_session()
    try:
        count = session.query(FeatureType).count()
        if count > 0:
            print(f"  Catalog: {count} feature types in database.")
            return

        if not catalog_path.exists():
            print(f"  No catalog at {catalog_path} - starting empty.")
            return

        stats = load_catalog(session, catalog_path)
        session.commit()
        print(f"  Catalog: {stats['feature_types']} feature types, "
              f"{stats['attributes']} attributes, {stats['projects']} projects loaded")
    except Exception:
        session.rollback()
        logger.exception(f"Catalog seed from {catalog_path} failed")
        raise
    finally:
        session.close()


def main():
    print("=" * 56)
    print("  fieldinv - Field Infrastructure Inventory")
    print("=" * 56)

    app = create_app()

    print(f"\n  http://{config.HOST}:{config.PORT}/api/v1")
    print("=" * 56)

    app.run(host=config.HOST, port=config.PORT, debug=config.DEBUG)


if __name__ == "__main__":
    main()
