"""
api - REST API layer.

All route modules register on a single Flask Blueprint
with url_prefix /api/v1.
"""

from flask import Blueprint, current_app

api_bp = Blueprint("api", __name__, url_prefix="/api/v1")


def get_store():
    """The StoreService the running app was created with."""
    return current_app.extensions["fieldinv.store"]


def get_submission_locks():
    """Import locks shared by every request of the running app."""
    return current_app.extensions["fieldinv.submission_locks"]


# Import route modules so their @api_bp decorators execute
from api import routes_schema     # noqa: F401, E402
from api import routes_import     # noqa: F401, E402
from api import routes_features   # noqa: F401, E402
from api import errors            # noqa: F401, E402
