"""
mapview - Map interaction state machine (placement + editing of features).

Public API:
    MapInteractionController(surface, async_backend, project_id)
    MapSurface / Marker            → what a map widget must provide
    InteractionMode, MapInteractionState
"""

from mapview.controller import MapInteractionController      # noqa: F401
from mapview.state import InteractionMode, MapInteractionState   # noqa: F401
from mapview.surface import MapSurface, Marker               # noqa: F401
