"""
mapview.surface - What the interaction controller needs from a map widget.

A concrete surface wraps whatever draws the map (a web client over a
websocket, a desktop widget, a test fake).  The controller never talks
to the drawing layer any other way.
"""

from __future__ import annotations

import abc

from services.backend import Coordinates


class Marker(abc.ABC):
    """A draggable pin; the surface updates `position` while it is dragged."""

    @property
    @abc.abstractmethod
    def position(self) -> Coordinates:
        ...

    @abc.abstractmethod
    def move_to(self, position: Coordinates) -> None:
        ...

    @abc.abstractmethod
    def remove(self) -> None:
        """Take the marker off the map.  Calling it twice is harmless."""


class MapSurface(abc.ABC):

    @abc.abstractmethod
    def center(self) -> Coordinates:
        """Current centre of the view."""

    @abc.abstractmethod
    def add_marker(self, position: Coordinates) -> Marker:
        """Place a draggable marker and return it."""

    @abc.abstractmethod
    def refresh_points(self) -> None:
        """Reload the feature point layer."""
