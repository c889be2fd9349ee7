"""
mapview.state - Modes of the map interaction state machine.

    IDLE ──add──▶ SELECTING_TYPE ──pick──▶ CONFIRMING_POSITION ──confirm──▶ EDITING(None)
      ▲                │ cancel                 │ cancel                        │
      └────────────────┴────────────────────────┘                               │
      ▲                                                                         │
      └──────────── save ok / delete ok / cancel / close ◀── EDITING(id) ◀─click─ IDLE
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Optional

from services.backend import Coordinates


class InteractionMode(str, enum.Enum):
    IDLE                = "idle"
    SELECTING_TYPE      = "selecting_type"
    CONFIRMING_POSITION = "confirming_position"
    EDITING             = "editing"


@dataclass(frozen=True)
class MapInteractionState:
    mode: InteractionMode = InteractionMode.IDLE
    feature_type_id: Optional[str] = None
    existing_id: Optional[str] = None        # only meaningful while EDITING
    coordinates: Optional[Coordinates] = None

    @property
    def is_new_feature(self) -> bool:
        return self.mode is InteractionMode.EDITING and self.existing_id is None

    def to_dict(self) -> dict:
        return {
            "mode": self.mode.value,
            "feature_type_id": self.feature_type_id,
            "existing_id": self.existing_id,
            "coordinates": self.coordinates.to_dict() if self.coordinates else None,
        }


IDLE = MapInteractionState()
