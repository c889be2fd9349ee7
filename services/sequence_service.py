"""
services.sequence_service - Technical identifier allocation.

Format:  <TYPE CODE>-NNNNN   e.g. POS-00042
Isolated so both single-feature saves and batch imports share the
same logic.
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from db.models import Feature, FeatureType

SEQUENCE_DIGITS = 5
SEQUENCE_MAX = 10 ** SEQUENCE_DIGITS - 1


def build_technical_id(code: str, seq: int) -> str:
    return f"{code.upper()}-{seq:0{SEQUENCE_DIGITS}d}"


def parse_technical_id(tid: str) -> Optional[tuple[str, int]]:
    """'POS-00042' → ('POS', 42); None on any format violation."""
    code, sep, digits = (tid or "").strip().upper().rpartition("-")
    if not sep or not code or len(digits) != SEQUENCE_DIGITS or not digits.isdigit():
        return None
    return code, int(digits)


class TechnicalIdAllocator:
    """
    Tracks allocation within one transaction so rows of the same batch
    never collide before they are flushed.
    """

    def __init__(self, session: Session):
        self._session = session
        self._last: dict[str, int] = {}     # feature type id → last assigned

    def next_for(self, feature_type: FeatureType) -> str:
        if feature_type.id not in self._last:
            db_max = self._session.query(func.max(Feature.technical_id)).filter(
                Feature.feature_type_id == feature_type.id,
            ).scalar()
            parsed = parse_technical_id(db_max) if db_max else None
            self._last[feature_type.id] = parsed[1] if parsed else 0

        self._last[feature_type.id] += 1
        nxt = self._last[feature_type.id]
        if nxt > SEQUENCE_MAX:
            raise ValueError(f"Technical id overflow for feature type {feature_type.code}")
        return build_technical_id(feature_type.code, nxt)
