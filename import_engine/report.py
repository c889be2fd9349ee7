"""
import_engine.report - Structured results of validating and preparing an import.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional


@dataclass(frozen=True)
class ValidationError:
    line: int            # 1-based file line; 0 for structural errors
    message: str

    def to_dict(self) -> dict:
        return {"line": self.line, "message": self.message}


@dataclass
class ValidationResult:
    """Output of the validator: errors plus the raw rows that passed."""
    errors: list[ValidationError] = field(default_factory=list)
    rows: list[dict[str, str]] = field(default_factory=list)
    headers: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    def add_error(self, line: int, message: str):
        self.errors.append(ValidationError(line, message))

    def to_dict(self) -> dict:
        return {
            "errors": [e.to_dict() for e in self.errors],
            "rows": self.rows,
        }


@dataclass(frozen=True)
class ImportRow:
    latitude: float
    longitude: float
    estado: str
    attributes: dict[str, Optional[str]]

    def to_dict(self) -> dict:
        return {
            "latitude": self.latitude,
            "longitude": self.longitude,
            "estado": self.estado,
            "attributes": dict(self.attributes),
        }


@dataclass
class ImportPreview:
    """Validated + normalised batch, ready for the submission gate."""
    errors: list[ValidationError] = field(default_factory=list)
    rows: list[ImportRow] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "errors": [e.to_dict() for e in self.errors],
            "rows": [r.to_dict() for r in self.rows],
            "total_rows": len(self.rows),
        }
