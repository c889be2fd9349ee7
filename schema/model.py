"""
schema.model - Attribute definitions and the per-feature-type schema.

A schema is the ordered list of attribute definitions bound to one
feature type.  It drives both the CSV validator and the attribute form;
nothing in this package mutates one after it has been built.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Iterator, Optional


class FieldKind(str, enum.Enum):
    TEXT        = "text"
    NUMBER      = "number"
    DECIMAL     = "decimal"
    BOOLEAN     = "boolean"
    DATE        = "date"
    SELECT      = "select"
    MULTISELECT = "multiselect"

    @classmethod
    def parse(cls, raw: str | None) -> "FieldKind":
        """Map a persisted kind string to a FieldKind; unknown kinds are TEXT."""
        try:
            return cls((raw or "").strip().lower())
        except ValueError:
            return cls.TEXT

    @property
    def has_options(self) -> bool:
        return self in (FieldKind.SELECT, FieldKind.MULTISELECT)


# The technical identifier is always system-generated.
TECHNICAL_ID_FIELD = "id_tecnico"


@dataclass(frozen=True)
class AttributeDefinition:
    field: str
    kind: FieldKind = FieldKind.TEXT
    required: bool = False
    options: tuple[str, ...] = ()
    order: int = 0

    def __post_init__(self):
        if not self.field or not self.field.strip():
            raise ValueError("attribute definition needs a field name")
        if not self.kind.has_options and self.options:
            object.__setattr__(self, "options", ())

    @property
    def key(self) -> str:
        """Case-folded field name, used for every uniqueness/lookup test."""
        return self.field.strip().casefold()

    @property
    def is_technical_id(self) -> bool:
        return self.key == TECHNICAL_ID_FIELD

    @classmethod
    def from_dict(cls, d: dict) -> "AttributeDefinition":
        kind = FieldKind.parse(d.get("kind") or d.get("tipo"))
        opts = d.get("options") if "options" in d else d.get("opciones")
        options: tuple[str, ...] = ()
        if kind.has_options and opts:
            options = tuple(
                str(o.get("value") or o.get("label")) if isinstance(o, dict) else str(o)
                for o in opts
            )
        return cls(
            field=str(d.get("field") or d.get("campo") or "").strip(),
            kind=kind,
            required=bool(d.get("required", d.get("requerido", False))),
            options=options,
            order=int(d.get("order", d.get("orden", 0)) or 0),
        )

    def to_dict(self) -> dict:
        return {
            "field": self.field,
            "kind": self.kind.value,
            "required": self.required,
            "options": list(self.options),
            "order": self.order,
        }


@dataclass(frozen=True)
class FeatureTypeSchema:
    feature_type_id: str
    definitions: tuple[AttributeDefinition, ...] = field(default_factory=tuple)

    def __iter__(self) -> Iterator[AttributeDefinition]:
        return iter(self.definitions)

    def __len__(self) -> int:
        return len(self.definitions)

    def __bool__(self) -> bool:
        return bool(self.definitions)

    @property
    def fields(self) -> list[str]:
        return [d.field for d in self.definitions]

    def get(self, name: str) -> Optional[AttributeDefinition]:
        """Case-insensitive lookup by field name."""
        wanted = name.strip().casefold()
        for d in self.definitions:
            if d.key == wanted:
                return d
        return None

    def to_list(self) -> list[dict]:
        return [d.to_dict() for d in self.definitions]
