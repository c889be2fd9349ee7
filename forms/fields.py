"""
forms.fields - One handler per attribute kind.

Each handler knows the kind's blank value, how raw widget input becomes
a typed value, what counts as empty, which non-empty values are wrong,
and how the field is described to a renderer.  HANDLERS covers every
FieldKind; handler_for() is the only lookup the form engine uses.
"""

from __future__ import annotations

import math
from datetime import date, datetime
from typing import Any, Iterable, Optional

import config
from schema.model import AttributeDefinition, FieldKind
from schema.text import fold_upper

TRUE_WORDS  = frozenset({"true", "si", "sí", "yes", "1"})
FALSE_WORDS = frozenset({"false", "no", "0"})


class FieldHandler:
    kind: FieldKind = FieldKind.TEXT
    widget = "text"

    def initial(self) -> Any:
        return ""

    def coerce(self, raw: Any, defn: AttributeDefinition) -> Any:
        if raw is None:
            return ""
        return str(raw)

    def is_empty(self, value: Any) -> bool:
        return value is None or (isinstance(value, str) and not value.strip())

    def check(self, value: Any, defn: AttributeDefinition) -> Optional[str]:
        """Error for a non-empty value, or None."""
        return None

    def submit_value(self, value: Any) -> Any:
        return value

    def describe(self, defn: AttributeDefinition, value: Any, readonly: bool) -> dict:
        return {
            "field": defn.field,
            "label": defn.field,
            "kind": defn.kind.value,
            "widget": self.widget,
            "required": defn.required,
            "options": list(defn.options),
            "value": value,
            "readonly": readonly,
        }


class TextField(FieldHandler):
    pass


class NumberField(FieldHandler):
    kind = FieldKind.NUMBER
    widget = "number"

    def coerce(self, raw, defn):
        if raw is None or isinstance(raw, bool):
            return ""
        if isinstance(raw, int):
            return raw
        if isinstance(raw, float):
            return int(raw) if math.isfinite(raw) else str(raw)
        text = str(raw).strip()
        if not text:
            return ""
        try:
            return int(text)
        except ValueError:
            pass
        try:
            as_float = float(text)
        except ValueError:
            return text
        return int(as_float) if math.isfinite(as_float) else text

    def is_empty(self, value):
        return value is None or value == ""

    def check(self, value, defn):
        if isinstance(value, bool) or not isinstance(value, int):
            return "Must be a valid whole number."
        return None

    def submit_value(self, value):
        return None if value == "" else value


class DecimalField(NumberField):
    kind = FieldKind.DECIMAL

    def coerce(self, raw, defn):
        if raw is None or isinstance(raw, bool):
            return ""
        if isinstance(raw, (int, float)):
            return float(raw)
        text = str(raw).strip()
        if not text:
            return ""
        try:
            return float(text)
        except ValueError:
            return text

    def check(self, value, defn):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return "Must be a valid number."
        if not math.isfinite(value):
            return "Must be a valid number."
        return None

    def describe(self, defn, value, readonly):
        d = super().describe(defn, value, readonly)
        d["step"] = "any"
        return d


class BooleanField(FieldHandler):
    """Ternary: True, False or None (unset).  The two toggles exclude each other."""
    kind = FieldKind.BOOLEAN
    widget = "toggle"

    def initial(self):
        return None

    def coerce(self, raw, defn):
        if raw is None or isinstance(raw, bool):
            return raw
        word = str(raw).strip().lower()
        if word in TRUE_WORDS:
            return True
        if word in FALSE_WORDS:
            return False
        return None

    def is_empty(self, value):
        return value is None

    def describe(self, defn, value, readonly):
        d = super().describe(defn, value, readonly)
        d["choices"] = [
            {"value": True,  "label": "SÍ", "active": value is True},
            {"value": False, "label": "NO", "active": value is False},
        ]
        return d


class DateField(FieldHandler):
    kind = FieldKind.DATE
    widget = "date"

    def coerce(self, raw, defn):
        if isinstance(raw, datetime):
            return raw.date().isoformat()
        if isinstance(raw, date):
            return raw.isoformat()
        return super().coerce(raw, defn).strip()

    def check(self, value, defn):
        try:
            date.fromisoformat(value)
        except (TypeError, ValueError):
            return "Must be a date (YYYY-MM-DD)."
        return None


class SelectField(FieldHandler):
    kind = FieldKind.SELECT
    widget = "select"

    def coerce(self, raw, defn):
        value = super().coerce(raw, defn)
        return _match_option(value, defn.options) or value

    def check(self, value, defn):
        if value not in defn.options:
            return f"{value!r} is not one of the allowed options."
        return None


class MultiSelectField(FieldHandler):
    """A set of options, kept as a list in option order; never None."""
    kind = FieldKind.MULTISELECT
    widget = "checkboxes"

    def initial(self):
        return []

    def coerce(self, raw, defn):
        if raw is None or raw == "":
            return []
        if isinstance(raw, str):
            items: Iterable = raw.split(config.MULTISELECT_SEPARATOR)
        else:
            items = raw
        picked: list[str] = []
        for item in items:
            text = str(item).strip()
            if not text:
                continue
            text = _match_option(text, defn.options) or text
            if text not in picked:
                picked.append(text)
        order = {opt: i for i, opt in enumerate(defn.options)}
        return sorted(picked, key=lambda v: order.get(v, len(order)))

    def is_empty(self, value):
        return not value

    def check(self, value, defn):
        bad = [v for v in value if v not in defn.options]
        if bad:
            return f"Not allowed: {', '.join(bad)}."
        return None

    def submit_value(self, value):
        return list(value)


def _match_option(value: str, options: Iterable[str]) -> Optional[str]:
    """The option equal to `value` ignoring case and accents, if any."""
    if not value:
        return None
    folded = fold_upper(value)
    for opt in options:
        if fold_upper(opt) == folded:
            return opt
    return None


HANDLERS: dict[FieldKind, FieldHandler] = {
    FieldKind.TEXT:        TextField(),
    FieldKind.NUMBER:      NumberField(),
    FieldKind.DECIMAL:     DecimalField(),
    FieldKind.BOOLEAN:     BooleanField(),
    FieldKind.DATE:        DateField(),
    FieldKind.SELECT:      SelectField(),
    FieldKind.MULTISELECT: MultiSelectField(),
}

_missing = set(FieldKind) - set(HANDLERS)
if _missing:
    raise RuntimeError(f"No form handler for kinds: {sorted(k.value for k in _missing)}")


def handler_for(kind: FieldKind) -> FieldHandler:
    return HANDLERS[kind]
