"""
forms.engine - Attribute form derived entirely from a feature type schema.

    form  = AttributeForm(schema)
    state = form.render(existing_attributes, FormMode.READONLY)
    state = form.unlock(state)
    state = form.on_field_change(state, "MATERIAL", "Concreto")
    errors = form.validate(state)          # {} when savable
    payload = form.payload(state)          # attributes for save_feature

States are immutable; every change returns a new FormState.  The
read-only gate is a presentation concern only: authorisation is the
data store's job.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field, replace
from typing import Any, Mapping, Optional

from forms.fields import handler_for
from schema.model import AttributeDefinition, FeatureTypeSchema


class FormMode(str, enum.Enum):
    READONLY = "readonly"
    WRITABLE = "writable"


@dataclass(frozen=True)
class FormState:
    values: Mapping[str, Any] = field(default_factory=dict)
    mode: FormMode = FormMode.WRITABLE

    @property
    def writable(self) -> bool:
        return self.mode is FormMode.WRITABLE

    def get(self, name: str, default: Any = None) -> Any:
        return self.values.get(name, default)


class AttributeForm:

    def __init__(self, schema: FeatureTypeSchema):
        self.schema = schema

    def render(
        self,
        initial_values: Optional[Mapping[str, Any]] = None,
        mode: FormMode = FormMode.WRITABLE,
    ) -> FormState:
        """
        Build the state for a session.  Stored values are matched to
        schema fields case-insensitively and coerced to their kind;
        fields without a stored value start blank.
        """
        stored = {str(k).strip().casefold(): v for k, v in (initial_values or {}).items()}
        values: dict[str, Any] = {}
        for defn in self.schema:
            handler = handler_for(defn.kind)
            if defn.key in stored:
                values[defn.field] = handler.coerce(stored[defn.key], defn)
            else:
                values[defn.field] = handler.initial()
        return FormState(values=values, mode=FormMode(mode))

    def unlock(self, state: FormState) -> FormState:
        return replace(state, mode=FormMode.WRITABLE)

    def lock(self, state: FormState) -> FormState:
        return replace(state, mode=FormMode.READONLY)

    def on_field_change(self, state: FormState, field_name: str, raw_value: Any) -> FormState:
        """No-op in read-only mode or for a field the schema does not define."""
        if not state.writable:
            return state
        defn = self.schema.get(field_name)
        if defn is None:
            return state
        value = handler_for(defn.kind).coerce(raw_value, defn)
        return replace(state, values={**state.values, defn.field: value})

    def validate(self, state: FormState) -> dict[str, str]:
        """field → message for every field that blocks saving."""
        errors: dict[str, str] = {}
        for defn in self.schema:
            msg = self._field_error(defn, state.values.get(defn.field))
            if msg:
                errors[defn.field] = msg
        return errors

    def payload(self, state: FormState) -> dict[str, Any]:
        """Values as sent to the store: unset numbers become None."""
        return {
            defn.field: handler_for(defn.kind).submit_value(
                state.values.get(defn.field, handler_for(defn.kind).initial())
            )
            for defn in self.schema
        }

    def fields(self, state: FormState) -> list[dict]:
        """Widget descriptors, in schema order, for whatever draws the form."""
        readonly = not state.writable
        return [
            handler_for(d.kind).describe(d, state.values.get(d.field), readonly)
            for d in self.schema
        ]

    @staticmethod
    def _field_error(defn: AttributeDefinition, value: Any) -> Optional[str]:
        handler = handler_for(defn.kind)
        if handler.is_empty(value):
            return f"The field {defn.field} is required." if defn.required else None
        return handler.check(value, defn)
