"""
forms - Dynamic attribute form engine.

Public API:
    AttributeForm(schema).render / on_field_change / validate / payload
    FormState, FormMode
"""

from forms.engine import AttributeForm, FormMode, FormState     # noqa: F401
from forms.fields import handler_for                            # noqa: F401
