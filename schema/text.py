"""
schema.text - Accent and case folding shared by import, template and store.
"""

from __future__ import annotations

import unicodedata


def strip_diacritics(text: str) -> str:
    """NFD-decompose and drop combining marks: 'Concretó' → 'Concreto'."""
    decomposed = unicodedata.normalize("NFD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def fold_upper(text: str) -> str:
    """Trimmed, accent-free, upper-case form used for stored values."""
    return strip_diacritics(text.strip()).upper()
