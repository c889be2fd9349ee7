"""
import_engine - CSV import pipeline.

Public API:
    validate(file_content, schema)        → ValidationResult
    normalize(row, schema)                → ImportRow
    prepare_import(file_content, schema)  → ImportPreview
    BatchSubmissionGate(backend).submit(preview, …) → SubmissionResult
"""

from import_engine.importer import prepare_import                    # noqa: F401
from import_engine.validator import validate                         # noqa: F401
from import_engine.row_processor import normalize                    # noqa: F401
from import_engine.report import (                                   # noqa: F401
    ImportPreview,
    ImportRow,
    ValidationError,
    ValidationResult,
)
from import_engine.gate import (                                     # noqa: F401
    BatchSubmissionGate,
    SubmissionInProgress,
    SubmissionLocks,
    SubmissionRefused,
    SubmissionResult,
    can_submit,
)
