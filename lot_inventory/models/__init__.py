"""Domain models for the lot inventory importer."""

from .error_record import ErrorRecord
from .import_result import ImportResult, ImportStatus, ImportWarning, UpsertCounts
from .lot_record import IMPORT_FIELDS, LotRecord

__all__ = [
    # Lot models
    "IMPORT_FIELDS",
    "LotRecord",
    # Result models
    "ImportResult",
    "ImportStatus",
    "ImportWarning",
    "UpsertCounts",
    # Error log
    "ErrorRecord",
]
