"""Domain models for the spreadsheet import pipeline.

This package contains the data types that flow through the pipeline: field
registries, column configurations, import contexts, parsed rows and the
summary/error records produced by an import session.
"""

from .column_config import ColumnConfig, ColumnType
from .error_record import ErrorRecord
from .field_registry import FieldRegistry, RegistryError, SystemField
from .import_context import DuplicatePolicy, ImportContext
from .import_result import ImportSummary, RowCounts
from .parsed_row import ParsedRow

__all__ = [
    # Registry / configuration models
    "ColumnConfig",
    "ColumnType",
    "DuplicatePolicy",
    "FieldRegistry",
    "ImportContext",
    "RegistryError",
    "SystemField",
    # Processing models
    "ErrorRecord",
    "ImportSummary",
    "ParsedRow",
    "RowCounts",
]
