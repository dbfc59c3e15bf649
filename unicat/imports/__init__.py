"""Imports module for bulk catalog (Faculty -> Department -> Course) uploads."""

from unicat.imports.router import router
from unicat.imports.parsers import (
    ImportRow,
    ParsedRows,
    parse_csv,
    parse_excel,
    parse_file,
    parse_grid,
)
from unicat.imports.validation import (
    OPTIONAL_COLUMNS,
    REQUIRED_COLUMNS,
    validate_columns,
)
from unicat.imports.exceptions import (
    CatalogImportError,
    MissingColumnsError,
    ParseError,
    StoreError,
    UnsupportedFormatError,
)
from unicat.imports.schemas import (
    CatalogImportResult,
    EntityResult,
    ImportPreview,
    ImportProgress,
    ImportState,
    NavigationSummary,
    NavOutcome,
)
from unicat.imports.service import CatalogImportService, get_catalog_import_service

__all__ = [
    "router",
    # Parsing
    "ImportRow",
    "ParsedRows",
    "parse_csv",
    "parse_excel",
    "parse_file",
    "parse_grid",
    "OPTIONAL_COLUMNS",
    "REQUIRED_COLUMNS",
    "validate_columns",
    # Errors
    "CatalogImportError",
    "MissingColumnsError",
    "ParseError",
    "StoreError",
    "UnsupportedFormatError",
    # Results
    "CatalogImportResult",
    "EntityResult",
    "ImportPreview",
    "ImportProgress",
    "ImportState",
    "NavigationSummary",
    "NavOutcome",
    # Service
    "CatalogImportService",
    "get_catalog_import_service",
]
