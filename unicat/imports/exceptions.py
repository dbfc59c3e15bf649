"""Errors raised by the catalog import pipeline."""


class CatalogImportError(Exception):
    """Base class for import errors."""


class ParseError(CatalogImportError):
    """The uploaded file could not be turned into rows."""


class UnsupportedFormatError(ParseError):
    """The file extension is not one of the supported tabular formats."""


class MissingColumnsError(CatalogImportError):
    """One or more required columns are absent from the header row.

    Args:
        columns: Every missing column, in declared order.
    """

    def __init__(self, columns: list[str]):
        self.columns = list(columns)
        super().__init__(f"Missing required columns: {', '.join(self.columns)}")


class StoreError(CatalogImportError):
    """A store call failed. The message carries the underlying error text."""
