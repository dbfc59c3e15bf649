"""Row parsing for catalog import files.

Turns a comma-delimited file or a spreadsheet grid into typed ``ImportRow``
objects. Column names are normalized (lower-case, whitespace to underscores)
and mapped onto the row fields once per file.
"""

import csv
import io
import re
import zipfile
from collections.abc import Callable, Iterable, Iterator, Sequence
from dataclasses import dataclass, fields
from typing import Any

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from unicat.imports.exceptions import ParseError, UnsupportedFormatError

SUPPORTED_EXTENSIONS = (".csv", ".xlsx")

_WHITESPACE = re.compile(r"\s+")


@dataclass(frozen=True)
class ImportRow:
    """One data line of an import file, restricted to the known columns."""

    faculty_name: str = ""
    faculty_code: str = ""
    department_name: str = ""
    department_code: str = ""
    course_name: str = ""
    course_code: str = ""
    duration_months: str = ""
    total_credits: str = ""
    degree_level: str = ""


ROW_FIELDS: tuple[str, ...] = tuple(f.name for f in fields(ImportRow))


def normalize_header(value: Any) -> str:
    """Normalize a header cell: ``" Faculty Name "`` -> ``"faculty_name"``."""
    text = cell_to_str(value).replace('"', "").strip().lower()
    return _WHITESPACE.sub("_", text)


def cell_to_str(value: Any) -> str:
    """Coerce a cell value to its trimmed string form.

    ``None`` becomes an empty string and integral floats lose their
    fractional part, so a spreadsheet ``48.0`` reads as ``"48"``.
    """
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def _is_blank(cells: Sequence[Any]) -> bool:
    return all(cell_to_str(c) == "" for c in cells)


class ParsedRows:
    """Lazy, re-iterable sequence of ``ImportRow``.

    Each iteration re-reads the underlying source, so the sequence can be
    consumed by several pipeline phases.

    Args:
        source: Zero-argument callable returning a fresh iterator of raw
            cell lists, header row first.

    Raises:
        ParseError: If the source has no header row or no data row.
    """

    def __init__(self, source: Callable[[], Iterator[Sequence[Any]]]):
        self._source = source
        self._length: int | None = None

        raw = self._non_blank()
        header = next(raw, None)
        if header is None or next(raw, None) is None:
            raise ParseError("File must have a header row and at least one data row")

        self.headers: list[str] = [normalize_header(h) for h in header]
        # Header-name -> column index; first occurrence of a duplicate column wins
        self._index: dict[str, int] = {}
        for position, name in enumerate(self.headers):
            if name in ROW_FIELDS and name not in self._index:
                self._index[name] = position

    def _non_blank(self) -> Iterator[Sequence[Any]]:
        for cells in self._source():
            if cells and not _is_blank(cells):
                yield cells

    def _to_row(self, cells: Sequence[Any]) -> ImportRow:
        width = len(self.headers)
        padded = list(cells[:width]) + [""] * (width - len(cells))
        values = {name: cell_to_str(padded[i]) for name, i in self._index.items()}
        return ImportRow(**values)

    def __iter__(self) -> Iterator[ImportRow]:
        raw = self._non_blank()
        next(raw, None)  # header
        for cells in raw:
            yield self._to_row(cells)

    def __len__(self) -> int:
        if self._length is None:
            self._length = sum(1 for _ in self)
        return self._length

    def head(self, limit: int = 5) -> list[ImportRow]:
        """Return the first ``limit`` rows."""
        out: list[ImportRow] = []
        for row in self:
            if len(out) >= limit:
                break
            out.append(row)
        return out


def parse_csv(content: bytes | str) -> ParsedRows:
    """Parse comma-delimited text.

    Quoted spans may contain commas, and ``""`` inside a quoted span is a
    literal quote.

    Args:
        content: Raw file bytes (UTF-8, optional BOM) or decoded text.

    Returns:
        ParsedRows: Rows after the header line.

    Raises:
        ParseError: If the content cannot be decoded or has no data rows.
    """
    if isinstance(content, bytes):
        try:
            text = content.decode("utf-8-sig")
        except UnicodeDecodeError as e:
            raise ParseError(f"File is not valid UTF-8 text: {e}") from e
    else:
        text = content.lstrip("\ufeff")

    def source() -> Iterator[list[str]]:
        reader = csv.reader(io.StringIO(text, newline=""), delimiter=",", quotechar='"')
        try:
            yield from reader
        except csv.Error as e:
            raise ParseError(f"Malformed CSV at line {reader.line_num}: {e}") from e

    return ParsedRows(source)


def parse_grid(grid: Iterable[Sequence[Any]]) -> ParsedRows:
    """Parse a row/column grid whose first row is the header.

    Data rows are padded or truncated to the header width and every cell is
    coerced to a string.
    """
    materialized = [list(r) if r is not None else [] for r in grid]
    return ParsedRows(lambda: iter(materialized))


def parse_excel(content: bytes) -> ParsedRows:
    """Parse the first worksheet of an ``.xlsx`` workbook.

    Raises:
        ParseError: If the bytes are not a readable workbook.
    """
    try:
        workbook = load_workbook(io.BytesIO(content), read_only=True, data_only=True)
    except (InvalidFileException, zipfile.BadZipFile, KeyError, OSError) as e:
        raise ParseError(f"Could not read workbook: {e}") from e

    try:
        if not workbook.worksheets:
            raise ParseError("Workbook has no worksheets")
        grid = list(workbook.worksheets[0].iter_rows(values_only=True))
    finally:
        workbook.close()

    return parse_grid(grid)


def file_extension(filename: str) -> str:
    """Return the lower-cased extension including the dot, or ``""``."""
    dot = filename.rfind(".")
    return filename[dot:].lower() if dot >= 0 else ""


def parse_file(filename: str, content: bytes) -> ParsedRows:
    """Parse an uploaded file, choosing the parser from its extension.

    Raises:
        UnsupportedFormatError: For anything other than ``.csv`` / ``.xlsx``.
        ParseError: If the file content cannot be parsed.
    """
    ext = file_extension(filename)
    if ext == ".csv":
        return parse_csv(content)
    if ext == ".xlsx":
        return parse_excel(content)
    if ext == ".xls":
        raise UnsupportedFormatError(
            "Legacy .xls workbooks are not supported; save the sheet as .xlsx or .csv"
        )
    raise UnsupportedFormatError(
        f"Unsupported file type '{ext or filename}'. Expected one of: "
        f"{', '.join(SUPPORTED_EXTENSIONS)}"
    )
