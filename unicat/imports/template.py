"""Downloadable example file for catalog imports."""

import csv
import io

from unicat.imports.validation import OPTIONAL_COLUMNS, REQUIRED_COLUMNS

TEMPLATE_FILENAME = "catalog_import_template.csv"

TEMPLATE_HEADERS: tuple[str, ...] = REQUIRED_COLUMNS + OPTIONAL_COLUMNS

SAMPLE_ROWS: tuple[tuple[str, ...], ...] = (
    ("Faculty of Engineering", "ENG", "Computer Science", "CS",
     "Bachelor of Computer Science", "BCS001", "48", "120", "undergraduate"),
    ("Faculty of Engineering", "ENG", "Computer Science", "CS",
     "Master of Computer Science", "MCS001", "24", "60", "postgraduate"),
    ("Faculty of Engineering", "ENG", "Electrical Engineering", "EE",
     "Bachelor of Electrical Engineering", "BEE001", "48", "120", ""),
    ("Faculty of Science", "SCI", "Physics", "PHY",
     "Doctor of Philosophy in Physics", "PHDPHY001", "36", "90", ""),
    ("Faculty of Science", "SCI", "Mathematics", "MATH",
     "Certificate in Applied Statistics", "CAS001", "6", "30", ""),
)


def build_template_csv() -> str:
    """Return the template as CSV text: header row plus sample rows."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(TEMPLATE_HEADERS)
    writer.writerows(SAMPLE_ROWS)
    return buffer.getvalue()
