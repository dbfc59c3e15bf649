"""Header validation for catalog import files."""

from collections.abc import Iterable

from unicat.imports.exceptions import MissingColumnsError

REQUIRED_COLUMNS: tuple[str, ...] = (
    "faculty_name",
    "faculty_code",
    "department_name",
    "department_code",
    "course_name",
    "course_code",
)

# Optional columns fall back to defaults when absent
OPTIONAL_COLUMNS: tuple[str, ...] = (
    "duration_months",
    "total_credits",
    "degree_level",
)


def missing_columns(headers: Iterable[str]) -> list[str]:
    """Return every required column absent from ``headers``, in declared order."""
    present = set(headers)
    return [c for c in REQUIRED_COLUMNS if c not in present]


def validate_columns(headers: Iterable[str]) -> None:
    """Check that all required columns are present.

    Args:
        headers: Normalized header names.

    Raises:
        MissingColumnsError: Naming all missing columns at once.
    """
    missing = missing_columns(headers)
    if missing:
        raise MissingColumnsError(missing)
