"""Natural-key deduplication and candidate building.

Collapses parsed rows into one candidate per faculty, department and course
code. The first row carrying a code wins; later rows with the same code are
ignored even if their names differ.
"""

import re
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Optional

from unicat.db.models import DegreeLevel
from unicat.imports.parsers import ImportRow

DEFAULT_DURATION_MONTHS = 48
DEFAULT_TOTAL_CREDITS = 120

# Largest value a 32-bit INTEGER column accepts
MAX_INT_CELL = 2**31 - 1

_NON_ALNUM = re.compile(r"[^a-z0-9]+")

# Checked in order, first match wins. "Philosophy" alone is not doctoral:
# only an explicit doctor / PhD / DPhil marker is.
DEGREE_LEVEL_PATTERNS: tuple[tuple[DegreeLevel, re.Pattern], ...] = (
    (
        DegreeLevel.DOCTORAL,
        re.compile(r"\bph\.?\s?d\b|\bd\.?\s?phil\b|\bdoctor(?:ate|al)?\b", re.IGNORECASE),
    ),
    (
        DegreeLevel.POSTGRADUATE,
        re.compile(
            r"\bmaster(?:'?s)?\b|\bm\.?\s?(?:sc|phil|ed|eng|res|ba|a)\b|\bmba\b"
            r"|\bpost\s?-?graduate\b|\bpg\s?(?:dip|diploma|cert)\b",
            re.IGNORECASE,
        ),
    ),
    (
        DegreeLevel.CERTIFICATE,
        re.compile(r"\bcertificate\b|\bdiploma\b|\bcert\.?\b", re.IGNORECASE),
    ),
)


@dataclass(frozen=True)
class EntityCandidate:
    """A faculty or department to be resolved by natural key."""

    natural_key: str
    display_name: str
    parent_key: Optional[str] = None


@dataclass(frozen=True)
class CourseCandidate:
    """A course row ready to be written once its department is resolved."""

    code: str
    name: str
    department_key: str
    duration_months: int = DEFAULT_DURATION_MONTHS
    total_credits: int = DEFAULT_TOTAL_CREDITS
    degree_level: DegreeLevel = DegreeLevel.UNDERGRADUATE


def slugify(text: str) -> str:
    """Lower-case ``text`` and collapse non-alphanumeric runs into single hyphens."""
    return _NON_ALNUM.sub("-", text.lower()).strip("-")


def course_slug(name: str, code: str) -> str:
    return slugify(f"{name}-{code}")


def infer_degree_level(name: str) -> DegreeLevel:
    """Infer a degree level from a course name.

    Doctoral markers are checked first, then postgraduate, then certificate;
    anything else is undergraduate.

    Args:
        name: Course name, e.g. ``"Master of Philosophy (M.Phil) in Physics"``.

    Returns:
        DegreeLevel: The first level whose pattern matches.
    """
    for level, pattern in DEGREE_LEVEL_PATTERNS:
        if pattern.search(name):
            return level
    return DegreeLevel.UNDERGRADUATE


def parse_degree_level(value: str, name: str) -> DegreeLevel:
    """Use an explicit degree level cell when valid, else infer from the name."""
    cleaned = value.strip().lower()
    try:
        return DegreeLevel(cleaned)
    except ValueError:
        return infer_degree_level(name)


def _to_int(value: str, default: int) -> int:
    """Parse a non-negative integer cell, falling back to ``default``.

    Values outside ``0..MAX_INT_CELL`` also fall back.
    """
    try:
        number = int(float(value)) if value.strip() else default
    except (ValueError, OverflowError):
        return default
    return number if 0 <= number <= MAX_INT_CELL else default


def dedupe_faculties(rows: Iterable[ImportRow]) -> list[EntityCandidate]:
    """One candidate per ``faculty_code``, in first-seen order."""
    seen: dict[str, EntityCandidate] = {}
    for row in rows:
        code = row.faculty_code
        if not code or code in seen:
            continue
        seen[code] = EntityCandidate(natural_key=code, display_name=row.faculty_name or code)
    return list(seen.values())


def dedupe_departments(rows: Iterable[ImportRow]) -> list[EntityCandidate]:
    """One candidate per ``department_code``, parented to the first row's faculty."""
    seen: dict[str, EntityCandidate] = {}
    for row in rows:
        code = row.department_code
        if not code or code in seen:
            continue
        seen[code] = EntityCandidate(
            natural_key=code,
            display_name=row.department_name or code,
            parent_key=row.faculty_code or None,
        )
    return list(seen.values())


def build_course_candidates(
    rows: Iterable[ImportRow],
    default_duration_months: int = DEFAULT_DURATION_MONTHS,
    default_total_credits: int = DEFAULT_TOTAL_CREDITS,
) -> list[CourseCandidate]:
    """One candidate per ``course_code``, with typed defaults and degree level."""
    seen: dict[str, CourseCandidate] = {}
    for row in rows:
        code = row.course_code
        if not code or not row.course_name or code in seen:
            continue
        seen[code] = CourseCandidate(
            code=code,
            name=row.course_name,
            department_key=row.department_code,
            duration_months=_to_int(row.duration_months, default_duration_months),
            total_credits=_to_int(row.total_credits, default_total_credits),
            degree_level=parse_degree_level(row.degree_level, row.course_name),
        )
    return list(seen.values())
