"""Pydantic schemas for catalog imports."""

import enum
from typing import Optional

from pydantic import BaseModel, Field


class ImportState(str, enum.Enum):
    """Phases of an import run, in execution order."""

    PARSING = "parsing"
    VALIDATING = "validating"
    RESOLVING_FACULTIES = "resolving_faculties"
    RESOLVING_DEPARTMENTS = "resolving_departments"
    WRITING_COURSES = "writing_courses"
    SYNCING_NAVIGATION = "syncing_navigation"
    DONE = "done"


class NavOutcome(str, enum.Enum):
    """What happened to one faculty or department navigation entry."""

    CREATED = "created"
    EXISTS = "exists"
    SKIPPED_MISSING_PARENT = "skipped_missing_parent"
    SKIPPED_NO_ANCHOR = "skipped_no_anchor"
    FAILED = "failed"


class EntityResult(BaseModel):
    """Per-entity-type tally."""

    success: int = 0
    failed: int = 0
    errors: list[str] = Field(default_factory=list)


class NavigationSummary(BaseModel):
    """Counts of navigation outcomes for a run. Informational only."""

    anchor_found: bool = False
    created: int = 0
    existing: int = 0
    skipped_missing_parent: int = 0
    failed: int = 0


class ImportProgress(BaseModel):
    """Coarse progress snapshot handed to progress callbacks."""

    state: ImportState
    percent: int = Field(0, ge=0, le=100)
    processed: int = 0
    total: int = 0
    eta_seconds: Optional[float] = None
    message: str = ""


class CatalogImportResult(BaseModel):
    """Result of a full import run."""

    faculties: EntityResult = Field(default_factory=EntityResult)
    departments: EntityResult = Field(default_factory=EntityResult)
    courses: EntityResult = Field(default_factory=EntityResult)
    navigation: NavigationSummary = Field(default_factory=NavigationSummary)
    state: ImportState = ImportState.PARSING
    elapsed_seconds: float = 0.0

    @property
    def total_failed(self) -> int:
        """Failures across faculties, departments and courses. Navigation is excluded."""
        return self.faculties.failed + self.departments.failed + self.courses.failed


class ImportPreview(BaseModel):
    """Parsed and validated view of a file, without any store writes."""

    headers: list[str]
    row_count: int
    sample_rows: list[dict[str, str]]
    faculty_count: int
    department_count: int
    course_count: int
