"""Catalog import orchestration.

Runs the import as an ordered pipeline of stages:

    parsing -> validating -> resolving_faculties -> resolving_departments
    -> writing_courses -> syncing_navigation -> done

Each stage declares which context fields it needs and which it fills in,
and the service refuses to run a stage whose inputs are missing. Parsing and
validation errors abort the run before any write; later stages record their
failures in the result and the run moves on.
"""

import logging
import time
from collections.abc import Callable, Iterable, Sequence
from dataclasses import asdict, dataclass, field
from typing import Any, Optional

from sqlalchemy.orm import Session

from unicat.config import Settings, get_settings
from unicat.imports.candidates import (
    CourseCandidate,
    EntityCandidate,
    build_course_candidates,
    dedupe_departments,
    dedupe_faculties,
)
from unicat.imports.course_writer import write_courses
from unicat.imports.navigation import NavigationSynchronizer
from unicat.imports.parsers import ParsedRows, parse_file, parse_grid
from unicat.imports.repository import CatalogStore, get_catalog_store
from unicat.imports.resolver import DEPARTMENT_LEVEL, FACULTY_LEVEL, resolve_level
from unicat.imports.schemas import (
    CatalogImportResult,
    ImportPreview,
    ImportProgress,
    ImportState,
)
from unicat.imports.validation import validate_columns

logger = logging.getLogger(__name__)

ProgressListener = Callable[[ImportProgress], None]

# Share of the progress bar owned by each stage: (start %, end %)
STAGE_PROGRESS: dict[ImportState, tuple[int, int]] = {
    ImportState.PARSING: (0, 0),
    ImportState.VALIDATING: (0, 0),
    ImportState.RESOLVING_FACULTIES: (0, 30),
    ImportState.RESOLVING_DEPARTMENTS: (30, 60),
    ImportState.WRITING_COURSES: (60, 95),
    ImportState.SYNCING_NAVIGATION: (95, 100),
    ImportState.DONE: (100, 100),
}

PREVIEW_ROWS = 5


@dataclass
class ImportContext:
    """State carried between stages of one run."""

    load_rows: Callable[[], ParsedRows]
    result: CatalogImportResult = field(default_factory=CatalogImportResult)
    rows: Optional[ParsedRows] = None
    validated: Optional[bool] = None
    faculties: Optional[list[EntityCandidate]] = None
    faculty_ids: Optional[dict[str, str]] = None
    departments: Optional[list[EntityCandidate]] = None
    department_ids: Optional[dict[str, str]] = None
    courses: Optional[list[CourseCandidate]] = None


@dataclass(frozen=True)
class Stage:
    """One step of the pipeline."""

    state: ImportState
    run: Callable[[ImportContext], None]
    requires: tuple[str, ...] = ()
    produces: tuple[str, ...] = ()


class CatalogImportService:
    """Imports a Faculty -> Department -> Course catalog file.

    Args:
        store: Keyed-record store.
        settings: Application settings; defaults to ``get_settings()``.
        clock: Monotonic time source, replaceable in tests.
    """

    def __init__(
        self,
        store: CatalogStore,
        settings: Optional[Settings] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.store = store
        self.settings = settings or get_settings()
        self.clock = clock
        self._listener: Optional[ProgressListener] = None
        self._started = 0.0

    # ------------------------------------------------------------------
    # Public entry points
    # ------------------------------------------------------------------

    def run(
        self,
        filename: str,
        content: bytes,
        on_progress: Optional[ProgressListener] = None,
    ) -> CatalogImportResult:
        """Import an uploaded ``.csv`` or ``.xlsx`` file.

        Args:
            filename: Original file name; its extension selects the parser.
            content: Raw file bytes.
            on_progress: Optional callback receiving ``ImportProgress`` snapshots.

        Returns:
            CatalogImportResult: Per-entity tallies, navigation summary, elapsed time.

        Raises:
            ParseError: If the file cannot be parsed.
            MissingColumnsError: If required columns are absent.
        """
        return self._execute(lambda: parse_file(filename, content), on_progress)

    def run_grid(
        self,
        grid: Iterable[Sequence[Any]],
        on_progress: Optional[ProgressListener] = None,
    ) -> CatalogImportResult:
        """Import an already-tokenized grid of cells, header row first."""
        return self._execute(lambda: parse_grid(grid), on_progress)

    def preview(self, filename: str, content: bytes) -> ImportPreview:
        """Parse and validate a file without writing anything.

        Raises:
            ParseError: If the file cannot be parsed.
            MissingColumnsError: If required columns are absent.
        """
        rows = parse_file(filename, content)
        validate_columns(rows.headers)
        return ImportPreview(
            headers=rows.headers,
            row_count=len(rows),
            sample_rows=[asdict(r) for r in rows.head(PREVIEW_ROWS)],
            faculty_count=len(dedupe_faculties(rows)),
            department_count=len(dedupe_departments(rows)),
            course_count=len(build_course_candidates(rows)),
        )

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    def stages(self) -> list[Stage]:
        """The pipeline, in execution order."""
        return [
            Stage(ImportState.PARSING, self._parse, produces=("rows",)),
            Stage(ImportState.VALIDATING, self._validate, ("rows",), ("validated",)),
            Stage(
                ImportState.RESOLVING_FACULTIES,
                self._resolve_faculties,
                ("rows", "validated"),
                ("faculties", "faculty_ids"),
            ),
            Stage(
                ImportState.RESOLVING_DEPARTMENTS,
                self._resolve_departments,
                ("rows", "faculty_ids"),
                ("departments", "department_ids"),
            ),
            Stage(
                ImportState.WRITING_COURSES,
                self._write_courses,
                ("rows", "department_ids"),
                ("courses",),
            ),
            Stage(
                ImportState.SYNCING_NAVIGATION,
                self._sync_navigation,
                ("faculties", "faculty_ids", "departments", "department_ids"),
            ),
        ]

    def _execute(
        self,
        load_rows: Callable[[], ParsedRows],
        on_progress: Optional[ProgressListener],
    ) -> CatalogImportResult:
        self._listener = on_progress
        self._started = self.clock()
        ctx = ImportContext(load_rows=load_rows)

        try:
            for stage in self.stages():
                missing = [name for name in stage.requires if getattr(ctx, name) is None]
                if missing:
                    raise RuntimeError(
                        f"Stage {stage.state.value} is missing inputs: {', '.join(missing)}"
                    )
                ctx.result.state = stage.state
                self._report(stage.state, message=f"{stage.state.value.replace('_', ' ')}...")
                stage.run(ctx)
                unfilled = [name for name in stage.produces if getattr(ctx, name) is None]
                if unfilled:
                    raise RuntimeError(
                        f"Stage {stage.state.value} did not produce: {', '.join(unfilled)}"
                    )
        finally:
            ctx.result.elapsed_seconds = round(self.clock() - self._started, 3)

        ctx.result.state = ImportState.DONE
        result = ctx.result
        self._report(ImportState.DONE, message="Complete")
        logger.info(
            "Catalog import done in %.2fs: faculties %d/%d, departments %d/%d, courses %d/%d "
            "(created/failed)",
            result.elapsed_seconds,
            result.faculties.success,
            result.faculties.failed,
            result.departments.success,
            result.departments.failed,
            result.courses.success,
            result.courses.failed,
        )
        return result

    def _parse(self, ctx: ImportContext) -> None:
        rows = ctx.load_rows()
        # Full pass so malformed content surfaces while still parsing
        logger.debug("Parsed %d data rows", len(rows))
        ctx.rows = rows

    def _validate(self, ctx: ImportContext) -> None:
        validate_columns(ctx.rows.headers)
        ctx.validated = True

    def _resolve_faculties(self, ctx: ImportContext) -> None:
        ctx.faculties = dedupe_faculties(ctx.rows)
        resolution = resolve_level(self.store, FACULTY_LEVEL, ctx.faculties)
        ctx.faculty_ids = resolution.ids
        ctx.result.faculties = resolution.result
        self._report(ImportState.RESOLVING_FACULTIES, done=True)

    def _resolve_departments(self, ctx: ImportContext) -> None:
        ctx.departments = dedupe_departments(ctx.rows)
        resolution = resolve_level(
            self.store, DEPARTMENT_LEVEL, ctx.departments, parent_ids=ctx.faculty_ids
        )
        ctx.department_ids = resolution.ids
        ctx.result.departments = resolution.result
        self._report(ImportState.RESOLVING_DEPARTMENTS, done=True)

    def _write_courses(self, ctx: ImportContext) -> None:
        ctx.courses = build_course_candidates(
            ctx.rows,
            default_duration_months=self.settings.default_duration_months,
            default_total_credits=self.settings.default_total_credits,
        )
        stage_started = self.clock()

        def on_chunk(processed: int, total: int) -> None:
            elapsed = self.clock() - stage_started
            eta = None
            if processed and elapsed > 0:
                eta = round((total - processed) * elapsed / processed, 1)
            self._report(
                ImportState.WRITING_COURSES,
                processed=processed,
                total=total,
                eta_seconds=eta,
                message=f"Writing courses ({processed}/{total})",
            )

        ctx.result.courses = write_courses(
            self.store,
            ctx.courses,
            ctx.department_ids,
            chunk_size=self.settings.import_chunk_size,
            on_progress=on_chunk,
        )

    def _sync_navigation(self, ctx: ImportContext) -> None:
        faculties = [f for f in ctx.faculties if f.natural_key in ctx.faculty_ids]
        departments = [d for d in ctx.departments if d.natural_key in ctx.department_ids]
        synchronizer = NavigationSynchronizer(
            self.store,
            anchor_term=self.settings.navigation_anchor_term,
            menu_location=self.settings.navigation_menu_location,
        )
        try:
            report = synchronizer.sync(faculties, departments)
        except Exception:
            # Navigation is derived from the catalog; it never fails the import
            logger.exception("Navigation sync failed")
            return
        ctx.result.navigation = report.summary()

    # ------------------------------------------------------------------
    # Progress
    # ------------------------------------------------------------------

    def _report(
        self,
        state: ImportState,
        processed: int = 0,
        total: int = 0,
        eta_seconds: Optional[float] = None,
        message: str = "",
        done: bool = False,
    ) -> None:
        if self._listener is None:
            return
        start, end = STAGE_PROGRESS[state]
        if done:
            percent = end
        elif total:
            percent = start + (end - start) * processed // total
        else:
            percent = start
        self._listener(
            ImportProgress(
                state=state,
                percent=percent,
                processed=processed,
                total=total,
                eta_seconds=eta_seconds,
                message=message,
            )
        )


def get_catalog_import_service(db: Session) -> CatalogImportService:
    """Factory function for the import service over a database session."""
    return CatalogImportService(get_catalog_store(db))
