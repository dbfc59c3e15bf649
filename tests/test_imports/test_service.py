"""Tests for the catalog import pipeline."""

import pytest
from sqlalchemy import func, select

from unicat.config import Settings
from unicat.db import Course, Department, Faculty, NavigationItem
from unicat.imports.exceptions import MissingColumnsError, ParseError
from unicat.imports.navigation import NavigationSynchronizer
from unicat.imports.repository import COURSES, DEPARTMENTS
from unicat.imports.schemas import ImportState
from unicat.imports.service import CatalogImportService, Stage, get_catalog_import_service

HEADER = "faculty_name,faculty_code,department_name,department_code,course_name,course_code"

CATALOG = "\n".join(
    [
        HEADER,
        "Faculty of Science,SCI,Physics,PHY,BSc Physics,PHY001",
        "Faculty of Science,SCI,Physics,PHY,Master of Philosophy (M.Phil) in Physics,PHY002",
        "Faculty of Science,SCI,Chemistry,CHE,PhD in Chemistry,CHE001",
        "Faculty of Arts,ART,History,HIS,BA History,HIS001",
    ]
).encode()


def count(db, model) -> int:
    return db.scalar(select(func.count()).select_from(model))


class FakeClock:
    """Monotonic clock advancing one second per call."""

    def __init__(self):
        self.now = 0.0

    def __call__(self) -> float:
        self.now += 1.0
        return self.now


@pytest.fixture
def service(store):
    return CatalogImportService(store, settings=Settings())


class TestRun:
    """End-to-end runs against the in-memory database."""

    def test_full_import(self, service, db, anchor_nav):
        result = service.run("catalog.csv", CATALOG)

        assert result.state == ImportState.DONE
        assert (result.faculties.success, result.departments.success, result.courses.success) == (
            2,
            3,
            4,
        )
        assert result.total_failed == 0
        assert count(db, Faculty) == 2
        assert count(db, Department) == 3
        assert count(db, Course) == 4
        assert result.navigation.anchor_found is True
        assert result.navigation.created == 5

    def test_degree_levels_stored(self, service, db):
        service.run("catalog.csv", CATALOG)

        levels = dict(db.execute(select(Course.course_code, Course.degree_level)).all())
        assert levels["PHY002"].value == "postgraduate"
        assert levels["CHE001"].value == "doctoral"
        assert levels["PHY001"].value == "undergraduate"

    def test_second_run_is_idempotent(self, service, db, anchor_nav):
        service.run("catalog.csv", CATALOG)
        nav_before = count(db, NavigationItem)

        result = service.run("catalog.csv", CATALOG)

        assert result.faculties.success == 0
        assert result.departments.success == 0
        assert result.courses.success == 0
        assert result.total_failed == 0
        assert result.navigation.created == 0
        assert result.navigation.existing == 5
        assert count(db, Course) == 4
        assert count(db, NavigationItem) == nav_before

    def test_missing_columns_abort_before_writes(self, service, db):
        content = b"faculty_name,faculty_code,department_name,course_name\nF,F1,D,C\n"

        with pytest.raises(MissingColumnsError) as exc_info:
            service.run("catalog.csv", content)

        assert exc_info.value.columns == ["department_code", "course_code"]
        assert count(db, Faculty) == 0

    def test_parse_error_propagates(self, service):
        with pytest.raises(ParseError):
            service.run("catalog.csv", HEADER.encode())

    def test_unsupported_extension(self, service):
        with pytest.raises(ParseError):
            service.run("catalog.xls", CATALOG)

    def test_no_anchor_still_completes(self, service, db):
        result = service.run("catalog.csv", CATALOG)

        assert result.state == ImportState.DONE
        assert result.courses.success == 4
        assert result.navigation.anchor_found is False
        assert count(db, NavigationItem) == 0

    def test_department_failure_cascades_to_its_courses(self, make_store, db):
        store = make_store(fail_inserts={DEPARTMENTS: {1}})
        service = CatalogImportService(store, settings=Settings())

        result = service.run("catalog.csv", CATALOG)

        assert result.faculties.success == 2
        assert result.departments.failed == 3
        assert result.courses.failed == 4
        assert result.state == ImportState.DONE

    def test_course_chunk_failure_is_partial(self, make_store, db):
        store = make_store(fail_inserts={COURSES: {2}})
        service = CatalogImportService(store, settings=Settings(import_chunk_size=2))

        result = service.run("catalog.csv", CATALOG)

        assert result.courses.success == 2
        assert result.courses.failed == 2
        assert count(db, Course) == 2

    def test_retry_after_partial_failure(self, make_store, db):
        failing = CatalogImportService(
            make_store(fail_inserts={COURSES: {2}}), settings=Settings(import_chunk_size=2)
        )
        failing.run("catalog.csv", CATALOG)

        result = CatalogImportService(make_store(), settings=Settings()).run("catalog.csv", CATALOG)

        assert result.courses.success == 2
        assert count(db, Course) == 4

    def test_navigation_error_does_not_fail_import(self, service, monkeypatch, anchor_nav):
        def boom(*args, **kwargs):
            raise RuntimeError("navigation down")

        monkeypatch.setattr(NavigationSynchronizer, "sync", boom)

        result = service.run("catalog.csv", CATALOG)

        assert result.state == ImportState.DONE
        assert result.courses.success == 4
        assert result.navigation.created == 0

    def test_oversized_number_does_not_abort_run(self, store, db):
        content = (
            f"{HEADER},total_credits\n"
            "Faculty of Science,SCI,Physics,PHY,BSc Physics,PHY001,90\n"
            "Faculty of Science,SCI,Physics,PHY,BSc Optics,PHY002,99999999999999999999\n"
        ).encode()
        service = CatalogImportService(store, settings=Settings(import_chunk_size=1))

        result = service.run("catalog.csv", content)

        assert result.state == ImportState.DONE
        assert result.courses.success == 2
        credits = dict(db.execute(select(Course.course_code, Course.total_credits)).all())
        assert credits == {"PHY001": 90, "PHY002": 120}

    def test_malformed_row_fails_while_parsing(self, service):
        """A bad row deep in the file is reported before any resolution starts."""
        long_field = "x" * 200_000
        content = (
            f"{HEADER}\n"
            "Faculty of Science,SCI,Physics,PHY,BSc Physics,PHY001\n"
            f"Faculty of Science,SCI,Physics,PHY,{long_field},PHY002\n"
        ).encode()
        updates = []

        with pytest.raises(ParseError):
            service.run("catalog.csv", content, on_progress=updates.append)

        assert [u.state for u in updates] == [ImportState.PARSING]

    def test_elapsed_from_clock(self, store):
        service = CatalogImportService(store, settings=Settings(), clock=FakeClock())

        result = service.run("catalog.csv", CATALOG)

        assert result.elapsed_seconds > 0


class TestRunGrid:
    """Tests for grid input."""

    def test_grid_import(self, service, db):
        grid = [
            HEADER.split(","),
            ["Faculty of Law", "LAW", "Private Law", "PRL", "LLB", "LLB001"],
        ]

        result = service.run_grid(grid)

        assert result.courses.success == 1
        assert count(db, Faculty) == 1


class TestProgress:
    """Tests for progress callbacks."""

    def test_states_in_order(self, service, anchor_nav):
        updates = []

        service.run("catalog.csv", CATALOG, on_progress=updates.append)

        states = list(dict.fromkeys(u.state for u in updates))
        assert states == [
            ImportState.PARSING,
            ImportState.VALIDATING,
            ImportState.RESOLVING_FACULTIES,
            ImportState.RESOLVING_DEPARTMENTS,
            ImportState.WRITING_COURSES,
            ImportState.SYNCING_NAVIGATION,
            ImportState.DONE,
        ]

    def test_percent_never_decreases(self, service):
        updates = []

        service.run("catalog.csv", CATALOG, on_progress=updates.append)

        percents = [u.percent for u in updates]
        assert percents == sorted(percents)
        assert percents[-1] == 100

    def test_course_chunks_reported(self, store):
        service = CatalogImportService(
            store, settings=Settings(import_chunk_size=1), clock=FakeClock()
        )
        updates = []

        service.run("catalog.csv", CATALOG, on_progress=updates.append)

        chunks = [u for u in updates if u.state == ImportState.WRITING_COURSES and u.total]
        assert [u.processed for u in chunks] == [1, 2, 3, 4]
        assert chunks[-1].eta_seconds == 0
        assert chunks[0].eta_seconds is not None


class TestPipeline:
    """Tests for stage wiring."""

    def test_stage_order(self, service):
        assert [s.state for s in service.stages()] == [
            ImportState.PARSING,
            ImportState.VALIDATING,
            ImportState.RESOLVING_FACULTIES,
            ImportState.RESOLVING_DEPARTMENTS,
            ImportState.WRITING_COURSES,
            ImportState.SYNCING_NAVIGATION,
        ]

    def test_missing_input_refused(self, service, monkeypatch):
        """A stage cannot run before the stage that produces its inputs."""
        stages = service.stages()
        reordered = [stages[0], stages[2]]
        monkeypatch.setattr(service, "stages", lambda: reordered)

        with pytest.raises(RuntimeError, match="validated"):
            service.run("catalog.csv", CATALOG)

    def test_unproduced_output_refused(self, service, monkeypatch):
        noop = Stage(ImportState.PARSING, lambda ctx: None, produces=("rows",))
        monkeypatch.setattr(service, "stages", lambda: [noop])

        with pytest.raises(RuntimeError, match="did not produce"):
            service.run("catalog.csv", CATALOG)


class TestPreview:
    """Tests for preview."""

    def test_counts_without_writes(self, service, db):
        preview = service.preview("catalog.csv", CATALOG)

        assert preview.row_count == 4
        assert (preview.faculty_count, preview.department_count, preview.course_count) == (2, 3, 4)
        assert preview.sample_rows[0]["course_code"] == "PHY001"
        assert count(db, Faculty) == 0

    def test_missing_columns(self, service):
        with pytest.raises(MissingColumnsError):
            service.preview("catalog.csv", b"faculty_name\nScience\n")


def test_factory(db):
    service = get_catalog_import_service(db)
    assert isinstance(service, CatalogImportService)
