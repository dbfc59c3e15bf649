"""Navigation tree synchronization.

Derives one navigation entry per faculty (under the anchor entry) and one
per department (under its faculty's entry). Navigation is a best-effort
projection of the catalog: whenever a parent entry is missing the child is
skipped with a named outcome instead of failing the import.
"""

import logging
from collections import defaultdict
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, Optional

from unicat.imports.candidates import EntityCandidate, slugify
from unicat.imports.exceptions import StoreError
from unicat.imports.repository import NAVIGATION, CatalogStore, Record
from unicat.imports.schemas import NavigationSummary, NavOutcome

logger = logging.getLogger(__name__)

DEFAULT_ANCHOR_TERM = "academic"


FACULTY_PREFIX = "/faculty/"
DEPARTMENT_PREFIX = "/department/"

# Generated entries never serve as the anchor
GENERATED_PREFIXES = (FACULTY_PREFIX, DEPARTMENT_PREFIX)

FIRST_POSITION = 1


def faculty_path(name: str) -> str:
    return f"{FACULTY_PREFIX}{slugify(name)}"


def department_path(name: str) -> str:
    return f"{DEPARTMENT_PREFIX}{slugify(name)}"


@dataclass
class NavigationReport:
    """Per-candidate navigation outcomes for one run."""

    anchor_id: Optional[str] = None
    faculties: dict[str, NavOutcome] = field(default_factory=dict)
    departments: dict[str, NavOutcome] = field(default_factory=dict)
    errors: list[str] = field(default_factory=list)

    def summary(self) -> NavigationSummary:
        outcomes = list(self.faculties.values()) + list(self.departments.values())
        return NavigationSummary(
            anchor_found=self.anchor_id is not None,
            created=outcomes.count(NavOutcome.CREATED),
            existing=outcomes.count(NavOutcome.EXISTS),
            skipped_missing_parent=outcomes.count(NavOutcome.SKIPPED_MISSING_PARENT),
            failed=outcomes.count(NavOutcome.FAILED),
        )


def _next_positions(children: list[Record]) -> dict[str, int]:
    """Next free position under each parent id, starting at ``FIRST_POSITION``."""
    highest: dict[str, int] = defaultdict(int)
    for child in children:
        parent = child["parent_id"]
        highest[parent] = max(highest[parent], child.get("position") or 0)
    return defaultdict(
        lambda: FIRST_POSITION,
        {parent: max(pos + 1, FIRST_POSITION) for parent, pos in highest.items()},
    )


class NavigationSynchronizer:
    """Creates missing faculty and department navigation entries.

    Args:
        store: Keyed-record store.
        anchor_term: Case-insensitive title fragment identifying the anchor entry.
        menu_location: Menu the generated entries belong to.
    """

    def __init__(
        self,
        store: CatalogStore,
        anchor_term: str = DEFAULT_ANCHOR_TERM,
        menu_location: str = "main",
    ):
        self.store = store
        self.anchor_term = anchor_term
        self.menu_location = menu_location

    def _node(self, title: str, path: str, parent_id: str, position: int) -> dict[str, Any]:
        return {
            "title": title,
            "href": path,
            "parent_id": parent_id,
            "position": position,
            "menu_location": self.menu_location,
            "is_active": True,
        }

    def sync(
        self,
        faculties: Sequence[EntityCandidate],
        departments: Sequence[EntityCandidate],
    ) -> NavigationReport:
        """Create navigation entries for resolved faculties and departments.

        Args:
            faculties: Faculty candidates that resolved to a store record.
            departments: Department candidates that resolved to a store record.

        Returns:
            NavigationReport: One outcome per candidate.
        """
        report = NavigationReport()

        anchor = self.store.find_by_title_like(
            NAVIGATION, self.anchor_term, exclude_href_prefixes=GENERATED_PREFIXES
        )
        if anchor is None:
            logger.warning(
                "No navigation entry matching '%s'; skipping navigation sync", self.anchor_term
            )
            for f in faculties:
                report.faculties[f.natural_key] = NavOutcome.SKIPPED_NO_ANCHOR
            for d in departments:
                report.departments[d.natural_key] = NavOutcome.SKIPPED_NO_ANCHOR
            return report
        anchor_id = anchor["id"]
        report.anchor_id = anchor_id

        faculty_paths = {f.natural_key: faculty_path(f.display_name) for f in faculties}
        department_paths = {d.natural_key: department_path(d.display_name) for d in departments}

        # 1. Existing paths, one bulk read
        existing = self.store.find_by_keys(
            NAVIGATION, "href", list(faculty_paths.values()) + list(department_paths.values())
        )
        existing_paths = {r["href"] for r in existing}

        # 2. Faculty entries directly under the anchor
        anchor_children = self.store.find_by_keys(NAVIGATION, "parent_id", [anchor_id])
        positions = _next_positions(anchor_children)
        new_faculty_nodes: list[dict[str, Any]] = []
        pending_paths: dict[str, list[str]] = defaultdict(list)
        for f in faculties:
            path = faculty_paths[f.natural_key]
            if path in existing_paths:
                report.faculties[f.natural_key] = NavOutcome.EXISTS
                continue
            if path not in pending_paths:
                new_faculty_nodes.append(
                    self._node(f.display_name, path, anchor_id, positions[anchor_id])
                )
                positions[anchor_id] += 1
            pending_paths[path].append(f.natural_key)

        if new_faculty_nodes:
            created = self._insert(new_faculty_nodes, "faculty", report)
            for codes in pending_paths.values():
                for code in codes:
                    report.faculties[code] = (
                        NavOutcome.CREATED if created else NavOutcome.FAILED
                    )

        # 3. Re-read the anchor's children, now including entries created above
        refreshed = self.store.find_by_keys(NAVIGATION, "parent_id", [anchor_id])
        faculty_node_ids = {r["href"]: r["id"] for r in refreshed}

        # 4. Department entries under their faculty's entry
        faculty_by_code = {f.natural_key: f for f in faculties}
        department_children = self.store.find_by_keys(
            NAVIGATION, "parent_id", list(faculty_node_ids.values())
        )
        positions = _next_positions(department_children)
        new_department_nodes: list[dict[str, Any]] = []
        pending_paths = defaultdict(list)
        for d in departments:
            parent = faculty_by_code.get(d.parent_key or "")
            parent_id = faculty_node_ids.get(faculty_paths[parent.natural_key]) if parent else None
            if parent_id is None:
                report.departments[d.natural_key] = NavOutcome.SKIPPED_MISSING_PARENT
                continue
            path = department_paths[d.natural_key]
            if path in existing_paths:
                report.departments[d.natural_key] = NavOutcome.EXISTS
                continue
            if path not in pending_paths:
                new_department_nodes.append(
                    self._node(d.display_name, path, parent_id, positions[parent_id])
                )
                positions[parent_id] += 1
            pending_paths[path].append(d.natural_key)

        if new_department_nodes:
            created = self._insert(new_department_nodes, "department", report)
            for codes in pending_paths.values():
                for code in codes:
                    report.departments[code] = (
                        NavOutcome.CREATED if created else NavOutcome.FAILED
                    )

        summary = report.summary()
        logger.info(
            "Navigation sync: %d created, %d existing, %d skipped (missing parent), %d failed",
            summary.created,
            summary.existing,
            summary.skipped_missing_parent,
            summary.failed,
        )
        return report

    def _insert(self, nodes: list[dict[str, Any]], label: str, report: NavigationReport) -> bool:
        try:
            self.store.insert_many(NAVIGATION, nodes)
        except StoreError as e:
            logger.warning("Failed to create %d %s navigation entries: %s", len(nodes), label, e)
            report.errors.append(f"{label} navigation: {e}")
            return False
        return True


def sync_navigation(
    store: CatalogStore,
    faculties: Sequence[EntityCandidate],
    departments: Sequence[EntityCandidate],
    anchor_term: str = DEFAULT_ANCHOR_TERM,
) -> NavigationReport:
    """Convenience wrapper around ``NavigationSynchronizer.sync``."""
    return NavigationSynchronizer(store, anchor_term=anchor_term).sync(faculties, departments)
