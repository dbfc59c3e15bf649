"""Hierarchical upsert resolution for faculties and departments.

Each level is resolved with one batched existence check and at most one bulk
insert. The resulting ``code -> id`` map feeds the next level down.
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, Optional

from unicat.imports.candidates import EntityCandidate
from unicat.imports.exceptions import StoreError
from unicat.imports.repository import DEPARTMENTS, FACULTIES, CatalogStore
from unicat.imports.schemas import EntityResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LevelSpec:
    """How one hierarchy level is stored."""

    label: str
    table: str
    key_column: str = "code"
    parent_column: Optional[str] = None
    parent_label: Optional[str] = None


FACULTY_LEVEL = LevelSpec(label="faculty", table=FACULTIES)
DEPARTMENT_LEVEL = LevelSpec(
    label="department",
    table=DEPARTMENTS,
    parent_column="faculty_id",
    parent_label="Faculty",
)


@dataclass
class LevelResolution:
    """Outcome of resolving one level."""

    ids: dict[str, str] = field(default_factory=dict)
    result: EntityResult = field(default_factory=EntityResult)


def _record_for(
    level: LevelSpec, candidate: EntityCandidate, parent_id: Optional[str]
) -> dict[str, Any]:
    record: dict[str, Any] = {
        level.key_column: candidate.natural_key,
        "name": candidate.display_name,
        "is_active": True,
    }
    if level.parent_column:
        record[level.parent_column] = parent_id
    return record


def resolve_level(
    store: CatalogStore,
    level: LevelSpec,
    candidates: Sequence[EntityCandidate],
    parent_ids: Optional[dict[str, str]] = None,
) -> LevelResolution:
    """Map every candidate's natural key to a store id, creating missing records.

    Args:
        store: Keyed-record store.
        level: Level being resolved.
        candidates: Deduplicated candidates for this level.
        parent_ids: Resolved ``code -> id`` map of the level above. Required
            when ``level`` has a parent column.

    Returns:
        LevelResolution: The id map (possibly partial) and the level tally.
            ``result.success`` counts records created by this call.
    """
    resolution = LevelResolution()
    result = resolution.result
    if not candidates:
        return resolution

    keys = [c.natural_key for c in candidates]
    try:
        existing = store.find_by_keys(level.table, level.key_column, keys)
    except StoreError as e:
        logger.warning("Lookup of existing %s records failed: %s", level.label, e)
        result.failed = len(candidates)
        result.errors.append(f"Failed to look up existing {level.label} codes: {e}")
        return resolution

    for record in existing:
        resolution.ids[record[level.key_column]] = record["id"]

    to_insert: list[dict[str, Any]] = []
    for candidate in candidates:
        if candidate.natural_key in resolution.ids:
            continue

        parent_id = None
        if level.parent_column:
            parent_id = (parent_ids or {}).get(candidate.parent_key or "")
            if parent_id is None:
                result.failed += 1
                result.errors.append(
                    f"{candidate.natural_key}: {level.parent_label} "
                    f"{candidate.parent_key or '(blank)'} not found"
                )
                continue

        to_insert.append(_record_for(level, candidate, parent_id))

    if not to_insert:
        return resolution

    try:
        inserted = store.insert_many(level.table, to_insert)
    except StoreError as e:
        logger.warning("Bulk insert of %d %s records failed: %s", len(to_insert), level.label, e)
        result.failed += len(to_insert)
        result.errors.append(f"Failed to create {len(to_insert)} {level.label} record(s): {e}")
        return resolution

    for record in inserted:
        resolution.ids[record[level.key_column]] = record["id"]
    result.success += len(inserted)

    logger.info(
        "Resolved %d %s codes (%d existing, %d created, %d failed)",
        len(candidates),
        level.label,
        len(existing),
        result.success,
        result.failed,
    )
    return resolution
