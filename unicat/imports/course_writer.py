"""Chunked course insertion.

Courses are written in fixed-size chunks so that one bad chunk only fails
its own rows. ``N`` new courses cost ``ceil(N / chunk_size)`` inserts.
"""

import logging
from collections.abc import Callable, Sequence
from typing import Any, Optional

from unicat.imports.candidates import CourseCandidate, course_slug
from unicat.imports.exceptions import StoreError
from unicat.imports.repository import COURSES, CatalogStore
from unicat.imports.schemas import EntityResult

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 50

ProgressCallback = Callable[[int, int], None]


def course_payload(candidate: CourseCandidate, department_id: str) -> dict[str, Any]:
    """Build the store record for one course."""
    return {
        "name": candidate.name,
        "course_code": candidate.code,
        "slug": course_slug(candidate.name, candidate.code),
        "department_id": department_id,
        "duration_months": candidate.duration_months,
        "total_credits": candidate.total_credits,
        "degree_level": candidate.degree_level,
        "enrollment_status": "open",
        "is_active": True,
        "is_visible_on_website": True,
    }


def write_courses(
    store: CatalogStore,
    candidates: Sequence[CourseCandidate],
    department_ids: dict[str, str],
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    on_progress: Optional[ProgressCallback] = None,
) -> EntityResult:
    """Insert courses that do not exist yet, one store call per chunk.

    Args:
        store: Keyed-record store.
        candidates: Deduplicated course candidates.
        department_ids: Resolved department ``code -> id`` map.
        chunk_size: Maximum courses per insert.
        on_progress: Called after every chunk with
            ``(processed_so_far, total_to_process)``.

    Returns:
        EntityResult: Created count, failed count and error messages.
            Courses that already existed count as neither.
    """
    if chunk_size < 1:
        raise ValueError("chunk_size must be at least 1")

    result = EntityResult()
    if not candidates:
        return result

    try:
        existing = store.find_by_keys(COURSES, "course_code", [c.code for c in candidates])
    except StoreError as e:
        logger.warning("Lookup of existing course codes failed: %s", e)
        result.failed = len(candidates)
        result.errors.append(f"Failed to look up existing course codes: {e}")
        return result

    existing_codes = {r["course_code"] for r in existing}
    pending = [c for c in candidates if c.code not in existing_codes]
    total = len(pending)
    if existing_codes:
        logger.info("Skipping %d course(s) that already exist", len(candidates) - total)

    processed = 0
    for chunk_no, start in enumerate(range(0, total, chunk_size), start=1):
        chunk = pending[start : start + chunk_size]

        payloads = []
        for candidate in chunk:
            department_id = department_ids.get(candidate.department_key)
            if department_id is None:
                # A course cannot exist without its department
                result.failed += 1
                result.errors.append(
                    f"{candidate.code}: Department {candidate.department_key or '(blank)'} not found"
                )
                continue
            payloads.append(course_payload(candidate, department_id))

        if payloads:
            try:
                inserted = store.insert_many(COURSES, payloads)
            except StoreError as e:
                logger.warning("Course chunk %d failed: %s", chunk_no, e)
                result.failed += len(payloads)
                result.errors.append(
                    f"Chunk {chunk_no} (rows {start + 1}-{start + len(chunk)}): {e}"
                )
            else:
                result.success += len(inserted)

        processed += len(chunk)
        if on_progress is not None:
            on_progress(processed, total)

    logger.info(
        "Course write finished: %d created, %d failed, %d chunk(s)",
        result.success,
        result.failed,
        -(-total // chunk_size),
    )
    return result
