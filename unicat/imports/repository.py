"""Keyed-record store used by the import pipeline.

The pipeline only ever issues three kinds of calls: a batched lookup by key
column, a bulk insert, and a case-insensitive title search. Records cross
this boundary as plain dicts so the pipeline stays independent of the ORM.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable, Sequence
from typing import Any, Optional

from sqlalchemy import func, inspect, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from unicat.db.models import Base, Course, Department, Faculty, NavigationItem
from unicat.imports.exceptions import StoreError
from unicat.security import escape_like

logger = logging.getLogger(__name__)

Record = dict[str, Any]

FACULTIES = "faculties"
DEPARTMENTS = "departments"
COURSES = "courses"
NAVIGATION = "navigation"

TABLE_MODELS: dict[str, type[Base]] = {
    FACULTIES: Faculty,
    DEPARTMENTS: Department,
    COURSES: Course,
    NAVIGATION: NavigationItem,
}

# Keeps IN (...) lists below the bound-parameter limits of common backends
LOOKUP_BATCH_SIZE = 500


class CatalogStore(ABC):
    """Abstract keyed-record repository."""

    @abstractmethod
    def find_by_keys(self, table: str, key_column: str, keys: Iterable[Any]) -> list[Record]:
        """Return every record of ``table`` whose ``key_column`` is in ``keys``."""

    @abstractmethod
    def insert_many(self, table: str, records: Sequence[Record]) -> list[Record]:
        """Insert ``records`` in one call and return them with their identifiers.

        Raises:
            StoreError: If the insert fails. Nothing from the call is kept.
        """

    @abstractmethod
    def find_by_title_like(
        self, table: str, pattern: str, exclude_href_prefixes: Sequence[str] = ()
    ) -> Optional[Record]:
        """Return the first record whose title contains ``pattern``, ignoring case.

        Records whose ``href`` starts with one of ``exclude_href_prefixes``
        are never returned.
        """


class SqlAlchemyCatalogStore(CatalogStore):
    """``CatalogStore`` backed by a SQLAlchemy session.

    Every call commits or rolls back on its own; no transaction spans more
    than one call.

    Args:
        db: Database session.
    """

    def __init__(self, db: Session):
        self.db = db

    def _model(self, table: str) -> type[Base]:
        try:
            return TABLE_MODELS[table]
        except KeyError:
            raise StoreError(f"Unknown table '{table}'") from None

    @staticmethod
    def _to_record(obj: Base) -> Record:
        return {attr.key: getattr(obj, attr.key) for attr in inspect(obj).mapper.column_attrs}

    def find_by_keys(self, table: str, key_column: str, keys: Iterable[Any]) -> list[Record]:
        model = self._model(table)
        column = getattr(model, key_column)
        unique_keys = list(dict.fromkeys(k for k in keys if k is not None))
        if not unique_keys:
            return []

        records: list[Record] = []
        try:
            for start in range(0, len(unique_keys), LOOKUP_BATCH_SIZE):
                batch = unique_keys[start : start + LOOKUP_BATCH_SIZE]
                rows = self.db.scalars(select(model).where(column.in_(batch))).all()
                records.extend(self._to_record(r) for r in rows)
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StoreError(str(e)) from e
        return records

    def insert_many(self, table: str, records: Sequence[Record]) -> list[Record]:
        model = self._model(table)
        if not records:
            return []

        objects = [model(**record) for record in records]
        try:
            self.db.add_all(objects)
            self.db.flush()
            # Read back before commit expires the instances
            inserted = [self._to_record(obj) for obj in objects]
            self.db.commit()
        except (SQLAlchemyError, OverflowError, TypeError, ValueError) as e:
            # Driver-level binding errors are not wrapped by SQLAlchemy
            self.db.rollback()
            logger.debug("insert_many(%s) rolled back: %s", table, e)
            raise StoreError(str(getattr(e, "orig", None) or e)) from e

        return inserted

    def find_by_title_like(
        self, table: str, pattern: str, exclude_href_prefixes: Sequence[str] = ()
    ) -> Optional[Record]:
        model = self._model(table)
        like = f"%{escape_like(pattern.lower())}%"
        query = select(model).where(func.lower(model.title).like(like, escape="\\"))
        for prefix in exclude_href_prefixes:
            query = query.where(~model.href.startswith(prefix, autoescape=True))
        try:
            row = self.db.scalars(query.order_by(model.position, model.created_at).limit(1)).first()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StoreError(str(e)) from e
        return self._to_record(row) if row is not None else None


def get_catalog_store(db: Session) -> SqlAlchemyCatalogStore:
    """Factory function for the SQLAlchemy-backed store."""
    return SqlAlchemyCatalogStore(db)
