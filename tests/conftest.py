"""Shared pytest fixtures: in-memory database, store, API client."""

from collections import Counter, defaultdict
from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from unicat.db import Base, NavigationItem, get_db
from unicat.imports.exceptions import StoreError
from unicat.imports.repository import SqlAlchemyCatalogStore
from unicat.main import app


class RecordingStore(SqlAlchemyCatalogStore):
    """SQLAlchemy store that records calls and can fail chosen inserts.

    Args:
        db: Database session.
        fail_inserts: ``table -> {call numbers}``; the n-th ``insert_many``
            on that table (1-based) raises ``StoreError``.
        fail_lookups: Tables whose ``find_by_keys`` raises ``StoreError``.
    """

    def __init__(self, db: Session, fail_inserts=None, fail_lookups=()):
        super().__init__(db)
        self.fail_inserts = fail_inserts or {}
        self.fail_lookups = set(fail_lookups)
        self.insert_calls: Counter = Counter()
        self.insert_sizes: dict[str, list[int]] = defaultdict(list)
        self.lookups: list[tuple[str, str]] = []

    def find_by_keys(self, table, key_column, keys):
        self.lookups.append((table, key_column))
        if table in self.fail_lookups:
            raise StoreError(f"simulated {table} lookup failure")
        return super().find_by_keys(table, key_column, keys)

    def insert_many(self, table, records):
        self.insert_calls[table] += 1
        self.insert_sizes[table].append(len(records))
        if self.insert_calls[table] in self.fail_inserts.get(table, set()):
            raise StoreError(f"simulated {table} failure")
        return super().insert_many(table, records)


@pytest.fixture
def engine():
    """Fresh in-memory SQLite database per test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine) -> Generator[Session, None, None]:
    """Database session bound to the in-memory engine."""
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def store(db: Session) -> RecordingStore:
    """Store without injected failures."""
    return RecordingStore(db)


@pytest.fixture
def make_store(db: Session):
    """Factory for stores with injected failures."""

    def _make(fail_inserts=None, fail_lookups=()) -> RecordingStore:
        return RecordingStore(db, fail_inserts=fail_inserts, fail_lookups=fail_lookups)

    return _make


@pytest.fixture
def anchor_nav(db: Session) -> NavigationItem:
    """The pre-existing 'Academics' navigation entry generated nodes attach to."""
    item = NavigationItem(title="Academics", href="/academics", position=1)
    db.add(item)
    db.commit()
    db.refresh(item)
    return item


@pytest.fixture
def client(db: Session) -> Generator[TestClient, None, None]:
    """API client whose requests share the test session."""

    def _override_get_db():
        yield db

    app.dependency_overrides[get_db] = _override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
