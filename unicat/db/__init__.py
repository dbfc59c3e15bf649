"""Database module."""

from unicat.db.database import SessionLocal, engine, get_db, init_db
from unicat.db.models import Base, Course, DegreeLevel, Department, Faculty, NavigationItem

__all__ = [
    "SessionLocal",
    "engine",
    "get_db",
    "init_db",
    "Base",
    "Course",
    "DegreeLevel",
    "Department",
    "Faculty",
    "NavigationItem",
]
