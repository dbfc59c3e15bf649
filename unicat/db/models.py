"""SQLAlchemy models for the academic catalog and site navigation."""

import enum
from datetime import datetime
from typing import Optional
from uuid import uuid4

from sqlalchemy import Enum, ForeignKey, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def _uuid() -> str:
    return str(uuid4())


class Base(DeclarativeBase):
    """Declarative base for all catalog tables."""


class DegreeLevel(str, enum.Enum):
    """Degree level of a course."""

    CERTIFICATE = "certificate"
    UNDERGRADUATE = "undergraduate"
    POSTGRADUATE = "postgraduate"
    DOCTORAL = "doctoral"


class Faculty(Base):
    """Top level of the catalog hierarchy."""

    __tablename__ = "academic_faculties"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    code: Mapped[str] = mapped_column(String(50), unique=True, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(default=True)
    created_at: Mapped[datetime] = mapped_column(default=datetime.utcnow)

    departments: Mapped[list["Department"]] = relationship(back_populates="faculty")

    def __repr__(self) -> str:
        return f"<Faculty(code='{self.code}')>"


class Department(Base):
    """Department owned by a faculty."""

    __tablename__ = "academic_departments"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    code: Mapped[str] = mapped_column(String(50), unique=True, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    faculty_id: Mapped[str] = mapped_column(ForeignKey("academic_faculties.id"), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(default=True)
    created_at: Mapped[datetime] = mapped_column(default=datetime.utcnow)

    faculty: Mapped["Faculty"] = relationship(back_populates="departments")
    courses: Mapped[list["Course"]] = relationship(back_populates="department")

    def __repr__(self) -> str:
        return f"<Department(code='{self.code}')>"


class Course(Base):
    """Course (degree programme) offered by a department."""

    __tablename__ = "academic_courses"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    course_code: Mapped[str] = mapped_column(String(50), unique=True, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(300), nullable=False, index=True)
    department_id: Mapped[str] = mapped_column(
        ForeignKey("academic_departments.id"), nullable=False
    )
    duration_months: Mapped[int] = mapped_column(Integer, default=48)
    total_credits: Mapped[int] = mapped_column(Integer, default=120)
    degree_level: Mapped[DegreeLevel] = mapped_column(
        Enum(DegreeLevel, values_callable=lambda e: [m.value for m in e]),
        default=DegreeLevel.UNDERGRADUATE,
    )
    enrollment_status: Mapped[str] = mapped_column(String(20), default="open")
    is_active: Mapped[bool] = mapped_column(default=True)
    is_visible_on_website: Mapped[bool] = mapped_column(default=True)
    created_at: Mapped[datetime] = mapped_column(default=datetime.utcnow)

    department: Mapped["Department"] = relationship(back_populates="courses")

    def __repr__(self) -> str:
        return f"<Course(course_code='{self.course_code}')>"


class NavigationItem(Base):
    """Entry in the site navigation tree."""

    __tablename__ = "site_navigation"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    href: Mapped[str] = mapped_column(String(500), unique=True, nullable=False)
    parent_id: Mapped[Optional[str]] = mapped_column(
        ForeignKey("site_navigation.id"), nullable=True, index=True
    )
    position: Mapped[int] = mapped_column(Integer, default=0)
    menu_location: Mapped[str] = mapped_column(String(50), default="main")
    is_active: Mapped[bool] = mapped_column(default=True)
    created_at: Mapped[datetime] = mapped_column(default=datetime.utcnow)

    def __repr__(self) -> str:
        return f"<NavigationItem(href='{self.href}')>"
