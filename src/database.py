"""
database.py — Project store for the cost prediction engine.

A single ``projects`` table holding planned and realised cost for every
project, built with SQLAlchemy 2.0+.
Run directly to initialise the database: python src/database.py
"""

from __future__ import annotations

import enum
from datetime import date
from pathlib import Path
from typing import Optional

from sqlalchemy import (
    Date,
    Enum,
    Float,
    Index,
    Integer,
    String,
    create_engine,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from config import settings

# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------

DATABASE_URL = settings.database_url


def get_engine(database_url: str = DATABASE_URL):
    """Return a SQLAlchemy engine connected to *database_url*."""
    return create_engine(database_url, echo=False)


# ---------------------------------------------------------------------------
# ORM base
# ---------------------------------------------------------------------------


class Base(DeclarativeBase):
    pass


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class ProjectType(str, enum.Enum):
    RESIDENTIAL = "RESIDENTIAL"
    COMMERCIAL = "COMMERCIAL"
    INFRASTRUCTURE = "INFRASTRUCTURE"


class ProjectStatus(str, enum.Enum):
    PLANNING = "PLANNING"
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    ON_HOLD = "ON_HOLD"


# ---------------------------------------------------------------------------
# TABLES
# ---------------------------------------------------------------------------


class Project(Base):
    __tablename__ = "projects"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    project_name: Mapped[str] = mapped_column(String(200), nullable=False)
    # Free-form category; ProjectType lists the values the generator uses
    project_type: Mapped[str] = mapped_column(String(50), nullable=False)
    square_footage: Mapped[Optional[float]] = mapped_column(Float)
    location: Mapped[Optional[str]] = mapped_column(String(300))
    budget: Mapped[Optional[float]] = mapped_column(Float)
    actual_cost: Mapped[Optional[float]] = mapped_column(Float)  # NULL until completed
    start_date: Mapped[Optional[date]] = mapped_column(Date)
    end_date: Mapped[Optional[date]] = mapped_column(Date)
    status: Mapped[str] = mapped_column(
        Enum(ProjectStatus), nullable=False, default=ProjectStatus.PLANNING
    )
    client_name: Mapped[Optional[str]] = mapped_column(String(200))

    __table_args__ = (
        Index("ix_projects_status", "status"),
        Index("ix_projects_project_type", "project_type"),
        Index("ix_projects_location", "location"),
        Index("ix_projects_status_end_date", "status", "end_date"),
    )


# ---------------------------------------------------------------------------
# init_db
# ---------------------------------------------------------------------------


def init_db(engine=None) -> None:
    """Create all tables. Safe to call multiple times (uses CREATE IF NOT EXISTS)."""
    if engine is None:
        engine = get_engine()
    url = engine.url
    if url.get_backend_name() == "sqlite" and url.database not in (None, "", ":memory:"):
        Path(url.database).parent.mkdir(parents=True, exist_ok=True)
    Base.metadata.create_all(engine)
    print(f"Database initialised at: {engine.url}")


if __name__ == "__main__":
    init_db()
