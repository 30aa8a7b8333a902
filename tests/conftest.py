"""
conftest.py — Shared pytest fixtures for the cost prediction test suite.

Fixture overview
----------------
  db_engine         (session) — in-memory SQLite with a small, hand-computed
                                project history (see _seed_projects)
  make_project      (function) — factory for HistoricalProject records
  commercial_history (function) — the 12-project commercial scenario
  recording_logger  (function) — structlog-compatible logger that keeps events
  list_provider     (function) — ListProvider class (list-backed data source)
  _reset_structlog  (autouse)  — drops any structlog config a test installed
"""

from __future__ import annotations

import sys
from datetime import date
from pathlib import Path

import pytest
import structlog
from sqlalchemy import create_engine, text

# ---------------------------------------------------------------------------
# Make src/ importable regardless of how pytest is invoked.
# ---------------------------------------------------------------------------

SRC_DIR = Path(__file__).resolve().parent.parent / "src"
sys.path.insert(0, str(SRC_DIR))

from database import Base  # noqa: E402  (after sys.path insert)
from schemas import HistoricalProject  # noqa: E402


# ===========================================================================
# Test doubles
# ===========================================================================


class ListProvider:
    """HistoricalDataProvider returning a fixed list and recording each call."""

    def __init__(self, projects=None, error: Exception = None):
        self.projects = list(projects or [])
        self.error = error
        self.calls: list[dict] = []

    def __call__(self, project_type=None, location=None, limit=50):
        self.calls.append(
            {"project_type": project_type, "location": location, "limit": limit}
        )
        if self.error is not None:
            raise self.error
        return list(self.projects)


class RecordingLogger:
    """Collects (level, event, kwargs) tuples."""

    def __init__(self):
        self.events: list[tuple[str, str, dict]] = []

    def _record(self, level, event, **kw):
        self.events.append((level, event, kw))

    def info(self, event, **kw):
        self._record("info", event, **kw)

    def warning(self, event, **kw):
        self._record("warning", event, **kw)

    def error(self, event, **kw):
        self._record("error", event, **kw)

    def named(self, event):
        return [e for e in self.events if e[1] == event]


# ===========================================================================
# Record factories
# ===========================================================================


def build_project(
    project_id: str = "p1",
    project_type: str = "commercial",
    actual_cost: float = 500_000.0,
    budget: float = None,
    square_footage: float = 10_000.0,
    location: str = "St. Louis, MO",
    duration: float = 180.0,
    variance: float = None,
    name: str = None,
) -> HistoricalProject:
    """HistoricalProject with variance / cost_per_sq_ft derived like the store does."""
    if budget is None:
        budget = actual_cost
    if variance is None:
        variance = (actual_cost - budget) / budget * 100 if budget > 0 else 0.0
    return HistoricalProject(
        project_id=project_id,
        project_type=project_type,
        square_footage=square_footage,
        location=location,
        budget=budget,
        actual_cost=actual_cost,
        duration=duration,
        variance=variance,
        completion_date="2024-06-30",
        cost_per_sq_ft=actual_cost / square_footage if square_footage > 0 else 0.0,
        name=name,
    )


@pytest.fixture
def make_project():
    return build_project


@pytest.fixture
def commercial_history():
    """
    12 commercial projects, actual cost spread evenly over $400K–$600K
    (mean $500K), square footage = cost / 50 (8 000–12 000 sqft), and a
    budget 2 % under actual cost (variance +2 %).
    """
    projects = []
    for i in range(12):
        cost = 400_000.0 + i * 200_000.0 / 11
        projects.append(build_project(
            project_id=f"c{i + 1}",
            actual_cost=cost,
            budget=cost / 1.02,
            square_footage=cost / 50,
            duration=200.0,
        ))
    return projects


@pytest.fixture
def recording_logger():
    return RecordingLogger()


@pytest.fixture
def list_provider():
    """The ListProvider class, so tests can build providers inline."""
    return ListProvider


# ===========================================================================
# Test-database seed helpers
# ===========================================================================


def _commercial_rows() -> list[dict]:
    """IDs 1–12: COMPLETED COMMERCIAL, St. Louis, ended 2024-01-15 … 2024-12-15."""
    rows = []
    for i in range(1, 13):
        cost = 400_000.0 + (i - 1) * 200_000.0 / 11
        rows.append({
            "id": i,
            "name": f"Commercial Project {i}",
            "ptype": "COMMERCIAL",
            "sqft": cost / 50,
            "loc": "St. Louis, MO",
            "budget": cost / 1.02,
            "actual": cost,
            "start": date(2023, i, 15).isoformat(),
            "end": date(2024, i, 15).isoformat(),
            "status": "COMPLETED",
        })
    return rows


def _seed_projects(conn) -> None:
    """
    Insert 17 test projects.

    IDs 1–12  COMPLETED COMMERCIAL   St. Louis     variance +2 %, 365/366 days
    ID  13    COMPLETED RESIDENTIAL  Kansas City   750K → 900K (+20 %), 184 days
    ID  14    COMPLETED RESIDENTIAL  Kansas City   800K → 960K (+20 %), 183 days
    ID  15    COMPLETED RESIDENTIAL  Kansas City   no sqft, budget 0, 184 days
    ID  16    ACTIVE    COMMERCIAL   St. Louis     no actual cost   (excluded)
    ID  17    COMPLETED COMMERCIAL   St. Louis     NULL actual cost (excluded)
    """
    rows = _commercial_rows() + [
        {"id": 13, "name": "Oakwood Residences", "ptype": "RESIDENTIAL", "sqft": 3000.0,
         "loc": "Kansas City, MO", "budget": 750_000.0, "actual": 900_000.0,
         "start": "2022-03-01", "end": "2022-09-01", "status": "COMPLETED"},
        {"id": 14, "name": "Creekside Townhomes", "ptype": "RESIDENTIAL", "sqft": 3500.0,
         "loc": "Kansas City, MO", "budget": 800_000.0, "actual": 960_000.0,
         "start": "2022-04-01", "end": "2022-10-01", "status": "COMPLETED"},
        {"id": 15, "name": "Lakeside Villas", "ptype": "RESIDENTIAL", "sqft": None,
         "loc": "Kansas City, MO", "budget": 0.0, "actual": 500_000.0,
         "start": "2022-05-01", "end": "2022-11-01", "status": "COMPLETED"},
        {"id": 16, "name": "Midtown Plaza", "ptype": "COMMERCIAL", "sqft": 9000.0,
         "loc": "St. Louis, MO", "budget": 450_000.0, "actual": None,
         "start": "2025-01-01", "end": None, "status": "ACTIVE"},
        {"id": 17, "name": "Keystone Hub", "ptype": "COMMERCIAL", "sqft": 9000.0,
         "loc": "St. Louis, MO", "budget": 450_000.0, "actual": None,
         "start": "2023-01-01", "end": "2025-06-30", "status": "COMPLETED"},
    ]
    conn.execute(
        text("""
            INSERT INTO projects
                (id, project_name, project_type, square_footage, location,
                 budget, actual_cost, start_date, end_date, status, client_name)
            VALUES
                (:id, :name, :ptype, :sqft, :loc,
                 :budget, :actual, :start, :end, :status, 'Test Client')
        """),
        rows,
    )


# ===========================================================================
# Main fixtures
# ===========================================================================


@pytest.fixture(scope="session")
def db_engine():
    """Session-scoped in-memory SQLite engine pre-seeded by _seed_projects."""
    engine = create_engine("sqlite:///:memory:", echo=False)
    Base.metadata.create_all(engine)

    with engine.begin() as conn:
        _seed_projects(conn)

    return engine


@pytest.fixture(autouse=True)
def _reset_structlog():
    """CLI tests call configure_logging(); later tests start from the defaults."""
    yield
    structlog.reset_defaults()
