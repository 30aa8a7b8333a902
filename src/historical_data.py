"""
historical_data.py — Historical project data source for cost prediction.

Reads completed projects with a realised cost from the ``projects`` table,
newest first, and converts each row into a HistoricalProject.

Usage:
    python src/historical_data.py [PROJECT_TYPE] [LOCATION]
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Optional, Protocol

import pandas as pd
import structlog
from sqlalchemy import text

sys.path.insert(0, str(Path(__file__).parent))

from database import get_engine
from schemas import HistoricalProject

logger = structlog.get_logger(__name__)

DEFAULT_LIMIT = 50


class HistoricalDataProvider(Protocol):
    """Anything that can return completed projects matching optional filters."""

    def __call__(
        self,
        project_type: Optional[str] = None,
        location: Optional[str] = None,
        limit: int = DEFAULT_LIMIT,
    ) -> list[HistoricalProject]: ...


# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------


def _query(engine, sql: str, params: dict = None) -> pd.DataFrame:
    """Execute *sql* with optional bound *params* and return a DataFrame."""
    with engine.connect() as conn:
        result = conn.execute(text(sql), params or {})
        return pd.DataFrame(result.fetchall(), columns=list(result.keys()))


# ---------------------------------------------------------------------------
# Fetch
# ---------------------------------------------------------------------------


def fetch_historical_projects(
    engine,
    project_type: Optional[str] = None,
    location: Optional[str] = None,
    limit: int = DEFAULT_LIMIT,
) -> list[HistoricalProject]:
    """
    Return up to *limit* completed projects, most recently finished first.

    Only rows with status COMPLETED and a non-NULL actual_cost qualify.
    *project_type* and *location* are exact-match filters, applied only when
    given (None or "" means no filter).

    Storage errors propagate to the caller.
    """
    where = [
        "p.status = 'COMPLETED'",
        "p.actual_cost IS NOT NULL",
    ]
    params: dict = {"limit": int(limit)}
    if project_type:
        where.append("p.project_type = :project_type")
        params["project_type"] = project_type
    if location:
        where.append("p.location = :location")
        params["location"] = location

    df = _query(engine, f"""
        SELECT
            p.id,
            p.project_name,
            p.project_type,
            p.square_footage,
            p.location,
            p.budget,
            p.actual_cost,
            p.start_date,
            p.end_date
        FROM projects p
        WHERE {" AND ".join(where)}
        ORDER BY
            CASE WHEN p.end_date IS NULL THEN 1 ELSE 0 END,
            p.end_date DESC,
            p.id DESC
        LIMIT :limit
    """, params)

    projects = [HistoricalProject.from_record(row) for row in df.to_dict("records")]
    logger.info(
        "historical_data_loaded",
        project_type=project_type,
        location=location,
        count=len(projects),
    )
    return projects


class SqlHistoricalDataProvider:
    """HistoricalDataProvider backed by a SQLAlchemy engine."""

    def __init__(self, engine):
        self._engine = engine

    def __call__(
        self,
        project_type: Optional[str] = None,
        location: Optional[str] = None,
        limit: int = DEFAULT_LIMIT,
    ) -> list[HistoricalProject]:
        return fetch_historical_projects(
            self._engine, project_type=project_type, location=location, limit=limit
        )


# ---------------------------------------------------------------------------
# CLI test runner
# ---------------------------------------------------------------------------


if __name__ == "__main__":
    ptype = sys.argv[1] if len(sys.argv) > 1 else None
    loc = sys.argv[2] if len(sys.argv) > 2 else None

    rows = fetch_historical_projects(get_engine(), project_type=ptype, location=loc)
    if not rows:
        print("No completed projects found — run data_generator.py first.")
        sys.exit(1)

    df = pd.DataFrame([r.model_dump() for r in rows])
    print(f"  Rows: {len(df):,}\n")
    print(df[["project_id", "project_type", "location", "actual_cost",
              "variance", "duration", "completion_date"]].head(10).to_string(index=False))
