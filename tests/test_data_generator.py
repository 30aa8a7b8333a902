"""
test_data_generator.py — Tests for the synthetic project history and the CLI.

Test scenarios
--------------
1. test_generates_requested_rows    — n rows, valid types / statuses
2. test_completed_projects_costed   — actual cost only on completed projects
3. test_generation_is_reproducible  — same seed → same rows
4. test_skips_populated_table       — second run inserts nothing
5. test_cli_json / test_cli_report  — cost_prediction.main over a seeded file DB
6. test_logging_*                   — predictions after a CLI run still log and return
"""

from __future__ import annotations

import io
import json
import sys
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session

# Ensure src/ is importable when pytest is run from any working directory
sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "src"))

import cost_prediction
import data_generator
from cost_prediction import CostPredictor
from data_generator import TODAY, generate_projects
from database import Base, Project, ProjectStatus, ProjectType
from logging_config import configure_logging
from schemas import CostPredictionInput


def _fresh_session() -> Session:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    return Session(engine)


@pytest.fixture
def generated():
    with _fresh_session() as session:
        yield session, generate_projects(session, n=60, seed=7)


# ===========================================================================
# 1–4. Generator
# ===========================================================================


def test_generates_requested_rows(generated):
    _, projects = generated
    assert len(projects) == 60

    types = {p.project_type for p in projects}
    assert types <= {t.value for t in ProjectType}
    statuses = {ProjectStatus(p.status) for p in projects}
    assert ProjectStatus.COMPLETED in statuses


def test_completed_projects_costed(generated):
    _, projects = generated
    for p in projects:
        status = ProjectStatus(p.status)
        if status == ProjectStatus.COMPLETED:
            assert p.actual_cost is not None and p.actual_cost > 0
            assert p.end_date is not None and p.end_date <= TODAY
            assert p.start_date <= p.end_date
            assert 0.85 * p.budget - 1 <= p.actual_cost <= 1.30 * p.budget + 1
        else:
            assert p.actual_cost is None, f"{status} project has an actual cost"

        if p.project_type == ProjectType.INFRASTRUCTURE.value:
            assert p.square_footage is None
        else:
            assert p.square_footage > 0


def test_generation_is_reproducible():
    def snapshot(seed):
        with _fresh_session() as session:
            return [
                (p.project_name, p.project_type, p.budget, p.actual_cost, p.client_name)
                for p in generate_projects(session, n=20, seed=seed)
            ]

    assert snapshot(11) == snapshot(11)


def test_skips_populated_table(generated):
    session, projects = generated
    again = generate_projects(session, n=10, seed=1)
    assert len(again) == len(projects)
    assert session.query(Project).count() == 60


# ===========================================================================
# 5. CLI
# ===========================================================================


@pytest.fixture
def seeded_url(tmp_path, capsys):
    url = f"sqlite:///{tmp_path / 'projects.db'}"
    data_generator.main(database_url=url)
    capsys.readouterr()   # discard generator output
    return url


def test_cli_json(seeded_url, capsys):
    cost_prediction.main([
        "--database-url", seeded_url,
        "--project-type", "COMMERCIAL",
        "--square-footage", "50000",
        "--complexity", "high",
        "--json",
    ])
    doc = json.loads(capsys.readouterr().out)

    assert doc["estimatedCost"] > 0
    assert 0.1 <= doc["confidenceLevel"] <= 1.0
    assert 0 <= doc["riskScore"] <= 100
    assert "High Complexity" in [f["name"] for f in doc["factors"]]
    assert len(doc["similarProjects"]) <= 5


def test_cli_report(seeded_url, capsys):
    cost_prediction.main(["--database-url", seeded_url, "--duration", "120"])
    out = capsys.readouterr().out

    assert "Estimated cost" in out
    assert "Recommendations" in out
    assert "Similar Projects" in out


def test_cli_empty_database(tmp_path, capsys):
    """An unreadable / empty store still prints a zeroed prediction."""
    url = f"sqlite:///{tmp_path / 'empty.db'}"
    cost_prediction.main(["--database-url", url, "--json"])
    doc = json.loads(capsys.readouterr().out)

    assert doc["estimatedCost"] == 0
    assert doc["confidenceLevel"] == 0.1
    assert doc["similarProjects"] == []


# ===========================================================================
# 6. Logging after a CLI run
# ===========================================================================


class _FailingProvider:
    def __call__(self, project_type=None, location=None, limit=50):
        raise RuntimeError("database is down")


def test_logging_after_cli_run(seeded_url, capsys):
    """A CLI run configures logging; the next prediction in the session must still work."""
    cost_prediction.main(["--database-url", seeded_url, "--json"])
    capsys.readouterr()

    p = CostPredictor(_FailingProvider()).predict_cost(CostPredictionInput())
    assert p.estimated_cost == 0
    assert "historical_fetch_failed" in capsys.readouterr().err


def test_logging_survives_replaced_stderr(monkeypatch, capsys):
    """
    Logging configured while stderr was a since-closed stream writes to the
    current stderr instead of raising.
    """
    stale = io.StringIO()
    monkeypatch.setattr(sys, "stderr", stale)
    configure_logging("INFO")
    monkeypatch.undo()
    stale.close()

    p = CostPredictor(_FailingProvider()).predict_cost(CostPredictionInput())

    assert p.estimated_cost == 0
    assert p.confidence_level == 0.1
    err = capsys.readouterr().err
    assert "historical_fetch_failed" in err
    assert "RuntimeError: database is down" in err
