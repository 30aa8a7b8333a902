"""
schemas.py — Pydantic models for cost prediction requests, historical
project records, and prediction results.

Python attributes are snake_case; ``model_dump(by_alias=True)`` produces the
camelCase field names used by the web client (``estimatedCost``,
``squareFootage``, ...).
"""

from __future__ import annotations

import math
from typing import Any, Literal, Mapping, Optional

import pandas as pd
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

Complexity = Literal["low", "medium", "high"]


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Request
# ---------------------------------------------------------------------------


class CostPredictionInput(_CamelModel):
    """A request to predict the cost of a planned project.

    Every field is optional. Missing values switch off the calculations that
    need them rather than raising.
    """

    project_type: str = ""
    square_footage: Optional[float] = None
    location: Optional[str] = None
    duration: Optional[float] = None  # estimated days
    complexity: Optional[Complexity] = None
    # Accepted for client compatibility; not used by any estimator.
    materials: list[str] = Field(default_factory=list)
    labor_hours: Optional[float] = None
    historical_projects: list[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Historical record
# ---------------------------------------------------------------------------


def _missing(value: Any) -> bool:
    if value is None:
        return True
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def _number(value: Any) -> float:
    """Coerce a nullable DB value to a finite float (0.0 when unknown)."""
    if _missing(value):
        return 0.0
    out = float(value)
    return out if math.isfinite(out) else 0.0


def _timestamp(value: Any) -> Optional[pd.Timestamp]:
    if _missing(value) or value == "":
        return None
    return pd.Timestamp(value)


class HistoricalProject(_CamelModel):
    """One completed project, as returned by a historical data provider."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )

    project_id: str
    project_type: str
    square_footage: float = 0.0
    location: str = ""
    budget: float = 0.0
    actual_cost: float = Field(default=0.0, ge=0)
    duration: float = Field(default=0.0, ge=0)
    variance: float = 0.0
    completion_date: str = ""
    cost_per_sq_ft: float = 0.0
    name: Optional[str] = None

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "HistoricalProject":
        """
        Build a HistoricalProject from a raw ``projects`` row.

        Expected keys: id, project_type, square_footage, location, budget,
        actual_cost, start_date, end_date, and optionally project_name.

        duration       — ceil((end − start) in days), never negative, 0 if a date is missing
        variance       — (actual − budget) / budget × 100, 0 when budget ≤ 0
        cost_per_sq_ft — actual / square_footage, 0 when square_footage ≤ 0
        """
        square_footage = _number(record.get("square_footage"))
        budget = _number(record.get("budget"))
        actual_cost = max(_number(record.get("actual_cost")), 0.0)

        start = _timestamp(record.get("start_date"))
        end = _timestamp(record.get("end_date"))
        if start is not None and end is not None:
            days = (end - start).total_seconds() / 86_400
            duration = float(max(math.ceil(days), 0))
        else:
            duration = 0.0

        variance = (actual_cost - budget) / budget * 100 if budget > 0 else 0.0
        cost_per_sq_ft = actual_cost / square_footage if square_footage > 0 else 0.0

        name = record.get("project_name")
        location = record.get("location")

        return cls(
            project_id=str(record["id"]),
            project_type=str(record.get("project_type") or ""),
            square_footage=square_footage,
            location="" if _missing(location) else str(location),
            budget=budget,
            actual_cost=actual_cost,
            duration=duration,
            variance=variance,
            completion_date=end.date().isoformat() if end is not None else "",
            cost_per_sq_ft=cost_per_sq_ft,
            name=None if _missing(name) else str(name),
        )


# ---------------------------------------------------------------------------
# Prediction result
# ---------------------------------------------------------------------------


class CostRange(_CamelModel):
    low: float = Field(ge=0)
    high: float = Field(ge=0)


class CostBreakdown(_CamelModel):
    labor: float = 0.0
    materials: float = 0.0
    equipment: float = 0.0
    overhead: float = 0.0
    contingency: float = 0.0


class CostFactor(_CamelModel):
    """A qualitative cost driver (positive impact) or saver (negative impact)."""

    name: str
    impact: float = Field(ge=-1, le=1)
    description: str
    weight: float = Field(ge=0, le=1)


class SimilarProject(_CamelModel):
    id: str
    name: str
    similarity: float = Field(ge=0, le=1)
    actual_cost: float
    variance: float  # percentage from budget
    duration: float
    lessons: list[str] = Field(default_factory=list)


class CostPrediction(_CamelModel):
    estimated_cost: float = Field(ge=0)
    confidence_level: float = Field(ge=0.1, le=1.0)
    range: CostRange
    breakdown: CostBreakdown
    factors: list[CostFactor] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)
    risk_score: int = Field(ge=0, le=100)
    similar_projects: list[SimilarProject] = Field(default_factory=list, max_length=5)


__all__ = [
    "Complexity",
    "CostBreakdown",
    "CostFactor",
    "CostPrediction",
    "CostPredictionInput",
    "CostRange",
    "HistoricalProject",
    "SimilarProject",
]
