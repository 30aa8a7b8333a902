"""
errors.py — Exception hierarchy for the cost prediction engine.
"""

from __future__ import annotations

from typing import Optional


class CostPredictionError(Exception):
    """Base exception for cost prediction errors."""


class DataSourceUnavailable(CostPredictionError):
    """The historical project data source failed or timed out.

    Attributes:
        project_type: project type filter of the failed fetch (None if unset)
        location:     location filter of the failed fetch (None if unset)
    """

    def __init__(
        self,
        message: str,
        project_type: Optional[str] = None,
        location: Optional[str] = None,
    ):
        super().__init__(message)
        self.project_type = project_type
        self.location = location
