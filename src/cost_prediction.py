"""
cost_prediction.py — Heuristic cost prediction for planned construction projects.

CostPredictor turns a CostPredictionInput plus the recent history of completed
projects into a CostPrediction:

  1. Fetch up to 50 completed projects (type / location filters when given)
  2. Three point estimates — average cost, least-squares fit on square
     footage, and average cost scaled by complexity / duration multipliers
  3. Weighted ensemble of the three
  4. Confidence from sample size, estimator agreement and historical variance
  5. Low / high range from the spread of historical costs
  6. Category breakdown (labor, materials, equipment, overhead, contingency)
  7. Qualitative cost factors
  8. Recommendations
  9. 0–100 risk score
 10. Top-5 most similar historical projects

A failing data source never blocks the caller: the history is treated as
empty and a low-confidence, zeroed prediction is returned.

Usage:
    python src/cost_prediction.py --project-type COMMERCIAL --square-footage 10000
"""

from __future__ import annotations

import argparse
import json
import math
import sys
import threading
from concurrent.futures import Future
from pathlib import Path
from typing import Callable, Optional, Sequence

import numpy as np
import structlog
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_none

sys.path.insert(0, str(Path(__file__).parent))

from config import Settings, settings
from errors import DataSourceUnavailable
from historical_data import DEFAULT_LIMIT, HistoricalDataProvider, SqlHistoricalDataProvider
from schemas import (
    CostBreakdown,
    CostFactor,
    CostPrediction,
    CostPredictionInput,
    CostRange,
    HistoricalProject,
    SimilarProject,
)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

COMPLEXITY_MULTIPLIERS: dict[str, float] = {"low": 0.85, "medium": 1.00, "high": 1.25}
DEFAULT_DURATION_DAYS = 90.0

# Sample size at which the regression estimate gets the largest weight
RICH_HISTORY_SIZE = 10
ENSEMBLE_WEIGHTS_RICH = {"average": 0.2, "regression": 0.5, "factor": 0.3}
ENSEMBLE_WEIGHTS_SPARSE = {"average": 0.4, "regression": 0.3, "factor": 0.3}

MIN_CONFIDENCE = 0.1
MAX_CONFIDENCE = 1.0

BASE_BREAKDOWN_RATIOS: dict[str, float] = {
    "labor":       0.35,
    "materials":   0.30,
    "equipment":   0.15,
    "overhead":    0.15,
    "contingency": 0.05,
}
# Adjusted ratios are NOT renormalised.
BREAKDOWN_ADJUSTMENTS: dict[str, dict[str, float]] = {
    "high": {"labor": +0.05, "contingency": +0.03, "materials": -0.08},
    "low":  {"labor": -0.05, "materials": +0.05},
}

HIGH_VARIANCE_PCT = 15.0
BASE_RISK_SCORE = 30.0
MAX_VARIANCE_RISK = 30.0

GENERAL_RECOMMENDATIONS = (
    "Lock in material prices early to avoid market fluctuations",
    "Schedule regular budget reviews every 2 weeks",
    "Maintain detailed change order documentation",
)

MAX_SIMILAR_PROJECTS = 5

# ---------------------------------------------------------------------------
# Input defaults & numeric guards
# ---------------------------------------------------------------------------


def _positive(value: Optional[float]) -> Optional[float]:
    """Return *value* when it is a finite number > 0, else None."""
    if value is None:
        return None
    value = float(value)
    if not math.isfinite(value) or value <= 0:
        return None
    return value


def _complexity(request: CostPredictionInput) -> str:
    return request.complexity or "medium"


def _finite(value: float) -> float:
    value = float(value)
    return value if math.isfinite(value) else 0.0


def _mean(values: Sequence[float]) -> float:
    return float(np.mean(values)) if len(values) else 0.0


def _std(values: Sequence[float]) -> float:
    """Population standard deviation; 0 for an empty sequence."""
    return float(np.std(values)) if len(values) else 0.0


def mean_duration(history: Sequence[HistoricalProject]) -> float:
    return _mean([p.duration for p in history])


def mean_absolute_variance(history: Sequence[HistoricalProject]) -> float:
    """Mean of |variance %| across the history; 0 when empty."""
    return _mean([abs(p.variance) for p in history])


# ===========================================================================
# Point estimates
# ===========================================================================


def average_estimate(history: Sequence[HistoricalProject]) -> float:
    """Arithmetic mean of actual cost."""
    return _mean([p.actual_cost for p in history])


def regression_estimate(
    history: Sequence[HistoricalProject], request: CostPredictionInput
) -> float:
    """
    Least-squares line of actual_cost on square_footage, evaluated at the
    requested square footage.

    Only records with square_footage > 0 take part. Falls back to the average
    estimate when the request has no square footage or no record qualifies.
    With a degenerate fit (all valid records share one square footage) the
    slope is 0 and the estimate is the mean cost of the valid records.
    """
    square_footage = _positive(request.square_footage)
    valid = [p for p in history if p.square_footage > 0]
    if square_footage is None or not valid:
        return average_estimate(history)

    x = np.array([p.square_footage for p in valid], dtype=float)
    y = np.array([p.actual_cost for p in valid], dtype=float)
    n = len(valid)

    sum_x, sum_y = x.sum(), y.sum()
    sum_xy, sum_x2 = (x * y).sum(), (x * x).sum()
    denominator = n * sum_x2 - sum_x * sum_x

    if abs(denominator) <= 1e-12 * n * sum_x2:
        slope = 0.0
    else:
        slope = (n * sum_xy - sum_x * sum_y) / denominator
    intercept = (sum_y - slope * sum_x) / n

    return _finite(slope * square_footage + intercept)


def factor_estimate(
    history: Sequence[HistoricalProject], request: CostPredictionInput
) -> float:
    """
    Average estimate scaled by compounding complexity and duration multipliers.

    complexity  low ×0.85 | medium ×1.00 | high ×1.25
    duration    > 1.5 × mean historical duration ×1.15
                < 0.5 × mean historical duration ×0.90
                (mean defaults to 90 days without history)
    """
    base = average_estimate(history)
    if base == 0:
        return 0.0

    multiplier = COMPLEXITY_MULTIPLIERS[_complexity(request)]

    duration = _positive(request.duration)
    if duration is not None:
        avg_duration = mean_duration(history) if history else DEFAULT_DURATION_DAYS
        if duration > avg_duration * 1.5:
            multiplier *= 1.15
        elif duration < avg_duration * 0.5:
            multiplier *= 0.90

    return base * multiplier


def ensemble_estimate(estimates: dict[str, float], sample_size: int) -> float:
    """Weighted sum of the average / regression / factor estimates."""
    weights = (
        ENSEMBLE_WEIGHTS_RICH if sample_size >= RICH_HISTORY_SIZE
        else ENSEMBLE_WEIGHTS_SPARSE
    )
    return sum(estimates[name] * w for name, w in weights.items())


# ===========================================================================
# Confidence & range
# ===========================================================================


def calculate_confidence(
    history: Sequence[HistoricalProject], estimates: dict[str, float]
) -> float:
    """
    Heuristic confidence in [0.1, 1.0].

    base = min(n / 20, 0.8)
    ×0.70 if the estimators' coefficient of variation > 0.30, ×0.85 if > 0.15
    ×1.10 if mean |variance| < 5 %, ×0.90 if > 20 %
    """
    confidence = min(len(history) / 20, 0.8)

    values = list(estimates.values())
    avg = _mean(values)
    cv = _std(values) / avg if avg > 0 else 1.0
    if cv > 0.3:
        confidence *= 0.7
    elif cv > 0.15:
        confidence *= 0.85

    if history:
        avg_variance = mean_absolute_variance(history)
        if avg_variance < 5:
            confidence *= 1.1
        elif avg_variance > 20:
            confidence *= 0.9

    return max(MIN_CONFIDENCE, min(MAX_CONFIDENCE, _finite(confidence)))


def calculate_range(
    estimate: float, confidence: float, history: Sequence[HistoricalProject]
) -> CostRange:
    """Symmetric band of ±2 × stdDev × rangeFactor, low floored at 0."""
    spread = _std([p.actual_cost for p in history])
    range_factor = (1 - confidence) * 0.5 + 0.1
    half_width = _finite(spread * range_factor * 2)
    return CostRange(
        low=max(0.0, estimate - half_width),
        high=estimate + half_width,
    )


# ===========================================================================
# Breakdown, factors, recommendations, risk
# ===========================================================================


def breakdown_costs(estimate: float, request: CostPredictionInput) -> CostBreakdown:
    ratios = dict(BASE_BREAKDOWN_RATIOS)
    for category, delta in BREAKDOWN_ADJUSTMENTS.get(_complexity(request), {}).items():
        ratios[category] += delta
    return CostBreakdown(**{category: estimate * r for category, r in ratios.items()})


def identify_cost_factors(
    history: Sequence[HistoricalProject], request: CostPredictionInput
) -> list[CostFactor]:
    factors: list[CostFactor] = []

    complexity = _complexity(request)
    if complexity == "high":
        factors.append(CostFactor(
            name="High Complexity",
            impact=0.25,
            description="Complex projects typically cost 15-25% more",
            weight=0.9,
        ))
    elif complexity == "low":
        factors.append(CostFactor(
            name="Low Complexity",
            impact=-0.15,
            description="Simpler projects can save 10-15% on costs",
            weight=0.7,
        ))

    # Thresholds here (1.5 / 0.7) differ from factor_estimate (1.5 / 0.5)
    duration = _positive(request.duration)
    if duration is not None and history:
        avg_duration = mean_duration(history)
        if duration > avg_duration * 1.5:
            factors.append(CostFactor(
                name="Extended Timeline",
                impact=0.15,
                description="Longer projects incur higher overhead and labor costs",
                weight=0.8,
            ))
        elif duration < avg_duration * 0.7:
            factors.append(CostFactor(
                name="Accelerated Schedule",
                impact=0.20,
                description="Rushed timelines require premium labor and expedited materials",
                weight=0.85,
            ))

    if history and mean_absolute_variance(history) > HIGH_VARIANCE_PCT:
        factors.append(CostFactor(
            name="High Historical Variance",
            impact=0.10,
            description="Similar projects have experienced significant cost overruns",
            weight=0.75,
        ))

    return factors


def generate_recommendations(
    factors: Sequence[CostFactor], history: Sequence[HistoricalProject]
) -> list[str]:
    recommendations: list[str] = []

    high_impact = [f for f in factors if f.impact > 0.15]
    if high_impact:
        names = ", ".join(f.name.lower() for f in high_impact)
        recommendations.append(f"Monitor {names} closely to control costs")

    if history:
        volatile = [p for p in history if abs(p.variance) > HIGH_VARIANCE_PCT]
        if len(volatile) / len(history) > 0.5:
            recommendations.append(
                "Add 10-15% contingency buffer due to historical cost volatility"
            )
            recommendations.append("Implement weekly cost tracking to catch overruns early")

    recommendations.extend(GENERAL_RECOMMENDATIONS)
    return recommendations


def calculate_risk_score(
    factors: Sequence[CostFactor], history: Sequence[HistoricalProject]
) -> int:
    """30 + Σ(impact × weight × 50) over cost drivers + min(mean |variance|, 30)."""
    score = BASE_RISK_SCORE
    for factor in factors:
        if factor.impact > 0:
            score += factor.impact * factor.weight * 50
    if history:
        score += min(mean_absolute_variance(history), MAX_VARIANCE_RISK)

    # Half-up rounding
    rounded = math.floor(_finite(score) + 0.5)
    return int(min(100, max(0, rounded)))


# ===========================================================================
# Similar projects
# ===========================================================================


def similarity_score(project: HistoricalProject, request: CostPredictionInput) -> float:
    """
    Multiplicative similarity in [0, 1]:
      ×0.5 different project type, ×0.8 different location,
      ×max(0.5, 1 − relative size difference),
      ×max(0.7, 1 − 0.5 × relative duration difference)
    """
    similarity = 1.0

    if request.project_type and project.project_type != request.project_type:
        similarity *= 0.5

    if request.location and project.location != request.location:
        similarity *= 0.8

    square_footage = _positive(request.square_footage)
    if square_footage is not None and project.square_footage > 0:
        size_diff = abs(square_footage - project.square_footage) / square_footage
        similarity *= max(0.5, 1 - size_diff)

    duration = _positive(request.duration)
    if duration is not None and project.duration > 0:
        duration_diff = abs(duration - project.duration) / duration
        similarity *= max(0.7, 1 - duration_diff * 0.5)

    return max(0.0, min(1.0, _finite(similarity)))


def find_similar_projects(
    history: Sequence[HistoricalProject], request: CostPredictionInput
) -> list[SimilarProject]:
    scored = [(similarity_score(p, request), p) for p in history]
    # sorted() is stable: ties keep provider order (newest first)
    scored = sorted(scored, key=lambda item: item[0], reverse=True)

    return [
        SimilarProject(
            id=p.project_id,
            name=p.name or f"Project {p.project_type}",
            similarity=score,
            actual_cost=p.actual_cost,
            variance=p.variance,
            duration=p.duration,
        )
        for score, p in scored[:MAX_SIMILAR_PROJECTS]
    ]


# ===========================================================================
# Predictor
# ===========================================================================


def _describe_error(exc: BaseException) -> str:
    """``"<Type>: <message>"``, or just the type name for message-less errors."""
    message = str(exc)
    name = type(exc).__name__
    return f"{name}: {message}" if message else name


class CostPredictor:
    """
    Stateless cost predictor over an injected historical data provider.

    Parameters
    ----------
    provider        — HistoricalDataProvider (callable taking project_type,
                      location, limit)
    history_limit   — maximum number of historical projects considered
    fetch_timeout   — seconds to wait for the provider (None = no limit)
    fetch_attempts  — total provider attempts before giving up (≥ 1)
    logger          — structlog-style logger; defaults to the module logger
    """

    def __init__(
        self,
        provider: HistoricalDataProvider,
        *,
        history_limit: int = DEFAULT_LIMIT,
        fetch_timeout: Optional[float] = None,
        fetch_attempts: int = 1,
        logger=None,
    ):
        self._provider = provider
        self.history_limit = history_limit
        self.fetch_timeout = fetch_timeout
        self.fetch_attempts = max(1, int(fetch_attempts))
        self._logger = logger or structlog.get_logger(__name__)

    # ── Historical data ───────────────────────────────────────────────────

    def _call_provider(self, fn: Callable[[], list[HistoricalProject]]):
        """
        Call *fn*, waiting at most ``fetch_timeout`` seconds.

        The call runs on a daemon thread: a provider that never returns is
        abandoned and does not hold the process open at exit.
        """
        if self.fetch_timeout is None:
            return fn()

        future: Future = Future()

        def run():
            if not future.set_running_or_notify_cancel():
                return
            try:
                future.set_result(fn())
            except Exception as exc:
                future.set_exception(exc)

        threading.Thread(target=run, name="historical-fetch", daemon=True).start()
        return future.result(timeout=self.fetch_timeout)

    def _log(self, level: str, event: str, **context) -> None:
        # A broken log sink must not turn into a failed prediction
        try:
            getattr(self._logger, level)(event, **context)
        except Exception:
            pass

    def _fetch(self, project_type: Optional[str], location: Optional[str]):
        def attempt():
            return self._provider(
                project_type=project_type, location=location, limit=self.history_limit
            )

        try:
            for retry_state in Retrying(
                stop=stop_after_attempt(self.fetch_attempts),
                wait=wait_none(),
                retry=retry_if_exception_type(Exception),
                reraise=True,
            ):
                with retry_state:
                    return list(self._call_provider(attempt))
        except Exception as exc:
            raise DataSourceUnavailable(
                f"historical data fetch failed: {_describe_error(exc)}",
                project_type=project_type,
                location=location,
            ) from exc

    def load_history(self, request: CostPredictionInput) -> list[HistoricalProject]:
        """Fetch the history for *request*; an unavailable source yields []."""
        project_type = request.project_type or None
        location = request.location or None
        try:
            history = self._fetch(project_type, location)
        except DataSourceUnavailable as exc:
            self._log(
                "warning",
                "historical_fetch_failed",
                project_type=exc.project_type,
                location=exc.location,
                error=_describe_error(exc.__cause__ or exc),
            )
            return []
        return history[: self.history_limit]

    # ── Prediction ────────────────────────────────────────────────────────

    def predict_cost(self, request: Optional[CostPredictionInput] = None) -> CostPrediction:
        """Run the full prediction pipeline. Never raises for data problems."""
        request = request or CostPredictionInput()
        history = self.load_history(request)

        estimates = {
            "average":    _finite(average_estimate(history)),
            "regression": _finite(regression_estimate(history, request)),
            "factor":     _finite(factor_estimate(history, request)),
        }
        estimated_cost = max(0.0, _finite(ensemble_estimate(estimates, len(history))))

        confidence = calculate_confidence(history, estimates)
        cost_range = calculate_range(estimated_cost, confidence, history)
        breakdown = breakdown_costs(estimated_cost, request)
        factors = identify_cost_factors(history, request)
        recommendations = generate_recommendations(factors, history)
        risk_score = calculate_risk_score(factors, history)
        similar = find_similar_projects(history, request)

        self._log(
            "info",
            "cost_prediction_completed",
            project_type=request.project_type or None,
            sample_size=len(history),
            estimated_cost=round(estimated_cost, 2),
            confidence=round(confidence, 3),
            risk_score=risk_score,
        )

        return CostPrediction(
            estimated_cost=estimated_cost,
            confidence_level=confidence,
            range=cost_range,
            breakdown=breakdown,
            factors=factors,
            recommendations=recommendations,
            risk_score=risk_score,
            similar_projects=similar,
        )


def create_predictor(engine=None, config: Settings = settings) -> CostPredictor:
    """Build a CostPredictor reading history from the configured database."""
    if engine is None:
        from database import get_engine

        engine = get_engine(config.database_url)
    return CostPredictor(
        SqlHistoricalDataProvider(engine),
        history_limit=config.history_limit,
        fetch_timeout=config.fetch_timeout_seconds,
        fetch_attempts=config.fetch_attempts,
    )


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------


def _parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Predict construction project cost.")
    parser.add_argument("--project-type", default="")
    parser.add_argument("--square-footage", type=float)
    parser.add_argument("--location")
    parser.add_argument("--duration", type=float, help="estimated duration in days")
    parser.add_argument("--complexity", choices=["low", "medium", "high"])
    parser.add_argument("--database-url", default=settings.database_url)
    parser.add_argument("--json", action="store_true", help="print camelCase JSON")
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> None:
    from database import get_engine
    from logging_config import configure_logging

    args = _parse_args(argv)
    configure_logging(settings.log_level)

    request = CostPredictionInput(
        project_type=args.project_type,
        square_footage=args.square_footage,
        location=args.location,
        duration=args.duration,
        complexity=args.complexity,
    )
    prediction = create_predictor(get_engine(args.database_url)).predict_cost(request)

    if args.json:
        print(json.dumps(prediction.model_dump(by_alias=True), indent=2))
        return

    BAR = "=" * 70

    def section(title: str) -> None:
        print(f"\n{BAR}\n  {title}\n{BAR}")

    section(f"Cost Prediction — {request.project_type or 'any type'}")
    print(f"  Estimated cost : ${prediction.estimated_cost:,.0f}")
    print(f"  Range          : ${prediction.range.low:,.0f} – ${prediction.range.high:,.0f}")
    print(f"  Confidence     : {prediction.confidence_level:.0%}")
    print(f"  Risk score     : {prediction.risk_score}/100")

    section("Breakdown")
    for category, amount in prediction.breakdown.model_dump().items():
        print(f"  {category:<12} ${amount:>14,.0f}")

    section("Cost Factors")
    if not prediction.factors:
        print("  None identified.")
    for f in prediction.factors:
        print(f"  {f.name:<26} impact={f.impact:+.2f}  weight={f.weight:.2f}  {f.description}")

    section("Recommendations")
    for r in prediction.recommendations:
        print(f"  • {r}")

    section("Similar Projects")
    if not prediction.similar_projects:
        print("  No completed projects found — run data_generator.py first.")
    for s in prediction.similar_projects:
        print(
            f"    [{s.id:>4}] {s.name[:34]:<34}  sim={s.similarity:.2f}  "
            f"cost=${s.actual_cost:,.0f}  var={s.variance:+.1f}%  {s.duration:.0f}d"
        )
    print(f"\n{BAR}\n")


if __name__ == "__main__":
    main()
