"""
trend_forecaster.py
--------------------
Per-department accuracy trend fitting and extrapolation.

For each department with enough cells, the cells are indexed 0..n-1 in
month order and each derived model's accuracy (scaled to 0–100) is fitted
with ordinary least squares:

    slope     = (n·Σ(i·y) − Σi·Σy) / (n·Σi² − (Σi)²)
    intercept = (Σy − slope·Σi) / n

The fitted line is evaluated at every historical index and extrapolated
forecast.periods indices past the end. Every trend and forecast value is
clamped to [lower_bound, upper_bound].

The combined series averages departments index by index. Departments with
shorter series stop contributing once their points run out; the number of
contributors at each index is reported explicitly.
"""

import logging
import math
from typing import Dict, List, Sequence, Tuple

import numpy as np
import pandas as pd

from core.models import (
    CombinedPoint, ForecastPoint, ForecastSeries, HistoricalPoint,
    MetricCell, RegressionFit,
)
from config.config_loader import get_forecast_config

logger = logging.getLogger(__name__)


# =============================================================================
# REGRESSION HELPERS
# =============================================================================

def linear_regression(values: Sequence[float]) -> RegressionFit:
    """
    Least-squares fit of values against their index 0..n-1.

    n = 0 gives slope 0, intercept 0. A single point gives slope 0 and
    intercept equal to that point.
    """
    n = len(values)
    if n == 0:
        return RegressionFit(slope=0.0, intercept=0.0)

    x = np.arange(n, dtype=float)
    y = np.asarray(values, dtype=float)
    sum_x = float(x.sum())
    sum_y = float(y.sum())
    sum_xy = float(np.dot(x, y))
    sum_xx = float(np.dot(x, x))

    denominator = n * sum_xx - sum_x * sum_x
    slope = (n * sum_xy - sum_x * sum_y) / denominator if denominator != 0 else 0.0
    intercept = (sum_y - slope * sum_x) / n

    return RegressionFit(
        slope=slope,
        intercept=intercept,
        r_squared=_r_squared(values, slope, intercept),
    )


def _r_squared(values: Sequence[float], slope: float, intercept: float) -> float:
    v = np.array(values, dtype=float)
    predicted = slope * np.arange(len(v)) + intercept
    ss_res = np.sum((v - predicted) ** 2)
    ss_tot = np.sum((v - np.mean(v)) ** 2)
    return float(1.0 - ss_res / ss_tot) if ss_tot > 0 else 0.0


def clamp(value: float, lower: float = 0.0, upper: float = 100.0) -> float:
    """
    Pins value to [lower, upper]. Infinities go to the matching bound; NaN
    (an undefined fit, e.g. from an overflowing input) goes to lower.
    """
    if math.isnan(value):
        return lower
    return min(max(value, lower), upper)


def extrapolate(
    fit: RegressionFit,
    start_index: int,
    periods: int,
    lower: float = 0.0,
    upper: float = 100.0,
) -> List[float]:
    """Evaluates the fit at start_index .. start_index + periods - 1, clamped."""
    return [clamp(fit.at(start_index + i), lower, upper) for i in range(periods)]


def _to_period(month: str | None):
    if not month:
        return None
    try:
        period = pd.Period(month, freq="M")
    except (ValueError, TypeError, OverflowError):
        return None
    return None if pd.isna(period) else period


def month_label(month: str) -> str:
    """Formats "2024-03" as "Mar 2024". Values that don't parse as a month are returned as-is."""
    period = _to_period(month)
    return period.strftime("%b %Y") if period is not None else month


def future_labels(last_month: str | None, periods: int) -> List[str]:
    """Labels for the periods following last_month ("+1", "+2", … if it doesn't parse)."""
    last = _to_period(last_month)
    if last is None:
        return [f"+{k}" for k in range(1, periods + 1)]
    return [(last + k).strftime("%b %Y") for k in range(1, periods + 1)]


# =============================================================================
# FORECASTER
# =============================================================================

class TrendForecaster:
    """
    Usage:
        forecaster = TrendForecaster()
        series = forecaster.forecast(cells, grid.departments, grid.months)
        combined = forecaster.combine(series)
    """

    def __init__(self, periods: int | None = None):
        self.config = get_forecast_config()
        self.periods = periods if periods is not None else self.config["periods"]
        self.min_history = self.config["min_history"]
        self.scale = self.config["scale"]
        self.lower = self.config["lower_bound"]
        self.upper = self.config["upper_bound"]

    # -------------------------------------------------------------------------
    # PUBLIC INTERFACE
    # -------------------------------------------------------------------------

    def forecast(
        self,
        cells: Dict[Tuple[str, str], MetricCell],
        departments: Sequence[str],
        months: Sequence[str],
    ) -> Dict[str, ForecastSeries]:
        """
        Returns:
            Mapping department → ForecastSeries, in department order.
            Departments with fewer than min_history cells are absent.
        """
        labels = future_labels(months[-1] if months else None, self.periods)
        result: Dict[str, ForecastSeries] = {}

        for department in departments:
            dept_cells = sorted(
                (c for c in cells.values() if c.department == department),
                key=lambda c: c.month_index,
            )
            if len(dept_cells) < self.min_history:
                logger.debug(
                    f"Skipping forecast for {department}: "
                    f"{len(dept_cells)} cells < {self.min_history}."
                )
                continue
            result[department] = self.forecast_department(department, dept_cells, labels)

        return result

    def forecast_department(
        self, department: str, dept_cells: Sequence[MetricCell], labels: Sequence[str]
    ) -> ForecastSeries:
        """Fits and extrapolates one department's cells (already in month order)."""
        v1 = [c.model_1.accuracy * self.scale for c in dept_cells]
        v2 = [c.model_2.accuracy * self.scale for c in dept_cells]
        fit_v1 = linear_regression(v1)
        fit_v2 = linear_regression(v2)

        historical = [
            HistoricalPoint(
                index=i,
                month=cell.month,
                label=month_label(cell.month),
                model_1_actual=v1[i],
                model_2_actual=v2[i],
                model_1_trend=clamp(fit_v1.at(i), self.lower, self.upper),
                model_2_trend=clamp(fit_v2.at(i), self.lower, self.upper),
            )
            for i, cell in enumerate(dept_cells)
        ]

        start = len(dept_cells)
        forecast_v1 = extrapolate(fit_v1, start, self.periods, self.lower, self.upper)
        forecast_v2 = extrapolate(fit_v2, start, self.periods, self.lower, self.upper)
        forecast = [
            ForecastPoint(
                index=start + i,
                label=labels[i] if i < len(labels) else f"+{i + 1}",
                model_1_forecast=forecast_v1[i],
                model_2_forecast=forecast_v2[i],
            )
            for i in range(self.periods)
        ]

        return ForecastSeries(
            department=department,
            model_1_fit=fit_v1,
            model_2_fit=fit_v2,
            historical=historical,
            forecast=forecast,
        )

    @staticmethod
    def combine(series: Dict[str, ForecastSeries]) -> List[CombinedPoint]:
        """
        Cross-department average per index. Historical points contribute their
        actual values, forecast points their forecast values.
        """
        if not series:
            return []

        max_length = max(len(s) for s in series.values())
        combined: List[CombinedPoint] = []

        for i in range(max_length):
            v1_sum = v2_sum = 0.0
            contributors = 0
            kinds = set()
            label = ""

            for s in series.values():
                if i < len(s.historical):
                    point = s.historical[i]
                    v1, v2, kind = point.model_1_actual, point.model_2_actual, "historical"
                elif i < len(s):
                    point = s.forecast[i - len(s.historical)]
                    v1, v2, kind = point.model_1_forecast, point.model_2_forecast, "forecast"
                else:
                    continue

                if contributors == 0:
                    label = point.label
                v1_sum += v1
                v2_sum += v2
                kinds.add(kind)
                contributors += 1

            combined.append(CombinedPoint(
                index=i,
                label=label,
                kind=kinds.pop() if len(kinds) == 1 else "mixed",
                model_1=v1_sum / contributors,
                model_2=v2_sum / contributors,
                contributors=contributors,
            ))

        return combined
