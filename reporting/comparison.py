"""
comparison.py
--------------
Comparison views over department summaries and forecasts. These are the
numbers behind the dashboard's KPI comparison, department ranking, KPI
share and executive summary panels. Rendering is left to the caller.

Improvements that are None (zero baseline) are skipped when averaging or
summing.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from core.models import DepartmentSummary, ForecastSeries, KPIS, MODEL_KEYS
from config.config_loader import get_forecast_config

ALL_DEPARTMENTS = "All"

KPI_LABELS = {
    "accuracy": "Accuracy",
    "turnaround": "Turnaround",
    "cost": "Cost",
    "satisfaction": "Satisfaction",
}


@dataclass
class ExecutiveSummary:
    """Headline figures for a run."""

    avg_improvement: Dict[str, Optional[float]]          # model key → mean KPI improvement
    winner: Optional[str]                                # model key with highest mean
    strongest_trend_department: Optional[str] = None     # steepest model_2 accuracy slope
    strongest_trend_slope: Optional[float] = None
    strongest_trend_r_squared: Optional[float] = None
    final_forecast: Dict[str, float] = field(default_factory=dict)   # department → 0–1 accuracy


def _mean_of_present(values) -> Optional[float]:
    present = [v for v in values if v is not None]
    return sum(present) / len(present) if present else None


def _sum_of_present(values) -> float:
    return sum(v for v in values if v is not None)


def kpi_comparison(
    summaries: Sequence[DepartmentSummary], department: str = ALL_DEPARTMENTS
) -> List[dict]:
    """
    One row per KPI: {"kpi", "model_1", "model_2"}.

    For "All", each value is the mean improvement across departments. For a
    named department, its own improvements. Unknown department → [].
    """
    if not summaries:
        return []

    if department == ALL_DEPARTMENTS:
        return [
            {
                "kpi": KPI_LABELS[kpi],
                **{
                    model_key: _mean_of_present(s.improvement(model_key, kpi) for s in summaries)
                    for model_key in MODEL_KEYS
                },
            }
            for kpi in KPIS
        ]

    summary = next((s for s in summaries if s.department == department), None)
    if summary is None:
        return []

    return [
        {
            "kpi": KPI_LABELS[kpi],
            **{model_key: summary.improvement(model_key, kpi) for model_key in MODEL_KEYS},
        }
        for kpi in KPIS
    ]


def overall_scores(rows: Sequence[dict]) -> Dict[str, float]:
    """Per model, the sum of its KPI improvements across comparison rows."""
    return {
        model_key: _sum_of_present(row[model_key] for row in rows)
        for model_key in MODEL_KEYS
    }


def department_totals(summaries: Sequence[DepartmentSummary]) -> List[dict]:
    """Per department, the sum of the four KPI improvements for each model."""
    return [
        {
            "department": s.department,
            **{
                f"{model_key}_total": _sum_of_present(s.improvement(model_key, kpi) for kpi in KPIS)
                for model_key in MODEL_KEYS
            },
            "case_count": s.case_count,
        }
        for s in summaries
    ]


def kpi_share(rows: Sequence[dict], model_key: str = "model_2") -> List[dict]:
    """
    Each KPI's share of a model's total absolute improvement, in percent
    (rounded to 1 decimal). Empty when there is nothing to share.
    """
    magnitudes = [(row["kpi"], abs(row[model_key] or 0.0)) for row in rows]
    total = sum(value for _, value in magnitudes)
    if total == 0:
        return []

    return [
        {"kpi": kpi, "value": value, "percentage": round(value / total * 100, 1)}
        for kpi, value in magnitudes
    ]


def executive_summary(
    summaries: Sequence[DepartmentSummary],
    forecasts: Dict[str, ForecastSeries],
) -> ExecutiveSummary:
    """Mean improvement per model, the winning model and forecast headlines."""
    rows = kpi_comparison(summaries)
    avg_improvement = {
        model_key: _mean_of_present(row[model_key] for row in rows)
        for model_key in MODEL_KEYS
    }

    ranked = [(value, key) for key, value in avg_improvement.items() if value is not None]
    winner = max(ranked)[1] if ranked else None

    result = ExecutiveSummary(avg_improvement=avg_improvement, winner=winner)

    if forecasts:
        scale = get_forecast_config()["scale"]
        strongest = max(forecasts.values(), key=lambda s: s.model_2_fit.slope)
        result.strongest_trend_department = strongest.department
        result.strongest_trend_slope = strongest.model_2_fit.slope
        result.strongest_trend_r_squared = strongest.model_2_fit.r_squared
        result.final_forecast = {
            department: s.forecast[-1].model_2_forecast / scale
            for department, s in forecasts.items()
            if s.forecast
        }

    return result
