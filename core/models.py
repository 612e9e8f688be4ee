"""
models.py
----------
Core domain models. These are the typed contracts between engine layers.

- MetricCell: Output of the synthesis layer. One per populated
  (department, month) pair. Consumed by both the aggregator and the
  forecaster.

- DepartmentSummary: Output of the aggregation layer. Averaged metrics and
  percentage improvement of each derived model over baseline.

- ForecastSeries / CombinedPoint: Output of the forecasting layer.

All derived entities are rebuilt on every run; nothing here is cached.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple


KPIS = ("accuracy", "turnaround", "cost", "satisfaction")

# KPIs where a lower value is the better outcome.
LOWER_IS_BETTER = frozenset({"turnaround", "cost"})

BASELINE_KEY = "baseline"
MODEL_KEYS = ("model_1", "model_2")


@dataclass(frozen=True)
class Grid:
    """Iteration grid discovered from the input records."""

    departments: Tuple[str, ...]
    months: Tuple[str, ...]
    overflow: Tuple[str, ...] = ()   # Departments dropped by the cap


@dataclass(frozen=True)
class GroupMeans:
    """Per-field means over the records of one (department, month) pair."""

    case_count: int
    avg_cmi: float
    avg_los: float
    avg_severity: float
    avg_revenue: float


@dataclass(frozen=True)
class MetricSet:
    """One scoring method's KPI values for a cell (or a department average)."""

    accuracy: float                  # 0.0 – 1.0
    turnaround: float                # Hours
    cost: float                      # Cost units
    satisfaction: float              # 1 – 5 scale

    def get(self, kpi: str) -> float:
        return getattr(self, kpi)


@dataclass(frozen=True)
class MetricCell:
    """
    Metrics for one populated (department, month) pair.

    Produced by MetricSynthesizer. Absent pairs have no cell at all, so a
    missing cell is never confused with a zero-valued one.
    """

    # Identity
    department: str
    month: str
    month_index: int                 # Position of month in the global month list

    # Volume
    case_count: int
    avg_revenue: float

    # Metrics per scoring method
    baseline: MetricSet
    model_1: MetricSet
    model_2: MetricSet

    def metrics_for(self, model_key: str) -> MetricSet:
        return getattr(self, model_key)


@dataclass(frozen=True)
class DepartmentSummary:
    """
    Department-level rollup of all of a department's cells.

    improvements maps model key → KPI → percentage improvement over baseline
    (positive = better). A value is None when the baseline mean is zero and
    the configured policy reports it as missing.
    """

    department: str
    case_count: int
    avg_revenue: float
    cell_count: int

    baseline: MetricSet
    model_1: MetricSet
    model_2: MetricSet

    improvements: Dict[str, Dict[str, Optional[float]]] = field(default_factory=dict)

    def improvement(self, model_key: str, kpi: str) -> Optional[float]:
        return self.improvements[model_key][kpi]


@dataclass(frozen=True)
class RegressionFit:
    slope: float
    intercept: float
    r_squared: float = 0.0

    def at(self, index: float) -> float:
        return self.slope * index + self.intercept


@dataclass(frozen=True)
class HistoricalPoint:
    index: int
    month: str
    label: str
    model_1_actual: float
    model_2_actual: float
    model_1_trend: float
    model_2_trend: float


@dataclass(frozen=True)
class ForecastPoint:
    index: int
    label: str
    model_1_forecast: float
    model_2_forecast: float


@dataclass
class ForecastSeries:
    """Accuracy trend and projection for one department (0–100 scale)."""

    department: str
    model_1_fit: RegressionFit
    model_2_fit: RegressionFit
    historical: List[HistoricalPoint] = field(default_factory=list)
    forecast: List[ForecastPoint] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.historical) + len(self.forecast)


@dataclass(frozen=True)
class CombinedPoint:
    """Cross-department average at one time index."""

    index: int
    label: str
    kind: str                        # "historical" | "forecast" | "mixed"
    model_1: float
    model_2: float
    contributors: int                # Departments with a point at this index


@dataclass
class EngineResult:
    """Everything one engine run produces."""

    departments: List[str] = field(default_factory=list)
    months: List[str] = field(default_factory=list)
    cells: Dict[Tuple[str, str], MetricCell] = field(default_factory=dict)
    summaries: List[DepartmentSummary] = field(default_factory=list)
    forecasts: Dict[str, ForecastSeries] = field(default_factory=dict)
    combined: List[CombinedPoint] = field(default_factory=list)
