"""
input_quality_monitor.py
-------------------------
Input quality monitoring for the model comparison engine.

The engine recovers silently from imperfect input (fallback values, dropped
departments, empty cells, short histories). This monitor reports how much
of that recovery happened so a run can be judged before its numbers are
trusted. It never changes engine output.

Four monitoring dimensions:
    1. Fallback rate: share of records per numeric field that took the
       fallback value (missing, blank, non-numeric or zero).
    2. Department overflow: departments dropped by the department cap.
    3. Grid coverage: populated cells / (departments × months).
    4. Forecast history: departments with too few cells to forecast.

All thresholds come from config.yaml.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Tuple

import pandas as pd

from core.models import Grid, MetricCell
from core.records import ensure_prepared, fallback_mask, NUMERIC_COLUMNS
from config.config_loader import get_monitoring_config, get_forecast_config

logger = logging.getLogger(__name__)


@dataclass
class QualityAlert:
    """A single input quality alert."""
    alert_type: str                  # "FALLBACK_RATE" | "DEPARTMENT_OVERFLOW" | "SPARSE_GRID" | "INSUFFICIENT_HISTORY"
    severity: str                    # "INFO" | "WARNING" | "CRITICAL"
    scope: str                       # Department name, field name or "ALL"
    metric_name: str                 # e.g. "fallback_ratio", "grid_coverage"
    metric_value: float
    threshold: float
    message: str


@dataclass
class QualityReport:
    """Full input quality report, one per run."""
    run_timestamp: str
    record_count: int
    fallback_ratios: Dict[str, float] = field(default_factory=dict)
    alerts: List[QualityAlert] = field(default_factory=list)
    summary: dict = field(default_factory=dict)


class InputQualityMonitor:
    """
    Usage:
        monitor = InputQualityMonitor()
        report = monitor.run(records, grid, cells)
    """

    def __init__(self):
        self.config = get_monitoring_config()
        self.fallback_warning = self.config["fallback_warning_ratio"]
        self.fallback_critical = self.config["fallback_critical_ratio"]
        self.min_grid_coverage = self.config["min_grid_coverage"]
        self.min_history = get_forecast_config()["min_history"]

    # -------------------------------------------------------------------------
    # PUBLIC INTERFACE
    # -------------------------------------------------------------------------

    def run(self, records, grid: Grid, cells: Dict[Tuple[str, str], MetricCell]) -> QualityReport:
        df = ensure_prepared(records)
        df = df[df["department"].isin(grid.departments) & df["month"].isin(grid.months)]

        alerts: List[QualityAlert] = []

        # --- 1. Fallback rates ---
        ratios = self._fallback_ratios(df)
        alerts.extend(self._check_fallback_rates(ratios))

        # --- 2. Department overflow ---
        alerts.extend(self._check_overflow(grid))

        # --- 3. Grid coverage ---
        alerts.extend(self._check_grid_coverage(grid, cells))

        # --- 4. Forecast history ---
        alerts.extend(self._check_history(grid, cells))

        summary = {
            "total_alerts": len(alerts),
            "critical_alerts": sum(1 for a in alerts if a.severity == "CRITICAL"),
            "warning_alerts": sum(1 for a in alerts if a.severity == "WARNING"),
            "info_alerts": sum(1 for a in alerts if a.severity == "INFO"),
        }

        logger.debug(f"Input quality check complete: {summary}")

        return QualityReport(
            run_timestamp=pd.Timestamp.now().isoformat(),
            record_count=len(df),
            fallback_ratios=ratios,
            alerts=alerts,
            summary=summary,
        )

    # -------------------------------------------------------------------------
    # INTERNAL: FALLBACK RATES
    # -------------------------------------------------------------------------

    @staticmethod
    def _fallback_ratios(df: pd.DataFrame) -> Dict[str, float]:
        if df.empty:
            return {column: 0.0 for column in NUMERIC_COLUMNS}
        return {
            column: round(float(fallback_mask(df[column]).mean()), 4)
            for column in NUMERIC_COLUMNS
        }

    def _check_fallback_rates(self, ratios: Dict[str, float]) -> List[QualityAlert]:
        alerts = []
        for column, ratio in ratios.items():
            if ratio <= self.fallback_warning:
                continue
            severity = "CRITICAL" if ratio > self.fallback_critical else "WARNING"
            alerts.append(QualityAlert(
                alert_type="FALLBACK_RATE",
                severity=severity,
                scope=column,
                metric_name="fallback_ratio",
                metric_value=ratio,
                threshold=self.fallback_critical if severity == "CRITICAL" else self.fallback_warning,
                message=f"{ratio:.1%} of records used the fallback value for '{column}'.",
            ))
        return alerts

    # -------------------------------------------------------------------------
    # INTERNAL: GRID CHECKS
    # -------------------------------------------------------------------------

    @staticmethod
    def _check_overflow(grid: Grid) -> List[QualityAlert]:
        if not grid.overflow:
            return []
        return [QualityAlert(
            alert_type="DEPARTMENT_OVERFLOW",
            severity="INFO",
            scope="ALL",
            metric_name="dropped_departments",
            metric_value=float(len(grid.overflow)),
            threshold=float(len(grid.departments)),
            message=f"Department cap dropped {len(grid.overflow)} departments: {list(grid.overflow)}.",
        )]

    def _check_grid_coverage(self, grid: Grid, cells) -> List[QualityAlert]:
        slots = len(grid.departments) * len(grid.months)
        if slots == 0:
            return []
        coverage = len(cells) / slots
        if coverage >= self.min_grid_coverage:
            return []
        return [QualityAlert(
            alert_type="SPARSE_GRID",
            severity="INFO",
            scope="ALL",
            metric_name="grid_coverage",
            metric_value=round(coverage, 4),
            threshold=self.min_grid_coverage,
            message=f"Only {len(cells)} of {slots} department-month cells have data.",
        )]

    def _check_history(self, grid: Grid, cells) -> List[QualityAlert]:
        alerts = []
        for department in grid.departments:
            count = sum(1 for c in cells.values() if c.department == department)
            if count >= self.min_history:
                continue
            alerts.append(QualityAlert(
                alert_type="INSUFFICIENT_HISTORY",
                severity="INFO",
                scope=department,
                metric_name="cell_count",
                metric_value=float(count),
                threshold=float(self.min_history),
                message=f"{department} has {count} cells; no forecast produced.",
            ))
        return alerts
