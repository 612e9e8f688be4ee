"""
pipeline.py
------------
Main orchestration layer. Wires together:
    1. GroupExtractor        →  department and month grid
    2. MetricSynthesizer     →  MetricCells per populated (department, month)
    3. DepartmentAggregator  →  DepartmentSummaries with % improvements
    4. TrendForecaster       →  ForecastSeries per department + combined series
    5. Output serialization  →  flat DataFrames for the presentation layer

This is the single entry point for running the engine. Everything else
is internal machinery.

Usage:
    from pipeline import ModelComparisonPipeline

    pipeline = ModelComparisonPipeline(seed=42)
    result = pipeline.run(records)
    summary_df = pipeline.summary_frame(result)
"""

import logging

import numpy as np
import pandas as pd

from core.models import EngineResult, KPIS, MODEL_KEYS
from core.records import prepare_records
from core.group_extractor import GroupExtractor
from core.metric_synthesizer import MetricSynthesizer
from aggregation.department_aggregator import DepartmentAggregator
from forecasting.trend_forecaster import TrendForecaster
from config.config_loader import get_grouping_config

logger = logging.getLogger(__name__)


CELL_COLUMNS = (
    ["department", "month", "month_index", "case_count", "avg_revenue"]
    + [f"{key}_{kpi}" for key in ("baseline",) + MODEL_KEYS for kpi in KPIS]
)
SUMMARY_COLUMNS = (
    ["department", "case_count", "avg_revenue", "cell_count"]
    + [f"{key}_{kpi}" for key in ("baseline",) + MODEL_KEYS for kpi in KPIS]
    + [f"{key}_{kpi}_imp" for key in MODEL_KEYS for kpi in KPIS]
)
FORECAST_COLUMNS = [
    "department", "index", "label", "type",
    "model_1_actual", "model_2_actual",
    "model_1_trend", "model_2_trend",
    "model_1_forecast", "model_2_forecast",
]
COMBINED_COLUMNS = ["index", "label", "type", "model_1", "model_2", "contributors"]


class ModelComparisonPipeline:
    """
    End-to-end metrics synthesis and forecasting pipeline.

    Stateless between runs: every call to run() recomputes everything from
    the records it is given.
    """

    def __init__(
        self,
        seed: int | None = None,
        jitter_scale: float = 1.0,
        max_departments: int | None = None,
        rng: np.random.Generator | None = None,
    ):
        """
        Args:
            seed: Seed for the jitter generator. Ignored when rng is given.
            jitter_scale: Multiplier on the configured jitter amplitudes.
                0.0 gives deterministic output.
            max_departments: Override the department cap from config.
            rng: Explicit jitter generator.
        """
        self.rng = rng if rng is not None else np.random.default_rng(seed)
        self.extractor = GroupExtractor(max_departments=max_departments)
        self.synthesizer = MetricSynthesizer(rng=self.rng, jitter_scale=jitter_scale)
        self.aggregator = DepartmentAggregator()
        self.forecaster = TrendForecaster()

        logger.info(
            f"Pipeline initialized. "
            f"Department cap: {max_departments or get_grouping_config()['max_departments']}. "
            f"Jitter scale: {jitter_scale}. Forecast periods: {self.forecaster.periods}."
        )

    # -------------------------------------------------------------------------
    # PUBLIC INTERFACE
    # -------------------------------------------------------------------------

    def run(self, records) -> EngineResult:
        """
        Run the full engine over one snapshot of records.

        Args:
            records: Sequence of string-keyed mappings (or a DataFrame of them).

        Returns:
            EngineResult. Empty input gives an empty result, not an error.

        Raises:
            TypeError: If records is not a sequence of mappings.
        """
        df = prepare_records(records)
        logger.info(f"Pipeline starting. Input: {len(df):,} records.")

        # --- Stage 1: Grid ---
        grid = self.extractor.extract(df)
        logger.info(
            f"Stage 1 complete. Departments: {len(grid.departments)}, months: {len(grid.months)}."
        )

        # --- Stage 2: Cell synthesis ---
        cells = self.synthesizer.synthesize(df, grid)
        logger.info(f"Stage 2 complete. Cells: {len(cells):,}.")

        # --- Stage 3: Department rollup ---
        summaries = self.aggregator.aggregate(cells, grid.departments)
        logger.info(f"Stage 3 complete. Department summaries: {len(summaries)}.")

        # --- Stage 4: Forecast ---
        forecasts = self.forecaster.forecast(cells, grid.departments, grid.months)
        combined = self.forecaster.combine(forecasts)
        logger.info(
            f"Pipeline complete. Forecasts: {len(forecasts)}, combined points: {len(combined)}."
        )

        return EngineResult(
            departments=list(grid.departments),
            months=list(grid.months),
            cells=cells,
            summaries=summaries,
            forecasts=forecasts,
            combined=combined,
        )

    # -------------------------------------------------------------------------
    # OUTPUT SERIALIZATION
    # -------------------------------------------------------------------------

    @staticmethod
    def cells_frame(result: EngineResult) -> pd.DataFrame:
        """One row per MetricCell."""
        rows = []
        for cell in result.cells.values():
            row = {
                "department": cell.department,
                "month": cell.month,
                "month_index": cell.month_index,
                "case_count": cell.case_count,
                "avg_revenue": cell.avg_revenue,
            }
            for key in ("baseline",) + MODEL_KEYS:
                metrics = cell.metrics_for(key)
                row.update({f"{key}_{kpi}": metrics.get(kpi) for kpi in KPIS})
            rows.append(row)
        return pd.DataFrame(rows, columns=CELL_COLUMNS)

    @staticmethod
    def summary_frame(result: EngineResult) -> pd.DataFrame:
        """One row per DepartmentSummary, in department order."""
        rows = []
        for s in result.summaries:
            row = {
                "department": s.department,
                "case_count": s.case_count,
                "avg_revenue": s.avg_revenue,
                "cell_count": s.cell_count,
            }
            for key in ("baseline",) + MODEL_KEYS:
                metrics = getattr(s, key)
                row.update({f"{key}_{kpi}": metrics.get(kpi) for kpi in KPIS})
            for key in MODEL_KEYS:
                row.update({f"{key}_{kpi}_imp": s.improvement(key, kpi) for kpi in KPIS})
            rows.append(row)
        return pd.DataFrame(rows, columns=SUMMARY_COLUMNS)

    @staticmethod
    def forecast_frame(result: EngineResult) -> pd.DataFrame:
        """Historical and forecast points for every forecast department."""
        rows = []
        for department, series in result.forecasts.items():
            for p in series.historical:
                rows.append({
                    "department": department,
                    "index": p.index,
                    "label": p.label,
                    "type": "historical",
                    "model_1_actual": p.model_1_actual,
                    "model_2_actual": p.model_2_actual,
                    "model_1_trend": p.model_1_trend,
                    "model_2_trend": p.model_2_trend,
                })
            for p in series.forecast:
                rows.append({
                    "department": department,
                    "index": p.index,
                    "label": p.label,
                    "type": "forecast",
                    "model_1_forecast": p.model_1_forecast,
                    "model_2_forecast": p.model_2_forecast,
                })
        return pd.DataFrame(rows, columns=FORECAST_COLUMNS)

    @staticmethod
    def combined_frame(result: EngineResult) -> pd.DataFrame:
        """The cross-department combined series."""
        rows = [
            {
                "index": p.index,
                "label": p.label,
                "type": p.kind,
                "model_1": p.model_1,
                "model_2": p.model_2,
                "contributors": p.contributors,
            }
            for p in result.combined
        ]
        return pd.DataFrame(rows, columns=COMBINED_COLUMNS)
