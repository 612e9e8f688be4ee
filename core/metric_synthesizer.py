"""
metric_synthesizer.py
----------------------
Per-cell metric synthesis. For every (department, month) pair of the grid
that has at least one matching record, computes field means and scores
them with the baseline and both derived models.

Design decisions:
    - The grid is sparse. A pair with no records produces no cell rather
      than a zero-valued one.
    - Numeric fields take their fallback per record before averaging
      (see core.records.parse_numeric). Records are never excluded.
    - Randomness comes from an injected numpy Generator. Cells are visited
      department-major, month-minor, and model_1 draws before model_2, so a
      seeded generator reproduces a run exactly.
"""

import logging
from typing import Dict, Tuple

import numpy as np

from core.models import Grid, GroupMeans, MetricCell
from core.records import ensure_prepared, parse_numeric_columns
from scorers.base_scorer import BaselineScorer
from scorers.derived_scorers import get_derived_scorers

logger = logging.getLogger(__name__)


class MetricSynthesizer:
    """
    Usage:
        synthesizer = MetricSynthesizer(rng=np.random.default_rng(7))
        cells = synthesizer.synthesize(records, grid)
    """

    def __init__(self, rng: np.random.Generator | None = None, jitter_scale: float = 1.0):
        """
        Args:
            rng: Source of accuracy jitter. Defaults to an unseeded generator.
            jitter_scale: Multiplier on every configured jitter amplitude.
                0.0 disables jitter.
        """
        self.rng = rng if rng is not None else np.random.default_rng()
        self.baseline_scorer = BaselineScorer()
        self.derived_scorers = get_derived_scorers(jitter_scale=jitter_scale)

    # -------------------------------------------------------------------------
    # PUBLIC INTERFACE
    # -------------------------------------------------------------------------

    def synthesize(self, records, grid: Grid) -> Dict[Tuple[str, str], MetricCell]:
        """
        Returns:
            Mapping (department, month) → MetricCell, in department order then
            month order. Pairs without records are absent.
        """
        if not grid.departments or not grid.months:
            return {}

        df = parse_numeric_columns(ensure_prepared(records))
        df = df[df["department"].isin(grid.departments) & df["month"].isin(grid.months)]

        grouped = {key: group for key, group in df.groupby(["department", "month"], sort=False)}

        cells: Dict[Tuple[str, str], MetricCell] = {}
        for department in grid.departments:
            for month_index, month in enumerate(grid.months):
                group = grouped.get((department, month))
                if group is None or group.empty:
                    continue
                cells[(department, month)] = self._build_cell(department, month, month_index, group)

        logger.debug(f"Synthesized {len(cells)} cells from {len(df)} records.")
        return cells

    def compute_means(self, group) -> GroupMeans:
        """Per-field arithmetic means over one group of parsed records."""
        return GroupMeans(
            case_count=len(group),
            avg_cmi=float(group["cmi"].mean()),
            avg_los=float(group["los"].mean()),
            avg_severity=float(group["severity"].mean()),
            avg_revenue=float(group["revenue"].mean()),
        )

    # -------------------------------------------------------------------------
    # INTERNAL
    # -------------------------------------------------------------------------

    def _build_cell(self, department: str, month: str, month_index: int, group) -> MetricCell:
        means = self.compute_means(group)
        raw_baseline = self.baseline_scorer.raw(means)

        derived = {
            scorer.model_key: scorer.score(raw_baseline, self.rng)
            for scorer in self.derived_scorers
        }

        return MetricCell(
            department=department,
            month=month,
            month_index=month_index,
            case_count=means.case_count,
            avg_revenue=means.avg_revenue,
            baseline=self.baseline_scorer.score(means),
            **derived,
        )
