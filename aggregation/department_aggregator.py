"""
department_aggregator.py
-------------------------
Rolls per-cell metrics up to one DepartmentSummary per department.

Every metric field is averaged across the department's cells first, and
only then turned into a percentage improvement over baseline
(average-then-ratio). Averaging per-cell ratios gives different numbers
because the baseline differs from cell to cell.

Undefined ratios (zero baseline mean, non-finite mean, overflow) are handled
by aggregation.zero_baseline_policy:
    "none" → improvement is None (reported as missing)
    "zero" → improvement is 0.0
"""

import logging
import math
from typing import Dict, List, Optional, Sequence, Tuple

from core.models import (
    DepartmentSummary, MetricCell, MetricSet,
    KPIS, LOWER_IS_BETTER, MODEL_KEYS,
)
from config.config_loader import get_aggregation_config, ZERO_BASELINE_POLICIES

logger = logging.getLogger(__name__)


def _mean(values: Sequence[float]) -> float:
    return sum(values) / len(values)


def improvement_pct(
    derived_values: Sequence[float],
    baseline_values: Sequence[float],
    higher_is_better: bool = True,
    zero_baseline_policy: str = "none",
) -> Optional[float]:
    """
    Percentage improvement of a derived model over baseline for one KPI.

    Both inputs are absolute per-cell values. They are averaged first:

        higher_is_better: (mean(derived) - mean(baseline)) / mean(baseline) * 100
        otherwise:        (mean(baseline) - mean(derived)) / mean(baseline) * 100

    Positive is always better. When the ratio is undefined (zero baseline,
    non-finite mean, overflow) zero_baseline_policy decides the result.

    Raises:
        ValueError: On empty or unequal-length inputs, or an unknown policy.
    """
    value, _ = _improvement(derived_values, baseline_values, higher_is_better, zero_baseline_policy)
    return value


def _improvement(
    derived_values: Sequence[float],
    baseline_values: Sequence[float],
    higher_is_better: bool,
    zero_baseline_policy: str,
) -> Tuple[Optional[float], Optional[str]]:
    """Returns (improvement, reason); reason is set only when the ratio is undefined."""
    if zero_baseline_policy not in ZERO_BASELINE_POLICIES:
        raise ValueError(f"Unknown zero_baseline_policy '{zero_baseline_policy}'")
    if not baseline_values or len(derived_values) != len(baseline_values):
        raise ValueError(
            f"Expected equal, non-empty value lists; got {len(derived_values)} "
            f"derived and {len(baseline_values)} baseline"
        )

    derived = _mean(derived_values)
    baseline = _mean(baseline_values)

    if baseline == 0:
        reason = "zero baseline"
    elif not (math.isfinite(derived) and math.isfinite(baseline)):
        reason = "non-finite mean"
    else:
        delta = derived - baseline if higher_is_better else baseline - derived
        result = delta / baseline * 100
        if math.isfinite(result):
            return result, None
        reason = "ratio overflow"

    return (0.0 if zero_baseline_policy == "zero" else None), reason


class DepartmentAggregator:
    """
    Usage:
        aggregator = DepartmentAggregator()
        summaries = aggregator.aggregate(cells, grid.departments)
    """

    def __init__(self, zero_baseline_policy: str | None = None):
        if zero_baseline_policy is None:
            zero_baseline_policy = get_aggregation_config()["zero_baseline_policy"]
        if zero_baseline_policy not in ZERO_BASELINE_POLICIES:
            raise ValueError(
                f"Unknown zero_baseline_policy '{zero_baseline_policy}'. "
                f"Expected one of {ZERO_BASELINE_POLICIES}."
            )
        self.zero_baseline_policy = zero_baseline_policy

    # -------------------------------------------------------------------------
    # PUBLIC INTERFACE
    # -------------------------------------------------------------------------

    def aggregate(
        self,
        cells: Dict[Tuple[str, str], MetricCell],
        departments: Sequence[str],
    ) -> List[DepartmentSummary]:
        """
        Returns:
            One summary per department with at least one cell, in department
            order.
        """
        summaries: List[DepartmentSummary] = []
        for department in departments:
            dept_cells = [c for c in cells.values() if c.department == department]
            if not dept_cells:
                continue
            summaries.append(self.summarize(department, dept_cells))
        return summaries

    def summarize(self, department: str, dept_cells: Sequence[MetricCell]) -> DepartmentSummary:
        averaged = {
            key: self._average_metrics(dept_cells, key)
            for key in ("baseline",) + MODEL_KEYS
        }

        improvements: Dict[str, Dict[str, Optional[float]]] = {}
        for model_key in MODEL_KEYS:
            improvements[model_key] = {}
            for kpi in KPIS:
                value, reason = _improvement(
                    [c.metrics_for(model_key).get(kpi) for c in dept_cells],
                    [c.baseline.get(kpi) for c in dept_cells],
                    higher_is_better=kpi not in LOWER_IS_BETTER,
                    zero_baseline_policy=self.zero_baseline_policy,
                )
                if reason is not None:
                    reported = "missing" if value is None else value
                    logger.warning(
                        f"Undefined {kpi} improvement for {department} ({reason}); "
                        f"{model_key} improvement reported as {reported}."
                    )
                improvements[model_key][kpi] = value

        return DepartmentSummary(
            department=department,
            case_count=sum(c.case_count for c in dept_cells),
            avg_revenue=_mean([c.avg_revenue for c in dept_cells]),
            cell_count=len(dept_cells),
            improvements=improvements,
            **averaged,
        )

    # -------------------------------------------------------------------------
    # INTERNAL
    # -------------------------------------------------------------------------

    @staticmethod
    def _average_metrics(dept_cells: Sequence[MetricCell], key: str) -> MetricSet:
        return MetricSet(**{
            kpi: _mean([c.metrics_for(key).get(kpi) for c in dept_cells])
            for kpi in KPIS
        })
