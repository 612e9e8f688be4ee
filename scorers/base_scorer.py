"""
base_scorer.py
---------------
Abstract base class for the scoring methods, plus the baseline scorer.

Each scoring method turns a cell's inputs into a MetricSet. The accuracy and
satisfaction caps applied on output are shared and live here.

Concrete scorers only need to implement:
    - _raw_metrics(): method-specific formulas, before caps
"""

from abc import ABC, abstractmethod
from dataclasses import replace

from core.models import GroupMeans, MetricSet, BASELINE_KEY
from config.config_loader import get_baseline_config


class BaseScorer(ABC):
    """
    Abstract base for scoring methods.

    Subclasses implement _raw_metrics(). This class applies the configured
    accuracy_cap and satisfaction_cap to the raw values.
    """

    def __init__(self, model_key: str, config: dict):
        self.model_key = model_key
        self.config = config

    # -------------------------------------------------------------------------
    # PUBLIC INTERFACE
    # -------------------------------------------------------------------------

    def score(self, source, rng=None) -> MetricSet:
        """Computes this method's capped metrics for one cell."""
        return self._apply_caps(self._raw_metrics(source, rng))

    # -------------------------------------------------------------------------
    # ABSTRACT METHODS
    # -------------------------------------------------------------------------

    @abstractmethod
    def _raw_metrics(self, source, rng) -> MetricSet:
        """Uncapped metrics for one cell."""
        ...

    # -------------------------------------------------------------------------
    # SHARED HELPERS
    # -------------------------------------------------------------------------

    def _apply_caps(self, raw: MetricSet) -> MetricSet:
        return replace(
            raw,
            accuracy=min(raw.accuracy, self.config["accuracy_cap"]),
            satisfaction=min(raw.satisfaction, self.config["satisfaction_cap"]),
        )


class BaselineScorer(BaseScorer):
    """
    Reference scoring method, derived from a cell's field means by fixed
    linear formulas:

        accuracy     = 0.70 + (avg_cmi - 0.8) * 0.15
        turnaround   = 40 + avg_los * 3
        cost         = 80 + avg_severity * 20
        satisfaction = 3.2 + (avg_cmi - 0.8) * 0.8

    Coefficients come from the baseline block of config.yaml.
    """

    def __init__(self):
        super().__init__(BASELINE_KEY, get_baseline_config())

    def raw(self, means: GroupMeans) -> MetricSet:
        """Uncapped baseline. Derived models transform this, not the capped values."""
        return self._raw_metrics(means, None)

    def _raw_metrics(self, means: GroupMeans, rng) -> MetricSet:
        c = self.config
        cmi_offset = means.avg_cmi - c["cmi_pivot"]
        return MetricSet(
            accuracy=c["accuracy_base"] + cmi_offset * c["accuracy_cmi_slope"],
            turnaround=c["turnaround_base_hours"] + means.avg_los * c["turnaround_los_factor"],
            cost=c["cost_base"] + means.avg_severity * c["cost_severity_factor"],
            satisfaction=c["satisfaction_base"] + cmi_offset * c["satisfaction_cmi_slope"],
        )
