"""
derived_scorers.py
-------------------
The derived scoring methods (model_1 "AI_v1", model_2 "AI_v2").

Each derived model is the uncapped baseline transformed by fixed factors:

    accuracy     = baseline + accuracy_lift + jitter    (capped)
    turnaround   = baseline * turnaround_factor
    cost         = baseline * cost_factor
    satisfaction = baseline + satisfaction_lift         (capped)

jitter is uniform in [0, accuracy_jitter * jitter_scale), drawn from the
generator passed in by the caller. jitter_scale=0 makes scoring fully
deterministic.

Lifts, factors and caps come from config.yaml; only the transform
structure lives in code.
"""

import numpy as np

from core.models import MetricSet, MODEL_KEYS
from scorers.base_scorer import BaseScorer
from config.config_loader import get_derived_model_config


class DerivedModelScorer(BaseScorer):
    """
    Usage:
        scorer = DerivedModelScorer("model_1")
        metrics = scorer.score(raw_baseline, rng)
    """

    def __init__(self, model_key: str, jitter_scale: float = 1.0):
        super().__init__(model_key, get_derived_model_config(model_key))
        self.label = self.config["label"]
        self.jitter_scale = jitter_scale

    def _raw_metrics(self, baseline: MetricSet, rng: np.random.Generator) -> MetricSet:
        c = self.config
        jitter = rng.random() * c["accuracy_jitter"] * self.jitter_scale
        return MetricSet(
            accuracy=baseline.accuracy + c["accuracy_lift"] + jitter,
            turnaround=baseline.turnaround * c["turnaround_factor"],
            cost=baseline.cost * c["cost_factor"],
            satisfaction=baseline.satisfaction + c["satisfaction_lift"],
        )

    def __repr__(self) -> str:
        return f"DerivedModelScorer(model_key={self.model_key!r}, label={self.label!r})"


def get_derived_scorers(jitter_scale: float = 1.0) -> list[DerivedModelScorer]:
    """Returns one scorer per derived model, in model_1, model_2 order."""
    return [DerivedModelScorer(key, jitter_scale=jitter_scale) for key in MODEL_KEYS]
