"""
config_loader.py
-----------------
Singleton config loader. Reads config.yaml once and caches it.
All modules access configuration through this, never hardcoded values.
"""

import os
import yaml
from typing import Any, Dict


_CONFIG_CACHE: Dict[str, Any] = {}

ZERO_BASELINE_POLICIES = ("none", "zero")


def load_config(config_path: str | None = None) -> Dict[str, Any]:
    """
    Load and cache the YAML configuration file.

    Args:
        config_path: Path to config.yaml. Defaults to config/ relative to this file.

    Returns:
        Full config dictionary.
    """
    global _CONFIG_CACHE

    if _CONFIG_CACHE:
        return _CONFIG_CACHE

    if config_path is None:
        config_path = os.path.join(os.path.dirname(__file__), "config.yaml")

    if not os.path.exists(config_path):
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, "r") as f:
        _CONFIG_CACHE = yaml.safe_load(f)

    return _CONFIG_CACHE


def get_field_names() -> Dict[str, str]:
    """Returns the record field name for each logical input column."""
    return load_config()["fields"]


def get_fallbacks() -> Dict[str, float]:
    """Returns the fallback value per numeric field."""
    return load_config()["fallbacks"]


def get_grouping_config() -> Dict[str, Any]:
    """Returns the grouping block."""
    return load_config()["grouping"]


def get_baseline_config() -> Dict[str, float]:
    """Returns the baseline formula coefficients."""
    return load_config()["baseline"]


def get_derived_model_config(model_key: str) -> Dict[str, Any]:
    """
    Returns the transform config for a derived model.

    Raises:
        KeyError: If model_key is not in the config.
    """
    models = load_config()["derived_models"]
    if model_key not in models:
        raise KeyError(
            f"No derived model config for '{model_key}'. "
            f"Available: {list(models.keys())}"
        )
    return models[model_key]


def get_model_labels() -> Dict[str, str]:
    """Returns the display label of every configured derived model."""
    return {key: cfg["label"] for key, cfg in load_config()["derived_models"].items()}


def get_aggregation_config() -> Dict[str, Any]:
    """
    Returns the aggregation block.

    Raises:
        ValueError: If the zero-baseline policy is not a known policy.
    """
    cfg = load_config()["aggregation"]
    if cfg["zero_baseline_policy"] not in ZERO_BASELINE_POLICIES:
        raise ValueError(
            f"Unknown zero_baseline_policy '{cfg['zero_baseline_policy']}'. "
            f"Expected one of {ZERO_BASELINE_POLICIES}."
        )
    return cfg


def get_forecast_config() -> Dict[str, Any]:
    """Returns the forecast block."""
    return load_config()["forecast"]


def get_monitoring_config() -> Dict[str, Any]:
    """Returns input quality monitoring config."""
    return load_config()["monitoring"]


def reset_config() -> None:
    """Clears cached config. Useful for testing."""
    global _CONFIG_CACHE
    _CONFIG_CACHE = {}
