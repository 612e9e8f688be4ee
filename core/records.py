"""
records.py
-----------
Input preparation shared by the grouping and synthesis layers.

Raw records arrive as a sequence of string-keyed mappings (one per case).
This module validates that shape and projects the configured source fields
onto a DataFrame with fixed logical column names:

    department, month, cmi, los, severity, revenue

Field names are a deployment choice and are read from config.yaml.
"""

from collections.abc import Mapping, Sequence

import numpy as np
import pandas as pd

from config.config_loader import get_field_names, get_fallbacks


KEY_COLUMNS = ("department", "month")
NUMERIC_COLUMNS = ("cmi", "los", "severity", "revenue")
LOGICAL_COLUMNS = KEY_COLUMNS + NUMERIC_COLUMNS


def prepare_records(records) -> pd.DataFrame:
    """
    Validates raw records and returns them as a DataFrame of logical columns.

    Key columns are normalised to strings ("" when absent). Numeric columns
    are left as raw values; see parse_numeric().

    Raises:
        TypeError: If records is not a sequence of mappings (or a DataFrame).
    """
    fields = get_field_names()

    if isinstance(records, pd.DataFrame):
        source = records
    else:
        if isinstance(records, (str, bytes)) or not isinstance(records, Sequence):
            raise TypeError(
                f"Records must be a sequence of mappings, got {type(records).__name__}"
            )
        bad = [i for i, r in enumerate(records) if not isinstance(r, Mapping)]
        if bad:
            raise TypeError(
                f"Records must be mappings; {len(bad)} invalid entries "
                f"(first at position {bad[0]})"
            )
        source = pd.DataFrame.from_records([dict(r) for r in records])

    df = pd.DataFrame(index=pd.RangeIndex(len(source)))
    for logical in LOGICAL_COLUMNS:
        column = fields[logical]
        df[logical] = source[column].to_numpy() if column in source.columns else None

    for key in KEY_COLUMNS:
        df[key] = df[key].fillna("").astype(str)

    df.attrs["prepared"] = True
    return df


def ensure_prepared(records) -> pd.DataFrame:
    """Returns records unchanged if already prepared, else prepare_records(records)."""
    if isinstance(records, pd.DataFrame) and records.attrs.get("prepared", False):
        return records
    return prepare_records(records)


def parse_numeric(values: pd.Series, fallback: float) -> pd.Series:
    """
    Parses a column of raw strings as floats.

    Missing, blank, non-numeric, non-finite ("inf", "1e999") and zero values
    all take the fallback. The fallback is applied per record before any
    averaging.
    """
    parsed = _to_float(values)
    parsed = parsed.where(np.isfinite(parsed) & (parsed != 0), np.nan)
    return parsed.fillna(fallback).astype(float)


def fallback_mask(values: pd.Series) -> pd.Series:
    """Boolean mask of the records that would take the fallback value."""
    parsed = _to_float(values)
    return ~(np.isfinite(parsed) & (parsed != 0))


def _to_float(values: pd.Series) -> pd.Series:
    parsed = pd.to_numeric(values.astype(str).str.strip(), errors="coerce")
    return parsed.astype(float)


def parse_numeric_columns(df: pd.DataFrame) -> pd.DataFrame:
    """Returns a copy of df with every numeric column parsed via parse_numeric()."""
    fallbacks = get_fallbacks()
    out = df.copy()
    for column in NUMERIC_COLUMNS:
        out[column] = parse_numeric(out[column], fallbacks[column])
    return out
