"""
group_extractor.py
-------------------
Discovers the department and month keys present in the input and defines
the (department, month) iteration grid used by every downstream layer.

    - Departments: distinct non-empty values in order of first appearance,
      capped at grouping.max_departments. Overflow is dropped, not an error.
    - Months: distinct non-empty values sorted lexicographically. Assumes a
      sortable textual encoding such as YYYY-MM.
"""

import logging

import pandas as pd

from core.models import Grid
from core.records import ensure_prepared
from config.config_loader import get_grouping_config

logger = logging.getLogger(__name__)


class GroupExtractor:
    """
    Usage:
        extractor = GroupExtractor()
        grid = extractor.extract(records)
    """

    def __init__(self, max_departments: int | None = None):
        if max_departments is None:
            max_departments = get_grouping_config()["max_departments"]
        if max_departments < 1:
            raise ValueError(f"max_departments must be positive, got {max_departments}")
        self.max_departments = max_departments

    def extract(self, records) -> Grid:
        """
        Build the iteration grid from raw records (or a prepared frame).

        Returns:
            Grid. Empty input yields empty department and month tuples.
        """
        df = ensure_prepared(records)

        departments = [d for d in pd.unique(df["department"]) if d != ""]
        months = sorted({m for m in df["month"] if m != ""})

        kept = tuple(departments[: self.max_departments])
        overflow = tuple(departments[self.max_departments:])
        if overflow:
            logger.info(
                f"Department cap {self.max_departments} reached. "
                f"Dropped: {list(overflow)}."
            )

        return Grid(departments=kept, months=tuple(months), overflow=overflow)
