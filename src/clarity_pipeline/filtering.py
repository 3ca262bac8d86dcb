# ========================
# src/clarity_pipeline/filtering.py
# ========================

"""
Season Filter Module

Restricts clean observations to a month set and an inclusive year range.
"""

import logging
from typing import Iterable, List, Tuple

from .exceptions import ConfigurationError
from .models import Observation

logger = logging.getLogger(__name__)

DEFAULT_MONTHS = frozenset({6, 7, 8, 9})
DEFAULT_YEAR_RANGE = (2010, 2015)


class SeasonFilter:
    """
    Keeps observations whose month is in ``months`` and whose year lies in
    ``year_range`` (both ends inclusive). Records pass through unchanged.
    """

    def __init__(self, months: Iterable[int] = DEFAULT_MONTHS,
                 year_range: Tuple[int, int] = DEFAULT_YEAR_RANGE):
        """
        Initialize the season filter.

        Args:
            months (iterable): Months (1-12) to keep
            year_range (tuple): Inclusive (first_year, last_year)

        Raises:
            ConfigurationError: If the month set or year range is invalid
        """
        self.months = frozenset(int(m) for m in months)
        if not self.months:
            raise ConfigurationError("month set must not be empty")
        invalid = sorted(m for m in self.months if not 1 <= m <= 12)
        if invalid:
            raise ConfigurationError(f"months outside 1..12: {invalid}")

        try:
            first_year, last_year = (int(y) for y in year_range)
        except (TypeError, ValueError):
            raise ConfigurationError(f"year_range must be a (start, end) pair, got {year_range!r}")
        if first_year > last_year:
            raise ConfigurationError(f"year_range start {first_year} is after end {last_year}")
        self.year_range = (first_year, last_year)

        self.records_seen = 0
        self.records_kept = 0
        logger.info(f"SeasonFilter initialized: months={sorted(self.months)}, "
                    f"years={first_year}-{last_year}")

    def matches(self, record: Observation) -> bool:
        """Return True if the record falls inside the configured window."""
        first_year, last_year = self.year_range
        return record.month in self.months and first_year <= record.year <= last_year

    def apply(self, records: Iterable[Observation]) -> List[Observation]:
        """
        Filter records to the configured window, preserving order.

        An empty result is valid.
        """
        kept = []
        for record in records:
            self.records_seen += 1
            if self.matches(record):
                kept.append(record)
        self.records_kept += len(kept)
        return kept

    def get_statistics(self) -> dict:
        """Get filter statistics."""
        return {
            'records_seen': self.records_seen,
            'records_kept': self.records_kept,
            'records_outside_window': self.records_seen - self.records_kept,
        }
