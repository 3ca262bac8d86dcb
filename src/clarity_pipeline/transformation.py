# ========================
# src/clarity_pipeline/transformation.py
# ========================

"""
Data Transformation Module

Two-stage mean-of-means aggregation: first within (region, year, month),
then across the monthly means of each (region, year).
"""

import logging
import math
from collections import defaultdict
from decimal import Decimal, ROUND_HALF_UP, localcontext
from typing import Dict, Iterable, List, Optional, Tuple

from .models import MonthlyMean, Observation, RegionYearMean

logger = logging.getLogger(__name__)

ROUNDING_QUANTUM = Decimal('0.1')

# enough digits to quantize any finite float to one decimal
ROUNDING_PRECISION = 400


def round_half_up(value: Optional[float], quantum: Decimal = ROUNDING_QUANTUM) -> Optional[float]:
    """
    Round on the shortest decimal representation, ties away from zero.

    ``round_half_up(0.25) == 0.3`` whereas the built-in ``round`` gives 0.2.
    None and non-finite values are passed through.
    """
    if value is None or not math.isfinite(value):
        return value
    with localcontext() as ctx:
        ctx.prec = ROUNDING_PRECISION
        return float(Decimal(repr(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def mean_ignoring_nulls(values: Iterable[Optional[float]]) -> Optional[float]:
    """
    Arithmetic mean of the non-null values, or None if there are none.

    ``math.fsum`` keeps the result independent of the order of ``values``.
    """
    present = [v for v in values if v is not None]
    if not present:
        return None
    try:
        return math.fsum(present) / len(present)
    except OverflowError:
        # the sum leaves the float range even though the mean does not
        return math.fsum(v / len(present) for v in present)


def monthly_means(records: Iterable[Observation]) -> List[MonthlyMean]:
    """
    Pass 1: mean value per (region, year, month), rounded to one decimal.

    Returns:
        list[MonthlyMean]: Sorted by region, year, month
    """
    groups: Dict[Tuple[int, int, int], List[Optional[float]]] = defaultdict(list)
    for record in records:
        groups[(record.region_id, record.year, record.month)].append(record.value)
    return _monthly_from_groups(groups)


def region_year_means(monthly: Iterable[MonthlyMean]) -> List[RegionYearMean]:
    """
    Pass 2: mean of the monthly means per (region, year), rounded to one decimal.

    Only Pass 1 output is accepted here; pooling raw observations would
    weight months by their sample count.

    Returns:
        list[RegionYearMean]: Sorted by region, year
    """
    groups: Dict[Tuple[int, int], List[Optional[float]]] = defaultdict(list)
    for entry in monthly:
        groups[(entry.region_id, entry.year)].append(entry.value)
    return [
        RegionYearMean(region_id=region_id, year=year,
                       value=round_half_up(mean_ignoring_nulls(values)))
        for (region_id, year), values in sorted(groups.items())
    ]


def _monthly_from_groups(groups) -> List[MonthlyMean]:
    return [
        MonthlyMean(region_id=region_id, year=year, month=month,
                    value=round_half_up(mean_ignoring_nulls(values)))
        for (region_id, year, month), values in sorted(groups.items())
    ]


def to_output_rows(results: Iterable[RegionYearMean], region_key: str = "rgn_id",
                   value_key: str = "secchi_mean_summer") -> List[Dict[str, object]]:
    """
    Emit region-year means as dictionaries keyed by the output column names.

    Args:
        results (iterable): RegionYearMean rows
        region_key (str): Output name for the region id column
        value_key (str): Output name for the mean value column
    """
    return [
        {region_key: r.region_id, 'year': r.year, value_key: r.value}
        for r in results
    ]


class MeanOfMeansAggregator:
    """
    Accumulates filtered observations chunk by chunk and produces the
    monthly and region-year means once all chunks are in.
    """

    def __init__(self):
        """Initialize the aggregator."""
        self._reset_aggregations()
        logger.info("MeanOfMeansAggregator initialized")

    def _reset_aggregations(self):
        """Reset all aggregation data structures."""
        self._values: Dict[Tuple[int, int, int], List[Optional[float]]] = defaultdict(list)
        self.monthly: List[MonthlyMean] = []
        self.results: List[RegionYearMean] = []
        self.records_processed = 0
        self.null_values = 0

    def process_chunk(self, chunk: Iterable[Observation]) -> None:
        """
        Add a chunk of filtered observations to the monthly groups.

        Args:
            chunk (iterable): Clean, in-window observations
        """
        count = 0
        for record in chunk:
            if record.region_id is None:
                raise ValueError(f"Observation without region id reached the aggregator: {record}")
            self._values[(record.region_id, record.year, record.month)].append(record.value)
            if record.value is None:
                self.null_values += 1
            count += 1
        self.records_processed += count
        logger.debug(f"Chunk aggregated: {count} records, {self.records_processed} so far")

    def finalize_aggregations(self) -> List[RegionYearMean]:
        """
        Run both averaging passes over everything processed so far.

        Returns:
            list[RegionYearMean]: The final layer rows
        """
        logger.info("Finalizing aggregations...")
        self.monthly = _monthly_from_groups(self._values)
        self.results = region_year_means(self.monthly)
        self._log_summary_statistics()
        return self.results

    def _log_summary_statistics(self) -> None:
        """Log summary statistics of the aggregations."""
        logger.info(f"Aggregation complete. Processed {self.records_processed} records")
        logger.info(f"Monthly groups: {len(self.monthly)}")
        logger.info(f"Region-year rows: {len(self.results)}")
        if self.null_values:
            logger.info(f"Null measurement values excluded from means: {self.null_values}")
        undefined = sum(1 for r in self.results if r.value is None)
        if undefined:
            logger.warning(f"{undefined} region-year rows have no measured value")

    def to_output_rows(self, region_key: str = "rgn_id",
                       value_key: str = "secchi_mean_summer") -> List[Dict[str, object]]:
        """Emit the final rows with the output column names."""
        return to_output_rows(self.results, region_key, value_key)

    def get_aggregation_summary(self) -> Dict[str, int]:
        """Get a summary of all aggregations."""
        return {
            'records_processed': self.records_processed,
            'null_values': self.null_values,
            'monthly_groups': len(self.monthly),
            'region_year_rows': len(self.results),
            'regions': len({r.region_id for r in self.results}),
        }
