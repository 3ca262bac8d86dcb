# ========================
# src/clarity_pipeline/cleaning.py
# ========================

"""
Data Cleaning Module

Projects raw rows onto canonical observation fields, coerces types,
drops rows without a region id and collapses exact duplicates.
"""

import logging
import math
from datetime import datetime, date
from typing import Any, Dict, Iterable, List, Optional, Set

from .exceptions import ConfigurationError, DateParseError, ReadError, SchemaError
from .models import Observation

logger = logging.getLogger(__name__)

DATE_POLICIES = ('fail', 'drop')


def deduplicate(records: Iterable[Observation],
                seen: Optional[Set[Observation]] = None) -> List[Observation]:
    """
    Remove rows identical across all fields, keeping the first occurrence.

    Args:
        records (iterable): Observation records
        seen (set): Records already emitted earlier in the run; updated in place

    Returns:
        list: Records in input order with exact duplicates removed
    """
    if seen is None:
        seen = set()
    unique = []
    for record in records:
        if record not in seen:
            seen.add(record)
            unique.append(record)
    return unique


class ObservationCleaner:
    """
    Applies projection, type coercion, date parsing, region filtering and
    deduplication to raw observation rows.

    Duplicate detection spans chunk boundaries, so one cleaner instance
    should be used for exactly one input file.
    """

    DEFAULT_COLUMN_MAP = {
        'BHI_ID': 'region_id',
        'secchi': 'value',
        'year': 'year',
        'month': 'month',
        'lat': 'lat',
        'lon': 'lon',
        'date': 'date',
    }

    DEFAULT_NULL_TOKENS = ('', 'na', 'nan', 'null', 'none')

    def __init__(self,
                 column_map: Optional[Dict[str, str]] = None,
                 date_format: str = "%Y-%m-%d",
                 date_error_policy: str = "fail",
                 null_tokens: Optional[Iterable[str]] = None,
                 source_name: str = "<records>"):
        """
        Initialize the observation cleaner.

        Args:
            column_map (dict): Source column name -> canonical field name
            date_format (str): strptime format of the date column
            date_error_policy (str): 'fail' to raise on a bad date, 'drop' to skip the row
            null_tokens (iterable): Case-insensitive tokens read as missing values
            source_name (str): Input file name used in error messages
        """
        if date_error_policy not in DATE_POLICIES:
            raise ConfigurationError(
                f"date_error_policy must be one of {DATE_POLICIES}, got {date_error_policy!r}"
            )

        self.column_map = dict(column_map or self.DEFAULT_COLUMN_MAP)
        unknown = set(self.column_map.values()) - set(Observation.__dataclass_fields__)
        if unknown:
            raise ConfigurationError(f"column_map targets unknown fields: {sorted(unknown)}")
        for required in ('region_id', 'value', 'year', 'month'):
            if required not in self.column_map.values():
                raise ConfigurationError(f"column_map has no source column for '{required}'")

        self.date_format = date_format
        self.date_error_policy = date_error_policy
        self.null_tokens = {t.strip().lower() for t in (null_tokens or self.DEFAULT_NULL_TOKENS)}
        self.source_name = source_name

        self._seen: Set[Observation] = set()
        self.records_processed = 0
        self.dropped_missing_region = 0
        self.dropped_duplicates = 0
        self.dropped_bad_date = 0
        logger.info("ObservationCleaner initialized")

    @property
    def source_columns(self) -> List[str]:
        """Source columns the input must provide."""
        return list(self.column_map.keys())

    def clean_chunk(self, rows: Iterable[Dict[str, Any]]) -> List[Observation]:
        """
        Clean a chunk of raw rows.

        Args:
            rows (iterable): Raw row dictionaries from the reader

        Returns:
            list[Observation]: Rows with a region id, not seen before in this run
        """
        candidates = [record for record in map(self.clean_record, rows) if record is not None]
        cleaned = deduplicate(candidates, self._seen)
        duplicates = len(candidates) - len(cleaned)
        if duplicates:
            self.dropped_duplicates += duplicates
            logger.debug(f"{duplicates} duplicate rows dropped from chunk")
        return cleaned

    def clean_record(self, row: Dict[str, Any]) -> Optional[Observation]:
        """
        Convert one raw row to an Observation.

        Duplicate detection is not applied here; see ``clean_chunk``.

        Args:
            row (dict): A dictionary representing a single row of data.

        Returns:
            Observation or None: None if the row has no region id, or has an
            unparsable date under the 'drop' policy.

        Raises:
            SchemaError: If the row lacks a mapped source column.
            ReadError: If a numeric field holds a non-numeric value.
            DateParseError: If the date is unparsable under the 'fail' policy.
        """
        row_index = self.records_processed
        self.records_processed += 1

        # 1. Project and rename to canonical fields
        missing = [col for col in self.column_map if col not in row]
        if missing:
            raise SchemaError(self.source_name, missing, row_index=row_index)
        fields = {canonical: row[source] for source, canonical in self.column_map.items()}

        # 2. Date
        try:
            parsed_date = self._clean_date(fields.get('date'), row_index)
        except DateParseError:
            if self.date_error_policy == 'fail':
                raise
            self.dropped_bad_date += 1
            logger.debug(f"Row {row_index} dropped: unparsable date {fields.get('date')!r}")
            return None

        # 3. Region id; rows without one are dropped
        region_id = self._clean_int(fields.get('region_id'), 'region_id', row_index)
        if region_id is None:
            self.dropped_missing_region += 1
            logger.debug(f"Row {row_index} dropped: missing region id")
            return None

        # 4. Calendar fields are required
        year = self._clean_int(fields.get('year'), 'year', row_index)
        month = self._clean_int(fields.get('month'), 'month', row_index)
        if year is None or month is None:
            raise ReadError(self.source_name, "year and month are required", row_index=row_index)
        if not 1 <= month <= 12:
            raise ReadError(self.source_name, f"month {month} outside 1..12", row_index=row_index)

        return Observation(
            region_id=region_id,
            value=self._clean_float(fields.get('value'), 'value', row_index),
            year=year,
            month=month,
            lat=self._clean_float(fields.get('lat'), 'lat', row_index),
            lon=self._clean_float(fields.get('lon'), 'lon', row_index),
            date=parsed_date,
        )

    def _is_null(self, value: Any) -> bool:
        if value is None:
            return True
        if isinstance(value, str):
            return value.strip().lower() in self.null_tokens
        return False

    def _clean_float(self, value: Any, field: str, row_index: int) -> Optional[float]:
        """Converts a value to a float; null tokens become None."""
        if self._is_null(value):
            return None
        try:
            number = float(value)
        except (ValueError, TypeError):
            raise ReadError(self.source_name, f"non-numeric {field}: {value!r}", row_index=row_index)
        if number != number:  # NaN
            return None
        if not math.isfinite(number):
            raise ReadError(self.source_name, f"non-finite {field}: {value!r}", row_index=row_index)
        return number

    def _clean_int(self, value: Any, field: str, row_index: int) -> Optional[int]:
        """
        Converts a value to an integer.
        Accepts integral floats such as '12.0' which spreadsheet exports produce.
        """
        number = self._clean_float(value, field, row_index)
        if number is None:
            return None
        if not number.is_integer():
            raise ReadError(self.source_name, f"non-integer {field}: {value!r}", row_index=row_index)
        return int(number)

    def _clean_date(self, value: Any, row_index: int) -> Optional[date]:
        """Parses a date with the configured format; null tokens become None."""
        if self._is_null(value):
            return None
        if isinstance(value, date):
            return value
        try:
            return datetime.strptime(str(value).strip(), self.date_format).date()
        except ValueError:
            raise DateParseError(self.source_name, str(value), self.date_format, row_index=row_index)

    def get_statistics(self) -> Dict[str, int]:
        """Get cleaning statistics."""
        dropped = self.dropped_missing_region + self.dropped_duplicates + self.dropped_bad_date
        return {
            'records_processed': self.records_processed,
            'records_cleaned': self.records_processed - dropped,
            'dropped_missing_region': self.dropped_missing_region,
            'dropped_duplicates': self.dropped_duplicates,
            'dropped_bad_date': self.dropped_bad_date,
        }

    def log_summary(self) -> None:
        """Log the documented drops with their counts."""
        stats = self.get_statistics()
        logger.info(f"Rows processed: {stats['records_processed']:,}")
        logger.info(f"Rows dropped for missing region id: {stats['dropped_missing_region']:,}")
        logger.info(f"Exact duplicate rows dropped: {stats['dropped_duplicates']:,}")
        if self.date_error_policy == 'drop':
            logger.info(f"Rows dropped for unparsable date: {stats['dropped_bad_date']:,}")
        logger.info(f"Clean rows: {stats['records_cleaned']:,}")
