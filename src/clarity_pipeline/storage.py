# ========================
# src/clarity_pipeline/storage.py
# ========================

"""
Data Storage Module

Writes the finished layer, and optional intermediate tables, to disk.
"""

import csv
import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from .exceptions import ReadError, WriteError
from .models import MonthlyMean, RegionYearMean
from .transformation import to_output_rows

logger = logging.getLogger(__name__)

NULL_TOKEN = "NA"


class LayerWriter:
    """
    Serializes aggregation results to delimited text files.
    Existing files at the target path are overwritten.
    """

    def __init__(self, region_key: str = "rgn_id",
                 value_key: str = "secchi_mean_summer",
                 delimiter: str = ","):
        """
        Initialize the layer writer.

        Args:
            region_key (str): Output column name for the region id
            value_key (str): Output column name for the mean value
            delimiter (str): Field delimiter for written files
        """
        self.region_key = region_key
        self.value_key = value_key
        self.delimiter = delimiter
        logger.info(f"LayerWriter initialized with columns: {self.headers}")

    @property
    def headers(self) -> List[str]:
        return [self.region_key, 'year', self.value_key]

    def save_layer(self, results: Iterable[RegionYearMean], output_path) -> str:
        """
        Save the final region-year means.

        Args:
            results (iterable): RegionYearMean rows
            output_path (str): Destination file, overwritten if present

        Returns:
            str: Path of the written file

        Raises:
            WriteError: If the path cannot be written
        """
        rows = to_output_rows(results, self.region_key, self.value_key)
        for row in rows:
            row[self.value_key] = _format_value(row[self.value_key])
        self._write_csv(Path(output_path), self.headers, rows)
        return str(output_path)

    def save_monthly_means(self, monthly: Iterable[MonthlyMean], output_path) -> str:
        """Save the Pass 1 monthly means, useful for auditing the layer."""
        headers = [self.region_key, 'year', 'month', self.value_key]
        rows = [
            {self.region_key: m.region_id, 'year': m.year, 'month': m.month,
             self.value_key: _format_value(m.value)}
            for m in monthly
        ]
        self._write_csv(Path(output_path), headers, rows)
        return str(output_path)

    def save_summary(self, summary_data: Dict[str, Any], output_path) -> str:
        """Save a run summary as JSON."""
        file_path = Path(output_path)
        try:
            file_path.parent.mkdir(parents=True, exist_ok=True)
            with open(file_path, 'w', encoding='utf-8') as f:
                json.dump(summary_data, f, indent=2, ensure_ascii=False, default=str)
        except OSError as e:
            logger.error(f"Error writing summary {file_path}: {e}")
            raise WriteError(file_path, str(e)) from e

        logger.info(f"Summary saved to {file_path}")
        return str(file_path)

    def read_layer(self, input_path) -> List[RegionYearMean]:
        """
        Read a layer file written by ``save_layer``.

        Raises:
            ReadError: If the file is missing, undecodable or not a layer file
        """
        path = Path(input_path)
        results = []
        try:
            with open(path, 'r', newline='', encoding='utf-8') as f:
                reader = csv.DictReader(f, delimiter=self.delimiter)
                if reader.fieldnames != self.headers:
                    raise ReadError(path, f"expected header {self.headers}, got {reader.fieldnames}")
                for index, row in enumerate(reader):
                    try:
                        results.append(RegionYearMean(
                            region_id=int(row[self.region_key]),
                            year=int(row['year']),
                            value=_parse_value(row[self.value_key]),
                        ))
                    except (TypeError, ValueError) as e:
                        raise ReadError(path, f"invalid layer row: {e}", row_index=index) from e
        except FileNotFoundError as e:
            raise ReadError(path, "file not found") from e
        except IsADirectoryError as e:
            raise ReadError(path, "path is a directory") from e
        except UnicodeDecodeError as e:
            raise ReadError(path, f"cannot decode file as UTF-8: {e}") from e
        return results

    def _write_csv(self, file_path: Path, headers: List[str], data_items: List[Dict]) -> None:
        """Write data to CSV file."""
        try:
            file_path.parent.mkdir(parents=True, exist_ok=True)
            with open(file_path, 'w', newline='', encoding='utf-8') as f:
                writer = csv.DictWriter(f, fieldnames=headers, delimiter=self.delimiter)
                writer.writeheader()
                writer.writerows(data_items)

            logger.info(f"Saved {len(data_items)} records to {file_path}")

        except OSError as e:
            logger.error(f"Error writing CSV file {file_path}: {e}")
            raise WriteError(file_path, str(e)) from e


def _format_value(value: Optional[float]) -> str:
    return NULL_TOKEN if value is None else repr(value)


def _parse_value(text: str) -> Optional[float]:
    return None if text == NULL_TOKEN else float(text)
