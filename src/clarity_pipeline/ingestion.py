# ========================
# src/clarity_pipeline/ingestion.py
# ========================

"""
Data Ingestion Module

Reads the raw observation file in chunks of row dictionaries.
"""

import csv
import logging
from typing import Dict, Iterable, Iterator, List, Optional

from .exceptions import ReadError, SchemaError

logger = logging.getLogger(__name__)

class CSVReader:
    """
    A chunked CSV reader for the raw observation file.
    Rows are yielded as dictionaries keyed by the source header.
    """

    def __init__(self, file_path, delimiter: str = ","):
        """
        Initialize the CSV reader.

        Args:
            file_path (str): Path to the CSV file to read
            delimiter (str): Field delimiter used by the file
        """
        self.file_path = str(file_path)
        self.delimiter = delimiter
        self.header = []
        self.rows_read = 0
        logger.info(f"Initialized CSVReader for file: {self.file_path}")

    def read_in_chunks(self, chunk_size: int,
                       required_columns: Optional[Iterable[str]] = None) -> Iterator[List[Dict[str, str]]]:
        """
        A generator that yields a list of dictionaries for each chunk of data.

        Args:
            chunk_size (int): The number of rows to yield per chunk.
            required_columns (iterable): Source columns the header must contain.

        Yields:
            list[dict]: A list of dictionaries representing a chunk of rows.

        Raises:
            ReadError: If the file is missing, undecodable or malformed.
            SchemaError: If the header lacks any of ``required_columns``,
                including a file with no header at all.
        """
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")

        self.rows_read = 0
        try:
            with open(self.file_path, 'r', newline='', encoding='utf-8-sig') as f:
                reader = csv.DictReader(f, delimiter=self.delimiter)
                self.header = reader.fieldnames or []
                if not self.header:
                    if required_columns is not None:
                        logger.error(f"File '{self.file_path}' is empty; no header found")
                        raise SchemaError(self.file_path, required_columns)
                    logger.warning(f"File '{self.file_path}' is empty")
                    return
                logger.info(f"CSV header: {self.header}")

                if required_columns is not None:
                    missing = set(required_columns) - set(self.header)
                    if missing:
                        raise SchemaError(self.file_path, missing)

                chunk = []

                for row in reader:
                    # DictReader stores surplus fields under the None key and
                    # fills short rows with None
                    if None in row or None in row.values():
                        raise ReadError(
                            self.file_path,
                            f"row has {len(self.header)} expected fields but is ragged",
                            row_index=self.rows_read,
                        )
                    chunk.append(row)
                    self.rows_read += 1

                    if len(chunk) == chunk_size:
                        logger.debug(f"Yielding chunk with {len(chunk)} rows")
                        yield chunk
                        chunk = []

                # Yield any remaining rows in the last chunk
                if chunk:
                    logger.debug(f"Yielding final chunk with {len(chunk)} rows")
                    yield chunk

                logger.info(f"Total rows read: {self.rows_read}")

        except FileNotFoundError as e:
            logger.error(f"File '{self.file_path}' was not found")
            raise ReadError(self.file_path, "file not found") from e
        except IsADirectoryError as e:
            logger.error(f"Path '{self.file_path}' is a directory")
            raise ReadError(self.file_path, "path is a directory") from e
        except UnicodeDecodeError as e:
            logger.error(f"Cannot decode '{self.file_path}': {e}")
            raise ReadError(self.file_path, f"cannot decode file as UTF-8: {e}",
                            row_index=self.rows_read) from e
        except csv.Error as e:
            logger.error(f"Malformed CSV in '{self.file_path}': {e}")
            raise ReadError(self.file_path, f"malformed CSV: {e}",
                            row_index=self.rows_read) from e

    def read_all(self, required_columns: Optional[Iterable[str]] = None) -> List[Dict[str, str]]:
        """Read the whole file into a single list of row dictionaries."""
        rows = []
        for chunk in self.read_in_chunks(chunk_size=10000, required_columns=required_columns):
            rows.extend(chunk)
        return rows
