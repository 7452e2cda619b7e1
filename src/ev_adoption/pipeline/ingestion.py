# ========================
# src/ev_adoption/pipeline/ingestion.py
# ========================

"""
Data Ingestion Module

Reads the registration and global sales extracts from delimited flat files.
Values are returned as raw strings; typing happens in the normalizer.
"""

import csv
import logging
from typing import Dict, List, Tuple

logger = logging.getLogger(__name__)


class CSVReader:
    """
    A CSV reader that yields the file in chunks of raw rows.
    Government extracts often ship with a byte-order mark, so the file
    is opened as utf-8-sig.
    """

    def __init__(self, file_path, delimiter: str = ','):
        """
        Initialize the CSV reader.

        Args:
            file_path (str): Path to the CSV file to read
            delimiter (str): Field delimiter
        """
        self.file_path = file_path
        self.delimiter = delimiter
        self.header = []
        self.rows_read = 0
        logger.info(f"Initialized CSVReader for file: {file_path}")

    def read_in_chunks(self, chunk_size):
        """
        A generator that yields a list of dictionaries for each chunk of data.

        Args:
            chunk_size (int): The number of rows to yield per chunk.

        Yields:
            list[dict]: A list of dictionaries representing a chunk of rows.
        """
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")

        try:
            with open(self.file_path, 'r', newline='', encoding='utf-8-sig') as f:
                reader = csv.DictReader(f, delimiter=self.delimiter)
                self.header = [name.strip() for name in reader.fieldnames or []]
                reader.fieldnames = self.header
                logger.info(f"CSV header: {self.header}")

                chunk = []
                self.rows_read = 0

                for row in reader:
                    chunk.append(row)
                    self.rows_read += 1

                    if len(chunk) == chunk_size:
                        logger.debug(f"Yielding chunk with {len(chunk)} rows")
                        yield chunk
                        chunk = []

                if chunk:
                    logger.debug(f"Yielding final chunk with {len(chunk)} rows")
                    yield chunk

                logger.info(f"Total rows read from {self.file_path}: {self.rows_read}")

        except FileNotFoundError:
            logger.error(f"File '{self.file_path}' was not found")
            raise
        except csv.Error as e:
            logger.error(f"Error reading CSV file {self.file_path}: {e}")
            raise


def load_table(file_path: str, chunk_size: int = 1000) -> Tuple[List[str], List[Dict[str, str]]]:
    """
    Load a whole extract into memory.

    Args:
        file_path (str): Path to the CSV file
        chunk_size (int): Rows per read chunk

    Returns:
        tuple: (header, rows) where rows is a list of raw string dictionaries
    """
    reader = CSVReader(file_path)
    rows: List[Dict[str, str]] = []
    for chunk in reader.read_in_chunks(chunk_size):
        rows.extend(chunk)
    return reader.header, rows
