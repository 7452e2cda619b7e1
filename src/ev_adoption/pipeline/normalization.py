# ========================
# src/ev_adoption/pipeline/normalization.py
# ========================

"""
Schema Normalization Module

Maps the raw yearly, quarterly and global extracts onto the shared record
schema. Nothing is dropped or coerced here: a value that does not match
its expected format stops the run with a SchemaError.
"""

import re
import logging
from datetime import date
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .errors import SchemaError
from .models import (
    GlobalSalesRecord,
    RegistrationRecord,
    QUARTERLY_SOURCE,
    YEARLY_SOURCE,
)

logger = logging.getLogger(__name__)

DEFAULT_REGISTRATION_COLUMNS = {
    'period': 'REF_DATE',
    'geography': 'GEO',
    'fuel_type': 'Fuel type',
    'vehicle_type': 'Vehicle type',
    'count': 'VALUE',
}

DEFAULT_GLOBAL_COLUMNS = {
    'entity': 'Entity',
    'year': 'Year',
    'ev_sales': 'Electric cars sold',
    'non_ev_sales': 'Non-electric car sales',
}

# Statistics Canada marks unavailable or suppressed cells with these symbols
NULL_MARKERS = {'', '..', '...', 'x', 'X', 'F'}

YEAR_PATTERN = re.compile(r'^(\d{4})$')
YEAR_MONTH_PATTERN = re.compile(r'^(\d{4})-(\d{2})$')


def require_columns(header: Iterable[str], required: Iterable[str], source: str) -> None:
    """Raise SchemaError naming every required column absent from header."""
    present = {str(column).strip() for column in header}
    missing = sorted(set(required) - present)
    if missing:
        raise SchemaError(
            "Missing expected columns",
            {'source': source, 'missing': missing, 'header': sorted(present)},
        )


def parse_count(value: Any, row_number: int, source: str, column: str = 'count') -> Optional[int]:
    """
    Parse a non-negative count.

    Returns None for "not reported" markers. Integral floats ("12.0") are
    accepted because some extracts export counts as decimals.
    """
    if value is None:
        return None
    text = str(value).strip().replace(',', '')
    if text in NULL_MARKERS:
        return None
    try:
        number = float(text)
    except ValueError:
        raise SchemaError(
            "Count is not numeric",
            {'source': source, 'row': row_number, 'column': column, 'value': value},
        ) from None
    if number != number or number < 0 or not number.is_integer():
        raise SchemaError(
            "Count must be a non-negative integer",
            {'source': source, 'row': row_number, 'column': column, 'value': value},
        )
    return int(number)


def parse_year(value: Any, row_number: int, source: str) -> int:
    """Parse a four-digit year."""
    text = str(value).strip() if value is not None else ''
    match = YEAR_PATTERN.match(text)
    if not match:
        raise SchemaError(
            "Year must be formatted as YYYY",
            {'source': source, 'row': row_number, 'value': value},
        )
    return int(match.group(1))


def parse_year_month(value: Any, row_number: int, source: str) -> Tuple[int, int, date]:
    """
    Parse a YYYY-MM period.

    Returns:
        tuple: (year, quarter, first day of the month)
    """
    text = str(value).strip() if value is not None else ''
    match = YEAR_MONTH_PATTERN.match(text)
    if not match:
        raise SchemaError(
            "Period must be formatted as YYYY-MM",
            {'source': source, 'row': row_number, 'value': value},
        )
    year, month = int(match.group(1)), int(match.group(2))
    if not 1 <= month <= 12:
        raise SchemaError(
            "Month out of range",
            {'source': source, 'row': row_number, 'value': value},
        )
    return year, (month - 1) // 3 + 1, date(year, month, 1)


def _required_text(row: Dict[str, Any], column: str, row_number: int, source: str) -> str:
    value = row.get(column)
    if value is None or not str(value).strip():
        raise SchemaError(
            "Required value is empty",
            {'source': source, 'row': row_number, 'column': column},
        )
    return str(value).strip()


class SchemaNormalizer:
    """
    Converts raw extract rows into RegistrationRecord and GlobalSalesRecord
    values that share one schema.
    """

    def __init__(self,
                 columns: Optional[Dict[str, str]] = None,
                 global_columns: Optional[Dict[str, str]] = None):
        """
        Initialize the normalizer.

        Args:
            columns (dict): Overrides for the registration column names
            global_columns (dict): Overrides for the global sales column names
        """
        self.columns = {**DEFAULT_REGISTRATION_COLUMNS, **(columns or {})}
        self.global_columns = {**DEFAULT_GLOBAL_COLUMNS, **(global_columns or {})}
        self.rows_processed: Dict[str, int] = {}
        self.null_counts: Dict[str, int] = {}
        logger.info("SchemaNormalizer initialized")

    def normalize_yearly(self,
                         rows: List[Dict[str, Any]],
                         header: Optional[Iterable[str]] = None,
                         source: str = YEARLY_SOURCE) -> List[RegistrationRecord]:
        """Normalize the coarse extract, whose period is a bare year."""
        self._check_header(rows, header, self.columns.values(), source)
        records = []
        for index, row in enumerate(rows):
            row_number = index + 2  # header is line 1
            year = parse_year(row.get(self.columns['period']), row_number, source)
            records.append(self._build_record(row, row_number, source, year, None, None))
        self._record_stats(source, records)
        return records

    def normalize_quarterly(self,
                            rows: List[Dict[str, Any]],
                            header: Optional[Iterable[str]] = None,
                            source: str = QUARTERLY_SOURCE) -> List[RegistrationRecord]:
        """Normalize the fine extract, whose period is a YYYY-MM string."""
        self._check_header(rows, header, self.columns.values(), source)
        records = []
        for index, row in enumerate(rows):
            row_number = index + 2
            year, quarter, period_date = parse_year_month(
                row.get(self.columns['period']), row_number, source
            )
            records.append(self._build_record(row, row_number, source, year, quarter, period_date))
        self._record_stats(source, records)
        return records

    def normalize_global_sales(self,
                               rows: List[Dict[str, Any]],
                               header: Optional[Iterable[str]] = None,
                               source: str = 'global') -> List[GlobalSalesRecord]:
        """Normalize the global extract into one record per entity and year."""
        self._check_header(rows, header, self.global_columns.values(), source)
        cols = self.global_columns
        records = []
        for index, row in enumerate(rows):
            row_number = index + 2
            records.append(GlobalSalesRecord(
                entity=_required_text(row, cols['entity'], row_number, source),
                year=parse_year(row.get(cols['year']), row_number, source),
                ev_sales=parse_count(row.get(cols['ev_sales']), row_number, source, cols['ev_sales']),
                non_ev_sales=parse_count(row.get(cols['non_ev_sales']), row_number, source, cols['non_ev_sales']),
            ))
        self.rows_processed[source] = len(records)
        self.null_counts[source] = sum(1 for r in records if r.total is None)
        logger.info(f"Normalized {len(records)} {source} rows")
        return records

    def _build_record(self, row, row_number, source, year, quarter, period_date) -> RegistrationRecord:
        cols = self.columns
        return RegistrationRecord(
            geography=_required_text(row, cols['geography'], row_number, source),
            fuel_type=_required_text(row, cols['fuel_type'], row_number, source),
            vehicle_type=_required_text(row, cols['vehicle_type'], row_number, source),
            count=parse_count(row.get(cols['count']), row_number, source, cols['count']),
            year=year,
            quarter=quarter,
            period_date=period_date,
            source=source,
        )

    def _check_header(self, rows, header, required, source) -> None:
        if header is None:
            if not rows:
                return
            header = rows[0].keys()
        require_columns(header, required, source)

    def _record_stats(self, source: str, records: List[RegistrationRecord]) -> None:
        self.rows_processed[source] = len(records)
        self.null_counts[source] = sum(1 for r in records if r.count is None)
        logger.info(
            f"Normalized {len(records)} {source} rows "
            f"({self.null_counts[source]} not reported)"
        )

    def get_statistics(self) -> Dict[str, Any]:
        """Get normalization statistics."""
        return {
            'rows_processed': dict(self.rows_processed),
            'null_counts': dict(self.null_counts),
            'total_rows': sum(self.rows_processed.values()),
        }
