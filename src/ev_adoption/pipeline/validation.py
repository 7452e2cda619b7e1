# ========================
# src/ev_adoption/pipeline/validation.py
# ========================

"""
Data Validation Module

Checks the preconditions the merge step relies on: excluded geographies
carry no data, both national extracts use the same categories, and no
period is counted twice.
"""

import logging
from collections import Counter
from typing import Any, Dict, Iterable, List, Set, Tuple

from .errors import ValidationError
from .models import RegistrationRecord

logger = logging.getLogger(__name__)

RecordKey = Tuple[str, str, str, int, Any]


def check_zero_evidence(records: Iterable[RegistrationRecord], excluded_categories: Iterable[str]) -> int:
    """Count non-null observations among rows of the excluded geographies."""
    excluded = set(excluded_categories)
    return sum(1 for r in records if r.geography in excluded and r.count is not None)


def _categories(records: Iterable[RegistrationRecord]) -> Set[Tuple[str, str]]:
    return {r.category for r in records}


def check_category_parity(table_a: Iterable[RegistrationRecord], table_b: Iterable[RegistrationRecord]) -> bool:
    """Whether both tables use the same (fuel_type, vehicle_type) pairs."""
    return _categories(table_a) == _categories(table_b)


def category_differences(table_a: Iterable[RegistrationRecord],
                         table_b: Iterable[RegistrationRecord]) -> Tuple[List[Tuple[str, str]], List[Tuple[str, str]]]:
    """Return the category pairs found only in table_a and only in table_b."""
    a, b = _categories(table_a), _categories(table_b)
    return sorted(a - b), sorted(b - a)


def drop_geographies(records: Iterable[RegistrationRecord], excluded: Iterable[str]) -> List[RegistrationRecord]:
    excluded = set(excluded)
    return [r for r in records if r.geography not in excluded]


def record_key(record: RegistrationRecord) -> RecordKey:
    return (record.geography, record.fuel_type, record.vehicle_type, record.year, record.quarter)


def find_duplicate_keys(records: Iterable[RegistrationRecord]) -> List[RecordKey]:
    """Keys occurring more than once, i.e. periods that would be double counted."""
    counts = Counter(record_key(r) for r in records)
    return sorted((key for key, n in counts.items() if n > 1), key=str)


def find_overlapping_years(records: Iterable[RegistrationRecord]) -> List[Tuple[str, str, str, int]]:
    """Years covered both by a yearly row and by quarterly rows of the same series."""
    yearly, quarterly = set(), set()
    for r in records:
        key = (r.geography, r.fuel_type, r.vehicle_type, r.year)
        (yearly if r.quarter is None else quarterly).add(key)
    return sorted(yearly & quarterly, key=str)


class DataValidator:
    """
    Runs the validation checks and keeps statistics for the data quality
    report. In strict mode (the default) unexpected evidence in excluded
    geographies stops the run; otherwise it is logged as a warning and the
    rows are still dropped.
    """

    def __init__(self, strict: bool = True):
        self.strict = strict
        self.evidence_counts: Dict[str, int] = {}
        self.rows_dropped: Dict[str, int] = {}
        self.warnings: List[str] = []
        logger.info(f"DataValidator initialized (strict={strict})")

    def ensure_safe_to_drop(self,
                            records: List[RegistrationRecord],
                            excluded: Iterable[str],
                            source: str) -> List[RegistrationRecord]:
        """
        Drop the excluded geographies after confirming they hold only nulls.

        Raises:
            ValidationError: In strict mode, when any excluded row has a count
        """
        excluded = sorted(set(excluded))
        evidence = check_zero_evidence(records, excluded)
        self.evidence_counts[source] = evidence

        if evidence:
            offending = sorted({
                (r.geography, r.year, r.quarter)
                for r in records
                if r.geography in excluded and r.count is not None
            }, key=str)
            context = {
                'source': source,
                'observations': evidence,
                'geography_periods': offending[:10],
            }
            if self.strict:
                raise ValidationError("Excluded geographies contain reported counts", context)
            message = f"{source}: {evidence} reported counts in excluded geographies {offending[:10]}"
            self.warnings.append(message)
            logger.warning(message)

        kept = drop_geographies(records, excluded)
        self.rows_dropped[source] = len(records) - len(kept)
        logger.info(f"{source}: dropped {self.rows_dropped[source]} rows for {excluded}")
        return kept

    def ensure_category_parity(self,
                               coarse: List[RegistrationRecord],
                               fine: List[RegistrationRecord]) -> None:
        """
        Raises:
            ValidationError: When the two extracts use different categories
        """
        if check_category_parity(coarse, fine):
            logger.info(f"Category parity confirmed: {len(_categories(coarse))} categories")
            return
        only_coarse, only_fine = category_differences(coarse, fine)
        raise ValidationError(
            "Yearly and quarterly extracts use different categories",
            {'only_in_yearly': only_coarse, 'only_in_quarterly': only_fine},
        )

    def ensure_unique_periods(self, records: List[RegistrationRecord]) -> None:
        """
        Raises:
            ValidationError: When any (geography, fuel type, vehicle type,
                period) combination occurs more than once, or a year is
                covered by both a yearly row and quarterly rows
        """
        duplicates = find_duplicate_keys(records)
        if duplicates:
            raise ValidationError(
                "Periods are represented more than once after merge",
                {'duplicates': len(duplicates), 'examples': duplicates[:5]},
            )
        overlapping = find_overlapping_years(records)
        if overlapping:
            raise ValidationError(
                "Years are covered by both yearly and quarterly rows after merge",
                {'overlaps': len(overlapping), 'examples': overlapping[:5]},
            )

    def get_statistics(self) -> Dict[str, Any]:
        """Get validation statistics."""
        return {
            'excluded_evidence': dict(self.evidence_counts),
            'rows_dropped': dict(self.rows_dropped),
            'warnings': list(self.warnings),
        }
