# ========================
# src/ev_adoption/pipeline/merging.py
# ========================

"""
Merge Module

Unions the yearly and quarterly extracts without double counting and tags
each row with its EV classification.
"""

import logging
from dataclasses import replace
from typing import Iterable, List, Optional

from .errors import SchemaError
from .models import Classification, RegistrationRecord

logger = logging.getLogger(__name__)

EV_FUEL_TYPES = frozenset({'Battery electric', 'Plug-in hybrid electric'})
TOTAL_FUEL_TYPE = 'All fuel types'


def classify(fuel_type: str) -> Classification:
    """
    Map a fuel type to EV, Non-EV or Total.

    Hybrid electric vehicles cannot be plugged in and count as Non-EV.
    """
    if fuel_type is None or not str(fuel_type).strip():
        raise SchemaError("Fuel type is empty", {'value': fuel_type})
    name = str(fuel_type).strip()
    if name == TOTAL_FUEL_TYPE:
        return Classification.TOTAL
    if name in EV_FUEL_TYPES:
        return Classification.EV
    return Classification.NON_EV


def classify_records(records: Iterable[RegistrationRecord]) -> List[RegistrationRecord]:
    return [replace(r, classification=classify(r.fuel_type)) for r in records]


def exclude_totals(records: Iterable[RegistrationRecord]) -> List[RegistrationRecord]:
    """Drop "All fuel types" rows; they must never enter an EV ratio."""
    return [r for r in records if classify(r.fuel_type) is not Classification.TOTAL]


def _sort_key(record: RegistrationRecord):
    return (
        record.geography,
        record.year,
        record.quarter or 0,
        record.fuel_type,
        record.vehicle_type,
    )


def union_preferring_fine_grain(coarse: List[RegistrationRecord],
                                fine: List[RegistrationRecord],
                                cutover_year: Optional[int] = None) -> List[RegistrationRecord]:
    """
    Keep every fine-grain row and the coarse rows strictly before cutover_year.

    Args:
        coarse: Yearly records
        fine: Quarterly records
        cutover_year: First year taken from the fine source; defaults to the
            earliest year present in fine

    Returns:
        list: Combined records sorted by geography and period
    """
    if cutover_year is None:
        if not fine:
            raise ValueError("cutover_year is required when the fine-grain table is empty")
        cutover_year = min(r.year for r in fine)

    kept_coarse = [r for r in coarse if r.year < cutover_year]
    merged = sorted(kept_coarse + list(fine), key=_sort_key)

    logger.info(
        f"Merged {len(kept_coarse)}/{len(coarse)} yearly rows before {cutover_year} "
        f"with {len(fine)} quarterly rows"
    )
    return merged
