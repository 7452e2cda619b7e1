# ========================
# src/ev_adoption/pipeline/transformation.py
# ========================

"""
Data Transformation Module

Grouped summaries of the merged registrations and the global sales table:
EV shares per period, growth rates, rankings and fuel type breakdowns.

Unreported (None) counts are left out of sums. A group with no reported
count sums to None rather than zero, and a share with a missing or zero
denominator is None.
"""

import logging
from collections import defaultdict
from typing import Any, Dict, Iterable, List, Optional, Sequence

from .merging import classify
from .models import Classification, GlobalSalesRecord, RegistrationRecord

logger = logging.getLogger(__name__)

TIME_AXES = ('year', 'quarter')
DEFAULT_VEHICLE_TYPE = 'Total, vehicle type'


def period_label(year: int, quarter: Optional[int] = None) -> str:
    return f"{year}-Q{quarter}" if quarter else str(year)


def _add(current: Optional[int], value: Optional[int]) -> Optional[int]:
    if value is None:
        return current
    return value if current is None else current + value


def _ratio(part: Optional[float], whole: Optional[float]) -> Optional[float]:
    if part is None or not whole:
        return None
    return part / whole


def _share_row(year: int, quarter: Optional[int], ev: Optional[int], non_ev: Optional[int]) -> Dict[str, Any]:
    total = ev + non_ev if ev is not None and non_ev is not None else None
    return {
        'period': period_label(year, quarter),
        'year': year,
        'quarter': quarter,
        'ev': ev,
        'non_ev': non_ev,
        'total': total,
        'share': _ratio(ev, total),
    }


def _classification(record: RegistrationRecord) -> Classification:
    return record.classification or classify(record.fuel_type)


def _rank(rows: List[Dict[str, Any]], value_key: str) -> List[Dict[str, Any]]:
    """Competition ranking, highest value first; rows without a value are unranked."""
    known = sorted((r for r in rows if r[value_key] is not None), key=lambda r: -r[value_key])
    unknown = [r for r in rows if r[value_key] is None]
    ranked = []
    previous_value, previous_rank = None, 0
    for position, row in enumerate(known, start=1):
        rank = previous_rank if row[value_key] == previous_value else position
        ranked.append({**row, 'rank': rank})
        previous_value, previous_rank = row[value_key], rank
    ranked.extend({**row, 'rank': None} for row in unknown)
    return ranked


def share_by_period(records: Iterable[RegistrationRecord],
                    geography: str,
                    time_axis: str = 'year',
                    vehicle_type: str = DEFAULT_VEHICLE_TYPE) -> List[Dict[str, Any]]:
    """
    EV share of one geography per year or per year-quarter.

    Only EV and Non-EV rows are summed; "All fuel types" rows are skipped so
    the denominator never includes itself.

    Args:
        records: Merged registration records
        geography: Geography to summarise
        time_axis: "year" or "quarter"; the quarter axis only uses rows
            that carry a quarter
        vehicle_type: Vehicle type to summarise

    Returns:
        list: Chronologically ordered rows with period, ev, non_ev, total, share
    """
    if time_axis not in TIME_AXES:
        raise ValueError(f"time_axis must be one of {TIME_AXES}, got {time_axis!r}")

    groups: Dict[tuple, Dict[str, Optional[int]]] = {}
    for record in records:
        if record.geography != geography or record.vehicle_type != vehicle_type:
            continue
        tag = _classification(record)
        if tag is Classification.TOTAL:
            continue
        if time_axis == 'quarter':
            if record.quarter is None:
                continue
            key = (record.year, record.quarter)
        else:
            key = (record.year, None)
        bucket = groups.setdefault(key, {'ev': None, 'non_ev': None})
        field = 'ev' if tag is Classification.EV else 'non_ev'
        bucket[field] = _add(bucket[field], record.count)

    ordered = sorted(groups.items(), key=lambda item: (item[0][0], item[0][1] or 0))
    series = [_share_row(year, quarter, b['ev'], b['non_ev']) for (year, quarter), b in ordered]
    logger.debug(f"share_by_period({geography}, {time_axis}): {len(series)} periods")
    return series


def growth_rate(series: Sequence[Dict[str, Any]], value_key: str = 'share') -> List[Dict[str, Any]]:
    """
    Period-over-period growth in percent for a chronologically ordered series.

    The first period, a missing value and a zero prior value all give a
    growth_rate of None.
    """
    result = []
    previous = None
    for index, row in enumerate(series):
        current = row.get(value_key)
        rate = None
        if index > 0 and current is not None and previous is not None:
            if previous == 0:
                logger.debug(f"Growth undefined at {row.get('period')}: prior {value_key} is zero")
            else:
                rate = (current - previous) / previous * 100
        result.append({**row, 'growth_rate': rate})
        previous = current
    return result


def growth_values(series: Iterable[Dict[str, Any]]) -> List[float]:
    return [row['growth_rate'] for row in series if row.get('growth_rate') is not None]


def share_by_geography(records: Iterable[RegistrationRecord],
                       year: int,
                       vehicle_type: str = DEFAULT_VEHICLE_TYPE) -> List[Dict[str, Any]]:
    """EV share of every geography in one year, ranked highest first."""
    groups = defaultdict(lambda: {'ev': None, 'non_ev': None})
    for record in records:
        if record.year != year or record.vehicle_type != vehicle_type:
            continue
        tag = _classification(record)
        if tag is Classification.TOTAL:
            continue
        bucket = groups[record.geography]
        field = 'ev' if tag is Classification.EV else 'non_ev'
        bucket[field] = _add(bucket[field], record.count)

    rows = []
    for geography in sorted(groups):
        row = _share_row(year, None, groups[geography]['ev'], groups[geography]['non_ev'])
        row['geography'] = geography
        rows.append(row)
    return _rank(rows, 'share')


def fuel_type_breakdown(records: Iterable[RegistrationRecord],
                        geography: str,
                        vehicle_type: str = DEFAULT_VEHICLE_TYPE) -> List[Dict[str, Any]]:
    """
    Registrations per year and concrete fuel type, with each fuel type's
    share of that year's registrations and its rank within the year.
    """
    counts: Dict[int, Dict[str, Optional[int]]] = defaultdict(dict)
    for record in records:
        if record.geography != geography or record.vehicle_type != vehicle_type:
            continue
        tag = _classification(record)
        if tag is Classification.TOTAL:
            continue
        by_fuel = counts[record.year]
        by_fuel[record.fuel_type] = _add(by_fuel.get(record.fuel_type), record.count)

    rows = []
    for year in sorted(counts):
        by_fuel = counts[year]
        year_total = None
        for value in by_fuel.values():
            year_total = _add(year_total, value)
        year_rows = [
            {
                'year': year,
                'fuel_type': fuel_type,
                'classification': classify(fuel_type).value,
                'count': count,
                'share_of_total': _ratio(count, year_total),
            }
            for fuel_type, count in sorted(by_fuel.items())
        ]
        rows.extend(_rank(year_rows, 'share_of_total'))
    return rows


def latest_complete_year(records: Iterable[RegistrationRecord]) -> Optional[int]:
    """
    Latest year with a full set of observations: four quarters for
    quarterly rows, or any year covered only by yearly rows.
    """
    quarters: Dict[int, set] = defaultdict(set)
    yearly_only = set()
    for record in records:
        if record.quarter is None:
            yearly_only.add(record.year)
        else:
            quarters[record.year].add(record.quarter)
    complete = {year for year, seen in quarters.items() if len(seen) == 4}
    complete |= yearly_only - set(quarters)
    return max(complete) if complete else None


def global_share_by_year(records: Iterable[GlobalSalesRecord], entity: str = 'World') -> List[Dict[str, Any]]:
    """EV share of one global entity per year."""
    groups: Dict[int, Dict[str, Optional[int]]] = {}
    for record in records:
        if record.entity != entity:
            continue
        bucket = groups.setdefault(record.year, {'ev': None, 'non_ev': None})
        bucket['ev'] = _add(bucket['ev'], record.ev_sales)
        bucket['non_ev'] = _add(bucket['non_ev'], record.non_ev_sales)
    return [_share_row(year, None, b['ev'], b['non_ev']) for year, b in sorted(groups.items())]


def global_ranking(records: Iterable[GlobalSalesRecord],
                   year: int,
                   exclude_entities: Iterable[str] = ()) -> List[Dict[str, Any]]:
    """EV sales share of every country in one year, ranked highest first."""
    excluded = set(exclude_entities)
    rows = []
    for record in records:
        if record.year != year or record.entity in excluded:
            continue
        row = _share_row(year, None, record.ev_sales, record.non_ev_sales)
        row['entity'] = record.entity
        rows.append(row)
    rows.sort(key=lambda r: r['entity'])
    return _rank(rows, 'share')


class DataAggregator:
    """
    Builds every output table from the merged registrations and the global
    sales records, and keeps a summary of what was produced.
    """

    def __init__(self,
                 national_geography: str = 'Canada',
                 vehicle_type: str = DEFAULT_VEHICLE_TYPE,
                 global_entity: str = 'World',
                 global_aggregates: Iterable[str] = ()):
        """
        Initialize the data aggregator.

        Args:
            national_geography (str): Geography holding national totals
            vehicle_type (str): Vehicle type summarised in every table
            global_entity (str): Entity holding global totals
            global_aggregates (iterable): Region names left out of country rankings
        """
        self.national_geography = national_geography
        self.vehicle_type = vehicle_type
        self.global_entity = global_entity
        self.global_aggregates = set(global_aggregates) | {global_entity}
        self.tables: Dict[str, List[Dict[str, Any]]] = {}
        self.records_processed = 0
        self.latest_complete_year: Optional[int] = None
        self.latest_global_year: Optional[int] = None
        logger.info(
            f"DataAggregator initialized for {national_geography} / {vehicle_type} "
            f"and global entity {global_entity}"
        )

    def build_report(self,
                     merged: List[RegistrationRecord],
                     global_records: List[GlobalSalesRecord]) -> Dict[str, List[Dict[str, Any]]]:
        """
        Produce all output tables.

        Returns:
            dict: Table name to list of row dictionaries
        """
        geo = self.national_geography
        national = [r for r in merged if r.geography == geo]
        regional = [r for r in merged if r.geography != geo]
        self.records_processed = len(merged) + len(global_records)
        self.latest_complete_year = latest_complete_year(national)

        tables = {
            'national_share_by_year': growth_rate(share_by_period(merged, geo, 'year', self.vehicle_type)),
            'national_share_by_quarter': growth_rate(share_by_period(merged, geo, 'quarter', self.vehicle_type)),
            'fuel_type_breakdown': fuel_type_breakdown(merged, geo, self.vehicle_type),
            'regional_ranking': [],
            'global_share_by_year': growth_rate(global_share_by_year(global_records, self.global_entity)),
            'global_ranking': [],
        }
        if self.latest_complete_year is not None:
            tables['regional_ranking'] = share_by_geography(
                regional, self.latest_complete_year, self.vehicle_type
            )

        known_global = [row['year'] for row in tables['global_share_by_year'] if row['share'] is not None]
        self.latest_global_year = max(known_global) if known_global else None
        if self.latest_global_year is not None:
            tables['global_ranking'] = global_ranking(
                global_records, self.latest_global_year, self.global_aggregates
            )

        self.tables = tables
        logger.info(f"Aggregation complete. Processed {self.records_processed} records")
        self._log_summary_statistics()
        return tables

    def _log_summary_statistics(self) -> None:
        for name, rows in self.tables.items():
            logger.info(f"{name}: {len(rows)} rows")
        if self.latest_complete_year is not None:
            latest = [r for r in self.tables['national_share_by_year'] if r['year'] == self.latest_complete_year]
            if latest and latest[0]['share'] is not None:
                logger.info(
                    f"{self.national_geography} EV share in {self.latest_complete_year}: "
                    f"{latest[0]['share']:.2%}"
                )

    def get_aggregation_summary(self) -> Dict[str, Any]:
        """Get a summary of all aggregations."""
        return {
            'records_processed': self.records_processed,
            'latest_complete_year': self.latest_complete_year,
            'latest_global_year': self.latest_global_year,
            **{f"{name}_rows": len(rows) for name, rows in self.tables.items()},
        }
