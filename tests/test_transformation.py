# ========================
# tests/test_transformation.py
# ========================

import unittest
import sys
import os
from datetime import date

sys.path.insert(0, os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), 'src'))

from ev_adoption.pipeline.models import GlobalSalesRecord, RegistrationRecord
from ev_adoption.pipeline.transformation import (
    DataAggregator,
    fuel_type_breakdown,
    global_ranking,
    global_share_by_year,
    growth_rate,
    growth_values,
    latest_complete_year,
    share_by_geography,
    share_by_period,
)

TOTAL = 'Total, vehicle type'


def rec(fuel, count, year=2023, quarter=None, geo='Canada', vehicle=TOTAL):
    period_date = date(year, 3 * (quarter - 1) + 1, 1) if quarter else None
    source = 'quarterly' if quarter else 'yearly'
    return RegistrationRecord(geo, fuel, vehicle, count, year, quarter, period_date, source)


def year_of(year, ev, non_ev, geo='Canada'):
    return [rec('Battery electric', ev, year, geo=geo), rec('Gasoline', non_ev, year, geo=geo),
            rec('All fuel types', None if ev is None or non_ev is None else ev + non_ev, year, geo=geo)]


class TestShareByPeriod(unittest.TestCase):

    def setUp(self):
        self.records = [
            rec('Battery electric', 9000),
            rec('Plug-in hybrid electric', 3288),
            rec('Hybrid electric', 10000),
            rec('Gasoline', 90000),
            rec('All fuel types', 112288),
            rec('Battery electric', 500, vehicle='Vans'),
        ]

    def test_share_excludes_total_row(self):
        """12,288 EVs out of 112,288 registrations, not out of twice that."""
        series = share_by_period(self.records, 'Canada', 'year')

        self.assertEqual(len(series), 1)
        row = series[0]
        self.assertEqual(row['ev'], 12288)
        self.assertEqual(row['non_ev'], 100000)
        self.assertEqual(row['total'], 112288)
        self.assertAlmostEqual(row['share'], 0.1094, places=4)

    def test_share_is_always_a_fraction(self):
        records = year_of(2019, 10, 90) + year_of(2020, 0, 50) + year_of(2021, 40, 0)
        for row in share_by_period(records, 'Canada'):
            self.assertGreaterEqual(row['share'], 0)
            self.assertLessEqual(row['share'], 1)

    def test_quarter_axis_uses_only_quarterly_rows(self):
        records = year_of(2016, 10, 90)
        for quarter in (1, 2):
            records += [rec('Battery electric', 5 * quarter, 2017, quarter),
                        rec('Gasoline', 95, 2017, quarter)]

        quarterly = share_by_period(records, 'Canada', 'quarter')
        yearly = share_by_period(records, 'Canada', 'year')

        self.assertEqual([r['period'] for r in quarterly], ['2017-Q1', '2017-Q2'])
        self.assertAlmostEqual(quarterly[1]['share'], 10 / 105)
        self.assertEqual([r['period'] for r in yearly], ['2016', '2017'])
        self.assertEqual(yearly[1]['ev'], 15)
        self.assertEqual(yearly[1]['total'], 205)

    def test_unreported_counts_are_not_zero(self):
        records = year_of(2018, None, 100) + [rec('Plug-in hybrid electric', None, 2018)]
        row = share_by_period(records, 'Canada')[0]

        self.assertIsNone(row['ev'])
        self.assertIsNone(row['total'])
        self.assertIsNone(row['share'])

    def test_partially_reported_group_sums_reported_counts(self):
        records = [rec('Battery electric', 7, 2018), rec('Plug-in hybrid electric', None, 2018),
                   rec('Gasoline', 93, 2018)]
        row = share_by_period(records, 'Canada')[0]
        self.assertEqual(row['ev'], 7)
        self.assertAlmostEqual(row['share'], 0.07)

    def test_zero_denominator_gives_no_share(self):
        row = share_by_period(year_of(2018, 0, 0), 'Canada')[0]
        self.assertEqual(row['total'], 0)
        self.assertIsNone(row['share'])

    def test_invalid_time_axis(self):
        with self.assertRaises(ValueError):
            share_by_period(self.records, 'Canada', 'month')


class TestGrowthRate(unittest.TestCase):

    def test_constant_series_has_zero_growth(self):
        series = [{'period': str(y), 'share': 0.25} for y in (2019, 2020, 2021)]
        rates = [row['growth_rate'] for row in growth_rate(series)]
        self.assertEqual(rates, [None, 0.0, 0.0])

    def test_growth_in_percent(self):
        series = [{'share': 0.10}, {'share': 0.15}, {'share': 0.12}]
        rates = [row['growth_rate'] for row in growth_rate(series)]
        self.assertIsNone(rates[0])
        self.assertAlmostEqual(rates[1], 50.0)
        self.assertAlmostEqual(rates[2], -20.0)

    def test_zero_or_missing_prior_gives_none(self):
        series = [{'share': 0.0}, {'share': 0.1}, {'share': None}, {'share': 0.2}]
        rates = [row['growth_rate'] for row in growth_rate(series)]
        self.assertEqual(rates, [None, None, None, None])

    def test_growth_values_skips_undefined(self):
        series = growth_rate([{'ev': 100}, {'ev': 150}, {'ev': 300}], value_key='ev')
        self.assertEqual(growth_values(series), [50.0, 100.0])


class TestRankingsAndBreakdown(unittest.TestCase):

    def test_regional_ranking_with_ties(self):
        records = (year_of(2022, 30, 70, 'Quebec') + year_of(2022, 15, 85, 'Ontario')
                   + year_of(2022, 3, 7, 'British Columbia') + year_of(2022, None, None, 'Manitoba'))
        ranking = share_by_geography(records, 2022)

        ranks = {row['geography']: row['rank'] for row in ranking}
        self.assertEqual(ranks, {'Quebec': 1, 'British Columbia': 1, 'Ontario': 3, 'Manitoba': None})
        self.assertEqual(ranking[-1]['geography'], 'Manitoba')

    def test_fuel_type_breakdown(self):
        records = [rec('Battery electric', 20), rec('Gasoline', 60), rec('Diesel', 20),
                   rec('All fuel types', 100)]
        rows = fuel_type_breakdown(records, 'Canada')

        self.assertEqual(len(rows), 3)
        by_fuel = {row['fuel_type']: row for row in rows}
        self.assertEqual(by_fuel['Gasoline']['rank'], 1)
        self.assertAlmostEqual(by_fuel['Gasoline']['share_of_total'], 0.6)
        self.assertEqual(by_fuel['Battery electric']['classification'], 'EV')
        self.assertEqual(by_fuel['Diesel']['classification'], 'Non-EV')
        self.assertEqual(by_fuel['Diesel']['rank'], by_fuel['Battery electric']['rank'])

    def test_latest_complete_year(self):
        records = year_of(2016, 1, 9)
        records += [rec('Gasoline', 1, 2017, q) for q in range(1, 5)]
        records += [rec('Gasoline', 1, 2018, q) for q in range(1, 3)]
        self.assertEqual(latest_complete_year(records), 2017)
        self.assertEqual(latest_complete_year(year_of(2016, 1, 9)), 2016)
        self.assertIsNone(latest_complete_year([]))

    def test_global_share_and_ranking(self):
        records = [
            GlobalSalesRecord('World', 2022, 100, 900),
            GlobalSalesRecord('World', 2023, 140, 860),
            GlobalSalesRecord('Europe', 2023, 30, 70),
            GlobalSalesRecord('Norway', 2023, 90, 10),
            GlobalSalesRecord('China', 2023, 35, 65),
            GlobalSalesRecord('Canada', 2023, None, 90),
        ]
        shares = global_share_by_year(records, 'World')
        self.assertEqual([row['year'] for row in shares], [2022, 2023])
        self.assertAlmostEqual(shares[1]['share'], 0.14)

        ranking = global_ranking(records, 2023, exclude_entities=['World', 'Europe'])
        self.assertEqual([row['entity'] for row in ranking], ['Norway', 'China', 'Canada'])
        self.assertEqual([row['rank'] for row in ranking], [1, 2, None])


class TestDataAggregator(unittest.TestCase):

    def test_build_report(self):
        merged = year_of(2016, 5, 95) + year_of(2016, 2, 98, 'Alberta') + year_of(2016, 9, 91, 'Quebec')
        for quarter in range(1, 5):
            merged += [rec('Battery electric', 10, 2017, quarter), rec('Gasoline', 90, 2017, quarter)]
        merged += [rec('Battery electric', 12, 2018, 1), rec('Gasoline', 88, 2018, 1)]
        global_records = [GlobalSalesRecord('World', 2017, 1, 99), GlobalSalesRecord('Norway', 2017, 50, 50)]

        aggregator = DataAggregator(global_aggregates=['Europe'])
        tables = aggregator.build_report(merged, global_records)

        self.assertEqual(aggregator.latest_complete_year, 2017)
        self.assertEqual([r['year'] for r in tables['national_share_by_year']], [2016, 2017, 2018])
        self.assertAlmostEqual(tables['national_share_by_year'][1]['growth_rate'], 100.0)
        self.assertEqual(len(tables['national_share_by_quarter']), 5)
        # No provincial rows in 2017, so the ranking is empty rather than stale
        self.assertEqual(tables['regional_ranking'], [])
        self.assertEqual([r['entity'] for r in tables['global_ranking']], ['Norway'])

        summary = aggregator.get_aggregation_summary()
        self.assertEqual(summary['latest_global_year'], 2017)
        self.assertEqual(summary['national_share_by_quarter_rows'], 5)


if __name__ == '__main__':
    unittest.main()
