# ========================
# tests/test_orchestrator.py
# ========================

import csv
import json
import math
import os
import shutil
import sys
import tempfile
import unittest
from pathlib import Path

sys.path.insert(0, os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), 'src'))

from ev_adoption.pipeline import EVAdoptionPipeline
from ev_adoption.pipeline.errors import SchemaError, ValidationError
from ev_adoption.utils import Config, DataGenerator

REGISTRATION_HEADER = ['REF_DATE', 'GEO', 'Fuel type', 'Vehicle type', 'VALUE']
GLOBAL_HEADER = ['Entity', 'Year', 'Electric cars sold', 'Non-electric car sales']
TOTAL = 'Total, vehicle type'
QUARTER_MONTHS = ['01', '04', '07', '10']


def _registrations(period, counts):
    """counts: geography -> (battery electric, gasoline), None for unreported."""
    rows = []
    for geo, (ev, gas) in counts.items():
        total = '' if ev is None or gas is None else ev + gas
        for fuel, value in (('Battery electric', ev), ('Gasoline', gas), ('All fuel types', total)):
            rows.append([period, geo, fuel, TOTAL, '..' if value is None else value])
    return rows


class TestPipelineOnSmallExtracts(unittest.TestCase):
    """Hand-built extracts with known answers."""

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        self.output_dir = os.path.join(self.temp_dir, 'out')

        self.yearly = (
            _registrations('2015', {'Canada': (10, 990), 'Quebec': (5, 495), 'Yukon': (None, None)})
            + _registrations('2016', {'Canada': (20, 980), 'Quebec': (10, 490), 'Yukon': (None, None)})
            + _registrations('2017', {'Canada': (35, 965), 'Quebec': (20, 480), 'Yukon': (None, None)})
        )
        self.quarterly = []
        for month in QUARTER_MONTHS:
            self.quarterly += _registrations(
                f'2017-{month}', {'Canada': (10, 240), 'Quebec': (6, 119), 'Yukon': (None, None)}
            )
        self.global_rows = [
            ['World', 2016, 1, 99],
            ['World', 2017, 2, 98],
            ['Norway', 2017, 50, 50],
            ['Europe', 2017, 20, 80],
        ]

    def tearDown(self):
        shutil.rmtree(self.temp_dir)

    def _write(self, name, header, rows):
        path = os.path.join(self.temp_dir, name)
        with open(path, 'w', newline='', encoding='utf-8') as f:
            writer = csv.writer(f)
            writer.writerow(header)
            writer.writerows(rows)
        return path

    def _pipeline(self, config=None, output_dir=None):
        return EVAdoptionPipeline(
            yearly_file=self._write('yearly.csv', REGISTRATION_HEADER, self.yearly),
            quarterly_file=self._write('quarterly.csv', REGISTRATION_HEADER, self.quarterly),
            global_file=self._write('global.csv', GLOBAL_HEADER, self.global_rows),
            output_dir=output_dir,
            chunk_size=4,
            config=config or Config({'cutover_year': None}),
        )

    def test_known_shares_and_projection(self):
        results = self._pipeline().run()
        tables = results['tables']

        self.assertEqual(results['pipeline_status'], 'completed')
        self.assertEqual(results['processing_stats']['cutover_year'], 2017)

        by_year = {row['year']: row for row in tables['national_share_by_year']}
        self.assertAlmostEqual(by_year[2015]['share'], 0.01)
        self.assertAlmostEqual(by_year[2016]['share'], 0.02)
        # 2017 comes from the four quarters, not from the yearly row
        self.assertEqual(by_year[2017]['ev'], 40)
        self.assertEqual(by_year[2017]['total'], 1000)
        self.assertAlmostEqual(by_year[2017]['growth_rate'], 100.0)
        self.assertEqual(len(tables['national_share_by_quarter']), 4)

        self.assertNotIn('Yukon', {row['geography'] for row in tables['merged_registrations']})
        self.assertEqual([row['geography'] for row in tables['regional_ranking']], ['Quebec'])
        self.assertEqual([row['entity'] for row in tables['global_ranking']], ['Norway'])

        national = results['projections']['national']
        self.assertEqual(national['base_year'], 2017)
        self.assertAlmostEqual(national['current_share'], 0.04)
        self.assertEqual(national['optimistic']['year'], 2017 + math.ceil(math.log(25) / math.log(2)))
        self.assertIn('Canada', national['description'])
        self.assertIn('global', results['projections'])

        self.assertEqual(results['saved_files'], {})
        self.assertIsNotNone(results['performance'])

    def test_outputs_are_written(self):
        results = self._pipeline(output_dir=self.output_dir).run()

        for name in ('national_share_by_year', 'regional_ranking', 'saturation_projection',
                     'summary', 'data_dictionary', 'merged_registrations'):
            self.assertTrue(Path(results['saved_files'][name]).exists(), name)

        with open(results['saved_files']['saturation_projection'], encoding='utf-8') as f:
            saved = json.load(f)
        self.assertEqual(saved['national']['base_year'], 2017)

        with open(results['saved_files']['national_share_by_year'], newline='', encoding='utf-8') as f:
            rows = list(csv.DictReader(f))
        self.assertEqual([row['period'] for row in rows], ['2015', '2016', '2017'])
        self.assertEqual(rows[0]['growth_rate'], '')

    def test_reported_territory_stops_strict_run(self):
        self.yearly.append(['2016', 'Yukon', 'Battery electric', 'Vans', '3'])
        self.quarterly.append(['2017-01', 'Yukon', 'Battery electric', 'Vans', ''])

        with self.assertRaises(ValidationError) as ctx:
            self._pipeline(output_dir=self.output_dir).run()
        self.assertEqual(ctx.exception.context['source'], 'yearly')
        self.assertEqual(list(Path(self.output_dir).glob('*')), [])

    def test_reported_territory_is_dropped_when_not_strict(self):
        self.yearly.append(['2016', 'Yukon', 'Battery electric', 'Vans', '3'])
        self.quarterly.append(['2017-01', 'Yukon', 'Battery electric', 'Vans', ''])

        results = self._pipeline(config=Config({'strict_validation': False})).run()

        quality = results['data_quality_stats']
        self.assertEqual(quality['excluded_evidence']['yearly'], 1)
        self.assertEqual(len(quality['warnings']), 1)
        self.assertNotIn('Yukon', {row['geography'] for row in results['tables']['merged_registrations']})

    def test_category_mismatch_stops_run(self):
        self.quarterly.append(['2017-01', 'Canada', 'Hydrogen', TOTAL, '1'])
        with self.assertRaises(ValidationError) as ctx:
            self._pipeline().run()
        self.assertIn(('Hydrogen', TOTAL), ctx.exception.context['only_in_quarterly'])

    def test_unparseable_period_stops_run(self):
        self.quarterly[5][0] = '2017 Q1'
        with self.assertRaises(SchemaError) as ctx:
            self._pipeline().run()
        self.assertEqual(ctx.exception.context['row'], 7)
        self.assertEqual(ctx.exception.context['value'], '2017 Q1')

    def test_cutover_after_first_quarterly_year_is_rejected(self):
        with self.assertRaises(ValidationError):
            self._pipeline(config=Config({'cutover_year': 2018})).run()

    def test_validate_input(self):
        pipeline = self._pipeline()
        self.assertTrue(pipeline.validate_input())
        self.assertIn('estimated_rows', pipeline.estimate_processing_time())

        os.unlink(pipeline.input_files['global'])
        self.assertFalse(pipeline.validate_input())
        self.assertEqual(pipeline.estimate_processing_time(), {})


class TestPipelineOnGeneratedExtracts(unittest.TestCase):
    """End-to-end run on synthetic extracts shaped like the real tables."""

    @classmethod
    def setUpClass(cls):
        cls.temp_dir = tempfile.mkdtemp()
        cls.stats = DataGenerator(seed=7).generate_dataset(os.path.join(cls.temp_dir, 'raw'))
        cls.results = EVAdoptionPipeline(
            yearly_file=cls.stats['yearly_file'],
            quarterly_file=cls.stats['quarterly_file'],
            global_file=cls.stats['global_file'],
            output_dir=os.path.join(cls.temp_dir, 'out'),
            config=Config({'cutover_year': None, 'strict_validation': True}),
        ).run()

    @classmethod
    def tearDownClass(cls):
        shutil.rmtree(cls.temp_dir)

    def test_merge_covers_full_history_once(self):
        tables = self.results['tables']
        self.assertEqual(self.results['processing_stats']['cutover_year'], 2017)
        self.assertEqual([row['year'] for row in tables['national_share_by_year']], list(range(2011, 2024)))
        self.assertEqual(len(tables['national_share_by_quarter']), 28)

        geographies = {row['geography'] for row in tables['merged_registrations']}
        self.assertEqual(len(geographies), 11)
        self.assertFalse(geographies & {'Yukon', 'Northwest Territories', 'Nunavut'})

    def test_shares_are_fractions(self):
        for name in ('national_share_by_year', 'national_share_by_quarter', 'global_share_by_year'):
            for row in self.results['tables'][name]:
                self.assertIsNotNone(row['share'], f"{name} {row['period']}")
                self.assertTrue(0 <= row['share'] <= 1, f"{name} {row['period']}")

    def test_rankings(self):
        tables = self.results['tables']
        self.assertEqual(self.results['processing_stats']['latest_complete_year'], 2023)
        self.assertEqual(len(tables['regional_ranking']), 10)
        self.assertNotIn('Canada', [row['geography'] for row in tables['regional_ranking']])
        self.assertEqual(
            sorted(row['entity'] for row in tables['global_ranking']),
            ['Canada', 'China', 'Germany', 'Norway', 'United States'],
        )

    def test_projections(self):
        national = self.results['projections']['national']
        self.assertEqual(national['base_year'], 2023)
        self.assertIsNotNone(national['optimistic']['year'])
        self.assertGreater(national['optimistic']['year'], 2023)

    def test_saved_files(self):
        for path in self.results['saved_files'].values():
            self.assertTrue(Path(path).exists(), path)


if __name__ == '__main__':
    unittest.main()
