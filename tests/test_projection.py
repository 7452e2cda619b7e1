# ========================
# tests/test_projection.py
# ========================

import math
import unittest
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), 'src'))

from ev_adoption.pipeline.errors import PipelineError, ProjectionError
from ev_adoption.pipeline.projection import (
    describe_saturation,
    saturation_window,
    years_to_saturation,
)


class TestYearsToSaturation(unittest.TestCase):

    def test_closed_form(self):
        years = years_to_saturation(0.11, 0.53)
        self.assertAlmostEqual(years, math.log(1 / 0.11) / math.log(1.53))
        self.assertAlmostEqual(years, 5.19, places=2)

    def test_compounding_reaches_saturation(self):
        share, rate = 0.05, 0.25
        years = years_to_saturation(share, rate)
        self.assertAlmostEqual(share * (1 + rate) ** years, 1.0)

    def test_share_outside_open_interval(self):
        for share in (0, 0.0, 1, 1.0, -0.2, 1.5):
            with self.assertRaises(ProjectionError, msg=f"Accepted share {share}"):
                years_to_saturation(share, 0.3)

    def test_non_positive_growth(self):
        for rate in (-1.0, -1.5, -0.2, 0.0):
            with self.assertRaises(ProjectionError, msg=f"Accepted growth {rate}"):
                years_to_saturation(0.11, rate)

    def test_missing_inputs(self):
        for share, rate in ((None, 0.3), (0.1, None), (float('nan'), 0.3), (0.1, float('nan'))):
            with self.assertRaises(ProjectionError):
                years_to_saturation(share, rate)

    def test_error_carries_inputs(self):
        with self.assertRaises(PipelineError) as ctx:
            years_to_saturation(1.0, 0.3)
        self.assertEqual(ctx.exception.context, {'current_share': 1.0, 'growth_rate': 0.3})


class TestSaturationWindow(unittest.TestCase):

    def test_mean_and_minimum_bounds(self):
        window = saturation_window(0.11, [53.0, 20.0, 80.0], 2023)

        optimistic, pessimistic = window['optimistic'], window['pessimistic']
        self.assertAlmostEqual(optimistic['growth_rate'], 51.0)
        self.assertAlmostEqual(pessimistic['growth_rate'], 20.0)
        self.assertAlmostEqual(optimistic['years'], math.log(1 / 0.11) / math.log(1.51))
        self.assertEqual(optimistic['year'], 2023 + math.ceil(math.log(1 / 0.11) / math.log(1.51)))
        self.assertEqual(pessimistic['year'], 2023 + math.ceil(math.log(1 / 0.11) / math.log(1.20)))
        self.assertLessEqual(optimistic['year'], pessimistic['year'])
        self.assertIsNone(optimistic['error'])

    def test_undefined_pessimistic_bound_keeps_optimistic(self):
        window = saturation_window(0.2, [40.0, -10.0], 2022)

        self.assertIsNotNone(window['optimistic']['year'])
        self.assertIsNone(window['pessimistic']['year'])
        self.assertIn('positive growth', window['pessimistic']['error'])

        text = describe_saturation('Canada', window)
        self.assertIn(f"by {window['optimistic']['year']}", text)
        self.assertIn('undefined', text)

    def test_no_growth_history(self):
        window = saturation_window(0.1, [None], 2020)
        self.assertEqual(window['optimistic']['error'], "No historical growth rates available")
        self.assertIsNone(window['pessimistic']['year'])
        self.assertIn('undefined', describe_saturation('World', window))

    def test_description_names_both_years(self):
        window = saturation_window(0.11, [53.0, 20.0], 2023)
        text = describe_saturation('Canada', window)

        self.assertTrue(text.startswith('Canada: starting from an EV share of 11.0% in 2023'))
        self.assertIn(str(window['optimistic']['year']), text)
        self.assertIn(str(window['pessimistic']['year']), text)


if __name__ == '__main__':
    unittest.main()
