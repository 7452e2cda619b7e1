# ========================
# tests/test_main.py
# ========================

import csv
import os
import shutil
import sys
import tempfile
import unittest
from unittest import mock

ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, os.path.join(ROOT, 'src'))
sys.path.insert(0, ROOT)

import main
from ev_adoption.pipeline.errors import ValidationError


class TestMainEntryPoint(unittest.TestCase):
    """Failures inside the run are logged and turned into exit code 1."""

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        self.previous_cwd = os.getcwd()
        os.chdir(self.temp_dir)

        env = {'PIPELINE_OUTPUT_DIR': os.path.join(self.temp_dir, 'processed')}
        for name in ('yearly', 'quarterly', 'global'):
            path = os.path.join(self.temp_dir, f'{name}.csv')
            with open(path, 'w', encoding='utf-8') as f:
                f.write("REF_DATE,GEO\n")
            env[f'EV_{name.upper()}_FILE'] = path
        self.env_patch = mock.patch.dict(os.environ, env)
        self.env_patch.start()
        self.logging_patch = mock.patch.object(main, 'setup_logging')
        self.logging_patch.start()

    def tearDown(self):
        self.logging_patch.stop()
        self.env_patch.stop()
        os.chdir(self.previous_cwd)
        shutil.rmtree(self.temp_dir)

    def _run_with_failure(self, error):
        with mock.patch.object(main, 'EVAdoptionPipeline') as pipeline_class:
            pipeline = pipeline_class.return_value
            pipeline.validate_input.return_value = True
            pipeline.estimate_processing_time.return_value = {}
            pipeline.run.side_effect = error
            with self.assertLogs(main.__name__, level='ERROR') as logs:
                exit_code = main.main()
        return exit_code, logs

    def test_pipeline_error_returns_one(self):
        exit_code, logs = self._run_with_failure(ValidationError("Category mismatch"))
        self.assertEqual(exit_code, 1)
        self.assertIn("Category mismatch", logs.output[0])

    def test_unexpected_error_is_logged_and_returns_one(self):
        exit_code, logs = self._run_with_failure(csv.Error("field larger than field limit (131072)"))
        self.assertEqual(exit_code, 1)
        self.assertIn("field larger than field limit", logs.output[0])
        self.assertIsNotNone(logs.records[0].exc_info)


if __name__ == '__main__':
    unittest.main()
