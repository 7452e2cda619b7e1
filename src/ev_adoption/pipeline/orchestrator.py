# ========================
# src/ev_adoption/pipeline/orchestrator.py
# ========================

"""
Pipeline Orchestrator Module

Runs load, normalize, validate, merge, aggregate and project in one pass.
A schema or validation error aborts the run before anything is written.
"""

import logging
from typing import Any, Dict, List, Optional
from pathlib import Path

from .ingestion import load_table
from .normalization import SchemaNormalizer
from .validation import DataValidator
from .merging import classify_records, union_preferring_fine_grain
from .transformation import DataAggregator, growth_values
from .projection import describe_saturation, saturation_window
from .storage import DataSaver
from ..utils.performance_monitor import monitor_performance
from ..utils.config import Config

logger = logging.getLogger(__name__)


class EVAdoptionPipeline:
    """
    Orchestrates the EV adoption pipeline.
    Coordinates reading, normalizing, validating, merging, aggregating,
    projecting and (optionally) storing.
    """

    def __init__(self,
                 yearly_file: str,
                 quarterly_file: str,
                 global_file: str,
                 output_dir: Optional[str] = None,
                 chunk_size: int = 1000,
                 config: Optional[Config] = None):
        """
        Initialize the pipeline.

        Args:
            yearly_file (str): Coarse-grain registrations extract
            quarterly_file (str): Fine-grain registrations extract
            global_file (str): Global sales extract
            output_dir (str): Directory for output files; nothing is written when None
            chunk_size (int): Number of rows read per chunk
            config (Config): Configuration object
        """
        self.config = config or Config()
        self.input_files = {
            'yearly': yearly_file,
            'quarterly': quarterly_file,
            'global': global_file,
        }
        self.output_dir = output_dir
        self.chunk_size = chunk_size

        self.normalizer = SchemaNormalizer(
            columns=self.config.REGISTRATION_COLUMNS,
            global_columns=self.config.GLOBAL_COLUMNS,
        )
        self.validator = DataValidator(strict=self.config.STRICT_VALIDATION)
        self.aggregator = DataAggregator(
            national_geography=self.config.NATIONAL_GEOGRAPHY,
            vehicle_type=self.config.TOTAL_VEHICLE_TYPE,
            global_entity=self.config.GLOBAL_ENTITY,
            global_aggregates=self.config.GLOBAL_AGGREGATES,
        )
        self.saver = DataSaver(self.output_dir) if self.output_dir else None
        self.cutover_year: Optional[int] = None

        logger.info("EVAdoptionPipeline initialized:")
        for name, path in self.input_files.items():
            logger.info(f"  {name}: {path}")
        logger.info(f"  Output: {self.output_dir or '(not saved)'}")

    def run(self) -> Dict[str, Any]:
        """
        Execute the complete pipeline from start to finish.

        Returns:
            dict: Tables, projections, statistics and saved files

        Raises:
            SchemaError: An input does not match the expected layout
            ValidationError: A data-quality precondition does not hold
        """
        logger.info("Starting EV adoption pipeline...")

        with monitor_performance("EVAdoptionPipeline") as monitor:
            coarse, fine, global_records = self._load_and_normalize(monitor)

            coarse = self.validator.ensure_safe_to_drop(coarse, self.config.EXCLUDED_GEOGRAPHIES, 'yearly')
            fine = self.validator.ensure_safe_to_drop(fine, self.config.EXCLUDED_GEOGRAPHIES, 'quarterly')
            self.validator.ensure_category_parity(coarse, fine)
            monitor.add_checkpoint('validate')

            self.cutover_year = self.config.CUTOVER_YEAR
            if self.cutover_year is None and fine:
                self.cutover_year = min(r.year for r in fine)
            merged = classify_records(union_preferring_fine_grain(coarse, fine, self.cutover_year))
            self.validator.ensure_unique_periods(merged)
            monitor.add_checkpoint('merge', {'rows': len(merged), 'cutover_year': self.cutover_year})

            tables = self.aggregator.build_report(merged, global_records)
            tables['merged_registrations'] = [r.to_dict() for r in merged]
            monitor.add_checkpoint('aggregate')

            projections = self._project(tables)
            monitor.add_checkpoint('project')

            saved_files = {}
            if self.saver:
                logger.info("Saving output tables...")
                summary = {
                    'processing_stats': self._get_processing_stats(),
                    'data_quality_stats': self._get_quality_stats(),
                }
                saved_files = self.saver.save_all_data(tables, projections, summary)
                saved_files['data_dictionary'] = self.saver.create_data_dictionary()
                monitor.add_checkpoint('save', {'files': len(saved_files)})

        results = {
            'pipeline_status': 'completed',
            'input_files': dict(self.input_files),
            'output_directory': self.output_dir,
            'tables': tables,
            'projections': projections,
            'saved_files': saved_files,
            'processing_stats': self._get_processing_stats(),
            'data_quality_stats': self._get_quality_stats(),
            'performance': monitor.summary,
        }

        logger.info("Pipeline finished successfully.")
        self._log_final_summary(results)
        return results

    def _load_and_normalize(self, monitor):
        loaded = {}
        for name, path in self.input_files.items():
            header, rows = load_table(path, self.chunk_size)
            monitor.update_progress(len(rows))
            loaded[name] = (header, rows)
        monitor.add_checkpoint('load', {name: len(rows) for name, (_, rows) in loaded.items()})

        coarse = self.normalizer.normalize_yearly(loaded['yearly'][1], loaded['yearly'][0])
        fine = self.normalizer.normalize_quarterly(loaded['quarterly'][1], loaded['quarterly'][0])
        global_records = self.normalizer.normalize_global_sales(loaded['global'][1], loaded['global'][0])
        monitor.add_checkpoint('normalize')
        return coarse, fine, global_records

    def _project(self, tables: Dict[str, List[Dict[str, Any]]]) -> Dict[str, Any]:
        """Saturation windows for the national and global yearly series."""
        projections = {}
        complete_year = self.aggregator.latest_complete_year
        series_specs = [
            ('national', self.config.NATIONAL_GEOGRAPHY, tables['national_share_by_year'], complete_year),
            ('global', self.config.GLOBAL_ENTITY, tables['global_share_by_year'], None),
        ]
        for key, label, series, last_year in series_specs:
            if last_year is not None:
                series = [row for row in series if row['year'] <= last_year]
            known = [row for row in series if row['share'] is not None]
            if not known:
                logger.warning(f"No share data to project for {label}")
                continue
            current = known[-1]
            window = saturation_window(current['share'], growth_values(series), current['year'])
            window['label'] = label
            window['description'] = describe_saturation(label, window)
            logger.info(window['description'])
            projections[key] = window
        return projections

    def _get_processing_stats(self) -> dict:
        stats = self.aggregator.get_aggregation_summary()
        stats['chunk_size'] = self.chunk_size
        stats['cutover_year'] = self.cutover_year
        stats['input_file_sizes'] = {
            name: Path(path).stat().st_size if Path(path).exists() else 0
            for name, path in self.input_files.items()
        }
        return stats

    def _get_quality_stats(self) -> dict:
        return {
            **self.normalizer.get_statistics(),
            **self.validator.get_statistics(),
        }

    def _log_final_summary(self, results: dict) -> None:
        logger.info("=" * 60)
        logger.info("PIPELINE EXECUTION SUMMARY")
        logger.info("=" * 60)
        quality = results['data_quality_stats']
        logger.info(f"Rows normalized: {quality['total_rows']:,}")
        logger.info(f"Rows dropped for excluded geographies: {quality['rows_dropped']}")
        logger.info(f"Cutover year: {self.cutover_year}")
        for name, rows in results['tables'].items():
            logger.info(f"  • {name}: {len(rows)} rows")
        for dataset_type, file_path in results['saved_files'].items():
            logger.info(f"  • saved {dataset_type}: {file_path}")
        logger.info("=" * 60)

    def validate_input(self) -> bool:
        """
        Validate that every input file exists and is readable.

        Returns:
            bool: True if all inputs are valid
        """
        for name, path in self.input_files.items():
            input_path = Path(path)
            if not input_path.exists():
                logger.error(f"{name} input file does not exist: {path}")
                return False
            if not input_path.is_file():
                logger.error(f"{name} input path is not a file: {path}")
                return False
            try:
                with open(input_path, 'r', encoding='utf-8-sig') as f:
                    f.readline()
            except (OSError, UnicodeDecodeError) as e:
                logger.error(f"Cannot read {name} input file: {e}")
                return False

        logger.info("Input validation passed")
        return True

    def estimate_processing_time(self) -> dict:
        """
        Estimate processing time based on input file sizes.

        Returns:
            dict: Processing time estimates
        """
        try:
            total_size = sum(Path(path).stat().st_size for path in self.input_files.values())
        except OSError as e:
            logger.warning(f"Could not estimate processing time: {e}")
            return {}

        estimated_rows = total_size // 80  # roughly 80 bytes per extract row
        base_rate = 100000  # rows per second, conservative
        return {
            'total_size_mb': total_size / (1024 * 1024),
            'estimated_rows': estimated_rows,
            'estimated_processing_time_seconds': estimated_rows / base_rate,
            'chunk_count_estimate': estimated_rows // self.chunk_size,
        }
