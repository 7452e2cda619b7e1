#!/usr/bin/env python3
# ========================
# main.py
# ========================

"""
Main Entry Point for the EV Adoption Pipeline

Runs the pipeline on the configured extracts (generating sample extracts
when none are present) and prints the EV share and saturation summary.
"""

import sys
import logging
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent / 'src'))

from ev_adoption.pipeline import EVAdoptionPipeline, PipelineError
from ev_adoption.utils import Config, setup_logging, DataGenerator


def main():
    """Main execution function."""
    config = Config()

    setup_logging(
        log_level=config.LOG_LEVEL,
        log_file="pipeline.log",
        log_dir="logs"
    )

    logger = logging.getLogger(__name__)
    logger.info("=" * 60)
    logger.info("EV ADOPTION PIPELINE - MAIN EXECUTION")
    logger.info("=" * 60)

    invalid = [name for name, ok in config.validate_config().items() if not ok]
    if invalid:
        logger.error(f"Invalid configuration settings: {invalid}")
        return 1

    config.ensure_directories()

    # Step 1: make sure the extracts exist
    paths = config.get_data_paths()
    generation_stats = None
    if not all(paths[name].exists() for name in ('yearly_file', 'quarterly_file', 'global_file')):
        logger.info("Step 1: Input extracts missing, generating sample data...")
        generation_stats = DataGenerator(seed=42).generate_dataset(str(paths['raw_data_dir']))
        config.YEARLY_FILE = generation_stats['yearly_file']
        config.QUARTERLY_FILE = generation_stats['quarterly_file']
        config.GLOBAL_FILE = generation_stats['global_file']
    else:
        logger.info("Step 1: Using existing input extracts")

    # Step 2: run the pipeline
    logger.info("Step 2: Running EV adoption pipeline...")
    pipeline = EVAdoptionPipeline(
        yearly_file=config.YEARLY_FILE,
        quarterly_file=config.QUARTERLY_FILE,
        global_file=config.GLOBAL_FILE,
        output_dir=config.DEFAULT_OUTPUT_DIR,
        chunk_size=config.DEFAULT_CHUNK_SIZE,
        config=config
    )

    if not pipeline.validate_input():
        logger.error("Input validation failed. Exiting.")
        return 1

    estimates = pipeline.estimate_processing_time()
    if estimates:
        logger.info(f"Processing estimates: {estimates}")

    try:
        results = pipeline.run()
    except PipelineError as e:
        logger.error(f"Pipeline execution failed: {e}", exc_info=True)
        return 1
    except Exception as e:
        logger.error(f"Pipeline execution failed unexpectedly: {e}", exc_info=True)
        return 1

    # Step 3: summary
    _print_execution_summary(results, generation_stats)
    logger.info("Pipeline execution completed successfully!")
    return 0


def _print_execution_summary(results: dict, generation_stats) -> None:
    """Print final execution summary."""
    print("\n" + "=" * 70)
    print("EV ADOPTION PIPELINE SUMMARY")
    print("=" * 70)

    if generation_stats:
        print("📊 Sample Data:")
        print(f"   • Yearly rows: {generation_stats['yearly_rows']:,}")
        print(f"   • Quarterly rows: {generation_stats['quarterly_rows']:,}")
        print(f"   • Global rows: {generation_stats['global_rows']:,}")
        print(f"   • Suppressed cells: {generation_stats['suppressed_cells']:,}")

    processing = results['processing_stats']
    quality = results['data_quality_stats']
    print("\n🔄 Processing:")
    print(f"   • Rows normalized: {quality['total_rows']:,}")
    print(f"   • Cutover year: {processing['cutover_year']}")
    print(f"   • Latest complete year: {processing['latest_complete_year']}")
    print(f"   • Rows dropped (excluded geographies): {quality['rows_dropped']}")

    latest = [row for row in results['tables']['national_share_by_year']
              if row['year'] == processing['latest_complete_year']]
    if latest and latest[0]['share'] is not None:
        print(f"   • National EV share: {latest[0]['share']:.2%}")

    print("\n📈 Saturation Projections:")
    for window in results['projections'].values():
        print(f"   • {window['description']}")

    print("\n📁 Generated Outputs:")
    for dataset_type, file_path in results['saved_files'].items():
        print(f"   • {dataset_type.replace('_', ' ').title()}: {Path(file_path).name}")

    print("=" * 70)


if __name__ == '__main__':
    sys.exit(main())
