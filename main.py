#!/usr/bin/env python3
# ========================
# main.py
# ========================

"""
Main Entry Point for the Summer Water Clarity Layer

Prepares the mean summer Secchi depth layer. If no observation file exists
at the configured input path, a synthetic one is generated first so the
whole pipeline can be tried end to end.
"""

import sys
import logging
from pathlib import Path

# Add src to Python path
sys.path.insert(0, str(Path(__file__).parent / 'src'))

from src.clarity_pipeline import SecchiLayerPipeline, LayerPipelineError
from src.utils import Config, setup_logging, SampleDataGenerator

def main():
    """Main execution function."""
    config = Config()

    setup_logging(
        log_level=config.LOG_LEVEL,
        log_file="pipeline.log",
        log_dir="logs"
    )

    logger = logging.getLogger(__name__)
    logger.info("="*60)
    logger.info("SUMMER WATER CLARITY LAYER - MAIN EXECUTION")
    logger.info("="*60)

    invalid = [name for name, ok in config.validate_config().items() if not ok]
    if invalid:
        logger.error(f"Invalid configuration settings: {', '.join(invalid)}")
        return 1

    try:
        config.ensure_directories()

        # Step 1: Sample data, only when no real observations are present
        if not config.input_file.exists():
            logger.info(f"Step 1: No input at {config.input_file}; generating sample data...")
            generator = SampleDataGenerator(seed=42)
            generation_stats = generator.generate_dataset(str(config.input_file), num_rows=5000)
            logger.info(f"Sample data generated: {generation_stats}")
        else:
            logger.info(f"Step 1: Using observations at {config.input_file}")

        # Step 2: Run the pipeline
        logger.info("Step 2: Running layer pipeline...")
        pipeline = SecchiLayerPipeline(config=config)

        if not pipeline.validate_input():
            logger.error("Input validation failed. Exiting.")
            return 1

        results = pipeline.run()

        # Step 3: Summary
        _print_execution_summary(results)
        return 0

    except LayerPipelineError as e:
        logger.error(f"Layer preparation failed: {e}")
        return 1

def _print_execution_summary(results: dict) -> None:
    """Print final execution summary."""
    quality_stats = results['data_quality_stats']
    filter_stats = results['filter_stats']
    processing_stats = results['processing_stats']

    print("\n" + "="*70)
    print("LAYER PREPARATION SUMMARY")
    print("="*70)

    print("Cleaning:")
    print(f"   - Rows read: {quality_stats['records_processed']:,}")
    print(f"   - Dropped, missing region id: {quality_stats['dropped_missing_region']:,}")
    print(f"   - Dropped, exact duplicates: {quality_stats['dropped_duplicates']:,}")
    if quality_stats['dropped_bad_date']:
        print(f"   - Dropped, unparsable date: {quality_stats['dropped_bad_date']:,}")

    print("\nSeason window:")
    print(f"   - Rows kept: {filter_stats['records_kept']:,} of {filter_stats['records_seen']:,}")

    print("\nAggregation:")
    print(f"   - Monthly groups: {processing_stats['monthly_groups']:,}")
    print(f"   - Layer rows: {processing_stats['region_year_rows']:,} "
          f"({processing_stats['regions']} regions)")

    print("\nOutputs:")
    for output_type, file_path in results['saved_files'].items():
        print(f"   - {output_type.replace('_', ' ').title()}: {file_path}")

    print("="*70)

if __name__ == '__main__':
    exit_code = main()
    sys.exit(exit_code)
