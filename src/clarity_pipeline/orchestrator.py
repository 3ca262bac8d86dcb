# ========================
# src/clarity_pipeline/orchestrator.py
# ========================

"""
Pipeline Orchestrator Module

Runs load -> clean -> filter -> aggregate -> write once, top to bottom.
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

from .ingestion import CSVReader
from .cleaning import ObservationCleaner
from .filtering import SeasonFilter
from .transformation import MeanOfMeansAggregator
from .storage import LayerWriter
from .exceptions import LayerPipelineError
from ..utils.performance_monitor import monitor_performance
from ..utils.config import Config
from ..utils.run_metadata import RunMetadataManager

logger = logging.getLogger(__name__)

class SecchiLayerPipeline:
    """
    Orchestrates preparation of the mean summer Secchi depth layer.
    """

    def __init__(self, config: Optional[Config] = None):
        """
        Initialize the layer pipeline.

        Args:
            config (Config): Configuration object; paths and the season
                window are taken from it
        """
        self.config = config or Config()
        self.input_file = str(self.config.input_file)
        self.output_file = str(self.config.output_file)

        # Initialize pipeline components
        self.reader = CSVReader(self.input_file, delimiter=self.config.DELIMITER)
        self._build_stages()
        self.writer = LayerWriter(
            region_key=self.config.OUTPUT_REGION_KEY,
            value_key=self.config.OUTPUT_VALUE_KEY,
            delimiter=self.config.DELIMITER,
        )
        self.run_ledger = RunMetadataManager(str(self.config.run_metadata_file))

        logger.info("SecchiLayerPipeline initialized:")
        logger.info(f"  Input: {self.input_file}")
        logger.info(f"  Output: {self.output_file}")
        logger.info(f"  Years: {self.config.YEAR_RANGE[0]}-{self.config.YEAR_RANGE[1]}")
        logger.info(f"  Months: {sorted(self.config.MONTH_SET)}")

    def _build_stages(self) -> None:
        """Create the stateful stages; each run starts from fresh ones."""
        self.cleaner = ObservationCleaner(
            column_map=self.config.COLUMN_MAP,
            date_format=self.config.DATE_FORMAT,
            date_error_policy=self.config.DATE_ERROR_POLICY,
            null_tokens=self.config.NULL_TOKENS,
            source_name=self.input_file,
        )
        self.season_filter = SeasonFilter(
            months=self.config.MONTH_SET,
            year_range=self.config.YEAR_RANGE,
        )
        self.aggregator = MeanOfMeansAggregator()

    def run(self) -> Dict[str, Any]:
        """
        Execute the complete pipeline from start to finish.

        Returns:
            dict: Summary of processing results and saved files

        Raises:
            LayerPipelineError: Any read, schema, date or write failure.
                The failed run is recorded before the error propagates.
        """
        self._build_stages()
        run_id = self.run_ledger.new_run_id()
        started_at = datetime.now().isoformat()
        logger.info(f"Starting layer pipeline run {run_id} for '{self.input_file}'...")

        try:
            with monitor_performance("SecchiLayer") as monitor:
                self._process_chunks(monitor)
                monitor.add_checkpoint('clean_and_filter', self.cleaner.get_statistics())

                self.aggregator.finalize_aggregations()
                monitor.add_checkpoint('aggregate', self.aggregator.get_aggregation_summary())

                saved_files = self._save_outputs()
                monitor.add_checkpoint('write', {'files': len(saved_files)})
        except LayerPipelineError as e:
            logger.error(f"Layer pipeline run {run_id} failed: {e}")
            self.run_ledger.record_run(run_id, 'failed', self._run_details(started_at), error=str(e))
            raise

        results = {
            'pipeline_status': 'completed',
            'run_id': run_id,
            'input_file': self.input_file,
            'output_file': self.output_file,
            'saved_files': saved_files,
            'data_quality_stats': self.cleaner.get_statistics(),
            'filter_stats': self.season_filter.get_statistics(),
            'processing_stats': self.aggregator.get_aggregation_summary(),
            'performance': monitor.summary,
        }

        self.run_ledger.record_run(run_id, 'completed', {
            **self._run_details(started_at),
            'saved_files': saved_files,
        })

        logger.info("Pipeline finished successfully.")
        self._log_final_summary(results)
        return results

    def _process_chunks(self, monitor) -> None:
        """Read, clean, filter and aggregate the input chunk by chunk."""
        chunk_num = 0

        for raw_chunk in self.reader.read_in_chunks(self.config.CHUNK_SIZE,
                                                    required_columns=self.cleaner.source_columns):
            chunk_num += 1
            cleaned_chunk = self.cleaner.clean_chunk(raw_chunk)
            in_season = self.season_filter.apply(cleaned_chunk)

            logger.debug(f"Chunk {chunk_num}: {len(raw_chunk)} read, {len(cleaned_chunk)} clean, "
                         f"{len(in_season)} in season")

            if in_season:
                self.aggregator.process_chunk(in_season)

            monitor.update_progress(len(raw_chunk))

        self.cleaner.log_summary()
        filter_stats = self.season_filter.get_statistics()
        logger.info(f"Rows inside season window: {filter_stats['records_kept']:,} "
                    f"of {filter_stats['records_seen']:,}")

    def _save_outputs(self) -> Dict[str, str]:
        """Write the layer plus any configured intermediate outputs."""
        saved_files = {'layer': self.writer.save_layer(self.aggregator.results, self.output_file)}

        if self.config.WRITE_INTERMEDIATE:
            intermediate_dir = self.config.intermediate_dir
            saved_files['monthly_means'] = self.writer.save_monthly_means(
                self.aggregator.monthly, intermediate_dir / 'secchi_monthly_means.csv'
            )
            saved_files['summary'] = self.writer.save_summary({
                'input_file': self.input_file,
                'output_file': self.output_file,
                'year_range': list(self.config.YEAR_RANGE),
                'months': sorted(self.config.MONTH_SET),
                'cleaning': self.cleaner.get_statistics(),
                'filtering': self.season_filter.get_statistics(),
                'aggregation': self.aggregator.get_aggregation_summary(),
            }, intermediate_dir / 'secchi_summary.json')

        if self.config.ENABLE_DIAGNOSTIC_PLOTS:
            # imported here so runs without plots never load matplotlib
            from .diagnostics import render_diagnostics
            saved_files.update(render_diagnostics(
                self.aggregator.monthly, self.aggregator.results, self.config.plot_dir
            ))

        return saved_files

    def _run_details(self, started_at: str) -> Dict[str, Any]:
        return {
            'started_at': started_at,
            'input_file': self.input_file,
            'output_file': self.output_file,
            'year_range': list(self.config.YEAR_RANGE),
            'months': sorted(self.config.MONTH_SET),
            'cleaning': self.cleaner.get_statistics(),
            'filtering': self.season_filter.get_statistics(),
            'aggregation': self.aggregator.get_aggregation_summary(),
        }

    def _log_final_summary(self, results: dict) -> None:
        """Log final pipeline summary."""
        logger.info("="*60)
        logger.info("LAYER PIPELINE SUMMARY")
        logger.info("="*60)

        quality_stats = results['data_quality_stats']
        processing_stats = results['processing_stats']

        logger.info(f"Input file: {results['input_file']}")
        logger.info(f"Rows read: {quality_stats['records_processed']:,}")
        logger.info(f"Rows aggregated: {processing_stats['records_processed']:,}")
        logger.info(f"Layer rows: {processing_stats['region_year_rows']:,} "
                    f"across {processing_stats['regions']} regions")

        logger.info("Generated outputs:")
        for output_type, file_path in results['saved_files'].items():
            logger.info(f"  - {output_type}: {file_path}")

        logger.info("="*60)

    def validate_input(self) -> bool:
        """
        Validate input file exists and is readable.

        Returns:
            bool: True if input is valid
        """
        input_path = Path(self.input_file)
        if not input_path.exists():
            logger.error(f"Input file does not exist: {self.input_file}")
            return False

        if not input_path.is_file():
            logger.error(f"Input path is not a file: {self.input_file}")
            return False

        try:
            with open(self.input_file, 'r', encoding='utf-8-sig') as f:
                f.readline()
        except (OSError, UnicodeDecodeError) as e:
            logger.error(f"Cannot read input file: {e}")
            return False

        logger.info(f"Input validation passed: {self.input_file}")
        return True
