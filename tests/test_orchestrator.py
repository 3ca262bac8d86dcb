# ========================
# tests/test_orchestrator.py
# ========================

import unittest
import tempfile
import csv
import os
import sys
from pathlib import Path

# Add the project root to Python path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from src.clarity_pipeline.orchestrator import SecchiLayerPipeline
from src.clarity_pipeline.storage import LayerWriter
from src.clarity_pipeline.models import RegionYearMean
from src.clarity_pipeline.exceptions import (
    ConfigurationError,
    DateParseError,
    ReadError,
    SchemaError,
    WriteError,
)
from src.utils.config import Config
from src.utils.data_generator import SampleDataGenerator
from src.utils.run_metadata import RunMetadataManager

HEADER = ['BHI_ID', 'secchi', 'year', 'month', 'lat', 'lon', 'date']

OBSERVATIONS = [
    ['5', '3.2', '2012', '6', '57.1', '19.2', '2012-06-03'],
    ['5', '3.8', '2012', '6', '57.2', '19.1', '2012-06-17'],
    ['5', '3.8', '2012', '6', '57.2', '19.1', '2012-06-17'],   # exact duplicate
    ['5', '4.0', '2012', '7', '57.1', '19.3', '2012-07-02'],
    ['NA', '9.9', '2012', '7', '57.0', '19.0', '2012-07-09'],  # no region
    ['5', '1.0', '2012', '5', '57.1', '19.2', '2012-05-20'],   # outside months
    ['5', '1.0', '2009', '7', '57.1', '19.2', '2009-07-20'],   # outside years
    ['7', '6.0', '2015', '9', '60.3', '21.4', '2015-09-01'],
    ['7', 'NA', '2015', '9', '60.3', '21.4', '2015-09-15'],   # null value
]


class PipelineTestCase(unittest.TestCase):

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.tmp_dir = Path(self._tmp.name)

    def write_input(self, rows, name="secchi.csv"):
        path = self.tmp_dir / "raw" / name
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w', newline='', encoding='utf-8') as f:
            writer = csv.writer(f)
            writer.writerow(HEADER)
            writer.writerows(rows)
        return path

    def make_config(self, input_path, **overrides):
        settings = {
            'base_dir': str(self.tmp_dir),
            'input_path': str(input_path),
            'output_path': str(self.tmp_dir / "layers" / "layer.csv"),
            'run_metadata_file': str(self.tmp_dir / "runs.json"),
            'plot_dir': str(self.tmp_dir / "plots"),
            'chunk_size': 2,
            'write_intermediate': True,
            'enable_diagnostic_plots': False,
            'date_error_policy': 'fail',
            'year_range': [2010, 2015],
            'month_set': [6, 7, 8, 9],
        }
        settings.update(overrides)
        return Config(settings)


class TestSecchiLayerPipeline(PipelineTestCase):

    def test_end_to_end(self):
        config = self.make_config(self.write_input(OBSERVATIONS))

        results = SecchiLayerPipeline(config=config).run()

        layer = LayerWriter().read_layer(config.output_file)
        self.assertEqual(layer, [RegionYearMean(5, 2012, 3.8), RegionYearMean(7, 2015, 6.0)])

        quality = results['data_quality_stats']
        self.assertEqual(quality['records_processed'], len(OBSERVATIONS))
        self.assertEqual(quality['dropped_missing_region'], 1)
        self.assertEqual(quality['dropped_duplicates'], 1)
        self.assertEqual(results['filter_stats']['records_kept'], 5)
        self.assertEqual(results['processing_stats']['region_year_rows'], 2)
        self.assertEqual(results['pipeline_status'], 'completed')

        for key in ('layer', 'monthly_means', 'summary'):
            self.assertTrue(Path(results['saved_files'][key]).exists(), key)

    def test_run_is_recorded_in_ledger(self):
        config = self.make_config(self.write_input(OBSERVATIONS))

        results = SecchiLayerPipeline(config=config).run()

        entry = RunMetadataManager(str(config.run_metadata_file)).get_run(results['run_id'])
        self.assertEqual(entry['status'], 'completed')
        self.assertEqual(entry['cleaning']['dropped_duplicates'], 1)
        self.assertEqual(entry['year_range'], [2010, 2015])

    def test_second_run_overwrites_layer(self):
        config = self.make_config(self.write_input(OBSERVATIONS))
        SecchiLayerPipeline(config=config).run()

        narrow = self.make_config(config.input_file, year_range=[2015, 2015])
        SecchiLayerPipeline(config=narrow).run()

        self.assertEqual(LayerWriter().read_layer(narrow.output_file), [RegionYearMean(7, 2015, 6.0)])
        self.assertEqual(len(RunMetadataManager(str(config.run_metadata_file)).load_runs()), 2)

    def test_empty_window_writes_empty_layer(self):
        config = self.make_config(self.write_input(OBSERVATIONS), year_range='2030-2031')

        results = SecchiLayerPipeline(config=config).run()

        self.assertEqual(results['processing_stats']['region_year_rows'], 0)
        self.assertEqual(LayerWriter().read_layer(config.output_file), [])

    def test_bad_date_aborts_and_records_failure(self):
        rows = OBSERVATIONS + [['7', '5.0', '2015', '8', '60.3', '21.4', '15/08/2015']]
        config = self.make_config(self.write_input(rows))
        pipeline = SecchiLayerPipeline(config=config)

        with self.assertRaises(DateParseError) as ctx:
            pipeline.run()
        self.assertEqual(ctx.exception.row_index, len(OBSERVATIONS))

        runs = RunMetadataManager(str(config.run_metadata_file)).load_runs()
        self.assertEqual(runs[-1]['status'], 'failed')
        self.assertIn('15/08/2015', runs[-1]['error'])
        self.assertFalse(config.output_file.exists())

    def test_bad_date_dropped_under_drop_policy(self):
        rows = OBSERVATIONS + [['7', '5.0', '2015', '8', '60.3', '21.4', '15/08/2015']]
        config = self.make_config(self.write_input(rows), date_error_policy='drop')

        results = SecchiLayerPipeline(config=config).run()

        self.assertEqual(results['data_quality_stats']['dropped_bad_date'], 1)
        self.assertEqual(LayerWriter().read_layer(config.output_file),
                         [RegionYearMean(5, 2012, 3.8), RegionYearMean(7, 2015, 6.0)])

    def test_missing_input_is_read_error(self):
        config = self.make_config(self.tmp_dir / "raw" / "missing.csv")
        pipeline = SecchiLayerPipeline(config=config)

        self.assertFalse(pipeline.validate_input())
        with self.assertRaises(ReadError):
            pipeline.run()
        runs = RunMetadataManager(str(config.run_metadata_file)).load_runs()
        self.assertEqual(runs[-1]['status'], 'failed')

    def test_empty_input_file_keeps_previous_layer(self):
        input_path = self.write_input(OBSERVATIONS)
        config = self.make_config(input_path)
        SecchiLayerPipeline(config=config).run()
        previous = config.output_file.read_text(encoding='utf-8')

        input_path.write_bytes(b"")
        with self.assertRaises(SchemaError):
            SecchiLayerPipeline(config=config).run()

        self.assertEqual(config.output_file.read_text(encoding='utf-8'), previous)
        runs = RunMetadataManager(str(config.run_metadata_file)).load_runs()
        self.assertEqual([run['status'] for run in runs], ['completed', 'failed'])

    def test_non_finite_value_aborts_and_records_failure(self):
        rows = OBSERVATIONS + [['7', 'inf', '2015', '8', '60.3', '21.4', '2015-08-15']]
        config = self.make_config(self.write_input(rows))

        with self.assertRaises(ReadError) as ctx:
            SecchiLayerPipeline(config=config).run()
        self.assertEqual(ctx.exception.row_index, len(OBSERVATIONS))

        runs = RunMetadataManager(str(config.run_metadata_file)).load_runs()
        self.assertEqual(runs[-1]['status'], 'failed')
        self.assertFalse(config.output_file.exists())

    def test_very_large_value_is_aggregated(self):
        rows = OBSERVATIONS + [['8', '1e30', '2013', '7', '60.3', '21.4', '2013-07-15']]
        config = self.make_config(self.write_input(rows))

        SecchiLayerPipeline(config=config).run()

        self.assertEqual(LayerWriter().read_layer(config.output_file), [
            RegionYearMean(5, 2012, 3.8),
            RegionYearMean(7, 2015, 6.0),
            RegionYearMean(8, 2013, 1e30),
        ])

    def test_unwritable_plot_dir_is_write_error(self):
        blocker = self.tmp_dir / "plots_blocker"
        blocker.write_text("x", encoding='utf-8')
        config = self.make_config(self.write_input(OBSERVATIONS), enable_diagnostic_plots=True,
                                  plot_dir=str(blocker))

        with self.assertRaises(WriteError) as ctx:
            SecchiLayerPipeline(config=config).run()
        self.assertIn("plots_blocker", ctx.exception.path)

        runs = RunMetadataManager(str(config.run_metadata_file)).load_runs()
        self.assertEqual(runs[-1]['status'], 'failed')

    def test_repeated_run_on_same_instance(self):
        config = self.make_config(self.write_input(OBSERVATIONS))
        pipeline = SecchiLayerPipeline(config=config)

        first = pipeline.run()
        second = pipeline.run()

        self.assertEqual(second['data_quality_stats'], first['data_quality_stats'])
        self.assertEqual(second['processing_stats'], first['processing_stats'])
        self.assertEqual(second['data_quality_stats']['dropped_duplicates'], 1)
        self.assertEqual(LayerWriter().read_layer(config.output_file),
                         [RegionYearMean(5, 2012, 3.8), RegionYearMean(7, 2015, 6.0)])

    def test_invalid_window_rejected_before_running(self):
        config = self.make_config(self.write_input(OBSERVATIONS), month_set=[0, 6])

        with self.assertRaises(ConfigurationError):
            SecchiLayerPipeline(config=config)

    def test_diagnostic_plots(self):
        config = self.make_config(self.write_input(OBSERVATIONS), enable_diagnostic_plots=True)

        results = SecchiLayerPipeline(config=config).run()

        for key in ('monthly_means_plot', 'region_year_means_plot'):
            path = Path(results['saved_files'][key])
            self.assertTrue(path.exists(), key)
            self.assertGreater(path.stat().st_size, 0)

    def test_generated_sample_data(self):
        input_path = self.tmp_dir / "raw" / "generated.csv"
        stats = SampleDataGenerator(seed=7, regions=range(1, 6)).generate_dataset(
            str(input_path), num_rows=800, error_rate=0.2)
        config = self.make_config(input_path, chunk_size=100)

        results = SecchiLayerPipeline(config=config).run()

        quality = results['data_quality_stats']
        self.assertEqual(quality['records_processed'], stats['total_rows'])
        self.assertEqual(quality['dropped_missing_region'], stats['error_types'].get('missing_region', 0))
        self.assertEqual(quality['dropped_duplicates'], stats['error_types'].get('duplicate_row', 0))

        layer = LayerWriter().read_layer(config.output_file)
        self.assertEqual(len(layer), results['processing_stats']['region_year_rows'])
        self.assertTrue(all(1 <= row.region_id <= 5 and 2010 <= row.year <= 2015 for row in layer))


class TestConfig(PipelineTestCase):

    def test_defaults(self):
        config = Config({'base_dir': str(self.tmp_dir), 'input_path': '', 'output_path': '',
                         'year_range': '2010-2015', 'month_set': '6,7,8,9'})

        self.assertEqual(config.YEAR_RANGE, (2010, 2015))
        self.assertEqual(config.MONTH_SET, frozenset({6, 7, 8, 9}))
        self.assertEqual(config.input_file, self.tmp_dir / 'raw' / 'secchi_observations.csv')
        self.assertEqual(config.output_file.parent, self.tmp_dir / 'layers')

    def test_layer_filename_convention(self):
        config = Config({'layer_prefix': 'cw', 'layer_name': 'secchi_mean_summer', 'scenario': 'bhi2015',
                         'output_path': ''})

        self.assertEqual(config.layer_filename, 'cw_secchi_mean_summer_bhi2015.csv')
        self.assertEqual(config.output_file.name, 'cw_secchi_mean_summer_bhi2015.csv')

    def test_unknown_keys_ignored(self):
        config = Config({'no_such_setting': 1})
        self.assertFalse(hasattr(config, 'NO_SUCH_SETTING'))

    def test_save_and_load(self):
        path = self.tmp_dir / "config.json"
        config = self.make_config(self.tmp_dir / "in.csv", year_range=[2011, 2013], month_set=[7, 8])

        config.save_to_file(str(path))
        loaded = Config.load_from_file(str(path))

        self.assertEqual(loaded.YEAR_RANGE, (2011, 2013))
        self.assertEqual(loaded.MONTH_SET, frozenset({7, 8}))
        self.assertEqual(loaded.input_file, config.input_file)

    def test_validate_config(self):
        config = self.make_config(self.tmp_dir / "in.csv", year_range=[2015, 2010],
                                  date_error_policy='skip')

        validations = config.validate_config()

        self.assertFalse(validations['year_range'])
        self.assertFalse(validations['date_error_policy'])
        self.assertTrue(validations['month_set'])

    def test_ensure_directories(self):
        config = self.make_config(self.tmp_dir / "raw" / "in.csv")

        config.ensure_directories()

        self.assertTrue((self.tmp_dir / "raw").is_dir())
        self.assertTrue((self.tmp_dir / "layers").is_dir())
        self.assertTrue((self.tmp_dir / "intermediate").is_dir())
        self.assertTrue((self.tmp_dir / "plots").is_dir())


class TestRunMetadataManager(PipelineTestCase):

    def test_corrupt_ledger_starts_empty(self):
        path = self.tmp_dir / "runs.json"
        path.write_text("{not json", encoding='utf-8')
        manager = RunMetadataManager(str(path))

        self.assertEqual(manager.load_runs(), [])
        manager.record_run('abc', 'completed', {'input_file': 'x.csv'})
        self.assertEqual(manager.get_run('abc')['input_file'], 'x.csv')

    def test_corrupt_ledger_is_preserved(self):
        path = self.tmp_dir / "runs.json"
        path.write_text("{not json", encoding='utf-8')

        RunMetadataManager(str(path)).record_run('abc', 'completed', {})

        backups = list(self.tmp_dir.glob("runs.json.corrupt-*"))
        self.assertEqual(len(backups), 1)
        self.assertEqual(backups[0].read_text(encoding='utf-8'), "{not json")
        self.assertEqual([run['run_id'] for run in RunMetadataManager(str(path)).load_runs()], ['abc'])

    def test_non_list_ledger_is_preserved(self):
        path = self.tmp_dir / "runs.json"
        path.write_text('{"run_id": "old"}', encoding='utf-8')

        RunMetadataManager(str(path)).record_run('abc', 'completed', {})

        self.assertEqual(len(list(self.tmp_dir.glob("runs.json.corrupt-*"))), 1)

    def test_unknown_run(self):
        self.assertIsNone(RunMetadataManager(str(self.tmp_dir / "runs.json")).get_run('nope'))

if __name__ == '__main__':
    unittest.main()
