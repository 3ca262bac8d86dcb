# ========================
# src/utils/config.py
# ========================

"""
Configuration Management

Centralized configuration for the layer pipeline with environment support.
"""

import json
import os
from pathlib import Path
from typing import Any, Dict, Optional, Tuple


def parse_year_range(text: str) -> Tuple[int, int]:
    """Parse '2010-2015' into (2010, 2015)."""
    start, _, end = text.strip().partition('-')
    return (int(start), int(end or start))


def parse_month_set(text: str) -> frozenset:
    """Parse '6,7,8,9' into frozenset({6, 7, 8, 9})."""
    return frozenset(int(m) for m in text.split(',') if m.strip())


class Config:
    """
    Configuration class for the layer pipeline.
    Supports environment variables and default values.
    """

    def __init__(self, config_dict: Optional[Dict[str, Any]] = None):
        """
        Initialize configuration.

        Args:
            config_dict (dict): Optional configuration overrides. Keys are
                matched case-insensitively, e.g. ``input_path``.
        """
        # File Paths; empty values resolve under BASE_DIR
        self.BASE_DIR = os.getenv('SECCHI_DATA_DIR', 'data')
        self.INPUT_PATH = os.getenv('SECCHI_INPUT_PATH', '')
        self.OUTPUT_PATH = os.getenv('SECCHI_OUTPUT_PATH', '')
        self.PLOT_DIR = os.getenv('SECCHI_PLOT_DIR', '')
        self.RUN_METADATA_FILE = os.getenv('SECCHI_RUN_METADATA', '')

        # Season Window
        self.YEAR_RANGE = parse_year_range(os.getenv('SECCHI_YEAR_RANGE', '2010-2015'))
        self.MONTH_SET = parse_month_set(os.getenv('SECCHI_MONTHS', '6,7,8,9'))

        # Input Format
        self.CHUNK_SIZE = int(os.getenv('SECCHI_CHUNK_SIZE', '5000'))
        self.DELIMITER = os.getenv('SECCHI_DELIMITER', ',')
        # source column -> canonical field; None uses the cleaner's BHI_ID/secchi mapping
        self.COLUMN_MAP = None
        self.DATE_FORMAT = os.getenv('SECCHI_DATE_FORMAT', '%Y-%m-%d')
        self.DATE_ERROR_POLICY = os.getenv('SECCHI_DATE_ERROR_POLICY', 'fail')
        self.NULL_TOKENS = ['', 'NA', 'NaN', 'NULL', 'None']

        # Layer Naming
        self.OUTPUT_REGION_KEY = 'rgn_id'
        self.OUTPUT_VALUE_KEY = os.getenv('SECCHI_VALUE_KEY', 'secchi_mean_summer')
        self.LAYER_PREFIX = os.getenv('SECCHI_LAYER_PREFIX', 'cw')
        self.LAYER_NAME = os.getenv('SECCHI_LAYER_NAME', 'secchi_mean_summer')
        self.SCENARIO = os.getenv('SECCHI_SCENARIO', 'bhi2015')

        # Optional Outputs
        self.WRITE_INTERMEDIATE = os.getenv('SECCHI_WRITE_INTERMEDIATE', 'true').lower() == 'true'
        self.ENABLE_DIAGNOSTIC_PLOTS = os.getenv('SECCHI_DIAGNOSTIC_PLOTS', 'false').lower() == 'true'

        # Logging Configuration
        self.LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')

        # Override with provided config
        if config_dict:
            self._update_from_dict(config_dict)

    def _update_from_dict(self, config_dict: Dict[str, Any]) -> None:
        """Update configuration from dictionary."""
        for key, value in config_dict.items():
            attr = key.upper()
            if not hasattr(self, attr):
                continue
            # JSON round-trips turn tuples and sets into lists
            if attr == 'YEAR_RANGE':
                value = parse_year_range(value) if isinstance(value, str) else tuple(int(y) for y in value)
            elif attr == 'MONTH_SET':
                value = parse_month_set(value) if isinstance(value, str) else frozenset(int(m) for m in value)
            setattr(self, attr, value)

    @property
    def layer_filename(self) -> str:
        """File name the scoring toolbox expects: <prefix>_<layer>_<scenario>.csv"""
        return f"{self.LAYER_PREFIX}_{self.LAYER_NAME}_{self.SCENARIO}.csv"

    @property
    def input_file(self) -> Path:
        if self.INPUT_PATH:
            return Path(self.INPUT_PATH)
        return Path(self.BASE_DIR) / 'raw' / 'secchi_observations.csv'

    @property
    def output_file(self) -> Path:
        """Explicit OUTPUT_PATH, or the conventional layer file under BASE_DIR/layers."""
        if self.OUTPUT_PATH:
            return Path(self.OUTPUT_PATH)
        return Path(self.BASE_DIR) / 'layers' / self.layer_filename

    @property
    def intermediate_dir(self) -> Path:
        return Path(self.BASE_DIR) / 'intermediate'

    @property
    def plot_dir(self) -> Path:
        return Path(self.PLOT_DIR) if self.PLOT_DIR else Path(self.BASE_DIR) / 'plots'

    @property
    def run_metadata_file(self) -> Path:
        if self.RUN_METADATA_FILE:
            return Path(self.RUN_METADATA_FILE)
        return Path(self.BASE_DIR) / 'run_metadata.json'

    def get_data_paths(self) -> Dict[str, Path]:
        """Get all configured data paths as Path objects."""
        return {
            'input_file': self.input_file,
            'output_file': self.output_file,
            'intermediate_dir': self.intermediate_dir,
            'plot_dir': self.plot_dir,
            'run_metadata_file': self.run_metadata_file,
        }

    def ensure_directories(self) -> None:
        """Create the parent directories of every configured path."""
        for path_name, path in self.get_data_paths().items():
            target = path if path_name.endswith('_dir') else path.parent
            target.mkdir(parents=True, exist_ok=True)

    def validate_config(self) -> Dict[str, bool]:
        """
        Validate configuration values.

        Returns:
            dict: Validation results for each setting
        """
        validations = {}

        first_year, last_year = self.YEAR_RANGE
        validations['year_range'] = first_year <= last_year
        validations['month_set'] = bool(self.MONTH_SET) and all(1 <= m <= 12 for m in self.MONTH_SET)
        validations['chunk_size'] = self.CHUNK_SIZE > 0
        validations['date_error_policy'] = self.DATE_ERROR_POLICY in ('fail', 'drop')
        validations['delimiter'] = len(self.DELIMITER) == 1

        # Validate log level
        valid_log_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        validations['log_level'] = self.LOG_LEVEL.upper() in valid_log_levels

        return validations

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return {
            attr: getattr(self, attr)
            for attr in dir(self)
            if attr.isupper() and not callable(getattr(self, attr))
        }

    def save_to_file(self, file_path: str) -> None:
        """Save configuration to JSON file."""
        data = self.to_dict()
        data['MONTH_SET'] = sorted(data['MONTH_SET'])
        with open(file_path, 'w') as f:
            json.dump(data, f, indent=2, default=str)

    @classmethod
    def load_from_file(cls, file_path: str) -> 'Config':
        """Load configuration from JSON file."""
        with open(file_path, 'r') as f:
            config_dict = json.load(f)
        return cls(config_dict)

    def __str__(self) -> str:
        """String representation of configuration."""
        lines = ["Configuration Settings:"]
        config_dict = self.to_dict()
        for key, value in sorted(config_dict.items()):
            lines.append(f"  {key}: {value}")
        return "\n".join(lines)
