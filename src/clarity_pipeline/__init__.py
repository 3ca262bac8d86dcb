# ========================
# src/clarity_pipeline/__init__.py
# ========================

"""
Water Clarity Layer Pipeline Package

Prepares the mean summer Secchi depth layer for the scoring toolbox:
- ingestion: chunked CSV reading
- cleaning: projection, type coercion, region and duplicate drops
- filtering: season window selection
- transformation: mean-of-means aggregation
- storage: layer output
- diagnostics: quick-look plots
- orchestrator: pipeline coordination
"""

from .exceptions import (
    ConfigurationError,
    DateParseError,
    LayerPipelineError,
    ReadError,
    SchemaError,
    WriteError,
)
from .models import MonthlyMean, Observation, RegionYearMean
from .ingestion import CSVReader
from .cleaning import ObservationCleaner, deduplicate
from .filtering import SeasonFilter
from .transformation import MeanOfMeansAggregator, monthly_means, region_year_means, round_half_up
from .storage import LayerWriter
from .orchestrator import SecchiLayerPipeline

__all__ = [
    'CSVReader',
    'ObservationCleaner',
    'deduplicate',
    'SeasonFilter',
    'MeanOfMeansAggregator',
    'monthly_means',
    'region_year_means',
    'round_half_up',
    'LayerWriter',
    'SecchiLayerPipeline',
    'Observation',
    'MonthlyMean',
    'RegionYearMean',
    'LayerPipelineError',
    'ConfigurationError',
    'ReadError',
    'SchemaError',
    'DateParseError',
    'WriteError',
]

__version__ = "1.0.0"
