"""Extractors computing named numeric columns from simulation state."""

from simexport.extractors.base import (
    Extractor,
    check_unique_columns,
    collect_column_names,
    extract_columns,
)
from simexport.extractors.properties import (
    MoleculeReader,
    StepExtractor,
    TimeExtractor,
)
from simexport.extractors.mean_squared_error import MeanSquaredError

__all__ = [
    'Extractor',
    'check_unique_columns',
    'collect_column_names',
    'extract_columns',
    'MoleculeReader',
    'StepExtractor',
    'TimeExtractor',
    'MeanSquaredError',
]
