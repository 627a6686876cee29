"""Simulation export and metric-extraction pipeline.

This package provides:
- A sampling gate deciding which simulation instants become samples
- Pluggable extractors computing named numeric columns from simulation state
- Exporters owning a sink's setup/update/close lifecycle
- A CSV exporter and a fan-out composite exporter
- An explicit registry of univariate statistics
"""

from simexport.config import ExportConfig, configure_logging
from simexport.errors import (
    ExportError,
    ConfigurationError,
    UnknownStatisticError,
    EmptyFileNameError,
    PropertyResolutionError,
    SchemaMismatchError,
    SinkOpenError,
    LifecycleError,
    AlreadyBoundError,
    AlreadyClosedError,
    NotSetUpError,
)
from simexport.conversion import to_float, to_float_array
from simexport.model import (
    Molecule,
    SimpleNode,
    SimpleEnvironment,
    ConcentrationIncarnation,
    EnvironmentAndExports,
)
from simexport.statistics import StatisticRegistry, FilteringPolicy, default_registry
from simexport.sampling import SamplingGate
from simexport.extractors import (
    Extractor,
    MeanSquaredError,
    MoleculeReader,
    StepExtractor,
    TimeExtractor,
)
from simexport.exporters import (
    AbstractExporter,
    CSVExporter,
    Exporter,
    GlobalExporter,
    read_csv_samples,
)

__all__ = [
    # Config
    "ExportConfig",
    "configure_logging",
    # Errors
    "ExportError",
    "ConfigurationError",
    "UnknownStatisticError",
    "EmptyFileNameError",
    "PropertyResolutionError",
    "SchemaMismatchError",
    "SinkOpenError",
    "LifecycleError",
    "AlreadyBoundError",
    "AlreadyClosedError",
    "NotSetUpError",
    # Conversion
    "to_float",
    "to_float_array",
    # Model
    "Molecule",
    "SimpleNode",
    "SimpleEnvironment",
    "ConcentrationIncarnation",
    "EnvironmentAndExports",
    # Statistics
    "StatisticRegistry",
    "FilteringPolicy",
    "default_registry",
    # Sampling
    "SamplingGate",
    # Extractors
    "Extractor",
    "MeanSquaredError",
    "MoleculeReader",
    "StepExtractor",
    "TimeExtractor",
    # Exporters
    "AbstractExporter",
    "CSVExporter",
    "Exporter",
    "GlobalExporter",
    "read_csv_samples",
]
