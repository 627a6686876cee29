"""Exporters owning the lifecycle of an output sink."""

from simexport.exporters.base import AbstractExporter, Exporter, variables_descriptor
from simexport.exporters.csv_exporter import (
    CSVExporter,
    read_csv_samples,
    resolve_output_path,
)
from simexport.exporters.composite import GlobalExporter

__all__ = [
    'AbstractExporter',
    'Exporter',
    'variables_descriptor',
    'CSVExporter',
    'read_csv_samples',
    'resolve_output_path',
    'GlobalExporter',
]
