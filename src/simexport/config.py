"""Configuration dataclasses for the export pipeline."""

import logging
import math
from dataclasses import dataclass
from typing import Optional

from simexport.constants import DEFAULT_FILE_EXTENSION, DEFAULT_INTERVAL

LOG_FORMAT = '%(asctime)s | %(levelname)s | %(name)s | %(message)s'
LOG_DATE_FORMAT = '%H:%M:%S'


@dataclass(frozen=True)
class ExportConfig:
    """Static configuration of a file exporter.

    Attributes:
        file_name_root: Starting name of the exported file ('' = none)
        interval: Sampling interval in simulation time (<= 0 samples every event)
        export_path: Output directory (None = fresh temporary directory)
        file_extension: Extension of the exported file, without the dot
        append_time: If True, always produce a new file by appending a timestamp
    """

    file_name_root: str = ""
    interval: float = DEFAULT_INTERVAL
    export_path: Optional[str] = None
    file_extension: str = DEFAULT_FILE_EXTENSION
    append_time: bool = False

    def __post_init__(self) -> None:
        if math.isnan(self.interval):
            raise ValueError("Sampling interval must be a number, got NaN")

        # Accept ".csv" as well as "csv"
        extension = self.file_extension.lstrip(".")
        if not extension:
            raise ValueError("File extension cannot be empty")
        object.__setattr__(self, 'file_extension', extension)

        if any(sep in self.file_name_root for sep in ('/', '\\')):
            raise ValueError(
                f"File name root must not contain path separators: {self.file_name_root}"
            )


def configure_logging(level: int = logging.INFO) -> None:
    """Configure root logging with the project's standard format.

    Args:
        level: Logging level for the root logger
    """
    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT
    )
