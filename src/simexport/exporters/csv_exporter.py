"""CSV exporter writing whitespace-separated samples with commented banners.

File layout:
    #####################################################################
    # simexport log file - simulation started at: 2026-10-19T12:00+0000 #
    #####################################################################
    #
    # <variables descriptor>
    #
    # The columns have the following meaning:
    # <column names separated by spaces>
    <one line of space-separated values per sample>
    #####################################################################
    # End of data export. Simulation finished at: 2026-10-19T12:05+0000 #
    #####################################################################
"""

import logging
import tempfile
import threading
import time as wallclock
from datetime import datetime, timezone
from pathlib import Path
from typing import IO, List, Optional, Set

from simexport.config import ExportConfig
from simexport.constants import (
    BANNER_TIME_FORMAT,
    COLUMNS_LEGEND,
    COMMENT_PREFIX,
    DEFAULT_FILE_EXTENSION,
    DEFAULT_INTERVAL,
    FOOTER_TITLE,
    HEADER_TITLE,
    SEPARATOR,
    TEMP_DIRECTORY_PREFIX,
)
from simexport.errors import ConfigurationError, EmptyFileNameError, SinkOpenError
from simexport.exporters.base import AbstractExporter
from simexport.model import Environment

logger = logging.getLogger(__name__)

# Resolved paths currently held open by a CSVExporter in this process
_open_paths: Set[Path] = set()
_open_paths_lock = threading.Lock()

# Bound variable values end up in the file name
_UNSAFE_DESCRIPTOR_TOKENS = ("/", "\\", "..")


def resolve_output_path(
    export_path: str,
    file_name_root: str,
    descriptor: str,
    timestamp: str,
    file_extension: str,
) -> Path:
    """Compose the output file path as <root>_<descriptor><timestamp>.<extension>.

    Empty components are omitted along with their separator.

    Args:
        export_path: Output directory
        file_name_root: Starting name of the file ('' = none)
        descriptor: Variables descriptor ('' = none)
        timestamp: Wall-clock timestamp ('' = none)
        file_extension: Extension without the dot

    Returns:
        The full path of the output file

    Raises:
        EmptyFileNameError: If root, descriptor, and timestamp are all empty
        ConfigurationError: If the descriptor would leave the export directory
    """
    if any(token in descriptor for token in _UNSAFE_DESCRIPTOR_TOKENS):
        raise ConfigurationError(
            f"Variables descriptor {descriptor!r} contains a path separator or '..'"
        )
    prefix = "_".join(part for part in (file_name_root, descriptor) if part) + timestamp
    if not prefix:
        raise EmptyFileNameError(
            "No file name root provided, no variables bound, and timestamp unset: "
            "the file name would be empty. Please provide a file name root."
        )
    return Path(export_path) / f"{prefix}.{file_extension}"


def format_value(value: float) -> str:
    """Render a value so that float() parses it back exactly."""
    return repr(float(value))


def _banner_time() -> str:
    return datetime.now(timezone.utc).strftime(BANNER_TIME_FORMAT)


def read_csv_samples(path: Path) -> List[List[float]]:
    """Read the samples of an exported file, skipping comment lines.

    Args:
        path: Path of a file written by CSVExporter

    Returns:
        One list of floats per sample, in file order
    """
    samples = []
    with open(path, "r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if line and not line.startswith(COMMENT_PREFIX):
                samples.append([float(token) for token in line.split()])
    return samples


class CSVExporter(AbstractExporter):
    """Writes the data provided by the bound extractors to a CSV-like file.

    Usage:
        exporter = CSVExporter("sweep", interval=0.5, export_path="out/")
        exporter.bind_data_extractors([TimeExtractor(), StepExtractor()])
        exporter.bind_variables({"seed": 3})
        exporter.setup(environment)         # writes header and first sample
        exporter.update(environment, reaction, time, step)
        exporter.close(environment, time, step)
    """

    def __init__(
        self,
        file_name_root: str = "",
        interval: float = DEFAULT_INTERVAL,
        export_path: Optional[str] = None,
        file_extension: str = DEFAULT_FILE_EXTENSION,
        append_time: bool = False,
    ) -> None:
        """Initialize the exporter.

        Args:
            file_name_root: Starting name of the exported file
            interval: Sampling interval in simulation time
            export_path: Output directory; None creates a temporary directory
            file_extension: Extension of the exported file
            append_time: If True, append a timestamp to always create a new file
        """
        config = ExportConfig(
            file_name_root=file_name_root,
            interval=interval,
            export_path=export_path,
            file_extension=file_extension,
            append_time=append_time,
        )
        super().__init__(config.interval)

        if config.export_path is None:
            resolved_export_path = tempfile.mkdtemp(prefix=TEMP_DIRECTORY_PREFIX)
            logger.warning(
                f"No output folder specified but export required. Data will be exported in {resolved_export_path}"
            )
        else:
            resolved_export_path = config.export_path

        self._file_name_root = config.file_name_root
        self._export_path = str(resolved_export_path)
        self._file_extension = config.file_extension
        self._append_time = config.append_time
        self._output_path: Optional[Path] = None
        self._handle: Optional[IO[str]] = None

    @classmethod
    def from_config(cls, config: ExportConfig) -> "CSVExporter":
        """Create an exporter from an ExportConfig."""
        return cls(
            file_name_root=config.file_name_root,
            interval=config.interval,
            export_path=config.export_path,
            file_extension=config.file_extension,
            append_time=config.append_time,
        )

    @property
    def file_name_root(self) -> str:
        return self._file_name_root

    @property
    def export_path(self) -> str:
        """Return the output directory."""
        return self._export_path

    @property
    def file_extension(self) -> str:
        return self._file_extension

    @property
    def append_time(self) -> bool:
        return self._append_time

    @property
    def output_path(self) -> Optional[Path]:
        """Return the resolved output file, None before setup."""
        return self._output_path

    # -------------------------------------------------------------------------
    # Sink hooks
    # -------------------------------------------------------------------------

    def _open(self, environment: Environment) -> None:
        timestamp = str(int(wallclock.time() * 1000)) if self._append_time else ""
        path = resolve_output_path(
            self._export_path,
            self._file_name_root,
            self.variables_descriptor,
            timestamp,
            self._file_extension,
        )

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise SinkOpenError(f"Cannot create export directory {path.parent}: {e}") from e

        resolved = path.resolve()
        with _open_paths_lock:
            if resolved in _open_paths:
                raise SinkOpenError(f"Output file already owned by another exporter: {resolved}")
            _open_paths.add(resolved)

        try:
            handle = open(resolved, "w", encoding="utf-8")
        except OSError as e:
            with _open_paths_lock:
                _open_paths.discard(resolved)
            raise SinkOpenError(f"Cannot open output file {resolved}: {e}") from e

        self._handle = handle
        self._output_path = resolved

        descriptor = self.variables_descriptor
        header = [
            SEPARATOR,
            f"{HEADER_TITLE}{_banner_time()} #",
            SEPARATOR,
            COMMENT_PREFIX,
            f"{COMMENT_PREFIX} {descriptor}" if descriptor else COMMENT_PREFIX,
            COMMENT_PREFIX,
            COLUMNS_LEGEND.rstrip(),
            f"{COMMENT_PREFIX} {' '.join(self.column_names)}",
        ]
        handle.write("\n".join(header) + "\n")
        handle.flush()
        logger.info(f"Exporting {len(self.column_names)} columns to {resolved}")

    def _write_record(self, record: List[float]) -> None:
        # Format the full line first so a failure never leaves half a record
        line = " ".join(format_value(value) for value in record) + "\n"
        self._handle.write(line)
        self._handle.flush()

    def _write_footer(self, environment: Environment, time: float, step: int) -> None:
        footer = [
            SEPARATOR,
            f"{FOOTER_TITLE}{_banner_time()} #",
            SEPARATOR,
        ]
        self._handle.write("\n".join(footer) + "\n")

    def _release(self) -> None:
        handle, self._handle = self._handle, None
        try:
            if handle is not None:
                handle.close()
        finally:
            with _open_paths_lock:
                _open_paths.discard(self._output_path)
        logger.info(f"Export completed: {self._output_path} ({self.samples_written} samples)")
