"""Shared constants for the export pipeline.

Consolidates file-format markers, default sampling parameters, and naming
limits used by the exporters and extractors.
"""

# =============================================================================
# Sampling
# =============================================================================

# Default sampling interval in simulation time units
DEFAULT_INTERVAL: float = 1.0

# =============================================================================
# CSV file format
# =============================================================================

DEFAULT_FILE_EXTENSION: str = "csv"

# Banner line bounding the header and footer of every exported file
SEPARATOR: str = "#" * 69

COMMENT_PREFIX: str = "#"

HEADER_TITLE: str = "# simexport log file - simulation started at: "
FOOTER_TITLE: str = "# End of data export. Simulation finished at: "
COLUMNS_LEGEND: str = "# The columns have the following meaning: "

# UTC timestamp written in banners, e.g. 2026-10-19T12:00+0000
BANNER_TIME_FORMAT: str = "%Y-%m-%dT%H:%M%z"

TEMP_DIRECTORY_PREFIX: str = "simexport-"

# =============================================================================
# Column naming
# =============================================================================

# Maximum number of property characters kept in MoleculeReader column names
SHORT_NAME_MAX_LENGTH: int = 5

EVERY_NODE_SUFFIX: str = "every_node"
