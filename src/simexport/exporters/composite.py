"""Fan-out exporter feeding several exporters from one simulation run."""

import logging
from typing import Any, List, Mapping, Optional, Sequence, Tuple

from simexport.errors import ExportError
from simexport.exporters.base import Exporter
from simexport.extractors.base import Extractor
from simexport.model import Environment, Reaction

logger = logging.getLogger(__name__)


class GlobalExporter:
    """Forwards every lifecycle call to a fixed list of child exporters.

    Children are invoked in list order. If a child raises, the exception
    propagates immediately and the remaining children are not invoked for
    that call. Extractors and variables are bound on each child, never on
    the composite.
    """

    def __init__(self, exporters: Sequence[Exporter]) -> None:
        self._exporters: Tuple[Exporter, ...] = tuple(exporters)

    @property
    def exporters(self) -> Tuple[Exporter, ...]:
        """Return the child exporters in order."""
        return self._exporters

    @property
    def data_extractors(self) -> Tuple[Extractor, ...]:
        """Return the extractors of all children, each listed once, in order."""
        seen = set()
        extractors: List[Extractor] = []
        for exporter in self._exporters:
            for extractor in exporter.data_extractors:
                if id(extractor) not in seen:
                    seen.add(id(extractor))
                    extractors.append(extractor)
        return tuple(extractors)

    def bind_data_extractors(self, data_extractors: Sequence[Extractor]) -> None:
        raise ExportError("Extractors must be bound on each child exporter, not on GlobalExporter")

    def bind_variables(self, variables: Mapping[str, Any]) -> None:
        raise ExportError("Variables must be bound on each child exporter, not on GlobalExporter")

    def setup(self, environment: Environment) -> None:
        logger.debug(f"Setting up {len(self._exporters)} exporters")
        for exporter in self._exporters:
            exporter.setup(environment)

    def update(
        self,
        environment: Environment,
        reaction: Optional[Reaction],
        time: float,
        step: int,
    ) -> None:
        for exporter in self._exporters:
            exporter.update(environment, reaction, time, step)

    def close(self, environment: Environment, time: float, step: int) -> None:
        for exporter in self._exporters:
            exporter.close(environment, time, step)
        logger.debug(f"Closed {len(self._exporters)} exporters")

    def __len__(self) -> int:
        return len(self._exporters)
