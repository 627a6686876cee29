"""Exporter lifecycle and binding contract.

An exporter is driven by the engine in a strict order:

    bind_data_extractors() / bind_variables()   # any number of times
    setup(environment)                          # once; forces the first sample
    update(environment, reaction, time, step)   # zero or more times
    close(environment, time, step)              # once; forces the last sample

Every offered instant goes through a SamplingGate; admitted instants run all
bound extractors and the concatenated columns are handed to the sink.
"""

import logging
from abc import ABC, abstractmethod
from types import MappingProxyType
from typing import Any, List, Mapping, Optional, Protocol, Sequence, Tuple

from simexport.constants import DEFAULT_INTERVAL
from simexport.errors import (
    AlreadyBoundError,
    AlreadyClosedError,
    ConfigurationError,
    NotSetUpError,
)
from simexport.extractors.base import Extractor, collect_column_names, extract_columns
from simexport.model import Environment, Reaction
from simexport.sampling import SamplingGate

logger = logging.getLogger(__name__)


class Exporter(Protocol):
    """Operations the engine invokes on every exporter."""

    @property
    def data_extractors(self) -> Tuple[Extractor, ...]:
        ...

    def bind_data_extractors(self, data_extractors: Sequence[Extractor]) -> None:
        ...

    def bind_variables(self, variables: Mapping[str, Any]) -> None:
        ...

    def setup(self, environment: Environment) -> None:
        ...

    def update(
        self,
        environment: Environment,
        reaction: Optional[Reaction],
        time: float,
        step: int,
    ) -> None:
        ...

    def close(self, environment: Environment, time: float, step: int) -> None:
        ...


def variables_descriptor(variables: Mapping[str, Any]) -> str:
    """Encode variable bindings as a stable string.

    Keys are sorted so identical bindings always give the same descriptor,
    e.g. {'seed': 3, 'rate': 0.5} -> 'rate-0.5_seed-3'.
    """
    return "_".join(f"{key}-{variables[key]}" for key in sorted(variables))


class AbstractExporter(ABC):
    """Base class implementing the lifecycle shared by all exporters.

    Subclasses provide the sink: _open() acquires it, _write_record() appends
    one sample, _write_footer() writes any trailer, and _release() frees it.
    _release() runs on every exit path of close(), and when the initial
    sample of setup() fails.
    """

    def __init__(self, interval: float = DEFAULT_INTERVAL) -> None:
        """Initialize the exporter.

        Args:
            interval: Sampling interval in simulation time (<= 0 samples every event)
        """
        self._gate = SamplingGate(interval)
        self._extractors: Tuple[Extractor, ...] = ()
        self._column_names: Tuple[str, ...] = ()
        self._variables: Mapping[str, Any] = MappingProxyType({})
        self._is_setup = False
        self._is_closed = False
        self._last_time = 0.0
        self._last_step = 0

    # -------------------------------------------------------------------------
    # Introspection
    # -------------------------------------------------------------------------

    @property
    def interval(self) -> float:
        """Return the sampling interval."""
        return self._gate.interval

    @property
    def data_extractors(self) -> Tuple[Extractor, ...]:
        """Return the bound extractors in binding order."""
        return self._extractors

    @property
    def column_names(self) -> Tuple[str, ...]:
        """Return the output columns in order."""
        return self._column_names

    @property
    def variables(self) -> Mapping[str, Any]:
        """Return a read-only view of the bound variables."""
        return self._variables

    @property
    def variables_descriptor(self) -> str:
        """Return the stable textual encoding of the bound variables."""
        return variables_descriptor(self._variables)

    @property
    def is_setup(self) -> bool:
        return self._is_setup

    @property
    def is_closed(self) -> bool:
        return self._is_closed

    @property
    def samples_written(self) -> int:
        """Return the number of samples admitted so far."""
        return self._gate.accepted_count

    # -------------------------------------------------------------------------
    # Binding
    # -------------------------------------------------------------------------

    def _ensure_bindable(self, what: str) -> None:
        if self._is_closed:
            raise AlreadyClosedError(f"Cannot bind {what}: exporter already closed")
        if self._is_setup:
            raise AlreadyBoundError(f"Cannot bind {what} after setup")

    def bind_data_extractors(self, data_extractors: Sequence[Extractor]) -> None:
        """Replace the bound extractors.

        Args:
            data_extractors: Extractors whose columns are exported, in order

        Raises:
            AlreadyBoundError: If setup has already been performed
            AlreadyClosedError: If the exporter is closed
            SchemaMismatchError: If two extractors declare the same column
        """
        self._ensure_bindable("data extractors")
        extractors = tuple(data_extractors)
        self._column_names = collect_column_names(extractors)
        self._extractors = extractors

    def bind_variables(self, variables: Mapping[str, Any]) -> None:
        """Attach the variable bindings of the current run.

        Raises:
            AlreadyBoundError: If setup has already been performed
            AlreadyClosedError: If the exporter is closed
        """
        self._ensure_bindable("variables")
        self._variables = MappingProxyType(dict(variables))

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def setup(self, environment: Environment) -> None:
        """Open the sink and export the initial sample at time 0, step 0.

        Raises:
            AlreadyBoundError: If setup was already performed
            AlreadyClosedError: If the exporter is closed
            ConfigurationError: If no column is bound

        If the initial sample fails, the sink is released and the exporter
        is left closed.
        """
        if self._is_closed:
            raise AlreadyClosedError("Cannot set up a closed exporter")
        if self._is_setup:
            raise AlreadyBoundError("Exporter already set up")
        if not self._column_names:
            raise ConfigurationError(
                f"{type(self).__name__} has no data extractors bound: nothing to export"
            )

        self._open(environment)
        self._is_setup = True
        try:
            self._offer(environment, None, 0.0, 0, is_boundary=True)
        except BaseException:
            self._is_closed = True
            self._release()
            raise

    def update(
        self,
        environment: Environment,
        reaction: Optional[Reaction],
        time: float,
        step: int,
    ) -> None:
        """Offer an instant; export a sample if the gate admits it.

        Raises:
            NotSetUpError: If setup has not been performed
            AlreadyClosedError: If the exporter is closed
            ValueError: If time or step went backwards
        """
        self._ensure_running("update")
        self._offer(environment, reaction, time, step, is_boundary=False)

    def close(self, environment: Environment, time: float, step: int) -> None:
        """Export the final sample, write the trailer, and release the sink.

        The sink is released even if the final sample or trailer fails.

        Raises:
            NotSetUpError: If setup has not been performed
            AlreadyClosedError: If close was already called
        """
        self._ensure_running("close")
        try:
            self._offer(environment, None, time, step, is_boundary=True)
            self._write_footer(environment, time, step)
        finally:
            self._is_closed = True
            self._release()

    def _ensure_running(self, operation: str) -> None:
        if self._is_closed:
            raise AlreadyClosedError(f"Cannot {operation}: exporter already closed")
        if not self._is_setup:
            raise NotSetUpError(f"Cannot {operation}: setup() has not been called")

    def _offer(
        self,
        environment: Environment,
        reaction: Optional[Reaction],
        time: float,
        step: int,
        is_boundary: bool,
    ) -> None:
        if time < self._last_time or step < self._last_step:
            raise ValueError(
                f"Time and step must not decrease: got ({time}, {step}) "
                f"after ({self._last_time}, {self._last_step})"
            )
        self._last_time = time
        self._last_step = step

        if self._gate.admit(time, step, is_boundary):
            self._write_record(self.extract_record(environment, reaction, time, step))
            logger.debug(f"Sample exported at time={time}, step={step}")

    def extract_record(
        self,
        environment: Environment,
        reaction: Optional[Reaction],
        time: float,
        step: int,
    ) -> List[float]:
        """Run every bound extractor and concatenate their columns in order.

        Raises:
            SchemaMismatchError: If an extractor breaks its column declaration
        """
        record: List[float] = []
        for extractor in self._extractors:
            record.extend(extract_columns(extractor, environment, reaction, time, step))
        return record

    # -------------------------------------------------------------------------
    # Sink hooks
    # -------------------------------------------------------------------------

    @abstractmethod
    def _open(self, environment: Environment) -> None:
        """Acquire the sink and write any header."""

    @abstractmethod
    def _write_record(self, record: List[float]) -> None:
        """Append one sample to the sink."""

    def _write_footer(self, environment: Environment, time: float, step: int) -> None:
        """Write any trailer before the sink is released."""

    def _release(self) -> None:
        """Release the sink. Must tolerate a partially written trailer."""
