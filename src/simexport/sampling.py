"""Admission control deciding which offered instants become samples."""

import logging
import math

from simexport.constants import DEFAULT_INTERVAL

logger = logging.getLogger(__name__)


class SamplingGate:
    """Interval gate with forced boundary samples.

    A sample is admitted when it is a boundary sample (the first or last of
    a run) or when at least `interval` simulation time has elapsed since the
    last admitted sample. A non-positive interval admits everything.
    Rejection leaves the gate untouched.

    Usage:
        gate = SamplingGate(interval=1.0)
        gate.admit(0.0, 0, is_boundary=True)  # True
        gate.admit(0.3, 5)                    # False
        gate.admit(1.2, 9)                    # True
    """

    def __init__(self, interval: float = DEFAULT_INTERVAL) -> None:
        """Initialize the gate.

        Args:
            interval: Minimum simulation time between non-boundary samples
        """
        if math.isnan(interval):
            raise ValueError("Sampling interval must be a number, got NaN")
        self._interval = float(interval)
        self._last_accepted_time = -math.inf
        self._accepted_count = 0

    @property
    def interval(self) -> float:
        """Return the sampling interval."""
        return self._interval

    @property
    def last_accepted_time(self) -> float:
        """Return the time of the last admitted sample (-inf if none)."""
        return self._last_accepted_time

    @property
    def accepted_count(self) -> int:
        """Return the number of admitted samples."""
        return self._accepted_count

    def admit(self, time: float, step: int, is_boundary: bool = False) -> bool:
        """Decide whether the offered instant becomes a sample.

        Args:
            time: Simulation time of the offered instant
            step: Step count of the offered instant
            is_boundary: True for the forced first and last samples

        Returns:
            True if the instant was admitted (gate state advanced)

        Raises:
            ValueError: If time or step is negative
        """
        if time < 0 or math.isnan(time):
            raise ValueError(f"Simulation time must be non-negative, got {time}")
        if step < 0:
            raise ValueError(f"Step must be non-negative, got {step}")

        if not (is_boundary
                or self._interval <= 0
                or time - self._last_accepted_time >= self._interval):
            return False

        self._last_accepted_time = time
        self._accepted_count += 1
        return True

    def __repr__(self) -> str:
        return (
            f"SamplingGate(interval={self._interval}, "
            f"last_accepted_time={self._last_accepted_time})"
        )
