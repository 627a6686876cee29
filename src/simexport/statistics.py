"""Univariate statistics resolvable by name.

Extractors that reduce a per-node series to one number look the reduction
up by name in a StatisticRegistry. The registry is an ordinary object built
once at start-up (usually with default_registry()) and handed to the
extractors that need it; nothing here is looked up implicitly.

All statistics take a 1-D float64 array and return a float. Empty input
yields NaN.
"""

import logging
import math
import re
from enum import Enum
from functools import partial
from typing import Callable, Dict, List

import numpy as np
from scipy import stats

from simexport.errors import UnknownStatisticError

logger = logging.getLogger(__name__)

UnivariateStatistic = Callable[[np.ndarray], float]

_PERCENTILE_NAME = re.compile(r"^percentile(\d+(?:\.\d+)?)$")


# =============================================================================
# Statistic implementations
# =============================================================================


def _empty_guard(func: UnivariateStatistic) -> UnivariateStatistic:
    """Return NaN for empty input instead of letting numpy warn or raise."""

    def wrapper(values: np.ndarray) -> float:
        if values.size == 0:
            return math.nan
        return float(func(values))

    wrapper.__name__ = getattr(func, '__name__', 'statistic')
    wrapper.__doc__ = getattr(func, '__doc__', None)
    return wrapper


def _variance(values: np.ndarray) -> float:
    """Bias-corrected sample variance (0 for a single value)."""
    if values.size == 1:
        return 0.0
    return np.var(values, ddof=1)


def _standard_deviation(values: np.ndarray) -> float:
    return math.sqrt(_variance(values))


def _geometric_mean(values: np.ndarray) -> float:
    """Geometric mean, NaN if any value is negative."""
    if np.any(values < 0):
        return math.nan
    with np.errstate(divide='ignore'):
        return stats.gmean(values)


def _sum_of_squares(values: np.ndarray) -> float:
    return np.dot(values, values)


def _is_constant(values: np.ndarray) -> bool:
    return bool(np.ptp(values) == 0)


def _skewness(values: np.ndarray) -> float:
    """Bias-corrected sample skewness, NaN with fewer than 3 values."""
    if values.size < 3:
        return math.nan
    if _is_constant(values):
        return 0.0
    return stats.skew(values, bias=False)


def _kurtosis(values: np.ndarray) -> float:
    """Bias-corrected sample excess kurtosis, NaN with fewer than 4 values."""
    if values.size < 4:
        return math.nan
    if _is_constant(values):
        return 0.0
    return stats.kurtosis(values, fisher=True, bias=False)


def _percentile(values: np.ndarray, quantile: float = 50.0) -> float:
    return np.percentile(values, quantile)


# =============================================================================
# Registry
# =============================================================================


class StatisticRegistry:
    """Process-local mapping from statistic names to implementations.

    Names are case-insensitive. Names of the form 'percentileNN' resolve to
    the NN-th percentile without being registered explicitly.

    Usage:
        registry = default_registry()
        mean = registry.resolve("mean")
        mean(np.array([2.0, 4.0]))  # 3.0
    """

    def __init__(self) -> None:
        self._statistics: Dict[str, UnivariateStatistic] = {}

    def register(self, name: str, statistic: UnivariateStatistic) -> None:
        """Register a statistic under a name.

        Args:
            name: Case-insensitive lookup name
            statistic: Callable reducing a float array to a float

        Raises:
            ValueError: If the name is empty or already registered
        """
        key = name.strip().lower()
        if not key:
            raise ValueError("Statistic name cannot be empty")
        if key in self._statistics:
            raise ValueError(f"Statistic already registered: {name}")
        self._statistics[key] = statistic

    def resolve(self, name: str) -> UnivariateStatistic:
        """Return the statistic registered under a name.

        Args:
            name: Statistic name, e.g. 'mean' or 'percentile90'

        Returns:
            The statistic callable

        Raises:
            UnknownStatisticError: If no statistic matches the name
        """
        key = name.strip().lower()
        statistic = self._statistics.get(key)
        if statistic is not None:
            return statistic

        match = _PERCENTILE_NAME.match(key)
        if match:
            quantile = float(match.group(1))
            if 0 <= quantile <= 100:
                return _empty_guard(partial(_percentile, quantile=quantile))

        raise UnknownStatisticError(
            f"Could not create univariate statistic '{name}'. "
            f"Known statistics: {', '.join(self.names())}"
        )

    def names(self) -> List[str]:
        """Return the registered names in sorted order."""
        return sorted(self._statistics)

    def __contains__(self, name: str) -> bool:
        try:
            self.resolve(name)
        except UnknownStatisticError:
            return False
        return True

    def __len__(self) -> int:
        return len(self._statistics)


def default_registry() -> StatisticRegistry:
    """Build a registry holding the standard univariate statistics."""
    registry = StatisticRegistry()
    builtin = {
        'mean': np.mean,
        'median': np.median,
        'variance': _variance,
        'populationvariance': partial(np.var, ddof=0),
        'stdev': _standard_deviation,
        'standarddeviation': _standard_deviation,
        'min': np.min,
        'max': np.max,
        'sum': np.sum,
        'sumsq': _sum_of_squares,
        'product': np.prod,
        'geometricmean': _geometric_mean,
        'skewness': _skewness,
        'kurtosis': _kurtosis,
        'percentile': _percentile,
    }
    for name, func in builtin.items():
        registry.register(name, _empty_guard(func))
    return registry


# =============================================================================
# Filtering
# =============================================================================


class FilteringPolicy(Enum):
    """Filter applied to per-node values before they are aggregated."""

    DO_NOT_FILTER = "do_not_filter"
    FILTER_NAN = "filter_nan"
    FILTER_INFINITE = "filter_infinite"

    def apply(self, values: np.ndarray) -> np.ndarray:
        """Return the values that survive this policy."""
        if self is FilteringPolicy.FILTER_NAN:
            return values[~np.isnan(values)]
        if self is FilteringPolicy.FILTER_INFINITE:
            return values[np.isfinite(values)]
        return values

    @classmethod
    def from_name(cls, name: str) -> "FilteringPolicy":
        """Parse a policy from its name, ignoring case and separators.

        Raises:
            ValueError: If the name matches no policy
        """
        normalized = re.sub(r"[^a-z]", "", name.lower())
        for policy in cls:
            if policy.value.replace("_", "") == normalized:
                return policy
        raise ValueError(
            f"Invalid filtering policy: {name}. Use one of {[p.value for p in cls]}"
        )
