"""Conversion of raw concentration values into exportable floats.

Incarnations may store concentrations as Python numbers, booleans, numpy
scalars, zero-dimensional arrays, or numeric strings. Everything that has a
sensible scalar reading is converted; anything else becomes NaN so a single
odd node never aborts a whole export.
"""

import logging
import math
from numbers import Number
from typing import Any, Iterable

import numpy as np

logger = logging.getLogger(__name__)


def to_float(value: Any) -> float:
    """Convert a concentration value to a float.

    Args:
        value: Raw value read from a node

    Returns:
        The float reading of the value, or NaN if it has none
    """
    if value is None:
        return math.nan

    if isinstance(value, (bool, np.bool_)):
        return 1.0 if value else 0.0

    if isinstance(value, Number):
        try:
            return float(value)
        except (TypeError, ValueError):
            # complex and friends
            return math.nan

    if isinstance(value, np.ndarray):
        if value.size == 1:
            return to_float(value.reshape(-1)[0].item())
        return math.nan

    if isinstance(value, str):
        text = value.strip()
        if text.lower() in ('true', 'false'):
            return 1.0 if text.lower() == 'true' else 0.0
        try:
            return float(text)
        except ValueError:
            return math.nan

    logger.debug(f"Cannot convert {type(value).__name__} to float, using NaN")
    return math.nan


def to_float_array(values: Iterable[Any]) -> np.ndarray:
    """Convert an iterable of concentration values to a float64 array.

    Args:
        values: Raw values, one per node

    Returns:
        1-D float64 array with NaN where a value had no float reading
    """
    return np.fromiter((to_float(v) for v in values), dtype=np.float64)
