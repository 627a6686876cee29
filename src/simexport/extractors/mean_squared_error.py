"""Mean Squared Error of a molecule against a globally reduced reference.

The reference value is read from every node and reduced by a univariate
statistic to a single correct value. The actual value is then read from
every node, compared with the correct value, squared, and averaged.

The squared-error reduction runs in parallel (numba prange). Partial sums
are combined in an order that depends on the thread count, so results may
differ across runs in the last bits.
"""

import math
from typing import Dict, Optional, Tuple

import numpy as np
from numba import njit, prange

from simexport.conversion import to_float_array
from simexport.model import Environment, Incarnation, Molecule, Reaction
from simexport.statistics import StatisticRegistry, default_registry


# =============================================================================
# Numba JIT-compiled reduction
# =============================================================================

@njit(cache=True, parallel=True)
def _mean_squared_deviation(values: np.ndarray, reference: float) -> float:
    """Mean of (value - reference)^2 over the array (JIT-compiled, parallel).

    Args:
        values: Actual values, one per node
        reference: The correct value every node is compared against

    Returns:
        The mean squared deviation, NaN for an empty array
    """
    n = values.shape[0]
    if n == 0:
        return np.nan
    total = 0.0
    for i in prange(n):
        deviation = values[i] - reference
        total += deviation * deviation
    return total / n


def _describe(molecule: str, prop: str) -> str:
    return f"{prop}@{molecule}" if prop else molecule


class MeanSquaredError:
    """Exports the MSE of a molecule given another molecule carrying the correct result.

    The column name is MSE(<statistic>(<refProp>@<refMolecule>),<actProp>@<actMolecule>),
    with the property part omitted when a property is empty, so distinct
    configurations never share a column name.
    """

    def __init__(
        self,
        incarnation: Incarnation,
        reference_molecule: str,
        reference_property: str = "",
        statistic: str = "mean",
        actual_molecule: str = "",
        actual_property: str = "",
        registry: Optional[StatisticRegistry] = None,
    ) -> None:
        """Initialize the extractor.

        Args:
            incarnation: Incarnation used to create the molecules
            reference_molecule: Molecule carrying the correct value on each node
            reference_property: Property of the reference molecule, '' for none
            statistic: Name of the statistic reducing the reference values
            actual_molecule: Molecule carrying the value to evaluate
            actual_property: Property of the actual molecule, '' for none
            registry: Registry resolving the statistic name

        Raises:
            UnknownStatisticError: If the statistic name cannot be resolved
            ValueError: If the actual molecule is not given
        """
        if not actual_molecule:
            raise ValueError("MeanSquaredError requires an actual molecule")

        registry = registry or default_registry()
        self._statistic_name = statistic
        self._statistic = registry.resolve(statistic)

        self._reference: Molecule = incarnation.create_molecule(reference_molecule)
        self._reference_property = reference_property or ""
        self._actual: Molecule = incarnation.create_molecule(actual_molecule)
        self._actual_property = actual_property or ""

        name = (
            f"MSE({statistic}({_describe(reference_molecule, self._reference_property)}),"
            f"{_describe(actual_molecule, self._actual_property)})"
        )
        self._column_names: Tuple[str, ...] = (name,)

    @property
    def column_names(self) -> Tuple[str, ...]:
        return self._column_names

    @property
    def name(self) -> str:
        return self._column_names[0]

    def extract(
        self,
        environment: Environment,
        reaction: Optional[Reaction],
        time: float,
        step: int,
    ) -> Dict[str, float]:
        nodes = environment.nodes
        if len(nodes) == 0:
            return {self.name: math.nan}

        incarnation = environment.incarnation
        reference_values = to_float_array(
            incarnation.get_property(node, self._reference, self._reference_property) for node in nodes
        )
        reference = float(self._statistic(reference_values))

        actual_values = to_float_array(
            incarnation.get_property(node, self._actual, self._actual_property) for node in nodes
        )
        return {self.name: float(_mean_squared_deviation(actual_values, reference))}

    def __repr__(self) -> str:
        return f"MeanSquaredError({self.name})"
