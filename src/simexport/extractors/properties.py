"""Extractors reading simulation time, step count, and node properties."""

import math
import re
from typing import Dict, List, Optional, Sequence, Tuple

from simexport.constants import EVERY_NODE_SUFFIX, SHORT_NAME_MAX_LENGTH
from simexport.conversion import to_float_array
from simexport.extractors.base import check_unique_columns
from simexport.model import Environment, Incarnation, Molecule, Reaction
from simexport.statistics import (
    FilteringPolicy,
    StatisticRegistry,
    UnivariateStatistic,
    default_registry,
)


class TimeExtractor:
    """Exports the current simulation time."""

    def __init__(self, column_name: str = "time") -> None:
        self._column_names = (column_name,)

    @property
    def column_names(self) -> Tuple[str, ...]:
        return self._column_names

    def extract(
        self,
        environment: Environment,
        reaction: Optional[Reaction],
        time: float,
        step: int,
    ) -> Dict[str, float]:
        return {self._column_names[0]: float(time)}


class StepExtractor:
    """Exports the current step count."""

    def __init__(self, column_name: str = "step") -> None:
        self._column_names = (column_name,)

    @property
    def column_names(self) -> Tuple[str, ...]:
        return self._column_names

    def extract(
        self,
        environment: Environment,
        reaction: Optional[Reaction],
        time: float,
        step: int,
    ) -> Dict[str, float]:
        return {self._column_names[0]: float(step)}


def short_property_prefix(prop: Optional[str]) -> str:
    """Return the abbreviated 'prop@' prefix used in column names.

    Non-alphanumeric characters are dropped and the rest is truncated to
    SHORT_NAME_MAX_LENGTH characters. An empty property yields ''.
    """
    if not prop:
        return ""
    text = re.sub(r"[^\w]", "", prop)
    if not text:
        return ""
    return text[:SHORT_NAME_MAX_LENGTH] + "@"


class MoleculeReader:
    """Reads the value of a molecule on every node and exports it.

    With aggregators, the per-node values are filtered and then reduced by
    each aggregator, giving one column per aggregator. Without aggregators,
    one column per node is exported; the number of nodes must then be given
    up front so that the column set is fixed.

    Attributes:
        molecule: The target molecule
        prop: The target property ('' reads the concentration itself)
    """

    def __init__(
        self,
        molecule: str,
        prop: str,
        incarnation: Incarnation,
        filtering: FilteringPolicy = FilteringPolicy.DO_NOT_FILTER,
        aggregators: Sequence[str] = (),
        registry: Optional[StatisticRegistry] = None,
        node_count: Optional[int] = None,
    ) -> None:
        """Initialize the reader.

        Args:
            molecule: Name of the target molecule
            prop: Target property, '' for none
            incarnation: Incarnation used to create the molecule
            filtering: Filter applied to values before aggregation
            aggregators: Names of the statistics to apply ('' entries ignored)
            registry: Registry resolving aggregator names
            node_count: Number of nodes, required when no aggregator is given

        Raises:
            UnknownStatisticError: If an aggregator name cannot be resolved
            ValueError: If no aggregator and no node count are given
        """
        self.molecule: Molecule = incarnation.create_molecule(molecule)
        self.prop = prop or ""
        self._filtering = filtering
        registry = registry or default_registry()

        names = [name for name in aggregators if name and name.strip()]
        self._aggregators: List[Tuple[str, UnivariateStatistic]] = [
            (name, registry.resolve(name)) for name in names
        ]

        prefix = short_property_prefix(self.prop)
        if self._aggregators:
            columns = [f"{prefix}{molecule}[{name}]" for name, _ in self._aggregators]
        else:
            if node_count is None or node_count < 0:
                raise ValueError(
                    "MoleculeReader without aggregators needs a non-negative node_count"
                )
            columns = [
                f"{prefix}{molecule}@{EVERY_NODE_SUFFIX}[{index}]" for index in range(node_count)
            ]
        self._column_names = check_unique_columns(columns)

    @property
    def column_names(self) -> Tuple[str, ...]:
        return self._column_names

    @property
    def filtering(self) -> FilteringPolicy:
        return self._filtering

    def extract(
        self,
        environment: Environment,
        reaction: Optional[Reaction],
        time: float,
        step: int,
    ) -> Dict[str, float]:
        incarnation = environment.incarnation
        values = to_float_array(
            incarnation.get_property(node, self.molecule, self.prop) for node in environment.nodes
        )

        if not self._aggregators:
            # Extra or missing nodes surface as a schema mismatch in the exporter
            return {
                f"{short_property_prefix(self.prop)}{self.molecule}@{EVERY_NODE_SUFFIX}[{index}]": float(value)
                for index, value in enumerate(values)
            }

        filtered = self._filtering.apply(values)
        if filtered.size == 0:
            return {name: math.nan for name in self._column_names}
        return {
            column: float(statistic(filtered))
            for column, (_, statistic) in zip(self._column_names, self._aggregators)
        }
