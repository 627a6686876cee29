"""Interface boundary between the export pipeline and the simulation engine.

The engine, its environment, and its incarnation are external collaborators.
This module states the read-only surface the exporters and extractors rely on:
- Environment: exposes its nodes and the incarnation that interprets them
- Incarnation: creates molecules from names and reads node properties
- Reaction: the event that fired, passed through to extractors untouched

A minimal concentration-backed implementation is included so that the
pipeline can be driven without a full engine (tests, scripted runs).
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol, Sequence, TYPE_CHECKING

from simexport.conversion import to_float
from simexport.errors import PropertyResolutionError

if TYPE_CHECKING:
    from simexport.exporters.base import Exporter

logger = logging.getLogger(__name__)


# =============================================================================
# Interface protocols
# =============================================================================


@dataclass(frozen=True)
class Molecule:
    """Immutable identifier of a molecule (a named node variable)."""

    name: str

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("Molecule name cannot be empty")

    def __str__(self) -> str:
        return self.name


class Node(Protocol):
    """A node of the simulated environment."""

    def get_concentration(self, molecule: Molecule) -> Any:
        ...


class Reaction(Protocol):
    """The event whose firing caused an update. Opaque to the pipeline."""


class Incarnation(Protocol):
    """Maps molecule and property names to concrete node values."""

    def create_molecule(self, name: str) -> Molecule:
        ...

    def get_property(self, node: Node, molecule: Molecule, prop: str) -> float:
        ...


class Environment(Protocol):
    """Read-only view of the simulation state offered to exporters."""

    @property
    def nodes(self) -> Sequence[Node]:
        ...

    @property
    def incarnation(self) -> Incarnation:
        ...


# =============================================================================
# Minimal concentration-backed implementation
# =============================================================================


@dataclass
class SimpleNode:
    """Node storing its concentrations in a dictionary keyed by molecule.

    Attributes:
        node_id: Identifier of the node within its environment
        contents: Molecule to concentration mapping
    """

    node_id: int
    contents: Dict[Molecule, Any] = field(default_factory=dict)

    def get_concentration(self, molecule: Molecule) -> Any:
        """Return the concentration of a molecule.

        Raises:
            KeyError: If the node does not contain the molecule
        """
        return self.contents[molecule]

    def set_concentration(self, molecule: Molecule, value: Any) -> None:
        """Set the concentration of a molecule."""
        self.contents[molecule] = value

    def contains(self, molecule: Molecule) -> bool:
        return molecule in self.contents


class ConcentrationIncarnation:
    """Incarnation reading numeric concentrations straight from nodes.

    With an empty property the concentration itself is read. With a
    non-empty property the concentration is expected to be a mapping (or an
    object) and the property is looked up on it.
    """

    def create_molecule(self, name: str) -> Molecule:
        return Molecule(name)

    def get_property(self, node: Node, molecule: Molecule, prop: str) -> float:
        """Read a property of a molecule on a node as a float.

        Args:
            node: Node to read from
            molecule: Molecule whose concentration is read
            prop: Optional property path inside the concentration ('' = none)

        Returns:
            The float reading of the value (NaN if it is not numeric)

        Raises:
            PropertyResolutionError: If the molecule or property is absent
        """
        try:
            value = node.get_concentration(molecule)
        except KeyError:
            raise PropertyResolutionError(
                f"Molecule '{molecule}' is not present on node {getattr(node, 'node_id', node)}"
            ) from None

        if prop:
            value = self._resolve_property(value, molecule, prop)

        return to_float(value)

    @staticmethod
    def _resolve_property(value: Any, molecule: Molecule, prop: str) -> Any:
        if isinstance(value, Mapping):
            if prop not in value:
                raise PropertyResolutionError(
                    f"Property '{prop}' is not defined for molecule '{molecule}'"
                )
            return value[prop]
        if not hasattr(value, prop):
            raise PropertyResolutionError(
                f"Property '{prop}' is not defined for molecule '{molecule}'"
            )
        return getattr(value, prop)


class SimpleEnvironment:
    """Environment made of a fixed, ordered list of nodes.

    Usage:
        incarnation = ConcentrationIncarnation()
        env = SimpleEnvironment(incarnation)
        node = env.add_node({"temperature": 21.5})
    """

    def __init__(
        self,
        incarnation: Optional[Incarnation] = None,
        nodes: Optional[List[Node]] = None,
    ) -> None:
        self._incarnation = incarnation or ConcentrationIncarnation()
        self._nodes: List[Node] = list(nodes) if nodes else []

    @property
    def nodes(self) -> Sequence[Node]:
        """Return an immutable view of the nodes."""
        return tuple(self._nodes)

    @property
    def incarnation(self) -> Incarnation:
        return self._incarnation

    @property
    def node_count(self) -> int:
        return len(self._nodes)

    def add_node(self, contents: Optional[Dict[str, Any]] = None) -> SimpleNode:
        """Create a node holding the given molecule concentrations.

        Args:
            contents: Molecule name to concentration mapping

        Returns:
            The newly added node
        """
        node = SimpleNode(node_id=len(self._nodes))
        for name, value in (contents or {}).items():
            node.set_concentration(self._incarnation.create_molecule(name), value)
        self._nodes.append(node)
        return node


@dataclass(frozen=True)
class EnvironmentAndExports:
    """Pair of an initialized environment and the exporters attached to it.

    Attributes:
        environment: The environment the engine will run
        exporters: Exporters fed by the engine, in declaration order
    """

    environment: Environment
    exporters: Sequence["Exporter"] = field(default_factory=tuple)
