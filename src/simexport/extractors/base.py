"""Extractor contract and schema checking.

An extractor turns the current simulation state into one or more named
numeric columns. Its column names are fixed at construction; every call to
extract() must return exactly those names.
"""

from typing import Dict, Iterable, List, Optional, Protocol, Sequence, Tuple

from simexport.errors import SchemaMismatchError
from simexport.model import Environment, Reaction


class Extractor(Protocol):
    """Stateless producer of named numeric columns."""

    @property
    def column_names(self) -> Tuple[str, ...]:
        ...

    def extract(
        self,
        environment: Environment,
        reaction: Optional[Reaction],
        time: float,
        step: int,
    ) -> Dict[str, float]:
        ...


def check_unique_columns(names: Iterable[str]) -> Tuple[str, ...]:
    """Return the names as a tuple, rejecting duplicates.

    Raises:
        SchemaMismatchError: If a name appears more than once
    """
    seen = set()
    ordered: List[str] = []
    for name in names:
        if name in seen:
            raise SchemaMismatchError(f"Duplicate column name: {name}")
        seen.add(name)
        ordered.append(name)
    return tuple(ordered)


def collect_column_names(extractors: Sequence[Extractor]) -> Tuple[str, ...]:
    """Concatenate the column names of several extractors in order.

    Raises:
        SchemaMismatchError: If two extractors contribute the same name
    """
    return check_unique_columns(
        name for extractor in extractors for name in extractor.column_names
    )


def extract_columns(
    extractor: Extractor,
    environment: Environment,
    reaction: Optional[Reaction],
    time: float,
    step: int,
) -> List[float]:
    """Run an extractor and return its values in declared column order.

    Args:
        extractor: Extractor to run
        environment: Current simulation state
        reaction: Firing event, None for boundary samples
        time: Simulation time
        step: Step count

    Returns:
        One float per declared column

    Raises:
        SchemaMismatchError: If the returned keys differ from column_names
    """
    data = extractor.extract(environment, reaction, time, step)
    declared = extractor.column_names
    if len(data) != len(declared) or set(data) != set(declared):
        missing = [name for name in declared if name not in data]
        extra = [name for name in data if name not in declared]
        raise SchemaMismatchError(
            f"{type(extractor).__name__} returned columns that differ from its declaration "
            f"(missing: {missing}, unexpected: {extra})"
        )
    return [float(data[name]) for name in declared]
