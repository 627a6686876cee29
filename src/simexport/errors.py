"""Exception hierarchy for the export pipeline.

Errors fall into four families:
- Configuration errors: detected at construction, bind, or setup time
- Schema errors: an extractor returned columns that differ from its declaration
- Resource errors: the sink could not be created or opened
- Lifecycle errors: calls made out of the setup/update/close order
"""


class ExportError(Exception):
    """Base exception for export pipeline errors."""

    pass


# =============================================================================
# Configuration
# =============================================================================


class ConfigurationError(ExportError):
    """Raised when static exporter or extractor configuration is invalid."""

    pass


class UnknownStatisticError(ConfigurationError):
    """Raised when a statistic name cannot be resolved by the registry."""

    pass


class EmptyFileNameError(ConfigurationError):
    """Raised when name root, variables, and timestamp are all empty."""

    pass


class PropertyResolutionError(ExportError, KeyError):
    """Raised when a molecule or property is absent on a node."""

    def __str__(self) -> str:
        # KeyError quotes its argument, keep the plain message instead
        return str(self.args[0]) if self.args else ""


# =============================================================================
# Schema
# =============================================================================


class SchemaMismatchError(ExportError):
    """Raised when extracted columns differ from the declared column names."""

    pass


# =============================================================================
# Resources
# =============================================================================


class SinkOpenError(ExportError):
    """Raised when the output sink cannot be opened or is already owned."""

    pass


# =============================================================================
# Lifecycle
# =============================================================================


class LifecycleError(ExportError):
    """Base class for setup/update/close ordering violations."""

    pass


class AlreadyBoundError(LifecycleError):
    """Raised when binding or setup is attempted after setup."""

    pass


class AlreadyClosedError(LifecycleError):
    """Raised when any call is made after close."""

    pass


class NotSetUpError(LifecycleError):
    """Raised when update or close is called before setup."""

    pass
