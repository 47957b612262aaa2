"""
Error Kinds

Exceptions shared by every module of the framework. Configuration and input
errors are raised immediately; numerical non-convergence is reported through
ConvergenceWarning and result flags instead.
"""

from typing import Iterable, List


class LigandNetworkError(ValueError):
    """Base class for all framework errors."""


class ConfigurationError(LigandNetworkError):
    """A required hyperparameter entry is missing."""


class InvalidParameterError(LigandNetworkError):
    """A numeric hyperparameter is outside its allowed range."""


class UnknownNodeError(LigandNetworkError, KeyError):
    """A query references nodes that are absent from the graph."""

    def __init__(self, nodes: Iterable[str], context: str = "graph"):
        self.nodes: List[str] = sorted(set(nodes))
        preview = ", ".join(self.nodes[:10])
        if len(self.nodes) > 10:
            preview += f", ... ({len(self.nodes)} total)"
        super().__init__(f"Unknown node(s) in {context}: {preview}")

    def __str__(self) -> str:
        # KeyError would otherwise repr() the message
        return str(self.args[0])


class EmptyGraphError(LigandNetworkError):
    """The network has no usable edges."""


class EmptyGeneSetError(LigandNetworkError):
    """The gene set of interest is empty."""


class InvalidInputError(LigandNetworkError):
    """Malformed evaluation or edge input."""


class ConvergenceWarning(UserWarning):
    """Propagation stopped before reaching the convergence tolerance."""
