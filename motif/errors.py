"""Exception taxonomy for the workflow engine."""

from typing import Any, Dict, List, Optional


class MotifError(Exception):
    """Base class for every error raised by the engine."""


class SchemaValidationError(MotifError, ValueError):
    """A value did not satisfy its declared input, output or config schema."""

    def __init__(self, message: str, errors: Optional[List[Dict[str, Any]]] = None) -> None:
        super().__init__(message)
        self.errors = errors or []


class RoutingError(MotifError):
    """No outgoing edge could carry the output of the active step."""


class TransformError(MotifError):
    """A transform edge failed to convert an output into the next input."""

    def __init__(self, reason: str) -> None:
        super().__init__(f"TransformEdge: failed to convert output -> input. Reason: {reason}")
        self.reason = reason


class NavigationError(MotifError):
    """Back navigation (or a stale ``next``) was refused."""


class RegistrationError(MotifError):
    """A step instance or definition is unknown to the workflow, or duplicated."""


class ExpressionError(MotifError, ValueError):
    """An edge expression could not be compiled or evaluated."""


class WorkflowStateError(MotifError):
    """The workflow has no current step to report."""


class PersistenceError(MotifError):
    """An export or import payload could not be produced or applied."""
