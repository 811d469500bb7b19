"""motif: a runtime engine for typed, navigable step workflows."""

__version__ = "0.1.0"

from .errors import (
    ExpressionError,
    MotifError,
    NavigationError,
    PersistenceError,
    RegistrationError,
    RoutingError,
    SchemaValidationError,
    TransformError,
    WorkflowStateError,
)
from .models.step import StepContext, StepDefinition, StepInstance, step
from .models.workflow import CurrentStepStatus, TransitionStatus
from .store import Store, create_store
from .workflows.engine import Workflow, workflow

__all__ = [
    "__version__",
    "CurrentStepStatus",
    "ExpressionError",
    "MotifError",
    "NavigationError",
    "PersistenceError",
    "RegistrationError",
    "RoutingError",
    "SchemaValidationError",
    "StepContext",
    "StepDefinition",
    "StepInstance",
    "Store",
    "TransformError",
    "TransitionStatus",
    "Workflow",
    "WorkflowStateError",
    "create_store",
    "step",
    "workflow",
]
