"""Edge model: directed, validated relations between step instances."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional

from ..errors import PersistenceError
from ..models.step import StepInstance


@dataclass(frozen=True)
class TransitionResult:
    """Outcome of asking an edge whether an output may cross it."""

    allow: bool
    next_input: Any = None


BLOCKED = TransitionResult(allow=False)


class Edge(ABC):
    """A directed edge from one step instance to another.

    ``validate_transition`` decides whether the source output may cross the
    edge and, when it may, what input the destination receives.
    """

    kind: str = "default"
    serializable: bool = False

    def __init__(self, from_node: StepInstance, to_node: StepInstance, unidirectional: bool = False) -> None:
        self.from_node = from_node
        self.to_node = to_node
        self.unidirectional = unidirectional

    @abstractmethod
    def validate_transition(self, output: Any) -> TransitionResult:
        """Return whether ``output`` may cross this edge, and the next input."""

    def serialize(self) -> Optional[str]:
        """Return the edge's plain-data configuration."""
        raise PersistenceError(
            f"Edge '{self.kind}' from '{self.from_node.id}' to '{self.to_node.id}' "
            "is defined in code and cannot be serialized"
        )

    def __repr__(self) -> str:
        arrow = "->" if self.unidirectional else "<->"
        return f"{type(self).__name__}({self.from_node.id} {arrow} {self.to_node.id})"
