"""Edges whose predicate or transform is given as Python code."""

from typing import Any, Callable

from ..errors import TransformError
from ..models.step import StepInstance
from .base import BLOCKED, Edge, TransitionResult


class ConditionalEdge(Edge):
    """Gate: lets the output through unchanged iff the predicate holds."""

    kind = "conditional"

    def __init__(
        self,
        from_node: StepInstance,
        to_node: StepInstance,
        predicate: Callable[[Any], Any],
        unidirectional: bool = False,
    ) -> None:
        super().__init__(from_node, to_node, unidirectional)
        self.predicate = predicate

    def validate_transition(self, output: Any) -> TransitionResult:
        if self.predicate(output):
            return TransitionResult(allow=True, next_input=output)
        return BLOCKED


class TransformEdge(Edge):
    """Converts the source output into the destination input, or fails."""

    kind = "transform"

    def __init__(
        self,
        from_node: StepInstance,
        to_node: StepInstance,
        transform: Callable[[Any], Any],
        unidirectional: bool = False,
    ) -> None:
        super().__init__(from_node, to_node, unidirectional)
        self.transform = transform

    def validate_transition(self, output: Any) -> TransitionResult:
        try:
            converted = self.transform(output)
        except Exception as e:
            raise TransformError(str(e) or type(e).__name__) from e
        if converted is None:
            raise TransformError("result is None")
        return TransitionResult(allow=True, next_input=converted)


def conditional_edge(
    from_node: StepInstance,
    to_node: StepInstance,
    predicate: Callable[[Any], Any],
    unidirectional: bool = False,
) -> ConditionalEdge:
    return ConditionalEdge(from_node, to_node, predicate, unidirectional)


def transform_edge(
    from_node: StepInstance,
    to_node: StepInstance,
    transform: Callable[[Any], Any],
    unidirectional: bool = False,
) -> TransformEdge:
    return TransformEdge(from_node, to_node, transform, unidirectional)
