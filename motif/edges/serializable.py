"""Edges that can be exported to and restored from plain data.

Conditional and transform edges here take an expression string instead of a
callable; the expression is compiled once, at construction, and evaluated
with the source output bound to ``out``.
"""

from typing import Any, Callable, Dict, Optional

from ..errors import PersistenceError
from ..expression import compile_expression
from ..models.step import StepInstance
from .base import Edge, TransitionResult
from .functional import ConditionalEdge, TransformEdge


class PassThroughEdge(Edge):
    """Identity edge: the output becomes the next input unchanged."""

    kind = "default"
    serializable = True

    def validate_transition(self, output: Any) -> TransitionResult:
        return TransitionResult(allow=True, next_input=output)

    def serialize(self) -> Optional[str]:
        return None

    @classmethod
    def deserialize(
        cls, from_node: StepInstance, to_node: StepInstance, unidirectional: bool, config: Any = None
    ) -> "PassThroughEdge":
        return cls(from_node, to_node, unidirectional)


class ExpressionConditionalEdge(ConditionalEdge):
    serializable = True

    def __init__(
        self,
        from_node: StepInstance,
        to_node: StepInstance,
        expression: str,
        unidirectional: bool = False,
    ) -> None:
        super().__init__(from_node, to_node, compile_expression(expression), unidirectional)
        self.expression = expression

    def serialize(self) -> Optional[str]:
        return self.expression

    @classmethod
    def deserialize(
        cls, from_node: StepInstance, to_node: StepInstance, unidirectional: bool, config: Any = None
    ) -> "ExpressionConditionalEdge":
        if not isinstance(config, str):
            raise PersistenceError("ConditionalEdge: serialized config must be a string")
        return cls(from_node, to_node, config, unidirectional)


class ExpressionTransformEdge(TransformEdge):
    serializable = True

    def __init__(
        self,
        from_node: StepInstance,
        to_node: StepInstance,
        expression: str,
        unidirectional: bool = False,
    ) -> None:
        super().__init__(from_node, to_node, compile_expression(expression), unidirectional)
        self.expression = expression

    def serialize(self) -> Optional[str]:
        return self.expression

    @classmethod
    def deserialize(
        cls, from_node: StepInstance, to_node: StepInstance, unidirectional: bool, config: Any = None
    ) -> "ExpressionTransformEdge":
        if not isinstance(config, str):
            raise PersistenceError("TransformEdge: serialized config must be a string")
        return cls(from_node, to_node, config, unidirectional)


EdgeDeserializer = Callable[[StepInstance, StepInstance, bool, Any], Edge]

# Serialized edge kind -> deserializer
EDGE_INVENTORY: Dict[str, EdgeDeserializer] = {
    PassThroughEdge.kind: PassThroughEdge.deserialize,
    ExpressionConditionalEdge.kind: ExpressionConditionalEdge.deserialize,
    ExpressionTransformEdge.kind: ExpressionTransformEdge.deserialize,
}


def edge(from_node: StepInstance, to_node: StepInstance, unidirectional: bool = False) -> PassThroughEdge:
    return PassThroughEdge(from_node, to_node, unidirectional)


def conditional_edge(
    from_node: StepInstance, to_node: StepInstance, expression: str, unidirectional: bool = False
) -> ExpressionConditionalEdge:
    return ExpressionConditionalEdge(from_node, to_node, expression, unidirectional)


def transform_edge(
    from_node: StepInstance, to_node: StepInstance, expression: str, unidirectional: bool = False
) -> ExpressionTransformEdge:
    return ExpressionTransformEdge(from_node, to_node, expression, unidirectional)
