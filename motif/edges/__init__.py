"""Edge families.

Code-defined edges are exported here; expression-defined (serializable)
edges with the same factory names live in ``motif.edges.serializable``.
"""

from .base import BLOCKED, Edge, TransitionResult
from .functional import ConditionalEdge, TransformEdge, conditional_edge, transform_edge
from .serializable import (
    EDGE_INVENTORY,
    ExpressionConditionalEdge,
    ExpressionTransformEdge,
    PassThroughEdge,
    edge,
)

__all__ = [
    "BLOCKED",
    "EDGE_INVENTORY",
    "ConditionalEdge",
    "Edge",
    "ExpressionConditionalEdge",
    "ExpressionTransformEdge",
    "PassThroughEdge",
    "TransformEdge",
    "TransitionResult",
    "conditional_edge",
    "edge",
    "transform_edge",
]
