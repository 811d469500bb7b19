"""Unit tests for edge families and restricted expressions."""

import pytest

from motif import ExpressionError, PersistenceError, StepDefinition, TransformError
from motif.edges import BLOCKED, ConditionalEdge, TransformEdge, conditional_edge, transform_edge
from motif.edges import serializable
from motif.expression import compile_expression

Node = StepDefinition("Node", lambda ctx: {})


@pytest.fixture
def nodes():
    return Node("a"), Node("b")


@pytest.mark.unit
class TestCodeDefinedEdges:
    """Test suite for edges built from Python callables."""

    def test_conditional_edge_gates_output(self, nodes):
        gate = conditional_edge(*nodes, lambda out: out == "yes")

        assert gate.validate_transition("no") is BLOCKED
        result = gate.validate_transition("yes")
        assert result.allow is True
        assert result.next_input == "yes"

    def test_transform_edge_converts(self, nodes):
        convert = transform_edge(*nodes, lambda out: {"username": out["name"]})

        result = convert.validate_transition({"name": "ada"})

        assert result.next_input == {"username": "ada"}

    def test_transform_edge_wraps_exceptions(self, nodes):
        convert = transform_edge(*nodes, lambda out: out["missing"])

        with pytest.raises(TransformError) as exc_info:
            convert.validate_transition({})

        assert exc_info.value.reason == "'missing'"
        assert str(exc_info.value).startswith("TransformEdge: failed to convert output -> input.")

    def test_code_edges_are_not_serializable(self, nodes):
        gate = ConditionalEdge(*nodes, predicate=bool)

        assert gate.serializable is False
        with pytest.raises(PersistenceError):
            gate.serialize()

    def test_kinds(self, nodes):
        assert ConditionalEdge(*nodes, predicate=bool).kind == "conditional"
        assert TransformEdge(*nodes, transform=str).kind == "transform"
        assert serializable.edge(*nodes).kind == "default"

    def test_repr_shows_direction(self, nodes):
        assert repr(serializable.edge(*nodes, unidirectional=True)) == "PassThroughEdge(Node:a -> Node:b)"
        assert repr(serializable.edge(*nodes)) == "PassThroughEdge(Node:a <-> Node:b)"


@pytest.mark.unit
class TestExpressionEdges:
    """Test suite for serializable expression-defined edges."""

    def test_conditional_expression(self, nodes):
        gate = serializable.conditional_edge(*nodes, "out % 2 == 0")

        assert gate.validate_transition(4).allow is True
        assert gate.validate_transition(3).allow is False
        assert gate.serialize() == "out % 2 == 0"

    def test_transform_expression(self, nodes):
        convert = serializable.transform_edge(*nodes, '{"username": out["name"], "years": out["age"]}')

        result = convert.validate_transition({"name": "ada", "age": 36})

        assert result.next_input == {"username": "ada", "years": 36}

    def test_invalid_expression_fails_at_construction(self, nodes):
        with pytest.raises(ExpressionError):
            serializable.conditional_edge(*nodes, "out ===")

    def test_deserialize_requires_string_config(self, nodes):
        with pytest.raises(PersistenceError):
            serializable.ExpressionTransformEdge.deserialize(*nodes, False, None)

    def test_inventory_covers_every_kind(self):
        assert set(serializable.EDGE_INVENTORY) == {"default", "conditional", "transform"}


@pytest.mark.unit
class TestExpressions:
    """Test suite for the restricted expression evaluator."""

    @pytest.mark.parametrize("source", ["", "   ", "__import__('os')", "exec('x')", "lambda: 1"])
    def test_rejects_empty_and_dangerous(self, source):
        with pytest.raises(ExpressionError):
            compile_expression(source)

    def test_allowed_builtins(self):
        assert compile_expression("len(out) > 2 and max(out) == 9")([1, 9, 3]) is True

    def test_unlisted_builtins_are_unavailable(self, log_messages):
        expression = compile_expression("open('secrets.txt')")

        with pytest.raises(NameError):
            expression(None)

        assert any("Expression evaluation failed" in m for m in log_messages)
