"""Restricted expression evaluation for serializable edges.

Expressions are plain Python expressions compiled once when the edge is built
and evaluated later with a single binding, ``out``, holding the candidate
output of the source step:

    out % 2 == 0
    {"username": out["name"], "years": out["age"]}
"""

from types import CodeType
from typing import Any, Dict

from loguru import logger

from .errors import ExpressionError

OUTPUT_BINDING = "out"

DANGEROUS_KEYWORDS = ("import", "exec", "eval", "__", "lambda")

SAFE_BUILTINS: Dict[str, Any] = {
    "True": True,
    "False": False,
    "None": None,
    "abs": abs,
    "all": all,
    "any": any,
    "bool": bool,
    "dict": dict,
    "float": float,
    "int": int,
    "len": len,
    "list": list,
    "max": max,
    "min": min,
    "round": round,
    "sorted": sorted,
    "str": str,
    "sum": sum,
    "tuple": tuple,
}


class CompiledExpression:
    """A compiled expression, callable with the value bound to ``out``."""

    def __init__(self, source: str) -> None:
        self.source = source
        self._code = _compile(source)

    def __call__(self, value: Any) -> Any:
        namespace = {"__builtins__": SAFE_BUILTINS, OUTPUT_BINDING: value}
        try:
            return eval(self._code, namespace)
        except Exception as e:
            logger.error(f"Expression evaluation failed: {self.source} - {e}")
            raise

    def __repr__(self) -> str:
        return f"CompiledExpression({self.source!r})"


def _compile(source: str) -> CodeType:
    if not isinstance(source, str) or not source.strip():
        raise ExpressionError("Expression cannot be empty")

    # Basic safety check - prevent dangerous operations
    lowered = source.lower()
    if any(keyword in lowered for keyword in DANGEROUS_KEYWORDS):
        raise ExpressionError(f"Expression contains dangerous keywords: {source}")

    try:
        return compile(source.strip(), "<edge-expression>", "eval")
    except SyntaxError as e:
        raise ExpressionError(f"Invalid expression {source!r}: {e.msg}") from e


def compile_expression(source: str) -> CompiledExpression:
    """Compile ``source`` into a reusable evaluator."""
    return CompiledExpression(source)
