"""Schema wrappers built on pydantic type adapters."""

from typing import Any, Optional

from pydantic import TypeAdapter, ValidationError

from ..errors import SchemaValidationError


class Schema:
    """Validates values against any type pydantic understands."""

    def __init__(self, annotation: Any, label: str = "value") -> None:
        self.annotation = annotation
        self.label = label
        self._adapter = annotation if isinstance(annotation, TypeAdapter) else TypeAdapter(annotation)

    def validate(self, value: Any) -> Any:
        """Return the validated (possibly coerced) value."""
        try:
            return self._adapter.validate_python(value)
        except ValidationError as e:
            raise SchemaValidationError(
                f"Invalid {self.label}: {e.error_count()} validation error(s)\n{e}",
                errors=e.errors(),
            ) from e

    def dump(self, value: Any) -> Any:
        """Return a JSON-compatible representation of ``value``."""
        return self._adapter.dump_python(value, mode="json")

    def __repr__(self) -> str:
        return f"Schema({self.label}: {self.annotation!r})"


def as_schema(annotation: Any, label: str) -> Optional[Schema]:
    if annotation is None:
        return None
    if isinstance(annotation, Schema):
        return annotation
    return Schema(annotation, label)
