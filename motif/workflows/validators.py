"""Validation of a workflow's step inventory."""

from collections import defaultdict
from typing import Dict, List, Sequence

from ..errors import RegistrationError
from ..models.step import StepDefinition


def validate_inventory(inventory: Sequence[StepDefinition]) -> None:
    """Reject non-definitions and duplicate kinds, reporting every offender."""
    positions: Dict[str, List[int]] = defaultdict(list)

    for index, definition in enumerate(inventory):
        if not isinstance(definition, StepDefinition):
            raise RegistrationError(
                f"Inventory entry #{index} is not a StepDefinition: {definition!r}"
            )
        positions[definition.kind].append(index)

    duplicates = {kind: found for kind, found in positions.items() if len(found) > 1}
    if duplicates:
        details = "; ".join(
            f"'{kind}' at positions {', '.join(str(i) for i in found)}"
            for kind, found in duplicates.items()
        )
        raise RegistrationError(f"Duplicate step kinds in inventory: {details}")
