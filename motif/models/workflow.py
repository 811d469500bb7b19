"""Workflow models: the observable step status and export/import payloads."""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .step import StepInstance

WORKFLOW_EXPORT_SCHEMA_VERSION = 1


class TransitionStatus(str, Enum):
    """Observable states of one entry into a step."""

    TRANSITION_IN = "transitionIn"
    READY = "ready"
    TRANSITION_OUT = "transitionOut"


@dataclass(frozen=True)
class CurrentStepStatus:
    """What subscribers see of the active step.

    ``state`` is whatever the step's build function returned, so consumers
    dispatch on ``kind`` to know its shape.
    """

    status: TransitionStatus
    kind: str
    name: str
    id: str
    state: Any
    instance: StepInstance
    can_go_back: bool


class ExportedNode(BaseModel):
    """A registered step instance."""

    id: str
    kind: str = Field(..., min_length=1)
    name: str = ""
    config: Optional[Any] = None


class ExportedEdge(BaseModel):
    """A serializable edge; ``config`` holds its expression, if any."""

    model_config = ConfigDict(populate_by_name=True)

    kind: str = Field(..., description="Edge kind (default, conditional, transform)")
    from_id: str = Field(..., alias="from")
    to_id: str = Field(..., alias="to")
    unidirectional: bool = False
    config: Optional[str] = None


class ExportedCurrent(BaseModel):
    node_id: str
    status: TransitionStatus = TransitionStatus.READY
    input: Any = None


class ExportedHistoryEntry(BaseModel):
    node_id: str
    input: Any = None


class ExportedState(BaseModel):
    """Runtime state: the current entry, history and store contents."""

    current: Optional[ExportedCurrent] = None
    history: List[ExportedHistoryEntry] = Field(default_factory=list)
    stores: Dict[str, Dict[str, Any]] = Field(default_factory=dict)


class WorkflowExportBasic(BaseModel):
    """Nodes and edges only."""

    model_config = ConfigDict(populate_by_name=True)

    format: Literal["motif/basic"] = "motif/basic"
    schema_version: int = Field(default=WORKFLOW_EXPORT_SCHEMA_VERSION)
    nodes: List[ExportedNode] = Field(default_factory=list)
    edges: List[ExportedEdge] = Field(default_factory=list)

    @field_validator("schema_version")
    @classmethod
    def validate_schema_version(cls, v: int) -> int:
        """Ensure the payload was produced by a compatible exporter."""
        if v != WORKFLOW_EXPORT_SCHEMA_VERSION:
            raise ValueError(
                f"Unsupported schema version {v}; expected {WORKFLOW_EXPORT_SCHEMA_VERSION}"
            )
        return v

    @field_validator("nodes")
    @classmethod
    def validate_unique_nodes(cls, v: List[ExportedNode]) -> List[ExportedNode]:
        """Ensure node ids are unique."""
        ids = [node.id for node in v]
        duplicates = sorted({node_id for node_id in ids if ids.count(node_id) > 1})
        if duplicates:
            raise ValueError(f"Duplicate node ids: {', '.join(duplicates)}")
        return v


class WorkflowExportFull(WorkflowExportBasic):
    """Nodes, edges and runtime state."""

    format: Literal["motif/full"] = "motif/full"  # type: ignore[assignment]
    state: ExportedState = Field(default_factory=ExportedState)


class StepStatusResponse(BaseModel):
    """API response describing the current step."""

    status: TransitionStatus
    kind: str
    name: str
    id: str
    can_go_back: bool
    running: bool


class WorkflowImportRequest(BaseModel):
    """API request for importing a workflow export (JSON object or YAML text)."""

    payload: Union[Dict[str, Any], str] = Field(..., description="Export document")
    paused: bool = Field(default=False, description="Keep the restored entry frozen")
