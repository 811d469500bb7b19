"""Data models package."""

from .schema import Schema
from .step import StepContext, StepDefinition, StepInstance, step
from .workflow import (
    WORKFLOW_EXPORT_SCHEMA_VERSION,
    CurrentStepStatus,
    ExportedCurrent,
    ExportedEdge,
    ExportedHistoryEntry,
    ExportedNode,
    ExportedState,
    StepStatusResponse,
    TransitionStatus,
    WorkflowExportBasic,
    WorkflowExportFull,
    WorkflowImportRequest,
)

__all__ = [
    "WORKFLOW_EXPORT_SCHEMA_VERSION",
    "Schema",
    "StepContext",
    "StepDefinition",
    "StepInstance",
    "step",
    "TransitionStatus",
    "CurrentStepStatus",
    "ExportedNode",
    "ExportedEdge",
    "ExportedCurrent",
    "ExportedHistoryEntry",
    "ExportedState",
    "WorkflowExportBasic",
    "WorkflowExportFull",
    "StepStatusResponse",
    "WorkflowImportRequest",
]
