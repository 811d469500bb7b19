"""Workflow engine package for step lifecycle and transition handling."""

from .engine import HistoryEntry, Workflow, WorkflowInternals, workflow
from .state_manager import WorkflowStateManager

__all__ = ["HistoryEntry", "Workflow", "WorkflowInternals", "WorkflowStateManager", "workflow"]
