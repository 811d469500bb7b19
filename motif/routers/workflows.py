"""Workflow API endpoints for inspecting and steering a running workflow."""

from typing import Any, Dict, Literal, Optional

from fastapi import APIRouter, HTTPException, status
from loguru import logger

from ..errors import NavigationError, PersistenceError, WorkflowStateError
from ..models.workflow import StepStatusResponse, WorkflowImportRequest
from ..workflows.engine import Workflow
from ..workflows.state_manager import WorkflowStateManager, parse_payload

router = APIRouter(prefix="/workflow", tags=["workflow"])

# Process-local workflow served by this router
_workflow: Optional[Workflow] = None
_state_manager: Optional[WorkflowStateManager] = None


def set_workflow(workflow: Optional[Workflow]) -> None:
    """Attach (or detach, with None) the workflow these endpoints operate on."""
    global _workflow, _state_manager

    _workflow = workflow
    _state_manager = WorkflowStateManager(workflow) if workflow is not None else None
    if workflow is not None:
        logger.info("Workflow attached to HTTP adapter")


def is_attached() -> bool:
    return _workflow is not None


def get_workflow() -> Workflow:
    """Return the attached workflow or fail with 503."""
    if _workflow is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="No workflow attached",
        )
    return _workflow


def get_state_manager() -> WorkflowStateManager:
    """Return the state manager of the attached workflow or fail with 503."""
    if _state_manager is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="No workflow attached",
        )
    return _state_manager


def _current_status(workflow: Workflow) -> StepStatusResponse:
    try:
        current = workflow.get_current_step()
    except WorkflowStateError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    return StepStatusResponse(
        status=current.status,
        kind=current.kind,
        name=current.name,
        id=current.id,
        can_go_back=current.can_go_back,
        running=workflow.is_running,
    )


@router.get("/current", response_model=StepStatusResponse, summary="Get the current step")
async def get_current_step() -> StepStatusResponse:
    return _current_status(get_workflow())


@router.post("/back", response_model=StepStatusResponse, summary="Navigate back one step")
async def go_back() -> StepStatusResponse:
    """
    Return to the previous step.

    Fails with 409 when the step was reached across a unidirectional edge;
    the workflow is left unchanged in that case.
    """
    workflow = get_workflow()
    try:
        workflow.go_back()
    except NavigationError as e:
        logger.warning(f"Back navigation refused: {e}")
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    return _current_status(workflow)


@router.post("/pause", response_model=StepStatusResponse, summary="Pause the lifecycle")
async def pause() -> StepStatusResponse:
    workflow = get_workflow()
    workflow.pause()
    return _current_status(workflow)


@router.post("/resume", response_model=StepStatusResponse, summary="Resume the lifecycle")
async def resume() -> StepStatusResponse:
    workflow = get_workflow()
    workflow.resume()
    return _current_status(workflow)


@router.post("/stop", summary="Stop the workflow")
async def stop() -> Dict[str, bool]:
    workflow = get_workflow()
    workflow.stop()
    return {"stopped": True, "running": workflow.is_running}


@router.get("/export", summary="Export the workflow")
async def export_workflow(mode: Literal["basic", "full"] = "basic") -> Dict[str, Any]:
    try:
        return get_state_manager().export_workflow(mode)
    except PersistenceError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.post("/import", summary="Import a workflow export")
async def import_workflow(
    request: WorkflowImportRequest, mode: Literal["basic", "full"] = "basic"
) -> Dict[str, Any]:
    """
    Replace the workflow's graph (and state, for ``full``) with an export.

    The payload may be a JSON object or YAML text. Imports are atomic: an
    invalid payload is rejected with 400 and nothing changes.
    """
    manager = get_state_manager()
    try:
        data = parse_payload(request.payload) if isinstance(request.payload, str) else request.payload
        manager.import_workflow(mode, data, paused=request.paused)
    except PersistenceError as e:
        logger.error(f"Failed to import workflow: {e}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid workflow payload: {str(e)}",
        )

    return {
        "imported": True,
        "nodes": len(manager.workflow.internal.nodes),
        "edges": len(manager.workflow.internal.edges),
    }
