"""Lifecycle logging for a workflow, routed through loguru."""

from typing import Any, Optional, Sequence, Union

from loguru import logger

from ..config import get_settings
from ..models.step import StepInstance
from ..models.workflow import CurrentStepStatus, TransitionStatus
from ..workflows.engine import Workflow

_STATUS_LABELS = {
    TransitionStatus.TRANSITION_IN: "TransitionIn",
    TransitionStatus.READY: "Ready",
    TransitionStatus.TRANSITION_OUT: "TransitionOut",
}


class LoggedWorkflow:
    """Wraps a workflow, logging registration, control calls and status changes."""

    def __init__(self, workflow: Workflow, prefix: str, show_payload: bool) -> None:
        self._workflow = workflow
        self.prefix = prefix
        self.show_payload = show_payload
        self._unsubscribe = workflow.subscribe(self._on_status)

    def __getattr__(self, name: str) -> Any:
        return getattr(self._workflow, name)

    def log(self, label: str, payload: Any = None) -> None:
        if self.show_payload and payload is not None:
            logger.info(f"{self.prefix}{label} {payload}")
        else:
            logger.info(f"{self.prefix}{label}")

    def _on_status(self, current: CurrentStepStatus, is_running: bool) -> None:
        self.log(_STATUS_LABELS[current.status], {"id": current.id, "status": current.status.value})

    def register(self, nodes: Union[StepInstance, Sequence[StepInstance]]) -> "LoggedWorkflow":
        items = [nodes] if isinstance(nodes, StepInstance) else list(nodes)
        self.log("Register", [{"id": n.id, "kind": n.kind, "name": n.name} for n in items])
        self._workflow.register(nodes)
        return self

    def connect(self, *args: Any, **kwargs: Any) -> "LoggedWorkflow":
        self._workflow.connect(*args, **kwargs)
        return self

    def start(self, node: StepInstance) -> "LoggedWorkflow":
        self.log("Start", {"id": node.id, "kind": node.kind, "name": node.name})
        self._workflow.start(node)
        return self

    def pause(self) -> None:
        self.log("Pause")
        self._workflow.pause()

    def resume(self) -> None:
        self.log("Resume")
        self._workflow.resume()

    def go_back(self) -> None:
        self.log("Back")
        self._workflow.go_back()

    def detach(self) -> Workflow:
        """Stop logging status changes and return the wrapped workflow."""
        self._unsubscribe()
        return self._workflow


def logger_middleware(
    workflow: Workflow, prefix: Optional[str] = None, show_payload: Optional[bool] = None
) -> LoggedWorkflow:
    """Wrap ``workflow`` so its lifecycle is logged; defaults come from settings."""
    settings = get_settings()
    return LoggedWorkflow(
        workflow,
        prefix=settings.logger_prefix if prefix is None else prefix,
        show_payload=settings.logger_show_payload if show_payload is None else show_payload,
    )
