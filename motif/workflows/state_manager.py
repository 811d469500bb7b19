"""State manager for workflow export, import and file persistence."""

import json
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional, Tuple, Union

import yaml
from loguru import logger
from pydantic import ValidationError

from ..config import get_settings
from ..edges.base import Edge
from ..edges.serializable import EDGE_INVENTORY, EdgeDeserializer
from ..errors import MotifError, PersistenceError
from ..models.step import StepInstance
from ..models.workflow import (
    ExportedCurrent,
    ExportedEdge,
    ExportedHistoryEntry,
    ExportedNode,
    ExportedState,
    WorkflowExportBasic,
    WorkflowExportFull,
)
from .context import CleanupBucket
from .engine import HistoryEntry, Workflow

ExportMode = Literal["basic", "full"]


def _dump_value(node: StepInstance, value: Any, schema_attr: str) -> Any:
    schema = getattr(node, schema_attr)
    if schema is None or value is None:
        return value
    return schema.dump(value)


class WorkflowStateManager:
    """Exports and restores a workflow's graph and runtime state.

    ``basic`` payloads carry nodes and edges; ``full`` payloads add the current
    entry, the history stack and store contents. Imports are atomic: the
    workflow is only touched once the whole payload has been validated and
    rebuilt.
    """

    def __init__(
        self,
        workflow: Workflow,
        edge_inventory: Optional[Dict[str, EdgeDeserializer]] = None,
        state_path: Optional[Path] = None,
    ) -> None:
        """Initialize state manager for ``workflow``."""
        self.workflow = workflow
        self.edge_inventory: Dict[str, EdgeDeserializer] = dict(edge_inventory or EDGE_INVENTORY)
        self.state_path = state_path or get_settings().state_path

    # -- Export ----------------------------------------------------------

    def export_workflow(self, mode: ExportMode = "basic") -> Dict[str, Any]:
        """Export nodes/edges (``basic``) or also runtime state (``full``)."""
        internal = self.workflow.internal

        nodes = [
            ExportedNode(
                id=node.id,
                kind=node.kind,
                name=node.name,
                config=_dump_value(node, node.config, "config_schema"),
            )
            for node in internal.nodes.values()
        ]
        edges = [self._export_edge(edge) for edge in internal.edges]

        if mode == "basic":
            payload: Union[WorkflowExportBasic, WorkflowExportFull] = WorkflowExportBasic(
                nodes=nodes, edges=edges
            )
        elif mode == "full":
            payload = WorkflowExportFull(nodes=nodes, edges=edges, state=self._export_state())
        else:
            raise PersistenceError(f"Unknown export mode: {mode}")

        logger.info(f"Exported workflow ({mode}): {len(nodes)} nodes, {len(edges)} edges")
        return payload.model_dump(mode="json", by_alias=True)

    def _export_edge(self, edge: Edge) -> ExportedEdge:
        if not edge.serializable:
            # Raises PersistenceError naming the edge
            edge.serialize()
        return ExportedEdge(
            kind=edge.kind,
            from_id=edge.from_node.id,
            to_id=edge.to_node.id,
            unidirectional=edge.unidirectional,
            config=edge.serialize(),
        )

    def _export_state(self) -> ExportedState:
        internal = self.workflow.internal
        current_node = internal.get_current_node()
        current: Optional[ExportedCurrent] = None
        if current_node is not None:
            context = internal.get_context()
            current_input = context.current_input if context is not None else None
            current = ExportedCurrent(
                node_id=current_node.id,
                status=self.workflow.get_current_step().status,
                input=_dump_value(current_node, current_input, "input_schema"),
            )

        history = [
            ExportedHistoryEntry(
                node_id=entry.node.id,
                input=_dump_value(entry.node, entry.input, "input_schema"),
            )
            for entry in internal.history
        ]
        stores = {
            node.id: node.store.data() for node in internal.nodes.values() if node.store is not None
        }
        return ExportedState(current=current, history=history, stores=stores)

    # -- Import ----------------------------------------------------------

    def import_workflow(self, mode: ExportMode, data: Dict[str, Any], paused: bool = False) -> None:
        """Replace the workflow's graph (and, for ``full``, its state) with ``data``.

        A full import re-enters the exported current step directly, bypassing
        edge validation. With ``paused=True`` the restored entry stays frozen
        until ``resume()``.
        """
        if mode not in ("basic", "full"):
            raise PersistenceError(f"Unknown import mode: {mode}")
        model_cls = WorkflowExportBasic if mode == "basic" else WorkflowExportFull
        try:
            payload = model_cls.model_validate(data)
        except ValidationError as e:
            raise PersistenceError(f"Invalid {mode} workflow payload: {e}") from e

        try:
            nodes_by_id = self._build_nodes(payload.nodes)
            edges = self._build_edges(payload.edges, nodes_by_id)
            history: List[HistoryEntry] = []
            current: Optional[Tuple[StepInstance, Any]] = None
            if isinstance(payload, WorkflowExportFull):
                history, current = self._build_state(payload.state, nodes_by_id)
        except PersistenceError:
            raise
        except MotifError as e:
            raise PersistenceError(f"Cannot rebuild workflow from payload: {e}") from e

        self._apply(nodes_by_id, edges, history, current, paused)
        logger.info(
            f"Imported workflow ({mode}): {len(nodes_by_id)} nodes, {len(edges)} edges, "
            f"{len(history)} history entries"
        )

    def _build_nodes(self, exported: List[ExportedNode]) -> Dict[str, StepInstance]:
        inventory = self.workflow.internal.step_inventory
        nodes: Dict[str, StepInstance] = {}
        for item in exported:
            definition = inventory.get(item.kind)
            if definition is None:
                raise PersistenceError(
                    f"Unknown step kind '{item.kind}'. Allowed kinds: [{', '.join(inventory)}]"
                )
            instance = definition(item.name, item.config)
            if instance.id != item.id:
                raise PersistenceError(
                    f"Node id '{item.id}' does not match kind/name (expected '{instance.id}')"
                )
            nodes[instance.id] = instance
        return nodes

    def _build_edges(
        self, exported: List[ExportedEdge], nodes_by_id: Dict[str, StepInstance]
    ) -> List[Edge]:
        edges: List[Edge] = []
        for item in exported:
            deserialize = self.edge_inventory.get(item.kind)
            if deserialize is None:
                raise PersistenceError(f"Unknown edge kind '{item.kind}'")
            from_node = self._lookup(nodes_by_id, item.from_id)
            to_node = self._lookup(nodes_by_id, item.to_id)
            edges.append(deserialize(from_node, to_node, item.unidirectional, item.config))
        return edges

    def _build_state(
        self, state: ExportedState, nodes_by_id: Dict[str, StepInstance]
    ) -> Tuple[List[HistoryEntry], Optional[Tuple[StepInstance, Any]]]:
        history = []
        for item in state.history:
            node = self._lookup(nodes_by_id, item.node_id)
            history.append(
                HistoryEntry(
                    node=node,
                    input=self._restore_input(node, item.input),
                    out_cleanups=CleanupBucket(),
                )
            )

        current = None
        if state.current is not None:
            node = self._lookup(nodes_by_id, state.current.node_id)
            current = (node, self._restore_input(node, state.current.input))

        for node_id, store_state in state.stores.items():
            node = self._lookup(nodes_by_id, node_id)
            if node.store is None:
                raise PersistenceError(f"Step '{node_id}' has no store to restore")
            # Fresh instances: nothing subscribes to these stores yet
            node.store.set_state(store_state)

        return history, current

    @staticmethod
    def _restore_input(node: StepInstance, value: Any) -> Any:
        if node.input_schema is None or value is None:
            return value
        return node.input_schema.validate(value)

    @staticmethod
    def _lookup(nodes_by_id: Dict[str, StepInstance], node_id: str) -> StepInstance:
        node = nodes_by_id.get(node_id)
        if node is None:
            raise PersistenceError(f"Payload references unknown node '{node_id}'")
        return node

    def _apply(
        self,
        nodes_by_id: Dict[str, StepInstance],
        edges: List[Edge],
        history: List[HistoryEntry],
        current: Optional[Tuple[StepInstance, Any]],
        paused: bool,
    ) -> None:
        internal = self.workflow.internal
        if internal.get_current_node() is not None:
            self.workflow.stop()
        internal.stop()

        internal.nodes.clear()
        internal.nodes.update(nodes_by_id)
        internal.edges[:] = edges
        internal.history[:] = history

        if current is not None:
            node, input_value = current
            internal.set_running(not paused)
            internal.transition_into(node, input_value, False, CleanupBucket())

    # -- Files -----------------------------------------------------------

    def save(self, mode: ExportMode = "full", path: Optional[Path] = None) -> Path:
        """Write an export to ``path`` (JSON, or YAML for .yaml/.yml)."""
        target = Path(path or self.state_path)
        payload = self.export_workflow(mode)

        target.parent.mkdir(parents=True, exist_ok=True)
        if target.suffix in (".yaml", ".yml"):
            content = yaml.safe_dump(payload, sort_keys=False, allow_unicode=True)
        else:
            content = json.dumps(payload, indent=2, ensure_ascii=False) + "\n"
        target.write_text(content, encoding="utf-8")

        logger.info(f"Saved workflow state to: {target}")
        return target

    def load(self, path: Optional[Path] = None, paused: bool = False) -> None:
        """Import an export previously written by ``save``."""
        source = Path(path or self.state_path)
        if not source.exists():
            raise PersistenceError(f"No saved workflow state at: {source}")

        logger.info(f"Loading workflow state from: {source}")
        data = parse_payload(source.read_text(encoding="utf-8"))
        mode: ExportMode = "full" if data.get("format") == "motif/full" else "basic"
        self.import_workflow(mode, data, paused=paused)


def parse_payload(text: str) -> Dict[str, Any]:
    """Parse a JSON or YAML export document."""
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise PersistenceError(f"Cannot parse workflow payload: {e}") from e
    if not isinstance(data, dict):
        raise PersistenceError("Workflow payload must be a mapping")
    return data
