"""Transition engine driving a graph of steps through their lifecycle."""

import asyncio
from contextlib import contextmanager
from dataclasses import dataclass, replace
from functools import partial
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence, Set, Union

from loguru import logger

from ..edges.base import Edge
from ..edges.serializable import PassThroughEdge
from ..errors import NavigationError, RegistrationError, RoutingError, WorkflowStateError
from ..models.step import (
    CleanupFn,
    DependencyList,
    EffectFn,
    StepContext,
    StepDefinition,
    StepInstance,
    TransitionHook,
)
from ..models.workflow import CurrentStepStatus, TransitionStatus
from .context import (
    CleanupBucket,
    WorkflowContext,
    run_out_cleanup_on_back,
    safe_invoke_cleanup,
    track_async_cleanup,
)
from .effects import EffectDef, dispose_effects, process_effects
from .validators import validate_inventory

Subscriber = Callable[[CurrentStepStatus, bool], None]


def _noop() -> None:
    return None


@dataclass
class HistoryEntry:
    """A previously visited entry and the exit cleanups it left behind."""

    node: StepInstance
    input: Any
    out_cleanups: List[CleanupFn]


class Workflow:
    """
    State machine driving step instances along their edges.

    Features:
    - Per-entry lifecycle (transitionIn -> ready -> transitionOut) with sync and async hooks
    - First-match edge routing with input/output schema validation
    - Back navigation with deferred exit cleanups
    - Store-driven rebuilds with dependency-diffed effects
    - Pause/resume/stop of the whole lifecycle
    """

    def __init__(self, inventory: Sequence[StepDefinition]) -> None:
        """Initialize workflow with the step definitions it may host."""
        validate_inventory(inventory)
        self._step_inventory: Dict[str, StepDefinition] = {d.kind: d for d in inventory}
        self._nodes: Dict[str, StepInstance] = {}
        self._edges: List[Edge] = []
        self._history: List[HistoryEntry] = []
        self._subscribers: List[Subscriber] = []
        # Async hooks still in flight; held so they are not garbage-collected
        self._pending_hooks: Set["asyncio.Future[Any]"] = set()

        self._context: Optional[WorkflowContext] = None
        self._version_counter = 0
        self._running = False
        self._current_step: Optional[CurrentStepStatus] = None

        # Store notifications are queued while an operation is in flight
        self._depth = 0
        self._flushing = False
        self._pending_rebuild: Optional[int] = None

        self.internal = WorkflowInternals(self)

    # -- Graph construction ---------------------------------------------

    def register(self, nodes: Union[StepInstance, Sequence[StepInstance]]) -> "Workflow":
        """Register one or more step instances."""
        items = [nodes] if isinstance(nodes, StepInstance) else list(nodes)
        allowed = ", ".join(self._step_inventory)

        for node in items:
            if node.kind not in self._step_inventory:
                raise RegistrationError(
                    f"Cannot register StepInstance kind '{node.kind}'. "
                    f"Not listed in inventory. Allowed kinds: [{allowed}]"
                )
            existing = self._nodes.get(node.id)
            if existing is not None and existing is not node:
                raise RegistrationError(f"Another StepInstance with id '{node.id}' is already registered")

        for node in items:
            self._nodes[node.id] = node

        logger.info(f"Registered steps: {', '.join(node.id for node in items)}")
        return self

    def connect(
        self,
        from_or_edge: Union[StepInstance, Edge],
        to_node: Optional[StepInstance] = None,
        unidirectional: bool = False,
    ) -> "Workflow":
        """Connect two registered steps with a pass-through edge, or add an edge."""
        if isinstance(from_or_edge, Edge):
            from_node, to_node = from_or_edge.from_node, from_or_edge.to_node
        elif to_node is None:
            raise TypeError("connect() needs either an Edge or both from and to steps")
        else:
            from_node = from_or_edge

        if not self._is_registered(from_node):
            raise RegistrationError(
                f"Cannot connect from unregistered StepInstance '{from_node.id}'. "
                "Register the instance before connecting."
            )
        if not self._is_registered(to_node):
            raise RegistrationError(
                f"Cannot connect to unregistered StepInstance '{to_node.id}'. "
                "Register the instance before connecting."
            )

        edge = (
            from_or_edge
            if isinstance(from_or_edge, Edge)
            else PassThroughEdge(from_node, to_node, unidirectional)
        )
        self._edges.append(edge)
        logger.debug(f"Connected {edge!r}")
        return self

    # -- Lifecycle control ------------------------------------------------

    def start(self, node: StepInstance) -> "Workflow":
        """Enter ``node`` with no input and run the lifecycle from there."""
        if not self._is_registered(node):
            raise RegistrationError(
                f"Cannot start on unregistered StepInstance '{node.id}'. "
                "Register the instance before starting."
            )

        with self._operation():
            if self._context is not None:
                self.run_exit_sequence()
            self._running = True
            logger.info(f"Starting workflow at: {node.id}")
            self.transition_into(node, None, False, CleanupBucket())
        return self

    def stop(self) -> None:
        """Pause, exit the active entry and forget the current step.

        Registered nodes, edges and history are kept so ``start`` may run again.
        """
        self.pause()
        self.run_exit_sequence()
        self._current_step = None
        logger.info("Workflow stopped")

    def pause(self) -> None:
        """Freeze the lifecycle: tear down effects and the store subscription."""
        if not self._running:
            return
        self._running = False

        context = self._context
        if context is not None:
            dispose_effects(context.effects)
            # Cleared so resume re-runs them from scratch
            context.effects = []
            context.store_unsub()
            context.store_unsub = _noop
        logger.info("Workflow paused")

    def resume(self) -> None:
        """Re-subscribe to the active store and rebuild once."""
        if self._running:
            return
        self._running = True
        logger.info("Workflow resumed")

        context = self._context
        if context is not None and self._current_step is not None:
            context.store_unsub = self._subscribe_store(self._current_step.instance, context.version)
        self.rebuild_current()

    def go_back(self) -> None:
        """Return to the previous entry, unless it was left across a unidirectional edge."""
        if not self._history or self._current_step is None:
            return

        previous = self._history[-1]
        current_node = self._current_step.instance
        connecting = self._find_edge(previous.node, current_node)
        if connecting is not None and connecting.unidirectional:
            raise NavigationError(
                f"Back navigation is not allowed: edge from '{previous.node.id}' "
                f"to '{current_node.id}' is unidirectional"
            )

        with self._operation():
            self._history.pop()
            logger.info(f"Navigating back: {current_node.id} -> {previous.node.id}")
            self.run_exit_sequence()
            self.transition_into(previous.node, previous.input, True, previous.out_cleanups)

    # -- Read path -------------------------------------------------------

    def get_current_step(self) -> CurrentStepStatus:
        if self._current_step is None:
            raise WorkflowStateError("Workflow has no current step; call start() first")
        return self._current_step

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Call ``callback(current_step, is_running)`` on every status change."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    @property
    def is_running(self) -> bool:
        return self._running

    # -- Engine primitives -----------------------------------------------

    def set_current_step(self, current_step: CurrentStepStatus) -> None:
        self._current_step = current_step
        for callback in list(self._subscribers):
            callback(current_step, self._running)

    def transition_into(
        self,
        node: StepInstance,
        input_value: Any,
        is_back: bool,
        back_cleanups: List[CleanupFn],
    ) -> None:
        """Enter ``node``: build it, run enter hooks and effects, subscribe its store."""
        with self._operation():
            if is_back:
                # Late async cleanups flush immediately once the bucket is drained
                run_out_cleanup_on_back(back_cleanups)

            version = self._version_counter + 1
            in_hooks: List[TransitionHook] = []
            out_hooks: List[TransitionHook] = []
            effect_defs: List[EffectDef] = []
            api = node.build(
                self._step_context(node, input_value, version, in_hooks, out_hooks, effect_defs, True)
            )

            self._version_counter = version
            context = WorkflowContext(
                version=version,
                current_input=input_value,
                in_hooks=in_hooks,
                out_hooks=out_hooks,
            )
            self._context = context
            logger.debug(f"Entered {node.id} (version {version}, back={is_back})")

            if not self._running:
                self.set_current_step(
                    self._status(node, TransitionStatus.READY, api, self._can_go_back(node))
                )
                return

            # Store changes made by enter hooks or effects queue a rebuild for
            # when this operation completes
            context.store_unsub = self._subscribe_store(node, version)
            self.set_current_step(self._status(node, TransitionStatus.TRANSITION_IN, api, False))
            self._run_transition_in_once()
            if self._context is not context:
                return

            context.effects = process_effects(effect_defs)
            if self._context is not context:
                return

            self.set_current_step(
                self._status(node, TransitionStatus.READY, api, self._can_go_back(node))
            )

    def run_exit_sequence(self) -> CleanupBucket:
        """Leave the active entry; return the exit cleanups deferred for a later back."""
        bucket = CleanupBucket()
        with self._operation():
            if self._current_step is not None:
                self.set_current_step(
                    replace(
                        self._current_step,
                        status=TransitionStatus.TRANSITION_OUT,
                        can_go_back=False,
                    )
                )

            context = self._context
            if context is None:
                return bucket

            if self._running:
                for index, hook in enumerate(list(context.out_hooks)):
                    result = hook()
                    if callable(result):
                        bucket.append(result)
                    else:
                        self._keep_pending(
                            track_async_cleanup(
                                result, "transition_out", index, partial(self._settle_out_cleanup, bucket)
                            )
                        )

            dispose_effects(context.effects)
            context.effects = []
            for cleanup in context.in_cleanups:
                safe_invoke_cleanup(cleanup)
            context.in_cleanups = []
            context.store_unsub()
            context.store_unsub = _noop
            if self._context is context:
                self._context = None
        return bucket

    def rebuild_current(self) -> None:
        """Re-run the active step's build with the same input and re-diff its effects."""
        current = self._current_step
        context = self._context
        if current is None or context is None:
            return

        node = current.instance
        with self._operation():
            in_hooks: List[TransitionHook] = []
            out_hooks: List[TransitionHook] = []
            effect_defs: List[EffectDef] = []
            api = node.build(
                self._step_context(
                    node,
                    context.current_input,
                    context.version,
                    in_hooks,
                    out_hooks,
                    effect_defs,
                    not context.has_run_in,
                )
            )
            if self._context is not context:
                return

            # Latest exit hooks are the ones that run on the next exit
            context.out_hooks = out_hooks
            if not context.has_run_in:
                # Entered while paused: enter hooks run on the first live build
                context.in_hooks = in_hooks
                self._run_transition_in_once()
                if self._context is not context:
                    return

            context.effects = process_effects(effect_defs, context.effects)
            if self._context is not context:
                return

            logger.debug(f"Rebuilt {node.id} (version {context.version})")
            self.set_current_step(
                self._status(node, TransitionStatus.READY, api, self._can_go_back(node))
            )

    # -- Internals -------------------------------------------------------

    def _step_context(
        self,
        node: StepInstance,
        input_value: Any,
        version: int,
        in_hooks: List[TransitionHook],
        out_hooks: List[TransitionHook],
        effect_defs: List[EffectDef],
        accept_in_hooks: bool,
    ) -> StepContext:
        def transition_in(hook: TransitionHook) -> None:
            if accept_in_hooks and self._running:
                in_hooks.append(hook)

        def transition_out(hook: TransitionHook) -> None:
            if self._running:
                out_hooks.append(hook)

        def effect(fn: EffectFn, deps: Optional[DependencyList] = None) -> None:
            if self._running:
                effect_defs.append(EffectDef(run=fn, deps=deps))

        return StepContext(
            name=node.name,
            input=input_value,
            config=node.config if node.config_schema is not None else None,
            store=node.store.get_state() if node.store is not None else None,
            transition_in=transition_in,
            transition_out=transition_out,
            effect=effect,
            next=partial(self._next, node, version),
        )

    def _next(self, node: StepInstance, version: int, output: Any) -> None:
        """Route ``output`` from ``node`` along the first edge that accepts it."""
        if not self._running:
            logger.debug(f"Ignoring next() from {node.id} while paused")
            return
        context = self._context
        if context is None or context.version != version:
            raise NavigationError(f"StepInstance '{node.id}' is no longer the active step")

        with self._operation():
            validated = node.output_schema.validate(output) if node.output_schema else output
            outgoing = [e for e in self._edges if e.from_node is node]
            if not outgoing:
                self.run_exit_sequence()
                raise RoutingError(f"No next step from '{node.id}'")

            selected: Optional[Edge] = None
            next_input: Any = None
            for candidate in outgoing:
                result = candidate.validate_transition(validated)
                if result.allow:
                    selected, next_input = candidate, result.next_input
                    break

            if selected is None:
                self.run_exit_sequence()
                raise RoutingError(f"Transition blocked by edge condition from '{node.id}'")

            target = selected.to_node
            if target.input_schema is not None:
                next_input = target.input_schema.validate(next_input)

            entry_input = context.current_input
            bucket = self.run_exit_sequence()
            self._history.append(HistoryEntry(node=node, input=entry_input, out_cleanups=bucket))
            logger.info(f"Transition: {node.id} -> {target.id}")
            self.transition_into(target, next_input, False, CleanupBucket())

    def _run_transition_in_once(self) -> None:
        context = self._context
        if context is None or context.has_run_in or not self._running:
            return

        context.in_cleanups = []
        version = context.version
        for index, hook in enumerate(list(context.in_hooks)):
            result = hook()
            if self._context is not context:
                # The hook navigated away; nothing left to attach its cleanup to
                if callable(result):
                    safe_invoke_cleanup(result)
                return
            if callable(result):
                context.in_cleanups.append(result)
            else:
                self._keep_pending(
                    track_async_cleanup(
                        result, "transition_in", index, partial(self._settle_in_cleanup, version)
                    )
                )
        context.has_run_in = True

    def _keep_pending(self, future: Optional["asyncio.Future[Any]"]) -> None:
        if future is None:
            return
        self._pending_hooks.add(future)
        future.add_done_callback(self._pending_hooks.discard)

    def _settle_in_cleanup(self, version: int, cleanup: CleanupFn) -> None:
        if self._context is not None and self._context.version == version:
            self._context.in_cleanups.append(cleanup)
        else:
            logger.debug(f"Entry version {version} already exited, running its cleanup now")
            safe_invoke_cleanup(cleanup)

    def _settle_out_cleanup(self, bucket: CleanupBucket, cleanup: CleanupFn) -> None:
        if bucket.executed:
            safe_invoke_cleanup(cleanup)
        else:
            bucket.append(cleanup)

    def _subscribe_store(self, node: StepInstance, version: int) -> Callable[[], None]:
        if node.store is None:
            return _noop
        return node.store.subscribe(lambda state, previous: self._request_rebuild(version))

    def _request_rebuild(self, version: int) -> None:
        if not self._running:
            return
        self._pending_rebuild = version
        if self._depth == 0:
            self._flush_rebuilds()

    def _flush_rebuilds(self) -> None:
        if self._flushing:
            return
        self._flushing = True
        try:
            while self._pending_rebuild is not None:
                version, self._pending_rebuild = self._pending_rebuild, None
                context = self._context
                if self._running and context is not None and context.version == version:
                    self.rebuild_current()
        finally:
            self._flushing = False

    @contextmanager
    def _operation(self) -> Iterator[None]:
        self._depth += 1
        try:
            yield
        finally:
            self._depth -= 1
            if self._depth == 0 and self._pending_rebuild is not None:
                self._flush_rebuilds()

    def _is_registered(self, node: StepInstance) -> bool:
        return self._nodes.get(node.id) is node

    def _find_edge(self, from_node: StepInstance, to_node: StepInstance) -> Optional[Edge]:
        for edge in self._edges:
            if edge.from_node is from_node and edge.to_node is to_node:
                return edge
        return None

    def _can_go_back(self, node: StepInstance) -> bool:
        if not self._history:
            return False
        connecting = self._find_edge(self._history[-1].node, node)
        return connecting is None or not connecting.unidirectional

    def _status(
        self, node: StepInstance, status: TransitionStatus, api: Any, can_go_back: bool
    ) -> CurrentStepStatus:
        return CurrentStepStatus(
            status=status,
            kind=node.kind,
            name=node.name,
            id=node.id,
            state=api,
            instance=node,
            can_go_back=can_go_back,
        )


class WorkflowInternals:
    """Privileged view for trusted collaborators (persistence, inspectors).

    Exposes the raw collections and engine primitives; restoring through
    ``transition_into`` bypasses edge validation.
    """

    def __init__(self, workflow: Workflow) -> None:
        self._workflow = workflow

    @property
    def nodes(self) -> Dict[str, StepInstance]:
        return self._workflow._nodes

    @property
    def edges(self) -> List[Edge]:
        return self._workflow._edges

    @property
    def history(self) -> List[HistoryEntry]:
        return self._workflow._history

    @property
    def step_inventory(self) -> Dict[str, StepDefinition]:
        return self._workflow._step_inventory

    def get_current_node(self) -> Optional[StepInstance]:
        current = self._workflow._current_step
        return current.instance if current is not None else None

    def get_context(self) -> Optional[WorkflowContext]:
        return self._workflow._context

    def run_exit_sequence(self) -> CleanupBucket:
        return self._workflow.run_exit_sequence()

    def transition_into(
        self, node: StepInstance, input_value: Any, is_back: bool, back_cleanups: List[CleanupFn]
    ) -> None:
        self._workflow.transition_into(node, input_value, is_back, back_cleanups)

    def set_current_step(self, current_step: CurrentStepStatus) -> None:
        self._workflow.set_current_step(current_step)

    def stop(self) -> None:
        """Forget the active entry and current step without running anything."""
        self._workflow._context = None
        self._workflow._current_step = None

    @property
    def pending_hooks(self) -> Set["asyncio.Future[Any]"]:
        return self._workflow._pending_hooks

    def is_running(self) -> bool:
        return self._workflow._running

    def set_running(self, running: bool) -> None:
        self._workflow._running = running


def workflow(inventory: Sequence[StepDefinition]) -> Workflow:
    """Create a workflow hosting the given step definitions."""
    return Workflow(inventory)
