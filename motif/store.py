"""Isolated observable stores owned by step instances."""

from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from loguru import logger

State = Dict[str, Any]
Listener = Callable[[State, State], None]
PartialState = Union[Mapping[str, Any], Callable[[State], Mapping[str, Any]]]
SetState = Callable[..., None]
GetState = Callable[[], State]
StoreCreator = Callable[[SetState, GetState], Mapping[str, Any]]


class Store:
    """A small mutable state container that notifies listeners on change.

    The creator receives ``set_state`` and ``get_state`` and returns the initial
    state mapping. Values may be plain data or actions (callables) that call
    ``set_state`` themselves:

        def counter(set_state, get_state):
            return {
                "count": 0,
                "inc": lambda: set_state(lambda s: {"count": s["count"] + 1}),
            }
    """

    def __init__(self, creator: StoreCreator) -> None:
        self._listeners: List[Listener] = []
        self._state: State = {}
        self._state = dict(creator(self.set_state, self.get_state))

    def get_state(self) -> State:
        """Return the current state snapshot."""
        return self._state

    def set_state(self, partial: PartialState, replace: bool = False) -> None:
        """Merge (or replace) state and notify listeners when anything changed."""
        update = partial(self._state) if callable(partial) else partial
        if update is None:
            return

        previous = self._state
        next_state = dict(update) if replace else {**previous, **update}
        if next_state == previous:
            return

        self._state = next_state
        for listener in list(self._listeners):
            listener(self._state, previous)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a change listener and return its unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def data(self) -> State:
        """Return the JSON-friendly part of the state (actions stripped)."""
        return {key: value for key, value in self._state.items() if not callable(value)}


def create_store(creator: Optional[StoreCreator]) -> Optional[Store]:
    """Materialize a store from its creator, if one is declared."""
    if creator is None:
        return None
    store = Store(creator)
    logger.debug(f"Created store with keys: {sorted(store.get_state())}")
    return store
