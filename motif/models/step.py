"""Step model: typed units of workflow logic and their instances."""

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Sequence, Union

from loguru import logger

from ..store import State, Store, StoreCreator, create_store
from .schema import Schema, as_schema

CleanupFn = Callable[[], Any]
HookResult = Union[None, CleanupFn, Awaitable[Optional[CleanupFn]]]
TransitionHook = Callable[[], HookResult]
EffectFn = Callable[[], Optional[CleanupFn]]
DependencyList = Sequence[Any]


@dataclass(frozen=True)
class StepContext:
    """Everything a step body sees for one build of one entry.

    ``config`` is only set when the step declares a config schema and ``store``
    only when it declares a store. The four callables are no-ops while the
    workflow is paused.
    """

    name: str
    input: Any
    config: Any
    store: Optional[State]
    transition_in: Callable[[TransitionHook], None]
    transition_out: Callable[[TransitionHook], None]
    effect: Callable[..., None]
    next: Callable[[Any], None]


BuildFn = Callable[[StepContext], Any]


class StepInstance:
    """A step definition instantiated (and optionally named) for a workflow graph.

    Instances compare by identity: two instances of the same kind and name are
    still distinct nodes.
    """

    def __init__(
        self,
        definition: "StepDefinition",
        name: str = "",
        config: Any = None,
        store: Optional[Store] = None,
    ) -> None:
        self.definition = definition
        self.kind = definition.kind
        self.name = name
        self.id = f"{self.kind}:{name}" if name else self.kind
        self.config = config
        self.store = store

    @property
    def input_schema(self) -> Optional[Schema]:
        return self.definition.input_schema

    @property
    def output_schema(self) -> Optional[Schema]:
        return self.definition.output_schema

    @property
    def config_schema(self) -> Optional[Schema]:
        return self.definition.config_schema

    def build(self, context: StepContext) -> Any:
        return self.definition.build(context)

    def __repr__(self) -> str:
        return f"StepInstance(id={self.id!r})"


class StepDefinition:
    """Defines a kind of step; calling it creates a StepInstance.

        Greeting = StepDefinition("Greeting", build, input_schema=str)
        hello = Greeting("hello")
        configured = Greeting("hi", {"loud": True})
    """

    def __init__(
        self,
        kind: str,
        build: BuildFn,
        input_schema: Any = None,
        output_schema: Any = None,
        config_schema: Any = None,
        create_store: Optional[StoreCreator] = None,
    ) -> None:
        if not kind:
            raise ValueError("Step kind cannot be empty")
        self.kind = kind
        self.build = build
        self.input_schema = as_schema(input_schema, f"input of '{kind}'")
        self.output_schema = as_schema(output_schema, f"output of '{kind}'")
        self.config_schema = as_schema(config_schema, f"config of '{kind}'")
        self.create_store = create_store

    def __call__(
        self, name_or_config: Any = None, config: Any = None, *, name: Optional[str] = None
    ) -> StepInstance:
        if name is None and isinstance(name_or_config, str):
            name = name_or_config
        elif config is None and not isinstance(name_or_config, str):
            config = name_or_config

        validated_config = self.config_schema.validate(config) if self.config_schema else None
        instance = StepInstance(
            self,
            name=name or "",
            config=validated_config,
            store=create_store(self.create_store),
        )
        logger.debug(f"Created step instance: {instance.id}")
        return instance

    def __repr__(self) -> str:
        return f"StepDefinition(kind={self.kind!r})"


def step(
    kind: str,
    *,
    input_schema: Any = None,
    output_schema: Any = None,
    config_schema: Any = None,
    create_store: Optional[StoreCreator] = None,
) -> Callable[[BuildFn], StepDefinition]:
    """Decorator turning a build function into a StepDefinition.

        @step("Counter", output_schema=int, create_store=counter_store)
        def Counter(ctx):
            return {"inc": ctx.store["inc"], "done": lambda: ctx.next(ctx.store["count"])}
    """

    def decorator(build: BuildFn) -> StepDefinition:
        return StepDefinition(
            kind,
            build,
            input_schema=input_schema,
            output_schema=output_schema,
            config_schema=config_schema,
            create_store=create_store,
        )

    return decorator
