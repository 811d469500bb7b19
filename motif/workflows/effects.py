"""Dependency-diffed effects, reconciled on every entry and rebuild."""

from dataclasses import dataclass
from typing import Any, List, Optional, Sequence, Tuple

from loguru import logger

from ..models.step import CleanupFn, EffectFn


@dataclass
class EffectDef:
    """An effect as registered by one build of a step body."""

    run: EffectFn
    deps: Optional[Sequence[Any]] = None


@dataclass
class EffectRecord:
    """An effect that has actually run, with what it left behind."""

    run: EffectFn
    deps: Optional[Tuple[Any, ...]]
    cleanup: Optional[CleanupFn] = None

    def dispose(self) -> None:
        if not callable(self.cleanup):
            return
        cleanup, self.cleanup = self.cleanup, None
        try:
            cleanup()
        except Exception as e:
            logger.error(f"Effect cleanup failed: {e}")


def deps_equal(previous: Optional[Tuple[Any, ...]], current: Optional[Tuple[Any, ...]]) -> bool:
    """Shallow comparison: same length and the same (or equal) value per index."""
    if previous is None or current is None:
        return False
    if len(previous) != len(current):
        return False
    return all(a is b or a == b for a, b in zip(previous, current))


def _run(definition: EffectDef, deps: Optional[Tuple[Any, ...]]) -> EffectRecord:
    cleanup = definition.run()
    return EffectRecord(run=definition.run, deps=deps, cleanup=cleanup if callable(cleanup) else None)


def process_effects(
    definitions: List[EffectDef], previous: Optional[List[EffectRecord]] = None
) -> List[EffectRecord]:
    """Reconcile freshly registered effects against the previous records.

    Effects are matched by registration position. A position whose deps are
    omitted always re-runs; equal deps (including an empty list) keep the prior
    record; changed deps clean up and re-run. Positions that disappeared are
    cleaned up.
    """
    previous = previous or []
    records: List[EffectRecord] = []

    for index, definition in enumerate(definitions):
        deps = tuple(definition.deps) if definition.deps is not None else None
        prior = previous[index] if index < len(previous) else None

        if prior is None:
            records.append(_run(definition, deps))
        elif deps_equal(prior.deps, deps):
            logger.debug(f"Effect #{index} skipped, dependencies unchanged")
            records.append(prior)
        else:
            prior.dispose()
            records.append(_run(definition, deps))

    for index in range(len(definitions), len(previous)):
        logger.debug(f"Effect #{index} removed")
        previous[index].dispose()

    return records


def dispose_effects(records: List[EffectRecord]) -> None:
    for record in records:
        record.dispose()
