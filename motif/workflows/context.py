"""Per-entry lifecycle bookkeeping and cleanup helpers."""

import asyncio
import inspect
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional

from loguru import logger

from ..models.step import CleanupFn, TransitionHook
from .effects import EffectRecord


def _noop() -> None:
    return None


class CleanupBucket(List[CleanupFn]):
    """Exit-hook cleanups deferred until the user backs into the entry.

    ``executed`` flips once the bucket has been drained by a back navigation;
    asynchronous cleanups resolving after that run immediately instead of
    being appended.
    """

    def __init__(self) -> None:
        super().__init__()
        self.executed = False


@dataclass
class WorkflowContext:
    """Bookkeeping for the single live entry of a workflow."""

    version: int
    current_input: Any = None
    has_run_in: bool = False
    in_hooks: List[TransitionHook] = field(default_factory=list)
    in_cleanups: List[CleanupFn] = field(default_factory=list)
    out_hooks: List[TransitionHook] = field(default_factory=list)
    effects: List[EffectRecord] = field(default_factory=list)
    store_unsub: Callable[[], None] = _noop


def safe_invoke_cleanup(cleanup: CleanupFn) -> None:
    """Run a cleanup, logging (not raising) whatever it throws."""
    try:
        cleanup()
    except Exception as e:
        logger.error(f"Cleanup {getattr(cleanup, '__name__', cleanup)!r} failed: {e}")


def run_out_cleanup_on_back(bucket: List[CleanupFn]) -> None:
    """Drain a deferred bucket when navigating back into its entry."""
    if isinstance(bucket, CleanupBucket):
        bucket.executed = True
    while bucket:
        safe_invoke_cleanup(bucket.pop(0))


def handle_async_error(error: BaseException, phase: str, index: int) -> None:
    logger.warning(f"Async {phase} hook #{index} failed: {error!r}")


def track_async_cleanup(
    result: Any,
    phase: str,
    index: int,
    on_cleanup: Callable[[CleanupFn], None],
) -> Optional["asyncio.Future[Any]"]:
    """Follow a pending hook result and hand its cleanup to ``on_cleanup``.

    Returns None when ``result`` is not awaitable, or when no event loop is
    running (the awaitable is closed and logged as a failed hook). Rejections
    are logged and otherwise ignored; resolutions that are not callable are
    dropped.
    """
    if not inspect.isawaitable(result):
        return None

    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        if inspect.iscoroutine(result):
            result.close()
        handle_async_error(RuntimeError("no running event loop"), phase, index)
        return None
    future = asyncio.ensure_future(result, loop=loop)

    def _done(fut: "asyncio.Future[Any]") -> None:
        if fut.cancelled():
            logger.warning(f"Async {phase} hook #{index} was cancelled")
            return
        error = fut.exception()
        if error is not None:
            handle_async_error(error, phase, index)
            return
        cleanup = fut.result()
        if callable(cleanup):
            on_cleanup(cleanup)

    future.add_done_callback(_done)
    return future
