"""Local test configuration for the motif workflow engine."""

from __future__ import annotations

import sys
from collections.abc import Generator
from pathlib import Path
from typing import Any, Callable, Dict, List

import pytest
from loguru import logger

# -- Path management ------------------------------------------------------
# The package lives at the repository root rather than under ``src/``. When
# pytest runs without an editable install the root is not on ``sys.path``, so
# add it before importing ``motif``.
SERVICE_ROOT = Path(__file__).resolve().parent.parent
if str(SERVICE_ROOT) not in sys.path:
    sys.path.insert(0, str(SERVICE_ROOT))

from motif.config import MotifSettings, get_settings
from motif.routers import workflows as workflow_router


@pytest.fixture
def test_settings(tmp_path: Path) -> MotifSettings:
    """Provide test-specific settings."""
    return MotifSettings(
        app_name="motif-test",
        logger_prefix="[test] ",
        state_path=tmp_path / "state.json",
    )


@pytest.fixture(autouse=True)
def reset_settings_cache() -> Generator[None, None, None]:
    """Keep ``get_settings`` from leaking environment between tests."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture(autouse=True)
def detach_router_workflow() -> Generator[None, None, None]:
    """The HTTP adapter holds a module-level workflow; start every test without one."""
    workflow_router.set_workflow(None)
    yield
    workflow_router.set_workflow(None)


@pytest.fixture
def log_messages() -> Generator[List[str], None, None]:
    """Capture loguru output as ``"LEVEL message"`` strings."""
    messages: List[str] = []
    handler_id = logger.add(
        lambda message: messages.append(
            f"{message.record['level'].name} {message.record['message']}"
        ),
        level="DEBUG",
    )
    try:
        yield messages
    finally:
        logger.remove(handler_id)


@pytest.fixture
def counter_store() -> Callable[[Callable[..., None], Callable[[], Dict[str, Any]]], Dict[str, Any]]:
    """Store creator with a ``count`` and an ``inc`` action."""

    def create(set_state: Callable[..., None], get_state: Callable[[], Dict[str, Any]]) -> Dict[str, Any]:
        return {
            "count": 0,
            "inc": lambda: set_state(lambda state: {"count": state["count"] + 1}),
        }

    return create
