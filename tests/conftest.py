"""
Pytest fixtures for Lysoria tests.

Provides in-memory stores, a private event bus and file stores on tmp_path
for isolated testing.
"""

import pytest
from pathlib import Path

# Add the repo root to path for imports
import sys
sys.path.insert(0, str(Path(__file__).parent.parent))

from lysoria.state import (
    EventBus,
    GameState,
    GameStateManager,
    JsonGameStateStore,
    MemoryGameStateStore,
    reset_event_bus,
    reset_manager,
)


@pytest.fixture(autouse=True)
def _fresh_globals():
    """Keep the process-wide bus and manager from leaking between tests."""
    reset_event_bus()
    reset_manager()
    yield
    reset_event_bus()
    reset_manager()


@pytest.fixture
def event_bus():
    """Private event bus so tests can inspect emitted events."""
    return EventBus()


@pytest.fixture
def memory_store():
    """In-memory game state store for testing."""
    return MemoryGameStateStore()


@pytest.fixture
def manager(memory_store, event_bus):
    """Game state manager with in-memory store."""
    return GameStateManager(memory_store, event_bus=event_bus)


@pytest.fixture
def json_store(tmp_path):
    """File store in a temp directory, with no retry delays."""
    return JsonGameStateStore(tmp_path / "storage", retry_delay=0)


@pytest.fixture
def state():
    """State with a little story in it."""
    s = GameState()
    s.add_narrative("You arrive in Eldermere as the bells ring.")
    s.add_narrative("Captain Voss asks for your help.")
    return s


def fill_narrative(state: GameState, count: int, prefix: str = "Entry") -> None:
    """Append count distinct narrative entries."""
    for i in range(count):
        state.add_narrative(f"{prefix} {i}")
