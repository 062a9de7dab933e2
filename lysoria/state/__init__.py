"""State management for Lysoria campaigns."""

from .schema import (
    GameState,
    Chapter,
    ConversationMessage,
    NPCProfile,
    CharacterTrait,
    StoryArc,
    StoryPace,
    Relationship,
    Role,
    STORY_PACE_OPTIONS,
)
from .manager import GameStateManager, get_manager, reset_manager
from .store import (
    GameStateStore,
    JsonGameStateStore,
    MemoryGameStateStore,
    PersistenceError,
    BackupError,
    SaveError,
)
from .event_bus import (
    EventBus,
    EventType,
    GameEvent,
    get_event_bus,
    reset_event_bus,
)

__all__ = [
    # Schema
    "GameState",
    "Chapter",
    "ConversationMessage",
    "NPCProfile",
    "CharacterTrait",
    "StoryArc",
    "StoryPace",
    "Relationship",
    "Role",
    "STORY_PACE_OPTIONS",
    # Manager
    "GameStateManager",
    "get_manager",
    "reset_manager",
    # Store
    "GameStateStore",
    "JsonGameStateStore",
    "MemoryGameStateStore",
    "PersistenceError",
    "BackupError",
    "SaveError",
    # Event Bus
    "EventBus",
    "EventType",
    "GameEvent",
    "get_event_bus",
    "reset_event_bus",
]
