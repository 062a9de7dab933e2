"""
Game state lifecycle and the mutation API the rest of the game uses.

GameStateManager holds the one live GameState. Every mutation updates memory
and then persists through the store. Persistence failures are logged and the
game keeps running on the in-memory state.
"""

import logging
from pathlib import Path

from .event_bus import EventBus, EventType, get_event_bus
from .schema import (
    PLAYER_CHOICE_PREFIX,
    STORY_PACE_OPTIONS,
    Chapter,
    CharacterTrait,
    ConversationMessage,
    DEFAULT_MAX_HISTORY_ITEMS,
    GameState,
    NPCProfile,
    Relationship,
    Role,
    StoryArc,
    StoryPace,
)
from .store import GameStateStore, JsonGameStateStore, PersistenceError

logger = logging.getLogger(__name__)

PLOT_STAGE_TWO_CHOICES = 5
PLOT_STAGE_TWO_SUMMARY = (
    "New clues emerge slowly. Your challenges remain significant, but time "
    "lets you breathe and decide your path carefully."
)


class GameStateManager:
    """
    Owns the live game state and its persistence.

    Storage is delegated to a GameStateStore implementation:
    - JsonGameStateStore for production (file-based)
    - MemoryGameStateStore for testing (in-memory)

    Story systems hang off the manager and are created on first use:
    - objectives -> ObjectiveTracker
    - arcs -> ArcEngine
    """

    def __init__(
        self,
        store: GameStateStore | Path | str = "storage",
        max_history_items: int = DEFAULT_MAX_HISTORY_ITEMS,
        default_story_pace: StoryPace | str = StoryPace.MEDIUM,
        event_bus: EventBus | None = None,
        autoload: bool = True,
    ):
        """
        Initialize with a store.

        Args:
            store: GameStateStore instance, or directory for JsonGameStateStore
            max_history_items: History bound for fresh states
            default_story_pace: Pace for fresh states until the player picks one
            event_bus: Bus for state events (defaults to the global bus)
            autoload: Load the saved state immediately
        """
        if isinstance(store, (Path, str)):
            self.store = JsonGameStateStore(store)
        else:
            self.store = store

        self.max_history_items = max_history_items
        self.default_story_pace = StoryPace(default_story_pace)
        self.events = event_bus or get_event_bus()

        self.state: GameState = self.new_state()

        self._objective_tracker = None
        self._arc_engine = None

        if autoload:
            self.load()

    @property
    def objectives(self):
        """Get the objective tracker (lazy initialization)."""
        if self._objective_tracker is None:
            from ..systems.objectives import ObjectiveTracker
            self._objective_tracker = ObjectiveTracker(self)
        return self._objective_tracker

    @property
    def arcs(self):
        """Get the arc engine (lazy initialization)."""
        if self._arc_engine is None:
            from ..systems.arcs import ArcEngine
            self._arc_engine = ArcEngine(self)
        return self._arc_engine

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def new_state(self) -> GameState:
        """A fresh campaign: empty histories, plot stage 1, introduction chapter."""
        return GameState(
            max_history_items=self.max_history_items,
            story_pace=self.default_story_pace,
        )

    def load(self) -> GameState:
        """Load the saved state, or start fresh if there is none."""
        loaded = self.store.load()
        if loaded is not None:
            logger.info("Loaded game state (%s)", loaded.current_chapter.title)
            self.state = loaded
        else:
            logger.info("No usable save, starting a new game state")
            self.state = self.new_state()

        self.events.emit(EventType.STATE_LOADED, restored=loaded is not None)
        return self.state

    def save(self) -> bool:
        """
        Persist the live state.

        Returns True if written. False means the empty-state guard skipped
        the write or the store failed; failures are logged, not raised.
        """
        try:
            written = self.store.save(self.state)
        except PersistenceError as e:
            logger.error("Could not save game state: %s", e)
            self.events.emit(EventType.SAVE_FAILED, error=str(e))
            return False

        if written:
            self.events.emit(EventType.STATE_SAVED)
        return written

    def reset(self, confirm: bool = False) -> bool:
        """
        Replace the live state with a fresh campaign.

        Requires confirm=True. The fresh state is written over the old save
        and the backup is deleted, so the previous campaign cannot come back
        on the next load.
        """
        if not confirm:
            logger.warning("Reset prevented - confirmation required")
            return False

        self.state = self.new_state()
        logger.info("Game state reset to defaults (confirmed)")

        try:
            self.store.save(self.state, allow_empty=True)
            self.store.delete_backup()
        except (PersistenceError, OSError) as e:
            logger.error("Failed to persist reset or delete backup: %s", e)

        self.events.emit(EventType.STATE_RESET)
        return True

    # -------------------------------------------------------------------------
    # Histories
    # -------------------------------------------------------------------------

    def add_narrative(self, narrative: str, combat: bool = False) -> bool:
        """Add a story entry. combat=True flags it as a combat encounter."""
        added = self.state.add_narrative(narrative, combat=combat)
        if not added:
            logger.info("Prevented duplicate narrative entry")
        self.save()
        return added

    def add_conversation(self, role: Role | str, content: str) -> bool:
        """Add a conversation message from system, user or assistant."""
        added = self.state.add_conversation(
            ConversationMessage(role=Role(role), content=content)
        )
        if not added:
            logger.info("Prevented duplicate conversation entry")
        self.save()
        return added

    def add_choice(self, choice: str) -> None:
        self.state.add_choice(choice)
        self.save()

    def record_player_choice(self, choice: str) -> None:
        """
        Record a choice the player made this turn.

        The choice is kept in choices and mirrored into both histories so the
        narrator sees it, then persisted once.
        """
        text = f"{PLAYER_CHOICE_PREFIX} {choice}"
        self.state.add_choice(choice)
        self.state.add_conversation(ConversationMessage(role=Role.USER, content=text))
        self.state.add_narrative(text)
        self.state.dedupe_histories()
        self.save()

    def get_narrative_history(self) -> list[str]:
        return list(self.state.narrative_history)

    def get_conversation_history(self) -> list[ConversationMessage]:
        return [m.model_copy() for m in self.state.conversation_history]

    def get_choices(self) -> list[str]:
        return list(self.state.choices)

    def summarize_history(self) -> str:
        return self.state.summarize_history()

    # -------------------------------------------------------------------------
    # Plot
    # -------------------------------------------------------------------------

    def update_plot(self, stage: int, summary: str) -> None:
        self.state.update_plot(stage, summary)
        self.save()

    def update_plot_stage_if_needed(self) -> bool:
        """Move from plot stage 1 to 2 once the player has made enough choices."""
        if self.state.plot_stage == 1 and len(self.state.choices) >= PLOT_STAGE_TWO_CHOICES:
            self.update_plot(2, PLOT_STAGE_TWO_SUMMARY)
            return True
        return False

    def get_plot_stage(self) -> int:
        return self.state.plot_stage

    def get_plot_summary(self) -> str:
        return self.state.plot_summary

    # -------------------------------------------------------------------------
    # Chapters & Objectives
    # -------------------------------------------------------------------------

    def get_current_chapter(self) -> Chapter:
        return self.state.current_chapter.model_copy(deep=True)

    def get_chapters(self) -> list[Chapter]:
        return [c.model_copy(deep=True) for c in self.state.chapters]

    def begin_new_chapter(self, title: str, summary: str, arc: StoryArc | str) -> Chapter:
        """Archive the current chapter and start a new one."""
        chapter = self.state.begin_new_chapter(title, summary, StoryArc(arc))
        self.events.emit(EventType.CHAPTER_STARTED, title=title, arc=chapter.arc.value)
        self.save()
        return chapter

    def add_objective(self, objective: str) -> bool:
        return self.objectives.add(objective)

    def complete_objective(self, objective: str) -> bool:
        return self.objectives.complete(objective)

    def remove_objective(self, objective: str) -> bool:
        return self.objectives.remove(objective)

    def prune_objectives(self) -> list[str]:
        return self.objectives.prune()

    def check_chapter_progression(self):
        """Advance the chapter when objectives and arc requirements allow it."""
        return self.arcs.check_progression()

    def end_turn(self):
        """
        Bookkeeping after each narrative turn.

        Updates the legacy plot stage, prunes stale objectives and checks
        whether the chapter should advance. Returns the ProgressionResult.
        """
        self.update_plot_stage_if_needed()
        self.prune_objectives()
        return self.check_chapter_progression()

    # -------------------------------------------------------------------------
    # Characters, Traits, Themes
    # -------------------------------------------------------------------------

    def add_or_update_character(
        self,
        name: str,
        description: str | None = None,
        relationship: Relationship | str | None = None,
        last_seen: str | None = None,
        importance: int | None = None,
    ) -> NPCProfile:
        profile = self.state.add_or_update_character(
            name,
            description=description,
            relationship=relationship,
            last_seen=last_seen,
            importance=importance,
        )
        self.save()
        return profile

    def get_characters(self) -> dict[str, NPCProfile]:
        return {name: p.model_copy() for name, p in self.state.characters.items()}

    def get_important_characters(self) -> list[dict]:
        return self.state.important_characters()

    def update_character_trait(self, name: str, delta: int) -> CharacterTrait:
        trait = self.state.update_character_trait(name, delta)
        self.save()
        return trait

    def get_character_traits(self) -> list[CharacterTrait]:
        return [t.model_copy() for t in self.state.character_traits]

    def add_theme(self, theme: str) -> bool:
        added = self.state.add_theme(theme)
        self.save()
        return added

    def get_themes(self) -> list[str]:
        return sorted(self.state.themes)

    def set_theme(self, theme: str) -> None:
        """Set the campaign's overall theme (e.g. 'dark fantasy')."""
        self.state.theme = theme
        self.save()

    def get_theme(self) -> str | None:
        return self.state.theme

    # -------------------------------------------------------------------------
    # Pacing
    # -------------------------------------------------------------------------

    def set_story_pace(self, pace: StoryPace | str) -> bool:
        """
        Choose the campaign's pace.

        Only allowed before the story starts; afterwards the call is ignored
        and returns False.

        An empty state is never written, so the pace is held in memory and
        saved with the first recorded turn. A pace that must outlive the
        process before then belongs in the config's default_story_pace.
        """
        pace = StoryPace(pace)
        if not self.state.is_empty():
            logger.warning(
                "Story pace is fixed once the campaign has started (keeping %s)",
                self.state.story_pace.value,
            )
            return False

        self.state.story_pace = pace
        logger.info("Story pace updated to %s", STORY_PACE_OPTIONS[pace]["name"])
        self.save()
        return True

    def get_story_pace(self) -> StoryPace:
        return self.state.story_pace

    # -------------------------------------------------------------------------
    # Narrative client hooks
    # -------------------------------------------------------------------------

    def summarize_recent_events(self) -> str:
        return self.arcs.summary()

    def current_arc_guidance(self) -> str:
        return self.arcs.guidance()

    def is_repeating(self) -> bool:
        return self.arcs.is_repeating()


# Process-wide instance
_manager: GameStateManager | None = None


def get_manager(**kwargs) -> GameStateManager:
    """
    Get the process-wide manager, creating it on first call.

    Keyword arguments are passed to GameStateManager and only used when
    the instance is created.
    """
    global _manager
    if _manager is None:
        _manager = GameStateManager(**kwargs)
    return _manager


def reset_manager() -> None:
    """Forget the process-wide manager. Useful for testing."""
    global _manager
    _manager = None
