"""
Pydantic models for Lysoria game state.

One GameState per campaign. Python code uses snake_case field names; the
save file uses the camelCase keys the game has always written, via aliases.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


# -----------------------------------------------------------------------------
# Enums
# -----------------------------------------------------------------------------

class StoryArc(str, Enum):
    """Five-stage dramatic structure a chapter belongs to."""
    INTRODUCTION = "introduction"      # Setting, characters, first conflict
    RISING_ACTION = "rising-action"    # Complications, higher stakes
    CLIMAX = "climax"                  # The major confrontation
    FALLING_ACTION = "falling-action"  # Consequences play out
    RESOLUTION = "resolution"          # Closure, hints of what comes next


class StoryPace(str, Enum):
    """Per-campaign pacing. Chosen once when the campaign starts."""
    FAST = "FAST"
    MEDIUM = "MEDIUM"
    SLOW = "SLOW"

    @property
    def multiplier(self) -> float:
        return STORY_PACE_OPTIONS[self]["multiplier"]


class Relationship(str, Enum):
    FRIENDLY = "friendly"
    NEUTRAL = "neutral"
    HOSTILE = "hostile"


class Role(str, Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


STORY_PACE_OPTIONS: dict[StoryPace, dict] = {
    StoryPace.FAST: {
        "name": "Fast",
        "multiplier": 0.5,
        "description": "Rapid story progression with fewer exchanges required",
    },
    StoryPace.MEDIUM: {
        "name": "Medium",
        "multiplier": 1.0,
        "description": "Standard pacing with balanced narrative development",
    },
    StoryPace.SLOW: {
        "name": "Detailed",
        "multiplier": 1.5,
        "description": "Extended pacing with more thorough story development",
    },
}


# -----------------------------------------------------------------------------
# Constants
# -----------------------------------------------------------------------------

DEFAULT_MAX_HISTORY_ITEMS = 50
SIGNATURE_LENGTH = 100  # Prefix used to spot repeated history entries

DEFAULT_CHAPTER_TITLE = "Chapter 1: The Beginning"
DEFAULT_CHAPTER_SUMMARY = "Your adventure begins"
DEFAULT_PLOT_SUMMARY = (
    "Your journey begins in the ancient kingdom of Lysoria. "
    "Rumors of a dark power are stirring..."
)

# Narrative entries that mirror a player's choice start with this prefix
PLAYER_CHOICE_PREFIX = "Player choice:"
# Narrative entries that record a fight contain this marker (any case)
COMBAT_MARKER = "Combat encounter:"

IMPORTANT_CHARACTER_THRESHOLD = 6   # Listed by important_characters()
CHAPTER_CHARACTER_THRESHOLD = 7     # Also tracked on the current chapter


def clamp_level(value: int) -> int:
    """Keep a 1-10 rating inside its range."""
    return max(1, min(10, value))


def is_combat_entry(entry: str) -> bool:
    return COMBAT_MARKER.lower() in entry.lower()


def is_player_choice(entry: str) -> bool:
    return entry.startswith(PLAYER_CHOICE_PREFIX)


# -----------------------------------------------------------------------------
# Core Models
# -----------------------------------------------------------------------------

class LysoriaModel(BaseModel):
    """Base model: snake_case in Python, camelCase on disk."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ConversationMessage(LysoriaModel):
    """One message in the running conversation with the narrator."""
    role: Role
    content: str = ""


class NPCProfile(LysoriaModel):
    """Someone the player has met. Keyed by name on GameState.characters."""
    description: str = ""
    relationship: Relationship = Relationship.NEUTRAL
    last_seen: str = ""
    importance: int = Field(default=5, ge=1, le=10)


class CharacterTrait(LysoriaModel):
    """A trait the player character has demonstrated through choices."""
    name: str
    level: int = Field(default=5, ge=1, le=10)
    description: str = ""


class Chapter(LysoriaModel):
    """
    A bounded slice of the story.

    The arc is frozen: a chapter never changes arc in place. Moving the
    story forward closes this chapter and opens a new one (see
    systems.arcs.ArcEngine.advance).
    """
    title: str = DEFAULT_CHAPTER_TITLE
    summary: str = DEFAULT_CHAPTER_SUMMARY
    arc: StoryArc = Field(default=StoryArc.INTRODUCTION, frozen=True)
    pending_objectives: list[str] = Field(default_factory=list)
    completed_objectives: list[str] = Field(default_factory=list)  # Append-only
    characters: list[str] = Field(default_factory=list)
    locations: list[str] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)  # lastIntent, lastTone, ...

    @field_validator("arc", mode="before")
    @classmethod
    def _unknown_arc_is_introduction(cls, value):
        if isinstance(value, StoryArc):
            return value
        try:
            return StoryArc(value)
        except ValueError:
            return StoryArc.INTRODUCTION

    @property
    def total_objectives(self) -> int:
        return len(self.pending_objectives) + len(self.completed_objectives)


# -----------------------------------------------------------------------------
# History deduplication
# -----------------------------------------------------------------------------

def narrative_signature(entry: str) -> str:
    return entry[:SIGNATURE_LENGTH]


def conversation_signature(message: ConversationMessage) -> str:
    return f"{message.role.value}:{(message.content or '')[:SIGNATURE_LENGTH]}"


def dedupe_narrative(entries: list[str]) -> list[str]:
    """Drop entries whose signature was already seen, keeping first occurrences."""
    seen: set[str] = set()
    result = []
    for entry in entries:
        signature = narrative_signature(entry)
        if signature in seen:
            continue
        seen.add(signature)
        result.append(entry)
    return result


def dedupe_conversation(messages: list[ConversationMessage]) -> list[ConversationMessage]:
    """Same as dedupe_narrative, keyed on role plus content prefix."""
    seen: set[str] = set()
    result = []
    for message in messages:
        signature = conversation_signature(message)
        if signature in seen:
            continue
        seen.add(signature)
        result.append(message)
    return result


# -----------------------------------------------------------------------------
# Game State
# -----------------------------------------------------------------------------

class GameState(LysoriaModel):
    """
    Complete progress of one campaign.

    This is the model that gets wrapped in the save envelope. Mutations go
    through GameStateManager, which persists after each one; the methods here
    only touch memory.
    """
    theme: str | None = None
    narrative_history: list[str] = Field(default_factory=list)
    conversation_history: list[ConversationMessage] = Field(default_factory=list)
    choices: list[str] = Field(default_factory=list)

    # Legacy coarse progress, independent of the arc machine
    plot_stage: int = Field(default=1, ge=1)
    plot_summary: str = DEFAULT_PLOT_SUMMARY

    current_chapter: Chapter = Field(default_factory=Chapter)
    chapters: list[Chapter] = Field(default_factory=list)  # Closed chapters, oldest first

    characters: dict[str, NPCProfile] = Field(default_factory=dict)
    character_traits: list[CharacterTrait] = Field(default_factory=list)
    themes: set[str] = Field(default_factory=set)

    max_history_items: int = Field(default=DEFAULT_MAX_HISTORY_ITEMS, ge=1)
    story_pace: StoryPace = StoryPace.MEDIUM

    @field_validator("current_chapter", mode="before")
    @classmethod
    def _missing_chapter_starts_fresh(cls, value):
        return Chapter() if value is None else value

    def is_empty(self) -> bool:
        """True for a state with no recorded progress at all."""
        return (
            not self.narrative_history
            and not self.conversation_history
            and not self.choices
            and self.plot_stage <= 1
        )

    # -------------------------------------------------------------------------
    # Histories
    # -------------------------------------------------------------------------

    def _trim(self, entries: list) -> None:
        while len(entries) > self.max_history_items:
            entries.pop(0)

    def add_narrative(self, narrative: str, combat: bool = False) -> bool:
        """
        Append a story entry unless an entry with the same signature exists.

        Args:
            narrative: Story text
            combat: Mark the entry as a combat encounter

        Returns:
            True if the entry was added
        """
        if combat and not is_combat_entry(narrative):
            narrative = f"{COMBAT_MARKER} {narrative}"

        signature = narrative_signature(narrative)
        if any(narrative_signature(e) == signature for e in self.narrative_history):
            return False

        self.narrative_history.append(narrative)
        self._trim(self.narrative_history)
        return True

    def add_conversation(self, message: ConversationMessage) -> bool:
        """Append a conversation message unless it duplicates an earlier one."""
        signature = conversation_signature(message)
        if any(conversation_signature(m) == signature for m in self.conversation_history):
            return False

        self.conversation_history.append(message)
        self._trim(self.conversation_history)
        return True

    def dedupe_histories(self) -> int:
        """Remove repeated history entries in place. Returns how many were dropped."""
        before = len(self.narrative_history) + len(self.conversation_history)
        self.narrative_history = dedupe_narrative(self.narrative_history)
        self.conversation_history = dedupe_conversation(self.conversation_history)
        return before - len(self.narrative_history) - len(self.conversation_history)

    def add_choice(self, choice: str) -> None:
        self.choices.append(choice)

    def summarize_history(self, count: int = 3) -> str:
        """Last few narrative entries joined for a short recap."""
        return "\n".join(self.narrative_history[-count:])

    # -------------------------------------------------------------------------
    # Plot & Chapters
    # -------------------------------------------------------------------------

    def update_plot(self, stage: int, summary: str) -> None:
        self.plot_stage = max(1, stage)
        self.plot_summary = summary

    def begin_new_chapter(self, title: str, summary: str, arc: StoryArc) -> Chapter:
        """Close the current chapter and open a fresh one."""
        self.chapters.append(self.current_chapter)
        self.current_chapter = Chapter(title=title, summary=summary, arc=StoryArc(arc))
        return self.current_chapter

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
        """
        Merge the given fields into the named character, creating it if new.

        Characters above the chapter threshold are also listed on the
        current chapter for quick filtering.
        """
        profile = self.characters.get(name) or NPCProfile()

        if description is not None:
            profile.description = description
        if relationship is not None:
            profile.relationship = Relationship(relationship)
        if last_seen is not None:
            profile.last_seen = last_seen
        if importance is not None:
            profile.importance = clamp_level(importance)

        self.characters[name] = profile

        if (
            profile.importance > CHAPTER_CHARACTER_THRESHOLD
            and name not in self.current_chapter.characters
        ):
            self.current_chapter.characters.append(name)

        return profile

    def important_characters(self) -> list[dict]:
        """Characters worth mentioning to the narrator."""
        return [
            {
                "name": name,
                "relationship": profile.relationship.value,
                "last_seen": profile.last_seen,
            }
            for name, profile in self.characters.items()
            if profile.importance > IMPORTANT_CHARACTER_THRESHOLD
        ]

    def update_character_trait(self, name: str, delta: int) -> CharacterTrait:
        """Shift a trait's level by delta, creating the trait if needed."""
        for trait in self.character_traits:
            if trait.name.lower() == name.lower():
                trait.level = clamp_level(trait.level + delta)
                return trait

        trait = CharacterTrait(
            name=name,
            level=clamp_level(5 + delta),
            description=f"Your character has demonstrated {name}",
        )
        self.character_traits.append(trait)
        return trait

    def add_theme(self, theme: str) -> bool:
        if theme in self.themes:
            return False
        self.themes.add(theme)
        return True
