"""Tests for game state models."""

import pytest
from pydantic import ValidationError

from lysoria.state.schema import (
    COMBAT_MARKER,
    DEFAULT_CHAPTER_TITLE,
    Chapter,
    ConversationMessage,
    GameState,
    Relationship,
    Role,
    StoryArc,
    StoryPace,
    dedupe_conversation,
    dedupe_narrative,
    is_combat_entry,
)


class TestHistories:
    """Test narrative and conversation history rules."""

    def test_duplicate_narrative_rejected(self):
        """Adding the same entry twice keeps one copy."""
        state = GameState()
        assert state.add_narrative("The gate opens.") is True
        assert state.add_narrative("The gate opens.") is False
        assert state.narrative_history == ["The gate opens."]

    def test_duplicate_detected_by_prefix(self):
        """Entries sharing the first 100 characters are duplicates."""
        state = GameState()
        state.add_narrative("x" * 100 + "a")
        assert state.add_narrative("x" * 100 + "b") is False
        assert len(state.narrative_history) == 1

    def test_history_evicts_oldest(self):
        """History beyond max_history_items drops the oldest entries."""
        state = GameState(max_history_items=3)
        for i in range(5):
            state.add_narrative(f"Entry {i}")
        assert state.narrative_history == ["Entry 2", "Entry 3", "Entry 4"]

    def test_conversation_duplicate_is_role_sensitive(self):
        """Same content from different roles is not a duplicate."""
        state = GameState()
        assert state.add_conversation(ConversationMessage(role=Role.USER, content="Hello"))
        assert state.add_conversation(ConversationMessage(role=Role.ASSISTANT, content="Hello"))
        assert not state.add_conversation(ConversationMessage(role=Role.USER, content="Hello"))
        assert len(state.conversation_history) == 2

    def test_combat_flag_adds_marker(self):
        """Combat entries carry the combat marker."""
        state = GameState()
        state.add_narrative("Bandits leap from the ridge.", combat=True)
        entry = state.narrative_history[0]
        assert entry == f"{COMBAT_MARKER} Bandits leap from the ridge."
        assert is_combat_entry(entry)

    def test_combat_marker_not_doubled(self):
        """Text that already has the marker (any case) is kept as is."""
        state = GameState()
        state.add_narrative("combat encounter: wolves circle you", combat=True)
        assert state.narrative_history == ["combat encounter: wolves circle you"]

    def test_dedupe_keeps_first_and_is_idempotent(self):
        """Dedup keeps first occurrences and a second pass changes nothing."""
        entries = ["a", "b", "a", "c", "b"]
        once = dedupe_narrative(entries)
        assert once == ["a", "b", "c"]
        assert dedupe_narrative(once) == once

    def test_dedupe_conversation(self):
        """Conversation dedup keys on role plus content."""
        messages = [
            ConversationMessage(role=Role.USER, content="Go north"),
            ConversationMessage(role=Role.USER, content="Go north"),
            ConversationMessage(role=Role.SYSTEM, content="Go north"),
        ]
        assert len(dedupe_conversation(messages)) == 2

    def test_dedupe_histories_reports_dropped(self):
        """dedupe_histories returns how many entries were removed."""
        state = GameState(narrative_history=["a", "a", "b"])
        assert state.dedupe_histories() == 1
        assert state.narrative_history == ["a", "b"]

    def test_summarize_history(self):
        """Summary is the last three narrative entries."""
        state = GameState()
        for i in range(5):
            state.add_narrative(f"Entry {i}")
        assert state.summarize_history() == "Entry 2\nEntry 3\nEntry 4"


class TestEmptyState:
    """Test the empty-state definition used by the save guard."""

    def test_default_state_is_empty(self):
        """A fresh state has no progress."""
        assert GameState().is_empty()

    def test_choice_makes_state_non_empty(self):
        """Any recorded choice counts as progress."""
        state = GameState()
        state.add_choice("Enter the tavern")
        assert not state.is_empty()

    def test_plot_stage_makes_state_non_empty(self):
        """A later plot stage counts as progress."""
        state = GameState(plot_stage=2)
        assert not state.is_empty()


class TestChapter:
    """Test Chapter model."""

    def test_defaults(self):
        """New chapters start in the introduction."""
        chapter = Chapter()
        assert chapter.title == DEFAULT_CHAPTER_TITLE
        assert chapter.arc == StoryArc.INTRODUCTION
        assert chapter.total_objectives == 0

    def test_arc_is_frozen(self):
        """A chapter's arc cannot be changed in place."""
        chapter = Chapter()
        with pytest.raises(ValidationError):
            chapter.arc = StoryArc.CLIMAX

    def test_unknown_arc_reads_as_introduction(self):
        """Unrecognized arc values fall back to introduction."""
        chapter = Chapter.model_validate({"arc": "epilogue"})
        assert chapter.arc == StoryArc.INTRODUCTION

    def test_begin_new_chapter_archives_current(self):
        """Starting a chapter moves the current one to the archive."""
        state = GameState()
        state.begin_new_chapter("Chapter 2: The Challenge Grows", "Trouble", StoryArc.RISING_ACTION)
        assert state.chapters[0].title == DEFAULT_CHAPTER_TITLE
        assert state.current_chapter.arc == StoryArc.RISING_ACTION


class TestCharacters:
    """Test NPC profiles and traits."""

    def test_important_character_joins_chapter(self):
        """Characters above importance 7 are listed on the chapter."""
        state = GameState()
        state.add_or_update_character("Aldric", importance=8)
        assert "Aldric" in state.current_chapter.characters

    def test_importance_clamped(self):
        """Importance is kept within 1-10."""
        state = GameState()
        assert state.add_or_update_character("Aldric", importance=15).importance == 10
        assert state.add_or_update_character("Mira", importance=-3).importance == 1

    def test_partial_update_merges(self):
        """Fields not given are left alone."""
        state = GameState()
        state.add_or_update_character("Voss", relationship="hostile", importance=7)
        profile = state.add_or_update_character("Voss", description="A scarred captain")
        assert profile.relationship == Relationship.HOSTILE
        assert profile.importance == 7
        assert profile.description == "A scarred captain"

    def test_important_characters_threshold(self):
        """Only importance above 6 is listed."""
        state = GameState()
        state.add_or_update_character("Voss", importance=7, last_seen="The docks")
        state.add_or_update_character("Peddler", importance=6)
        important = state.important_characters()
        assert [c["name"] for c in important] == ["Voss"]
        assert important[0]["last_seen"] == "The docks"
        assert important[0]["relationship"] == "neutral"

    def test_trait_created_at_five_plus_delta(self):
        """New traits start from level 5."""
        state = GameState()
        trait = state.update_character_trait("Courage", 2)
        assert trait.level == 7
        assert trait.description == "Your character has demonstrated Courage"

    def test_trait_match_is_case_insensitive_and_clamped(self):
        """Existing traits match by name in any case and stay within 1-10."""
        state = GameState()
        state.update_character_trait("Courage", 2)
        assert state.update_character_trait("courage", 10).level == 10
        assert len(state.character_traits) == 1
        assert state.update_character_trait("Cunning", -10).level == 1

    def test_add_theme(self):
        """Themes are a set."""
        state = GameState()
        assert state.add_theme("betrayal") is True
        assert state.add_theme("betrayal") is False


class TestSerializationNames:
    """Test on-disk field names."""

    def test_camel_case_aliases(self):
        """Dumped by alias, fields use camelCase keys."""
        data = GameState().model_dump(by_alias=True)
        for key in ("narrativeHistory", "conversationHistory", "plotStage",
                    "currentChapter", "maxHistoryItems", "storyPace"):
            assert key in data

    def test_populate_by_field_name(self):
        """Snake-case names work in Python code."""
        state = GameState(plot_stage=3, story_pace=StoryPace.SLOW)
        assert state.plot_stage == 3
        assert state.story_pace.multiplier == 1.5
