"""
Story arc engine for Lysoria.

Chapters move through a five-stage dramatic structure and wrap around:
introduction -> rising-action -> climax -> falling-action -> resolution
-> introduction. The engine decides when a chapter is done, opens the next
one, and produces the arc guidance the narrative client embeds in prompts.
"""

from __future__ import annotations

import re
from collections import Counter
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from ..state.event_bus import EventType
from ..state.schema import (
    PLAYER_CHOICE_PREFIX,
    Chapter,
    ConversationMessage,
    GameState,
    Role,
    StoryArc,
    is_player_choice,
)
from .objectives import MAX_PENDING_OBJECTIVES, scaled_requirements

if TYPE_CHECKING:
    from ..state.manager import GameStateManager


ARC_ORDER: list[StoryArc] = [
    StoryArc.INTRODUCTION,
    StoryArc.RISING_ACTION,
    StoryArc.CLIMAX,
    StoryArc.FALLING_ACTION,
    StoryArc.RESOLUTION,
]

ADVANCE_RATIO = 0.75   # Completed share of objectives that ends a chapter
LOOP_WINDOW = 5        # Recent narrative entries inspected for loops
LOOP_THRESHOLD = 3     # Same choice this many times in the window = loop

CHAPTER_TITLES: dict[StoryArc, str] = {
    StoryArc.INTRODUCTION: "The Beginning",
    StoryArc.RISING_ACTION: "The Challenge Grows",
    StoryArc.CLIMAX: "The Moment of Truth",
    StoryArc.FALLING_ACTION: "The Aftermath",
    StoryArc.RESOLUTION: "The Conclusion",
}
DEFAULT_CHAPTER_TITLE = "A New Chapter"

ARC_GUIDELINES: dict[StoryArc, str] = {
    StoryArc.INTRODUCTION: "Establish setting, introduce key characters, and present initial conflict",
    StoryArc.RISING_ACTION: "Escalate challenges, introduce complications, deepen character relationships",
    StoryArc.CLIMAX: "Build toward major confrontation, maximize tension, create high stakes",
    StoryArc.FALLING_ACTION: "Show consequences of climax, begin resolving conflicts",
    StoryArc.RESOLUTION: "Provide closure to story arcs, hint at future adventures",
}
DEFAULT_ARC_GUIDELINE = "Continue developing the story with meaningful choices"

TRANSITION_GUIDANCE: dict[tuple[StoryArc, StoryArc], str] = {
    (StoryArc.INTRODUCTION, StoryArc.RISING_ACTION): (
        "Build upon established elements by introducing complications. "
        "Increase stakes for the character and deepen NPC relationships. "
        "Create roadblocks toward the main objectives."
    ),
    (StoryArc.RISING_ACTION, StoryArc.CLIMAX): (
        "Bring the central conflict to a head. Gather the threads introduced so far "
        "and force the character toward a decisive confrontation."
    ),
    (StoryArc.CLIMAX, StoryArc.FALLING_ACTION): (
        "Let the dust settle after the confrontation. Show what the character's "
        "choices cost and who was changed by them."
    ),
    (StoryArc.FALLING_ACTION, StoryArc.RESOLUTION): (
        "Tie up the remaining plot threads. Give allies and rivals a final moment "
        "and bring the main objectives to a close."
    ),
    (StoryArc.RESOLUTION, StoryArc.INTRODUCTION): (
        "A new tale begins in a world shaped by the last one. Introduce a fresh "
        "threat or mystery while honoring what the character has already done."
    ),
}
DEFAULT_TRANSITION_GUIDANCE = (
    "Continue the story naturally from where it left off, keeping "
    "established characters and consequences consistent."
)

_CHAPTER_NUMBER = re.compile(r"Chapter (\d+):")
_LOCATION = re.compile(r"\b(?:in|at|to) (?:the |a |an )?([A-Z][a-zA-Z]+(?: [A-Z][a-zA-Z]+)*)")
_SENTENCE_START_NAME = re.compile(r"(?:^|[.!?]\s+)([A-Z][a-zA-Z]+)")
_NOT_NAMES = {"The", "A", "An", "You", "Your", "It", "They", "He", "She", "We", "I", "As", "In", "At"}


@dataclass
class ProgressionResult:
    """Outcome of one chapter progression check."""
    advanced: bool = False
    previous_arc: StoryArc | None = None
    new_arc: StoryArc | None = None
    chapter_title: str = ""
    missing_reasons: list[str] = field(default_factory=list)


# -----------------------------------------------------------------------------
# State machine
# -----------------------------------------------------------------------------


def next_arc(current: StoryArc | str) -> StoryArc:
    """Arc that follows current. Unknown input restarts at introduction."""
    try:
        arc = StoryArc(current)
    except ValueError:
        return StoryArc.INTRODUCTION
    return ARC_ORDER[(ARC_ORDER.index(arc) + 1) % len(ARC_ORDER)]


def should_advance(chapter: Chapter) -> bool:
    """True when at least 75% of the chapter's objectives are complete."""
    total = chapter.total_objectives
    if total == 0:
        return False
    return len(chapter.completed_objectives) / total >= ADVANCE_RATIO


def chapter_title(arc: StoryArc | str) -> str:
    try:
        return CHAPTER_TITLES[StoryArc(arc)]
    except ValueError:
        return DEFAULT_CHAPTER_TITLE


def arc_guidelines(arc: StoryArc | str) -> str:
    try:
        return ARC_GUIDELINES[StoryArc(arc)]
    except ValueError:
        return DEFAULT_ARC_GUIDELINE


def transition_guidance(previous_arc: StoryArc | str, new_arc: StoryArc | str) -> str:
    """Narrative instructions for moving from one arc to another."""
    try:
        key = (StoryArc(previous_arc), StoryArc(new_arc))
    except ValueError:
        return DEFAULT_TRANSITION_GUIDANCE
    return TRANSITION_GUIDANCE.get(key, DEFAULT_TRANSITION_GUIDANCE)


def chapter_number(title: str) -> int:
    """Number from a 'Chapter N: ...' title, or 0."""
    match = _CHAPTER_NUMBER.search(title)
    return int(match.group(1)) if match else 0


def advance(state: GameState) -> Chapter:
    """
    Close the current chapter and open the next arc's chapter.

    The closed chapter is archived on state.chapters. The new one starts
    with no objectives, characters or locations.
    """
    previous = state.current_chapter
    new_arc = next_arc(previous.arc)
    number = chapter_number(previous.title) + 1

    return state.begin_new_chapter(
        title=f"Chapter {number}: {chapter_title(new_arc)}",
        summary=transition_guidance(previous.arc, new_arc),
        arc=new_arc,
    )


# -----------------------------------------------------------------------------
# Narrative helpers
# -----------------------------------------------------------------------------


def _normalize_choice(entry: str) -> str:
    text = entry[len(PLAYER_CHOICE_PREFIX):] if is_player_choice(entry) else entry
    return " ".join(text.split()).lower()


def is_repeating(state: GameState) -> bool:
    """
    Detect the player circling the same choice.

    True when any normalized choice appears LOOP_THRESHOLD or more times in
    the last LOOP_WINDOW narrative entries. Read-only.
    """
    recent = state.narrative_history[-LOOP_WINDOW:]
    counts = Counter(_normalize_choice(e) for e in recent if is_player_choice(e))
    return any(count >= LOOP_THRESHOLD for count in counts.values())


def arc_progress(state: GameState) -> int:
    """Percentage of the current arc's narrative requirement reached."""
    min_narrative, _ = scaled_requirements(state)
    if min_narrative <= 0:
        return 100
    return min(100, round(len(state.narrative_history) / min_narrative * 100))


def summarize_recent_events(state: GameState) -> str:
    """Short digest of recent story for the narrative client's prompt."""
    recent = state.narrative_history[-7:]
    story = [e for e in recent if not is_player_choice(e)][-4:]

    if not story:
        return "No significant events have occurred yet."

    content = " ".join(story)
    locations = list(dict.fromkeys(_LOCATION.findall(content)))
    names = [
        name for name in dict.fromkeys(_SENTENCE_START_NAME.findall(content))
        if name not in _NOT_NAMES
    ]

    lines = [f"Recent events: {content}"]
    if locations:
        lines.append(f"Key locations: {', '.join(locations)}")
    if names:
        lines.append(f"Key characters: {', '.join(names)}")

    completed = state.current_chapter.completed_objectives
    if completed:
        lines.append(f"Recent achievements: {', '.join(completed[-2:])}")

    return "\n".join(lines)


def current_arc_guidance(state: GameState) -> str:
    """Instructions for the narrative client based on arc and progress."""
    chapter = state.current_chapter
    progress = arc_progress(state)

    lines = [
        "Maintain narrative consistency with previous exchanges.",
        "Remember player choices and refer to them when relevant.",
        f"Follow the current arc guidelines: {arc_guidelines(chapter.arc)}",
        f"Current arc progress: {progress}%",
    ]

    if is_repeating(state):
        lines += [
            "IMPORTANT: Introduce a new element or character to break the current loop.",
            "Change the setting or circumstances to create new options.",
            "ENSURE that it still narratively connects to the current story.",
        ]

    pending = chapter.pending_objectives
    if pending:
        ratio = len(chapter.completed_objectives) / chapter.total_objectives
        if ratio < 0.3 or len(pending) > MAX_PENDING_OBJECTIVES:
            lines += [
                "IMPORTANT: Focus on creating opportunities to complete objectives.",
                f"Current pending objectives: {', '.join(pending)}",
            ]

    if chapter.arc == StoryArc.CLIMAX and progress > 50:
        lines += [
            "Begin building toward the story's climactic moment.",
            "Raise the stakes and intensify the central conflict.",
        ]
    elif chapter.arc == StoryArc.RESOLUTION and progress > 70:
        lines.append("Begin wrapping up remaining plot threads and provide closure.")

    return "\n".join(lines)


# -----------------------------------------------------------------------------
# Manager-facing system
# -----------------------------------------------------------------------------


class ArcEngine:
    """
    Chapter progression on the manager's live state.

    Requires a GameStateManager for state access and persistence.
    """

    def __init__(self, manager: "GameStateManager"):
        self.manager = manager

    @property
    def _state(self) -> GameState:
        return self.manager.state

    def should_advance(self) -> bool:
        return should_advance(self._state.current_chapter)

    def advance(self) -> Chapter:
        """Move to the next arc unconditionally and persist."""
        previous_arc = self._state.current_chapter.arc
        chapter = advance(self._state)
        self.manager.events.emit(
            EventType.CHAPTER_STARTED,
            title=chapter.title,
            previous_arc=previous_arc.value,
            arc=chapter.arc.value,
        )
        self.manager.save()
        return chapter

    def check_progression(self) -> ProgressionResult:
        """
        Advance the chapter if its objectives are done and the arc allows it.

        When objectives are done but arc requirements are not, a system
        message is added to the conversation so the narrator can steer the
        story toward what is missing.
        """
        if not self.should_advance():
            return ProgressionResult()

        check = self.manager.objectives.meets_arc_requirements()
        previous_arc = self._state.current_chapter.arc

        if check.can_progress:
            chapter = self.advance()
            return ProgressionResult(
                advanced=True,
                previous_arc=previous_arc,
                new_arc=chapter.arc,
                chapter_title=chapter.title,
            )

        self._state.add_conversation(ConversationMessage(
            role=Role.SYSTEM,
            content=(
                "The story cannot advance to the next chapter yet due to: "
                f"{', '.join(check.missing_reasons)}. Provide narrative content "
                "that helps address these requirements."
            ),
        ))
        self.manager.events.emit(
            EventType.PROGRESSION_BLOCKED,
            arc=previous_arc.value,
            reasons=list(check.missing_reasons),
        )
        self.manager.save()
        return ProgressionResult(
            previous_arc=previous_arc,
            missing_reasons=list(check.missing_reasons),
        )

    def is_repeating(self) -> bool:
        return is_repeating(self._state)

    def guidance(self) -> str:
        return current_arc_guidance(self._state)

    def summary(self) -> str:
        return summarize_recent_events(self._state)
