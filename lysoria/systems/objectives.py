"""
Objective tracking for Lysoria.

Objectives are free-text goals on the current chapter. They start pending
and move (never copy) to completed. Stale pending objectives are pruned so
they do not pile up forever, and arc requirements decide whether the story
has developed enough to move to the next chapter.

Pure functions take a GameState; ObjectiveTracker wraps them for the
manager and persists after each change.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from ..state.event_bus import EventType
from ..state.schema import GameState, StoryArc, is_combat_entry

if TYPE_CHECKING:
    from ..state.manager import GameStateManager


MAX_PENDING_OBJECTIVES = 7        # Above this the narrator is told to focus
PRUNE_NARRATIVE_THRESHOLD = 15    # Narrative entries before pruning may start
MIN_OBJECTIVES_FOR_PRUNING = 5    # Pending count that must be exceeded
OBJECTIVE_RETENTION_RATE = 0.7    # Share kept when pruning, before pacing
MIN_RETAINED_OBJECTIVES = 3

# Base progression requirements per arc, scaled by story pace
ARC_REQUIREMENTS: dict[StoryArc, dict[str, int]] = {
    StoryArc.INTRODUCTION: {"min_narrative": 5, "min_objectives": 1},
    StoryArc.RISING_ACTION: {"min_narrative": 10, "min_objectives": 2},
    StoryArc.CLIMAX: {"min_narrative": 15, "min_objectives": 3},
    StoryArc.FALLING_ACTION: {"min_narrative": 20, "min_objectives": 4},
    StoryArc.RESOLUTION: {"min_narrative": 25, "min_objectives": 5},
}
DEFAULT_REQUIREMENTS = {"min_narrative": 10, "min_objectives": 2}

# Arcs that need a fight somewhere in the story before moving on
COMBAT_ARCS = (StoryArc.RISING_ACTION, StoryArc.CLIMAX)


@dataclass
class ArcRequirementCheck:
    """Outcome of meets_arc_requirements()."""
    can_progress: bool
    missing_reasons: list[str] = field(default_factory=list)
    min_narrative: int = 0
    min_objectives: int = 0


def pace_multiplier(state: GameState) -> float:
    return state.story_pace.multiplier


def scaled_requirements(state: GameState) -> tuple[int, int]:
    """(min narrative entries, min completed objectives) for the current arc."""
    base = ARC_REQUIREMENTS.get(state.current_chapter.arc, DEFAULT_REQUIREMENTS)
    multiplier = pace_multiplier(state)
    return (
        math.ceil(base["min_narrative"] * multiplier),
        math.ceil(base["min_objectives"] * multiplier),
    )


# -----------------------------------------------------------------------------
# Mutations
# -----------------------------------------------------------------------------


def add_objective(state: GameState, objective: str) -> bool:
    """
    Append a pending objective to the current chapter.

    Skips objectives the chapter already tracks, pending or completed.
    """
    chapter = state.current_chapter
    if objective in chapter.pending_objectives or objective in chapter.completed_objectives:
        return False
    chapter.pending_objectives.append(objective)
    return True


def complete_objective(state: GameState, objective: str) -> bool:
    """Move an exactly-matching pending objective to completed."""
    chapter = state.current_chapter
    if objective not in chapter.pending_objectives:
        return False
    chapter.pending_objectives.remove(objective)
    chapter.completed_objectives.append(objective)
    return True


def remove_objective(state: GameState, objective: str) -> bool:
    """Drop a pending objective without completing it."""
    chapter = state.current_chapter
    if objective not in chapter.pending_objectives:
        return False
    chapter.pending_objectives.remove(objective)
    return True


def is_known_objective(state: GameState, objective: str) -> bool:
    """Case-insensitive check across pending and completed objectives."""
    chapter = state.current_chapter
    wanted = objective.strip().lower()
    return any(
        existing.strip().lower() == wanted
        for existing in chapter.pending_objectives + chapter.completed_objectives
    )


def prune_objectives(state: GameState) -> list[str]:
    """
    Drop the oldest pending objectives once the story has moved past them.

    Only runs when there are more than MIN_OBJECTIVES_FOR_PRUNING pending
    objectives and the narrative is longer than the pace-scaled threshold.
    Keeps ceil(pending * retention / multiplier) objectives, never fewer
    than MIN_RETAINED_OBJECTIVES.

    Returns:
        The pruned objectives, oldest first
    """
    chapter = state.current_chapter
    pending_count = len(chapter.pending_objectives)
    multiplier = pace_multiplier(state)

    if pending_count <= MIN_OBJECTIVES_FOR_PRUNING:
        return []
    if len(state.narrative_history) <= PRUNE_NARRATIVE_THRESHOLD * multiplier:
        return []

    # round() keeps float noise like 4.0000000001 from bumping the ceiling
    keep = math.ceil(round(pending_count * OBJECTIVE_RETENTION_RATE / multiplier, 6))
    keep = max(MIN_RETAINED_OBJECTIVES, keep)
    if keep >= pending_count:
        return []

    drop = pending_count - keep
    pruned = chapter.pending_objectives[:drop]
    del chapter.pending_objectives[:drop]
    return pruned


# -----------------------------------------------------------------------------
# Progression checks
# -----------------------------------------------------------------------------


def meets_arc_requirements(state: GameState) -> ArcRequirementCheck:
    """
    Check whether the story has developed enough to leave the current arc.

    Requirements scale with story pace. Rising action and climax also need
    a combat encounter somewhere in the narrative, and resolution needs an
    earlier climax chapter.
    """
    chapter = state.current_chapter
    arc = chapter.arc
    min_narrative, min_objectives = scaled_requirements(state)
    reasons = []

    if arc in COMBAT_ARCS and not any(is_combat_entry(e) for e in state.narrative_history):
        reasons.append("combat encounter")

    narrative_count = len(state.narrative_history)
    if narrative_count < min_narrative:
        reasons.append(f"minimum narrative exchanges ({narrative_count}/{min_narrative})")

    completed = len(chapter.completed_objectives)
    if completed < min_objectives:
        reasons.append(f"completed objectives ({completed}/{min_objectives})")

    if arc == StoryArc.RESOLUTION and not any(c.arc == StoryArc.CLIMAX for c in state.chapters):
        reasons.append("climax chapter")

    return ArcRequirementCheck(
        can_progress=not reasons,
        missing_reasons=reasons,
        min_narrative=min_narrative,
        min_objectives=min_objectives,
    )


def progress_bar(completed: int, total: int, width: int = 10) -> str:
    """Text bar like '███████░░░' for completed/total."""
    if total <= 0:
        return "░" * width
    filled = min(width, math.floor(completed / total * width))
    return "█" * filled + "░" * (width - filled)


# -----------------------------------------------------------------------------
# Manager-facing system
# -----------------------------------------------------------------------------


class ObjectiveTracker:
    """
    Objective operations on the manager's live state.

    Every mutation persists through the manager.
    """

    def __init__(self, manager: "GameStateManager"):
        self.manager = manager

    @property
    def _state(self) -> GameState:
        return self.manager.state

    def add(self, objective: str) -> bool:
        """Add a pending objective to the current chapter."""
        added = add_objective(self._state, objective)
        if added:
            self.manager.events.emit(EventType.OBJECTIVE_ADDED, objective=objective)
        self.manager.save()
        return added

    def complete(self, objective: str) -> bool:
        """Complete a pending objective. No-op if it isn't pending."""
        completed = complete_objective(self._state, objective)
        if completed:
            self.manager.events.emit(EventType.OBJECTIVE_COMPLETED, objective=objective)
        self.manager.save()
        return completed

    def remove(self, objective: str) -> bool:
        removed = remove_objective(self._state, objective)
        self.manager.save()
        return removed

    def is_known(self, objective: str) -> bool:
        return is_known_objective(self._state, objective)

    def prune(self) -> list[str]:
        """Prune stale objectives; persists only if something was dropped."""
        pruned = prune_objectives(self._state)
        if pruned:
            self.manager.events.emit(EventType.OBJECTIVES_PRUNED, objectives=pruned)
            self.manager.save()
        return pruned

    def meets_arc_requirements(self) -> ArcRequirementCheck:
        return meets_arc_requirements(self._state)

    def progress(self) -> tuple[int, int]:
        """(completed, total) objectives on the current chapter."""
        chapter = self._state.current_chapter
        return len(chapter.completed_objectives), chapter.total_objectives

    def is_overloaded(self) -> bool:
        """True when more objectives are pending than the narrator should juggle."""
        return len(self._state.current_chapter.pending_objectives) > MAX_PENDING_OBJECTIVES
