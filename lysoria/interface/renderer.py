"""
Display and rendering helpers for the Lysoria CLI.

Handles theming, status displays and history output.
"""

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from ..state.event_bus import EventType, GameEvent
from ..state.schema import STORY_PACE_OPTIONS, Role, StoryArc, is_combat_entry, is_player_choice
from ..systems.objectives import progress_bar


# Shared console instance
console = Console()

# -----------------------------------------------------------------------------
# Theme: old parchment, candlelight, and the dark power stirring
# -----------------------------------------------------------------------------

THEME = {
    "primary": "gold3",            # chapter titles, headings
    "secondary": "wheat1",         # body values
    "warning": "dark_goldenrod",   # blocked progression, guards
    "danger": "dark_red",          # combat, failures
    "accent": "medium_purple",     # player choices
    "dim": "dim",                  # labels, background text
    "text": "grey85",              # standard body text
}

ARC_COLORS = {
    StoryArc.INTRODUCTION: "dark_sea_green",
    StoryArc.RISING_ACTION: "gold3",
    StoryArc.CLIMAX: "dark_red",
    StoryArc.FALLING_ACTION: "steel_blue",
    StoryArc.RESOLUTION: "medium_purple",
}

ROLE_STYLES = {
    Role.SYSTEM: THEME["warning"],
    Role.USER: THEME["accent"],
    Role.ASSISTANT: THEME["text"],
}


def show_status(manager):
    """Show the current chapter, objectives, pace and history sizes."""
    state = manager.state
    chapter = state.current_chapter
    arc_color = ARC_COLORS.get(chapter.arc, THEME["secondary"])

    table = Table(
        title=f"[bold {THEME['primary']}]{escape(chapter.title)}[/bold {THEME['primary']}]",
        show_header=False,
        box=None,
    )
    table.add_column("Key", style=THEME["dim"])
    table.add_column("Value", style=THEME["secondary"])

    completed, total = manager.objectives.progress()
    pace = STORY_PACE_OPTIONS[state.story_pace]

    table.add_row("Arc", f"[{arc_color}]{chapter.arc.value}[/{arc_color}]")
    table.add_row("Objectives", f"{progress_bar(completed, total)} {completed}/{total}")
    table.add_row("Pace", f"{pace['name']} ({pace['description']})")
    table.add_row("Plot stage", f"{state.plot_stage}")
    table.add_row("Narrative", f"{len(state.narrative_history)}/{state.max_history_items}")
    table.add_row("Conversation", f"{len(state.conversation_history)}/{state.max_history_items}")
    table.add_row("Chapters closed", f"{len(state.chapters)}")
    if state.theme:
        table.add_row("Theme", escape(state.theme))

    console.print(table)

    if chapter.pending_objectives:
        console.print()
        console.print(f"[bold {THEME['primary']}]Pending:[/bold {THEME['primary']}]")
        for objective in chapter.pending_objectives:
            console.print(f"  [{THEME['secondary']}]- {escape(objective)}[/{THEME['secondary']}]")

    if chapter.completed_objectives:
        console.print(f"[bold {THEME['primary']}]Completed:[/bold {THEME['primary']}]")
        for objective in chapter.completed_objectives:
            console.print(f"  [{THEME['dim']}]+ {escape(objective)}[/{THEME['dim']}]")

    important = manager.get_important_characters()
    if important:
        console.print()
        console.print(f"[bold {THEME['primary']}]Characters:[/bold {THEME['primary']}]")
        for info in important:
            console.print(
                f"  [{THEME['secondary']}]{escape(info['name'])}[/{THEME['secondary']}] "
                f"[{THEME['dim']}]{info['relationship']}, last seen {escape(info['last_seen'] or '?')}[/{THEME['dim']}]"
            )

    if manager.objectives.is_overloaded():
        console.print()
        console.print(
            f"[{THEME['warning']}]Too many pending objectives; "
            f"the narrator will steer toward completing them.[/{THEME['warning']}]"
        )


def show_history(manager, count: int = 10):
    """Show the most recent narrative and conversation entries."""
    narrative = manager.get_narrative_history()[-count:]
    conversation = manager.get_conversation_history()[-count:]

    if not narrative and not conversation:
        console.print(f"[{THEME['dim']}]No story recorded yet[/{THEME['dim']}]")
        return

    story = Text()
    for entry in narrative:
        if is_player_choice(entry):
            style = THEME["accent"]
        elif is_combat_entry(entry):
            style = THEME["danger"]
        else:
            style = THEME["text"]
        story.append(f"{entry}\n", style=style)
    console.print(Panel(story, title="Narrative", border_style=THEME["primary"]))

    talk = Text()
    for message in conversation:
        talk.append(f"{message.role.value}: ", style=f"bold {ROLE_STYLES[message.role]}")
        talk.append(f"{message.content}\n", style=THEME["text"])
    console.print(Panel(talk, title="Conversation", border_style=THEME["secondary"]))


def show_guidance(manager):
    """Show what the narrative client is told about the story so far."""
    console.print(Panel(
        Text(manager.current_arc_guidance()),
        title="Arc guidance",
        border_style=THEME["primary"],
    ))
    console.print(Panel(
        Text(manager.summarize_recent_events()),
        title="Recent events",
        border_style=THEME["secondary"],
    ))


def render_event(event: GameEvent):
    """Print a one-line notice for events the player should see."""
    if event.type == EventType.CHAPTER_STARTED:
        console.print(
            f"[bold {THEME['primary']}]{escape(event.data.get('title', 'A new chapter'))}"
            f"[/bold {THEME['primary']}]"
        )
    elif event.type == EventType.PROGRESSION_BLOCKED:
        reasons = escape(", ".join(event.data.get("reasons", [])))
        console.print(f"[{THEME['warning']}]Chapter cannot end yet: {reasons}[/{THEME['warning']}]")
    elif event.type == EventType.SAVE_FAILED:
        console.print(f"[{THEME['danger']}]Save failed: {escape(str(event.data.get('error')))}[/{THEME['danger']}]")


def show_config(config: dict):
    """Show the current settings."""
    table = Table(
        title=f"[bold {THEME['primary']}]Settings[/bold {THEME['primary']}]",
        show_header=False,
        box=None,
    )
    table.add_column("Key", style=THEME["dim"])
    table.add_column("Value", style=THEME["secondary"])
    for key, value in config.items():
        table.add_row(key, escape(str(value)))
    console.print(table)
