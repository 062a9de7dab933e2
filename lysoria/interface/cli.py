"""
Lysoria CLI - inspect and manage the saved game state.

Usage:
    lysoria status
    lysoria history -n 20
    lysoria guidance
    lysoria config --pace SLOW
    lysoria reset --yes
"""

import argparse
import logging
import sys
from pathlib import Path

from ..state import EventType, GameStateManager, JsonGameStateStore, StoryPace, get_event_bus
from .config import (
    load_config,
    set_default_story_pace,
    set_log_level,
    set_max_history_items,
)
from .renderer import (
    THEME,
    console,
    render_event,
    show_config,
    show_guidance,
    show_history,
    show_status,
)

logger = logging.getLogger(__name__)

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lysoria",
        description="Lysoria - persistent state for the terminal RPG",
    )
    parser.add_argument(
        "--save-dir", "-d",
        default="storage",
        help="Directory holding the save file (default: storage)"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Log debug output"
    )

    sub = parser.add_subparsers(dest="command")
    sub.add_parser("status", help="Show chapter, objectives and pacing")

    history = sub.add_parser("history", help="Show recent story entries")
    history.add_argument(
        "-n", "--count",
        type=int,
        default=10,
        help="Number of entries to show (default: 10)"
    )

    sub.add_parser("guidance", help="Show the arc guidance given to the narrator")

    config = sub.add_parser("config", help="Show or change settings")
    config.add_argument(
        "--pace",
        type=str.upper,
        choices=[p.value for p in StoryPace],
        help="Story pace for new campaigns"
    )
    config.add_argument(
        "--history",
        type=int,
        help="History size for new campaigns"
    )
    config.add_argument(
        "--log-level",
        type=str.upper,
        choices=LOG_LEVELS,
        help="Logging verbosity"
    )

    reset = sub.add_parser("reset", help="Start a new campaign, discarding the save")
    reset.add_argument(
        "--yes",
        action="store_true",
        help="Confirm the reset"
    )
    return parser


def resolve_log_level(name) -> int:
    """Numeric level for a level name, or INFO if the name is unknown."""
    level = logging.getLevelName(str(name).upper())
    return level if isinstance(level, int) else logging.INFO


def create_manager(save_dir: Path | str) -> GameStateManager:
    """Build a manager from the user config stored in save_dir."""
    config = load_config(save_dir)
    # The config file lives in save_dir, so save_dir is where the save is too
    store = JsonGameStateStore(save_dir, retry_delay=config.get("retry_delay", 0.1))
    return GameStateManager(
        store,
        max_history_items=config.get("max_history_items", 50),
        default_story_pace=config.get("default_story_pace", "MEDIUM"),
    )


def run_config(args) -> int:
    """Apply any settings given on the command line, then show the config."""
    if args.history is not None and args.history < 1:
        console.print(f"[{THEME['warning']}]History size must be at least 1[/{THEME['warning']}]")
        return 1

    if args.pace:
        set_default_story_pace(args.pace, args.save_dir)
    if args.history is not None:
        set_max_history_items(args.history, args.save_dir)
    if args.log_level:
        set_log_level(args.log_level, args.save_dir)

    show_config(load_config(args.save_dir))
    return 0


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    config = load_config(args.save_dir)
    configured_level = config.get("log_level", "INFO")
    level = logging.DEBUG if args.verbose else resolve_log_level(configured_level)
    logging.basicConfig(
        level=level,
        format='%(asctime)s [%(levelname)s] %(message)s',
    )
    if not args.verbose and level == logging.INFO and str(configured_level).upper() != "INFO":
        logger.warning("Unknown log level %r in config, using INFO", configured_level)

    command = args.command or "status"
    if command == "config":
        return run_config(args)

    bus = get_event_bus()
    for event_type in (EventType.CHAPTER_STARTED, EventType.PROGRESSION_BLOCKED, EventType.SAVE_FAILED):
        bus.on(event_type, render_event)

    manager = create_manager(args.save_dir)

    if command == "status":
        show_status(manager)
    elif command == "history":
        show_history(manager, count=max(1, args.count))
    elif command == "guidance":
        show_guidance(manager)
    elif command == "reset":
        if not manager.reset(confirm=args.yes):
            console.print(
                f"[{THEME['warning']}]Reset needs confirmation: "
                f"run 'lysoria reset --yes'[/{THEME['warning']}]"
            )
            return 1
        console.print(f"[{THEME['primary']}]A new tale begins.[/{THEME['primary']}]")

    return 0


if __name__ == "__main__":
    sys.exit(main())
