"""
User configuration persistence.

Stores settings like the save directory, history size and default pace in
a JSON file next to the save.
"""

import json
from pathlib import Path
from typing import TypedDict


class Config(TypedDict, total=False):
    """User configuration."""
    save_dir: str  # Directory holding gamestate.json and its backup
    max_history_items: int  # Bound on narrative/conversation history
    default_story_pace: str  # FAST, MEDIUM or SLOW for new campaigns
    log_level: str  # DEBUG, INFO, WARNING, ERROR
    retry_delay: float  # Seconds between save retries


DEFAULT_CONFIG: Config = {
    "save_dir": "storage",
    "max_history_items": 50,
    "default_story_pace": "MEDIUM",
    "log_level": "INFO",
    "retry_delay": 0.1,
}


def get_config_path(save_dir: Path | str = "storage") -> Path:
    """Get path to config file."""
    return Path(save_dir) / ".lysoria_config.json"


def load_config(save_dir: Path | str = "storage") -> Config:
    """Load config from file, or return defaults if not found."""
    path = get_config_path(save_dir)

    if not path.exists():
        config = DEFAULT_CONFIG.copy()
        config["save_dir"] = str(save_dir)
        return config

    try:
        with open(path, "r", encoding="utf-8") as f:
            saved = json.load(f)
        # Merge with defaults to handle missing keys
        config = DEFAULT_CONFIG.copy()
        config.update(saved)
        return config
    except (json.JSONDecodeError, IOError):
        config = DEFAULT_CONFIG.copy()
        config["save_dir"] = str(save_dir)
        return config


def save_config(config: Config, save_dir: Path | str = "storage") -> bool:
    """Save config to file. Returns True on success."""
    path = get_config_path(save_dir)

    path.parent.mkdir(parents=True, exist_ok=True)

    try:
        with open(path, "w", encoding="utf-8") as f:
            json.dump(config, f, indent=2)
        return True
    except IOError:
        return False


def set_default_story_pace(pace: str, save_dir: Path | str = "storage") -> None:
    """Save the pace used for new campaigns."""
    config = load_config(save_dir)
    config["default_story_pace"] = pace.upper()
    save_config(config, save_dir)


def set_max_history_items(count: int, save_dir: Path | str = "storage") -> None:
    """Save the history bound used for new campaigns."""
    config = load_config(save_dir)
    config["max_history_items"] = count
    save_config(config, save_dir)


def set_log_level(level: str, save_dir: Path | str = "storage") -> None:
    """Save logging verbosity."""
    config = load_config(save_dir)
    config["log_level"] = level.upper()
    save_config(config, save_dir)
