"""Tests for the command-line entry point."""

import logging

from lysoria.interface.cli import create_manager, main, resolve_log_level
from lysoria.interface.config import get_config_path, load_config
from lysoria.state import EventBus, GameStateManager, JsonGameStateStore, StoryPace


def seed(save_dir):
    """Write a save with a little story in it."""
    manager = GameStateManager(JsonGameStateStore(save_dir, retry_delay=0), event_bus=EventBus())
    manager.add_narrative("You arrive in Eldermere.")
    manager.add_objective("Find the elder")
    manager.record_player_choice("Ask for directions")
    return manager


class TestCli:
    """Test subcommands against a save directory."""

    def test_status_on_empty_save_dir(self, tmp_path):
        """Status works before any game has been played."""
        assert main(["--save-dir", str(tmp_path), "status"]) == 0

    def test_status_and_history(self, tmp_path, capsys):
        """Status and history show the saved story."""
        seed(tmp_path)
        assert main(["--save-dir", str(tmp_path), "status"]) == 0
        assert main(["--save-dir", str(tmp_path), "history", "-n", "5"]) == 0
        out = capsys.readouterr().out
        assert "Chapter 1: The Beginning" in out
        assert "Ask for directions" in out

    def test_guidance(self, tmp_path, capsys):
        """Guidance prints the arc instructions."""
        seed(tmp_path)
        assert main(["--save-dir", str(tmp_path), "guidance"]) == 0
        assert "Arc guidance" in capsys.readouterr().out

    def test_reset_needs_yes(self, tmp_path):
        """Reset without --yes refuses."""
        seed(tmp_path)
        assert main(["--save-dir", str(tmp_path), "reset"]) == 1
        assert JsonGameStateStore(tmp_path).load() is not None

    def test_reset_confirmed(self, tmp_path):
        """Reset with --yes starts over."""
        seed(tmp_path)
        assert main(["--save-dir", str(tmp_path), "reset", "--yes"]) == 0
        assert JsonGameStateStore(tmp_path).load() is None

    def test_bracketed_story_text(self, tmp_path, capsys):
        """Brackets in objectives and narrative are shown, not read as markup."""
        manager = GameStateManager(JsonGameStateStore(tmp_path, retry_delay=0), event_bus=EventBus())
        manager.add_narrative("The rune reads [/end] in old script.")
        manager.add_objective("Open the [/gate]")
        manager.add_or_update_character("[bold]Mira", importance=9, last_seen="[/docks]")

        assert main(["--save-dir", str(tmp_path), "status"]) == 0
        assert main(["--save-dir", str(tmp_path), "guidance"]) == 0
        out = capsys.readouterr().out
        assert "Open the [/gate]" in out
        assert "[bold]Mira" in out
        assert "[/end]" in out


class TestConfigCommand:
    """Test changing settings from the command line."""

    def test_show_defaults(self, tmp_path, capsys):
        """Without options the settings are printed."""
        assert main(["--save-dir", str(tmp_path), "config"]) == 0
        assert "default_story_pace" in capsys.readouterr().out

    def test_change_settings(self, tmp_path):
        """Options are written to the config file."""
        assert main([
            "--save-dir", str(tmp_path), "config",
            "--pace", "slow", "--history", "80", "--log-level", "debug",
        ]) == 0

        config = load_config(tmp_path)
        assert config["default_story_pace"] == "SLOW"
        assert config["max_history_items"] == 80
        assert config["log_level"] == "DEBUG"

    def test_new_campaign_uses_configured_pace(self, tmp_path):
        """A fresh campaign starts at the configured pace."""
        main(["--save-dir", str(tmp_path), "config", "--pace", "fast"])
        assert create_manager(tmp_path).get_story_pace() == StoryPace.FAST

    def test_history_must_be_positive(self, tmp_path):
        """A history size below one is refused."""
        assert main(["--save-dir", str(tmp_path), "config", "--history", "0"]) == 1
        assert load_config(tmp_path)["max_history_items"] == 50


class TestLogLevel:
    """Test log level handling."""

    def test_known_levels(self):
        """Level names map to logging levels in any case."""
        assert resolve_log_level("debug") == logging.DEBUG
        assert resolve_log_level("ERROR") == logging.ERROR

    def test_unknown_level_falls_back(self):
        """Unknown names fall back to INFO."""
        assert resolve_log_level("LOUD") == logging.INFO
        assert resolve_log_level(None) == logging.INFO

    def test_bad_level_in_config_does_not_stop_cli(self, tmp_path):
        """A bad configured level still lets commands run."""
        get_config_path(tmp_path).write_text('{"log_level": "LOUD"}', encoding="utf-8")
        assert main(["--save-dir", str(tmp_path), "status"]) == 0
