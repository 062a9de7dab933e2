"""Tests for user configuration."""

from lysoria.interface.config import (
    DEFAULT_CONFIG,
    get_config_path,
    load_config,
    save_config,
    set_default_story_pace,
    set_log_level,
    set_max_history_items,
)


class TestConfig:
    """Test loading and saving the config file."""

    def test_defaults_when_missing(self, tmp_path):
        """No file gives defaults pointing at the given directory."""
        config = load_config(tmp_path)
        assert config["max_history_items"] == DEFAULT_CONFIG["max_history_items"]
        assert config["save_dir"] == str(tmp_path)

    def test_round_trip(self, tmp_path):
        """Saved values are read back."""
        config = load_config(tmp_path)
        config["log_level"] = "DEBUG"
        assert save_config(config, tmp_path) is True
        assert load_config(tmp_path)["log_level"] == "DEBUG"

    def test_missing_keys_filled(self, tmp_path):
        """Older files get new keys from the defaults."""
        get_config_path(tmp_path).write_text('{"log_level": "WARNING"}', encoding="utf-8")
        config = load_config(tmp_path)
        assert config["log_level"] == "WARNING"
        assert config["default_story_pace"] == "MEDIUM"

    def test_corrupt_file_gives_defaults(self, tmp_path):
        """Unreadable config falls back to defaults."""
        get_config_path(tmp_path).write_text("{oops", encoding="utf-8")
        assert load_config(tmp_path)["retry_delay"] == DEFAULT_CONFIG["retry_delay"]

    def test_setters(self, tmp_path):
        """Setters persist single values."""
        set_default_story_pace("slow", tmp_path)
        set_max_history_items(80, tmp_path)
        set_log_level("error", tmp_path)

        config = load_config(tmp_path)
        assert config["default_story_pace"] == "SLOW"
        assert config["max_history_items"] == 80
        assert config["log_level"] == "ERROR"
