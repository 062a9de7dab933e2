"""
Game state storage abstraction.

Separates persistence from domain logic for testability. The JSON store
keeps one canonical save plus a backup of the previous successful save, and
never leaves the canonical file half-written: new saves go to a temporary
file that is moved into place.
"""

import json
import logging
import os
import shutil
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Protocol, runtime_checkable
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, StrictInt, StrictStr
from pydantic.alias_generators import to_camel
from pydantic_core import PydanticSerializationError

from .schema import GameState, NPCProfile, Relationship

logger = logging.getLogger(__name__)

SAVE_VERSION = 1  # Bump when the shape of the saved state changes


class PersistenceError(Exception):
    """Saving or backing up the game state failed."""
    pass


class BackupError(PersistenceError):
    """The previous save could not be copied to the backup path."""
    pass


class SaveError(PersistenceError):
    """The new save could not be written or moved into place."""
    pass


class SaveEnvelope(BaseModel):
    """Metadata wrapper around the serialized state."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    version: StrictInt
    saved_at: StrictStr
    state: dict[str, Any]


# -----------------------------------------------------------------------------
# Serialization boundary
# -----------------------------------------------------------------------------


def serialize_state(state: GameState) -> dict:
    """
    Convert a GameState into plain JSON data.

    Characters become a name -> profile object and themes a sorted list,
    so identical states always produce identical files.
    """
    data = state.model_dump(mode="json", by_alias=True, exclude={"characters", "themes"})
    data["characters"] = {
        name: profile.model_dump(mode="json", by_alias=True)
        for name, profile in state.characters.items()
    }
    data["themes"] = sorted(state.themes)
    return data


def deserialize_state(data: dict) -> GameState:
    """
    Rebuild a GameState from serialize_state() output.

    Raises ValueError (including pydantic's ValidationError) when the data
    does not describe a valid state.
    """
    payload = dict(data)
    characters = payload.pop("characters", None) or {}
    themes = payload.pop("themes", None) or []

    if not isinstance(characters, dict):
        raise ValueError("characters must be an object keyed by name")
    if not isinstance(themes, list):
        raise ValueError("themes must be a list")

    state = GameState.model_validate(payload)
    state.characters = {
        str(name): NPCProfile.model_validate(info)
        for name, info in characters.items()
    }
    state.themes = {theme for theme in themes if isinstance(theme, str)}

    # Older saves kept names on the chapter only
    if not state.characters:
        for name in state.current_chapter.characters:
            state.characters[name] = NPCProfile(
                description="A character encountered during your adventure",
                relationship=Relationship.NEUTRAL,
                last_seen="Recently",
                importance=7,
            )

    return state


def build_envelope(state: GameState) -> dict:
    return {
        "version": SAVE_VERSION,
        "savedAt": datetime.now(timezone.utc).isoformat(),
        "state": serialize_state(state),
    }


def encode_envelope(state: GameState) -> str:
    """
    Serialize the state envelope to JSON text.

    Raises SaveError when some value (e.g. chapter metadata) has no JSON form.
    """
    try:
        return json.dumps(build_envelope(state), indent=2, ensure_ascii=False)
    except (TypeError, ValueError, PydanticSerializationError) as e:
        raise SaveError(f"Game state could not be serialized: {e}") from e


def restore_envelope(data: Any) -> GameState:
    """Validate an envelope and rebuild its state. Raises ValueError if unusable."""
    envelope = SaveEnvelope.model_validate(data)
    logger.debug("Save envelope version %s from %s", envelope.version, envelope.saved_at)
    return deserialize_state(envelope.state)


def has_more_progress(candidate: GameState, current: GameState) -> bool:
    """True if candidate holds strictly more story than current on any axis."""
    return (
        len(candidate.narrative_history) > len(current.narrative_history)
        or len(candidate.conversation_history) > len(current.conversation_history)
        or len(candidate.current_chapter.completed_objectives)
        > len(current.current_chapter.completed_objectives)
    )


# -----------------------------------------------------------------------------
# Stores
# -----------------------------------------------------------------------------


@runtime_checkable
class GameStateStore(Protocol):
    """
    Abstract storage interface for the single save slot.

    Implementations:
    - JsonGameStateStore: File-based persistence (production)
    - MemoryGameStateStore: In-memory storage (testing)
    """

    def save(self, state: GameState, allow_empty: bool = False) -> bool:
        """Persist state. Returns False when the empty-state guard skipped it."""
        ...

    def load(self) -> GameState | None:
        """Load the saved state. Returns None if there is nothing usable."""
        ...

    def backup(self) -> bool:
        """Copy the current save to the backup slot. Returns False if no save."""
        ...

    def delete_backup(self) -> bool:
        """Remove the backup. Returns True if one was deleted."""
        ...

    def exists(self) -> bool:
        """Check if a save exists."""
        ...


class JsonGameStateStore:
    """
    File-based storage using JSON.

    Features:
    - Empty-state guard so a fresh default state never replaces real progress
    - Backup of the previous save before every write
    - Atomic temp-file + move writes with bounded retries
    - Recovery from the backup when the main save is corrupt or empty
    """

    SAVE_FILE = "gamestate.json"
    MOVE_ATTEMPTS = 3
    BACKUP_ATTEMPTS = 3

    def __init__(self, save_dir: Path | str = "storage", retry_delay: float = 0.1):
        self.save_dir = Path(save_dir)
        self.save_dir.mkdir(parents=True, exist_ok=True)
        self.save_file = self.save_dir / self.SAVE_FILE
        self.backup_file = self.save_dir / f"{self.SAVE_FILE}.bak"
        self.retry_delay = retry_delay

    # -------------------------------------------------------------------------
    # Writing
    # -------------------------------------------------------------------------

    def save(self, state: GameState, allow_empty: bool = False) -> bool:
        """
        Save state to the canonical file.

        Args:
            state: State to persist
            allow_empty: Write even if the state has no progress (used by reset)

        Returns:
            True if written, False if skipped by the empty-state guard

        Raises:
            BackupError: previous save could not be backed up; nothing was written
            SaveError: new save could not be written or moved into place
        """
        if state.is_empty() and not allow_empty:
            logger.warning("Prevented saving empty game state")
            return False

        payload = encode_envelope(state)
        self.backup()

        temp_file = self.save_dir / f"{self.SAVE_FILE}.tmp.{uuid4().hex[:8]}"
        try:
            with open(temp_file, "w", encoding="utf-8") as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
        except OSError as e:
            temp_file.unlink(missing_ok=True)
            raise SaveError(f"Could not write {temp_file}: {e}") from e

        self._move_into_place(temp_file)
        logger.info("Game state saved to %s", self.save_file)
        return True

    def _move_into_place(self, temp_file: Path) -> None:
        """Move temp_file onto the canonical path, retrying transient failures."""
        last_error: OSError | None = None

        for attempt in range(1, self.MOVE_ATTEMPTS + 1):
            try:
                os.replace(temp_file, self.save_file)
                return
            except OSError as e:
                last_error = e
                logger.warning(
                    "Moving save into place failed (attempt %d/%d): %s",
                    attempt, self.MOVE_ATTEMPTS, e,
                )
                if attempt < self.MOVE_ATTEMPTS:
                    time.sleep(self.retry_delay)

        temp_file.unlink(missing_ok=True)
        raise SaveError(
            f"Could not move save into {self.save_file} after "
            f"{self.MOVE_ATTEMPTS} attempts: {last_error}"
        ) from last_error

    def backup(self) -> bool:
        """Copy the canonical save to the backup path, retrying with backoff."""
        if not self.save_file.exists():
            return False

        delay = self.retry_delay
        last_error: OSError | None = None

        for attempt in range(1, self.BACKUP_ATTEMPTS + 1):
            try:
                shutil.copyfile(self.save_file, self.backup_file)
                logger.info("Game state backed up to %s", self.backup_file)
                return True
            except OSError as e:
                last_error = e
                logger.warning(
                    "Backup failed (attempt %d/%d): %s",
                    attempt, self.BACKUP_ATTEMPTS, e,
                )
                if attempt < self.BACKUP_ATTEMPTS:
                    time.sleep(delay)
                    delay *= 2

        raise BackupError(
            f"Backup failed after {self.BACKUP_ATTEMPTS} attempts: {last_error}"
        ) from last_error

    def delete_backup(self) -> bool:
        """Delete the backup file."""
        if self.backup_file.exists():
            self.backup_file.unlink()
            logger.info("Backup file deleted")
            return True
        return False

    def exists(self) -> bool:
        """Check if the canonical save exists."""
        return self.save_file.exists()

    # -------------------------------------------------------------------------
    # Reading
    # -------------------------------------------------------------------------

    def _read(self, path: Path) -> GameState:
        """Parse and validate one save file. Raises OSError or ValueError."""
        data = json.loads(path.read_text(encoding="utf-8"))
        state = restore_envelope(data)

        dropped = state.dedupe_histories()
        if dropped:
            logger.info("Removed %d duplicate history entries from %s", dropped, path.name)
        logger.info(
            "%s contains %d narrative entries, %d conversation entries",
            path.name, len(state.narrative_history), len(state.conversation_history),
        )
        return state

    def _read_backup(self) -> GameState | None:
        if not self.backup_file.exists():
            return None

        logger.info("Attempting to restore from backup file...")
        try:
            return self._read(self.backup_file)
        except (OSError, ValueError) as e:
            logger.error("Failed to read backup file: %s", e)
            return None

    def load(self) -> GameState | None:
        """
        Load the saved state.

        Falls back to the backup when the main save is unreadable, or when it
        is empty and the backup holds more progress. Returns None when
        neither yields a usable state; the caller then starts fresh.
        """
        if not self.save_file.exists():
            logger.info("No save file found at %s", self.save_file)
            return None

        try:
            state = self._read(self.save_file)
        except (OSError, ValueError) as e:
            logger.error("Failed to read save file: %s", e)
            state = self._read_backup()
            if state is None:
                logger.error("No readable save or backup, starting a new game state")
                return None
            logger.info("Recovered save data from backup")

        if state.is_empty():
            logger.warning("Save appears to be empty or at initial state")
            backup_state = self._read_backup()
            if backup_state is not None and has_more_progress(backup_state, state):
                logger.info("Backup has more progress than main save, using backup instead")
                return backup_state
            logger.info("No usable save data found")
            return None

        return state


class MemoryGameStateStore:
    """
    In-memory storage for testing.

    No file I/O. Keeps the serialized envelope so loads go through the same
    validation and deduplication as the JSON store.
    """

    def __init__(self):
        self.data: dict | None = None
        self.backup_data: dict | None = None
        self.save_count = 0

    def save(self, state: GameState, allow_empty: bool = False) -> bool:
        """Store the state envelope in memory."""
        if state.is_empty() and not allow_empty:
            return False
        payload = encode_envelope(state)
        self.backup()
        self.data = json.loads(payload)
        self.save_count += 1
        return True

    def load(self) -> GameState | None:
        """Rebuild the state from memory."""
        if self.data is None:
            return None
        state = restore_envelope(self.data)
        state.dedupe_histories()
        if state.is_empty():
            return None
        return state

    def backup(self) -> bool:
        if self.data is None:
            return False
        self.backup_data = json.loads(json.dumps(self.data))
        return True

    def delete_backup(self) -> bool:
        had_backup = self.backup_data is not None
        self.backup_data = None
        return had_backup

    def exists(self) -> bool:
        return self.data is not None

    def clear(self) -> None:
        """Forget everything (test utility)."""
        self.data = None
        self.backup_data = None
        self.save_count = 0
