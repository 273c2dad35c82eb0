"""
Persistence for the yt-dlp manager state: the last known executable version,
when it was last checked upstream and where the executable lives.
"""

import json
import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from brainz_dl.exceptions import PersistenceError

log = logging.getLogger(__name__)

STATE_FILE_NAME = "ytdlp.json"


class ManagerState(BaseModel):
    """The cached (version, last_checked, path) triple. Replaced, never mutated."""

    model_config = ConfigDict(frozen=True)

    last_version: str = ""
    last_checked: Optional[datetime] = None
    path: Optional[str] = None

    @field_validator("last_checked", mode="before")
    @classmethod
    def parse_system_time(cls, v: Any) -> Any:
        """Accepts ISO strings, epoch seconds and {secs,nanos}_since_epoch objects."""
        if isinstance(v, dict):
            secs = v.get("secs_since_epoch", 0)
            nanos = v.get("nanos_since_epoch", 0)
            return datetime.fromtimestamp(secs + nanos / 1e9, tz=timezone.utc)
        return v

    @field_validator("last_checked")
    @classmethod
    def ensure_aware(cls, v: Optional[datetime]) -> Optional[datetime]:
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    @property
    def executable(self) -> Optional[Path]:
        return Path(self.path) if self.path else None


class StateStore:
    """Loads and saves a ManagerState as a small JSON document."""

    def __init__(self, state_file_path: Path):
        self.state_file_path = state_file_path

    def load(self) -> ManagerState:
        """
        Reads the state file. A missing file yields an empty state.

        Raises:
            PersistenceError: If the file exists but cannot be read or parsed.
        """
        if not self.state_file_path.is_file():
            log.debug(f"No yt-dlp state at '{self.state_file_path}', starting fresh.")
            return ManagerState()

        try:
            with open(self.state_file_path, encoding="utf-8") as f:
                data = json.load(f)
            return ManagerState.model_validate(data)
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            raise PersistenceError(
                f"Could not read yt-dlp state '{self.state_file_path}': {e}"
            ) from e

    def save(self, state: ManagerState) -> None:
        """
        Writes the state file atomically (temporary file, then rename).

        Raises:
            PersistenceError: If the file cannot be written.
        """
        temp_path = self.state_file_path.with_suffix(".json.tmp")
        try:
            self.state_file_path.parent.mkdir(parents=True, exist_ok=True)
            with open(temp_path, "w", encoding="utf-8") as f:
                f.write(state.model_dump_json())
            os.replace(temp_path, self.state_file_path)
        except OSError as e:
            raise PersistenceError(
                f"Could not write yt-dlp state '{self.state_file_path}': {e}"
            ) from e
        log.debug(f"Saved yt-dlp state: version={state.last_version!r}")
