"""
Utilities for platform directories and output path derivation.
"""

import os
from pathlib import Path
from typing import Sequence

from pathvalidate import sanitize_filename

from brainz_dl.models.playlist import Track

APP_DIR_NAME = "brainz-dl"
AUDIO_EXTENSION = "m4a"


def get_config_dir() -> Path:
    if os.name == "nt":
        base_dir = Path(os.getenv("APPDATA", "~\\AppData\\Roaming"))
    else:
        base_dir = Path(os.getenv("XDG_CONFIG_HOME", "~/.config"))
    return base_dir.expanduser() / APP_DIR_NAME


def get_cache_dir() -> Path:
    if os.name == "nt":
        base_dir = Path(os.getenv("LOCALAPPDATA", "~\\AppData\\Local"))
    else:
        base_dir = Path(os.getenv("XDG_CACHE_HOME", "~/.cache"))
    return base_dir.expanduser() / APP_DIR_NAME


def get_data_dir() -> Path:
    if os.name == "nt":
        base_dir = Path(os.getenv("LOCALAPPDATA", "~\\AppData\\Local"))
    else:
        base_dir = Path(os.getenv("XDG_DATA_HOME", "~/.local/share"))
    return base_dir.expanduser() / APP_DIR_NAME


def create_dir(directory_path: Path) -> None:
    """Creates a directory if it does not already exist."""
    directory_path.mkdir(parents=True, exist_ok=True)


def safe_name(value: str, fallback: str) -> str:
    """Sanitizes a single path component, falling back when nothing is left."""
    cleaned = sanitize_filename(value.replace("/", "-"), platform="auto").strip()
    return cleaned or fallback


def playlist_directory(output_dir: Path, playlist_title: str) -> Path:
    return output_dir / safe_name(playlist_title, "Untitled Playlist")


def assign_output_paths(
    output_dir: Path, playlist_title: str, tracks: Sequence[Track]
) -> list[Path]:
    """
    Derives one output file path per track, in playlist order.

    The path depends only on the playlist title and the track title. Titles that
    repeat within the playlist get " (2)", " (3)", ... so that no two tracks
    share a path.
    """
    directory = playlist_directory(output_dir, playlist_title)
    used: set[str] = set()
    paths = []
    for track in tracks:
        stem = safe_name(track.title, "Untitled")
        candidate, n = stem, 1
        while candidate.casefold() in used:
            n += 1
            candidate = f"{stem} ({n})"
        used.add(candidate.casefold())
        paths.append(directory / f"{candidate}.{AUDIO_EXTENSION}")
    return paths


def temporary_path(final_path: Path, track_number: int) -> Path:
    """Returns the working file a pipeline writes before the final rename."""
    return final_path.with_name(
        f".{final_path.stem}.{track_number}.tmp.{AUDIO_EXTENSION}"
    )
