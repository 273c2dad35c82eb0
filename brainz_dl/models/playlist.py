"""
Pydantic models for playlists (JSPF) and yt-dlp search results.
"""

import json
import logging
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from brainz_dl.exceptions import PlaylistError

log = logging.getLogger(__name__)

JSPF_TRACK_EXTENSION = "https://musicbrainz.org/doc/jspf#track"


class Track(BaseModel):
    """A wanted track as listed in a playlist. Never mutated after loading."""

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    title: str
    creator: str = ""
    album: str = ""
    identifier: tuple[str, ...] = ()
    release_mbid: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def extract_jspf_fields(cls, data: Any) -> Any:
        """Normalizes the identifier list and lifts the cover art release MBID."""
        if not isinstance(data, dict):
            return data
        data = dict(data)

        identifier = data.get("identifier")
        if isinstance(identifier, str):
            data["identifier"] = (identifier,)
        elif identifier is None:
            data.pop("identifier", None)

        if not data.get("release_mbid"):
            extension = data.get("extension") or {}
            meta = extension.get(JSPF_TRACK_EXTENSION, {}).get(
                "additional_metadata", {}
            )
            if mbid := meta.get("caa_release_mbid"):
                data["release_mbid"] = mbid
        data.pop("extension", None)
        return data

    @property
    def display_name(self) -> str:
        return f"{self.title} by {self.creator}" if self.creator else self.title


class Playlist(BaseModel):
    """An ordered list of tracks with a title."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    title: str = "Untitled Playlist"
    tracks: list[Track] = Field(default_factory=list, alias="track")

    @model_validator(mode="before")
    @classmethod
    def unwrap_envelope(cls, data: Any) -> Any:
        """The ListenBrainz API nests the JSPF document under a 'playlist' key."""
        if isinstance(data, dict) and isinstance(data.get("playlist"), dict):
            return data["playlist"]
        return data


class Thumbnail(BaseModel):
    url: str
    width: Optional[int] = None
    height: Optional[int] = None

    @property
    def area(self) -> int:
        return (self.width or 0) * (self.height or 0)


class SearchCandidate(BaseModel):
    """One result line printed by a yt-dlp search."""

    model_config = ConfigDict(frozen=True)

    title: str
    webpage_url: str
    uploader: Optional[str] = None
    duration: Optional[float] = None
    view_count: Optional[int] = None
    thumbnails: list[Thumbnail] = Field(default_factory=list)
    thumbnail: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def fill_flat_playlist_gaps(cls, data: Any) -> Any:
        # Flat-playlist entries sometimes only carry 'url' and 'channel'.
        if not isinstance(data, dict):
            return data
        data = dict(data)
        if not data.get("webpage_url") and data.get("url"):
            data["webpage_url"] = data["url"]
        if not data.get("uploader") and data.get("channel"):
            data["uploader"] = data["channel"]
        if data.get("thumbnails") is None:
            data.pop("thumbnails", None)
        return data

    def best_thumbnail_url(self) -> Optional[str]:
        """Returns the largest listed thumbnail, else the first, else the single one."""
        if self.thumbnails:
            best = self.thumbnails[0]
            for thumb in self.thumbnails[1:]:
                if thumb.area > best.area:
                    best = thumb
            return best.url
        return self.thumbnail


def load_playlist_file(path: Path) -> Playlist:
    """
    Reads a JSPF playlist document from disk.

    Raises:
        PlaylistError: If the file is unreadable or not a valid playlist.
    """
    try:
        with open(path, encoding="utf-8") as f:
            document = json.load(f)
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        raise PlaylistError(f"Could not read playlist file '{path}': {e}") from e

    try:
        playlist = Playlist.model_validate(document)
    except ValidationError as e:
        raise PlaylistError(f"Invalid playlist document '{path}':\n{e}") from e

    log.debug(f"Loaded {len(playlist.tracks)} tracks from '{path}'.")
    return playlist
