"""
Async client for the public ListenBrainz playlist API.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

import aiohttp
from pydantic import ValidationError

from brainz_dl import __version__
from brainz_dl.exceptions import NetworkError, PlaylistError
from brainz_dl.models.playlist import Playlist

log = logging.getLogger(__name__)

PLAYLIST_URL_PREFIX = "https://listenbrainz.org/playlist/"


def playlist_mbid_from_identifier(identifier: str) -> str:
    """Turns a playlist identifier URL into the bare playlist MBID."""
    identifier = identifier.strip()
    if identifier.startswith(PLAYLIST_URL_PREFIX):
        identifier = identifier[len(PLAYLIST_URL_PREFIX) :]
    return identifier.strip("/")


class ListenBrainzClient:
    """
    Minimal async client for the ListenBrainz JSON API (v1).

    No authentication is needed for the endpoints used here.
    """

    BASE_URL = "https://api.listenbrainz.org/1/"

    def __init__(self, timeout: float = 30.0):
        self.timeout = timeout
        self._session: Optional[aiohttp.ClientSession] = None

    async def _initialize_session(self) -> None:
        """Ensures an active aiohttp session is available."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers={
                    "User-Agent": f"brainz-dl/{__version__}",
                    "Accept": "application/json",
                },
                timeout=aiohttp.ClientTimeout(total=self.timeout, connect=15),
            )

    async def close(self) -> None:
        """Gracefully closes the aiohttp session."""
        if self._session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self) -> "ListenBrainzClient":
        await self._initialize_session()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def api_call(self, endpoint: str, **params: Any) -> Dict[str, Any]:
        """
        Performs a GET request against the API and returns the decoded JSON.

        Raises:
            PlaylistError: If the resource does not exist.
            NetworkError: On transport errors or any other error status.
        """
        await self._initialize_session()
        try:
            async with self._session.get(self.BASE_URL + endpoint, params=params) as r:
                if r.status == 404:
                    raise PlaylistError(f"Not found on ListenBrainz: {endpoint}")
                r.raise_for_status()
                return await r.json()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            log.debug(f"API call to {endpoint} failed: {e}")
            raise NetworkError(f"ListenBrainz request failed: {e}") from e

    async def fetch_recommendations(self, username: str) -> List[str]:
        """Returns the MBIDs of the playlists recommended to `username`."""
        data = await self.api_call(f"user/{username}/playlists/recommendations")
        mbids = []
        for entry in data.get("playlists", []):
            identifier = (entry.get("playlist") or {}).get("identifier", "")
            if identifier:
                mbids.append(playlist_mbid_from_identifier(identifier))
        return mbids

    async def fetch_playlist(self, playlist_mbid: str) -> Playlist:
        """Fetches a playlist with its track metadata."""
        data = await self.api_call(f"playlist/{playlist_mbid}", fetch_metadata="true")
        try:
            return Playlist.model_validate(data)
        except ValidationError as e:
            raise PlaylistError(f"Malformed playlist '{playlist_mbid}': {e}") from e

    async def fetch_recommended_playlist(self, username: str) -> Playlist:
        """Fetches the first playlist recommended to `username`."""
        mbids = await self.fetch_recommendations(username)
        if not mbids:
            raise PlaylistError(f"No recommended playlists for user '{username}'.")
        log.info(f"Fetching recommended playlist [cyan]{mbids[0]}[/cyan]...")
        return await self.fetch_playlist(mbids[0])
