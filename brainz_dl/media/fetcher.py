"""
Retrieves the media for a matched candidate: the audio stream through yt-dlp and
the cover artwork over HTTP under a shared, narrower concurrency permit.
"""

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path

from brainz_dl.models.config import DownloadConfig
from brainz_dl.models.playlist import SearchCandidate, Track
from brainz_dl.ytdlp.runner import YtdlpRunner

from .artwork import ArtworkFetcher, build_artwork_plan

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class FetchResult:
    """Downloaded audio plus resolved PNG artwork for exactly one track."""

    audio_path: Path
    artwork: bytes


class MediaFetcher:
    """Audio and artwork retrieval shared by every track pipeline of a run."""

    def __init__(
        self,
        config: DownloadConfig,
        runner: YtdlpRunner,
        artwork_fetcher: ArtworkFetcher,
        image_semaphore: asyncio.Semaphore,
    ):
        self.config = config
        self.runner = runner
        self.artwork_fetcher = artwork_fetcher
        self.image_semaphore = image_semaphore

    async def fetch_audio(
        self, candidate: SearchCandidate, destination_path: Path
    ) -> Path:
        """Downloads the candidate's audio. A failure is final for this track."""
        await self.runner.download_audio(
            candidate.webpage_url, destination_path, self.config.audio_format
        )
        return destination_path

    async def fetch_artwork(self, track: Track, candidate: SearchCandidate) -> bytes:
        """
        Fetches artwork following the primary/fallback plan.

        The image permit is held only while this runs.
        """
        plan = build_artwork_plan(
            track,
            candidate,
            always_use_thumbnails=self.config.always_use_youtube_thumbnails,
            attempts=self.config.artwork_attempts,
            backoff=self.config.artwork_backoff,
        )
        async with self.image_semaphore:
            return await self.artwork_fetcher.fetch(plan)

    async def fetch(
        self, track: Track, candidate: SearchCandidate, destination_path: Path
    ) -> FetchResult:
        audio_path = await self.fetch_audio(candidate, destination_path)
        artwork = await self.fetch_artwork(track, candidate)
        log.debug(
            f"Fetched media for '{track.display_name}' "
            f"({len(artwork) // 1024} KB artwork)"
        )
        return FetchResult(audio_path=audio_path, artwork=artwork)
