"""
The main orchestrator: resolves yt-dlp, wires the shared collaborators together
and runs every playlist track through its pipeline.
"""

import asyncio
import json
import logging
import shutil
import time
from datetime import timedelta
from pathlib import Path
from typing import Callable, Optional

from rich.markup import escape

from brainz_dl.exceptions import ConfigurationError
from brainz_dl.media import ArtworkFetcher, MediaFetcher, Tagger
from brainz_dl.media.artwork import close_connection_pool
from brainz_dl.models.config import DownloadConfig
from brainz_dl.models.playlist import Playlist
from brainz_dl.models.stats import PipelineEvent, RunSummary
from brainz_dl.utils.path import (
    assign_output_paths,
    create_dir,
    get_cache_dir,
    get_data_dir,
    playlist_directory,
)
from brainz_dl.utils.playlist import generate_m3u
from brainz_dl.ytdlp import VersionManager, YtdlpRunner

from .matcher import CandidateMatcher
from .pipeline import PipelineContext, TrackPipeline
from .scheduler import PlaylistScheduler

log = logging.getLogger(__name__)


class DownloadManager:
    """Orchestrates the download of one playlist."""

    def __init__(
        self,
        config: DownloadConfig,
        listener: Optional[Callable[[PipelineEvent], None]] = None,
        version_manager: Optional[VersionManager] = None,
    ):
        self.config = config
        self.listener = listener
        self.version_manager = version_manager
        self.scheduler: Optional[PlaylistScheduler] = None
        self._cancel_requested = False

    def request_cancel(self) -> None:
        """Stops starting new tracks; running ones are left to finish."""
        self._cancel_requested = True
        if self.scheduler:
            self.scheduler.request_cancel()

    async def resolve_executable(self) -> Path:
        """
        Returns the yt-dlp executable to run.

        An explicit `ytdlp_path` bypasses the managed copy entirely.
        """
        if self.config.ytdlp_path:
            explicit = Path(self.config.ytdlp_path).expanduser()
            if explicit.is_file():
                return explicit
            if found := shutil.which(self.config.ytdlp_path):
                return Path(found)
            raise ConfigurationError(
                f"yt-dlp executable not found: '{self.config.ytdlp_path}'"
            )

        if self.version_manager is None:
            self.version_manager = VersionManager.from_dirs(
                get_cache_dir(),
                get_data_dir(),
                update_interval=timedelta(hours=self.config.update_interval_hours),
            )
        return await self.version_manager.ensure_current()

    def build_context(self, playlist: Playlist, executable: Path) -> PipelineContext:
        """Creates the collaborators shared by every pipeline of the run."""
        runner = YtdlpRunner(executable, timeout=self.config.process_timeout or None)
        fetcher = MediaFetcher(
            self.config,
            runner,
            ArtworkFetcher(pool_size=self.config.image_workers),
            asyncio.Semaphore(self.config.image_workers),
        )
        return PipelineContext(
            config=self.config,
            runner=runner,
            matcher=CandidateMatcher(),
            fetcher=fetcher,
            tagger=Tagger(),
            playlist_title=playlist.title,
            track_total=len(playlist.tracks),
            listener=self.listener,
        )

    async def execute(self, playlist: Playlist) -> RunSummary:
        """
        Downloads every track of `playlist`.

        Failing to obtain yt-dlp aborts the run before any track starts; after
        that, per-track failures are only reported in the returned summary.
        """
        executable = await self.resolve_executable()
        log.debug(f"Using yt-dlp at '{executable}'")

        output_dir = Path(self.config.output_dir).expanduser()
        target_dir = playlist_directory(output_dir, playlist.title)
        create_dir(target_dir)
        output_paths = assign_output_paths(output_dir, playlist.title, playlist.tracks)

        log.info(
            f"\n[bold green]🎵 Playlist:[/] {escape(playlist.title)} "
            f"({len(playlist.tracks)} tracks)"
        )

        context = self.build_context(playlist, executable)

        def pipeline_factory(track_number, track):
            return TrackPipeline(
                context, track, track_number, output_paths[track_number - 1]
            )

        self.scheduler = PlaylistScheduler(
            self.config.max_workers, pipeline_factory, listener=self.listener
        )
        if self._cancel_requested:
            self.scheduler.request_cancel()

        try:
            summary = await self.scheduler.run(playlist.tracks)
        finally:
            await close_connection_pool()

        if not self.config.no_m3u:
            await asyncio.to_thread(generate_m3u, target_dir, output_paths)

        self.save_session_stats(summary, playlist)
        return summary

    def save_session_stats(self, summary: RunSummary, playlist: Playlist) -> None:
        """Appends the run's stats to a history file."""
        stats_file = Path(self.config.config_path) / "session_history.jsonl"
        try:
            create_dir(stats_file.parent)
            with open(stats_file, "a", encoding="utf-8") as f:
                session_data = {
                    "timestamp": int(time.time()),
                    "playlist": playlist.title,
                    "tracks_total": len(summary.outcomes),
                    "tracks_downloaded": summary.tracks_downloaded,
                    "tracks_skipped": summary.tracks_skipped,
                    "tracks_failed": summary.tracks_failed,
                    "tracks_cancelled": summary.tracks_cancelled,
                    "total_size_downloaded": summary.total_size_downloaded,
                    "duration_seconds": round(summary.duration_seconds, 2),
                }
                json.dump(session_data, f)
                f.write("\n")
        except OSError as e:
            log.warning(f"[yellow]Could not save session stats:[/] {e}")
