"""
Handles the processing of a single track, from search to the tagged file on disk.
"""

import asyncio
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from rich.markup import escape

from brainz_dl.exceptions import FileIntegrityError
from brainz_dl.media import FetchResult, FileIntegrityChecker, MediaFetcher, Tagger
from brainz_dl.models.config import DownloadConfig
from brainz_dl.models.playlist import SearchCandidate, Track
from brainz_dl.models.stats import PipelineEvent, TrackOutcome, TrackStage, TrackStatus
from brainz_dl.utils.path import create_dir, temporary_path
from brainz_dl.ytdlp.runner import YtdlpRunner

from .matcher import CandidateMatcher

log = logging.getLogger(__name__)

EventListener = Callable[[PipelineEvent], None]


@dataclass
class PipelineContext:
    """Collaborators shared by every pipeline of one run."""

    config: DownloadConfig
    runner: YtdlpRunner
    matcher: CandidateMatcher
    fetcher: MediaFetcher
    tagger: Tagger
    playlist_title: str
    track_total: int
    listener: Optional[EventListener] = None


class TrackPipeline:
    """
    Drives one track through searching, matching, fetching and tagging.

    Stages only move forward. Any error ends the pipeline in the failed stage
    and is reported through the returned outcome; the final file only ever
    appears through an atomic rename of a fully tagged working file.
    """

    def __init__(
        self,
        context: PipelineContext,
        track: Track,
        track_number: int,
        output_path: Path,
    ):
        self.context = context
        self.track = track
        self.track_number = track_number
        self.output_path = output_path
        self.temp_path = temporary_path(output_path, track_number)
        self.stage = TrackStage.QUEUED

    def _emit(self, outcome: Optional[TrackOutcome] = None) -> None:
        listener = self.context.listener
        if listener is None:
            return
        try:
            listener(PipelineEvent(self.track_number, self.track, self.stage, outcome))
        except Exception as e:
            log.debug(f"Progress listener raised for track {self.track_number}: {e}")

    def _advance(
        self, stage: TrackStage, outcome: Optional[TrackOutcome] = None
    ) -> None:
        if self.stage.is_terminal or stage.order <= self.stage.order:
            raise RuntimeError(
                f"Illegal stage transition {self.stage.value} -> {stage.value}"
            )
        self.stage = stage
        self._emit(outcome)

    def _outcome(self, status: TrackStatus, **kwargs) -> TrackOutcome:
        return TrackOutcome(
            track_number=self.track_number,
            track=self.track,
            status=status,
            output_path=self.output_path,
            **kwargs,
        )

    async def run(self) -> TrackOutcome:
        """Runs the pipeline to a terminal stage and returns its outcome."""
        label = escape(self.track.display_name)

        if self.output_path.is_file():
            outcome = self._outcome(TrackStatus.SKIPPED)
            log.info(
                f"  [yellow]○ Skipping:[/] [dim]{escape(self.output_path.name)}[/dim]"
                " (already exists)"
            )
            self._advance(TrackStage.DONE, outcome)
            return outcome

        try:
            self._advance(TrackStage.SEARCHING)
            candidates = await self.context.runner.search(
                self.track, self.context.config.search_results
            )

            self._advance(TrackStage.MATCHING)
            candidate = self.context.matcher.select(self.track, candidates)

            self._advance(TrackStage.FETCHING)
            create_dir(self.output_path.parent)
            result = await self.context.fetcher.fetch(
                self.track, candidate, self.temp_path
            )

            self._advance(TrackStage.TAGGING)
            await asyncio.to_thread(self._write_output, result, candidate)

            outcome = self._outcome(TrackStatus.DONE)
            self._advance(TrackStage.DONE, outcome)
            log.info(f"  [green]✓ Done:[/] {label}")
            return outcome

        except Exception as e:
            failed_stage = self.stage
            reason = str(e) or type(e).__name__
            outcome = self._outcome(
                TrackStatus.FAILED, failed_stage=failed_stage, reason=reason
            )
            self._advance(TrackStage.FAILED, outcome)
            log.error(
                f"  [red]✗ Failed:[/] {label} during {failed_stage.value} "
                f"({type(e).__name__}: {escape(reason)})",
                exc_info=log.getEffectiveLevel() == logging.DEBUG,
            )
            return outcome

        finally:
            self._remove_working_files()

    def _remove_working_files(self) -> None:
        """Removes the temp file and any partial files yt-dlp left beside it."""
        for path in (
            self.temp_path,
            self.temp_path.with_name(self.temp_path.name + ".part"),
            self.temp_path.with_name(self.temp_path.name + ".ytdl"),
        ):
            if path.exists():
                try:
                    os.remove(path)
                except OSError as e:
                    log.warning(f"Could not remove '{path}': {e}")

    def _write_output(self, result: FetchResult, candidate: SearchCandidate) -> None:
        """Tags the working file, validates it and moves it into place."""
        self.context.tagger.tag_file(
            result.audio_path,
            self.track,
            candidate,
            playlist_title=self.context.playlist_title,
            track_number=self.track_number,
            track_total=self.context.track_total,
            artwork=result.artwork,
        )
        if not FileIntegrityChecker.check_m4a(result.audio_path):
            raise FileIntegrityError("Downloaded file failed integrity check.")
        os.replace(result.audio_path, self.output_path)
