"""
Runs one pipeline per playlist track with a bounded number in flight at a time.
"""

import asyncio
import logging
import time
from typing import Awaitable, Callable, Optional, Protocol, Sequence

from rich.markup import escape

from brainz_dl.models.playlist import Track
from brainz_dl.models.stats import (
    CANCELLED_REASON,
    PipelineEvent,
    RunSummary,
    TrackOutcome,
    TrackStage,
    TrackStatus,
)

log = logging.getLogger(__name__)


class Runnable(Protocol):
    def run(self) -> Awaitable[TrackOutcome]: ...


PipelineFactory = Callable[[int, Track], Runnable]


class PlaylistScheduler:
    """
    Launches pipelines in playlist order behind a track permit.

    At most `max_workers` pipelines run at once, and one track failing never
    affects the others. After `request_cancel`, pipelines already running
    finish normally while tracks that have not started are reported as
    failed in the queued stage.
    """

    def __init__(
        self,
        max_workers: int,
        pipeline_factory: PipelineFactory,
        listener: Optional[Callable[[PipelineEvent], None]] = None,
    ):
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self.max_workers = max_workers
        self.pipeline_factory = pipeline_factory
        self.listener = listener
        self.semaphore = asyncio.Semaphore(max_workers)
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def request_cancel(self) -> None:
        if not self._cancelled:
            log.warning("[yellow]Cancellation requested, finishing active tracks...[/]")
        self._cancelled = True

    def _notify(self, outcome: TrackOutcome) -> None:
        if self.listener is None:
            return
        try:
            self.listener(
                PipelineEvent(
                    outcome.track_number, outcome.track, TrackStage.FAILED, outcome
                )
            )
        except Exception as e:
            log.debug(f"Progress listener raised: {e}")

    async def _run_track(self, track_number: int, track: Track) -> TrackOutcome:
        async with self.semaphore:
            if self._cancelled:
                outcome = TrackOutcome(
                    track_number=track_number,
                    track=track,
                    status=TrackStatus.FAILED,
                    failed_stage=TrackStage.QUEUED,
                    reason=CANCELLED_REASON,
                )
                self._notify(outcome)
                return outcome

            pipeline = None
            try:
                pipeline = self.pipeline_factory(track_number, track)
                return await pipeline.run()
            except Exception as e:
                # Pipelines report their own failures; this only catches bugs.
                stage = getattr(pipeline, "stage", TrackStage.QUEUED)
                if stage.is_terminal:
                    stage = TrackStage.QUEUED
                log.error(
                    f"[red]Unexpected error on track {track_number} "
                    f"({escape(track.display_name)}): {escape(str(e))}[/]",
                    exc_info=log.getEffectiveLevel() == logging.DEBUG,
                )
                outcome = TrackOutcome(
                    track_number=track_number,
                    track=track,
                    status=TrackStatus.FAILED,
                    failed_stage=stage,
                    reason=str(e) or type(e).__name__,
                )
                self._notify(outcome)
                return outcome

    async def run(self, tracks: Sequence[Track]) -> RunSummary:
        """
        Processes every track and returns their outcomes in playlist order.

        Completes only once every pipeline has reached a terminal stage.
        """
        start_time = time.monotonic()
        log.debug(
            f"Scheduling {len(tracks)} tracks with {self.max_workers} track permits"
        )
        tasks = [
            asyncio.create_task(self._run_track(number, track))
            for number, track in enumerate(tracks, start=1)
        ]
        outcomes = await asyncio.gather(*tasks)
        return RunSummary(
            outcomes=list(outcomes), duration_seconds=time.monotonic() - start_time
        )
