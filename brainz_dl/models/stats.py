"""
Dataclasses describing per-track outcomes and the summary of a download run.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional

from .playlist import Track


class TrackStage(str, Enum):
    """Stages a track pipeline moves through, strictly forward."""

    QUEUED = "queued"
    SEARCHING = "searching"
    MATCHING = "matching"
    FETCHING = "fetching"
    TAGGING = "tagging"
    DONE = "done"
    FAILED = "failed"

    @property
    def order(self) -> int:
        return _STAGE_ORDER[self]

    @property
    def is_terminal(self) -> bool:
        return self in (TrackStage.DONE, TrackStage.FAILED)


_STAGE_ORDER = {stage: i for i, stage in enumerate(TrackStage)}


class TrackStatus(str, Enum):
    DONE = "done"
    SKIPPED = "skipped"
    FAILED = "failed"


CANCELLED_REASON = "cancelled"


@dataclass(frozen=True)
class TrackOutcome:
    """The terminal result of one track pipeline."""

    track_number: int
    track: Track
    status: TrackStatus
    failed_stage: Optional[TrackStage] = None
    reason: str = ""
    output_path: Optional[Path] = None

    @property
    def succeeded(self) -> bool:
        return self.status in (TrackStatus.DONE, TrackStatus.SKIPPED)

    @property
    def cancelled(self) -> bool:
        return self.status == TrackStatus.FAILED and self.reason == CANCELLED_REASON


@dataclass(frozen=True)
class PipelineEvent:
    """A best-effort progress signal emitted by a pipeline."""

    track_number: int
    track: Track
    stage: TrackStage
    outcome: Optional[TrackOutcome] = None


@dataclass
class RunSummary:
    """Outcomes of a whole run, in playlist order."""

    outcomes: list[TrackOutcome] = field(default_factory=list)
    duration_seconds: float = 0.0

    @property
    def tracks_downloaded(self) -> int:
        return sum(1 for o in self.outcomes if o.status == TrackStatus.DONE)

    @property
    def tracks_skipped(self) -> int:
        return sum(1 for o in self.outcomes if o.status == TrackStatus.SKIPPED)

    @property
    def tracks_cancelled(self) -> int:
        return sum(1 for o in self.outcomes if o.cancelled)

    @property
    def tracks_failed(self) -> int:
        return sum(
            1
            for o in self.outcomes
            if o.status == TrackStatus.FAILED and not o.cancelled
        )

    @property
    def failures(self) -> list[TrackOutcome]:
        return [o for o in self.outcomes if not o.succeeded]

    @property
    def total_size_downloaded(self) -> int:
        total = 0
        for outcome in self.outcomes:
            if outcome.status == TrackStatus.DONE and outcome.output_path:
                try:
                    total += outcome.output_path.stat().st_size
                except OSError:
                    pass
        return total
