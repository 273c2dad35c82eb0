import asyncio

import pytest

from brainz_dl.core.scheduler import PlaylistScheduler
from brainz_dl.models.stats import (
    CANCELLED_REASON,
    TrackOutcome,
    TrackStage,
    TrackStatus,
)
from conftest import make_track


class FakePipeline:
    def __init__(self, probe, track_number, track):
        self.probe = probe
        self.track_number = track_number
        self.track = track
        self.stage = TrackStage.QUEUED

    async def run(self):
        self.probe.started.append(self.track_number)
        self.probe.active += 1
        self.probe.peak = max(self.probe.peak, self.probe.active)
        try:
            await asyncio.sleep(self.probe.delays.get(self.track_number, 0.01))
            if self.track_number in self.probe.failing:
                self.stage = TrackStage.FETCHING
                raise RuntimeError("boom")
            if self.track_number == self.probe.cancel_after:
                self.probe.scheduler.request_cancel()
            return TrackOutcome(self.track_number, self.track, TrackStatus.DONE)
        finally:
            self.probe.active -= 1


class Probe:
    def __init__(self):
        self.active = 0
        self.peak = 0
        self.started = []
        self.failing = set()
        self.delays = {}
        self.cancel_after = None
        self.scheduler = None

    def factory(self, track_number, track):
        return FakePipeline(self, track_number, track)


def _tracks(n):
    return [make_track(f"Song {i}") for i in range(1, n + 1)]


class TestPlaylistScheduler:
    def setup_method(self):
        self.probe = Probe()
        self.events = []

    def _run(self, max_workers, tracks):
        async def main():
            scheduler = PlaylistScheduler(
                max_workers, self.probe.factory, listener=self.events.append
            )
            self.probe.scheduler = scheduler
            return await scheduler.run(tracks)

        return asyncio.run(main())

    @pytest.mark.parametrize("max_workers", [1, 2, 3])
    def test_never_more_than_k_pipelines_active(self, max_workers):
        summary = self._run(max_workers, _tracks(8))

        assert self.probe.peak == max_workers
        assert summary.tracks_downloaded == 8

    def test_tracks_start_in_playlist_order(self):
        self._run(2, _tracks(6))
        assert self.probe.started == [1, 2, 3, 4, 5, 6]

    def test_outcomes_follow_playlist_order(self):
        self.probe.delays = {1: 0.05, 2: 0.0, 3: 0.02}
        summary = self._run(3, _tracks(3))
        assert [o.track_number for o in summary.outcomes] == [1, 2, 3]
        assert summary.duration_seconds > 0

    def test_one_failure_does_not_affect_the_others(self):
        self.probe.failing = {2}

        summary = self._run(2, _tracks(4))

        statuses = [o.status for o in summary.outcomes]
        assert statuses == [
            TrackStatus.DONE,
            TrackStatus.FAILED,
            TrackStatus.DONE,
            TrackStatus.DONE,
        ]
        failed = summary.outcomes[1]
        assert failed.failed_stage == TrackStage.FETCHING
        assert failed.reason == "boom"
        assert summary.tracks_failed == 1

    def test_cancel_stops_unstarted_tracks(self):
        self.probe.cancel_after = 1

        summary = self._run(1, _tracks(4))

        assert summary.outcomes[0].status == TrackStatus.DONE
        for outcome in summary.outcomes[1:]:
            assert outcome.status == TrackStatus.FAILED
            assert outcome.failed_stage == TrackStage.QUEUED
            assert outcome.reason == CANCELLED_REASON
        assert self.probe.started == [1]
        assert summary.tracks_cancelled == 3
        assert len([e for e in self.events if e.stage == TrackStage.FAILED]) == 3

    def test_in_flight_tracks_finish_after_cancel(self):
        self.probe.cancel_after = 1
        self.probe.delays = {1: 0.0, 2: 0.05}

        summary = self._run(2, _tracks(3))

        assert summary.outcomes[1].status == TrackStatus.DONE
        assert summary.outcomes[2].cancelled

    def test_empty_playlist(self):
        summary = self._run(3, [])
        assert summary.outcomes == []

    def test_rejects_zero_workers(self):
        with pytest.raises(ValueError):
            PlaylistScheduler(0, self.probe.factory)
