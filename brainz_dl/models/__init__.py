"""
Data Models Layer.

This package contains the Pydantic models and dataclasses that define the core
data structures used throughout the application: configuration, playlists,
search results and run outcomes.
"""

from .config import DownloadConfig
from .playlist import Playlist, SearchCandidate, Thumbnail, Track
from .stats import PipelineEvent, RunSummary, TrackOutcome, TrackStage, TrackStatus

__all__ = [
    "DownloadConfig",
    "PipelineEvent",
    "Playlist",
    "RunSummary",
    "SearchCandidate",
    "Thumbnail",
    "Track",
    "TrackOutcome",
    "TrackStage",
    "TrackStatus",
]
