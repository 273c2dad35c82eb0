"""
Media Processing Layer.

This package is responsible for all media file operations: audio and artwork
retrieval, image normalization, metadata tagging, and integrity validation.
"""

from .artwork import ArtworkFetcher, AttemptSpec, build_artwork_plan, process_image
from .fetcher import FetchResult, MediaFetcher
from .integrity import FileIntegrityChecker
from .tagger import Tagger

__all__ = [
    "ArtworkFetcher",
    "AttemptSpec",
    "FetchResult",
    "FileIntegrityChecker",
    "MediaFetcher",
    "Tagger",
    "build_artwork_plan",
    "process_image",
]
