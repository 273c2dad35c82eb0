"""
yt-dlp Integration Layer.

This package manages the yt-dlp executable (platform asset selection, version
checks, downloads) and runs it for searches and audio downloads.
"""

from .manager import VersionManager
from .platform import PlatformKey, current_platform
from .runner import YtdlpRunner

__all__ = ["PlatformKey", "VersionManager", "YtdlpRunner", "current_platform"]
