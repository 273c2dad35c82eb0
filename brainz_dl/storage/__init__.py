"""
Storage Layer.

This package handles all data persistence: the configuration file and the
cached yt-dlp version state.
"""

from .config_manager import ConfigManager
from .state import ManagerState, StateStore

__all__ = ["ConfigManager", "ManagerState", "StateStore"]
