"""
Provides methods for checking the integrity of downloaded media files.
"""

import logging
from pathlib import Path

from mutagen import MutagenError
from mutagen.mp4 import MP4, MP4StreamInfoError

log = logging.getLogger(__name__)


class FileIntegrityChecker:
    """A collection of static methods for validating media file integrity."""

    @staticmethod
    def check_m4a(filepath: Path) -> bool:
        """
        Performs a basic integrity check on an MP4/M4A audio file.

        Checks if the file can be opened by mutagen and has valid stream info.

        Args:
            filepath: Path to the M4A file.

        Returns:
            True if the file appears to be a valid M4A file, False otherwise.
        """
        try:
            audio = MP4(filepath)
            if audio.info and audio.info.length > 0:
                return True
            log.warning(
                f"M4A integrity check failed for '{filepath}': No valid stream info."
            )
            return False
        except MP4StreamInfoError:
            log.warning(
                f"M4A integrity check failed for '{filepath}': Missing audio stream."
            )
            return False
        except (MutagenError, OSError) as e:
            log.debug(f"M4A check failed for '{filepath}' with unexpected error: {e}")
            return False
