"""
Defines custom exceptions for the application to allow for more specific error handling.
"""


class BrainzDlError(Exception):
    """Base exception for all application-specific errors."""


class NoCandidatesError(BrainzDlError):
    """Raised when a search yields no usable results or the matcher gets none."""


class ExternalProcessError(BrainzDlError):
    """
    Raised when the yt-dlp executable exits with a non-zero status or reports
    errors on stderr.
    """

    def __init__(self, message: str, returncode: int | None = None, stderr: str = ""):
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr


class NetworkError(BrainzDlError):
    """Raised for transport-level failures talking to a remote endpoint."""


class DecodeError(BrainzDlError):
    """Raised when downloaded image bytes are not a recognized image format."""


class ArtworkError(BrainzDlError):
    """Raised when every artwork source in the attempt plan has been exhausted."""


class UnsupportedPlatformError(BrainzDlError):
    """Raised when no yt-dlp release asset exists for the current OS/architecture."""


class PersistenceError(BrainzDlError):
    """Raised when the yt-dlp manager state cannot be read or written."""


class ConfigurationError(BrainzDlError):
    """Raised for issues related to configuration loading or validation."""


class PlaylistError(BrainzDlError):
    """Raised when a playlist cannot be loaded or parsed."""


class FileIntegrityError(BrainzDlError):
    """Raised when a downloaded file fails a post-download integrity check."""
