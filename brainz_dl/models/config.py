"""
Pydantic model for application configuration.
Provides robust validation for all settings.
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_AUDIO_FORMAT = "bestaudio[ext=m4a]/bestaudio[acodec^=mp4a]"


class DownloadConfig(BaseModel):
    """A validated configuration model for the application."""

    model_config = ConfigDict(validate_assignment=True, str_strip_whitespace=True)

    # Concurrency
    max_workers: int = 5
    image_workers: int = 4

    # Search & download
    search_results: int = 10
    audio_format: str = DEFAULT_AUDIO_FORMAT
    process_timeout: float = 600.0
    output_dir: str = "."

    # Artwork
    always_use_youtube_thumbnails: bool = False
    artwork_attempts: int = 5
    artwork_backoff: float = 1.0

    # yt-dlp management
    ytdlp_path: str = ""
    update_interval_hours: int = 24

    # Output extras
    no_m3u: bool = False

    # Internal fields not loaded from INI file
    config_path: str = Field(..., repr=False)
    quiet: bool = Field(default=False, repr=False)

    @field_validator("max_workers")
    @classmethod
    def validate_workers(cls, v: int) -> int:
        """Ensures a reasonable number of concurrent tracks."""
        if v < 1 or v > 32:
            raise ValueError("Max workers must be between 1 and 32.")
        return v

    @field_validator("image_workers")
    @classmethod
    def validate_image_workers(cls, v: int) -> int:
        if v < 1 or v > 16:
            raise ValueError("Image workers must be between 1 and 16.")
        return v

    @field_validator("search_results")
    @classmethod
    def validate_search_results(cls, v: int) -> int:
        if v < 1 or v > 50:
            raise ValueError("Search results must be between 1 and 50.")
        return v

    @field_validator("artwork_attempts")
    @classmethod
    def validate_artwork_attempts(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Artwork attempts must be at least 1.")
        return v

    @field_validator("artwork_backoff", "process_timeout")
    @classmethod
    def validate_non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError("Durations cannot be negative.")
        return v

    @field_validator("update_interval_hours")
    @classmethod
    def validate_update_interval(cls, v: int) -> int:
        if v < 0:
            raise ValueError("Update interval cannot be negative.")
        return v

    @field_validator("audio_format")
    @classmethod
    def validate_audio_format(cls, v: str) -> str:
        if not v:
            raise ValueError("Audio format selector cannot be empty.")
        return v

    @classmethod
    def get_ini_keys(cls) -> set[str]:
        """Returns a set of all keys that are expected in the INI file."""
        internal_fields = {"config_path", "quiet"}
        return {key for key in cls.model_fields if key not in internal_fields}
