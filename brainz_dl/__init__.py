"""
brainz-dl: download ListenBrainz playlists as tagged audio files using yt-dlp.
"""

__version__ = "0.3.0"
