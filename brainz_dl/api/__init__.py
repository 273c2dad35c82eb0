"""
ListenBrainz API Layer.

This package handles all communication with the ListenBrainz API.
"""

from .listenbrainz import ListenBrainzClient, playlist_mbid_from_identifier

__all__ = ["ListenBrainzClient", "playlist_mbid_from_identifier"]
