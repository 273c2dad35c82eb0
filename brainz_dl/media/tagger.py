"""
Writes playlist and track metadata as MP4 atoms into downloaded audio files.
"""

import logging
from pathlib import Path

from mutagen.mp4 import MP4, MP4Cover, MP4FreeForm

from brainz_dl.models.playlist import SearchCandidate, Track

log = logging.getLogger(__name__)

ALBUM_ARTIST = "ListenBrainz"
ORIGINAL_ALBUM_KEY = "----:com.apple.iTunes:ORIGINAL ALBUM"


def build_comment(track: Track, candidate: SearchCandidate) -> str:
    source = track.identifier[0] if track.identifier else ""
    return f"url: {source} yt-url: {candidate.webpage_url}"


class Tagger:
    """
    Tags an MP4 audio file in place.

    The playlist becomes the album (so players group the tracks together) and
    the track's own album is kept in a free-form atom.
    """

    def __init__(self, album_artist: str = ALBUM_ARTIST):
        self.album_artist = album_artist

    def tag_file(
        self,
        file_path: Path,
        track: Track,
        candidate: SearchCandidate,
        playlist_title: str,
        track_number: int,
        track_total: int,
        artwork: bytes,
    ) -> None:
        """
        Writes all tags and the PNG cover to `file_path`.

        Raises:
            mutagen.MutagenError: If the file is not a readable MP4 container.
        """
        audio = MP4(file_path)
        if audio.tags is None:
            audio.add_tags()

        tags = audio.tags
        tags["\xa9nam"] = [track.title]
        if track.creator:
            tags["\xa9ART"] = [track.creator]
        tags["\xa9alb"] = [playlist_title]
        tags["aART"] = [self.album_artist]
        tags["trkn"] = [(track_number, track_total)]
        tags["\xa9cmt"] = [build_comment(track, candidate)]
        if track.album:
            tags[ORIGINAL_ALBUM_KEY] = [MP4FreeForm(track.album.encode("utf-8"))]
        if artwork:
            tags["covr"] = [MP4Cover(artwork, imageformat=MP4Cover.FORMAT_PNG)]

        audio.save()
        log.debug(f"Tagged '{file_path.name}' as track {track_number}/{track_total}")
