"""
Utility for generating M3U playlist files.
"""

import logging
from pathlib import Path
from typing import Sequence

from mutagen import File as MutagenFile
from mutagen import MutagenError

log = logging.getLogger(__name__)


def generate_m3u(playlist_directory: Path, audio_files: Sequence[Path]) -> bool:
    """
    Generates an M3U playlist for the given audio files, keeping their order.

    Files that do not exist (failed tracks) are left out.
    """
    playlist_path = playlist_directory / f"{playlist_directory.name}.m3u"
    present = [p for p in audio_files if p.is_file()]

    if not present:
        log.debug(f"No audio files found in '{playlist_directory}' to create playlist.")
        return False

    content = ["#EXTM3U"]
    for audio_path in present:
        try:
            audio = MutagenFile(audio_path, easy=True)
            if audio is None:
                raise MutagenError(f"Unrecognized audio file: {audio_path.name}")
            length = int(audio.info.length) if audio.info else -1
            artist = audio.get("artist", ["Unknown Artist"])[0]
            title = audio.get("title", [audio_path.stem])[0]
            content.append(f"#EXTINF:{length},{artist} - {title}")
        except MutagenError:
            content.append(f"#EXTINF:-1,{audio_path.stem}")
        content.append(audio_path.relative_to(playlist_directory).as_posix())

    try:
        with open(playlist_path, "w", encoding="utf-8") as f:
            f.write("\n".join(content))
        log.info(f"Generated playlist: '{playlist_path}'")
        return True
    except OSError as e:
        log.error(f"Failed to write playlist file: {e}")
        return False
