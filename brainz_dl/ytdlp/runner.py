"""
Thin async wrapper around the yt-dlp executable: searching and audio downloads.
"""

import asyncio
import json
import logging
import os
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from brainz_dl.exceptions import ExternalProcessError, NoCandidatesError
from brainz_dl.models.playlist import SearchCandidate, Track

log = logging.getLogger(__name__)

SEARCH_PRINT_TEMPLATE = (
    "%(.{title,webpage_url,duration,uploader,thumbnails,thumbnail,view_count})j"
)


def build_search_query(track: Track, limit: int) -> str:
    return f"ytsearch{limit}:{track.title} {track.creator}".rstrip()


def parse_search_output(stdout: str) -> list[SearchCandidate]:
    """Parses one JSON object per line; malformed lines are skipped."""
    candidates = []
    for line in stdout.splitlines():
        line = line.strip().rstrip(",")
        if not line:
            continue
        try:
            candidates.append(SearchCandidate.model_validate(json.loads(line)))
        except (json.JSONDecodeError, ValidationError) as e:
            log.debug(f"Ignoring unparsable search result line: {e}")
    return candidates


class YtdlpRunner:
    """Runs yt-dlp subprocesses against a single, fixed executable path."""

    def __init__(self, executable: Path | str, timeout: Optional[float] = None):
        self.executable = str(executable)
        self.timeout = timeout or None

    async def _run(self, *args: str) -> tuple[int, str, str]:
        """Runs the executable and returns (returncode, stdout, stderr)."""
        try:
            proc = await asyncio.create_subprocess_exec(
                self.executable,
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                # Ctrl-C reaches only this process; the child is stopped through kill().
                start_new_session=os.name != "nt",
            )
        except OSError as e:
            raise ExternalProcessError(
                f"Could not start yt-dlp at '{self.executable}': {e}"
            ) from e

        try:
            stdout, stderr = await asyncio.wait_for(
                proc.communicate(), timeout=self.timeout
            )
        except asyncio.TimeoutError as e:
            await self._kill(proc)
            raise ExternalProcessError(
                f"yt-dlp did not finish within {self.timeout:.0f}s."
            ) from e
        except BaseException:
            await self._kill(proc)
            raise

        return (
            proc.returncode,
            stdout.decode("utf-8", errors="replace"),
            stderr.decode("utf-8", errors="replace"),
        )

    @staticmethod
    async def _kill(proc: asyncio.subprocess.Process) -> None:
        if proc.returncode is not None:
            return
        try:
            proc.kill()
        except ProcessLookupError:
            pass
        await asyncio.shield(proc.wait())

    async def search(self, track: Track, limit: int = 10) -> list[SearchCandidate]:
        """
        Asks yt-dlp for up to `limit` ranked results for "{title} {creator}".

        Raises:
            ExternalProcessError: On a non-zero exit or any stderr output.
            NoCandidatesError: If no result could be parsed.
        """
        returncode, stdout, stderr = await self._run(
            build_search_query(track, limit),
            "--flat-playlist",
            "--skip-download",
            "--quiet",
            "--ignore-errors",
            "--print",
            SEARCH_PRINT_TEMPLATE,
        )
        if returncode != 0 or stderr.strip():
            raise ExternalProcessError(
                f"yt-dlp search failed: {stderr.strip() or f'exit code {returncode}'}",
                returncode=returncode,
                stderr=stderr,
            )

        candidates = parse_search_output(stdout)
        if not candidates:
            raise NoCandidatesError(
                f'No video was found for "{track.title}" by {track.creator}'
            )
        log.debug(f"Search for '{track.display_name}' returned {len(candidates)} results.")
        return candidates

    async def download_audio(
        self, url: str, destination_path: Path, audio_format: str
    ) -> None:
        """
        Downloads the best available audio stream of `url` into `destination_path`.

        A failed download is not retried here.

        Raises:
            ExternalProcessError: If yt-dlp exits with a non-zero status.
        """
        returncode, _, stderr = await self._run(
            "-f",
            audio_format,
            "-o",
            str(destination_path).replace("%", "%%"),
            "--no-playlist",
            "--no-progress",
            "--quiet",
            "--force-overwrites",
            "--no-part",
            "--",
            url,
        )
        if returncode != 0:
            raise ExternalProcessError(
                f"yt-dlp download failed: {stderr.strip() or f'exit code {returncode}'}",
                returncode=returncode,
                stderr=stderr,
            )
        if not destination_path.is_file():
            raise ExternalProcessError(
                f"yt-dlp reported success but wrote no file for {url}",
                returncode=returncode,
                stderr=stderr,
            )
