"""
Cover artwork retrieval: an ordered attempt plan of image URLs, fetched with
retries and a fallback, then normalized to a bounded PNG.
"""

import asyncio
import io
import logging
from dataclasses import dataclass
from typing import Optional, Sequence

import aiohttp
from PIL import Image, UnidentifiedImageError

from brainz_dl.exceptions import ArtworkError, DecodeError, NetworkError
from brainz_dl.models.playlist import SearchCandidate, Track

log = logging.getLogger(__name__)

COVER_ART_URL = "https://coverartarchive.org/release/{release_id}/front"
MAX_ARTWORK_SIZE = (1920, 1080)
OUTPUT_FORMAT = "PNG"
OUTPUT_MIME = "image/png"

_connection_pool: aiohttp.ClientSession | None = None
_pool_lock = asyncio.Lock()


async def get_connection_pool(max_workers: int = 4) -> aiohttp.ClientSession:
    """
    Gets or creates the shared aiohttp ClientSession for artwork downloads.

    Only one pool is created for the lifetime of a run.
    """
    global _connection_pool
    async with _pool_lock:
        if _connection_pool and not _connection_pool.closed:
            return _connection_pool

        connector = aiohttp.TCPConnector(
            limit=max_workers * 2,
            limit_per_host=max_workers,
            ttl_dns_cache=600,
            enable_cleanup_closed=True,
        )
        timeout = aiohttp.ClientTimeout(total=60, sock_connect=15, sock_read=30)
        _connection_pool = aiohttp.ClientSession(connector=connector, timeout=timeout)
        log.debug(f"Created artwork pool with limit_per_host={max_workers}")

    return _connection_pool


async def close_connection_pool() -> None:
    """Closes the shared artwork connection pool."""
    global _connection_pool
    async with _pool_lock:
        if _connection_pool and not _connection_pool.closed:
            await _connection_pool.close()
            _connection_pool = None
            log.debug("Shared artwork connection pool closed.")


@dataclass(frozen=True)
class AttemptSpec:
    """One source in the artwork plan and how hard to try it."""

    url: str
    attempts: int = 1
    backoff: float = 0.0
    label: str = ""


def build_artwork_plan(
    track: Track,
    candidate: SearchCandidate,
    always_use_thumbnails: bool = False,
    attempts: int = 5,
    backoff: float = 1.0,
) -> list[AttemptSpec]:
    """
    Builds the ordered artwork plan for a track.

    The primary source is the Cover Art Archive front image of the track's release
    (or the candidate's best thumbnail when there is no release, or when
    thumbnails are forced) and is retried on transport failure. The fallback is
    a single attempt at the candidate's thumbnail.
    """
    thumbnail_url = candidate.best_thumbnail_url()
    plan = []
    if track.release_mbid and not always_use_thumbnails:
        plan.append(
            AttemptSpec(
                COVER_ART_URL.format(release_id=track.release_mbid),
                attempts=attempts,
                backoff=backoff,
                label="cover art archive",
            )
        )
    elif thumbnail_url:
        plan.append(
            AttemptSpec(
                thumbnail_url, attempts=attempts, backoff=backoff, label="thumbnail"
            )
        )
    if thumbnail_url:
        plan.append(AttemptSpec(thumbnail_url, attempts=1, label="thumbnail fallback"))
    return plan


def process_image(data: bytes, max_size: tuple[int, int] = MAX_ARTWORK_SIZE) -> bytes:
    """
    Decodes image bytes, downscales them to fit `max_size` if needed, and
    re-encodes them as PNG.

    Raises:
        DecodeError: If the bytes are not a recognized image.
    """
    try:
        with Image.open(io.BytesIO(data)) as img:
            img.load()
            if img.mode in ("P", "PA"):
                img = img.convert("RGBA")
            elif img.mode not in ("RGB", "RGBA", "L", "LA"):
                img = img.convert("RGB")
            if img.width > max_size[0] or img.height > max_size[1]:
                img.thumbnail(max_size, Image.Resampling.LANCZOS)
            output = io.BytesIO()
            img.save(output, format=OUTPUT_FORMAT, optimize=True)
            return output.getvalue()
    except (
        UnidentifiedImageError,
        Image.DecompressionBombError,
        OSError,
        ValueError,
    ) as e:
        raise DecodeError(f"Could not decode artwork: {e}") from e


class ArtworkFetcher:
    """Executes an artwork plan, one AttemptSpec after another."""

    def __init__(
        self, max_size: tuple[int, int] = MAX_ARTWORK_SIZE, pool_size: int = 4
    ):
        self.max_size = max_size
        self.pool_size = pool_size

    async def _download(self, url: str) -> bytes:
        session = await get_connection_pool(self.pool_size)
        async with session.get(url, allow_redirects=True) as response:
            if response.status >= 400:
                raise NetworkError(f"HTTP {response.status} for {url}")
            return await response.read()

    async def _try_source(self, source: AttemptSpec) -> bytes:
        """
        Fetches one source, retrying transport failures only.

        HTTP error statuses and undecodable bytes end this source immediately.
        """
        last_exception: Optional[Exception] = None
        for attempt in range(1, source.attempts + 1):
            try:
                data = await self._download(source.url)
                break
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                last_exception = e
                log.debug(
                    f"Artwork attempt {attempt}/{source.attempts} for {source.url} "
                    f"failed: {e}"
                )
                if attempt < source.attempts:
                    await asyncio.sleep(source.backoff)
        else:
            raise NetworkError(
                f"Gave up on {source.url} after {source.attempts} attempts: {last_exception}"
            ) from last_exception

        return await asyncio.to_thread(process_image, data, self.max_size)

    async def fetch(self, plan: Sequence[AttemptSpec]) -> bytes:
        """
        Returns PNG bytes from the first source in `plan` that succeeds.

        Raises:
            ArtworkError: If every source fails (or the plan is empty).
        """
        last_error: Optional[Exception] = None
        for source in plan:
            try:
                return await self._try_source(source)
            except (NetworkError, DecodeError) as e:
                last_error = e
                log.debug(f"Artwork source '{source.label or source.url}' failed: {e}")

        if last_error is None:
            raise ArtworkError("No artwork source available.")
        raise ArtworkError(f"All artwork sources failed: {last_error}") from last_error
