"""
Resolves, downloads and refreshes the yt-dlp executable used by the pipeline.
"""

import asyncio
import logging
import os
import stat
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional, Sequence

import aiofiles
import aiohttp
from pydantic import BaseModel, Field, ValidationError

from brainz_dl import __version__
from brainz_dl.exceptions import NetworkError, PersistenceError, UnsupportedPlatformError
from brainz_dl.storage.state import STATE_FILE_NAME, ManagerState, StateStore

from .platform import PlatformKey, asset_names, current_platform

log = logging.getLogger(__name__)

RELEASES_URL = "https://api.github.com/repos/yt-dlp/yt-dlp/releases/latest"
DEFAULT_UPDATE_INTERVAL = timedelta(hours=24)
CHUNK_SIZE = 262144  # 256 KB


class ReleaseAsset(BaseModel):
    name: str
    browser_download_url: str


class Release(BaseModel):
    name: str = ""
    tag_name: str = ""
    assets: list[ReleaseAsset] = Field(default_factory=list)

    @property
    def version(self) -> str:
        return self.tag_name or self.name


def select_asset(assets: Sequence[ReleaseAsset], key: PlatformKey) -> ReleaseAsset:
    """
    Picks the release asset for a platform by exact name match.

    Raises:
        UnsupportedPlatformError: If no acceptable asset name is in the release.
    """
    by_name = {asset.name: asset for asset in assets}
    wanted = asset_names(key)
    for name in wanted:
        if name in by_name:
            return by_name[name]
    raise UnsupportedPlatformError(
        f"The latest yt-dlp release has no asset named {', '.join(wanted)}."
    )


class VersionManager:
    """
    Keeps a cached (version, last_checked, path) triple for yt-dlp up to date.

    The state is an explicit value: it is loaded once, replaced only by
    `ensure_current`, and every replacement is persisted before it takes effect.
    """

    def __init__(
        self,
        state_store: StateStore,
        data_dir: Path,
        state: Optional[ManagerState] = None,
        update_interval: timedelta = DEFAULT_UPDATE_INTERVAL,
        platform_key: Optional[PlatformKey] = None,
    ):
        self.state_store = state_store
        self.data_dir = data_dir
        self.state = state if state is not None else state_store.load()
        self.update_interval = update_interval
        self.platform_key = platform_key or current_platform()

    @classmethod
    def from_dirs(
        cls,
        cache_dir: Path,
        data_dir: Path,
        update_interval: timedelta = DEFAULT_UPDATE_INTERVAL,
    ) -> "VersionManager":
        return cls(
            StateStore(cache_dir / STATE_FILE_NAME),
            data_dir,
            update_interval=update_interval,
        )

    def _is_fresh(self, now: datetime) -> bool:
        last_checked = self.state.last_checked
        if last_checked is None:
            return False
        age = now - last_checked
        return timedelta(0) <= age < self.update_interval

    def _cached_executable(self) -> Optional[Path]:
        path = self.state.executable
        if path and path.is_file():
            return path
        return None

    def _commit(self, new_state: ManagerState) -> None:
        """Persists a new state, then makes it the live one."""
        self.state_store.save(new_state)
        self.state = new_state

    async def ensure_current(
        self, now: Optional[datetime] = None, force: bool = False
    ) -> Path:
        """
        Returns the path of an up-to-date yt-dlp executable.

        Within the freshness window the cached path is returned without any
        network access. Otherwise the latest upstream release is queried and, if
        its version differs from the cached one, the matching asset is downloaded.

        Raises:
            NetworkError: If the release endpoint or the asset cannot be fetched.
            PersistenceError: If the executable or the state cannot be written.
            UnsupportedPlatformError: If no asset exists for this platform.
        """
        now = now or datetime.now(timezone.utc)
        cached = self._cached_executable()

        if not force and cached and self._is_fresh(now):
            log.debug(
                f"yt-dlp {self.state.last_version} was checked recently, "
                "skipping update."
            )
            return cached

        release = await self._fetch_latest_release()

        if cached and release.version == self.state.last_version:
            log.debug(f"yt-dlp {release.version} is already the latest version.")
            self._commit(self.state.model_copy(update={"last_checked": now}))
            return cached

        asset = select_asset(release.assets, self.platform_key)
        log.info(f"Downloading yt-dlp [cyan]{release.version}[/cyan] ({asset.name})...")
        path = await self._download_asset(asset)
        self._commit(
            ManagerState(last_version=release.version, last_checked=now, path=str(path))
        )
        log.info(f"[green]✓ yt-dlp {release.version} installed at[/] [dim]{path}[/dim]")
        return path

    async def _fetch_latest_release(self) -> Release:
        headers = {
            "User-Agent": f"brainz-dl/{__version__}",
            "Accept": "application/vnd.github+json",
        }
        timeout = aiohttp.ClientTimeout(total=30)
        try:
            async with aiohttp.ClientSession(timeout=timeout, headers=headers) as session:
                async with session.get(RELEASES_URL) as response:
                    response.raise_for_status()
                    payload = await response.json()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise NetworkError(f"Could not query the latest yt-dlp release: {e}") from e

        try:
            return Release.model_validate(payload)
        except ValidationError as e:
            raise NetworkError(f"Unexpected yt-dlp release metadata: {e}") from e

    async def _download_asset(self, asset: ReleaseAsset) -> Path:
        """Streams an asset into the data directory and marks it executable."""
        final_path = self.data_dir / asset.name
        temp_path = final_path.with_name(f"{asset.name}.part")
        headers = {"User-Agent": f"brainz-dl/{__version__}"}
        timeout = aiohttp.ClientTimeout(total=None, sock_connect=15, sock_read=90)

        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
            async with aiohttp.ClientSession(timeout=timeout, headers=headers) as session:
                async with session.get(
                    asset.browser_download_url, allow_redirects=True
                ) as response:
                    response.raise_for_status()
                    async with aiofiles.open(temp_path, "wb") as f:
                        async for chunk in response.content.iter_chunked(CHUNK_SIZE):
                            await f.write(chunk)
            os.replace(temp_path, final_path)
            if os.name != "nt":
                mode = final_path.stat().st_mode
                final_path.chmod(mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise NetworkError(f"Failed to download {asset.name}: {e}") from e
        except OSError as e:
            raise PersistenceError(f"Failed to store {asset.name}: {e}") from e
        finally:
            if temp_path.exists():
                try:
                    os.remove(temp_path)
                except OSError:
                    pass

        return final_path
