import asyncio
import json
import os
import stat
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, Mock, patch

import aiohttp
import pytest

from brainz_dl.exceptions import (
    NetworkError,
    PersistenceError,
    UnsupportedPlatformError,
)
from brainz_dl.storage.state import ManagerState, StateStore
from brainz_dl.ytdlp.manager import (
    RELEASES_URL,
    Release,
    ReleaseAsset,
    VersionManager,
    select_asset,
)
from brainz_dl.ytdlp.platform import Arch, OsFamily, PlatformKey

LINUX_X64 = PlatformKey(OsFamily.LINUX, Arch.X64)
NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


def _release(version, names=("yt-dlp_linux", "yt-dlp.exe", "yt-dlp_macos")):
    return Release(
        name=f"yt-dlp {version}",
        tag_name=version,
        assets=[
            ReleaseAsset(name=n, browser_download_url=f"https://example.invalid/{n}")
            for n in names
        ],
    )


class TestVersionManager:
    """Freshness window, upstream checks and state persistence."""

    @pytest.fixture(autouse=True)
    def _dirs(self, tmp_path):
        self.state_file = tmp_path / "cache" / "ytdlp.json"
        self.data_dir = tmp_path / "data"
        self.data_dir.mkdir()
        self.executable = self.data_dir / "yt-dlp_linux"
        self.executable.write_bytes(b"#!/bin/sh\n")
        self.store = StateStore(self.state_file)

    def _manager(self, checked_ago, version="2024.04.09"):
        state = ManagerState(
            last_version=version,
            last_checked=NOW - checked_ago,
            path=str(self.executable),
        )
        return VersionManager(
            self.store, self.data_dir, state=state, platform_key=LINUX_X64
        )

    def test_recent_check_skips_the_network(self):
        manager = self._manager(timedelta(hours=1))
        fetch = AsyncMock()
        download = AsyncMock()

        with patch.object(VersionManager, "_fetch_latest_release", fetch), patch.object(
            VersionManager, "_download_asset", download
        ):
            path = asyncio.run(manager.ensure_current(now=NOW))

        assert path == self.executable
        fetch.assert_not_awaited()
        download.assert_not_awaited()
        assert not self.state_file.exists()

    def test_stale_check_queries_upstream_exactly_once(self):
        manager = self._manager(timedelta(hours=25))
        fetch = AsyncMock(return_value=_release("2024.04.09"))

        with patch.object(VersionManager, "_fetch_latest_release", fetch):
            asyncio.run(manager.ensure_current(now=NOW))

        assert fetch.await_count == 1

    def test_same_version_only_refreshes_last_checked(self):
        manager = self._manager(timedelta(hours=25))
        fetch = AsyncMock(return_value=_release("2024.04.09"))
        download = AsyncMock()

        with patch.object(VersionManager, "_fetch_latest_release", fetch), patch.object(
            VersionManager, "_download_asset", download
        ):
            path = asyncio.run(manager.ensure_current(now=NOW))

        download.assert_not_awaited()
        assert path == self.executable
        assert manager.state.last_version == "2024.04.09"
        assert manager.state.last_checked == NOW
        assert manager.state.path == str(self.executable)

        saved = self.store.load()
        assert saved == manager.state

    def test_new_version_downloads_and_persists(self):
        manager = self._manager(timedelta(days=3))
        new_path = self.data_dir / "yt-dlp_linux"
        fetch = AsyncMock(return_value=_release("2024.05.27"))
        download = AsyncMock(return_value=new_path)

        with patch.object(VersionManager, "_fetch_latest_release", fetch), patch.object(
            VersionManager, "_download_asset", download
        ):
            path = asyncio.run(manager.ensure_current(now=NOW))

        assert path == new_path
        assert download.await_args.args[0].name == "yt-dlp_linux"
        with open(self.state_file, encoding="utf-8") as f:
            saved = json.load(f)
        assert saved["last_version"] == "2024.05.27"
        assert saved["path"] == str(new_path)

    def test_force_ignores_the_freshness_window(self):
        manager = self._manager(timedelta(minutes=5))
        fetch = AsyncMock(return_value=_release("2024.04.09"))

        with patch.object(VersionManager, "_fetch_latest_release", fetch):
            asyncio.run(manager.ensure_current(now=NOW, force=True))

        assert fetch.await_count == 1

    def test_missing_executable_is_downloaded_even_when_fresh(self):
        manager = self._manager(timedelta(hours=1))
        self.executable.unlink()
        fetch = AsyncMock(return_value=_release("2024.04.09"))
        download = AsyncMock(return_value=self.executable)

        with patch.object(VersionManager, "_fetch_latest_release", fetch), patch.object(
            VersionManager, "_download_asset", download
        ):
            asyncio.run(manager.ensure_current(now=NOW))

        assert download.await_count == 1

    def test_network_failure_propagates_and_keeps_state(self):
        manager = self._manager(timedelta(hours=30))
        before = manager.state
        fetch = AsyncMock(side_effect=NetworkError("offline"))

        with patch.object(VersionManager, "_fetch_latest_release", fetch):
            with pytest.raises(NetworkError):
                asyncio.run(manager.ensure_current(now=NOW))

        assert manager.state is before


class TestSelectAsset:
    def test_exact_name_match(self):
        asset = select_asset(_release("v").assets, LINUX_X64)
        assert asset.name == "yt-dlp_linux"

    def test_aarch64_linux_does_not_fall_back_to_x64_build(self):
        key = PlatformKey(OsFamily.LINUX, Arch.AARCH64)
        with pytest.raises(UnsupportedPlatformError):
            select_asset(_release("v").assets, key)

    def test_windows_arm_falls_back_to_generic_exe(self):
        key = PlatformKey(OsFamily.WINDOWS, Arch.AARCH64)
        assert select_asset(_release("v").assets, key).name == "yt-dlp.exe"


class FakeResponse:
    def __init__(self, status=200, payload=None, chunks=(), error=None):
        self.status = status
        self.payload = payload
        self.chunks = chunks
        self.error = error

    def raise_for_status(self):
        if self.status >= 400:
            raise aiohttp.ClientResponseError(
                Mock(), (), status=self.status, message="Not Found"
            )

    async def json(self):
        return self.payload

    @property
    def content(self):
        return self

    async def iter_chunked(self, size):
        for chunk in self.chunks:
            yield chunk
        if self.error is not None:
            raise self.error

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False


class FakeSession:
    """Stands in for aiohttp.ClientSession, answering from a url -> response map."""

    def __init__(self, routes):
        self.routes = routes

    def __call__(self, **kwargs):
        return self

    def get(self, url, **kwargs):
        return self.routes[url]

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False


class TestReleaseTransport:
    """Release query and asset download against a fake HTTP session."""

    ASSET_URL = "https://example.invalid/yt-dlp_linux"

    @pytest.fixture(autouse=True)
    def _dirs(self, tmp_path):
        self.state_file = tmp_path / "cache" / "ytdlp.json"
        self.data_dir = tmp_path / "data"
        self.data_dir.mkdir()
        self.asset = ReleaseAsset(name="yt-dlp_linux", browser_download_url=self.ASSET_URL)
        self.part_file = self.data_dir / "yt-dlp_linux.part"
        self.manager = VersionManager(
            StateStore(self.state_file), self.data_dir, platform_key=LINUX_X64
        )

    def _serve(self, routes, coro_factory):
        with patch("brainz_dl.ytdlp.manager.aiohttp.ClientSession", FakeSession(routes)):
            return asyncio.run(coro_factory())

    def test_asset_is_streamed_into_place(self):
        routes = {self.ASSET_URL: FakeResponse(chunks=[b"#!/bin/sh\n", b"echo 1\n"])}

        path = self._serve(routes, lambda: self.manager._download_asset(self.asset))

        assert path == self.data_dir / "yt-dlp_linux"
        assert path.read_bytes() == b"#!/bin/sh\necho 1\n"
        assert not self.part_file.exists()

    @pytest.mark.skipif(os.name == "nt", reason="POSIX permission bits")
    def test_downloaded_asset_is_executable(self):
        routes = {self.ASSET_URL: FakeResponse(chunks=[b"#!/bin/sh\n"])}

        path = self._serve(routes, lambda: self.manager._download_asset(self.asset))

        assert path.stat().st_mode & stat.S_IXUSR

    def test_interrupted_stream_keeps_the_previous_binary(self):
        previous = self.data_dir / "yt-dlp_linux"
        previous.write_bytes(b"old build")
        routes = {
            self.ASSET_URL: FakeResponse(
                chunks=[b"half"], error=aiohttp.ClientPayloadError("truncated")
            )
        }

        with pytest.raises(NetworkError):
            self._serve(routes, lambda: self.manager._download_asset(self.asset))

        assert previous.read_bytes() == b"old build"
        assert not self.part_file.exists()

    def test_http_error_on_asset_is_a_network_error(self):
        routes = {self.ASSET_URL: FakeResponse(status=404)}
        with pytest.raises(NetworkError):
            self._serve(routes, lambda: self.manager._download_asset(self.asset))
        assert not self.part_file.exists()

    def test_unwritable_data_dir_is_a_persistence_error(self, tmp_path):
        blocked = tmp_path / "blocked"
        blocked.write_bytes(b"")
        manager = VersionManager(
            StateStore(self.state_file), blocked, platform_key=LINUX_X64
        )
        routes = {self.ASSET_URL: FakeResponse(chunks=[b"x"])}

        with pytest.raises(PersistenceError):
            self._serve(routes, lambda: manager._download_asset(self.asset))

    def test_release_metadata_is_parsed(self):
        payload = {
            "tag_name": "2024.05.27",
            "assets": [{"name": "yt-dlp_linux", "browser_download_url": self.ASSET_URL}],
        }
        release = self._serve(
            {RELEASES_URL: FakeResponse(payload=payload)},
            self.manager._fetch_latest_release,
        )
        assert release.version == "2024.05.27"
        assert release.assets[0].name == "yt-dlp_linux"

    def test_release_http_error_is_a_network_error(self):
        with pytest.raises(NetworkError):
            self._serve(
                {RELEASES_URL: FakeResponse(status=403)},
                self.manager._fetch_latest_release,
            )

    def test_malformed_release_metadata_is_a_network_error(self):
        payload = {"tag_name": "2024.05.27", "assets": [{"name": "yt-dlp_linux"}]}
        with pytest.raises(NetworkError):
            self._serve(
                {RELEASES_URL: FakeResponse(payload=payload)},
                self.manager._fetch_latest_release,
            )

    def test_first_run_downloads_and_records_state(self):
        routes = {
            RELEASES_URL: FakeResponse(
                payload={
                    "tag_name": "2024.05.27",
                    "assets": [
                        {"name": "yt-dlp_linux", "browser_download_url": self.ASSET_URL}
                    ],
                }
            ),
            self.ASSET_URL: FakeResponse(chunks=[b"#!/bin/sh\n"]),
        }

        path = self._serve(routes, lambda: self.manager.ensure_current(now=NOW))

        assert path.read_bytes() == b"#!/bin/sh\n"
        saved = StateStore(self.state_file).load()
        assert saved.last_version == "2024.05.27"
        assert saved.last_checked == NOW
        assert saved.path == str(path)
