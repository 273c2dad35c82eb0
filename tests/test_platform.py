import pytest

from brainz_dl.exceptions import UnsupportedPlatformError
from brainz_dl.ytdlp.platform import (
    Arch,
    OsFamily,
    PlatformKey,
    asset_names,
    detect_platform,
)


@pytest.mark.parametrize(
    "system, machine, expected",
    [
        ("Linux", "x86_64", PlatformKey(OsFamily.LINUX, Arch.X64)),
        ("Linux", "armv7l", PlatformKey(OsFamily.LINUX, Arch.ARM)),
        ("Linux", "aarch64", PlatformKey(OsFamily.LINUX, Arch.AARCH64)),
        ("Windows", "AMD64", PlatformKey(OsFamily.WINDOWS, Arch.X64)),
        ("Darwin", "arm64", PlatformKey(OsFamily.MACOS, Arch.AARCH64)),
        ("FreeBSD", "amd64", PlatformKey(OsFamily.OTHER, Arch.X64)),
    ],
)
def test_detect_platform(system, machine, expected):
    assert detect_platform(system, machine) == expected


@pytest.mark.parametrize(
    "key, first_choice",
    [
        (PlatformKey(OsFamily.LINUX, Arch.X64), "yt-dlp_linux"),
        (PlatformKey(OsFamily.LINUX, Arch.ARM), "yt-dlp_linux_armv7l"),
        (PlatformKey(OsFamily.LINUX, Arch.AARCH64), "yt-dlp_linux_aarch64"),
        (PlatformKey(OsFamily.WINDOWS, Arch.X64), "yt-dlp.exe"),
        (PlatformKey(OsFamily.WINDOWS, Arch.X86), "yt-dlp_x86.exe"),
        (PlatformKey(OsFamily.MACOS, Arch.AARCH64), "yt-dlp_macos"),
    ],
)
def test_asset_names(key, first_choice):
    assert asset_names(key)[0] == first_choice


def test_unknown_os_is_unsupported():
    with pytest.raises(UnsupportedPlatformError):
        asset_names(PlatformKey(OsFamily.OTHER, Arch.X64))
