"""
Maps the running platform to the name of the matching yt-dlp release asset.
"""

import platform
from enum import Enum
from functools import lru_cache
from typing import NamedTuple

from brainz_dl.exceptions import UnsupportedPlatformError


class OsFamily(Enum):
    LINUX = "linux"
    WINDOWS = "windows"
    MACOS = "macos"
    OTHER = "other"


class Arch(Enum):
    X64 = "x86_64"
    X86 = "x86"
    ARM = "arm"
    AARCH64 = "aarch64"
    OTHER = "other"


class PlatformKey(NamedTuple):
    os: OsFamily
    arch: Arch


_OS_NAMES = {
    "linux": OsFamily.LINUX,
    "windows": OsFamily.WINDOWS,
    "darwin": OsFamily.MACOS,
}

_ARCH_NAMES = {
    "x86_64": Arch.X64,
    "amd64": Arch.X64,
    "x64": Arch.X64,
    "i386": Arch.X86,
    "i686": Arch.X86,
    "x86": Arch.X86,
    "arm": Arch.ARM,
    "armv7l": Arch.ARM,
    "armv6l": Arch.ARM,
    "aarch64": Arch.AARCH64,
    "arm64": Arch.AARCH64,
}

# Arch-specific builds, most specific first. Platforms listed here never fall
# back to _GENERIC_ASSET_NAMES unless their tuple names the generic build.
_ASSET_NAMES: dict[PlatformKey, tuple[str, ...]] = {
    PlatformKey(OsFamily.LINUX, Arch.ARM): ("yt-dlp_linux_armv7l",),
    PlatformKey(OsFamily.LINUX, Arch.AARCH64): ("yt-dlp_linux_aarch64",),
    PlatformKey(OsFamily.WINDOWS, Arch.X86): ("yt-dlp_x86.exe",),
    PlatformKey(OsFamily.WINDOWS, Arch.AARCH64): ("yt-dlp_arm64.exe", "yt-dlp.exe"),
}

_GENERIC_ASSET_NAMES = {
    OsFamily.LINUX: "yt-dlp_linux",
    OsFamily.WINDOWS: "yt-dlp.exe",
    OsFamily.MACOS: "yt-dlp_macos",
}


def detect_platform(
    system: str | None = None, machine: str | None = None
) -> PlatformKey:
    """Builds the PlatformKey from `platform.system()` / `platform.machine()`."""
    system = (system if system is not None else platform.system()).lower()
    machine = (machine if machine is not None else platform.machine()).lower()
    return PlatformKey(
        _OS_NAMES.get(system, OsFamily.OTHER),
        _ARCH_NAMES.get(machine, Arch.OTHER),
    )


@lru_cache(maxsize=1)
def current_platform() -> PlatformKey:
    return detect_platform()


def asset_names(key: PlatformKey) -> tuple[str, ...]:
    """
    Returns the release asset names usable on a platform, in preference order.

    An architecture without a dedicated build falls back to the generic asset
    of its OS.

    Raises:
        UnsupportedPlatformError: If the OS has no yt-dlp build at all.
    """
    generic = _GENERIC_ASSET_NAMES.get(key.os)
    if generic is None:
        raise UnsupportedPlatformError(
            f"yt-dlp has no release build for this platform ({key.os.value}/"
            f"{key.arch.value})."
        )
    names = list(_ASSET_NAMES.get(key, ()))
    if key.os == OsFamily.LINUX and key.arch in (Arch.ARM, Arch.AARCH64):
        # The generic Linux build is x86_64 only.
        return tuple(names)
    if generic not in names:
        names.append(generic)
    return tuple(names)
