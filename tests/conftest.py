import io
import os
import stat
import sys

import pytest
from PIL import Image


def _ensure_project_root_on_sys_path() -> None:
    here = os.path.dirname(__file__)
    project_root = os.path.abspath(os.path.join(here, ".."))
    if project_root not in sys.path:
        sys.path.insert(0, project_root)


_ensure_project_root_on_sys_path()

from brainz_dl.models.playlist import SearchCandidate, Track  # noqa: E402


def make_track(title="Song A", creator="Artist X", **kwargs) -> Track:
    return Track(title=title, creator=creator, **kwargs)


def make_candidate(title, uploader=None, **kwargs) -> SearchCandidate:
    kwargs.setdefault("webpage_url", f"https://www.youtube.com/watch?v={abs(hash(title))}")
    return SearchCandidate(title=title, uploader=uploader, **kwargs)


def fake_executable(path, body: str):
    """Writes a POSIX shell script standing in for yt-dlp."""
    path.write_text("#!/bin/sh\n" + body, encoding="utf-8")
    path.chmod(path.stat().st_mode | stat.S_IXUSR)
    return path


def image_bytes(width, height, fmt="JPEG", mode="RGB") -> bytes:
    buffer = io.BytesIO()
    Image.new(mode, (width, height), color="red" if mode == "RGB" else 1).save(
        buffer, format=fmt
    )
    return buffer.getvalue()


@pytest.fixture
def track():
    return make_track()


@pytest.fixture
def png_bytes():
    return image_bytes(64, 64, fmt="PNG")
