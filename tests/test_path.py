from pathlib import Path

from brainz_dl.utils import path as path_utils
from brainz_dl.utils.path import (
    assign_output_paths,
    playlist_directory,
    safe_name,
    temporary_path,
)
from conftest import make_track


def test_safe_name_strips_separators():
    assert "/" not in safe_name("AC/DC: Live?", "x")


def test_safe_name_falls_back_when_nothing_is_left():
    assert safe_name("   ", "Untitled") == "Untitled"


def test_playlist_directory():
    assert playlist_directory(Path("out"), "Weekly Jams") == Path("out/Weekly Jams")


def test_output_paths_depend_only_on_titles():
    tracks = [make_track("Song A", "Artist X"), make_track("Song B", "Other")]
    paths = assign_output_paths(Path("out"), "Weekly Jams", tracks)
    assert paths == [
        Path("out/Weekly Jams/Song A.m4a"),
        Path("out/Weekly Jams/Song B.m4a"),
    ]


def test_repeated_titles_get_distinct_paths():
    tracks = [
        make_track("Intro", "Band 1"),
        make_track("Outro", "Band 1"),
        make_track("intro", "Band 2"),
        make_track("Intro", "Band 3"),
    ]
    paths = assign_output_paths(Path("out"), "Mix", tracks)
    assert [p.name for p in paths] == [
        "Intro.m4a",
        "Outro.m4a",
        "intro (2).m4a",
        "Intro (3).m4a",
    ]
    assert len({str(p).casefold() for p in paths}) == len(paths)


def test_temporary_path_is_hidden_sibling():
    final = Path("out/Mix/Song A.m4a")
    temp = temporary_path(final, 4)
    assert temp.parent == final.parent
    assert temp.name.startswith(".")
    assert temp.suffix == ".m4a"
    assert temp != final


def test_xdg_directories(monkeypatch, tmp_path):
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path / "cache"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))

    assert path_utils.get_config_dir() == tmp_path / "config" / "brainz-dl"
    assert path_utils.get_cache_dir() == tmp_path / "cache" / "brainz-dl"
    assert path_utils.get_data_dir() == tmp_path / "data" / "brainz-dl"
