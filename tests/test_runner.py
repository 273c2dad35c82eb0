import asyncio
import json
import os
from unittest.mock import AsyncMock, Mock, patch

import pytest

from brainz_dl.exceptions import ExternalProcessError, NoCandidatesError
from brainz_dl.ytdlp.runner import (
    YtdlpRunner,
    build_search_query,
    parse_search_output,
)
from conftest import fake_executable, make_track


def _fake_process(returncode=0, stdout=b"", stderr=b""):
    proc = Mock()
    proc.returncode = returncode
    proc.communicate = AsyncMock(return_value=(stdout, stderr))
    proc.wait = AsyncMock(return_value=returncode)
    return proc


def _result_line(title, uploader="Artist X"):
    return json.dumps(
        {
            "title": title,
            "webpage_url": f"https://www.youtube.com/watch?v={title[:4]}",
            "uploader": uploader,
            "duration": 201.0,
            "thumbnails": None,
            "thumbnail": None,
            "view_count": 1000,
        }
    )


def test_build_search_query():
    assert build_search_query(make_track("Song A", "Artist X"), 10) == (
        "ytsearch10:Song A Artist X"
    )


def test_parse_search_output_skips_bad_lines():
    stdout = "\n".join([_result_line("Song A"), "garbage", "", _result_line("B-side")])
    candidates = parse_search_output(stdout)
    assert [c.title for c in candidates] == ["Song A", "B-side"]
    assert candidates[0].thumbnails == []


class TestYtdlpRunner:
    def setup_method(self):
        self.runner = YtdlpRunner("/usr/bin/yt-dlp", timeout=5)
        self.track = make_track()

    def _search(self, proc):
        exec_mock = AsyncMock(return_value=proc)
        with patch("asyncio.create_subprocess_exec", exec_mock):
            result = asyncio.run(self.runner.search(self.track, limit=3))
        return result, exec_mock

    def test_search_returns_candidates_in_order(self):
        stdout = "\n".join([_result_line("One"), _result_line("Two")]).encode()
        candidates, exec_mock = self._search(_fake_process(stdout=stdout))

        assert [c.title for c in candidates] == ["One", "Two"]
        args = exec_mock.await_args.args
        assert args[0] == "/usr/bin/yt-dlp"
        assert args[1] == "ytsearch3:Song A Artist X"

    def test_stderr_output_is_a_failure(self):
        proc = _fake_process(stdout=_result_line("One").encode(), stderr=b"ERROR: x")
        with pytest.raises(ExternalProcessError) as info:
            self._search(proc)
        assert info.value.stderr == "ERROR: x"

    def test_nonzero_exit_is_a_failure(self):
        with pytest.raises(ExternalProcessError) as info:
            self._search(_fake_process(returncode=1))
        assert info.value.returncode == 1

    def test_empty_output_means_no_candidates(self):
        with pytest.raises(NoCandidatesError):
            self._search(_fake_process(stdout=b"\n"))

    def test_missing_executable(self):
        exec_mock = AsyncMock(side_effect=FileNotFoundError("no such file"))
        with patch("asyncio.create_subprocess_exec", exec_mock):
            with pytest.raises(ExternalProcessError):
                asyncio.run(self.runner.search(self.track))

    def test_download_requires_the_output_file(self, tmp_path):
        destination = tmp_path / "out.m4a"
        exec_mock = AsyncMock(return_value=_fake_process())
        with patch("asyncio.create_subprocess_exec", exec_mock):
            with pytest.raises(ExternalProcessError):
                asyncio.run(
                    self.runner.download_audio("https://v", destination, "bestaudio")
                )

    def test_download_passes_format_and_output(self, tmp_path):
        destination = tmp_path / "100% hits.m4a"
        destination.write_bytes(b"audio")
        exec_mock = AsyncMock(return_value=_fake_process())
        with patch("asyncio.create_subprocess_exec", exec_mock):
            asyncio.run(
                self.runner.download_audio("https://v", destination, "bestaudio")
            )

        args = list(exec_mock.await_args.args)
        assert args[args.index("-f") + 1] == "bestaudio"
        assert args[args.index("-o") + 1].endswith("100%% hits.m4a")
        assert args[-2:] == ["--", "https://v"]
        assert "--no-part" in args
        assert exec_mock.await_args.kwargs["start_new_session"] is (os.name != "nt")


@pytest.mark.skipif(os.name == "nt", reason="needs a POSIX shell")
class TestChildProcessLifetime:
    def _sleeper(self, tmp_path):
        self.pid_file = tmp_path / "pid"
        body = f'echo $$ > "{self.pid_file}"\nexec sleep 30\n'
        return YtdlpRunner(fake_executable(tmp_path / "yt-dlp", body))

    async def _started_task(self, runner):
        task = asyncio.create_task(runner._run("https://v"))
        for _ in range(200):
            if self.pid_file.exists() and self.pid_file.read_text().strip():
                break
            await asyncio.sleep(0.025)
        return task

    def _assert_gone(self, pid):
        with pytest.raises(ProcessLookupError):
            os.kill(pid, 0)

    def test_cancelled_run_kills_the_child(self, tmp_path):
        runner = self._sleeper(tmp_path)

        async def main():
            task = await self._started_task(runner)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task
            return int(self.pid_file.read_text())

        self._assert_gone(asyncio.run(main()))

    def test_timeout_kills_the_child(self, tmp_path):
        runner = self._sleeper(tmp_path)
        runner.timeout = 0.5

        async def main():
            task = await self._started_task(runner)
            with pytest.raises(ExternalProcessError):
                await task
            return int(self.pid_file.read_text())

        self._assert_gone(asyncio.run(main()))

    def test_child_runs_in_its_own_session(self, tmp_path):
        runner = self._sleeper(tmp_path)

        async def main():
            task = await self._started_task(runner)
            pid = int(self.pid_file.read_text())
            child_session = os.getsid(pid)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task
            return child_session

        assert asyncio.run(main()) != os.getsid(0)
