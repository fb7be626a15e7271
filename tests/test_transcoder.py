import asyncio
import os
import stat
import time
from pathlib import Path
from typing import Dict, List

import pytest

from audiobook_service.jobs import Failed, FfmpegInvoker, Succeeded

SUCCESS_SCRIPT = """#!/bin/sh
for arg in "$@"; do out="$arg"; done
echo "out_time_ms=500000"
echo "progress=continue"
echo "out_time_ms=1000000"
echo "progress=end"
printf 'mp3-bytes' > "$out"
"""

FAILURE_SCRIPT = """#!/bin/sh
echo "manifest.txt: Invalid data found when processing input" >&2
exit 1
"""

SILENT_FAILURE_SCRIPT = """#!/bin/sh
exit 3
"""

NO_OUTPUT_SCRIPT = """#!/bin/sh
exit 0
"""

SLOW_SCRIPT = """#!/bin/sh
exec sleep 5
"""


class RecordingObserver:
    def __init__(self) -> None:
        self.started: List[str] = []
        self.progress: List[Dict[str, str]] = []

    def on_start(self, command_line: str) -> None:
        self.started.append(command_line)

    def on_progress(self, progress: Dict[str, str]) -> None:
        self.progress.append(progress)


def _fake_ffmpeg(tmp_path: Path, script: str) -> str:
    binary = tmp_path / "fake-ffmpeg"
    binary.write_text(script)
    binary.chmod(binary.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return str(binary)


def _invoke(invoker: FfmpegInvoker, tmp_path: Path, observer=None):
    manifest = tmp_path / "manifest.txt"
    manifest.write_text("file 'a.mp3'\n")
    return asyncio.run(invoker.invoke(manifest, tmp_path / "out.mp3", observer))


def test_build_command_uses_concat_demuxer() -> None:
    invoker = FfmpegInvoker(binary="ffmpeg", audio_codec="libmp3lame")

    cmd = invoker.build_command(Path("/w/manifest.txt"), Path("/w/out.mp3"))

    assert cmd[0] == "ffmpeg"
    assert cmd[cmd.index("-f") + 1] == "concat"
    assert cmd[cmd.index("-safe") + 1] == "0"
    assert cmd[cmd.index("-i") + 1] == "/w/manifest.txt"
    assert cmd[cmd.index("-c:a") + 1] == "libmp3lame"
    assert cmd[cmd.index("-progress") + 1] == "pipe:1"
    assert cmd[-1] == "/w/out.mp3"


def test_successful_run_reports_progress(tmp_path: Path) -> None:
    invoker = FfmpegInvoker(binary=_fake_ffmpeg(tmp_path, SUCCESS_SCRIPT), timeout_seconds=10)
    observer = RecordingObserver()

    result = _invoke(invoker, tmp_path, observer)

    assert result == Succeeded(tmp_path / "out.mp3")
    assert (tmp_path / "out.mp3").read_bytes() == b"mp3-bytes"
    assert len(observer.started) == 1
    assert "manifest.txt" in observer.started[0]
    assert observer.progress == [
        {"out_time_ms": "500000", "progress": "continue"},
        {"out_time_ms": "1000000", "progress": "end"},
    ]


def test_observer_errors_do_not_fail_the_run(tmp_path: Path) -> None:
    class BrokenObserver(RecordingObserver):
        def on_progress(self, progress: Dict[str, str]) -> None:
            raise RuntimeError("observer broke")

    invoker = FfmpegInvoker(binary=_fake_ffmpeg(tmp_path, SUCCESS_SCRIPT), timeout_seconds=10)

    assert isinstance(_invoke(invoker, tmp_path, BrokenObserver()), Succeeded)


def test_nonzero_exit_returns_stderr_verbatim(tmp_path: Path) -> None:
    invoker = FfmpegInvoker(binary=_fake_ffmpeg(tmp_path, FAILURE_SCRIPT), timeout_seconds=10)

    result = _invoke(invoker, tmp_path)

    assert result == Failed("manifest.txt: Invalid data found when processing input")


def test_nonzero_exit_without_stderr_mentions_exit_code(tmp_path: Path) -> None:
    invoker = FfmpegInvoker(binary=_fake_ffmpeg(tmp_path, SILENT_FAILURE_SCRIPT), timeout_seconds=10)

    result = _invoke(invoker, tmp_path)

    assert isinstance(result, Failed)
    assert "code 3" in result.diagnostic
    assert not result.timed_out


def test_missing_output_is_a_failure(tmp_path: Path) -> None:
    invoker = FfmpegInvoker(binary=_fake_ffmpeg(tmp_path, NO_OUTPUT_SCRIPT), timeout_seconds=10)

    result = _invoke(invoker, tmp_path)

    assert isinstance(result, Failed)
    assert "out.mp3" in result.diagnostic


def test_timeout_kills_the_process(tmp_path: Path) -> None:
    invoker = FfmpegInvoker(binary=_fake_ffmpeg(tmp_path, SLOW_SCRIPT), timeout_seconds=0.2)

    started = time.monotonic()
    result = _invoke(invoker, tmp_path)

    assert isinstance(result, Failed)
    assert result.timed_out
    assert "0.2s" in result.diagnostic
    assert time.monotonic() - started < 4


def test_missing_binary_is_a_failure(tmp_path: Path) -> None:
    invoker = FfmpegInvoker(binary=str(tmp_path / "no-such-ffmpeg"))

    result = _invoke(invoker, tmp_path)

    assert isinstance(result, Failed)
    assert "not found" in result.diagnostic


def test_runs_beyond_the_limit_wait_their_turn(tmp_path: Path) -> None:
    lock = tmp_path / "running.lock"
    script = f"""#!/bin/sh
for arg in "$@"; do out="$arg"; done
mkdir "{lock}" 2>/dev/null || echo overlap >> "{tmp_path}/overlaps"
sleep 0.1
rmdir "{lock}" 2>/dev/null
printf 'ok' > "$out"
"""
    invoker = FfmpegInvoker(binary=_fake_ffmpeg(tmp_path, script), timeout_seconds=10, max_concurrent=1)
    manifest = tmp_path / "manifest.txt"
    manifest.write_text("file 'a.mp3'\n")

    async def run_all():
        return await asyncio.gather(*(invoker.invoke(manifest, tmp_path / f"out{i}.mp3") for i in range(3)))

    results = asyncio.run(run_all())

    assert all(isinstance(result, Succeeded) for result in results)
    assert not (tmp_path / "overlaps").exists()


def test_cancelled_run_kills_the_process(tmp_path: Path) -> None:
    pid_file = tmp_path / "pid"
    script = f"""#!/bin/sh
echo $$ > "{pid_file}"
exec sleep 5
"""
    invoker = FfmpegInvoker(binary=_fake_ffmpeg(tmp_path, script), timeout_seconds=10)
    manifest = tmp_path / "manifest.txt"
    manifest.write_text("file 'a.mp3'\n")

    async def run() -> None:
        task = asyncio.create_task(invoker.invoke(manifest, tmp_path / "out.mp3"))
        while not (pid_file.exists() and pid_file.read_text().strip()):
            await asyncio.sleep(0.02)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    started = time.monotonic()
    asyncio.run(run())

    assert time.monotonic() - started < 4
    with pytest.raises(ProcessLookupError):
        os.kill(int(pid_file.read_text()), 0)
