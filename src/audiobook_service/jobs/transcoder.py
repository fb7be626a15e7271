"""Run the external ffmpeg transcoder against a concat manifest."""
from __future__ import annotations

import asyncio
import logging
import shlex
from pathlib import Path
from typing import Dict, List, Optional, Protocol

from .models import Failed, Succeeded, TransformResult

LOGGER = logging.getLogger(__name__)


class TransformObserver(Protocol):
    """Receives informational lifecycle events from a running transform."""

    def on_start(self, command_line: str) -> None: ...

    def on_progress(self, progress: Dict[str, str]) -> None: ...


class TransformInvoker(Protocol):
    async def invoke(
        self,
        manifest_path: Path,
        output_path: Path,
        observer: Optional[TransformObserver] = None,
    ) -> TransformResult: ...


class FfmpegInvoker:
    """Concatenate the files listed in a manifest into a single mp3.

    At most ``max_concurrent`` ffmpeg processes run at once; further callers
    wait on a semaphore. A run that exceeds ``timeout_seconds`` is killed
    and reported as ``Failed(timed_out=True)``. Progress reported through
    ``-progress pipe:1`` is forwarded to the observer and never affects the
    result.
    """

    def __init__(
        self,
        *,
        binary: str = "ffmpeg",
        audio_codec: str = "libmp3lame",
        timeout_seconds: float = 600.0,
        max_concurrent: int = 2,
    ) -> None:
        self.binary = binary
        self.audio_codec = audio_codec
        self.timeout_seconds = timeout_seconds
        self._semaphore = asyncio.Semaphore(max(1, max_concurrent))

    def build_command(self, manifest_path: Path, output_path: Path) -> List[str]:
        return [
            self.binary,
            "-hide_banner",
            "-nostats",
            "-loglevel",
            "error",
            "-y",
            "-f",
            "concat",
            "-safe",
            "0",
            "-i",
            str(manifest_path),
            "-vn",
            "-c:a",
            self.audio_codec,
            "-f",
            "mp3",
            "-progress",
            "pipe:1",
            str(output_path),
        ]

    async def invoke(
        self,
        manifest_path: Path,
        output_path: Path,
        observer: Optional[TransformObserver] = None,
    ) -> TransformResult:
        cmd = self.build_command(manifest_path, output_path)
        async with self._semaphore:
            return await self._run(cmd, Path(output_path), observer)

    async def _run(
        self,
        cmd: List[str],
        output_path: Path,
        observer: Optional[TransformObserver],
    ) -> TransformResult:
        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError:
            return Failed(f"{self.binary} executable not found")
        except OSError as exc:
            return Failed(f"Could not start {self.binary}: {exc}")

        command_line = shlex.join(cmd)
        LOGGER.info("ffmpeg started: %s", command_line)
        if observer is not None:
            observer.on_start(command_line)

        try:
            stderr = await asyncio.wait_for(
                self._drain(process, observer), timeout=self.timeout_seconds
            )
        except asyncio.TimeoutError:
            LOGGER.error("ffmpeg exceeded %ss; killing pid %s", self.timeout_seconds, process.pid)
            await self._kill(process)
            return Failed(
                f"{self.binary} did not finish within {self.timeout_seconds:g}s and was terminated",
                timed_out=True,
            )
        except asyncio.CancelledError:
            LOGGER.warning("ffmpeg run cancelled; killing pid %s", process.pid)
            await self._kill(process)
            raise

        if process.returncode != 0:
            diagnostic = stderr.strip() or f"{self.binary} exited with code {process.returncode}"
            LOGGER.error("ffmpeg failed (code %s): %s", process.returncode, diagnostic)
            return Failed(diagnostic)

        if not output_path.is_file():
            return Failed(f"{self.binary} exited successfully but did not create {output_path.name}")

        LOGGER.info("ffmpeg finished: %s", output_path)
        return Succeeded(output_path)

    @staticmethod
    async def _kill(process: asyncio.subprocess.Process) -> None:
        try:
            process.kill()
        except ProcessLookupError:
            pass
        await process.wait()

    async def _drain(
        self,
        process: asyncio.subprocess.Process,
        observer: Optional[TransformObserver],
    ) -> str:
        assert process.stdout is not None and process.stderr is not None
        stderr_task = asyncio.ensure_future(process.stderr.read())
        try:
            block: Dict[str, str] = {}
            async for raw_line in process.stdout:
                line = raw_line.decode(errors="replace").strip()
                key, sep, value = line.partition("=")
                if not sep:
                    continue
                block[key] = value
                # "progress=continue|end" closes each -progress block
                if key == "progress":
                    self._notify_progress(observer, block)
                    block = {}
            stderr = await stderr_task
            await process.wait()
        finally:
            if not stderr_task.done():
                stderr_task.cancel()
        return stderr.decode(errors="replace")

    @staticmethod
    def _notify_progress(observer: Optional[TransformObserver], progress: Dict[str, str]) -> None:
        if observer is None:
            return
        try:
            observer.on_progress(progress)
        except Exception:
            LOGGER.warning("Progress observer raised; ignoring", exc_info=True)
