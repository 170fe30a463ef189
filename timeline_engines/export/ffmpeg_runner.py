"""Engine handle around the ffmpeg binary and a private working directory."""
from __future__ import annotations

import asyncio
import logging
import shutil
import tempfile
from pathlib import Path
from typing import Callable, List, Optional

from timeline_engines.config.runtime_config import ExportSettings
from timeline_engines.export.errors import EngineExecutionError, EngineNotReadyError

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[float], None]

STDERR_TAIL_LINES = 10


def parse_progress_line(line: str, duration: float) -> Optional[float]:
    """Ratio in [0, 1] from an ``out_time_us=`` line of ``-progress`` output."""
    key, _, value = line.strip().partition("=")
    if key not in ("out_time_us", "out_time_ms") or duration <= 0:
        return None
    try:
        micros = int(value)
    except ValueError:
        return None
    return min(1.0, max(0.0, micros / 1_000_000 / duration))


class FFmpegEngine:
    """
    Process-wide render engine.

    ``init`` resolves the binary and creates the workspace; file names passed
    to ``write_file``/``read_file``/``remove_file``/``run`` are relative to
    that workspace.
    """

    def __init__(self, settings: Optional[ExportSettings] = None):
        self.settings = settings or ExportSettings()
        self.binary: Optional[str] = None
        self.workspace: Optional[Path] = None

    @property
    def is_ready(self) -> bool:
        return self.binary is not None and self.workspace is not None

    async def init(self) -> None:
        binary = shutil.which(self.settings.ffmpeg_binary)
        if binary is None:
            logger.warning("ffmpeg binary %r not found; engine not ready", self.settings.ffmpeg_binary)
            return
        base = Path(self.settings.workdir) if self.settings.workdir else None
        if base is not None:
            base.mkdir(parents=True, exist_ok=True)
        self.workspace = Path(tempfile.mkdtemp(prefix="timeline-export-", dir=base))
        self.binary = binary
        logger.info("ffmpeg engine ready: binary=%s workspace=%s", binary, self.workspace)

    def _path(self, name: str) -> Path:
        if not self.is_ready:
            raise EngineNotReadyError("ffmpeg engine is not initialized", stage="setup")
        path = (self.workspace / name).resolve()
        if path.parent != self.workspace.resolve():
            raise ValueError(f"invalid workspace file name: {name!r}")
        return path

    async def write_file(self, name: str, data: bytes) -> None:
        self._path(name).write_bytes(data)

    async def read_file(self, name: str) -> bytes:
        return self._path(name).read_bytes()

    async def remove_file(self, name: str) -> None:
        self._path(name).unlink(missing_ok=True)

    async def run(self, args: List[str], duration: float = 0.0, on_progress: Optional[ProgressCallback] = None) -> None:
        """Run ffmpeg with ``args``; progress is reported as a non-decreasing ratio."""
        if not self.is_ready:
            raise EngineNotReadyError("ffmpeg engine is not initialized", stage="setup")
        cmd = [self.binary, "-y", "-nostats", "-progress", "pipe:1", *args]
        logger.debug("running ffmpeg: %s", cmd)
        proc = await asyncio.create_subprocess_exec(
            *cmd,
            cwd=str(self.workspace),
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )

        async def _pump_progress() -> None:
            last = 0.0
            assert proc.stdout is not None
            async for raw in proc.stdout:
                ratio = parse_progress_line(raw.decode(errors="replace"), duration)
                if ratio is None or ratio < last:
                    continue
                last = ratio
                if on_progress:
                    on_progress(ratio)

        stderr_task = asyncio.ensure_future(proc.stderr.read())
        try:
            await _pump_progress()
            stderr = await stderr_task
            returncode = await proc.wait()
        finally:
            if proc.returncode is None:
                logger.warning("killing interrupted ffmpeg run pid=%s", proc.pid)
                proc.kill()
                await proc.wait()
            if not stderr_task.done():
                stderr_task.cancel()
            await asyncio.gather(stderr_task, return_exceptions=True)
        if returncode != 0:
            lines = stderr.decode(errors="replace").splitlines()
            tail = "\n".join(lines[-STDERR_TAIL_LINES:])
            raise EngineExecutionError(
                f"ffmpeg failed (code {returncode}):\n{tail}",
                stderr_tail=tail,
                returncode=returncode,
            )
        if on_progress:
            on_progress(1.0)

    async def dispose(self) -> None:
        if self.workspace is not None:
            shutil.rmtree(self.workspace, ignore_errors=True)
            logger.info("ffmpeg engine workspace removed: %s", self.workspace)
        self.workspace = None
        self.binary = None
