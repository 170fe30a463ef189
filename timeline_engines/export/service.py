from __future__ import annotations

import logging
from typing import Callable, List, Optional, Protocol

from timeline_engines.config.runtime_config import ExportSettings, load_export_settings
from timeline_engines.export.artifacts import Artifact, ArtifactStore
from timeline_engines.export.errors import EngineNotReadyError, ExportInProgressError
from timeline_engines.export.ffmpeg_runner import FFmpegEngine, ProgressCallback
from timeline_engines.export.media_loader import MediaLoader
from timeline_engines.export.models import ExportProgress, ExportStatus
from timeline_engines.export.planner import BASE_FILENAME, ExportPlan, plan_export
from timeline_engines.video_timeline.models import ExportRequest, Timeline

logger = logging.getLogger(__name__)

ProgressListener = Callable[[ExportProgress], None]

ENGINE_NOT_READY_MESSAGE = "ffmpeg did not load on service startup. Restart the export service and retry."
BUSY_STATES = ("setup", "export")


class ExportEngine(Protocol):
    @property
    def is_ready(self) -> bool: ...

    async def init(self) -> None: ...

    async def write_file(self, name: str, data: bytes) -> None: ...

    async def read_file(self, name: str) -> bytes: ...

    async def remove_file(self, name: str) -> None: ...

    async def run(self, args: List[str], duration: float = 0.0, on_progress: Optional[ProgressCallback] = None) -> None: ...

    async def dispose(self) -> None: ...


class ExportOrchestrator:
    """
    Runs one export at a time: stage media, synthesize the base canvas,
    render once, publish the artifact.

    State moves idle -> setup -> export -> done, or to error from setup or
    export. A call made while setup or export is running is rejected.
    """

    def __init__(
        self,
        engine: ExportEngine,
        loader: Optional[MediaLoader] = None,
        store: Optional[ArtifactStore] = None,
        settings: Optional[ExportSettings] = None,
    ):
        self.settings = settings or ExportSettings()
        self.engine = engine
        self.loader = loader or MediaLoader(timeout=self.settings.http_timeout)
        self.store = store or ArtifactStore(grace_seconds=self.settings.artifact_grace_seconds)
        self._status: ExportStatus = "idle"
        self._percentage = 0.0
        self._listeners: List[ProgressListener] = []

    @property
    def status(self) -> ExportStatus:
        return self._status

    @property
    def percentage(self) -> float:
        return self._percentage

    def progress(self) -> ExportProgress:
        return ExportProgress(status=self._status, percentage=self._percentage)

    def subscribe(self, listener: ProgressListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _notify(self) -> None:
        snapshot = self.progress()
        for listener in list(self._listeners):
            listener(snapshot)

    def _set_status(self, status: ExportStatus) -> None:
        logger.info("export status %s -> %s", self._status, status)
        self._status = status
        self._notify()

    def _on_engine_progress(self, ratio: float) -> None:
        if self._status != "export":
            return
        ratio = min(1.0, max(0.0, ratio))
        if ratio <= self._percentage:
            return
        self._percentage = ratio
        self._notify()

    def plan(self, request: Timeline) -> ExportPlan:
        return plan_export(request, self.settings)

    async def _stage_media(self, plan: ExportPlan) -> None:
        for staged, media in zip(plan.inputs, plan.media):
            data = await self.loader.fetch(media)
            await self.engine.write_file(staged.filename, data)
            logger.debug("staged %s as %s (%d bytes)", media.id, staged.filename, len(data))

    async def _clear_workspace(self, names: List[str]) -> None:
        for name in names:
            await self.engine.remove_file(name)

    async def compile_and_export(self, request: ExportRequest) -> Artifact:
        if self._status in BUSY_STATES:
            raise ExportInProgressError(f"an export is already running (status={self._status})", stage=self._status)

        self._percentage = 0.0
        self._set_status("setup")
        workspace_files: List[str] = []
        try:
            if not self.engine.is_ready:
                raise EngineNotReadyError(ENGINE_NOT_READY_MESSAGE, stage="setup")
            plan = self.plan(request)
            workspace_files = [staged.filename for staged in plan.inputs] + [BASE_FILENAME, plan.output_filename]
            await self._stage_media(plan)
            await self.engine.run(plan.base_args, plan.duration)

            self._set_status("export")
            await self.engine.run(plan.args, plan.duration, on_progress=self._on_engine_progress)
            data = await self.engine.read_file(plan.output_filename)
        except Exception as exc:
            logger.warning("export failed during %s: %s", self._status, exc)
            self._set_status("error")
            raise
        finally:
            await self._clear_workspace(workspace_files)

        artifact = self.store.put(request.filename, data)
        self.store.schedule_release(artifact.handle)
        self._set_status("done")
        logger.info("export finished: handle=%s size=%d", artifact.handle, artifact.size_bytes)
        return artifact


_default_service: Optional[ExportOrchestrator] = None


def get_export_service() -> ExportOrchestrator:
    global _default_service
    if _default_service is None:
        settings = load_export_settings()
        _default_service = ExportOrchestrator(FFmpegEngine(settings), settings=settings)
    return _default_service


def set_export_service(service: Optional[ExportOrchestrator]) -> None:
    global _default_service
    _default_service = service
