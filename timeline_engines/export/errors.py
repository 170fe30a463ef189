from __future__ import annotations

from typing import Optional


class TimelineExportError(RuntimeError):
    code = "export_failed"
    http_status = 500
    resource_kind = "timeline"

    def __init__(self, message: str, *, stage: Optional[str] = None):
        super().__init__(message)
        self.stage = stage


class EngineNotReadyError(TimelineExportError):
    code = "engine_not_ready"
    http_status = 503
    resource_kind = "engine"


class EmptyTimelineError(TimelineExportError):
    code = "empty_timeline"
    http_status = 422

    def __init__(self, message: str = "Timeline is empty, or all clips have a duration of 0.", **kwargs):
        super().__init__(message, **kwargs)


class ExportInProgressError(TimelineExportError):
    code = "export_in_progress"
    http_status = 409


class MediaFetchError(TimelineExportError):
    code = "media_unavailable"
    http_status = 424
    resource_kind = "media"

    def __init__(self, message: str, *, media_id: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.media_id = media_id


class EngineExecutionError(TimelineExportError):
    code = "engine_failed"
    http_status = 502
    resource_kind = "engine"

    def __init__(
        self,
        message: str,
        *,
        stage: str = "ffmpeg",
        stderr_tail: Optional[str] = None,
        returncode: Optional[int] = None,
    ):
        super().__init__(message, stage=stage)
        self.stderr_tail = stderr_tail
        self.returncode = returncode

    def __str__(self) -> str:
        return f"[{self.stage}] {super().__str__()}"
