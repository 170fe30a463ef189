from __future__ import annotations

import logging

from fastapi import APIRouter, Response

from timeline_engines.common.error_envelope import ErrorResponse, error_response
from timeline_engines.export.errors import TimelineExportError
from timeline_engines.export.models import ExportPlanResponse, ExportProgress, ExportResponse
from timeline_engines.export.service import get_export_service
from timeline_engines.video_timeline.models import ExportRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/timeline/export", tags=["timeline_export"])

_EXPORT_ERRORS = {status: {"model": ErrorResponse} for status in (409, 422, 424, 502, 503)}
_PLAN_ERRORS = {422: {"model": ErrorResponse}}
_ARTIFACT_ERRORS = {404: {"model": ErrorResponse}}


def _raise_envelope(exc: TimelineExportError) -> None:
    details = {}
    if getattr(exc, "stderr_tail", None):
        details["stderr_tail"] = exc.stderr_tail
    if getattr(exc, "media_id", None):
        details["media_id"] = exc.media_id
    error_response(
        code=exc.code,
        message=str(exc),
        status_code=exc.http_status,
        stage=exc.stage,
        resource_kind=exc.resource_kind,
        details=details,
    )


@router.post("/plan", response_model=ExportPlanResponse, responses=_PLAN_ERRORS)
def plan_export(req: ExportRequest):
    try:
        return get_export_service().plan(req).to_response()
    except TimelineExportError as exc:
        _raise_envelope(exc)


@router.post("", response_model=ExportResponse, responses=_EXPORT_ERRORS)
async def export_timeline(req: ExportRequest):
    try:
        artifact = await get_export_service().compile_and_export(req)
    except TimelineExportError as exc:
        logger.info("export request rejected: %s", exc.code)
        _raise_envelope(exc)
    return ExportResponse(handle=artifact.handle, filename=artifact.filename, size_bytes=artifact.size_bytes)


@router.get("/status", response_model=ExportProgress)
def export_status():
    return get_export_service().progress()


@router.get("/artifacts/{handle}", responses=_ARTIFACT_ERRORS)
def download_artifact(handle: str):
    artifact = get_export_service().store.get(handle)
    if artifact is None:
        error_response(
            code="artifact_not_found",
            message=f"export artifact {handle} not found or already released",
            status_code=404,
            resource_kind="artifact",
        )
    return Response(
        content=artifact.data,
        media_type=artifact.content_type,
        headers={"Content-Disposition": f'attachment; filename="{artifact.filename}"'},
    )
