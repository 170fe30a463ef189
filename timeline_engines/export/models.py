from __future__ import annotations

from typing import List, Literal

from pydantic import BaseModel, Field

ExportStatus = Literal["idle", "setup", "export", "done", "error"]


class ExportProgress(BaseModel):
    status: ExportStatus = "idle"
    percentage: float = Field(0.0, ge=0, le=1)


class StagedInput(BaseModel):
    """A deduplicated media source and the ffmpeg input slot it occupies."""
    index: int
    media_id: str
    filename: str
    source_uri: str
    loop: bool = False


class ExportPlanResponse(BaseModel):
    graph: str
    args: List[str]
    base_args: List[str]
    inputs: List[StagedInput]
    duration: float


class ExportResponse(BaseModel):
    handle: str
    filename: str
    size_bytes: int
