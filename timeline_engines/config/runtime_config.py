"""Runtime configuration helpers for the export engines."""
from __future__ import annotations

import os
import tempfile
from typing import Optional

from pydantic import BaseModel

DEFAULT_FFMPEG_BIN = "ffmpeg"
DEFAULT_ARTIFACT_GRACE_SECONDS = 7.0
DEFAULT_BASE_FPS = 30
DEFAULT_PRESCALE_FACTOR = 4
DEFAULT_CRF = 28
DEFAULT_HTTP_TIMEOUT = 120.0


def _get_env(name: str, default: Optional[str] = None) -> Optional[str]:
    return os.getenv(name, default)


def _int_env(name: str, default: int) -> int:
    raw = _get_env(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _float_env(name: str, default: float) -> float:
    raw = _get_env(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def get_ffmpeg_binary() -> str:
    return _get_env("EXPORT_FFMPEG_BIN") or DEFAULT_FFMPEG_BIN


def get_export_workdir() -> str:
    return _get_env("EXPORT_WORKDIR") or tempfile.gettempdir()


def get_artifact_grace_seconds() -> float:
    return max(0.0, _float_env("EXPORT_ARTIFACT_GRACE_SECONDS", DEFAULT_ARTIFACT_GRACE_SECONDS))


def get_base_fps() -> int:
    fps = _int_env("EXPORT_BASE_FPS", DEFAULT_BASE_FPS)
    return fps if fps > 0 else DEFAULT_BASE_FPS


def get_prescale_factor() -> int:
    factor = _int_env("EXPORT_PRESCALE_FACTOR", DEFAULT_PRESCALE_FACTOR)
    return factor if factor > 0 else DEFAULT_PRESCALE_FACTOR


def get_crf() -> int:
    return _int_env("EXPORT_CRF", DEFAULT_CRF)


def get_http_timeout() -> float:
    return _float_env("EXPORT_HTTP_TIMEOUT", DEFAULT_HTTP_TIMEOUT)


class ExportSettings(BaseModel):
    """Snapshot of the export-related environment."""
    ffmpeg_binary: str = DEFAULT_FFMPEG_BIN
    workdir: Optional[str] = None
    artifact_grace_seconds: float = DEFAULT_ARTIFACT_GRACE_SECONDS
    base_fps: int = DEFAULT_BASE_FPS
    prescale_factor: int = DEFAULT_PRESCALE_FACTOR
    crf: int = DEFAULT_CRF
    http_timeout: float = DEFAULT_HTTP_TIMEOUT


def load_export_settings() -> ExportSettings:
    return ExportSettings(
        ffmpeg_binary=get_ffmpeg_binary(),
        workdir=get_export_workdir(),
        artifact_grace_seconds=get_artifact_grace_seconds(),
        base_fps=get_base_fps(),
        prescale_factor=get_prescale_factor(),
        crf=get_crf(),
        http_timeout=get_http_timeout(),
    )
