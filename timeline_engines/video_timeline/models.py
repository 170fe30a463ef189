from __future__ import annotations

import uuid
from typing import Annotated, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

from timeline_engines.automation.models import Automation


def _uuid() -> str:
    return uuid.uuid4().hex


MediaKind = Literal["video", "audio", "image"]

_STAGED_EXTENSIONS = {"video": "mp4", "audio": "mp3"}


class Media(BaseModel):
    """A resolved media source. Probing happens upstream; this is read-only."""
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=_uuid)
    kind: MediaKind
    source_uri: str
    title: str = ""
    duration: float = Field(0.0, ge=0)
    dimensions: Optional[Tuple[int, int]] = None
    has_audio: bool = True

    @property
    def staged_filename(self) -> str:
        """Name the source is written under in the engine workspace."""
        if self.kind == "image":
            ext = self.title.rsplit(".", 1)[-1].lower() if "." in self.title else "png"
            return f"{self.id}.{ext}"
        return f"{self.id}.{_STAGED_EXTENSIONS[self.kind]}"


def _scale_default(kind: str) -> Automation:
    return Automation.constant(1.0, kind=kind)


class Matrix(BaseModel):
    scale_x: Automation = Field(default_factory=lambda: _scale_default("scale_x"))
    scale_y: Automation = Field(default_factory=lambda: _scale_default("scale_y"))
    translate_x: Automation = Field(default_factory=lambda: Automation.constant(0.0, kind="translate_x"))
    translate_y: Automation = Field(default_factory=lambda: Automation.constant(0.0, kind="translate_y"))
    skew_x: float = 0.0
    skew_y: float = 0.0

    def as_list(self) -> list:
        """Affine order: [scaleX, skewX, skewY, scaleY, translateX, translateY]."""
        return [self.scale_x, self.skew_x, self.skew_y, self.scale_y, self.translate_x, self.translate_y]

    @property
    def has_scale_keyframes(self) -> bool:
        return not (self.scale_x.is_static and self.scale_y.is_static)

    @property
    def has_keyframes(self) -> bool:
        return self.has_scale_keyframes or not (self.translate_x.is_static and self.translate_y.is_static)


EQ_IDENTITY = (1.0, 0.0, 1.0, 1.0)


class Eq(BaseModel):
    contrast: Automation = Field(default_factory=lambda: Automation.constant(1.0, kind="contrast"))
    brightness: Automation = Field(default_factory=lambda: Automation.constant(0.0, kind="brightness"))
    saturation: Automation = Field(default_factory=lambda: Automation.constant(1.0, kind="saturation"))
    gamma: Automation = Field(default_factory=lambda: Automation.constant(1.0, kind="gamma"))

    def tracks(self) -> List[Automation]:
        return [self.contrast, self.brightness, self.saturation, self.gamma]

    @property
    def is_static(self) -> bool:
        return all(track.is_static for track in self.tracks())

    @property
    def is_identity(self) -> bool:
        return self.is_static and tuple(t.static_value for t in self.tracks()) == EQ_IDENTITY


class ClipBase(BaseModel):
    id: str = Field(default_factory=_uuid)
    kind: MediaKind
    media: Media
    offset: float = 0.0
    trim_start: float = Field(0.0, ge=0)
    trim_end: float = Field(0.0, ge=0)
    z_index: int = 0

    @model_validator(mode="after")
    def media_matches_kind(self):
        if self.media.kind != self.kind:
            raise ValueError(f"{self.kind} clip cannot reference {self.media.kind} media")
        return self


class VideoClip(ClipBase):
    kind: Literal["video"] = "video"
    matrix: Matrix = Field(default_factory=Matrix)
    origin: Tuple[float, float] = (0.5, 0.5)
    eq: Eq = Field(default_factory=Eq)
    volume: Automation = Field(default_factory=lambda: Automation.constant(1.0, kind="volume"))
    pan: float = Field(0.0, ge=-1, le=1)


class ImageClip(ClipBase):
    kind: Literal["image"] = "image"
    matrix: Matrix = Field(default_factory=Matrix)
    origin: Tuple[float, float] = (0.5, 0.5)


class AudioClip(ClipBase):
    kind: Literal["audio"] = "audio"
    volume: Automation = Field(default_factory=lambda: Automation.constant(1.0, kind="volume"))
    pan: float = Field(0.0, ge=-1, le=1)


Clip = Annotated[Union[VideoClip, ImageClip, AudioClip], Field(discriminator="kind")]


def effective_duration(clip: ClipBase) -> float:
    """Visible length of a clip; over-trimming collapses to zero, never negative."""
    return max(0.0, clip.media.duration - clip.trim_start - clip.trim_end)


def end_position(clip: ClipBase) -> float:
    return clip.offset + effective_duration(clip)


def trim_window(clip: ClipBase) -> Tuple[float, float]:
    """Source-time window ``[trim_start, media.duration - trim_end]``."""
    return clip.trim_start, clip.media.duration - clip.trim_end


def has_video(clip: ClipBase) -> bool:
    return clip.kind in ("video", "image")


def has_audio(clip: ClipBase) -> bool:
    if clip.kind == "image":
        return False
    return clip.media.has_audio


def order_clips(clips: List[ClipBase]) -> List[ClipBase]:
    """Visual clips by ascending z-index (ties keep insertion order), then audio clips."""
    visual = sorted((c for c in clips if has_video(c)), key=lambda c: c.z_index)
    audio = [c for c in clips if not has_video(c)]
    return visual + audio


class Timeline(BaseModel):
    clips: List[Clip] = Field(default_factory=list)
    width: int = Field(1920, gt=1)
    height: int = Field(1080, gt=1)

    def safe_resolution(self) -> Tuple[int, int]:
        """Even canvas size; odd values are decremented."""
        return self.width - self.width % 2, self.height - self.height % 2


class ExportRequest(Timeline):
    filename: str = "export.mp4"
