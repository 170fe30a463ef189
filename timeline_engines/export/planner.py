"""Pure export planning: clip list in, filter graph text and ffmpeg arguments out."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from timeline_engines.audio_render.planner import AUDIO_SINK, build_audio_graph
from timeline_engines.config.runtime_config import ExportSettings
from timeline_engines.effect_graph.compiler import compile_graph
from timeline_engines.effect_graph.expressions import fmt
from timeline_engines.export.errors import EmptyTimelineError
from timeline_engines.export.models import ExportPlanResponse, StagedInput
from timeline_engines.video_render.planner import VIDEO_SINK, build_video_graph
from timeline_engines.video_timeline.models import (
    ClipBase,
    Media,
    Timeline,
    effective_duration,
    end_position,
    has_audio,
    has_video,
    order_clips,
)

logger = logging.getLogger(__name__)

BASE_FILENAME = "base.mp4"
OUTPUT_FILENAME = "export.mp4"
BASE_SAMPLE_RATE = 44100


@dataclass
class ExportPlan:
    clips: List[ClipBase]
    media: List[Media]
    inputs: List[StagedInput]
    graph: str
    args: List[str]
    base_args: List[str]
    duration: float
    width: int
    height: int
    output_filename: str = OUTPUT_FILENAME
    meta: Dict[str, int] = field(default_factory=dict)

    def to_response(self) -> ExportPlanResponse:
        return ExportPlanResponse(
            graph=self.graph,
            args=list(self.args),
            base_args=list(self.base_args),
            inputs=list(self.inputs),
            duration=self.duration,
        )


def timeline_duration(clips: List[ClipBase]) -> float:
    """Latest end position over clips with a visible duration; 0 when there are none."""
    ends = [end_position(clip) for clip in clips if effective_duration(clip) > 0]
    return max(ends) if ends else 0.0


def base_canvas_args(duration: float, width: int, height: int, fps: int, crf: int) -> List[str]:
    """Black video plus a silent stereo track, exactly ``duration`` long."""
    return [
        "-t", fmt(duration),
        "-f", "lavfi", "-i", f"color=c=black:s={width}x{height}:r={fps}",
        "-f", "lavfi", "-i", f"anullsrc=channel_layout=stereo:sample_rate={BASE_SAMPLE_RATE}",
        "-pix_fmt", "yuv420p",
        "-crf", str(crf),
        "-shortest",
        "-tune", "stillimage",
        "-preset", "ultrafast",
        BASE_FILENAME,
    ]


def _collect_inputs(clips: List[ClipBase]) -> List[StagedInput]:
    inputs: List[StagedInput] = []
    seen: Dict[str, StagedInput] = {}
    for clip in clips:
        if clip.media.id in seen or not (has_video(clip) or has_audio(clip)):
            continue
        staged = StagedInput(
            index=len(inputs) + 1,
            media_id=clip.media.id,
            filename=clip.media.staged_filename,
            source_uri=clip.media.source_uri,
            loop=clip.media.kind == "image",
        )
        seen[clip.media.id] = staged
        inputs.append(staged)
    return inputs


def render_args(inputs: List[StagedInput], graph: str, crf: int, output: str = OUTPUT_FILENAME) -> List[str]:
    args = ["-i", BASE_FILENAME]
    for staged in inputs:
        if staged.loop:
            args += ["-loop", "1"]
        args += ["-i", staged.filename]
    args += [
        "-filter_complex", graph,
        "-map", f"[{VIDEO_SINK}]",
        "-map", f"[{AUDIO_SINK}]",
        "-vcodec", "libx264",
        "-crf", str(crf),
        output,
    ]
    return args


def plan_export(request: Timeline, settings: Optional[ExportSettings] = None) -> ExportPlan:
    """
    Compile a timeline into everything the engine needs.

    Raises EmptyTimelineError when no clip has a positive duration; nothing
    else here touches the engine or the filesystem.
    """
    settings = settings or ExportSettings()
    width, height = request.safe_resolution()
    clips = [clip for clip in order_clips(list(request.clips)) if effective_duration(clip) > 0]

    duration = timeline_duration(clips)
    if duration <= 0:
        raise EmptyTimelineError(stage="setup")

    inputs = _collect_inputs(clips)
    index_by_media = {staged.media_id: staged.index for staged in inputs}

    video = build_video_graph(clips, index_by_media, width, height, settings.prescale_factor)
    audio = build_audio_graph(clips, index_by_media)
    graph = compile_graph(video.merge(audio))

    media: List[Media] = []
    for staged in inputs:
        media.append(next(clip.media for clip in clips if clip.media.id == staged.media_id))

    logger.debug("planned export: %d clips, %d inputs, %.3fs", len(clips), len(inputs), duration)
    return ExportPlan(
        clips=clips,
        media=media,
        inputs=inputs,
        graph=graph,
        args=render_args(inputs, graph, settings.crf),
        base_args=base_canvas_args(duration, width, height, settings.base_fps, settings.crf),
        duration=duration,
        width=width,
        height=height,
        meta={"video_nodes": len(video.nodes), "audio_nodes": len(audio.nodes)},
    )
