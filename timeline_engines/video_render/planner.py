from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from timeline_engines.automation.equalizer import equalize
from timeline_engines.automation.models import Automation
from timeline_engines.effect_graph.expressions import (
    between,
    fmt,
    lerp_expr,
    nested_if,
    quote,
    segment_gate,
    signed,
)
from timeline_engines.effect_graph.models import FilterGraph, FilterSpec
from timeline_engines.video_timeline.models import (
    ClipBase,
    Eq,
    VideoClip,
    effective_duration,
    end_position,
    has_video,
    trim_window,
)

logger = logging.getLogger(__name__)

BASE_VIDEO = "0:v"
VIDEO_SINK = "vout"

_MATRIX_KEYS = ["sx", "sy", "tx", "ty"]
_EQ_KEYS = ["contrast", "brightness", "saturation", "gamma"]


def split_label(index: int) -> str:
    return f"v_split{index}"


def clip_label(index: int) -> str:
    return f"{index}v"


@dataclass
class Segment:
    """One window between consecutive equalized keyframes."""
    index: int
    count: int
    start: float
    end: float
    values: Dict[str, Tuple[float, float]]
    gate_expr: Optional[str] = None

    def lerp(self, key: str) -> str:
        v0, v1 = self.values[key]
        return lerp_expr(self.start, v0, self.end, v1)

    @property
    def gate(self) -> str:
        if self.gate_expr is not None:
            return self.gate_expr
        return segment_gate(self.index, self.count, self.start, self.end)


def equalized_segments(keys: List[str], tracks: List[Automation], clip_offset: float) -> List[Segment]:
    """Equalize ``tracks`` and cut them into absolute-time segments."""
    equalized, interior = equalize(keys, tracks)
    lead = equalized[keys[0]]
    bounds = [0.0] + interior + [1.0]
    count = len(bounds) - 1
    segments: List[Segment] = []
    for j in range(count):
        values = {
            key: (equalized[key].curves[j][1], equalized[key].curves[j + 1][1])
            for key in keys
        }
        segments.append(
            Segment(
                index=j,
                count=count,
                start=lead.absolute_time(bounds[j], clip_offset),
                end=lead.absolute_time(bounds[j + 1], clip_offset),
                values=values,
            )
        )
    return segments


def _hold(segment: Segment, edge: int, gate: str) -> Segment:
    values = {key: (pair[edge], pair[edge]) for key, pair in segment.values.items()}
    return Segment(index=0, count=1, start=segment.start, end=segment.end, values=values, gate_expr=gate)


def clip_window_pieces(segments: List[Segment], start: float, end: float) -> List[Segment]:
    """
    Restrict ``segments`` to the visible clip window ``[start, end]``.

    Segments outside the window are dropped, segments crossing it are gated
    by it, and the parts of the window before the first or after the last
    segment hold the edge values.
    """
    window = between(start, end)
    pieces: List[Segment] = []
    first, last = segments[0], segments[-1]
    if first.start > start:
        gate = f"gte(t,{fmt(start)})*lt(t,{fmt(first.start)})" if first.start <= end else window
        pieces.append(_hold(first, 0, gate))
    for seg in segments:
        if seg.end < start or seg.start > end:
            continue
        if seg.start < start or seg.end > end:
            seg = Segment(
                index=seg.index,
                count=seg.count,
                start=seg.start,
                end=seg.end,
                values=seg.values,
                gate_expr=f"{seg.gate}*{window}",
            )
        pieces.append(seg)
    if last.end < end:
        gate = f"gt(t,{fmt(last.end)})*lte(t,{fmt(end)})" if last.end >= start else window
        pieces.append(_hold(last, 1, gate))
    return pieces


def _frame_size(clip: ClipBase, width: int, height: int) -> Tuple[int, int]:
    return clip.media.dimensions or (width, height)


def _scale_filter(clip: ClipBase, width: int, height: int) -> FilterSpec:
    mw, mh = _frame_size(clip, width, height)
    matrix = clip.matrix
    if not matrix.has_scale_keyframes:
        return FilterSpec.of(
            "scale",
            w=f"{mw}*{fmt(matrix.scale_x.static_value)}",
            h=f"{mh}*{fmt(matrix.scale_y.static_value)}",
        )
    segments = equalized_segments(_MATRIX_KEYS[:2], [matrix.scale_x, matrix.scale_y], clip.offset)
    w_expr = nested_if([(seg.end, f"({seg.lerp('sx')})*{mw}") for seg in segments])
    h_expr = nested_if([(seg.end, f"({seg.lerp('sy')})*{mh}") for seg in segments])
    return FilterSpec.of("scale", w=quote(w_expr), h=quote(h_expr), eval="frame")


def _eq_filters(eq: Eq, clip: ClipBase) -> List[FilterSpec]:
    if eq.is_identity:
        return []
    if eq.is_static:
        return [
            FilterSpec.of(
                "eq",
                contrast=fmt(eq.contrast.static_value),
                brightness=fmt(eq.brightness.static_value),
                saturation=fmt(eq.saturation.static_value),
                gamma=fmt(eq.gamma.static_value),
            )
        ]
    filters = []
    segments = equalized_segments(_EQ_KEYS, eq.tracks(), clip.offset)
    for seg in clip_window_pieces(segments, clip.offset, end_position(clip)):
        options = [(key, quote(seg.lerp(key))) for key in _EQ_KEYS]
        options += [("eval", "frame"), ("enable", quote(seg.gate))]
        filters.append(FilterSpec(name="eq", options=options))
    return filters


def _prepare_chain(clip: ClipBase, width: int, height: int) -> List[FilterSpec]:
    filters: List[FilterSpec] = []
    if isinstance(clip, VideoClip):
        start, end = trim_window(clip)
        filters.append(FilterSpec.of("trim", start=fmt(start), end=fmt(end)))
        filters.append(FilterSpec.of("setpts", f"PTS-STARTPTS+{fmt(clip.offset)}/TB"))
    filters.append(_scale_filter(clip, width, height))
    if isinstance(clip, VideoClip):
        filters.extend(_eq_filters(clip.eq, clip))
    return filters


def _origin_factors(clip: ClipBase, width: int, height: int) -> Tuple[float, float]:
    """Per-axis multiplier of ``(scale - 1)`` that moves the pivot to ``origin``."""
    mw, mh = _frame_size(clip, width, height)
    ox, oy = clip.origin
    return mw / 2 * (2 * ox - 1), mh / 2 * (2 * oy - 1)


def _static_overlay(clip: ClipBase, width: int, height: int) -> FilterSpec:
    matrix = clip.matrix
    fx, fy = _origin_factors(clip, width, height)
    x = matrix.translate_x.static_value - (matrix.scale_x.static_value - 1) * fx
    y = matrix.translate_y.static_value - (matrix.scale_y.static_value - 1) * fy
    return FilterSpec.of(
        "overlay",
        x=f"(W-w)/2{signed(x)}",
        y=f"(H-h)/2{signed(y)}",
        enable=quote(between(clip.offset, end_position(clip))),
    )


def _segment_overlays(clip: ClipBase, width: int, height: int) -> List[FilterSpec]:
    matrix = clip.matrix
    fx, fy = _origin_factors(clip, width, height)
    tracks = [matrix.scale_x, matrix.scale_y, matrix.translate_x, matrix.translate_y]
    overlays = []
    segments = equalized_segments(_MATRIX_KEYS, tracks, clip.offset)
    for seg in clip_window_pieces(segments, clip.offset, end_position(clip)):
        x = f"(W-w)/2+({seg.lerp('tx')})-((({seg.lerp('sx')})-1)*{fmt(fx)})"
        y = f"(H-h)/2+({seg.lerp('ty')})-((({seg.lerp('sy')})-1)*{fmt(fy)})"
        overlays.append(
            FilterSpec.of("overlay", x=quote(x), y=quote(y), enable=quote(seg.gate), eval="frame")
        )
    return overlays


def build_video_graph(
    clips: Sequence[ClipBase],
    inputs: Mapping[str, int],
    width: int,
    height: int,
    prescale_factor: int = 4,
) -> FilterGraph:
    """
    Build the video half of the export graph.

    ``clips`` is the full ordered clip list (visual clips by z-order first)
    with zero-duration clips already removed; clip ``i`` (1-based) owns the
    labels ``v_split<i>`` and ``<i>v``. ``inputs`` maps media id to its ffmpeg
    input index. The composite is a linear overlay chain from ``[0:v]`` to
    ``[vout]``.
    """
    graph = FilterGraph(sinks=[VIDEO_SINK])
    visual = [(i, clip) for i, clip in enumerate(clips, start=1) if has_video(clip) and effective_duration(clip) > 0]

    if not visual:
        graph.add([BASE_VIDEO], [FilterSpec.of("null")], [VIDEO_SINK])
        return graph

    fan_out: Dict[str, List[int]] = {}
    for i, clip in visual:
        fan_out.setdefault(clip.media.id, []).append(i)
    for media_id, indices in sorted(fan_out.items(), key=lambda item: inputs[item[0]]):
        graph.add(
            [f"{inputs[media_id]}:v"],
            [
                FilterSpec.of("scale", str(width * prescale_factor), "-1"),
                FilterSpec.of("split", str(len(indices))),
            ],
            [split_label(i) for i in indices],
        )

    for i, clip in visual:
        graph.add([split_label(i)], _prepare_chain(clip, width, height), [clip_label(i)])

    background = BASE_VIDEO
    for position, (i, clip) in enumerate(visual, start=1):
        target = VIDEO_SINK if position == len(visual) else f"vbase{position}"
        if not clip.matrix.has_keyframes:
            graph.add([background, clip_label(i)], [_static_overlay(clip, width, height)], [target])
        else:
            overlays = _segment_overlays(clip, width, height)
            copies = [clip_label(i)]
            if len(overlays) > 1:
                copies = [f"{i}v_s{j}" for j in range(1, len(overlays) + 1)]
                graph.add([clip_label(i)], [FilterSpec.of("split", str(len(overlays)))], copies)
            for j, (overlay, copy) in enumerate(zip(overlays, copies), start=1):
                out = target if j == len(overlays) else f"{i}ov{j}"
                graph.add([background, copy], [overlay], [out])
                background = out
        background = target

    logger.debug("video graph: %d visual clips, %d nodes", len(visual), len(graph.nodes))
    return graph
