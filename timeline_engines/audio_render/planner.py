from __future__ import annotations

import logging
from typing import Dict, List, Mapping, Sequence, Tuple

from timeline_engines.automation.evaluator import node_times
from timeline_engines.automation.models import Automation
from timeline_engines.effect_graph.expressions import fmt, lerp_expr, quote, segment_gate
from timeline_engines.effect_graph.models import FilterGraph, FilterSpec
from timeline_engines.video_timeline.models import ClipBase, effective_duration, has_audio, trim_window

logger = logging.getLogger(__name__)

BASE_AUDIO = "0:a"
AUDIO_SINK = "aout"


def split_label(index: int) -> str:
    return f"a_split{index}"


def clip_label(index: int) -> str:
    return f"{index}a"


def pan_gains(pan: float) -> Tuple[float, float]:
    """Linear cross-fade: the far channel fades out, the near one stays at unity."""
    left = 1.0 if pan < 0 else 1.0 - pan
    right = 1.0 if pan > 0 else 1.0 + pan
    return left, right


def delay_ms(offset: float) -> int:
    return int(round(max(0.0, offset) * 1000))


def _volume_filters(volume: Automation, clip_offset: float) -> List[FilterSpec]:
    if len(volume.curves) < 2:
        level = volume.curves[0][1] if volume.curves else volume.static_value
        return [FilterSpec.of("volume", fmt(level))]

    times = node_times(volume, clip_offset)
    values = [v for _, v in volume.curves]
    pairs = len(times) - 1
    filters = [FilterSpec.of("volume", volume=fmt(values[0]), enable=quote(f"lt(t,{fmt(times[0])})"))]
    for j in range(pairs):
        t0, t1 = times[j], times[j + 1]
        filters.append(
            FilterSpec.of(
                "volume",
                volume=quote(lerp_expr(t0, values[j], t1, values[j + 1])),
                eval="frame",
                enable=quote(segment_gate(j, pairs, t0, t1)),
            )
        )
    filters.append(FilterSpec.of("volume", volume=fmt(values[-1]), enable=quote(f"gt(t,{fmt(times[-1])})")))
    return filters


def _clip_chain(clip: ClipBase) -> List[FilterSpec]:
    start, end = trim_window(clip)
    delay = delay_ms(clip.offset)
    left, right = pan_gains(clip.pan)
    filters = [
        FilterSpec.of("atrim", start=fmt(start), end=fmt(end)),
        FilterSpec.of("asetpts", "PTS-STARTPTS"),
        FilterSpec.of("adelay", f"{delay}|{delay}"),
    ]
    filters.extend(_volume_filters(clip.volume, clip.offset))
    filters.append(FilterSpec.of("pan", f"stereo|c0={fmt(left)}*c0|c1={fmt(right)}*c1"))
    return filters


def build_audio_graph(clips: Sequence[ClipBase], inputs: Mapping[str, int]) -> FilterGraph:
    """
    Build the audio half of the export graph.

    Each clip with audio gets ``[a_split<i>] -> [<i>a]``; the base canvas'
    silent track and every clip output are mixed into ``[aout]`` with the
    base deciding the overall duration.
    """
    graph = FilterGraph(sinks=[AUDIO_SINK])
    audible = [(i, clip) for i, clip in enumerate(clips, start=1) if has_audio(clip) and effective_duration(clip) > 0]

    fan_out: Dict[str, List[int]] = {}
    for i, clip in audible:
        fan_out.setdefault(clip.media.id, []).append(i)
    for media_id, indices in sorted(fan_out.items(), key=lambda item: inputs[item[0]]):
        graph.add(
            [f"{inputs[media_id]}:a"],
            [FilterSpec.of("asplit", str(len(indices)))],
            [split_label(i) for i in indices],
        )

    for i, clip in audible:
        graph.add([split_label(i)], _clip_chain(clip), [clip_label(i)])

    mix_inputs = [BASE_AUDIO] + [clip_label(i) for i, _ in audible]
    graph.add(
        mix_inputs,
        [FilterSpec.of("amix", inputs=str(len(mix_inputs)), duration="first")],
        [AUDIO_SINK],
    )
    logger.debug("audio graph: %d audible clips, %d nodes", len(audible), len(graph.nodes))
    return graph
