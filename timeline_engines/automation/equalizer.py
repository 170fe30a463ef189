"""Equalizes a group of automations so they share one keyframe time-set."""
from __future__ import annotations

import bisect
from typing import Dict, List, Sequence, Tuple

from timeline_engines.automation.evaluator import evaluate
from timeline_engines.automation.models import Automation, CurveNode


class MalformedAutomationError(ValueError):
    pass


def _interpolate(curves: List[CurveNode], time: float) -> float:
    if time <= curves[0][0]:
        return curves[0][1]
    if time >= curves[-1][0]:
        return curves[-1][1]
    for (t0, v0), (t1, v1) in zip(curves, curves[1:]):
        if t0 <= time <= t1:
            if t1 == t0:
                return v0
            return v0 + (v1 - v0) * (time - t0) / (t1 - t0)
    return curves[-1][1]


def _rebase(track: Automation, lead: Automation) -> Automation:
    """Re-express ``track`` in the normalized window of ``lead``."""
    if (track.offset, track.duration) == (lead.offset, lead.duration):
        return track
    if track.is_static:
        return track.model_copy(update={"offset": lead.offset, "duration": lead.duration})
    if lead.duration <= 0:
        return track

    start = lead.offset
    end = lead.offset + lead.duration
    nodes: List[CurveNode] = []
    if track.duration > 0:
        for t, v in track.curves:
            u = (track.absolute_time(t) - lead.offset) / lead.duration
            if 0 <= u <= 1:
                nodes.append((u, v))
    if not nodes or nodes[0][0] > 0:
        nodes.insert(0, (0.0, evaluate(track, start)))
    if nodes[-1][0] < 1:
        nodes.append((1.0, evaluate(track, end)))
    return track.model_copy(update={"offset": lead.offset, "duration": lead.duration, "curves": nodes})


def _with_endpoints(track: Automation) -> Automation:
    if track.is_static:
        curves = [(0.0, track.static_value), (1.0, track.static_value)]
        return track.model_copy(update={"curves": curves})
    curves = list(track.curves)
    if curves[0][0] > 0:
        curves.insert(0, (0.0, curves[0][1]))
    if curves[-1][0] < 1:
        curves.append((1.0, curves[-1][1]))
    return track.model_copy(update={"curves": curves})


def equalize(names: Sequence[str], automations: Sequence[Automation]) -> Tuple[Dict[str, Automation], List[float]]:
    """
    Insert interpolated keyframes so every automation shares the same sorted
    keyframe times.

    Returns a name -> automation mapping (in ``names`` order, deep copies) and
    the sorted unique interior times (0 and 1 excluded). Every returned track
    has nodes at 0, each interior time and 1, i.e. ``len(times) + 1`` segments.
    Tracks are re-expressed on the window of the first keyframed track.
    """
    if len(names) != len(automations):
        raise MalformedAutomationError(
            f"cannot equalize {len(names)} names against {len(automations)} automations"
        )
    if len(set(names)) != len(names):
        raise MalformedAutomationError(f"duplicate automation names: {list(names)}")
    if not automations:
        return {}, []

    copies = [a.model_copy(deep=True) for a in automations]
    lead = next((a for a in copies if not a.is_static), copies[0])
    tracks = [_with_endpoints(_rebase(track, lead)) for track in copies]

    interior = sorted({t for track in tracks for t, _ in track.curves if t not in (0, 1)})

    equalized: Dict[str, Automation] = {}
    for name, track in zip(names, tracks):
        curves = list(track.curves)
        for time in interior:
            existing = [t for t, _ in curves]
            idx = bisect.bisect_left(existing, time)
            if idx < len(existing) and existing[idx] == time:
                continue
            curves.insert(idx, (time, _interpolate(curves, time)))
        equalized[name] = track.model_copy(update={"curves": curves})
    return equalized, interior
