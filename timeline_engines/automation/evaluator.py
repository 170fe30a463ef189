from __future__ import annotations

from typing import List

from timeline_engines.automation.models import Automation


def node_times(automation: Automation, clip_offset: float = 0.0) -> List[float]:
    """Absolute timeline times of every curve node."""
    return [automation.absolute_time(t, clip_offset) for t, _ in automation.curves]


def evaluate(automation: Automation, time: float, clip_offset: float = 0.0) -> float:
    """
    Value of ``automation`` at absolute timeline ``time``.

    Clamps to the edge values outside the curve and interpolates linearly
    between the bracketing nodes inside it.
    """
    if not automation.curves:
        return automation.static_value

    times = node_times(automation, clip_offset)
    values = [v for _, v in automation.curves]

    if time <= times[0]:
        return values[0]
    if time >= times[-1]:
        return values[-1]

    for idx in range(len(times) - 1):
        t0, t1 = times[idx], times[idx + 1]
        if time == t1:
            return values[idx + 1]
        if t0 <= time < t1:
            v0, v1 = values[idx], values[idx + 1]
            if t1 == t0:
                return v0
            return v0 + (v1 - v0) * (time - t0) / (t1 - t0)
    return values[-1]
