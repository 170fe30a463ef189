"""
Automation Models.

An automation is a single time-varying scalar: a small keyframe curve over the
automation's own window plus a static fallback used when the curve is empty.
Curve times are normalized to [0, 1] of ``duration``.
"""

from __future__ import annotations

import uuid
from typing import List, Literal, Optional, Tuple

from pydantic import BaseModel, Field, model_validator

CurveNode = Tuple[float, float]

AutomationKind = Literal[
    "scale_x",
    "scale_y",
    "translate_x",
    "translate_y",
    "volume",
    "contrast",
    "brightness",
    "saturation",
    "gamma",
    "generic",
]


def _uuid() -> str:
    return uuid.uuid4().hex


class Automation(BaseModel):
    """
    A keyframed scalar parameter with a constant fallback.

    ``offset`` is always measured from the clip start. ``anchor="end"`` is
    accepted so stored timelines round-trip, but it is reserved: it does not
    change ``absolute_time``.
    """
    id: str = Field(default_factory=_uuid)
    kind: AutomationKind = "generic"
    anchor: Literal["start", "end"] = "start"
    offset: float = 0.0
    duration: float = Field(0.0, ge=0)
    curves: List[CurveNode] = Field(default_factory=list)
    static_value: float = 0.0
    bounds: Optional[Tuple[float, float]] = None

    @model_validator(mode="after")
    def validate_curves(self):
        prev: Optional[float] = None
        for time, _ in self.curves:
            if time < 0 or time > 1:
                raise ValueError("curve times must be normalized to [0, 1]")
            if prev is not None and time <= prev:
                raise ValueError("curve times must be strictly ascending")
            prev = time
        if self.bounds is not None and self.bounds[0] > self.bounds[1]:
            raise ValueError("bounds must be (min, max) with min <= max")
        return self

    @classmethod
    def constant(cls, value: float, *, duration: float = 0.0, kind: AutomationKind = "generic") -> "Automation":
        return cls(kind=kind, duration=duration, static_value=value)

    @property
    def is_static(self) -> bool:
        return not self.curves

    def clamp(self, value: float) -> float:
        """Apply ``bounds`` to a value written by an editor."""
        if self.bounds is None:
            return value
        low, high = self.bounds
        return min(max(value, low), high)

    def absolute_time(self, normalized: float, clip_offset: float = 0.0) -> float:
        return clip_offset + self.offset + normalized * self.duration
