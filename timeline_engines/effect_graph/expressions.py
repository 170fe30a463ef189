"""Deterministic builders for ffmpeg expression strings."""
from __future__ import annotations

from typing import List, Tuple


def fmt(value: float) -> str:
    """Integral values print as ints, everything else as the shortest repr."""
    value = float(value)
    if value == 0:
        return "0"
    if value.is_integer():
        return str(int(value))
    return repr(value)


def term(value: float) -> str:
    """``fmt`` wrapped in parentheses when negative, safe after an operator."""
    text = fmt(value)
    return f"({text})" if text.startswith("-") else text


def signed(value: float) -> str:
    """``+v`` / ``-v`` suffix for appending a constant to an expression."""
    text = fmt(value)
    return text if text.startswith("-") else f"+{text}"


def quote(expr: str) -> str:
    return f"'{expr}'"


def lerp_expr(t0: float, v0: float, t1: float, v1: float) -> str:
    """Linear ramp from ``v0`` at ``t0`` to ``v1`` at ``t1`` in terms of ``t``."""
    if t1 == t0 or v0 == v1:
        return fmt(v0)
    return f"{fmt(v0)}+(({term(v1)}-{term(v0)})*(t-{term(t0)})/({term(t1)}-{term(t0)}))"


def between(t0: float, t1: float) -> str:
    return f"between(t,{fmt(t0)},{fmt(t1)})"


def half_open(t0: float, t1: float) -> str:
    return f"gte(t,{fmt(t0)})*lt(t,{fmt(t1)})"


def segment_gate(index: int, count: int, t0: float, t1: float) -> str:
    """Half-open window except the last segment, which closes on ``t1``."""
    if index == count - 1:
        return between(t0, t1)
    return half_open(t0, t1)


def nested_if(branches: List[Tuple[float, str]]) -> str:
    """
    Select one expression per segment.

    ``branches`` holds ``(segment_end, expr)`` in chronological order. Every
    branch but the last is taken while ``t < segment_end``; the last branch is
    the else, so times before the first and after the last segment clamp to
    the exterior segments.
    """
    if not branches:
        raise ValueError("nested_if needs at least one branch")
    expr = branches[-1][1]
    for end, branch in reversed(branches[:-1]):
        expr = f"if(lt(t,{fmt(end)}),{branch},{expr})"
    return expr
