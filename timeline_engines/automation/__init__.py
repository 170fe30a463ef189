"""Automation curves: model, evaluator and equalizer."""

from .models import Automation, CurveNode
from .evaluator import evaluate, node_times
from .equalizer import MalformedAutomationError, equalize

__all__ = [
    "Automation",
    "CurveNode",
    "evaluate",
    "node_times",
    "equalize",
    "MalformedAutomationError",
]
