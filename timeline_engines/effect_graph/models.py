from __future__ import annotations

import re
from typing import Dict, List, Tuple

from pydantic import BaseModel, Field

EXTERNAL_STREAM = re.compile(r"^\d+:[va]$")
SPLIT_FILTERS = ("split", "asplit")


class GraphValidationError(ValueError):
    pass


class FilterSpec(BaseModel):
    """One ffmpeg filter: positional args first, then key=value options."""
    name: str
    args: List[str] = Field(default_factory=list)
    options: List[Tuple[str, str]] = Field(default_factory=list)

    @classmethod
    def of(cls, name: str, *args: str, **options: str) -> "FilterSpec":
        return cls(name=name, args=list(args), options=list(options.items()))

    def render(self) -> str:
        parts = list(self.args) + [f"{key}={value}" for key, value in self.options]
        if not parts:
            return self.name
        return f"{self.name}=" + ":".join(parts)


class FilterNode(BaseModel):
    """A single statement: ``[in]...f1,f2,...[out]...``."""
    inputs: List[str] = Field(default_factory=list)
    filters: List[FilterSpec] = Field(default_factory=list)
    outputs: List[str] = Field(default_factory=list)

    def render(self) -> str:
        ins = "".join(f"[{label}]" for label in self.inputs)
        outs = "".join(f"[{label}]" for label in self.outputs)
        return ins + ",".join(f.render() for f in self.filters) + outs


class FilterGraph(BaseModel):
    nodes: List[FilterNode] = Field(default_factory=list)
    sinks: List[str] = Field(default_factory=list)

    def add(self, inputs: List[str], filters: List[FilterSpec], outputs: List[str]) -> FilterNode:
        node = FilterNode(inputs=list(inputs), filters=list(filters), outputs=list(outputs))
        self.nodes.append(node)
        return node

    def merge(self, other: "FilterGraph") -> "FilterGraph":
        return FilterGraph(nodes=self.nodes + other.nodes, sinks=self.sinks + other.sinks)

    def labels(self) -> List[str]:
        return [label for node in self.nodes for label in node.outputs]

    def validate_links(self) -> None:
        """
        Check the wiring before serialization.

        Every produced label is consumed exactly once unless it is a declared
        sink; sinks are produced and never consumed; inputs are external
        streams or outputs of an earlier node; split fan-outs match their
        declared count.
        """
        produced: Dict[str, int] = {}
        consumed: Dict[str, int] = {}
        for position, node in enumerate(self.nodes):
            if not node.filters:
                raise GraphValidationError(f"node {position} has no filters")
            for label in node.inputs:
                if EXTERNAL_STREAM.match(label):
                    continue
                if label not in produced:
                    raise GraphValidationError(f"node {position} consumes [{label}] before it is produced")
                if label in consumed:
                    raise GraphValidationError(f"[{label}] is consumed more than once")
                consumed[label] = position
            for label in node.outputs:
                if EXTERNAL_STREAM.match(label):
                    raise GraphValidationError(f"node {position} writes to external stream [{label}]")
                if label in produced:
                    raise GraphValidationError(f"duplicate label [{label}]")
                produced[label] = position
            for idx, filt in enumerate(node.filters):
                if filt.name not in SPLIT_FILTERS:
                    continue
                if idx != len(node.filters) - 1:
                    raise GraphValidationError(f"{filt.name} must be the last filter of node {position}")
                count = int(filt.args[0]) if filt.args else 2
                if count != len(node.outputs):
                    raise GraphValidationError(
                        f"{filt.name}={count} in node {position} has {len(node.outputs)} outputs"
                    )

        for sink in self.sinks:
            if sink not in produced:
                raise GraphValidationError(f"sink [{sink}] is never produced")
            if sink in consumed:
                raise GraphValidationError(f"sink [{sink}] must not be consumed")
        dangling = [label for label in produced if label not in consumed and label not in self.sinks]
        if dangling:
            raise GraphValidationError(f"unconsumed labels: {dangling}")
