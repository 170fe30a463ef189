from __future__ import annotations

import logging

from timeline_engines.effect_graph.models import FilterGraph

logger = logging.getLogger(__name__)

STATEMENT_SEPARATOR = ";\n"


def compile_graph(graph: FilterGraph) -> str:
    """Validate the graph wiring and serialize one statement per line."""
    graph.validate_links()
    logger.debug("compiled filter graph with %d nodes, sinks=%s", len(graph.nodes), graph.sinks)
    return STATEMENT_SEPARATOR.join(node.render() for node in graph.nodes)
