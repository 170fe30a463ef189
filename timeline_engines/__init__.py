"""Timeline export engines: automation curves, filter-graph compilers and the export orchestrator."""
