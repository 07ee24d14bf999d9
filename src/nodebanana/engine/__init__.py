"""Workflow execution engine.

Modules
-------
sorter
    Topological ordering with cycle detection.
inputs
    Resolution of a node's images and text from upstream nodes.
executor
    Per-kind node execution and node state transitions.
controller
    Run state machine: start, pause/resume, stop, locked-group skip,
    single-node regeneration.
ledger
    Carousel history, global history, and cost accounting.
grid
    Splitting an image into a grid of cells.
validation
    Pre-run structural checks.
errors
    Exception hierarchy.
"""
