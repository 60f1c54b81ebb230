"""Dependency-graph task engine.

This package holds the task model, the pure scheduling core (ordering,
graph, state machine, scheduler), the file-backed store and the
:class:`TaskEngine` facade that ties them together per operation.
"""
