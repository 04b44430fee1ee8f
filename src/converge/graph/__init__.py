"""Dependency graph construction and queries."""

from .dependency_graph import DependencyGraph, build_graph

__all__ = ["DependencyGraph", "build_graph"]
