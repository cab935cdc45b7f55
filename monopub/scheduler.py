"""Publish scheduling.

Turns an acyclic package graph into batches with Kahn's algorithm, one
layer at a time. Packages must be published in dependency order so that
when package A depends on package B, B is available first.
"""

from __future__ import annotations

from .errors import DependencyCycleError
from .graph import PackageGraph
from .models import PublishPlan


def schedule(graph: PackageGraph) -> PublishPlan:
    """Layer the graph into publish batches.

    Batch 0 holds every package with no dependencies inside the graph.
    Removing a batch's packages frees their dependents; the newly free
    packages form the next batch. Within a batch, packages keep workspace
    order for deterministic output.

    Args:
        graph: Acyclic package graph (see :func:`monopub.cycles.resolve_cycles`).

    Returns:
        PublishPlan where each dependency sits in an earlier batch than its
        dependents.

    Raises:
        DependencyCycleError: If the graph still contains a cycle.

    Example:
        If A depends on B, and B depends on C:
        schedule(graph) → [[C], [B], [A]]
    """
    # Count unresolved dependencies for each package
    in_degree = {name: len(graph.dependencies_of(name)) for name in graph}

    batches: list[tuple[str, ...]] = []
    ready = [name for name in graph if in_degree[name] == 0]
    scheduled = 0

    while ready:
        batches.append(tuple(ready))
        scheduled += len(ready)
        freed: set[str] = set()
        for name in ready:
            for dependent in graph.dependents_of(name):
                in_degree[dependent] -= 1
                if in_degree[dependent] == 0:
                    freed.add(dependent)
        ready = sorted(freed, key=graph.index)

    # If we didn't schedule every package, there must be a cycle
    if scheduled != len(graph):
        remaining = [name for name in graph if in_degree[name] > 0]
        raise DependencyCycleError(
            f"Dependency cycle prevents scheduling: {', '.join(remaining)}",
            cycles=remaining,
        )

    return PublishPlan(batches=tuple(batches))
