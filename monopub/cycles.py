"""Dependency cycle detection and resolution.

Cycles are found with Tarjan's strongly-connected-components algorithm.
Only components with more than one node, or a single node with a self-edge,
are cycles.

A run either rejects cycles outright or linearizes around them: a DFS over
the graph in workspace order drops every back-edge (an edge into a node
that is still on the DFS stack). The dropped edge's target is treated as
already satisfied, which leaves an acyclic graph to schedule.
"""

from __future__ import annotations

from collections import deque

from .errors import DependencyCycleError
from .graph import Edge, PackageGraph
from .models import Cycle
from .shell import warn

CYCLES_HEADLINE = "Dependency cycles detected, you should fix these!"


def strongly_connected_components(graph: PackageGraph) -> list[list[str]]:
    """Tarjan's algorithm, iterative so deep chains don't hit recursion limits.

    Returns:
        Components in the order Tarjan completes them (dependencies first).
    """
    index: dict[str, int] = {}
    lowlink: dict[str, int] = {}
    on_stack: set[str] = set()
    stack: list[str] = []
    components: list[list[str]] = []
    counter = 0

    for root in graph.names:
        if root in index:
            continue
        # Each frame: (node, iterator position into its dependencies)
        work: list[tuple[str, int]] = [(root, 0)]
        while work:
            node, pos = work.pop()
            if pos == 0:
                index[node] = lowlink[node] = counter
                counter += 1
                stack.append(node)
                on_stack.add(node)

            deps = graph.dependencies_of(node)
            descended = False
            while pos < len(deps):
                dep = deps[pos]
                pos += 1
                if dep not in index:
                    work.append((node, pos))
                    work.append((dep, 0))
                    descended = True
                    break
                if dep in on_stack:
                    lowlink[node] = min(lowlink[node], index[dep])
            if descended:
                continue

            if lowlink[node] == index[node]:
                component: list[str] = []
                while True:
                    member = stack.pop()
                    on_stack.discard(member)
                    component.append(member)
                    if member == node:
                        break
                components.append(sorted(component, key=graph.index))

            if work:
                parent = work[-1][0]
                lowlink[parent] = min(lowlink[parent], lowlink[node])

    return components


def _shortest_cycle(graph: PackageGraph, start: str, members: set[str]) -> Cycle:
    """BFS from ``start`` back to itself, staying inside one component."""
    parents: dict[str, str] = {}
    queue: deque[str] = deque([start])
    while queue:
        node = queue.popleft()
        for dep in graph.dependencies_of(node):
            if dep not in members:
                continue
            if dep == start:
                path = [node]
                while path[-1] != start:
                    path.append(parents[path[-1]])
                return Cycle(packages=tuple(reversed(path)))
            if dep not in parents:
                parents[dep] = node
                queue.append(dep)
    raise ValueError(f"{start} is not on a cycle")


def find_cycles(graph: PackageGraph) -> set[Cycle]:
    """Return one representative cycle per cyclic component.

    Each cycle starts at the component member earliest in workspace order.
    A package that depends on itself yields a cycle of length 1.
    """
    cycles: set[Cycle] = set()
    for component in strongly_connected_components(graph):
        start = component[0]
        if len(component) > 1 or start in graph.dependencies_of(start):
            cycles.add(_shortest_cycle(graph, start, set(component)))
    return cycles


def back_edges(graph: PackageGraph) -> list[Edge]:
    """Edges that close a cycle when the graph is walked in workspace order."""
    on_path: set[str] = set()
    visited: set[str] = set()
    removed: list[Edge] = []

    for root in graph.names:
        if root in visited:
            continue
        visited.add(root)
        on_path.add(root)
        work: list[tuple[str, int]] = [(root, 0)]
        while work:
            node, pos = work.pop()
            deps = graph.dependencies_of(node)
            if pos < len(deps):
                work.append((node, pos + 1))
                dep = deps[pos]
                if dep in on_path:
                    removed.append((node, dep))
                elif dep not in visited:
                    visited.add(dep)
                    on_path.add(dep)
                    work.append((dep, 0))
            else:
                on_path.discard(node)

    return removed


def sorted_cycles(graph: PackageGraph, cycles: set[Cycle]) -> list[Cycle]:
    """Cycles ordered by their first member's workspace position."""
    return sorted(
        cycles, key=lambda c: tuple(graph.index(name) for name in c.packages)
    )


def resolve_cycles(graph: PackageGraph, *, reject: bool = False) -> PackageGraph:
    """Return an acyclic graph to schedule, or fail.

    Args:
        graph: The package graph.
        reject: Fail on any cycle instead of linearizing around it.

    Raises:
        DependencyCycleError: If reject is True and a cycle exists.
    """
    cycles = find_cycles(graph)
    if not cycles:
        return graph

    rendered = [str(c) for c in sorted_cycles(graph, cycles)]
    if reject:
        raise DependencyCycleError(
            CYCLES_HEADLINE + "\n" + "\n".join(f"  {c}" for c in rendered),
            cycles=rendered,
        )

    warn(CYCLES_HEADLINE)
    for cycle in rendered:
        warn(f"  {cycle}")

    dropped = back_edges(graph)
    for dependent, dependency in dropped:
        warn(f"  publishing {dependent} without waiting for {dependency}")
    return graph.without_edges(dropped)
