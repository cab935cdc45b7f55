"""Package dependency graph.

Nodes are workspace packages; an edge A → B means "A depends on B" and B is
itself a node. Which manifest sections count as edges is decided by the
edge-kind policy (``--graph-type``):

- ``dependencies``: ``dependencies`` and ``optionalDependencies`` only.
- ``all``: additionally ``devDependencies`` and ``peerDependencies``.

The graph is immutable. Node order is the workspace order and is used as
the tie-break wherever output must be deterministic.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping

from .errors import InvalidEdgeKindError
from .models import Package

EDGE_KINDS = ("dependencies", "all")
DEFAULT_EDGE_KIND = "dependencies"

Edge = tuple[str, str]


def validate_edge_kind(edge_kind: str) -> str:
    """Return ``edge_kind`` unchanged, or raise InvalidEdgeKindError."""
    if edge_kind not in EDGE_KINDS:
        raise InvalidEdgeKindError(edge_kind)
    return edge_kind


def declared_dependencies(package: Package, edge_kind: str) -> list[str]:
    """Names a package declares under the given edge-kind policy.

    Order follows the manifest: runtime, optional, then (for ``all``) dev
    and peer. Duplicates across sections are dropped.
    """
    sections = [package.dependencies, package.optional_dependencies]
    if edge_kind == "all":
        sections += [package.dev_dependencies, package.peer_dependencies]

    names: list[str] = []
    for section in sections:
        for name in section:
            if name not in names:
                names.append(name)
    return names


class PackageGraph:
    """Directed dependency graph over a fixed, ordered set of packages."""

    def __init__(
        self,
        packages: Mapping[str, Package],
        edges: Mapping[str, Iterable[str]],
    ) -> None:
        self._packages = dict(packages)
        self._names = tuple(self._packages)
        self._index = {name: i for i, name in enumerate(self._names)}

        self._deps: dict[str, tuple[str, ...]] = {}
        self._dependents: dict[str, list[str]] = {n: [] for n in self._names}
        for name in self._names:
            targets = sorted(
                {t for t in edges.get(name, ()) if t in self._index},
                key=self._index.__getitem__,
            )
            self._deps[name] = tuple(targets)
            for target in targets:
                self._dependents[target].append(name)

    @property
    def names(self) -> tuple[str, ...]:
        """Node names in stable (workspace) order."""
        return self._names

    @property
    def packages(self) -> dict[str, Package]:
        return dict(self._packages)

    def __getitem__(self, name: str) -> Package:
        return self._packages[name]

    def __contains__(self, name: object) -> bool:
        return name in self._index

    def __iter__(self) -> Iterator[str]:
        return iter(self._names)

    def __len__(self) -> int:
        return len(self._names)

    def index(self, name: str) -> int:
        """Position of a node in the stable order."""
        return self._index[name]

    def dependencies_of(self, name: str) -> tuple[str, ...]:
        """Nodes ``name`` depends on, in stable order."""
        return self._deps[name]

    def dependents_of(self, name: str) -> tuple[str, ...]:
        """Nodes that depend on ``name``, in stable order."""
        return tuple(self._dependents[name])

    def edges(self) -> list[Edge]:
        """All (dependent, dependency) pairs, in stable order."""
        return [(name, dep) for name in self._names for dep in self._deps[name]]

    def without_edges(self, removed: Iterable[Edge]) -> PackageGraph:
        """Return a copy of the graph with the given edges dropped."""
        dropped = set(removed)
        edges = {
            name: [dep for dep in self._deps[name] if (name, dep) not in dropped]
            for name in self._names
        }
        return PackageGraph(self._packages, edges)


def build_graph(
    packages: Iterable[Package],
    edge_kind: str = DEFAULT_EDGE_KIND,
    *,
    include_private: bool = False,
) -> PackageGraph:
    """Build the dependency graph for a set of packages.

    Args:
        packages: Packages in workspace order.
        edge_kind: ``dependencies`` (default) or ``all``.
        include_private: Keep private packages as nodes. Publishing never
                         does; other callers (e.g. change propagation) do.

    Returns:
        A PackageGraph. Dependencies on packages outside the node set are
        external and produce no edge.

    Raises:
        InvalidEdgeKindError: If edge_kind is not a known policy.
    """
    validate_edge_kind(edge_kind)

    nodes = {
        pkg.name: pkg for pkg in packages if include_private or not pkg.private
    }
    edges = {
        name: [dep for dep in declared_dependencies(pkg, edge_kind) if dep in nodes]
        for name, pkg in nodes.items()
    }
    return PackageGraph(nodes, edges)
