"""Tests for monopub.scheduler."""

from __future__ import annotations

from pathlib import Path

import pytest

from monopub.cycles import resolve_cycles
from monopub.errors import DependencyCycleError
from monopub.graph import build_graph
from monopub.scheduler import schedule
from monopub.workspace import discover_packages


class TestSchedule:
    def test_runtime_edges(self, workspace: Path) -> None:
        packages = discover_packages(workspace).values()
        plan = schedule(build_graph(packages, "dependencies"))

        assert plan.batches == (("package-1", "package-3", "package-4"), ("package-2",))
        assert plan.order == ["package-1", "package-3", "package-4", "package-2"]

    def test_all_edges(self, workspace: Path) -> None:
        packages = discover_packages(workspace).values()
        plan = schedule(build_graph(packages, "all"))

        assert plan.order == ["package-1", "package-4", "package-2", "package-3"]
        assert plan.batch_index("package-3") == 2

    def test_diamond(self, make_package) -> None:
        graph = build_graph(
            [
                make_package("top", dependencies={"left": "*", "right": "*"}),
                make_package("left", dependencies={"bottom": "*"}),
                make_package("right", dependencies={"bottom": "*"}),
                make_package("bottom"),
            ]
        )
        plan = schedule(graph)
        assert plan.batches == (("bottom",), ("left", "right"), ("top",))

    def test_empty(self) -> None:
        assert schedule(build_graph([])).batches == ()

    def test_cycle_raises(self, make_package) -> None:
        graph = build_graph(
            [
                make_package("a", dependencies={"b": "*"}),
                make_package("b", dependencies={"a": "*"}),
                make_package("c"),
            ]
        )
        with pytest.raises(DependencyCycleError, match="a, b"):
            schedule(graph)


def _chain(make_package):
    names = [f"c{i}" for i in range(6)]
    return build_graph(
        [make_package(n, dependencies={names[i + 1]: "*"}) for i, n in enumerate(names[:-1])]
        + [make_package(names[-1])]
    )


def _fan_in(make_package):
    leaves = [make_package(f"leaf{i}") for i in range(8)]
    hub = make_package("hub", dependencies={f"leaf{i}": "*" for i in range(8)})
    return build_graph([hub, *leaves])


def _fan_out_with_externals(make_package):
    root = make_package("core", dependencies={"lodash": "^4.0.0"})
    users = [
        make_package(f"user{i}", dependencies={"core": "*", "react": "*"})
        for i in range(5)
    ]
    return build_graph([*users, root])


def _mixed_edge_kinds(make_package):
    return build_graph(
        [
            make_package("app", devDependencies={"tooling": "*"}, dependencies={"ui": "*"}),
            make_package("ui", peerDependencies={"core": "*"}),
            make_package("tooling", optionalDependencies={"core": "*"}),
            make_package("core"),
        ],
        "all",
    )


def _linearized_cycles(make_package):
    return resolve_cycles(
        build_graph(
            [
                make_package("a", dependencies={"b": "*"}),
                make_package("b", dependencies={"c": "*"}),
                make_package("c", dependencies={"a": "*", "d": "*"}),
                make_package("d", dependencies={"e": "*"}),
                make_package("e", dependencies={"d": "*", "e": "*"}),
                make_package("f", dependencies={"a": "*", "e": "*"}),
            ]
        )
    )


@pytest.mark.parametrize(
    "build",
    [_chain, _fan_in, _fan_out_with_externals, _mixed_edge_kinds, _linearized_cycles],
)
def test_every_dependency_lands_in_an_earlier_batch(build, make_package) -> None:
    graph = build(make_package)
    plan = schedule(graph)

    assert len(plan.order) == len(set(plan.order))
    assert sorted(plan.order) == sorted(graph.names)
    for dependent, dependency in graph.edges():
        assert plan.batch_index(dependency) < plan.batch_index(dependent)
