"""Tests for monopub.graph."""

from __future__ import annotations

import pytest

from monopub.errors import InvalidEdgeKindError
from monopub.graph import build_graph, declared_dependencies, validate_edge_kind


class TestEdgeKinds:
    def test_valid(self) -> None:
        assert validate_edge_kind("dependencies") == "dependencies"
        assert validate_edge_kind("all") == "all"

    def test_invalid_names_value(self) -> None:
        with pytest.raises(InvalidEdgeKindError, match="'devDependencies'"):
            validate_edge_kind("devDependencies")

    def test_declared_dependencies(self, make_package) -> None:
        pkg = make_package(
            "app",
            dependencies={"a": "*"},
            optionalDependencies={"b": "*"},
            devDependencies={"c": "*", "a": "*"},
            peerDependencies={"d": "*"},
        )
        assert declared_dependencies(pkg, "dependencies") == ["a", "b"]
        assert declared_dependencies(pkg, "all") == ["a", "b", "c", "d"]


class TestBuildGraph:
    def test_dev_edges_only_with_all(self, make_package) -> None:
        packages = [
            make_package("lib"),
            make_package("app", devDependencies={"lib": "*"}),
        ]
        assert build_graph(packages).dependencies_of("app") == ()
        assert build_graph(packages, "all").dependencies_of("app") == ("lib",)

    def test_external_deps_ignored(self, make_package) -> None:
        """Dependencies outside the node set produce no edge."""
        graph = build_graph(
            [make_package("a", dependencies={"left-pad": "^1.0.0"})]
        )
        assert graph.edges() == []

    def test_private_excluded_by_default(self, make_package) -> None:
        packages = [
            make_package("a"),
            make_package("secret", private=True, dependencies={"a": "*"}),
        ]
        assert "secret" not in build_graph(packages)
        graph = build_graph(packages, include_private=True)
        assert graph.dependents_of("a") == ("secret",)

    def test_stable_order(self, make_package) -> None:
        packages = [
            make_package("z"),
            make_package("y", dependencies={"z": "*"}),
            make_package("x", dependencies={"z": "*", "y": "*"}),
        ]
        graph = build_graph(packages)
        assert graph.names == ("z", "y", "x")
        assert graph.dependencies_of("x") == ("z", "y")
        assert graph.dependents_of("z") == ("y", "x")
        assert graph.edges() == [("y", "z"), ("x", "z"), ("x", "y")]

    def test_without_edges(self, make_package) -> None:
        packages = [
            make_package("a", dependencies={"b": "*"}),
            make_package("b", dependencies={"a": "*"}),
        ]
        graph = build_graph(packages)
        trimmed = graph.without_edges([("b", "a")])

        assert trimmed.dependencies_of("b") == ()
        assert trimmed.dependencies_of("a") == ("b",)
        # the original is untouched
        assert graph.dependencies_of("b") == ("a",)

    def test_invalid_edge_kind(self, make_package) -> None:
        with pytest.raises(InvalidEdgeKindError):
            build_graph([make_package("a")], "peer")
