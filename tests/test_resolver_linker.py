"""Tests for dependency resolution order and hoisting."""

import asyncio
import os

import pytest

from common.errors import VersionResolutionError
from common.http_client import RegistryClient
from installer.linker import install_path, link
from installer.resolver import DependencyResolver, ModuleCache
from versioning.models import Dist, ModuleInfo, ResolvedEdge, VersionInfo


def _resolve(registry, requirements):
    async def _run():
        async with registry.serve() as url:
            registry.add_graph()
            async with RegistryClient(url) as client:
                return await DependencyResolver(client).resolve(requirements)

    return asyncio.run(_run())


def _module(name, versions):
    return ModuleInfo(
        name=name,
        versions={
            v: VersionInfo(name, v, deps, Dist(tarball=f"http://r/{name}-{v}.tgz"))
            for v, deps in versions.items()
        },
    )


class TestDependencyResolver:
    """Test depth-first resolution of the example graph."""

    def test_resolution_log_order(self, registry):
        resolution = _resolve(registry, {"a": "^0.0.1"})

        assert len(resolution.modules) == 4
        assert [(e.name, e.requirement, e.version) for e in resolution.edges] == [
            ("a", "^0.0.1", "0.0.1"),
            ("b", "^1.0.0", "1.0.0"),
            ("c", "^2.0.0", "2.0.0"),
            ("b", "^2.0.0", "2.0.0"),
            ("d", "^1.0.0", "1.0.0"),
            ("d", ">= 0.0.1", "1.0.0"),
        ]

    def test_edges_record_their_parent(self, registry):
        edges = _resolve(registry, {"a": "^0.0.1"}).edges

        assert edges[0].parent is None
        assert edges[2].parent == "a@0.0.1"
        assert edges[3].parent == "c@2.0.0"

    def test_each_module_fetched_once(self, registry):
        _resolve(registry, {"a": "^0.0.1"})

        for name in ("a", "b", "c", "d"):
            assert registry.count(f"/{name}") == 1

    def test_unsatisfiable_requirement(self, registry):
        with pytest.raises(VersionResolutionError):
            _resolve(registry, {"b": "^9.0.0"})

    def test_cycle_terminates(self, registry):
        async def _run():
            async with registry.serve() as url:
                registry.add_module("x", {"1.0.0": {"y": "^1.0.0"}})
                registry.add_module("y", {"1.0.0": {"x": "^1.0.0"}})
                async with RegistryClient(url) as client:
                    return await DependencyResolver(client).resolve({"x": "^1.0.0"})

        edges = asyncio.run(_run()).edges

        assert [(e.name, e.version) for e in edges] == [("x", "1.0.0"), ("y", "1.0.0")]

    def test_latest_tag_is_preferred(self, registry):
        async def _run():
            async with registry.serve() as url:
                registry.add_module(
                    "p", {"1.0.0": {}, "1.5.0": {}}, **{"dist-tags": {"latest": "1.0.0"}}
                )
                async with RegistryClient(url) as client:
                    return await DependencyResolver(client).resolve({"p": "^1.0.0"})

        assert asyncio.run(_run()).edges[0].version == "1.0.0"


class TestLink:
    """Test first-claim-wins hoisting."""

    def test_links_example_graph(self, registry):
        resolution = _resolve(registry, {"a": "^0.0.1"})

        items = link({"a": "^0.0.1"}, resolution.edges, resolution.modules)

        assert [item.key for item in items] == ["a@0.0.1", "b@1.0.0", "c@2.0.0", "b@2.0.0", "d@1.0.0"]
        by_key = {item.key: item for item in items}
        assert by_key["b@1.0.0"].placement.is_root
        assert by_key["b@2.0.0"].placement.parent == "c@2.0.0"
        assert by_key["d@1.0.0"].placement.is_root
        assert by_key["d@1.0.0"].satisfied_versions == ["^1.0.0", ">= 0.0.1"]
        assert by_key["b@2.0.0"].resolved.endswith("/b-2.0.0.tgz")

    def test_no_requirements_links_nothing(self, registry):
        resolution = _resolve(registry, {"a": "^0.0.1"})

        assert link(None, resolution.edges, resolution.modules) == []
        assert link({}, resolution.edges, resolution.modules) == []

    def test_root_requirement_beats_earlier_transitive_edge(self):
        """A root requirement keeps the root slot even if a subtree saw the name first."""
        modules = {
            "a": _module("a", {"1.0.0": {"b": "^1.0.0"}}),
            "b": _module("b", {"1.0.0": {}, "2.0.0": {}}),
        }
        edges = [
            ResolvedEdge("a", "^1.0.0", "1.0.0", None),
            ResolvedEdge("b", "^1.0.0", "1.0.0", "a@1.0.0"),
            ResolvedEdge("b", "^2.0.0", "2.0.0", None),
        ]

        items = link({"a": "^1.0.0", "b": "^2.0.0"}, edges, modules)

        by_key = {item.key: item for item in items}
        assert by_key["b@2.0.0"].placement.is_root
        assert by_key["b@1.0.0"].placement.parent == "a@1.0.0"

    def test_install_path_nests_recursively(self):
        modules = {
            "a": _module("a", {"1.0.0": {}}),
            "c": _module("c", {"1.0.0": {}, "2.0.0": {}}),
            "e": _module("e", {"1.0.0": {}, "2.0.0": {}}),
        }
        edges = [
            ResolvedEdge("e", "^1.0.0", "1.0.0", None),
            ResolvedEdge("c", "^1.0.0", "1.0.0", None),
            ResolvedEdge("a", "^1.0.0", "1.0.0", None),
            ResolvedEdge("c", "^2.0.0", "2.0.0", "a@1.0.0"),
            ResolvedEdge("e", "^2.0.0", "2.0.0", "c@2.0.0"),
        ]

        items = link({"e": "^1.0.0", "c": "^1.0.0", "a": "^1.0.0"}, edges, modules)
        by_key = {item.key: item for item in items}
        root = os.path.join("proj", "node_modules")

        assert install_path(by_key["a@1.0.0"], by_key, root) == os.path.join(root, "a")
        assert install_path(by_key["e@2.0.0"], by_key, root) == os.path.join(
            root, "a", "node_modules", "c", "node_modules", "e"
        )


class TestHoistManifestRequirements:
    """Manifest entries keep the top-level slot when a subtree reaches them first."""

    @staticmethod
    def _add_shadowing_graph(registry):
        registry.add_module("a", {"1.0.0": {"b": "^2.0.0", "c": "^1.0.0"}})
        registry.add_module("b", {"1.0.0": {}, "2.0.0": {}})
        registry.add_module("c", {"1.0.0": {"b": "^1.0.0"}})

    def test_manifest_version_claims_root(self, registry):
        requirements = {"a": "^1.0.0", "b": "^1.0.0"}

        async def _run():
            async with registry.serve() as url:
                self._add_shadowing_graph(registry)
                async with RegistryClient(url) as client:
                    return await DependencyResolver(client).resolve(requirements)

        resolution = asyncio.run(_run())
        items = link(requirements, resolution.edges, resolution.modules)

        by_key = {item.key: item for item in items}
        assert by_key["b@1.0.0"].placement.is_root
        assert by_key["b@2.0.0"].placement.parent == "a@1.0.0"
        assert by_key["c@1.0.0"].placement.is_root
        assert by_key["b@1.0.0"].satisfied_versions == ["^1.0.0"]


class TestModuleCache:
    """Test in-flight collapse of metadata loads."""

    def test_concurrent_loads_share_one_request(self, registry):
        async def _run():
            async with registry.serve() as url:
                registry.add_graph()
                async with RegistryClient(url) as client:
                    cache = ModuleCache(client)
                    first, second = await asyncio.gather(cache.load("a"), cache.load("a"))
                    return first, second, len(cache)

        first, second, size = asyncio.run(_run())

        assert first is second
        assert size == 1
        assert registry.count("/a") == 1
