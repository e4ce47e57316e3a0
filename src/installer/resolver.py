"""Dependency graph resolution.

Walks requirement edges depth-first in pre-order, loading module metadata
through a per-run ModuleCache. Network loads for one sibling level are issued
concurrently, but edges are always recorded in traversal order.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Tuple

from common.errors import VersionResolutionError
from common.http_client import RegistryClient
from common.logging_utils import extra_context, is_debug_enabled
from versioning.models import ModuleInfo, ResolvedEdge, VersionInfo, item_key
from versioning.resolvers.npm import select_version

logger = logging.getLogger(__name__)


class ModuleCache:
    """Module metadata for one resolution run, loaded at most once per name."""

    def __init__(self, client: RegistryClient, timeout: Optional[float] = None):
        self._client = client
        self._timeout = timeout
        self._modules: Dict[str, ModuleInfo] = {}
        self._inflight: Dict[str, asyncio.Future] = {}

    def __contains__(self, name: object) -> bool:
        return name in self._modules

    def __getitem__(self, name: str) -> ModuleInfo:
        return self._modules[name]

    def __len__(self) -> int:
        return len(self._modules)

    def get(self, name: str) -> Optional[ModuleInfo]:
        return self._modules.get(name)

    def names(self) -> List[str]:
        return list(self._modules)

    async def load(self, name: str) -> ModuleInfo:
        """Return the cached module, joining any in-flight load for ``name``."""
        cached = self._modules.get(name)
        if cached is not None:
            return cached
        future = self._inflight.get(name)
        if future is None:
            future = asyncio.ensure_future(self._fetch(name))
            self._inflight[name] = future
        return await future

    async def _fetch(self, name: str) -> ModuleInfo:
        try:
            info = await self._client.load_info(name, self._timeout)
            self._modules[name] = info
            return info
        finally:
            self._inflight.pop(name, None)

    async def load_many(self, names: List[str]) -> None:
        """Load every uncached name concurrently; the first failure propagates."""
        missing = [n for n in dict.fromkeys(names) if n not in self._modules]
        if not missing:
            return
        tasks = [asyncio.ensure_future(self.load(n)) for n in missing]
        try:
            await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise


@dataclass
class Resolution:
    """Outcome of one resolution run."""
    modules: ModuleCache
    edges: List[ResolvedEdge] = field(default_factory=list)

    def version_info(self, name: str, version: str) -> VersionInfo:
        return self.modules[name].versions[version]


class DependencyResolver:
    """Resolves a root requirement mapping into an ordered resolution log."""

    def __init__(self, client: RegistryClient, timeout: Optional[float] = None):
        self._client = client
        self._timeout = timeout

    async def resolve(self, requirements: Mapping[str, str]) -> Resolution:
        """Resolve ``requirements`` and every transitive requirement.

        Each ``(name, requirement)`` pair is decided once per run; repeated
        edges reuse the decision and are not walked again, which also stops
        dependency cycles.

        Raises:
            VersionResolutionError: no published version satisfies an edge.
        """
        resolution = Resolution(modules=ModuleCache(self._client, self._timeout))
        decided: Dict[Tuple[str, str], str] = {}
        await self._walk(dict(requirements), None, resolution, decided)
        logger.info(
            "Resolved %d edges across %d modules",
            len(resolution.edges),
            len(resolution.modules),
        )
        return resolution

    async def _walk(
        self,
        requirements: Dict[str, str],
        parent: Optional[str],
        resolution: Resolution,
        decided: Dict[Tuple[str, str], str],
    ) -> None:
        if not requirements:
            return
        await resolution.modules.load_many(list(requirements))
        for name, requirement in requirements.items():
            if (name, requirement) in decided:
                continue
            info = resolution.modules[name]
            version = select_version(requirement, info.versions.keys(), info.latest)
            if version is None or version not in info.versions:
                raise VersionResolutionError(name, requirement, len(info.versions))
            decided[(name, requirement)] = version
            resolution.edges.append(ResolvedEdge(name, requirement, version, parent))
            if is_debug_enabled(logger):
                logger.debug(
                    "Resolved edge",
                    extra=extra_context(
                        event="resolve",
                        component="resolver",
                        package=name,
                        requirement=requirement,
                        version=version,
                        parent=parent,
                    )
                )
            await self._walk(
                dict(info.versions[version].dependencies),
                item_key(name, version),
                resolution,
                decided,
            )
