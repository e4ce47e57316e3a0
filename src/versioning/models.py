"""Data models for registry metadata, resolution and linking."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional


@dataclass(frozen=True)
class Dist:
    """Tarball location and digests published for one version."""
    shasum: str = ""
    integrity: str = ""
    tarball: str = ""


@dataclass(frozen=True)
class VersionInfo:
    """One published version of a module."""
    name: str
    version: str
    dependencies: Dict[str, str] = field(default_factory=dict)
    dist: Dist = field(default_factory=Dist)


@dataclass
class ModuleInfo:
    """Normalized registry document: every known version of one module."""
    name: str
    versions: Dict[str, VersionInfo]
    latest: Optional[str] = None


@dataclass(frozen=True)
class ResolvedEdge:
    """One requirement edge resolved to a concrete version.

    ``parent`` is the ``name@version`` key of the requiring module, or None
    for a root requirement. It does not take part in equality.
    """
    name: str
    requirement: str
    version: str
    parent: Optional[str] = field(default=None, compare=False)

    @property
    def key(self) -> str:
        return item_key(self.name, self.version)


@dataclass(frozen=True)
class Placement:
    """Install location of an item: the root slot, or nested under ``parent``."""
    parent: Optional[str] = None

    @property
    def is_root(self) -> bool:
        return self.parent is None


ROOT = Placement()


@dataclass
class DependencyItem:
    """A distinct (name, version) pair to download and extract."""
    name: str
    version: str
    resolved: str
    shasum: str = ""
    integrity: str = ""
    satisfied_versions: List[str] = field(default_factory=list)
    placement: Optional[Placement] = None

    @property
    def key(self) -> str:
        return item_key(self.name, self.version)

    @property
    def filename(self) -> str:
        """Content cache file name for this item's tarball."""
        return f"{self.name.replace('/', '-')}.{self.version}.tgz"

    def satisfy(self, requirement: str) -> None:
        if requirement not in self.satisfied_versions:
            self.satisfied_versions.append(requirement)


def item_key(name: str, version: str) -> str:
    """Stable ``name@version`` key."""
    return f"{name}@{version}"
