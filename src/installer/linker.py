"""Flattening of a resolution log into placed DependencyItems.

Hoisting is first-claim-wins: the first edge for a name takes the root slot,
later edges for a different version are nested under the requiring item.
Root requirements always claim their slot before any transitive edge.
"""

from __future__ import annotations

import logging
import os
from typing import Dict, List, Mapping, Optional, Sequence

from constants import Constants
from versioning.models import ROOT, DependencyItem, ModuleInfo, Placement, ResolvedEdge

logger = logging.getLogger(__name__)


def _build_items(edges: Sequence[ResolvedEdge], modules: Mapping[str, ModuleInfo]) -> Dict[str, DependencyItem]:
    items: Dict[str, DependencyItem] = {}
    for edge in edges:
        if edge.key in items:
            continue
        dist = modules[edge.name].versions[edge.version].dist
        items[edge.key] = DependencyItem(
            name=edge.name,
            version=edge.version,
            resolved=dist.tarball,
            shasum=dist.shasum,
            integrity=dist.integrity,
        )
    return items


def _find_edge(edges: Sequence[ResolvedEdge], name: str, requirement: str) -> Optional[ResolvedEdge]:
    for edge in edges:
        if edge.name == name and edge.requirement == requirement:
            return edge
    return None


def link(
    requirements: Optional[Mapping[str, str]],
    edges: Sequence[ResolvedEdge],
    modules: Mapping[str, ModuleInfo],
) -> List[DependencyItem]:
    """Create one placed DependencyItem per distinct (name, version) in ``edges``.

    Args:
        requirements: Root requirement mapping; nothing is linked when empty.
        edges: Resolution log in traversal order.
        modules: Metadata cache the log was resolved against.

    Returns:
        Items in first-occurrence order, each with a placement.
    """
    if not requirements:
        return []
    items = _build_items(edges, modules)
    root_slots: Dict[str, str] = {}

    # The log holds each (name, requirement) once, so a manifest entry first
    # reached inside a subtree is logged there with a non-root parent.
    for name, requirement in requirements.items():
        edge = _find_edge(edges, name, requirement)
        if edge is None:
            logger.debug("No resolved edge for root requirement %s@%s", name, requirement)
            continue
        item = items[edge.key]
        root_slots[name] = edge.version
        item.placement = ROOT
        item.satisfy(requirement)

    for edge in edges:
        item = items[edge.key]
        claimed = root_slots.get(edge.name)
        if claimed is None:
            root_slots[edge.name] = edge.version
            item.placement = ROOT
        elif claimed != edge.version and item.placement is None:
            item.placement = Placement(parent=edge.parent)
            logger.debug("Nesting %s under %s", edge.key, edge.parent)
        item.satisfy(edge.requirement)

    return list(items.values())


def install_path(item: DependencyItem, items: Mapping[str, DependencyItem], root: str) -> str:
    """Directory ``item`` is extracted into.

    ``root`` is the top-level modules directory; nested items live in their
    parent's own modules directory, recursively.
    """
    placement = item.placement or ROOT
    if placement.is_root:
        return os.path.join(root, *item.name.split("/"))
    parent = items[placement.parent]
    return os.path.join(
        install_path(parent, items, root),
        Constants.MODULES_DIR,
        *item.name.split("/"),
    )
