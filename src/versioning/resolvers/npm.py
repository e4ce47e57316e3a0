"""NPM version selection using semantic versioning."""

from __future__ import annotations

import re
from typing import Iterable, List, Optional

import semantic_version

from common.errors import ItemNotFoundError
from ..models import DependencyItem

_ANY = ("", "*", "x", "latest")
# npm tolerates whitespace between an operator and its version (">= 1.0.0").
_OPERATOR_GAP = re.compile(r"(<=|>=|<|>|=|\^|~)\s+")


def _normalize_spec(spec_str: str) -> str:
    """Normalize npm range syntax (hyphen, x-ranges) into SimpleSpec-compatible form."""
    s = spec_str.strip()

    # Hyphen ranges: "1.2.3 - 1.4.5" => ">=1.2.3,<=1.4.5"
    m = re.match(r'^\s*([0-9A-Za-z\.\-\+]+)\s+-\s+([0-9A-Za-z\.\-\+]+)\s*$', s)
    if m:
        return f">={m.group(1)},<={m.group(2)}"

    s2 = s.replace('*', 'x').lower()
    m = re.match(r'^\s*(\d+)\.(\d+)\.x\s*$', s2)
    if m:
        major, minor = int(m.group(1)), int(m.group(2))
        return f">={major}.{minor}.0,<{major}.{minor + 1}.0"

    m = re.match(r'^\s*(\d+)(?:\.x)?\s*$', s2)
    if m:
        major = int(m.group(1))
        return f">={major}.0.0,<{major + 1}.0.0"

    return spec_str


def parse_spec(requirement: str):
    """Return an object exposing ``match(Version)`` for an npm range.

    Returns None for ranges that neither NpmSpec nor SimpleSpec can read.
    """
    try:
        return semantic_version.NpmSpec(_OPERATOR_GAP.sub(r"\1", requirement.strip()))
    except ValueError:
        try:
            return semantic_version.SimpleSpec(_normalize_spec(requirement))
        except ValueError:
            return None


def satisfies(version: str, requirement: str) -> bool:
    """Return True when ``version`` is inside the npm range ``requirement``."""
    try:
        ver = semantic_version.Version(version)
    except ValueError:
        return False
    if requirement.strip().lower() in _ANY:
        return not ver.prerelease
    spec = parse_spec(requirement)
    if spec is None:
        return False
    return spec.match(ver)


def select_version(
    requirement: str,
    versions: Iterable[str],
    preferred: Optional[str] = None,
) -> Optional[str]:
    """Pick the version to install for ``requirement``.

    ``preferred`` (typically the ``latest`` dist-tag) wins when it satisfies
    the range; otherwise the highest satisfying version is returned, or None.
    """
    candidates: List[str] = list(versions)
    if preferred and satisfies(preferred, requirement):
        return preferred

    matching = []
    for v in candidates:
        if satisfies(v, requirement):
            matching.append(semantic_version.Version(v))
    if not matching:
        return None
    return str(max(matching))


def locate_item(name: str, requirement: str, items: Iterable[DependencyItem]) -> DependencyItem:
    """Return the linked item named ``name`` whose version satisfies ``requirement``."""
    for item in items:
        if item.name == name and satisfies(item.version, requirement):
            return item
    raise ItemNotFoundError(f"No installed item satisfies {name}@{requirement}")
