"""Parsing of registry JSON documents into ModuleInfo."""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional

import semantic_version

from common.errors import ParseError, ValidationError
from .models import Dist, ModuleInfo, VersionInfo

logger = logging.getLogger(__name__)


def _parse_dist(raw: Any) -> Dist:
    if not isinstance(raw, dict):
        return Dist()
    return Dist(
        shasum=str(raw.get("shasum") or ""),
        integrity=str(raw.get("integrity") or ""),
        tarball=str(raw.get("tarball") or ""),
    )


def _parse_dependencies(raw: Any) -> Dict[str, str]:
    if not isinstance(raw, dict):
        return {}
    return {str(k): str(v) for k, v in raw.items()}


def parse_version_info(name: str, version: str, raw: Any) -> VersionInfo:
    """Build a VersionInfo from one entry of a ``versions`` map."""
    raw = raw if isinstance(raw, dict) else {}
    return VersionInfo(
        name=str(raw.get("name") or name),
        version=version,
        dependencies=_parse_dependencies(raw.get("dependencies")),
        dist=_parse_dist(raw.get("dist")),
    )


def _is_valid_version(version: str) -> bool:
    try:
        semantic_version.Version(version)
    except ValueError:
        return False
    return True


def _latest_tag(data: Dict[str, Any]) -> Optional[str]:
    tags = data.get("dist-tags")
    if isinstance(tags, dict) and isinstance(tags.get("latest"), str) and tags["latest"]:
        return tags["latest"]
    return None


def parse_module_info(text: str) -> ModuleInfo:
    """Parse a registry document.

    Two shapes are accepted: the full packument (``versions`` map plus
    ``dist-tags``) and a single-version document carrying a top-level
    ``version``. Both normalize to the same ModuleInfo.

    Raises:
        ParseError: the text is not a JSON object.
        ValidationError: ``name`` is missing, or there is neither a
            ``versions`` entry, a ``dist-tags.latest`` nor a ``version``.
    """
    try:
        data = json.loads(text)
    except (TypeError, ValueError) as exc:
        raise ParseError(f"Invalid registry JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise ParseError("Registry JSON is not an object")

    name = data.get("name")
    if not isinstance(name, str) or not name:
        raise ValidationError("Registry metadata has no 'name'")

    raw_versions = data.get("versions")
    latest = _latest_tag(data)
    single = data.get("version") if isinstance(data.get("version"), str) else None

    versions: Dict[str, VersionInfo] = {}
    if isinstance(raw_versions, dict):
        for version, raw in raw_versions.items():
            if not _is_valid_version(version):
                logger.warning("Skipping invalid version '%s' of %s", version, name)
                continue
            versions[version] = parse_version_info(name, version, raw)

    if not versions and single and _is_valid_version(single):
        versions[single] = parse_version_info(name, single, data)
        latest = latest or single

    if not versions and not latest:
        raise ValidationError(f"Registry metadata for '{name}' has no versions")

    if latest and versions and latest not in versions:
        logger.debug("dist-tags.latest %s of %s is not a published version", latest, name)
        latest = None

    return ModuleInfo(name=name, versions=versions, latest=latest)
