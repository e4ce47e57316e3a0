"""Reader for the ``dependencies`` section of a package.json manifest."""

from __future__ import annotations

import json
import logging
import os
from typing import Dict, Optional

from constants import Constants

logger = logging.getLogger(__name__)


def read_dependencies(directory: str, host_name: Optional[str] = None) -> Dict[str, str]:
    """Return the manifest's dependency name -> range mapping, in file order.

    The entry naming the host package (``Constants.HOST_PACKAGE_NAME`` unless
    ``host_name`` is given) is dropped. A missing or unreadable manifest
    yields an empty mapping.

    Args:
        directory: Directory containing package.json.
        host_name: Host package name to exclude.

    Returns:
        Mapping of dependency name to requirement range.
    """
    package_json_path = os.path.join(directory, Constants.PACKAGE_JSON_FILE)
    host = host_name if host_name is not None else Constants.HOST_PACKAGE_NAME
    try:
        with open(package_json_path, "r", encoding="utf-8") as file:
            manifest = json.load(file)
    except (FileNotFoundError, IOError, json.JSONDecodeError) as e:
        logger.warning("Failed to parse package.json: %s", e)
        return {}

    deps = manifest.get("dependencies") if isinstance(manifest, dict) else None
    if not isinstance(deps, dict):
        return {}
    return {str(name): str(spec) for name, spec in deps.items() if name != host}
