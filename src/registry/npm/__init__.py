"""NPM registry package.

- registries.py: failover list and metadata URLs
- manifest.py: package.json dependency reader
"""

from .manifest import read_dependencies  # noqa: F401
from .registries import get_registries, module_url  # noqa: F401

__all__ = [
    "get_registries",
    "module_url",
    "read_dependencies",
]
