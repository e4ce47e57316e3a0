"""Dependency installer package.

- resolver.py: depth-first resolution of requirement edges
- linker.py: hoisting of resolved edges into placed items
- orchestrator.py: manifest to node_modules install pipeline
"""

from .linker import install_path, link  # noqa: F401
from .orchestrator import DependenciesInstaller  # noqa: F401
from .resolver import DependencyResolver, ModuleCache, Resolution  # noqa: F401

__all__ = [
    "DependenciesInstaller",
    "DependencyResolver",
    "ModuleCache",
    "Resolution",
    "install_path",
    "link",
]
