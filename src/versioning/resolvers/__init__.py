"""Version selection for different ecosystems."""

from .npm import locate_item, satisfies, select_version

__all__ = [
    "locate_item",
    "satisfies",
    "select_version",
]
