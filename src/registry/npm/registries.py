"""Registry failover list for module metadata requests."""

from __future__ import annotations

import urllib.parse
from typing import List

from constants import Constants


def _with_slash(url: str) -> str:
    return url if url.endswith("/") else url + "/"


def get_registries(primary: str) -> List[str]:
    """Return registries to try in order, starting with ``primary``.

    A well-known public registry gets one mirror appended; any other host
    falls back to both well-known public registries.
    """
    primary = _with_slash(str(primary))
    host = (urllib.parse.urlparse(primary).hostname or "").lower()
    if host in Constants.WELL_KNOWN_REGISTRY_HOSTS:
        return [primary, Constants.REGISTRY_URL_MIRROR]
    fallbacks = [primary, _with_slash(Constants.REGISTRY_URL_NPM), _with_slash(Constants.REGISTRY_URL_YARN)]
    return list(dict.fromkeys(fallbacks))


def module_url(registry: str, name: str) -> str:
    """Metadata URL for ``name``; scoped names keep their ``@`` and encode ``/``."""
    return _with_slash(registry) + urllib.parse.quote(name, safe="@")
