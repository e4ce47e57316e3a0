"""Error taxonomy shared by the registry client and the installer."""

from __future__ import annotations

from typing import Any

# Substrings (lowercased) that mark a failure as transient.
RETRYABLE_MARKERS = ("timeout", "timed out", "econnreset", "connection reset")


class InstallError(Exception):
    """Base class for every failure raised while installing dependencies."""


class ParseError(InstallError):
    """Registry metadata could not be decoded as JSON."""


class ValidationError(InstallError):
    """Registry metadata is missing required fields."""


class VersionResolutionError(InstallError):
    """No published version satisfies a requirement."""

    def __init__(self, name: str, requirement: str, candidates: int = 0):
        super().__init__(
            f"No version of '{name}' satisfies '{requirement}' "
            f"({candidates} candidates)"
        )
        self.name = name
        self.requirement = requirement


class ItemNotFoundError(InstallError):
    """No linked item matches a name and requirement."""


class NetworkError(InstallError):
    """Connection level failure (timeouts, resets, refused connections)."""


class RegistryResponseError(InstallError):
    """The registry answered with a non-success HTTP status."""

    def __init__(self, url: str, status: int):
        super().__init__(f"Bad response from {url}: HTTP {status}")
        self.url = url
        self.status = status


class DigestMismatchError(InstallError):
    """A downloaded file does not match its expected shasum."""


class ArchiveError(InstallError):
    """A tarball is missing, unreadable or malformed."""


class CancellationError(InstallError):
    """The operation was aborted through ``cancel()``."""


def should_retry(error: Any) -> bool:
    """Return True when the failure looks transient (timeout or connection reset).

    Accepts an exception or any object carrying a ``message`` attribute/key.
    """
    if error is None:
        return False
    if isinstance(error, dict):
        message = error.get("message")
    elif isinstance(error, BaseException):
        message = str(error)
    else:
        message = getattr(error, "message", None)
    if not message:
        return False
    lowered = str(message).lower()
    return any(marker in lowered for marker in RETRYABLE_MARKERS)
