"""Digest verification and tarball extraction."""

from __future__ import annotations

import hashlib
import logging
import os
import tarfile
import zlib
from pathlib import PurePosixPath
from typing import List, Optional

from common.errors import ArchiveError

logger = logging.getLogger(__name__)


def sha1_file(path: str) -> str:
    """Compute the SHA-1 hex digest of a file (the registry ``shasum``)."""
    hasher = hashlib.sha1()
    with open(path, "rb") as stream:
        for chunk in iter(lambda: stream.read(1 << 20), b""):
            hasher.update(chunk)
    return hasher.hexdigest()


def digest_matches(path: str, expected: str) -> bool:
    """Return True when ``path`` exists and its SHA-1 equals ``expected`` (any case)."""
    if not expected or not os.path.isfile(path):
        return False
    return sha1_file(path).lower() == expected.strip().lower()


def _strip_member_path(member_name: str, strip: int) -> Optional[str]:
    """Drop ``strip`` leading components; None when nothing remains.

    Raises ArchiveError for absolute paths or ``..`` traversal.
    """
    normalized = member_name.replace("\\", "/")
    relative = PurePosixPath(normalized)
    if relative.is_absolute():
        raise ArchiveError(f"Unsafe absolute path in archive: {member_name}")
    parts = [part for part in relative.parts if part not in ("", ".")]
    if ".." in parts:
        raise ArchiveError(f"Unsafe path in archive: {member_name}")
    parts = parts[strip:]
    if not parts:
        return None
    return "/".join(parts)


def extract(dest: str, archive: str, strip: int = 0) -> List[str]:
    """Extract a gzip-compressed tarball into ``dest``.

    Args:
        dest: Target directory, created when missing.
        archive: Path to the .tgz file.
        strip: Number of leading path components removed from every entry.

    Returns:
        Relative paths of the extracted regular files.

    Raises:
        ArchiveError: the archive is missing, unreadable or malformed.
    """
    if not os.path.isfile(archive):
        raise ArchiveError(f"Archive not found: {archive}")
    extracted: List[str] = []
    try:
        with tarfile.open(archive, "r:gz") as tar:
            members = []
            for member in tar.getmembers():
                if not (member.isfile() or member.isdir()):
                    logger.debug("Skipping non-regular entry %s in %s", member.name, archive)
                    continue
                target = _strip_member_path(member.name, strip)
                if target is None:
                    continue
                member.name = target
                members.append(member)
                if member.isfile():
                    extracted.append(target)
            os.makedirs(dest, exist_ok=True)
            if hasattr(tarfile, "data_filter"):
                tar.extractall(dest, members=members, filter="data")
            else:
                tar.extractall(dest, members=members)
    except (tarfile.TarError, EOFError, zlib.error, OSError) as exc:
        raise ArchiveError(f"Failed to extract {archive}: {exc}") from exc
    return extracted
