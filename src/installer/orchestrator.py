"""Install orchestration: manifest -> resolve -> link -> download -> extract."""

from __future__ import annotations

import asyncio
import logging
import os
import shutil
from typing import Callable, Dict, List, Optional

from constants import Constants
from common.errors import CancellationError
from common.http_client import RegistryClient
from common.integrity import digest_matches, extract
from common.logging_utils import Timer, safe_url
from registry.npm.manifest import read_dependencies
from versioning.models import DependencyItem
from .linker import install_path, link
from .resolver import DependencyResolver

logger = logging.getLogger(__name__)

MessageCallback = Callable[[str], None]


class DependenciesInstaller:
    """Installs a package directory's dependencies from a registry.

    Each ``install_dependencies`` call owns a fresh RegistryClient (and with
    it the module cache and cancellation flag); ``cancel()`` aborts the run
    that is currently active.
    """

    def __init__(
        self,
        registry: str = Constants.REGISTRY_URL_NPM,
        modules_root: str = ".",
        on_message: Optional[MessageCallback] = None,
        timeout: float = Constants.REQUEST_TIMEOUT,
        host_name: Optional[str] = None,
    ):
        """Initialize the installer.

        Args:
            registry: Primary registry URL.
            modules_root: Directory holding the shared tarball cache.
            on_message: Progress callback receiving short messages.
            timeout: Per-attempt timeout for metadata requests, in seconds.
            host_name: Manifest entry to ignore (the host package).
        """
        self.registry = registry
        self.modules_root = modules_root
        self._on_message = on_message or (lambda _msg: None)
        self._timeout = timeout
        self._host_name = host_name
        self._client: Optional[RegistryClient] = None
        self._cancelled = False

    @property
    def cache_dir(self) -> str:
        return os.path.join(self.modules_root, Constants.CACHE_DIR)

    def _message(self, msg: str) -> None:
        logger.info(msg)
        self._on_message(msg)

    def create_client(self) -> RegistryClient:
        return RegistryClient(self.registry, self.cache_dir, self._timeout)

    def cancel(self) -> None:
        """Cancel the active run, if any."""
        self._cancelled = True
        if self._client is not None:
            self._client.cancel()

    async def install_dependencies(self, directory: str) -> List[DependencyItem]:
        """Install the manifest dependencies of ``directory`` into its node_modules.

        Returns:
            The linked items that were installed (empty when there are none).
        """
        requirements = read_dependencies(directory, self._host_name)
        if not requirements:
            self._message("No dependencies")
            return []

        self._cancelled = False
        with Timer() as t:
            async with self.create_client() as client:
                self._client = client
                try:
                    self._message(f"Resolving {len(requirements)} dependencies")
                    resolution = await DependencyResolver(client, self._timeout).resolve(requirements)
                    items = link(requirements, resolution.edges, resolution.modules)
                    self._message(f"Downloading {len(items)} packages")
                    files = await self.download_items(items, client)
                finally:
                    self._client = None
            if self._cancelled:
                raise CancellationError("Install cancelled")
            self._message("Extracting packages")
            await asyncio.get_running_loop().run_in_executor(
                None, self._extract_items, directory, items, files
            )
        self._message(f"Installed {len(items)} packages in {t.duration_ms()}ms")
        return items

    def _extract_items(self, directory: str, items: List[DependencyItem], files: Dict[str, str]) -> None:
        root = os.path.join(directory, Constants.MODULES_DIR)
        if os.path.isdir(root):
            shutil.rmtree(root)
        by_key = {item.key: item for item in items}
        for item in items:
            dest = install_path(item, by_key, root)
            logger.debug("Extracting %s into %s", item.key, dest)
            extract(dest, files[item.key], Constants.ARCHIVE_STRIP_LEVEL)

    async def download_items(
        self,
        items: List[DependencyItem],
        client: Optional[RegistryClient] = None,
    ) -> Dict[str, str]:
        """Fetch every item's tarball into the cache.

        Digest-valid cached files are reused without a request. Downloads of
        the same cache file are collapsed; the first failure cancels the rest.

        Returns:
            Mapping of item key (``name@version``) to tarball path.
        """
        if client is None:
            async with self.create_client() as own:
                self._client = own
                try:
                    return await self.download_items(items, own)
                finally:
                    self._client = None

        loop = asyncio.get_running_loop()
        semaphore = asyncio.Semaphore(Constants.DOWNLOAD_CONCURRENCY)
        inflight: Dict[str, asyncio.Future] = {}

        async def _fetch(item: DependencyItem) -> str:
            cached = os.path.join(self.cache_dir, item.filename)
            if await loop.run_in_executor(None, digest_matches, cached, item.shasum):
                logger.debug("Using cached %s", cached)
                return cached
            async with semaphore:
                logger.debug("Downloading %s", safe_url(item.resolved))
                return await client.download(item.resolved, item.filename, item.shasum)

        def _start(item: DependencyItem) -> asyncio.Future:
            future = inflight.get(item.filename)
            if future is None:
                future = asyncio.ensure_future(_fetch(item))
                inflight[item.filename] = future
            return future

        futures = [_start(item) for item in items]
        try:
            paths = await asyncio.gather(*futures)
        except BaseException:
            for future in futures:
                future.cancel()
            await asyncio.gather(*futures, return_exceptions=True)
            raise
        return {item.key: path for item, path in zip(items, paths)}
