"""Registry HTTP client shared by the resolver and the installer.

Wraps an aiohttp session with per-attempt timeouts, retries for transient
failures, registry failover and cooperative cancellation. Every attempt runs
as a task tracked by the client so ``cancel()`` can abort it.
"""
from __future__ import annotations

import asyncio
import json
import logging
import os
from typing import Any, Awaitable, Callable, Optional, Set, TypeVar

import aiohttp

from constants import Constants
from common.errors import (
    CancellationError,
    DigestMismatchError,
    InstallError,
    NetworkError,
    ParseError,
    RegistryResponseError,
    should_retry,
)
from common.integrity import digest_matches
from common.logging_utils import extra_context, is_debug_enabled, safe_url, Timer
from registry.npm.registries import get_registries, module_url
from versioning.models import ModuleInfo
from versioning.parser import parse_module_info

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _discard(path: str) -> None:
    try:
        os.unlink(path)
    except FileNotFoundError:
        pass


async def _run_blocking(func: Callable[..., T], *args: Any) -> T:
    """Run file hashing and similar disk work off the event loop."""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, func, *args)


class RegistryClient:
    """Client for one install run against a registry and its fallbacks."""

    def __init__(
        self,
        registry: str = Constants.REGISTRY_URL_NPM,
        cache_dir: Optional[str] = None,
        timeout: float = Constants.REQUEST_TIMEOUT,
    ):
        """Initialize the client.

        Args:
            registry: Primary registry URL.
            cache_dir: Directory receiving downloaded tarballs.
            timeout: Default per-attempt timeout in seconds.
        """
        self.registry = registry
        self.cache_dir = cache_dir
        self._timeout = timeout
        self._session: Optional[aiohttp.ClientSession] = None
        self._cancelled = False
        self._pending: Set[asyncio.Future] = set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    async def start(self) -> None:
        """Start the HTTP session."""
        if self._session is None:
            self._session = aiohttp.ClientSession(
                headers={"User-Agent": Constants.USER_AGENT},
            )

    async def stop(self) -> None:
        """Stop the HTTP session."""
        if self._session:
            await self._session.close()
            self._session = None

    async def __aenter__(self) -> "RegistryClient":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.stop()

    def cancel(self) -> None:
        """Abort every in-flight request and refuse new ones. Idempotent."""
        if not self._cancelled:
            logger.info("Cancelling %d pending request(s)", len(self._pending))
        self._cancelled = True
        for task in list(self._pending):
            task.cancel()

    def _check_cancelled(self) -> None:
        if self._cancelled:
            raise CancellationError("Request cancelled")

    async def _attempt(self, factory: Callable[[], Awaitable[T]]) -> T:
        """Run one attempt as a tracked task so ``cancel()`` can interrupt it."""
        self._check_cancelled()
        task = asyncio.ensure_future(factory())
        self._pending.add(task)
        try:
            return await task
        except asyncio.CancelledError:
            if self._cancelled:
                raise CancellationError("Request cancelled") from None
            raise
        finally:
            self._pending.discard(task)

    async def _backoff(self, attempt: int) -> None:
        delay = Constants.HTTP_RETRY_BASE_DELAY_SEC * attempt
        if delay > 0:
            await self._attempt(lambda: asyncio.sleep(delay))

    async def _get_text(self, url: str, timeout: float) -> str:
        await self.start()
        assert self._session is not None
        safe_target = safe_url(url)
        with Timer() as t:
            try:
                async with self._session.get(
                    url,
                    headers={"Accept": "application/json"},
                    timeout=aiohttp.ClientTimeout(total=timeout),
                ) as res:
                    if res.status >= 400:
                        raise RegistryResponseError(safe_target, res.status)
                    text = await res.text()
            except asyncio.TimeoutError as exc:
                raise NetworkError(f"Request timeout after {timeout}s: {safe_target}") from exc
            except aiohttp.ClientError as exc:
                raise NetworkError(f"Request to {safe_target} failed: {exc}") from exc
            if is_debug_enabled(logger):
                logger.debug(
                    "HTTP response ok",
                    extra=extra_context(
                        event="http_response",
                        component="http_client",
                        action="GET",
                        outcome="success",
                        status_code=res.status,
                        duration_ms=t.duration_ms(),
                        target=safe_target,
                    )
                )
            return text

    async def _with_retry(
        self,
        factory: Callable[[], Awaitable[T]],
        max_attempts: Optional[int],
        url: str,
    ) -> T:
        if max_attempts is None:
            max_attempts = Constants.HTTP_RETRY_MAX
        attempts = max(1, max_attempts)
        for attempt in range(attempts):
            if attempt:
                await self._backoff(attempt)
            try:
                return await self._attempt(factory)
            except CancellationError:
                raise
            except InstallError as exc:
                if not should_retry(exc) or attempt + 1 >= attempts:
                    raise
                if is_debug_enabled(logger):
                    logger.debug(
                        "HTTP retry",
                        extra=extra_context(
                            event="http_retry",
                            component="http_client",
                            attempt=attempt + 1,
                            target=safe_url(url),
                            error=str(exc),
                        )
                    )
        raise AssertionError("unreachable")

    async def fetch_text(
        self,
        url: str,
        timeout: Optional[float] = None,
        max_attempts: Optional[int] = None,
    ) -> str:
        """GET ``url`` and return the body, retrying transient failures."""
        effective = timeout if timeout is not None else self._timeout
        return await self._with_retry(lambda: self._get_text(url, effective), max_attempts, url)

    async def fetch_json(
        self,
        url: str,
        timeout: Optional[float] = None,
        max_attempts: Optional[int] = None,
    ) -> Any:
        """GET ``url`` and decode the body as JSON.

        Raises:
            NetworkError: connection failure or timeout on the last attempt.
            RegistryResponseError: HTTP 4xx/5xx.
            ParseError: the body is not JSON.
            CancellationError: ``cancel()`` was called.
        """
        text = await self.fetch_text(url, timeout, max_attempts)
        try:
            return json.loads(text)
        except ValueError as exc:
            raise ParseError(f"Invalid JSON from {safe_url(url)}: {exc}") from exc

    async def load_info(
        self,
        name: str,
        timeout: Optional[float] = None,
        max_attempts: Optional[int] = None,
    ) -> ModuleInfo:
        """Load module metadata, failing over through ``get_registries``."""
        last_exc: Optional[InstallError] = None
        for registry in get_registries(self.registry):
            url = module_url(registry, name)
            try:
                text = await self.fetch_text(url, timeout, max_attempts)
                return parse_module_info(text)
            except CancellationError:
                raise
            except InstallError as exc:
                logger.warning("Unable to load %s from %s: %s", name, safe_url(registry), exc)
                last_exc = exc
        assert last_exc is not None
        raise last_exc

    async def _download_once(self, url: str, dest: str, timeout: float) -> None:
        await self.start()
        assert self._session is not None
        safe_target = safe_url(url)
        try:
            async with self._session.get(
                url,
                headers={"Accept-Encoding": "identity"},
                timeout=aiohttp.ClientTimeout(total=timeout),
            ) as res:
                if res.status >= 400:
                    raise RegistryResponseError(safe_target, res.status)
                expected = res.content_length
                received = 0
                # Chunk writes stay on the loop; each is at most DOWNLOAD_CHUNK_SIZE.
                with open(dest, "wb") as fh:
                    async for chunk in res.content.iter_chunked(Constants.DOWNLOAD_CHUNK_SIZE):
                        fh.write(chunk)
                        received += len(chunk)
        except asyncio.TimeoutError as exc:
            raise NetworkError(f"Download timeout after {timeout}s: {safe_target}") from exc
        except aiohttp.ClientPayloadError as exc:
            raise NetworkError(f"Connection reset while downloading {safe_target}: {exc}") from exc
        except aiohttp.ClientError as exc:
            raise NetworkError(f"Download of {safe_target} failed: {exc}") from exc
        if expected is not None and received != expected:
            raise NetworkError(
                f"Connection reset while downloading {safe_target}: "
                f"received {received} of {expected} bytes"
            )

    async def download(
        self,
        url: str,
        filename: str,
        shasum: str = "",
        max_attempts: Optional[int] = None,
        timeout: Optional[float] = None,
    ) -> str:
        """Download ``url`` into the content cache as ``filename``.

        A digest mismatch discards the file and uses up an attempt from the
        same budget as transient network failures. With an empty ``shasum``
        no verification is done.

        Returns:
            Path of the downloaded file.
        """
        if not self.cache_dir:
            raise InstallError("RegistryClient has no cache_dir for downloads")
        os.makedirs(self.cache_dir, exist_ok=True)
        dest = os.path.join(self.cache_dir, filename)
        effective = timeout if timeout is not None else Constants.DOWNLOAD_TIMEOUT
        if max_attempts is None:
            max_attempts = Constants.DOWNLOAD_RETRY_MAX
        attempts = max(1, max_attempts)
        for attempt in range(attempts):
            if attempt:
                await self._backoff(attempt)
            try:
                with Timer() as t:
                    await self._attempt(lambda: self._download_once(url, dest, effective))
                if shasum and not await _run_blocking(digest_matches, dest, shasum):
                    raise DigestMismatchError(f"Shasum mismatch for {filename}, expected {shasum}")
                logger.debug(
                    "Downloaded %s in %dms",
                    safe_url(url),
                    t.duration_ms(),
                    extra=extra_context(event="download", component="http_client", attempt=attempt + 1),
                )
                return dest
            except CancellationError:
                _discard(dest)
                raise
            except InstallError as exc:
                _discard(dest)
                retryable = isinstance(exc, DigestMismatchError) or should_retry(exc)
                if not retryable or attempt + 1 >= attempts:
                    raise
                logger.warning("Retrying download of %s: %s", filename, exc)
        raise AssertionError("unreachable")
