"""Shared fixtures: a local fake registry served by aiohttp and tarball builders."""

import asyncio
import hashlib
import io
import json
import tarfile
from contextlib import asynccontextmanager
from typing import Dict, List, Optional

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from constants import Constants


def make_package_tarball(name: str, version: str, extra: Optional[Dict[str, bytes]] = None) -> bytes:
    """Build an npm-style tarball with a single ``package/`` wrapper directory."""
    files = {
        "package.json": json.dumps({"name": name, "version": version, "dependencies": {}}).encode(),
        "index.js": b"",
    }
    files.update(extra or {})
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w:gz") as tar:
        root = tarfile.TarInfo("package")
        root.type = tarfile.DIRTYPE
        root.mode = 0o755
        tar.addfile(root)
        for path, data in files.items():
            info = tarfile.TarInfo(f"package/{path}")
            info.size = len(data)
            info.mode = 0o644
            tar.addfile(info, io.BytesIO(data))
    return buf.getvalue()


def sha1(data: bytes) -> str:
    return hashlib.sha1(data).hexdigest()


class FakeRegistry:
    """In-process registry: JSON documents, static tarballs and slow endpoints."""

    SLOW_DELAY = 0.3

    def __init__(self):
        self.documents: Dict[str, str] = {}
        self.tarballs: Dict[str, bytes] = {}
        self.requests: List[str] = []
        self.generate_tarballs = False
        self.base_url = ""

    def url(self, path: str) -> str:
        return self.base_url.rstrip("/") + "/" + path.lstrip("/")

    def count(self, path: str) -> int:
        return self.requests.count(path)

    def add_module(self, name: str, versions: Dict[str, Dict[str, str]], **extra) -> None:
        """Register a packument whose tarballs are generated on request."""
        doc = {
            "name": name,
            "versions": {
                version: self.version_doc(name, version, deps)
                for version, deps in versions.items()
            },
        }
        doc.update(extra)
        self.documents[f"/{name}"] = json.dumps(doc)

    def version_doc(self, name: str, version: str, deps: Optional[Dict[str, str]] = None) -> dict:
        return {
            "name": name,
            "version": version,
            "dependencies": deps or {},
            "dist": {
                "shasum": "",
                "integrity": "",
                "tarball": self.url(f"{name}-{version}.tgz"),
            },
        }

    def add_graph(self) -> None:
        """a -> {b ^1, c ^2, d >= 0.0.1}; c@2 -> {b ^2, d ^1}; b@2 -> {d ^1}."""
        self.generate_tarballs = True
        self.add_module("a", {"0.0.1": {"b": "^1.0.0", "c": "^2.0.0", "d": ">= 0.0.1"}})
        self.add_module("b", {
            "1.0.0": {},
            "2.0.0": {"d": "^1.0.0"},
            "3.0.0": {"d": "^1.0.0"},
        })
        self.add_module("c", {
            "1.0.0": {},
            "2.0.0": {"b": "^2.0.0", "d": "^1.0.0"},
            "3.0.0": {"b": "^3.0.0", "d": "^1.0.0"},
        })
        self.add_module("d", {"1.0.0": {}})

    async def _handle(self, request: web.Request) -> web.StreamResponse:
        path = request.path
        self.requests.append(path)
        if path in self.documents:
            return web.Response(text=self.documents[path], content_type="application/json")
        if path.endswith("/slow") or path.endswith("/hang"):
            await asyncio.sleep(self.SLOW_DELAY)
            return web.Response(text="abc")
        if path in self.tarballs:
            return web.Response(body=self.tarballs[path], content_type="application/octet-stream")
        if path.endswith(".tgz") and self.generate_tarballs:
            name, version = path[1:-len(".tgz")].rsplit("-", 1)
            return web.Response(
                body=make_package_tarball(name, version),
                content_type="application/octet-stream",
            )
        return web.Response(status=404, text="not found")

    def app(self) -> web.Application:
        app = web.Application()
        app.router.add_route("GET", "/{path:.*}", self._handle)
        return app

    @asynccontextmanager
    async def serve(self):
        async with TestServer(self.app()) as server:
            self.base_url = str(server.make_url("/"))
            yield self.base_url


@pytest.fixture
def registry():
    return FakeRegistry()


@pytest.fixture
def package_tarball():
    return make_package_tarball("test", "0.0.1")


@pytest.fixture(autouse=True)
def fast_retries(monkeypatch):
    """Keep retry back-off short in tests."""
    monkeypatch.setattr(Constants, "HTTP_RETRY_BASE_DELAY_SEC", 0.01)
