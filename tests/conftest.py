"""Shared fixtures for pkgscan tests.

Registry traffic never leaves the process: ``FakeRegistry`` answers npm,
apiland and deno.land requests through ``httpx.MockTransport``.
"""

from __future__ import annotations

import asyncio

import httpx
import pytest
import pytest_asyncio

from pkgscan.analyzers.directory import KnownModuleDirectory
from pkgscan.analyzers.pipeline import ScanPipeline
from pkgscan.config import ScanSettings

# Key in FakeRegistry.delays that stalls the module listing
LISTING_DELAY_KEY = "<listing>"


class FakeRegistry:
    """In-memory stand-in for the npm registry and the Deno module hosts."""

    def __init__(self) -> None:
        # npm name -> JSON body (served with 200)
        self.npm_documents: dict[str, dict] = {}
        # npm name -> status code or exception to raise
        self.npm_failures: dict[str, int | Exception] = {}
        # Deno listing pages, served in order via "next" links
        self.deno_pages: list[list[str]] = [[]]
        self.listing_failure: int | Exception | None = None
        # Deno module -> entry point status (default 200)
        self.deno_status: dict[str, int | Exception] = {}
        # name -> seconds to stall before answering
        self.delays: dict[str, float] = {}
        self.requests: list[httpx.Request] = []
        self.in_flight = 0
        self.max_in_flight = 0

    def publish(self, name: str, versions: tuple[str, ...] = ("1.0.0",)) -> None:
        self.npm_documents[name] = {"name": name, "versions": {v: {} for v in versions}}

    def set_deno_modules(self, *names: str) -> None:
        self.deno_pages = [list(names)]

    def requested_hosts(self) -> list[str]:
        return [r.url.host for r in self.requests]

    def requested_paths(self, host: str) -> list[str]:
        return [r.url.path for r in self.requests if r.url.host == host]

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0)
            host = request.url.host
            if host == "registry.npmjs.org":
                return await self._npm(request)
            if host == "apiland.deno.dev":
                return await self._listing(request)
            if host == "deno.land":
                return await self._entry_point(request)
            return httpx.Response(404)
        finally:
            self.in_flight -= 1

    async def _stall(self, name: str) -> None:
        if name in self.delays:
            await asyncio.sleep(self.delays[name])

    async def _npm(self, request: httpx.Request) -> httpx.Response:
        name = request.url.path.lstrip("/")
        await self._stall(name)

        failure = self.npm_failures.get(name)
        if isinstance(failure, Exception):
            raise failure
        if failure is not None:
            return httpx.Response(failure, json={"error": "failure"})
        if name in self.npm_documents:
            return httpx.Response(200, json=self.npm_documents[name])
        return httpx.Response(404, json={"error": "Not found"})

    async def _listing(self, request: httpx.Request) -> httpx.Response:
        await self._stall(LISTING_DELAY_KEY)
        if isinstance(self.listing_failure, Exception):
            raise self.listing_failure
        if self.listing_failure is not None:
            return httpx.Response(self.listing_failure)

        page = int(request.url.params.get("page", "1"))
        names = self.deno_pages[page - 1]
        body = {"items": [{"name": n, "description": ""} for n in names]}
        if page < len(self.deno_pages):
            body["next"] = f"/v2/modules?page={page + 1}"
        return httpx.Response(200, json=body)

    async def _entry_point(self, request: httpx.Request) -> httpx.Response:
        # /x/<name>/mod.ts
        name = request.url.path.split("/")[2]
        await self._stall(name)

        status = self.deno_status.get(name, 200)
        if isinstance(status, Exception):
            raise status
        return httpx.Response(status, text="export {};")


@pytest.fixture
def registry() -> FakeRegistry:
    return FakeRegistry()


@pytest_asyncio.fixture
async def http_client(registry):
    async with httpx.AsyncClient(transport=httpx.MockTransport(registry.handler)) as client:
        yield client


@pytest.fixture
def settings() -> ScanSettings:
    return ScanSettings(request_timeout=5.0, scan_deadline=5.0, max_concurrency=4)


@pytest.fixture
def directory() -> KnownModuleDirectory:
    return KnownModuleDirectory()


@pytest.fixture
def pipeline(settings, directory, http_client) -> ScanPipeline:
    return ScanPipeline(settings=settings, directory=directory, client=http_client)
