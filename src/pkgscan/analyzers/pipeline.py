"""End-to-end scan pipeline for a manifest."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any

import httpx
from pydantic import ValidationError

from pkgscan.adapters.deno import DenoRegistryClient
from pkgscan.adapters.npm import NpmRegistryClient
from pkgscan.analyzers.directory import KnownModuleDirectory
from pkgscan.analyzers.manifest import validate_metadata
from pkgscan.analyzers.reputation import LiveCheckResult, ReputationVerifier
from pkgscan.analyzers.scripts import ScriptRiskScanner
from pkgscan.config import ScanSettings
from pkgscan.daemon.refresher import DirectoryRefresher
from pkgscan.exceptions import InvalidManifestError, ScanInternalError
from pkgscan.models.schemas import NO_ISSUES_FOUND, Finding, Manifest, ScanResult

logger = logging.getLogger(__name__)


def parse_manifest(data: Any) -> Manifest:
    """Validate a raw mapping into a scannable Manifest.

    Needs no network access, so callers can reject bad input before
    opening a pipeline.

    Raises:
        InvalidManifestError: If the data does not have the manifest shape or
            declares neither dependencies nor devDependencies.
    """
    if not isinstance(data, dict):
        raise InvalidManifestError("Manifest must be a JSON object")
    try:
        manifest = Manifest.model_validate(data)
    except ValidationError as e:
        raise InvalidManifestError(f"Invalid manifest: {e}") from e
    _require_dependency_sections(manifest)
    return manifest


def _require_dependency_sections(manifest: Manifest) -> None:
    if not manifest.has_dependency_sections:
        raise InvalidManifestError(
            "Manifest declares neither dependencies nor devDependencies"
        )


class ScanPipeline:
    """Orchestrates a full manifest scan.

    Pipeline stages:
    1. Reject manifests without any dependency section
    2. Metadata checks (name, version)
    3. Lifecycle script checks, in declaration order
    4. Per-dependency reputation checks; live lookups fan out concurrently
       under an overall deadline
    5. Order, deduplicate and apply the "No issues found" sentinel

    Usage:
        async with ScanPipeline(settings) as pipeline:
            result = await pipeline.scan(manifest)
    """

    def __init__(
        self,
        settings: ScanSettings | None = None,
        directory: KnownModuleDirectory | None = None,
        client: httpx.AsyncClient | None = None,
        start_refresher: bool = False,
    ) -> None:
        """Initialize the pipeline.

        Args:
            settings: Scan settings. Defaults to ScanSettings().
            directory: Known Deno module directory. Created (empty) if None.
            client: Shared httpx client. If None, one is created on __aenter__.
            start_refresher: Launch the background directory refresh on __aenter__.
        """
        self.settings = settings or ScanSettings()
        self._http_client = client
        self._owns_client = client is None
        self._directory = directory
        self.start_refresher = start_refresher
        self.scripts = ScriptRiskScanner()
        self.verifier: ReputationVerifier | None = None
        self.refresher: DirectoryRefresher | None = None

        if client is not None:
            self._build_verifier(client)

    async def __aenter__(self) -> ScanPipeline:
        """Set up shared HTTP client and, optionally, the directory refresh."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                timeout=self.settings.request_timeout,
                follow_redirects=True,
            )
            self._build_verifier(self._http_client)

        if self.start_refresher:
            self.refresher = DirectoryRefresher(
                self.directory,
                interval=self.settings.directory_refresh_interval,
            )
            self.refresher.start()
        return self

    async def __aexit__(self, *args) -> None:
        """Stop the refresher and clean up the HTTP client."""
        if self.refresher:
            await self.refresher.stop()
            self.refresher = None
        if self._http_client and self._owns_client:
            await self._http_client.aclose()
            self._http_client = None
            self.verifier = None

    def _build_verifier(self, client: httpx.AsyncClient) -> None:
        settings = self.settings
        npm = NpmRegistryClient(
            client=client,
            registry_url=settings.npm_registry_url,
            timeout=settings.request_timeout,
        )
        deno = DenoRegistryClient(
            client=client,
            modules_url=settings.deno_modules_url,
            deno_land_url=settings.deno_land_url,
            timeout=settings.request_timeout,
        )
        if self._directory is None:
            self._directory = KnownModuleDirectory(
                client=deno,
                max_pages=settings.directory_max_pages,
            )
        self.verifier = ReputationVerifier(
            npm=npm,
            deno=deno,
            directory=self._directory,
            max_concurrency=settings.max_concurrency,
            check_zero_versions=settings.check_zero_versions,
        )

    @property
    def directory(self) -> KnownModuleDirectory:
        if self._directory is None:
            raise ScanInternalError("ScanPipeline used outside its context manager")
        return self._directory

    async def scan_payload(self, data: Any) -> ScanResult:
        """Validate a raw mapping into a Manifest and scan it.

        Raises:
            InvalidManifestError: If the data does not have the manifest shape.
        """
        return await self.scan(parse_manifest(data))

    async def scan(self, manifest: Manifest) -> ScanResult:
        """Scan a manifest.

        Args:
            manifest: The manifest to scan.

        Returns:
            ScanResult with ordered, deduplicated issues, or the single
            "No issues found" sentinel.

        Raises:
            InvalidManifestError: If neither dependencies nor devDependencies is declared.
            ScanInternalError: If the engine itself fails.
        """
        _require_dependency_sections(manifest)
        if self.verifier is None:
            raise ScanInternalError("ScanPipeline used outside its context manager")

        start = time.monotonic()
        findings: list[Finding] = []

        # Stage 1-2: synchronous checks
        findings.extend(validate_metadata(manifest))
        findings.extend(self.scripts.scan(manifest.scripts))

        # Stage 3: dependency checks
        dependencies = manifest.iter_dependencies()
        live_results = await self._run_live_checks([name for name, _ in dependencies])
        for name, spec in dependencies:
            findings.extend(self.verifier.assemble(name, spec, live_results.get(name)))

        issues = self._finalize(findings)
        logger.info(
            f"Scanned {manifest.name or '<unnamed>'}: {len(dependencies)} dependencies, "
            f"{len(issues)} issues in {time.monotonic() - start:.2f}s"
        )
        return ScanResult(issues=issues or [NO_ISSUES_FOUND])

    async def _run_live_checks(self, names: list[str]) -> dict[str, LiveCheckResult]:
        """Fan out live checks, one task per dependency, under the scan deadline.

        Returns:
            Results keyed by name. Names missing from the mapping did not
            finish before the deadline.
        """
        if not names:
            return {}

        tasks = {
            asyncio.create_task(self.verifier.check_live(name), name=f"verify:{name}"): name
            for name in names
        }
        done, pending = await asyncio.wait(tasks, timeout=self.settings.scan_deadline)

        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
            logger.warning(
                f"Scan deadline of {self.settings.scan_deadline:.0f}s exceeded; "
                f"{len(pending)} dependencies not verified"
            )

        results: dict[str, LiveCheckResult] = {}
        for task in done:
            name = tasks[task]
            error = task.exception()
            if error is not None:
                raise ScanInternalError(f"Verifier failed for {name}: {error}") from error
            results[name] = task.result()
        return results

    def _finalize(self, findings: list[Finding]) -> list[str]:
        """Drop repeated findings while keeping first-seen order."""
        seen_keys: set[tuple] = set()
        seen_messages: set[str] = set()
        issues = []
        for finding in findings:
            if finding.dedup_key in seen_keys or finding.message in seen_messages:
                continue
            seen_keys.add(finding.dedup_key)
            seen_messages.add(finding.message)
            issues.append(finding.message)
        return issues
