"""Reputation checks for declared dependencies.

Each dependency goes through, in order:
1. Version-format check
2. npm blocklist
3. npm live lookup (fail-closed)
4. Deno blocklist
5. Deno live lookup, only for names in the known-module directory (fail-closed)

Steps 1, 2 and 4 are synchronous. Steps 3 and 5 hit the network and share a
bounded concurrency limit. Registry failures always become findings; any
other exception is a bug and propagates.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any

from pkgscan.adapters.base import PackageNotFoundError, RegistryError
from pkgscan.adapters.deno import DenoRegistryClient
from pkgscan.adapters.npm import NpmRegistryClient
from pkgscan.analyzers.directory import KnownModuleDirectory
from pkgscan.analyzers.manifest import validate_version_spec
from pkgscan.analyzers.patterns import DENO_BLOCKLIST, NPM_BLOCKLIST
from pkgscan.models.schemas import Ecosystem, Finding, IssueCategory

logger = logging.getLogger(__name__)


NPM_BLOCKLISTED_MESSAGE = "Known malicious package detected: {name}. Remove it and audit your lockfile."
NPM_UNREACHABLE_MESSAGE = (
    "Potentially malicious package detected: {name}. "
    "Always download from official sources like npmjs.com."
)
NPM_ZERO_VERSIONS_MESSAGE = (
    "Package {name} has no published versions on npm (possible placeholder or typosquat)."
)
DENO_BLOCKLISTED_MESSAGE = "Deno security alert: Known malicious module detected: {name}."
DENO_UNREACHABLE_MESSAGE = (
    "Deno security alert: Potential malicious package detected: {name}. "
    "Only use packages from deno.land/x."
)
TIMEOUT_MESSAGE = "Could not verify {name} in time."


@dataclass
class LiveCheckResult:
    """Findings from the network-backed checks for one dependency."""

    npm: list[Finding] = field(default_factory=list)
    deno: list[Finding] = field(default_factory=list)


class ReputationVerifier:
    """Checks dependencies against blocklists and the npm and Deno registries."""

    def __init__(
        self,
        npm: NpmRegistryClient | None = None,
        deno: DenoRegistryClient | None = None,
        directory: KnownModuleDirectory | None = None,
        max_concurrency: int = 8,
        check_zero_versions: bool = True,
        npm_blocklist: frozenset[str] = NPM_BLOCKLIST,
        deno_blocklist: frozenset[str] = DENO_BLOCKLIST,
    ) -> None:
        """Initialize the verifier.

        Args:
            npm: npm registry client.
            deno: Deno registry client.
            directory: Known Deno modules; gates the Deno live check.
            max_concurrency: Maximum registry requests in flight.
            check_zero_versions: Flag npm packages with no published versions.
            npm_blocklist: Known-malicious npm names.
            deno_blocklist: Known-malicious Deno names.
        """
        if max_concurrency < 1:
            raise ValueError(f"max_concurrency must be >= 1, got {max_concurrency}")

        self.npm = npm or NpmRegistryClient()
        self.deno = deno or DenoRegistryClient()
        self.directory = directory if directory is not None else KnownModuleDirectory(client=self.deno)
        self.check_zero_versions = check_zero_versions
        self.npm_blocklist = npm_blocklist
        self.deno_blocklist = deno_blocklist
        self._semaphore = asyncio.Semaphore(max_concurrency)

    # --- Synchronous checks ---

    def check_version(self, name: str, spec: Any) -> list[Finding]:
        finding = validate_version_spec(name, spec)
        return [finding] if finding else []

    def check_npm_blocklist(self, name: str) -> list[Finding]:
        if name not in self.npm_blocklist:
            return []
        return [Finding(
            category=IssueCategory.BLOCKLISTED_PACKAGE,
            message=NPM_BLOCKLISTED_MESSAGE.format(name=name),
            package=name,
            ecosystem=Ecosystem.NPM,
        )]

    def check_deno_blocklist(self, name: str) -> list[Finding]:
        if name not in self.deno_blocklist:
            return []
        return [Finding(
            category=IssueCategory.BLOCKLISTED_PACKAGE,
            message=DENO_BLOCKLISTED_MESSAGE.format(name=name),
            package=name,
            ecosystem=Ecosystem.DENO,
        )]

    # --- Live checks ---

    async def check_npm(self, name: str) -> list[Finding]:
        """Look the package up on npm.

        Missing, unreachable or malformed entries are reported; so are
        packages with zero published versions (unless disabled).
        """
        async with self._semaphore:
            try:
                document = await self.npm.get_package_document(name)
            except PackageNotFoundError:
                logger.info(f"npm: package not found: {name}")
                return [self._npm_unreachable(name)]
            except RegistryError as e:
                logger.warning(f"npm: lookup failed for {name}: {e}")
                return [self._npm_unreachable(name)]

        if self.check_zero_versions and document.version_count == 0:
            return [Finding(
                category=IssueCategory.REGISTRY_FLAGGED,
                message=NPM_ZERO_VERSIONS_MESSAGE.format(name=name),
                package=name,
                ecosystem=Ecosystem.NPM,
            )]
        return []

    async def check_deno(self, name: str) -> list[Finding]:
        """Fetch the module's entry point if the name is a known Deno module.

        Names absent from the directory are skipped without a request.
        """
        if not self.directory.contains(name):
            return []

        async with self._semaphore:
            try:
                status = await self.deno.entry_point_status(name)
            except RegistryError as e:
                logger.warning(f"deno: entry point fetch failed for {name}: {e}")
                return [self._deno_unreachable(name)]

        if status != 200:
            logger.info(f"deno: entry point for {name} returned HTTP {status}")
            return [self._deno_unreachable(name)]
        return []

    async def check_live(self, name: str) -> LiveCheckResult:
        """Run the npm and Deno live checks for one dependency.

        If either check raises, the other is cancelled and awaited before
        the error propagates.
        """
        tasks = [
            asyncio.create_task(self.check_npm(name)),
            asyncio.create_task(self.check_deno(name)),
        ]
        try:
            npm_findings, deno_findings = await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise
        return LiveCheckResult(npm=npm_findings, deno=deno_findings)

    async def verify(self, name: str, spec: Any) -> list[Finding]:
        """Run every check for one dependency and return findings in check order."""
        live = await self.check_live(name)
        return self.assemble(name, spec, live)

    def assemble(self, name: str, spec: Any, live: LiveCheckResult | None) -> list[Finding]:
        """Order one dependency's findings: version, npm, Deno.

        Args:
            name: Dependency name.
            spec: Declared version spec.
            live: Live check results, or None if they did not finish in time.
        """
        findings = self.check_version(name, spec)
        findings.extend(self.check_npm_blocklist(name))
        if live is None:
            findings.append(Finding(
                category=IssueCategory.VERIFICATION_TIMEOUT,
                message=TIMEOUT_MESSAGE.format(name=name),
                package=name,
            ))
            findings.extend(self.check_deno_blocklist(name))
            return findings

        findings.extend(live.npm)
        findings.extend(self.check_deno_blocklist(name))
        findings.extend(live.deno)
        return findings

    def _npm_unreachable(self, name: str) -> Finding:
        return Finding(
            category=IssueCategory.UNREACHABLE_REGISTRY,
            message=NPM_UNREACHABLE_MESSAGE.format(name=name),
            package=name,
            ecosystem=Ecosystem.NPM,
        )

    def _deno_unreachable(self, name: str) -> Finding:
        return Finding(
            category=IssueCategory.UNREACHABLE_REGISTRY,
            message=DENO_UNREACHABLE_MESSAGE.format(name=name),
            package=name,
            ecosystem=Ecosystem.DENO,
        )
