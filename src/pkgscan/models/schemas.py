"""Pydantic models for manifests, findings and registry responses."""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

NO_ISSUES_FOUND = "No issues found"


class Ecosystem(str, Enum):
    """Package ecosystems checked by the scanner."""

    NPM = "npm"
    DENO = "deno"


class IssueCategory(str, Enum):
    """Category of a reported issue."""

    MISSING_METADATA = "missing-metadata"
    SUSPICIOUS_SCRIPT = "suspicious-script"
    INVALID_VERSION = "invalid-version"
    BLOCKLISTED_PACKAGE = "blocklisted-package"
    UNREACHABLE_REGISTRY = "unreachable-registry"  # Not found, unreachable or malformed
    REGISTRY_FLAGGED = "registry-flagged"  # Reachable but suspicious (e.g. zero versions)
    VERIFICATION_TIMEOUT = "verification-timeout"


# --- Manifest ---


class Manifest(BaseModel):
    """A package.json-style dependency manifest.

    Dependency version specs and script bodies are kept as raw values so that
    a wrong shape is reported as an issue instead of failing validation.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    name: str | None = None
    version: str | None = None
    dependencies: dict[str, Any] | None = None
    dev_dependencies: dict[str, Any] | None = Field(default=None, alias="devDependencies")
    scripts: dict[str, Any] | None = None

    @property
    def has_dependency_sections(self) -> bool:
        """Whether either dependency section is declared (even if empty)."""
        return self.dependencies is not None or self.dev_dependencies is not None

    def iter_dependencies(self) -> list[tuple[str, Any]]:
        """Return declared (name, version spec) pairs in declaration order.

        ``dependencies`` come before ``devDependencies``. A name declared in
        both sections is returned once, with its first declaration.
        """
        seen: set[str] = set()
        pairs: list[tuple[str, Any]] = []
        for section in (self.dependencies, self.dev_dependencies):
            for name, spec in (section or {}).items():
                if name in seen:
                    continue
                seen.add(name)
                pairs.append((name, spec))
        return pairs


# --- Findings ---


class Finding(BaseModel):
    """A single reportable condition found during a scan."""

    model_config = ConfigDict(frozen=True)

    category: IssueCategory
    message: str
    package: str | None = None
    ecosystem: Ecosystem | None = None

    @property
    def dedup_key(self) -> tuple:
        """Key under which at most one finding is reported."""
        if self.package is None:
            return (self.category, self.message)
        return (self.package, self.ecosystem, self.category)


class ScanResult(BaseModel):
    """Result returned to the caller of a scan."""

    issues: list[str] = Field(default_factory=list)

    @property
    def clean(self) -> bool:
        """True if the scan found nothing to report."""
        return self.issues == [NO_ISSUES_FOUND]


# --- Registry responses ---


class NpmPackageDocument(BaseModel):
    """Subset of the npm registry package document we rely on."""

    name: str | None = None
    versions: dict[str, Any]

    @property
    def version_count(self) -> int:
        return len(self.versions)


class DenoModuleEntry(BaseModel):
    """One entry of the Deno module listing."""

    name: str


class DenoModuleListing(BaseModel):
    """A page of the Deno module listing."""

    items: list[DenoModuleEntry]
    next: str | None = None
