"""Structural checks on manifest metadata and dependency version specs."""

from typing import Any

from pkgscan.analyzers.patterns import EXACT_VERSION_PATTERN, RANGE_VERSION_PATTERN
from pkgscan.models.schemas import Finding, IssueCategory, Manifest


def validate_metadata(manifest: Manifest) -> list[Finding]:
    """Report missing or empty ``name`` and ``version`` fields.

    Args:
        manifest: Manifest to check.

    Returns:
        Zero, one or two missing-metadata findings, name first.
    """
    findings = []
    for field_name in ("name", "version"):
        value = getattr(manifest, field_name)
        if not value or not value.strip():
            findings.append(Finding(
                category=IssueCategory.MISSING_METADATA,
                message=f"Invalid package.json: Missing {field_name}.",
            ))
    return findings


def is_valid_version_spec(spec: Any) -> bool:
    """Check a spec against ``MAJOR.MINOR.PATCH`` or ``[~^]MAJOR.MINOR.PATCH``."""
    if not isinstance(spec, str):
        return False
    return bool(EXACT_VERSION_PATTERN.fullmatch(spec) or RANGE_VERSION_PATTERN.fullmatch(spec))


def validate_version_spec(name: str, spec: Any) -> Finding | None:
    """Return an invalid-version finding if the spec is malformed."""
    if is_valid_version_spec(spec):
        return None
    return Finding(
        category=IssueCategory.INVALID_VERSION,
        message=f"Invalid version format for {name}: {spec}",
        package=name,
    )
