"""Data models and schemas."""

from pkgscan.models.schemas import (
    NO_ISSUES_FOUND,
    Ecosystem,
    Finding,
    IssueCategory,
    Manifest,
    ScanResult,
)

__all__ = ["Manifest", "Finding", "IssueCategory", "Ecosystem", "ScanResult", "NO_ISSUES_FOUND"]
