"""Lifecycle script risk scanner.

Matches each declared script body against the suspicious-command pattern.
Static matching only: scripts are never executed.
"""

from __future__ import annotations

import logging
import re
from typing import Any

from pkgscan.analyzers.patterns import SUSPICIOUS_SCRIPT_PATTERN, matched_indicators
from pkgscan.models.schemas import Finding, IssueCategory

logger = logging.getLogger(__name__)


class ScriptRiskScanner:
    """Flags scripts whose command matches the suspicious-command pattern."""

    def __init__(self, pattern: re.Pattern[str] = SUSPICIOUS_SCRIPT_PATTERN) -> None:
        self.pattern = pattern

    def is_suspicious(self, command: Any) -> bool:
        """Return True if a script body matches. Non-string bodies never match."""
        if not isinstance(command, str):
            return False
        return self.pattern.search(command) is not None

    def scan(self, scripts: dict[str, Any] | None) -> list[Finding]:
        """Scan scripts in declaration order.

        Args:
            scripts: The manifest's ``scripts`` mapping, possibly None.

        Returns:
            One suspicious-script finding per matching script.
        """
        findings = []
        for key, command in (scripts or {}).items():
            if not self.is_suspicious(command):
                continue

            logger.debug(f"Script {key!r} matched indicators: {', '.join(matched_indicators(command))}")
            findings.append(Finding(
                category=IssueCategory.SUSPICIOUS_SCRIPT,
                message=f"Suspicious script detected in {key}: {command}",
            ))
        return findings
