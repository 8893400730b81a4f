"""Analyzers that make up the scan engine."""

from pkgscan.analyzers.directory import KnownModuleDirectory
from pkgscan.analyzers.pipeline import ScanPipeline
from pkgscan.analyzers.reputation import ReputationVerifier
from pkgscan.analyzers.scripts import ScriptRiskScanner

__all__ = ["KnownModuleDirectory", "ReputationVerifier", "ScanPipeline", "ScriptRiskScanner"]
