"""Exceptions raised by the scan engine."""


class PkgScanError(Exception):
    """Base class for pkgscan errors."""


class InvalidManifestError(PkgScanError):
    """Raised when a submitted manifest cannot be scanned.

    Maps to a client error at the transport boundary.
    """


class ScanInternalError(PkgScanError):
    """Raised when the scan engine itself fails.

    Distinct from registry failures, which are always reported as issues.
    """


class ConfigError(PkgScanError):
    """Raised for invalid configuration values."""
