"""Package registry clients."""

from pkgscan.adapters.base import (
    BaseRegistryClient,
    PackageNotFoundError,
    RegistryError,
    RegistryUnavailableError,
)
from pkgscan.adapters.deno import DenoRegistryClient
from pkgscan.adapters.npm import NpmRegistryClient

__all__ = [
    "BaseRegistryClient",
    "DenoRegistryClient",
    "NpmRegistryClient",
    "PackageNotFoundError",
    "RegistryError",
    "RegistryUnavailableError",
]
