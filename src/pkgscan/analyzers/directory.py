"""Cached directory of module names known to the Deno registry.

The directory decides which dependencies are eligible for the Deno live check.
Readers get a consistent snapshot: refresh builds a new frozenset and swaps
the reference in one assignment.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime, timezone

from pkgscan.adapters.base import RegistryError
from pkgscan.adapters.deno import DenoRegistryClient

logger = logging.getLogger(__name__)


class KnownModuleDirectory:
    """Process-wide snapshot of Deno module names.

    Usage:
        directory = KnownModuleDirectory(client=DenoRegistryClient())
        await directory.refresh()
        directory.contains("oak")
    """

    def __init__(
        self,
        client: DenoRegistryClient | None = None,
        modules: Iterable[str] | None = None,
        max_pages: int = 1,
    ) -> None:
        """Initialize the directory.

        Args:
            client: Registry client used by refresh(). Created on demand if None.
            modules: Optional initial snapshot (e.g. a pre-seeded test fixture).
            max_pages: Listing pages to fetch per refresh.
        """
        self._client = client
        self.max_pages = max_pages
        self._modules: frozenset[str] = frozenset(modules or ())
        self.last_refreshed: datetime | None = None
        self.last_error: str | None = None

    @property
    def client(self) -> DenoRegistryClient:
        if self._client is None:
            self._client = DenoRegistryClient()
        return self._client

    def contains(self, name: str) -> bool:
        """Check whether ``name`` is a known Deno module. Never touches the network."""
        return name in self._modules

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.contains(name)

    def __len__(self) -> int:
        return len(self._modules)

    def snapshot(self) -> frozenset[str]:
        """Return the current set of module names."""
        return self._modules

    def replace(self, modules: Iterable[str]) -> None:
        """Atomically replace the cached snapshot."""
        self._modules = frozenset(modules)
        self.last_refreshed = datetime.now(timezone.utc)

    async def refresh(self) -> bool:
        """Reload the module listing from the registry.

        On failure the previous snapshot stays in place.

        Returns:
            True if the snapshot was replaced, False if the refresh failed.
        """
        try:
            names = await self.client.list_modules(max_pages=self.max_pages)
        except RegistryError as e:
            self.last_error = str(e)
            logger.warning(f"Error fetching Deno modules, keeping {len(self)} cached: {e}")
            return False

        self.replace(names)
        self.last_error = None
        logger.info(f"Deno module directory refreshed: {len(self)} modules")
        return True
