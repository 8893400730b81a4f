"""Deno module registry client."""

import logging

import httpx
from pydantic import ValidationError

from pkgscan.adapters.base import BaseRegistryClient, RegistryUnavailableError, encode_package_name
from pkgscan.models.schemas import DenoModuleListing, Ecosystem

logger = logging.getLogger(__name__)

# Name used in errors raised for the bulk listing
LISTING = "<module listing>"


class DenoRegistryClient(BaseRegistryClient):
    """Client for the Deno third-party module registry.

    Data sources:
    - Module listing: https://apiland.deno.dev/v2/modules
    - Module entry point: https://deno.land/x/{module}/mod.ts
    """

    MODULES_URL = "https://apiland.deno.dev/v2/modules"
    DENO_LAND_URL = "https://deno.land/x"
    ENTRY_POINT = "mod.ts"

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        modules_url: str | None = None,
        deno_land_url: str | None = None,
        timeout: float = 10.0,
    ) -> None:
        """Initialize the client.

        Args:
            client: Optional httpx client for making requests. It should
                follow redirects, since deno.land redirects to versioned URLs.
            modules_url: Listing endpoint. Defaults to the public apiland listing.
            deno_land_url: Base URL of the module host.
            timeout: Timeout in seconds for clients created on demand.
        """
        super().__init__(client=client, timeout=timeout)
        self.modules_url = modules_url or self.MODULES_URL
        self.deno_land_url = (deno_land_url or self.DENO_LAND_URL).rstrip("/")

    @property
    def ecosystem(self) -> Ecosystem:
        return Ecosystem.DENO

    async def list_modules(self, max_pages: int = 1) -> list[str]:
        """Fetch module names from the listing endpoint.

        Follows ``next`` links until there are none or ``max_pages`` pages
        have been read.

        Args:
            max_pages: Maximum number of listing pages to fetch.

        Returns:
            Module names in listing order.

        Raises:
            RegistryUnavailableError: On transport failure, non-success status
                or a malformed page.
        """
        names: list[str] = []
        url: str | None = self.modules_url

        for _ in range(max_pages):
            if url is None:
                break

            response = await self._get(url, LISTING)
            if not response.is_success:
                raise RegistryUnavailableError(Ecosystem.DENO, LISTING, f"HTTP {response.status_code}")

            try:
                page = DenoModuleListing.model_validate(response.json())
            except (ValueError, ValidationError) as e:
                raise RegistryUnavailableError(Ecosystem.DENO, LISTING, "malformed module listing") from e

            names.extend(item.name for item in page.items)
            url = str(httpx.URL(url).join(page.next)) if page.next else None

        logger.debug(f"deno: listed {len(names)} modules")
        return names

    def entry_point_url(self, name: str) -> str:
        return f"{self.deno_land_url}/{encode_package_name(name)}/{self.ENTRY_POINT}"

    async def entry_point_status(self, name: str) -> int:
        """Fetch a module's canonical entry point and return the final status code.

        Args:
            name: Module name.

        Returns:
            HTTP status code after redirects.

        Raises:
            RegistryUnavailableError: On transport failure or timeout.
        """
        response = await self._get(self.entry_point_url(name), name)
        return response.status_code
