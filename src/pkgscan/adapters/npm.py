"""NPM registry client."""

import logging

import httpx
from pydantic import ValidationError

from pkgscan.adapters.base import (
    BaseRegistryClient,
    PackageNotFoundError,
    RegistryUnavailableError,
    encode_package_name,
)
from pkgscan.models.schemas import Ecosystem, NpmPackageDocument

logger = logging.getLogger(__name__)


class NpmRegistryClient(BaseRegistryClient):
    """Client for the public npm registry.

    Data sources:
    - Package metadata: https://registry.npmjs.org/{package}
    """

    REGISTRY_URL = "https://registry.npmjs.org"

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        registry_url: str | None = None,
        timeout: float = 10.0,
    ) -> None:
        """Initialize the client.

        Args:
            client: Optional httpx client for making requests.
            registry_url: Registry base URL. Defaults to the public registry.
            timeout: Timeout in seconds for clients created on demand.
        """
        super().__init__(client=client, timeout=timeout)
        self.registry_url = (registry_url or self.REGISTRY_URL).rstrip("/")

    @property
    def ecosystem(self) -> Ecosystem:
        return Ecosystem.NPM

    def package_url(self, name: str) -> str:
        return f"{self.registry_url}/{encode_package_name(name)}"

    async def get_package_document(self, name: str) -> NpmPackageDocument:
        """Fetch the registry document for a package.

        Args:
            name: Package name (supports scoped packages like @org/pkg).

        Returns:
            NpmPackageDocument with the published versions.

        Raises:
            PackageNotFoundError: If the registry answers 404.
            RegistryUnavailableError: On any other non-success status, transport
                failure, or a body without a ``versions`` mapping.
        """
        response = await self._get(self.package_url(name), name)

        if response.status_code == 404:
            raise PackageNotFoundError(Ecosystem.NPM, name)
        if not response.is_success:
            raise RegistryUnavailableError(Ecosystem.NPM, name, f"HTTP {response.status_code}")

        try:
            document = NpmPackageDocument.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            # Covers JSON decode errors and documents without "versions"
            logger.debug(f"npm: malformed document for {name}: {e}")
            raise RegistryUnavailableError(Ecosystem.NPM, name, "malformed registry response") from e

        return document
