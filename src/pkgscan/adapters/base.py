"""Abstract base class for package registry clients."""

import urllib.parse
from abc import ABC, abstractmethod

import httpx

from pkgscan.models.schemas import Ecosystem


class RegistryError(Exception):
    """Base class for failures talking to a package registry."""

    def __init__(self, ecosystem: Ecosystem, name: str, message: str) -> None:
        self.ecosystem = ecosystem
        self.name = name
        super().__init__(message)


class PackageNotFoundError(RegistryError):
    """Raised when a package cannot be found."""

    def __init__(self, ecosystem: Ecosystem, name: str) -> None:
        super().__init__(ecosystem, name, f"Package '{name}' not found in {ecosystem.value}")


class RegistryUnavailableError(RegistryError):
    """Raised on transport failures, unexpected statuses or malformed responses."""

    def __init__(self, ecosystem: Ecosystem, name: str, reason: str) -> None:
        self.reason = reason
        super().__init__(ecosystem, name, f"{ecosystem.value} registry lookup for '{name}' failed: {reason}")


class BaseRegistryClient(ABC):
    """Base class for registry clients.

    Clients either share an injected ``httpx.AsyncClient`` or create a
    short-lived one per request.
    """

    def __init__(self, client: httpx.AsyncClient | None = None, timeout: float = 10.0) -> None:
        """Initialize the client.

        Args:
            client: Optional httpx client for making requests.
            timeout: Timeout in seconds for clients created on demand.
        """
        self._client = client
        self.timeout = timeout

    @property
    @abstractmethod
    def ecosystem(self) -> Ecosystem:
        """Return the ecosystem this client talks to."""
        ...

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create an HTTP client."""
        if self._client is not None:
            return self._client
        return httpx.AsyncClient(timeout=self.timeout, follow_redirects=True)

    async def _get(self, url: str, name: str) -> httpx.Response:
        """Issue a GET request, mapping transport failures to RegistryUnavailableError.

        Args:
            url: URL to fetch.
            name: Package or module name, for error reporting.

        Returns:
            The response, whatever its status code.
        """
        client = await self._get_client()
        try:
            return await client.get(url)
        except httpx.TimeoutException as e:
            raise RegistryUnavailableError(self.ecosystem, name, "request timed out") from e
        except httpx.HTTPError as e:
            raise RegistryUnavailableError(self.ecosystem, name, f"{type(e).__name__}: {e}") from e
        finally:
            if self._client is None:
                await client.aclose()


def encode_package_name(name: str) -> str:
    """URL-encode a package name for use as a single path segment.

    Scoped npm names (``@scope/pkg``) keep the ``@`` but encode the slash.
    """
    return urllib.parse.quote(name, safe="@")
