"""Runtime configuration for the scan engine."""

from __future__ import annotations

import os

from pydantic import BaseModel, Field, ValidationError

from pkgscan.exceptions import ConfigError

ENV_PREFIX = "PKGSCAN_"


class ScanSettings(BaseModel):
    """Settings shared by the registry clients, verifier and pipeline.

    Every field can be overridden through a ``PKGSCAN_<FIELD>`` environment
    variable (e.g. ``PKGSCAN_MAX_CONCURRENCY=4``).
    """

    npm_registry_url: str = "https://registry.npmjs.org"
    deno_modules_url: str = "https://apiland.deno.dev/v2/modules"
    deno_land_url: str = "https://deno.land/x"

    # Maximum number of registry requests in flight during one scan
    max_concurrency: int = Field(default=8, ge=1)
    # Per-request timeout in seconds
    request_timeout: float = Field(default=10.0, gt=0)
    # Overall deadline for the live checks of a single scan
    scan_deadline: float = Field(default=60.0, gt=0)

    # Seconds between background refreshes of the Deno module directory (0 = once)
    directory_refresh_interval: float = Field(default=3600.0, ge=0)
    directory_max_pages: int = Field(default=1, ge=1)

    # Flag npm packages that exist but have no published versions
    check_zero_versions: bool = True

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None, **overrides) -> ScanSettings:
        """Build settings from environment variables.

        Args:
            environ: Mapping to read from. Defaults to ``os.environ``.
            **overrides: Explicit values that take precedence over the environment.
                ``None`` values are ignored.

        Returns:
            Validated ScanSettings.

        Raises:
            ConfigError: If a value fails validation.
        """
        environ = os.environ if environ is None else environ

        values: dict[str, object] = {}
        for name in cls.model_fields:
            raw = environ.get(f"{ENV_PREFIX}{name.upper()}")
            if raw is not None and raw != "":
                values[name] = raw

        values.update({k: v for k, v in overrides.items() if v is not None})

        try:
            return cls(**values)
        except ValidationError as e:
            raise ConfigError(f"Invalid pkgscan configuration: {e}") from e
