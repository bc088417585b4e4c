"""
Configuration schema (``escrow_config.schema``).

Frozen dataclasses describing a fully resolved runtime configuration.  The
engine part is the kernel's own EscrowSettings; this package only adds what
the kernel has no business knowing about, such as the database URL.
"""

from __future__ import annotations

from dataclasses import dataclass

from escrow_kernel.settings import EscrowSettings


class ConfigurationError(ValueError):
    """A configuration value is missing, malformed, or out of range."""

    code: str = "CONFIGURATION_ERROR"

    def __init__(self, key: str, reason: str):
        self.key = key
        self.reason = reason
        super().__init__(f"Invalid configuration for {key}: {reason}")


@dataclass(frozen=True)
class DatabaseConfig:
    """Arguments for escrow_kernel.db.init_engine_from_url()."""

    url: str
    echo: bool = False
    pool_size: int = 5
    max_overflow: int = 10
    pool_timeout: int = 30


@dataclass(frozen=True)
class EscrowConfig:
    """
    The resolved configuration returned by get_active_config().

    Attributes:
        settings: Injected into EscrowService.
        database: Handed to init_engine_from_url().
        source: File the defaults came from.
        overrides: Environment variable names that changed a value.
        checksum: SHA-256 of the resolved values, for the config trace.
    """

    settings: EscrowSettings
    database: DatabaseConfig
    source: str
    overrides: tuple[str, ...]
    checksum: str

    @property
    def database_url(self) -> str:
        return self.database.url
