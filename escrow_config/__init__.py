"""
escrow_config -- single public entrypoint for escrow configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  No other component reads configuration
    files or environment variables directly.

Architecture position:
    Configuration.  This package sits above ``escrow_kernel``: it builds
    the kernel's ``EscrowSettings``.  The kernel MUST NEVER import from
    ``escrow_config``; callers pass ``config.settings`` into EscrowService.

Failure modes:
    - ``FileNotFoundError`` -- the requested YAML file does not exist.
    - ``ConfigurationError`` (a ``ValueError``) -- a value is malformed or
      out of range, whether it came from YAML or the environment.

Audit relevance:
    Every successful ``get_active_config()`` call emits an
    ``ESCROW_CONFIG_TRACE`` log entry with the source file, applied
    overrides, fee rate and checksum, so a fee charged on an account can be
    tied back to the configuration that produced it.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path

from escrow_config.loader import (
    apply_env_overrides,
    compute_checksum,
    load_yaml_file,
    parse_database,
    parse_settings,
)
from escrow_config.schema import ConfigurationError, DatabaseConfig, EscrowConfig

_logger = logging.getLogger("escrow_kernel.config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults.yaml"

__all__ = [
    "ConfigurationError",
    "DatabaseConfig",
    "DEFAULT_CONFIG_PATH",
    "EscrowConfig",
    "get_active_config",
]


def get_active_config(
    config_path: Path | str | None = None,
    environ: Mapping[str, str] | None = None,
) -> EscrowConfig:
    """The ONLY public configuration entrypoint.

    Args:
        config_path: YAML file to load.  Defaults to the packaged
            defaults.yaml.
        environ: Environment to read overrides from.  Defaults to
            ``os.environ``; tests pass a plain dict.

    Returns:
        EscrowConfig with validated settings and database configuration.

    Raises:
        FileNotFoundError: If ``config_path`` does not exist.
        ConfigurationError: If any value fails validation.
    """
    path = Path(config_path) if config_path is not None else DEFAULT_CONFIG_PATH
    env = os.environ if environ is None else environ

    raw = load_yaml_file(path)
    resolved, overrides = apply_env_overrides(raw, env)
    settings = parse_settings(resolved)
    database = parse_database(resolved)
    checksum = compute_checksum(resolved)

    config = EscrowConfig(
        settings=settings,
        database=database,
        source=str(path),
        overrides=overrides,
        checksum=checksum,
    )

    _logger.info(
        "ESCROW_CONFIG_TRACE",
        extra={
            "trace_type": "ESCROW_CONFIG_TRACE",
            "source": config.source,
            "overrides": list(overrides),
            "fee_percent": str(settings.fee_percent),
            "fee_rounding": settings.fee_rounding,
            "currency": settings.currency,
            "checksum": checksum,
        },
    )
    return config
