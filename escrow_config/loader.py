"""
Configuration Loader (``escrow_config.loader``).

Responsibility
--------------
Reads the YAML defaults, applies environment overrides, and parses the
result into the typed ``escrow_config.schema`` dataclasses.  Runtime code
never calls this directly; ``escrow_config.get_active_config()`` is the
single entry point.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Bad or missing values  -> ``ConfigurationError`` naming the key.
"""

from __future__ import annotations

import copy
import hashlib
import json
from collections.abc import Mapping
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from escrow_config.schema import ConfigurationError, DatabaseConfig
from escrow_kernel.domain.dtos import PaymentMethod
from escrow_kernel.settings import EscrowSettings

# Environment variable -> (section, key) in the YAML document.
ENV_OVERRIDES: dict[str, tuple[str, str]] = {
    "ESCROW_FEE_PERCENT": ("escrow", "fee_percent"),
    "ESCROW_CURRENCY": ("escrow", "currency"),
    "ESCROW_FEE_ROUNDING": ("escrow", "fee_rounding"),
    "BOLETO_DEFAULT_EXPIRATION_DAYS": ("escrow", "boleto_default_expiration_days"),
    "DATABASE_URL": ("database", "url"),
}


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def apply_env_overrides(
    data: Mapping[str, Any],
    environ: Mapping[str, str],
) -> tuple[dict[str, Any], tuple[str, ...]]:
    """
    Return a copy of ``data`` with environment overrides applied.

    Blank variables are ignored.  The second element lists the variables
    that were applied, in ENV_OVERRIDES order.
    """
    resolved = copy.deepcopy(dict(data))
    applied: list[str] = []
    for env_name, (section, key) in ENV_OVERRIDES.items():
        raw = environ.get(env_name)
        if raw is None or not raw.strip():
            continue
        resolved.setdefault(section, {})
        if not isinstance(resolved[section], dict):
            raise ConfigurationError(section, "must be a mapping")
        resolved[section][key] = raw.strip()
        applied.append(env_name)
    return resolved, tuple(applied)


def _section(data: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    section = data.get(name) or {}
    if not isinstance(section, Mapping):
        raise ConfigurationError(name, "must be a mapping")
    return section


def _parse_int(value: Any, key: str) -> int:
    if isinstance(value, bool):
        raise ConfigurationError(key, f"expected an integer, got {value!r}")
    try:
        return int(str(value).strip())
    except ValueError:
        raise ConfigurationError(key, f"expected an integer, got {value!r}") from None


def _parse_bool(value: Any, key: str) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in ("1", "true", "yes", "on"):
        return True
    if text in ("0", "false", "no", "off"):
        return False
    raise ConfigurationError(key, f"expected a boolean, got {value!r}")


def parse_settings(data: Mapping[str, Any]) -> EscrowSettings:
    """Build EscrowSettings from the ``escrow`` section."""
    section = _section(data, "escrow")
    kwargs: dict[str, Any] = {}

    if "fee_percent" in section:
        try:
            kwargs["fee_percent"] = Decimal(str(section["fee_percent"]).strip())
        except InvalidOperation:
            raise ConfigurationError(
                "escrow.fee_percent", f"not a number: {section['fee_percent']!r}"
            ) from None
    if "currency" in section:
        kwargs["currency"] = str(section["currency"])
    if "fee_rounding" in section:
        kwargs["fee_rounding"] = str(section["fee_rounding"]).strip().upper()
    if "boleto_default_expiration_days" in section:
        kwargs["boleto_default_expiration_days"] = _parse_int(
            section["boleto_default_expiration_days"],
            "escrow.boleto_default_expiration_days",
        )
    if "supported_payment_methods" in section:
        methods = section["supported_payment_methods"]
        if not isinstance(methods, list) or not methods:
            raise ConfigurationError(
                "escrow.supported_payment_methods", "must be a non-empty list"
            )
        try:
            kwargs["supported_payment_methods"] = frozenset(
                PaymentMethod(str(m).strip().upper()) for m in methods
            )
        except ValueError as exc:
            raise ConfigurationError("escrow.supported_payment_methods", str(exc)) from None

    try:
        return EscrowSettings(**kwargs)
    except ValueError as exc:
        raise ConfigurationError("escrow", str(exc)) from None


def parse_database(data: Mapping[str, Any]) -> DatabaseConfig:
    """Build DatabaseConfig from the ``database`` section."""
    section = _section(data, "database")
    url = section.get("url")
    if not isinstance(url, str) or not url.strip():
        raise ConfigurationError("database.url", "is required")
    return DatabaseConfig(
        url=url.strip(),
        echo=_parse_bool(section.get("echo", False), "database.echo"),
        pool_size=_parse_int(section.get("pool_size", 5), "database.pool_size"),
        max_overflow=_parse_int(section.get("max_overflow", 10), "database.max_overflow"),
        pool_timeout=_parse_int(section.get("pool_timeout", 30), "database.pool_timeout"),
    )


def compute_checksum(data: Mapping[str, Any]) -> str:
    """SHA-256 of the canonical JSON form; identical data, identical checksum."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
