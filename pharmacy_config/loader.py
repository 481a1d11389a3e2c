"""
Configuration loader (``pharmacy_config.loader``).

Responsibility
--------------
Reads YAML files and parses them into ``pharmacy_config.schema``
dataclasses.  Runtime callers go through
``pharmacy_config.get_active_config()``; this module is its tooling.

Invariants enforced
-------------------
* Unknown keys are rejected with ``ValueError`` naming the key; a typo in a
  settings file never silently falls back to a default.
* An override file is layered over ``defaults.yaml`` key by key; the
  ``numbering`` and ``database`` sections merge per entry.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Wrong shape or out-of-range value  -> ``ValueError``.
"""

from __future__ import annotations

from pathlib import Path
from types import MappingProxyType
from typing import Any

import yaml

from pharmacy_config.schema import DatabaseSettings, PharmacySettings

_TOP_LEVEL_KEYS = frozenset(
    {
        "fiscal_year_start_month",
        "money_decimal_places",
        "allow_negative_account_balance",
        "numbering",
        "database",
    }
)
_DATABASE_KEYS = frozenset({"url", "echo"})
_SECTIONS = ("numbering", "database")


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the document is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top level must be a mapping, got {type(data).__name__}")
    return data


def merge_settings(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if key in _SECTIONS and isinstance(value, dict) and isinstance(base.get(key), dict):
            merged[key] = {**base[key], **value}
        else:
            merged[key] = value
    return merged


def _section(data: dict[str, Any], key: str) -> dict[str, Any]:
    value = data.get(key) or {}
    if not isinstance(value, dict):
        raise ValueError(f"{key} must be a mapping, got {type(value).__name__}")
    return value


def parse_settings(data: dict[str, Any]) -> PharmacySettings:
    """Build a PharmacySettings from a parsed YAML mapping."""
    unknown = sorted(set(data) - _TOP_LEVEL_KEYS)
    if unknown:
        raise ValueError(f"unknown configuration key: {unknown[0]}")

    database = _section(data, "database")
    unknown = sorted(set(database) - _DATABASE_KEYS)
    if unknown:
        raise ValueError(f"unknown configuration key: database.{unknown[0]}")

    kwargs: dict[str, Any] = {
        key: data[key]
        for key in (
            "fiscal_year_start_month",
            "money_decimal_places",
            "allow_negative_account_balance",
        )
        if key in data
    }
    if "numbering" in data:
        numbering = _section(data, "numbering")
        kwargs["numbering"] = MappingProxyType({str(k): v for k, v in numbering.items()})
    kwargs["database"] = DatabaseSettings(**database)
    return PharmacySettings(**kwargs)
