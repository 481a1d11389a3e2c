"""
pharmacy_config: single public entrypoint for engine configuration.

Responsibility:
    ``get_active_config()`` is the only way to obtain settings at runtime.
    It reads ``defaults.yaml``, layers an optional override file on top,
    validates the result and returns a frozen ``PharmacySettings``.

Architecture position:
    Sits above ``pharmacy_kernel``.  The kernel MUST NEVER import from
    ``pharmacy_config``; services receive an ``EngineSettings`` built with
    ``PharmacySettings.to_engine_settings()`` through their constructors.

Failure modes:
    - ``FileNotFoundError``: the override path does not exist.
    - ``yaml.YAMLError``: a file is not valid YAML.
    - ``ValueError``: unknown key, wrong type or out-of-range value; the
      message names the offending key.

Audit relevance:
    Every successful call emits a ``PHARMACY_CONFIG_TRACE`` log entry with
    the source files and the effective fiscal year and numbering settings.
"""

from __future__ import annotations

import logging
from pathlib import Path

from pharmacy_config.loader import load_yaml_file, merge_settings, parse_settings
from pharmacy_config.schema import DatabaseSettings, PharmacySettings

_logger = logging.getLogger("pharmacy_kernel.config")

DEFAULTS_PATH = Path(__file__).parent / "defaults.yaml"


def get_active_config(path: Path | str | None = None) -> PharmacySettings:
    """The ONLY public configuration entrypoint.

    Args:
        path: Optional YAML file whose keys override ``defaults.yaml``.

    Returns:
        PharmacySettings, validated and frozen.
    """
    data = load_yaml_file(DEFAULTS_PATH)
    sources = [str(DEFAULTS_PATH)]
    if path is not None:
        data = merge_settings(data, load_yaml_file(Path(path)))
        sources.append(str(path))

    settings = parse_settings(data)

    _logger.info(
        "PHARMACY_CONFIG_TRACE",
        extra={
            "trace_type": "PHARMACY_CONFIG_TRACE",
            "sources": sources,
            "fiscal_year_start_month": settings.fiscal_year_start_month,
            "money_decimal_places": settings.money_decimal_places,
            "allow_negative_account_balance": settings.allow_negative_account_balance,
            "numbering": dict(settings.numbering),
        },
    )
    return settings


__all__ = [
    "DEFAULTS_PATH",
    "DatabaseSettings",
    "PharmacySettings",
    "get_active_config",
]
