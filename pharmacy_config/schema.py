"""
Pharmacy settings schema.

Frozen dataclasses produced by ``pharmacy_config.loader`` from YAML.
``PharmacySettings`` is the only runtime artifact; the kernel never sees it
directly and receives an ``EngineSettings`` built by ``to_engine_settings``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping

from pharmacy_kernel.domain.enums import DocumentKind
from pharmacy_kernel.domain.settings import DEFAULT_NUMBER_FORMATS, EngineSettings


@dataclass(frozen=True)
class DatabaseSettings:
    url: str = "sqlite:///pharmacy.db"
    echo: bool = False

    def __post_init__(self) -> None:
        if not isinstance(self.url, str) or not self.url.strip():
            raise ValueError("database.url must be a non-empty string")
        if not isinstance(self.echo, bool):
            raise ValueError(f"database.echo must be a boolean, got {self.echo!r}")


@dataclass(frozen=True)
class PharmacySettings:
    """Validated engine configuration.

    Every validation failure raises ``ValueError`` naming the offending key.
    """

    fiscal_year_start_month: int = 4
    money_decimal_places: int = 2
    allow_negative_account_balance: bool = True
    numbering: Mapping[str, str] = field(
        default_factory=lambda: MappingProxyType(dict(DEFAULT_NUMBER_FORMATS))
    )
    database: DatabaseSettings = field(default_factory=DatabaseSettings)

    def __post_init__(self) -> None:
        if isinstance(self.fiscal_year_start_month, bool) or not isinstance(
            self.fiscal_year_start_month, int
        ):
            raise ValueError(
                f"fiscal_year_start_month must be an integer, got {self.fiscal_year_start_month!r}"
            )
        if not 1 <= self.fiscal_year_start_month <= 12:
            raise ValueError(
                f"fiscal_year_start_month must be 1-12, got {self.fiscal_year_start_month}"
            )
        if isinstance(self.money_decimal_places, bool) or not isinstance(
            self.money_decimal_places, int
        ):
            raise ValueError(
                f"money_decimal_places must be an integer, got {self.money_decimal_places!r}"
            )
        if not 0 <= self.money_decimal_places <= 6:
            raise ValueError(
                f"money_decimal_places must be 0-6, got {self.money_decimal_places}"
            )
        if not isinstance(self.allow_negative_account_balance, bool):
            raise ValueError(
                "allow_negative_account_balance must be a boolean, "
                f"got {self.allow_negative_account_balance!r}"
            )

        known = {kind.value for kind in DocumentKind if kind.is_document}
        for key, template in self.numbering.items():
            if key not in known:
                raise ValueError(f"numbering.{key} is not a numbered document kind")
            if not isinstance(template, str) or not template:
                raise ValueError(f"numbering.{key} must be a non-empty string")
            try:
                template.format(counter=1, fy=2024, yy="24")
            except (KeyError, IndexError, ValueError) as exc:
                raise ValueError(
                    f"numbering.{key} is not a valid template: {template!r}"
                ) from exc
        missing = sorted(known - set(self.numbering))
        if missing:
            raise ValueError(f"numbering is missing templates for: {', '.join(missing)}")

    def to_engine_settings(self) -> EngineSettings:
        """The kernel-facing subset of these settings."""
        return EngineSettings(
            fiscal_year_start_month=self.fiscal_year_start_month,
            money_decimal_places=self.money_decimal_places,
            allow_negative_account_balance=self.allow_negative_account_balance,
            number_formats=dict(self.numbering),
        )
