"""
Kernel-facing engine settings.

The kernel never reads configuration files.  ``pharmacy_config`` builds an
EngineSettings from YAML and callers inject it into services; services
fall back to ``EngineSettings()`` defaults when none is given.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping

from pharmacy_kernel.domain.enums import DocumentKind

DEFAULT_NUMBER_FORMATS: Mapping[str, str] = MappingProxyType(
    {
        DocumentKind.SALE.value: "INV/{yy}/{counter}",
        DocumentKind.PURCHASE.value: "PUR/{yy}/{counter:06d}",
        DocumentKind.SALE_RETURN.value: "CreditNote/{yy}/{counter}",
        DocumentKind.PURCHASE_RETURN.value: "PR{counter:06d}",
        DocumentKind.PAYMENT.value: "PAY/{yy}/{counter}",
    }
)


@dataclass(frozen=True)
class EngineSettings:
    """
    Contract:
        - fiscal_year_start_month in 1..12.
        - number_formats has a ``str.format`` template for every numbered
          DocumentKind, using only ``counter``, ``fy`` and ``yy``.
        - money_decimal_places in 0..6.
    """

    fiscal_year_start_month: int = 4
    money_decimal_places: int = 2
    allow_negative_account_balance: bool = True
    number_formats: Mapping[str, str] = field(
        default_factory=lambda: dict(DEFAULT_NUMBER_FORMATS)
    )

    def __post_init__(self) -> None:
        if not 1 <= self.fiscal_year_start_month <= 12:
            raise ValueError(
                f"fiscal_year_start_month must be 1-12, got {self.fiscal_year_start_month}"
            )
        if not 0 <= self.money_decimal_places <= 6:
            raise ValueError(
                f"money_decimal_places must be 0-6, got {self.money_decimal_places}"
            )
        for kind in DocumentKind:
            if not kind.is_document:
                continue
            template = self.number_formats.get(kind.value)
            if not template:
                raise ValueError(f"number_formats missing template for {kind.value}")
            try:
                template.format(counter=1, fy=2024, yy="24")
            except (KeyError, IndexError, ValueError) as exc:
                raise ValueError(
                    f"number_formats[{kind.value}] is not a valid template: {template!r}"
                ) from exc

    def format_number(self, kind: DocumentKind, counter: int, fiscal_year: int) -> str:
        template = self.number_formats[kind.value]
        return template.format(
            counter=counter, fy=fiscal_year, yy=f"{fiscal_year % 100:02d}"
        )
