"""
Billing -- pure line and bill total computation.

Responsibility:
    Computes the amounts stored on invoice and return lines and the bill
    summary stored on their headers.  No I/O, no ORM.

Rules:
    gross     = quantity * rate
    discount  = gross * discount% / 100
    taxable   = gross - discount
    gst       = taxable * gst% / 100
    amount    = taxable + gst

    Every component is rounded half-up to the money precision.  Free units
    are never billed.  The GST summary groups lines by GST rate; intra-state
    bills split the tax into CGST and SGST halves (SGST absorbs the odd
    paisa), inter-state bills carry it all as IGST.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable

from pharmacy_kernel.domain.money import HUNDRED, ZERO, round_money


@dataclass(frozen=True)
class LineAmounts:
    quantity: int
    gst_percent: Decimal
    gross: Decimal
    discount: Decimal
    taxable: Decimal
    gst: Decimal
    amount: Decimal


@dataclass(frozen=True)
class GstSlab:
    gst_percent: Decimal
    taxable: Decimal
    cgst: Decimal
    sgst: Decimal
    igst: Decimal

    @property
    def total_gst(self) -> Decimal:
        return self.cgst + self.sgst + self.igst


@dataclass(frozen=True)
class BillSummary:
    subtotal: Decimal
    discount_amount: Decimal
    taxable_amount: Decimal
    gst_amount: Decimal
    gst_summary: tuple[GstSlab, ...]
    total_quantity: int
    product_count: int
    grand_total: Decimal


def compute_line(
    quantity: int,
    rate: Decimal,
    discount_percent: Decimal = ZERO,
    gst_percent: Decimal = ZERO,
    places: int = 2,
) -> LineAmounts:
    """Amounts for one billed line."""
    rate = Decimal(rate)
    discount_percent = Decimal(discount_percent)
    gst_percent = Decimal(gst_percent)

    gross = round_money(rate * quantity, places)
    discount = round_money(gross * discount_percent / HUNDRED, places)
    taxable = gross - discount
    gst = round_money(taxable * gst_percent / HUNDRED, places)
    return LineAmounts(
        quantity=quantity,
        gst_percent=gst_percent,
        gross=gross,
        discount=discount,
        taxable=taxable,
        gst=gst,
        amount=taxable + gst,
    )


def summarize(
    lines: Iterable[tuple[LineAmounts, object]],
    inter_state: bool = False,
    places: int = 2,
) -> BillSummary:
    """
    Bill summary over ``(amounts, product_key)`` pairs.

    ``product_key`` identifies the product so ``product_count`` counts
    distinct products rather than lines.
    """
    subtotal = discount = taxable = gst = ZERO
    quantity = 0
    products: set = set()
    slabs: dict[Decimal, list[Decimal]] = {}

    for amounts, product_key in lines:
        subtotal += amounts.gross
        discount += amounts.discount
        taxable += amounts.taxable
        gst += amounts.gst
        quantity += amounts.quantity
        products.add(product_key)
        slab = slabs.setdefault(amounts.gst_percent.normalize(), [ZERO, ZERO])
        slab[0] += amounts.taxable
        slab[1] += amounts.gst

    gst_summary = []
    for rate in sorted(slabs):
        slab_taxable, slab_gst = slabs[rate]
        if inter_state:
            cgst = sgst = ZERO
            igst = slab_gst
        else:
            cgst = round_money(slab_gst / 2, places)
            sgst = slab_gst - cgst
            igst = ZERO
        gst_summary.append(
            GstSlab(gst_percent=rate, taxable=slab_taxable, cgst=cgst, sgst=sgst, igst=igst)
        )

    return BillSummary(
        subtotal=subtotal,
        discount_amount=discount,
        taxable_amount=taxable,
        gst_amount=gst,
        gst_summary=tuple(gst_summary),
        total_quantity=quantity,
        product_count=len(products),
        grand_total=taxable + gst,
    )
