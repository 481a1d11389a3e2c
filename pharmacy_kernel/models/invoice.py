"""
Module: pharmacy_kernel.models.invoice
Responsibility: ORM persistence for purchase and sales invoices and their
    lines.  One generalized entity parameterized by ``invoice_type``.
Architecture position: Kernel > Models.

Invariants enforced:
    - invoice_number is unique per (tenant, invoice_type, fiscal_year).
      Drafts may have no number (NULLs do not collide).
    - Header totals are the bill summary of the lines (computed by
      domain.billing in services.invoice_engine, never trusted from callers).
    - amount_paid <= grand_total; payment_status is ``paid`` iff the invoice
      is fully settled.

Lifecycle:
    DRAFT -> ACTIVE -> CANCELLED, with ACTIVE also reachable on creation.
    Drafts have no stock, ledger or payment effects.
"""

from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Date,
    ForeignKey,
    Index,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from pharmacy_kernel.db.base import TenantScopedBase, UUIDString
from pharmacy_kernel.db.types import Money, Percent, Quantity, Rate
from pharmacy_kernel.domain.dtos import InvoiceInfo, InvoiceLineInfo
from pharmacy_kernel.domain.enums import (
    InvoiceStatus,
    InvoiceType,
    PaymentMethod,
    PaymentStatus,
)


class Invoice(TenantScopedBase):
    __tablename__ = "invoices"

    __table_args__ = (
        UniqueConstraint(
            "tenant_id",
            "invoice_type",
            "fiscal_year",
            "invoice_number",
            name="uq_invoice_number",
        ),
        CheckConstraint("amount_paid >= 0", name="ck_invoice_amount_paid_non_negative"),
        Index("idx_invoice_tenant_type_status", "tenant_id", "invoice_type", "status"),
        Index("idx_invoice_party", "tenant_id", "party_id"),
    )

    invoice_type: Mapped[InvoiceType] = mapped_column(String(20), nullable=False)
    status: Mapped[InvoiceStatus] = mapped_column(
        String(20), nullable=False, default=InvoiceStatus.DRAFT
    )
    invoice_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    fiscal_year: Mapped[int] = mapped_column(nullable=False)
    invoice_date: Mapped[date] = mapped_column(Date, nullable=False)
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    party_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("parties.id"), nullable=True
    )
    party_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    supplier_invoice_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    inter_state: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    subtotal: Mapped[Money]
    discount_amount: Mapped[Money]
    taxable_amount: Mapped[Money]
    gst_amount: Mapped[Money]
    grand_total: Mapped[Money]
    total_quantity: Mapped[Quantity]
    product_count: Mapped[Quantity]
    gst_summary: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)

    amount_paid: Mapped[Money]
    payment_method: Mapped[PaymentMethod | None] = mapped_column(String(20), nullable=True)
    payment_status: Mapped[PaymentStatus] = mapped_column(
        String(10), nullable=False, default=PaymentStatus.DUE
    )
    remarks: Mapped[str | None] = mapped_column(String(500), nullable=True)

    lines: Mapped[list["InvoiceLine"]] = relationship(
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceLine.line_no",
    )

    @property
    def amount_due(self) -> Decimal:
        return self.grand_total - self.amount_paid

    @property
    def is_active(self) -> bool:
        return self.status == InvoiceStatus.ACTIVE

    def refresh_payment_status(self) -> None:
        self.payment_status = (
            PaymentStatus.PAID if self.amount_paid >= self.grand_total else PaymentStatus.DUE
        )

    def to_dto(self) -> InvoiceInfo:
        return InvoiceInfo(
            id=self.id,
            invoice_type=InvoiceType(self.invoice_type),
            status=InvoiceStatus(self.status),
            invoice_number=self.invoice_number,
            fiscal_year=self.fiscal_year,
            invoice_date=self.invoice_date,
            party_id=self.party_id,
            subtotal=self.subtotal,
            discount_amount=self.discount_amount,
            taxable_amount=self.taxable_amount,
            gst_amount=self.gst_amount,
            grand_total=self.grand_total,
            amount_paid=self.amount_paid,
            payment_status=PaymentStatus(self.payment_status),
            lines=tuple(line.to_dto() for line in self.lines),
            gst_summary=tuple(self.gst_summary or ()),
        )

    def __repr__(self) -> str:
        return f"<Invoice {self.invoice_type} {self.invoice_number or '(draft)'} {self.status}>"


class InvoiceLine(TenantScopedBase):
    """
    One line of an invoice.

    Snapshots the product and batch attributes used for billing so the
    document stays stable when the batch is later repriced.  ``batch_id``
    is NULL only on a draft purchase line for a batch not yet created.
    """

    __tablename__ = "invoice_lines"

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_invoice_line_quantity_positive"),
        CheckConstraint("free >= 0", name="ck_invoice_line_free_non_negative"),
        Index("idx_invoice_line_invoice", "invoice_id"),
    )

    invoice_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False
    )
    line_no: Mapped[int] = mapped_column(nullable=False)

    product_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("products.id"), nullable=False
    )
    batch_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("batches.id"), nullable=True
    )
    product_name: Mapped[str] = mapped_column(String(200), nullable=False)
    batch_number: Mapped[str | None] = mapped_column(String(50), nullable=True)
    expiry: Mapped[str | None] = mapped_column(String(5), nullable=True)
    hsn: Mapped[str | None] = mapped_column(String(20), nullable=True)

    quantity: Mapped[int] = mapped_column(nullable=False)
    free: Mapped[Quantity]
    pack: Mapped[int | None] = mapped_column(nullable=True)
    mrp: Mapped[Rate]
    purchase_rate: Mapped[Rate]
    sale_rate: Mapped[Rate]
    rate: Mapped[Rate]
    discount_percent: Mapped[Percent]
    gst_percent: Mapped[Percent]

    gross_amount: Mapped[Money]
    discount_amount: Mapped[Money]
    taxable_amount: Mapped[Money]
    gst_amount: Mapped[Money]
    amount: Mapped[Money]

    invoice: Mapped[Invoice] = relationship(back_populates="lines")

    @property
    def stock_quantity(self) -> int:
        """Units moved by this line: billed plus free."""
        return self.quantity + self.free

    def to_dto(self) -> InvoiceLineInfo:
        return InvoiceLineInfo(
            id=self.id,
            line_no=self.line_no,
            product_id=self.product_id,
            batch_id=self.batch_id,
            batch_number=self.batch_number,
            quantity=self.quantity,
            free=self.free,
            rate=self.rate,
            discount_percent=self.discount_percent,
            gst_percent=self.gst_percent,
            taxable_amount=self.taxable_amount,
            gst_amount=self.gst_amount,
            amount=self.amount,
        )
