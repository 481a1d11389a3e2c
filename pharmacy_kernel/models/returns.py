"""
Module: pharmacy_kernel.models.returns
Responsibility: ORM persistence for purchase returns (debit notes) and sales
    returns (credit notes).
Architecture position: Kernel > Models.

Invariants enforced:
    - Every return references an existing invoice (FK, RESTRICT); an invoice
      with returns cannot be deleted, cancelled or edited.
    - return_number is unique per (tenant, return_type, fiscal_year).
    - Cumulative returned quantity per original invoice line never exceeds
      that line's billed quantity (checked in services.return_service).
"""

from datetime import date
from uuid import UUID

from sqlalchemy import CheckConstraint, Date, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from pharmacy_kernel.db.base import TenantScopedBase, UUIDString
from pharmacy_kernel.db.types import Money, Percent, Rate
from pharmacy_kernel.domain.dtos import ReturnInfo, ReturnLineInfo
from pharmacy_kernel.domain.enums import ReturnType


class ReturnDocument(TenantScopedBase):
    __tablename__ = "returns"

    __table_args__ = (
        UniqueConstraint(
            "tenant_id", "return_type", "fiscal_year", "return_number", name="uq_return_number"
        ),
        Index("idx_return_invoice", "tenant_id", "original_invoice_id"),
    )

    return_type: Mapped[ReturnType] = mapped_column(String(20), nullable=False)
    return_number: Mapped[str] = mapped_column(String(100), nullable=False)
    fiscal_year: Mapped[int] = mapped_column(nullable=False)
    return_date: Mapped[date] = mapped_column(Date, nullable=False)
    original_invoice_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("invoices.id", ondelete="RESTRICT"), nullable=False
    )
    original_invoice_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    party_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("parties.id"), nullable=True
    )
    party_name: Mapped[str | None] = mapped_column(String(200), nullable=True)

    subtotal: Mapped[Money]
    discount_amount: Mapped[Money]
    taxable_amount: Mapped[Money]
    gst_amount: Mapped[Money]
    grand_total: Mapped[Money]
    refund_amount: Mapped[Money]
    remarks: Mapped[str | None] = mapped_column(String(500), nullable=True)

    lines: Mapped[list["ReturnLine"]] = relationship(
        back_populates="return_document",
        cascade="all, delete-orphan",
        order_by="ReturnLine.line_no",
    )

    def to_dto(self) -> ReturnInfo:
        return ReturnInfo(
            id=self.id,
            return_type=ReturnType(self.return_type),
            return_number=self.return_number,
            fiscal_year=self.fiscal_year,
            original_invoice_id=self.original_invoice_id,
            party_id=self.party_id,
            grand_total=self.grand_total,
            refund_amount=self.refund_amount,
            lines=tuple(line.to_dto() for line in self.lines),
        )


class ReturnLine(TenantScopedBase):
    __tablename__ = "return_lines"

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_return_line_quantity_positive"),
        Index("idx_return_line_invoice_line", "invoice_line_id"),
    )

    return_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("returns.id", ondelete="CASCADE"), nullable=False
    )
    line_no: Mapped[int] = mapped_column(nullable=False)
    invoice_line_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("invoice_lines.id"), nullable=False
    )
    product_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("products.id"), nullable=False
    )
    batch_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("batches.id"), nullable=False
    )
    quantity: Mapped[int] = mapped_column(nullable=False)
    rate: Mapped[Rate]
    discount_percent: Mapped[Percent]
    gst_percent: Mapped[Percent]
    taxable_amount: Mapped[Money]
    gst_amount: Mapped[Money]
    amount: Mapped[Money]

    return_document: Mapped[ReturnDocument] = relationship(back_populates="lines")

    def to_dto(self) -> ReturnLineInfo:
        return ReturnLineInfo(
            id=self.id,
            invoice_line_id=self.invoice_line_id,
            product_id=self.product_id,
            batch_id=self.batch_id,
            quantity=self.quantity,
            amount=self.amount,
        )
