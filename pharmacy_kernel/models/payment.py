"""
Module: pharmacy_kernel.models.payment
Responsibility: ORM persistence for payments and their allocation to bills.
Architecture position: Kernel > Models.

Invariants enforced:
    - payment_number is unique per (tenant, fiscal_year).
    - CHEQUE payments start PENDING with no account effect; every other
      method is COMPLETED with an account transaction at creation.
    - sum(allocation amounts) <= amount; the remainder is an unallocated
      advance held by the party.
    - origin_invoice_id / origin_return_id mark payments created together
      with a document; those are reversed and deleted with it.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import CheckConstraint, Date, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from pharmacy_kernel.db.base import TenantScopedBase, UUIDString
from pharmacy_kernel.db.types import Money
from pharmacy_kernel.domain.dtos import PaymentInfo
from pharmacy_kernel.domain.enums import (
    PaymentMethod,
    PaymentRecordStatus,
    PaymentType,
)


class Payment(TenantScopedBase):
    __tablename__ = "payments"

    __table_args__ = (
        UniqueConstraint("tenant_id", "fiscal_year", "payment_number", name="uq_payment_number"),
        CheckConstraint("amount > 0", name="ck_payment_amount_positive"),
        Index("idx_payment_party", "tenant_id", "party_id"),
        Index("idx_payment_origin_invoice", "tenant_id", "origin_invoice_id"),
    )

    payment_number: Mapped[str] = mapped_column(String(100), nullable=False)
    fiscal_year: Mapped[int] = mapped_column(nullable=False)
    payment_date: Mapped[date] = mapped_column(Date, nullable=False)
    payment_type: Mapped[PaymentType] = mapped_column(String(20), nullable=False)
    method: Mapped[PaymentMethod] = mapped_column(String(20), nullable=False)
    status: Mapped[PaymentRecordStatus] = mapped_column(String(20), nullable=False)
    amount: Mapped[Money]

    party_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("parties.id"), nullable=True
    )
    account_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("accounts.id"), nullable=True
    )
    origin_invoice_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    origin_return_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    cheque_number: Mapped[str | None] = mapped_column(String(50), nullable=True)
    remarks: Mapped[str | None] = mapped_column(String(500), nullable=True)

    allocations: Mapped[list["PaymentAllocation"]] = relationship(
        back_populates="payment",
        cascade="all, delete-orphan",
    )

    @property
    def allocated_amount(self) -> Decimal:
        return sum((a.amount for a in self.allocations), Decimal("0"))

    @property
    def is_pending(self) -> bool:
        return self.status == PaymentRecordStatus.PENDING

    def to_dto(self) -> PaymentInfo:
        return PaymentInfo(
            id=self.id,
            payment_number=self.payment_number,
            payment_type=PaymentType(self.payment_type),
            method=PaymentMethod(self.method),
            status=PaymentRecordStatus(self.status),
            amount=self.amount,
            allocated_amount=self.allocated_amount,
            party_id=self.party_id,
            account_id=self.account_id,
            origin_invoice_id=self.origin_invoice_id,
            origin_return_id=self.origin_return_id,
            allocations=tuple((a.invoice_id, a.amount) for a in self.allocations),
        )


class PaymentAllocation(TenantScopedBase):
    """Portion of a payment settling one bill."""

    __tablename__ = "payment_allocations"

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_payment_allocation_positive"),
        Index("idx_payment_allocation_invoice", "tenant_id", "invoice_id"),
    )

    payment_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("payments.id", ondelete="CASCADE"), nullable=False
    )
    invoice_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("invoices.id"), nullable=False
    )
    amount: Mapped[Money]

    payment: Mapped[Payment] = relationship(back_populates="allocations")
