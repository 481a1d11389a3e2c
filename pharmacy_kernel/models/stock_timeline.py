"""
Module: pharmacy_kernel.models.stock_timeline
Responsibility: Append-only stock movement records.
Architecture position: Kernel > Models.

Invariants enforced:
    - Append-only: db/immutability.py blocks UPDATE and DELETE.
    - Exactly one of credit/debit is positive (CHECK constraint).
    - Ordered by ``seq`` per tenant, entries of a product form a running
      balance: balance[n] == balance[n-1] + credit[n] - debit[n].
    - Document references carry no foreign key, so entries outlive the
      invoice, return or adjustment that produced them.
"""

from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from pharmacy_kernel.db.base import TenantScopedBase, UUIDString
from pharmacy_kernel.domain.dtos import TimelineEntryInfo
from pharmacy_kernel.domain.enums import MovementType


class StockTimelineEntry(TenantScopedBase):
    __tablename__ = "stock_timeline"

    __table_args__ = (
        UniqueConstraint("tenant_id", "seq", name="uq_stock_timeline_seq"),
        CheckConstraint(
            "credit >= 0 AND debit >= 0 AND (credit = 0 OR debit = 0) AND credit + debit > 0",
            name="ck_stock_timeline_single_side",
        ),
        Index("idx_stock_timeline_product", "tenant_id", "product_id", "seq"),
    )

    seq: Mapped[int] = mapped_column(nullable=False)
    product_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("products.id"), nullable=False
    )
    batch_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("batches.id"), nullable=True
    )
    movement_type: Mapped[MovementType] = mapped_column(String(30), nullable=False)
    credit: Mapped[int] = mapped_column(nullable=False, default=0)
    debit: Mapped[int] = mapped_column(nullable=False, default=0)
    balance: Mapped[int] = mapped_column(nullable=False)
    batch_balance: Mapped[int | None] = mapped_column(nullable=True)
    document_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    document_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    party_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    remarks: Mapped[str | None] = mapped_column(String(500), nullable=True)

    def to_dto(self) -> TimelineEntryInfo:
        return TimelineEntryInfo(
            id=self.id,
            seq=self.seq,
            product_id=self.product_id,
            batch_id=self.batch_id,
            movement_type=MovementType(self.movement_type),
            credit=self.credit,
            debit=self.debit,
            balance=self.balance,
            batch_balance=self.batch_balance,
            document_id=self.document_id,
            document_number=self.document_number,
            party_name=self.party_name,
            remarks=self.remarks,
        )
