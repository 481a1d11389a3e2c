"""
Module: pharmacy_kernel.models.sequence
Responsibility: Counter rows backing document numbers and row ordering.

One row per (tenant, document kind, fiscal year).  The row is the sole
authority for the next number; services.sequence_service increments it with
a single atomic UPDATE.
"""

from uuid import UUID

from sqlalchemy import String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from pharmacy_kernel.db.base import Base, UUIDString


class SequenceCounter(Base):
    __tablename__ = "sequence_counters"

    __table_args__ = (
        UniqueConstraint(
            "tenant_id", "document_kind", "fiscal_year", name="uq_sequence_counter_scope"
        ),
    )

    tenant_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    document_kind: Mapped[str] = mapped_column(String(30), nullable=False)
    # 0 for kinds that are not fiscal-year scoped
    fiscal_year: Mapped[int] = mapped_column(nullable=False)
    current_value: Mapped[int] = mapped_column(nullable=False, default=0)

    def __repr__(self) -> str:
        return (
            f"<SequenceCounter {self.document_kind}/{self.fiscal_year} "
            f"= {self.current_value}>"
        )
