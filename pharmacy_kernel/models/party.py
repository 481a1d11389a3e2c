"""
Module: pharmacy_kernel.models.party
Responsibility: ORM persistence for counterparties (customers and
    distributors) and their append-only ledger.
Architecture position: Kernel > Models.

Sign convention:
    current_balance > 0  -> the party owes the pharmacy (receivable)
    current_balance < 0  -> the pharmacy owes the party (payable)
    Each ledger entry: balance = previous balance + debit - credit.

Invariants enforced:
    - current_balance is a denormalized running field, written only by
      services.balance_ledger in the same flush as the ledger entry.
    - opening_balance + sum(debit - credit of non-opening entries)
      == current_balance (checked by BalanceLedger.reconcile_party).
    - PartyLedgerEntry rows are append-only (db/immutability.py).
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, CheckConstraint, ForeignKey, Index, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from pharmacy_kernel.db.base import TenantScopedBase, UUIDString
from pharmacy_kernel.db.types import Money
from pharmacy_kernel.domain.dtos import PartyInfo, PartyLedgerEntryInfo
from pharmacy_kernel.domain.enums import LedgerEntryType, PartyType


class Party(TenantScopedBase):
    __tablename__ = "parties"

    __table_args__ = (Index("idx_party_tenant_type", "tenant_id", "party_type"),)

    party_type: Mapped[PartyType] = mapped_column(String(20), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    phone: Mapped[str | None] = mapped_column(String(30), nullable=True)
    email: Mapped[str | None] = mapped_column(String(200), nullable=True)
    address: Mapped[str | None] = mapped_column(String(500), nullable=True)
    gstin: Mapped[str | None] = mapped_column(String(20), nullable=True)
    drug_license_number: Mapped[str | None] = mapped_column(String(50), nullable=True)

    opening_balance: Mapped[Money]
    current_balance: Mapped[Money]
    credit_period_days: Mapped[int] = mapped_column(nullable=False, default=30)
    credit_limit: Mapped[Decimal | None] = mapped_column(Numeric(38, 9), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def to_dto(self) -> PartyInfo:
        return PartyInfo(
            id=self.id,
            party_type=PartyType(self.party_type),
            name=self.name,
            opening_balance=self.opening_balance,
            current_balance=self.current_balance,
            credit_period_days=self.credit_period_days,
            credit_limit=self.credit_limit,
        )

    def __repr__(self) -> str:
        return f"<Party {self.name} ({self.party_type}) balance={self.current_balance}>"


class PartyLedgerEntry(TenantScopedBase):
    __tablename__ = "party_ledger_entries"

    __table_args__ = (
        UniqueConstraint("tenant_id", "seq", name="uq_party_ledger_seq"),
        CheckConstraint("debit >= 0 AND credit >= 0", name="ck_party_ledger_non_negative"),
        Index("idx_party_ledger_party", "tenant_id", "party_id", "seq"),
    )

    seq: Mapped[int] = mapped_column(nullable=False)
    party_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("parties.id"), nullable=False
    )
    entry_type: Mapped[LedgerEntryType] = mapped_column(String(30), nullable=False)
    debit: Mapped[Money]
    credit: Mapped[Money]
    balance: Mapped[Money]
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)
    # Bill / payment / return reference; no FK so the row outlives the document
    document_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    document_number: Mapped[str | None] = mapped_column(String(100), nullable=True)

    def to_dto(self) -> PartyLedgerEntryInfo:
        return PartyLedgerEntryInfo(
            id=self.id,
            seq=self.seq,
            party_id=self.party_id,
            entry_type=LedgerEntryType(self.entry_type),
            debit=self.debit,
            credit=self.credit,
            balance=self.balance,
            description=self.description,
            document_id=self.document_id,
            document_number=self.document_number,
        )
