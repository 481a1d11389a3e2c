"""
Module: pharmacy_kernel.models.account
Responsibility: ORM persistence for financial accounts (cash drawer, bank,
    UPI, other) and their append-only transaction list.
Architecture position: Kernel > Models.

Invariants enforced:
    - balance is written only by services.balance_ledger, in the same flush
      as the AccountTransaction carrying the resulting balance.
    - opening_balance + sum(CREDIT amounts) - sum(DEBIT amounts) == balance.
    - AccountTransaction rows are append-only (db/immutability.py).
"""

from uuid import UUID

from sqlalchemy import Boolean, CheckConstraint, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from pharmacy_kernel.db.base import TenantScopedBase, UUIDString
from pharmacy_kernel.db.types import Money
from pharmacy_kernel.domain.dtos import AccountInfo, AccountTransactionInfo
from pharmacy_kernel.domain.enums import AccountTransactionType, AccountType


class Account(TenantScopedBase):
    __tablename__ = "accounts"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    account_type: Mapped[AccountType] = mapped_column(String(20), nullable=False)
    account_number: Mapped[str | None] = mapped_column(String(50), nullable=True)
    opening_balance: Mapped[Money]
    balance: Mapped[Money]
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def to_dto(self) -> AccountInfo:
        return AccountInfo(
            id=self.id,
            name=self.name,
            account_type=AccountType(self.account_type),
            opening_balance=self.opening_balance,
            balance=self.balance,
        )

    def __repr__(self) -> str:
        return f"<Account {self.name} ({self.account_type}) balance={self.balance}>"


class AccountTransaction(TenantScopedBase):
    __tablename__ = "account_transactions"

    __table_args__ = (
        UniqueConstraint("tenant_id", "seq", name="uq_account_transaction_seq"),
        CheckConstraint("amount > 0", name="ck_account_transaction_amount_positive"),
        Index("idx_account_transaction_account", "tenant_id", "account_id", "seq"),
    )

    seq: Mapped[int] = mapped_column(nullable=False)
    account_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("accounts.id"), nullable=False
    )
    transaction_type: Mapped[AccountTransactionType] = mapped_column(String(10), nullable=False)
    amount: Mapped[Money]
    balance: Mapped[Money]
    payment_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    payment_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)

    def to_dto(self) -> AccountTransactionInfo:
        return AccountTransactionInfo(
            id=self.id,
            seq=self.seq,
            account_id=self.account_id,
            transaction_type=AccountTransactionType(self.transaction_type),
            amount=self.amount,
            balance=self.balance,
            payment_id=self.payment_id,
            payment_number=self.payment_number,
        )
