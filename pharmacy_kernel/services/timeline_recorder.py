"""
TimelineRecorder -- appends stock timeline, party ledger and account
transaction rows.

Responsibility:
    Writes append-only movement records that carry a delta and the running
    balance immediately after it.  Exposes no update or delete operation.

Architecture position:
    Kernel > Services -- component.  Called by InventoryStore users and
    BalanceLedger in the same transaction as the mutation being recorded.

Invariants enforced:
    - resulting balance is supplied by the caller right after the
      mutation and checked against the previous row of the same product /
      party / account: previous + credit - debit == resulting.  A mismatch
      raises StockInvariantError (stock) or ValidationError (money) and the
      transaction aborts.
    - Every row gets a per-tenant ordering ``seq`` from SequenceAllocator,
      so "creation order" is well defined even for rows written in one
      transaction with identical timestamps.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from pharmacy_kernel.domain.enums import (
    AccountTransactionType,
    DocumentKind,
    LedgerEntryType,
    MovementType,
)
from pharmacy_kernel.domain.money import ZERO
from pharmacy_kernel.exceptions import StockInvariantError, ValidationError
from pharmacy_kernel.logging_config import get_logger
from pharmacy_kernel.models.account import Account, AccountTransaction
from pharmacy_kernel.models.party import PartyLedgerEntry
from pharmacy_kernel.models.stock_timeline import StockTimelineEntry
from pharmacy_kernel.services.sequence_service import SequenceAllocator

logger = get_logger("services.timeline")


class TimelineRecorder:
    """
    Non-goals:
        - Does NOT mutate quantities or balances; it only records them.
        - Does NOT commit.
    """

    def __init__(self, session: Session, sequences: SequenceAllocator):
        self._session = session
        self._sequences = sequences

    def _last_balance(self, model, *criteria):
        return self._session.execute(
            select(model.balance).where(*criteria).order_by(model.seq.desc()).limit(1)
        ).scalar_one_or_none()

    # ------------------------------------------------------------------
    # Stock timeline
    # ------------------------------------------------------------------

    def record(
        self,
        tenant_id: UUID,
        actor_id: UUID,
        product_id: UUID,
        batch_id: UUID | None,
        movement_type: MovementType,
        quantity_delta: int,
        resulting_balance: int,
        *,
        batch_balance: int | None = None,
        document_id: UUID | None = None,
        document_number: str | None = None,
        party_name: str | None = None,
        remarks: str | None = None,
    ) -> StockTimelineEntry:
        """
        Append one stock movement.

        ``quantity_delta`` > 0 is stored as credit, < 0 as debit.
        """
        if quantity_delta == 0:
            raise ValidationError("a stock movement needs a non-zero quantity", field="quantity")

        previous = self._last_balance(
            StockTimelineEntry,
            StockTimelineEntry.tenant_id == tenant_id,
            StockTimelineEntry.product_id == product_id,
        ) or 0
        if previous + quantity_delta != resulting_balance:
            logger.error(
                "timeline_balance_mismatch",
                extra={
                    "product_id": str(product_id),
                    "previous_balance": previous,
                    "delta": quantity_delta,
                    "resulting_balance": resulting_balance,
                },
            )
            raise StockInvariantError(
                product_id,
                batch_id,
                f"timeline balance {previous} {quantity_delta:+d} != {resulting_balance}",
            )

        entry = StockTimelineEntry(
            tenant_id=tenant_id,
            created_by_id=actor_id,
            seq=self._sequences.next_row_seq(tenant_id, DocumentKind.STOCK_TIMELINE),
            product_id=product_id,
            batch_id=batch_id,
            movement_type=MovementType(movement_type),
            credit=max(quantity_delta, 0),
            debit=max(-quantity_delta, 0),
            balance=resulting_balance,
            batch_balance=batch_balance,
            document_id=document_id,
            document_number=document_number,
            party_name=party_name,
            remarks=remarks,
        )
        self._session.add(entry)
        self._session.flush()
        logger.debug(
            "stock_movement_recorded",
            extra={
                "product_id": str(product_id),
                "movement_type": entry.movement_type,
                "delta": quantity_delta,
                "balance": resulting_balance,
                "seq": entry.seq,
            },
        )
        return entry

    # ------------------------------------------------------------------
    # Party ledger
    # ------------------------------------------------------------------

    def record_party_ledger(
        self,
        tenant_id: UUID,
        actor_id: UUID,
        party_id: UUID,
        entry_type: LedgerEntryType,
        debit: Decimal,
        credit: Decimal,
        resulting_balance: Decimal,
        *,
        description: str | None = None,
        document_id: UUID | None = None,
        document_number: str | None = None,
        opening: bool = False,
    ) -> PartyLedgerEntry:
        """Append one party ledger row (balance = previous + debit - credit)."""
        if debit < ZERO or credit < ZERO:
            raise ValidationError("ledger debit and credit must be non-negative", field="amount")

        if not opening:
            previous = self._last_balance(
                PartyLedgerEntry,
                PartyLedgerEntry.tenant_id == tenant_id,
                PartyLedgerEntry.party_id == party_id,
            )
            previous = previous if previous is not None else ZERO
            if previous + debit - credit != resulting_balance:
                raise ValidationError(
                    f"party ledger balance {previous} + {debit} - {credit} "
                    f"!= {resulting_balance}",
                    field="balance",
                )

        entry = PartyLedgerEntry(
            tenant_id=tenant_id,
            created_by_id=actor_id,
            seq=self._sequences.next_row_seq(tenant_id, DocumentKind.PARTY_LEDGER),
            party_id=party_id,
            entry_type=LedgerEntryType(entry_type),
            debit=debit,
            credit=credit,
            balance=resulting_balance,
            description=description,
            document_id=document_id,
            document_number=document_number,
        )
        self._session.add(entry)
        self._session.flush()
        logger.debug(
            "party_ledger_recorded",
            extra={
                "party_id": str(party_id),
                "entry_type": entry.entry_type,
                "debit": debit,
                "credit": credit,
                "balance": resulting_balance,
            },
        )
        return entry

    # ------------------------------------------------------------------
    # Account transactions
    # ------------------------------------------------------------------

    def record_account_transaction(
        self,
        tenant_id: UUID,
        actor_id: UUID,
        account_id: UUID,
        delta: Decimal,
        resulting_balance: Decimal,
        *,
        payment_id: UUID | None = None,
        payment_number: str | None = None,
        description: str | None = None,
    ) -> AccountTransaction:
        """
        Append one account transaction.

        ``delta`` > 0 is a CREDIT (money in), < 0 a DEBIT (money out).
        """
        if delta == ZERO:
            raise ValidationError("an account transaction needs a non-zero amount", field="amount")

        previous = self._last_balance(
            AccountTransaction,
            AccountTransaction.tenant_id == tenant_id,
            AccountTransaction.account_id == account_id,
        )
        if previous is None:
            # the opening balance has no row of its own
            previous = self._session.execute(
                select(Account.opening_balance).where(
                    Account.tenant_id == tenant_id, Account.id == account_id
                )
            ).scalar_one()
        if previous + delta != resulting_balance:
            logger.error(
                "account_balance_mismatch",
                extra={
                    "account_id": str(account_id),
                    "previous_balance": previous,
                    "delta": delta,
                    "resulting_balance": resulting_balance,
                },
            )
            raise ValidationError(
                f"account balance {previous} {delta:+} != {resulting_balance}",
                field="balance",
            )

        entry = AccountTransaction(
            tenant_id=tenant_id,
            created_by_id=actor_id,
            seq=self._sequences.next_row_seq(tenant_id, DocumentKind.ACCOUNT_TRANSACTION),
            account_id=account_id,
            transaction_type=(
                AccountTransactionType.CREDIT if delta > ZERO else AccountTransactionType.DEBIT
            ),
            amount=abs(delta),
            balance=resulting_balance,
            payment_id=payment_id,
            payment_number=payment_number,
            description=description,
        )
        self._session.add(entry)
        self._session.flush()
        logger.debug(
            "account_transaction_recorded",
            extra={
                "account_id": str(account_id),
                "delta": delta,
                "balance": resulting_balance,
            },
        )
        return entry
