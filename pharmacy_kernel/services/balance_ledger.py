"""
BalanceLedger -- running balances of parties and accounts.

Responsibility:
    Changes Party.current_balance and Account.balance and appends the
    matching ledger row in the same flush.  Balances are never recomputed
    by summing ledger rows on the write path; reconcile_* does that sum as
    an explicit check.

Architecture position:
    Kernel > Services -- component.  Runs inside the caller's transaction.

Sign conventions:
    Party:   balance = previous + debit - credit
             (positive = party owes the pharmacy)
    Account: CREDIT adds to the balance, DEBIT subtracts.

Invariants enforced:
    - Party and account rows are locked (FOR UPDATE) before the read that
      feeds the new balance; no stale read from outside the transaction.
    - opening_balance + ledger net == recorded balance (reconcile_*, summed
      by LedgerSelector).
    - With ``allow_negative_account_balance`` off, a debit that would take
      an account below zero raises ValidationError.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from pharmacy_kernel.db.repository import TenantRepository
from pharmacy_kernel.domain.dtos import ReconciliationResult
from pharmacy_kernel.domain.enums import LedgerEntryType
from pharmacy_kernel.domain.money import ZERO
from pharmacy_kernel.domain.settings import EngineSettings
from pharmacy_kernel.exceptions import AccountNotFoundError, PartyNotFoundError, ValidationError
from pharmacy_kernel.logging_config import get_logger
from pharmacy_kernel.models.account import Account, AccountTransaction
from pharmacy_kernel.models.party import Party, PartyLedgerEntry
from pharmacy_kernel.selectors.ledger_selector import LedgerSelector
from pharmacy_kernel.services.timeline_recorder import TimelineRecorder

logger = get_logger("services.balance_ledger")


class BalanceLedger:
    def __init__(
        self,
        session: Session,
        recorder: TimelineRecorder,
        settings: EngineSettings | None = None,
    ):
        self._session = session
        self._recorder = recorder
        self._settings = settings or EngineSettings()
        self._parties = TenantRepository(session, Party, PartyNotFoundError)
        self._accounts = TenantRepository(session, Account, AccountNotFoundError)
        self._selector = LedgerSelector(session)

    def post_party(
        self,
        tenant_id: UUID,
        actor_id: UUID,
        party_id: UUID,
        entry_type: LedgerEntryType,
        *,
        debit: Decimal = ZERO,
        credit: Decimal = ZERO,
        description: str | None = None,
        document_id: UUID | None = None,
        document_number: str | None = None,
    ) -> PartyLedgerEntry | None:
        """
        Move a party balance by ``debit - credit`` and record it.

        Returns None (and records nothing) when both sides are zero.
        """
        if debit == ZERO and credit == ZERO:
            return None
        party = self._parties.get_for_update(tenant_id, party_id)
        new_balance = party.current_balance + debit - credit
        party.current_balance = new_balance
        party.updated_by_id = actor_id
        entry = self._recorder.record_party_ledger(
            tenant_id,
            actor_id,
            party.id,
            entry_type,
            debit,
            credit,
            new_balance,
            description=description,
            document_id=document_id,
            document_number=document_number,
        )
        logger.info(
            "party_balance_posted",
            extra={
                "party_id": str(party.id),
                "entry_type": LedgerEntryType(entry_type).value,
                "debit": debit,
                "credit": credit,
                "balance": new_balance,
            },
        )
        return entry

    def post_account(
        self,
        tenant_id: UUID,
        actor_id: UUID,
        account_id: UUID,
        delta: Decimal,
        *,
        payment_id: UUID | None = None,
        payment_number: str | None = None,
        description: str | None = None,
    ) -> AccountTransaction:
        """Move an account balance by ``delta`` (money in > 0) and record it."""
        account = self._accounts.get_for_update(tenant_id, account_id)
        new_balance = account.balance + delta
        if new_balance < ZERO and not self._settings.allow_negative_account_balance:
            logger.warning(
                "account_overdraw_rejected",
                extra={"account_id": str(account.id), "balance": account.balance, "delta": delta},
            )
            raise ValidationError(
                f"account {account.name} would go negative ({new_balance})",
                field="account_id",
            )
        account.balance = new_balance
        account.updated_by_id = actor_id
        txn = self._recorder.record_account_transaction(
            tenant_id,
            actor_id,
            account.id,
            delta,
            new_balance,
            payment_id=payment_id,
            payment_number=payment_number,
            description=description,
        )
        logger.info(
            "account_balance_posted",
            extra={"account_id": str(account.id), "delta": delta, "balance": new_balance},
        )
        return txn

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------

    def reconcile_party(self, tenant_id: UUID, party_id) -> ReconciliationResult:
        """opening + sum(debit - credit) over non-opening entries vs current."""
        return self._selector.reconcile_party(tenant_id, party_id)

    def reconcile_account(self, tenant_id: UUID, account_id) -> ReconciliationResult:
        """opening + sum(CREDIT) - sum(DEBIT) vs balance."""
        return self._selector.reconcile_account(tenant_id, account_id)
