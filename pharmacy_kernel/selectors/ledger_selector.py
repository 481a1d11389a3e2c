"""
Module: pharmacy_kernel.selectors.ledger_selector
Responsibility: Party ledgers, account statements and the reconciliation
    sums behind BalanceLedger.reconcile_*.
Architecture position: Kernel > Selectors.

Reconciliation:
    Party:   opening_balance + sum(debit - credit) of non-opening entries
             == current_balance
    Account: opening_balance + sum(CREDIT) - sum(DEBIT) == balance
    The stored running balances are the source of truth on the write path;
    these sums exist only to check them.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import case, func, select

from pharmacy_kernel.db.repository import TenantRepository
from pharmacy_kernel.domain.dtos import (
    AccountTransactionInfo,
    PartyLedgerEntryInfo,
    ReconciliationResult,
)
from pharmacy_kernel.domain.enums import AccountTransactionType, LedgerEntryType
from pharmacy_kernel.exceptions import AccountNotFoundError, PartyNotFoundError
from pharmacy_kernel.models.account import Account, AccountTransaction
from pharmacy_kernel.models.party import Party, PartyLedgerEntry
from pharmacy_kernel.selectors.base import BaseSelector


class LedgerSelector(BaseSelector):
    def __init__(self, session):
        super().__init__(session)
        self._parties = TenantRepository(session, Party, PartyNotFoundError)
        self._accounts = TenantRepository(session, Account, AccountNotFoundError)
        self._party_entries = TenantRepository(session, PartyLedgerEntry)
        self._account_entries = TenantRepository(session, AccountTransaction)

    def party_ledger(self, tenant_id: UUID, party_id) -> list[PartyLedgerEntryInfo]:
        party = self._parties.get(tenant_id, party_id)
        rows = self._party_entries.find_all(
            tenant_id,
            PartyLedgerEntry.party_id == party.id,
            order_by=(PartyLedgerEntry.seq,),
        )
        return [row.to_dto() for row in rows]

    def account_statement(self, tenant_id: UUID, account_id) -> list[AccountTransactionInfo]:
        account = self._accounts.get(tenant_id, account_id)
        rows = self._account_entries.find_all(
            tenant_id,
            AccountTransaction.account_id == account.id,
            order_by=(AccountTransaction.seq,),
        )
        return [row.to_dto() for row in rows]

    def reconcile_party(self, tenant_id: UUID, party_id) -> ReconciliationResult:
        party = self._parties.get(tenant_id, party_id)
        net = self.session.execute(
            select(
                func.coalesce(func.sum(PartyLedgerEntry.debit - PartyLedgerEntry.credit), 0)
            ).where(
                PartyLedgerEntry.tenant_id == tenant_id,
                PartyLedgerEntry.party_id == party.id,
                PartyLedgerEntry.entry_type != LedgerEntryType.OPENING_BALANCE.value,
            )
        ).scalar_one()
        return ReconciliationResult(
            entity_id=party.id,
            opening_balance=party.opening_balance,
            ledger_net=Decimal(net),
            recorded_balance=party.current_balance,
        )

    def reconcile_account(self, tenant_id: UUID, account_id) -> ReconciliationResult:
        account = self._accounts.get(tenant_id, account_id)
        signed = case(
            (
                AccountTransaction.transaction_type == AccountTransactionType.CREDIT.value,
                AccountTransaction.amount,
            ),
            else_=-AccountTransaction.amount,
        )
        net = self.session.execute(
            select(func.coalesce(func.sum(signed), 0)).where(
                AccountTransaction.tenant_id == tenant_id,
                AccountTransaction.account_id == account.id,
            )
        ).scalar_one()
        return ReconciliationResult(
            entity_id=account.id,
            opening_balance=account.opening_balance,
            ledger_net=Decimal(net),
            recorded_balance=account.balance,
        )
