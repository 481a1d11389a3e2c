"""
Service layer for money accounts (cash drawer, bank, UPI, other).
"""

from decimal import Decimal
from uuid import UUID

from pharmacy_kernel.db.repository import TenantRepository
from pharmacy_kernel.domain.dtos import AccountInfo
from pharmacy_kernel.domain.enums import AccountType
from pharmacy_kernel.domain.money import ZERO, round_money, to_decimal
from pharmacy_kernel.exceptions import AccountNotFoundError, ValidationError
from pharmacy_kernel.logging_config import get_logger
from pharmacy_kernel.models.account import Account
from pharmacy_kernel.services.base import TransactionalService, require_ids

logger = get_logger("services.account")


class AccountService(TransactionalService):
    def __init__(self, session, clock=None, settings=None, auto_commit: bool = True):
        super().__init__(session, clock, settings, auto_commit)
        self._accounts = TenantRepository(session, Account, AccountNotFoundError)

    def create_account(
        self,
        tenant_id,
        actor_id,
        name: str,
        account_type: AccountType,
        *,
        opening_balance: Decimal = ZERO,
        account_number: str | None = None,
    ) -> AccountInfo:
        """
        Open an account.

        The opening balance is the starting point of the account statement;
        it has no transaction row of its own.
        """
        tenant_id, actor_id = require_ids(tenant_id, actor_id)
        try:
            account_type = AccountType(account_type)
        except ValueError:
            raise ValidationError(f"unknown account type {account_type!r}", field="account_type") from None
        if not (name or "").strip():
            raise ValidationError("account name is required", field="name")
        opening = round_money(to_decimal(opening_balance), self.settings.money_decimal_places)
        if opening < ZERO and not self.settings.allow_negative_account_balance:
            raise ValidationError("opening balance must not be negative", field="opening_balance")

        with self._unit_of_work("create_account", tenant_id, actor_id):
            account = self._accounts.add(
                tenant_id,
                Account(
                    name=name.strip(),
                    account_type=account_type,
                    account_number=account_number,
                    opening_balance=opening,
                    balance=opening,
                    created_by_id=actor_id,
                ),
            )
            info = account.to_dto()

        logger.info(
            "account_created",
            extra={"account_id": str(info.id), "account_type": account_type.value, "opening_balance": opening},
        )
        return info

    def get(self, tenant_id: UUID, account_id) -> AccountInfo:
        return self._accounts.get(tenant_id, account_id).to_dto()
