"""
Service layer for parties (customers and distributors).

One Party entity parameterized by ``party_type``.  Creation may carry an
opening balance (positive = the party owes the pharmacy), recorded as an
OPENING_BALANCE ledger entry so the ledger always explains the balance.
"""

from decimal import Decimal
from uuid import UUID

from pharmacy_kernel.db.repository import TenantRepository
from pharmacy_kernel.domain.dtos import PartyInfo
from pharmacy_kernel.domain.enums import LedgerEntryType, PartyType
from pharmacy_kernel.domain.money import ZERO, round_money, to_decimal
from pharmacy_kernel.exceptions import PartyNotFoundError, ValidationError
from pharmacy_kernel.logging_config import get_logger
from pharmacy_kernel.models.party import Party
from pharmacy_kernel.services.base import TransactionalService, require_ids
from pharmacy_kernel.services.sequence_service import SequenceAllocator
from pharmacy_kernel.services.timeline_recorder import TimelineRecorder

logger = get_logger("services.party")


class PartyService(TransactionalService):
    """
    Creates and reads parties.

    Non-goals:
        - Does NOT move balances after creation; BalanceLedger does that
          for invoices, returns and payments.
        - Does NOT enforce credit limits.
    """

    def __init__(self, session, clock=None, settings=None, auto_commit: bool = True):
        super().__init__(session, clock, settings, auto_commit)
        self._parties = TenantRepository(session, Party, PartyNotFoundError)
        self._recorder = TimelineRecorder(session, SequenceAllocator(session, self.settings))

    def create_party(
        self,
        tenant_id,
        actor_id,
        party_type: PartyType,
        name: str,
        *,
        opening_balance: Decimal = ZERO,
        phone: str | None = None,
        email: str | None = None,
        address: str | None = None,
        gstin: str | None = None,
        drug_license_number: str | None = None,
        credit_period_days: int = 30,
        credit_limit: Decimal | None = None,
    ) -> PartyInfo:
        tenant_id, actor_id = require_ids(tenant_id, actor_id)
        try:
            party_type = PartyType(party_type)
        except ValueError:
            raise ValidationError(f"unknown party type {party_type!r}", field="party_type") from None
        if not (name or "").strip():
            raise ValidationError("party name is required", field="name")
        if credit_period_days < 0:
            raise ValidationError("credit_period_days must not be negative", field="credit_period_days")
        opening = round_money(to_decimal(opening_balance), self.settings.money_decimal_places)

        with self._unit_of_work("create_party", tenant_id, actor_id):
            party = self._parties.add(
                tenant_id,
                Party(
                    party_type=party_type,
                    name=name.strip(),
                    phone=phone,
                    email=email,
                    address=address,
                    gstin=gstin,
                    drug_license_number=drug_license_number,
                    opening_balance=opening,
                    current_balance=opening,
                    credit_period_days=credit_period_days,
                    credit_limit=None if credit_limit is None else to_decimal(credit_limit),
                    created_by_id=actor_id,
                ),
            )
            if opening != ZERO:
                self._recorder.record_party_ledger(
                    tenant_id,
                    actor_id,
                    party.id,
                    LedgerEntryType.OPENING_BALANCE,
                    debit=max(opening, ZERO),
                    credit=max(-opening, ZERO),
                    resulting_balance=opening,
                    description="Opening balance",
                    opening=True,
                )
            info = party.to_dto()

        logger.info(
            "party_created",
            extra={"party_id": str(info.id), "party_type": party_type.value, "opening_balance": opening},
        )
        return info

    def get(self, tenant_id: UUID, party_id) -> PartyInfo:
        return self._parties.get(tenant_id, party_id).to_dto()

    def list_by_type(self, tenant_id: UUID, party_type: PartyType) -> list[PartyInfo]:
        parties = self._parties.find_all(
            tenant_id,
            Party.party_type == PartyType(party_type).value,
            Party.is_active.is_(True),
            order_by=(Party.name,),
        )
        return [p.to_dto() for p in parties]
