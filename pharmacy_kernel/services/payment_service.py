"""
PaymentService -- money in and out of the pharmacy.

Responsibility:
    Records payments, allocates them to bills, clears cheques, and reverses
    payments when they (or the document that created them) are deleted.

Architecture position:
    Kernel > Services -- operation service.  The public operations
    (``create_payment``, ``delete_payment``, ``clear_cheque``) own their
    transaction.  ``post_payment``, ``allocate``, ``reverse_payment`` and
    ``detach_allocations`` never commit; InvoiceEngine and ReturnService
    call them inside their own unit of work.

Effects of one payment:
    Account:  Payment In  -> CREDIT +amount
              Payment Out -> DEBIT  -amount
              (CHEQUE payments have no account effect until cleared)
    Party:    Payment In  -> ledger credit (party owes less)
              Payment Out -> ledger debit  (pharmacy owes less)
    Bills:    each allocation raises the bill's amount_paid; a bill whose
              amount_paid reaches its grand total becomes ``paid``.

Failure modes:
    - ValidationError: missing account for a non-cheque payment, bill of
      the wrong type or party, clearing a payment that is not a pending
      cheque, deleting a payment owned by an invoice or return.
    - InvalidInvoiceStateError: allocating to a bill that is not active.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from pharmacy_kernel.db.repository import TenantRepository
from pharmacy_kernel.domain.dtos import CreatePaymentCommand, PaymentInfo
from pharmacy_kernel.domain.enums import (
    DocumentKind,
    InvoiceStatus,
    InvoiceType,
    LedgerEntryType,
    PaymentMethod,
    PaymentRecordStatus,
    PaymentType,
)
from pharmacy_kernel.domain.identifiers import coerce_optional_uuid, coerce_uuid
from pharmacy_kernel.domain.money import ZERO, round_money
from pharmacy_kernel.exceptions import (
    AccountNotFoundError,
    InvalidInvoiceStateError,
    InvoiceNotFoundError,
    PartyNotFoundError,
    PaymentNotFoundError,
    ValidationError,
)
from pharmacy_kernel.logging_config import get_logger
from pharmacy_kernel.models.account import Account
from pharmacy_kernel.models.invoice import Invoice
from pharmacy_kernel.models.party import Party
from pharmacy_kernel.models.payment import Payment, PaymentAllocation
from pharmacy_kernel.services.balance_ledger import BalanceLedger
from pharmacy_kernel.services.base import TransactionalService, require_ids
from pharmacy_kernel.services.sequence_service import SequenceAllocator
from pharmacy_kernel.services.timeline_recorder import TimelineRecorder

logger = get_logger("services.payment")

# Which bills a payment direction settles
_SETTLES = {PaymentType.IN: InvoiceType.SALE, PaymentType.OUT: InvoiceType.PURCHASE}


class PaymentService(TransactionalService):
    def __init__(self, session, clock=None, settings=None, auto_commit: bool = True):
        super().__init__(session, clock, settings, auto_commit)
        self._payments = TenantRepository(session, Payment, PaymentNotFoundError)
        self._allocations = TenantRepository(session, PaymentAllocation, PaymentNotFoundError)
        self._invoices = TenantRepository(session, Invoice, InvoiceNotFoundError)
        self._parties = TenantRepository(session, Party, PartyNotFoundError)
        self._accounts = TenantRepository(session, Account, AccountNotFoundError)
        self._sequences = SequenceAllocator(session, self.settings)
        self._ledger = BalanceLedger(
            session, TimelineRecorder(session, self._sequences), self.settings
        )

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    def create_payment(self, tenant_id, actor_id, command: CreatePaymentCommand) -> PaymentInfo:
        """
        Record a standalone payment and settle the listed bills in order.

        Whatever is left after filling every listed bill's due amount stays
        with the party as an unallocated advance.
        """
        tenant_id, actor_id = require_ids(tenant_id, actor_id)
        party_id = coerce_optional_uuid(command.party_id, "party_id")
        bill_ids = [coerce_uuid(b, "bill_id") for b in command.bill_ids]
        if bill_ids and party_id is None:
            raise ValidationError("bill allocation needs a party", field="party_id")

        with self._unit_of_work("create_payment", tenant_id, actor_id):
            payment = self.post_payment(
                tenant_id,
                actor_id,
                command.payment_type,
                command.amount,
                command.method,
                party_id=party_id,
                account_id=command.account_id,
                payment_date=command.payment_date,
                cheque_number=command.cheque_number,
                remarks=command.remarks,
            )
            remaining = payment.amount
            for bill_id in bill_ids:
                if remaining <= ZERO:
                    break
                invoice = self._invoices.get_for_update(tenant_id, bill_id)
                self._check_settles(payment, invoice)
                share = min(remaining, invoice.amount_due)
                if share > ZERO:
                    self.allocate(tenant_id, actor_id, payment, invoice, share)
                    remaining -= share
            info = payment.to_dto()

        logger.info(
            "payment_created",
            extra={
                "payment_id": str(info.id),
                "payment_number": info.payment_number,
                "amount": info.amount,
                "allocated": info.allocated_amount,
            },
        )
        return info

    def delete_payment(self, tenant_id, actor_id, payment_id) -> None:
        """
        Delete a standalone payment and reverse every effect it had.

        Payments created with an invoice or a return belong to that
        document and are removed by editing or deleting it.
        """
        tenant_id, actor_id = require_ids(tenant_id, actor_id)
        with self._unit_of_work("delete_payment", tenant_id, actor_id):
            payment = self._payments.get_for_update(tenant_id, payment_id)
            if payment.origin_invoice_id is not None or payment.origin_return_id is not None:
                raise ValidationError(
                    f"payment {payment.payment_number} belongs to a document; "
                    "edit or delete the document instead",
                    field="payment_id",
                )
            number = payment.payment_number
            self.reverse_payment(tenant_id, actor_id, payment)
        logger.info("payment_deleted", extra={"payment_number": number})

    def clear_cheque(self, tenant_id, actor_id, payment_id, account_id=None) -> PaymentInfo:
        """Deposit a pending cheque: post it to an account and complete it."""
        tenant_id, actor_id = require_ids(tenant_id, actor_id)
        with self._unit_of_work("clear_cheque", tenant_id, actor_id):
            payment = self._payments.get_for_update(tenant_id, payment_id)
            if payment.method != PaymentMethod.CHEQUE or not payment.is_pending:
                raise ValidationError(
                    f"payment {payment.payment_number} is not a pending cheque", field="payment_id"
                )
            target = coerce_optional_uuid(account_id, "account_id") or payment.account_id
            if target is None:
                raise ValidationError("clearing a cheque needs an account", field="account_id")
            self._ledger.post_account(
                tenant_id,
                actor_id,
                target,
                _account_delta(payment),
                payment_id=payment.id,
                payment_number=payment.payment_number,
                description=(
                    f"Cheque {payment.cheque_number} cleared"
                    if payment.cheque_number
                    else "Cheque cleared"
                ),
            )
            payment.account_id = target
            payment.status = PaymentRecordStatus.COMPLETED
            payment.updated_by_id = actor_id
            self.session.flush()
            info = payment.to_dto()
        logger.info("cheque_cleared", extra={"payment_number": info.payment_number})
        return info

    # ------------------------------------------------------------------
    # Building blocks (no commit)
    # ------------------------------------------------------------------

    def post_payment(
        self,
        tenant_id: UUID,
        actor_id: UUID,
        payment_type: PaymentType,
        amount: Decimal,
        method: PaymentMethod,
        *,
        party_id: UUID | None = None,
        account_id=None,
        payment_date: date | None = None,
        cheque_number: str | None = None,
        remarks: str | None = None,
        origin_invoice_id: UUID | None = None,
        origin_return_id: UUID | None = None,
    ) -> Payment:
        """
        Create a payment and apply its account and party effects.

        Preconditions:
            - Runs inside the caller's transaction.
        """
        payment_type = PaymentType(payment_type)
        method = PaymentMethod(method)
        amount = round_money(amount, self.settings.money_decimal_places)
        if amount <= ZERO:
            raise ValidationError("payment amount must be positive", field="amount")
        account_uuid = coerce_optional_uuid(account_id, "account_id")
        is_cheque = method is PaymentMethod.CHEQUE
        if account_uuid is None and not is_cheque:
            raise ValidationError(f"a {method.value} payment needs an account", field="account_id")
        if account_uuid is not None:
            account_uuid = self._accounts.get(tenant_id, account_uuid).id

        party = self._parties.get(tenant_id, party_id) if party_id is not None else None
        payment_date = payment_date or self._clock.today()
        number = self._sequences.allocate_document_number(tenant_id, DocumentKind.PAYMENT, payment_date)

        payment = self._payments.add(
            tenant_id,
            Payment(
                payment_number=number.formatted,
                fiscal_year=number.fiscal_year,
                payment_date=payment_date,
                payment_type=payment_type,
                method=method,
                status=PaymentRecordStatus.PENDING if is_cheque else PaymentRecordStatus.COMPLETED,
                amount=amount,
                party_id=party.id if party is not None else None,
                account_id=account_uuid,
                origin_invoice_id=origin_invoice_id,
                origin_return_id=origin_return_id,
                cheque_number=cheque_number,
                remarks=remarks,
                created_by_id=actor_id,
            ),
        )

        if not is_cheque:
            self._ledger.post_account(
                tenant_id,
                actor_id,
                account_uuid,
                _account_delta(payment),
                payment_id=payment.id,
                payment_number=payment.payment_number,
                description=f"{payment_type.value} {payment.payment_number}",
            )
        if party is not None:
            self._post_party_side(tenant_id, actor_id, payment, reverse=False)

        logger.info(
            "payment_posted",
            extra={
                "payment_number": payment.payment_number,
                "payment_type": payment_type.value,
                "method": method.value,
                "amount": amount,
                "pending": is_cheque,
            },
        )
        return payment

    def allocate(
        self,
        tenant_id: UUID,
        actor_id: UUID,
        payment: Payment,
        invoice: Invoice,
        amount: Decimal,
    ) -> PaymentAllocation:
        """Settle ``amount`` of ``invoice`` from ``payment``."""
        if amount > invoice.amount_due:
            raise ValidationError(
                f"allocation {amount} exceeds the amount due {invoice.amount_due} "
                f"on {invoice.invoice_number}",
                field="amount",
            )
        if payment.allocated_amount + amount > payment.amount:
            raise ValidationError("allocations exceed the payment amount", field="amount")
        allocation = PaymentAllocation(
            tenant_id=tenant_id,
            invoice_id=invoice.id,
            amount=amount,
            created_by_id=actor_id,
        )
        payment.allocations.append(allocation)
        invoice.amount_paid = invoice.amount_paid + amount
        invoice.refresh_payment_status()
        invoice.updated_by_id = actor_id
        self.session.flush()
        return allocation

    def reverse_payment(self, tenant_id: UUID, actor_id: UUID, payment: Payment) -> None:
        """
        Undo a payment completely and delete it.

        Allocated bills get their amount_paid back; a completed payment's
        account movement is reversed; the party ledger gets a
        PAYMENT_REVERSAL entry.
        """
        for allocation in list(payment.allocations):
            invoice = self._invoices.get_for_update(tenant_id, allocation.invoice_id)
            invoice.amount_paid = invoice.amount_paid - allocation.amount
            invoice.refresh_payment_status()
            invoice.updated_by_id = actor_id

        if payment.status == PaymentRecordStatus.COMPLETED and payment.account_id is not None:
            self._ledger.post_account(
                tenant_id,
                actor_id,
                payment.account_id,
                -_account_delta(payment),
                payment_id=payment.id,
                payment_number=payment.payment_number,
                description=f"Reversal of {payment.payment_number}",
            )
        if payment.party_id is not None:
            self._post_party_side(tenant_id, actor_id, payment, reverse=True)

        logger.info(
            "payment_reversed",
            extra={"payment_number": payment.payment_number, "amount": payment.amount},
        )
        self._payments.delete(tenant_id, payment)

    def detach_allocations(self, tenant_id: UUID, actor_id: UUID, invoice: Invoice) -> Decimal:
        """
        Remove standalone payments' allocations to ``invoice``.

        The payments keep their money; it becomes an unallocated advance.
        Returns the total detached.
        """
        detached = ZERO
        for allocation in self.standalone_allocations(tenant_id, invoice):
            detached += allocation.amount
            allocation.payment.allocations.remove(allocation)
        if detached:
            invoice.amount_paid = invoice.amount_paid - detached
            invoice.refresh_payment_status()
            invoice.updated_by_id = actor_id
            self.session.flush()
            logger.info(
                "allocations_detached",
                extra={"invoice_id": str(invoice.id), "amount": detached},
            )
        return detached

    def standalone_allocations(self, tenant_id: UUID, invoice: Invoice) -> list[PaymentAllocation]:
        return [
            a
            for a in self._allocations.find_all(tenant_id, PaymentAllocation.invoice_id == invoice.id)
            if a.payment.origin_invoice_id != invoice.id
        ]

    def origin_payments(self, tenant_id: UUID, *, invoice_id=None, return_id=None) -> list[Payment]:
        if invoice_id is not None:
            return self._payments.find_all(tenant_id, Payment.origin_invoice_id == invoice_id)
        return self._payments.find_all(tenant_id, Payment.origin_return_id == return_id)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _check_settles(self, payment: Payment, invoice: Invoice) -> None:
        if invoice.status != InvoiceStatus.ACTIVE:
            raise InvalidInvoiceStateError(invoice.id, invoice.status, "settle")
        if invoice.invoice_type != _SETTLES[PaymentType(payment.payment_type)]:
            raise ValidationError(
                f"a {PaymentType(payment.payment_type).value} payment cannot settle "
                f"a {invoice.invoice_type} invoice",
                field="bill_ids",
            )
        if invoice.party_id != payment.party_id:
            raise ValidationError(
                f"bill {invoice.invoice_number} belongs to another party", field="bill_ids"
            )

    def _post_party_side(self, tenant_id: UUID, actor_id: UUID, payment: Payment, reverse: bool) -> None:
        # Payment In lowers what the party owes (credit); Payment Out raises it
        incoming = PaymentType(payment.payment_type) is PaymentType.IN
        if reverse:
            incoming = not incoming
            entry_type = LedgerEntryType.PAYMENT_REVERSAL
            description = f"Reversal of {payment.payment_number}"
        else:
            entry_type = LedgerEntryType.PAYMENT_IN if incoming else LedgerEntryType.PAYMENT_OUT
            description = f"{PaymentType(payment.payment_type).value} {payment.payment_number}"
        self._ledger.post_party(
            tenant_id,
            actor_id,
            payment.party_id,
            entry_type,
            debit=ZERO if incoming else payment.amount,
            credit=payment.amount if incoming else ZERO,
            description=description,
            document_id=payment.id,
            document_number=payment.payment_number,
        )


def _account_delta(payment: Payment) -> Decimal:
    if PaymentType(payment.payment_type) is PaymentType.IN:
        return payment.amount
    return -payment.amount
