"""
ReturnService -- purchase returns (debit notes) and sales returns (credit notes).

Responsibility:
    Creates a return against an ACTIVE invoice and deletes it again, each
    as one unit of work over stock, timeline, party ledger and refund.

Architecture position:
    Kernel > Services -- operation service; owns its transaction boundary.

Effects of a return:
    SALE_RETURN:     stock back into the original batch; party ledger
                     credit (the customer owes less); refund = Payment Out.
    PURCHASE_RETURN: stock out of the original batch, bounded by what the
                     batch still holds (InsufficientStockError); party
                     ledger debit; refund = Payment In.

Invariants enforced:
    - Cumulative returned quantity per invoice line <= the line's billed
      quantity (free units are not returnable).
    - Lines are priced at the original line's rate, discount and GST%.
"""

from collections import defaultdict
from uuid import UUID

from sqlalchemy import func, select

from pharmacy_kernel.db.repository import TenantRepository
from pharmacy_kernel.domain.billing import compute_line, summarize
from pharmacy_kernel.domain.dtos import CreateReturnCommand, ReturnInfo
from pharmacy_kernel.domain.enums import (
    DocumentKind,
    InvoiceStatus,
    InvoiceType,
    LedgerEntryType,
    MovementType,
    PaymentType,
    ReturnType,
)
from pharmacy_kernel.domain.identifiers import coerce_uuid
from pharmacy_kernel.domain.money import ZERO
from pharmacy_kernel.exceptions import (
    InvalidInvoiceStateError,
    InvoiceNotFoundError,
    ReturnNotFoundError,
    ReturnQuantityExceededError,
    ValidationError,
)
from pharmacy_kernel.logging_config import LogContext, get_logger
from pharmacy_kernel.models.invoice import Invoice
from pharmacy_kernel.models.returns import ReturnDocument, ReturnLine
from pharmacy_kernel.services.balance_ledger import BalanceLedger
from pharmacy_kernel.services.base import TransactionalService, require_ids
from pharmacy_kernel.services.inventory_store import InventoryStore
from pharmacy_kernel.services.payment_service import PaymentService
from pharmacy_kernel.services.sequence_service import SequenceAllocator
from pharmacy_kernel.services.stock_movement import StockMovement
from pharmacy_kernel.services.timeline_recorder import TimelineRecorder

logger = get_logger("services.return_service")

_RETURN_TYPE = {
    InvoiceType.PURCHASE: ReturnType.PURCHASE_RETURN,
    InvoiceType.SALE: ReturnType.SALE_RETURN,
}


class ReturnService(TransactionalService):
    def __init__(self, session, clock=None, settings=None, auto_commit: bool = True):
        super().__init__(session, clock, settings, auto_commit)
        self._invoices = TenantRepository(session, Invoice, InvoiceNotFoundError)
        self._returns = TenantRepository(session, ReturnDocument, ReturnNotFoundError)
        self._sequences = SequenceAllocator(session, self.settings)
        recorder = TimelineRecorder(session, self._sequences)
        self._stock = StockMovement(InventoryStore(session), recorder)
        self._ledger = BalanceLedger(session, recorder, self.settings)
        self._payments = PaymentService(session, self._clock, self.settings, auto_commit=False)

    def create_return(self, tenant_id, actor_id, command: CreateReturnCommand) -> ReturnInfo:
        """
        Return part of an ACTIVE invoice.

        Raises:
            InvoiceNotFoundError, InvalidInvoiceStateError (invoice not active)
            ReturnQuantityExceededError: more than the line's unreturned quantity.
            InsufficientStockError: a purchase return exceeds the batch stock.
            ValidationError: a line of another invoice, refund above the total.
        """
        tenant_id, actor_id = require_ids(tenant_id, actor_id)
        with self._unit_of_work("create_return", tenant_id, actor_id):
            invoice = self._invoices.get_for_update(tenant_id, command.original_invoice_id)
            with LogContext.bind(invoice_id=invoice.id):
                if invoice.status != InvoiceStatus.ACTIVE:
                    raise InvalidInvoiceStateError(invoice.id, invoice.status, "return against")
                return_type = _RETURN_TYPE[InvoiceType(invoice.invoice_type)]
                lines_by_id = {line.id: line for line in invoice.lines}
                requested = self._requested_quantities(command, lines_by_id)
                self._check_returnable(tenant_id, requested, lines_by_id)

                return_date = command.return_date or self._clock.today()
                number = self._sequences.allocate_document_number(
                    tenant_id, DocumentKind(return_type.value), return_date
                )
                document = ReturnDocument(
                    return_type=return_type,
                    return_number=number.formatted,
                    fiscal_year=number.fiscal_year,
                    return_date=return_date,
                    original_invoice_id=invoice.id,
                    original_invoice_number=invoice.invoice_number,
                    party_id=invoice.party_id,
                    party_name=invoice.party_name,
                    refund_amount=ZERO,
                    remarks=command.remarks,
                    created_by_id=actor_id,
                )
                self._returns.add(tenant_id, document)

                priced = []
                movement = MovementType(return_type.value)
                for line_no, item in enumerate(command.lines, start=1):
                    original = lines_by_id[coerce_uuid(item.invoice_line_id, "invoice_line_id")]
                    amounts = compute_line(
                        item.quantity,
                        original.rate,
                        original.discount_percent,
                        original.gst_percent,
                        self.settings.money_decimal_places,
                    )
                    document.lines.append(
                        ReturnLine(
                            tenant_id=tenant_id,
                            created_by_id=actor_id,
                            line_no=line_no,
                            invoice_line_id=original.id,
                            product_id=original.product_id,
                            batch_id=original.batch_id,
                            quantity=item.quantity,
                            rate=original.rate,
                            discount_percent=original.discount_percent,
                            gst_percent=original.gst_percent,
                            taxable_amount=amounts.taxable,
                            gst_amount=amounts.gst,
                            amount=amounts.amount,
                        )
                    )
                    priced.append((amounts, original.product_id))
                    delta = item.quantity if return_type is ReturnType.SALE_RETURN else -item.quantity
                    self._stock.move(
                        tenant_id,
                        actor_id,
                        original.product_id,
                        original.batch_id,
                        delta,
                        movement,
                        document_id=document.id,
                        document_number=document.return_number,
                        party_name=document.party_name,
                        remarks=f"Return against {invoice.invoice_number}",
                    )

                summary = summarize(
                    priced,
                    inter_state=invoice.inter_state,
                    places=self.settings.money_decimal_places,
                )
                document.subtotal = summary.subtotal
                document.discount_amount = summary.discount_amount
                document.taxable_amount = summary.taxable_amount
                document.gst_amount = summary.gst_amount
                document.grand_total = summary.grand_total

                if document.party_id is not None:
                    self._post_party(tenant_id, actor_id, document, reverse=False)
                if command.refund is not None and command.refund.amount > ZERO:
                    self._record_refund(tenant_id, actor_id, document, command)
                self.session.flush()
                info = document.to_dto()

        logger.info(
            "return_created",
            extra={
                "return_id": str(info.id),
                "return_number": info.return_number,
                "return_type": info.return_type.value,
                "grand_total": info.grand_total,
                "refund_amount": info.refund_amount,
            },
        )
        return info

    def delete_return(self, tenant_id, actor_id, return_id) -> None:
        """
        Delete a return and reverse its stock, ledger and refund effects.

        Raises:
            InsufficientStockError: the stock a sales return brought back has
                since been sold.
        """
        tenant_id, actor_id = require_ids(tenant_id, actor_id)
        with self._unit_of_work("delete_return", tenant_id, actor_id):
            document = self._returns.get_for_update(tenant_id, return_id)
            return_type = ReturnType(document.return_type)
            number = document.return_number

            for payment in self._payments.origin_payments(tenant_id, return_id=document.id):
                self._payments.reverse_payment(tenant_id, actor_id, payment)

            movement = (
                MovementType.SALE_RETURN_DELETE
                if return_type is ReturnType.SALE_RETURN
                else MovementType.PURCHASE_RETURN_DELETE
            )
            for line in document.lines:
                delta = -line.quantity if return_type is ReturnType.SALE_RETURN else line.quantity
                self._stock.move(
                    tenant_id,
                    actor_id,
                    line.product_id,
                    line.batch_id,
                    delta,
                    movement,
                    document_id=document.id,
                    document_number=number,
                    party_name=document.party_name,
                    remarks=f"Deletion of {number}",
                )
            if document.party_id is not None:
                self._post_party(tenant_id, actor_id, document, reverse=True)
            self._returns.delete(tenant_id, document)
        logger.info("return_deleted", extra={"return_number": number})

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _requested_quantities(self, command: CreateReturnCommand, lines_by_id) -> dict[UUID, int]:
        requested: dict[UUID, int] = defaultdict(int)
        for item in command.lines:
            line_id = coerce_uuid(item.invoice_line_id, "invoice_line_id")
            if line_id not in lines_by_id:
                raise ValidationError(
                    f"line {line_id} is not part of the original invoice", field="invoice_line_id"
                )
            requested[line_id] += item.quantity
        return requested

    def _check_returnable(self, tenant_id: UUID, requested: dict[UUID, int], lines_by_id) -> None:
        returned = dict(
            self.session.execute(
                select(ReturnLine.invoice_line_id, func.sum(ReturnLine.quantity))
                .where(
                    ReturnLine.tenant_id == tenant_id,
                    ReturnLine.invoice_line_id.in_(list(requested)),
                )
                .group_by(ReturnLine.invoice_line_id)
            ).all()
        )
        for line_id, quantity in requested.items():
            returnable = lines_by_id[line_id].quantity - int(returned.get(line_id) or 0)
            if quantity > returnable:
                logger.warning(
                    "return_quantity_exceeded",
                    extra={"invoice_line_id": str(line_id), "requested": quantity, "returnable": returnable},
                )
                raise ReturnQuantityExceededError(line_id, quantity, returnable)

    def _post_party(self, tenant_id: UUID, actor_id: UUID, document: ReturnDocument, reverse: bool) -> None:
        # A sales return lowers what the customer owes; a purchase return
        # lowers what the pharmacy owes the distributor.
        lowers_balance = ReturnType(document.return_type) is ReturnType.SALE_RETURN
        if reverse:
            lowers_balance = not lowers_balance
            entry_type = LedgerEntryType.RETURN_REVERSAL
            description = f"Deletion of {document.return_number}"
        else:
            entry_type = LedgerEntryType(ReturnType(document.return_type).value)
            description = f"Return {document.return_number} against {document.original_invoice_number}"
        self._ledger.post_party(
            tenant_id,
            actor_id,
            document.party_id,
            entry_type,
            debit=ZERO if lowers_balance else document.grand_total,
            credit=document.grand_total if lowers_balance else ZERO,
            description=description,
            document_id=document.id,
            document_number=document.return_number,
        )

    def _record_refund(
        self,
        tenant_id: UUID,
        actor_id: UUID,
        document: ReturnDocument,
        command: CreateReturnCommand,
    ) -> None:
        refund = command.refund
        if refund.amount > document.grand_total:
            raise ValidationError(
                f"refund {refund.amount} exceeds the return total {document.grand_total}",
                field="refund",
            )
        is_sale_return = ReturnType(document.return_type) is ReturnType.SALE_RETURN
        self._payments.post_payment(
            tenant_id,
            actor_id,
            PaymentType.OUT if is_sale_return else PaymentType.IN,
            refund.amount,
            refund.method,
            party_id=document.party_id,
            account_id=refund.account_id,
            payment_date=document.return_date,
            cheque_number=refund.cheque_number,
            remarks=refund.remarks or f"Refund for {document.return_number}",
            origin_return_id=document.id,
        )
        document.refund_amount = refund.amount
