"""
InvoiceEngine -- purchase and sales invoice lifecycle.

Responsibility:
    Creates, finalizes, edits, cancels and deletes invoices.  Each operation
    is one unit of work that moves stock (InventoryStore + timeline),
    posts the party ledger, records the invoice's own payment and persists
    the document -- or, on any failure, leaves nothing behind.

Architecture position:
    Kernel > Services -- operation service; owns its transaction boundary.

State machine:
    DRAFT  --finalize-->  ACTIVE  --cancel-->  CANCELLED
    ACTIVE is also reachable directly on creation.  Drafts carry lines but
    have no stock, ledger or payment effect.

Effects of an ACTIVE invoice:
    PURCHASE: every line adds quantity + free to its batch (created on first
              purchase of a batch number); party ledger credit grand_total.
    SALE:     every line takes quantity from its batch
              (InsufficientStockError when short); party ledger debit
              grand_total.  No party = counter sale, no ledger effect.
    Payment:  Payment In for a sale, Payment Out for a purchase, allocated
              to the invoice (``origin_invoice_id`` marks it as owned).

Edit / delete / cancel:
    The old effect is reversed in full (timeline ``*_EDIT`` or
    ``*_DELETE``, INVOICE_REVERSAL ledger entry, owned payments reversed)
    and, for an edit, the new effect applied in full.  Reversal plus
    reapplication nets to exactly the difference between old and new.
    Any return against the invoice blocks all three (ConflictingReturnError).
"""

from datetime import timedelta
from typing import Iterable
from uuid import UUID

from pharmacy_kernel.db.repository import TenantRepository
from pharmacy_kernel.domain.billing import LineAmounts, compute_line, summarize
from pharmacy_kernel.domain.dtos import (
    CreateInvoiceCommand,
    EditInvoiceCommand,
    InvoiceInfo,
    LineItemInput,
    NewBatchFields,
    PaymentInput,
)
from pharmacy_kernel.domain.enums import (
    DocumentKind,
    InvoiceStatus,
    InvoiceType,
    LedgerEntryType,
    MovementType,
    PartyType,
    PaymentStatus,
    PaymentType,
)
from pharmacy_kernel.domain.identifiers import coerce_optional_uuid, coerce_uuid
from pharmacy_kernel.domain.money import ZERO
from pharmacy_kernel.exceptions import (
    ConflictingReturnError,
    DuplicateDocumentNumberError,
    InvalidInvoiceStateError,
    InvoiceNotFoundError,
    PartyNotFoundError,
    ReturnNotFoundError,
    SequenceConflictError,
    ValidationError,
)
from pharmacy_kernel.logging_config import LogContext, get_logger
from pharmacy_kernel.models.invoice import Invoice, InvoiceLine
from pharmacy_kernel.models.party import Party
from pharmacy_kernel.models.product import Batch, Product
from pharmacy_kernel.models.returns import ReturnDocument
from pharmacy_kernel.services.balance_ledger import BalanceLedger
from pharmacy_kernel.services.base import TransactionalService, require_ids
from pharmacy_kernel.services.inventory_store import InventoryStore
from pharmacy_kernel.services.payment_service import PaymentService
from pharmacy_kernel.services.sequence_service import SequenceAllocator
from pharmacy_kernel.services.stock_movement import StockMovement
from pharmacy_kernel.services.timeline_recorder import TimelineRecorder

logger = get_logger("services.invoice_engine")

_MOVEMENTS = {
    InvoiceType.PURCHASE: {
        "base": MovementType.PURCHASE,
        "edit": MovementType.PURCHASE_EDIT,
        "delete": MovementType.PURCHASE_DELETE,
    },
    InvoiceType.SALE: {
        "base": MovementType.SALE,
        "edit": MovementType.SALE_EDIT,
        "delete": MovementType.SALE_DELETE,
    },
}

# Allocations tried before giving up when explicit numbers occupy the counter range
_MAX_NUMBER_SKIPS = 50

_PARTY_TYPE = {InvoiceType.PURCHASE: PartyType.DISTRIBUTOR, InvoiceType.SALE: PartyType.CUSTOMER}


class InvoiceEngine(TransactionalService):
    """
    Contract:
        Every public method takes ``tenant_id`` and ``actor_id`` first and
        returns an InvoiceInfo snapshot (None for delete).

    Guarantees:
        - All-or-nothing: stock, timeline, party ledger, accounts, payments
          and the invoice itself commit together or not at all.
        - Header totals are always recomputed from the lines.

    Non-goals:
        - Does NOT enforce credit limits.
        - Does NOT reprice lines of a draft when it is finalized.
    """

    def __init__(self, session, clock=None, settings=None, auto_commit: bool = True):
        super().__init__(session, clock, settings, auto_commit)
        self._invoices = TenantRepository(session, Invoice, InvoiceNotFoundError)
        self._parties = TenantRepository(session, Party, PartyNotFoundError)
        self._returns = TenantRepository(session, ReturnDocument, ReturnNotFoundError)
        self._sequences = SequenceAllocator(session, self.settings)
        recorder = TimelineRecorder(session, self._sequences)
        self._store = InventoryStore(session)
        self._stock = StockMovement(self._store, recorder)
        self._ledger = BalanceLedger(session, recorder, self.settings)
        self._payments = PaymentService(session, self._clock, self.settings, auto_commit=False)

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    def create_invoice(self, tenant_id, actor_id, command: CreateInvoiceCommand) -> InvoiceInfo:
        """
        Create a purchase or sale invoice, active or draft.

        Raises:
            PartyNotFoundError / ProductNotFoundError / BatchNotFoundError
            InsufficientStockError: a sale line exceeds its batch stock.
            DuplicateDocumentNumberError: an explicit number is taken.
            ValidationError: wrong party type, bad payment, bad line.
        """
        tenant_id, actor_id = require_ids(tenant_id, actor_id)
        party_id = coerce_optional_uuid(command.party_id, "party_id")
        invoice_type = command.invoice_type
        invoice_date = command.invoice_date or self._clock.today()

        with self._unit_of_work("create_invoice", tenant_id, actor_id):
            party = self._resolve_party(tenant_id, invoice_type, party_id)
            invoice = Invoice(
                invoice_type=invoice_type,
                status=command.status,
                fiscal_year=self._sequences.fiscal_year_of(invoice_date),
                invoice_date=invoice_date,
                supplier_invoice_number=command.supplier_invoice_number,
                inter_state=command.inter_state,
                remarks=command.remarks,
                amount_paid=ZERO,
                payment_status=PaymentStatus.DUE,
                created_by_id=actor_id,
            )
            self._assign_party(invoice, party)
            if command.invoice_number:
                self._check_number_free(tenant_id, invoice, command.invoice_number)
                invoice.invoice_number = command.invoice_number
            elif command.status is InvoiceStatus.ACTIVE:
                self._allocate_number(tenant_id, invoice)
            self._invoices.add(tenant_id, invoice)

            self._replace_lines(tenant_id, actor_id, invoice, command.lines)
            if invoice.is_active:
                self._apply_effects(
                    tenant_id, actor_id, invoice, command.payment, _MOVEMENTS[invoice_type]["base"]
                )
            info = invoice.to_dto()

        logger.info(
            "invoice_created",
            extra={
                "invoice_id": str(info.id),
                "invoice_type": info.invoice_type.value,
                "invoice_number": info.invoice_number,
                "status": info.status.value,
                "grand_total": info.grand_total,
                "amount_paid": info.amount_paid,
            },
        )
        return info

    def finalize_invoice(
        self, tenant_id, actor_id, invoice_id, payment: PaymentInput | None = None
    ) -> InvoiceInfo:
        """Move a draft to ACTIVE, allocating its number and applying every effect."""
        tenant_id, actor_id = require_ids(tenant_id, actor_id)
        with self._unit_of_work("finalize_invoice", tenant_id, actor_id):
            invoice = self._invoices.get_for_update(tenant_id, invoice_id)
            if invoice.status != InvoiceStatus.DRAFT:
                raise InvalidInvoiceStateError(invoice.id, invoice.status, "finalize")
            if invoice.invoice_number is None:
                self._allocate_number(tenant_id, invoice)
            invoice.status = InvoiceStatus.ACTIVE
            invoice.updated_by_id = actor_id
            self._apply_effects(
                tenant_id,
                actor_id,
                invoice,
                payment,
                _MOVEMENTS[InvoiceType(invoice.invoice_type)]["base"],
            )
            info = invoice.to_dto()
        logger.info(
            "invoice_finalized",
            extra={"invoice_id": str(info.id), "invoice_number": info.invoice_number},
        )
        return info

    def edit_invoice(self, tenant_id, actor_id, command: EditInvoiceCommand) -> InvoiceInfo:
        """
        Replace an invoice's lines and payment.

        An ACTIVE invoice has its old effect reversed and the new one applied
        in the same transaction, both recorded as ``*_EDIT`` movements.
        Payments allocated to the invoice from standalone payments stay
        allocated.
        """
        tenant_id, actor_id = require_ids(tenant_id, actor_id)
        with self._unit_of_work("edit_invoice", tenant_id, actor_id):
            invoice = self._invoices.get_for_update(tenant_id, command.invoice_id)
            with LogContext.bind(invoice_id=invoice.id):
                if invoice.status == InvoiceStatus.CANCELLED:
                    raise InvalidInvoiceStateError(invoice.id, invoice.status, "edit")
                self._require_no_returns(tenant_id, invoice)
                invoice_type = InvoiceType(invoice.invoice_type)
                was_active = invoice.is_active
                if not was_active and command.payment is not None:
                    raise ValidationError("a draft invoice cannot carry a payment", field="payment")
                if invoice_type is InvoiceType.SALE and any(line.free for line in command.lines):
                    raise ValidationError("free quantity is only allowed on purchases", field="free")

                edit_movement = _MOVEMENTS[invoice_type]["edit"]
                if was_active:
                    self._reverse_effects(tenant_id, actor_id, invoice, edit_movement)

                self._apply_header_changes(tenant_id, invoice, command)
                self._replace_lines(tenant_id, actor_id, invoice, command.lines)
                if invoice.amount_paid > invoice.grand_total:
                    raise ValidationError(
                        f"payments of {invoice.amount_paid} already allocated exceed the "
                        f"new total {invoice.grand_total}",
                        field="lines",
                    )
                if was_active:
                    self._apply_effects(tenant_id, actor_id, invoice, command.payment, edit_movement)
                invoice.updated_by_id = actor_id
                info = invoice.to_dto()

        logger.info(
            "invoice_edited",
            extra={
                "invoice_id": str(info.id),
                "invoice_number": info.invoice_number,
                "grand_total": info.grand_total,
            },
        )
        return info

    def cancel_invoice(self, tenant_id, actor_id, invoice_id) -> InvoiceInfo:
        """Reverse an ACTIVE invoice's effects and keep it as CANCELLED."""
        tenant_id, actor_id = require_ids(tenant_id, actor_id)
        with self._unit_of_work("cancel_invoice", tenant_id, actor_id):
            invoice = self._invoices.get_for_update(tenant_id, invoice_id)
            if not invoice.is_active:
                raise InvalidInvoiceStateError(invoice.id, invoice.status, "cancel")
            self._require_no_returns(tenant_id, invoice)
            self._reverse_effects(
                tenant_id,
                actor_id,
                invoice,
                _MOVEMENTS[InvoiceType(invoice.invoice_type)]["delete"],
            )
            self._payments.detach_allocations(tenant_id, actor_id, invoice)
            invoice.status = InvoiceStatus.CANCELLED
            invoice.payment_method = None
            invoice.updated_by_id = actor_id
            self.session.flush()
            info = invoice.to_dto()
        logger.info(
            "invoice_cancelled",
            extra={"invoice_id": str(info.id), "invoice_number": info.invoice_number},
        )
        return info

    def delete_invoice(self, tenant_id, actor_id, invoice_id) -> None:
        """
        Delete an invoice.

        ACTIVE invoices are reversed first (``*_DELETE`` movements); drafts
        and cancelled invoices have nothing left to reverse.
        """
        tenant_id, actor_id = require_ids(tenant_id, actor_id)
        with self._unit_of_work("delete_invoice", tenant_id, actor_id):
            invoice = self._invoices.get_for_update(tenant_id, invoice_id)
            self._require_no_returns(tenant_id, invoice)
            invoice_uuid, number, status = invoice.id, invoice.invoice_number, invoice.status
            if invoice.is_active:
                self._reverse_effects(
                    tenant_id,
                    actor_id,
                    invoice,
                    _MOVEMENTS[InvoiceType(invoice.invoice_type)]["delete"],
                )
            self._payments.detach_allocations(tenant_id, actor_id, invoice)
            self._invoices.delete(tenant_id, invoice)
        logger.info(
            "invoice_deleted",
            extra={"invoice_id": str(invoice_uuid), "invoice_number": number, "status": status},
        )

    # ------------------------------------------------------------------
    # Header
    # ------------------------------------------------------------------

    def _resolve_party(self, tenant_id: UUID, invoice_type: InvoiceType, party_id: UUID | None):
        if party_id is None:
            if invoice_type is InvoiceType.PURCHASE:
                raise ValidationError("a purchase invoice needs a distributor", field="party_id")
            return None
        party = self._parties.get(tenant_id, party_id)
        expected = _PARTY_TYPE[invoice_type]
        if party.party_type != expected:
            raise ValidationError(
                f"a {invoice_type.value} invoice needs a {expected.value} party, "
                f"{party.name} is a {party.party_type}",
                field="party_id",
            )
        return party

    def _assign_party(self, invoice: Invoice, party: Party | None) -> None:
        invoice.party_id = party.id if party is not None else None
        invoice.party_name = party.name if party is not None else None
        invoice.due_date = (
            invoice.invoice_date + timedelta(days=party.credit_period_days)
            if party is not None
            else None
        )

    def _apply_header_changes(self, tenant_id: UUID, invoice: Invoice, command: EditInvoiceCommand) -> None:
        if command.invoice_date is not None and command.invoice_date != invoice.invoice_date:
            fiscal_year = self._sequences.fiscal_year_of(command.invoice_date)
            if invoice.invoice_number is not None and fiscal_year != invoice.fiscal_year:
                raise ValidationError(
                    f"invoice {invoice.invoice_number} belongs to FY {invoice.fiscal_year}; "
                    "its date cannot move to another fiscal year",
                    field="invoice_date",
                )
            invoice.invoice_date = command.invoice_date
            invoice.fiscal_year = fiscal_year

        party_id = coerce_optional_uuid(command.party_id, "party_id")
        if party_id is not None and party_id != invoice.party_id:
            if self._payments.standalone_allocations(tenant_id, invoice):
                raise ValidationError(
                    "the party of an invoice with allocated payments cannot change",
                    field="party_id",
                )
            party = self._resolve_party(tenant_id, InvoiceType(invoice.invoice_type), party_id)
            self._assign_party(invoice, party)
        elif invoice.party_id is not None:
            party = self._parties.get(tenant_id, invoice.party_id)
            self._assign_party(invoice, party)

        if command.supplier_invoice_number is not None:
            invoice.supplier_invoice_number = command.supplier_invoice_number
        if command.remarks is not None:
            invoice.remarks = command.remarks

    def _allocate_number(self, tenant_id: UUID, invoice: Invoice) -> None:
        """
        Allocate the next free number.

        A caller-supplied number may already hold a value the counter has not
        reached yet; such values are skipped within the same transaction.
        """
        invoice_type = InvoiceType(invoice.invoice_type)
        kind = DocumentKind(invoice_type.value)
        for _ in range(_MAX_NUMBER_SKIPS):
            allocated = self._sequences.allocate_document_number(
                tenant_id, kind, invoice.invoice_date
            )
            invoice.fiscal_year = allocated.fiscal_year
            if not self._number_taken(tenant_id, invoice, allocated.formatted):
                invoice.invoice_number = allocated.formatted
                return
            logger.warning(
                "document_number_skipped",
                extra={"document_kind": kind.value, "number": allocated.formatted},
            )
        raise SequenceConflictError(tenant_id, kind.value, invoice.fiscal_year)

    def _number_taken(self, tenant_id: UUID, invoice: Invoice, number: str) -> bool:
        criteria = [
            Invoice.invoice_type == InvoiceType(invoice.invoice_type).value,
            Invoice.fiscal_year == invoice.fiscal_year,
            Invoice.invoice_number == number,
        ]
        if invoice.id is not None:
            criteria.append(Invoice.id != invoice.id)
        return self._invoices.count(tenant_id, *criteria) > 0

    def _check_number_free(self, tenant_id: UUID, invoice: Invoice, number: str) -> None:
        if self._number_taken(tenant_id, invoice, number):
            raise DuplicateDocumentNumberError(
                InvoiceType(invoice.invoice_type).value, number, invoice.fiscal_year
            )

    def _require_no_returns(self, tenant_id: UUID, invoice: Invoice) -> None:
        count = self._returns.count(tenant_id, ReturnDocument.original_invoice_id == invoice.id)
        if count:
            logger.warning(
                "invoice_has_returns",
                extra={"invoice_id": str(invoice.id), "return_count": count},
            )
            raise ConflictingReturnError(invoice.id, count)

    # ------------------------------------------------------------------
    # Lines
    # ------------------------------------------------------------------

    def _replace_lines(
        self,
        tenant_id: UUID,
        actor_id: UUID,
        invoice: Invoice,
        items: Iterable[LineItemInput],
    ) -> None:
        """Price ``items`` into fresh lines and recompute the header totals."""
        if invoice.lines:
            invoice.lines.clear()
            self.session.flush()

        invoice_type = InvoiceType(invoice.invoice_type)
        priced: list[tuple[LineAmounts, UUID]] = []
        for line_no, item in enumerate(items, start=1):
            line, amounts = self._price_line(tenant_id, actor_id, invoice_type, line_no, item)
            invoice.lines.append(line)
            priced.append((amounts, line.product_id))

        summary = summarize(
            priced, inter_state=invoice.inter_state, places=self.settings.money_decimal_places
        )
        invoice.subtotal = summary.subtotal
        invoice.discount_amount = summary.discount_amount
        invoice.taxable_amount = summary.taxable_amount
        invoice.gst_amount = summary.gst_amount
        invoice.grand_total = summary.grand_total
        invoice.total_quantity = summary.total_quantity
        invoice.product_count = summary.product_count
        invoice.gst_summary = [
            {
                "gst_percent": str(slab.gst_percent),
                "taxable": str(slab.taxable),
                "cgst": str(slab.cgst),
                "sgst": str(slab.sgst),
                "igst": str(slab.igst),
            }
            for slab in summary.gst_summary
        ]
        invoice.refresh_payment_status()
        self.session.flush()

    def _price_line(
        self,
        tenant_id: UUID,
        actor_id: UUID,
        invoice_type: InvoiceType,
        line_no: int,
        item: LineItemInput,
    ) -> tuple[InvoiceLine, LineAmounts]:
        product = self._store.get_product(tenant_id, coerce_uuid(item.product_id, "product_id"))
        batch = self._locate_batch(tenant_id, invoice_type, product, item)

        def pick(value, batch_attr, fallback):
            if value is not None:
                return value
            if batch is not None:
                return getattr(batch, batch_attr)
            return fallback

        mrp = pick(item.mrp, "mrp", ZERO)
        purchase_rate = pick(item.purchase_rate, "purchase_rate", ZERO)
        sale_rate = pick(item.sale_rate, "sale_rate", mrp)
        gst_percent = pick(item.gst_percent, "gst_percent", product.gst_percent)
        rate = purchase_rate if invoice_type is InvoiceType.PURCHASE else sale_rate

        amounts = compute_line(
            item.quantity,
            rate,
            item.discount_percent,
            gst_percent,
            self.settings.money_decimal_places,
        )
        line = InvoiceLine(
            tenant_id=tenant_id,
            created_by_id=actor_id,
            line_no=line_no,
            product_id=product.id,
            batch_id=batch.id if batch is not None else None,
            product_name=product.name,
            batch_number=batch.batch_number if batch is not None else item.batch_number,
            expiry=item.expiry if item.expiry is not None else (batch.expiry if batch else None),
            hsn=product.hsn,
            quantity=item.quantity,
            free=item.free,
            pack=pick(item.pack, "pack", product.pack),
            mrp=mrp,
            purchase_rate=purchase_rate,
            sale_rate=sale_rate,
            rate=rate,
            discount_percent=item.discount_percent,
            gst_percent=gst_percent,
            gross_amount=amounts.gross,
            discount_amount=amounts.discount,
            taxable_amount=amounts.taxable,
            gst_amount=amounts.gst,
            amount=amounts.amount,
        )
        return line, amounts

    def _locate_batch(
        self,
        tenant_id: UUID,
        invoice_type: InvoiceType,
        product: Product,
        item: LineItemInput,
    ) -> Batch | None:
        batch_id = coerce_optional_uuid(item.batch_id, "batch_id")
        if batch_id is not None:
            return self._store.get_batch(tenant_id, product.id, batch_id)
        if item.batch_number:
            batch = self._store.find_batch_by_number(tenant_id, product.id, item.batch_number)
            if batch is not None or invoice_type is InvoiceType.PURCHASE:
                return batch
            raise ValidationError(
                f"{product.name} has no batch {item.batch_number}", field="batch_number"
            )
        if invoice_type is InvoiceType.PURCHASE:
            raise ValidationError("a purchase line needs a batch number", field="batch_number")
        raise ValidationError("a sale line needs a batch", field="batch_id")

    # ------------------------------------------------------------------
    # Effects
    # ------------------------------------------------------------------

    def _apply_effects(
        self,
        tenant_id: UUID,
        actor_id: UUID,
        invoice: Invoice,
        payment: PaymentInput | None,
        movement_type: MovementType,
    ) -> None:
        """Stock, party ledger and payment of an ACTIVE invoice."""
        invoice_type = InvoiceType(invoice.invoice_type)
        for line in invoice.lines:
            if invoice_type is InvoiceType.PURCHASE:
                self._receive_line(tenant_id, actor_id, invoice, line, movement_type)
            else:
                self._stock.move(
                    tenant_id,
                    actor_id,
                    line.product_id,
                    line.batch_id,
                    -line.quantity,
                    movement_type,
                    document_id=invoice.id,
                    document_number=invoice.invoice_number,
                    party_name=invoice.party_name,
                )

        if invoice.party_id is not None:
            is_sale = invoice_type is InvoiceType.SALE
            self._ledger.post_party(
                tenant_id,
                actor_id,
                invoice.party_id,
                LedgerEntryType.SALE_INVOICE if is_sale else LedgerEntryType.PURCHASE_INVOICE,
                debit=invoice.grand_total if is_sale else ZERO,
                credit=ZERO if is_sale else invoice.grand_total,
                description=f"{invoice_type.value.title()} invoice {invoice.invoice_number}",
                document_id=invoice.id,
                document_number=invoice.invoice_number,
            )

        if payment is not None and payment.amount > ZERO:
            self._record_invoice_payment(tenant_id, actor_id, invoice, payment)
        else:
            invoice.payment_method = None
        invoice.refresh_payment_status()
        self.session.flush()

    def _receive_line(
        self,
        tenant_id: UUID,
        actor_id: UUID,
        invoice: Invoice,
        line: InvoiceLine,
        movement_type: MovementType,
    ) -> None:
        fields = NewBatchFields(
            batch_number=line.batch_number,
            expiry=line.expiry,
            mrp=line.mrp,
            gst_percent=line.gst_percent,
            purchase_rate=line.purchase_rate,
            sale_rate=line.sale_rate,
            pack=line.pack,
        )
        batch_id = line.batch_id
        if batch_id is None:
            existing = self._store.find_batch_by_number(
                tenant_id, line.product_id, line.batch_number, for_update=True
            )
            batch_id = existing.id if existing is not None else None
        if batch_id is not None:
            batch = self._store.get_batch(tenant_id, line.product_id, batch_id, for_update=True)
            self._store.refresh_batch(batch, fields, actor_id)

        result = self._stock.move(
            tenant_id,
            actor_id,
            line.product_id,
            batch_id,
            line.stock_quantity,
            movement_type,
            new_batch_fields=fields,
            document_id=invoice.id,
            document_number=invoice.invoice_number,
            party_name=invoice.party_name,
        )
        line.batch_id = result.batch_id

    def _record_invoice_payment(
        self,
        tenant_id: UUID,
        actor_id: UUID,
        invoice: Invoice,
        payment: PaymentInput,
    ) -> None:
        if payment.amount > invoice.amount_due:
            raise ValidationError(
                f"payment {payment.amount} exceeds the amount due {invoice.amount_due}",
                field="payment",
            )
        is_sale = InvoiceType(invoice.invoice_type) is InvoiceType.SALE
        record = self._payments.post_payment(
            tenant_id,
            actor_id,
            PaymentType.IN if is_sale else PaymentType.OUT,
            payment.amount,
            payment.method,
            party_id=invoice.party_id,
            account_id=payment.account_id,
            payment_date=invoice.invoice_date,
            cheque_number=payment.cheque_number,
            remarks=payment.remarks,
            origin_invoice_id=invoice.id,
        )
        self._payments.allocate(tenant_id, actor_id, record, invoice, record.amount)
        invoice.payment_method = payment.method

    def _reverse_effects(
        self,
        tenant_id: UUID,
        actor_id: UUID,
        invoice: Invoice,
        movement_type: MovementType,
    ) -> None:
        """Undo stock, ledger and owned payments of an ACTIVE invoice."""
        for payment in self._payments.origin_payments(tenant_id, invoice_id=invoice.id):
            self._payments.reverse_payment(tenant_id, actor_id, payment)

        invoice_type = InvoiceType(invoice.invoice_type)
        for line in invoice.lines:
            delta = -line.stock_quantity if invoice_type is InvoiceType.PURCHASE else line.quantity
            self._stock.move(
                tenant_id,
                actor_id,
                line.product_id,
                line.batch_id,
                delta,
                movement_type,
                document_id=invoice.id,
                document_number=invoice.invoice_number,
                party_name=invoice.party_name,
                remarks=f"Reversal of {invoice.invoice_number}",
            )

        if invoice.party_id is not None:
            is_sale = invoice_type is InvoiceType.SALE
            self._ledger.post_party(
                tenant_id,
                actor_id,
                invoice.party_id,
                LedgerEntryType.INVOICE_REVERSAL,
                debit=ZERO if is_sale else invoice.grand_total,
                credit=invoice.grand_total if is_sale else ZERO,
                description=f"Reversal of {invoice.invoice_number}",
                document_id=invoice.id,
                document_number=invoice.invoice_number,
            )
        self.session.flush()
        logger.debug(
            "invoice_effects_reversed",
            extra={"invoice_id": str(invoice.id), "movement_type": movement_type.value},
        )
