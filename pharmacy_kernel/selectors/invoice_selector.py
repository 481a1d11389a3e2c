"""
Invoice, return and payment lookups.
"""

from uuid import UUID

from pharmacy_kernel.db.repository import TenantRepository
from pharmacy_kernel.domain.dtos import InvoiceInfo, PaymentInfo, ReturnInfo
from pharmacy_kernel.domain.enums import InvoiceStatus, InvoiceType
from pharmacy_kernel.domain.identifiers import coerce_uuid
from pharmacy_kernel.exceptions import (
    InvoiceNotFoundError,
    PaymentNotFoundError,
    ReturnNotFoundError,
)
from pharmacy_kernel.models.invoice import Invoice
from pharmacy_kernel.models.payment import Payment
from pharmacy_kernel.models.returns import ReturnDocument
from pharmacy_kernel.selectors.base import BaseSelector


class InvoiceSelector(BaseSelector):
    def __init__(self, session):
        super().__init__(session)
        self._invoices = TenantRepository(session, Invoice, InvoiceNotFoundError)
        self._returns = TenantRepository(session, ReturnDocument, ReturnNotFoundError)
        self._payments = TenantRepository(session, Payment, PaymentNotFoundError)

    def get(self, tenant_id: UUID, invoice_id) -> InvoiceInfo:
        return self._invoices.get(tenant_id, invoice_id).to_dto()

    def list_invoices(
        self,
        tenant_id: UUID,
        invoice_type: InvoiceType | None = None,
        status: InvoiceStatus | None = None,
        party_id=None,
    ) -> list[InvoiceInfo]:
        """Invoices in date order, optionally filtered by type, status and party."""
        criteria = []
        if invoice_type is not None:
            criteria.append(Invoice.invoice_type == InvoiceType(invoice_type).value)
        if status is not None:
            criteria.append(Invoice.status == InvoiceStatus(status).value)
        if party_id is not None:
            criteria.append(Invoice.party_id == coerce_uuid(party_id, "party_id"))
        rows = self._invoices.find_all(
            tenant_id, *criteria, order_by=(Invoice.invoice_date, Invoice.created_at)
        )
        return [row.to_dto() for row in rows]

    def get_return(self, tenant_id: UUID, return_id) -> ReturnInfo:
        return self._returns.get(tenant_id, return_id).to_dto()

    def returns_for_invoice(self, tenant_id: UUID, invoice_id) -> list[ReturnInfo]:
        invoice = self._invoices.get(tenant_id, invoice_id)
        rows = self._returns.find_all(
            tenant_id,
            ReturnDocument.original_invoice_id == invoice.id,
            order_by=(ReturnDocument.return_date, ReturnDocument.created_at),
        )
        return [row.to_dto() for row in rows]

    def get_payment(self, tenant_id: UUID, payment_id) -> PaymentInfo:
        return self._payments.get(tenant_id, payment_id).to_dto()

    def payments_for_party(self, tenant_id: UUID, party_id) -> list[PaymentInfo]:
        rows = self._payments.find_all(
            tenant_id,
            Payment.party_id == coerce_uuid(party_id, "party_id"),
            order_by=(Payment.payment_date, Payment.created_at),
        )
        return [row.to_dto() for row in rows]
