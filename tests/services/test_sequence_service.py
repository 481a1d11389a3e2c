"""
Tests for SequenceAllocator -- per-tenant, per-kind, per-fiscal-year counters.

Covers:
- allocate_next(): strictly increasing from 1 within a scope
- scopes are independent across kinds, fiscal years and tenants
- formatting through the configured templates
- a rolled-back operation does not consume a number
"""

from datetime import date

import pytest

from pharmacy_kernel.domain.enums import DocumentKind
from pharmacy_kernel.domain.settings import EngineSettings
from pharmacy_kernel.exceptions import InsufficientStockError
from pharmacy_kernel.services.sequence_service import SequenceAllocator


@pytest.fixture
def allocator(session):
    return SequenceAllocator(session)


class TestAllocateNext:
    def test_counts_from_one(self, allocator, tenant_id):
        values = [allocator.allocate_next(tenant_id, DocumentKind.SALE, 2024) for _ in range(3)]

        assert values == [1, 2, 3]
        assert allocator.current_value(tenant_id, DocumentKind.SALE, 2024) == 3

    def test_scopes_are_independent(self, allocator, tenant_id, make_tenant):
        other = make_tenant()
        allocator.allocate_next(tenant_id, DocumentKind.SALE, 2024)
        allocator.allocate_next(tenant_id, DocumentKind.SALE, 2024)

        assert allocator.allocate_next(tenant_id, DocumentKind.SALE, 2025) == 1
        assert allocator.allocate_next(tenant_id, DocumentKind.PURCHASE, 2024) == 1
        assert allocator.allocate_next(other.id, DocumentKind.SALE, 2024) == 1

    def test_unused_scope_reads_zero(self, allocator, tenant_id):
        assert allocator.current_value(tenant_id, DocumentKind.PAYMENT, 2030) == 0

    def test_peek_does_not_consume(self, allocator, tenant_id):
        assert allocator.peek_next(tenant_id, DocumentKind.SALE, 2024) == "INV/24/1"
        assert allocator.peek_next(tenant_id, DocumentKind.SALE, 2024) == "INV/24/1"
        assert allocator.current_value(tenant_id, DocumentKind.SALE, 2024) == 0


class TestDocumentNumbers:
    @pytest.mark.parametrize(
        "on_date, expected_year",
        [
            (date(2024, 4, 1), 2024),
            (date(2025, 3, 31), 2024),
            (date(2025, 4, 1), 2025),
        ],
    )
    def test_fiscal_year_from_date(self, allocator, tenant_id, on_date, expected_year):
        number = allocator.allocate_document_number(tenant_id, DocumentKind.PAYMENT, on_date)

        assert number.fiscal_year == expected_year
        assert number.counter == 1

    def test_formats_with_templates(self, allocator, tenant_id):
        purchase = allocator.allocate_document_number(tenant_id, DocumentKind.PURCHASE, date(2024, 7, 1))

        assert purchase.formatted == "PUR/24/000001"

    def test_custom_template_and_calendar_year(self, session, tenant_id):
        settings = EngineSettings(
            fiscal_year_start_month=1,
            number_formats={
                **EngineSettings().number_formats,
                DocumentKind.SALE.value: "S-{fy}-{counter:04d}",
            },
        )
        allocator = SequenceAllocator(session, settings)

        number = allocator.allocate_document_number(tenant_id, DocumentKind.SALE, date(2025, 2, 1))

        assert number.formatted == "S-2025-0001"

    def test_row_kinds_do_not_number_documents(self, allocator, tenant_id):
        with pytest.raises(ValueError):
            allocator.allocate_document_number(tenant_id, DocumentKind.STOCK_TIMELINE, date(2024, 6, 1))


class TestGapFreeOnRollback:
    def test_failed_sale_does_not_consume_number(self, stocked_product, sell):
        product, batch = stocked_product

        with pytest.raises(InsufficientStockError):
            sell(product.id, batch.id, 500)
        invoice = sell(product.id, batch.id, 1)

        assert invoice.invoice_number == "INV/24/1"
