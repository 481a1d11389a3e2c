"""
Tests for ProductService -- products, batch adjustment and stock import.
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from pharmacy_kernel.domain.dtos import NewBatchFields, StockImportItem
from pharmacy_kernel.domain.enums import MovementType
from pharmacy_kernel.exceptions import ProductNotFoundError, ValidationError


class TestCreateProduct:
    def test_new_product_has_no_stock(self, make_product):
        product = make_product("Amoxicillin 250mg", unit="strip", pack=10, hsn="3004")

        assert product.quantity == 0
        assert product.pack == 10
        assert product.gst_percent == Decimal("12")

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"name": " "},
            {"gst_percent": Decimal("-5")},
            {"pack": 0},
        ],
    )
    def test_invalid_product_rejected(self, make_product, kwargs):
        with pytest.raises(ValidationError):
            make_product(**kwargs)


class TestAdjustBatch:
    def test_new_batch_records_adjustment(self, make_product, make_batch, stock_selector, tenant_id):
        product = make_product()

        batch = make_batch(product.id, 40, batch_number="ADJ-1")

        assert batch.quantity == 40
        timeline = stock_selector.timeline(tenant_id, product.id)
        assert len(timeline) == 1
        assert timeline[0].movement_type is MovementType.ADJUSTMENT
        assert timeline[0].credit == 40
        assert timeline[0].balance == 40

    def test_adjust_down_records_debit(
        self, stocked_product, product_service, stock_selector, tenant_id, test_actor_id
    ):
        product, batch = stocked_product

        adjusted = product_service.adjust_batch(tenant_id, test_actor_id, product.id, 60, batch_id=batch.id)

        assert adjusted.quantity == 60
        last = stock_selector.timeline(tenant_id, product.id)[-1]
        assert last.debit == 40
        assert last.balance == 60
        assert "100 -> 60" in last.remarks
        assert product_service.get(tenant_id, product.id).quantity == 60

    def test_zero_quantity_new_batch_has_no_movement(
        self, make_product, product_service, stock_selector, tenant_id, test_actor_id
    ):
        product = make_product()

        batch = product_service.adjust_batch(
            tenant_id, test_actor_id, product.id, 0, fields=NewBatchFields(batch_number="EMPTY-1", expiry="01/27")
        )

        assert batch.quantity == 0
        assert stock_selector.timeline(tenant_id, product.id) == []

    def test_refreshing_fields_only(self, stocked_product, product_service, stock_selector, tenant_id, test_actor_id):
        product, batch = stocked_product

        updated = product_service.adjust_batch(
            tenant_id,
            test_actor_id,
            product.id,
            100,
            batch_id=batch.id,
            fields=NewBatchFields(batch_number=batch.batch_number, expiry="03/27", mrp=Decimal("13.50")),
        )

        assert updated.expiry == "03/27"
        assert updated.mrp == Decimal("13.50")
        assert len(stock_selector.timeline(tenant_id, product.id)) == 1

    def test_negative_quantity_rejected(self, stocked_product, product_service, tenant_id, test_actor_id):
        product, batch = stocked_product

        with pytest.raises(ValidationError):
            product_service.adjust_batch(tenant_id, test_actor_id, product.id, -1, batch_id=batch.id)

    def test_bad_expiry_rejected(self):
        with pytest.raises(ValidationError):
            NewBatchFields(batch_number="X", expiry="13/26")


class TestImportStock:
    def test_import_creates_and_tops_up_batches(
        self, make_product, product_service, stock_selector, tenant_id, test_actor_id
    ):
        product = make_product()

        results = product_service.import_stock(
            tenant_id,
            test_actor_id,
            [
                StockImportItem(product_id=product.id, batch_number="IMP-1", quantity=30, expiry="05/26"),
                StockImportItem(product_id=product.id, batch_number="IMP-2", quantity=20),
                StockImportItem(product_id=product.id, batch_number="IMP-1", quantity=5),
            ],
        )

        assert [r.batch_created for r in results] == [True, True, False]
        assert stock_selector.batch_by_number(tenant_id, product.id, "IMP-1").quantity == 35
        conservation = stock_selector.check_conservation(tenant_id, product.id)[0]
        assert conservation.product_quantity == 55
        assert conservation.is_consistent
        types = {e.movement_type for e in stock_selector.timeline(tenant_id, product.id)}
        assert types == {MovementType.IMPORT}

    def test_failing_item_aborts_whole_import(
        self, make_product, product_service, stock_selector, tenant_id, test_actor_id
    ):
        product = make_product()

        with pytest.raises(ProductNotFoundError):
            product_service.import_stock(
                tenant_id,
                test_actor_id,
                [
                    StockImportItem(product_id=product.id, batch_number="IMP-1", quantity=30),
                    StockImportItem(product_id=uuid4(), batch_number="IMP-9", quantity=1),
                ],
            )

        assert stock_selector.batches(tenant_id, product.id) == []
        assert product_service.get(tenant_id, product.id).quantity == 0

    def test_empty_import_rejected(self, product_service, tenant_id, test_actor_id):
        with pytest.raises(ValidationError):
            product_service.import_stock(tenant_id, test_actor_id, [])
