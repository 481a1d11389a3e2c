"""
ProductService -- products, batches and stock outside invoices.

Responsibility:
    Creates products, and moves stock for the two non-invoice paths: a
    manual batch adjustment and a bulk opening-stock import.  Both go
    through StockMovement, so conservation and the timeline hold exactly as
    they do for invoices.

Architecture position:
    Kernel > Services -- operation service; owns its transaction boundary.
"""

from decimal import Decimal
from typing import Iterable
from uuid import UUID

from pharmacy_kernel.db.repository import TenantRepository
from pharmacy_kernel.domain.dtos import (
    BatchInfo,
    NewBatchFields,
    ProductInfo,
    StockDelta,
    StockImportItem,
)
from pharmacy_kernel.domain.enums import MovementType
from pharmacy_kernel.domain.identifiers import coerce_optional_uuid, coerce_uuid
from pharmacy_kernel.domain.money import ZERO, to_decimal
from pharmacy_kernel.exceptions import ProductNotFoundError, ValidationError
from pharmacy_kernel.logging_config import get_logger
from pharmacy_kernel.models.product import Product
from pharmacy_kernel.services.base import TransactionalService, require_ids
from pharmacy_kernel.services.inventory_store import InventoryStore
from pharmacy_kernel.services.sequence_service import SequenceAllocator
from pharmacy_kernel.services.stock_movement import StockMovement
from pharmacy_kernel.services.timeline_recorder import TimelineRecorder

logger = get_logger("services.product")


class ProductService(TransactionalService):
    """
    Contract:
        ``adjust_batch`` sets a batch to an absolute quantity (creating it if
        needed) and records the difference as one ADJUSTMENT movement.
        ``import_stock`` adds opening stock per item as IMPORT movements.

    Non-goals:
        - Does NOT delete batches or products; a batch at zero stays.
    """

    def __init__(self, session, clock=None, settings=None, auto_commit: bool = True):
        super().__init__(session, clock, settings, auto_commit)
        self._products = TenantRepository(session, Product, ProductNotFoundError)
        self._store = InventoryStore(session)
        self._stock = StockMovement(
            self._store, TimelineRecorder(session, SequenceAllocator(session, self.settings))
        )

    def create_product(
        self,
        tenant_id,
        actor_id,
        name: str,
        *,
        unit: str | None = None,
        pack: int | None = None,
        hsn: str | None = None,
        gst_percent: Decimal = ZERO,
        manufacturer: str | None = None,
        category: str | None = None,
    ) -> ProductInfo:
        tenant_id, actor_id = require_ids(tenant_id, actor_id)
        if not (name or "").strip():
            raise ValidationError("product name is required", field="name")
        gst = to_decimal(gst_percent)
        if gst < ZERO:
            raise ValidationError("gst_percent must not be negative", field="gst_percent")
        if pack is not None and pack <= 0:
            raise ValidationError("pack must be positive", field="pack")

        with self._unit_of_work("create_product", tenant_id, actor_id):
            product = self._products.add(
                tenant_id,
                Product(
                    name=name.strip(),
                    unit=unit,
                    pack=pack,
                    hsn=hsn,
                    gst_percent=gst,
                    manufacturer=manufacturer,
                    category=category,
                    quantity=0,
                    created_by_id=actor_id,
                ),
            )
            info = product.to_dto()
        logger.info("product_created", extra={"product_id": str(info.id)})
        return info

    def get(self, tenant_id: UUID, product_id) -> ProductInfo:
        return self._products.get(tenant_id, product_id).to_dto()

    def adjust_batch(
        self,
        tenant_id,
        actor_id,
        product_id,
        quantity: int,
        *,
        batch_id=None,
        fields: NewBatchFields | None = None,
        remarks: str | None = None,
    ) -> BatchInfo:
        """
        Set a batch's stock to ``quantity``.

        With ``batch_id`` the batch is adjusted (and refreshed from
        ``fields`` if given).  Without it, ``fields`` names the batch by
        number; an unknown number creates the batch.
        """
        tenant_id, actor_id = require_ids(tenant_id, actor_id)
        product_uuid = coerce_uuid(product_id, "product_id")
        batch_uuid = coerce_optional_uuid(batch_id, "batch_id")
        if not isinstance(quantity, int) or quantity < 0:
            raise ValidationError("quantity must be a non-negative integer", field="quantity")
        if batch_uuid is None and fields is None:
            raise ValidationError("a batch id or batch fields are required", field="batch_id")

        with self._unit_of_work("adjust_batch", tenant_id, actor_id):
            self._store.get_product(tenant_id, product_uuid, for_update=True)
            if batch_uuid is not None:
                batch = self._store.get_batch(tenant_id, product_uuid, batch_uuid, for_update=True)
            else:
                batch = self._store.find_batch_by_number(
                    tenant_id, product_uuid, fields.batch_number, for_update=True
                )

            changed: list[str] = []
            if batch is not None and fields is not None:
                changed = self._store.refresh_batch(batch, fields, actor_id)

            current = batch.quantity if batch is not None else 0
            delta = quantity - current
            note = remarks or _describe_adjustment(current, quantity, changed)
            if delta != 0:
                result = self._stock.move(
                    tenant_id,
                    actor_id,
                    product_uuid,
                    batch.id if batch is not None else None,
                    delta,
                    MovementType.ADJUSTMENT,
                    new_batch_fields=fields,
                    remarks=note,
                )
                batch_uuid = result.batch_id
            elif batch is None:
                # Zero-stock new batch: created without a movement
                result = self._store.apply_delta(
                    tenant_id, product_uuid, None, 0, new_batch_fields=fields, actor_id=actor_id
                )
                batch_uuid = result.batch_id
            else:
                batch_uuid = batch.id

            info = self._store.get_batch(tenant_id, product_uuid, batch_uuid).to_dto()

        logger.info(
            "batch_adjusted",
            extra={
                "product_id": str(product_uuid),
                "batch_id": str(info.id),
                "delta": delta,
                "changed_fields": changed,
            },
        )
        return info

    def import_stock(
        self,
        tenant_id,
        actor_id,
        items: Iterable[StockImportItem],
        remarks: str | None = None,
    ) -> list[StockDelta]:
        """
        Add opening stock for many batches in one transaction.

        A known batch number gets the quantity added; otherwise the batch is
        created.  Any failing item aborts the whole import.
        """
        tenant_id, actor_id = require_ids(tenant_id, actor_id)
        items = list(items)
        if not items:
            raise ValidationError("nothing to import", field="items")

        results = []
        with self._unit_of_work("import_stock", tenant_id, actor_id):
            for item in items:
                results.append(
                    self._stock.move(
                        tenant_id,
                        actor_id,
                        coerce_uuid(item.product_id, "product_id"),
                        None,
                        item.quantity,
                        MovementType.IMPORT,
                        new_batch_fields=item.batch_fields(),
                        remarks=remarks or "Stock import",
                    )
                )
        logger.info(
            "stock_imported",
            extra={"item_count": len(results), "units": sum(r.delta for r in results)},
        )
        return results


def _describe_adjustment(old_quantity: int, new_quantity: int, changed: list[str]) -> str:
    parts = []
    if old_quantity != new_quantity:
        parts.append(f"quantity {old_quantity} -> {new_quantity}")
    if changed:
        parts.append("updated " + ", ".join(changed))
    return "Stock adjustment: " + ("; ".join(parts) if parts else "no change")
