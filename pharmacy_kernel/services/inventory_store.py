"""
InventoryStore -- the only writer of batch and product quantities.

Responsibility:
    Applies a signed quantity delta to one batch and to its product's
    aggregate, creating the batch first when a positive delta arrives for a
    batch that does not exist yet.

Architecture position:
    Kernel > Services -- component.  Always runs inside the caller's
    transaction; flushes, never commits.

Invariants enforced:
    - Product.quantity == sum(Batch.quantity): both change by the same
      delta in the same flush.
    - Batch.quantity >= 0.  Callers check availability first and raise
      InsufficientStockError; the store re-checks and raises
      StockInvariantError if a negative result still reaches it (a caller
      bug, never clamped).
    - A batch is never created with negative stock.
    - Product and batch rows are loaded FOR UPDATE, so concurrent
      transactions serialize on them.
"""

from dataclasses import fields as dataclass_fields
from uuid import UUID

from sqlalchemy.orm import Session

from pharmacy_kernel.db.repository import TenantRepository
from pharmacy_kernel.domain.dtos import NewBatchFields, StockDelta
from pharmacy_kernel.exceptions import (
    BatchNotFoundError,
    InsufficientStockError,
    ProductNotFoundError,
    StockInvariantError,
    ValidationError,
)
from pharmacy_kernel.logging_config import get_logger
from pharmacy_kernel.models.product import Batch, Product

logger = get_logger("services.inventory_store")


class InventoryStore:
    """
    Contract:
        ``apply_delta(tenant, product, batch|None, delta, new_fields)``
        returns the resulting product and batch quantities.

    Non-goals:
        - Does NOT write timeline entries; callers pass the returned
          quantities to TimelineRecorder in the same transaction.
    """

    def __init__(self, session: Session):
        self._session = session
        self._products = TenantRepository(session, Product, ProductNotFoundError)
        self._batches = TenantRepository(session, Batch, BatchNotFoundError)

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get_product(self, tenant_id: UUID, product_id, for_update: bool = False) -> Product:
        if for_update:
            return self._products.get_for_update(tenant_id, product_id)
        return self._products.get(tenant_id, product_id)

    def get_batch(self, tenant_id: UUID, product_id: UUID, batch_id, for_update: bool = False) -> Batch:
        """Load a batch and check it belongs to ``product_id``."""
        batch = (
            self._batches.get_for_update(tenant_id, batch_id)
            if for_update
            else self._batches.get(tenant_id, batch_id)
        )
        if batch.product_id != product_id:
            raise BatchNotFoundError(batch.id, tenant_id)
        return batch

    def find_batch_by_number(
        self, tenant_id: UUID, product_id: UUID, batch_number: str, for_update: bool = False
    ) -> Batch | None:
        return self._batches.find(
            tenant_id,
            Batch.product_id == product_id,
            Batch.batch_number == batch_number,
            for_update=for_update,
        )

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def check_available(self, batch: Batch, requested: int) -> None:
        """Raise InsufficientStockError unless ``requested`` units are on hand."""
        if batch.quantity < requested:
            logger.warning(
                "insufficient_stock",
                extra={
                    "product_id": str(batch.product_id),
                    "batch_id": str(batch.id),
                    "requested": requested,
                    "available": batch.quantity,
                },
            )
            raise InsufficientStockError(batch.product_id, batch.id, requested, batch.quantity)

    def apply_delta(
        self,
        tenant_id: UUID,
        product_id: UUID,
        batch_id: UUID | None,
        delta: int,
        new_batch_fields: NewBatchFields | None = None,
        actor_id: UUID | None = None,
    ) -> StockDelta:
        """
        Apply ``delta`` to a batch and its product.

        Preconditions:
            - For negative deltas the caller already verified availability.
        Postconditions:
            - Batch and product quantities changed by exactly ``delta``.
        Raises:
            ProductNotFoundError / BatchNotFoundError for unknown references.
            ValidationError if neither a batch nor new batch fields are given.
            StockInvariantError if a quantity would become negative.
        """
        product = self._products.get_for_update(tenant_id, product_id)

        batch: Batch | None = None
        if batch_id is not None:
            batch = self.get_batch(tenant_id, product.id, batch_id, for_update=True)
        elif new_batch_fields is not None:
            batch = self.find_batch_by_number(
                tenant_id, product.id, new_batch_fields.batch_number, for_update=True
            )
        else:
            raise ValidationError("a batch id or new batch fields are required", field="batch_id")

        created = False
        if batch is None:
            if delta < 0:
                raise StockInvariantError(
                    product.id, None, f"cannot create a batch with negative stock ({delta})"
                )
            batch = Batch(
                tenant_id=tenant_id,
                product_id=product.id,
                created_by_id=actor_id or product.created_by_id,
                quantity=0,
                **{f.name: getattr(new_batch_fields, f.name) for f in dataclass_fields(new_batch_fields)},
            )
            self._batches.add(tenant_id, batch)
            created = True

        new_batch_quantity = batch.quantity + delta
        new_product_quantity = product.quantity + delta
        if new_batch_quantity < 0 or new_product_quantity < 0:
            logger.error(
                "stock_invariant_violation",
                extra={
                    "product_id": str(product.id),
                    "batch_id": str(batch.id),
                    "delta": delta,
                    "batch_quantity": batch.quantity,
                    "product_quantity": product.quantity,
                },
            )
            raise StockInvariantError(
                product.id,
                batch.id,
                f"delta {delta} would leave batch at {new_batch_quantity}, "
                f"product at {new_product_quantity}",
            )

        batch.quantity = new_batch_quantity
        product.quantity = new_product_quantity
        self._session.flush()

        logger.debug(
            "stock_delta_applied",
            extra={
                "product_id": str(product.id),
                "batch_id": str(batch.id),
                "delta": delta,
                "product_quantity": new_product_quantity,
                "batch_quantity": new_batch_quantity,
                "batch_created": created,
            },
        )
        return StockDelta(
            product_id=product.id,
            batch_id=batch.id,
            delta=delta,
            product_quantity=new_product_quantity,
            batch_quantity=new_batch_quantity,
            batch_created=created,
        )

    def refresh_batch(self, batch: Batch, fields: NewBatchFields, actor_id: UUID) -> list[str]:
        """
        Overwrite batch attributes from a purchase or adjustment.

        Returns the names of the fields that changed.
        """
        changed = []
        for f in dataclass_fields(fields):
            if f.name == "batch_number":
                continue
            value = getattr(fields, f.name)
            if value is not None and getattr(batch, f.name) != value:
                setattr(batch, f.name, value)
                changed.append(f.name)
        if changed:
            batch.updated_by_id = actor_id
            self._session.flush()
        return changed
