"""
StockMovement -- one quantity change plus its timeline row.

Every stock-affecting operation (invoice, return, adjustment, import) goes
through ``move``: check availability for outgoing deltas, apply the delta
through InventoryStore, then record the timeline entry with the balances
InventoryStore returned.  Keeping the pair in one call is what makes the
recorded running balance correct at write time.
"""

from uuid import UUID

from pharmacy_kernel.domain.dtos import NewBatchFields, StockDelta
from pharmacy_kernel.domain.enums import MovementType
from pharmacy_kernel.services.inventory_store import InventoryStore
from pharmacy_kernel.services.timeline_recorder import TimelineRecorder


class StockMovement:
    def __init__(self, store: InventoryStore, recorder: TimelineRecorder):
        self._store = store
        self._recorder = recorder

    @property
    def store(self) -> InventoryStore:
        return self._store

    def move(
        self,
        tenant_id: UUID,
        actor_id: UUID,
        product_id: UUID,
        batch_id: UUID | None,
        delta: int,
        movement_type: MovementType,
        *,
        new_batch_fields: NewBatchFields | None = None,
        document_id: UUID | None = None,
        document_number: str | None = None,
        party_name: str | None = None,
        remarks: str | None = None,
    ) -> StockDelta:
        """
        Apply ``delta`` and record it.

        Raises:
            InsufficientStockError: an outgoing delta exceeds the batch stock.
        """
        if delta < 0 and batch_id is not None:
            # Product before batch, the same lock order apply_delta uses
            self._store.get_product(tenant_id, product_id, for_update=True)
            batch = self._store.get_batch(tenant_id, product_id, batch_id, for_update=True)
            self._store.check_available(batch, -delta)

        result = self._store.apply_delta(
            tenant_id,
            product_id,
            batch_id,
            delta,
            new_batch_fields=new_batch_fields,
            actor_id=actor_id,
        )
        self._recorder.record(
            tenant_id,
            actor_id,
            result.product_id,
            result.batch_id,
            movement_type,
            delta,
            result.product_quantity,
            batch_balance=result.batch_quantity,
            document_id=document_id,
            document_number=document_number,
            party_name=party_name,
            remarks=remarks,
        )
        return result
