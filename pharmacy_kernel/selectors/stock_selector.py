"""
Stock read side: batches, the product timeline, and the two stock checks.

``check_conservation`` compares Product.quantity with the sum of its batches
and with the last timeline balance; ``verify_timeline`` walks a product's
timeline and reports every row whose balance does not follow from the row
before it.  Neither is on a write path.
"""

from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import func, select

from pharmacy_kernel.db.repository import TenantRepository
from pharmacy_kernel.domain.dtos import BatchInfo, TimelineEntryInfo
from pharmacy_kernel.exceptions import BatchNotFoundError, ProductNotFoundError
from pharmacy_kernel.models.product import Batch, Product
from pharmacy_kernel.models.stock_timeline import StockTimelineEntry
from pharmacy_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class StockConservation:
    product_id: UUID
    product_quantity: int
    batch_total: int
    timeline_balance: int

    @property
    def is_consistent(self) -> bool:
        return self.product_quantity == self.batch_total == self.timeline_balance


class StockSelector(BaseSelector):
    def __init__(self, session):
        super().__init__(session)
        self._products = TenantRepository(session, Product, ProductNotFoundError)
        self._batches = TenantRepository(session, Batch, BatchNotFoundError)
        self._timeline = TenantRepository(session, StockTimelineEntry)

    def batches(self, tenant_id: UUID, product_id, in_stock_only: bool = False) -> list[BatchInfo]:
        product = self._products.get(tenant_id, product_id)
        criteria = [Batch.product_id == product.id]
        if in_stock_only:
            criteria.append(Batch.quantity > 0)
        return [
            b.to_dto()
            for b in self._batches.find_all(tenant_id, *criteria, order_by=(Batch.batch_number,))
        ]

    def batch_by_number(self, tenant_id: UUID, product_id, batch_number: str) -> BatchInfo:
        product = self._products.get(tenant_id, product_id)
        batch = self._batches.find(
            tenant_id, Batch.product_id == product.id, Batch.batch_number == batch_number
        )
        if batch is None:
            raise BatchNotFoundError(batch_number, tenant_id)
        return batch.to_dto()

    def timeline(self, tenant_id: UUID, product_id) -> list[TimelineEntryInfo]:
        """Every movement of a product in creation order."""
        product = self._products.get(tenant_id, product_id)
        rows = self._timeline.find_all(
            tenant_id,
            StockTimelineEntry.product_id == product.id,
            order_by=(StockTimelineEntry.seq,),
        )
        return [row.to_dto() for row in rows]

    def verify_timeline(self, tenant_id: UUID, product_id) -> list[int]:
        """Sequence numbers of rows whose balance breaks the running sum."""
        broken = []
        previous = 0
        for entry in self.timeline(tenant_id, product_id):
            if previous + entry.credit - entry.debit != entry.balance:
                broken.append(entry.seq)
            previous = entry.balance
        return broken

    def check_conservation(self, tenant_id: UUID, product_id=None) -> list[StockConservation]:
        """
        Conservation check for one product, or every product of the tenant.
        """
        if product_id is not None:
            products = [self._products.get(tenant_id, product_id)]
        else:
            products = self._products.find_all(tenant_id, order_by=(Product.name,))

        results = []
        for product in products:
            batch_total = self.session.execute(
                select(func.coalesce(func.sum(Batch.quantity), 0)).where(
                    Batch.tenant_id == tenant_id, Batch.product_id == product.id
                )
            ).scalar_one()
            last_balance = self.session.execute(
                select(StockTimelineEntry.balance)
                .where(
                    StockTimelineEntry.tenant_id == tenant_id,
                    StockTimelineEntry.product_id == product.id,
                )
                .order_by(StockTimelineEntry.seq.desc())
                .limit(1)
            ).scalar_one_or_none()
            results.append(
                StockConservation(
                    product_id=product.id,
                    product_quantity=product.quantity,
                    batch_total=int(batch_total),
                    timeline_balance=last_balance or 0,
                )
            )
        return results
