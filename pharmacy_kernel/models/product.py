"""
Module: pharmacy_kernel.models.product
Responsibility: ORM persistence for products (inventory items) and their
    batches.
Architecture position: Kernel > Models.  May import from db/ and domain/.

Invariants enforced:
    - Product.quantity == sum(Batch.quantity) after every committed
      transaction.  Maintained by services.inventory_store, which is the only
      writer of either column.
    - Batch.quantity >= 0 (CHECK constraint, and asserted by the store
      before the flush).
    - (tenant, product, batch_number) is unique: a purchase of a known batch
      number adds to the existing batch.
    - Batches are never deleted; a batch at zero stays for audit.
"""

from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from pharmacy_kernel.db.base import TenantScopedBase, UUIDString
from pharmacy_kernel.db.types import Percent, Quantity, Rate, ShortText
from pharmacy_kernel.domain.dtos import BatchInfo, ProductInfo


class Product(TenantScopedBase):
    """An inventory item.  ``quantity`` is the aggregate over its batches."""

    __tablename__ = "products"

    __table_args__ = (
        CheckConstraint("quantity >= 0", name="ck_product_quantity_non_negative"),
        Index("idx_product_tenant_name", "tenant_id", "name"),
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    unit: Mapped[ShortText]
    pack: Mapped[int | None] = mapped_column(nullable=True)
    hsn: Mapped[str | None] = mapped_column(String(20), nullable=True)
    gst_percent: Mapped[Percent]
    manufacturer: Mapped[ShortText]
    category: Mapped[ShortText]
    quantity: Mapped[Quantity]

    def to_dto(self) -> ProductInfo:
        return ProductInfo(
            id=self.id,
            name=self.name,
            unit=self.unit,
            pack=self.pack,
            hsn=self.hsn,
            gst_percent=self.gst_percent,
            quantity=self.quantity,
        )

    def __repr__(self) -> str:
        return f"<Product {self.name} qty={self.quantity}>"


class Batch(TenantScopedBase):
    """A lot of a product with its own expiry, pricing and loose-unit stock."""

    __tablename__ = "batches"

    __table_args__ = (
        UniqueConstraint("tenant_id", "product_id", "batch_number", name="uq_batch_number"),
        CheckConstraint("quantity >= 0", name="ck_batch_quantity_non_negative"),
        Index("idx_batch_product", "tenant_id", "product_id"),
    )

    product_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("products.id"), nullable=False
    )
    batch_number: Mapped[str] = mapped_column(String(50), nullable=False)
    expiry: Mapped[str | None] = mapped_column(String(5), nullable=True)  # MM/YY
    mrp: Mapped[Rate]
    gst_percent: Mapped[Percent]
    purchase_rate: Mapped[Rate]
    sale_rate: Mapped[Rate]
    pack: Mapped[int | None] = mapped_column(nullable=True)
    quantity: Mapped[Quantity]

    def to_dto(self) -> BatchInfo:
        return BatchInfo(
            id=self.id,
            product_id=self.product_id,
            batch_number=self.batch_number,
            expiry=self.expiry,
            mrp=self.mrp,
            gst_percent=self.gst_percent,
            purchase_rate=self.purchase_rate,
            sale_rate=self.sale_rate,
            pack=self.pack,
            quantity=self.quantity,
        )

    def __repr__(self) -> str:
        return f"<Batch {self.batch_number} qty={self.quantity}>"


