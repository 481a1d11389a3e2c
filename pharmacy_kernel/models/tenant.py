"""
Module: pharmacy_kernel.models.tenant
Responsibility: ORM persistence for tenants (hospitals / pharmacies sharing
    one deployment).
Architecture position: Kernel > Models.  May import from db/ and domain/.
"""

from sqlalchemy import Boolean, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from pharmacy_kernel.db.base import TrackedBase
from pharmacy_kernel.domain.dtos import TenantInfo


class Tenant(TrackedBase):
    """
    An isolated pharmacy instance.

    Guarantees:
        - code is globally unique and is what route middleware resolves.
        - Inactive tenants are rejected by TenantService.require_active.
    """

    __tablename__ = "tenants"

    __table_args__ = (UniqueConstraint("code", name="uq_tenant_code"),)

    code: Mapped[str] = mapped_column(String(50), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def to_dto(self) -> TenantInfo:
        return TenantInfo(id=self.id, code=self.code, name=self.name, is_active=self.is_active)

    def __repr__(self) -> str:
        return f"<Tenant {self.code}>"
