"""
Module: pharmacy_kernel.db.repository
Responsibility: Tenant-scoped data access for every tenant-owned model.
Architecture position: Kernel > DB.  Used by services/ and selectors/.

Invariants enforced:
    - Every method takes ``tenant_id`` as a required positional argument and
      filters on it.  There is no way to read or write a tenant-owned row
      through this interface without naming the tenant.
    - A row of another tenant is indistinguishable from a missing row: both
      raise the repository's NotFoundError subclass.
    - add() stamps tenant_id on the entity; an entity already carrying a
      different tenant is rejected.

Failure modes:
    - InvalidReferenceError for malformed identifiers.
    - NotFoundError subclass for missing or foreign rows.
"""

from typing import Any, Generic, Sequence, TypeVar
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from pharmacy_kernel.db.base import TenantScopedBase
from pharmacy_kernel.domain.identifiers import coerce_uuid
from pharmacy_kernel.exceptions import NotFoundError, ValidationError

ModelType = TypeVar("ModelType", bound=TenantScopedBase)


class TenantRepository(Generic[ModelType]):
    """
    Data access for one tenant-scoped model.

    Non-goals:
        - Does NOT commit or flush on reads; add()/delete() flush so that
          generated ids and constraint violations surface immediately.
    """

    def __init__(
        self,
        session: Session,
        model: type[ModelType],
        not_found: type[NotFoundError] = NotFoundError,
    ):
        self._session = session
        self._model = model
        self._not_found = not_found

    @property
    def model(self) -> type[ModelType]:
        return self._model

    def _scoped(self, tenant_id: UUID):
        return select(self._model).where(self._model.tenant_id == tenant_id)

    def get(self, tenant_id: UUID, entity_id: Any) -> ModelType:
        """Load by id within the tenant or raise the not-found error."""
        entity_uuid = coerce_uuid(entity_id, f"{self._model.__name__.lower()}_id")
        entity = self._session.execute(
            self._scoped(tenant_id).where(self._model.id == entity_uuid)
        ).scalar_one_or_none()
        if entity is None:
            raise self._not_found(entity_uuid, tenant_id)
        return entity

    def get_for_update(self, tenant_id: UUID, entity_id: Any) -> ModelType:
        """
        Load by id with a row lock (``SELECT ... FOR UPDATE``).

        ``populate_existing`` refreshes an instance already in the identity
        map, so the caller never mutates a stale balance or quantity.
        """
        entity_uuid = coerce_uuid(entity_id, f"{self._model.__name__.lower()}_id")
        entity = self._session.execute(
            self._scoped(tenant_id)
            .where(self._model.id == entity_uuid)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if entity is None:
            raise self._not_found(entity_uuid, tenant_id)
        return entity

    def find(self, tenant_id: UUID, *criteria: Any, for_update: bool = False) -> ModelType | None:
        stmt = self._scoped(tenant_id).where(*criteria)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        return self._session.execute(stmt).scalar_one_or_none()

    def find_all(
        self,
        tenant_id: UUID,
        *criteria: Any,
        order_by: Sequence[Any] = (),
    ) -> list[ModelType]:
        stmt = self._scoped(tenant_id).where(*criteria)
        if order_by:
            stmt = stmt.order_by(*order_by)
        return list(self._session.execute(stmt).scalars())

    def count(self, tenant_id: UUID, *criteria: Any) -> int:
        stmt = (
            select(func.count())
            .select_from(self._model)
            .where(self._model.tenant_id == tenant_id, *criteria)
        )
        return self._session.execute(stmt).scalar_one()

    def add(self, tenant_id: UUID, entity: ModelType) -> ModelType:
        if entity.tenant_id is not None and entity.tenant_id != tenant_id:
            raise ValidationError(
                f"{self._model.__name__} belongs to another tenant", field="tenant_id"
            )
        entity.tenant_id = tenant_id
        self._session.add(entity)
        self._session.flush()
        return entity

    def delete(self, tenant_id: UUID, entity: ModelType) -> None:
        if entity.tenant_id != tenant_id:
            raise self._not_found(entity.id, tenant_id)
        self._session.delete(entity)
        self._session.flush()
