"""
Service layer for tenants.

A tenant is one pharmacy sharing the deployment.  Route middleware resolves
the tenant code to an id once per request; every other service receives
that id as an explicit argument.
"""

from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from pharmacy_kernel.domain.dtos import TenantInfo
from pharmacy_kernel.domain.identifiers import coerce_uuid
from pharmacy_kernel.exceptions import TenantNotFoundError, ValidationError
from pharmacy_kernel.logging_config import get_logger
from pharmacy_kernel.models.tenant import Tenant
from pharmacy_kernel.services.base import TransactionalService

logger = get_logger("services.tenant")


class TenantService(TransactionalService):
    def _load(self, tenant_id) -> Tenant:
        tenant_uuid = coerce_uuid(tenant_id, "tenant_id")
        tenant = self.session.get(Tenant, tenant_uuid)
        if tenant is None:
            raise TenantNotFoundError(tenant_uuid)
        return tenant

    def create_tenant(self, code: str, name: str, actor_id) -> TenantInfo:
        """
        Register a tenant.

        Raises:
            ValidationError: blank code/name, or the code is already taken.
        """
        actor_uuid = coerce_uuid(actor_id, "actor_id")
        code = (code or "").strip()
        if not code:
            raise ValidationError("tenant code is required", field="code")
        if not (name or "").strip():
            raise ValidationError("tenant name is required", field="name")

        tenant = Tenant(
            id=uuid4(), code=code, name=name.strip(), is_active=True, created_by_id=actor_uuid
        )
        with self._unit_of_work("create_tenant", tenant.id, actor_uuid):
            self.session.add(tenant)
            try:
                self.session.flush()
            except IntegrityError:
                raise ValidationError(f"tenant code {code!r} already exists", field="code") from None
            info = tenant.to_dto()
        logger.info("tenant_created", extra={"tenant_code": code})
        return info

    def get(self, tenant_id) -> TenantInfo:
        return self._load(tenant_id).to_dto()

    def resolve_code(self, code: str) -> TenantInfo:
        """Tenant id for a code, as route middleware would look it up."""
        tenant = self.session.execute(
            select(Tenant).where(Tenant.code == code)
        ).scalar_one_or_none()
        if tenant is None:
            raise TenantNotFoundError(code)
        return tenant.to_dto()

    def require_active(self, tenant_id) -> UUID:
        """Return the tenant id, or raise if it is unknown or deactivated."""
        tenant = self._load(tenant_id)
        if not tenant.is_active:
            raise ValidationError(f"tenant {tenant.code} is inactive", field="tenant_id")
        return tenant.id
