"""
Module: pharmacy_kernel.services.base
Responsibility: Shared plumbing for kernel services -- injected session,
    clock and settings, and the unit-of-work boundary used by every
    public mutating operation.
Architecture position: Kernel > Services.

Transaction boundary:
    Component services (SequenceAllocator, InventoryStore, TimelineRecorder,
    BalanceLedger) only flush; they always run inside a caller's
    transaction.  Operation services (InvoiceEngine, ReturnService,
    PaymentService, ...) own the boundary when ``auto_commit=True``: commit
    on success, roll back on any failure.  With ``auto_commit=False`` they
    compose into an enclosing operation and leave the boundary to it.

Failure modes:
    - PharmacyKernelError subclasses propagate unchanged after rollback.
    - SQLAlchemy errors and anything unexpected are wrapped in
      TransactionAbortedError (``retryable`` for transient lock/serialization
      failures) chained to the original exception.
"""

from contextlib import contextmanager
from typing import Iterator
from uuid import UUID

from sqlalchemy.exc import DBAPIError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session

from pharmacy_kernel.domain.clock import Clock, SystemClock
from pharmacy_kernel.domain.identifiers import coerce_uuid
from pharmacy_kernel.domain.settings import EngineSettings
from pharmacy_kernel.exceptions import PharmacyKernelError, TransactionAbortedError
from pharmacy_kernel.logging_config import LogContext, get_logger

logger = get_logger("services.base")

# Substrings of driver messages for conditions where re-running the whole
# unit of work may succeed.
_TRANSIENT_MARKERS = (
    "database is locked",
    "deadlock",
    "could not serialize",
    "lock timeout",
    "lock wait timeout",
    "canceling statement due to lock timeout",
)

# PostgreSQL SQLSTATEs: serialization_failure, deadlock_detected, lock_not_available
_TRANSIENT_SQLSTATES = {"40001", "40P01", "55P03"}


def is_transient_failure(exc: BaseException) -> bool:
    """True when a database error signals a retryable concurrency condition."""
    if isinstance(exc, DBAPIError):
        pgcode = getattr(exc.orig, "pgcode", None)
        if pgcode in _TRANSIENT_SQLSTATES:
            return True
    message = str(exc).lower()
    return isinstance(exc, OperationalError) and any(m in message for m in _TRANSIENT_MARKERS)


class BaseService:
    """Holds the session, clock and settings every service needs."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        settings: EngineSettings | None = None,
    ):
        self.session = session
        self._clock = clock or SystemClock()
        self._settings = settings or EngineSettings()

    @property
    def settings(self) -> EngineSettings:
        return self._settings


class TransactionalService(BaseService):
    """
    Base for services whose public methods are complete operations.

    Contract:
        Every public mutating method runs its body inside
        ``self._unit_of_work(...)``.  The body either commits entirely or
        leaves zero persisted side effects.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        settings: EngineSettings | None = None,
        auto_commit: bool = True,
    ):
        super().__init__(session, clock, settings)
        self._auto_commit = auto_commit

    @contextmanager
    def _unit_of_work(
        self,
        operation: str,
        tenant_id: UUID,
        actor_id: UUID | None = None,
    ) -> Iterator[None]:
        with LogContext.bind(tenant_id=tenant_id, actor_id=actor_id):
            if not self._auto_commit:
                yield
                self.session.flush()
                return
            try:
                yield
                self.session.commit()
            except PharmacyKernelError as exc:
                self.session.rollback()
                logger.warning(
                    "transaction_rolled_back",
                    extra={"operation": operation, "error_code": exc.code},
                )
                raise
            except SQLAlchemyError as exc:
                self.session.rollback()
                retryable = is_transient_failure(exc)
                logger.warning(
                    "transaction_rolled_back",
                    extra={"operation": operation, "retryable": retryable},
                    exc_info=True,
                )
                raise TransactionAbortedError(
                    operation, type(exc).__name__, retryable=retryable
                ) from exc
            except Exception as exc:
                self.session.rollback()
                logger.error(
                    "transaction_rolled_back",
                    extra={"operation": operation},
                    exc_info=True,
                )
                raise TransactionAbortedError(operation, repr(exc)) from exc


def require_ids(tenant_id, actor_id) -> tuple[UUID, UUID]:
    """Coerce the two identifiers every mutating operation receives."""
    return coerce_uuid(tenant_id, "tenant_id"), coerce_uuid(actor_id, "actor_id")
