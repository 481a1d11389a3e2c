"""
SequenceAllocator -- per-tenant, per-kind, per-fiscal-year document numbers.

Responsibility:
    Hands out the next counter value for a (tenant, document kind, fiscal
    year) scope and formats it into a human-facing document number.  Also
    supplies the ordering sequence of append-only rows (timeline, party
    ledger, account transactions), scoped per tenant with fiscal year 0.

Architecture position:
    Kernel > Services -- component.  Runs inside the caller's transaction;
    never commits.

Invariants enforced:
    - Allocation is ONE atomic statement:
          UPDATE sequence_counters SET current_value = current_value + 1
          WHERE <scope> RETURNING current_value
      never a read followed by a separate write, and never max()+1 over
      the documents themselves.
    - The increment becomes visible only when the caller commits; a
      rollback returns the number (aborted transactions never leave gaps,
      deleted documents may).

Failure modes:
    - IntegrityError on first use when two transactions create the same
      counter row concurrently: the loser rolls back its savepoint and
      increments the winner's row.
    - SequenceConflictError if the row still cannot be incremented; the
      caller must abort and may retry the whole operation.
"""

from datetime import date
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from pharmacy_kernel.domain.dtos import AllocatedNumber
from pharmacy_kernel.domain.enums import DocumentKind
from pharmacy_kernel.domain.fiscal_year import fiscal_year_for
from pharmacy_kernel.domain.settings import EngineSettings
from pharmacy_kernel.exceptions import SequenceConflictError
from pharmacy_kernel.logging_config import get_logger
from pharmacy_kernel.models.sequence import SequenceCounter

logger = get_logger("services.sequence")

# Fiscal year slot used by row-ordering kinds
UNSCOPED_YEAR = 0


class SequenceAllocator:
    """
    Contract:
        ``allocate_next(tenant, kind, fy)`` returns an integer strictly
        greater than every value previously committed for the same scope,
        starting at 1.

    Guarantees:
        - Two concurrent transactions never receive the same value for one
          scope: the UPDATE takes the row lock, so the second waits for the
          first to commit or roll back.

    Non-goals:
        - Does NOT call ``session.commit()`` -- the caller owns boundaries.
    """

    def __init__(self, session: Session, settings: EngineSettings | None = None):
        self._session = session
        self._settings = settings or EngineSettings()

    def _increment(self, tenant_id: UUID, kind: str, fiscal_year: int) -> int | None:
        stmt = (
            update(SequenceCounter)
            .where(
                SequenceCounter.tenant_id == tenant_id,
                SequenceCounter.document_kind == kind,
                SequenceCounter.fiscal_year == fiscal_year,
            )
            .values(current_value=SequenceCounter.current_value + 1)
            .returning(SequenceCounter.current_value)
            .execution_options(synchronize_session=False)
        )
        return self._session.execute(stmt).scalar_one_or_none()

    def allocate_next(self, tenant_id: UUID, kind: DocumentKind, fiscal_year: int) -> int:
        """
        Next value for the scope.

        Preconditions:
            - Called inside an active transaction.
        Postconditions:
            - Returns an integer > 0; the counter row stays locked until the
              caller's transaction ends.
        """
        kind_value = DocumentKind(kind).value
        value = self._increment(tenant_id, kind_value, fiscal_year)

        if value is None:
            # First use of this scope.  A concurrent creator may win the
            # insert; a savepoint keeps the caller's work intact.
            savepoint = self._session.begin_nested()
            try:
                self._session.add(
                    SequenceCounter(
                        tenant_id=tenant_id,
                        document_kind=kind_value,
                        fiscal_year=fiscal_year,
                        current_value=1,
                    )
                )
                self._session.flush()
                savepoint.commit()
                value = 1
            except IntegrityError:
                logger.debug(
                    "sequence_counter_race_retry",
                    extra={"document_kind": kind_value, "fiscal_year": fiscal_year},
                )
                savepoint.rollback()
                value = self._increment(tenant_id, kind_value, fiscal_year)
                if value is None:
                    raise SequenceConflictError(tenant_id, kind_value, fiscal_year)

        assert value > 0, "sequence value must be strictly positive"
        logger.debug(
            "sequence_allocated",
            extra={"document_kind": kind_value, "fiscal_year": fiscal_year, "value": value},
        )
        return value

    def next_row_seq(self, tenant_id: UUID, kind: DocumentKind) -> int:
        """Ordering sequence for append-only rows (not fiscal-year scoped)."""
        return self.allocate_next(tenant_id, kind, UNSCOPED_YEAR)

    def fiscal_year_of(self, on_date: date) -> int:
        return fiscal_year_for(on_date, self._settings.fiscal_year_start_month)

    def format_number(self, kind: DocumentKind, counter: int, fiscal_year: int) -> str:
        return self._settings.format_number(DocumentKind(kind), counter, fiscal_year)

    def allocate_document_number(
        self, tenant_id: UUID, kind: DocumentKind, on_date: date
    ) -> AllocatedNumber:
        """Allocate and format the number of a document dated ``on_date``."""
        kind = DocumentKind(kind)
        if not kind.is_document:
            raise ValueError(f"{kind.value} does not number documents")
        fiscal_year = self.fiscal_year_of(on_date)
        counter = self.allocate_next(tenant_id, kind, fiscal_year)
        formatted = self.format_number(kind, counter, fiscal_year)
        logger.info(
            "document_number_allocated",
            extra={"document_kind": kind.value, "fiscal_year": fiscal_year, "number": formatted},
        )
        return AllocatedNumber(
            document_kind=kind.value,
            fiscal_year=fiscal_year,
            counter=counter,
            formatted=formatted,
        )

    def current_value(self, tenant_id: UUID, kind: DocumentKind, fiscal_year: int) -> int:
        """Last allocated value for the scope (0 if never used).  Read-only."""
        value = self._session.execute(
            select(SequenceCounter.current_value).where(
                SequenceCounter.tenant_id == tenant_id,
                SequenceCounter.document_kind == DocumentKind(kind).value,
                SequenceCounter.fiscal_year == fiscal_year,
            )
        ).scalar_one_or_none()
        return value or 0

    def peek_next(self, tenant_id: UUID, kind: DocumentKind, fiscal_year: int) -> str:
        """
        Formatted number the next allocation would produce.

        Advisory only: a concurrent transaction may take it first.
        """
        counter = self.current_value(tenant_id, kind, fiscal_year) + 1
        return self.format_number(kind, counter, fiscal_year)
