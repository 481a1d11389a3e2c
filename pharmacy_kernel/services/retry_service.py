"""
Caller-level retry of a whole unit of work.

Responsibility:
    Re-runs an engine operation in a fresh session when it failed for a
    reason that a second attempt may not hit: a sequence allocation
    conflict or a transient lock/serialization abort.

Retry contract:
    - Only SequenceConflictError and TransactionAbortedError with
      ``retryable=True`` are retried.  Business rejections (NotFound,
      Validation, InsufficientStock, ConflictingReturn) are final and
      propagate on the first attempt.
    - Each attempt gets a new session, so nothing from a failed attempt
      leaks into the next.  The failed attempt itself has already been
      rolled back by the operation's unit of work.

Usage:
    def work(session):
        engine = InvoiceEngine(session, clock, settings)
        return engine.create_invoice(tenant_id, actor_id, command)

    info = run_with_retry(get_session_factory(), work)
"""

from typing import Callable, TypeVar

from sqlalchemy.orm import Session, sessionmaker

from pharmacy_kernel.exceptions import SequenceConflictError, TransactionAbortedError
from pharmacy_kernel.logging_config import get_logger

logger = get_logger("services.retry_service")

T = TypeVar("T")

# INVARIANT: bounded -- a persistent conflict surfaces to the caller
MAX_ATTEMPTS = 5


def is_retryable(exc: BaseException) -> bool:
    if isinstance(exc, SequenceConflictError):
        return True
    return isinstance(exc, TransactionAbortedError) and exc.retryable


def run_with_retry(
    session_factory: sessionmaker[Session],
    work: Callable[[Session], T],
    max_attempts: int = MAX_ATTEMPTS,
) -> T:
    """
    Call ``work(session)`` until it succeeds or fails for good.

    Raises:
        The last retryable error once ``max_attempts`` is exhausted, or the
        first non-retryable error immediately.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    attempt = 0
    while True:
        attempt += 1
        session = session_factory()
        try:
            result = work(session)
        except (SequenceConflictError, TransactionAbortedError) as exc:
            if not is_retryable(exc) or attempt >= max_attempts:
                logger.warning(
                    "retry_exhausted" if is_retryable(exc) else "retry_not_allowed",
                    extra={"attempt": attempt, "error_code": exc.code},
                )
                raise
            logger.info(
                "retrying_unit_of_work",
                extra={"attempt": attempt, "error_code": exc.code},
            )
        else:
            if attempt > 1:
                logger.info("retry_succeeded", extra={"attempt": attempt})
            return result
        finally:
            session.close()
