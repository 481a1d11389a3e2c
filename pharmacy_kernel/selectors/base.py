"""
Module: pharmacy_kernel.selectors.base
Responsibility: Base class for read-only query selectors.
Architecture position: Kernel > Selectors.  May import from db/, models/ and
    domain/.  MUST NOT import from services/ or outer layers.

Invariants enforced:
    - Read-only access: selectors never add, delete, flush or commit.
    - DTO return convention: selectors return frozen dataclasses, not ORM
      instances.
    - Tenant scope: every query method takes ``tenant_id`` and reads
      through TenantRepository.
"""

from abc import ABC

from sqlalchemy.orm import Session


class BaseSelector(ABC):
    """
    Contract:
        Accepts a Session from the caller; the caller owns its transaction.
    """

    def __init__(self, session: Session):
        self.session = session
