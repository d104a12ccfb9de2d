"""
Module: payroll_kernel.selectors.base
Responsibility: Abstract base class for all read-only query selectors.
    Selectors are the read side of the kernel: listings, aggregations and
    lookups that never change state.
Architecture position: Kernel > Selectors.  May import from db/, domain/ and
    models/.  MUST NOT import from services/ or outer layers.

Invariants enforced:
    - Read-only access: Selectors accept a Session from the caller but MUST NOT
      call session.add(), session.delete(), session.commit(), or session.flush().
    - DTO return convention: Selectors return frozen dataclasses or computed
      results, NOT raw ORM model instances.
    - Session ownership: the caller owns the session and its transaction.

Failure modes:
    - ValidationError for malformed paging input.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from payroll_kernel.db.base import Base
from payroll_kernel.exceptions import ValidationError

ModelType = TypeVar("ModelType", bound=Base)

DEFAULT_PAGE_LIMIT = 50
MAX_PAGE_LIMIT = 500


def normalize_paging(page: int, limit: int, max_limit: int = MAX_PAGE_LIMIT) -> tuple[int, int]:
    """
    Validate page/limit and clamp limit to ``max_limit``.

    Raises:
        ValidationError: page < 1 or limit < 1.
    """
    if not isinstance(page, int) or page < 1:
        raise ValidationError("page", f"must be an integer >= 1, got {page!r}")
    if not isinstance(limit, int) or limit < 1:
        raise ValidationError("limit", f"must be an integer >= 1, got {limit!r}")
    return page, min(limit, max_limit)


class BaseSelector(ABC, Generic[ModelType]):
    """
    Abstract base class for all selectors.

    Contract:
        Selectors accept a Session from the caller, perform read-only queries,
        and return DTOs or computed results.  They MUST NOT mutate any data.
    """

    def __init__(self, session: Session):
        """
        Initialize the selector.

        Args:
            session: SQLAlchemy session for database operations.
        """
        self.session = session
