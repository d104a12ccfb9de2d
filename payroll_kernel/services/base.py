"""
BaseService -- abstract base for all kernel services.

Responsibility:
    Provides the common constructor and session-handling contract for
    every write-side service in the payroll kernel.  Services receive a
    SQLAlchemy ``Session`` and an injectable ``Clock``, persist with
    ``session.flush()`` and never ``session.commit()``.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.

Invariants enforced:
    Transaction boundaries: services flush within the caller's transaction
    and never commit or rollback themselves.  The module facade
    (``payroll_modules.weekly_pay.service``) or the test harness owns
    commit/rollback, which lets a bonus drain, the payout and the guarded
    merge land or fail together.

Failure modes:
    - If a subclass calls ``session.commit()``, multi-step operations such
      as the bonus payout lose their atomicity.
"""

from abc import ABC
from typing import Generic, TypeVar
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from payroll_kernel.db.base import Base
from payroll_kernel.domain.clock import Clock, SystemClock
from payroll_kernel.exceptions import WorkerNotFoundError
from payroll_kernel.models.worker import Worker

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for all kernel services.

    Guarantees:
        - The service never calls ``session.commit()`` or
          ``session.rollback()``.
        - ``self._clock`` is the only source of "now".
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        """
        Initialize the service.

        Args:
            session: SQLAlchemy session for database operations.
            clock: Time source; defaults to the system clock.
        """
        self.session = session
        self._clock = clock or SystemClock()

    def _lock_worker(self, worker_id: UUID) -> Worker:
        """
        Load the worker row with ``SELECT ... FOR UPDATE``.

        Every payment and ledger write for a worker takes this lock first,
        so same-worker writers are serialized on PostgreSQL.  SQLite ignores
        the clause and serializes writers itself.

        Raises:
            WorkerNotFoundError: No such worker.
        """
        worker = self.session.execute(
            select(Worker).where(Worker.id == worker_id).with_for_update()
        ).scalar_one_or_none()
        if worker is None:
            raise WorkerNotFoundError(str(worker_id))
        return worker

    def _get_worker(self, worker_id: UUID) -> Worker:
        worker = self.session.get(Worker, worker_id)
        if worker is None:
            raise WorkerNotFoundError(str(worker_id))
        return worker
