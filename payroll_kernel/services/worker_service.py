"""
WorkerService -- the slice of worker administration payroll depends on.

Responsibility:
    Registers workers, changes their pay-week start day and activation,
    and reads worker snapshots.  Authentication and profile management
    live outside this service.

Architecture position:
    Kernel > Services -- imperative shell.  Flush-only.

Invariants enforced:
    - week_start_day is 0..6.  Changing it affects only weeks resolved
      afterwards; existing payment records keep their snapshot.
    - Emails are unique (case-insensitive: stored lower-cased).

Failure modes:
    - WorkerNotFoundError: unknown worker id.
    - ValidationError: bad week start day, empty name, malformed or
      duplicate email.
"""

from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from payroll_kernel.domain.clock import Clock
from payroll_kernel.domain.dtos import WorkerInfo
from payroll_kernel.domain.week import validate_week_start_day
from payroll_kernel.exceptions import ValidationError
from payroll_kernel.logging_config import get_logger
from payroll_kernel.models.worker import DEFAULT_WEEK_START_DAY, Worker
from payroll_kernel.services.base import BaseService

logger = get_logger("services.worker")


class WorkerService(BaseService[Worker]):
    """Create and adjust workers; returns ``WorkerInfo`` DTOs."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        default_week_start_day: int = DEFAULT_WEEK_START_DAY,
    ):
        super().__init__(session, clock)
        self._default_week_start_day = validate_week_start_day(default_week_start_day)

    def create_worker(
        self,
        name: str,
        email: str,
        actor_id: UUID,
        week_start_day: int | None = None,
    ) -> WorkerInfo:
        if not name or not name.strip():
            raise ValidationError("name", "cannot be empty")
        normalized = (email or "").strip().lower()
        if "@" not in normalized:
            raise ValidationError("email", f"not an email address: {email!r}")
        day = validate_week_start_day(
            self._default_week_start_day if week_start_day is None else week_start_day
        )

        existing = self.session.scalar(
            select(func.count(Worker.id)).where(Worker.email == normalized)
        )
        if existing:
            raise ValidationError("email", f"already registered: {normalized}")

        worker = Worker(
            name=name.strip(),
            email=normalized,
            week_start_day=day,
            is_active=True,
            created_by_id=actor_id,
        )
        self.session.add(worker)
        self.session.flush()

        logger.info(
            "worker_created",
            extra={"worker_id": str(worker.id), "week_start_day": day},
        )
        return WorkerInfo.from_model(worker)

    def get_worker(self, worker_id: UUID) -> WorkerInfo:
        return WorkerInfo.from_model(self._get_worker(worker_id))

    def set_week_start_day(
        self, worker_id: UUID, week_start_day: int, actor_id: UUID
    ) -> WorkerInfo:
        day = validate_week_start_day(week_start_day)
        worker = self._lock_worker(worker_id)
        previous = worker.week_start_day
        worker.week_start_day = day
        worker.updated_by_id = actor_id
        self.session.flush()
        logger.info(
            "worker_week_start_day_changed",
            extra={"worker_id": str(worker_id), "from": previous, "to": day},
        )
        return WorkerInfo.from_model(worker)

    def set_active(self, worker_id: UUID, is_active: bool, actor_id: UUID) -> WorkerInfo:
        worker = self._lock_worker(worker_id)
        worker.is_active = is_active
        worker.updated_by_id = actor_id
        self.session.flush()
        logger.info(
            "worker_activation_changed",
            extra={"worker_id": str(worker_id), "is_active": is_active},
        )
        return WorkerInfo.from_model(worker)

    def active_worker_ids(self) -> list[UUID]:
        return list(
            self.session.scalars(
                select(Worker.id).where(Worker.is_active.is_(True)).order_by(Worker.email)
            )
        )
