"""
BonusLedgerService -- the append-only ledger of bonuses owed to workers.

Responsibility:
    Records ad-hoc bonuses, cancels pending ones, and drains a worker's
    pending bonuses into a weekly payment at payout time.  Keeps the
    worker's ``extra_bonus`` / ``extra_bonus_reason`` cache in step with the
    ledger.

Architecture position:
    Kernel > Services -- imperative shell.  Flush-only.
    Called by the weekly pay facade (add / reset / list) and by
    WeeklyPaymentService (drain / mark merged) inside the payout
    transaction.

Invariants enforced:
    - The pending sum is the amount owed.  The worker cache is rebuilt from
      that sum after every ledger write and is never read back as truth.
    - Each pending bonus is merged at most once.  ``mark_merged`` updates
      with ``WHERE status = 'pending'`` and compares the row count with the
      number drained; a shortfall means another transaction got there first
      and the caller must roll back.
    - merged and reset are terminal.

Failure modes:
    - WorkerNotFoundError: unknown worker.
    - BonusNotFoundError: unknown bonus id.
    - ValidationError: amount <= 0.
    - InvalidBonusTransitionError: resetting a bonus that left pending.
    - ConcurrentBonusDrainError: guarded merge touched fewer rows than drained.
"""

from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from payroll_kernel.db.types import ZERO, round_money, to_decimal
from payroll_kernel.domain.clock import Clock
from payroll_kernel.domain.dtos import BonusInfo
from payroll_kernel.domain.payment_lifecycle import BonusStatus, validate_bonus_transition
from payroll_kernel.exceptions import (
    BonusNotFoundError,
    ConcurrentBonusDrainError,
    ValidationError,
)
from payroll_kernel.logging_config import get_logger
from payroll_kernel.models.bonus import DEFAULT_BONUS_REASON, Bonus
from payroll_kernel.models.worker import Worker
from payroll_kernel.services.base import BaseService

logger = get_logger("services.bonus_ledger")

REASON_SEPARATOR = "; "


@dataclass(frozen=True)
class PendingDrain:
    """Snapshot of a worker's pending bonuses taken under the worker lock."""

    user_id: UUID
    bonus_ids: tuple[UUID, ...]
    total: Decimal
    reason: str

    @property
    def count(self) -> int:
        return len(self.bonus_ids)

    @property
    def is_empty(self) -> bool:
        return not self.bonus_ids


class BonusLedgerService(BaseService[Bonus]):
    """
    Service for the bonus ledger.

    Contract:
        Callers that drain must hold the worker row lock (``_lock_worker``)
        for the whole drain / pay / merge sequence and run it in one
        transaction.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session, clock)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def add_bonus(
        self,
        user_id: UUID,
        amount: Decimal | int | float | str,
        actor_id: UUID,
        reason: str | None = None,
    ) -> BonusInfo:
        """
        Record a pending bonus for a worker.

        Raises:
            WorkerNotFoundError: Unknown worker.
            ValidationError: amount <= 0.
        """
        value = to_decimal(amount, "amount")
        if value <= ZERO:
            raise ValidationError("amount", f"must be positive, got {value}")

        worker = self._lock_worker(user_id)
        bonus = Bonus(
            user_id=user_id,
            amount=round_money(value),
            reason=(reason or "").strip() or DEFAULT_BONUS_REASON,
            status=BonusStatus.PENDING.value,
            created_by_id=actor_id,
            created_at=self._clock.now_utc(),
        )
        self.session.add(bonus)
        self.session.flush()
        self.rebuild_worker_cache(worker)

        logger.info(
            "bonus_added",
            extra={
                "bonus_id": str(bonus.id),
                "worker_id": str(user_id),
                "amount": bonus.amount,
                "pending_total": worker.extra_bonus,
            },
        )
        return BonusInfo.from_model(bonus)

    def reset_pending(self, user_id: UUID, actor_id: UUID) -> int:
        """
        Cancel every pending bonus of a worker.

        Returns:
            Number of bonuses moved to ``reset``.
        """
        worker = self._lock_worker(user_id)
        result = self.session.execute(
            update(Bonus)
            .where(
                Bonus.user_id == user_id,
                Bonus.status == BonusStatus.PENDING.value,
            )
            .values(
                status=BonusStatus.RESET.value,
                reset_at=self._clock.now_utc(),
                updated_by_id=actor_id,
            )
            .execution_options(synchronize_session="evaluate")
        )
        count = result.rowcount or 0
        self.rebuild_worker_cache(worker)

        logger.info(
            "pending_bonuses_reset",
            extra={"worker_id": str(user_id), "reset_count": count},
        )
        return count

    def reset_bonus(self, bonus_id: UUID, actor_id: UUID) -> BonusInfo:
        """
        Cancel one pending bonus.

        Raises:
            BonusNotFoundError: Unknown bonus.
            InvalidBonusTransitionError: Bonus is already merged or reset.
        """
        bonus = self.session.get(Bonus, bonus_id)
        if bonus is None:
            raise BonusNotFoundError(str(bonus_id))
        worker = self._lock_worker(bonus.user_id)
        self.session.refresh(bonus)

        validate_bonus_transition(bonus_id, bonus.status, BonusStatus.RESET)
        bonus.status = BonusStatus.RESET.value
        bonus.reset_at = self._clock.now_utc()
        bonus.updated_by_id = actor_id
        self.session.flush()
        self.rebuild_worker_cache(worker)

        logger.info(
            "bonus_reset",
            extra={"bonus_id": str(bonus_id), "worker_id": str(bonus.user_id)},
        )
        return BonusInfo.from_model(bonus)

    def drain_pending(self, user_id: UUID) -> PendingDrain:
        """
        Snapshot the worker's pending bonuses, oldest first.

        Nothing changes state here; ``mark_merged`` completes the drain.
        """
        bonuses = self._pending_orm(user_id)
        total = sum((b.amount for b in bonuses), ZERO)
        return PendingDrain(
            user_id=user_id,
            bonus_ids=tuple(b.id for b in bonuses),
            total=round_money(total),
            reason=REASON_SEPARATOR.join(b.reason for b in bonuses),
        )

    def mark_merged(self, drain: PendingDrain, payment_id: UUID, actor_id: UUID) -> int:
        """
        Move drained bonuses from pending to merged, linking the payment.

        Raises:
            ConcurrentBonusDrainError: Fewer rows were still pending than
                were drained.
        """
        if drain.is_empty:
            return 0

        result = self.session.execute(
            update(Bonus)
            .where(
                Bonus.id.in_(drain.bonus_ids),
                Bonus.status == BonusStatus.PENDING.value,
            )
            .values(
                status=BonusStatus.MERGED.value,
                merged_into_payment_id=payment_id,
                merged_at=self._clock.now_utc(),
                updated_by_id=actor_id,
            )
            .execution_options(synchronize_session="evaluate")
        )
        merged = result.rowcount or 0
        if merged != drain.count:
            logger.error(
                "bonus_drain_conflict",
                extra={
                    "worker_id": str(drain.user_id),
                    "expected": drain.count,
                    "merged": merged,
                },
            )
            raise ConcurrentBonusDrainError(str(drain.user_id), drain.count, merged)

        logger.info(
            "bonuses_merged",
            extra={
                "worker_id": str(drain.user_id),
                "payment_id": str(payment_id),
                "bonus_count": merged,
                "amount": drain.total,
            },
        )
        return merged

    def rebuild_worker_cache(self, worker: Worker) -> None:
        """Recompute the worker's extra_bonus cache from the pending ledger."""
        drain = self.drain_pending(worker.id)
        worker.extra_bonus = drain.total
        worker.extra_bonus_reason = drain.reason or None
        self.session.flush()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def _pending_orm(self, user_id: UUID) -> list[Bonus]:
        return list(
            self.session.scalars(
                select(Bonus)
                .where(
                    Bonus.user_id == user_id,
                    Bonus.status == BonusStatus.PENDING.value,
                )
                .order_by(Bonus.created_at, Bonus.id)
            )
        )

    def pending_bonuses(self, user_id: UUID) -> list[BonusInfo]:
        return [BonusInfo.from_model(b) for b in self._pending_orm(user_id)]

    def pending_total(self, user_id: UUID) -> Decimal:
        return self.drain_pending(user_id).total
