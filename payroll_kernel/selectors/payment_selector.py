"""
Module: payroll_kernel.selectors.payment_selector
Responsibility: Read-side queries over weekly payments and ledger bonuses:
    filtered, paginated listings and single-record lookups.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Listings are ordered by week_start descending (newest week first),
      ties broken by creation time then id so pages are stable.
    - limit is clamped to MAX_PAGE_LIMIT; page and limit must be >= 1.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from payroll_kernel.domain.dtos import BonusInfo, Page, PaymentFilter, WeeklyPaymentInfo
from payroll_kernel.domain.payment_lifecycle import BonusStatus, parse_bonus_status
from payroll_kernel.models.bonus import Bonus
from payroll_kernel.models.weekly_payment import WeeklyPayment
from payroll_kernel.selectors.base import (
    DEFAULT_PAGE_LIMIT,
    MAX_PAGE_LIMIT,
    BaseSelector,
    normalize_paging,
)


class PaymentSelector(BaseSelector[WeeklyPayment]):
    """
    Selector for weekly payment and bonus listings.

    Guarantees:
        - Read-only: No mutations are performed.
        - Returns WeeklyPaymentInfo / BonusInfo DTOs.
    """

    def __init__(self, session: Session, max_limit: int = MAX_PAGE_LIMIT):
        super().__init__(session)
        self.max_limit = max_limit

    def get_payment(self, payment_id: UUID) -> WeeklyPaymentInfo | None:
        payment = self.session.get(WeeklyPayment, payment_id)
        return WeeklyPaymentInfo.from_model(payment) if payment is not None else None

    def list_payments(
        self,
        payment_filter: PaymentFilter | None = None,
        page: int = 1,
        limit: int = DEFAULT_PAGE_LIMIT,
    ) -> Page[WeeklyPaymentInfo]:
        """
        One page of payments matching ``payment_filter``.

        Raises:
            ValidationError: page < 1 or limit < 1.
        """
        page, limit = normalize_paging(page, limit, self.max_limit)
        f = payment_filter or PaymentFilter()

        conditions = []
        if f.user_id is not None:
            conditions.append(WeeklyPayment.user_id == f.user_id)
        if f.status is not None:
            conditions.append(WeeklyPayment.status == str(getattr(f.status, "value", f.status)))
        if f.payment_type is not None:
            conditions.append(
                WeeklyPayment.payment_type == str(getattr(f.payment_type, "value", f.payment_type))
            )
        if f.paid is not None:
            conditions.append(WeeklyPayment.paid.is_(f.paid))
        if f.year is not None:
            conditions.append(WeeklyPayment.year == f.year)
        if f.week_number is not None:
            conditions.append(WeeklyPayment.week_number == f.week_number)
        if f.week_start_from is not None:
            conditions.append(WeeklyPayment.week_start >= f.week_start_from)
        if f.week_start_to is not None:
            conditions.append(WeeklyPayment.week_start <= f.week_start_to)

        total = self.session.scalar(
            select(func.count(WeeklyPayment.id)).where(*conditions)
        ) or 0

        rows = self.session.scalars(
            select(WeeklyPayment)
            .where(*conditions)
            .order_by(
                WeeklyPayment.week_start.desc(),
                WeeklyPayment.created_at.desc(),
                WeeklyPayment.id,
            )
            .offset((page - 1) * limit)
            .limit(limit)
        ).all()

        return Page.build(
            [WeeklyPaymentInfo.from_model(p) for p in rows], total, page, limit
        )

    def list_bonuses(
        self,
        user_id: UUID | None = None,
        status: BonusStatus | str | None = None,
        page: int = 1,
        limit: int = DEFAULT_PAGE_LIMIT,
    ) -> Page[BonusInfo]:
        """One page of ledger bonuses, newest first."""
        page, limit = normalize_paging(page, limit, self.max_limit)

        conditions = []
        if user_id is not None:
            conditions.append(Bonus.user_id == user_id)
        if status is not None:
            conditions.append(Bonus.status == parse_bonus_status(status).value)

        total = self.session.scalar(select(func.count(Bonus.id)).where(*conditions)) or 0
        rows = self.session.scalars(
            select(Bonus)
            .where(*conditions)
            .order_by(Bonus.created_at.desc(), Bonus.id)
            .offset((page - 1) * limit)
            .limit(limit)
        ).all()
        return Page.build([BonusInfo.from_model(b) for b in rows], total, page, limit)

    def pending_bonus_total(self, user_id: UUID) -> Decimal:
        """Sum of the worker's pending bonuses (zero when none)."""
        total = self.session.scalar(
            select(func.coalesce(func.sum(Bonus.amount), 0)).where(
                Bonus.user_id == user_id,
                Bonus.status == BonusStatus.PENDING.value,
            )
        )
        return Decimal(str(total or 0))
