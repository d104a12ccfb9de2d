"""
BenchmarkService -- benchmark CRUD and current-benchmark resolution.

Responsibility:
    Creates, edits, deletes and lists performance benchmarks, and resolves
    the benchmark in force at an instant for payment computation.

Architecture position:
    Kernel > Services -- imperative shell.
    Called by the weekly pay facade for admin CRUD, and by
    WeeklyPaymentService once per payment operation.

Invariants enforced:
    - At most one current benchmark: creating an active benchmark
      deactivates every active benchmark whose range overlaps it.
    - Resolution order: active and covering ``as_of`` (newest start_date
      wins), else the newest active benchmark, else None.  Nothing is
      cached between operations.
    - Flush-only: never commits or rolls back the session.

Failure modes:
    - BenchmarkNotFoundError: unknown benchmark id.
    - ValidationError: non-numeric or non-finite values, negative targets,
      quality target above 100, start after end, decreasing thresholds,
      non-positive bonus rates, unknown earnings mode, unknown threshold
      or rate keys, or an unknown field in an update.
"""

from collections.abc import Mapping
from dataclasses import fields
from datetime import date, datetime, time, timezone
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from payroll_kernel.db.types import ZERO, to_decimal
from payroll_kernel.domain.clock import Clock
from payroll_kernel.domain.dtos import BenchmarkInfo, Page
from payroll_kernel.domain.valuation import BonusRates, EarningsMode, Thresholds
from payroll_kernel.exceptions import BenchmarkNotFoundError, ValidationError
from payroll_kernel.logging_config import get_logger
from payroll_kernel.models.benchmark import Benchmark
from payroll_kernel.selectors.base import DEFAULT_PAGE_LIMIT, normalize_paging
from payroll_kernel.services.base import BaseService

logger = get_logger("services.benchmark")

MAX_NOTES_LENGTH = 500

_UPDATABLE_FIELDS = frozenset({
    "time_benchmark",
    "quality_benchmark",
    "start_date",
    "end_date",
    "pay_per_hour",
    "earnings_mode",
    "thresholds",
    "bonus_rates",
    "is_active",
    "notes",
})


def _start_instant(value: datetime | date) -> datetime:
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    return datetime.combine(value, time.min, tzinfo=timezone.utc)


def _end_instant(value: datetime | date) -> datetime:
    # A bare date covers the whole day
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    return datetime.combine(value, time(23, 59, 59, 999000), tzinfo=timezone.utc)


def _decimal_fields(name: str, cls: type, value: Mapping[str, Any]) -> dict[str, Decimal]:
    unknown = sorted(set(value) - {f.name for f in fields(cls)})
    if unknown:
        raise ValidationError(name, f"unknown keys: {unknown}")
    return {k: to_decimal(v, f"{name}.{k}") for k, v in value.items()}


def _coerce_thresholds(value: Thresholds | Mapping[str, Any] | None) -> Thresholds:
    if value is None:
        return Thresholds()
    if isinstance(value, Thresholds):
        return value
    return Thresholds(**_decimal_fields("thresholds", Thresholds, value))


def _coerce_bonus_rates(value: BonusRates | Mapping[str, Any] | None) -> BonusRates:
    if value is None:
        return BonusRates()
    if isinstance(value, BonusRates):
        return value
    return BonusRates(**_decimal_fields("bonus_rates", BonusRates, value))


class BenchmarkService(BaseService[Benchmark]):
    """
    Service for benchmark lifecycle and resolution.

    Contract:
        Returns frozen ``BenchmarkInfo`` DTOs.  Writes flush within the
        caller's transaction.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session, clock)

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    @staticmethod
    def _validate(benchmark: Benchmark) -> None:
        if benchmark.time_benchmark < ZERO:
            raise ValidationError("time_benchmark", "cannot be negative")
        if not ZERO <= benchmark.quality_benchmark <= Decimal("100"):
            raise ValidationError("quality_benchmark", "must be between 0 and 100")
        if benchmark.start_date > benchmark.end_date:
            raise ValidationError(
                "start_date",
                f"start_date ({benchmark.start_date}) cannot be after "
                f"end_date ({benchmark.end_date})",
            )
        if benchmark.pay_per_hour is not None and benchmark.pay_per_hour < ZERO:
            raise ValidationError("pay_per_hour", "cannot be negative")
        if benchmark.notes is not None and len(benchmark.notes) > MAX_NOTES_LENGTH:
            raise ValidationError("notes", f"cannot exceed {MAX_NOTES_LENGTH} characters")
        # Constructing the policy validates mode, thresholds and rates
        benchmark.policy

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def create_benchmark(
        self,
        time_benchmark: Decimal | int | float | str,
        quality_benchmark: Decimal | int | float | str,
        start_date: datetime | date,
        end_date: datetime | date,
        actor_id: UUID,
        pay_per_hour: Decimal | int | float | str | None = None,
        earnings_mode: EarningsMode | str = EarningsMode.FLAT,
        thresholds: Thresholds | Mapping[str, Any] | None = None,
        bonus_rates: BonusRates | Mapping[str, Any] | None = None,
        is_active: bool = True,
        notes: str | None = None,
    ) -> BenchmarkInfo:
        """
        Create a benchmark.

        Postconditions:
            When ``is_active``, every other active benchmark whose range
            overlaps [start_date, end_date] is deactivated in the same
            flush.

        Raises:
            ValidationError: Any field out of range.
        """
        if pay_per_hour is not None:
            pay_per_hour = to_decimal(pay_per_hour, "pay_per_hour")
        benchmark = Benchmark(
            time_benchmark=to_decimal(time_benchmark, "time_benchmark"),
            quality_benchmark=to_decimal(quality_benchmark, "quality_benchmark"),
            start_date=_start_instant(start_date),
            end_date=_end_instant(end_date),
            pay_per_hour=pay_per_hour,
            earnings_mode=str(getattr(earnings_mode, "value", earnings_mode)),
            is_active=is_active,
            notes=notes,
            created_by_id=actor_id,
        )
        benchmark.thresholds = _coerce_thresholds(thresholds)
        benchmark.bonus_rates = _coerce_bonus_rates(bonus_rates)
        self._validate(benchmark)

        deactivated = 0
        if is_active:
            deactivated = self._deactivate_overlapping(
                benchmark.start_date, benchmark.end_date, actor_id
            )

        self.session.add(benchmark)
        self.session.flush()

        logger.info(
            "benchmark_created",
            extra={
                "benchmark_id": str(benchmark.id),
                "start_date": benchmark.start_date,
                "end_date": benchmark.end_date,
                "earnings_mode": benchmark.earnings_mode,
                "deactivated_overlapping": deactivated,
            },
        )
        return BenchmarkInfo.from_model(benchmark)

    def _deactivate_overlapping(
        self, start: datetime, end: datetime, actor_id: UUID
    ) -> int:
        result = self.session.execute(
            update(Benchmark)
            .where(
                Benchmark.is_active.is_(True),
                Benchmark.start_date <= end,
                Benchmark.end_date >= start,
            )
            .values(is_active=False, updated_by_id=actor_id)
            .execution_options(synchronize_session="evaluate")
        )
        return result.rowcount or 0

    def update_benchmark(
        self,
        benchmark_id: UUID,
        actor_id: UUID,
        changes: Mapping[str, Any],
    ) -> BenchmarkInfo:
        """
        Apply ``changes`` to a benchmark.

        Raises:
            BenchmarkNotFoundError: Unknown id.
            ValidationError: Unknown field, or the result is out of range.
        """
        unknown = set(changes) - _UPDATABLE_FIELDS
        if unknown:
            raise ValidationError("changes", f"unknown fields: {sorted(unknown)}")

        benchmark = self._get_orm(benchmark_id)

        for key, value in changes.items():
            if key == "thresholds":
                benchmark.thresholds = _coerce_thresholds(value)
            elif key == "bonus_rates":
                benchmark.bonus_rates = _coerce_bonus_rates(value)
            elif key == "start_date":
                benchmark.start_date = _start_instant(value)
            elif key == "end_date":
                benchmark.end_date = _end_instant(value)
            elif key == "earnings_mode":
                benchmark.earnings_mode = str(getattr(value, "value", value))
            elif key in ("time_benchmark", "quality_benchmark"):
                setattr(benchmark, key, to_decimal(value, key))
            elif key == "pay_per_hour":
                benchmark.pay_per_hour = to_decimal(value, key) if value is not None else None
            else:
                setattr(benchmark, key, value)

        self._validate(benchmark)
        benchmark.updated_by_id = actor_id
        self.session.flush()

        logger.info(
            "benchmark_updated",
            extra={"benchmark_id": str(benchmark_id), "fields": sorted(changes)},
        )
        return BenchmarkInfo.from_model(benchmark)

    def delete_benchmark(self, benchmark_id: UUID) -> None:
        """
        Delete a benchmark.

        Raises:
            BenchmarkNotFoundError: Unknown id.
        """
        benchmark = self._get_orm(benchmark_id)
        self.session.delete(benchmark)
        self.session.flush()
        logger.info("benchmark_deleted", extra={"benchmark_id": str(benchmark_id)})

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def _get_orm(self, benchmark_id: UUID) -> Benchmark:
        benchmark = self.session.get(Benchmark, benchmark_id)
        if benchmark is None:
            raise BenchmarkNotFoundError(str(benchmark_id))
        return benchmark

    def get_benchmark(self, benchmark_id: UUID) -> BenchmarkInfo:
        return BenchmarkInfo.from_model(self._get_orm(benchmark_id))

    def list_benchmarks(
        self,
        active: bool | None = None,
        page: int = 1,
        limit: int = DEFAULT_PAGE_LIMIT,
    ) -> Page[BenchmarkInfo]:
        """Benchmarks ordered by start_date descending."""
        page, limit = normalize_paging(page, limit)
        conditions = []
        if active is not None:
            conditions.append(Benchmark.is_active.is_(active))

        total = self.session.scalar(
            select(func.count(Benchmark.id)).where(*conditions)
        ) or 0
        rows = self.session.scalars(
            select(Benchmark)
            .where(*conditions)
            .order_by(Benchmark.start_date.desc(), Benchmark.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        ).all()
        return Page.build([BenchmarkInfo.from_model(b) for b in rows], total, page, limit)

    def get_current(self, as_of: datetime | None = None) -> BenchmarkInfo | None:
        """Active benchmark covering ``as_of``; the newest start_date wins."""
        now = as_of or self._clock.now_utc()
        benchmark = self.session.scalars(
            select(Benchmark)
            .where(
                Benchmark.is_active.is_(True),
                Benchmark.start_date <= now,
                Benchmark.end_date >= now,
            )
            .order_by(Benchmark.start_date.desc(), Benchmark.created_at.desc())
            .limit(1)
        ).first()
        return BenchmarkInfo.from_model(benchmark) if benchmark is not None else None

    def get_latest(self) -> BenchmarkInfo | None:
        """Newest active benchmark, current or not."""
        benchmark = self.session.scalars(
            select(Benchmark)
            .where(Benchmark.is_active.is_(True))
            .order_by(Benchmark.start_date.desc(), Benchmark.created_at.desc())
            .limit(1)
        ).first()
        return BenchmarkInfo.from_model(benchmark) if benchmark is not None else None

    def resolve_current(self, as_of: datetime | None = None) -> BenchmarkInfo | None:
        """Current benchmark, else the latest active one, else None."""
        benchmark = self.get_current(as_of)
        if benchmark is None:
            benchmark = self.get_latest()
        logger.debug(
            "benchmark_resolved",
            extra={"benchmark_id": str(benchmark.id) if benchmark else None},
        )
        return benchmark
