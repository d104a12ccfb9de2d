"""
Typed Exception Hierarchy for the Payroll Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers (the HTTP layer, admin scripts, tests) translate kernel failures
into status codes and user-facing messages. Matching on message strings
is fragile, so:
  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (not just a message string)

Example:
    try:
        service.approve_payment(payment_id, actor_id)
    except InvalidPaymentTransitionError as e:
        api_response(400, code=e.code, status=e.current_status)
    except PaymentNotFoundError as e:
        api_response(404, code=e.code, payment=e.payment_id)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    PayrollKernelError (base)
    |
    +-- NotFoundError                      (4xx, never retried)
    |   +-- WorkerNotFoundError
    |   +-- PaymentNotFoundError
    |   +-- BenchmarkNotFoundError
    |   +-- BonusNotFoundError
    |   +-- EntryNotFoundError
    |
    +-- InvalidStateError                  (4xx, retry only after state changes)
    |   +-- InvalidPaymentTransitionError
    |   +-- InvalidBonusTransitionError
    |   +-- NoPendingBonusError
    |   +-- ConcurrentBonusDrainError
    |   +-- EntryAlreadyApprovedError
    |
    +-- ValidationError                    (4xx, malformed input)
        +-- DuplicateEntryError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category    | Code                        | When Raised
------------|-----------------------------|-----------------------------------------
Not found   | WORKER_NOT_FOUND            | Worker ID doesn't exist
            | PAYMENT_NOT_FOUND           | Weekly payment ID doesn't exist
            | BENCHMARK_NOT_FOUND         | Benchmark ID doesn't exist
            | BONUS_NOT_FOUND             | Bonus ID doesn't exist
            | ENTRY_NOT_FOUND             | Entry ID doesn't exist
------------|-----------------------------|-----------------------------------------
State       | INVALID_PAYMENT_TRANSITION  | e.g. approving a paid payment
            | INVALID_BONUS_TRANSITION    | e.g. resetting a merged bonus
            | NO_PENDING_BONUS            | Paying a worker with nothing pending
            | CONCURRENT_BONUS_DRAIN      | Bonus left 'pending' mid-drain
            | ENTRY_ALREADY_APPROVED      | Worker edits an admin-approved entry
------------|-----------------------------|-----------------------------------------
Validation  | VALIDATION_ERROR            | Bad amount/date/range/page input
            | DUPLICATE_ENTRY             | Second entry for profile/worker/day

===============================================================================
DESIGN DECISIONS
===============================================================================

1. WHY INHERIT FROM Exception (not ValueError, etc.)?
   Domain exceptions should be catchable as a group. Inheriting from
   built-in types mixes domain errors with programming errors.

2. WHY code CLASS ATTRIBUTE (not instance)?
   Codes are static per exception type, so PaymentNotFoundError.code works
   without instantiation.

3. WHY NO "side effect failed" EXCEPTION?
   Payment materialization after vetting is best effort. The failure is
   logged with traceback and swallowed; it never crosses the facade.
"""


class PayrollKernelError(Exception):
    """
    Base exception for all payroll kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "PAYROLL_KERNEL_ERROR"


# Not-found exceptions


class NotFoundError(PayrollKernelError):
    """Base exception for a referenced record that does not exist."""

    code: str = "NOT_FOUND"


class WorkerNotFoundError(NotFoundError):
    """Worker with given ID was not found."""

    code: str = "WORKER_NOT_FOUND"

    def __init__(self, worker_id: str):
        self.worker_id = worker_id
        super().__init__(f"Worker not found: {worker_id}")


class PaymentNotFoundError(NotFoundError):
    """Weekly payment with given ID was not found."""

    code: str = "PAYMENT_NOT_FOUND"

    def __init__(self, payment_id: str):
        self.payment_id = payment_id
        super().__init__(f"Payment not found: {payment_id}")


class BenchmarkNotFoundError(NotFoundError):
    """Benchmark with given ID was not found."""

    code: str = "BENCHMARK_NOT_FOUND"

    def __init__(self, benchmark_id: str):
        self.benchmark_id = benchmark_id
        super().__init__(f"Benchmark not found: {benchmark_id}")


class BonusNotFoundError(NotFoundError):
    """Bonus with given ID was not found."""

    code: str = "BONUS_NOT_FOUND"

    def __init__(self, bonus_id: str):
        self.bonus_id = bonus_id
        super().__init__(f"Bonus not found: {bonus_id}")


class EntryNotFoundError(NotFoundError):
    """Entry with given ID was not found."""

    code: str = "ENTRY_NOT_FOUND"

    def __init__(self, entry_id: str):
        self.entry_id = entry_id
        super().__init__(f"Entry not found: {entry_id}")


# Invalid-state exceptions


class InvalidStateError(PayrollKernelError):
    """Base exception for operations rejected by the current record state."""

    code: str = "INVALID_STATE"


class InvalidPaymentTransitionError(InvalidStateError):
    """Payment status transition is not allowed by the lifecycle."""

    code: str = "INVALID_PAYMENT_TRANSITION"

    def __init__(self, payment_id: str, current_status: str, requested_status: str):
        self.payment_id = payment_id
        self.current_status = current_status
        self.requested_status = requested_status
        super().__init__(
            f"Payment {payment_id} cannot move from "
            f"'{current_status}' to '{requested_status}'"
        )


class InvalidBonusTransitionError(InvalidStateError):
    """Bonus status transition is not allowed by the lifecycle."""

    code: str = "INVALID_BONUS_TRANSITION"

    def __init__(self, bonus_id: str, current_status: str, requested_status: str):
        self.bonus_id = bonus_id
        self.current_status = current_status
        self.requested_status = requested_status
        super().__init__(
            f"Bonus {bonus_id} cannot move from "
            f"'{current_status}' to '{requested_status}'"
        )


class NoPendingBonusError(InvalidStateError):
    """Worker has no pending bonuses to pay."""

    code: str = "NO_PENDING_BONUS"

    def __init__(self, worker_id: str):
        self.worker_id = worker_id
        super().__init__(f"No pending bonuses for worker {worker_id}")


class ConcurrentBonusDrainError(InvalidStateError):
    """
    Fewer bonuses were merged than were drained.

    Another transaction merged or reset some of the drained bonuses between
    the read and the guarded update. The caller's transaction must roll back.
    """

    code: str = "CONCURRENT_BONUS_DRAIN"

    def __init__(self, worker_id: str, expected: int, merged: int):
        self.worker_id = worker_id
        self.expected = expected
        self.merged = merged
        super().__init__(
            f"Bonus drain for worker {worker_id} merged {merged} of "
            f"{expected} bonuses"
        )


class EntryAlreadyApprovedError(InvalidStateError):
    """A worker tried to edit an entry an admin has already approved."""

    code: str = "ENTRY_ALREADY_APPROVED"

    def __init__(self, entry_id: str):
        self.entry_id = entry_id
        super().__init__(f"Entry {entry_id} is approved and can no longer be edited")


# Validation exceptions


class ValidationError(PayrollKernelError):
    """Malformed input rejected before it reaches payment state."""

    code: str = "VALIDATION_ERROR"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid {field}: {reason}")


class DuplicateEntryError(ValidationError):
    """An entry already exists for this profile, worker and day."""

    code: str = "DUPLICATE_ENTRY"

    def __init__(self, profile_id: str, worker_id: str, work_date: str):
        self.profile_id = profile_id
        self.worker_id = worker_id
        self.work_date = work_date
        super().__init__(
            "work_date",
            f"entry already exists for profile {profile_id}, "
            f"worker {worker_id} on {work_date}",
        )
