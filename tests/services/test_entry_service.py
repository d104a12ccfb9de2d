"""
Tests for EntryService.

Invariants tested:
- time >= 0 and 0 <= quality <= 100 for worker and admin values.
- One entry per (profile, worker, day).
- Effective values prefer admin overrides.
- Workers edit only their own entries, and only until approval.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from payroll_kernel.exceptions import (
    DuplicateEntryError,
    EntryAlreadyApprovedError,
    EntryNotFoundError,
    ValidationError,
    WorkerNotFoundError,
)


class TestRecordEntry:
    def test_recorded_unapproved(self, worker, entry_service):
        entry = entry_service.record_entry(worker.id, uuid4(), date(2024, 1, 3), 8, 90)
        assert not entry.admin_approved
        assert entry.effective_time == Decimal("8")
        assert entry.effective_quality == Decimal("90")

    def test_datetime_work_date_is_truncated(self, worker, entry_service):
        entry = entry_service.record_entry(
            worker.id, uuid4(), datetime(2024, 1, 3, 18, tzinfo=timezone.utc), 1, 50
        )
        assert entry.work_date == date(2024, 1, 3)

    def test_duplicate_day(self, worker, entry_service):
        profile_id = uuid4()
        entry_service.record_entry(worker.id, profile_id, date(2024, 1, 3), 8, 90)
        with pytest.raises(DuplicateEntryError):
            entry_service.record_entry(worker.id, profile_id, date(2024, 1, 3), 4, 70)

    def test_other_profile_same_day_is_fine(self, worker, entry_service):
        entry_service.record_entry(worker.id, uuid4(), date(2024, 1, 3), 8, 90)
        entry_service.record_entry(worker.id, uuid4(), date(2024, 1, 3), 2, 60)

    @pytest.mark.parametrize("time,quality", [(-1, 50), (1, -0.01), (1, 100.5)])
    def test_out_of_range(self, worker, entry_service, time, quality):
        with pytest.raises(ValidationError):
            entry_service.record_entry(worker.id, uuid4(), date(2024, 1, 3), time, quality)

    @pytest.mark.parametrize(
        "time,quality,field",
        [("eight", 50, "time"), (8, "NaN", "quality"), ("Infinity", 50, "time")],
    )
    def test_non_numeric_values(self, worker, entry_service, time, quality, field):
        with pytest.raises(ValidationError) as exc_info:
            entry_service.record_entry(worker.id, uuid4(), date(2024, 1, 3), time, quality)
        assert exc_info.value.field == field

    def test_unknown_worker(self, entry_service):
        with pytest.raises(WorkerNotFoundError):
            entry_service.record_entry(uuid4(), uuid4(), date(2024, 1, 3), 8, 90)


class TestVetEntry:
    def test_approve_with_overrides(self, worker, entry_service, test_actor_id, deterministic_clock):
        entry = entry_service.record_entry(worker.id, uuid4(), date(2024, 1, 3), 6, 80)
        vetted = entry_service.vet_entry(
            entry.id, test_actor_id, admin_time=5, admin_quality=85, admin_notes="trimmed"
        )
        assert vetted.admin_approved
        assert vetted.approved_by_id == test_actor_id
        assert vetted.approved_at == deterministic_clock.now_utc()
        assert vetted.effective_time == Decimal("5")
        assert vetted.effective_quality == Decimal("85")
        assert vetted.admin_notes == "trimmed"

    def test_withdraw_approval(self, worker, create_entry, entry_service, test_actor_id):
        entry = create_entry(worker.id, date(2024, 1, 3), 8, 90)
        withdrawn = entry_service.vet_entry(entry.id, test_actor_id, approve=False)
        assert not withdrawn.admin_approved
        assert withdrawn.approved_at is None

    def test_override_out_of_range(self, worker, create_entry, entry_service, test_actor_id):
        entry = create_entry(worker.id, date(2024, 1, 3), 8, 90)
        with pytest.raises(ValidationError):
            entry_service.vet_entry(entry.id, test_actor_id, admin_quality=150)

    def test_unknown_entry(self, entry_service, test_actor_id):
        with pytest.raises(EntryNotFoundError):
            entry_service.vet_entry(uuid4(), test_actor_id)


class TestUpdateEntry:
    def test_worker_corrects_unapproved_entry(self, worker, entry_service):
        entry = entry_service.record_entry(worker.id, uuid4(), date(2024, 1, 3), 8, 90)
        updated = entry_service.update_entry(entry.id, worker.id, time="7.5", notes="left early")
        assert updated.time == Decimal("7.5")
        assert updated.quality == Decimal("90")
        assert updated.notes == "left early"
        assert not updated.admin_approved

    def test_approved_entry_is_locked(self, worker, create_entry, entry_service):
        entry = create_entry(worker.id, date(2024, 1, 3), 8, 90)
        with pytest.raises(EntryAlreadyApprovedError) as exc_info:
            entry_service.update_entry(entry.id, worker.id, time=9)
        assert exc_info.value.code == "ENTRY_ALREADY_APPROVED"
        assert entry_service.get_entry(entry.id).time == Decimal("8")

    def test_withdrawn_approval_unlocks(self, worker, create_entry, entry_service, test_actor_id):
        entry = create_entry(worker.id, date(2024, 1, 3), 8, 90)
        entry_service.vet_entry(entry.id, test_actor_id, approve=False)
        assert entry_service.update_entry(entry.id, worker.id, quality=95).quality == Decimal("95")

    def test_other_workers_entry(self, worker, create_worker, entry_service):
        entry = entry_service.record_entry(worker.id, uuid4(), date(2024, 1, 3), 8, 90)
        with pytest.raises(EntryNotFoundError):
            entry_service.update_entry(entry.id, create_worker().id, time=1)

    def test_unknown_entry(self, worker, entry_service):
        with pytest.raises(EntryNotFoundError):
            entry_service.update_entry(uuid4(), worker.id, notes="x")

    @pytest.mark.parametrize(
        "changes,field",
        [({}, "entry"), ({"time": -1}, "time"), ({"quality": "high"}, "quality")],
    )
    def test_invalid_update(self, worker, entry_service, changes, field):
        entry = entry_service.record_entry(worker.id, uuid4(), date(2024, 1, 3), 8, 90)
        with pytest.raises(ValidationError) as exc_info:
            entry_service.update_entry(entry.id, worker.id, **changes)
        assert exc_info.value.field == field
