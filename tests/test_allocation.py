from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest

from campus_ledger.domain.errors import (
    CapacityExceededError,
    DuplicateAllocationError,
    NotFoundError,
    StoreUnavailableError,
    ValidationError,
)
from campus_ledger.domain.models import AllocationStatus, IssueStatus
from campus_ledger.repository.data_repository import (
    BOOK_ISSUES,
    ROOM_ALLOCATIONS,
    ConstraintViolationError,
    DataRepository,
)
from campus_ledger.services.allocation_service import BOOK_POOL, ROOM_POOL, CapacityAllocator
from campus_ledger.utils.config import get_settings


TENANT = "CAMPUS_A"


class SteppingClock:
    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta) -> None:
        self.now = self.now + timedelta(**delta)


def _build_test_settings(tmp_path, filename: str = "allocation.db", **overrides):
    get_settings.cache_clear()
    return replace(
        get_settings(),
        database_path=tmp_path / filename,
        fine_rate_per_day=5.0,
        default_loan_days=14,
        max_loan_days=60,
        **overrides,
    )


def _build_allocator(tmp_path, clock=None) -> tuple[CapacityAllocator, DataRepository]:
    settings = _build_test_settings(tmp_path)
    repository = DataRepository(settings)
    repository.initialize_database()
    return CapacityAllocator(repository=repository, settings=settings, clock=clock), repository


def _register_room(allocator: CapacityAllocator, capacity: int, tenant_id: str = TENANT):
    return allocator.register_room(
        tenant_id=tenant_id,
        room_number="101",
        hostel_name="North Hall",
        room_type="double",
        floor=1,
        capacity=capacity,
    )


def _register_book(allocator: CapacityAllocator, copies: int, tenant_id: str = TENANT):
    return allocator.register_book(
        tenant_id=tenant_id,
        isbn="978-0262033848",
        title="Introduction to Algorithms",
        author="Cormen et al.",
        category="Computing",
        total_copies=copies,
    )


def test_allocate_and_release_room_moves_counter(tmp_path) -> None:
    allocator, _ = _build_allocator(tmp_path)
    room = _register_room(allocator, capacity=2)

    allocation = allocator.allocate_room(room.room_id, "S-1", TENANT)
    assert allocation.status is AllocationStatus.ACTIVE
    assert allocator.get_pool(ROOM_POOL, room.room_id, TENANT).occupied == 1

    released = allocator.release_room(allocation.allocation_id, TENANT)
    assert released.status is AllocationStatus.RELEASED
    assert released.released_at is not None
    assert allocator.list_rooms(TENANT)[0].occupied == 0


def test_concurrent_allocations_never_exceed_capacity(tmp_path) -> None:
    allocator, repository = _build_allocator(tmp_path)
    room = _register_room(allocator, capacity=3)

    def attempt(index: int) -> str:
        try:
            allocator.allocate_room(room.room_id, f"S-{index}", TENANT)
            return "ok"
        except CapacityExceededError:
            return "full"

    with ThreadPoolExecutor(max_workers=8) as pool:
        outcomes = list(pool.map(attempt, range(10)))

    assert outcomes.count("ok") == 3
    assert outcomes.count("full") == 7
    assert allocator.list_rooms(TENANT)[0].occupied == 3
    assert repository.count_rows(ROOM_ALLOCATIONS, TENANT) == 3


def test_full_room_rejects_then_accepts_after_release(tmp_path) -> None:
    allocator, _ = _build_allocator(tmp_path)
    room = _register_room(allocator, capacity=1)
    first = allocator.allocate_room(room.room_id, "S-1", TENANT)

    with pytest.raises(CapacityExceededError):
        allocator.allocate_room(room.room_id, "S-2", TENANT)

    allocator.release_room(first.allocation_id, TENANT)
    second = allocator.allocate_room(room.room_id, "S-2", TENANT)
    assert second.student_id == "S-2"


def test_duplicate_active_allocation_rejected(tmp_path) -> None:
    allocator, _ = _build_allocator(tmp_path)
    room = _register_room(allocator, capacity=3)
    allocator.allocate_room(room.room_id, "S-1", TENANT)

    with pytest.raises(DuplicateAllocationError):
        allocator.allocate_room(room.room_id, "S-1", TENANT)
    assert allocator.list_rooms(TENANT)[0].occupied == 1


def test_release_is_idempotent(tmp_path) -> None:
    allocator, _ = _build_allocator(tmp_path)
    room = _register_room(allocator, capacity=2)
    allocator.allocate_room(room.room_id, "S-1", TENANT)
    allocation = allocator.allocate_room(room.room_id, "S-2", TENANT)

    allocator.release_room(allocation.allocation_id, TENANT)
    again = allocator.release_room(allocation.allocation_id, TENANT)

    assert again.status is AllocationStatus.RELEASED
    assert allocator.list_rooms(TENANT)[0].occupied == 1


def test_unknown_room_and_malformed_id(tmp_path) -> None:
    allocator, _ = _build_allocator(tmp_path)
    with pytest.raises(NotFoundError):
        allocator.allocate_room("0" * 32, "S-1", TENANT)
    with pytest.raises(ValidationError):
        allocator.allocate_room("room-101", "S-1", TENANT)
    with pytest.raises(ValidationError):
        allocator.allocate_room("0" * 32, "   ", TENANT)


def test_book_returned_on_time_has_no_fine(tmp_path) -> None:
    clock = SteppingClock(datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc))
    allocator, _ = _build_allocator(tmp_path, clock=clock)
    book = _register_book(allocator, copies=2)

    issue = allocator.issue_book(book.book_id, "S-1", TENANT)
    assert issue.due_at == clock.now + timedelta(days=14)
    assert allocator.list_books(TENANT)[0].available_copies == 1

    clock.advance(days=14)
    returned = allocator.return_book(issue.issue_id, TENANT)
    assert returned.status is IssueStatus.RETURNED
    assert returned.fine_amount == 0.0
    assert allocator.list_books(TENANT)[0].available_copies == 2


def test_overdue_return_records_fine(tmp_path) -> None:
    clock = SteppingClock(datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc))
    allocator, repository = _build_allocator(tmp_path, clock=clock)
    book = _register_book(allocator, copies=1)

    issue = allocator.issue_book(book.book_id, "S-1", TENANT, loan_days=7)
    clock.advance(days=10, hours=5)
    returned = allocator.return_book(issue.issue_id, TENANT)

    assert returned.status is IssueStatus.RETURNED_WITH_FINE
    assert returned.fine_amount == 15.0
    assert returned.returned_at == clock.now

    clock.advance(days=30)
    repeated = allocator.return_book(issue.issue_id, TENANT)
    assert repeated.fine_amount == 15.0
    assert repository.count_rows(BOOK_ISSUES, TENANT) == 1
    assert allocator.list_books(TENANT)[0].available_copies == 1


def test_return_late_by_partial_day_is_plain_returned_without_fine(tmp_path) -> None:
    clock = SteppingClock(datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc))
    allocator, _ = _build_allocator(tmp_path, clock=clock)
    book = _register_book(allocator, copies=1)

    issue = allocator.issue_book(book.book_id, "S-1", TENANT)
    clock.advance(days=14, hours=5)
    returned = allocator.return_book(issue.issue_id, TENANT)

    assert returned.returned_at > issue.due_at
    assert returned.status is IssueStatus.RETURNED
    assert returned.fine_amount == 0.0


def _fail_inserts_into(monkeypatch, repository: DataRepository, table: str) -> None:
    original_insert = repository.insert

    def insert(conn, target_table, record):
        if target_table == table:
            raise ConstraintViolationError(target_table, "UNIQUE constraint failed")
        return original_insert(conn, target_table, record)

    monkeypatch.setattr(repository, "insert", insert)


def test_rejected_room_allocation_insert_rolls_back_counter(tmp_path, monkeypatch) -> None:
    allocator, repository = _build_allocator(tmp_path)
    room = _register_room(allocator, capacity=2)
    _fail_inserts_into(monkeypatch, repository, ROOM_ALLOCATIONS)

    with pytest.raises(DuplicateAllocationError):
        allocator.allocate_room(room.room_id, "S-1", TENANT)

    monkeypatch.undo()
    assert allocator.get_pool(ROOM_POOL, room.room_id, TENANT).occupied == 0
    assert repository.count_rows(ROOM_ALLOCATIONS, TENANT) == 0


def test_rejected_book_issue_insert_rolls_back_counter(tmp_path, monkeypatch) -> None:
    allocator, repository = _build_allocator(tmp_path)
    book = _register_book(allocator, copies=1)
    _fail_inserts_into(monkeypatch, repository, BOOK_ISSUES)

    with pytest.raises(DuplicateAllocationError):
        allocator.issue_book(book.book_id, "S-1", TENANT)

    monkeypatch.undo()
    stored = allocator.get_pool(BOOK_POOL, book.book_id, TENANT)
    assert stored.issued_copies == 0
    assert stored.available_copies == 1
    assert repository.count_rows(BOOK_ISSUES, TENANT) == 0


def test_counter_underflow_on_release_rolls_back_status(tmp_path, monkeypatch) -> None:
    allocator, repository = _build_allocator(tmp_path)
    room = _register_room(allocator, capacity=2)
    allocation = allocator.allocate_room(room.room_id, "S-1", TENANT)
    monkeypatch.setattr(repository, "decrement_used", lambda *args, **kwargs: False)

    with pytest.raises(RuntimeError):
        allocator.release_room(allocation.allocation_id, TENANT)

    monkeypatch.undo()
    assert allocator.get_pool(ROOM_POOL, room.room_id, TENANT).occupied == 1
    assert allocator.list_room_allocations(TENANT)[0].status is AllocationStatus.ACTIVE


def test_loan_days_outside_bounds_rejected(tmp_path) -> None:
    allocator, _ = _build_allocator(tmp_path)
    book = _register_book(allocator, copies=1)
    with pytest.raises(ValidationError):
        allocator.issue_book(book.book_id, "S-1", TENANT, loan_days=0)
    with pytest.raises(ValidationError):
        allocator.issue_book(book.book_id, "S-1", TENANT, loan_days=61)
    assert allocator.list_books(TENANT)[0].available_copies == 1


def test_locked_store_reports_unavailable(tmp_path) -> None:
    allocator, repository = _build_allocator(tmp_path)
    room = _register_room(allocator, capacity=1)

    impatient_settings = _build_test_settings(tmp_path, store_timeout_seconds=0.05)
    impatient = CapacityAllocator(
        repository=DataRepository(impatient_settings),
        settings=impatient_settings,
    )

    with repository.transaction():
        with pytest.raises(StoreUnavailableError):
            impatient.allocate_room(room.room_id, "S-1", TENANT)

    assert allocator.list_rooms(TENANT)[0].occupied == 0
