"""Capacity-bounded allocation of hostel rooms and library books."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Optional

from campus_ledger.domain.constraints import (
    BOOK_ISSUE_GRAPH,
    ROOM_ALLOCATION_GRAPH,
    LedgerConfig,
    TransitionGraph,
    check_transition,
    validate_ledger_config,
)
from campus_ledger.domain.errors import (
    CapacityExceededError,
    DuplicateAllocationError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from campus_ledger.domain.models import (
    ROOM_TYPES,
    AllocationStatus,
    Book,
    BookIssue,
    IssueStatus,
    Room,
    RoomAllocation,
)
from campus_ledger.domain.validation import (
    require_choice,
    require_identifier,
    require_int,
    require_text,
)
from campus_ledger.repository.data_repository import (
    BOOK_ISSUES,
    BOOKS,
    ROOM_ALLOCATIONS,
    ROOMS,
    ConstraintViolationError,
    DataRepository,
    new_record_id,
)
from campus_ledger.services.calculator import compute_fine
from campus_ledger.utils.clock import Clock, utc_now
from campus_ledger.utils.config import Settings, get_settings
from campus_ledger.utils.logger import get_logger


logger = get_logger(__name__)


@dataclass(frozen=True)
class PoolKind:
    """Binds a pool table to the table of claims made against it."""

    name: str
    pool_table: str
    allocation_table: str
    pool_column: str
    active_status: str
    graph: TransitionGraph


ROOM_POOL = PoolKind(
    name="room",
    pool_table=ROOMS,
    allocation_table=ROOM_ALLOCATIONS,
    pool_column="room_id",
    active_status=AllocationStatus.ACTIVE.value,
    graph=ROOM_ALLOCATION_GRAPH,
)

BOOK_POOL = PoolKind(
    name="book",
    pool_table=BOOKS,
    allocation_table=BOOK_ISSUES,
    pool_column="book_id",
    active_status=IssueStatus.ISSUED.value,
    graph=BOOK_ISSUE_GRAPH,
)

POOL_KINDS = {kind.name: kind for kind in (ROOM_POOL, BOOK_POOL)}


def get_pool_kind(name: str) -> PoolKind:
    try:
        return POOL_KINDS[name]
    except KeyError as exc:
        raise ValidationError(f"Unknown pool kind: {name}") from exc


class CapacityAllocator:
    """Allocates and releases units of rooms and books.

    The counter change and the allocation record change are always written in
    the same store transaction, so ``used`` can never drift from the number of
    open claims and can never exceed ``capacity``.
    """

    def __init__(
        self,
        repository: Optional[DataRepository] = None,
        settings: Optional[Settings] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository or DataRepository(self._settings)
        self._clock = clock or utc_now
        self._config = LedgerConfig(
            fine_rate_per_day=self._settings.fine_rate_per_day,
            default_loan_days=self._settings.default_loan_days,
            max_loan_days=self._settings.max_loan_days,
        )
        validate_ledger_config(self._config)

    @property
    def config(self) -> LedgerConfig:
        return self._config

    # --- pool registration ------------------------------------------------

    def register_room(
        self,
        *,
        tenant_id: str,
        room_number: str,
        hostel_name: str,
        room_type: str,
        floor: int,
        capacity: int,
    ) -> Room:
        room = Room(
            room_id=new_record_id(),
            tenant_id=require_text(tenant_id, "tenant_id"),
            room_number=require_text(room_number, "room_number"),
            hostel_name=require_text(hostel_name, "hostel_name"),
            room_type=require_choice(room_type, "room_type", ROOM_TYPES),
            floor=require_int(floor, "floor"),
            capacity=require_int(capacity, "capacity", minimum=1),
            occupied=0,
            created_at=self._clock(),
        )
        with self._repository.transaction() as conn:
            self._repository.insert(conn, ROOMS, room)
        logger.info("Registered room %s for tenant %s", room.room_id, room.tenant_id)
        return room

    def register_book(
        self,
        *,
        tenant_id: str,
        isbn: str,
        title: str,
        author: str,
        category: str,
        total_copies: int,
    ) -> Book:
        book = Book(
            book_id=new_record_id(),
            tenant_id=require_text(tenant_id, "tenant_id"),
            isbn=require_text(isbn, "isbn", max_length=32),
            title=require_text(title, "title"),
            author=require_text(author, "author"),
            category=require_text(category, "category"),
            total_copies=require_int(total_copies, "total_copies", minimum=1),
            issued_copies=0,
            created_at=self._clock(),
        )
        with self._repository.transaction() as conn:
            self._repository.insert(conn, BOOKS, book)
        logger.info("Registered book %s for tenant %s", book.book_id, book.tenant_id)
        return book

    # --- generic allocate / release --------------------------------------

    def allocate(
        self,
        kind: PoolKind,
        pool_id: str,
        subject_id: str,
        tenant_id: str,
        build_record: Callable[[Any, datetime], Any],
    ) -> Any:
        """Claim one unit of ``pool_id`` for ``subject_id``.

        Fails NotFoundError for an absent or foreign pool, DuplicateAllocationError
        when the subject already holds an open claim on it and CapacityExceededError
        when ``used == capacity``.
        """
        pool_id = require_identifier(pool_id, f"{kind.name}_id")
        subject_id = require_text(subject_id, "student_id")
        tenant_id = require_text(tenant_id, "tenant_id")
        now = self._clock()

        with self._repository.transaction() as conn:
            pool = self._repository.fetch_by_id(conn, kind.pool_table, pool_id, tenant_id)
            if pool is None:
                raise NotFoundError(f"{kind.name.capitalize()} {pool_id} not found")

            existing = self._repository.find_active_allocation(
                conn,
                kind.allocation_table,
                kind.pool_column,
                pool_id,
                subject_id,
                tenant_id,
                kind.active_status,
            )
            if existing is not None:
                raise DuplicateAllocationError(
                    f"Student {subject_id} already holds {kind.name} {pool_id}"
                )

            if not self._repository.increment_used(conn, kind.pool_table, pool_id, tenant_id):
                raise CapacityExceededError(f"{kind.name.capitalize()} {pool_id} is full")

            record = build_record(pool, now)
            try:
                self._repository.insert(conn, kind.allocation_table, record)
            except ConstraintViolationError as exc:
                raise DuplicateAllocationError(
                    f"Student {subject_id} already holds {kind.name} {pool_id}"
                ) from exc

        logger.info(
            "Allocated %s %s to %s for tenant %s",
            kind.name,
            pool_id,
            subject_id,
            tenant_id,
        )
        return record

    def release(
        self,
        kind: PoolKind,
        allocation_id: str,
        tenant_id: str,
        close: Callable[[Any, datetime], tuple[str, dict[str, Any]]],
    ) -> Any:
        """Close an open claim and give its unit back to the pool.

        Releasing a claim that is already closed succeeds without touching the
        counter, so client retries are safe.
        """
        allocation_id = require_identifier(allocation_id, f"{kind.name}_allocation_id")
        tenant_id = require_text(tenant_id, "tenant_id")
        now = self._clock()

        with self._repository.transaction() as conn:
            record = self._repository.fetch_by_id(
                conn, kind.allocation_table, allocation_id, tenant_id
            )
            if record is None:
                raise NotFoundError(f"{kind.name.capitalize()} allocation {allocation_id} not found")

            current = record.status.value
            if kind.graph.is_terminal(current):
                logger.debug("Release of closed %s allocation %s is a no-op", kind.name, allocation_id)
                return record

            target, extra = close(record, now)
            check_transition(kind.graph, current, target)

            pool_id = getattr(record, kind.pool_column)
            pool = self._repository.fetch_by_id(conn, kind.pool_table, pool_id, tenant_id)
            if pool is None:
                raise NotFoundError(f"{kind.name.capitalize()} {pool_id} not found")

            if not self._repository.compare_and_set_status(
                conn,
                kind.allocation_table,
                allocation_id,
                tenant_id,
                expected_status=current,
                target_status=target,
                extra=extra,
            ):
                raise InvalidTransitionError(current, target, detail="concurrent update")

            if not self._repository.decrement_used(conn, kind.pool_table, pool_id, tenant_id):
                raise RuntimeError(f"{kind.name.capitalize()} {pool_id} counter underflow")

            updated = self._repository.fetch_by_id(
                conn, kind.allocation_table, allocation_id, tenant_id
            )

        logger.info(
            "Released %s allocation %s (%s) for tenant %s",
            kind.name,
            allocation_id,
            target,
            tenant_id,
        )
        return updated

    # --- rooms ------------------------------------------------------------

    def allocate_room(self, room_id: str, student_id: str, tenant_id: str) -> RoomAllocation:
        def build(room: Room, now: datetime) -> RoomAllocation:
            return RoomAllocation(
                allocation_id=new_record_id(),
                tenant_id=room.tenant_id,
                room_id=room.room_id,
                student_id=student_id.strip(),
                status=AllocationStatus.ACTIVE,
                allocated_at=now,
            )

        return self.allocate(ROOM_POOL, room_id, student_id, tenant_id, build)

    def release_room(self, allocation_id: str, tenant_id: str) -> RoomAllocation:
        def close(record: RoomAllocation, now: datetime) -> tuple[str, dict[str, Any]]:
            return AllocationStatus.RELEASED.value, {"released_at": now}

        return self.release(ROOM_POOL, allocation_id, tenant_id, close)

    def list_rooms(self, tenant_id: str) -> list[Room]:
        return self._repository.list_by_tenant(ROOMS, tenant_id)

    def list_room_allocations(self, tenant_id: str) -> list[RoomAllocation]:
        return self._repository.list_by_tenant(ROOM_ALLOCATIONS, tenant_id)

    # --- books ------------------------------------------------------------

    def issue_book(
        self,
        book_id: str,
        student_id: str,
        tenant_id: str,
        loan_days: Optional[int] = None,
    ) -> BookIssue:
        days = self._config.default_loan_days if loan_days is None else loan_days
        days = require_int(days, "loan_days", minimum=1, maximum=self._config.max_loan_days)

        def build(book: Book, now: datetime) -> BookIssue:
            return BookIssue(
                issue_id=new_record_id(),
                tenant_id=book.tenant_id,
                book_id=book.book_id,
                student_id=student_id.strip(),
                status=IssueStatus.ISSUED,
                issued_at=now,
                due_at=now + timedelta(days=days),
            )

        return self.allocate(BOOK_POOL, book_id, student_id, tenant_id, build)

    def return_book(self, issue_id: str, tenant_id: str) -> BookIssue:
        rate = self._config.fine_rate_per_day

        def close(record: BookIssue, now: datetime) -> tuple[str, dict[str, Any]]:
            fine = compute_fine(record.due_at, now, rate)
            status = IssueStatus.RETURNED_WITH_FINE if fine > 0 else IssueStatus.RETURNED
            return status.value, {"returned_at": now, "fine_amount": fine}

        return self.release(BOOK_POOL, issue_id, tenant_id, close)

    def list_books(self, tenant_id: str) -> list[Book]:
        return self._repository.list_by_tenant(BOOKS, tenant_id)

    def list_book_issues(self, tenant_id: str) -> list[BookIssue]:
        return self._repository.list_by_tenant(BOOK_ISSUES, tenant_id)

    def get_pool(self, kind: PoolKind, pool_id: str, tenant_id: str) -> Any:
        pool_id = require_identifier(pool_id, f"{kind.name}_id")
        pool = self._repository.get(kind.pool_table, pool_id, tenant_id)
        if pool is None:
            raise NotFoundError(f"{kind.name.capitalize()} {pool_id} not found")
        return pool
