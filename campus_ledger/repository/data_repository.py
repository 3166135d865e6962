"""Repository layer responsible for all database access.

Every read and write takes a mandatory ``tenant_id`` that is applied as an
equality predicate, so a row owned by another tenant is indistinguishable
from a missing one. Multi-step mutations run inside ``transaction()``, which
holds SQLite's reserved lock from the first read to the commit.
"""

from __future__ import annotations

import sqlite3
import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Iterator, Optional

from campus_ledger.domain.errors import StoreUnavailableError, ValidationError
from campus_ledger.domain.models import (
    AllocationStatus,
    Book,
    BookIssue,
    Faculty,
    Fee,
    FeeStatus,
    Invoice,
    InvoiceItem,
    IssueStatus,
    LeaveRequest,
    LeaveStatus,
    MaintenanceRequest,
    MaintenanceStatus,
    Payment,
    Payroll,
    PayrollStatus,
    Room,
    RoomAllocation,
)
from campus_ledger.utils.config import Settings, get_settings
from campus_ledger.utils.logger import get_logger


logger = get_logger(__name__)


ROOMS = "Rooms"
ROOM_ALLOCATIONS = "RoomAllocations"
BOOKS = "Books"
BOOK_ISSUES = "BookIssues"
MAINTENANCE_REQUESTS = "MaintenanceRequests"
FACULTY = "Faculty"
LEAVE_REQUESTS = "LeaveRequests"
PAYROLL = "Payroll"
FEES = "Fees"
PAYMENTS = "Payments"
INVOICES = "Invoices"


class ConstraintViolationError(ValidationError):
    """Raised when an insert violates a UNIQUE, CHECK or foreign key constraint."""

    def __init__(self, table: str, detail: str) -> None:
        self.table = table
        self.detail = detail
        super().__init__(f"{table}: {detail}")


def new_record_id() -> str:
    return uuid.uuid4().hex


def _encode_timestamp(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.astimezone(timezone.utc).isoformat()


def _decode_timestamp(value: Optional[str]) -> Optional[datetime]:
    if value is None:
        return None
    return datetime.fromisoformat(value)


def _encode_date(value: date) -> str:
    return value.isoformat()


def _decode_date(value: str) -> date:
    return date.fromisoformat(value)


@dataclass(frozen=True)
class _Codec:
    encode: Callable[[Any], Any]
    decode: Callable[[Any], Any]


_TEXT = _Codec(str, str)
_INT = _Codec(int, int)
_REAL = _Codec(float, float)
_TIMESTAMP = _Codec(_encode_timestamp, _decode_timestamp)
_DATE = _Codec(_encode_date, _decode_date)


def _status(enum_type: type[Enum]) -> _Codec:
    return _Codec(lambda value: enum_type(value).value, enum_type)


@dataclass(frozen=True)
class _TableMapping:
    """Maps one table onto its domain record; (column, field, codec) triples."""

    name: str
    record_type: type
    columns: tuple[tuple[str, str, _Codec], ...]

    @property
    def column_names(self) -> tuple[str, ...]:
        return tuple(column for column, _, _ in self.columns)

    def to_row(self, record: Any) -> dict[str, Any]:
        return {
            column: codec.encode(getattr(record, field_name))
            if getattr(record, field_name) is not None
            else None
            for column, field_name, codec in self.columns
        }

    def from_row(self, row: sqlite3.Row, **extra: Any) -> Any:
        values = {
            field_name: codec.decode(row[column]) if row[column] is not None else None
            for column, field_name, codec in self.columns
        }
        values.update(extra)
        return self.record_type(**values)


_TABLE_MAPPINGS: dict[str, _TableMapping] = {
    mapping.name: mapping
    for mapping in (
        _TableMapping(
            ROOMS,
            Room,
            (
                ("id", "room_id", _TEXT),
                ("tenant_id", "tenant_id", _TEXT),
                ("room_number", "room_number", _TEXT),
                ("hostel_name", "hostel_name", _TEXT),
                ("room_type", "room_type", _TEXT),
                ("floor", "floor", _INT),
                ("capacity", "capacity", _INT),
                ("used", "occupied", _INT),
                ("created_at", "created_at", _TIMESTAMP),
            ),
        ),
        _TableMapping(
            ROOM_ALLOCATIONS,
            RoomAllocation,
            (
                ("id", "allocation_id", _TEXT),
                ("tenant_id", "tenant_id", _TEXT),
                ("room_id", "room_id", _TEXT),
                ("student_id", "student_id", _TEXT),
                ("status", "status", _status(AllocationStatus)),
                ("allocated_at", "allocated_at", _TIMESTAMP),
                ("released_at", "released_at", _TIMESTAMP),
            ),
        ),
        _TableMapping(
            BOOKS,
            Book,
            (
                ("id", "book_id", _TEXT),
                ("tenant_id", "tenant_id", _TEXT),
                ("isbn", "isbn", _TEXT),
                ("title", "title", _TEXT),
                ("author", "author", _TEXT),
                ("category", "category", _TEXT),
                ("capacity", "total_copies", _INT),
                ("used", "issued_copies", _INT),
                ("created_at", "created_at", _TIMESTAMP),
            ),
        ),
        _TableMapping(
            BOOK_ISSUES,
            BookIssue,
            (
                ("id", "issue_id", _TEXT),
                ("tenant_id", "tenant_id", _TEXT),
                ("book_id", "book_id", _TEXT),
                ("student_id", "student_id", _TEXT),
                ("status", "status", _status(IssueStatus)),
                ("issued_at", "issued_at", _TIMESTAMP),
                ("due_at", "due_at", _TIMESTAMP),
                ("returned_at", "returned_at", _TIMESTAMP),
                ("fine_amount", "fine_amount", _REAL),
            ),
        ),
        _TableMapping(
            MAINTENANCE_REQUESTS,
            MaintenanceRequest,
            (
                ("id", "request_id", _TEXT),
                ("tenant_id", "tenant_id", _TEXT),
                ("room_id", "room_id", _TEXT),
                ("issue_type", "issue_type", _TEXT),
                ("description", "description", _TEXT),
                ("reported_by", "reported_by", _TEXT),
                ("status", "status", _status(MaintenanceStatus)),
                ("created_at", "created_at", _TIMESTAMP),
                ("updated_at", "updated_at", _TIMESTAMP),
            ),
        ),
        _TableMapping(
            FACULTY,
            Faculty,
            (
                ("id", "faculty_id", _TEXT),
                ("tenant_id", "tenant_id", _TEXT),
                ("employee_id", "employee_id", _TEXT),
                ("name", "name", _TEXT),
                ("email", "email", _TEXT),
                ("department", "department", _TEXT),
                ("designation", "designation", _TEXT),
                ("joining_date", "joining_date", _DATE),
                ("salary", "salary", _REAL),
                ("created_at", "created_at", _TIMESTAMP),
            ),
        ),
        _TableMapping(
            LEAVE_REQUESTS,
            LeaveRequest,
            (
                ("id", "request_id", _TEXT),
                ("tenant_id", "tenant_id", _TEXT),
                ("employee_id", "employee_id", _TEXT),
                ("leave_type", "leave_type", _TEXT),
                ("from_date", "from_date", _DATE),
                ("to_date", "to_date", _DATE),
                ("reason", "reason", _TEXT),
                ("status", "status", _status(LeaveStatus)),
                ("created_at", "created_at", _TIMESTAMP),
                ("decided_at", "decided_at", _TIMESTAMP),
            ),
        ),
        _TableMapping(
            PAYROLL,
            Payroll,
            (
                ("id", "payroll_id", _TEXT),
                ("tenant_id", "tenant_id", _TEXT),
                ("employee_id", "employee_id", _TEXT),
                ("employee_name", "employee_name", _TEXT),
                ("month", "month", _TEXT),
                ("year", "year", _INT),
                ("basic_salary", "basic_salary", _REAL),
                ("allowances", "allowances", _REAL),
                ("deductions", "deductions", _REAL),
                ("net_salary", "net_salary", _REAL),
                ("status", "status", _status(PayrollStatus)),
                ("created_at", "created_at", _TIMESTAMP),
                ("paid_at", "paid_at", _TIMESTAMP),
            ),
        ),
        _TableMapping(
            FEES,
            Fee,
            (
                ("id", "fee_id", _TEXT),
                ("tenant_id", "tenant_id", _TEXT),
                ("student_id", "student_id", _TEXT),
                ("fee_type", "fee_type", _TEXT),
                ("amount", "amount", _REAL),
                ("due_date", "due_date", _DATE),
                ("status", "status", _status(FeeStatus)),
                ("created_at", "created_at", _TIMESTAMP),
                ("paid_at", "paid_at", _TIMESTAMP),
            ),
        ),
        _TableMapping(
            PAYMENTS,
            Payment,
            (
                ("id", "payment_id", _TEXT),
                ("tenant_id", "tenant_id", _TEXT),
                ("fee_id", "fee_id", _TEXT),
                ("student_id", "student_id", _TEXT),
                ("amount", "amount", _REAL),
                ("payment_method", "payment_method", _TEXT),
                ("transaction_id", "transaction_id", _TEXT),
                ("paid_at", "paid_at", _TIMESTAMP),
            ),
        ),
        _TableMapping(
            INVOICES,
            Invoice,
            (
                ("id", "invoice_id", _TEXT),
                ("tenant_id", "tenant_id", _TEXT),
                ("invoice_number", "invoice_number", _TEXT),
                ("student_id", "student_id", _TEXT),
                ("total_amount", "total_amount", _REAL),
                ("created_at", "created_at", _TIMESTAMP),
            ),
        ),
    )
}

_POOL_TABLES = frozenset({ROOMS, BOOKS})


def _mapping(table: str) -> _TableMapping:
    try:
        return _TABLE_MAPPINGS[table]
    except KeyError as exc:
        raise ValueError(f"Unknown table: {table}") from exc


def _require_column(mapping: _TableMapping, column: str) -> None:
    if column not in mapping.column_names:
        raise ValueError(f"Unknown column {column!r} for table {mapping.name}")


_SCHEMA_STATEMENTS = (
    """
    CREATE TABLE IF NOT EXISTS Rooms (
        id TEXT PRIMARY KEY,
        tenant_id TEXT NOT NULL,
        room_number TEXT NOT NULL,
        hostel_name TEXT NOT NULL,
        room_type TEXT NOT NULL,
        floor INTEGER NOT NULL,
        capacity INTEGER NOT NULL CHECK (capacity >= 1),
        used INTEGER NOT NULL DEFAULT 0,
        created_at TEXT NOT NULL,
        CHECK (used >= 0 AND used <= capacity)
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS RoomAllocations (
        id TEXT PRIMARY KEY,
        tenant_id TEXT NOT NULL,
        room_id TEXT NOT NULL,
        student_id TEXT NOT NULL,
        status TEXT NOT NULL,
        allocated_at TEXT NOT NULL,
        released_at TEXT,
        FOREIGN KEY (room_id) REFERENCES Rooms(id)
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS Books (
        id TEXT PRIMARY KEY,
        tenant_id TEXT NOT NULL,
        isbn TEXT NOT NULL,
        title TEXT NOT NULL,
        author TEXT NOT NULL,
        category TEXT NOT NULL,
        capacity INTEGER NOT NULL CHECK (capacity >= 1),
        used INTEGER NOT NULL DEFAULT 0,
        created_at TEXT NOT NULL,
        CHECK (used >= 0 AND used <= capacity)
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS BookIssues (
        id TEXT PRIMARY KEY,
        tenant_id TEXT NOT NULL,
        book_id TEXT NOT NULL,
        student_id TEXT NOT NULL,
        status TEXT NOT NULL,
        issued_at TEXT NOT NULL,
        due_at TEXT NOT NULL,
        returned_at TEXT,
        fine_amount REAL NOT NULL DEFAULT 0,
        FOREIGN KEY (book_id) REFERENCES Books(id)
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS MaintenanceRequests (
        id TEXT PRIMARY KEY,
        tenant_id TEXT NOT NULL,
        room_id TEXT NOT NULL,
        issue_type TEXT NOT NULL,
        description TEXT NOT NULL,
        reported_by TEXT NOT NULL,
        status TEXT NOT NULL,
        created_at TEXT NOT NULL,
        updated_at TEXT,
        FOREIGN KEY (room_id) REFERENCES Rooms(id)
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS Faculty (
        id TEXT PRIMARY KEY,
        tenant_id TEXT NOT NULL,
        employee_id TEXT NOT NULL,
        name TEXT NOT NULL,
        email TEXT NOT NULL,
        department TEXT NOT NULL,
        designation TEXT NOT NULL,
        joining_date TEXT NOT NULL,
        salary REAL NOT NULL CHECK (salary >= 0),
        created_at TEXT NOT NULL,
        UNIQUE (tenant_id, employee_id)
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS LeaveRequests (
        id TEXT PRIMARY KEY,
        tenant_id TEXT NOT NULL,
        employee_id TEXT NOT NULL,
        leave_type TEXT NOT NULL,
        from_date TEXT NOT NULL,
        to_date TEXT NOT NULL,
        reason TEXT NOT NULL,
        status TEXT NOT NULL,
        created_at TEXT NOT NULL,
        decided_at TEXT
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS Payroll (
        id TEXT PRIMARY KEY,
        tenant_id TEXT NOT NULL,
        employee_id TEXT NOT NULL,
        employee_name TEXT NOT NULL,
        month TEXT NOT NULL,
        year INTEGER NOT NULL,
        basic_salary REAL NOT NULL,
        allowances REAL NOT NULL,
        deductions REAL NOT NULL,
        net_salary REAL NOT NULL,
        status TEXT NOT NULL,
        created_at TEXT NOT NULL,
        paid_at TEXT
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS Fees (
        id TEXT PRIMARY KEY,
        tenant_id TEXT NOT NULL,
        student_id TEXT NOT NULL,
        fee_type TEXT NOT NULL,
        amount REAL NOT NULL CHECK (amount > 0),
        due_date TEXT NOT NULL,
        status TEXT NOT NULL,
        created_at TEXT NOT NULL,
        paid_at TEXT
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS Payments (
        id TEXT PRIMARY KEY,
        tenant_id TEXT NOT NULL,
        fee_id TEXT NOT NULL,
        student_id TEXT NOT NULL,
        amount REAL NOT NULL,
        payment_method TEXT NOT NULL,
        transaction_id TEXT NOT NULL,
        paid_at TEXT NOT NULL,
        UNIQUE (tenant_id, transaction_id),
        FOREIGN KEY (fee_id) REFERENCES Fees(id)
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS Invoices (
        id TEXT PRIMARY KEY,
        tenant_id TEXT NOT NULL,
        invoice_number TEXT NOT NULL UNIQUE,
        student_id TEXT NOT NULL,
        total_amount REAL NOT NULL,
        created_at TEXT NOT NULL
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS InvoiceItems (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        invoice_id TEXT NOT NULL,
        position INTEGER NOT NULL,
        description TEXT NOT NULL,
        amount REAL NOT NULL,
        FOREIGN KEY (invoice_id) REFERENCES Invoices(id)
    );
    """,
    """
    CREATE UNIQUE INDEX IF NOT EXISTS uq_room_allocations_active
    ON RoomAllocations(room_id, student_id) WHERE status = 'ACTIVE';
    """,
    """
    CREATE UNIQUE INDEX IF NOT EXISTS uq_book_issues_open
    ON BookIssues(book_id, student_id) WHERE status = 'ISSUED';
    """,
    "CREATE INDEX IF NOT EXISTS idx_rooms_tenant ON Rooms(tenant_id);",
    "CREATE INDEX IF NOT EXISTS idx_room_allocations_tenant ON RoomAllocations(tenant_id);",
    "CREATE INDEX IF NOT EXISTS idx_books_tenant ON Books(tenant_id);",
    "CREATE INDEX IF NOT EXISTS idx_book_issues_tenant ON BookIssues(tenant_id);",
    "CREATE INDEX IF NOT EXISTS idx_maintenance_tenant ON MaintenanceRequests(tenant_id);",
    "CREATE INDEX IF NOT EXISTS idx_leave_tenant ON LeaveRequests(tenant_id);",
    "CREATE INDEX IF NOT EXISTS idx_payroll_tenant ON Payroll(tenant_id);",
    "CREATE INDEX IF NOT EXISTS idx_fees_tenant ON Fees(tenant_id);",
    "CREATE INDEX IF NOT EXISTS idx_payments_tenant ON Payments(tenant_id);",
    "CREATE INDEX IF NOT EXISTS idx_invoices_tenant ON Invoices(tenant_id);",
    "CREATE INDEX IF NOT EXISTS idx_invoice_items_invoice ON InvoiceItems(invoice_id);",
)


class DataRepository:
    """Encapsulates SQLite access so business logic stays storage-agnostic."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self._settings = settings or get_settings()
        self._db_path = Path(self._settings.database_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)

    def _connect(self) -> sqlite3.Connection:
        connection = sqlite3.connect(
            self._db_path,
            timeout=self._settings.store_timeout_seconds,
            isolation_level=None,
        )
        connection.row_factory = sqlite3.Row
        connection.execute("PRAGMA foreign_keys = ON;")
        return connection

    @contextmanager
    def _reader(self) -> Iterator[sqlite3.Connection]:
        try:
            connection = self._connect()
        except sqlite3.OperationalError as exc:
            logger.warning("Store connection failed: %s", exc)
            raise StoreUnavailableError(f"Store unavailable: {exc}") from exc
        try:
            yield connection
        except sqlite3.OperationalError as exc:
            logger.warning("Store read failed: %s", exc)
            raise StoreUnavailableError(f"Store unavailable: {exc}") from exc
        finally:
            connection.close()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Run the enclosed reads and writes as one serializable unit.

        ``BEGIN IMMEDIATE`` takes the write lock up front, so a read-check
        followed by a conditional write cannot interleave with another
        writer, whether in this process or another one sharing the file.
        """
        try:
            connection = self._connect()
        except sqlite3.OperationalError as exc:
            logger.warning("Store connection failed: %s", exc)
            raise StoreUnavailableError(f"Store unavailable: {exc}") from exc
        try:
            connection.execute("BEGIN IMMEDIATE;")
        except sqlite3.OperationalError as exc:
            connection.close()
            logger.warning("Store lock not acquired: %s", exc)
            raise StoreUnavailableError(f"Store unavailable: {exc}") from exc
        try:
            yield connection
            connection.execute("COMMIT;")
        except sqlite3.OperationalError as exc:
            connection.execute("ROLLBACK;")
            logger.warning("Store transaction rolled back: %s", exc)
            raise StoreUnavailableError(f"Store unavailable: {exc}") from exc
        except BaseException:
            connection.execute("ROLLBACK;")
            raise
        finally:
            connection.close()

    def initialize_database(self) -> None:
        """Create all persistence artifacts before API startup."""
        try:
            with self._reader() as conn:
                conn.execute("PRAGMA journal_mode = WAL;")
                for statement in _SCHEMA_STATEMENTS:
                    conn.execute(statement)
            logger.info("Database initialized at %s", self._db_path)
        except (sqlite3.Error, StoreUnavailableError) as exc:
            raise RuntimeError(f"Database initialization failed: {exc}") from exc

    # --- record mapping -------------------------------------------------

    def _load_invoice_items(
        self,
        conn: sqlite3.Connection,
        invoice_id: str,
    ) -> tuple[InvoiceItem, ...]:
        cursor = conn.execute(
            """
            SELECT description, amount
            FROM InvoiceItems
            WHERE invoice_id = ?
            ORDER BY position ASC;
            """,
            (invoice_id,),
        )
        return tuple(
            InvoiceItem(description=str(row["description"]), amount=float(row["amount"]))
            for row in cursor.fetchall()
        )

    def _to_record(self, conn: sqlite3.Connection, mapping: _TableMapping, row: sqlite3.Row) -> Any:
        if mapping.name == INVOICES:
            return mapping.from_row(row, items=self._load_invoice_items(conn, str(row["id"])))
        return mapping.from_row(row)

    # --- tenant-scoped primitives -----------------------------------------

    def fetch_by_id(
        self,
        conn: sqlite3.Connection,
        table: str,
        record_id: str,
        tenant_id: str,
    ) -> Optional[Any]:
        """Point lookup by id and tenant; a foreign tenant's row reads as None."""
        mapping = _mapping(table)
        cursor = conn.execute(
            f"SELECT * FROM {mapping.name} WHERE id = ? AND tenant_id = ?;",
            (record_id, tenant_id),
        )
        row = cursor.fetchone()
        if row is None:
            return None
        return self._to_record(conn, mapping, row)

    def fetch_by_column(
        self,
        conn: sqlite3.Connection,
        table: str,
        column: str,
        value: Any,
        tenant_id: str,
    ) -> Optional[Any]:
        mapping = _mapping(table)
        _require_column(mapping, column)
        cursor = conn.execute(
            f"""
            SELECT * FROM {mapping.name}
            WHERE {column} = ? AND tenant_id = ?
            ORDER BY rowid ASC
            LIMIT 1;
            """,
            (value, tenant_id),
        )
        row = cursor.fetchone()
        if row is None:
            return None
        return self._to_record(conn, mapping, row)

    def find_active_allocation(
        self,
        conn: sqlite3.Connection,
        table: str,
        pool_column: str,
        pool_id: str,
        subject_id: str,
        tenant_id: str,
        active_status: str,
    ) -> Optional[Any]:
        mapping = _mapping(table)
        _require_column(mapping, pool_column)
        cursor = conn.execute(
            f"""
            SELECT * FROM {mapping.name}
            WHERE {pool_column} = ?
              AND student_id = ?
              AND tenant_id = ?
              AND status = ?
            LIMIT 1;
            """,
            (pool_id, subject_id, tenant_id, active_status),
        )
        row = cursor.fetchone()
        if row is None:
            return None
        return self._to_record(conn, mapping, row)

    def insert(self, conn: sqlite3.Connection, table: str, record: Any) -> None:
        mapping = _mapping(table)
        values = mapping.to_row(record)
        columns = ", ".join(values)
        placeholders = ", ".join("?" for _ in values)
        try:
            conn.execute(
                f"INSERT INTO {mapping.name} ({columns}) VALUES ({placeholders});",
                tuple(values.values()),
            )
            if mapping.name == INVOICES:
                conn.executemany(
                    """
                    INSERT INTO InvoiceItems (invoice_id, position, description, amount)
                    VALUES (?, ?, ?, ?);
                    """,
                    [
                        (record.invoice_id, position, item.description, item.amount)
                        for position, item in enumerate(record.items)
                    ],
                )
        except sqlite3.IntegrityError as exc:
            raise ConstraintViolationError(mapping.name, str(exc)) from exc

    def increment_used(
        self,
        conn: sqlite3.Connection,
        table: str,
        pool_id: str,
        tenant_id: str,
    ) -> bool:
        """Claim one unit iff the pool still has room. False means full or absent."""
        mapping = _mapping(table)
        if mapping.name not in _POOL_TABLES:
            raise ValueError(f"{table} is not a capacity pool")
        cursor = conn.execute(
            f"""
            UPDATE {mapping.name}
            SET used = used + 1
            WHERE id = ? AND tenant_id = ? AND used < capacity;
            """,
            (pool_id, tenant_id),
        )
        return cursor.rowcount == 1

    def decrement_used(
        self,
        conn: sqlite3.Connection,
        table: str,
        pool_id: str,
        tenant_id: str,
    ) -> bool:
        mapping = _mapping(table)
        if mapping.name not in _POOL_TABLES:
            raise ValueError(f"{table} is not a capacity pool")
        cursor = conn.execute(
            f"""
            UPDATE {mapping.name}
            SET used = used - 1
            WHERE id = ? AND tenant_id = ? AND used > 0;
            """,
            (pool_id, tenant_id),
        )
        return cursor.rowcount == 1

    def compare_and_set_status(
        self,
        conn: sqlite3.Connection,
        table: str,
        record_id: str,
        tenant_id: str,
        expected_status: str,
        target_status: str,
        extra: Optional[dict[str, Any]] = None,
    ) -> bool:
        """Move ``status`` only while it still equals ``expected_status``."""
        mapping = _mapping(table)
        _require_column(mapping, "status")
        assignments = {"status": target_status}
        codecs = {column: codec for column, _, codec in mapping.columns}
        for column, value in (extra or {}).items():
            _require_column(mapping, column)
            assignments[column] = codecs[column].encode(value) if value is not None else None
        set_clause = ", ".join(f"{column} = ?" for column in assignments)
        cursor = conn.execute(
            f"""
            UPDATE {mapping.name}
            SET {set_clause}
            WHERE id = ? AND tenant_id = ? AND status = ?;
            """,
            (*assignments.values(), record_id, tenant_id, expected_status),
        )
        return cursor.rowcount == 1

    # --- plain tenant reads -----------------------------------------------

    def get(self, table: str, record_id: str, tenant_id: str) -> Optional[Any]:
        with self._reader() as conn:
            return self.fetch_by_id(conn, table, record_id, tenant_id)

    def list_by_tenant(self, table: str, tenant_id: str) -> list[Any]:
        """Return every row of ``table`` owned by ``tenant_id`` in insertion order."""
        mapping = _mapping(table)
        with self._reader() as conn:
            cursor = conn.execute(
                f"""
                SELECT * FROM {mapping.name}
                WHERE tenant_id = ?
                ORDER BY rowid ASC;
                """,
                (tenant_id,),
            )
            return [self._to_record(conn, mapping, row) for row in cursor.fetchall()]

    def count_rows(self, table: str, tenant_id: Optional[str] = None) -> int:
        """Return row count for diagnostics and tests."""
        mapping = _mapping(table)
        with self._reader() as conn:
            if tenant_id is None:
                cursor = conn.execute(f"SELECT COUNT(*) AS count FROM {mapping.name};")
            else:
                cursor = conn.execute(
                    f"SELECT COUNT(*) AS count FROM {mapping.name} WHERE tenant_id = ?;",
                    (tenant_id,),
                )
            return int(cursor.fetchone()["count"])

    # --- demo data --------------------------------------------------------

    def seed_demo_data_if_empty(self, tenant_id: Optional[str] = None) -> int:
        """Seed a small demo campus only when no room exists yet.

        Returns the number of rows inserted (zero when skipped).
        """
        target_tenant = tenant_id or self._settings.demo_tenant_id
        now = datetime.now(timezone.utc)
        rooms = [
            ("101", "North Hall", "single", 1, 1),
            ("102", "North Hall", "double", 1, 2),
            ("201", "North Hall", "triple", 2, 3),
            ("110", "South Hall", "double", 1, 2),
            ("210", "South Hall", "triple", 2, 3),
        ]
        books = [
            ("978-0131103627", "The C Programming Language", "Kernighan, Ritchie", "Computing", 3),
            ("978-0262033848", "Introduction to Algorithms", "Cormen et al.", "Computing", 5),
            ("978-0143127550", "Sapiens", "Yuval Noah Harari", "History", 2),
        ]
        faculty = [
            ("EMP-001", "Asha Rao", "asha.rao@example.edu", "Physics", "Professor", 90000.0),
            ("EMP-002", "Daniel Okafor", "d.okafor@example.edu", "Mathematics", "Lecturer", 62000.0),
        ]
        with self.transaction() as conn:
            existing = conn.execute("SELECT COUNT(*) AS count FROM Rooms;").fetchone()
            if int(existing["count"]) > 0:
                logger.info("Demo data already present; skipping seed")
                return 0

            inserted = 0
            for room_number, hostel_name, room_type, floor, capacity in rooms:
                self.insert(
                    conn,
                    ROOMS,
                    Room(
                        room_id=new_record_id(),
                        tenant_id=target_tenant,
                        room_number=room_number,
                        hostel_name=hostel_name,
                        room_type=room_type,
                        floor=floor,
                        capacity=capacity,
                        occupied=0,
                        created_at=now,
                    ),
                )
                inserted += 1
            for isbn, title, author, category, copies in books:
                self.insert(
                    conn,
                    BOOKS,
                    Book(
                        book_id=new_record_id(),
                        tenant_id=target_tenant,
                        isbn=isbn,
                        title=title,
                        author=author,
                        category=category,
                        total_copies=copies,
                        issued_copies=0,
                        created_at=now,
                    ),
                )
                inserted += 1
            for employee_id, name, email, department, designation, salary in faculty:
                self.insert(
                    conn,
                    FACULTY,
                    Faculty(
                        faculty_id=new_record_id(),
                        tenant_id=target_tenant,
                        employee_id=employee_id,
                        name=name,
                        email=email,
                        department=department,
                        designation=designation,
                        joining_date=(now - timedelta(days=365 * 3)).date(),
                        salary=salary,
                        created_at=now,
                    ),
                )
                inserted += 1
        logger.info("Demo seed completed with %s records for tenant %s", inserted, target_tenant)
        return inserted

