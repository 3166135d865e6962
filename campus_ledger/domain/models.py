"""Domain records for capacity-bounded pools and status-transition ledgers."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Optional


class AllocationStatus(str, Enum):
    ACTIVE = "ACTIVE"
    RELEASED = "RELEASED"


class IssueStatus(str, Enum):
    ISSUED = "ISSUED"
    RETURNED = "RETURNED"
    RETURNED_WITH_FINE = "RETURNED_WITH_FINE"


class MaintenanceStatus(str, Enum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    RESOLVED = "RESOLVED"


class LeaveStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class FeeStatus(str, Enum):
    PENDING = "PENDING"
    PAID = "PAID"


class PayrollStatus(str, Enum):
    PENDING = "PENDING"
    PAID = "PAID"


ROOM_TYPES = ("single", "double", "triple")
LEAVE_TYPES = ("sick", "casual", "vacation")
FEE_TYPES = ("tuition", "hostel", "library", "misc")
PAYMENT_METHODS = ("cash", "card", "upi", "bank_transfer")


@dataclass(frozen=True)
class Room:
    room_id: str
    tenant_id: str
    room_number: str
    hostel_name: str
    room_type: str
    floor: int
    capacity: int
    occupied: int
    created_at: datetime

    @property
    def available(self) -> int:
        return self.capacity - self.occupied


@dataclass(frozen=True)
class RoomAllocation:
    allocation_id: str
    tenant_id: str
    room_id: str
    student_id: str
    status: AllocationStatus
    allocated_at: datetime
    released_at: Optional[datetime] = None


@dataclass(frozen=True)
class Book:
    book_id: str
    tenant_id: str
    isbn: str
    title: str
    author: str
    category: str
    total_copies: int
    issued_copies: int
    created_at: datetime

    @property
    def available_copies(self) -> int:
        return self.total_copies - self.issued_copies


@dataclass(frozen=True)
class BookIssue:
    issue_id: str
    tenant_id: str
    book_id: str
    student_id: str
    status: IssueStatus
    issued_at: datetime
    due_at: datetime
    returned_at: Optional[datetime] = None
    fine_amount: float = 0.0


@dataclass(frozen=True)
class MaintenanceRequest:
    request_id: str
    tenant_id: str
    room_id: str
    issue_type: str
    description: str
    reported_by: str
    status: MaintenanceStatus
    created_at: datetime
    updated_at: Optional[datetime] = None


@dataclass(frozen=True)
class Faculty:
    faculty_id: str
    tenant_id: str
    employee_id: str
    name: str
    email: str
    department: str
    designation: str
    joining_date: date
    salary: float
    created_at: datetime


@dataclass(frozen=True)
class LeaveRequest:
    request_id: str
    tenant_id: str
    employee_id: str
    leave_type: str
    from_date: date
    to_date: date
    reason: str
    status: LeaveStatus
    created_at: datetime
    decided_at: Optional[datetime] = None


@dataclass(frozen=True)
class Payroll:
    payroll_id: str
    tenant_id: str
    employee_id: str
    employee_name: str
    month: str
    year: int
    basic_salary: float
    allowances: float
    deductions: float
    net_salary: float
    status: PayrollStatus
    created_at: datetime
    paid_at: Optional[datetime] = None


@dataclass(frozen=True)
class Fee:
    fee_id: str
    tenant_id: str
    student_id: str
    fee_type: str
    amount: float
    due_date: date
    status: FeeStatus
    created_at: datetime
    paid_at: Optional[datetime] = None


@dataclass(frozen=True)
class Payment:
    payment_id: str
    tenant_id: str
    fee_id: str
    student_id: str
    amount: float
    payment_method: str
    transaction_id: str
    paid_at: datetime


@dataclass(frozen=True)
class InvoiceItem:
    description: str
    amount: float


@dataclass(frozen=True)
class Invoice:
    invoice_id: str
    tenant_id: str
    invoice_number: str
    student_id: str
    items: tuple[InvoiceItem, ...]
    total_amount: float
    created_at: datetime
