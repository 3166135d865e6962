"""Tenant-scoped entry point into the allocator and the status ledger.

A gate is built once per request from a validated identity. It checks the
role's capability for each operation and forwards the identity's tenant id as
the only tenant argument, so callers cannot reach into another tenant.
"""

from __future__ import annotations

from typing import Any, Iterable, Mapping, Optional

from campus_ledger.domain.access import Capability, Identity, require_capability
from campus_ledger.domain.errors import AuthRejectedError
from campus_ledger.domain.models import (
    Book,
    BookIssue,
    Faculty,
    Fee,
    Invoice,
    LeaveRequest,
    MaintenanceRequest,
    Payment,
    Payroll,
    Room,
    RoomAllocation,
)
from campus_ledger.services.allocation_service import BOOK_POOL, CapacityAllocator, get_pool_kind
from campus_ledger.services.ledger_service import StatusLedger, get_ledger_kind
from campus_ledger.utils.clock import Clock, utc_now


_TRANSITION_CAPABILITIES = {
    "leave": Capability.DECIDE_LEAVE,
    "payroll": Capability.MANAGE_PAYROLL,
    "maintenance": Capability.RESOLVE_MAINTENANCE,
    "fee": Capability.MANAGE_FINANCE,
}

_CREATE_CAPABILITIES = {
    "leave": Capability.REQUEST_LEAVE,
    "payroll": Capability.MANAGE_PAYROLL,
    "maintenance": Capability.REPORT_MAINTENANCE,
    "fee": Capability.MANAGE_FINANCE,
}


class TenantGate:
    def __init__(
        self,
        identity: Identity,
        allocator: CapacityAllocator,
        ledger: StatusLedger,
        clock: Optional[Clock] = None,
    ) -> None:
        if identity.is_expired((clock or utc_now)()):
            raise AuthRejectedError("Identity has expired")
        self._identity = identity
        self._allocator = allocator
        self._ledger = ledger

    @property
    def identity(self) -> Identity:
        return self._identity

    @property
    def tenant_id(self) -> str:
        return self._identity.tenant_id

    def _require(self, capability: Capability) -> str:
        require_capability(self._identity, capability)
        return self._identity.tenant_id

    # --- hostel -----------------------------------------------------------

    def register_room(self, **attributes: Any) -> Room:
        tenant_id = self._require(Capability.MANAGE_POOLS)
        return self._allocator.register_room(tenant_id=tenant_id, **attributes)

    def list_rooms(self) -> list[Room]:
        return self._allocator.list_rooms(self._require(Capability.READ))

    def allocate_room(self, room_id: str, student_id: str) -> RoomAllocation:
        tenant_id = self._require(Capability.ALLOCATE)
        return self._allocator.allocate_room(room_id, student_id, tenant_id)

    def release_room(self, allocation_id: str) -> RoomAllocation:
        tenant_id = self._require(Capability.ALLOCATE)
        return self._allocator.release_room(allocation_id, tenant_id)

    def list_room_allocations(self) -> list[RoomAllocation]:
        return self._allocator.list_room_allocations(self._require(Capability.READ))

    def report_maintenance(self, room_id: str, issue_type: str, description: str) -> MaintenanceRequest:
        tenant_id = self._require(Capability.REPORT_MAINTENANCE)
        return self._ledger.report_maintenance(
            tenant_id=tenant_id,
            room_id=room_id,
            issue_type=issue_type,
            description=description,
            reported_by=self._identity.subject_id,
        )

    def list_maintenance_requests(self) -> list[MaintenanceRequest]:
        return self._ledger.list_maintenance_requests(self._require(Capability.READ))

    # --- library ----------------------------------------------------------

    def register_book(self, **attributes: Any) -> Book:
        tenant_id = self._require(Capability.MANAGE_POOLS)
        return self._allocator.register_book(tenant_id=tenant_id, **attributes)

    def list_books(self) -> list[Book]:
        return self._allocator.list_books(self._require(Capability.READ))

    def issue_book(self, book_id: str, student_id: str, loan_days: Optional[int] = None) -> BookIssue:
        tenant_id = self._require(Capability.ALLOCATE)
        return self._allocator.issue_book(book_id, student_id, tenant_id, loan_days=loan_days)

    def return_book(self, issue_id: str) -> BookIssue:
        tenant_id = self._require(Capability.ALLOCATE)
        return self._allocator.return_book(issue_id, tenant_id)

    def list_book_issues(self) -> list[BookIssue]:
        return self._allocator.list_book_issues(self._require(Capability.READ))

    # --- generic pool operations -----------------------------------------

    def allocate(
        self,
        pool_kind: str,
        pool_id: str,
        subject_id: str,
        loan_days: Optional[int] = None,
    ) -> Any:
        kind = get_pool_kind(pool_kind)
        if kind is BOOK_POOL:
            return self.issue_book(pool_id, subject_id, loan_days=loan_days)
        return self.allocate_room(pool_id, subject_id)

    def release(self, pool_kind: str, allocation_id: str) -> Any:
        kind = get_pool_kind(pool_kind)
        if kind is BOOK_POOL:
            return self.return_book(allocation_id)
        return self.release_room(allocation_id)

    # --- generic ledger operations ---------------------------------------

    def create(self, kind_name: str, payload: Mapping[str, Any]) -> Any:
        kind = get_ledger_kind(kind_name)
        tenant_id = self._require(_CREATE_CAPABILITIES[kind.name])
        if kind.name == "maintenance":
            payload = {**payload, "reported_by": self._identity.subject_id}
        return self._ledger.create(kind.name, payload, tenant_id)

    def transition(self, kind_name: str, record_id: str, target_status: str) -> Any:
        kind = get_ledger_kind(kind_name)
        tenant_id = self._require(_TRANSITION_CAPABILITIES[kind.name])
        return self._ledger.transition(kind.name, record_id, target_status, tenant_id)

    # --- HR ---------------------------------------------------------------

    def add_faculty(self, **attributes: Any) -> Faculty:
        tenant_id = self._require(Capability.MANAGE_STAFF)
        return self._ledger.add_faculty(tenant_id=tenant_id, **attributes)

    def list_faculty(self) -> list[Faculty]:
        return self._ledger.list_faculty(self._require(Capability.READ))

    def create_leave(self, **attributes: Any) -> LeaveRequest:
        tenant_id = self._require(Capability.REQUEST_LEAVE)
        return self._ledger.create_leave(tenant_id=tenant_id, **attributes)

    def list_leave_requests(self) -> list[LeaveRequest]:
        return self._ledger.list_leave_requests(self._require(Capability.READ))

    def create_payroll(self, **attributes: Any) -> Payroll:
        tenant_id = self._require(Capability.MANAGE_PAYROLL)
        return self._ledger.create_payroll(tenant_id=tenant_id, **attributes)

    def list_payroll(self) -> list[Payroll]:
        return self._ledger.list_payroll(self._require(Capability.READ))

    # --- finance ----------------------------------------------------------

    def create_fee(self, **attributes: Any) -> Fee:
        tenant_id = self._require(Capability.MANAGE_FINANCE)
        return self._ledger.create_fee(tenant_id=tenant_id, **attributes)

    def list_fees(self) -> list[Fee]:
        return self._ledger.list_fees(self._require(Capability.READ))

    def record_payment(self, **attributes: Any) -> Payment:
        tenant_id = self._require(Capability.PAY_FEES)
        return self._ledger.record_payment(tenant_id=tenant_id, **attributes)

    def list_payments(self) -> list[Payment]:
        return self._ledger.list_payments(self._require(Capability.READ))

    def create_invoice(self, student_id: str, items: Iterable[Any]) -> Invoice:
        tenant_id = self._require(Capability.MANAGE_FINANCE)
        return self._ledger.create_invoice(tenant_id=tenant_id, student_id=student_id, items=items)

    def list_invoices(self) -> list[Invoice]:
        return self._ledger.list_invoices(self._require(Capability.READ))
