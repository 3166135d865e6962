"""Status-transition ledger for leave, payroll, maintenance and fee records."""

from __future__ import annotations

import calendar
import inspect
import math
import sqlite3
import uuid
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Callable, Iterable, Mapping, Optional

from campus_ledger.domain.constraints import (
    FEE_GRAPH,
    LEAVE_GRAPH,
    MAINTENANCE_GRAPH,
    PAYROLL_GRAPH,
    TransitionGraph,
    check_transition,
)
from campus_ledger.domain.errors import (
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from campus_ledger.domain.models import (
    FEE_TYPES,
    LEAVE_TYPES,
    PAYMENT_METHODS,
    Faculty,
    Fee,
    FeeStatus,
    Invoice,
    InvoiceItem,
    LeaveRequest,
    LeaveStatus,
    MaintenanceRequest,
    MaintenanceStatus,
    Payment,
    Payroll,
    PayrollStatus,
)
from campus_ledger.domain.validation import (
    require_amount,
    require_choice,
    require_identifier,
    require_int,
    require_text,
)
from campus_ledger.repository.data_repository import (
    FACULTY,
    FEES,
    INVOICES,
    LEAVE_REQUESTS,
    MAINTENANCE_REQUESTS,
    PAYMENTS,
    PAYROLL,
    ROOMS,
    ConstraintViolationError,
    DataRepository,
    new_record_id,
)
from campus_ledger.services.calculator import compute_invoice_total, compute_net_salary
from campus_ledger.utils.clock import Clock, utc_now
from campus_ledger.utils.config import Settings, get_settings
from campus_ledger.utils.logger import get_logger


logger = get_logger(__name__)

Guard = Callable[[sqlite3.Connection, Any, str], None]

_MONTH_NAMES = {
    name.lower(): index for index, name in enumerate(calendar.month_name) if name
}
_MONTH_ABBREVIATIONS = {
    name.lower(): index for index, name in enumerate(calendar.month_abbr) if name
}


@dataclass(frozen=True)
class LedgerKind:
    """One status-bearing record type and how its transitions are applied."""

    name: str
    table: str
    graph: TransitionGraph
    stamp_column: Optional[str]
    manual_transitions: bool = True


LEAVE_KIND = LedgerKind("leave", LEAVE_REQUESTS, LEAVE_GRAPH, "decided_at")
PAYROLL_KIND = LedgerKind("payroll", PAYROLL, PAYROLL_GRAPH, "paid_at")
MAINTENANCE_KIND = LedgerKind("maintenance", MAINTENANCE_REQUESTS, MAINTENANCE_GRAPH, "updated_at")
FEE_KIND = LedgerKind("fee", FEES, FEE_GRAPH, "paid_at", manual_transitions=False)

LEDGER_KINDS = {
    kind.name: kind for kind in (LEAVE_KIND, PAYROLL_KIND, MAINTENANCE_KIND, FEE_KIND)
}


def get_ledger_kind(name: str) -> LedgerKind:
    try:
        return LEDGER_KINDS[name]
    except KeyError as exc:
        raise ValidationError(f"Unknown record kind: {name}") from exc


def normalize_month(value: Any) -> str:
    """Accept 1-12, "03", "March" or "mar" and return a two-digit month."""
    if isinstance(value, bool):
        raise ValidationError("month must be a month number or name")
    if isinstance(value, int):
        month = value
    elif isinstance(value, str) and value.strip():
        cleaned = value.strip().lower()
        if cleaned.isdigit():
            month = int(cleaned)
        else:
            month = _MONTH_NAMES.get(cleaned) or _MONTH_ABBREVIATIONS.get(cleaned, 0)
    else:
        raise ValidationError("month must be a month number or name")
    if not 1 <= month <= 12:
        raise ValidationError("month must be between 1 and 12")
    return f"{month:02d}"


def _require_date(value: Any, name: str) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip())
        except ValueError as exc:
            raise ValidationError(f"{name} must follow YYYY-MM-DD format") from exc
    raise ValidationError(f"{name} must be a date")


class StatusLedger:
    """Creates status-bearing records and moves them along their graphs.

    Every transition is a compare-and-set on the current status inside one
    store transaction. Re-applying a transition that already holds returns the
    record unchanged.
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
        self._guards: dict[str, Guard] = {
            PAYROLL_KIND.name: self._guard_payroll,
            MAINTENANCE_KIND.name: self._guard_maintenance,
        }

    # --- generic create / transition --------------------------------------

    def create(self, kind_name: str, payload: Mapping[str, Any], tenant_id: str) -> Any:
        """Create a record of ``kind_name`` in its graph's initial status."""
        creators: dict[str, Callable[..., Any]] = {
            LEAVE_KIND.name: self.create_leave,
            PAYROLL_KIND.name: self.create_payroll,
            MAINTENANCE_KIND.name: self.report_maintenance,
            FEE_KIND.name: self.create_fee,
        }
        kind = get_ledger_kind(kind_name)
        creator = creators[kind.name]
        try:
            inspect.signature(creator).bind(tenant_id=tenant_id, **payload)
        except TypeError as exc:
            raise ValidationError(f"Invalid {kind.name} payload: {exc}") from exc
        return creator(tenant_id=tenant_id, **payload)

    def transition(
        self,
        kind_name: str,
        record_id: str,
        target_status: str,
        tenant_id: str,
    ) -> Any:
        kind = get_ledger_kind(kind_name)
        record_id = require_identifier(record_id, f"{kind.name}_id")
        tenant_id = require_text(tenant_id, "tenant_id")
        target = require_text(str(getattr(target_status, "value", target_status)), "status").upper()
        now = self._clock()

        with self._repository.transaction() as conn:
            record = self._repository.fetch_by_id(conn, kind.table, record_id, tenant_id)
            if record is None:
                raise NotFoundError(f"{kind.name.capitalize()} {record_id} not found")

            current = record.status.value
            if not check_transition(kind.graph, current, target):
                logger.debug("%s %s already %s; no-op", kind.name, record_id, target)
                return record

            if not kind.manual_transitions:
                raise InvalidTransitionError(
                    current,
                    target,
                    detail=f"{kind.name} status changes only through settlement",
                )

            guard = self._guards.get(kind.name)
            if guard is not None:
                guard(conn, record, tenant_id)

            extra = {kind.stamp_column: now} if kind.stamp_column else None
            if not self._repository.compare_and_set_status(
                conn,
                kind.table,
                record_id,
                tenant_id,
                expected_status=current,
                target_status=target,
                extra=extra,
            ):
                raise InvalidTransitionError(current, target, detail="concurrent update")
            updated = self._repository.fetch_by_id(conn, kind.table, record_id, tenant_id)

        logger.info(
            "%s %s moved %s -> %s for tenant %s",
            kind.name.capitalize(),
            record_id,
            current,
            target,
            tenant_id,
        )
        return updated

    def _guard_payroll(self, conn: sqlite3.Connection, record: Payroll, tenant_id: str) -> None:
        faculty = self._repository.fetch_by_column(
            conn, FACULTY, "employee_id", record.employee_id, tenant_id
        )
        if faculty is None:
            raise NotFoundError(f"Faculty {record.employee_id} not found")

    def _guard_maintenance(
        self,
        conn: sqlite3.Connection,
        record: MaintenanceRequest,
        tenant_id: str,
    ) -> None:
        if self._repository.fetch_by_id(conn, ROOMS, record.room_id, tenant_id) is None:
            raise NotFoundError(f"Room {record.room_id} not found")

    def get(self, kind_name: str, record_id: str, tenant_id: str) -> Any:
        kind = get_ledger_kind(kind_name)
        record_id = require_identifier(record_id, f"{kind.name}_id")
        record = self._repository.get(kind.table, record_id, tenant_id)
        if record is None:
            raise NotFoundError(f"{kind.name.capitalize()} {record_id} not found")
        return record

    # --- HR ---------------------------------------------------------------

    def add_faculty(
        self,
        *,
        tenant_id: str,
        employee_id: str,
        name: str,
        email: str,
        department: str,
        designation: str,
        joining_date: Any,
        salary: float,
    ) -> Faculty:
        faculty = Faculty(
            faculty_id=new_record_id(),
            tenant_id=require_text(tenant_id, "tenant_id"),
            employee_id=require_text(employee_id, "employee_id", max_length=64),
            name=require_text(name, "name"),
            email=require_text(email, "email"),
            department=require_text(department, "department"),
            designation=require_text(designation, "designation"),
            joining_date=_require_date(joining_date, "joining_date"),
            salary=require_amount(salary, "salary"),
            created_at=self._clock(),
        )
        try:
            with self._repository.transaction() as conn:
                self._repository.insert(conn, FACULTY, faculty)
        except ConstraintViolationError as exc:
            raise ValidationError(
                f"Employee {faculty.employee_id} is already registered"
            ) from exc
        logger.info("Added faculty %s for tenant %s", faculty.employee_id, faculty.tenant_id)
        return faculty

    def create_leave(
        self,
        *,
        tenant_id: str,
        employee_id: str,
        leave_type: str,
        from_date: Any,
        to_date: Any,
        reason: str,
    ) -> LeaveRequest:
        tenant_id = require_text(tenant_id, "tenant_id")
        employee_id = require_text(employee_id, "employee_id", max_length=64)
        start = _require_date(from_date, "from_date")
        end = _require_date(to_date, "to_date")
        if start > end:
            raise ValidationError("from_date must not be after to_date")
        request = LeaveRequest(
            request_id=new_record_id(),
            tenant_id=tenant_id,
            employee_id=employee_id,
            leave_type=require_choice(leave_type, "leave_type", LEAVE_TYPES),
            from_date=start,
            to_date=end,
            reason=require_text(reason, "reason", max_length=1024),
            status=LeaveStatus(LEAVE_GRAPH.initial),
            created_at=self._clock(),
        )
        with self._repository.transaction() as conn:
            if self._repository.fetch_by_column(
                conn, FACULTY, "employee_id", employee_id, tenant_id
            ) is None:
                raise NotFoundError(f"Faculty {employee_id} not found")
            self._repository.insert(conn, LEAVE_REQUESTS, request)
        logger.info("Leave request %s created for tenant %s", request.request_id, tenant_id)
        return request

    def create_payroll(
        self,
        *,
        tenant_id: str,
        employee_id: str,
        month: Any,
        year: int,
        allowances: float = 0.0,
        deductions: float = 0.0,
    ) -> Payroll:
        tenant_id = require_text(tenant_id, "tenant_id")
        employee_id = require_text(employee_id, "employee_id", max_length=64)
        normalized_month = normalize_month(month)
        year = require_int(year, "year", minimum=2000, maximum=9999)
        allowances = require_amount(allowances, "allowances")
        deductions = require_amount(deductions, "deductions")
        now = self._clock()

        with self._repository.transaction() as conn:
            faculty: Optional[Faculty] = self._repository.fetch_by_column(
                conn, FACULTY, "employee_id", employee_id, tenant_id
            )
            if faculty is None:
                raise NotFoundError(f"Faculty {employee_id} not found")
            payroll = Payroll(
                payroll_id=new_record_id(),
                tenant_id=tenant_id,
                employee_id=employee_id,
                employee_name=faculty.name,
                month=normalized_month,
                year=year,
                basic_salary=faculty.salary,
                allowances=allowances,
                deductions=deductions,
                net_salary=compute_net_salary(faculty.salary, allowances, deductions),
                status=PayrollStatus(PAYROLL_GRAPH.initial),
                created_at=now,
            )
            self._repository.insert(conn, PAYROLL, payroll)
        logger.info(
            "Payroll %s created for %s (net %.2f) tenant %s",
            payroll.payroll_id,
            employee_id,
            payroll.net_salary,
            tenant_id,
        )
        return payroll

    # --- hostel maintenance -----------------------------------------------

    def report_maintenance(
        self,
        *,
        tenant_id: str,
        room_id: str,
        issue_type: str,
        description: str,
        reported_by: str,
    ) -> MaintenanceRequest:
        tenant_id = require_text(tenant_id, "tenant_id")
        room_id = require_identifier(room_id, "room_id")
        request = MaintenanceRequest(
            request_id=new_record_id(),
            tenant_id=tenant_id,
            room_id=room_id,
            issue_type=require_text(issue_type, "issue_type", max_length=64),
            description=require_text(description, "description", max_length=2048),
            reported_by=require_text(reported_by, "reported_by"),
            status=MaintenanceStatus(MAINTENANCE_GRAPH.initial),
            created_at=self._clock(),
        )
        with self._repository.transaction() as conn:
            if self._repository.fetch_by_id(conn, ROOMS, room_id, tenant_id) is None:
                raise NotFoundError(f"Room {room_id} not found")
            self._repository.insert(conn, MAINTENANCE_REQUESTS, request)
        logger.info("Maintenance request %s reported for tenant %s", request.request_id, tenant_id)
        return request

    # --- finance ----------------------------------------------------------

    def create_fee(
        self,
        *,
        tenant_id: str,
        student_id: str,
        fee_type: str,
        amount: float,
        due_date: Any,
    ) -> Fee:
        fee = Fee(
            fee_id=new_record_id(),
            tenant_id=require_text(tenant_id, "tenant_id"),
            student_id=require_text(student_id, "student_id", max_length=64),
            fee_type=require_choice(fee_type, "fee_type", FEE_TYPES),
            amount=require_amount(amount, "amount", allow_zero=False),
            due_date=_require_date(due_date, "due_date"),
            status=FeeStatus(FEE_GRAPH.initial),
            created_at=self._clock(),
        )
        with self._repository.transaction() as conn:
            self._repository.insert(conn, FEES, fee)
        logger.info("Fee %s created for tenant %s", fee.fee_id, fee.tenant_id)
        return fee

    def record_payment(
        self,
        *,
        tenant_id: str,
        fee_id: str,
        amount: float,
        payment_method: str,
        transaction_id: str,
    ) -> Payment:
        """Insert a payment and settle its fee ``PENDING -> PAID`` atomically.

        A retry carrying the same transaction id for the same fee returns the
        payment already on file.
        """
        tenant_id = require_text(tenant_id, "tenant_id")
        fee_id = require_identifier(fee_id, "fee_id")
        amount = require_amount(amount, "amount", allow_zero=False)
        payment_method = require_choice(payment_method, "payment_method", PAYMENT_METHODS)
        transaction_id = require_text(transaction_id, "transaction_id", max_length=128)
        now = self._clock()

        with self._repository.transaction() as conn:
            fee: Optional[Fee] = self._repository.fetch_by_id(conn, FEES, fee_id, tenant_id)
            if fee is None:
                raise NotFoundError(f"Fee {fee_id} not found")

            existing: Optional[Payment] = self._repository.fetch_by_column(
                conn, PAYMENTS, "transaction_id", transaction_id, tenant_id
            )
            if existing is not None:
                if existing.fee_id != fee.fee_id:
                    raise ValidationError(
                        f"transaction_id {transaction_id} was already used for another fee"
                    )
                logger.debug("Payment %s already recorded; no-op", transaction_id)
                return existing

            current = fee.status.value
            if not check_transition(FEE_GRAPH, current, FeeStatus.PAID.value):
                raise InvalidTransitionError(current, FeeStatus.PAID.value, detail="fee already settled")

            if not math.isclose(amount, fee.amount, abs_tol=0.005):
                raise ValidationError(
                    f"amount {amount:.2f} does not match fee amount {fee.amount:.2f}"
                )

            payment = Payment(
                payment_id=new_record_id(),
                tenant_id=tenant_id,
                fee_id=fee.fee_id,
                student_id=fee.student_id,
                amount=amount,
                payment_method=payment_method,
                transaction_id=transaction_id,
                paid_at=now,
            )
            self._repository.insert(conn, PAYMENTS, payment)
            if not self._repository.compare_and_set_status(
                conn,
                FEES,
                fee.fee_id,
                tenant_id,
                expected_status=current,
                target_status=FeeStatus.PAID.value,
                extra={"paid_at": now},
            ):
                raise InvalidTransitionError(current, FeeStatus.PAID.value, detail="concurrent update")

        logger.info(
            "Payment %s settled fee %s for tenant %s",
            payment.payment_id,
            fee.fee_id,
            tenant_id,
        )
        return payment

    def create_invoice(
        self,
        *,
        tenant_id: str,
        student_id: str,
        items: Iterable[Any],
    ) -> Invoice:
        tenant_id = require_text(tenant_id, "tenant_id")
        student_id = require_text(student_id, "student_id", max_length=64)
        invoice_items = tuple(self._coerce_invoice_item(item) for item in items)
        if not invoice_items:
            raise ValidationError("an invoice needs at least one item")
        now = self._clock()
        invoice = Invoice(
            invoice_id=new_record_id(),
            tenant_id=tenant_id,
            invoice_number=f"INV-{now:%Y%m%d%H%M%S}-{uuid.uuid4().hex[:6].upper()}",
            student_id=student_id,
            items=invoice_items,
            total_amount=compute_invoice_total(invoice_items),
            created_at=now,
        )
        with self._repository.transaction() as conn:
            self._repository.insert(conn, INVOICES, invoice)
        logger.info("Invoice %s created for tenant %s", invoice.invoice_number, tenant_id)
        return invoice

    @staticmethod
    def _coerce_invoice_item(item: Any) -> InvoiceItem:
        if isinstance(item, InvoiceItem):
            description, amount = item.description, item.amount
        elif isinstance(item, Mapping):
            description, amount = item.get("description"), item.get("amount")
        else:
            raise ValidationError("invoice items need a description and an amount")
        return InvoiceItem(
            description=require_text(description, "description"),
            amount=require_amount(amount, "amount"),
        )

    # --- tenant lists -----------------------------------------------------

    def list_faculty(self, tenant_id: str) -> list[Faculty]:
        return self._repository.list_by_tenant(FACULTY, tenant_id)

    def list_leave_requests(self, tenant_id: str) -> list[LeaveRequest]:
        return self._repository.list_by_tenant(LEAVE_REQUESTS, tenant_id)

    def list_payroll(self, tenant_id: str) -> list[Payroll]:
        return self._repository.list_by_tenant(PAYROLL, tenant_id)

    def list_maintenance_requests(self, tenant_id: str) -> list[MaintenanceRequest]:
        return self._repository.list_by_tenant(MAINTENANCE_REQUESTS, tenant_id)

    def list_fees(self, tenant_id: str) -> list[Fee]:
        return self._repository.list_by_tenant(FEES, tenant_id)

    def list_payments(self, tenant_id: str) -> list[Payment]:
        return self._repository.list_by_tenant(PAYMENTS, tenant_id)

    def list_invoices(self, tenant_id: str) -> list[Invoice]:
        return self._repository.list_by_tenant(INVOICES, tenant_id)
