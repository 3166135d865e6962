from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from datetime import date

import pytest

from campus_ledger.domain.errors import (
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from campus_ledger.domain.models import (
    FeeStatus,
    LeaveStatus,
    MaintenanceStatus,
    PayrollStatus,
)
from campus_ledger.repository.data_repository import FEES, PAYMENTS, DataRepository
from campus_ledger.services.allocation_service import CapacityAllocator
from campus_ledger.services.ledger_service import StatusLedger, normalize_month
from campus_ledger.utils.config import get_settings


TENANT = "CAMPUS_A"


def _build_ledger(tmp_path) -> tuple[StatusLedger, CapacityAllocator, DataRepository]:
    get_settings.cache_clear()
    settings = replace(get_settings(), database_path=tmp_path / "ledger.db")
    repository = DataRepository(settings)
    repository.initialize_database()
    ledger = StatusLedger(repository=repository, settings=settings)
    allocator = CapacityAllocator(repository=repository, settings=settings)
    return ledger, allocator, repository


def _add_faculty(ledger: StatusLedger, employee_id: str = "EMP-001", salary: float = 5000.0):
    return ledger.add_faculty(
        tenant_id=TENANT,
        employee_id=employee_id,
        name="Asha Rao",
        email="asha.rao@example.edu",
        department="Physics",
        designation="Professor",
        joining_date="2020-07-01",
        salary=salary,
    )


def _leave_payload(**overrides):
    payload = {
        "employee_id": "EMP-001",
        "leave_type": "sick",
        "from_date": "2026-03-02",
        "to_date": "2026-03-04",
        "reason": "Flu",
    }
    payload.update(overrides)
    return payload


# --- leave ---

def test_leave_approval_is_idempotent_and_final(tmp_path) -> None:
    ledger, _, _ = _build_ledger(tmp_path)
    _add_faculty(ledger)
    request = ledger.create("leave", _leave_payload(), TENANT)
    assert request.status is LeaveStatus.PENDING

    approved = ledger.transition("leave", request.request_id, "APPROVED", TENANT)
    assert approved.status is LeaveStatus.APPROVED
    assert approved.decided_at is not None

    again = ledger.transition("leave", request.request_id, "APPROVED", TENANT)
    assert again.status is LeaveStatus.APPROVED
    assert again.decided_at == approved.decided_at

    with pytest.raises(InvalidTransitionError):
        ledger.transition("leave", request.request_id, "REJECTED", TENANT)
    assert ledger.get("leave", request.request_id, TENANT).status is LeaveStatus.APPROVED


def test_leave_accepts_lowercase_status(tmp_path) -> None:
    ledger, _, _ = _build_ledger(tmp_path)
    _add_faculty(ledger)
    request = ledger.create("leave", _leave_payload(), TENANT)
    rejected = ledger.transition("leave", request.request_id, "rejected", TENANT)
    assert rejected.status is LeaveStatus.REJECTED


def test_leave_validation(tmp_path) -> None:
    ledger, _, _ = _build_ledger(tmp_path)
    _add_faculty(ledger)
    with pytest.raises(ValidationError):
        ledger.create("leave", _leave_payload(from_date="2026-03-05"), TENANT)
    with pytest.raises(ValidationError):
        ledger.create("leave", _leave_payload(leave_type="sabbatical"), TENANT)
    with pytest.raises(ValidationError):
        ledger.create("leave", {"employee_id": "EMP-001"}, TENANT)
    with pytest.raises(NotFoundError):
        ledger.create("leave", _leave_payload(employee_id="EMP-404"), TENANT)

    request = ledger.create("leave", _leave_payload(), TENANT)
    with pytest.raises(ValidationError):
        ledger.transition("leave", request.request_id, "ESCALATED", TENANT)


def test_unknown_record_kind_rejected(tmp_path) -> None:
    ledger, _, _ = _build_ledger(tmp_path)
    with pytest.raises(ValidationError):
        ledger.transition("grades", "0" * 32, "PAID", TENANT)


def test_duplicate_employee_rejected(tmp_path) -> None:
    ledger, _, _ = _build_ledger(tmp_path)
    _add_faculty(ledger)
    with pytest.raises(ValidationError):
        _add_faculty(ledger)


# --- payroll ---

def test_payroll_net_salary_and_payment(tmp_path) -> None:
    ledger, _, _ = _build_ledger(tmp_path)
    _add_faculty(ledger, salary=5000.0)

    payroll = ledger.create_payroll(
        tenant_id=TENANT,
        employee_id="EMP-001",
        month="March",
        year=2026,
        allowances=500.0,
        deductions=450.0,
    )
    assert payroll.month == "03"
    assert payroll.basic_salary == 5000.0
    assert payroll.net_salary == 5050.0
    assert payroll.employee_name == "Asha Rao"

    paid = ledger.transition("payroll", payroll.payroll_id, PayrollStatus.PAID, TENANT)
    assert paid.status is PayrollStatus.PAID
    assert paid.paid_at is not None
    with pytest.raises(InvalidTransitionError):
        ledger.transition("payroll", payroll.payroll_id, "PENDING", TENANT)


def test_payroll_requires_known_employee_and_valid_period(tmp_path) -> None:
    ledger, _, _ = _build_ledger(tmp_path)
    _add_faculty(ledger)
    with pytest.raises(NotFoundError):
        ledger.create_payroll(tenant_id=TENANT, employee_id="EMP-404", month=3, year=2026)
    with pytest.raises(ValidationError):
        ledger.create_payroll(tenant_id=TENANT, employee_id="EMP-001", month=13, year=2026)
    with pytest.raises(ValidationError):
        ledger.create_payroll(tenant_id=TENANT, employee_id="EMP-001", month=3, year=1999)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [(1, "01"), ("12", "12"), ("march", "03"), ("Sep", "09"), (" 7 ", "07")],
)
def test_normalize_month(raw, expected) -> None:
    assert normalize_month(raw) == expected


# --- maintenance ---

def test_maintenance_lifecycle(tmp_path) -> None:
    ledger, allocator, _ = _build_ledger(tmp_path)
    room = allocator.register_room(
        tenant_id=TENANT,
        room_number="101",
        hostel_name="North Hall",
        room_type="single",
        floor=1,
        capacity=1,
    )
    request = ledger.report_maintenance(
        tenant_id=TENANT,
        room_id=room.room_id,
        issue_type="plumbing",
        description="Leaking tap",
        reported_by="S-1",
    )
    assert request.status is MaintenanceStatus.PENDING

    in_progress = ledger.transition("maintenance", request.request_id, "IN_PROGRESS", TENANT)
    assert in_progress.updated_at is not None
    resolved = ledger.transition("maintenance", request.request_id, "RESOLVED", TENANT)
    assert resolved.status is MaintenanceStatus.RESOLVED

    with pytest.raises(InvalidTransitionError):
        ledger.transition("maintenance", request.request_id, "IN_PROGRESS", TENANT)


def test_maintenance_for_unknown_room(tmp_path) -> None:
    ledger, _, _ = _build_ledger(tmp_path)
    with pytest.raises(NotFoundError):
        ledger.report_maintenance(
            tenant_id=TENANT,
            room_id="0" * 32,
            issue_type="electrical",
            description="No power",
            reported_by="S-1",
        )


# --- fees and payments ---

def _create_fee(ledger: StatusLedger, amount: float = 1200.0):
    return ledger.create_fee(
        tenant_id=TENANT,
        student_id="S-1",
        fee_type="tuition",
        amount=amount,
        due_date=date(2026, 4, 1),
    )


def test_payment_settles_fee(tmp_path) -> None:
    ledger, _, repository = _build_ledger(tmp_path)
    fee = _create_fee(ledger)

    payment = ledger.record_payment(
        tenant_id=TENANT,
        fee_id=fee.fee_id,
        amount=1200.0,
        payment_method="UPI",
        transaction_id="TXN-1",
    )
    assert payment.student_id == "S-1"
    assert payment.payment_method == "upi"

    settled = ledger.get("fee", fee.fee_id, TENANT)
    assert settled.status is FeeStatus.PAID
    assert settled.paid_at == payment.paid_at
    assert repository.count_rows(PAYMENTS, TENANT) == 1


def test_payment_retry_returns_existing_payment(tmp_path) -> None:
    ledger, _, repository = _build_ledger(tmp_path)
    fee = _create_fee(ledger)
    kwargs = dict(
        tenant_id=TENANT,
        fee_id=fee.fee_id,
        amount=1200.0,
        payment_method="card",
        transaction_id="TXN-1",
    )

    first = ledger.record_payment(**kwargs)
    second = ledger.record_payment(**kwargs)

    assert second.payment_id == first.payment_id
    assert repository.count_rows(PAYMENTS, TENANT) == 1


def test_second_payment_on_paid_fee_rejected(tmp_path) -> None:
    ledger, _, repository = _build_ledger(tmp_path)
    fee = _create_fee(ledger)
    other_fee = _create_fee(ledger, amount=300.0)
    ledger.record_payment(
        tenant_id=TENANT,
        fee_id=fee.fee_id,
        amount=1200.0,
        payment_method="cash",
        transaction_id="TXN-1",
    )

    with pytest.raises(InvalidTransitionError):
        ledger.record_payment(
            tenant_id=TENANT,
            fee_id=fee.fee_id,
            amount=1200.0,
            payment_method="cash",
            transaction_id="TXN-2",
        )
    with pytest.raises(ValidationError):
        ledger.record_payment(
            tenant_id=TENANT,
            fee_id=other_fee.fee_id,
            amount=300.0,
            payment_method="cash",
            transaction_id="TXN-1",
        )
    assert repository.count_rows(PAYMENTS, TENANT) == 1


def test_payment_amount_must_match_fee(tmp_path) -> None:
    ledger, _, repository = _build_ledger(tmp_path)
    fee = _create_fee(ledger)
    with pytest.raises(ValidationError):
        ledger.record_payment(
            tenant_id=TENANT,
            fee_id=fee.fee_id,
            amount=1000.0,
            payment_method="cash",
            transaction_id="TXN-1",
        )
    assert ledger.get("fee", fee.fee_id, TENANT).status is FeeStatus.PENDING
    assert repository.count_rows(PAYMENTS, TENANT) == 0


def test_concurrent_payments_settle_fee_once(tmp_path) -> None:
    ledger, _, repository = _build_ledger(tmp_path)
    fee = _create_fee(ledger)

    def pay(index: int) -> str:
        try:
            ledger.record_payment(
                tenant_id=TENANT,
                fee_id=fee.fee_id,
                amount=1200.0,
                payment_method="card",
                transaction_id=f"TXN-{index}",
            )
            return "paid"
        except InvalidTransitionError:
            return "rejected"

    with ThreadPoolExecutor(max_workers=6) as pool:
        outcomes = list(pool.map(pay, range(6)))

    assert outcomes.count("paid") == 1
    assert repository.count_rows(PAYMENTS, TENANT) == 1
    assert repository.count_rows(FEES, TENANT) == 1


def test_fee_status_cannot_be_set_directly(tmp_path) -> None:
    ledger, _, _ = _build_ledger(tmp_path)
    fee = _create_fee(ledger)
    with pytest.raises(InvalidTransitionError):
        ledger.transition("fee", fee.fee_id, "PAID", TENANT)


def test_fee_transition_reports_missing_and_malformed_ids(tmp_path) -> None:
    ledger, _, _ = _build_ledger(tmp_path)
    fee = _create_fee(ledger)

    with pytest.raises(NotFoundError):
        ledger.transition("fee", "0" * 32, "PAID", TENANT)
    with pytest.raises(ValidationError):
        ledger.transition("fee", "not-an-id", "PAID", TENANT)
    with pytest.raises(NotFoundError):
        ledger.transition("fee", fee.fee_id, "PAID", "CAMPUS_B")


def test_fee_transition_to_current_status_is_noop(tmp_path) -> None:
    ledger, _, _ = _build_ledger(tmp_path)
    fee = _create_fee(ledger)

    unchanged = ledger.transition("fee", fee.fee_id, "pending", TENANT)
    assert unchanged.status is FeeStatus.PENDING
    assert unchanged.paid_at is None


def test_failed_fee_status_update_rolls_back_payment(tmp_path, monkeypatch) -> None:
    ledger, _, repository = _build_ledger(tmp_path)
    fee = _create_fee(ledger)
    monkeypatch.setattr(repository, "compare_and_set_status", lambda *args, **kwargs: False)

    with pytest.raises(InvalidTransitionError):
        ledger.record_payment(
            tenant_id=TENANT,
            fee_id=fee.fee_id,
            amount=1200.0,
            payment_method="card",
            transaction_id="TXN-1",
        )

    monkeypatch.undo()
    assert repository.count_rows(PAYMENTS, TENANT) == 0
    assert ledger.get("fee", fee.fee_id, TENANT).status is FeeStatus.PENDING


def test_create_rejects_unknown_and_missing_payload_fields(tmp_path) -> None:
    ledger, _, repository = _build_ledger(tmp_path)
    payload = {
        "student_id": "S-1",
        "fee_type": "tuition",
        "amount": 1200.0,
        "due_date": "2026-04-01",
    }

    with pytest.raises(ValidationError):
        ledger.create("fee", {**payload, "discount": 50.0}, TENANT)
    with pytest.raises(ValidationError):
        ledger.create("fee", {key: payload[key] for key in ("student_id", "amount")}, TENANT)
    assert repository.count_rows(FEES, TENANT) == 0


def test_create_does_not_relabel_errors_raised_while_creating(tmp_path, monkeypatch) -> None:
    ledger, _, _ = _build_ledger(tmp_path)

    def broken_create_fee(*, tenant_id, student_id, fee_type, amount, due_date):
        raise TypeError("unsupported operand type(s)")

    monkeypatch.setattr(ledger, "create_fee", broken_create_fee)
    with pytest.raises(TypeError):
        ledger.create(
            "fee",
            {"student_id": "S-1", "fee_type": "tuition", "amount": 1200.0, "due_date": "2026-04-01"},
            TENANT,
        )


# --- invoices ---

def test_invoice_total_and_number(tmp_path) -> None:
    ledger, _, _ = _build_ledger(tmp_path)
    invoice = ledger.create_invoice(
        tenant_id=TENANT,
        student_id="S-1",
        items=[
            {"description": "Tuition", "amount": 1200.0},
            {"description": "Hostel", "amount": 450.25},
        ],
    )
    assert invoice.total_amount == pytest.approx(1650.25)
    assert invoice.invoice_number.startswith("INV-")

    stored = ledger.list_invoices(TENANT)
    assert len(stored) == 1
    assert [item.description for item in stored[0].items] == ["Tuition", "Hostel"]


def test_invoice_needs_items(tmp_path) -> None:
    ledger, _, _ = _build_ledger(tmp_path)
    with pytest.raises(ValidationError):
        ledger.create_invoice(tenant_id=TENANT, student_id="S-1", items=[])
