"""HTTP controller layer for faculty, leave requests and payroll."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, ConfigDict, Field, field_validator

from campus_ledger.controllers.dependencies import get_tenant_gate, ledger_errors
from campus_ledger.domain.models import LeaveStatus, PayrollStatus
from campus_ledger.services.tenant_gate import TenantGate


router = APIRouter(prefix="/api", tags=["hr"])


class FacultyRequest(BaseModel):
    employee_id: str = Field(min_length=1, max_length=64)
    name: str = Field(min_length=1, max_length=256)
    email: str = Field(min_length=3, max_length=256)
    department: str = Field(min_length=1, max_length=128)
    designation: str = Field(min_length=1, max_length=128)
    joining_date: date
    salary: float = Field(ge=0.0)


class FacultyResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    faculty_id: str
    employee_id: str
    name: str
    email: str
    department: str
    designation: str
    joining_date: date
    salary: float
    created_at: datetime


class LeaveRequestData(BaseModel):
    employee_id: str = Field(min_length=1, max_length=64)
    leave_type: str = Field(pattern="^(sick|casual|vacation)$")
    from_date: date
    to_date: date
    reason: str = Field(min_length=1, max_length=1024)


class LeaveDecision(BaseModel):
    request_id: str = Field(min_length=1)
    status: LeaveStatus

    @field_validator("status", mode="before")
    @classmethod
    def normalize_status(cls, value: Any) -> Any:
        return value.strip().upper() if isinstance(value, str) else value

    @field_validator("status")
    @classmethod
    def validate_decision(cls, value: LeaveStatus) -> LeaveStatus:
        if value is LeaveStatus.PENDING:
            raise ValueError("status must be APPROVED or REJECTED")
        return value


class LeaveResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    request_id: str
    employee_id: str
    leave_type: str
    from_date: date
    to_date: date
    reason: str
    status: LeaveStatus
    created_at: datetime
    decided_at: datetime | None = None


class PayrollRequest(BaseModel):
    employee_id: str = Field(min_length=1, max_length=64)
    month: str = Field(min_length=1, max_length=16)
    year: int = Field(ge=2000, le=9999)
    allowances: float = Field(default=0.0, ge=0.0)
    deductions: float = Field(default=0.0, ge=0.0)


class PayrollResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    payroll_id: str
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
    paid_at: datetime | None = None


@router.post("/faculty", response_model=FacultyResponse, status_code=status.HTTP_201_CREATED)
async def add_faculty(
    payload: FacultyRequest,
    gate: TenantGate = Depends(get_tenant_gate),
) -> FacultyResponse:
    with ledger_errors("add faculty"):
        faculty = gate.add_faculty(**payload.model_dump())
    return FacultyResponse.model_validate(faculty)


@router.get("/faculty", response_model=list[FacultyResponse])
async def get_faculty(gate: TenantGate = Depends(get_tenant_gate)) -> list[FacultyResponse]:
    with ledger_errors("list faculty"):
        members = gate.list_faculty()
    return [FacultyResponse.model_validate(member) for member in members]


@router.post("/leave", response_model=LeaveResponse, status_code=status.HTTP_201_CREATED)
async def create_leave_request(
    payload: LeaveRequestData,
    gate: TenantGate = Depends(get_tenant_gate),
) -> LeaveResponse:
    with ledger_errors("create leave request"):
        request = gate.create("leave", payload.model_dump())
    return LeaveResponse.model_validate(request)


@router.put("/leave/approve", response_model=LeaveResponse)
async def decide_leave_request(
    payload: LeaveDecision,
    gate: TenantGate = Depends(get_tenant_gate),
) -> LeaveResponse:
    """Approve or reject a pending request; repeating the same decision is a no-op."""
    with ledger_errors("decide leave request"):
        request = gate.transition("leave", payload.request_id, payload.status.value)
    return LeaveResponse.model_validate(request)


@router.get("/leave", response_model=list[LeaveResponse])
async def get_leave_requests(gate: TenantGate = Depends(get_tenant_gate)) -> list[LeaveResponse]:
    with ledger_errors("list leave requests"):
        requests = gate.list_leave_requests()
    return [LeaveResponse.model_validate(request) for request in requests]


@router.post("/payroll", response_model=PayrollResponse, status_code=status.HTTP_201_CREATED)
async def create_payroll(
    payload: PayrollRequest,
    gate: TenantGate = Depends(get_tenant_gate),
) -> PayrollResponse:
    with ledger_errors("create payroll"):
        payroll = gate.create("payroll", payload.model_dump())
    return PayrollResponse.model_validate(payroll)


@router.put("/payroll/{payroll_id}/pay", response_model=PayrollResponse)
async def pay_payroll(
    payroll_id: str,
    gate: TenantGate = Depends(get_tenant_gate),
) -> PayrollResponse:
    with ledger_errors("pay payroll"):
        payroll = gate.transition("payroll", payroll_id, PayrollStatus.PAID.value)
    return PayrollResponse.model_validate(payroll)


@router.get("/payroll", response_model=list[PayrollResponse])
async def get_payroll(gate: TenantGate = Depends(get_tenant_gate)) -> list[PayrollResponse]:
    with ledger_errors("list payroll"):
        records = gate.list_payroll()
    return [PayrollResponse.model_validate(record) for record in records]
