"""HTTP controller layer for fees, payments and invoices."""

from __future__ import annotations

from datetime import date, datetime

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, ConfigDict, Field

from campus_ledger.controllers.dependencies import get_tenant_gate, ledger_errors
from campus_ledger.domain.models import FeeStatus
from campus_ledger.services.tenant_gate import TenantGate


router = APIRouter(prefix="/api", tags=["finance"])


class FeeRequest(BaseModel):
    student_id: str = Field(min_length=1, max_length=64)
    fee_type: str = Field(pattern="^(tuition|hostel|library|misc)$")
    amount: float = Field(gt=0.0)
    due_date: date


class FeeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    fee_id: str
    student_id: str
    fee_type: str
    amount: float
    due_date: date
    status: FeeStatus
    created_at: datetime
    paid_at: datetime | None = None


class PaymentRequest(BaseModel):
    fee_id: str = Field(min_length=1)
    amount: float = Field(gt=0.0)
    payment_method: str = Field(pattern="^(cash|card|upi|bank_transfer)$")
    transaction_id: str = Field(min_length=1, max_length=128)


class PaymentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    payment_id: str
    fee_id: str
    student_id: str
    amount: float
    payment_method: str
    transaction_id: str
    paid_at: datetime


class InvoiceItemPayload(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    description: str = Field(min_length=1, max_length=256)
    amount: float = Field(ge=0.0)


class InvoiceRequest(BaseModel):
    student_id: str = Field(min_length=1, max_length=64)
    items: list[InvoiceItemPayload] = Field(min_length=1)


class InvoiceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    invoice_id: str
    invoice_number: str
    student_id: str
    items: list[InvoiceItemPayload]
    total_amount: float
    created_at: datetime


@router.post("/fees", response_model=FeeResponse, status_code=status.HTTP_201_CREATED)
async def create_fee(
    payload: FeeRequest,
    gate: TenantGate = Depends(get_tenant_gate),
) -> FeeResponse:
    with ledger_errors("create fee"):
        fee = gate.create_fee(**payload.model_dump())
    return FeeResponse.model_validate(fee)


@router.get("/fees", response_model=list[FeeResponse])
async def get_fees(gate: TenantGate = Depends(get_tenant_gate)) -> list[FeeResponse]:
    with ledger_errors("list fees"):
        fees = gate.list_fees()
    return [FeeResponse.model_validate(fee) for fee in fees]


@router.post("/payments", response_model=PaymentResponse, status_code=status.HTTP_201_CREATED)
async def create_payment(
    payload: PaymentRequest,
    gate: TenantGate = Depends(get_tenant_gate),
) -> PaymentResponse:
    """Record a payment and settle its fee in the same transaction."""
    with ledger_errors("record payment"):
        payment = gate.record_payment(**payload.model_dump())
    return PaymentResponse.model_validate(payment)


@router.get("/payments", response_model=list[PaymentResponse])
async def get_payments(gate: TenantGate = Depends(get_tenant_gate)) -> list[PaymentResponse]:
    with ledger_errors("list payments"):
        payments = gate.list_payments()
    return [PaymentResponse.model_validate(payment) for payment in payments]


@router.post("/invoices", response_model=InvoiceResponse, status_code=status.HTTP_201_CREATED)
async def create_invoice(
    payload: InvoiceRequest,
    gate: TenantGate = Depends(get_tenant_gate),
) -> InvoiceResponse:
    with ledger_errors("create invoice"):
        invoice = gate.create_invoice(
            student_id=payload.student_id,
            items=[item.model_dump() for item in payload.items],
        )
    return InvoiceResponse.model_validate(invoice)


@router.get("/invoices", response_model=list[InvoiceResponse])
async def get_invoices(gate: TenantGate = Depends(get_tenant_gate)) -> list[InvoiceResponse]:
    with ledger_errors("list invoices"):
        invoices = gate.list_invoices()
    return [InvoiceResponse.model_validate(invoice) for invoice in invoices]
