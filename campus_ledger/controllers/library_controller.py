"""HTTP controller layer for the library catalogue and book loans."""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, ConfigDict, Field

from campus_ledger.controllers.dependencies import get_tenant_gate, ledger_errors
from campus_ledger.domain.models import IssueStatus
from campus_ledger.services.tenant_gate import TenantGate


router = APIRouter(prefix="/api", tags=["library"])


class BookRequest(BaseModel):
    isbn: str = Field(min_length=1, max_length=32)
    title: str = Field(min_length=1, max_length=256)
    author: str = Field(min_length=1, max_length=256)
    category: str = Field(min_length=1, max_length=128)
    total_copies: int = Field(ge=1)


class BookResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    book_id: str
    isbn: str
    title: str
    author: str
    category: str
    total_copies: int
    available_copies: int = Field(ge=0)
    created_at: datetime


class IssueRequest(BaseModel):
    book_id: str = Field(min_length=1)
    student_id: str = Field(min_length=1, max_length=64)
    days: int | None = Field(default=None, ge=1)


class ReturnRequest(BaseModel):
    issue_id: str = Field(min_length=1)


class IssueResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    issue_id: str
    book_id: str
    student_id: str
    status: IssueStatus
    issued_at: datetime
    due_at: datetime
    returned_at: datetime | None = None
    fine_amount: float = Field(ge=0.0)


@router.post("/books", response_model=BookResponse, status_code=status.HTTP_201_CREATED)
async def add_book(
    payload: BookRequest,
    gate: TenantGate = Depends(get_tenant_gate),
) -> BookResponse:
    with ledger_errors("add book"):
        book = gate.register_book(**payload.model_dump())
    return BookResponse.model_validate(book)


@router.get("/books", response_model=list[BookResponse])
async def get_books(gate: TenantGate = Depends(get_tenant_gate)) -> list[BookResponse]:
    with ledger_errors("list books"):
        books = gate.list_books()
    return [BookResponse.model_validate(book) for book in books]


@router.post("/issue", response_model=IssueResponse, status_code=status.HTTP_201_CREATED)
async def issue_book(
    payload: IssueRequest,
    gate: TenantGate = Depends(get_tenant_gate),
) -> IssueResponse:
    with ledger_errors("issue book"):
        issue = gate.issue_book(payload.book_id, payload.student_id, loan_days=payload.days)
    return IssueResponse.model_validate(issue)


@router.post("/return", response_model=IssueResponse)
async def return_book(
    payload: ReturnRequest,
    gate: TenantGate = Depends(get_tenant_gate),
) -> IssueResponse:
    """Close a loan; repeating the call returns the already-closed loan."""
    with ledger_errors("return book"):
        issue = gate.return_book(payload.issue_id)
    return IssueResponse.model_validate(issue)


@router.get("/issues", response_model=list[IssueResponse])
async def get_issues(gate: TenantGate = Depends(get_tenant_gate)) -> list[IssueResponse]:
    with ledger_errors("list issues"):
        issues = gate.list_book_issues()
    return [IssueResponse.model_validate(issue) for issue in issues]
