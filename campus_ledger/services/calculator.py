"""Derived amounts: overdue fines, net salary and invoice totals."""

from __future__ import annotations

from datetime import datetime
from typing import Iterable

from campus_ledger.domain.errors import ValidationError
from campus_ledger.domain.models import InvoiceItem


def _require_aware(value: datetime, name: str) -> None:
    if value.tzinfo is None or value.utcoffset() is None:
        raise ValidationError(f"{name} must be timezone-aware")


def days_elapsed(due: datetime, now: datetime) -> int:
    """Whole days by which ``now`` exceeds ``due``; zero when not overdue."""
    _require_aware(due, "due")
    _require_aware(now, "now")
    if now <= due:
        return 0
    return (now - due).days


def compute_fine(due: datetime, now: datetime, rate_per_day: float) -> float:
    if rate_per_day < 0:
        raise ValidationError("rate_per_day must be >= 0")
    return float(days_elapsed(due, now) * rate_per_day)


def compute_net_salary(basic: float, allowances: float, deductions: float) -> float:
    # Negative results are returned unchanged; rejecting them is the caller's call.
    return float(basic + allowances - deductions)


def compute_invoice_total(items: Iterable[InvoiceItem]) -> float:
    return float(sum(item.amount for item in items))
