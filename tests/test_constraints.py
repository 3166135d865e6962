"""Tests for ledger config validation and the fixed status graphs."""

from __future__ import annotations

import pytest

from campus_ledger.domain.constraints import (
    BOOK_ISSUE_GRAPH,
    FEE_GRAPH,
    LEAVE_GRAPH,
    MAINTENANCE_GRAPH,
    PAYROLL_GRAPH,
    ROOM_ALLOCATION_GRAPH,
    LedgerConfig,
    check_transition,
    validate_ledger_config,
)
from campus_ledger.domain.errors import InvalidTransitionError, ValidationError


def valid_config(**overrides) -> LedgerConfig:
    """Return a valid baseline LedgerConfig, optionally overriding fields."""
    defaults = {
        "fine_rate_per_day": 5.0,
        "default_loan_days": 14,
        "max_loan_days": 180,
    }
    defaults.update(overrides)
    return LedgerConfig(**defaults)


# --- LedgerConfig ---

def test_valid_config_passes() -> None:
    validate_ledger_config(valid_config())


def test_zero_fine_rate_is_allowed() -> None:
    validate_ledger_config(valid_config(fine_rate_per_day=0.0))


def test_negative_fine_rate_raises() -> None:
    with pytest.raises(ValueError):
        validate_ledger_config(valid_config(fine_rate_per_day=-0.5))


def test_zero_default_loan_days_raises() -> None:
    with pytest.raises(ValueError):
        validate_ledger_config(valid_config(default_loan_days=0))


def test_zero_max_loan_days_raises() -> None:
    with pytest.raises(ValueError):
        validate_ledger_config(valid_config(max_loan_days=0))


def test_default_loan_days_above_max_raises() -> None:
    with pytest.raises(ValueError):
        validate_ledger_config(valid_config(default_loan_days=30, max_loan_days=21))


# --- transition graphs ---

@pytest.mark.parametrize(
    ("graph", "current", "target"),
    [
        (ROOM_ALLOCATION_GRAPH, "ACTIVE", "RELEASED"),
        (BOOK_ISSUE_GRAPH, "ISSUED", "RETURNED"),
        (BOOK_ISSUE_GRAPH, "ISSUED", "RETURNED_WITH_FINE"),
        (MAINTENANCE_GRAPH, "PENDING", "IN_PROGRESS"),
        (MAINTENANCE_GRAPH, "PENDING", "RESOLVED"),
        (MAINTENANCE_GRAPH, "IN_PROGRESS", "RESOLVED"),
        (LEAVE_GRAPH, "PENDING", "APPROVED"),
        (LEAVE_GRAPH, "PENDING", "REJECTED"),
        (FEE_GRAPH, "PENDING", "PAID"),
        (PAYROLL_GRAPH, "PENDING", "PAID"),
    ],
)
def test_legal_edges_apply(graph, current, target) -> None:
    assert check_transition(graph, current, target) is True


@pytest.mark.parametrize(
    ("graph", "current", "target"),
    [
        (ROOM_ALLOCATION_GRAPH, "RELEASED", "ACTIVE"),
        (BOOK_ISSUE_GRAPH, "RETURNED", "RETURNED_WITH_FINE"),
        (MAINTENANCE_GRAPH, "RESOLVED", "PENDING"),
        (MAINTENANCE_GRAPH, "IN_PROGRESS", "PENDING"),
        (LEAVE_GRAPH, "APPROVED", "REJECTED"),
        (LEAVE_GRAPH, "REJECTED", "PENDING"),
        (FEE_GRAPH, "PAID", "PENDING"),
        (PAYROLL_GRAPH, "PAID", "PENDING"),
    ],
)
def test_illegal_edges_raise(graph, current, target) -> None:
    with pytest.raises(InvalidTransitionError) as excinfo:
        check_transition(graph, current, target)
    assert excinfo.value.from_status == current
    assert excinfo.value.to_status == target


def test_same_status_is_a_noop() -> None:
    assert check_transition(LEAVE_GRAPH, "APPROVED", "APPROVED") is False


def test_unknown_status_is_a_validation_error() -> None:
    with pytest.raises(ValidationError):
        check_transition(LEAVE_GRAPH, "PENDING", "ESCALATED")


def test_terminal_statuses() -> None:
    assert ROOM_ALLOCATION_GRAPH.is_terminal("RELEASED")
    assert BOOK_ISSUE_GRAPH.is_terminal("RETURNED_WITH_FINE")
    assert not MAINTENANCE_GRAPH.is_terminal("IN_PROGRESS")
    assert LEAVE_GRAPH.statuses == frozenset({"PENDING", "APPROVED", "REJECTED"})
