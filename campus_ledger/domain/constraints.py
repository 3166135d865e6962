"""Domain-level rules: status transition graphs and ledger configuration."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping

from campus_ledger.domain.errors import InvalidTransitionError, ValidationError
from campus_ledger.domain.models import (
    AllocationStatus,
    FeeStatus,
    IssueStatus,
    LeaveStatus,
    MaintenanceStatus,
    PayrollStatus,
)


@dataclass(frozen=True)
class LedgerConfig:
    fine_rate_per_day: float
    default_loan_days: int
    max_loan_days: int


def validate_ledger_config(config: LedgerConfig) -> None:
    if config.fine_rate_per_day < 0.0:
        raise ValueError("fine_rate_per_day must be >= 0")
    if config.default_loan_days <= 0:
        raise ValueError("default_loan_days must be > 0")
    if config.max_loan_days <= 0:
        raise ValueError("max_loan_days must be > 0")
    if config.default_loan_days > config.max_loan_days:
        raise ValueError("default_loan_days must not exceed max_loan_days")


@dataclass(frozen=True)
class TransitionGraph:
    """Fixed directed graph of named statuses for one record type."""

    name: str
    initial: str
    edges: Mapping[str, frozenset[str]] = field(default_factory=dict)

    @property
    def statuses(self) -> frozenset[str]:
        reachable = set(self.edges)
        for targets in self.edges.values():
            reachable.update(targets)
        reachable.add(self.initial)
        return frozenset(reachable)

    def is_terminal(self, status: str) -> bool:
        return not self.edges.get(status)

    def allows(self, current: str, target: str) -> bool:
        return target in self.edges.get(current, frozenset())


def check_transition(graph: TransitionGraph, current: str, target: str) -> bool:
    """Return True when the move must be applied, False for an idempotent no-op.

    Raises ValidationError for a status the graph does not know and
    InvalidTransitionError for a known status that is not reachable.
    """
    if target not in graph.statuses:
        raise ValidationError(f"Unknown {graph.name} status: {target}")
    if current == target:
        return False
    if not graph.allows(current, target):
        raise InvalidTransitionError(current, target, detail=graph.name)
    return True


def _graph(name: str, initial: str, edges: dict[str, tuple[str, ...]]) -> TransitionGraph:
    return TransitionGraph(
        name=name,
        initial=initial,
        edges={source: frozenset(targets) for source, targets in edges.items()},
    )


ROOM_ALLOCATION_GRAPH = _graph(
    "room allocation",
    AllocationStatus.ACTIVE.value,
    {AllocationStatus.ACTIVE.value: (AllocationStatus.RELEASED.value,)},
)

BOOK_ISSUE_GRAPH = _graph(
    "book issue",
    IssueStatus.ISSUED.value,
    {
        IssueStatus.ISSUED.value: (
            IssueStatus.RETURNED.value,
            IssueStatus.RETURNED_WITH_FINE.value,
        )
    },
)

MAINTENANCE_GRAPH = _graph(
    "maintenance request",
    MaintenanceStatus.PENDING.value,
    {
        MaintenanceStatus.PENDING.value: (
            MaintenanceStatus.IN_PROGRESS.value,
            MaintenanceStatus.RESOLVED.value,
        ),
        MaintenanceStatus.IN_PROGRESS.value: (MaintenanceStatus.RESOLVED.value,),
    },
)

LEAVE_GRAPH = _graph(
    "leave request",
    LeaveStatus.PENDING.value,
    {LeaveStatus.PENDING.value: (LeaveStatus.APPROVED.value, LeaveStatus.REJECTED.value)},
)

FEE_GRAPH = _graph(
    "fee",
    FeeStatus.PENDING.value,
    {FeeStatus.PENDING.value: (FeeStatus.PAID.value,)},
)

PAYROLL_GRAPH = _graph(
    "payroll",
    PayrollStatus.PENDING.value,
    {PayrollStatus.PENDING.value: (PayrollStatus.PAID.value,)},
)
