"""Caller identity, closed role set and the role capability table."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from types import MappingProxyType

from campus_ledger.domain.errors import PermissionDeniedError, ValidationError


class Role(str, Enum):
    STUDENT = "student"
    FACULTY = "faculty"
    ADMIN = "admin"

    @classmethod
    def parse(cls, value: str) -> "Role":
        try:
            return cls(value.strip().lower())
        except ValueError as exc:
            allowed = ", ".join(role.value for role in cls)
            raise ValidationError(f"role must be one of: {allowed}") from exc


class Capability(str, Enum):
    READ = "read"
    MANAGE_POOLS = "manage_pools"
    ALLOCATE = "allocate"
    REPORT_MAINTENANCE = "report_maintenance"
    RESOLVE_MAINTENANCE = "resolve_maintenance"
    MANAGE_FINANCE = "manage_finance"
    PAY_FEES = "pay_fees"
    MANAGE_STAFF = "manage_staff"
    REQUEST_LEAVE = "request_leave"
    DECIDE_LEAVE = "decide_leave"
    MANAGE_PAYROLL = "manage_payroll"


ROLE_CAPABILITIES = MappingProxyType(
    {
        Role.STUDENT: frozenset(
            {Capability.READ, Capability.REPORT_MAINTENANCE, Capability.PAY_FEES}
        ),
        Role.FACULTY: frozenset(
            {Capability.READ, Capability.REPORT_MAINTENANCE, Capability.REQUEST_LEAVE}
        ),
        Role.ADMIN: frozenset(Capability),
    }
)


@dataclass(frozen=True)
class Identity:
    """Validated caller identity produced by the credential validator."""

    subject_id: str
    role: Role
    tenant_id: str
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at

    def has(self, capability: Capability) -> bool:
        return capability in ROLE_CAPABILITIES[self.role]


def require_capability(identity: Identity, capability: Capability) -> None:
    if not identity.has(capability):
        raise PermissionDeniedError(
            f"role '{identity.role.value}' is not allowed to {capability.value.replace('_', ' ')}"
        )
