"""Error taxonomy shared by the allocator, the status ledger and the gate."""

from __future__ import annotations


class LedgerError(Exception):
    """Base class for every failure the ledger core reports to its caller."""


class ValidationError(LedgerError):
    """Raised for malformed identifiers or inputs."""


class NotFoundError(LedgerError):
    """Raised when an entity is absent or belongs to another tenant."""


class CapacityExceededError(LedgerError):
    """Raised when a pool has no free unit left."""


class DuplicateAllocationError(LedgerError):
    """Raised when a subject already holds an active claim on a pool."""


class InvalidTransitionError(LedgerError):
    """Raised when a target status is not reachable from the current one."""

    def __init__(self, from_status: str, to_status: str, detail: str | None = None) -> None:
        self.from_status = from_status
        self.to_status = to_status
        message = f"Illegal status transition attempted: {from_status} -> {to_status}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class StoreUnavailableError(LedgerError):
    """Raised when the persistent store times out or is unreachable. Retryable."""


class AuthRejectedError(LedgerError):
    """Raised when a credential cannot be turned into a valid identity."""


class PermissionDeniedError(LedgerError):
    """Raised when an authenticated role lacks the capability for an operation."""
