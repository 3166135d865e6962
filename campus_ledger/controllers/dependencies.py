"""Shared FastAPI dependency providers for controller layer."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from campus_ledger.domain.errors import (
    AuthRejectedError,
    CapacityExceededError,
    DuplicateAllocationError,
    InvalidTransitionError,
    LedgerError,
    NotFoundError,
    PermissionDeniedError,
    StoreUnavailableError,
    ValidationError,
)
from campus_ledger.services.allocation_service import CapacityAllocator
from campus_ledger.services.auth_service import AuthService
from campus_ledger.services.ledger_service import StatusLedger
from campus_ledger.services.tenant_gate import TenantGate
from campus_ledger.utils.logger import get_logger


logger = get_logger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)

_STATUS_BY_ERROR: tuple[tuple[type[LedgerError], int], ...] = (
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (CapacityExceededError, status.HTTP_409_CONFLICT),
    (DuplicateAllocationError, status.HTTP_409_CONFLICT),
    (InvalidTransitionError, status.HTTP_409_CONFLICT),
    (AuthRejectedError, status.HTTP_401_UNAUTHORIZED),
    (PermissionDeniedError, status.HTTP_403_FORBIDDEN),
    (StoreUnavailableError, status.HTTP_503_SERVICE_UNAVAILABLE),
)


def to_http_exception(exc: LedgerError) -> HTTPException:
    """Map a ledger error kind onto its transport status code."""
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            headers = None
            if status_code == status.HTTP_401_UNAUTHORIZED:
                headers = {"WWW-Authenticate": "Bearer"}
            elif status_code == status.HTTP_503_SERVICE_UNAVAILABLE:
                headers = {"Retry-After": "1"}
            return HTTPException(status_code=status_code, detail=str(exc), headers=headers)
    logger.error("Unmapped ledger error %s", type(exc).__name__)
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="Unexpected ledger failure",
    )


def _service_from_state(request: Request, name: str, label: str):
    service = getattr(request.app.state, name, None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"{label} is not initialized",
        )
    return service


def get_auth_service(request: Request) -> AuthService:
    return _service_from_state(request, "auth_service", "Auth service")


def get_allocator(request: Request) -> CapacityAllocator:
    return _service_from_state(request, "allocator", "Allocation service")


def get_ledger(request: Request) -> StatusLedger:
    return _service_from_state(request, "ledger", "Ledger service")


async def get_tenant_gate(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    auth_service: AuthService = Depends(get_auth_service),
    allocator: CapacityAllocator = Depends(get_allocator),
    ledger: StatusLedger = Depends(get_ledger),
) -> TenantGate:
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authorization header with Bearer token is required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        identity = auth_service.validate(credentials.credentials)
        return TenantGate(identity=identity, allocator=allocator, ledger=ledger)
    except AuthRejectedError as exc:
        raise to_http_exception(exc) from exc


@contextmanager
def ledger_errors(action: str) -> Iterator[None]:
    """Translate ledger failures raised inside the block into HTTP errors."""
    try:
        yield
    except LedgerError as exc:
        raise to_http_exception(exc) from exc
    except HTTPException:
        raise
    except Exception as exc:  # pragma: no cover - unexpected failure
        logger.exception("Unexpected failure while trying to %s", action)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to {action}",
        ) from exc
