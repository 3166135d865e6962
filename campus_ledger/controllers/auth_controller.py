"""HTTP controller layer for health checks and session login."""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, Request, status
from fastapi.security import HTTPAuthorizationCredentials
from pydantic import BaseModel, Field

from campus_ledger.controllers.dependencies import bearer_scheme, get_auth_service, ledger_errors
from campus_ledger.domain.access import Role
from campus_ledger.services.auth_service import AuthService


router = APIRouter(tags=["auth"])


class HealthResponse(BaseModel):
    status: str
    app_name: str
    version: str


class LoginRequest(BaseModel):
    admin_token: str = Field(min_length=1)
    subject_id: str = Field(min_length=1, max_length=64)
    role: Role
    tenant_id: str = Field(min_length=1, max_length=64)


class LoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    subject_id: str
    role: Role
    tenant_id: str
    expires_at: datetime


@router.get("/health", response_model=HealthResponse, status_code=status.HTTP_200_OK)
async def health(request: Request) -> HealthResponse:
    return HealthResponse(
        status="ok",
        app_name=request.app.title,
        version=request.app.version,
    )


@router.post("/login", response_model=LoginResponse, status_code=status.HTTP_200_OK)
async def login(
    payload: LoginRequest,
    auth_service: AuthService = Depends(get_auth_service),
) -> LoginResponse:
    with ledger_errors("login"):
        token, identity = auth_service.login(
            payload.admin_token,
            subject_id=payload.subject_id,
            role=payload.role.value,
            tenant_id=payload.tenant_id,
        )
    return LoginResponse(
        access_token=token,
        subject_id=identity.subject_id,
        role=identity.role,
        tenant_id=identity.tenant_id,
        expires_at=identity.expires_at,
    )


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    auth_service: AuthService = Depends(get_auth_service),
) -> None:
    if credentials is not None:
        auth_service.logout(credentials.credentials)
