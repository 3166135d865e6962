"""HTTP controller layer for hostel rooms, allocations and maintenance."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, ConfigDict, Field, field_validator

from campus_ledger.controllers.dependencies import get_tenant_gate, ledger_errors
from campus_ledger.domain.models import AllocationStatus, MaintenanceStatus
from campus_ledger.services.tenant_gate import TenantGate


router = APIRouter(prefix="/api", tags=["hostel"])


class RoomRequest(BaseModel):
    room_number: str = Field(min_length=1, max_length=32)
    hostel_name: str = Field(min_length=1, max_length=128)
    room_type: str = Field(pattern="^(single|double|triple)$")
    floor: int
    capacity: int = Field(ge=1)


class RoomResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    room_id: str
    room_number: str
    hostel_name: str
    room_type: str
    floor: int
    capacity: int
    occupied: int = Field(ge=0)
    available: int = Field(ge=0)
    created_at: datetime


class AllocationRequest(BaseModel):
    room_id: str = Field(min_length=1)
    student_id: str = Field(min_length=1, max_length=64)


class AllocationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    allocation_id: str
    room_id: str
    student_id: str
    status: AllocationStatus
    allocated_at: datetime
    released_at: datetime | None = None


class MaintenanceRequestData(BaseModel):
    room_id: str = Field(min_length=1)
    issue_type: str = Field(min_length=1, max_length=64)
    description: str = Field(min_length=1, max_length=2048)


class MaintenanceStatusUpdate(BaseModel):
    status: MaintenanceStatus

    @field_validator("status", mode="before")
    @classmethod
    def normalize_status(cls, value: Any) -> Any:
        return value.strip().upper() if isinstance(value, str) else value


class MaintenanceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    request_id: str
    room_id: str
    issue_type: str
    description: str
    reported_by: str
    status: MaintenanceStatus
    created_at: datetime
    updated_at: datetime | None = None


@router.post("/rooms", response_model=RoomResponse, status_code=status.HTTP_201_CREATED)
async def create_room(
    payload: RoomRequest,
    gate: TenantGate = Depends(get_tenant_gate),
) -> RoomResponse:
    with ledger_errors("create room"):
        room = gate.register_room(**payload.model_dump())
    return RoomResponse.model_validate(room)


@router.get("/rooms", response_model=list[RoomResponse])
async def get_rooms(gate: TenantGate = Depends(get_tenant_gate)) -> list[RoomResponse]:
    with ledger_errors("list rooms"):
        rooms = gate.list_rooms()
    return [RoomResponse.model_validate(room) for room in rooms]


@router.post(
    "/allocations",
    response_model=AllocationResponse,
    status_code=status.HTTP_201_CREATED,
)
async def allocate_room(
    payload: AllocationRequest,
    gate: TenantGate = Depends(get_tenant_gate),
) -> AllocationResponse:
    """Claim a bed; 409 when the room is full or the student already holds it."""
    with ledger_errors("allocate room"):
        allocation = gate.allocate_room(payload.room_id, payload.student_id)
    return AllocationResponse.model_validate(allocation)


@router.post("/allocations/{allocation_id}/release", response_model=AllocationResponse)
async def release_room(
    allocation_id: str,
    gate: TenantGate = Depends(get_tenant_gate),
) -> AllocationResponse:
    with ledger_errors("release room"):
        allocation = gate.release_room(allocation_id)
    return AllocationResponse.model_validate(allocation)


@router.get("/allocations", response_model=list[AllocationResponse])
async def get_allocations(
    gate: TenantGate = Depends(get_tenant_gate),
) -> list[AllocationResponse]:
    with ledger_errors("list allocations"):
        allocations = gate.list_room_allocations()
    return [AllocationResponse.model_validate(item) for item in allocations]


@router.post(
    "/maintenance",
    response_model=MaintenanceResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_maintenance_request(
    payload: MaintenanceRequestData,
    gate: TenantGate = Depends(get_tenant_gate),
) -> MaintenanceResponse:
    with ledger_errors("report maintenance"):
        request = gate.report_maintenance(
            room_id=payload.room_id,
            issue_type=payload.issue_type,
            description=payload.description,
        )
    return MaintenanceResponse.model_validate(request)


@router.put("/maintenance/{request_id}/status", response_model=MaintenanceResponse)
async def update_maintenance_status(
    request_id: str,
    payload: MaintenanceStatusUpdate,
    gate: TenantGate = Depends(get_tenant_gate),
) -> MaintenanceResponse:
    with ledger_errors("update maintenance request"):
        request = gate.transition("maintenance", request_id, payload.status.value)
    return MaintenanceResponse.model_validate(request)


@router.get("/maintenance", response_model=list[MaintenanceResponse])
async def get_maintenance_requests(
    gate: TenantGate = Depends(get_tenant_gate),
) -> list[MaintenanceResponse]:
    with ledger_errors("list maintenance requests"):
        requests = gate.list_maintenance_requests()
    return [MaintenanceResponse.model_validate(item) for item in requests]
