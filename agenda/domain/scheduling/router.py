"""Appointment router - FastAPI endpoints for the appointment lifecycle"""

import logging
from datetime import date
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import User
from .schemas import (
    AppointmentCreate,
    AppointmentDeleteResponse,
    AppointmentMutationResponse,
    AppointmentResponse,
    AppointmentStatus,
    AppointmentUpdate,
    AvailableSlotsResponse,
    BulkResyncResponse,
)
from .service import DEFAULT_LIST_WINDOW_DAYS, AppointmentService, MutationOutcome

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/appointments", tags=["Appointments"])


def get_appointment_service(db: Session = Depends(get_db)) -> AppointmentService:
    """Dependency injection for AppointmentService"""
    return AppointmentService(db)


def _mutation_response(outcome: MutationOutcome) -> AppointmentMutationResponse:
    return AppointmentMutationResponse(
        appointment=AppointmentResponse.model_validate(outcome.appointment),
        synced=outcome.synced,
        warning=outcome.warning,
    )


@router.get("", response_model=list[AppointmentResponse])
async def list_appointments(
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    status: Optional[AppointmentStatus] = Query(None),
    days: int = Query(DEFAULT_LIST_WINDOW_DAYS, ge=1, le=366),
    service_id: Optional[str] = Query(None),
    client_name: Optional[str] = Query(None, min_length=1),
    price_min: Optional[Decimal] = Query(None, ge=0),
    price_max: Optional[Decimal] = Query(None, ge=0),
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    """
    Get appointments for the current practitioner, ordered by date and time.

    Without start_date/end_date the next `days` days (from today) are returned.
    """
    return service.list_appointments(
        current_user,
        start_date,
        end_date,
        status,
        days=days,
        service_id=service_id,
        client_name=client_name,
        price_min=price_min,
        price_max=price_max,
    )


@router.get("/available-slots", response_model=AvailableSlotsResponse)
async def get_available_slots(
    day: Optional[date] = Query(None, alias="date"),
    days: int = Query(7, ge=1, le=31),
    service_id: Optional[str] = Query(None),
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    """Free start times within business hours"""
    slots, duration = service.get_available_slots(current_user, day, days, service_id)
    return AvailableSlotsResponse(slots=slots, service_duration=duration)


@router.post("/sync-all", response_model=BulkResyncResponse)
async def sync_all_appointments(
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    """Push every appointment not yet on Google Calendar"""
    result = await service.bulk_resync(current_user)
    return BulkResyncResponse(total=result.total, synced=result.synced, failed=result.failed, errors=result.errors)


@router.get("/{appointment_id}", response_model=AppointmentResponse)
async def get_appointment(
    appointment_id: str,
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    return service.get_appointment(appointment_id, current_user)


@router.post("", response_model=AppointmentMutationResponse, status_code=201)
async def create_appointment(
    data: AppointmentCreate,
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    """Book an appointment; a calendar sync failure comes back as a warning"""
    outcome = await service.create_appointment(data, current_user)
    return _mutation_response(outcome)


@router.patch("/{appointment_id}", response_model=AppointmentMutationResponse)
async def update_appointment(
    appointment_id: str,
    data: AppointmentUpdate,
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    outcome = await service.update_appointment(appointment_id, data, current_user)
    return _mutation_response(outcome)


@router.post("/{appointment_id}/cancel", response_model=AppointmentMutationResponse)
async def cancel_appointment(
    appointment_id: str,
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    outcome = await service.cancel_appointment(appointment_id, current_user)
    return _mutation_response(outcome)


@router.delete("/{appointment_id}", response_model=AppointmentDeleteResponse)
async def delete_appointment(
    appointment_id: str,
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    """Delete an appointment; local deletion happens even if the calendar is unreachable"""
    outcome = await service.delete_appointment(appointment_id, current_user)
    return AppointmentDeleteResponse(
        message="Appointment deleted", remote_deleted=outcome.remote_deleted, warning=outcome.warning
    )
