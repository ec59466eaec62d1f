"""Appointment service - Business logic for the appointment lifecycle

Local writes are the source of truth. Google Calendar is a best-effort
projection: sync problems become warnings on an otherwise successful result
and never undo the local change.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Optional
from zoneinfo import ZoneInfo

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...cache import Cache, build_appointment_list_key, cache, invalidate_appointment_cache
from ...config import BUSINESS_TIMEZONE, DEFAULT_SERVICE_DURATION
from ...models import Appointment, Service, User
from ...services.google_calendar_service import GoogleCalendarSyncEngine, SyncOperation, SyncResult
from ...shared.validators import parse_duration_minutes
from .availability import available_slots
from .errors import (
    AppointmentNotFound,
    ClientNotFound,
    MissingServiceDuration,
    NotConnected,
    NotSynced,
    SchedulingConflict,
    ServiceNotFound,
    SyncAdvisory,
)
from .overlap import SlotCandidate, find_conflicts
from .repository import AppointmentRepository, ClientRepository, ServiceRepository
from .schemas import AppointmentCreate, AppointmentResponse, AppointmentUpdate

logger = logging.getLogger(__name__)

DEFAULT_LIST_WINDOW_DAYS = 30


@dataclass
class MutationOutcome:
    appointment: Appointment
    synced: bool
    warning: Optional[str] = None


@dataclass
class DeletionOutcome:
    appointment_id: str
    remote_deleted: bool
    warning: Optional[str] = None


@dataclass
class BulkResyncResult:
    total: int = 0
    synced: int = 0
    failed: int = 0
    errors: list[str] = field(default_factory=list)


class AppointmentService:
    """Service layer for appointment business logic"""

    def __init__(
        self,
        db: Session,
        sync_engine: Optional[GoogleCalendarSyncEngine] = None,
        cache_backend: Optional[Cache] = None,
    ):
        self.db = db
        self.repo = AppointmentRepository()
        self.sync_engine = sync_engine or GoogleCalendarSyncEngine.for_session(db)
        self.cache = cache_backend or cache

    # ------------------------------------------------------------------
    # Lookups and validation
    # ------------------------------------------------------------------

    def get_appointment(self, appointment_id: str, user: User) -> Appointment:
        appointment = self.repo.get_by_id(self.db, appointment_id, user.id)
        if not appointment:
            raise AppointmentNotFound(appointment_id)
        return appointment

    def _resolve_service(self, service_id: str, user: User) -> Service:
        service = ServiceRepository.get_service_by_id(self.db, service_id, user.id)
        if not service:
            raise ServiceNotFound(service_id)
        return service

    def _resolve_client(self, client_id: str, user: User) -> None:
        if not ClientRepository.get_client_by_id(self.db, client_id, user.id):
            raise ClientNotFound(client_id)

    @staticmethod
    def _duration_of(service: Optional[Service]) -> int:
        duration = parse_duration_minutes(service.duration) if service else None
        if not duration:
            raise MissingServiceDuration()
        return duration

    def _lock_practitioner(self, user: User) -> None:
        """
        Row-lock the practitioner until the next commit so concurrent bookings
        run their conflict check one after another. No-op on SQLite.
        """
        self.db.query(User).filter(User.id == user.id).with_for_update().first()

    def _ensure_no_conflict(
        self,
        user: User,
        day: date,
        at,
        duration_minutes: int,
        exclude_id: Optional[str] = None,
    ) -> None:
        existing = self.repo.list_by_practitioner_and_date(self.db, user.id, day)
        conflicts = find_conflicts(SlotCandidate(day, at, duration_minutes), existing, exclude_id)
        if conflicts:
            logger.info(f"⚠️ Scheduling conflict for user {user.id} on {day} at {at}")
            self.db.rollback()
            raise SchedulingConflict(conflicting_ids=[a.id for a in conflicts])

    # ------------------------------------------------------------------
    # Calendar sync
    # ------------------------------------------------------------------

    async def _try_sync(self, appointment: Appointment, operation: SyncOperation) -> tuple[Optional[SyncResult], Optional[str]]:
        """Run one sync call; advisory failures come back as a message instead of raising"""
        try:
            return await self.sync_engine.sync(appointment, operation), None
        except NotSynced as e:
            logger.info(f"ℹ️ Skipping Google Calendar {operation.value} for {appointment.id}: {e.message}")
            return None, None
        except NotConnected as e:
            logger.warning(f"⚠️ Google Calendar not connected; {operation.value} of {appointment.id} stays local")
            return None, e.message
        except (SyncAdvisory, MissingServiceDuration) as e:
            logger.warning(f"⚠️ Google Calendar {operation.value} failed for {appointment.id}: {e.message}")
            return None, e.message

    @staticmethod
    def _local_today(user: User) -> date:
        return datetime.now(ZoneInfo(user.timezone or BUSINESS_TIMEZONE)).date()

    def _invalidate(self, user: User, *dates: Optional[date]) -> None:
        invalidate_appointment_cache(user.id, dates, backend=self.cache)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def create_appointment(self, data: AppointmentCreate, user: User) -> MutationOutcome:
        """Book a new appointment and mirror it to Google Calendar"""
        logger.info(f"📥 Creating appointment for user_id: {user.id}")

        service = self._resolve_service(data.service_id, user)
        self._resolve_client(data.client_id, user)
        duration = self._duration_of(service)

        self._lock_practitioner(user)
        self._ensure_no_conflict(user, data.date, data.time, duration)

        appointment = self.repo.insert(
            self.db,
            user.id,
            client_id=data.client_id,
            service_id=service.id,
            service=service.name,
            date=data.date,
            time=data.time,
            price=data.price if data.price is not None else service.price,
            status="pending",
            is_synced_to_google=False,
        )
        logger.info(f"✅ Appointment {appointment.id} created")

        result, error = await self._try_sync(appointment, SyncOperation.CREATE)
        if result and result.remote_event_id:
            appointment = self.repo.mark_synced(self.db, appointment, result.remote_event_id)

        self._invalidate(user, appointment.date)

        warning = f"Appointment saved, but not synced to Google Calendar: {error}" if error else None
        return MutationOutcome(appointment, synced=result is not None, warning=warning)

    async def update_appointment(self, appointment_id: str, data: AppointmentUpdate, user: User) -> MutationOutcome:
        """Edit an appointment, re-checking conflicts and updating its calendar event"""
        appointment = self.get_appointment(appointment_id, user)

        # Sync state before the edit decides whether the calendar is touched
        was_synced = appointment.is_synced_to_google
        original_event_id = appointment.google_event_id
        original_date = appointment.date
        original_status = appointment.status

        updates = {}
        service = appointment.service_details

        if data.service_id is not None and data.service_id != appointment.service_id:
            service = self._resolve_service(data.service_id, user)
            updates["service_id"] = service.id
            updates["service"] = service.name
            if data.price is None:
                updates["price"] = service.price

        if data.date is not None:
            updates["date"] = data.date
        if data.time is not None:
            updates["time"] = data.time
        if data.price is not None:
            updates["price"] = data.price
        if data.status is not None:
            updates["status"] = data.status

        new_date = updates.get("date", appointment.date)
        new_time = updates.get("time", appointment.time)
        new_status = updates.get("status", appointment.status)

        moved = new_date != appointment.date or new_time != appointment.time or "service_id" in updates
        reactivated = original_status == "cancelled" and new_status != "cancelled"
        if new_status != "cancelled" and (moved or reactivated):
            duration = self._duration_of(service)
            self._lock_practitioner(user)
            self._ensure_no_conflict(user, new_date, new_time, duration, exclude_id=appointment.id)

        appointment = self.repo.update(self.db, appointment, **updates)
        logger.info(f"✅ Appointment {appointment.id} updated")

        result, error = None, None
        if was_synced and original_event_id:
            result, error = await self._try_sync(appointment, SyncOperation.UPDATE)
            if result and result.remote_event_id and result.remote_event_id != original_event_id:
                appointment = self.repo.mark_synced(self.db, appointment, result.remote_event_id)

        self._invalidate(user, original_date, appointment.date)

        warning = f"Appointment updated, but not synced to Google Calendar: {error}" if error else None
        return MutationOutcome(appointment, synced=result is not None, warning=warning)

    async def cancel_appointment(self, appointment_id: str, user: User) -> MutationOutcome:
        return await self.update_appointment(appointment_id, AppointmentUpdate(status="cancelled"), user)

    async def delete_appointment(self, appointment_id: str, user: User) -> DeletionOutcome:
        """Remove the calendar event (best effort) and then the appointment"""
        appointment = self.get_appointment(appointment_id, user)
        appointment_date = appointment.date

        result, error = None, None
        if appointment.is_synced_to_google:
            result, error = await self._try_sync(appointment, SyncOperation.DELETE)

        self.repo.delete(self.db, appointment)
        logger.info(f"✅ Appointment {appointment_id} deleted")

        self._invalidate(user, appointment_date)

        warning = (
            f"Appointment deleted, but its Google Calendar event could not be removed: {error}" if error else None
        )
        return DeletionOutcome(appointment_id, remote_deleted=result is not None, warning=warning)

    async def bulk_resync(self, user: User) -> BulkResyncResult:
        """Push every unsynced appointment to Google Calendar, one at a time"""
        appointments = self.repo.list_unsynced(self.db, user.id)
        outcome = BulkResyncResult(total=len(appointments))

        logger.info(f"🔄 Resyncing {outcome.total} appointment(s) for user {user.id}")

        for appointment in appointments:
            appointment_id = appointment.id
            try:
                result = await self.sync_engine.sync(appointment, SyncOperation.CREATE)
                self.repo.mark_synced(self.db, appointment, result.remote_event_id)
                outcome.synced += 1
            except (SyncAdvisory, MissingServiceDuration) as e:
                outcome.failed += 1
                outcome.errors.append(f"Appointment {appointment_id}: {e.message}")
            except SQLAlchemyError as e:
                self.db.rollback()
                outcome.failed += 1
                outcome.errors.append(f"Appointment {appointment_id}: failed to save sync state ({e.__class__.__name__})")
                logger.error(f"❌ Could not persist sync state for {appointment_id}: {e}")

        if outcome.synced:
            self._invalidate(user, *(a.date for a in appointments))

        logger.info(f"✅ Resync finished for user {user.id}: {outcome.synced}/{outcome.total} synced")
        return outcome

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def list_appointments(
        self,
        user: User,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        status: Optional[str] = None,
        days: int = DEFAULT_LIST_WINDOW_DAYS,
        service_id: Optional[str] = None,
        client_name: Optional[str] = None,
        price_min: Optional[Decimal] = None,
        price_max: Optional[Decimal] = None,
    ) -> list[dict]:
        """
        Appointments ordered by date and time, served from cache when possible.

        Without a start or end date the window is today through today + days,
        in the practitioner's timezone.
        """
        if start_date is None and end_date is None:
            start_date = self._local_today(user)
            end_date = start_date + timedelta(days=days)

        filters = dict(service_id=service_id, client_name=client_name, price_min=price_min, price_max=price_max)
        cache_key = build_appointment_list_key(user.id, start_date, end_date, status, **filters)
        cached = self.cache.get(cache_key)
        if cached is not None:
            return cached

        appointments = self.repo.list_appointments(self.db, user.id, start_date, end_date, status, **filters)
        payload = [AppointmentResponse.model_validate(a).model_dump(mode="json") for a in appointments]
        self.cache.set(cache_key, payload)
        return payload

    def get_available_slots(
        self,
        user: User,
        day: Optional[date] = None,
        days: int = 7,
        service_id: Optional[str] = None,
    ) -> tuple[dict[str, list[str]], int]:
        """Free start times per date for a service (or the default duration)"""
        if service_id:
            duration = self._duration_of(self._resolve_service(service_id, user))
        else:
            duration = DEFAULT_SERVICE_DURATION

        if day:
            dates = [day]
        else:
            today = self._local_today(user)
            dates = [today + timedelta(days=i) for i in range(days)]

        slots = {}
        for target in dates:
            existing = self.repo.list_by_practitioner_and_date(self.db, user.id, target)
            slots[target.isoformat()] = available_slots(target, existing, duration)

        return slots, duration
