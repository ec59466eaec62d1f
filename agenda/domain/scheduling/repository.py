"""Appointment repository - Database operations for appointments, services and clients"""

from datetime import date
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session, joinedload

from ...models import Appointment, Client, Service


def _with_details(query):
    return query.options(
        joinedload(Appointment.client),
        joinedload(Appointment.service_details),
        joinedload(Appointment.user),
    )


class AppointmentRepository:
    """Repository for appointment database operations"""

    @staticmethod
    def list_by_practitioner_and_date(
        db: Session, user_id: str, day: date, include_cancelled: bool = False
    ) -> list[Appointment]:
        """Appointments of one practitioner on one calendar date"""
        query = _with_details(db.query(Appointment)).filter(
            Appointment.user_id == user_id, Appointment.date == day
        )
        if not include_cancelled:
            query = query.filter(Appointment.status != "cancelled")
        return query.order_by(Appointment.time).all()

    @staticmethod
    def list_appointments(
        db: Session,
        user_id: str,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        status: Optional[str] = None,
        service_id: Optional[str] = None,
        client_name: Optional[str] = None,
        price_min: Optional[Decimal] = None,
        price_max: Optional[Decimal] = None,
    ) -> list[Appointment]:
        """Appointments in a date range, ordered by date then time"""
        query = _with_details(db.query(Appointment)).filter(Appointment.user_id == user_id)

        if start_date:
            query = query.filter(Appointment.date >= start_date)
        if end_date:
            query = query.filter(Appointment.date <= end_date)
        if status and status != "all":
            query = query.filter(Appointment.status == status)
        if service_id:
            query = query.filter(Appointment.service_id == service_id)
        if client_name:
            query = query.join(Client, Appointment.client_id == Client.id).filter(
                Client.name.ilike(f"%{client_name}%")
            )
        if price_min is not None:
            query = query.filter(Appointment.price >= price_min)
        if price_max is not None:
            query = query.filter(Appointment.price <= price_max)

        return query.order_by(Appointment.date, Appointment.time).all()

    @staticmethod
    def list_unsynced(db: Session, user_id: str) -> list[Appointment]:
        return (
            _with_details(db.query(Appointment))
            .filter(Appointment.user_id == user_id, Appointment.is_synced_to_google.is_(False))
            .order_by(Appointment.date, Appointment.time)
            .all()
        )

    @staticmethod
    def get_by_id(db: Session, appointment_id: str, user_id: str) -> Optional[Appointment]:
        return (
            _with_details(db.query(Appointment))
            .filter(Appointment.id == appointment_id, Appointment.user_id == user_id)
            .first()
        )

    @staticmethod
    def insert(db: Session, user_id: str, **fields) -> Appointment:
        """Create a new appointment (id assigned here)"""
        appointment = Appointment(user_id=user_id, **fields)
        db.add(appointment)
        db.commit()
        db.refresh(appointment)
        return appointment

    @staticmethod
    def update(db: Session, appointment: Appointment, **updates) -> Appointment:
        """Update an appointment with provided fields"""
        for key, value in updates.items():
            if hasattr(appointment, key):
                setattr(appointment, key, value)

        db.commit()
        db.refresh(appointment)
        return appointment

    @staticmethod
    def delete(db: Session, appointment: Appointment) -> None:
        db.delete(appointment)
        db.commit()

    @staticmethod
    def mark_synced(db: Session, appointment: Appointment, google_event_id: str) -> Appointment:
        appointment.google_event_id = google_event_id
        appointment.is_synced_to_google = True
        db.commit()
        db.refresh(appointment)
        return appointment


class ServiceRepository:
    @staticmethod
    def get_service_by_id(db: Session, service_id: str, user_id: str) -> Optional[Service]:
        return db.query(Service).filter(Service.id == service_id, Service.user_id == user_id).first()


class ClientRepository:
    @staticmethod
    def get_client_by_id(db: Session, client_id: str, user_id: str) -> Optional[Client]:
        return db.query(Client).filter(Client.id == client_id, Client.user_id == user_id).first()
