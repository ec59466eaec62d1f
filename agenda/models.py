import uuid

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Time,
)
from sqlalchemy.orm import relationship, validates
from sqlalchemy.sql import func

from .config import BUSINESS_TIMEZONE
from .database import Base
from .shared.validators import parse_duration_minutes, parse_wall_clock_time

APPOINTMENT_STATUSES = ("pending", "confirmed", "cancelled")


def generate_id():
    """Generate a unique opaque ID"""
    return str(uuid.uuid4())


class User(Base):
    """Practitioner - owner of clients, services, appointments and the calendar token"""

    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=generate_id)
    email = Column(String(255), nullable=True, index=True)
    full_name = Column(String(255), nullable=True)
    # IANA zone all wall-clock appointment times are interpreted in
    timezone = Column(String(64), nullable=False, default=BUSINESS_TIMEZONE)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    clients = relationship("Client", back_populates="user", cascade="all, delete-orphan")
    services = relationship("Service", back_populates="user", cascade="all, delete-orphan")
    appointments = relationship("Appointment", back_populates="user", cascade="all, delete-orphan")


class Client(Base):
    __tablename__ = "clients"

    id = Column(String(36), primary_key=True, default=generate_id)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="clients")
    appointments = relationship("Appointment", back_populates="client")


class Service(Base):
    __tablename__ = "services"

    id = Column(String(36), primary_key=True, default=generate_id)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    duration = Column(Integer, nullable=True)  # minutes
    price = Column(Numeric(10, 2), nullable=False, default=0)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="services")
    appointments = relationship("Appointment", back_populates="service_details")

    @validates("duration")
    def validate_duration(self, _key, value):
        # Legacy rows and forms send "60" or "60 min"
        return parse_duration_minutes(value)


class Appointment(Base):
    __tablename__ = "appointments"

    id = Column(String(36), primary_key=True, default=generate_id)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    client_id = Column(String(36), ForeignKey("clients.id"), nullable=False)
    service_id = Column(String(36), ForeignKey("services.id", ondelete="SET NULL"), nullable=True)
    # Service name at booking time; intentionally not updated on later service renames
    service = Column(String(255), nullable=True)
    date = Column(Date, nullable=False, index=True)
    time = Column(Time, nullable=False)  # wall-clock time in the practitioner's timezone
    price = Column(Numeric(10, 2), nullable=False, default=0)
    status = Column(String(20), nullable=False, default="pending")  # pending, confirmed, cancelled

    # Google Calendar sync state
    google_event_id = Column(String(500), nullable=True, index=True)
    is_synced_to_google = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="appointments")
    client = relationship("Client", back_populates="appointments")
    service_details = relationship("Service", back_populates="appointments")

    @validates("time")
    def validate_time(self, _key, value):
        return parse_wall_clock_time(value)

    @validates("status")
    def validate_status(self, _key, value):
        if value not in APPOINTMENT_STATUSES:
            raise ValueError(f"Invalid status: {value}")
        return value
