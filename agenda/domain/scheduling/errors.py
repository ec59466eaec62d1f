"""Scheduling error taxonomy

ValidationError  - user-correctable, blocks the local write
SyncAdvisory     - calendar sync problem, never blocks or reverts the local write
NotFound         - requested entity does not exist for this practitioner
"""

from typing import Optional


class SchedulingError(Exception):
    """Base class for scheduling core errors"""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


# Validation errors


class ValidationError(SchedulingError):
    pass


class SchedulingConflict(ValidationError):
    def __init__(self, message: str = "An appointment already exists at this time", conflicting_ids=None):
        super().__init__(message)
        self.conflicting_ids = list(conflicting_ids or [])


class ServiceNotFound(ValidationError):
    def __init__(self, service_id: Optional[str] = None):
        super().__init__("Service not found")
        self.service_id = service_id


class ClientNotFound(ValidationError):
    def __init__(self, client_id: Optional[str] = None):
        super().__init__("Client not found")
        self.client_id = client_id


class MissingServiceDuration(ValidationError):
    def __init__(self, message: str = "Service details with duration are required"):
        super().__init__(message)


# Sync advisories


class SyncAdvisory(SchedulingError):
    pass


class NotConnected(SyncAdvisory):
    def __init__(self, message: str = "Google Calendar not connected"):
        super().__init__(message)


class NotSynced(SyncAdvisory):
    def __init__(self, operation: str):
        super().__init__(f"Appointment is not synced to Google Calendar; cannot {operation}")
        self.operation = operation


class RefreshFailed(SyncAdvisory):
    def __init__(self, description: str):
        super().__init__(f"Failed to refresh token: {description}")
        self.description = description


class SyncFailed(SyncAdvisory):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


# Lookups


class NotFound(SchedulingError):
    pass


class AppointmentNotFound(NotFound):
    def __init__(self, appointment_id: Optional[str] = None):
        super().__init__("Appointment not found")
        self.appointment_id = appointment_id
