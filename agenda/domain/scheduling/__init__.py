"""
Scheduling Domain

Appointment booking with conflict detection and a best-effort Google Calendar
mirror.

- overlap.py        half-open interval conflict checks
- availability.py   free slots inside business hours
- repository.py     appointment / service / client queries
- service.py        lifecycle orchestration (create, update, cancel, delete, resync)
- router.py         /appointments endpoints

Calendar token handling and event sync live in
agenda/services/google_calendar_service.py.
"""
