"""
Google Calendar Service
Keeps OAuth tokens fresh and mirrors appointments as Google Calendar events
"""
import base64
import hashlib
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Callable, Optional
from zoneinfo import ZoneInfo

import httpx
from cryptography.fernet import Fernet, InvalidToken
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..config import (
    BUSINESS_TIMEZONE,
    CURRENCY_SYMBOL,
    GOOGLE_CLIENT_ID,
    GOOGLE_CLIENT_SECRET,
    GOOGLE_HTTP_TIMEOUT,
    SECRET_KEY,
    TOKEN_ENCRYPTION_KEY,
    TOKEN_REFRESH_SKEW_SECONDS,
)
from ..domain.scheduling.errors import (
    MissingServiceDuration,
    NotConnected,
    NotSynced,
    RefreshFailed,
    SyncFailed,
)
from ..domain.scheduling.overlap import combine, resolved_duration
from ..models_google_calendar import GoogleCalendarToken

logger = logging.getLogger(__name__)

GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"  # noqa: S105 - OAuth endpoint URL
GOOGLE_REVOKE_URL = "https://oauth2.googleapis.com/revoke"
GOOGLE_CALENDAR_API = "https://www.googleapis.com/calendar/v3"
EVENTS_URL = f"{GOOGLE_CALENDAR_API}/calendars/primary/events"

# Google answers 410 Gone for events that were deleted
NOT_FOUND_STATUSES = (404, 410)


def utcnow() -> datetime:
    """Naive UTC now, matching how expires_at is stored"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def get_cipher() -> Fernet:
    if TOKEN_ENCRYPTION_KEY:
        return Fernet(TOKEN_ENCRYPTION_KEY.encode())
    return Fernet(base64.urlsafe_b64encode(hashlib.sha256(SECRET_KEY.encode()).digest()))


def encrypt_token(value: str) -> str:
    return get_cipher().encrypt(value.encode()).decode()


def decrypt_token(value: str) -> str:
    return get_cipher().decrypt(value.encode()).decode()


def _json_object(response: httpx.Response) -> Optional[dict]:
    """JSON object body of a response, None when the body is not a JSON object"""
    try:
        data = response.json()
    except ValueError:
        return None
    return data if isinstance(data, dict) else None


def _error_message(response: httpx.Response) -> str:
    """Pull the provider's error description out of a failed response"""
    try:
        data = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"

    error = data.get("error") if isinstance(data, dict) else None
    if isinstance(error, dict):
        return error.get("message") or f"HTTP {response.status_code}"
    if isinstance(data, dict) and data.get("error_description"):
        return data["error_description"]
    if error:
        return str(error)
    return f"HTTP {response.status_code}"


class GoogleCalendarTokenManager:
    """Hands out a usable access token per practitioner, refreshing it when expired"""

    def __init__(
        self,
        db: Session,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.transport = transport
        self.clock = clock

    def _http(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=GOOGLE_HTTP_TIMEOUT, transport=self.transport)

    def get_token_row(self, practitioner_id: str) -> Optional[GoogleCalendarToken]:
        return (
            self.db.query(GoogleCalendarToken)
            .filter(GoogleCalendarToken.user_id == practitioner_id)
            .first()
        )

    async def get_valid_access_token(self, practitioner_id: str) -> str:
        """
        Get a valid access token, refreshing if necessary

        Raises:
            NotConnected: practitioner has no stored token
            RefreshFailed: the refresh grant failed or could not be persisted
        """
        token = self.get_token_row(practitioner_id)
        if not token:
            raise NotConnected()

        now = self.clock()
        if now < token.expires_at - timedelta(seconds=TOKEN_REFRESH_SKEW_SECONDS):
            try:
                return decrypt_token(token.access_token)
            except InvalidToken as e:
                raise RefreshFailed("stored access token cannot be decrypted") from e

        logger.info(f"🔄 Google Calendar token expired for user {practitioner_id}, refreshing...")
        try:
            refresh_token = decrypt_token(token.refresh_token)
        except InvalidToken as e:
            raise RefreshFailed("stored refresh token cannot be decrypted") from e

        access_token, expires_in = await self._refresh(refresh_token)

        # Persist before handing the token out
        try:
            token.access_token = encrypt_token(access_token)
            token.expires_at = now + timedelta(seconds=expires_in)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Failed to persist refreshed token for user {practitioner_id}: {e}")
            raise RefreshFailed("failed to update token") from e

        logger.info("✅ Google Calendar token refreshed successfully")
        return access_token

    async def _refresh(self, refresh_token: str) -> tuple[str, int]:
        try:
            async with self._http() as client:
                response = await client.post(
                    GOOGLE_TOKEN_URL,
                    data={
                        "client_id": GOOGLE_CLIENT_ID,
                        "client_secret": GOOGLE_CLIENT_SECRET,
                        "refresh_token": refresh_token,
                        "grant_type": "refresh_token",
                    },
                )
        except httpx.HTTPError as e:
            logger.error(f"❌ Token refresh request failed: {e}")
            raise RefreshFailed(str(e) or e.__class__.__name__) from e

        if response.status_code != 200:
            description = _error_message(response)
            logger.error(f"❌ Token refresh failed: {description}")
            raise RefreshFailed(description)

        tokens = _json_object(response)
        access_token = tokens.get("access_token") if tokens else None
        if not access_token:
            logger.error("❌ No access token in refresh response")
            raise RefreshFailed("no access token in refresh response")

        try:
            expires_in = int(tokens.get("expires_in", 3600))
        except (TypeError, ValueError) as e:
            raise RefreshFailed(f"invalid expires_in in refresh response: {tokens.get('expires_in')!r}") from e
        return access_token, expires_in

    def store_tokens(
        self,
        practitioner_id: str,
        access_token: str,
        refresh_token: str,
        expires_in: int,
        google_user_email: Optional[str] = None,
    ) -> GoogleCalendarToken:
        """Save or replace the practitioner's token pair after the OAuth code exchange"""
        token = self.get_token_row(practitioner_id)
        expires_at = self.clock() + timedelta(seconds=expires_in)

        if token:
            token.access_token = encrypt_token(access_token)
            token.refresh_token = encrypt_token(refresh_token)
            token.expires_at = expires_at
            token.google_user_email = google_user_email
        else:
            token = GoogleCalendarToken(
                user_id=practitioner_id,
                access_token=encrypt_token(access_token),
                refresh_token=encrypt_token(refresh_token),
                expires_at=expires_at,
                google_user_email=google_user_email,
            )
            self.db.add(token)

        self.db.commit()
        self.db.refresh(token)
        return token

    async def disconnect(self, practitioner_id: str) -> None:
        """Revoke (best-effort) and delete the practitioner's token"""
        token = self.get_token_row(practitioner_id)
        if not token:
            raise NotConnected()

        try:
            async with self._http() as client:
                await client.post(GOOGLE_REVOKE_URL, params={"token": decrypt_token(token.access_token)})
        except (httpx.HTTPError, InvalidToken) as e:
            logger.warning(f"Failed to revoke Google tokens: {str(e)}")

        self.db.delete(token)
        self.db.commit()


class SyncOperation(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


@dataclass
class SyncResult:
    remote_event_id: Optional[str]
    recreated: bool = False


class GoogleCalendarSyncEngine:
    """Creates, replaces and deletes the Google Calendar twin of an appointment"""

    def __init__(
        self,
        token_manager: GoogleCalendarTokenManager,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.token_manager = token_manager
        self.transport = transport

    @classmethod
    def for_session(cls, db: Session, transport: Optional[httpx.AsyncBaseTransport] = None):
        return cls(GoogleCalendarTokenManager(db, transport=transport), transport=transport)

    def _http(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=GOOGLE_HTTP_TIMEOUT, transport=self.transport)

    async def sync(self, appointment: Any, operation: SyncOperation) -> SyncResult:
        """
        Mirror one appointment operation to Google Calendar.

        The caller persists the returned event id / cleared sync state.
        """
        operation = SyncOperation(operation)

        if operation in (SyncOperation.UPDATE, SyncOperation.DELETE):
            if not appointment.is_synced_to_google or not appointment.google_event_id:
                raise NotSynced(operation.value)

        payload = None
        if operation != SyncOperation.DELETE:
            payload = self.build_event_payload(appointment)

        access_token = await self.token_manager.get_valid_access_token(appointment.user_id)
        headers = {"Authorization": f"Bearer {access_token}"}

        try:
            async with self._http() as client:
                if operation == SyncOperation.CREATE:
                    event_id = await self._insert(client, headers, payload)
                    logger.info(f"✅ Google Calendar event created: {event_id}")
                    return SyncResult(event_id)

                if operation == SyncOperation.UPDATE:
                    return await self._replace(client, headers, appointment.google_event_id, payload)

                await self._delete(client, headers, appointment.google_event_id)
                return SyncResult(None)
        except httpx.HTTPError as e:
            logger.error(f"❌ Google Calendar {operation.value} request failed: {e}")
            raise SyncFailed(f"Failed to {operation.value} event in Google Calendar: {e}") from e

    async def _insert(self, client: httpx.AsyncClient, headers: dict, payload: dict) -> str:
        response = await client.post(EVENTS_URL, headers=headers, json=payload)
        if response.status_code not in (200, 201):
            message = _error_message(response)
            logger.error(f"❌ Failed to create calendar event: {message}")
            raise SyncFailed(f"Failed to create event in Google Calendar: {message}", response.status_code)

        body = _json_object(response)
        event_id = body.get("id") if body else None
        if not event_id:
            raise SyncFailed("Google Calendar response did not include an event id", response.status_code)
        return event_id

    async def _replace(self, client: httpx.AsyncClient, headers: dict, event_id: str, payload: dict) -> SyncResult:
        response = await client.put(f"{EVENTS_URL}/{event_id}", headers=headers, json=payload)

        if response.status_code in NOT_FOUND_STATUSES:
            logger.info(f"ℹ️ Event {event_id} not found on Google Calendar, creating new one...")
            new_event_id = await self._insert(client, headers, payload)
            logger.info(f"✅ Google Calendar event recreated: {new_event_id}")
            return SyncResult(new_event_id, recreated=True)

        if response.status_code != 200:
            message = _error_message(response)
            logger.error(f"❌ Failed to update calendar event: {message}")
            raise SyncFailed(f"Failed to update event in Google Calendar: {message}", response.status_code)

        body = _json_object(response)
        if body is None:
            raise SyncFailed("Google Calendar returned an unreadable update response", response.status_code)

        logger.info(f"✅ Google Calendar event updated: {event_id}")
        return SyncResult(body.get("id") or event_id)

    async def _delete(self, client: httpx.AsyncClient, headers: dict, event_id: str) -> None:
        response = await client.delete(f"{EVENTS_URL}/{event_id}", headers=headers)

        if response.status_code in NOT_FOUND_STATUSES:
            logger.info(f"ℹ️ Event {event_id} already gone from Google Calendar")
            return

        if response.status_code not in (200, 204):
            message = _error_message(response)
            logger.error(f"❌ Failed to delete calendar event: {message}")
            raise SyncFailed(f"Failed to delete event in Google Calendar: {message}", response.status_code)

        logger.info(f"✅ Google Calendar event deleted: {event_id}")

    def build_event_payload(self, appointment: Any) -> dict:
        """
        Event body for an appointment.

        Start/end are wall-clock times in the practitioner's zone, sent to
        Google as UTC instants. The duration is added in UTC so a DST change
        cannot stretch or shrink the event.
        """
        service = appointment.service_details
        duration = resolved_duration(appointment)
        if service is None or not duration:
            raise MissingServiceDuration()

        zone = ZoneInfo(self._timezone_for(appointment))
        start = combine(appointment.date, appointment.time).replace(tzinfo=zone).astimezone(timezone.utc)
        end = start + timedelta(minutes=duration)

        client = appointment.client
        client_name = client.name if client and client.name else None
        price = appointment.price if appointment.price is not None else "0.00"

        return {
            "summary": f"{client_name or 'Client'} - {service.name}",
            "description": (
                "Booked via Agenda\n\n"
                f"Client: {client_name or 'Name not provided'}\n"
                f"Service: {service.name}\n"
                f"Duration: {duration} minutes\n"
                f"Price: {CURRENCY_SYMBOL} {price}"
            ),
            "start": {"dateTime": _utc_iso(start), "timeZone": zone.key},
            "end": {"dateTime": _utc_iso(end), "timeZone": zone.key},
        }

    @staticmethod
    def _timezone_for(appointment: Any) -> str:
        user = getattr(appointment, "user", None)
        return getattr(user, "timezone", None) or BUSINESS_TIMEZONE


def _utc_iso(value: datetime) -> str:
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
