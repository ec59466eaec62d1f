"""
Google Calendar Integration Routes
Handles OAuth connection of the practitioner's calendar
"""

import logging
from urllib.parse import urlencode

import httpx
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..auth import get_current_user
from ..config import GOOGLE_CLIENT_ID, GOOGLE_CLIENT_SECRET, GOOGLE_HTTP_TIMEOUT, GOOGLE_REDIRECT_URI
from ..database import get_db
from ..models import User
from ..services.google_calendar_service import GOOGLE_TOKEN_URL, GoogleCalendarTokenManager

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/google-calendar", tags=["google-calendar"])

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"
GOOGLE_CALENDAR_SCOPES = [
    "https://www.googleapis.com/auth/calendar.events",
    "https://www.googleapis.com/auth/userinfo.email",
]


class OAuthCallback(BaseModel):
    code: str


def get_token_manager(db: Session = Depends(get_db)) -> GoogleCalendarTokenManager:
    return GoogleCalendarTokenManager(db)


@router.get("/status")
async def get_google_calendar_status(
    current_user: User = Depends(get_current_user),
    tokens: GoogleCalendarTokenManager = Depends(get_token_manager),
):
    """Get Google Calendar connection status"""
    token = tokens.get_token_row(current_user.id)

    if not token:
        return {"connected": False, "user_email": None, "expires_at": None}

    return {
        "connected": True,
        "user_email": token.google_user_email,
        "expires_at": token.expires_at.isoformat(),
    }


@router.get("/connect")
async def initiate_google_calendar_oauth(current_user: User = Depends(get_current_user)):
    """Initiate Google Calendar OAuth flow"""
    if not GOOGLE_CLIENT_ID or not GOOGLE_CLIENT_SECRET:
        raise HTTPException(status_code=500, detail="Google Calendar not configured")

    query = urlencode(
        {
            "client_id": GOOGLE_CLIENT_ID,
            "redirect_uri": GOOGLE_REDIRECT_URI,
            "response_type": "code",
            "scope": " ".join(GOOGLE_CALENDAR_SCOPES),
            "access_type": "offline",
            "prompt": "consent",
            "state": current_user.id,
        }
    )

    logger.info(f"Google Calendar OAuth initiated for user: {current_user.id}")
    return {"authorization_url": f"{GOOGLE_AUTH_URL}?{query}"}


@router.post("/callback")
async def handle_google_calendar_callback(
    body: OAuthCallback,
    current_user: User = Depends(get_current_user),
    tokens: GoogleCalendarTokenManager = Depends(get_token_manager),
):
    """Exchange the authorization code and store the token pair"""
    try:
        async with httpx.AsyncClient(timeout=GOOGLE_HTTP_TIMEOUT, transport=tokens.transport) as client:
            token_response = await client.post(
                GOOGLE_TOKEN_URL,
                data={
                    "code": body.code,
                    "client_id": GOOGLE_CLIENT_ID,
                    "client_secret": GOOGLE_CLIENT_SECRET,
                    "redirect_uri": GOOGLE_REDIRECT_URI,
                    "grant_type": "authorization_code",
                },
            )

            if token_response.status_code != 200:
                logger.error(f"Token exchange failed: {token_response.text}")
                raise HTTPException(status_code=400, detail="Failed to exchange authorization code")

            data = token_response.json()
            access_token = data.get("access_token")
            refresh_token = data.get("refresh_token")
            expires_in = int(data.get("expires_in", 3600))

            if not access_token or not refresh_token:
                raise HTTPException(status_code=400, detail="Invalid token response")

            google_email = None
            user_info_response = await client.get(
                GOOGLE_USERINFO_URL, headers={"Authorization": f"Bearer {access_token}"}
            )
            if user_info_response.status_code == 200:
                google_email = user_info_response.json().get("email")
            else:
                logger.warning(f"Failed to get Google user info: {user_info_response.text}")
    except httpx.HTTPError as e:
        logger.error(f"❌ Google Calendar callback error: {str(e)}")
        raise HTTPException(status_code=502, detail="Could not reach Google") from e
    except ValueError as e:
        logger.error(f"❌ Unreadable response from Google during callback: {str(e)}")
        raise HTTPException(status_code=502, detail="Invalid response from Google") from e

    tokens.store_tokens(current_user.id, access_token, refresh_token, expires_in, google_email)
    logger.info(f"✅ Google Calendar connected for user: {current_user.id}")

    return {
        "success": True,
        "message": "Google Calendar connected successfully",
        "user_email": google_email,
    }


@router.post("/disconnect")
async def disconnect_google_calendar(
    current_user: User = Depends(get_current_user),
    tokens: GoogleCalendarTokenManager = Depends(get_token_manager),
):
    """Disconnect Google Calendar integration"""
    await tokens.disconnect(current_user.id)
    logger.info(f"✅ Google Calendar disconnected for user: {current_user.id}")
    return {"success": True, "message": "Google Calendar disconnected"}
