import logging

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from .config import JWT_ALGORITHM, JWT_AUDIENCE, JWT_SECRET
from .database import get_db
from .models import User

logger = logging.getLogger(__name__)

security = HTTPBearer()


def decode_access_token(token: str) -> dict:
    """Verify an access token issued by the auth backend"""
    options = {"verify_aud": bool(JWT_AUDIENCE)}
    return jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM], audience=JWT_AUDIENCE, options=options)


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    """Get current practitioner from the bearer token, provisioning the row on first use"""
    try:
        claims = decode_access_token(credentials.credentials)
    except JWTError as e:
        logger.warning(f"⚠️ Invalid access token: {e}")
        raise HTTPException(status_code=401, detail="Invalid or expired token") from e

    user_id = claims.get("sub")
    if not user_id:
        logger.error(f"❌ Token missing user ID claim. Available claims: {list(claims.keys())}")
        raise HTTPException(status_code=401, detail="Invalid token: missing subject")

    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        user = User(id=user_id, email=claims.get("email"))
        db.add(user)
        db.commit()
        db.refresh(user)
        logger.info(f"✅ Provisioned practitioner {user_id}")

    return user
