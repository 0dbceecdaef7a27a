"""
Identity token utilities

Tokens are issued by the external identity provider; this service only
verifies them and reads the subject (the employee's user_id).
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional
from jose import JWTError, jwt
from app.core.config import settings

logger = logging.getLogger(__name__)


def create_access_token(data: Dict, expires_minutes: Optional[int] = None) -> str:
    """Create a signed token (used by the identity provider and by tests)"""
    to_encode = data.copy()

    if expires_minutes is None:
        expires_minutes = settings.JWT_EXPIRE_MINUTES

    expire = datetime.now(timezone.utc) + timedelta(minutes=expires_minutes)
    to_encode.update({"exp": expire})

    return jwt.encode(
        to_encode,
        settings.JWT_SECRET_KEY,
        algorithm=settings.JWT_ALGORITHM
    )


def decode_token(token: str) -> Dict:
    """Decode and verify a JWT token"""
    try:
        return jwt.decode(
            token,
            settings.JWT_SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM]
        )
    except JWTError as e:
        logger.debug("Token rejected: %s", e)
        raise ValueError("Invalid token")


def identity_from_token(token: str) -> str:
    """
    Extract the opaque identity (the `sub` claim) from a verified token

    Raises:
        ValueError: If the token is invalid or carries no subject
    """
    payload = decode_token(token)
    sub_value = payload.get("sub")
    if sub_value is None or not str(sub_value).strip():
        raise ValueError("Token has no subject")
    return str(sub_value)
