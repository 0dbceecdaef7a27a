"""
Dependencies for FastAPI endpoints
"""
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from app.core.exceptions import AuthenticationError
from app.core.security import identity_from_token
from app.db.session import get_db
from app.services.scope_gate import ScopeContext, resolve


# auto_error=False so a missing header goes through AuthenticationError and the envelope
security = HTTPBearer(auto_error=False)

__all__ = ["get_db", "get_identity", "get_scope"]


async def get_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> str:
    """
    Verified identity (token subject) of the caller
    """
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("Not authenticated")
    try:
        return identity_from_token(credentials.credentials)
    except ValueError:
        raise AuthenticationError("Invalid authentication credentials")


def get_scope(
    identity: str = Depends(get_identity),
    db: Session = Depends(get_db),
) -> ScopeContext:
    """
    Resolve the caller's company and role once per request

    Usage:
        @router.get("/leaves")
        def list_endpoint(scope: ScopeContext = Depends(get_scope)):
            ...
    """
    return resolve(db, identity)
