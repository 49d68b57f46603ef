"""
Authentication dependencies for FastAPI.

Every financial route acts on behalf of exactly one club, taken from the
``club_id`` claim of the bearer token.
"""

from datetime import date
from typing import Optional

from fastapi import Depends, HTTPException, Query, status as http_status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from clubfunds.app.core.exceptions import ValidationError
from clubfunds.app.core.jwt import decode_access_token
from clubfunds.app.domain.ledger.rollup import EntryFilter

# HTTP Bearer security scheme
security = HTTPBearer()


async def get_current_club(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> dict:
    """
    FastAPI dependency for JWT authentication.

    Returns:
        Decoded token payload, guaranteed to contain ``club_id``

    Raises:
        HTTPException: 401 if the token is invalid or carries no club
    """
    payload = decode_access_token(credentials.credentials)
    if payload is None:
        raise HTTPException(
            status_code=http_status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if payload.get("club_id") is None:
        raise HTTPException(
            status_code=http_status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return payload


async def get_entry_filter(
    level: Optional[str] = Query(None, description="club, campaign or event"),
    filter_campaign_id: Optional[int] = Query(None, alias="campaign_id"),
    filter_event_id: Optional[int] = Query(None, alias="event_id"),
    source: Optional[str] = Query(None),
    category: Optional[str] = Query(None),
    payment_method: Optional[str] = Query(None),
    status: Optional[str] = Query(None, description="pending, approved or paid"),
    date_from: Optional[date] = Query(None, description="YYYY-MM-DD, inclusive"),
    date_to: Optional[date] = Query(None, description="YYYY-MM-DD, covers the whole day"),
) -> EntryFilter:
    """Build an EntryFilter from list query parameters."""
    try:
        return EntryFilter(
            level=level,
            campaign_id=filter_campaign_id,
            event_id=filter_event_id,
            source=source,
            category=category,
            payment_method=payment_method,
            status=status,
            date_from=date_from,
            date_to=date_to,
        )
    except ValueError as e:
        raise ValidationError([str(e)], message="Invalid filter")
