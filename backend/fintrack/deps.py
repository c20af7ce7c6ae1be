"""
Request dependencies: bearer token verification, admin guard, date range
parsing and owner-bound repositories.
"""

import datetime as dt
import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, HTTPException, Query, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlmodel import Session

from .auth import InvalidToken, decode_access_token
from .crud import OwnedRepository, get_user_by_email
from .database import get_session
from .models import Income, Expense
from .schemas import Identity

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    session: Session = Depends(get_session),
) -> Identity:
    """Resolve the caller from ``Authorization: Bearer <token>``.

    The account is looked up again on every request, so a deleted account
    is rejected even while its token has not expired yet.
    """
    if credentials is None or not credentials.credentials:
        raise _unauthorized("Not authenticated")

    try:
        email = decode_access_token(credentials.credentials)
    except InvalidToken as exc:
        logger.info("Rejected bearer token: %s", exc)
        raise _unauthorized("Invalid or expired token.")

    user = get_user_by_email(session, email)
    if user is None:
        logger.info("Token subject %s no longer exists", email)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account not found or deactivated.",
        )

    return Identity(email=user.email, is_admin=user.is_admin)


def require_admin(identity: Identity = Depends(get_current_identity)) -> Identity:
    if not identity.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin privileges required.",
        )
    return identity


@dataclass(frozen=True)
class DateRange:
    start: Optional[dt.date] = None
    end: Optional[dt.date] = None


def get_date_range(
    start: Optional[dt.date] = Query(None, alias="from", description="Inclusive start date"),
    end: Optional[dt.date] = Query(None, alias="to", description="Inclusive end date"),
) -> DateRange:
    if start is not None and end is not None and start > end:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="'from' must not be after 'to'.",
        )
    return DateRange(start=start, end=end)


def get_income_repo(
    identity: Identity = Depends(get_current_identity),
    session: Session = Depends(get_session),
) -> OwnedRepository[Income]:
    return OwnedRepository(session, Income, identity.email)


def get_expense_repo(
    identity: Identity = Depends(get_current_identity),
    session: Session = Depends(get_session),
) -> OwnedRepository[Expense]:
    return OwnedRepository(session, Expense, identity.email)
