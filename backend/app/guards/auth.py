"""
Invoicerr Backend — Authentication Guard
==========================================

What:  FastAPI dependency resolving the caller's User from a session token.
Why:   The first stage of the request pipeline; every tenant and role check
       downstream starts from `request.state.user`.
How:   Token from `Authorization: Bearer <token>`, else the session cookie
       (settings.session_cookie_name). Routes that do not depend on
       get_current_user are public.
"""

from typing import Optional

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.database import get_db_session
from app.models.user import User
from app.services.auth_service import auth_service


def extract_token(request: Request) -> Optional[str]:
    authorization = request.headers.get("authorization", "")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() == "bearer" and token.strip():
        return token.strip()
    return request.cookies.get(settings.session_cookie_name)


async def get_current_user(
    request: Request,
    db: AsyncSession = Depends(get_db_session),
) -> User:
    """Raises AuthenticationError (401) without a valid, unexpired session."""
    session = await auth_service.validate_session(db, extract_token(request))
    request.state.user = session.user
    request.state.session = session
    return session.user
