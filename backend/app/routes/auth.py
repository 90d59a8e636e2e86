"""
Invoicerr Backend — Auth Routes
=================================

What:  Sign-up, sign-in, sign-out and the caller's own profile.
How:   The session token is returned in the body and also set as an
       HttpOnly cookie, so both bearer-token and browser clients work.
"""

import logging

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.database import get_db_session
from app.exceptions import ValidationError
from app.guards import get_current_user
from app.guards.auth import extract_token
from app.models.user import User, UserSession
from app.schemas.auth import (
    PasswordUpdateRequest,
    ProfileUpdateRequest,
    SessionResponse,
    SignInRequest,
    SignUpRequest,
    UserResponse,
)
from app.schemas.common import ERRORS_AUTH, ErrorResponse, SuccessResponse
from app.services.auth_service import auth_service, verify_password

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Auth"])


def _client_info(request: Request) -> dict:
    return {
        "ip_address": request.client.host if request.client else None,
        "user_agent": request.headers.get("user-agent"),
    }


def _start_session(response: Response, session: UserSession, user: User) -> SessionResponse:
    response.set_cookie(
        settings.session_cookie_name,
        session.token,
        max_age=settings.session_ttl_hours * 3600,
        httponly=True,
        samesite="lax",
    )
    return SessionResponse(
        token=session.token,
        expires_at=session.expires_at,
        user=UserResponse.model_validate(user),
    )


@router.post(
    "/sign-up",
    response_model=SessionResponse,
    status_code=201,
    responses={
        400: {"model": ErrorResponse, "description": "Registration refused"},
        409: {"model": ErrorResponse, "description": "Email already registered"},
    },
    summary="Create an account",
    description=(
        "The first account of the instance is always accepted and becomes system "
        "administrator. Later accounts need an invitation code unless open "
        "registration is allowed."
    ),
)
async def sign_up(
    body: SignUpRequest,
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_db_session),
) -> SessionResponse:
    user, session = await auth_service.sign_up(
        db,
        email=body.email,
        password=body.password,
        firstname=body.firstname,
        lastname=body.lastname,
        invitation_code=body.invitation_code,
        **_client_info(request),
    )
    return _start_session(response, session, user)


@router.post(
    "/sign-in",
    response_model=SessionResponse,
    responses={401: {"model": ErrorResponse, "description": "Invalid email or password"}},
    summary="Sign in with email and password",
)
async def sign_in(
    body: SignInRequest,
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_db_session),
) -> SessionResponse:
    session = await auth_service.sign_in(db, body.email, body.password, **_client_info(request))
    return _start_session(response, session, session.user)


@router.post(
    "/sign-out",
    response_model=SuccessResponse,
    responses=ERRORS_AUTH,
    summary="End the current session",
)
async def sign_out(
    request: Request,
    response: Response,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> SuccessResponse:
    await auth_service.sign_out(db, extract_token(request))
    response.delete_cookie(settings.session_cookie_name)
    logger.info("User %s signed out", user.id)
    return SuccessResponse(success=True)


@router.get("/me", response_model=UserResponse, responses=ERRORS_AUTH, summary="Current user")
async def me(user: User = Depends(get_current_user)) -> User:
    return user


@router.patch("/me", response_model=UserResponse, responses=ERRORS_AUTH, summary="Update profile")
async def update_profile(
    body: ProfileUpdateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> User:
    return await auth_service.update_profile(db, user, body.firstname, body.lastname)


@router.put(
    "/me/password",
    response_model=SuccessResponse,
    responses={400: {"model": ErrorResponse, "description": "Current password is wrong"}, **ERRORS_AUTH},
    summary="Change password",
)
async def change_password(
    body: PasswordUpdateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> SuccessResponse:
    if not verify_password(body.current_password, user.password_hash):
        raise ValidationError("Current password is incorrect", field="current_password")
    await auth_service.set_password(db, user, body.new_password)
    return SuccessResponse(success=True, message="Password updated")
