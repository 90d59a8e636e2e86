"""
Invoicerr Backend — Authentication Service
============================================

What:  Sign-up, sign-in, sign-out and session validation.
Why:   Every protected route resolves its caller through validate_session();
       registration rules decide who may create an account at all.
How:   bcrypt password hashes; opaque random session tokens stored in the
       `sessions` table with an expiry (settings.session_ttl_hours).

Registration rules (can_register):
    1. The first user may always register and becomes system admin
    2. DISABLE_REGISTRATION without a code → refused
    3. No code → refused (an invitation is required after the first user)
    4. Unknown / used / expired code → refused with the specific reason
    5. Valid code → allowed; company-bound codes also add a membership
"""

import logging
import secrets
from datetime import timedelta
from typing import Any, Dict, Optional, Tuple

import bcrypt
from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.exceptions import AuthenticationError, ConflictError, ValidationError
from app.models.enums import WebhookEvent
from app.models.user import User, UserSession
from app.services.membership_service import invitation_problem, membership_service
from app.services.webhooks import webhook_dispatcher
from app.utils.dates import ensure_aware, utcnow
from app.utils.serialization import serialize_model

logger = logging.getLogger(__name__)

_USER_PRIVATE_FIELDS = ("password_hash",)


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Malformed stored hash
        return False


class AuthService:

    async def is_first_user(self, db: AsyncSession) -> bool:
        result = await db.execute(select(func.count()).select_from(User))
        return (result.scalar() or 0) == 0

    async def can_register(self, db: AsyncSession, invitation_code: Optional[str] = None) -> Dict[str, Any]:
        if await self.is_first_user(db):
            return {"allowed": True, "requires_code": False}

        if settings.disable_registration and not invitation_code:
            return {
                "allowed": False,
                "requires_code": True,
                "message": "Registration is disabled. An invitation code is required.",
            }
        if not invitation_code:
            return {
                "allowed": False,
                "requires_code": True,
                "message": "An invitation code is required to register",
            }

        invitation = await membership_service.get_invitation(db, invitation_code)
        problem = invitation_problem(invitation)
        if problem:
            return {"allowed": False, "requires_code": True, "message": problem}

        return {
            "allowed": True,
            "requires_code": True,
            "company_id": invitation.company_id,
            "company_name": invitation.company.name if invitation.company else None,
            "role": invitation.role,
        }

    async def create_session(
        self,
        db: AsyncSession,
        user: User,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> UserSession:
        session = UserSession(
            token=secrets.token_urlsafe(48),
            user_id=user.id,
            expires_at=utcnow() + timedelta(hours=settings.session_ttl_hours),
            ip_address=ip_address,
            user_agent=(user_agent or "")[:512] or None,
        )
        session.user = user
        db.add(session)
        await db.flush()
        return session

    async def sign_up(
        self,
        db: AsyncSession,
        email: str,
        password: str,
        firstname: str = "",
        lastname: str = "",
        invitation_code: Optional[str] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> Tuple[User, UserSession]:
        """
        Create an account and log it in.

        Raises:
            ValidationError: registration refused (see can_register)
            ConflictError: email already registered
        """
        email = email.strip().lower()
        eligibility = await self.can_register(db, invitation_code)
        if not eligibility["allowed"]:
            raise ValidationError(eligibility["message"], field="invitation_code")

        existing = await db.execute(select(User).where(User.email == email))
        if existing.scalar_one_or_none() is not None:
            raise ConflictError("An account with this email already exists")

        is_first = await self.is_first_user(db)
        user = User(
            email=email,
            firstname=firstname or "",
            lastname=lastname or "",
            password_hash=hash_password(password),
            is_system_admin=is_first,
        )
        db.add(user)
        await db.flush()
        logger.info("User %s registered%s", user.id, " (system admin)" if is_first else "")

        if invitation_code:
            await membership_service.use_invitation(db, invitation_code, user)

        session = await self.create_session(db, user, ip_address, user_agent)
        await webhook_dispatcher.safe_dispatch(
            db, WebhookEvent.USER_CREATED, {"user": serialize_model(user, _USER_PRIVATE_FIELDS)}
        )
        return user, session

    async def sign_in(
        self,
        db: AsyncSession,
        email: str,
        password: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> UserSession:
        result = await db.execute(select(User).where(User.email == email.strip().lower()))
        user = result.scalar_one_or_none()
        if user is None or not verify_password(password, user.password_hash):
            logger.warning("Failed sign-in for %s", email)
            raise AuthenticationError("Invalid email or password")

        session = await self.create_session(db, user, ip_address, user_agent)
        logger.info("User %s signed in", user.id)
        await webhook_dispatcher.safe_dispatch(
            db, WebhookEvent.USER_LOGGED_IN, {"user": serialize_model(user, _USER_PRIVATE_FIELDS)}
        )
        return session

    async def sign_out(self, db: AsyncSession, token: str) -> None:
        await db.execute(delete(UserSession).where(UserSession.token == token))
        await db.flush()

    async def validate_session(self, db: AsyncSession, token: Optional[str]) -> UserSession:
        """
        Resolve a token to its session (with `user` loaded).

        Expired sessions are deleted on sight. The delete is committed before
        raising: the request dependency rolls back on the 401 that follows.

        Raises:
            AuthenticationError: missing, unknown or expired token
        """
        if not token:
            raise AuthenticationError()

        result = await db.execute(select(UserSession).where(UserSession.token == token))
        session = result.scalar_one_or_none()
        if session is None:
            raise AuthenticationError("Invalid or expired session")

        if ensure_aware(session.expires_at) <= utcnow():
            await db.delete(session)
            await db.commit()
            logger.info("Expired session %s removed", session.id)
            raise AuthenticationError("Invalid or expired session")
        return session

    async def update_profile(
        self,
        db: AsyncSession,
        user: User,
        firstname: Optional[str] = None,
        lastname: Optional[str] = None,
    ) -> User:
        if firstname is not None:
            user.firstname = firstname
        if lastname is not None:
            user.lastname = lastname
        await db.flush()
        return user

    async def set_password(self, db: AsyncSession, user: User, new_password: str) -> None:
        if not new_password or len(new_password) < 8:
            raise ValidationError("Password must be at least 8 characters", field="new_password")
        user.password_hash = hash_password(new_password)
        await db.flush()
        logger.info("Password changed for user %s", user.id)

    async def cleanup_expired_sessions(self, db: AsyncSession) -> int:
        result = await db.execute(delete(UserSession).where(UserSession.expires_at <= utcnow()))
        await db.flush()
        removed = result.rowcount or 0
        if removed:
            logger.info("Removed %d expired sessions", removed)
        return removed


# ── Singleton Instance ────────────────────────────────────────────────────
auth_service = AuthService()
