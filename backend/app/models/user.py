"""
Invoicerr Backend — User & Session Models
===========================================

What:  ORM models for accounts (`users`) and login sessions (`sessions`).
Why:   Every request but /health and the auth endpoints resolves to a User
       through a Session token before any tenant logic runs.
How:   Opaque random tokens (secrets.token_urlsafe) stored server-side with
       an expiry; bcrypt password hashes. No JWT: revoking a session is a
       single DELETE.

Table Design Rationale:
    - email unique + indexed: sign-in lookup and duplicate detection
    - is_system_admin: instance-wide super administrator flag. The first
      registered user gets it; guards also treat the oldest user as super
      admin even if the flag was lost.
    - sessions.token unique + indexed: every authenticated request hits it
"""

import uuid
from datetime import datetime
from typing import List, Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base
from app.utils.dates import utcnow


class User(Base):
    """
    A person who can sign in.

    A user belongs to zero or more companies through UserCompany rows;
    exactly one of those may be flagged as the default company.
    """

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    firstname: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    lastname: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    is_system_admin: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    sessions: Mapped[List["UserSession"]] = relationship(
        back_populates="user", cascade="all, delete-orphan"
    )
    companies: Mapped[List["UserCompany"]] = relationship(  # noqa: F821
        back_populates="user", cascade="all, delete-orphan"
    )

    @property
    def display_name(self) -> str:
        full = f"{self.firstname} {self.lastname}".strip()
        return full or self.email

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email!r})>"


class UserSession(Base):
    """Server-side login session; the token is the bearer credential."""

    __tablename__ = "sessions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    token: Mapped[str] = mapped_column(String(128), unique=True, index=True, nullable=False)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    ip_address: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    user_agent: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    # joined: validating a token always needs the user
    user: Mapped[User] = relationship(back_populates="sessions", lazy="joined")
