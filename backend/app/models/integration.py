"""
Invoicerr Backend — Integration Models
========================================

What:  Outbound webhooks (`webhooks`) and installed provider plugins
       (`plugins`).
Why:   Both connect the instance to the outside world: webhooks push events
       out, plugins give the app somewhere to store files and a way to
       request signatures.
How:   Webhook.events is a JSON list of WebhookEvent names; the dispatcher
       filters on it in Python so the same query works on SQLite and
       PostgreSQL. Plugin.id is the provider key from the in-code registry
       ("local", ...); the row only stores activation state and config.
"""

import uuid
from datetime import datetime
from typing import List, Optional

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base
from app.models.enums import PluginType, WebhookType, db_enum
from app.utils.dates import utcnow


class Webhook(Base):
    __tablename__ = "webhooks"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    company_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True
    )
    url: Mapped[str] = mapped_column(String(2048), nullable=False)
    type: Mapped[WebhookType] = mapped_column(
        db_enum(WebhookType), nullable=False, default=WebhookType.GENERIC
    )
    events: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)
    secret: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )


class Plugin(Base):
    __tablename__ = "plugins"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    type: Mapped[PluginType] = mapped_column(db_enum(PluginType), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    config: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
