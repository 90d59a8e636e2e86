"""
Outbound webhook schemas.

The signing secret is returned once, by the create call
(WebhookCreatedResponse). List and get use WebhookResponse, which has no
secret field at all.
"""

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from app.models.enums import WebhookEvent, WebhookType


class WebhookCreate(BaseModel):
    url: str = Field(min_length=1, max_length=2048)
    type: WebhookType = WebhookType.GENERIC
    events: List[WebhookEvent] = Field(default_factory=list)
    secret: Optional[str] = Field(default=None, max_length=128, description="Generated when omitted")


class WebhookUpdate(BaseModel):
    url: Optional[str] = Field(default=None, min_length=1, max_length=2048)
    type: Optional[WebhookType] = None
    events: Optional[List[WebhookEvent]] = None
    secret: Optional[str] = Field(default=None, max_length=128)


class WebhookResponse(BaseModel):
    id: uuid.UUID
    company_id: uuid.UUID
    url: str
    type: WebhookType
    events: List[str]
    created_at: datetime

    model_config = {"from_attributes": True}


class WebhookCreatedResponse(WebhookResponse):
    secret: Optional[str] = None


class WebhookOptionsResponse(BaseModel):
    types: List[str]
    events: List[str]
