"""Danger zone request body; a missing code is a 400, not a 422."""

from typing import Optional

from pydantic import BaseModel, Field


class DangerConfirm(BaseModel):
    otp: Optional[str] = Field(default=None, max_length=32, description="Code from the confirmation mail")
