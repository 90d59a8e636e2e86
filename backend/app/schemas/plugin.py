"""Plugin (storage / signing provider) schemas."""

from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from app.models.enums import PluginType


class PluginResponse(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    type: PluginType
    is_active: bool
    config: Dict[str, Any] = {}

    model_config = {"from_attributes": True}


class PluginToggleRequest(BaseModel):
    plugin_id: str = Field(min_length=1, max_length=64)
    active: Optional[bool] = Field(default=None, description="Omit to flip the current state")


class PluginConfigureRequest(BaseModel):
    plugin_id: str = Field(min_length=1, max_length=64)
    config: Dict[str, Any] = Field(default_factory=dict)
