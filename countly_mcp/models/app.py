"""Countly app (tenant) model."""

from typing import Any, Optional, Union
from pydantic import BaseModel, ConfigDict, Field


class CountlyApp(BaseModel):
    """One customer's analytics workspace as returned by /o/apps/mine."""
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str = Field(..., alias="_id", description="Stable app identifier")
    name: str = Field(..., description="Display name, not guaranteed unique")
    key: Optional[str] = Field(default="", description="App key used by SDKs")
    created_at: Any = Field(default=None, description="Creation time (unix seconds)")
    timezone: Optional[str] = Field(default="", description="App timezone")
    category: Optional[Union[str, int]] = None
