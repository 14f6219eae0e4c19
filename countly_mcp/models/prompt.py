"""Prompt and resource models exchanged with MCP clients."""

from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field


class PromptArgument(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    description: str = ""
    required: bool = False


class PromptDefinition(BaseModel):
    """Prompt template advertised through prompts/list."""
    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Prompt name, unique across the server")
    title: str = ""
    description: str = ""
    arguments: List[PromptArgument] = Field(default_factory=list)

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump()


class PromptMessage(BaseModel):
    role: str = "user"
    content: Dict[str, str]

    @classmethod
    def user_text(cls, text: str) -> "PromptMessage":
        return cls(content={"type": "text", "text": text})


class PromptResult(BaseModel):
    """Result of prompts/get."""
    description: str
    messages: List[PromptMessage]

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump()


class ResourceDefinition(BaseModel):
    """Resource advertised through resources/list."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    uri: str
    name: str
    title: str = ""
    description: str = ""
    mime_type: str = Field(default="application/json", alias="mimeType")
    annotations: Optional[Dict[str, Any]] = None

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class ResourceContent(BaseModel):
    """One entry of a resources/read result."""
    model_config = ConfigDict(populate_by_name=True)

    uri: str
    mime_type: str = Field(default="application/json", alias="mimeType")
    text: str

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)
