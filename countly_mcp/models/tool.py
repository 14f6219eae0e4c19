"""Tool definition and result models exchanged with MCP clients."""

import json
from typing import Any, Dict, List
from pydantic import BaseModel, ConfigDict, Field


class ToolDefinition(BaseModel):
    """Tool descriptor advertised through tools/list."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    name: str = Field(..., description="Tool name, unique across all categories")
    description: str = Field(..., description="Tool description")
    input_schema: Dict[str, Any] = Field(
        default_factory=lambda: {"type": "object", "properties": {}, "required": []},
        alias="inputSchema",
        description="JSON Schema for arguments",
    )

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


class ToolContent(BaseModel):
    """One content block of a tool result."""
    type: str = "text"
    text: str


class ToolResult(BaseModel):
    """Result returned by a tool handler."""
    content: List[ToolContent]
    is_error: bool = Field(default=False, alias="isError")

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def text(cls, text: str) -> "ToolResult":
        return cls(content=[ToolContent(text=text)])

    @classmethod
    def with_data(cls, title: str, data: Any) -> "ToolResult":
        """Render ``data`` as pretty JSON under a title line."""
        return cls.text(f"{title}:\n{json.dumps(data, indent=2, default=str)}")

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)
