"""JSON-RPC request/response models for the MCP endpoint."""

from typing import Any, Dict, Optional, Union
from pydantic import BaseModel, ConfigDict, Field


JSONRPC_VERSION = "2.0"
DEFAULT_PROTOCOL_VERSION = "2025-03-26"

RequestId = Union[str, int]


# ============================================================================
# Requests
# ============================================================================

class JsonRpcRequest(BaseModel):
    """Inbound JSON-RPC message. A message without ``id`` is a notification."""
    model_config = ConfigDict(extra="allow")

    jsonrpc: str = Field(default=JSONRPC_VERSION)
    id: Optional[RequestId] = None
    method: str
    params: Optional[Dict[str, Any]] = None

    @property
    def is_notification(self) -> bool:
        return "id" not in self.model_fields_set


class ToolCallParams(BaseModel):
    """Params of a tools/call request."""
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    name: str
    arguments: Optional[Dict[str, Any]] = None
    meta: Optional[Dict[str, Any]] = Field(default=None, alias="_meta")


class PromptGetParams(BaseModel):
    """Params of a prompts/get request."""
    model_config = ConfigDict(extra="allow")

    name: str
    arguments: Optional[Dict[str, Any]] = None


class ResourceReadParams(BaseModel):
    """Params of a resources/read request."""
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    uri: str
    meta: Optional[Dict[str, Any]] = Field(default=None, alias="_meta")


# ============================================================================
# Responses
# ============================================================================

class JsonRpcError(BaseModel):
    code: int
    message: str


class JsonRpcSuccess(BaseModel):
    jsonrpc: str = JSONRPC_VERSION
    id: Optional[RequestId]
    result: Dict[str, Any]


class JsonRpcFailure(BaseModel):
    jsonrpc: str = JSONRPC_VERSION
    id: Optional[RequestId]
    error: JsonRpcError


class HealthResponse(BaseModel):
    status: str = Field(..., examples=["ok"])
    service: str
    version: str
    timestamp: str
