"""MCP endpoint: JSON-RPC over HTTP POST."""

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

from fastapi import APIRouter, Depends, Header, Request, Response
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from countly_mcp.api.models import (
    DEFAULT_PROTOCOL_VERSION,
    JsonRpcError,
    JsonRpcFailure,
    JsonRpcRequest,
    JsonRpcSuccess,
    PromptGetParams,
    RequestId,
    ResourceReadParams,
    ToolCallParams,
)
from countly_mcp.infra.config import SERVER_NAME, SERVER_VERSION, normalize_server_url, validate_server_url
from countly_mcp.infra.error_handler import CountlyMCPError, ProtocolErrorCode, to_protocol_error
from countly_mcp.services.pipeline import ToolCallPipeline
from countly_mcp.services.prompts import get_prompt, list_prompts

logger = logging.getLogger(__name__)

router = APIRouter()


@dataclass(frozen=True)
class _Call:
    """Per-request transport state handed to method handlers."""
    pipeline: ToolCallPipeline
    params: Dict[str, Any]
    session_token: Optional[str]
    server_url: Optional[str]
    request_id: Optional[str]


def get_pipeline(request: Request) -> ToolCallPipeline:
    return request.app.state.pipeline


def _error_response(request_id: Optional[RequestId], code: int, message: str) -> JSONResponse:
    failure = JsonRpcFailure(id=request_id, error=JsonRpcError(code=int(code), message=message))
    return JSONResponse(content=failure.model_dump())


async def _initialize(call: _Call) -> Dict[str, Any]:
    return {
        "protocolVersion": call.params.get("protocolVersion") or DEFAULT_PROTOCOL_VERSION,
        "capabilities": {
            "tools": {"listChanged": False},
            "prompts": {"listChanged": False},
            "resources": {"subscribe": False, "listChanged": False},
        },
        "serverInfo": {"name": SERVER_NAME, "version": SERVER_VERSION},
    }


async def _ping(call: _Call) -> Dict[str, Any]:
    return {}


async def _list_tools(call: _Call) -> Dict[str, Any]:
    tools = await call.pipeline.list_tools(
        metadata=call.params.get("_meta"),
        session_token=call.session_token,
        server_url=call.server_url,
    )
    return {"tools": [definition.to_wire() for definition in tools]}


async def _call_tool(call: _Call) -> Dict[str, Any]:
    params = ToolCallParams.model_validate(call.params)
    result = await call.pipeline.invoke(
        params.name,
        params.arguments or {},
        metadata=params.meta,
        session_token=call.session_token,
        server_url=call.server_url,
        request_id=call.request_id,
    )
    return result.to_wire()


async def _list_prompts(call: _Call) -> Dict[str, Any]:
    return {"prompts": [definition.to_wire() for definition in list_prompts()]}


async def _get_prompt(call: _Call) -> Dict[str, Any]:
    params = PromptGetParams.model_validate(call.params)
    return get_prompt(params.name, params.arguments or {}).to_wire()


async def _list_resources(call: _Call) -> Dict[str, Any]:
    resources = await call.pipeline.list_resources(
        metadata=call.params.get("_meta"),
        session_token=call.session_token,
        server_url=call.server_url,
        request_id=call.request_id,
    )
    return {"resources": [definition.to_wire() for definition in resources]}


async def _read_resource(call: _Call) -> Dict[str, Any]:
    params = ResourceReadParams.model_validate(call.params)
    content = await call.pipeline.read_resource(
        params.uri,
        metadata=params.meta,
        session_token=call.session_token,
        server_url=call.server_url,
        request_id=call.request_id,
    )
    return {"contents": [content.to_wire()]}


METHODS: Dict[str, Callable[[_Call], Awaitable[Dict[str, Any]]]] = {
    "initialize": _initialize,
    "ping": _ping,
    "tools/list": _list_tools,
    "tools/call": _call_tool,
    "prompts/list": _list_prompts,
    "prompts/get": _get_prompt,
    "resources/list": _list_resources,
    "resources/read": _read_resource,
}


@router.post("/mcp", tags=["MCP"])
async def mcp_endpoint(
    request: Request,
    pipeline: ToolCallPipeline = Depends(get_pipeline),
    x_countly_auth_token: Optional[str] = Header(default=None),
    x_countly_server_url: Optional[str] = Header(default=None),
):
    """
    Handle one JSON-RPC message.

    X-Countly-Auth-Token and X-Countly-Server-Url apply to this request only.
    Notifications are acknowledged with 202 and no body.
    """
    try:
        body = await request.json()
    except ValueError:
        return _error_response(None, ProtocolErrorCode.PARSE_ERROR, "Parse error: request body is not valid JSON")

    try:
        message = JsonRpcRequest.model_validate(body)
    except ValidationError as e:
        request_id = body.get("id") if isinstance(body, dict) else None
        if not isinstance(request_id, (str, int)):
            request_id = None
        return _error_response(
            request_id, ProtocolErrorCode.INVALID_REQUEST, f"Invalid request: {e.errors()[0]['msg']}"
        )

    if message.is_notification:
        logger.debug("Notification received", extra={"method": message.method})
        return Response(status_code=202)

    server_url: Optional[str] = None
    if x_countly_server_url:
        server_url = normalize_server_url(x_countly_server_url)
        if not validate_server_url(server_url):
            return _error_response(
                message.id,
                ProtocolErrorCode.INVALID_REQUEST,
                f"Invalid X-Countly-Server-Url header: {server_url}. Must be a valid HTTP or HTTPS URL.",
            )

    handler = METHODS.get(message.method)
    if handler is None:
        return _error_response(message.id, ProtocolErrorCode.METHOD_NOT_FOUND, f"Method not found: {message.method}")

    call = _Call(
        pipeline=pipeline,
        params=message.params or {},
        session_token=x_countly_auth_token,
        server_url=server_url,
        request_id=getattr(request.state, "request_id", None),
    )
    try:
        result = await handler(call)
    except ValidationError as e:
        return _error_response(message.id, ProtocolErrorCode.INVALID_PARAMS, f"Invalid params: {e.errors()[0]['msg']}")
    except CountlyMCPError as e:
        error = to_protocol_error(e)
        return _error_response(message.id, error["code"], error["message"])

    return JSONResponse(content=JsonRpcSuccess(id=message.id, result=result).model_dump())
