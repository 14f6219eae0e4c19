"""Error taxonomy and normalization of upstream HTTP failures."""

import json
from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Any, Dict, Iterable, Optional

import httpx


BODY_PREVIEW_LIMIT = 200


class ErrorCategory(str, Enum):
    """Categories of errors raised while handling a tool call."""
    MISSING_CREDENTIAL = "missing_credential"  # No credential source yielded a token
    TOKEN_FILE = "token_file"  # Token file configured but unusable
    UNKNOWN_TOOL = "unknown_tool"  # Name not in the dispatch table
    FORBIDDEN = "forbidden"  # Registered but denied by CRUD or plugin policy
    UPSTREAM = "upstream"  # Backend answered with an error or was unreachable
    TENANT_RESOLUTION = "tenant_resolution"  # App id/name could not be resolved
    VALIDATION = "validation"  # Bad tool arguments
    INTERNAL = "internal"


class ProtocolErrorCode(IntEnum):
    """JSON-RPC error codes used at the protocol boundary."""
    PARSE_ERROR = -32700
    INVALID_REQUEST = -32600
    METHOD_NOT_FOUND = -32601
    INVALID_PARAMS = -32602
    INTERNAL_ERROR = -32603


class CountlyMCPError(Exception):
    """Base exception for every failure the pipeline reports."""
    category = ErrorCategory.INTERNAL
    code = ProtocolErrorCode.INTERNAL_ERROR

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class CredentialError(CountlyMCPError):
    """Credential could not be obtained."""
    code = ProtocolErrorCode.INVALID_REQUEST


class MissingCredentialError(CredentialError):
    """None of the credential sources yielded a token."""
    category = ErrorCategory.MISSING_CREDENTIAL


class TokenFileError(CredentialError):
    """COUNTLY_AUTH_TOKEN_FILE is set but the file cannot be used."""
    category = ErrorCategory.TOKEN_FILE

    def __init__(self, message: str, path: str):
        self.path = path
        super().__init__(message)


class UnknownToolError(CountlyMCPError):
    """Tool name is not registered at all."""
    category = ErrorCategory.UNKNOWN_TOOL
    code = ProtocolErrorCode.METHOD_NOT_FOUND

    def __init__(self, tool_name: str):
        self.tool_name = tool_name
        super().__init__(f"Unknown tool: {tool_name}")


class ForbiddenToolError(CountlyMCPError):
    """Tool is registered but the current policy does not allow it."""
    category = ErrorCategory.FORBIDDEN
    code = ProtocolErrorCode.INVALID_REQUEST

    def __init__(self, tool_name: str, reason: str):
        self.tool_name = tool_name
        self.reason = reason
        super().__init__(f"Tool '{tool_name}' is not available: {reason}")


class TenantResolutionError(CountlyMCPError):
    """App identifier missing or not found in the directory."""
    category = ErrorCategory.TENANT_RESOLUTION
    code = ProtocolErrorCode.INVALID_PARAMS


class ToolValidationError(CountlyMCPError):
    """Tool arguments are missing or malformed."""
    category = ErrorCategory.VALIDATION
    code = ProtocolErrorCode.INVALID_PARAMS


class UpstreamError(CountlyMCPError):
    """Countly backend returned an error status or could not be reached."""
    category = ErrorCategory.UPSTREAM

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        body_preview: Optional[str] = None,
    ):
        self.status_code = status_code
        self.body_preview = body_preview
        super().__init__(message)

    @property
    def code(self) -> ProtocolErrorCode:  # type: ignore[override]
        if self.status_code is not None and 400 <= self.status_code < 500:
            return ProtocolErrorCode.INVALID_REQUEST
        return ProtocolErrorCode.INTERNAL_ERROR

    @property
    def response_received(self) -> bool:
        return self.status_code is not None


@dataclass(frozen=True)
class ErrorDetails:
    """Normalized view of a failed outbound call."""
    message: str
    status_code: Optional[int] = None
    body_preview: Optional[str] = None


def truncate(text: str, limit: int = BODY_PREVIEW_LIMIT) -> str:
    if len(text) <= limit:
        return text
    return text[:limit] + "..."


def _describe_body(response: httpx.Response) -> Optional[str]:
    """Pull the most useful error text out of a response body."""
    try:
        data: Any = response.json()
    except ValueError:
        text = response.text
        return truncate(text) if text else None

    if isinstance(data, dict):
        for key in ("error", "message", "result"):
            if data.get(key):
                return truncate(str(data[key]))
    if data in (None, "", [], {}):
        return None
    if isinstance(data, str):
        return truncate(data)
    return truncate(json.dumps(data))


def _request_label(error: httpx.HTTPError) -> Optional[str]:
    try:
        request = error.request
    except RuntimeError:
        # Raised by httpx when the error was built without a request
        return None
    return f"{request.method.upper()} {request.url.path}"


def extract_error_details(error: BaseException) -> ErrorDetails:
    """
    Extract detailed error information from an outbound call failure.

    A response with an error status is reported differently from a request
    that never got a response.

    Args:
        error: Exception raised by httpx (or anything else)

    Returns:
        ErrorDetails with message, optional status code and body preview
    """
    if isinstance(error, httpx.HTTPStatusError):
        response = error.response
        preview = _describe_body(response)
        message = f"HTTP {response.status_code} error"
        if preview:
            message += f": {preview}"
        label = _request_label(error)
        if label:
            message += f" ({label})"
        return ErrorDetails(message=message, status_code=response.status_code, body_preview=preview)

    if isinstance(error, httpx.HTTPError):
        message = f"No response from server: {str(error) or type(error).__name__}"
        label = _request_label(error)
        if label:
            message += f" ({label})"
        return ErrorDetails(message=message)

    return ErrorDetails(message=str(error))


def wrap_api_error(error: BaseException, context: Optional[str] = None) -> UpstreamError:
    """
    Wrap an outbound failure into an UpstreamError.

    Args:
        error: Original exception
        context: Short description of what was attempted, used as prefix

    Returns:
        UpstreamError carrying status code and body preview
    """
    details = extract_error_details(error)
    message = f"{context}: {details.message}" if context else details.message
    return UpstreamError(message, status_code=details.status_code, body_preview=details.body_preview)


def to_protocol_error(error: BaseException, tool_name: Optional[str] = None) -> Dict[str, Any]:
    """
    Map any exception onto a JSON-RPC error object.

    Args:
        error: Exception raised while handling a request
        tool_name: Tool being executed, used to label unexpected errors

    Returns:
        Dict with "code" and "message"
    """
    if isinstance(error, CountlyMCPError):
        return {"code": int(error.code), "message": error.message}

    label = f"Error executing tool {tool_name}" if tool_name else "Internal error"
    return {"code": int(ProtocolErrorCode.INTERNAL_ERROR), "message": f"{label}: {error}"}


def format_known_names(names: Iterable[str]) -> str:
    joined = ", ".join(names)
    return joined or "none"
