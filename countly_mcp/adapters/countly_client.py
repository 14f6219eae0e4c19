"""HTTP client for the Countly REST API."""

import logging
from typing import Any, Dict, Optional

import httpx

from countly_mcp.infra.error_handler import UpstreamError, wrap_api_error
from countly_mcp.infra.metrics import upstream_requests_total
from countly_mcp.models.context import InvocationContext

logger = logging.getLogger(__name__)

AUTH_HEADER = "countly-token"


class CountlyClient:
    """Request-scoped client bound to exactly one credential.

    Every request carries the ``countly-token`` header of the invocation that
    opened the client and uses the single configured timeout. Failures are
    normalized to UpstreamError.

    Usage:
        async with CountlyClient.for_invocation(ctx) as client:
            data = await client.get("/o/apps/mine")
    """

    def __init__(
        self,
        base_url: str,
        auth_token: str,
        timeout: float,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            base_url: Countly server URL (no trailing slash)
            auth_token: Token sent in the countly-token header
            timeout: Request timeout in seconds
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        self.base_url = base_url
        self.timeout = timeout
        self._auth_token = auth_token
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @classmethod
    def for_invocation(
        cls,
        ctx: InvocationContext,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "CountlyClient":
        return cls(ctx.server_url, ctx.auth_token, ctx.timeout_seconds, transport=transport)

    async def __aenter__(self) -> "CountlyClient":
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            headers={AUTH_HEADER: self._auth_token},
            transport=self._transport,
        )
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    @property
    def is_open(self) -> bool:
        return self._client is not None

    async def get(self, path: str, params: Optional[Dict[str, Any]] = None, context: Optional[str] = None) -> Any:
        """GET ``path`` and return the decoded body."""
        return await self.request("GET", path, params=params, context=context)

    async def post(
        self,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Any] = None,
        context: Optional[str] = None,
    ) -> Any:
        """POST to ``path`` and return the decoded body."""
        return await self.request("POST", path, params=params, json=json, context=context)

    async def request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Any] = None,
        context: Optional[str] = None,
    ) -> Any:
        """
        Send one request to the Countly server.

        Args:
            method: HTTP method
            path: Path relative to the server URL, e.g. "/o/apps/mine"
            params: Query parameters; None values are dropped
            json: Optional JSON body
            context: Prefix for error messages, e.g. "Failed to list alerts"

        Returns:
            Decoded JSON body, or the raw text if the body is not JSON

        Raises:
            UpstreamError: On a non-2xx response or when no response was received
            RuntimeError: If the client is used outside its context manager
        """
        if self._client is None:
            raise RuntimeError("CountlyClient is not open; use it as an async context manager")
        if not self.base_url:
            raise UpstreamError(
                "Countly server URL is not configured. "
                "Set COUNTLY_SERVER_URL or send the X-Countly-Server-Url header."
            )

        clean_params = {k: v for k, v in (params or {}).items() if v is not None}

        try:
            response = await self._client.request(method, path, params=clean_params, json=json)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            upstream_requests_total.labels(method=method, status=str(e.response.status_code)).inc()
            logger.warning(
                "Countly request failed",
                extra={"method": method, "path": path, "status_code": e.response.status_code},
            )
            raise wrap_api_error(e, context) from e
        except httpx.HTTPError as e:
            upstream_requests_total.labels(method=method, status="network_error").inc()
            logger.warning(
                "Countly request got no response",
                extra={"method": method, "path": path, "error": str(e)},
            )
            raise wrap_api_error(e, context) from e

        upstream_requests_total.labels(method=method, status=str(response.status_code)).inc()

        try:
            return response.json()
        except ValueError:
            return response.text
