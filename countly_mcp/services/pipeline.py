"""Tool call pipeline: credential binding, policy checks and dispatch.

Every invocation gets its own immutable InvocationContext and its own
request-scoped CountlyClient. The active credential is published through a
context variable, which is task-local, so concurrent invocations carrying
different tokens never see each other's credential.
"""

import logging
import time
import uuid
from contextlib import asynccontextmanager
from contextvars import ContextVar
from enum import Enum
from typing import Any, AsyncIterator, Dict, FrozenSet, List, Mapping, Optional

import httpx

from countly_mcp.adapters.countly_client import CountlyClient
from countly_mcp.infra.auth import AUTH_TOKEN_ARG, ResolvedCredential, require_auth_token, resolve_auth_token
from countly_mcp.infra.config import Settings, normalize_server_url
from countly_mcp.infra.error_handler import (
    CountlyMCPError,
    CredentialError,
    ForbiddenToolError,
    UnknownToolError,
    UpstreamError,
)
from countly_mcp.infra.metrics import tool_call_duration, tool_calls_total
from countly_mcp.models.context import InvocationContext
from countly_mcp.models.prompt import ResourceContent, ResourceDefinition
from countly_mcp.models.tool import ToolDefinition, ToolResult
from countly_mcp.services import resources
from countly_mcp.services.tool_policy import (
    ToolsConfig,
    check_tool_access,
    describe_denial,
    filter_tools,
    filter_tools_by_plugins,
    get_tool_category,
    requires_plugin_check,
)
from countly_mcp.services.tool_registry import ToolRegistry
from countly_mcp.tools.base import ToolContext, ToolServices

logger = logging.getLogger(__name__)


class PipelineState(str, Enum):
    RECEIVED = "received"
    CREDENTIAL_RESOLVED = "credential_resolved"
    AUTH_INSTALLED = "auth_installed"
    DISPATCHED = "dispatched"
    COMPLETED = "completed"
    FAILED = "failed"


active_credential: ContextVar[Optional[ResolvedCredential]] = ContextVar("active_credential", default=None)


def get_active_credential() -> Optional[ResolvedCredential]:
    """Credential bound to the invocation running in the current task, if any."""
    return active_credential.get()


class ToolCallPipeline:
    """
    Runs one tool invocation end to end.

    Order of checks: credential, unknown tool, CRUD permission (no outbound
    call), plugin availability (only for plugin-gated categories), dispatch.
    """

    def __init__(
        self,
        settings: Settings,
        tools_config: ToolsConfig,
        registry: ToolRegistry,
        services: ToolServices,
        env: Optional[Mapping[str, str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            settings: Process configuration
            tools_config: Immutable permission config
            registry: Static tool registry
            services: Shared caches handed to handlers
            env: Environment used for credential fallback (defaults to os.environ)
            transport: Optional httpx transport for outbound calls (tests)
        """
        self.settings = settings
        self.tools_config = tools_config
        self.registry = registry
        self.services = services
        self.env = env
        self.transport = transport

    def _context(
        self,
        name: str,
        credential: ResolvedCredential,
        server_url: Optional[str],
        request_id: Optional[str],
    ) -> InvocationContext:
        return InvocationContext(
            request_id=request_id or str(uuid.uuid4()),
            tool_name=name,
            auth_token=credential.token,
            credential_source=credential.source,
            server_url=normalize_server_url(server_url) if server_url else self.settings.server_url,
            timeout_seconds=self.settings.timeout_seconds,
        )

    async def _installed_plugins(self, ctx: InvocationContext, client: CountlyClient) -> FrozenSet[str]:
        return await self.services.plugins_for(ctx).get_installed(client)

    async def invoke(
        self,
        name: str,
        arguments: Optional[Dict[str, Any]] = None,
        metadata: Optional[Mapping[str, Any]] = None,
        session_token: Optional[str] = None,
        server_url: Optional[str] = None,
        request_id: Optional[str] = None,
    ) -> ToolResult:
        """
        Invoke a tool.

        Args:
            name: Tool name
            arguments: Tool arguments (may carry countly_auth_token)
            metadata: Request metadata (may carry countlyAuthToken)
            session_token: Credential installed by the transport for this request
            server_url: Per-request Countly server override
            request_id: Correlation ID for logs

        Returns:
            ToolResult from the handler

        Raises:
            CountlyMCPError: Any failure, already classified
        """
        state = PipelineState.RECEIVED
        args = dict(arguments or {})
        start_time = time.time()
        status = "internal"

        try:
            credential = require_auth_token(args=args, metadata=metadata, session_token=session_token, env=self.env)
            state = PipelineState.CREDENTIAL_RESOLVED
            # Never forwarded to handlers or the backend as a parameter
            args.pop(AUTH_TOKEN_ARG, None)

            ctx = self._context(name, credential, server_url, request_id)
            log_extra = {
                "tool_name": name,
                "request_id": ctx.request_id,
                "credential_source": credential.source.value,
            }
            logger.info("Tool call started", extra=log_extra)

            reset_token = active_credential.set(credential)
            try:
                async with CountlyClient.for_invocation(ctx, transport=self.transport) as client:
                    state = PipelineState.AUTH_INSTALLED
                    handler = await self._resolve_handler(name, ctx, client, log_extra)
                    state = PipelineState.DISPATCHED
                    result = await self._run_handler(handler, ToolContext(ctx, client, self.services), name, args)
            finally:
                active_credential.reset(reset_token)

            state = PipelineState.COMPLETED
            status = "success"
            logger.info("Tool call completed", extra={**log_extra, "state": state.value})
            return result

        except CountlyMCPError as e:
            status = e.category.value
            logger.warning(
                "Tool call failed",
                extra={
                    "tool_name": name,
                    "state": PipelineState.FAILED.value,
                    "failed_after": state.value,
                    "error_category": status,
                    "error": e.message,
                },
            )
            raise
        finally:
            # Unregistered names share one label
            label = name if name in self.registry else "unknown"
            tool_calls_total.labels(tool_name=label, status=status).inc()
            tool_call_duration.labels(tool_name=label).observe(time.time() - start_time)

    async def _resolve_handler(
        self, name: str, ctx: InvocationContext, client: CountlyClient, log_extra: Dict[str, Any]
    ):
        if name not in self.registry:
            raise UnknownToolError(name)

        decision = check_tool_access(name, self.tools_config)
        if not decision.allowed:
            raise ForbiddenToolError(name, describe_denial(name, decision))

        installed: Optional[FrozenSet[str]] = None
        entry = get_tool_category(name)
        if entry is None:
            logger.warning("Dispatching unclassified tool", extra=log_extra)
        elif requires_plugin_check(entry[0].name):
            installed = await self._installed_plugins(ctx, client)
            decision = check_tool_access(name, self.tools_config, installed)
            if not decision.allowed:
                raise ForbiddenToolError(name, describe_denial(name, decision))

        table = self.registry.build_dispatch_table(self.tools_config, installed)
        return table.lookup(name)

    async def _run_handler(self, handler, tool_ctx: ToolContext, name: str, args: Dict[str, Any]) -> ToolResult:
        try:
            return await handler(tool_ctx, args)
        except CountlyMCPError:
            raise
        except Exception as e:
            logger.error(
                "Tool handler raised unexpected error",
                extra={"tool_name": name, "request_id": tool_ctx.invocation.request_id, "error": str(e)},
                exc_info=True,
            )
            raise CountlyMCPError(f"Error executing tool {name}: {e}") from e

    async def list_tools(
        self,
        metadata: Optional[Mapping[str, Any]] = None,
        session_token: Optional[str] = None,
        server_url: Optional[str] = None,
    ) -> List[ToolDefinition]:
        """
        List the tools the current configuration permits.

        Always filtered by CRUD permissions. When a credential is available
        the installed plugins are fetched and plugin-gated categories are
        filtered too; if that fetch fails the CRUD-only list is returned.
        """
        definitions = self.registry.definitions()
        try:
            credential = resolve_auth_token(metadata=metadata, session_token=session_token, env=self.env)
        except CredentialError as e:
            logger.warning("Listing tools without plugin filter", extra={"error": e.message})
            return filter_tools(definitions, self.tools_config)

        if credential is None:
            return filter_tools(definitions, self.tools_config)

        ctx = self._context("tools/list", credential, server_url, None)
        reset_token = active_credential.set(credential)
        try:
            async with CountlyClient.for_invocation(ctx, transport=self.transport) as client:
                installed = await self._installed_plugins(ctx, client)
        except UpstreamError as e:
            logger.warning("Listing tools without plugin filter", extra={"error": e.message})
            return filter_tools(definitions, self.tools_config)
        finally:
            active_credential.reset(reset_token)

        return filter_tools_by_plugins(definitions, self.tools_config, installed)

    @asynccontextmanager
    async def _session(
        self,
        operation: str,
        metadata: Optional[Mapping[str, Any]],
        session_token: Optional[str],
        server_url: Optional[str],
        request_id: Optional[str],
    ) -> AsyncIterator[ToolContext]:
        """Bind a required credential and open a client outside a tool call."""
        credential = require_auth_token(metadata=metadata, session_token=session_token, env=self.env)
        ctx = self._context(operation, credential, server_url, request_id)
        reset_token = active_credential.set(credential)
        try:
            async with CountlyClient.for_invocation(ctx, transport=self.transport) as client:
                yield ToolContext(ctx, client, self.services)
        finally:
            active_credential.reset(reset_token)

    async def list_resources(
        self,
        metadata: Optional[Mapping[str, Any]] = None,
        session_token: Optional[str] = None,
        server_url: Optional[str] = None,
        request_id: Optional[str] = None,
    ) -> List[ResourceDefinition]:
        """List ``countly://`` resources for the apps the credential can see."""
        async with self._session("resources/list", metadata, session_token, server_url, request_id) as tool_ctx:
            return await resources.list_resources(tool_ctx)

    async def read_resource(
        self,
        uri: str,
        metadata: Optional[Mapping[str, Any]] = None,
        session_token: Optional[str] = None,
        server_url: Optional[str] = None,
        request_id: Optional[str] = None,
    ) -> ResourceContent:
        async with self._session("resources/read", metadata, session_token, server_url, request_id) as tool_ctx:
            content = await resources.read_resource(tool_ctx, uri)
        logger.info("Resource read", extra={"uri": uri, "request_id": tool_ctx.invocation.request_id})
        return content
