"""Per-invocation request context."""

from dataclasses import dataclass

from countly_mcp.infra.auth import CredentialSource


@dataclass(frozen=True)
class InvocationContext:
    """Immutable binding of one tool call to its credential and backend.

    Built by the pipeline after credential resolution and never shared
    between invocations.
    """
    request_id: str
    tool_name: str
    auth_token: str
    credential_source: CredentialSource
    server_url: str
    timeout_seconds: float

    def __repr__(self) -> str:
        return (
            f"InvocationContext(request_id={self.request_id!r}, tool_name={self.tool_name!r}, "
            f"credential_source={self.credential_source.value!r}, server_url={self.server_url!r})"
        )
