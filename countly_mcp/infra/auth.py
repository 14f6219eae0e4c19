"""Credential resolution for outbound Countly calls.

Priority order, first present wins:
1. Tool argument ``countly_auth_token`` (per-call override)
2. Request metadata ``countlyAuthToken``
3. Token installed for the session (``X-Countly-Auth-Token`` transport header)
4. Environment variable ``COUNTLY_AUTH_TOKEN``
5. File named by ``COUNTLY_AUTH_TOKEN_FILE``
"""

import errno
import os
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Optional

from countly_mcp.infra.error_handler import MissingCredentialError, TokenFileError


AUTH_TOKEN_ARG = "countly_auth_token"
AUTH_TOKEN_METADATA_KEY = "countlyAuthToken"
AUTH_TOKEN_HEADER = "X-Countly-Auth-Token"
AUTH_TOKEN_ENV = "COUNTLY_AUTH_TOKEN"
AUTH_TOKEN_FILE_ENV = "COUNTLY_AUTH_TOKEN_FILE"


class CredentialSource(str, Enum):
    """Where a resolved token came from, in priority order."""
    ARGUMENT = "argument"
    METADATA = "metadata"
    SESSION = "session"
    ENVIRONMENT = "environment"
    FILE = "file"


@dataclass(frozen=True)
class ResolvedCredential:
    """A token together with the source that supplied it."""
    token: str
    source: CredentialSource

    def __repr__(self) -> str:
        # Never expose the token in logs or tracebacks
        return f"ResolvedCredential(source={self.source.value!r})"


def read_token_from_file(file_path: str) -> str:
    """
    Read and trim a token from a file.

    Args:
        file_path: Path named by COUNTLY_AUTH_TOKEN_FILE

    Returns:
        The trimmed token

    Raises:
        TokenFileError: If the file is missing, unreadable or empty
    """
    try:
        with open(file_path, "r", encoding="utf-8") as f:
            content = f.read()
    except FileNotFoundError as e:
        raise TokenFileError(
            f"Token file not found: {file_path}\n"
            f"Make sure {AUTH_TOKEN_FILE_ENV} points to a valid file.",
            file_path,
        ) from e
    except PermissionError as e:
        raise TokenFileError(
            f"Permission denied reading token file: {file_path}\n"
            "Make sure the file is readable by this process (e.g. chmod 600 and correct owner).",
            file_path,
        ) from e
    except OSError as e:
        reason = os.strerror(e.errno) if e.errno else str(e)
        if e.errno == errno.EISDIR:
            reason = "path is a directory"
        raise TokenFileError(f"Failed to read token file {file_path}: {reason}", file_path) from e
    except UnicodeDecodeError as e:
        raise TokenFileError(f"Failed to read token file {file_path}: {e}", file_path) from e

    token = content.strip()
    if not token:
        raise TokenFileError(f"Token file is empty: {file_path}", file_path)
    return token


def _non_empty(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value
    return None


def resolve_auth_token(
    args: Optional[Mapping[str, Any]] = None,
    metadata: Optional[Mapping[str, Any]] = None,
    session_token: Optional[str] = None,
    env: Optional[Mapping[str, str]] = None,
) -> Optional[ResolvedCredential]:
    """
    Resolve the authentication token from the five sources in priority order.

    Args:
        args: Tool call arguments
        metadata: Request metadata (``_meta``)
        session_token: Token installed for the session by the transport
        env: Environment mapping (defaults to os.environ)

    Returns:
        ResolvedCredential, or None when no source yields a token

    Raises:
        TokenFileError: If the file source is selected but unusable
    """
    if env is None:
        env = os.environ

    token = _non_empty((args or {}).get(AUTH_TOKEN_ARG))
    if token:
        return ResolvedCredential(token, CredentialSource.ARGUMENT)

    token = _non_empty((metadata or {}).get(AUTH_TOKEN_METADATA_KEY))
    if token:
        return ResolvedCredential(token, CredentialSource.METADATA)

    token = _non_empty(session_token)
    if token:
        return ResolvedCredential(token, CredentialSource.SESSION)

    token = _non_empty(env.get(AUTH_TOKEN_ENV))
    if token:
        return ResolvedCredential(token, CredentialSource.ENVIRONMENT)

    file_path = _non_empty(env.get(AUTH_TOKEN_FILE_ENV))
    if file_path:
        return ResolvedCredential(read_token_from_file(file_path), CredentialSource.FILE)

    return None


def create_missing_auth_error() -> MissingCredentialError:
    """Build the error listing every way to supply a credential."""
    return MissingCredentialError(
        "No authentication token provided. Please provide credentials via:\n"
        f"1. Tool arguments: {AUTH_TOKEN_ARG} (or HTTP header {AUTH_TOKEN_HEADER} for HTTP transport)\n"
        f"2. Request metadata: {AUTH_TOKEN_METADATA_KEY}\n"
        f"3. Environment variable: {AUTH_TOKEN_ENV}\n"
        f"4. Token file: {AUTH_TOKEN_FILE_ENV}"
    )


def require_auth_token(
    args: Optional[Mapping[str, Any]] = None,
    metadata: Optional[Mapping[str, Any]] = None,
    session_token: Optional[str] = None,
    env: Optional[Mapping[str, str]] = None,
) -> ResolvedCredential:
    """Resolve the token or raise MissingCredentialError."""
    credential = resolve_auth_token(args=args, metadata=metadata, session_token=session_token, env=env)
    if credential is None:
        raise create_missing_auth_error()
    return credential
