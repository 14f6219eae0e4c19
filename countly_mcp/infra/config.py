"""Configuration management for the Countly MCP hub."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Mapping, Optional
from urllib.parse import urlparse

from dotenv import load_dotenv

# Load .env file from project root
project_root = Path(__file__).parent.parent.parent
env_file = project_root / ".env"

# override=False means existing environment variables take precedence
load_dotenv(dotenv_path=env_file, override=False)


SERVER_NAME = "countly-mcp-server"
SERVER_VERSION = "1.0.0"

DEFAULT_TIMEOUT_MS = 30000
DEFAULT_APP_CACHE_TTL = 300.0
DEFAULT_PLUGIN_CACHE_TTL = 60.0
DEFAULT_PORT = 3101
DEFAULT_MAX_TENANTS = 256

TOOLS_ENV_PREFIX = "COUNTLY_TOOLS_"
TOOLS_DEFAULT_ENV = "COUNTLY_TOOLS_ALL"
TOOLS_ALLOW_UNCLASSIFIED_ENV = "COUNTLY_TOOLS_ALLOW_UNCLASSIFIED"


def normalize_server_url(url: str) -> str:
    """Strip trailing slashes from a server URL."""
    clean_url = url.strip()
    while clean_url.endswith("/"):
        clean_url = clean_url[:-1]
    return clean_url


def validate_server_url(url: str) -> bool:
    """Return True if the URL is an absolute http(s) URL."""
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def parse_timeout(timeout_str: Optional[str], default_timeout: int = DEFAULT_TIMEOUT_MS) -> int:
    """
    Parse a timeout in milliseconds.

    Args:
        timeout_str: Raw value, e.g. "30000"
        default_timeout: Value used when timeout_str is empty

    Returns:
        Timeout in milliseconds

    Raises:
        ValueError: If the value is not a positive integer
    """
    if not timeout_str:
        return default_timeout

    try:
        timeout = int(timeout_str, 10)
    except ValueError:
        timeout = 0

    if timeout <= 0:
        raise ValueError(f"Invalid timeout value: {timeout_str}. Must be a positive number.")

    return timeout


def parse_seconds(value: Optional[str], name: str, default: float) -> float:
    """Parse a non-negative duration in seconds."""
    if not value:
        return default
    try:
        seconds = float(value)
    except ValueError:
        seconds = -1.0
    if seconds < 0:
        raise ValueError(f"Invalid {name} value: {value}. Must be a non-negative number of seconds.")
    return seconds


def parse_bool(value: Optional[str], default: bool) -> bool:
    if value is None or value == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    """Immutable process configuration, built once at startup."""
    server_url: str = ""
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    app_cache_ttl: float = DEFAULT_APP_CACHE_TTL
    plugin_cache_ttl: float = DEFAULT_PLUGIN_CACHE_TTL
    max_tenants: int = DEFAULT_MAX_TENANTS  # per-tenant cache entries kept
    tools_default: Optional[str] = None  # COUNTLY_TOOLS_ALL
    tools_overrides: Mapping[str, str] = field(default_factory=dict)  # category -> raw permission string
    allow_unclassified_tools: bool = True
    app_env: str = "development"
    debug: bool = False
    host: str = "0.0.0.0"
    port: int = DEFAULT_PORT

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_ms / 1000.0


def _tools_overrides_from_env(env: Mapping[str, str]) -> Dict[str, str]:
    overrides: Dict[str, str] = {}
    for key, value in env.items():
        if not key.startswith(TOOLS_ENV_PREFIX):
            continue
        if key in (TOOLS_DEFAULT_ENV, TOOLS_ALLOW_UNCLASSIFIED_ENV):
            continue
        category = key[len(TOOLS_ENV_PREFIX):].lower()
        if category:
            overrides[category] = value
    return overrides


def load_settings(env: Optional[Mapping[str, str]] = None, validate_url: bool = True) -> Settings:
    """
    Build Settings from environment variables.

    The server URL is optional here: it can also be supplied per request by
    the transport (X-Countly-Server-Url header).

    Args:
        env: Environment mapping (defaults to os.environ)
        validate_url: Reject a malformed COUNTLY_SERVER_URL

    Returns:
        Frozen Settings instance

    Raises:
        ValueError: If any value is malformed
    """
    if env is None:
        env = os.environ

    raw_url = env.get("COUNTLY_SERVER_URL", "")
    server_url = normalize_server_url(raw_url) if raw_url else ""
    if validate_url and server_url and not validate_server_url(server_url):
        raise ValueError(
            f"Invalid COUNTLY_SERVER_URL: {server_url}\n"
            "Must be a valid HTTP or HTTPS URL."
        )

    port_raw = env.get("PORT", "")
    try:
        port = int(port_raw) if port_raw else DEFAULT_PORT
    except ValueError as e:
        raise ValueError(f"Invalid PORT value: {port_raw}") from e

    tenants_raw = env.get("COUNTLY_CACHE_MAX_TENANTS", "")
    try:
        max_tenants = int(tenants_raw) if tenants_raw else DEFAULT_MAX_TENANTS
    except ValueError:
        max_tenants = 0
    if max_tenants < 1:
        raise ValueError(f"Invalid COUNTLY_CACHE_MAX_TENANTS value: {tenants_raw}. Must be a positive integer.")

    return Settings(
        server_url=server_url,
        timeout_ms=parse_timeout(env.get("COUNTLY_TIMEOUT")),
        app_cache_ttl=parse_seconds(env.get("COUNTLY_APP_CACHE_TTL"), "COUNTLY_APP_CACHE_TTL", DEFAULT_APP_CACHE_TTL),
        plugin_cache_ttl=parse_seconds(
            env.get("COUNTLY_PLUGIN_CACHE_TTL"), "COUNTLY_PLUGIN_CACHE_TTL", DEFAULT_PLUGIN_CACHE_TTL
        ),
        max_tenants=max_tenants,
        tools_default=env.get(TOOLS_DEFAULT_ENV),
        tools_overrides=MappingProxyType(_tools_overrides_from_env(env)),
        allow_unclassified_tools=parse_bool(env.get(TOOLS_ALLOW_UNCLASSIFIED_ENV), True),
        app_env=env.get("APP_ENV", "development"),
        debug=parse_bool(env.get("DEBUG"), False),
        host=env.get("HOST", "0.0.0.0"),
        port=port,
    )
