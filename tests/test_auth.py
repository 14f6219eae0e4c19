"""Tests for credential resolution priority and token file handling."""

import itertools
import os

import pytest

from countly_mcp.infra.auth import (
    AUTH_TOKEN_ARG,
    AUTH_TOKEN_ENV,
    AUTH_TOKEN_FILE_ENV,
    AUTH_TOKEN_METADATA_KEY,
    CredentialSource,
    ResolvedCredential,
    read_token_from_file,
    require_auth_token,
    resolve_auth_token,
)
from countly_mcp.infra.error_handler import MissingCredentialError, TokenFileError

SOURCES = list(CredentialSource)


def _inputs(present, token_file):
    """Build resolver inputs where each present source carries its own token."""
    args, metadata, env = {}, {}, {}
    session = None
    if CredentialSource.ARGUMENT in present:
        args[AUTH_TOKEN_ARG] = "tok-argument"
    if CredentialSource.METADATA in present:
        metadata[AUTH_TOKEN_METADATA_KEY] = "tok-metadata"
    if CredentialSource.SESSION in present:
        session = "tok-session"
    if CredentialSource.ENVIRONMENT in present:
        env[AUTH_TOKEN_ENV] = "tok-environment"
    if CredentialSource.FILE in present:
        env[AUTH_TOKEN_FILE_ENV] = token_file
    return args, metadata, session, env


class TestResolveAuthToken:
    """Priority: argument > metadata > session > environment > file."""

    @pytest.fixture
    def token_file(self, tmp_path):
        path = tmp_path / "token"
        path.write_text("  tok-file\n")
        return str(path)

    @pytest.mark.parametrize(
        "present",
        [
            frozenset(combo)
            for size in range(1, len(SOURCES) + 1)
            for combo in itertools.combinations(SOURCES, size)
        ],
    )
    def test_highest_priority_source_wins(self, present, token_file):
        """Every non-empty combination of sources resolves to the highest-priority one."""
        args, metadata, session, env = _inputs(present, token_file)

        credential = resolve_auth_token(args=args, metadata=metadata, session_token=session, env=env)

        expected = next(source for source in SOURCES if source in present)
        assert credential.source == expected
        assert credential.token == f"tok-{expected.value}"

    def test_no_source_returns_none(self):
        assert resolve_auth_token(args={}, metadata={}, session_token=None, env={}) is None

    def test_empty_values_are_skipped(self):
        credential = resolve_auth_token(
            args={AUTH_TOKEN_ARG: ""},
            metadata={AUTH_TOKEN_METADATA_KEY: "   "},
            session_token="",
            env={AUTH_TOKEN_ENV: "env-token"},
        )
        assert credential == ResolvedCredential("env-token", CredentialSource.ENVIRONMENT)

    def test_non_string_argument_is_ignored(self):
        credential = resolve_auth_token(args={AUTH_TOKEN_ARG: 12345}, env={AUTH_TOKEN_ENV: "env-token"})
        assert credential.source == CredentialSource.ENVIRONMENT

    def test_file_is_not_read_when_higher_source_present(self, tmp_path):
        """A broken token file must not matter when a higher source already wins."""
        missing = str(tmp_path / "does-not-exist")
        credential = resolve_auth_token(env={AUTH_TOKEN_ENV: "env-token", AUTH_TOKEN_FILE_ENV: missing})
        assert credential.token == "env-token"

    def test_repr_hides_token(self):
        credential = ResolvedCredential("secret-value", CredentialSource.SESSION)
        assert "secret-value" not in repr(credential)


class TestRequireAuthToken:
    def test_missing_credential_lists_every_source(self):
        with pytest.raises(MissingCredentialError) as exc_info:
            require_auth_token(args={}, metadata={}, session_token=None, env={})

        message = exc_info.value.message
        assert AUTH_TOKEN_ARG in message
        assert AUTH_TOKEN_METADATA_KEY in message
        assert AUTH_TOKEN_ENV in message
        assert AUTH_TOKEN_FILE_ENV in message
        assert "X-Countly-Auth-Token" in message

    def test_returns_resolved_credential(self):
        credential = require_auth_token(session_token="abc", env={})
        assert credential == ResolvedCredential("abc", CredentialSource.SESSION)


class TestReadTokenFromFile:
    def test_token_is_trimmed(self, tmp_path):
        path = tmp_path / "token"
        path.write_text("\n\t my-token \n")
        assert read_token_from_file(str(path)) == "my-token"

    def test_missing_file(self, tmp_path):
        path = str(tmp_path / "missing")
        with pytest.raises(TokenFileError) as exc_info:
            read_token_from_file(path)
        assert "Token file not found" in exc_info.value.message
        assert exc_info.value.path == path

    def test_empty_file(self, tmp_path):
        path = tmp_path / "token"
        path.write_text("   \n")
        with pytest.raises(TokenFileError) as exc_info:
            read_token_from_file(str(path))
        assert "empty" in exc_info.value.message

    def test_directory_path(self, tmp_path):
        with pytest.raises(TokenFileError) as exc_info:
            read_token_from_file(str(tmp_path))
        assert str(tmp_path) in exc_info.value.message

    @pytest.mark.skipif(os.name != "posix" or os.geteuid() == 0, reason="needs an unprivileged POSIX user")
    def test_unreadable_file(self, tmp_path):
        path = tmp_path / "token"
        path.write_text("secret")
        path.chmod(0o000)
        try:
            with pytest.raises(TokenFileError) as exc_info:
                read_token_from_file(str(path))
            assert "Permission denied" in exc_info.value.message
        finally:
            path.chmod(0o600)

    def test_file_source_error_propagates_from_resolver(self, tmp_path):
        path = tmp_path / "token"
        path.write_text("")
        with pytest.raises(TokenFileError):
            resolve_auth_token(env={AUTH_TOKEN_FILE_ENV: str(path)})
