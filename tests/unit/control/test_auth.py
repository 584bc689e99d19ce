"""
Unit tests for auth token resolution and generation.

Resolution order: -t literal, -T file, user default file, system default file;
the first non-empty (whitespace-stripped) value wins.
"""

import os
import sys

import pytest

from zerotier_one.control.auth import (
    AUTH_TOKEN_LENGTH,
    TokenSources,
    ensure_auth_token,
    generate_auth_token,
    resolve_auth_token,
    tokens_match,
)
from zerotier_one.errors import AuthTokenError, ResourceError


@pytest.fixture
def sources(tmp_path):
    user = tmp_path / "user-token"
    system = tmp_path / "system-token"
    user.write_text("user-token-value\n")
    system.write_text("system-token-value\n")
    return TokenSources(user_path=user, system_path=system)


@pytest.mark.unit
def test_literal_wins(sources, tmp_path):
    token_file = tmp_path / "file-token"
    token_file.write_text("file-token-value")
    sources.literal = "literal-value"
    sources.token_file = token_file
    assert resolve_auth_token(sources) == "literal-value"


@pytest.mark.unit
def test_whitespace_literal_falls_through(sources, tmp_path):
    token_file = tmp_path / "file-token"
    token_file.write_text("file-token-value")
    sources.literal = "   "
    assert resolve_auth_token(sources) == "user-token-value"

    sources.token_file = token_file
    assert resolve_auth_token(sources) == "file-token-value"


@pytest.mark.unit
def test_token_file_beats_defaults(sources, tmp_path):
    token_file = tmp_path / "file-token"
    token_file.write_text("  file-token-value \n")
    sources.token_file = token_file
    assert resolve_auth_token(sources) == "file-token-value"


@pytest.mark.unit
def test_unreadable_token_file_is_fatal(sources, tmp_path):
    sources.token_file = tmp_path / "does-not-exist"
    with pytest.raises(AuthTokenError, match="unable to read token from"):
        resolve_auth_token(sources)


@pytest.mark.unit
def test_empty_token_file_falls_through(sources, tmp_path):
    token_file = tmp_path / "file-token"
    token_file.write_text("   \n")
    sources.token_file = token_file
    assert resolve_auth_token(sources) == "user-token-value"


@pytest.mark.unit
def test_user_default_beats_system(sources):
    assert resolve_auth_token(sources) == "user-token-value"


@pytest.mark.unit
def test_system_default_when_user_missing(sources):
    sources.user_path.unlink()
    assert resolve_auth_token(sources) == "system-token-value"


@pytest.mark.unit
def test_no_token_anywhere(sources):
    sources.user_path.unlink()
    sources.system_path.unlink()
    with pytest.raises(AuthTokenError) as excinfo:
        resolve_auth_token(sources)
    message = str(excinfo.value)
    assert message.startswith("no token specified on command line and could not read")
    assert str(sources.system_path) in message
    assert str(sources.user_path) in message


@pytest.mark.unit
def test_generated_tokens():
    token = generate_auth_token()
    assert len(token) == AUTH_TOKEN_LENGTH
    assert token.isalnum()
    assert generate_auth_token() != token


@pytest.mark.unit
def test_ensure_auth_token_creates_once(tmp_path):
    path = tmp_path / "authtoken.secret"
    token = ensure_auth_token(path)
    assert path.read_text() == token
    assert ensure_auth_token(path) == token
    if sys.platform != "win32":
        assert os.stat(path).st_mode & 0o777 == 0o600


@pytest.mark.unit
def test_ensure_auth_token_write_failure(tmp_path):
    with pytest.raises(ResourceError):
        ensure_auth_token(tmp_path / "missing-dir" / "authtoken.secret")


@pytest.mark.unit
def test_tokens_match():
    assert tokens_match("abc", "abc")
    assert not tokens_match("abc", "abd")
    assert not tokens_match("abc", "")
