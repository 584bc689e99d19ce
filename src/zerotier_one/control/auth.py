"""
Auth token handling for the control channel.

Client side, a token is resolved in this order, stopping at the first source
that yields a non-empty value:

1. Literal token given on the command line (-t<token>)
2. Contents of a token file given on the command line (-T<file>)
3. The user's default token file (~/.zeroTierOneAuthToken)
4. The system token file in the default service home (authtoken.secret)

Service side, the token is generated on first start and stored in the home
directory, readable only by its owner.
"""

import hmac
import logging
import os
import secrets
import string
from dataclasses import dataclass
from pathlib import Path

from zerotier_one.errors import AuthTokenError, ResourceError
from zerotier_one.paths import auth_token_default_system_path, auth_token_default_user_path

AUTH_TOKEN_LENGTH = 24
AUTH_TOKEN_ALPHABET = string.ascii_letters + string.digits


@dataclass
class TokenSources:
    """Where the control client may find an auth token."""

    literal: str | None = None
    token_file: Path | None = None
    user_path: Path | None = None
    system_path: Path | None = None

    def __post_init__(self) -> None:
        if self.user_path is None:
            self.user_path = auth_token_default_user_path()
        if self.system_path is None:
            self.system_path = auth_token_default_system_path()


def read_token_file(path: Path) -> str | None:
    """Read a token file, returning None if it is missing or unreadable."""
    try:
        return path.read_text(encoding="utf-8").strip()
    except (OSError, UnicodeDecodeError) as e:
        logging.debug(f"Could not read auth token from {path}: {e}")
        return None


def resolve_auth_token(sources: TokenSources) -> str:
    """Resolve the auth token for a control request.

    Args:
        sources: Candidate sources in priority order

    Returns:
        The first non-empty token found

    Raises:
        AuthTokenError: If the explicit token file is unreadable, or no source
            yields a token
    """
    literal = (sources.literal or "").strip()
    if literal:
        return literal

    if sources.token_file is not None:
        token = read_token_file(sources.token_file)
        if token is None:
            raise AuthTokenError(f"unable to read token from '{sources.token_file}'")
        if token:
            return token

    for path in (sources.user_path, sources.system_path):
        if path is None:
            continue
        token = read_token_file(path)
        if token:
            return token

    raise AuthTokenError(
        f"no token specified on command line and could not read '{sources.system_path}' or '{sources.user_path}'"
    )


def generate_auth_token(length: int = AUTH_TOKEN_LENGTH) -> str:
    return "".join(secrets.choice(AUTH_TOKEN_ALPHABET) for _ in range(length))


def ensure_auth_token(path: Path) -> str:
    """Load the service auth token, creating it if needed.

    Args:
        path: Token file inside the service home

    Returns:
        The service's auth token

    Raises:
        ResourceError: If a new token cannot be written
    """
    token = read_token_file(path)
    if token:
        return token

    token = generate_auth_token()
    try:
        path.write_text(token, encoding="utf-8")
        if os.name == "posix":
            os.chmod(path, 0o600)
    except OSError as e:
        raise ResourceError(f"unable to write auth token to {path}: {e}") from e

    logging.info(f"Generated new auth token in {path}")
    return token


def tokens_match(expected: str, presented: str) -> bool:
    """Constant-time token comparison."""
    return hmac.compare_digest(expected.encode("utf-8"), presented.encode("utf-8"))
