"""
Auth session: the one place that knows the bearer token and who the local player is.

Handed to the match engine explicitly; nothing reads credentials from ambient state.
"""

import base64
import binascii
import json
import logging
from typing import Any, Optional

from matchclient.core.models import AuthUser
from matchclient.db.repository import TokenRepository

logger = logging.getLogger(__name__)

ACCESS_TOKEN_KEY = "accessToken"
# Older clients stored the token under this key; still read, still written.
LEGACY_TOKEN_KEY = "cf.jwt"


class AuthSession:
    def __init__(self, repository: TokenRepository) -> None:
        self.repo = repository
        self._user: Optional[AuthUser] = None
        token = self.token()
        if token:
            self._user = decode_user(token)

    def token(self) -> Optional[str]:
        return self.repo.get_token(ACCESS_TOKEN_KEY) or self.repo.get_token(
            LEGACY_TOKEN_KEY
        )

    def set_token(self, token: str) -> None:
        self.repo.set_token(ACCESS_TOKEN_KEY, token)
        self.repo.set_token(LEGACY_TOKEN_KEY, token)
        self._user = decode_user(token)

    def clear(self) -> None:
        self.repo.delete_token(ACCESS_TOKEN_KEY)
        self.repo.delete_token(LEGACY_TOKEN_KEY)
        self._user = None

    def user(self) -> Optional[AuthUser]:
        return self._user

    def is_logged_in(self) -> bool:
        return self._user is not None


def decode_claims(token: str) -> Optional[dict[str, Any]]:
    """Payload of a JWT, without verifying the signature (the authority does that)."""
    parts = token.split(".")
    if len(parts) < 2:
        return None
    segment = parts[1]
    padded = segment + "=" * (-len(segment) % 4)
    try:
        claims = json.loads(base64.urlsafe_b64decode(padded).decode("utf-8"))
    except (binascii.Error, UnicodeDecodeError, ValueError):
        return None
    return claims if isinstance(claims, dict) else None


def decode_user(token: str) -> Optional[AuthUser]:
    claims = decode_claims(token)
    if claims is None:
        logger.warning("Stored token could not be decoded; no local identity.")
        return None
    try:
        user_id = int(claims["sub"])
    except (KeyError, TypeError, ValueError):
        logger.warning("Token has no numeric subject; no local identity.")
        return None
    return AuthUser(
        id=user_id,
        username=claims.get("username") or "User",
        email=claims.get("email") or "",
    )
