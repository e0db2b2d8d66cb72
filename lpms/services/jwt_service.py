"""
JWT Service — access token generation and verification.

Access token:  60 minutes (configurable via JWT_ACCESS_EXPIRES)
Algorithm:     HS256

Token payload:
{
    "sub": <user_name>,
    "type": "access",
    "iat": <issued_at>,
    "exp": <expires_at>,
    "jti": <unique_id>
}

Tokens are issued by the upstream identity provider in production; the
``issue-token`` CLI command and the test-suite use generate_access_token.
"""

import uuid
from datetime import datetime, timedelta, timezone

import jwt
from flask import current_app

DEFAULT_ACCESS_EXPIRES = 3600
ALGORITHM = "HS256"


def _get_secret():
    return current_app.config.get("JWT_SECRET_KEY") or current_app.config["SECRET_KEY"]


def generate_access_token(user_name: str, expires_in: int | None = None) -> str:
    now = datetime.now(timezone.utc)
    ttl = expires_in or current_app.config.get("JWT_ACCESS_EXPIRES", DEFAULT_ACCESS_EXPIRES)
    payload = {
        "sub": user_name,
        "type": "access",
        "iat": now,
        "exp": now + timedelta(seconds=ttl),
        "jti": str(uuid.uuid4()),
    }
    return jwt.encode(payload, _get_secret(), algorithm=ALGORITHM)


def decode_access_token(token: str) -> dict:
    """Verify signature, expiry and token type.

    Raises:
        jwt.InvalidTokenError (incl. ExpiredSignatureError)
    """
    payload = jwt.decode(token, _get_secret(), algorithms=[ALGORITHM])
    if payload.get("type") != "access":
        raise jwt.InvalidTokenError("Not an access token")
    if not payload.get("sub"):
        raise jwt.InvalidTokenError("Token has no subject")
    return payload
