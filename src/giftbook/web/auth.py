"""
Bearer credentials.

Identity is owned elsewhere; this module only turns a signed bearer token
into a user id. Tokens are django.core.signing payloads, timestamped so they
expire after `auth.token_max_age_seconds`.
"""

import logging

from django.core import signing
from django.http import HttpRequest

from ..config import AuthConfig
from ..errors import Unauthorized

logger = logging.getLogger(__name__)

TOKEN_SALT = "giftbook.bearer"


def issue_token(user_id: str, auth: AuthConfig) -> str:
    """Sign a bearer token for a user id."""
    return signing.dumps({"uid": user_id}, key=auth.secret_key, salt=TOKEN_SALT)


def verify_token(token: str, auth: AuthConfig) -> str:
    """Return the user id carried by a token, or raise Unauthorized."""
    try:
        payload = signing.loads(
            token,
            key=auth.secret_key,
            salt=TOKEN_SALT,
            max_age=auth.token_max_age_seconds,
        )
    except signing.SignatureExpired:
        raise Unauthorized("Bearer token expired") from None
    except signing.BadSignature:
        raise Unauthorized("Bearer token invalid") from None

    user_id = payload.get("uid") if isinstance(payload, dict) else None
    if not user_id:
        raise Unauthorized("Bearer token carries no user")
    return str(user_id)


def resolve_bearer(request: HttpRequest, auth: AuthConfig) -> str:
    """Resolve the caller of a request from its Authorization header."""
    header = request.headers.get("Authorization", "")
    if not header.startswith("Bearer "):
        raise Unauthorized("Missing bearer token")
    token = header[len("Bearer "):].strip()
    if not token:
        raise Unauthorized("Missing bearer token")
    return verify_token(token, auth)
