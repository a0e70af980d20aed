"""JWT token creation and verification.

Learn: the access token carries the user id in ``sub`` and the
marketplace role (``client`` or ``contractor``) in ``role``. Both are
needed downstream: the role decides whether bid admission applies, the
user id is the key for rate windows and live connections.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt

from tenderhub.config import settings

CLIENT = "client"
CONTRACTOR = "contractor"
ROLES = (CLIENT, CONTRACTOR)


class TokenError(Exception):
    """Raised when token creation/verification fails."""


def create_access_token(
    user_id: str,
    role: str,
    expires_minutes: Optional[int] = None,
) -> str:
    """Create a JWT access token."""
    if role not in ROLES:
        raise TokenError(f"Unknown role: {role}")
    now = datetime.now(timezone.utc)
    expires = now + timedelta(
        minutes=expires_minutes or settings.access_token_expire_minutes
    )
    payload = {
        "sub": user_id,
        "role": role,
        "type": "access",
        "exp": expires,
        "iat": now,
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def verify_token(token: str) -> dict:
    """Verify and decode a JWT token.

    Returns the payload dict on success.
    Raises TokenError on failure.
    """
    try:
        payload = jwt.decode(
            token, settings.jwt_secret, algorithms=[settings.jwt_algorithm]
        )
        return payload
    except jwt.ExpiredSignatureError:
        raise TokenError("Token has expired")
    except jwt.InvalidTokenError as e:
        raise TokenError(f"Invalid token: {e}")
