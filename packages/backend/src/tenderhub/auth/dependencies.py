"""FastAPI auth dependencies.

Learn: These are used as Depends() in route handlers to extract and
validate the current identity from the request. The same token parsing
is shared with the bid rate-limit middleware and the WebSocket endpoint
via identity_from_token(), so every entry point agrees on what a valid
caller looks like.
"""

from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header, HTTPException

from tenderhub.auth.jwt import ROLES, TokenError, verify_token


@dataclass(frozen=True)
class CurrentIdentity:
    """The authenticated user making the request."""

    user_id: str
    role: str


def identity_from_token(token: str) -> CurrentIdentity:
    """Verify a token and pull the identity out of its claims.

    Raises TokenError when the signature/expiry check fails or when the
    role or user id claim is missing.
    """
    payload = verify_token(token)
    role = payload.get("role")
    if not role:
        raise TokenError("role not found in token")
    if role not in ROLES:
        raise TokenError(f"Unknown role: {role}")
    user_id = payload.get("sub")
    if not user_id:
        raise TokenError("user_id not found in token")
    return CurrentIdentity(user_id=str(user_id), role=role)


def bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Strip an optional "Bearer " prefix. Bare tokens are accepted too."""
    if not authorization:
        return None
    if authorization.startswith("Bearer "):
        return authorization[7:].strip() or None
    return authorization.strip() or None


async def get_current_user(
    authorization: Optional[str] = Header(None),
) -> CurrentIdentity:
    """Extract current identity (required — 401 if no auth)."""
    token = bearer_token(authorization)
    if not token:
        raise HTTPException(
            status_code=401,
            detail="Missing token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        return identity_from_token(token)
    except TokenError as e:
        raise HTTPException(
            status_code=401,
            detail=str(e),
            headers={"WWW-Authenticate": "Bearer"},
        )


def require_role(role: str):
    """Dependency factory: 403 unless the caller holds ``role``."""

    async def _require(
        identity: CurrentIdentity = Depends(get_current_user),
    ) -> CurrentIdentity:
        if identity.role != role:
            raise HTTPException(status_code=403, detail="forbidden")
        return identity

    return _require
